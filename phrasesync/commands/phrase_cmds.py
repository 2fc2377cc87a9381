from __future__ import annotations

import json

import typer
from rich import print

from phrasesync.backup import read_snapshot, write_snapshot
from phrasesync.errors import MalformedDataError, PhraseSyncError


def use_cmd(*, engine_from_config, cfg, phrase: str) -> None:
    """Record one use of a phrase."""

    if not phrase.strip():
        print("[red]Phrase must not be empty[/red]")
        raise typer.Exit(code=1)
    engine = engine_from_config(cfg)
    try:
        frequency = engine.record_use(phrase)
    except PhraseSyncError as exc:
        print(f"[red]Could not load phrase history: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        engine.store.close()
    typer.echo(f"{phrase}|{frequency}")


def suggest_cmd(*, engine_from_config, cfg, prefix: str, limit: int, as_json: bool) -> None:
    """Print ranked completions for a prefix."""

    engine = engine_from_config(cfg)
    try:
        engine.load_local()
        suggestions = engine.suggest(prefix, limit=limit)
    finally:
        engine.store.close()
    if as_json:
        typer.echo(json.dumps([[s.text, s.frequency] for s in suggestions], ensure_ascii=False))
        return
    if not suggestions:
        print("[yellow]No suggestions[/yellow]")
        return
    for item in suggestions:
        typer.echo(f"{item.frequency:>6}  {item.text}")


def best_cmd(*, engine_from_config, cfg, prefix: str) -> None:
    """Print the single best completion for a prefix."""

    engine = engine_from_config(cfg)
    try:
        engine.load_local()
        best = engine.best_match(prefix)
    finally:
        engine.store.close()
    if best is None:
        print("[yellow]No suggestions[/yellow]")
        raise typer.Exit(code=1)
    typer.echo(f"{best.text}|{best.frequency}")


def status_cmd(*, engine_from_config, cfg) -> None:
    """Show local replica counts and the last sync attempt."""

    engine = engine_from_config(cfg)
    store = engine.store
    try:
        counts = store.counts(engine.user_id)
        attempts = store.recent_sync_attempts(user_id=engine.user_id, limit=1)
    finally:
        store.close()
    print(f"[bold]User:[/bold] {engine.user_id}")
    print(f"[bold]Replica:[/bold] {cfg.db_path}")
    print(f"[bold]Remote:[/bold] {cfg.remote_url}")
    print(f"- Phrases: {counts['total']} (dirty={counts['dirty']}, clean={counts['clean']})")
    if not attempts:
        print("- Last sync: never")
        return
    last = attempts[0]
    state = "ok" if last.ok else "error"
    suffix = f" | {last.error}" if last.error else ""
    print(f"- Last sync: {last.finished_at} ({last.mode}, {state}){suffix}")


def export_cmd(*, engine_from_config, cfg, output: str, pretty: bool) -> None:
    """Export the phrase index as a [[text, frequency], ...] JSON backup."""

    engine = engine_from_config(cfg)
    try:
        engine.load_local()
        entries = engine.index.export_flat()
    finally:
        engine.store.close()
    path = write_snapshot(output, sorted(entries, key=lambda e: (-e.frequency, e.text)), pretty=pretty)
    print(f"[green]Exported {len(entries)} phrases to {path}[/green]")


def import_cmd(*, engine_from_config, cfg, input_path: str) -> None:
    """Import a JSON backup as local writes (higher frequency wins)."""

    try:
        entries = read_snapshot(input_path)
    except FileNotFoundError as exc:
        print(f"[red]File not found: {input_path}[/red]")
        raise typer.Exit(code=1) from exc
    except MalformedDataError as exc:
        print(f"[red]Invalid backup: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    engine = engine_from_config(cfg)
    try:
        changed = engine.import_snapshot(entries)
    except PhraseSyncError as exc:
        print(f"[red]Import failed: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        engine.store.close()
    print(f"[green]Imported {changed} of {len(entries)} phrases[/green]")


def clear_cmd(*, engine_from_config, cfg, yes: bool) -> None:
    """Delete every local phrase record for the user."""

    if not yes:
        typer.confirm("This deletes all learned phrases for this user. Continue?", abort=True)
    engine = engine_from_config(cfg)
    try:
        removed = engine.clear_user_data()
    finally:
        engine.store.close()
    print(f"[green]Removed {removed} phrases[/green]")
