from __future__ import annotations

import threading

import typer
from rich import print

from phrasesync.errors import PhraseSyncError


def sync_once_cmd(*, engine_from_config, cfg) -> None:
    """Run one sync round against the remote."""

    engine = engine_from_config(cfg)
    try:
        result = engine.initialize()
    except PhraseSyncError as exc:
        print(f"[red]Sync failed: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        engine.store.close()
    if result.ok:
        print(
            f"[green]{result.mode} sync ok[/green] "
            f"pushed={result.pushed} pulled={result.pulled} applied={result.applied}"
        )
        return
    print(f"[yellow]{result.mode} sync degraded (offline): {result.error}[/yellow]")
    raise typer.Exit(code=1)


def sync_daemon_cmd(*, engine_from_config, run_sync_daemon, cfg, interval_s: float | None) -> None:
    """Run sync rounds in the foreground until interrupted."""

    engine = engine_from_config(cfg)
    interval = interval_s or cfg.sync_interval_s
    stop = threading.Event()
    print(f"[green]Syncing {engine.user_id} every {interval}s (Ctrl-C to stop)[/green]")
    try:
        run_sync_daemon(engine, interval, stop_event=stop)
    except KeyboardInterrupt:
        stop.set()
    finally:
        engine.store.close()


def sync_attempts_cmd(*, store_from_path, cfg, limit: int) -> None:
    """Show recent sync attempts."""

    store = store_from_path(cfg.db_path)
    try:
        attempts = store.recent_sync_attempts(user_id=cfg.user_id, limit=limit)
    finally:
        store.close()
    for attempt in attempts:
        status = "ok" if attempt.ok else "error"
        suffix = f" | {attempt.error}" if attempt.error else ""
        print(
            f"{attempt.user_id}|{attempt.mode}|{status}|pushed={attempt.pushed}"
            f"|pulled={attempt.pulled}|applied={attempt.applied}|{attempt.finished_at}{suffix}"
        )


def serve_cmd(*, make_server, cfg, host: str | None, port: int | None, db_path: str | None) -> None:
    """Run the reference sync server."""

    bind_host = host or cfg.server_host
    bind_port = port or cfg.server_port
    server = make_server(
        bind_host,
        bind_port,
        db_path=db_path or cfg.server_db_path,
        max_body_bytes=cfg.server_max_body_bytes,
    )
    print(f"[green]Sync server listening on http://{bind_host}:{bind_port}[/green]")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
