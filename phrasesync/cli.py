from __future__ import annotations

import typer

from . import __version__
from .commands.common import (
    configure_logging,
    engine_from_config,
    load_config_or_exit,
    read_config_or_exit,
    store_from_path,
)
from .commands.config_cmds import config_set_cmd, config_show_cmd
from .commands.phrase_cmds import (
    best_cmd,
    clear_cmd,
    export_cmd,
    import_cmd,
    status_cmd,
    suggest_cmd,
    use_cmd,
)
from .commands.sync_cmds import serve_cmd, sync_attempts_cmd, sync_daemon_cmd, sync_once_cmd
from .config import CONFIG_ENV_OVERRIDES, load_config, write_config_file
from .sync import run_sync_daemon
from .sync_api import make_server

app = typer.Typer(help="phrasesync: offline-first phrase autocompletion")
sync_app = typer.Typer(help="Reconcile the local replica with the remote")
config_app = typer.Typer(help="Inspect and edit configuration")
app.add_typer(sync_app, name="sync")
app.add_typer(config_app, name="config")

_DB_HELP = "Path to the local replica database"
_USER_HELP = "User whose phrases to operate on"
_REMOTE_HELP = "Base URL of the sync server"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(load_config().log_level, verbose=verbose)


@app.command()
def version() -> None:
    """Print the installed version."""
    typer.echo(__version__)


@app.command()
def use(
    phrase: str = typer.Argument(..., help="Phrase that was typed and confirmed"),
    db_path: str = typer.Option(None, help=_DB_HELP),
    user: str = typer.Option(None, help=_USER_HELP),
    remote: str = typer.Option(None, help=_REMOTE_HELP),
) -> None:
    """Record one use of a phrase."""
    cfg = load_config_or_exit(db_path=db_path, user=user, remote=remote)
    use_cmd(engine_from_config=engine_from_config, cfg=cfg, phrase=phrase)


@app.command()
def suggest(
    prefix: str = typer.Argument("", help="Typed prefix"),
    limit: int = typer.Option(10, help="Maximum suggestions"),
    as_json: bool = typer.Option(False, "--json", help="Print [[text, frequency], ...]"),
    db_path: str = typer.Option(None, help=_DB_HELP),
    user: str = typer.Option(None, help=_USER_HELP),
) -> None:
    """List completions for a prefix, most used first."""
    cfg = load_config_or_exit(db_path=db_path, user=user)
    suggest_cmd(
        engine_from_config=engine_from_config,
        cfg=cfg,
        prefix=prefix,
        limit=limit,
        as_json=as_json,
    )


@app.command()
def best(
    prefix: str = typer.Argument(..., help="Typed prefix"),
    db_path: str = typer.Option(None, help=_DB_HELP),
    user: str = typer.Option(None, help=_USER_HELP),
) -> None:
    """Print the single most used completion for a prefix."""
    cfg = load_config_or_exit(db_path=db_path, user=user)
    best_cmd(engine_from_config=engine_from_config, cfg=cfg, prefix=prefix)


@app.command()
def status(
    db_path: str = typer.Option(None, help=_DB_HELP),
    user: str = typer.Option(None, help=_USER_HELP),
) -> None:
    """Show local replica and sync status."""
    cfg = load_config_or_exit(db_path=db_path, user=user)
    status_cmd(engine_from_config=engine_from_config, cfg=cfg)


@app.command("export")
def export_phrases(
    output: str = typer.Argument(..., help="Destination JSON file"),
    pretty: bool = typer.Option(False, help="Indent the JSON output"),
    db_path: str = typer.Option(None, help=_DB_HELP),
    user: str = typer.Option(None, help=_USER_HELP),
) -> None:
    """Export learned phrases as a JSON backup."""
    cfg = load_config_or_exit(db_path=db_path, user=user)
    export_cmd(engine_from_config=engine_from_config, cfg=cfg, output=output, pretty=pretty)


@app.command("import")
def import_phrases(
    input_path: str = typer.Argument(..., help="JSON backup to import"),
    db_path: str = typer.Option(None, help=_DB_HELP),
    user: str = typer.Option(None, help=_USER_HELP),
) -> None:
    """Import a JSON backup; existing phrases keep the higher frequency."""
    cfg = load_config_or_exit(db_path=db_path, user=user)
    import_cmd(engine_from_config=engine_from_config, cfg=cfg, input_path=input_path)


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    db_path: str = typer.Option(None, help=_DB_HELP),
    user: str = typer.Option(None, help=_USER_HELP),
) -> None:
    """Delete all locally learned phrases for a user."""
    cfg = load_config_or_exit(db_path=db_path, user=user)
    clear_cmd(engine_from_config=engine_from_config, cfg=cfg, yes=yes)


@app.command()
def serve(
    host: str = typer.Option(None, help="Bind host"),
    port: int = typer.Option(None, help="Bind port"),
    db_path: str = typer.Option(None, help="Path to the server database"),
) -> None:
    """Run the reference sync server."""
    cfg = load_config_or_exit()
    serve_cmd(make_server=make_server, cfg=cfg, host=host, port=port, db_path=db_path)


@sync_app.command("once")
def sync_once(
    db_path: str = typer.Option(None, help=_DB_HELP),
    user: str = typer.Option(None, help=_USER_HELP),
    remote: str = typer.Option(None, help=_REMOTE_HELP),
) -> None:
    """Run a single sync round."""
    cfg = load_config_or_exit(db_path=db_path, user=user, remote=remote)
    sync_once_cmd(engine_from_config=engine_from_config, cfg=cfg)


@sync_app.command("daemon")
def sync_daemon(
    interval: float = typer.Option(None, help="Seconds between rounds"),
    db_path: str = typer.Option(None, help=_DB_HELP),
    user: str = typer.Option(None, help=_USER_HELP),
    remote: str = typer.Option(None, help=_REMOTE_HELP),
) -> None:
    """Sync in the foreground until interrupted."""
    cfg = load_config_or_exit(db_path=db_path, user=user, remote=remote)
    sync_daemon_cmd(
        engine_from_config=engine_from_config,
        run_sync_daemon=run_sync_daemon,
        cfg=cfg,
        interval_s=interval,
    )


@sync_app.command("attempts")
def sync_attempts(
    limit: int = typer.Option(10, help="Max attempts"),
    db_path: str = typer.Option(None, help=_DB_HELP),
    user: str = typer.Option(None, help=_USER_HELP),
) -> None:
    """Show recent sync attempts."""
    cfg = load_config_or_exit(db_path=db_path, user=user)
    sync_attempts_cmd(store_from_path=store_from_path, cfg=cfg, limit=limit)


@config_app.command("show")
def config_show() -> None:
    """Print the effective configuration."""
    config_show_cmd(load_config_or_exit=load_config_or_exit)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Config key"),
    value: str = typer.Argument(..., help="New value (empty string removes the key)"),
) -> None:
    """Persist a config value."""
    config_set_cmd(
        read_config_or_exit=read_config_or_exit,
        write_config_file=write_config_file,
        known_keys=set(CONFIG_ENV_OVERRIDES),
        key=key,
        value=value,
    )


if __name__ == "__main__":
    app()
