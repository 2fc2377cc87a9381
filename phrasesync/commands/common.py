from __future__ import annotations

import logging
from typing import Any

import typer
from rich import print

from phrasesync.config import PhraseSyncConfig, load_config, read_config_file
from phrasesync.errors import StoreError
from phrasesync.store import PhraseStore
from phrasesync.sync import HttpSyncTransport, SyncEngine


def configure_logging(level: str, *, verbose: bool = False) -> None:
    resolved = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def read_config_or_exit() -> dict[str, Any]:
    try:
        return read_config_file()
    except ValueError as exc:
        print(f"[red]Invalid config file: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def load_config_or_exit(
    *,
    db_path: str | None = None,
    user: str | None = None,
    remote: str | None = None,
) -> PhraseSyncConfig:
    read_config_or_exit()
    cfg = load_config()
    if db_path:
        cfg.db_path = db_path
    if user:
        cfg.user_id = user
    if remote:
        cfg.remote_url = remote
    return cfg


def store_from_path(db_path: str) -> PhraseStore:
    try:
        return PhraseStore(db_path)
    except StoreError as exc:
        print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc


def require_user(cfg: PhraseSyncConfig) -> str:
    user_id = (cfg.user_id or "").strip()
    if not user_id:
        print("[red]No user configured. Pass --user or set PHRASESYNC_USER_ID.[/red]")
        raise typer.Exit(code=1)
    return user_id


def engine_from_config(cfg: PhraseSyncConfig) -> SyncEngine:
    user_id = require_user(cfg)
    store = store_from_path(cfg.db_path)
    transport = HttpSyncTransport(cfg.remote_url, timeout_s=cfg.sync_timeout_s)
    return SyncEngine(user_id, store, transport)
