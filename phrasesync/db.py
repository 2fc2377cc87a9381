from __future__ import annotations

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = Path.home() / ".phrasesync.sqlite"
DEFAULT_SERVER_DB_PATH = Path.home() / ".phrasesync-server.sqlite"


def connect(db_path: Path | str, check_same_thread: bool = True) -> sqlite3.Connection:
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.OperationalError:
        conn.execute("PRAGMA journal_mode = DELETE")
    conn.execute("PRAGMA synchronous = NORMAL")
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS phrases (
            user_id TEXT NOT NULL,
            text TEXT NOT NULL,
            frequency INTEGER NOT NULL DEFAULT 0,
            updated_at INTEGER NOT NULL,
            sync_state TEXT NOT NULL DEFAULT 'dirty',
            PRIMARY KEY (user_id, text)
        );
        CREATE INDEX IF NOT EXISTS idx_phrases_user_state ON phrases(user_id, sync_state);

        CREATE TABLE IF NOT EXISTS sync_attempts (
            id INTEGER PRIMARY KEY,
            user_id TEXT NOT NULL,
            mode TEXT NOT NULL,
            ok INTEGER NOT NULL,
            pushed INTEGER DEFAULT 0,
            pulled INTEGER DEFAULT 0,
            applied INTEGER DEFAULT 0,
            error TEXT,
            started_at TEXT NOT NULL,
            finished_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_sync_attempts_finished ON sync_attempts(finished_at DESC);
        """
    )


def initialize_authority_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS authority_phrases (
            user_id TEXT NOT NULL,
            text TEXT NOT NULL,
            frequency INTEGER NOT NULL,
            updated_at INTEGER NOT NULL,
            PRIMARY KEY (user_id, text)
        );
        CREATE INDEX IF NOT EXISTS idx_authority_user_updated
            ON authority_phrases(user_id, updated_at);
        """
    )
