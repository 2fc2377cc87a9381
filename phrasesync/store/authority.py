from __future__ import annotations

import sqlite3
import threading
from collections.abc import Sequence
from pathlib import Path

from .. import db
from ..errors import MalformedDataError, StoreError
from .utils import coerce_frequency, coerce_text, coerce_timestamp

Triple = tuple[str, int, int]


class AuthorityStore:
    """Server-side record set; the arbiter for conflicting phrase updates."""

    def __init__(self, db_path: Path | str = db.DEFAULT_SERVER_DB_PATH):
        self.db_path = Path(db_path).expanduser()
        try:
            self.conn = db.connect(self.db_path, check_same_thread=False)
            db.initialize_authority_schema(self.conn)
        except sqlite3.Error as exc:
            raise StoreError(f"failed to open authority store at {self.db_path}: {exc}") from exc
        self._lock = threading.RLock()

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def apply_changes(self, user_id: str, changes: Sequence[Sequence[object]]) -> int:
        """Apply client changes in one transaction; strictly newer updates win."""
        parsed: list[Triple] = []
        for change in changes:
            if not isinstance(change, (list, tuple)) or len(change) != 3:
                raise MalformedDataError("change must be [text, frequency, updatedAt]")
            text, frequency, updated_at = change
            parsed.append(
                (coerce_text(text), coerce_frequency(frequency), coerce_timestamp(updated_at))
            )
        applied = 0
        with self._lock:
            try:
                self.conn.execute("BEGIN IMMEDIATE")
                for text, frequency, updated_at in parsed:
                    cur = self.conn.execute(
                        """
                        INSERT INTO authority_phrases(user_id, text, frequency, updated_at)
                        VALUES (?, ?, ?, ?)
                        ON CONFLICT(user_id, text) DO UPDATE SET
                            frequency = excluded.frequency,
                            updated_at = excluded.updated_at
                        WHERE excluded.updated_at > authority_phrases.updated_at
                        """,
                        (user_id, text, frequency, updated_at),
                    )
                    applied += cur.rowcount
                self.conn.commit()
            except sqlite3.Error as exc:
                self.conn.rollback()
                raise StoreError(f"apply_changes failed: {exc}") from exc
        return applied

    def changes_since(self, user_id: str, since: int) -> list[Triple]:
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT text, frequency, updated_at
                FROM authority_phrases
                WHERE user_id = ? AND updated_at > ?
                ORDER BY updated_at, text
                """,
                (user_id, since),
            ).fetchall()
        return [(str(r["text"]), int(r["frequency"]), int(r["updated_at"])) for r in rows]

    def all_records(self, user_id: str) -> list[Triple]:
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT text, frequency, updated_at
                FROM authority_phrases
                WHERE user_id = ?
                ORDER BY text
                """,
                (user_id,),
            ).fetchall()
        return [(str(r["text"]), int(r["frequency"]), int(r["updated_at"])) for r in rows]
