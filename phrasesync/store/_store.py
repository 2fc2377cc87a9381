from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any

from .. import db
from ..errors import StoreError
from . import utils as store_utils
from .types import PhraseRecord, SyncAttempt, SyncState


class PhraseStore:
    """SQLite-backed local replica of a user's phrase records."""

    def __init__(
        self,
        db_path: Path | str = db.DEFAULT_DB_PATH,
        *,
        check_same_thread: bool = False,
    ):
        self.db_path = Path(db_path).expanduser()
        try:
            self.conn = db.connect(self.db_path, check_same_thread=check_same_thread)
            db.initialize_schema(self.conn)
        except sqlite3.Error as exc:
            raise StoreError(f"failed to open replica at {self.db_path}: {exc}") from exc
        self._lock = threading.RLock()

    @contextmanager
    def _guard(self, action: str) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self.conn
            except sqlite3.Error as exc:
                raise StoreError(f"{action} failed: {exc}") from exc

    @contextmanager
    def _transaction(self, action: str) -> Iterator[sqlite3.Connection]:
        with self._guard(action) as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
                yield conn
            except BaseException:
                conn.rollback()
                raise
            else:
                conn.commit()

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def _select(self, action: str, sql: str, params: Sequence[Any]) -> list[PhraseRecord]:
        with self._guard(action) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [store_utils.record_from_row(row) for row in rows]

    def find_all(self, user_id: str) -> list[PhraseRecord]:
        return self._select(
            "find_all",
            """
            SELECT user_id, text, frequency, updated_at, sync_state
            FROM phrases
            WHERE user_id = ?
            ORDER BY text
            """,
            (user_id,),
        )

    def find_unsynced(self, user_id: str) -> list[PhraseRecord]:
        return self._select(
            "find_unsynced",
            """
            SELECT user_id, text, frequency, updated_at, sync_state
            FROM phrases
            WHERE user_id = ? AND sync_state = ?
            ORDER BY updated_at, text
            """,
            (user_id, SyncState.DIRTY.value),
        )

    def find_by_text(self, user_id: str, text: str) -> PhraseRecord | None:
        found = self._select(
            "find_by_text",
            """
            SELECT user_id, text, frequency, updated_at, sync_state
            FROM phrases
            WHERE user_id = ? AND text = ?
            """,
            (user_id, text),
        )
        return found[0] if found else None

    def save(self, record: PhraseRecord) -> PhraseRecord:
        """Upsert a local write; always Dirty, stamped after any previous version."""
        with self._transaction("save") as conn:
            row = conn.execute(
                "SELECT updated_at FROM phrases WHERE user_id = ? AND text = ?",
                (record.user_id, record.text),
            ).fetchone()
            previous = int(row["updated_at"]) if row else None
            requested = record.updated_at if record.updated_at > 0 else None
            stamped = replace(
                record,
                updated_at=store_utils.next_stamp(previous, now=requested),
                sync_state=SyncState.DIRTY,
            )
            conn.execute(
                """
                INSERT INTO phrases(user_id, text, frequency, updated_at, sync_state)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id, text) DO UPDATE SET
                    frequency = excluded.frequency,
                    updated_at = excluded.updated_at,
                    sync_state = excluded.sync_state
                """,
                (
                    stamped.user_id,
                    stamped.text,
                    stamped.frequency,
                    stamped.updated_at,
                    stamped.sync_state.value,
                ),
            )
        return stamped

    def apply_merged_batch(self, records: Iterable[PhraseRecord]) -> int:
        rows = [
            (r.user_id, r.text, r.frequency, r.updated_at, SyncState.CLEAN.value) for r in records
        ]
        if not rows:
            return 0
        with self._transaction("apply_merged_batch") as conn:
            conn.executemany(
                """
                INSERT INTO phrases(user_id, text, frequency, updated_at, sync_state)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id, text) DO UPDATE SET
                    frequency = excluded.frequency,
                    updated_at = excluded.updated_at,
                    sync_state = excluded.sync_state
                WHERE excluded.updated_at > phrases.updated_at
                """,
                rows,
            )
        return len(rows)

    def mark_synced(self, records: Sequence[PhraseRecord]) -> int:
        """Clean the given records unless they were rewritten after being read."""
        if not records:
            return 0
        changed = 0
        with self._transaction("mark_synced") as conn:
            for record in records:
                cur = conn.execute(
                    """
                    UPDATE phrases
                    SET sync_state = ?
                    WHERE user_id = ? AND text = ? AND updated_at = ?
                    """,
                    (SyncState.CLEAN.value, record.user_id, record.text, record.updated_at),
                )
                changed += cur.rowcount
        return changed

    def clear(self, user_id: str) -> int:
        with self._transaction("clear") as conn:
            cur = conn.execute("DELETE FROM phrases WHERE user_id = ?", (user_id,))
        return cur.rowcount

    def counts(self, user_id: str) -> dict[str, int]:
        with self._guard("counts") as conn:
            rows = conn.execute(
                """
                SELECT sync_state, COUNT(*) AS n
                FROM phrases
                WHERE user_id = ?
                GROUP BY sync_state
                """,
                (user_id,),
            ).fetchall()
        by_state = {str(row["sync_state"]): int(row["n"]) for row in rows}
        dirty = by_state.get(SyncState.DIRTY.value, 0)
        clean = by_state.get(SyncState.CLEAN.value, 0)
        return {"total": sum(by_state.values()), "dirty": dirty, "clean": clean}

    def record_sync_attempt(
        self,
        user_id: str,
        *,
        mode: str,
        ok: bool,
        started_at: str,
        pushed: int = 0,
        pulled: int = 0,
        applied: int = 0,
        error: str | None = None,
    ) -> None:
        with self._transaction("record_sync_attempt") as conn:
            conn.execute(
                """
                INSERT INTO sync_attempts(
                    user_id,
                    mode,
                    ok,
                    pushed,
                    pulled,
                    applied,
                    error,
                    started_at,
                    finished_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    mode,
                    1 if ok else 0,
                    pushed,
                    pulled,
                    applied,
                    error,
                    started_at,
                    store_utils.now_iso(),
                ),
            )

    def recent_sync_attempts(self, *, user_id: str | None = None, limit: int = 10) -> list[SyncAttempt]:
        query = """
            SELECT user_id, mode, ok, pushed, pulled, applied, error, started_at, finished_at
            FROM sync_attempts
        """
        params: list[Any] = []
        if user_id:
            query += " WHERE user_id = ?"
            params.append(user_id)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        with self._guard("recent_sync_attempts") as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            SyncAttempt(
                user_id=str(row["user_id"]),
                mode=str(row["mode"]),
                ok=bool(row["ok"]),
                pushed=int(row["pushed"] or 0),
                pulled=int(row["pulled"] or 0),
                applied=int(row["applied"] or 0),
                error=row["error"],
                started_at=str(row["started_at"]),
                finished_at=str(row["finished_at"]),
            )
            for row in rows
        ]
