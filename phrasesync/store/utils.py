from __future__ import annotations

import datetime as dt
import sqlite3
import time
from typing import Any

from ..errors import MalformedDataError
from .types import PhraseRecord, SyncState


def now_ms() -> int:
    return int(time.time() * 1000)


def now_iso() -> str:
    return dt.datetime.now(dt.UTC).isoformat()


def next_stamp(previous: int | None, *, now: int | None = None) -> int:
    current = now_ms() if now is None else now
    if previous is None:
        return current
    return max(current, previous + 1)


def coerce_frequency(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedDataError(f"frequency must be an integer, got {value!r}")
    if value < 0:
        raise MalformedDataError(f"frequency must be >= 0, got {value}")
    return value


def coerce_timestamp(value: Any) -> int:
    # JSON clients may send millis as floats (e.g. 1.7e12)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedDataError(f"updatedAt must be epoch millis, got {value!r}")
    if value < 0:
        raise MalformedDataError(f"updatedAt must be >= 0, got {value}")
    return value


def coerce_text(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise MalformedDataError(f"phrase text must be a non-empty string, got {value!r}")
    return value


def record_from_row(row: sqlite3.Row) -> PhraseRecord:
    try:
        state = SyncState(row["sync_state"])
    except ValueError as exc:
        raise MalformedDataError(f"unknown sync state {row['sync_state']!r}") from exc
    return PhraseRecord(
        user_id=str(row["user_id"]),
        text=coerce_text(row["text"]),
        frequency=coerce_frequency(row["frequency"]),
        updated_at=coerce_timestamp(row["updated_at"]),
        sync_state=state,
    )
