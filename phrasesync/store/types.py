from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class SyncState(str, Enum):
    DIRTY = "dirty"
    CLEAN = "clean"


@dataclass(frozen=True)
class PhraseRecord:
    user_id: str
    text: str
    frequency: int
    updated_at: int  # epoch millis
    sync_state: SyncState = SyncState.DIRTY

    def as_triple(self) -> list[str | int]:
        return [self.text, self.frequency, self.updated_at]


@dataclass(frozen=True)
class SyncAttempt:
    user_id: str
    mode: str
    ok: bool
    pushed: int
    pulled: int
    applied: int
    error: str | None
    started_at: str
    finished_at: str


class ReplicaStore(Protocol):
    """Durable per-user phrase records consumed by the sync engine."""

    def find_all(self, user_id: str) -> list[PhraseRecord]: ...
    def find_unsynced(self, user_id: str) -> list[PhraseRecord]: ...
    def find_by_text(self, user_id: str, text: str) -> PhraseRecord | None: ...
    def save(self, record: PhraseRecord) -> PhraseRecord: ...
    def apply_merged_batch(self, records: Iterable[PhraseRecord]) -> int: ...
    def mark_synced(self, records: Sequence[PhraseRecord]) -> int: ...
    def clear(self, user_id: str) -> int: ...
    def close(self) -> None: ...
