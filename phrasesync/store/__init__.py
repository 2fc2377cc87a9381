from __future__ import annotations

from ._store import PhraseStore
from .authority import AuthorityStore
from .types import PhraseRecord, ReplicaStore, SyncAttempt, SyncState

__all__ = [
    "AuthorityStore",
    "PhraseRecord",
    "PhraseStore",
    "ReplicaStore",
    "SyncAttempt",
    "SyncState",
]
