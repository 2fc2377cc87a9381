from __future__ import annotations

from .daemon import PeriodicSync, run_sync_daemon
from .engine import SyncEngine, SyncResult
from .payloads import ServerItem
from .transport import HttpSyncTransport, SyncTransport

__all__ = [
    "HttpSyncTransport",
    "PeriodicSync",
    "ServerItem",
    "SyncEngine",
    "SyncResult",
    "SyncTransport",
    "run_sync_daemon",
]
