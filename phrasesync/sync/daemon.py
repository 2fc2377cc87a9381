from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .engine import SyncEngine

logger = logging.getLogger(__name__)


def sync_tick(engine: SyncEngine) -> bool:
    """Run one background round; failures are logged so the loop keeps going."""
    try:
        result = engine.initialize()
    except Exception:
        logger.exception("periodic sync failed for %s", engine.user_id)
        return False
    return result.ok


def run_sync_daemon(
    engine: SyncEngine,
    interval_s: float,
    *,
    stop_event: threading.Event | None = None,
    run_immediately: bool = True,
) -> None:
    stop = stop_event or threading.Event()
    if run_immediately:
        sync_tick(engine)
    while not stop.wait(interval_s):
        sync_tick(engine)


class PeriodicSync:
    """Re-invokes ``engine.initialize()`` on a daemon thread every ``interval_s``."""

    def __init__(self, engine: SyncEngine, interval_s: float) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.engine = engine
        self.interval_s = interval_s
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=run_sync_daemon,
            args=(self.engine, self.interval_s),
            kwargs={"stop_event": self._stop},
            name=f"phrasesync-{self.engine.user_id}",
            daemon=True,
        )
        self._thread.start()

    def stop(self, *, timeout_s: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout_s)
        self._thread = None
