from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from ..backup import dump_snapshot
from ..errors import MalformedDataError, StoreError, TransportError
from ..index import RankedPrefixIndex, Suggestion
from ..store.types import PhraseRecord, ReplicaStore, SyncState
from ..store.utils import now_iso, now_ms
from .daemon import PeriodicSync
from .payloads import ServerItem
from .transport import SyncTransport

logger = logging.getLogger(__name__)

MODE_COLD = "cold"
MODE_WARM = "warm"


@dataclass
class SyncResult:
    """Outcome of one ``initialize()`` round."""

    mode: str
    ok: bool = True
    skipped: bool = False
    pushed: int = 0
    pulled: int = 0
    applied: int = 0
    error: str | None = None
    merged: list[PhraseRecord] = field(default_factory=list)


class SyncEngine:
    """
    Per-user autocomplete session: ranked prefix index in front of a local
    replica that reconciles with a remote authority.

    Reads are served from the in-memory index. Writes land in the index
    first and are persisted as Dirty records; ``initialize()`` drains them
    to the remote and merges the remote's counter-delta back in with a
    last-write-wins rule that favours the local value on timestamp ties.
    """

    def __init__(
        self,
        user_id: str,
        store: ReplicaStore,
        transport: SyncTransport,
        *,
        index: RankedPrefixIndex | None = None,
    ) -> None:
        if not user_id or not str(user_id).strip():
            raise ValueError("user_id is required")
        self.user_id = str(user_id)
        self.store = store
        self.transport = transport
        self.index = index or RankedPrefixIndex()
        self.is_clean_slate = False
        self._loaded = False
        self._sync_lock = threading.Lock()
        # Serialises index mutation against rebuilds from the replica.
        self._index_lock = threading.RLock()
        self._writes = 0
        self._periodic: PeriodicSync | None = None

    @property
    def is_syncing(self) -> bool:
        return self._sync_lock.locked()

    # ---- sync rounds ----

    def initialize(self) -> SyncResult:
        """Run one sync round; a call made while another round is running is a no-op."""
        if not self._sync_lock.acquire(blocking=False):
            logger.debug("sync already running for %s; skipping", self.user_id)
            return SyncResult(mode="", skipped=True)
        try:
            return self._run_round()
        finally:
            self._sync_lock.release()

    def _run_round(self) -> SyncResult:
        started_at = now_iso()
        local = self._read_local()

        if not local:
            result = SyncResult(mode=MODE_COLD)
            try:
                self._cold_start(result)
            except Exception as exc:
                self._record(result, started_at, ok=False, error=_describe(exc))
                raise
            self._record(result, started_at, ok=True)
            return result

        result = SyncResult(mode=MODE_WARM)
        self._warm_start(local, result)
        self._record(result, started_at, ok=result.ok, error=result.error)
        return result

    def _read_local(self) -> list[PhraseRecord]:
        try:
            return self.store.find_all(self.user_id)
        except MalformedDataError as exc:
            logger.warning(
                "discarding malformed local cache for %s", self.user_id, exc_info=exc
            )
            self.store.clear(self.user_id)
            return []

    def _cold_start(self, result: SyncResult) -> None:
        self.is_clean_slate = True
        logger.info("local replica empty for %s; requesting full download", self.user_id)
        items = self.transport.full_download(self.user_id)
        result.pulled = len(items)
        records = _latest_by_text(self.user_id, items)
        result.applied = self.store.apply_merged_batch(records)
        result.merged = records
        persisted = self._rebuild_index()
        self.is_clean_slate = not persisted
        logger.info("full download for %s loaded %d phrases", self.user_id, len(persisted))

    def _warm_start(self, local: Sequence[PhraseRecord], result: SyncResult) -> None:
        self.is_clean_slate = False
        last_synced_at = max(record.updated_at for record in local)
        dirty = [record for record in local if record.sync_state is SyncState.DIRTY]
        try:
            server_items = self.transport.push_pull(self.user_id, dirty, last_synced_at)
        except (TransportError, MalformedDataError) as exc:
            result.ok = False
            result.error = _describe(exc)
            logger.warning(
                "delta sync failed for %s; serving local data", self.user_id, exc_info=exc
            )
        else:
            result.pushed = len(dirty)
            result.pulled = len(server_items)
            result.merged = self.smart_merge(server_items)
            result.applied = len(result.merged)
            # Records that beat or tied a server item stay Dirty for the next push.
            contested = {item.text for item in server_items}
            taken = {record.text for record in result.merged}
            self.store.mark_synced(
                [r for r in dirty if r.text not in contested or r.text in taken]
            )
            logger.info(
                "delta sync for %s: pushed=%d pulled=%d applied=%d",
                self.user_id,
                result.pushed,
                result.pulled,
                result.applied,
            )
        self._rebuild_index()

    def _rebuild_index(self) -> list[PhraseRecord]:
        # A use counted while the rows were being read makes them stale; read again.
        with self._index_lock:
            while True:
                seen = self._writes
                records = self.store.find_all(self.user_id)
                if seen == self._writes:
                    break
            self.index.rebuild_from(records)
            self._loaded = True
        return records

    def smart_merge(self, server_items: Iterable[ServerItem]) -> list[PhraseRecord]:
        """Apply server items that are strictly newer than the local copy.

        Winners are restored into the index (overwrite, not increment) and
        upserted into the replica as Clean in a single batch. Returns the
        records that won.
        """
        winners: dict[str, PhraseRecord] = {}
        for item in server_items:
            current = winners.get(item.text) or self.store.find_by_text(self.user_id, item.text)
            if current is not None and item.updated_at <= current.updated_at:
                logger.debug(
                    "merge keep local %r: local=%d server=%d",
                    item.text,
                    current.updated_at,
                    item.updated_at,
                )
                continue
            logger.debug("merge take server %r at %d", item.text, item.updated_at)
            winners[item.text] = PhraseRecord(
                user_id=self.user_id,
                text=item.text,
                frequency=item.frequency,
                updated_at=item.updated_at,
                sync_state=SyncState.CLEAN,
            )
        merged = list(winners.values())
        if not merged:
            return []
        with self._index_lock:
            self.store.apply_merged_batch(merged)
            for record in merged:
                self.index.restore(record.text, record.frequency)
        return merged

    def _record(
        self, result: SyncResult, started_at: str, *, ok: bool, error: str | None = None
    ) -> None:
        recorder = getattr(self.store, "record_sync_attempt", None)
        if recorder is None:
            return
        try:
            recorder(
                self.user_id,
                mode=result.mode,
                ok=ok,
                started_at=started_at,
                pushed=result.pushed,
                pulled=result.pulled,
                applied=result.applied,
                error=error,
            )
        except StoreError as exc:
            logger.warning("failed to record sync attempt", exc_info=exc)

    # ---- read/write path ----

    def load_local(self) -> int:
        """Rebuild the index from the replica alone, without contacting the remote."""
        with self._index_lock:
            records = self._read_local()
            self.index.rebuild_from(records)
            self.is_clean_slate = not records
            self._loaded = True
        return len(records)

    def record_use(self, phrase: str) -> int:
        """Count one confirmed use of ``phrase``; returns its new frequency."""
        if not phrase:
            return 0
        with self._index_lock:
            try:
                records = self.store.find_all(self.user_id)
            except MalformedDataError:
                records = []
            if not records:
                self.initialize()
            elif not self._loaded:
                self.index.rebuild_from(records)
                self._loaded = True
            frequency = self.index.insert_or_increment(phrase)
            self._writes += 1
            try:
                self.store.save(
                    PhraseRecord(
                        user_id=self.user_id,
                        text=phrase,
                        frequency=frequency,
                        updated_at=now_ms(),
                    )
                )
            except StoreError as exc:
                logger.warning("failed to persist use of %r", phrase, exc_info=exc)
        return frequency

    def suggest(self, prefix: str, *, limit: int | None = None) -> list[Suggestion]:
        return self.index.suggest(prefix, limit=limit)

    def best_match(self, prefix: str) -> Suggestion | None:
        return self.index.best_match(prefix)

    def clear_user_data(self) -> int:
        """Delete every local record for the user and start over with an empty index."""
        with self._index_lock:
            removed = self.store.clear(self.user_id)
            self.index.reset()
        self.is_clean_slate = True
        logger.info("cleared %d phrases for %s", removed, self.user_id)
        return removed

    # ---- backup ----

    def export_snapshot(self, *, pretty: bool = False) -> str:
        if not self._loaded:
            self.load_local()
        return dump_snapshot(self.index.export_flat(), pretty=pretty)

    def import_snapshot(self, entries: Iterable[Suggestion]) -> int:
        """Merge backup entries in as local writes, keeping the higher frequency."""
        if not self._loaded:
            self.load_local()
        changed = 0
        with self._index_lock:
            for entry in entries:
                if not entry.text:
                    continue
                current = self.index.frequency_of(entry.text)
                if entry.frequency <= current:
                    continue
                self.index.restore(entry.text, entry.frequency)
                self.store.save(
                    PhraseRecord(
                        user_id=self.user_id,
                        text=entry.text,
                        frequency=entry.frequency,
                        updated_at=now_ms(),
                    )
                )
                changed += 1
        if changed:
            self.is_clean_slate = False
        return changed

    # ---- background sync ----

    def start_periodic_sync(self, interval_s: float = 30.0) -> bool:
        if self._periodic is not None and self._periodic.running:
            logger.warning("periodic sync already running for %s", self.user_id)
            return False
        self._periodic = PeriodicSync(self, interval_s)
        self._periodic.start()
        logger.info("periodic sync started every %ss", interval_s)
        return True

    def stop_periodic_sync(self, *, timeout_s: float | None = None) -> None:
        if self._periodic is None:
            return
        self._periodic.stop(timeout_s=timeout_s)
        self._periodic = None
        logger.info("periodic sync stopped")


def _latest_by_text(user_id: str, items: Iterable[ServerItem]) -> list[PhraseRecord]:
    latest: dict[str, ServerItem] = {}
    for item in items:
        seen = latest.get(item.text)
        if seen is None or item.updated_at > seen.updated_at:
            latest[item.text] = item
    return [
        PhraseRecord(
            user_id=user_id,
            text=item.text,
            frequency=item.frequency,
            updated_at=item.updated_at,
            sync_state=SyncState.CLEAN,
        )
        for item in latest.values()
    ]


def _describe(exc: BaseException) -> str:
    return str(exc).strip() or exc.__class__.__name__

