"""In-memory working copy of the record document with debounced persistence.

Reads and writes go to `document`, which is always current for local callers.
`save()` snapshots it and schedules one delayed flush; bursts of saves inside
the debounce window collapse into a single remote write. Only one write is
ever in flight: a flush requested while another runs makes the running flush
loop once more with the newest snapshot.
"""

import asyncio
import time

from pydantic import ValidationError

from passdrop.common.logging import logger
from passdrop.common.metrics import retries_total, store_flush_total
from passdrop.store.document import LedgerDocument
from passdrop.store.remote import RecordStoreError


class RecordCache:
    """Owns the local mirror of the record store document."""

    def __init__(
        self,
        store,
        service_name: str = "passdrop",
        debounce_seconds: float = 1.0,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 1.0,
        ttl_seconds: float = 300.0,
    ) -> None:
        self.store = store
        self.service_name = service_name
        self.debounce_seconds = debounce_seconds
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds
        self.ttl_seconds = ttl_seconds
        self.document = LedgerDocument()
        self.snapshot: LedgerDocument | None = None
        self.fetched_at: float | None = None
        self.dirty = False
        self._flush_handle: asyncio.TimerHandle | None = None
        self._flushing = False
        self._flush_again = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending_flush(self) -> bool:
        return self._flush_handle is not None or self._flushing

    @property
    def is_stale(self) -> bool:
        if self.fetched_at is None:
            return True
        return time.monotonic() - self.fetched_at > self.ttl_seconds

    async def load(self) -> LedgerDocument:
        """Fetch the document; degrade to an empty one when the store is unusable."""

        try:
            raw = await self.store.get()
            document = LedgerDocument.model_validate(raw)
        except (RecordStoreError, ValidationError) as exc:
            logger.warning("record load failed, continuing with empty document: %s", exc)
            document = LedgerDocument()
        self.document = document
        self.snapshot = document.model_copy(deep=True)
        self.fetched_at = time.monotonic()
        self.dirty = False
        logger.info(
            "record loaded mappings=%s receipts=%s claims=%s",
            len(document.mappings),
            len(document.delivered_receipts),
            len(document.delivered_passes),
        )
        return self.document

    def _take_snapshot(self) -> None:
        self.snapshot = self.document.model_copy(deep=True)
        self.dirty = True

    def _cancel_timer(self) -> None:
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None

    def save(self) -> None:
        """Snapshot the working document and (re)arm the debounced flush."""

        self._take_snapshot()
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._flush_handle = loop.call_later(self.debounce_seconds, self._start_flush)

    def _start_flush(self) -> None:
        self._flush_handle = None
        task = asyncio.ensure_future(self.flush())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def flush(self) -> bool:
        """Write the newest snapshot; returns True when it is durably stored."""

        if self._flushing:
            self._flush_again = True
            return False
        self._flushing = True
        self._idle.clear()
        try:
            while True:
                self._flush_again = False
                ok = await self._write_with_retries()
                if not self._flush_again:
                    return ok
        finally:
            self._flushing = False
            self._idle.set()

    async def _write_with_retries(self) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            snapshot = self.snapshot
            if snapshot is None:
                return True
            try:
                await self.store.put(snapshot.to_wire())
            except RecordStoreError as exc:
                logger.warning("record flush failed attempt=%s/%s error=%s", attempt, self.max_attempts, exc)
                if attempt == self.max_attempts:
                    break
                retries_total.labels(service=self.service_name, dependency="record_store").inc()
                await asyncio.sleep(self.retry_backoff_seconds * attempt)
                continue
            if snapshot is self.snapshot:
                self.dirty = False
            store_flush_total.labels(service=self.service_name, result="ok").inc()
            return True
        # Abandoned until the next save() re-arms the timer.
        logger.error("record flush abandoned after %s attempts", self.max_attempts)
        store_flush_total.labels(service=self.service_name, result="abandoned").inc()
        return False

    async def force_save(self) -> bool:
        """Bypass the debounce window and wait for the write, e.g. on shutdown."""

        self._cancel_timer()
        if not self.dirty and not self._flushing:
            # Nothing changed since load: never overwrite the store with a
            # document that may be the empty degraded-mode fallback.
            return True
        if self._flushing:
            self._flush_again = True
            await self._idle.wait()
            return not self.dirty
        return await self.flush()
