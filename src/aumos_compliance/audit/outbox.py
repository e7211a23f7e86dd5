# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
Asynchronous persistence outbox for audit entries.

``submit`` puts an entry on a bounded in-process queue and returns at once;
a single worker task drains the queue into the storage backend. Every
``append`` runs under a timeout and is retried with exponential backoff. A
write that times out is not abandoned: later attempts keep waiting on it
rather than issuing a second write, and a write that lands after its entry
was reported lost is counted as persisted after all.
Entries that are dropped (queue full) or that exhaust their retries become
:class:`PersistenceFailure` reports, which are counted, kept in a bounded
history, logged at ERROR and handed to an optional error handler. Nothing
here ever raises into the caller of ``submit``.
"""
from __future__ import annotations

import asyncio
import collections
import contextlib
import functools
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from aumos_compliance.audit.record import AuditTrailEntry
from aumos_compliance.config import OutboxConfig

if TYPE_CHECKING:
    from aumos_compliance.storage.interface import ComplianceStorage

logger = logging.getLogger("aumos.compliance.outbox")

_WIRE_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class PersistenceFailure(BaseModel):
    """
    Report for an entry that could not be persisted.

    Attributes:
        entry_id: Id of the lost entry.
        error: Description of the last error seen.
        attempts: Number of append attempts made; 0 when the entry was dropped.
        dropped: True if the entry never reached the queue.
        occurred_at: When the failure was declared.
    """

    model_config = _WIRE_CONFIG

    entry_id: str
    error: str
    attempts: int
    dropped: bool = False
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))


class OutboxStats(BaseModel):
    """Point-in-time counters of an :class:`AuditOutbox`."""

    model_config = _WIRE_CONFIG

    queue_depth: int
    enqueued: int
    persisted: int
    failed: int
    dropped: int
    running: bool


ErrorHandler = Callable[[PersistenceFailure], None]
SettledCallback = Callable[[AuditTrailEntry], None]


class AuditOutbox:
    """
    Bounded queue plus one worker task between the logger and storage.

    The worker is started lazily by the first :meth:`submit` made from a
    running event loop, or explicitly by :meth:`start`. If the outbox is
    later used from a different event loop, queued entries are carried over
    to a fresh queue and a new worker.

    Example::

        outbox = AuditOutbox(MemoryStorage())
        outbox.submit(entry)
        await outbox.drain()
    """

    def __init__(
        self,
        storage: ComplianceStorage,
        config: OutboxConfig | None = None,
        error_handler: ErrorHandler | None = None,
        on_settled: SettledCallback | None = None,
    ) -> None:
        self._storage = storage
        self._config = config or OutboxConfig()
        self._error_handler = error_handler
        self._on_settled = on_settled

        self._queue: asyncio.Queue[AuditTrailEntry] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._worker: asyncio.Task[None] | None = None

        self._enqueued = 0
        self._persisted = 0
        self._failed = 0
        self._dropped = 0
        self._failures: collections.deque[PersistenceFailure] = collections.deque(
            maxlen=self._config.failure_history
        )
        self._stragglers: set[asyncio.Future[None]] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit(self, entry: AuditTrailEntry) -> bool:
        """
        Queue ``entry`` for persistence.

        Must be called from a running event loop.

        Returns:
            True if the entry was queued, False if it was dropped.
        """
        queue = self._ensure_worker()
        try:
            queue.put_nowait(entry)
        except asyncio.QueueFull:
            self._dropped += 1
            self._report(
                entry,
                PersistenceFailure(
                    entry_id=entry.id,
                    error=f"outbox queue is full ({self._config.max_queue_size} entries)",
                    attempts=0,
                    dropped=True,
                ),
            )
            return False
        self._enqueued += 1
        return True

    async def start(self) -> None:
        """Start the worker task on the running event loop."""
        self._ensure_worker()

    async def drain(self) -> None:
        """Wait until every queued entry has been persisted or reported."""
        if self._queue is None:
            return
        self._ensure_worker()
        await self._queue.join()

    async def shutdown(self) -> None:
        """Drain the queue, give timed-out writes one last window, then stop the worker."""
        await self.drain()
        stragglers = {
            write for write in self._stragglers if write.get_loop() is asyncio.get_running_loop()
        }
        self._stragglers.clear()
        if stragglers:
            _, still_running = await asyncio.wait(
                stragglers, timeout=self._config.storage_timeout_seconds
            )
            for write in still_running:
                write.cancel()
        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker

    def stats(self) -> OutboxStats:
        """Return the current counters."""
        return OutboxStats(
            queue_depth=self._queue.qsize() if self._queue is not None else 0,
            enqueued=self._enqueued,
            persisted=self._persisted,
            failed=self._failed,
            dropped=self._dropped,
            running=self._worker is not None and not self._worker.done(),
        )

    def failures(self) -> list[PersistenceFailure]:
        """Return the most recent failure reports, oldest first."""
        return list(self._failures)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _ensure_worker(self) -> asyncio.Queue[AuditTrailEntry]:
        loop = asyncio.get_running_loop()
        if self._queue is None or self._loop is not loop:
            carried: list[AuditTrailEntry] = []
            while self._queue is not None and not self._queue.empty():
                carried.append(self._queue.get_nowait())
            self._queue = asyncio.Queue(maxsize=self._config.max_queue_size)
            for entry in carried:
                self._queue.put_nowait(entry)
            self._loop = loop
            self._worker = None

        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._run(self._queue), name="aumos-audit-outbox")
        return self._queue

    async def _run(self, queue: asyncio.Queue[AuditTrailEntry]) -> None:
        while True:
            entry = await queue.get()
            try:
                await self._persist(entry)
            finally:
                queue.task_done()

    async def _persist(self, entry: AuditTrailEntry) -> None:
        delay = self._config.backoff_initial_seconds
        timeout = self._config.storage_timeout_seconds
        last_error = ""
        write: asyncio.Future[None] | None = None

        for attempt in range(1, self._config.max_attempts + 1):
            if write is None:
                write = asyncio.ensure_future(self._storage.append(entry))
            done, _ = await asyncio.wait({write}, timeout=timeout)

            if write in done:
                error = _write_error(write)
                if error is None:
                    self._persisted += 1
                    self._settle(entry)
                    return
                last_error = error
                write = None
            else:
                # Still in flight; the next attempt waits on the same write.
                last_error = f"TimeoutError: append did not finish within {timeout}s"

            logger.warning(
                "audit_append_failed",
                extra={"entry_id": entry.id, "attempt": attempt, "error": last_error},
            )
            if attempt < self._config.max_attempts:
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._config.backoff_max_seconds)

        self._failed += 1
        self._report(
            entry,
            PersistenceFailure(
                entry_id=entry.id,
                error=last_error,
                attempts=self._config.max_attempts,
            ),
        )
        if write is not None:
            self._stragglers.add(write)
            write.add_done_callback(functools.partial(self._landed_late, entry))

    def _landed_late(self, entry: AuditTrailEntry, write: asyncio.Future[None]) -> None:
        self._stragglers.discard(write)
        if _write_error(write) is not None:
            return
        self._persisted += 1
        self._failed -= 1
        self._failures = collections.deque(
            (failure for failure in self._failures if failure.entry_id != entry.id),
            maxlen=self._config.failure_history,
        )
        logger.warning("audit_entry_persisted_late", extra={"entry_id": entry.id})

    def _report(self, entry: AuditTrailEntry, failure: PersistenceFailure) -> None:
        self._failures.append(failure)
        logger.error(
            "audit_entry_lost",
            extra={
                "entry_id": failure.entry_id,
                "error": failure.error,
                "attempts": failure.attempts,
                "dropped": failure.dropped,
            },
        )
        self._settle(entry)
        if self._error_handler is not None:
            try:
                self._error_handler(failure)
            except Exception:  # noqa: BLE001
                logger.exception("audit_error_handler_failed", extra={"entry_id": failure.entry_id})

    def _settle(self, entry: AuditTrailEntry) -> None:
        if self._on_settled is not None:
            self._on_settled(entry)


def _write_error(write: asyncio.Future[None]) -> str | None:
    if write.cancelled():
        return "CancelledError"
    exc = write.exception()
    if exc is None:
        return None
    return f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
