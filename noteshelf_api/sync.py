from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable
from typing import Any, Optional

from .domain.exceptions import SyncFailure
from .gateway import SnapshotGateway

logger = logging.getLogger("noteshelf.sync")


class SyncState(str, enum.Enum):
    IDLE = "idle"
    SENDING = "sending"
    FAILED = "failed"


class SyncCoordinator:
    """
    Serializes full-snapshot saves: each enqueued save waits for the previous
    one to finish (successfully or not) before it is issued, so at most one
    request is in flight and writes land in mutation order.

    The store write runs in a worker thread that cannot be interrupted, so a
    cancelled save still finishes its write, and the next save waits for it.

    Failures are not retried and never touch local state; only the first one
    of a session is reported.
    """

    def __init__(
        self,
        gateway: SnapshotGateway,
        *,
        on_failure: Optional[Callable[[SyncFailure], None]] = None,
    ) -> None:
        self.gateway = gateway
        self.on_failure = on_failure
        self.state = SyncState.IDLE
        self.failure_reported = False
        self.last_error: Optional[str] = None
        self.saves = 0
        self.pending = 0
        self._tail: Optional[asyncio.Task] = None
        self._writing: Optional[asyncio.Future] = None

    def enqueue(self, snapshot: dict[str, Any]) -> asyncio.Task:
        previous = self._tail
        self.pending += 1
        task = asyncio.ensure_future(self._run(previous, snapshot))
        self._tail = task
        return task

    async def _run(self, previous: Optional[asyncio.Task], snapshot: dict[str, Any]) -> bool:
        sending = False
        try:
            if previous is not None and not previous.done():
                await asyncio.wait([previous])
            if self._writing is not None and not self._writing.done():
                await asyncio.wait([self._writing])
            self.state = SyncState.SENDING
            sending = True
            writing = asyncio.ensure_future(asyncio.to_thread(self.gateway.save, snapshot))
            self._writing = writing
            try:
                await asyncio.shield(writing)
            except SyncFailure as e:
                self.state = SyncState.FAILED
                self._report(e)
                return False
            except asyncio.CancelledError:
                writing.add_done_callback(self._settle)
                raise
            self._saved(snapshot)
            return True
        finally:
            self.pending -= 1
            if sending:
                self.state = SyncState.IDLE

    def _saved(self, snapshot: dict[str, Any]) -> None:
        self.saves += 1
        self.last_error = None
        logger.debug("snapshot_saved", extra={"notes": len(snapshot.get("notes") or [])})

    def _settle(self, writing: asyncio.Future) -> None:
        # outcome of a write whose save task was cancelled
        if writing.cancelled():
            return
        error = writing.exception()
        if error is None:
            self.saves += 1
            self.last_error = None
        elif isinstance(error, SyncFailure):
            self._report(error)
        else:
            logger.error("sync_write_crashed", exc_info=error)

    def _report(self, error: SyncFailure) -> None:
        self.last_error = str(error)
        if self.failure_reported:
            logger.debug("sync_failed", extra={"error": str(error)})
            return
        self.failure_reported = True
        logger.error("sync_failed", extra={"error": str(error)}, exc_info=error)
        if self.on_failure is not None:
            self.on_failure(error)

    def status(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "pending": self.pending,
            "saves": self.saves,
            "failureReported": self.failure_reported,
            "lastError": self.last_error,
        }

    async def drain(self) -> None:
        if self._tail is not None and not self._tail.done():
            await asyncio.wait([self._tail])
        if self._writing is not None and not self._writing.done():
            await asyncio.wait([self._writing])
