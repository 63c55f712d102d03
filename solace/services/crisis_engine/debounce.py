"""Debounce gate - collapses bursts of edits into one scan per entry.

Each entry has at most one pending timer. A newer revision moves the
deadline forward; when the timer wakes before the deadline it simply
re-arms for the remainder, so the timer is never cancelled mid-burst.

Scans already in flight are left to finish. Their results may be stale,
which the state machine handles by revision ordering.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Set

from solace.shared.models import JournalRevision

logger = logging.getLogger(__name__)

ScanCallback = Callable[[JournalRevision], Awaitable[None]]


@dataclass
class _PendingScan:
    revision: JournalRevision
    deadline: float
    handle: asyncio.TimerHandle


class DebounceGate:
    """Trailing-edge debounce keyed by entry id.

    Guarantees exactly one scan for the last revision of each burst; the
    trailing timer fires even if no further edits arrive.
    """

    def __init__(self, on_fire: ScanCallback, window_seconds: float = 0.3):
        """Initialize gate.

        Args:
            on_fire: Coroutine function run with the revision to scan
            window_seconds: Quiet period after the last submit
        """
        self._on_fire = on_fire
        self.window_seconds = window_seconds
        self._pending: Dict[str, _PendingScan] = {}
        self._in_flight: Set[asyncio.Task] = set()
        self.scans_started = 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def is_pending(self, entry_id: str) -> bool:
        return entry_id in self._pending

    def submit(self, revision: JournalRevision) -> None:
        """Schedule a scan of revision, superseding any pending one.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.window_seconds
        pending = self._pending.get(revision.entry_id)

        if pending is None:
            handle = loop.call_later(self.window_seconds, self._wake, revision.entry_id)
            self._pending[revision.entry_id] = _PendingScan(revision, deadline, handle)
            return

        # Out-of-order submits never replace a newer revision
        if revision.revision_seq >= pending.revision.revision_seq:
            pending.revision = revision
        pending.deadline = deadline
        logger.debug(
            "DEBOUNCE_SUPERSEDED",
            extra={
                "entry_id": revision.entry_id,
                "revision_seq": pending.revision.revision_seq,
            }
        )

    def _wake(self, entry_id: str) -> None:
        pending = self._pending.get(entry_id)
        if pending is None:
            return
        loop = asyncio.get_running_loop()
        remaining = pending.deadline - loop.time()
        if remaining > 0:
            pending.handle = loop.call_later(remaining, self._wake, entry_id)
            return
        del self._pending[entry_id]
        self._dispatch(pending.revision)

    def _dispatch(self, revision: JournalRevision) -> None:
        task = asyncio.ensure_future(self._run(revision))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _run(self, revision: JournalRevision) -> None:
        self.scans_started += 1
        try:
            await self._on_fire(revision)
        except Exception as e:
            logger.error(
                "DEBOUNCE_SCAN_FAILED",
                extra={
                    "entry_id": revision.entry_id,
                    "revision_seq": revision.revision_seq,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )

    def flush(self, entry_id: Optional[str] = None) -> int:
        """Fire pending scans now instead of waiting for their deadline.

        Args:
            entry_id: Only flush this entry; all entries when None

        Returns:
            Number of scans dispatched
        """
        entry_ids = [entry_id] if entry_id is not None else list(self._pending)
        flushed = 0
        for key in entry_ids:
            pending = self._pending.pop(key, None)
            if pending is None:
                continue
            pending.handle.cancel()
            self._dispatch(pending.revision)
            flushed += 1
        return flushed

    def discard(self, entry_id: str) -> bool:
        """Drop an entry's pending scan without running it."""
        pending = self._pending.pop(entry_id, None)
        if pending is None:
            return False
        pending.handle.cancel()
        logger.info(
            "DEBOUNCE_DISCARDED",
            extra={"entry_id": entry_id, "revision_seq": pending.revision.revision_seq}
        )
        return True

    async def drain(self) -> None:
        """Wait until no scan is pending or in flight."""
        loop = asyncio.get_running_loop()
        while self._pending or self._in_flight:
            if self._in_flight:
                await asyncio.gather(*list(self._in_flight), return_exceptions=True)
                continue
            soonest = min(p.deadline for p in self._pending.values())
            await asyncio.sleep(max(0.0, soonest - loop.time()))
