"""In-memory cache of recently dispatched outbound messages.

Answers "was this exact text already sent to this chat within the last N
seconds?". Records are appended once per confirmed send and removed only by a
periodic background sweep once they reach the retention horizon.

Query windows and the retention horizon are independent: a window longer than
the horizon only sees records the sweep has not removed yet.
"""

import asyncio
import contextlib
import logging
import threading
import time

from app.logging_config import preview
from app.models import DispatchRecord

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_SECONDS = 5 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 60


class DedupCache:
    """Time-windowed duplicate detector for outbound messages.

    All storage access goes through one lock, so the cache is safe to use from
    the event loop and from worker threads at the same time. The lock is never
    held across an await.
    """

    def __init__(
        self,
        retention_seconds: int = DEFAULT_RETENTION_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        """Initialize an empty cache with a stopped sweep.

        Args:
            retention_seconds: Age at which the sweep removes a record
            sweep_interval_seconds: Delay between two sweep passes
        """
        self.retention_seconds = retention_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        # chat_id -> records in insertion order
        self._records: dict[str, list[DispatchRecord]] = {}
        self._count = 0
        self._lock = threading.Lock()
        self._sweep_task: asyncio.Task | None = None
        self._stopped = False

    def record(self, entry: DispatchRecord) -> None:
        """Append a confirmed dispatch. Never rejects, never deduplicates."""
        with self._lock:
            self._records.setdefault(entry.conversation_id, []).append(entry)
            self._count += 1
            size = self._count
        logger.debug(
            "Added to cache (msgId %s): %r. Total entries: %d",
            entry.dispatch_id,
            preview(entry.text),
            size,
        )

    def record_dispatch(
        self,
        conversation_id: str,
        text: str,
        sent_at: int,
        dispatch_id: int | str,
    ) -> DispatchRecord:
        """Build a DispatchRecord from its fields and record it."""
        entry = DispatchRecord(
            conversation_id=conversation_id,
            text=text,
            sent_at=sent_at,
            dispatch_id=dispatch_id,
        )
        self.record(entry)
        return entry

    def is_duplicate(self, conversation_id: str, text: str, window_seconds: int) -> bool:
        """Check whether the exact text was sent to the chat within the window.

        The age boundary is inclusive. A non-positive window never matches.

        Args:
            conversation_id: Chat ID, compared exactly
            text: Text in its final sent form, compared exactly
            window_seconds: Maximum age in seconds of a matching record

        Returns:
            True if a matching record is found, False otherwise
        """
        now = int(time.time())
        with self._lock:
            # Snapshot: the scan and its logging run outside the lock.
            candidates = list(self._records.get(conversation_id, ()))
            total = self._count

        logger.debug(
            "Checking duplicates for chat %s, timeframe %ss, message: %r. "
            "Cache size: %d, entries for chat: %d",
            conversation_id,
            window_seconds,
            preview(text),
            total,
            len(candidates),
        )

        if window_seconds <= 0:
            logger.info("Non-positive timeframe %s for chat %s, no duplicate", window_seconds, conversation_id)
            return False

        for entry in candidates:
            if entry.text != text:
                continue
            age = now - entry.sent_at
            if age <= window_seconds:
                logger.info(
                    "Duplicate found in cache: msgId %s (time: %d), text: %r. Current time %d.",
                    entry.dispatch_id,
                    entry.sent_at,
                    preview(entry.text),
                    now,
                )
                return True
            logger.debug(
                "Text match for msgId %s but too old: entry time %d, current time %d, timeframe %ss",
                entry.dispatch_id,
                entry.sent_at,
                now,
                window_seconds,
            )

        logger.info(
            "No duplicate found in cache for message %r in chat %s within timeframe %ss.",
            preview(text),
            conversation_id,
            window_seconds,
        )
        return False

    def size(self) -> int:
        """Number of records not yet swept."""
        with self._lock:
            return self._count

    def sweep(self) -> int:
        """Drop records whose age reached the retention horizon.

        Returns:
            Number of removed records
        """
        now = int(time.time())
        with self._lock:
            initial_size = self._count
            retained: dict[str, list[DispatchRecord]] = {}
            for conversation_id, entries in self._records.items():
                kept = [e for e in entries if now - e.sent_at < self.retention_seconds]
                if kept:
                    retained[conversation_id] = kept
            self._records = retained
            self._count = sum(len(entries) for entries in retained.values())
            size = self._count

        removed = initial_size - size
        if removed > 0:
            logger.info("Cache cleanup: Removed %d old entries. Current size: %d", removed, size)
        elif initial_size > 0:
            logger.debug("Cache cleanup: No entries removed. Current size: %d", size)
        return removed

    @property
    def is_scheduled(self) -> bool:
        """Whether the background sweep is armed."""
        return self._sweep_task is not None and not self._sweep_task.done()

    def start(self) -> None:
        """Arm the periodic sweep on the running event loop.

        Raises:
            RuntimeError: If the sweep was already stopped, or no loop is running
        """
        if self._stopped:
            raise RuntimeError("Cache sweep was stopped and cannot be restarted")
        if self.is_scheduled:
            return

        self._sweep_task = asyncio.get_running_loop().create_task(
            self._sweep_periodically(), name="dedup-cache-sweep"
        )
        logger.info(
            "Cache cleanup job scheduled to run every %s seconds. Max cache age: %ss.",
            self.sweep_interval_seconds,
            self.retention_seconds,
        )

    async def stop(self) -> None:
        """Disarm the sweep and wait for it to finish. Idempotent."""
        self._stopped = True
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Cache cleanup timer cleared.")

    async def _sweep_periodically(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            self.sweep()
