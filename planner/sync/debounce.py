"""
Debounce Coalescer.

Collapses rapid edits to the same field into one remote write. Each key owns
one entry in an explicit pending-write table; every ``schedule`` call replaces
the value and restarts the key's timer. When a timer expires the latest value
is flushed exactly once. Intermediate values are dropped.

Keys are tuples such as ``("notes", "2026-W03")`` or
``("weeklySummary.reflection", "2026-W03")``, so different fields never
coalesce with or block each other. Writes for one key are serialized, so at
most one flush per key is in flight at a time.
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Set

from ..utils.logging import get_sync_logger

logger = get_sync_logger(__name__)

FlushCallback = Callable[[Any], Awaitable[Any]]


@dataclass
class PendingWrite:
    """Latest unsent value for one key."""

    value: Any
    flush: FlushCallback
    delay: float
    timer_task: Optional[asyncio.Task] = None
    updates: int = 1


class DebounceCoalescer:
    def __init__(self, default_delay: float = 0.5) -> None:
        self.default_delay = default_delay
        self._pending: Dict[Hashable, PendingWrite] = {}
        self._write_locks: Dict[Hashable, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._tasks: Set[asyncio.Task] = set()

    def schedule(
        self,
        key: Hashable,
        value: Any,
        delay: Optional[float] = None,
        flush: Optional[FlushCallback] = None,
    ) -> None:
        """Record *value* for *key* and restart its timer."""
        entry = self._pending.get(key)
        if entry is None:
            if flush is None:
                raise ValueError(f"No flush callback for new debounce key {key!r}")
            entry = PendingWrite(
                value=value,
                flush=flush,
                delay=self.default_delay if delay is None else delay,
            )
            self._pending[key] = entry
        else:
            entry.value = value
            entry.updates += 1
            if flush is not None:
                entry.flush = flush
            if delay is not None:
                entry.delay = delay

        self._reset_timer(key)

    def _reset_timer(self, key: Hashable) -> None:
        """Reset the flush timer for a key."""
        entry = self._pending.get(key)
        if not entry:
            return

        if entry.timer_task and not entry.timer_task.done():
            entry.timer_task.cancel()

        entry.timer_task = self._track(asyncio.create_task(self._timer_callback(key, entry.delay)))

    async def _timer_callback(self, key: Hashable, delay: float) -> None:
        """Timer callback - flush the key after the quiet period."""
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            # Timer was cancelled (newer value arrived)
            return
        await self._flush_key(key)

    async def _flush_key(self, key: Hashable) -> None:
        entry = self._pending.pop(key, None)
        if entry is None:
            return

        async with self._write_locks[key]:
            logger.debug(
                "debounce_flush", key=str(key), coalesced_updates=entry.updates
            )
            try:
                await entry.flush(entry.value)
            except Exception as e:
                logger.error(
                    "debounce_flush_failed",
                    key=str(key),
                    error_type=type(e).__name__,
                    error=str(e),
                    exc_info=True,
                )

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # --- Explicit control ---

    async def flush(self, key: Hashable) -> bool:
        """Write the pending value for *key* now instead of waiting."""
        entry = self._pending.get(key)
        if entry is None:
            return False
        if entry.timer_task and not entry.timer_task.done():
            entry.timer_task.cancel()
        await self._flush_key(key)
        return True

    async def flush_all(self) -> int:
        keys = list(self._pending)
        await asyncio.gather(*(self.flush(key) for key in keys))
        return len(keys)

    def cancel(self, key: Hashable) -> bool:
        """Drop the pending value for *key* without writing it."""
        entry = self._pending.pop(key, None)
        if entry is None:
            return False
        if entry.timer_task and not entry.timer_task.done():
            entry.timer_task.cancel()
        logger.debug("debounce_cancelled", key=str(key))
        return True

    def pending_keys(self) -> List[Hashable]:
        return list(self._pending)

    def has_pending(self, key: Hashable) -> bool:
        return key in self._pending

    def pending_value(self, key: Hashable, default: Any = None) -> Any:
        entry = self._pending.get(key)
        return entry.value if entry is not None else default

    async def wait_idle(self) -> None:
        """Wait for all timers to expire and their writes to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
