"""
Entity Store: in-memory cache of query results keyed by query fingerprint.

Every read the planner makes goes through ``fetch`` with a loader. Writes go
through ``set`` / ``update`` / ``remove`` and ``invalidate``. Nothing else
reaches into the cache. Entries go stale after a per-kind window or after an
explicit invalidation, and are then refetched.

A key can be *held* while an optimistic mutation is in progress. Invalidating
a held key only marks it; the refetch starts once the hold is released, so a
stale server response never overwrites a provisional value mid-mutation.
"""

import asyncio
import functools
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..core.config import Settings, get_settings
from ..utils.week import WeekRange, resolve_week

logger = logging.getLogger(__name__)

TASKS = "tasks.getForWeek"
NOTES = "notes.getForWeek"
SUMMARY = "weeklySummary.get"
SETTINGS = "weekSettings.get"

Loader = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class QueryKey:
    """Structured cache key: query kind plus its parameters."""

    kind: str
    params: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def of(cls, kind: str, **params: Any) -> "QueryKey":
        return cls(kind, tuple(sorted(params.items())))

    def param(self, name: str, default: Any = None) -> Any:
        return dict(self.params).get(name, default)

    def __str__(self) -> str:
        args = ", ".join(f"{k}={v}" for k, v in self.params)
        return f"{self.kind}({args})"


def tasks_key(week: WeekRange) -> QueryKey:
    return QueryKey.of(TASKS, start_date=week.start, end_date=week.end)


def tasks_key_for_date(day: str) -> QueryKey:
    return tasks_key(resolve_week(day))


def note_key(week_id: str) -> QueryKey:
    return QueryKey.of(NOTES, week_id=week_id)


def summary_key(week_id: str) -> QueryKey:
    return QueryKey.of(SUMMARY, week_id=week_id)


def settings_key(week_id: str) -> QueryKey:
    return QueryKey.of(SETTINGS, week_id=week_id)


@dataclass
class CacheEntry:
    data: Any
    updated_at: float
    invalidated: bool = False


class EntityStore:
    """Key-addressed query cache shared by every sync component."""

    def __init__(
        self,
        stale_times: Optional[Dict[str, float]] = None,
        default_stale_time: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._stale_times = dict(stale_times or {})
        self._default_stale_time = default_stale_time
        self._clock = clock

        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._loaders: Dict[QueryKey, Loader] = {}
        self._in_flight: Dict[QueryKey, asyncio.Task] = {}
        self._holds: Dict[QueryKey, int] = {}

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "EntityStore":
        settings = settings or get_settings()
        return cls(
            stale_times={
                TASKS: settings.tasks_stale_seconds,
                NOTES: settings.notes_stale_seconds,
                SUMMARY: settings.notes_stale_seconds,
                SETTINGS: settings.settings_stale_seconds,
            },
            default_stale_time=settings.tasks_stale_seconds,
        )

    # --- Reads ---

    def get(self, key: QueryKey) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def get_data(self, key: QueryKey, default: Any = None) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry is not None else default

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def keys(self, kind: Optional[str] = None) -> List[QueryKey]:
        return [k for k in self._entries if kind is None or k.kind == kind]

    def stale_time(self, kind: str) -> float:
        return self._stale_times.get(kind, self._default_stale_time)

    def is_stale(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        if entry is None or entry.invalidated:
            return True
        return self._clock() - entry.updated_at > self.stale_time(key.kind)

    def is_fetching(self, key: QueryKey) -> bool:
        return key in self._in_flight

    def is_held(self, key: QueryKey) -> bool:
        return key in self._holds

    # --- Writes ---

    def set(self, key: QueryKey, value: Any) -> None:
        self._entries[key] = CacheEntry(data=value, updated_at=self._clock())

    def update(self, key: QueryKey, fn: Callable[[Any], Any]) -> Any:
        """Replace the cached value with ``fn(current)`` and return it.

        A pending invalidation survives the write.
        """
        previous = self._entries.get(key)
        value = fn(previous.data if previous is not None else None)
        self.set(key, value)
        if previous is not None and previous.invalidated:
            self._entries[key].invalidated = True
        return value

    def remove(self, key: QueryKey) -> None:
        self._entries.pop(key, None)

    def invalidate(self, key: QueryKey) -> None:
        """Mark *key* for refetch; refetch now unless a mutation holds it."""
        entry = self._entries.get(key)
        if entry is not None:
            entry.invalidated = True
        logger.debug(f"Invalidated {key}")

        if key in self._holds:
            return
        loader = self._loaders.get(key)
        if loader is not None:
            # A fetch started before the invalidation may carry pre-write data
            self.cancel_in_flight(key)
            self._start_fetch(key, loader)

    def invalidate_kind(self, kind: str) -> List[QueryKey]:
        keys = [k for k in set(self._entries) | set(self._loaders) if k.kind == kind]
        for key in keys:
            self.invalidate(key)
        return keys

    def cancel_in_flight(self, key: QueryKey) -> bool:
        """Drop a pending fetch so its response is never written to the cache."""
        task = self._in_flight.pop(key, None)
        if task is None:
            return False
        if not task.done():
            task.cancel()
        logger.debug(f"Cancelled in-flight fetch for {key}")
        return True

    # --- Holds (used by the optimistic patch engine) ---

    def hold(self, key: QueryKey) -> None:
        self._holds[key] = self._holds.get(key, 0) + 1

    def release(self, key: QueryKey) -> None:
        count = self._holds.get(key, 0) - 1
        if count > 0:
            self._holds[key] = count
            return
        self._holds.pop(key, None)

        entry = self._entries.get(key)
        loader = self._loaders.get(key)
        if entry is not None and entry.invalidated and loader and key not in self._in_flight:
            self._start_fetch(key, loader)

    # --- Fetching ---

    async def fetch(self, key: QueryKey, loader: Optional[Loader] = None) -> Any:
        """Return fresh data for *key*, loading it if stale or missing.

        The loader is remembered so later invalidations can refetch the key
        without the caller's involvement.
        """
        if loader is not None:
            self._loaders[key] = loader
        loader = self._loaders.get(key)

        entry = self._entries.get(key)
        if entry is not None and (key in self._holds or not self.is_stale(key)):
            return entry.data
        if loader is None:
            raise LookupError(f"No loader registered for {key}")

        task = self._in_flight.get(key) or self._start_fetch(key, loader)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                # Superseded by an optimistic write; serve what is cached
                return self.get_data(key)
            raise

    async def wait_idle(self) -> None:
        """Wait until no fetches are in flight (including chained refetches)."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)
            # Let done-callbacks run before re-checking
            await asyncio.sleep(0)

    def _start_fetch(self, key: QueryKey, loader: Loader) -> asyncio.Task:
        task = asyncio.ensure_future(loader())
        self._in_flight[key] = task
        task.add_done_callback(functools.partial(self._on_fetched, key))
        logger.debug(f"Fetching {key}")
        return task

    def _on_fetched(self, key: QueryKey, task: asyncio.Task) -> None:
        error = None if task.cancelled() else task.exception()
        if self._in_flight.get(key) is not task:
            return
        del self._in_flight[key]
        if task.cancelled():
            return
        if error is not None:
            logger.warning(f"Fetch for {key} failed: {type(error).__name__}: {error}")
            return
        self.set(key, task.result())
