"""Weekly summary view state: keyword, per-day entries and reflection."""

import json
from datetime import date
from typing import Dict, List, Optional

from ..api.schemas import WeeklySummaryOut
from ..core.config import Settings, get_settings
from ..domain.errors import RemoteCallFailed
from ..models.weekly_summary import parse_daily_entries
from ..utils.week import DateLike, WeekRange, resolve_week
from .debounce import DebounceCoalescer
from .entity_store import EntityStore, QueryKey, summary_key
from .executor import MutationExecutor, MutationResult, MutationStatus, Operation
from .remote import RemoteApi

KEYWORD_FIELD = "weeklySummary.keyword"
DAILY_ENTRIES_FIELD = "weeklySummary.dailyEntries"
REFLECTION_FIELD = "weeklySummary.reflection"


class SummaryStore:
    def __init__(
        self,
        executor: MutationExecutor,
        store: EntityStore,
        remote: RemoteApi,
        coalescer: DebounceCoalescer,
        reference_date: Optional[DateLike] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._executor = executor
        self._store = store
        self._remote = remote
        self._coalescer = coalescer
        self._settings = settings or get_settings()
        self.notifications: List[str] = []
        self.week: WeekRange = resolve_week(reference_date or date.today())

    @property
    def week_id(self) -> str:
        return self.week.week_id

    @property
    def key(self) -> QueryKey:
        return summary_key(self.week_id)

    async def load(self) -> Optional[WeeklySummaryOut]:
        week_id = self.week_id
        try:
            return await self._store.fetch(
                self.key, lambda: self._remote.get_weekly_summary(week_id)
            )
        except RemoteCallFailed as e:
            self.notifications.append(f"Could not load summary for {week_id}: {e}")
            return None

    async def set_week(self, reference: DateLike) -> None:
        new_week = resolve_week(reference)
        if new_week == self.week:
            return
        self._store.cancel_in_flight(self.key)
        self.week = new_week
        await self._coalescer.flush_all()

    # --- Reads ---

    @property
    def summary(self) -> Optional[WeeklySummaryOut]:
        return self._store.get_data(self.key)

    def _field(self, debounce_field: str, attr: str) -> Optional[str]:
        pending_key = (debounce_field, self.week_id)
        if self._coalescer.has_pending(pending_key):
            return self._coalescer.pending_value(pending_key)
        summary = self.summary
        return getattr(summary, attr) if summary else None

    @property
    def keyword(self) -> str:
        return self._field(KEYWORD_FIELD, "keyword") or ""

    @property
    def reflection(self) -> str:
        return self._field(REFLECTION_FIELD, "reflection") or ""

    @property
    def daily_entries(self) -> Dict[str, str]:
        return parse_daily_entries(self._field(DAILY_ENTRIES_FIELD, "daily_entries"))

    # --- Debounced edits ---

    def update_keyword(self, keyword: Optional[str]) -> None:
        self._schedule(KEYWORD_FIELD, "keyword", keyword)

    def update_reflection(self, reflection: Optional[str]) -> None:
        self._schedule(REFLECTION_FIELD, "reflection", reflection)

    def update_daily_entry(self, day_index: int, content: str) -> None:
        """Replace one day's entry, keeping the other six."""
        if not 0 <= day_index <= 6:
            raise ValueError(f"day_index must be 0-6, got {day_index}")
        entries = self.daily_entries
        entries[str(day_index)] = content
        self._schedule(DAILY_ENTRIES_FIELD, "daily_entries", json.dumps(entries))

    def _schedule(self, debounce_field: str, attr: str, value: Optional[str]) -> None:
        week_id = self.week_id

        async def flush(latest: Optional[str]) -> None:
            result = await self._executor.execute(
                Operation.UPSERT_SUMMARY, {"week_id": week_id, attr: latest}
            )
            self._report(result)

        self._coalescer.schedule(
            (debounce_field, week_id), value, self._settings.text_debounce_seconds, flush
        )

    def _report(self, result: MutationResult) -> MutationResult:
        if result.status == MutationStatus.ERROR:
            self.notifications.append(f"Could not save summary: {result.error}")
        return result
