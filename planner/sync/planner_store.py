"""
Planner view state for one displayed week.

Reads come from the entity store, with any not-yet-flushed debounced value
laid over the cached one so the view always shows what the user typed last.
Task actions go straight to the mutation executor; free-text and layout edits
go through the debounce coalescer first.
"""

import asyncio
from datetime import date
from typing import Any, Dict, List, Optional

from ..api.schemas import NoteOut, TaskOut, WeekSettingsOut
from ..core.config import Settings, get_settings
from ..domain.errors import RemoteCallFailed
from ..models.task import TimeBlock
from ..models.week_settings import parse_column_widths
from ..utils.logging import get_sync_logger
from ..utils.week import DateLike, WeekRange, next_week, prev_week, resolve_week
from .debounce import DebounceCoalescer
from .entity_store import EntityStore, QueryKey, note_key, settings_key, tasks_key
from .executor import MutationExecutor, MutationResult, MutationStatus, Operation
from .remote import RemoteApi

logger = get_sync_logger(__name__)

NOTE_FIELD = "notes"
COLUMN_WIDTHS_FIELD = "weekSettings.columnWidths"
CUSTOM_TEXT_FIELD = "weekSettings.customText"

DAYS_IN_WEEK = 7


class PlannerStore:
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

    # --- Keys ---

    @property
    def week_id(self) -> str:
        return self.week.week_id

    @property
    def tasks_key(self) -> QueryKey:
        return tasks_key(self.week)

    @property
    def note_key(self) -> QueryKey:
        return note_key(self.week_id)

    @property
    def settings_key(self) -> QueryKey:
        return settings_key(self.week_id)

    # --- Loading ---

    async def load(self) -> bool:
        """Fetch tasks, note and settings for the current week.

        Returns False (and records a notification) if any of them failed.
        """
        week = self.week
        results = await asyncio.gather(
            self._store.fetch(
                self.tasks_key,
                lambda: self._remote.get_tasks_for_week(week.start, week.end),
            ),
            self._store.fetch(self.note_key, lambda: self._remote.get_note(week.week_id)),
            self._store.fetch(
                self.settings_key, lambda: self._remote.get_week_settings(week.week_id)
            ),
            return_exceptions=True,
        )
        failed = [r for r in results if isinstance(r, Exception)]
        for error in failed:
            if not isinstance(error, RemoteCallFailed):
                raise error
            self._notify(f"Could not load week {week.week_id}: {error}")
        return not failed

    async def set_week(self, reference: DateLike) -> None:
        """Switch the displayed week.

        Fetches for the old week are cancelled; edits already typed for it are
        still written.
        """
        new_week = resolve_week(reference)
        if new_week == self.week:
            return
        for key in (self.tasks_key, self.note_key, self.settings_key):
            self._store.cancel_in_flight(key)
        old_week_id = self.week_id
        self.week = new_week
        logger.info("week_switched", from_week=old_week_id, to_week=new_week.week_id)
        await self._coalescer.flush_all()

    async def next_week(self) -> None:
        await self.set_week(next_week(self.week.start))

    async def prev_week(self) -> None:
        await self.set_week(prev_week(self.week.start))

    async def close(self) -> None:
        await self._coalescer.flush_all()

    # --- Reads ---

    @property
    def tasks(self) -> List[TaskOut]:
        return list(self._store.get_data(self.tasks_key) or [])

    def tasks_for(self, day: str, time_block: TimeBlock) -> List[TaskOut]:
        block = TimeBlock(time_block)
        matching = [t for t in self.tasks if t.date == day and t.time_block == block]
        return sorted(matching, key=lambda t: t.sort_order)

    def get_task(self, task_id: int) -> Optional[TaskOut]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    @property
    def note(self) -> Optional[NoteOut]:
        return self._store.get_data(self.note_key)

    @property
    def note_text(self) -> str:
        key = (NOTE_FIELD, self.week_id)
        if self._coalescer.has_pending(key):
            return self._coalescer.pending_value(key) or ""
        note = self.note
        return (note.content if note else None) or ""

    @property
    def week_settings(self) -> Optional[WeekSettingsOut]:
        return self._store.get_data(self.settings_key)

    @property
    def column_widths(self) -> Dict[int, int]:
        pending = self._coalescer.pending_value((COLUMN_WIDTHS_FIELD, self.week_id))
        if pending is not None:
            return dict(pending)
        widths = {i: self._settings.default_column_width for i in range(DAYS_IN_WEEK)}
        settings = self.week_settings
        if settings is not None:
            widths.update(parse_column_widths(settings.column_widths))
        return widths

    @property
    def custom_text(self) -> Optional[str]:
        key = (CUSTOM_TEXT_FIELD, self.week_id)
        if self._coalescer.has_pending(key):
            return self._coalescer.pending_value(key)
        settings = self.week_settings
        return settings.custom_text if settings else None

    @property
    def custom_image_url(self) -> Optional[str]:
        settings = self.week_settings
        return settings.custom_image_url if settings else None

    # --- Task actions ---

    async def add_task(
        self,
        content: str,
        day: str,
        time_block: TimeBlock,
        sort_order: Optional[int] = None,
    ) -> Optional[MutationResult]:
        if not content.strip():
            return None
        payload: Dict[str, Any] = {"content": content, "date": day, "time_block": time_block}
        if sort_order is not None:
            payload["sort_order"] = sort_order
        return self._report(await self._executor.execute(Operation.CREATE_TASK, payload))

    async def update_task(self, task_id: int, content: str) -> MutationResult:
        """Edit task text; clearing it deletes the task."""
        content = content.strip()
        if not content:
            return await self.delete_task(task_id)
        return self._report(
            await self._executor.execute(
                Operation.UPDATE_TASK, {"task_id": task_id, "content": content}
            )
        )

    async def toggle_task(self, task_id: int) -> Optional[MutationResult]:
        task = self.get_task(task_id)
        if task is None:
            return None
        return self._report(
            await self._executor.execute(
                Operation.UPDATE_TASK, {"task_id": task_id, "completed": not task.completed}
            )
        )

    async def delete_task(self, task_id: int) -> MutationResult:
        return self._report(
            await self._executor.execute(Operation.DELETE_TASK, {"task_id": task_id})
        )

    async def move_task(
        self,
        task_id: int,
        day: str,
        time_block: TimeBlock,
        sort_order: Optional[int] = None,
    ) -> Optional[MutationResult]:
        """Move a task to another day and/or block; no-op if nothing changes."""
        task = self.get_task(task_id)
        if task is None:
            return None
        block = TimeBlock(time_block)
        if task.date == day and task.time_block == block and sort_order is None:
            return None
        payload: Dict[str, Any] = {
            "task_id": task_id,
            "date": day,
            "time_block": block,
            "previous_date": task.date,
        }
        if sort_order is not None:
            payload["sort_order"] = sort_order
        return self._report(await self._executor.execute(Operation.UPDATE_TASK, payload))

    # --- Debounced edits ---

    def update_note(self, content: str) -> None:
        week_id = self.week_id

        async def flush(value: str) -> None:
            self._report(
                await self._executor.execute(
                    Operation.UPSERT_NOTE, {"week_id": week_id, "content": value}
                )
            )

        self._coalescer.schedule(
            (NOTE_FIELD, week_id), content, self._settings.text_debounce_seconds, flush
        )

    def update_column_width(self, day_index: int, width: int) -> None:
        if not 0 <= day_index < DAYS_IN_WEEK:
            raise ValueError(f"day_index must be 0-6, got {day_index}")
        week_id = self.week_id
        widths = self.column_widths
        widths[day_index] = width

        async def flush(value: Dict[int, int]) -> None:
            self._report(
                await self._executor.execute(
                    Operation.UPDATE_COLUMN_WIDTHS,
                    {"week_id": week_id, "column_widths": value},
                )
            )

        self._coalescer.schedule(
            (COLUMN_WIDTHS_FIELD, week_id), widths, self._settings.layout_debounce_seconds, flush
        )

    def update_custom_text(self, text: Optional[str]) -> None:
        week_id = self.week_id
        value = (text or "").strip() or None

        async def flush(custom_text: Optional[str]) -> None:
            self._report(
                await self._executor.execute(
                    Operation.UPDATE_CUSTOM_CONTENT,
                    {"week_id": week_id, "custom_text": custom_text},
                )
            )

        self._coalescer.schedule(
            (CUSTOM_TEXT_FIELD, week_id), value, self._settings.text_debounce_seconds, flush
        )

    # --- Banner image ---

    async def upload_custom_image(self, data: bytes, mime_type: str) -> Optional[str]:
        """Upload a banner image for this week and return its URL."""
        result = self._report(
            await self._executor.execute(
                Operation.UPLOAD_IMAGE,
                {"week_id": self.week_id, "data": data, "mime_type": mime_type},
            )
        )
        return result.data if result.status == MutationStatus.SUCCESS else None

    async def clear_custom_image(self) -> MutationResult:
        return self._report(
            await self._executor.execute(
                Operation.UPDATE_CUSTOM_CONTENT,
                {"week_id": self.week_id, "custom_image_url": None},
            )
        )

    # --- Notifications ---

    def _report(self, result: MutationResult) -> MutationResult:
        if result.status == MutationStatus.ERROR:
            self._notify(f"Could not save changes: {result.error}")
        return result

    def _notify(self, message: str) -> None:
        self.notifications.append(message)

    def dismiss_notifications(self) -> List[str]:
        messages, self.notifications = self.notifications, []
        return messages
