import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from planner.api.schemas import NoteOut, TaskOut, WeeklySummaryOut, WeekSettingsOut
from planner.core.config import Settings
from planner.domain.errors import RemoteCallFailed, TaskNotFound
from planner.models.task import TimeBlock
from planner.sync import (
    DebounceCoalescer,
    EntityStore,
    MutationExecutor,
    OptimisticPatchEngine,
    PlannerStore,
    SummaryStore,
)


def _now():
    return datetime.now(timezone.utc)


class FakeRemoteApi:
    """In-memory RemoteApi with call recording, failure injection and gating.

    ``fail(method)`` makes the next call to *method* raise RemoteCallFailed.
    ``gate(method)`` parks calls to *method* until ``release(method)``.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.tasks: Dict[int, TaskOut] = {}
        self.notes: Dict[str, NoteOut] = {}
        self.summaries: Dict[str, WeeklySummaryOut] = {}
        self.settings: Dict[str, WeekSettingsOut] = {}
        self.images: Dict[str, tuple] = {}
        self._next_id = 1
        self._failures: Dict[str, Exception] = {}
        self._gates: Dict[str, asyncio.Event] = {}

    # --- Test controls ---

    def fail(self, method: str, error: Optional[Exception] = None) -> None:
        self._failures[method] = error or RemoteCallFailed(f"{method} failed", status_code=500)

    def gate(self, method: str) -> None:
        self._gates[method] = asyncio.Event()

    def release(self, method: str) -> None:
        self._gates.pop(method).set()

    def calls_to(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]

    def seed_task(self, content: str, date: str, time_block: str = "morning", **extra) -> TaskOut:
        now = _now()
        task = TaskOut(
            id=self._next_id,
            user_id=1,
            content=content,
            completed=extra.get("completed", False),
            date=date,
            time_block=TimeBlock(time_block),
            sort_order=extra.get("sort_order", 0),
            created_at=now,
            updated_at=now,
        )
        self._next_id += 1
        self.tasks[task.id] = task
        return task

    async def _enter(self, method: str, *args: Any) -> None:
        self.calls.append((method, *args))
        gate = self._gates.get(method)
        if gate is not None:
            await gate.wait()
        error = self._failures.pop(method, None)
        if error is not None:
            raise error

    # --- Tasks ---

    async def get_tasks_for_week(self, start_date, end_date):
        await self._enter("get_tasks_for_week", start_date, end_date)
        return sorted(
            (t for t in self.tasks.values() if start_date <= t.date <= end_date),
            key=lambda t: (t.sort_order, t.id),
        )

    async def create_task(self, content, date, time_block, sort_order=None):
        await self._enter("create_task", content, date, time_block, sort_order)
        return self.seed_task(content, date, time_block, sort_order=sort_order or 0)

    async def update_task(self, task_id, **changes):
        await self._enter("update_task", task_id, dict(changes))
        if task_id not in self.tasks:
            raise TaskNotFound(task_id)
        if "time_block" in changes:
            changes["time_block"] = TimeBlock(changes["time_block"])
        task = self.tasks[task_id].model_copy(update={**changes, "updated_at": _now()})
        self.tasks[task_id] = task
        return task

    async def delete_task(self, task_id):
        await self._enter("delete_task", task_id)
        return self.tasks.pop(task_id, None) is not None

    # --- Week-scoped ---

    async def get_note(self, week_id):
        await self._enter("get_note", week_id)
        return self.notes.get(week_id)

    async def upsert_note(self, week_id, content):
        await self._enter("upsert_note", week_id, content)
        now = _now()
        existing = self.notes.get(week_id)
        note = (
            existing.model_copy(update={"content": content, "updated_at": now})
            if existing
            else NoteOut(
                id=len(self.notes) + 1, user_id=1, week_id=week_id, content=content,
                created_at=now, updated_at=now,
            )
        )
        self.notes[week_id] = note
        return note

    async def get_weekly_summary(self, week_id):
        await self._enter("get_weekly_summary", week_id)
        return self.summaries.get(week_id)

    async def upsert_weekly_summary(self, week_id, **fields):
        await self._enter("upsert_weekly_summary", week_id, fields)
        now = _now()
        existing = self.summaries.get(week_id)
        summary = (
            existing.model_copy(update={**fields, "updated_at": now})
            if existing
            else WeeklySummaryOut(
                id=len(self.summaries) + 1, user_id=1, week_id=week_id,
                created_at=now, updated_at=now, **fields,
            )
        )
        self.summaries[week_id] = summary
        return summary

    async def get_week_settings(self, week_id):
        await self._enter("get_week_settings", week_id)
        return self.settings.get(week_id)

    def _upsert_settings(self, week_id, fields):
        now = _now()
        existing = self.settings.get(week_id)
        settings = (
            existing.model_copy(update={**fields, "updated_at": now})
            if existing
            else WeekSettingsOut(
                id=len(self.settings) + 1, user_id=1, week_id=week_id,
                created_at=now, updated_at=now, **fields,
            )
        )
        self.settings[week_id] = settings
        return settings

    async def update_column_widths(self, week_id, column_widths):
        await self._enter("update_column_widths", week_id, column_widths)
        encoded = json.dumps({str(k): v for k, v in sorted(column_widths.items())})
        return self._upsert_settings(week_id, {"column_widths": encoded})

    async def update_custom_content(self, week_id, **fields):
        await self._enter("update_custom_content", week_id, fields)
        return self._upsert_settings(week_id, fields)

    async def upload_custom_image(self, week_id, image_base64, mime_type):
        await self._enter("upload_custom_image", week_id, mime_type)
        url = f"http://cdn.test/{week_id}.png"
        self.images[url] = (image_base64, mime_type)
        self._upsert_settings(week_id, {"custom_image_url": url})
        return url


@pytest.fixture
def remote():
    return FakeRemoteApi()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        text_debounce_seconds=0.05,
        layout_debounce_seconds=0.03,
    )


@pytest.fixture
def store(settings):
    return EntityStore.from_settings(settings)


@pytest.fixture
def patches(store):
    return OptimisticPatchEngine(store)


@pytest.fixture
def executor(remote, store, patches):
    return MutationExecutor(remote, store, patches)


@pytest.fixture
def coalescer(settings):
    return DebounceCoalescer(default_delay=settings.text_debounce_seconds)


@pytest.fixture
def planner(executor, store, remote, coalescer, settings):
    return PlannerStore(executor, store, remote, coalescer, "2026-01-14", settings)


@pytest.fixture
def summary(executor, store, remote, coalescer, settings):
    return SummaryStore(executor, store, remote, coalescer, "2026-01-14", settings)
