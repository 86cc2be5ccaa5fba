"""
Mutation Executor.

Single entry point for every remote write the planner makes. For each
operation it validates the payload, patches the affected cache keys through
the optimistic engine, performs the remote call, commits or rolls back, and
finally invalidates every key the write could have changed.

Remote failures end here: they are logged and returned as ``error`` results,
never raised to the caller and never retried.
"""

import asyncio
import base64
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..api.schemas import NoteOut, TaskOut, WeeklySummaryOut, WeekSettingsOut
from ..domain.errors import InvalidTaskContent, PlannerValidationError, TaskNotFound
from ..models.task import TimeBlock
from ..models.week_settings import dump_column_widths
from ..utils.logging import get_sync_logger
from ..utils.week import is_valid_date, parse_week_id, resolve_week
from .entity_store import (
    TASKS,
    EntityStore,
    QueryKey,
    note_key,
    settings_key,
    summary_key,
    tasks_key,
)
from .optimistic import OptimisticPatchEngine, Snapshot, Transform
from .remote import RemoteApi

logger = get_sync_logger(__name__)

TASK_FIELDS = ("content", "completed", "date", "time_block", "sort_order")
SUMMARY_FIELDS = ("keyword", "daily_entries", "reflection")
CUSTOM_CONTENT_FIELDS = ("custom_text", "custom_image_url")


class Operation(str, Enum):
    CREATE_TASK = "create_task"
    UPDATE_TASK = "update_task"
    DELETE_TASK = "delete_task"
    UPSERT_NOTE = "upsert_note"
    UPSERT_SUMMARY = "upsert_summary"
    UPDATE_COLUMN_WIDTHS = "update_column_widths"
    UPDATE_CUSTOM_CONTENT = "update_custom_content"
    UPLOAD_IMAGE = "upload_image"


class MutationStatus(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class MutationResult:
    operation: Operation
    status: MutationStatus
    data: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        """True unless the remote call failed; not-found is benign."""
        return self.status != MutationStatus.ERROR


@dataclass
class _Plan:
    call: Callable[[], Awaitable[Any]]
    patches: List[Tuple[QueryKey, Transform]] = field(default_factory=list)
    invalidate: List[QueryKey] = field(default_factory=list)
    # Extra patches derived from the remote reply, kept along with the commit
    reconcile: Optional[Callable[[Any], List[Tuple[QueryKey, Transform]]]] = None
    not_found: Callable[[Any], bool] = lambda data: False


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MutationExecutor:
    def __init__(
        self,
        remote: RemoteApi,
        store: EntityStore,
        patches: Optional[OptimisticPatchEngine] = None,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        self.remote = remote
        self.store = store
        self.patches = patches or OptimisticPatchEngine(store)
        self._clock = clock
        self._last_temp_id = 0
        # Provisional id -> server id, so follow-up edits reach the real row
        self._id_map: Dict[int, int] = {}
        # Provisional id -> server id (None if the create failed), while in flight
        self._creating: Dict[int, asyncio.Future] = {}
        self.pending = 0

    def next_temp_id(self) -> int:
        """Clock-derived placeholder id, strictly increasing within the session."""
        self._last_temp_id = max(self._clock(), self._last_temp_id + 1)
        return self._last_temp_id

    def resolve_id(self, task_id: int) -> int:
        return self._id_map.get(task_id, task_id)

    def _is_task(self, task_id: int) -> Callable[[TaskOut], bool]:
        """Match *task_id* by either of its ids; read at transform time."""
        return lambda task: task.id in (task_id, self.resolve_id(task_id))

    async def _server_task_id(self, task_id: int) -> int:
        """Server id for *task_id*, waiting for its create if one is in flight.

        Raises:
            TaskNotFound: If the create that would have produced the row failed.
        """
        creating = self._creating.get(task_id)
        if creating is not None:
            server_id = await asyncio.shield(creating)
            if server_id is None:
                raise TaskNotFound(task_id)
            return server_id
        return self.resolve_id(task_id)

    async def execute(self, operation: Operation, payload: Dict[str, Any]) -> MutationResult:
        """Run one mutation through the optimistic protocol.

        Raises:
            PlannerValidationError: If the payload is rejected. Nothing is
                patched and no remote call is made.
        """
        operation = Operation(operation)
        plan = self._plan(operation, payload)

        patch_keys = list(dict.fromkeys(key for key, _ in plan.patches))
        snapshots: Dict[QueryKey, Snapshot] = {}
        reconciled: Dict[QueryKey, List[Transform]] = defaultdict(list)

        self.pending += 1
        try:
            for key in patch_keys:
                snapshots[key] = self.patches.begin_mutation(key)
            for key, transform in plan.patches:
                self.patches.apply(snapshots[key], transform)

            data = await plan.call()

            if plan.reconcile is not None:
                for key, transform in plan.reconcile(data):
                    if key in snapshots:
                        reconciled[key].append(transform)
        except TaskNotFound as e:
            logger.info("mutation_not_found", operation=operation.value, error=str(e))
            for snapshot in snapshots.values():
                self.patches.commit(snapshot)
            result = MutationResult(operation, MutationStatus.NOT_FOUND, error=e)
        except asyncio.CancelledError:
            for snapshot in snapshots.values():
                self.patches.rollback(snapshot)
            self._invalidate(plan)
            raise
        except Exception as e:
            logger.error(
                "mutation_failed",
                operation=operation.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            for snapshot in snapshots.values():
                self.patches.rollback(snapshot)
            result = MutationResult(operation, MutationStatus.ERROR, error=e)
        else:
            for key, snapshot in snapshots.items():
                self.patches.commit(snapshot, *reconciled[key])
            if plan.not_found(data):
                logger.info("mutation_not_found", operation=operation.value)
                result = MutationResult(operation, MutationStatus.NOT_FOUND, data=data)
            else:
                logger.debug("mutation_succeeded", operation=operation.value)
                result = MutationResult(operation, MutationStatus.SUCCESS, data=data)
        finally:
            self.pending -= 1

        self._invalidate(plan)
        return result

    def _invalidate(self, plan: _Plan) -> None:
        seen = set()
        for key in plan.invalidate:
            if key not in seen:
                seen.add(key)
                self.store.invalidate(key)

    # --- Planning ---

    def _plan(self, operation: Operation, payload: Dict[str, Any]) -> _Plan:
        builder = {
            Operation.CREATE_TASK: self._plan_create_task,
            Operation.UPDATE_TASK: self._plan_update_task,
            Operation.DELETE_TASK: self._plan_delete_task,
            Operation.UPSERT_NOTE: self._plan_upsert_note,
            Operation.UPSERT_SUMMARY: self._plan_upsert_summary,
            Operation.UPDATE_COLUMN_WIDTHS: self._plan_column_widths,
            Operation.UPDATE_CUSTOM_CONTENT: self._plan_custom_content,
            Operation.UPLOAD_IMAGE: self._plan_upload_image,
        }[operation]
        return builder(payload)

    def _task_keys_containing(self, task_id: int) -> List[QueryKey]:
        matches = self._is_task(task_id)
        keys = []
        for key in self.store.keys(kind=TASKS):
            tasks = self.store.get_data(key) or []
            if any(matches(t) for t in tasks):
                keys.append(key)
        return keys

    def _find_task(self, task_id: int) -> Optional[TaskOut]:
        matches = self._is_task(task_id)
        for key in self.store.keys(kind=TASKS):
            for task in self.store.get_data(key) or []:
                if matches(task):
                    return task
        return None

    def _plan_create_task(self, payload: Dict[str, Any]) -> _Plan:
        content = _clean_content(payload.get("content"))
        date = _check_date(payload.get("date"))
        time_block = _check_time_block(payload.get("time_block"))
        sort_order = payload.get("sort_order")

        key = tasks_key(resolve_week(date))
        now = _now()
        provisional = TaskOut(
            id=self.next_temp_id(),
            user_id=0,
            content=content,
            completed=False,
            date=date,
            time_block=time_block,
            sort_order=sort_order if sort_order is not None else 0,
            created_at=now,
            updated_at=now,
        )
        creating = asyncio.get_running_loop().create_future()
        self._creating[provisional.id] = creating

        async def create() -> TaskOut:
            server_id = None
            try:
                created = await self.remote.create_task(
                    content=content, date=date, time_block=time_block.value, sort_order=sort_order
                )
                server_id = created.id
                self._id_map[provisional.id] = server_id
                return created
            finally:
                self._creating.pop(provisional.id, None)
                if not creating.done():
                    creating.set_result(server_id)

        def append(tasks: Optional[List[TaskOut]]) -> Optional[List[TaskOut]]:
            if tasks is None:
                return None
            return [*tasks, provisional]

        def reconcile(created: TaskOut) -> List[Tuple[QueryKey, Transform]]:
            def swap(tasks: Optional[List[TaskOut]]) -> Optional[List[TaskOut]]:
                if tasks is None:
                    return None
                return [created if t.id == provisional.id else t for t in tasks]

            return [(key, swap)]

        return _Plan(
            call=create,
            patches=[(key, append)],
            invalidate=[key],
            reconcile=reconcile,
        )

    def _plan_update_task(self, payload: Dict[str, Any]) -> _Plan:
        task_id = payload["task_id"]
        changes: Dict[str, Any] = {k: payload[k] for k in TASK_FIELDS if k in payload}
        if "content" in changes:
            changes["content"] = _clean_content(changes["content"])
        if "date" in changes:
            changes["date"] = _check_date(changes["date"])
        if "time_block" in changes:
            changes["time_block"] = _check_time_block(changes["time_block"])
        if not changes:
            raise PlannerValidationError("No task fields to update")

        matches = self._is_task(task_id)
        source_keys = self._task_keys_containing(task_id)
        invalidate = list(source_keys)
        patches: List[Tuple[QueryKey, Transform]] = []

        current = self._find_task(task_id)
        previous_date = payload.get("previous_date") or (current.date if current else None)
        if previous_date:
            invalidate.append(tasks_key(resolve_week(previous_date)))

        new_date = changes.get("date")
        destination = tasks_key(resolve_week(new_date)) if new_date else None
        if destination is not None:
            invalidate.append(destination)

        def patch_source(key: QueryKey) -> Transform:
            week_start, week_end = key.param("start_date"), key.param("end_date")

            def transform(tasks: Optional[List[TaskOut]]) -> Optional[List[TaskOut]]:
                if tasks is None:
                    return None
                if new_date and not week_start <= new_date <= week_end:
                    return [t for t in tasks if not matches(t)]
                return [t.model_copy(update=changes) if matches(t) else t for t in tasks]

            return transform

        for key in source_keys:
            patches.append((key, patch_source(key)))

        if destination is not None and destination not in source_keys and current is not None:
            moved = current.model_copy(update=changes)

            def insert(tasks: Optional[List[TaskOut]]) -> Optional[List[TaskOut]]:
                if tasks is None:
                    return None
                row = moved.model_copy(update={"id": self.resolve_id(task_id)})
                return [*[t for t in tasks if not matches(t)], row]

            patches.append((destination, insert))

        remote_changes = dict(changes)
        if "time_block" in remote_changes:
            remote_changes["time_block"] = remote_changes["time_block"].value

        async def update() -> TaskOut:
            server_id = await self._server_task_id(task_id)
            return await self.remote.update_task(server_id, **remote_changes)

        return _Plan(call=update, patches=patches, invalidate=invalidate)

    def _plan_delete_task(self, payload: Dict[str, Any]) -> _Plan:
        task_id = payload["task_id"]
        matches = self._is_task(task_id)
        source_keys = self._task_keys_containing(task_id)

        def remove(tasks: Optional[List[TaskOut]]) -> Optional[List[TaskOut]]:
            if tasks is None:
                return None
            return [t for t in tasks if not matches(t)]

        async def delete() -> bool:
            try:
                server_id = await self._server_task_id(task_id)
            except TaskNotFound:
                return False
            return await self.remote.delete_task(server_id)

        return _Plan(
            call=delete,
            patches=[(key, remove) for key in source_keys],
            invalidate=source_keys,
            not_found=lambda deleted: not deleted,
        )

    def _plan_upsert_note(self, payload: Dict[str, Any]) -> _Plan:
        week_id = _check_week_id(payload.get("week_id"))
        content = payload.get("content")
        key = note_key(week_id)

        def patch(note: Optional[NoteOut]) -> NoteOut:
            if note is None:
                now = _now()
                return NoteOut(
                    id=0, user_id=0, week_id=week_id, content=content,
                    created_at=now, updated_at=now,
                )
            return note.model_copy(update={"content": content, "updated_at": _now()})

        return _Plan(
            call=lambda: self.remote.upsert_note(week_id, content),
            patches=[(key, patch)],
            invalidate=[key],
        )

    def _plan_upsert_summary(self, payload: Dict[str, Any]) -> _Plan:
        week_id = _check_week_id(payload.get("week_id"))
        fields = {k: payload[k] for k in SUMMARY_FIELDS if k in payload}
        if not fields:
            raise PlannerValidationError("No summary fields to update")
        key = summary_key(week_id)

        def patch(summary: Optional[WeeklySummaryOut]) -> WeeklySummaryOut:
            if summary is None:
                now = _now()
                return WeeklySummaryOut(
                    id=0, user_id=0, week_id=week_id, created_at=now, updated_at=now, **fields
                )
            return summary.model_copy(update={**fields, "updated_at": _now()})

        return _Plan(
            call=lambda: self.remote.upsert_weekly_summary(week_id, **fields),
            patches=[(key, patch)],
            invalidate=[key],
        )

    def _plan_column_widths(self, payload: Dict[str, Any]) -> _Plan:
        week_id = _check_week_id(payload.get("week_id"))
        widths = {int(k): int(v) for k, v in (payload.get("column_widths") or {}).items()}
        for index, width in widths.items():
            if not 0 <= index <= 6:
                raise PlannerValidationError(
                    f"Column index {index} is not a day index 0-6", field="column_widths"
                )
            if width <= 0:
                raise PlannerValidationError(
                    "Column widths must be positive", field="column_widths"
                )
        encoded = dump_column_widths(widths)
        return self._settings_plan(
            week_id,
            {"column_widths": encoded},
            lambda: self.remote.update_column_widths(week_id, widths),
        )

    def _plan_custom_content(self, payload: Dict[str, Any]) -> _Plan:
        week_id = _check_week_id(payload.get("week_id"))
        fields = {k: payload[k] for k in CUSTOM_CONTENT_FIELDS if k in payload}
        if not fields:
            raise PlannerValidationError("No custom content fields to update")
        return self._settings_plan(
            week_id, fields, lambda: self.remote.update_custom_content(week_id, **fields)
        )

    def _settings_plan(
        self, week_id: str, fields: Dict[str, Any], call: Callable[[], Awaitable[Any]]
    ) -> _Plan:
        key = settings_key(week_id)

        def patch(settings: Optional[WeekSettingsOut]) -> WeekSettingsOut:
            if settings is None:
                now = _now()
                return WeekSettingsOut(
                    id=0, user_id=0, week_id=week_id, created_at=now, updated_at=now, **fields
                )
            return settings.model_copy(update={**fields, "updated_at": _now()})

        return _Plan(call=call, patches=[(key, patch)], invalidate=[key])

    def _plan_upload_image(self, payload: Dict[str, Any]) -> _Plan:
        week_id = _check_week_id(payload.get("week_id"))
        data = payload.get("data")
        mime_type = payload.get("mime_type") or ""
        if not data:
            raise PlannerValidationError("Image data is empty", field="data")
        if not mime_type.startswith("image/"):
            raise PlannerValidationError(f"Not an image type: {mime_type!r}", field="mime_type")

        async def upload() -> str:
            encoded = await asyncio.to_thread(base64.b64encode, data)
            return await self.remote.upload_custom_image(
                week_id, encoded.decode("ascii"), mime_type
            )

        return _Plan(call=upload, invalidate=[settings_key(week_id)])


def _clean_content(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidTaskContent()
    return value.strip()


def _check_date(value: Any) -> str:
    if not is_valid_date(value):
        raise PlannerValidationError(f"Invalid date: {value!r}", field="date")
    return value


def _check_time_block(value: Any) -> TimeBlock:
    try:
        return TimeBlock(value)
    except ValueError:
        raise PlannerValidationError(
            f"Invalid time block: {value!r}", field="time_block"
        ) from None


def _check_week_id(value: Any) -> str:
    parse_week_id(value)
    return value
