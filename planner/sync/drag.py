"""
Drag-and-drop session for moving tasks between cells of the week grid.

A cell is addressed by a drop target id of the form ``"{date}|{time_block}"``.
"""

import logging
from enum import Enum
from typing import Optional, Tuple

from ..models.task import TimeBlock
from ..utils.week import is_valid_date
from .executor import MutationResult
from .planner_store import PlannerStore

logger = logging.getLogger(__name__)

DROP_TARGET_SEPARATOR = "|"


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTING = "committing"


def drop_target_id(day: str, time_block: TimeBlock) -> str:
    return f"{day}{DROP_TARGET_SEPARATOR}{TimeBlock(time_block).value}"


def parse_drop_target(target_id: Optional[str]) -> Optional[Tuple[str, TimeBlock]]:
    """Split a drop target id into (date, time block), or None if malformed."""
    if not target_id or DROP_TARGET_SEPARATOR not in target_id:
        return None
    day, _, block = target_id.partition(DROP_TARGET_SEPARATOR)
    if not is_valid_date(day):
        return None
    try:
        return day, TimeBlock(block)
    except ValueError:
        return None


class DragSession:
    """idle -> dragging -> committing -> idle, or dragging -> idle on a miss."""

    def __init__(self, planner: PlannerStore) -> None:
        self._planner = planner
        self.state = DragState.IDLE
        self.task_id: Optional[int] = None

    def start(self, task_id: int) -> None:
        if self.state != DragState.IDLE:
            raise RuntimeError(f"Cannot start a drag while {self.state.value}")
        if self._planner.get_task(task_id) is None:
            raise LookupError(f"Task {task_id} is not on the current week")
        self.task_id = task_id
        self.state = DragState.DRAGGING

    def cancel(self) -> None:
        self._reset()

    async def drop(self, target_id: Optional[str]) -> Optional[MutationResult]:
        """Finish the drag over *target_id* (None when released outside the grid)."""
        if self.state != DragState.DRAGGING:
            raise RuntimeError(f"Cannot drop while {self.state.value}")

        destination = parse_drop_target(target_id)
        task = self._planner.get_task(self.task_id)
        if destination is None or task is None:
            self._reset()
            return None

        day, block = destination
        if (task.date, task.time_block) == (day, block):
            self._reset()
            return None

        self.state = DragState.COMMITTING
        try:
            logger.debug(f"Moving task {task.id} to {day} {block.value}")
            return await self._planner.move_task(task.id, day, block)
        finally:
            self._reset()

    def _reset(self) -> None:
        self.state = DragState.IDLE
        self.task_id = None
