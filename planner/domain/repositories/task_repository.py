"""TaskRepository protocol: task CRUD scoped to one owner."""

from typing import Any, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class TaskRepository(Protocol):
    """Repository interface for Task entity access.

    Implementations are bound to a single owner at construction, so every
    read and write is implicitly filtered by that owner.
    """

    async def list_for_range(self, start_date: str, end_date: str) -> List[object]:
        """Tasks dated within [start_date, end_date], ordered by sort order
        then creation time."""
        ...

    async def get(self, task_id: int) -> Optional[object]:
        ...

    async def create(
        self, content: str, date: str, time_block: Any, sort_order: int = 0
    ) -> object:
        ...

    async def update(self, task_id: int, **changes: Any) -> Optional[object]:
        """Apply a partial update.

        Returns:
            The updated Task, or None if it does not exist for this owner.
        """
        ...

    async def delete(self, task_id: int) -> bool:
        """Delete a task. Returns False if nothing was deleted."""
        ...
