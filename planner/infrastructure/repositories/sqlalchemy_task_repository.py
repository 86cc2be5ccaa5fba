"""SQLAlchemy implementation of TaskRepository."""

import logging
from typing import Any, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from planner.models.task import Task, TimeBlock

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("content", "completed", "date", "time_block", "sort_order")


class SqlAlchemyTaskRepository:
    """Concrete TaskRepository bound to one owner."""

    def __init__(self, session: AsyncSession, owner_id: int) -> None:
        self._session = session
        self._owner_id = owner_id

    async def list_for_range(self, start_date: str, end_date: str) -> List[Task]:
        result = await self._session.execute(
            select(Task)
            .where(
                Task.user_id == self._owner_id,
                Task.date >= start_date,
                Task.date <= end_date,
            )
            .order_by(Task.sort_order.asc(), Task.created_at.asc(), Task.id.asc())
        )
        return list(result.scalars().all())

    async def get(self, task_id: int) -> Optional[Task]:
        result = await self._session.execute(
            select(Task).where(Task.id == task_id, Task.user_id == self._owner_id)
        )
        return result.scalar_one_or_none()

    async def create(
        self, content: str, date: str, time_block: Any, sort_order: int = 0
    ) -> Task:
        task = Task(
            user_id=self._owner_id,
            content=content,
            date=date,
            time_block=TimeBlock(time_block),
            sort_order=sort_order,
            completed=False,
        )
        self._session.add(task)
        await self._session.commit()
        await self._session.refresh(task)
        logger.debug(f"Created task id={task.id} owner={self._owner_id}")
        return task

    async def update(self, task_id: int, **changes: Any) -> Optional[Task]:
        task = await self.get(task_id)
        if task is None:
            return None
        for field, value in changes.items():
            if field not in UPDATABLE_FIELDS:
                raise ValueError(f"Task field {field!r} is not updatable")
            if field == "time_block":
                value = TimeBlock(value)
            setattr(task, field, value)
        await self._session.commit()
        await self._session.refresh(task)
        return task

    async def delete(self, task_id: int) -> bool:
        result = await self._session.execute(
            delete(Task).where(Task.id == task_id, Task.user_id == self._owner_id)
        )
        await self._session.commit()
        return (result.rowcount or 0) > 0
