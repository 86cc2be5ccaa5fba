"""SQLAlchemy implementations of the week-keyed repositories.

Notes, weekly summaries and week settings share one shape: a single row per
(owner, week id), created on first write and patched field-by-field after.
"""

import logging
from typing import Any, Optional, Tuple, Type

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from planner.models.note import Note
from planner.models.week_settings import WeekSettings
from planner.models.weekly_summary import WeeklySummary

logger = logging.getLogger(__name__)


class _WeekScopedRepository:
    model: Type[Any]
    fields: Tuple[str, ...] = ()

    def __init__(self, session: AsyncSession, owner_id: int) -> None:
        self._session = session
        self._owner_id = owner_id

    async def get_for_week(self, week_id: str) -> Optional[Any]:
        result = await self._session.execute(
            select(self.model).where(
                self.model.user_id == self._owner_id,
                self.model.week_id == week_id,
            )
        )
        return result.scalar_one_or_none()

    async def upsert(self, week_id: str, **fields: Any) -> Any:
        unknown = set(fields) - set(self.fields)
        if unknown:
            raise ValueError(f"Unknown {self.model.__name__} fields: {sorted(unknown)}")

        row = await self.get_for_week(week_id)
        if row is None:
            row = self.model(user_id=self._owner_id, week_id=week_id, **fields)
            self._session.add(row)
            try:
                await self._session.commit()
            except IntegrityError:
                # Another request created the row first; patch that one instead
                await self._session.rollback()
                logger.info(
                    f"{self.model.__name__} for {week_id} created concurrently, updating"
                )
                row = await self.get_for_week(week_id)
                self._apply(row, fields)
                await self._session.commit()
        else:
            self._apply(row, fields)
            await self._session.commit()
        await self._session.refresh(row)
        return row

    @staticmethod
    def _apply(row: Any, fields: dict) -> None:
        for name, value in fields.items():
            setattr(row, name, value)


class SqlAlchemyNoteRepository(_WeekScopedRepository):
    model = Note
    fields = ("content",)

    async def upsert(self, week_id: str, content: Optional[str] = None) -> Note:
        return await super().upsert(week_id, content=content)


class SqlAlchemyWeeklySummaryRepository(_WeekScopedRepository):
    model = WeeklySummary
    fields = ("keyword", "daily_entries", "reflection")


class SqlAlchemyWeekSettingsRepository(_WeekScopedRepository):
    model = WeekSettings
    fields = ("column_widths", "row_heights", "custom_text", "custom_image_url")
