"""Protocols for entities keyed by (owner, week id)."""

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class NoteRepository(Protocol):
    """One free-text note per (owner, week)."""

    async def get_for_week(self, week_id: str) -> Optional[object]:
        ...

    async def upsert(self, week_id: str, content: Optional[str]) -> object:
        ...


@runtime_checkable
class WeeklySummaryRepository(Protocol):
    """One summary journal per (owner, week)."""

    async def get_for_week(self, week_id: str) -> Optional[object]:
        ...

    async def upsert(self, week_id: str, **fields: Any) -> object:
        """Create-or-update, touching only the fields passed in.

        A field passed as None is cleared; a field omitted is left alone.
        """
        ...


@runtime_checkable
class WeekSettingsRepository(Protocol):
    """One layout/banner settings row per (owner, week)."""

    async def get_for_week(self, week_id: str) -> Optional[object]:
        ...

    async def upsert(self, week_id: str, **fields: Any) -> object:
        """Create-or-update, touching only the fields passed in."""
        ...
