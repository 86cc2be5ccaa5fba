from .base import Base, TimestampMixin
from .note import Note
from .task import Task, TimeBlock
from .user import User
from .week_settings import WeekSettings
from .weekly_summary import WeeklySummary

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "Task",
    "TimeBlock",
    "Note",
    "WeeklySummary",
    "WeekSettings",
]
