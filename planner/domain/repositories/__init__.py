from .task_repository import TaskRepository
from .user_repository import UserRepository
from .week_repository import (
    NoteRepository,
    WeeklySummaryRepository,
    WeekSettingsRepository,
)

__all__ = [
    "NoteRepository",
    "TaskRepository",
    "UserRepository",
    "WeeklySummaryRepository",
    "WeekSettingsRepository",
]
