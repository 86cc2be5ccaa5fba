from .sqlalchemy_task_repository import SqlAlchemyTaskRepository
from .sqlalchemy_user_repository import SqlAlchemyUserRepository
from .sqlalchemy_week_repositories import (
    SqlAlchemyNoteRepository,
    SqlAlchemyWeeklySummaryRepository,
    SqlAlchemyWeekSettingsRepository,
)

__all__ = [
    "SqlAlchemyNoteRepository",
    "SqlAlchemyTaskRepository",
    "SqlAlchemyUserRepository",
    "SqlAlchemyWeeklySummaryRepository",
    "SqlAlchemyWeekSettingsRepository",
]
