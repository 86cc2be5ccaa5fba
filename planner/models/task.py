import enum

from sqlalchemy import Boolean, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class TimeBlock(str, enum.Enum):
    """Fixed daily segments a task is bucketed into."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class Task(Base, TimestampMixin):
    __tablename__ = "tasks"
    __table_args__ = (Index("ix_tasks_user_date", "user_id", "date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD
    time_block: Mapped[TimeBlock] = mapped_column(
        Enum(TimeBlock, name="time_block", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def toggle(self) -> None:
        self.completed = not self.completed

    def __repr__(self) -> str:
        return (
            f"<Task(id={self.id}, date={self.date}, "
            f"time_block={self.time_block.value}, completed={self.completed})>"
        )
