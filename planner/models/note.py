from typing import Optional

from sqlalchemy import Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class Note(Base, TimestampMixin):
    """Free-text note attached to one ISO week."""

    __tablename__ = "notes"
    __table_args__ = (UniqueConstraint("user_id", "week_id", name="uq_notes_user_week"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    week_id: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-Www
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Note(user_id={self.user_id}, week_id={self.week_id})>"
