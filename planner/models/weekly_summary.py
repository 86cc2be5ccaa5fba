"""Weekly summary journal: keyword, seven daily entries and a reflection."""

import json
import logging
from typing import Dict, Optional

from sqlalchemy import Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin

logger = logging.getLogger(__name__)


def parse_daily_entries(raw: Optional[str]) -> Dict[str, str]:
    """Decode the stored daily-entries JSON, or ``{}`` if absent or malformed."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Discarding malformed daily entries payload")
        return {}
    if not isinstance(parsed, dict):
        return {}
    return {str(k): v for k, v in parsed.items() if isinstance(v, str)}


class WeeklySummary(Base, TimestampMixin):
    __tablename__ = "weekly_summaries"
    __table_args__ = (
        UniqueConstraint("user_id", "week_id", name="uq_weekly_summaries_user_week"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    week_id: Mapped[str] = mapped_column(String(10), nullable=False)
    keyword: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # JSON object keyed "0".."6" (Monday..Sunday)
    daily_entries: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reflection: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def get_daily_entries(self) -> Dict[str, str]:
        return parse_daily_entries(self.daily_entries)

    def __repr__(self) -> str:
        return f"<WeeklySummary(user_id={self.user_id}, week_id={self.week_id})>"
