"""Per-week layout and custom banner settings."""

import json
import logging
from typing import Dict, Optional

from sqlalchemy import Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin

logger = logging.getLogger(__name__)


def parse_column_widths(raw: Optional[str]) -> Dict[int, int]:
    """Decode the sparse ``{"dayIndex": px}`` map, or ``{}`` if malformed."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Discarding malformed column widths payload")
        return {}
    if not isinstance(parsed, dict):
        return {}
    widths: Dict[int, int] = {}
    for key, value in parsed.items():
        try:
            widths[int(key)] = int(value)
        except (TypeError, ValueError):
            continue
    return widths


def dump_column_widths(widths: Dict[int, int]) -> str:
    return json.dumps({str(k): v for k, v in sorted(widths.items())})


class WeekSettings(Base, TimestampMixin):
    __tablename__ = "week_settings"
    __table_args__ = (
        UniqueConstraint("user_id", "week_id", name="uq_week_settings_user_week"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    week_id: Mapped[str] = mapped_column(String(10), nullable=False)
    column_widths: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Reserved, stored the same way as column widths
    row_heights: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    custom_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    custom_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def get_column_widths(self) -> Dict[int, int]:
        return parse_column_widths(self.column_widths)

    def __repr__(self) -> str:
        return f"<WeekSettings(user_id={self.user_id}, week_id={self.week_id})>"
