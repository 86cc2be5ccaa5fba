"""Request/response models shared by the HTTP API and the sync client."""

from datetime import datetime
from typing import Annotated, Any, Dict, Optional

from pydantic import AfterValidator, BaseModel, Field, field_validator, model_validator

from ..models.task import TimeBlock
from ..utils.week import is_valid_date


def _check_date(value: str) -> str:
    if not is_valid_date(value):
        raise ValueError("date must be YYYY-MM-DD")
    return value


DateStr = Annotated[str, AfterValidator(_check_date)]


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    content: str = Field(min_length=1)
    date: DateStr
    time_block: TimeBlock
    sort_order: Optional[int] = None

    @field_validator("content")
    @classmethod
    def _strip_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("content must not be blank")
        return value


class TaskUpdate(BaseModel):
    content: Optional[str] = None
    completed: Optional[bool] = None
    date: Optional[DateStr] = None
    time_block: Optional[TimeBlock] = None
    sort_order: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _reject_nulls(cls, data: Any) -> Any:
        # Every task column is NOT NULL; omit a field to leave it unchanged
        if isinstance(data, dict):
            nulls = sorted(k for k, v in data.items() if v is None and k in cls.model_fields)
            if nulls:
                raise ValueError(f"{', '.join(nulls)} must not be null")
        return data

    @field_validator("content")
    @classmethod
    def _strip_content(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("content must not be blank")
        return value


class TaskOut(BaseModel):
    id: int
    user_id: int
    content: str
    completed: bool
    date: str
    time_block: TimeBlock
    sort_order: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DeleteResult(BaseModel):
    deleted: bool


# ---------------------------------------------------------------------------
# Week-scoped entities
# ---------------------------------------------------------------------------


class NoteUpsert(BaseModel):
    content: Optional[str] = None


class NoteOut(BaseModel):
    id: int
    user_id: int
    week_id: str
    content: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WeeklySummaryUpsert(BaseModel):
    """Partial update; only fields present in the request are written."""

    keyword: Optional[str] = None
    daily_entries: Optional[str] = None
    reflection: Optional[str] = None


class WeeklySummaryOut(BaseModel):
    id: int
    user_id: int
    week_id: str
    keyword: Optional[str] = None
    daily_entries: Optional[str] = None
    reflection: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ColumnWidthsUpdate(BaseModel):
    column_widths: Dict[str, int]

    @field_validator("column_widths")
    @classmethod
    def _check_widths(cls, value: Dict[str, int]) -> Dict[str, int]:
        for key, width in value.items():
            if not key.isdigit() or not 0 <= int(key) <= 6:
                raise ValueError(f"column index {key!r} is not a day index 0-6")
            if width <= 0:
                raise ValueError("column widths must be positive")
        return value


class CustomContentUpdate(BaseModel):
    """Partial update; only fields present in the request are written."""

    custom_text: Optional[str] = None
    custom_image_url: Optional[str] = None


class ImageUpload(BaseModel):
    image_base64: str
    mime_type: str


class ImageUploadResult(BaseModel):
    url: str


class WeekSettingsOut(BaseModel):
    id: int
    user_id: int
    week_id: str
    column_widths: Optional[str] = None
    row_heights: Optional[str] = None
    custom_text: Optional[str] = None
    custom_image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    id: int
    external_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    image_url: Optional[str] = None
    role: str

    class Config:
        from_attributes = True
