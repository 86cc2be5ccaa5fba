import logging
from typing import Optional

from fastapi import APIRouter, Depends

from ..infrastructure.repositories import SqlAlchemyWeekSettingsRepository
from ..models.week_settings import dump_column_widths
from ..models.user import User
from ..services.storage_service import (
    BlobStorage,
    build_image_key,
    decode_image_payload,
    get_blob_storage,
)
from .dependencies import get_current_user, get_settings_repository, valid_week_id
from .schemas import (
    ColumnWidthsUpdate,
    CustomContentUpdate,
    ImageUpload,
    ImageUploadResult,
    WeekSettingsOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/week-settings", tags=["week-settings"])


@router.get("/{week_id}", response_model=Optional[WeekSettingsOut])
async def get_week_settings(
    week_id: str = Depends(valid_week_id),
    repo: SqlAlchemyWeekSettingsRepository = Depends(get_settings_repository),
) -> Optional[WeekSettingsOut]:
    settings = await repo.get_for_week(week_id)
    return WeekSettingsOut.model_validate(settings) if settings else None


@router.put("/{week_id}/column-widths", response_model=WeekSettingsOut)
async def update_column_widths(
    request: ColumnWidthsUpdate,
    week_id: str = Depends(valid_week_id),
    repo: SqlAlchemyWeekSettingsRepository = Depends(get_settings_repository),
) -> WeekSettingsOut:
    widths = {int(k): v for k, v in request.column_widths.items()}
    settings = await repo.upsert(week_id, column_widths=dump_column_widths(widths))
    return WeekSettingsOut.model_validate(settings)


@router.put("/{week_id}/custom-content", response_model=WeekSettingsOut)
async def update_custom_content(
    request: CustomContentUpdate,
    week_id: str = Depends(valid_week_id),
    repo: SqlAlchemyWeekSettingsRepository = Depends(get_settings_repository),
) -> WeekSettingsOut:
    settings = await repo.upsert(week_id, **request.model_dump(exclude_unset=True))
    return WeekSettingsOut.model_validate(settings)


@router.post("/{week_id}/custom-image", response_model=ImageUploadResult)
async def upload_custom_image(
    request: ImageUpload,
    week_id: str = Depends(valid_week_id),
    user: User = Depends(get_current_user),
    repo: SqlAlchemyWeekSettingsRepository = Depends(get_settings_repository),
    storage: BlobStorage = Depends(get_blob_storage),
) -> ImageUploadResult:
    """Store the banner image and point the week's settings at it."""
    data, mime = decode_image_payload(request.image_base64, request.mime_type)
    key = build_image_key(user.id, week_id, mime)
    url = await storage.upload(key, data, mime)
    await repo.upsert(week_id, custom_image_url=url)
    logger.info(f"Custom image for {week_id} stored at {key}")
    return ImageUploadResult(url=url)
