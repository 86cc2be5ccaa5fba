import logging
from typing import Optional

from fastapi import APIRouter, Depends

from ..infrastructure.repositories import SqlAlchemyWeeklySummaryRepository
from .dependencies import get_summary_repository, valid_week_id
from .schemas import WeeklySummaryOut, WeeklySummaryUpsert

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/weekly-summary", tags=["weekly-summary"])


@router.get("/{week_id}", response_model=Optional[WeeklySummaryOut])
async def get_weekly_summary(
    week_id: str = Depends(valid_week_id),
    repo: SqlAlchemyWeeklySummaryRepository = Depends(get_summary_repository),
) -> Optional[WeeklySummaryOut]:
    summary = await repo.get_for_week(week_id)
    return WeeklySummaryOut.model_validate(summary) if summary else None


@router.put("/{week_id}", response_model=WeeklySummaryOut)
async def upsert_weekly_summary(
    request: WeeklySummaryUpsert,
    week_id: str = Depends(valid_week_id),
    repo: SqlAlchemyWeeklySummaryRepository = Depends(get_summary_repository),
) -> WeeklySummaryOut:
    """Write only the fields present in the body; explicit nulls clear."""
    summary = await repo.upsert(week_id, **request.model_dump(exclude_unset=True))
    return WeeklySummaryOut.model_validate(summary)
