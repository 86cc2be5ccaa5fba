import logging
from typing import Optional

from fastapi import APIRouter, Depends

from ..infrastructure.repositories import SqlAlchemyNoteRepository
from .dependencies import get_note_repository, valid_week_id
from .schemas import NoteOut, NoteUpsert

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["notes"])


@router.get("/{week_id}", response_model=Optional[NoteOut])
async def get_note_for_week(
    week_id: str = Depends(valid_week_id),
    repo: SqlAlchemyNoteRepository = Depends(get_note_repository),
) -> Optional[NoteOut]:
    note = await repo.get_for_week(week_id)
    return NoteOut.model_validate(note) if note else None


@router.put("/{week_id}", response_model=NoteOut)
async def upsert_note(
    request: NoteUpsert,
    week_id: str = Depends(valid_week_id),
    repo: SqlAlchemyNoteRepository = Depends(get_note_repository),
) -> NoteOut:
    note = await repo.upsert(week_id, content=request.content)
    return NoteOut.model_validate(note)
