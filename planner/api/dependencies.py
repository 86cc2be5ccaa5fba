"""FastAPI dependencies: database session, caller identity, repositories."""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db_session_dependency
from ..core.security import InvalidSessionToken, verify_session_token
from ..infrastructure.repositories import (
    SqlAlchemyNoteRepository,
    SqlAlchemyTaskRepository,
    SqlAlchemyUserRepository,
    SqlAlchemyWeeklySummaryRepository,
    SqlAlchemyWeekSettingsRepository,
)
from ..models.user import User
from ..utils.week import parse_week_id

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    session: AsyncSession = Depends(get_db_session_dependency),
) -> Optional[User]:
    """Resolve the caller from a bearer session token, or None."""
    if credentials is None:
        return None
    try:
        claims = verify_session_token(credentials.credentials)
    except InvalidSessionToken as e:
        logger.info(f"Rejected session token: {e}")
        return None

    repo = SqlAlchemyUserRepository(session)
    return await repo.upsert_on_sign_in(
        external_id=claims.subject,
        name=claims.name,
        email=claims.email,
        image_url=claims.image_url,
    )


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def valid_week_id(week_id: str) -> str:
    """Path dependency rejecting anything that is not a real ISO week."""
    parse_week_id(week_id)
    return week_id


def get_task_repository(
    session: AsyncSession = Depends(get_db_session_dependency),
    user: User = Depends(get_current_user),
) -> SqlAlchemyTaskRepository:
    return SqlAlchemyTaskRepository(session, user.id)


def get_note_repository(
    session: AsyncSession = Depends(get_db_session_dependency),
    user: User = Depends(get_current_user),
) -> SqlAlchemyNoteRepository:
    return SqlAlchemyNoteRepository(session, user.id)


def get_summary_repository(
    session: AsyncSession = Depends(get_db_session_dependency),
    user: User = Depends(get_current_user),
) -> SqlAlchemyWeeklySummaryRepository:
    return SqlAlchemyWeeklySummaryRepository(session, user.id)


def get_settings_repository(
    session: AsyncSession = Depends(get_db_session_dependency),
    user: User = Depends(get_current_user),
) -> SqlAlchemyWeekSettingsRepository:
    return SqlAlchemyWeekSettingsRepository(session, user.id)
