"""SQLAlchemy implementation of UserRepository."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from planner.models.base import utcnow
from planner.models.user import User

logger = logging.getLogger(__name__)


class SqlAlchemyUserRepository:
    """Concrete UserRepository backed by SQLAlchemy async sessions."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_external_id(self, external_id: str) -> Optional[User]:
        """Look up a user by identity-provider subject."""
        result = await self._session.execute(
            select(User).where(User.external_id == external_id)
        )
        return result.scalar_one_or_none()

    async def upsert_on_sign_in(
        self,
        external_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> User:
        user = await self.get_by_external_id(external_id)
        if user is None:
            user = User(
                external_id=external_id, name=name, email=email, image_url=image_url
            )
            self._session.add(user)
            logger.info(f"Registered new user external_id={external_id}")
        else:
            user.name = name
            user.email = email
            user.image_url = image_url
            user.last_signed_in = utcnow()
        await self._session.commit()
        await self._session.refresh(user)
        return user
