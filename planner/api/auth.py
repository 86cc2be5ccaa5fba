from typing import Optional

from fastapi import APIRouter, Depends

from ..models.user import User
from .dependencies import get_optional_user
from .schemas import UserOut

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/me", response_model=Optional[UserOut])
async def me(user: Optional[User] = Depends(get_optional_user)) -> Optional[UserOut]:
    """The signed-in user, or null for anonymous callers."""
    return UserOut.model_validate(user) if user else None
