"""User routes."""

from fastapi import APIRouter, Depends

from billing.models.user import User
from billing.schemas.auth import UserInfo
from billing.services.auth_service import get_current_user

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserInfo)
async def me(user: User = Depends(get_current_user)):
    return user
