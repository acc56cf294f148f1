"""Auth routes: register and login with bearer tokens."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from billing.db.session import get_db
from billing.schemas.auth import LoginRequest, RegisterRequest, RegisterResponse, TokenResponse
from billing.services.user_service import authenticate, register_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    user = await register_user(db, body)
    return RegisterResponse(id=user.id)


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    token = await authenticate(db, body)
    return TokenResponse(access_token=token)
