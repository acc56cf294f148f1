"""User registration and credential checks."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billing.models.user import User
from billing.schemas.auth import LoginRequest, RegisterRequest
from billing.services.auth_service import create_jwt, hash_password, verify_password
from billing.services.errors import AuthenticationError, ConflictError

logger = logging.getLogger(__name__)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def register_user(db: AsyncSession, data: RegisterRequest) -> User:
    if await get_user_by_email(db, data.email):
        raise ConflictError("Email already exists")

    user = User(
        email=data.email.lower(),
        name=data.name,
        password_hash=hash_password(data.password),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


async def authenticate(db: AsyncSession, data: LoginRequest) -> str:
    """Check credentials and return a signed access token."""
    user = await get_user_by_email(db, data.email)
    if not user or not verify_password(data.password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    return create_jwt(user.id, user.email)
