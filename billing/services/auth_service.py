"""Password hashing, JWT bearer tokens and the get_current_user dependency."""

from datetime import datetime, timedelta, UTC

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billing.config import get_settings
from billing.db.session import get_db
from billing.models.user import User
from billing.services.errors import AuthenticationError

AUTH_SCHEME = HTTPBearer(auto_error=False)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, encoded_hash: str) -> bool:
    """Check a password against its stored hash; unknown or malformed hashes never match."""
    try:
        return pwd_context.verify(password, encoded_hash)
    except ValueError:
        return False


def create_jwt(user_id: str, email: str) -> str:
    """Create a signed JWT for the given user."""
    settings = get_settings()
    payload = {
        "sub": user_id,
        "email": email,
        "exp": datetime.now(UTC) + timedelta(minutes=settings.jwt_expire_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _decode_jwt(token: str) -> dict:
    settings = get_settings()
    return jwt.decode(
        token, settings.jwt_secret, algorithms=[settings.jwt_algorithm],
        options={"require": ["exp", "sub"]},
    )


async def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(AUTH_SCHEME),
    db: AsyncSession = Depends(get_db),
) -> User:
    """FastAPI dependency: decode the bearer token and return the User, or raise 401."""
    if creds is None or not creds.credentials:
        raise AuthenticationError("Not authenticated")
    try:
        payload = _decode_jwt(creds.credentials)
        user_id = str(payload["sub"])
    except (jwt.PyJWTError, KeyError):
        raise AuthenticationError("Invalid or expired token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise AuthenticationError("User not found")
    return user
