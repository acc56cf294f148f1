"""Gateway database engine and session factory.

Delivery tasks open their own sessions from ``async_session_factory``; request
handlers get one through ``get_db``.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gateway.config import get_settings
from src.db import build_engine

engine = build_engine(get_settings().database_url)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session
