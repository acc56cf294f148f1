"""Async engine helpers shared by the billing and gateway services."""

from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

_DRIVER_REWRITES = {
    "postgresql://": "postgresql+asyncpg://",
    "sqlite:///": "sqlite+aiosqlite:///",
}


def normalize_database_url(url: str) -> str:
    """Pick the async driver for plain postgresql:// and sqlite:/// URLs."""
    for plain, async_prefix in _DRIVER_REWRITES.items():
        if url.startswith(plain):
            return url.replace(plain, async_prefix, 1)
    return url


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine; SQLite files get their directory created first."""
    url = normalize_database_url(url)
    if url.startswith("sqlite+aiosqlite:///"):
        db_path = url.split("///", 1)[-1]
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return create_async_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_async_engine(url, echo=echo, pool_pre_ping=True)
