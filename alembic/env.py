"""Migrations for the billing schema, run through the engine builder the app uses."""

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection

from billing.models import Base
from src.db import build_engine, normalize_database_url

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    return normalize_database_url(os.environ.get("DATABASE_URL") or config.get_main_option("sqlalchemy.url"))


def _run(**configure_args) -> None:
    context.configure(target_metadata=target_metadata, compare_type=True, **configure_args)
    with context.begin_transaction():
        context.run_migrations()


def _run_on(connection: Connection) -> None:
    _run(connection=connection)


async def _run_online() -> None:
    engine = build_engine(_database_url())
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_on)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    # SQL script only
    _run(url=_database_url(), literal_binds=True)
else:
    asyncio.run(_run_online())
