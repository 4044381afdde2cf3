"""
Alembic environment for the harvester store.

The database URL is resolved in order from ``alembic -x url=...``, the
DATABASE_URL environment variable (the same one HarvestSettings reads) and
``sqlalchemy.url`` in alembic.ini. Online migrations run over the async
engine, so the asyncpg URL used by the service works here unchanged.
The migrations target PostgreSQL with TimescaleDB; SQLite development
databases are created by ``create_schema`` instead.

CHANGELOG:
- 2026-10-19: Accept the URL from -x arguments (STORY-008)
- 2026-10-19: Initial creation (STORY-008)

TODO:
- None
"""

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from harvest.src.db.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def resolve_database_url() -> str:
    """Return the URL migrations should run against.

    Raises:
        RuntimeError: If no URL is configured anywhere.
    """
    url = (
        context.get_x_argument(as_dictionary=True).get("url")
        or os.environ.get("DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
    )
    if not url:
        raise RuntimeError(
            "No database URL: pass -x url=..., set DATABASE_URL or sqlalchemy.url"
        )
    return url


def _configure_and_run(**options: object) -> None:
    context.configure(target_metadata=Base.metadata, **options)
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection: Connection) -> None:
    _configure_and_run(connection=connection)


async def _run_online(url: str) -> None:
    engine = create_async_engine(url, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync)
    finally:
        await engine.dispose()


url = resolve_database_url()
if context.is_offline_mode():
    _configure_and_run(
        url=url, literal_binds=True, dialect_opts={"paramstyle": "named"}
    )
else:
    asyncio.run(_run_online(url))
