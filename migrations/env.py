"""Alembic entry point for the addressbook schema.

Migrations reuse ``Settings.database_config`` for the connection URL, so the
``sqlalchemy.url`` in alembic.ini is never read. Online runs go through an
asyncpg engine without a pool.
"""

import asyncio
import logging

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from addressbook.core.config import get_settings
from addressbook.domain.addresses import models  # noqa: F401 - registers tables
from addressbook.infrastructure.database.base import Base

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata

# Detect column type and server default drift in autogenerate
COMPARE_OPTIONS = {"compare_type": True, "compare_server_default": True}


def _configure_and_run(**configure_kwargs: object) -> None:
    context.configure(
        target_metadata=target_metadata, **COMPARE_OPTIONS, **configure_kwargs
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    """Write the migration SQL to stdout instead of executing it."""
    logger.info("Generating migration SQL (offline)")
    _configure_and_run(
        url=get_settings().database_config.database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )


def do_run_migrations(connection: Connection) -> None:
    _configure_and_run(connection=connection)


async def run_async_migrations() -> None:
    database = get_settings().database_config
    engine = async_engine_from_config(
        {
            "sqlalchemy.url": database.database_url,
            "sqlalchemy.echo": database.echo,
        },
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    logger.info("Applying migrations to the database (online)")
    try:
        async with engine.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
