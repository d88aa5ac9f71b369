"""Engine, session factory and unit-of-work helpers for PostgreSQL.

One engine per process is built on first use and disposed at shutdown.
``get_async_session`` wraps a single unit of work: commit when the block
finishes, rollback when it raises.

With ``LOG_CONFIG__ENABLE_SQL_LOGGING`` on, two cursor listeners time each
statement and emit a warning for anything over the slow query threshold.
"""

import threading
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from weakref import WeakKeyDictionary

from loguru import logger
from sqlalchemy import event, text
from sqlalchemy.engine import Connection
from sqlalchemy.engine.interfaces import DBAPICursor, ExecutionContext
from sqlalchemy.exc import ArgumentError, InvalidRequestError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from addressbook.core.config import get_settings
from addressbook.core.constants import MILLISECONDS_PER_SECOND
from addressbook.core.context import RequestContext
from addressbook.core.error_context import sanitize_sql_params
from addressbook.infrastructure.constants import (
    COMMAND_TIMEOUT_SECONDS,
    MAX_LOGGED_STATEMENT_LENGTH,
    POOL_RECYCLE_SECONDS,
)

type SQLParameters = dict[str, Any] | list[Any] | tuple[Any, ...] | None

_query_start_times: WeakKeyDictionary[ExecutionContext, float] = WeakKeyDictionary()


def _before_cursor_execute(
    _conn: Connection,
    _cursor: DBAPICursor,
    _statement: str,
    _parameters: SQLParameters,
    context: ExecutionContext,
    _executemany: bool,
) -> None:
    _query_start_times[context] = time.time()


def _after_cursor_execute(
    _conn: Connection,
    cursor: DBAPICursor,
    statement: str,
    parameters: SQLParameters,
    context: ExecutionContext,
    executemany: bool,
) -> None:
    """Warn about a statement that exceeded the slow query threshold.

    Statements whose start was never recorded are ignored.
    """
    started = _query_start_times.pop(context, None)
    if started is None:
        return

    log_config = get_settings().log_config
    elapsed_ms = round((time.time() - started) * MILLISECONDS_PER_SECOND, 2)
    if not log_config.enable_sql_logging:
        return
    if elapsed_ms < log_config.slow_query_threshold_ms:
        return

    rowcount = getattr(cursor, "rowcount", None)
    query = " ".join(statement.split())[:MAX_LOGGED_STATEMENT_LENGTH]

    logger.warning(
        "Slow query took {}ms: {}",
        elapsed_ms,
        query,
        query=query,
        duration_ms=elapsed_ms,
        threshold_ms=log_config.slow_query_threshold_ms,
        rows_affected=-1 if rowcount is None else rowcount,
        parameters=sanitize_sql_params(parameters),
        executemany=executemany,
        correlation_id=RequestContext.get_correlation_id(),
    )


def _register_query_timing(engine: AsyncEngine) -> None:
    # Cursor events exist on the sync engine only
    try:
        event.listen(
            engine.sync_engine, "before_cursor_execute", _before_cursor_execute
        )
        event.listen(engine.sync_engine, "after_cursor_execute", _after_cursor_execute)
    except (InvalidRequestError, ArgumentError, AttributeError, TypeError) as e:
        logger.warning("Query timing listeners not registered: {!r}", e)
        return
    logger.info("Query timing listeners registered")


def create_database_engine(database_url: str | None = None) -> AsyncEngine:
    """Build a pooled asyncpg engine from ``DatabaseConfig``.

    Args:
        database_url: Overrides the configured URL, for example in migrations.

    Returns:
        AsyncEngine: A new engine. Callers own its disposal.
    """
    settings = get_settings()
    db = settings.database_config

    engine = create_async_engine(
        database_url or db.database_url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_pre_ping=db.pool_pre_ping,
        pool_recycle=POOL_RECYCLE_SECONDS,
        connect_args={
            "command_timeout": COMMAND_TIMEOUT_SECONDS,
            "server_settings": {"jit": "off"},
        },
    )

    if settings.log_config.enable_sql_logging:
        _register_query_timing(engine)

    logger.info(
        "Database engine ready",
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        sql_logging=settings.log_config.enable_sql_logging,
    )
    return engine


class _DatabaseManager:
    """Lazily built engine and session factory shared by the process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    def get_engine(self) -> AsyncEngine:
        with self._lock:
            if self._engine is None:
                self._engine = create_database_engine()
            return self._engine

    def get_session_factory(self) -> async_sessionmaker[AsyncSession]:
        engine = self.get_engine()
        with self._lock:
            if self._session_factory is None:
                self._session_factory = async_sessionmaker(
                    engine, class_=AsyncSession, expire_on_commit=False
                )
            return self._session_factory

    async def close(self) -> None:
        """Dispose the pool, if one was ever opened."""
        engine, self._engine = self._engine, None
        self._session_factory = None
        if engine is not None:
            await engine.dispose()
            logger.info("Database engine disposed")

    def reset(self) -> None:
        self._engine = None
        self._session_factory = None


_db_manager = _DatabaseManager()


def get_engine() -> AsyncEngine:
    return _db_manager.get_engine()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return _db_manager.get_session_factory()


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Open a session that commits on success and rolls back on error.

    Example:
        async with get_async_session() as session:
            await session.execute(select(Address))
    """
    session = get_session_factory()()
    try:
        yield session
    except Exception:
        await session.rollback()
        logger.debug("Session rolled back")
        raise
    else:
        await session.commit()
    finally:
        await session.close()


async def close_database() -> None:
    await _db_manager.close()


async def check_database_connection() -> tuple[bool, str | None]:
    """Run ``SELECT 1`` against the database.

    Returns:
        tuple[bool, str | None]: ``(True, None)`` when the query succeeds,
            otherwise ``(False, error message)``.
    """
    try:
        async with get_engine().connect() as connection:
            await connection.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        return False, str(e)
    return True, None
