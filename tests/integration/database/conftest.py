"""Fixtures for tests that talk to a real SQLAlchemy engine.

An in-memory SQLite database reached through aiosqlite stands in for
PostgreSQL. The table is created from DDL text because SQLite only
autoincrements an ``INTEGER PRIMARY KEY``, not the BigInteger key the
model declares.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from addressbook.domain.addresses.models import Address
from addressbook.domain.addresses.repository import AddressRepository

ADDRESSES_DDL = text(
    "CREATE TABLE addresses ("
    "id INTEGER PRIMARY KEY, "
    "street VARCHAR(200) NOT NULL, "
    "house_number INTEGER NOT NULL, "
    "zip_code VARCHAR(20) NOT NULL, "
    "city VARCHAR(100) NOT NULL, "
    "country VARCHAR(100) NOT NULL, "
    "created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP, "
    "updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP"
    ")"
)

PARIS_FIELDS: dict[str, Any] = {
    "street": "Rue de Rivoli",
    "house_number": 99,
    "zip_code": "75001",
    "city": "Paris",
    "country": "France",
}


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Fresh in-memory database holding an empty addresses table."""
    # StaticPool keeps the single in-memory connection alive between sessions
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as connection:
        await connection.execute(ADDRESSES_DDL)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def fetch_address(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[int], Awaitable[Address | None]]:
    """Read a row through a separate session, as another request would."""

    async def _fetch(address_id: int) -> Address | None:
        async with session_factory() as session:
            return await AddressRepository(session).get_by_id(address_id)

    return _fetch


@pytest.fixture
async def stored_address(session_factory: async_sessionmaker[AsyncSession]) -> Address:
    """The Paris address, committed."""
    async with session_factory() as session:
        address = await AddressRepository(session).create(Address(**PARIS_FIELDS))
        await session.commit()
    return address
