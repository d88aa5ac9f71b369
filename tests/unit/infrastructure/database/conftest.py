"""Mocked SQLAlchemy objects for the database layer tests."""

from collections.abc import Generator
from typing import cast

import pytest
from pytest_mock import MockerFixture, MockType
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from addressbook.infrastructure.database.session import _DatabaseManager


@pytest.fixture
def mock_async_engine(mocker: MockerFixture) -> MockType:
    """Engine whose ``connect()`` yields a connection that answers any query."""
    connection = mocker.AsyncMock()
    connection.__aenter__.return_value = connection
    connection.__aexit__.return_value = None
    connection.execute.return_value = mocker.Mock(scalar=mocker.Mock(return_value=1))

    engine = mocker.Mock(spec=AsyncEngine)
    engine.connect = mocker.Mock(return_value=connection)
    engine.dispose = mocker.AsyncMock()
    engine.sync_engine = mocker.Mock()
    return cast("MockType", engine)


@pytest.fixture
def mock_async_session(mocker: MockerFixture) -> MockType:
    session = mocker.Mock(spec=AsyncSession)
    for method in ("commit", "rollback", "close", "execute"):
        setattr(session, method, mocker.AsyncMock())
    return cast("MockType", session)


@pytest.fixture
def patched_session_factory(
    mocker: MockerFixture, mock_async_session: MockType
) -> MockType:
    """Route ``get_session_factory()()`` to ``mock_async_session``."""
    factory = mocker.Mock(return_value=mock_async_session)
    mocker.patch(
        "addressbook.infrastructure.database.session.get_session_factory",
        return_value=factory,
    )
    return cast("MockType", factory)


@pytest.fixture
def mock_execution_context(mocker: MockerFixture) -> MockType:
    return cast("MockType", mocker.Mock())


@pytest.fixture
def database_manager_fixture() -> Generator[_DatabaseManager]:
    manager = _DatabaseManager()
    yield manager
    manager.reset()
