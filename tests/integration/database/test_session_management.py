"""Commit and rollback behavior of get_async_session on a real engine."""

from collections.abc import Awaitable, Callable

import pytest
from pytest_mock import MockerFixture
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from addressbook.domain.addresses.models import Address
from addressbook.domain.addresses.repository import AddressRepository
from addressbook.infrastructure.database.session import get_async_session

FetchAddress = Callable[[int], Awaitable[Address | None]]

ROME_FIELDS = {
    "street": "Via del Corso",
    "house_number": 12,
    "zip_code": "00186",
    "city": "Rome",
    "country": "Italy",
}


@pytest.fixture(autouse=True)
def use_test_engine(
    mocker: MockerFixture, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    mocker.patch(
        "addressbook.infrastructure.database.session.get_session_factory",
        return_value=session_factory,
    )


@pytest.mark.integration
class TestGetAsyncSession:
    """Unit of work around one block."""

    async def test_commits_when_block_finishes(
        self, fetch_address: FetchAddress
    ) -> None:
        async with get_async_session() as session:
            created = await AddressRepository(session).create(Address(**ROME_FIELDS))

        stored = await fetch_address(created.id)
        assert stored is not None
        assert stored.city == "Rome"

    async def test_rolls_back_when_block_raises(
        self, fetch_address: FetchAddress
    ) -> None:
        with pytest.raises(RuntimeError, match="request failed"):
            async with get_async_session() as session:
                await AddressRepository(session).create(Address(**ROME_FIELDS))
                raise RuntimeError("request failed")

        assert await fetch_address(1) is None
