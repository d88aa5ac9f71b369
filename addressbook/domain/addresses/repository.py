"""Repository for address persistence."""

from sqlalchemy.ext.asyncio import AsyncSession

from addressbook.domain.addresses.models import Address
from addressbook.infrastructure.database.repository import BaseRepository


class AddressRepository(BaseRepository[Address]):
    """Storage accessor for ``Address`` rows."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Address)
