"""Generic async repository over one mapped model.

Repositories never commit. They flush so that ids and server defaults come
back, and leave the transaction to whoever owns the session.
"""

from loguru import logger
from sqlalchemy import delete, func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import make_transient_to_detached
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from addressbook.infrastructure.database.base import BaseModel

# Never written by ``replace``
_MANAGED_COLUMNS = frozenset({"id", "created_at", "updated_at"})


class BaseRepository[T: BaseModel]:
    """Storage operations shared by every table.

    Args:
        session: Session bound to the current unit of work.
        model_class: Mapped class whose rows this repository reads and writes.

    Example:
        class AddressRepository(BaseRepository[Address]):
            def __init__(self, session: AsyncSession) -> None:
                super().__init__(session, Address)
    """

    def __init__(self, session: AsyncSession, model_class: type[T]) -> None:
        self.session = session
        self.model_class = model_class
        self.replaceable_columns = tuple(
            column.key
            for column in inspect(model_class).column_attrs
            if column.key not in _MANAGED_COLUMNS
        )

    @property
    def _name(self) -> str:
        return self.model_class.__name__

    async def get_by_id(self, entity_id: int) -> T | None:
        result = await self.session.execute(
            select(self.model_class).where(self.model_class.id == entity_id)
        )
        return result.scalar_one_or_none()

    async def get_all(self) -> list[T]:
        """Load every row, lowest id first."""
        result = await self.session.execute(
            select(self.model_class).order_by(self.model_class.id)
        )
        rows = list(result.scalars().all())
        logger.debug("Loaded {} {} rows", len(rows), self._name)
        return rows

    async def create(self, obj: T) -> T:
        """Insert ``obj`` and load its generated id and timestamps."""
        self.session.add(obj)
        await self.session.flush()
        await self.session.refresh(obj)
        logger.debug("Inserted {} {}", self._name, obj.id)
        return obj

    async def replace(self, obj: T) -> T:
        """Write every replaceable column of ``obj`` over the row ``obj.id``.

        The row is not read first. ``obj`` is attached as though it had been
        loaded and all replaceable columns are flagged dirty, so the flush
        emits exactly one UPDATE.

        Raises:
            StaleDataError: The UPDATE matched no row. The session is rolled
                back before this propagates.
        """
        # A failed flush expires obj, so its id is unreadable afterwards
        entity_id = obj.id
        make_transient_to_detached(obj)
        self.session.add(obj)
        for column in self.replaceable_columns:
            flag_modified(obj, column)

        try:
            await self.session.flush()
        except StaleDataError:
            await self.session.rollback()
            logger.debug("UPDATE of {} {} matched no row", self._name, entity_id)
            raise

        await self.session.refresh(obj)
        return obj

    async def delete(self, entity_id: int) -> bool:
        """Delete the row with ``entity_id``; False when there was none."""
        result = await self.session.execute(
            delete(self.model_class).where(self.model_class.id == entity_id)
        )
        return result.rowcount > 0

    async def exists(self, entity_id: int) -> bool:
        count = await self.session.execute(
            select(func.count())
            .select_from(self.model_class)
            .where(self.model_class.id == entity_id)
        )
        return bool(count.scalar())
