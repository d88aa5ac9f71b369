"""Declarative base shared by every mapped table.

``Base.metadata`` is what Alembic compares against the database, so its
constraint naming convention keeps generated migration names stable.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, MetaData, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from addressbook.infrastructure.constants import NAMING_CONVENTION


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class BaseModel(Base):
    """Abstract table with a surrogate key and audit timestamps.

    ``id`` is a database-assigned BigInteger. Both timestamps are filled in
    by PostgreSQL; ``updated_at`` also moves on every UPDATE.
    """

    __abstract__ = True

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"
