"""PostgreSQL persistence through SQLAlchemy's asyncio extension and asyncpg.

``session`` owns the engine, ``base`` the declarative metadata, and
``repository`` the generic CRUD accessor that domain repositories extend.
"""

from addressbook.infrastructure.database.base import Base, BaseModel
from addressbook.infrastructure.database.dependencies import DatabaseSession, get_db
from addressbook.infrastructure.database.repository import BaseRepository
from addressbook.infrastructure.database.session import (
    check_database_connection,
    close_database,
    get_async_session,
)

__all__ = [
    "Base",
    "BaseModel",
    "BaseRepository",
    "DatabaseSession",
    "check_database_connection",
    "close_database",
    "get_async_session",
    "get_db",
]
