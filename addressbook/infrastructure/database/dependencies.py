"""Request-scoped database session for FastAPI routes."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from addressbook.infrastructure.database.session import get_async_session


async def get_db() -> AsyncGenerator[AsyncSession]:
    """Yield one session per request.

    The transaction commits as soon as the route function returns, before
    the response is sent, so a failed commit still reaches the client as an
    error. If the route raises, FastAPI throws the exception back in here
    and the session rolls back.
    """
    async with get_async_session() as session:
        yield session


DatabaseSession = Annotated[AsyncSession, Depends(get_db, scope="function")]
