"""Operational endpoints: health and service info."""

from typing import Annotated, Any, cast

from fastapi import APIRouter, Depends
from loguru import logger

from addressbook.core.config import Settings, get_settings
from addressbook.infrastructure.database.session import (
    check_database_connection,
    get_engine,
)

router = APIRouter(tags=["system"])


@router.get("/health")
async def health() -> dict[str, object]:
    """Report liveness and database connectivity.

    The service answers 200 even without a database; ``status`` is then
    ``degraded`` so health checks can tell the difference.

    Returns:
        dict[str, object]: A dictionary with status and database connectivity.
    """
    is_healthy, error_msg = await check_database_connection()

    if not is_healthy:
        logger.warning("Database health check failed: {}", error_msg)
        return {"status": "degraded", "database": False}

    pool = cast("Any", get_engine().pool)
    logger.bind(
        metric_type="db.pool.health",
        checked_out=pool.checkedout(),
        size=pool.size(),
        overflow=pool.overflow(),
    ).info("Database pool health check")

    return {"status": "healthy", "database": True}


@router.get("/info")
async def info(
    app_settings: Annotated[Settings, Depends(get_settings)],
) -> dict[str, Any]:
    """Get application name, version and environment."""
    return {
        "app_name": app_settings.app_name,
        "version": app_settings.app_version,
        "environment": app_settings.environment,
        "debug": app_settings.debug,
    }
