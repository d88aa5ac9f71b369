"""Run the Addressbook API with uvicorn."""

import os
from typing import Any

import uvicorn
from loguru import logger

from addressbook.core.config import get_settings
from addressbook.core.logging import setup_logging

APP_IMPORT_PATH = "addressbook.api.main:app"
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def build_uvicorn_log_config(level: str = "INFO") -> dict[str, Any]:
    """Route uvicorn's loggers through loguru's InterceptHandler."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {
            "default": {"class": "addressbook.core.logging.InterceptHandler"},
        },
        "loggers": {
            name: {"handlers": ["default"], "level": level, "propagate": False}
            for name in UVICORN_LOGGERS
        },
    }


def main() -> None:
    """Start the server; reload is enabled in debug mode."""
    settings = get_settings()
    setup_logging(settings)

    # Cloud Run tells the container which port to listen on
    port = int(os.environ.get("PORT", settings.api_port))

    logger.info(
        "Starting Uvicorn on http://{}:{} (reload={})",
        settings.api_host,
        port,
        settings.debug,
    )
    # reload requires the app as an import string
    uvicorn.run(
        APP_IMPORT_PATH,
        host=settings.api_host,
        port=port,
        reload=settings.debug,
        log_config=build_uvicorn_log_config(settings.log_config.log_level),
    )


if __name__ == "__main__":
    main()
