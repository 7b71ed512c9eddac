"""Startup and shutdown of the share service."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from share_service.config import get_safe_config, get_settings
from share_service.core.state import init_app_state
from share_service.logging import get_logger, setup_logging
from share_service.services.storage import create_storage

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Configure logging, open the storage backend, and report uptime on exit."""
    settings = get_settings()

    setup_logging(settings.logging.level, settings.service.name, settings.logging.format)
    logger = get_logger(__name__)
    logger.debug("Loaded configuration", extra={"config": get_safe_config()})

    state = init_app_state()
    state.storage = create_storage(settings.storage)

    logger.info(
        "Service starting",
        extra={
            "version": settings.service.version,
            "host": settings.server.host,
            "port": settings.server.port,
            "storage_backend": state.storage.name,
            "max_file_size": settings.limits.max_file_size_bytes,
        },
    )

    yield

    logger.info(
        "Service shutting down",
        extra={"uptime_seconds": state.uptime_seconds, "uptime": state.uptime_formatted},
    )
