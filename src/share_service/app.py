"""
FastAPI application factory.
"""

from __future__ import annotations

from fastapi import FastAPI

from share_service.config import get_settings
from share_service.core.exceptions import register_exception_handlers
from share_service.core.lifespan import lifespan
from share_service.routers import health, info, items, webdav


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI instance with all routers registered
    """
    settings = get_settings()

    app = FastAPI(
        title=f"{settings.service.name} Service",
        version=settings.service.version,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["Operations"])
    app.include_router(info.router, tags=["Operations"])
    app.include_router(webdav.router, tags=["WebDAV"])
    # Registered last: its /{item_id} route matches any single segment.
    app.include_router(items.router, tags=["Items"])

    return app
