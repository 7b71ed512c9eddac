"""API routers for the share service."""

from share_service.routers import health, info, items, webdav

__all__ = ["health", "info", "items", "webdav"]
