"""
Pydantic request/response models for the share service API.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Response model for GET /health endpoint."""

    status: Literal["healthy", "degraded", "unhealthy"]
    """Service health status."""

    uptime_seconds: float
    """Uptime in seconds since service start."""

    uptime: str
    """Human-readable uptime."""

    system_time: str
    """Current system time in yyyy-mm-dd hh:mm format (UTC)."""


class StorageInfo(BaseModel):
    """Storage configuration for /info endpoint."""

    model_config = ConfigDict(extra="forbid")

    type: str
    """Active storage backend."""

    max_file_size: int
    """Upload limit in bytes, 0 for unlimited."""


class InfoResponse(BaseModel):
    """Response model for GET /info endpoint."""

    service: str
    """Service name."""

    version: str
    """Service version."""

    storage: StorageInfo
    """Storage configuration."""


class ListedItem(BaseModel):
    """One entry of GET /api/list. The owner token is never included."""

    model_config = ConfigDict(extra="forbid")

    id: str
    url: str
    filename: str
    size: int
    created: str
    """Creation time, RFC 3339."""


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str
    """Machine-readable error code."""

    message: str
    """Human-readable error description."""

    details: dict[str, Any]
    """Additional error context."""
