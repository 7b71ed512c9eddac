"""
Service information endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter

from share_service.config import get_settings
from share_service.schemas import InfoResponse, StorageInfo

router = APIRouter()


@router.get("/info", response_model=InfoResponse)
async def get_info() -> InfoResponse:
    """Get service information and configuration."""
    settings = get_settings()

    storage_info = StorageInfo(
        type=settings.storage.type,
        max_file_size=settings.limits.max_file_size_bytes,
    )

    return InfoResponse(
        service=settings.service.name,
        version=settings.service.version,
        storage=storage_info,
    )
