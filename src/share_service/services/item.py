"""
Item metadata record.

An Item describes one stored blob. It is persisted as JSON next to the
blob by every storage backend.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class RenderMode(StrEnum):
    """Whether retrieval returns rendered HTML or the original bytes."""

    AUTO = "auto"
    RAW = "raw"
    RENDER = "render"


class Item(BaseModel):
    """Identity and metadata for one stored object."""

    model_config = ConfigDict(frozen=True)

    id: str
    filename: str = ""
    content_type: str
    size: int = 0
    render_mode: RenderMode = RenderMode.AUTO
    created_at: datetime
    owner_token: str

    @property
    def display_name(self) -> str:
        """Name used in directory listings: filename, or id when unnamed."""
        return self.filename or self.id

    def to_json(self) -> bytes:
        """Serialize for storage. An empty filename is omitted."""
        exclude = {"filename"} if not self.filename else None
        return self.model_dump_json(exclude=exclude).encode("utf-8")

    @classmethod
    def from_json(cls, data: bytes | str) -> Item:
        """Parse a stored metadata record."""
        return cls.model_validate_json(data)
