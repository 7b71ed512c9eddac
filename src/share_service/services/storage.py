"""
Storage backend contract and backend selection.

A backend persists a blob and its Item metadata under the same ID. The
store is flat: there is no hierarchy and no index by owner.
"""

from __future__ import annotations

import io
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from share_service.config import (
    ConfigurationError,
    FilesystemStorageConfig,
    S3StorageConfig,
)

if TYPE_CHECKING:
    from share_service.config import StorageConfig
    from share_service.services.item import Item


class StorageBackend(ABC):
    """
    Blob and metadata store.

    put writes the blob first and the metadata second. When the metadata
    write fails the blob is removed as best-effort cleanup; this is a
    compensating action, not a transaction, and a crash between the two
    writes can leave an orphan blob.
    """

    name: str

    @abstractmethod
    def put(self, item_id: str, content: bytes | BinaryIO, item: Item) -> Item:
        """Store a blob and its metadata. Returns the item with size filled in."""

    @abstractmethod
    def get(self, item_id: str) -> tuple[BinaryIO, Item]:
        """
        Open a blob for reading. The caller closes the stream.

        Raises:
            ItemNotFoundError: No metadata for item_id
            BlobMissingError: Metadata present but blob absent
        """

    @abstractmethod
    def get_meta(self, item_id: str) -> Item:
        """Fetch metadata only. Raises ItemNotFoundError if absent."""

    @abstractmethod
    def delete(self, item_id: str) -> None:
        """Remove blob and metadata. Absent parts are not an error."""

    @abstractmethod
    def list(self, owner_token: str) -> list[Item]:
        """
        Return every item owned by owner_token, newest first.

        This scans the whole store on every call.
        """


def as_stream(content: bytes | BinaryIO) -> BinaryIO:
    """Wrap raw bytes so backends can always read from a stream."""
    if isinstance(content, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(content))
    return content


def newest_first(items: list[Item]) -> list[Item]:
    """Sort items by creation time, most recent first."""
    return sorted(items, key=lambda item: item.created_at, reverse=True)


def create_storage(config: StorageConfig) -> StorageBackend:
    """
    Build the backend named by the storage configuration.

    Raises:
        ConfigurationError: Unknown backend type
    """
    # Imported here so the s3 backend's boto3 import stays off the
    # filesystem-only path.
    if isinstance(config, FilesystemStorageConfig):
        from share_service.services.local import LocalStorage  # noqa: PLC0415

        return LocalStorage(base_path=Path(config.path))

    if isinstance(config, S3StorageConfig):
        from share_service.services.s3 import S3Storage  # noqa: PLC0415

        return S3Storage.from_config(config)

    raise ConfigurationError(f"Unknown storage type: {getattr(config, 'type', config)!r}")
