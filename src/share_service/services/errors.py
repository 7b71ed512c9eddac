"""Domain errors raised by storage backends and the directory adapter."""

from __future__ import annotations


class StorageError(Exception):
    """Base class for storage-layer failures."""


class ItemNotFoundError(StorageError):
    """No metadata exists for the requested item or path."""

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")


class ForbiddenError(StorageError):
    """The caller does not own the item, or the target is protected."""


class InvalidOperationError(StorageError):
    """The operation is not supported on this resource."""


class TooLargeError(StorageError):
    """A write would exceed the configured maximum upload size."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"File too large: limit is {limit} bytes")


class StorageIOError(StorageError):
    """The underlying storage medium failed. The cause is chained."""


class BlobMissingError(StorageIOError):
    """Metadata exists but the blob it describes does not."""

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"Blob missing for item: {item_id}")
