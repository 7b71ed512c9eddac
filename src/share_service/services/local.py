"""
Filesystem storage backend.

Each item is two files under the base directory:

    <base>/files/<id>        blob bytes
    <base>/meta/<id>.json    Item metadata
"""

from __future__ import annotations

from typing import TYPE_CHECKING, BinaryIO

from pydantic import ValidationError

from share_service.logging import get_logger
from share_service.services.errors import (
    BlobMissingError,
    ItemNotFoundError,
    StorageIOError,
)
from share_service.services.item import Item
from share_service.services.storage import StorageBackend, as_stream, newest_first

if TYPE_CHECKING:
    from pathlib import Path

logger = get_logger(__name__)

_META_SUFFIX = ".json"
_CHUNK_SIZE = 64 * 1024


class LocalStorage(StorageBackend):
    """Stores blobs and metadata as files in two sub-directories."""

    name = "filesystem"

    def __init__(self, base_path: Path) -> None:
        self.base_path = base_path
        self.files_dir = base_path / "files"
        self.meta_dir = base_path / "meta"
        try:
            self.files_dir.mkdir(parents=True, exist_ok=True)
            self.meta_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"Failed to create storage directory {base_path}: {e}") from e

    def _file_path(self, item_id: str) -> Path:
        return self.files_dir / item_id

    def _meta_path(self, item_id: str) -> Path:
        return self.meta_dir / f"{item_id}{_META_SUFFIX}"

    def put(self, item_id: str, content: bytes | BinaryIO, item: Item) -> Item:
        """Write the blob, then the metadata. Roll the blob back on failure."""
        file_path = self._file_path(item_id)
        try:
            with file_path.open("wb") as f:
                size = _copy(as_stream(content), f)
        except OSError as e:
            self._discard(file_path)
            raise StorageIOError(f"Failed to write file for {item_id}: {e}") from e

        stored = item.model_copy(update={"size": size})

        try:
            self._write_meta(item_id, stored)
        except OSError as e:
            self._discard(file_path)
            self._discard(self._meta_path(item_id))
            logger.warning(
                "Metadata write failed, blob rolled back",
                extra={"item_id": item_id, "reason": str(e)},
            )
            raise StorageIOError(f"Failed to write metadata for {item_id}: {e}") from e

        return stored

    def _write_meta(self, item_id: str, item: Item) -> None:
        self._meta_path(item_id).write_bytes(item.to_json())

    def get(self, item_id: str) -> tuple[BinaryIO, Item]:
        """Open the blob for reading."""
        item = self.get_meta(item_id)
        try:
            stream = self._file_path(item_id).open("rb")
        except FileNotFoundError as e:
            raise BlobMissingError(item_id) from e
        except OSError as e:
            raise StorageIOError(f"Failed to open file for {item_id}: {e}") from e
        return stream, item

    def get_meta(self, item_id: str) -> Item:
        """Read the metadata record."""
        try:
            raw = self._meta_path(item_id).read_bytes()
        except FileNotFoundError as e:
            raise ItemNotFoundError(item_id) from e
        except OSError as e:
            raise StorageIOError(f"Failed to read metadata for {item_id}: {e}") from e

        try:
            return Item.from_json(raw)
        except ValidationError as e:
            raise StorageIOError(f"Corrupt metadata for {item_id}: {e}") from e

    def delete(self, item_id: str) -> None:
        """Remove both files. Missing files are ignored."""
        try:
            self._file_path(item_id).unlink(missing_ok=True)
            self._meta_path(item_id).unlink(missing_ok=True)
        except OSError as e:
            raise StorageIOError(f"Failed to delete {item_id}: {e}") from e

    def list(self, owner_token: str) -> list[Item]:
        """Scan every metadata record and keep the owner's."""
        try:
            entries = list(self.meta_dir.iterdir())
        except OSError as e:
            raise StorageIOError(f"Failed to read metadata directory: {e}") from e

        items: list[Item] = []
        for entry in entries:
            if entry.suffix != _META_SUFFIX or not entry.is_file():
                continue
            try:
                item = Item.from_json(entry.read_bytes())
            except (OSError, ValidationError):
                logger.debug("Skipping unreadable metadata", extra={"path": str(entry)})
                continue
            if item.owner_token == owner_token:
                items.append(item)

        return newest_first(items)

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Cleanup failed", extra={"path": str(path), "reason": str(e)})


def _copy(source: BinaryIO, target: BinaryIO) -> int:
    """Copy a stream and return the number of bytes written."""
    size = 0
    while chunk := source.read(_CHUNK_SIZE):
        target.write(chunk)
        size += len(chunk)
    return size
