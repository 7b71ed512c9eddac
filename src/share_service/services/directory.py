"""
Owner-scoped directory view over the flat item store.

The store has no directories and no partial writes. This module presents
one owner's items as a single flat directory of files named by filename
(or ID when unnamed), the shape a directory-oriented file protocol such as
WebDAV expects. Every call resolves paths by scanning the owner's list()
and delegates bytes to the backend; nothing is persisted here.

Write handles buffer in memory and commit a new item with one put() when
closed, so partial uploads are never visible to readers.
"""

from __future__ import annotations

import io
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from share_service.logging import get_logger
from share_service.services.content_type import detect_content_type
from share_service.services.errors import (
    ForbiddenError,
    InvalidOperationError,
    ItemNotFoundError,
    TooLargeError,
)
from share_service.services.ids import generate_id
from share_service.services.item import Item, RenderMode

if TYPE_CHECKING:
    from share_service.services.storage import StorageBackend

logger = get_logger(__name__)

WRITE_FLAGS = os.O_CREAT | os.O_WRONLY | os.O_RDWR

ROOT_NAME = "/"


@dataclass(frozen=True)
class FileInfo:
    """Stat result for a file or the synthetic root directory."""

    name: str
    size: int
    modified: datetime
    is_dir: bool = False
    content_type: str | None = None

    @property
    def mode(self) -> int:
        return 0o040755 if self.is_dir else 0o100644

    @classmethod
    def for_item(cls, item: Item) -> FileInfo:
        return cls(
            name=item.display_name,
            size=item.size,
            modified=item.created_at,
            content_type=item.content_type,
        )

    @classmethod
    def root(cls) -> FileInfo:
        return cls(name=ROOT_NAME, size=0, modified=datetime.now(UTC), is_dir=True)


def clean_path(path: str) -> str:
    """Strip leading and trailing slashes. The root becomes ""."""
    return path.strip("/")


def is_root(path: str) -> bool:
    return clean_path(path) == ""


class DirectoryHandle:
    """Open root directory. Children are paged out by readdir()."""

    def __init__(self, children: list[FileInfo]) -> None:
        self.info = FileInfo.root()
        self.children = children
        self._pos = 0

    def stat(self) -> FileInfo:
        return self.info

    def readdir(self, count: int = 0) -> list[FileInfo]:
        """
        Return the next children.

        With count <= 0 every remaining child is returned (possibly none).
        Otherwise up to count children are returned, and EOFError is
        raised once nothing is left.
        """
        remaining = len(self.children) - self._pos
        if remaining <= 0:
            if count <= 0:
                return []
            raise EOFError("No more directory entries")

        if count <= 0 or count > remaining:
            count = remaining

        result = self.children[self._pos : self._pos + count]
        self._pos += count
        return result

    def read(self, size: int = -1) -> bytes:
        raise InvalidOperationError("Cannot read a directory")

    def write(self, data: bytes) -> int:
        raise InvalidOperationError("Cannot write a directory")

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        raise InvalidOperationError("Cannot seek a directory")

    def close(self) -> None:
        pass


class ReadHandle:
    """
    Read-only file handle.

    The whole blob is loaded up front so arbitrary seeks work.
    """

    def __init__(self, info: FileInfo, data: bytes) -> None:
        self.info = info
        self._buffer = io.BytesIO(data)

    def stat(self) -> FileInfo:
        return self.info

    def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._buffer.seek(offset, whence)

    def tell(self) -> int:
        return self._buffer.tell()

    def write(self, data: bytes) -> int:
        raise InvalidOperationError("File is open for reading")

    def readdir(self, count: int = 0) -> list[FileInfo]:
        raise InvalidOperationError("Not a directory")

    def close(self) -> None:
        self._buffer.close()

    def __enter__(self) -> ReadHandle:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class WriteState(Enum):
    OPEN = "open"
    WRITING = "writing"
    CLOSED = "closed"


class WriteHandle:
    """
    Buffered upload handle.

    open -> writing (repeatable) -> closed. A write that would push the
    buffer past max_file_size raises TooLargeError and leaves the buffer
    unchanged. close() commits the buffer as a new item exactly once;
    abort() closes without committing.
    """

    def __init__(
        self,
        name: str,
        owner_token: str,
        storage: StorageBackend,
        max_file_size: int,
    ) -> None:
        self.name = name
        self.owner_token = owner_token
        self.storage = storage
        self.max_file_size = max_file_size
        self.state = WriteState.OPEN
        self.item: Item | None = None
        self._buffer = bytearray()

    @property
    def closed(self) -> bool:
        return self.state is WriteState.CLOSED

    def write(self, data: bytes) -> int:
        if self.closed:
            raise InvalidOperationError("Write to closed file")
        if self.max_file_size > 0 and len(self._buffer) + len(data) > self.max_file_size:
            raise TooLargeError(self.max_file_size)
        self._buffer.extend(data)
        self.state = WriteState.WRITING
        return len(data)

    def stat(self) -> FileInfo:
        return FileInfo(
            name=self.name,
            size=len(self._buffer),
            modified=datetime.now(UTC),
        )

    def read(self, size: int = -1) -> bytes:
        raise InvalidOperationError("File is open for writing")

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        raise InvalidOperationError("File is open for writing")

    def readdir(self, count: int = 0) -> list[FileInfo]:
        raise InvalidOperationError("Not a directory")

    def close(self) -> Item | None:
        """Commit the buffer as a new item. A second call does nothing."""
        if self.closed:
            return self.item
        self.state = WriteState.CLOSED

        data = bytes(self._buffer)
        item_id = generate_id()
        item = Item(
            id=item_id,
            filename=self.name,
            content_type=detect_content_type(self.name, data),
            render_mode=RenderMode.AUTO,
            created_at=datetime.now(UTC),
            owner_token=self.owner_token,
        )
        self.item = self.storage.put(item_id, data, item)
        logger.info(
            "Directory upload committed",
            extra={"item_id": item_id, "item_filename": self.name, "size": self.item.size},
        )
        return self.item

    def abort(self) -> None:
        """Close without committing anything."""
        self.state = WriteState.CLOSED
        self._buffer.clear()

    def __enter__(self) -> WriteHandle:
        return self

    def __exit__(self, exc_type: type[BaseException] | None, *_: object) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()


class OwnerDirectory:
    """
    One owner's items as a flat directory.

    Names are resolved against the owner's list(), which is newest first,
    so when two items share a display name the most recent one wins.
    """

    def __init__(self, storage: StorageBackend, owner_token: str, max_file_size: int = 0) -> None:
        self.storage = storage
        self.owner_token = owner_token
        self.max_file_size = max_file_size

    def find(self, path: str) -> Item:
        """Resolve a path to the owner's item with that display name."""
        name = clean_path(path)
        for item in self.storage.list(self.owner_token):
            if item.display_name == name:
                return item
        raise ItemNotFoundError(name)

    def stat(self, path: str) -> FileInfo:
        if is_root(path):
            return FileInfo.root()
        return FileInfo.for_item(self.find(path))

    def open_file(self, path: str, flags: int = os.O_RDONLY) -> DirectoryHandle | ReadHandle | WriteHandle:
        """
        Open the root directory, an existing file, or a new upload.

        Any of O_CREAT, O_WRONLY or O_RDWR selects a write handle.
        """
        if is_root(path):
            return self.open_root()
        if flags & WRITE_FLAGS:
            return WriteHandle(
                name=clean_path(path),
                owner_token=self.owner_token,
                storage=self.storage,
                max_file_size=self.max_file_size,
            )
        return self.open_read(path)

    def open_root(self) -> DirectoryHandle:
        items = self.storage.list(self.owner_token)
        return DirectoryHandle([FileInfo.for_item(item) for item in items])

    def open_read(self, path: str) -> ReadHandle:
        item = self.find(path)
        stream, _ = self.storage.get(item.id)
        try:
            data = stream.read()
        finally:
            stream.close()
        return ReadHandle(FileInfo.for_item(item), data)

    def remove_all(self, path: str) -> None:
        if is_root(path):
            raise ForbiddenError("Cannot remove the root directory")
        item = self.find(path)
        if item.owner_token != self.owner_token:
            raise ForbiddenError(f"Not the owner of {item.display_name}")
        self.storage.delete(item.id)
        logger.info("Directory item removed", extra={"item_id": item.id})

    def mkdir(self, path: str) -> None:
        raise InvalidOperationError("Directories are not supported")

    def rename(self, old_path: str, new_path: str) -> None:
        raise InvalidOperationError("Renaming is not supported")
