"""
Process-wide runtime state.

The lifespan creates one AppState at startup and attaches the storage
backend to it; routers reach it through get_app_state().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from share_service.services.locks import MemoryLockSystem

if TYPE_CHECKING:
    from share_service.services.storage import StorageBackend

_UNITS: tuple[tuple[str, int], ...] = (("d", 86400), ("h", 3600), ("m", 60))


@dataclass
class AppState:
    """
    Runtime state shared by all requests.

    Attributes:
        start_time: Startup time (UTC)
        locks: WebDAV locks, lost on restart
    """

    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    locks: MemoryLockSystem = field(default_factory=MemoryLockSystem)
    _storage: StorageBackend | None = field(default=None, repr=False)

    @property
    def storage(self) -> StorageBackend:
        if self._storage is None:
            raise RuntimeError("Storage backend not initialized")
        return self._storage

    @storage.setter
    def storage(self, value: StorageBackend) -> None:
        self._storage = value

    @property
    def uptime_seconds(self) -> float:
        return (datetime.now(UTC) - self.start_time).total_seconds()

    @property
    def uptime_formatted(self) -> str:
        """Uptime such as "2d 3h 15m 42s". Units other than seconds are omitted when zero."""
        remaining = int(self.uptime_seconds)
        parts: list[str] = []
        for suffix, size in _UNITS:
            count, remaining = divmod(remaining, size)
            if count:
                parts.append(f"{count}{suffix}")
        parts.append(f"{remaining}s")
        return " ".join(parts)


_app_state: AppState | None = None


def get_app_state() -> AppState:
    """
    Return the state created at startup.

    Raises:
        RuntimeError: The lifespan has not run
    """
    if _app_state is None:
        raise RuntimeError("Application state not initialized")
    return _app_state


def init_app_state() -> AppState:
    global _app_state  # noqa: PLW0603
    _app_state = AppState()
    return _app_state


def reset_app_state() -> None:
    """Drop the state. Used in testing."""
    global _app_state  # noqa: PLW0603
    _app_state = None
