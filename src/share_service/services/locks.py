"""
In-memory advisory locks for the WebDAV surface.

Clients such as macOS Finder and Windows Explorer LOCK before they PUT.
Locks here only satisfy the protocol shape: they live in one process,
are never persisted, and expire after their timeout.

Every owner token sees its own namespace, so locks are keyed by
(owner token, path): the same name under two owners is two resources.
"""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass

DEFAULT_TIMEOUT_SECONDS = 3600
MAX_TIMEOUT_SECONDS = 24 * 3600


class LockError(Exception):
    """Base class for lock failures."""


class LockedError(LockError):
    """The resource is locked by a token the caller did not present."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Resource is locked: {path}")


class LockNotFoundError(LockError):
    """No active lock matches the given token."""


@dataclass
class Lock:
    token: str
    path: str
    owner: str
    timeout_seconds: int
    expires_at: float


def _clamp(timeout_seconds: int) -> int:
    return max(1, min(timeout_seconds, MAX_TIMEOUT_SECONDS))


class MemoryLockSystem:
    """Exclusive write locks keyed by owner token and cleaned path."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._locks: dict[tuple[str, str], Lock] = {}
        self._mutex = threading.Lock()

    def __len__(self) -> int:
        with self._mutex:
            return len(self._locks)

    def _sweep(self) -> None:
        now = self._clock()
        for key in [key for key, lock in self._locks.items() if lock.expires_at <= now]:
            del self._locks[key]

    def _active(self, owner_token: str, path: str) -> Lock | None:
        key = (owner_token, path)
        lock = self._locks.get(key)
        if lock is not None and lock.expires_at <= self._clock():
            del self._locks[key]
            return None
        return lock

    def create(
        self,
        owner_token: str,
        path: str,
        owner: str,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
    ) -> Lock:
        """
        Lock a path in one owner's namespace.

        Expired locks of every owner are dropped first.

        Raises:
            LockedError: Another unexpired lock holds the path
        """
        timeout_seconds = _clamp(timeout_seconds)
        with self._mutex:
            self._sweep()
            if (owner_token, path) in self._locks:
                raise LockedError(path)
            lock = Lock(
                token=f"urn:uuid:{uuid.uuid4()}",
                path=path,
                owner=owner,
                timeout_seconds=timeout_seconds,
                expires_at=self._clock() + timeout_seconds,
            )
            self._locks[(owner_token, path)] = lock
            return lock

    def refresh(
        self,
        owner_token: str,
        tokens: Iterable[str],
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
    ) -> Lock:
        """
        Extend the first of tokens that names a live lock of owner_token.

        Raises:
            LockNotFoundError: None of tokens matches
        """
        timeout_seconds = _clamp(timeout_seconds)
        wanted = list(tokens)
        with self._mutex:
            self._sweep()
            for (scope, _path), lock in self._locks.items():
                if scope == owner_token and lock.token in wanted:
                    lock.timeout_seconds = timeout_seconds
                    lock.expires_at = self._clock() + timeout_seconds
                    return lock
        raise LockNotFoundError(", ".join(wanted))

    def release(self, owner_token: str, path: str, token: str) -> None:
        """Remove the lock on path if token matches."""
        with self._mutex:
            lock = self._active(owner_token, path)
            if lock is None or lock.token != token:
                raise LockNotFoundError(token)
            del self._locks[(owner_token, path)]

    def confirm(self, owner_token: str, path: str, tokens: Iterable[str]) -> None:
        """
        Check that the caller may modify path.

        Raises:
            LockedError: path is locked and none of tokens matches
        """
        with self._mutex:
            lock = self._active(owner_token, path)
            if lock is not None and lock.token not in set(tokens):
                raise LockedError(path)

    def get(self, owner_token: str, path: str) -> Lock | None:
        with self._mutex:
            return self._active(owner_token, path)
