"""
Shared fixtures for unit tests.

Provides test isolation fixtures to ensure clean state between tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from share_service.app import create_app
from share_service.config import clear_settings_cache
from share_service.core.state import init_app_state, reset_app_state
from share_service.services.local import LocalStorage
from share_service.services.storage import StorageBackend
from tests.factories import write_config

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from share_service.core.state import AppState


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Iterator[None]:
    """
    Ensure settings cache is cleared before and after each test.

    This prevents test pollution where one test's configuration
    affects another test's behavior.
    """
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def max_file_size() -> str:
    """Upload limit written into the test config. Override per module."""
    return "0"


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, max_file_size: str) -> Path:
    """Write a valid config and point CONFIG_PATH at it."""
    path = write_config(tmp_path, tmp_path / "data", max_file_size=max_file_size)
    monkeypatch.setenv("CONFIG_PATH", str(path))
    return path


@pytest.fixture
def mock_storage() -> MagicMock:
    """A storage backend whose every call is scripted by the test."""
    storage = MagicMock(spec=StorageBackend)
    storage.name = "filesystem"
    return storage


@pytest.fixture
def app_state(mock_storage: MagicMock) -> Iterator[AppState]:
    """Application state wired to the mock backend, without the lifespan."""
    state = init_app_state()
    state.storage = mock_storage
    yield state
    reset_app_state()


@pytest.fixture
def test_client(config_file: Path, app_state: AppState) -> TestClient:
    """Client for an app whose storage is the mock backend."""
    return TestClient(create_app(), raise_server_exceptions=False)


@pytest.fixture
def local_storage(tmp_path: Path) -> LocalStorage:
    return LocalStorage(base_path=tmp_path / "store")


@pytest.fixture
def dav_client(config_file: Path, local_storage: LocalStorage) -> Iterator[TestClient]:
    """Client for an app backed by real filesystem storage."""
    state = init_app_state()
    state.storage = local_storage
    yield TestClient(create_app(), raise_server_exceptions=False)
    reset_app_state()
