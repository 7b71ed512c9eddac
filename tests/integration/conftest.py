"""
Fixtures for integration tests.

These tests use the real application with actual file storage.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest
from fastapi.testclient import TestClient

from share_service.app import create_app
from share_service.config import clear_settings_cache
from share_service.core.state import reset_app_state
from share_service.logging import LOGGER_NAMESPACE
from tests.factories import write_config

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def client(tmp_path: Path, storage_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    """
    Create test client with the real application.

    Each test gets its own storage directory and a 1KB upload limit.
    """
    config_file = write_config(tmp_path, storage_dir, max_file_size="1KB")
    monkeypatch.setenv("CONFIG_PATH", str(config_file))

    clear_settings_cache()
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    clear_settings_cache()
    reset_app_state()
    logging.getLogger(LOGGER_NAMESPACE).handlers.clear()
