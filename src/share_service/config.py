"""
Configuration for the share service.

Settings come from one YAML file and nothing else: there are no defaults,
so a missing key stops the service at startup instead of silently picking
a storage location or an empty token list.
"""

from __future__ import annotations

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

CONFIG_PATH_ENV = "CONFIG_PATH"
DEFAULT_CONFIG_FILE = "config.yaml"


class ConfigurationError(Exception):
    """The config file is missing, unreadable, or fails validation."""


_SIZE_UNITS: tuple[tuple[str, int], ...] = (
    ("GB", 1024 * 1024 * 1024),
    ("MB", 1024 * 1024),
    ("KB", 1024),
    ("B", 1),
)


def parse_size(value: str) -> int:
    """
    Convert a size string such as "100MB" or "1GB" into bytes.

    Suffixes are binary multiples and case-insensitive. An empty string
    or "0" means unlimited and is returned as 0.

    Raises:
        ValueError: If the numeric part is not a non-negative integer
    """
    text = value.strip().upper()
    if text in ("", "0"):
        return 0

    multiplier = 1
    for suffix, factor in _SIZE_UNITS:
        if text.endswith(suffix):
            multiplier = factor
            text = text[: -len(suffix)].strip()
            break

    if not text.isdigit():
        raise ValueError(f"Invalid size: {value!r}")
    return int(text) * multiplier


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ServiceConfig(_Strict):
    """Name and version reported by /info and in every log line."""

    name: str
    version: str


class ServerConfig(_Strict):
    """Listener settings and the public URL prefix for item links."""

    host: str
    port: int
    log_level: str
    base_url: str


class FilesystemStorageConfig(_Strict):
    """Items stored as files under one directory."""

    type: Literal["filesystem"]
    path: str


class S3StorageConfig(_Strict):
    """
    Items stored as objects in one bucket.

    endpoint is null for AWS itself. Null credentials defer to the boto3
    credential chain (environment, profile, instance role).
    """

    type: Literal["s3"]
    endpoint: str | None
    bucket: str
    region: str
    access_key_id: str | None
    secret_access_key: str | None


StorageConfig = Annotated[
    FilesystemStorageConfig | S3StorageConfig,
    Field(discriminator="type"),
]


class LimitsConfig(_Strict):
    max_file_size: str

    @field_validator("max_file_size")
    @classmethod
    def _check_size(cls, value: str) -> str:
        parse_size(value)
        return value

    @property
    def max_file_size_bytes(self) -> int:
        """Maximum upload size in bytes, 0 for unlimited."""
        return parse_size(self.max_file_size)


class AuthConfig(_Strict):
    """Owner tokens accepted for uploads, listing, deletion and WebDAV."""

    tokens: list[str]


class LoggingConfig(_Strict):
    level: str
    format: Literal["json", "text"]


class Settings(_Strict):
    """
    Root of config.yaml.

    Usage:
        from share_service.config import get_settings
        base_url = get_settings().server.base_url
    """

    service: ServiceConfig
    server: ServerConfig
    storage: StorageConfig
    limits: LimitsConfig
    auth: AuthConfig
    logging: LoggingConfig


def load_yaml_config(config_path: Path) -> dict[str, Any]:
    """
    Read config_path and return its top-level mapping.

    Raises:
        ConfigurationError: File absent, not YAML, empty, or not a mapping
    """
    try:
        text = config_path.read_text()
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"Configuration file not found: {config_path.absolute()}\n"
            f"Create it or point {CONFIG_PATH_ENV} at one."
        ) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {config_path}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        raise ConfigurationError(f"Configuration file is empty: {config_path}")
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration must be a YAML mapping, got {type(data).__name__}"
        )
    return data


def get_config_path() -> Path:
    """The file named by CONFIG_PATH, or ./config.yaml."""
    return Path(os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_FILE))


@lru_cache
def get_settings() -> Settings:
    """
    Load and validate the configuration once per process.

    Raises:
        ConfigurationError: Config file missing or values fail validation
    """
    config_path = get_config_path()
    data = load_yaml_config(config_path)
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed for {config_path}:\n{e}\n"
            f"Every key must be present; there are no defaults."
        ) from e


def clear_settings_cache() -> None:
    """Forget the loaded settings so the next call re-reads the file."""
    get_settings.cache_clear()


# Key fragments that mark a value as a credential (case-insensitive).
SENSITIVE_KEYWORDS: frozenset[str] = frozenset(
    {"key", "secret", "pass", "token", "credential", "auth", "private", "bearer"}
)

_SENSITIVE_PATTERN = re.compile("|".join(sorted(SENSITIVE_KEYWORDS)), re.IGNORECASE)

REDACTION_MARKER = "[REDACTED]"


def is_sensitive_key(key: str) -> bool:
    return _SENSITIVE_PATTERN.search(key) is not None


def redact_sensitive_values(data: dict[str, Any], redaction_marker: str) -> dict[str, Any]:
    """Copy data, replacing the value of every sensitive key at any depth."""
    return {
        key: (
            redaction_marker
            if is_sensitive_key(key)
            else redact_sensitive_values(value, redaction_marker)
            if isinstance(value, dict)
            else value
        )
        for key, value in data.items()
    }


def get_safe_config() -> dict[str, Any]:
    """Current settings with owner tokens and storage credentials hidden."""
    return redact_sensitive_values(get_settings().model_dump(), REDACTION_MARKER)
