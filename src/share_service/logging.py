"""
Logging for the share service.

All module loggers hang off the "share_service" namespace, which owns a
single stdout handler. The default output is one JSON object per line;
"text" gives a plain format for local runs.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

LOGGER_NAMESPACE = "share_service"

VALID_LOG_LEVELS: frozenset[str] = frozenset(logging.getLevelNamesMapping()) - {"NOTSET", "WARN", "FATAL"}
VALID_LOG_FORMATS: frozenset[str] = frozenset({"json", "text"})

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Everything a bare LogRecord carries; other attributes arrived via `extra`.
_RECORD_ATTRS: frozenset[str] = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """Render a record, and any `extra` fields, as a single JSON line."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        entry: dict[str, Any] = {
            "timestamp": created.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "service": self.service_name,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if extra:
            entry["extra"] = extra
        return json.dumps(entry, default=str)


def setup_logging(level: str, service_name: str, log_format: str = "json") -> logging.Logger:
    """
    Attach the stdout handler to the namespace logger.

    Calling it again replaces the previous handler.

    Raises:
        ValueError: Unknown level or format
    """
    level_name = level.upper()
    if level_name not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of {sorted(VALID_LOG_LEVELS)}")
    if log_format not in VALID_LOG_FORMATS:
        raise ValueError(f"Invalid log format: {log_format}. Must be one of {sorted(VALID_LOG_FORMATS)}")

    handler = logging.StreamHandler(sys.stdout)
    if log_format == "json":
        handler.setFormatter(JSONFormatter(service_name))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logger = logging.getLogger(LOGGER_NAMESPACE)
    logger.handlers = [handler]
    logger.setLevel(level_name)
    # Records stop here; the root logger belongs to uvicorn.
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the service namespace.

    Module names inside the package are used as-is; anything else is
    nested under the namespace so it shares the configured handler.
    """
    if name == LOGGER_NAMESPACE or name.startswith(f"{LOGGER_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")
