"""
Console entry point: `share-service`.

Reads config.yaml (or $CONFIG_PATH) and serves the API and the WebDAV
mount on the configured host and port.
"""

from __future__ import annotations

import sys

import uvicorn

from share_service.app import create_app
from share_service.config import ConfigurationError, get_config_path, get_settings


def main() -> int:
    try:
        settings = get_settings()
    except ConfigurationError as e:
        print(f"FATAL: cannot load {get_config_path()}\n{e}", file=sys.stderr)
        return 1

    uvicorn.run(
        create_app(),
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.server.log_level,
        access_log=False,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
