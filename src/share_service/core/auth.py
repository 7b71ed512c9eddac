"""
Owner token checks.

The JSON API takes the token as a bearer token (or X-Share-Token). WebDAV
clients only speak Basic auth, so there the password carries the token and
the username is ignored.
"""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from share_service.config import get_settings
from share_service.core.exceptions import ServiceError

if TYPE_CHECKING:
    from collections.abc import Iterable

BASIC_REALM = 'Basic realm="share"'

_basic = HTTPBasic(realm="share", auto_error=False)


def is_valid_token(token: str, accepted: Iterable[str]) -> bool:
    """Compare against every accepted token in constant time."""
    if not token:
        return False
    valid = False
    for candidate in accepted:
        if secrets.compare_digest(candidate.encode("utf-8"), token.encode("utf-8")):
            valid = True
    return valid


def require_api_token(
    authorization: Annotated[str | None, Header()] = None,
    x_share_token: Annotated[str | None, Header()] = None,
) -> str:
    """Resolve the caller's owner token from request headers."""
    token = authorization or x_share_token or ""
    token = token.removeprefix("Bearer ").strip()
    if not is_valid_token(token, get_settings().auth.tokens):
        raise ServiceError(
            error="unauthorized",
            message="Missing or invalid token",
            status_code=401,
            details={},
        )
    return token


def require_dav_token(
    credentials: Annotated[HTTPBasicCredentials | None, Depends(_basic)],
) -> str:
    """Resolve the owner token from Basic auth credentials."""
    if credentials is None or not is_valid_token(credentials.password, get_settings().auth.tokens):
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
            headers={"WWW-Authenticate": BASIC_REALM},
        )
    return credentials.password
