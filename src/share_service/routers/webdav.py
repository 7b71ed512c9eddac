"""
WebDAV endpoints.

Exposes the caller's items as one flat collection under /webdav so they
can be mounted as a network drive. Authentication is HTTP Basic with the
owner token as the password.
"""

from __future__ import annotations

import os
import re
import xml.etree.ElementTree as ET
from datetime import UTC
from email.utils import format_datetime
from typing import TYPE_CHECKING, Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response

from share_service.config import get_settings
from share_service.core.auth import require_dav_token
from share_service.core.state import get_app_state
from share_service.logging import get_logger
from share_service.services.directory import (
    FileInfo,
    OwnerDirectory,
    ReadHandle,
    clean_path,
    is_root,
)
from share_service.services.errors import (
    ForbiddenError,
    InvalidOperationError,
    ItemNotFoundError,
    StorageError,
    TooLargeError,
)
from share_service.services.locks import (
    DEFAULT_TIMEOUT_SECONDS,
    LockedError,
    LockNotFoundError,
)

if TYPE_CHECKING:
    from share_service.services.locks import Lock

PREFIX = "/webdav"

DAV_NS = "DAV:"
ET.register_namespace("D", DAV_NS)

_XML_MEDIA_TYPE = 'application/xml; charset="utf-8"'
_COLLECTION_METHODS = ["OPTIONS", "PROPFIND", "GET", "HEAD", "PUT", "DELETE", "MKCOL", "MOVE", "LOCK", "UNLOCK"]
_ALLOWED_METHODS = ", ".join(_COLLECTION_METHODS)

_LOCK_TOKEN_PATTERN = re.compile(r"<([^>]+)>")
_IF_LIST_PATTERN = re.compile(r"\(([^)]*)\)")
_TIMEOUT_PATTERN = re.compile(r"Second-(\d+)", re.IGNORECASE)

router = APIRouter()

DavToken = Annotated[str, Depends(require_dav_token)]


def _directory(token: str) -> OwnerDirectory:
    return OwnerDirectory(
        storage=get_app_state().storage,
        owner_token=token,
        max_file_size=get_settings().limits.max_file_size_bytes,
    )


def _status_for(exc: StorageError) -> int:
    if isinstance(exc, ItemNotFoundError):
        return 404
    if isinstance(exc, (ForbiddenError, InvalidOperationError)):
        return 403
    if isinstance(exc, TooLargeError):
        return 413
    return 503


def _error_response(exc: StorageError, request: Request) -> Response:
    status_code = _status_for(exc)
    get_logger(__name__).warning(
        "WebDAV request failed",
        extra={
            "status_code": status_code,
            "error_message": str(exc),
            "path": str(request.url.path),
            "method": request.method,
        },
    )
    return Response(content=str(exc), status_code=status_code, media_type="text/plain")


def _href(name: str) -> str:
    if name == "/":
        return f"{PREFIX}/"
    return f"{PREFIX}/{quote(name)}"


def _dav(tag: str) -> str:
    return f"{{{DAV_NS}}}{tag}"


def _prop_response(parent: ET.Element, info: FileInfo) -> None:
    response = ET.SubElement(parent, _dav("response"))
    ET.SubElement(response, _dav("href")).text = _href(info.name)
    propstat = ET.SubElement(response, _dav("propstat"))
    prop = ET.SubElement(propstat, _dav("prop"))

    ET.SubElement(prop, _dav("displayname")).text = info.name
    modified = info.modified.astimezone(UTC)
    ET.SubElement(prop, _dav("getlastmodified")).text = format_datetime(modified, usegmt=True)
    ET.SubElement(prop, _dav("creationdate")).text = modified.strftime("%Y-%m-%dT%H:%M:%SZ")
    resource_type = ET.SubElement(prop, _dav("resourcetype"))
    if info.is_dir:
        ET.SubElement(resource_type, _dav("collection"))
    else:
        ET.SubElement(prop, _dav("getcontentlength")).text = str(info.size)
        if info.content_type:
            ET.SubElement(prop, _dav("getcontenttype")).text = info.content_type
    supported = ET.SubElement(prop, _dav("supportedlock"))
    entry = ET.SubElement(supported, _dav("lockentry"))
    ET.SubElement(ET.SubElement(entry, _dav("lockscope")), _dav("exclusive"))
    ET.SubElement(ET.SubElement(entry, _dav("locktype")), _dav("write"))

    ET.SubElement(propstat, _dav("status")).text = "HTTP/1.1 200 OK"


def build_multistatus(entries: list[FileInfo]) -> bytes:
    """Render PROPFIND results as a DAV:multistatus document."""
    root = ET.Element(_dav("multistatus"))
    for info in entries:
        _prop_response(root, info)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def build_lock_discovery(lock: Lock) -> bytes:
    """Render a LOCK result as a DAV:prop/lockdiscovery document."""
    root = ET.Element(_dav("prop"))
    active = ET.SubElement(ET.SubElement(root, _dav("lockdiscovery")), _dav("activelock"))
    ET.SubElement(ET.SubElement(active, _dav("locktype")), _dav("write"))
    ET.SubElement(ET.SubElement(active, _dav("lockscope")), _dav("exclusive"))
    ET.SubElement(active, _dav("depth")).text = "0"
    if lock.owner:
        ET.SubElement(active, _dav("owner")).text = lock.owner
    ET.SubElement(active, _dav("timeout")).text = f"Second-{lock.timeout_seconds}"
    ET.SubElement(ET.SubElement(active, _dav("locktoken")), _dav("href")).text = lock.token
    ET.SubElement(ET.SubElement(active, _dav("lockroot")), _dav("href")).text = _href(lock.path or "/")
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def _parse_lock_owner(body: bytes) -> str:
    """Extract the DAV:owner text from a lockinfo body, if any."""
    if not body.strip():
        return ""
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return ""
    owner = root.find(_dav("owner"))
    if owner is None:
        return ""
    return "".join(owner.itertext()).strip()


def _parse_timeout(header: str | None) -> int:
    if header:
        match = _TIMEOUT_PATTERN.search(header)
        if match:
            return int(match.group(1))
    return DEFAULT_TIMEOUT_SECONDS


def _submitted_tokens(request: Request) -> list[str]:
    """
    Lock tokens from the If and Lock-Token headers.

    Only the parenthesized lists of an If header carry tokens; a leading
    <resource-url> tag names the resource they apply to and is skipped.
    """
    tokens: list[str] = []
    for condition in _IF_LIST_PATTERN.findall(request.headers.get("if", "")):
        tokens.extend(_LOCK_TOKEN_PATTERN.findall(condition))
    tokens.extend(_LOCK_TOKEN_PATTERN.findall(request.headers.get("lock-token", "")))
    return tokens


@router.api_route(PREFIX, methods=_COLLECTION_METHODS, include_in_schema=False)
@router.api_route(PREFIX + "/{path:path}", methods=_COLLECTION_METHODS, include_in_schema=False)
async def dispatch(request: Request, token: DavToken, path: str = "") -> Response:
    """Route a WebDAV request to its verb handler."""
    directory = _directory(token)
    handler = _HANDLERS[request.method]
    try:
        return await handler(request, directory, clean_path(path))
    except StorageError as e:
        return _error_response(e, request)


async def handle_options(request: Request, directory: OwnerDirectory, path: str) -> Response:
    return Response(
        status_code=200,
        headers={"DAV": "1, 2", "Allow": _ALLOWED_METHODS, "MS-Author-Via": "DAV"},
    )


async def handle_propfind(request: Request, directory: OwnerDirectory, path: str) -> Response:
    depth = request.headers.get("depth", "1")
    info = directory.stat(path)
    entries = [info]
    if info.is_dir and depth != "0":
        handle = directory.open_root()
        entries.extend(handle.readdir(0))
        handle.close()
    return Response(content=build_multistatus(entries), status_code=207, media_type=_XML_MEDIA_TYPE)


async def handle_get(request: Request, directory: OwnerDirectory, path: str) -> Response:
    handle = directory.open_file(path, os.O_RDONLY)
    if not isinstance(handle, ReadHandle):
        handle.close()
        return Response(status_code=405, headers={"Allow": _ALLOWED_METHODS})

    with handle:
        info = handle.stat()
        headers = {
            "Last-Modified": format_datetime(info.modified.astimezone(UTC), usegmt=True),
        }
        media_type = info.content_type or "application/octet-stream"
        if request.method == "HEAD":
            headers["Content-Length"] = str(info.size)
            return Response(status_code=200, headers=headers, media_type=media_type)
        return Response(content=handle.read(), headers=headers, media_type=media_type)


async def handle_put(request: Request, directory: OwnerDirectory, path: str) -> Response:
    if is_root(path):
        return Response(status_code=405, headers={"Allow": _ALLOWED_METHODS})

    locks = get_app_state().locks
    try:
        locks.confirm(directory.owner_token, path, _submitted_tokens(request))
    except LockedError:
        return Response(status_code=423)

    handle = directory.open_file(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC)
    try:
        async for chunk in request.stream():
            handle.write(chunk)
    except TooLargeError:
        handle.abort()
        raise
    handle.close()
    return Response(status_code=201)


async def handle_delete(request: Request, directory: OwnerDirectory, path: str) -> Response:
    locks = get_app_state().locks
    try:
        locks.confirm(directory.owner_token, path, _submitted_tokens(request))
    except LockedError:
        return Response(status_code=423)

    directory.remove_all(path)
    return Response(status_code=204)


async def handle_mkcol(request: Request, directory: OwnerDirectory, path: str) -> Response:
    directory.mkdir(path)
    return Response(status_code=201)


async def handle_move(request: Request, directory: OwnerDirectory, path: str) -> Response:
    directory.rename(path, request.headers.get("destination", ""))
    return Response(status_code=201)


async def handle_lock(request: Request, directory: OwnerDirectory, path: str) -> Response:
    locks = get_app_state().locks
    timeout = _parse_timeout(request.headers.get("timeout"))
    body = await request.body()

    try:
        if not body.strip():
            # Refresh: the token comes from the If header.
            submitted = _submitted_tokens(request)
            if not submitted:
                return Response(status_code=400)
            lock = locks.refresh(directory.owner_token, submitted, timeout)
        else:
            lock = locks.create(
                directory.owner_token, path, owner=_parse_lock_owner(body), timeout_seconds=timeout
            )
    except LockedError:
        return Response(status_code=423)
    except LockNotFoundError:
        return Response(status_code=412)

    return Response(
        content=build_lock_discovery(lock),
        status_code=200,
        media_type=_XML_MEDIA_TYPE,
        headers={"Lock-Token": f"<{lock.token}>"},
    )


async def handle_unlock(request: Request, directory: OwnerDirectory, path: str) -> Response:
    locks = get_app_state().locks
    submitted = _LOCK_TOKEN_PATTERN.findall(request.headers.get("lock-token", ""))
    if not submitted:
        return Response(status_code=400)
    try:
        locks.release(directory.owner_token, path, submitted[0])
    except LockNotFoundError:
        return Response(status_code=409)
    return Response(status_code=204)


_HANDLERS = {
    "OPTIONS": handle_options,
    "PROPFIND": handle_propfind,
    "GET": handle_get,
    "HEAD": handle_get,
    "PUT": handle_put,
    "DELETE": handle_delete,
    "MKCOL": handle_mkcol,
    "MOVE": handle_move,
    "LOCK": handle_lock,
    "UNLOCK": handle_unlock,
}
