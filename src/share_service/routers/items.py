"""
Item endpoints.

Upload, list and delete for owners; anonymous retrieval by ID.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.datastructures import UploadFile

from share_service.config import get_settings
from share_service.core.auth import require_api_token
from share_service.core.exceptions import ServiceError, from_storage_error
from share_service.core.state import get_app_state
from share_service.logging import get_logger
from share_service.schemas import ErrorResponse, ListedItem
from share_service.services import render as renderer
from share_service.services.content_type import BINARY_CONTENT_TYPE, detect_content_type
from share_service.services.errors import StorageError
from share_service.services.ids import generate_id
from share_service.services.item import Item, RenderMode

router = APIRouter(
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)

OwnerToken = Annotated[str, Depends(require_api_token)]

_VIEW_MODES = frozenset({"raw", "render"})


def _too_large(limit: int) -> ServiceError:
    return ServiceError(
        error="too_large",
        message=f"File exceeds the maximum size of {limit} bytes",
        status_code=413,
        details={"limit": limit},
    )


async def _read_body(request: Request, limit: int) -> bytes:
    """Read the raw request body, stopping as soon as it exceeds limit."""
    buffer = bytearray()
    async for chunk in request.stream():
        buffer.extend(chunk)
        if limit > 0 and len(buffer) > limit:
            raise _too_large(limit)
    return bytes(buffer)


def content_disposition(filename: str) -> str:
    """Inline disposition with the filename percent-encoded (RFC 6266)."""
    return f"inline; filename*=UTF-8''{quote(filename, safe='')}"


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return "share - CLI-first file sharing\n"


@router.get("/robots.txt", response_class=PlainTextResponse)
async def robots() -> str:
    return "User-agent: *\nDisallow: /\n"


@router.post("/api/upload", status_code=201, response_class=PlainTextResponse)
async def upload(
    request: Request,
    token: OwnerToken,
    filename: str = "",
    render: str = "auto",
) -> PlainTextResponse:
    """
    Store the request body as a new item and return its URL.

    Accepts either a raw body (filename from the query string) or a
    multipart form with a "file" field.
    """
    settings = get_settings()
    limit = settings.limits.max_file_size_bytes

    try:
        render_mode = RenderMode(render)
    except ValueError as e:
        raise ServiceError(
            error="invalid_render_mode",
            message=f"Invalid render mode: {render!r}",
            status_code=400,
            details={"allowed": [mode.value for mode in RenderMode]},
        ) from e

    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload_file = form.get("file")
        if not isinstance(upload_file, UploadFile):
            raise ServiceError(
                error="missing_file",
                message="No file provided",
                status_code=400,
                details={},
            )
        data = await upload_file.read()
        if limit > 0 and len(data) > limit:
            raise _too_large(limit)
        filename = upload_file.filename or filename
        content_type = upload_file.content_type or ""
    else:
        data = await _read_body(request, limit)

    if not content_type or content_type == BINARY_CONTENT_TYPE:
        content_type = detect_content_type(filename, data)

    item_id = generate_id()
    item = Item(
        id=item_id,
        filename=filename,
        content_type=content_type,
        render_mode=render_mode,
        created_at=datetime.now(UTC),
        owner_token=token,
    )

    storage = get_app_state().storage
    try:
        stored = storage.put(item_id, data, item)
    except StorageError as e:
        raise from_storage_error(e, {"item_id": item_id}) from e

    get_logger(__name__).info(
        "Item uploaded",
        extra={"item_id": item_id, "size": stored.size, "content_type": content_type},
    )
    return PlainTextResponse(f"{settings.server.base_url}/{item_id}\n", status_code=201)


@router.get("/api/list", response_model=list[ListedItem])
async def list_items(token: OwnerToken) -> list[ListedItem]:
    """List the caller's items, newest first."""
    settings = get_settings()
    storage = get_app_state().storage
    try:
        items = storage.list(token)
    except StorageError as e:
        raise from_storage_error(e, {}) from e

    return [
        ListedItem(
            id=item.id,
            url=f"{settings.server.base_url}/{item.id}",
            filename=item.filename,
            size=item.size,
            created=item.created_at.isoformat(),
        )
        for item in items
    ]


@router.delete("/api/delete/{item_id}", status_code=204)
async def delete_item(item_id: str, token: OwnerToken) -> Response:
    """Delete one of the caller's items."""
    storage = get_app_state().storage
    try:
        item = storage.get_meta(item_id)
        if item.owner_token != token:
            raise ServiceError(
                error="forbidden",
                message="You do not own this item",
                status_code=403,
                details={"item_id": item_id},
            )
        storage.delete(item_id)
    except StorageError as e:
        raise from_storage_error(e, {"item_id": item_id}) from e

    get_logger(__name__).info("Item deleted", extra={"item_id": item_id})
    return Response(status_code=204)


@router.get("/{item_id}")
async def view_item(item_id: str) -> Response:
    """Serve an item following its own render mode."""
    return _serve(item_id, view_mode="")


@router.get("/{item_id}/{view_mode}")
async def view_item_as(item_id: str, view_mode: str) -> Response:
    """Serve an item as raw bytes or rendered HTML."""
    if view_mode not in _VIEW_MODES:
        raise ServiceError(
            error="not_found",
            message=f"Unknown view: {view_mode}",
            status_code=404,
            details={"item_id": item_id},
        )
    return _serve(item_id, view_mode=view_mode)


def _serve(item_id: str, view_mode: str) -> Response:
    storage = get_app_state().storage
    try:
        stream, item = storage.get(item_id)
    except StorageError as e:
        raise from_storage_error(e, {"item_id": item_id}) from e

    try:
        data = stream.read()
    finally:
        stream.close()

    if view_mode == "raw":
        should_render = False
    elif view_mode == "render":
        should_render = True
    else:
        should_render = item.render_mode != RenderMode.RAW and renderer.can_render(item.content_type)

    if should_render:
        try:
            page = renderer.render(item.content_type, data, item.filename, item.id)
        except UnicodeDecodeError:
            return Response(content=data, media_type=item.content_type)
        return Response(content=page, media_type="text/html; charset=utf-8")

    headers: dict[str, str] = {}
    if item.filename:
        headers["Content-Disposition"] = content_disposition(item.filename)
    return Response(content=data, media_type=item.content_type, headers=headers)
