"""
Error responses for the JSON API.

Every failure leaves the service as {"error", "message", "details"}.
Storage-layer exceptions are translated by from_storage_error; anything
unexpected is logged with its traceback and reported as internal_error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from fastapi.responses import JSONResponse

from share_service.logging import get_logger
from share_service.services.errors import (
    ForbiddenError,
    InvalidOperationError,
    ItemNotFoundError,
    StorageError,
    TooLargeError,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from fastapi import FastAPI, Request
    from starlette.requests import Request as StarletteRequest

    ExceptionHandler = Callable[
        [StarletteRequest, Exception],
        Coroutine[Any, Any, JSONResponse],
    ]

__all__ = [
    "ServiceError",
    "from_storage_error",
    "register_exception_handlers",
    "service_error_handler",
    "unhandled_exception_handler",
]

logger = get_logger(__name__)


class ServiceError(Exception):
    """
    A failure with a known HTTP shape.

    Attributes:
        error: Machine-readable code, e.g. "not_found"
        message: Text for humans
        status_code: HTTP status to answer with
        details: Extra context such as the item ID
    """

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int,
        details: dict[str, object] | None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.message = message
        self.status_code = status_code
        self.details: dict[str, object] = dict(details or {})

    def to_body(self) -> dict[str, object]:
        return {"error": self.error, "message": self.message, "details": self.details}


_STORAGE_ERRORS: tuple[tuple[type[StorageError], str, int], ...] = (
    (ItemNotFoundError, "not_found", 404),
    (ForbiddenError, "forbidden", 403),
    (InvalidOperationError, "invalid_operation", 400),
    (TooLargeError, "too_large", 413),
)


def from_storage_error(exc: StorageError, details: dict[str, object]) -> ServiceError:
    """Translate a storage-layer failure into its HTTP form."""
    for error_type, code, status_code in _STORAGE_ERRORS:
        if isinstance(exc, error_type):
            if isinstance(exc, TooLargeError):
                details = {**details, "limit": exc.limit}
            return ServiceError(code, str(exc), status_code, details)
    # Anything else means the backend itself failed.
    return ServiceError(
        "storage_error",
        str(exc),
        503,
        {**details, "exception_type": type(exc).__name__},
    )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Answer with the error's own status and body."""
    logger.warning(
        "Request failed",
        extra={
            "error_code": exc.error,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "details": exc.details,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback and answer 500 without leaking internals."""
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "method": request.method},
    )
    error = ServiceError(
        "internal_error",
        "An unexpected error occurred",
        500,
        {"exception_type": type(exc).__name__},
    )
    return JSONResponse(status_code=500, content=error.to_body())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, cast("ExceptionHandler", service_error_handler))
    app.add_exception_handler(Exception, unhandled_exception_handler)
