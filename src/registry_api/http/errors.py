"""Shared error helpers for HTTP APIs."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import HTTPException, status

from registry_api.errors import (
    Conflict,
    InternalError,
    InvalidRequest,
    NotFound,
    OwnershipConflict,
    PayloadTooLarge,
    RegistryError,
    Unauthorized,
    UnknownDependency,
    ValidationFailed,
)
from registry_api.models.error import Error

LOGGER = logging.getLogger(__name__)

HTTP_413_CONTENT_TOO_LARGE = 413

_STATUS_ERROR_CODES: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_409_CONFLICT: "conflict",
    HTTP_413_CONTENT_TOO_LARGE: "payload_too_large",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "internal_error",
}

# Most specific first.
_REGISTRY_ERROR_STATUS: tuple[tuple[type[RegistryError], int], ...] = (
    (PayloadTooLarge, HTTP_413_CONTENT_TOO_LARGE),
    (ValidationFailed, status.HTTP_400_BAD_REQUEST),
    (InvalidRequest, status.HTTP_400_BAD_REQUEST),
    (UnknownDependency, status.HTTP_400_BAD_REQUEST),
    (Unauthorized, status.HTTP_401_UNAUTHORIZED),
    (OwnershipConflict, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (Conflict, status.HTTP_409_CONFLICT),
    (InternalError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def error_payload(
    message: str,
    *,
    error: Optional[str] = None,
    status_code: Optional[int] = None,
    details: Optional[dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> dict[str, Any]:
    resolved_error = error or _STATUS_ERROR_CODES.get(status_code or 0, "error")
    return Error(
        error=resolved_error,
        message=message,
        request_id=request_id,
        details=details,
    ).model_dump(by_alias=True, exclude_none=True)


def http_error(
    status_code: int,
    message: str,
    *,
    error: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> HTTPException:
    payload = error_payload(
        message,
        error=error,
        status_code=status_code,
        details=details,
        request_id=request_id,
    )
    return HTTPException(status_code=status_code, detail=payload)


def status_for(exc: RegistryError) -> int:
    for error_type, status_code in _REGISTRY_ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def registry_http_error(exc: RegistryError) -> HTTPException:
    """Translate a registry error; internal failures keep their detail in the log only."""

    status_code = status_for(exc)
    if isinstance(exc, InternalError):
        LOGGER.error("%s: %s", exc.code, exc.message)
        return http_error(status_code, exc.public_message, error=InternalError.code)
    details = None
    if isinstance(exc, UnknownDependency):
        details = {"dependency": exc.dependency}
    return http_error(status_code, exc.message, error=exc.code, details=details)


__all__ = [
    "error_payload",
    "http_error",
    "registry_http_error",
    "status_for",
]
