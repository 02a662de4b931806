"""
Error taxonomy and the single place where errors become HTTP responses.

Lower layers raise ``ServiceError`` subclasses (or let library errors
escape); ``classify_error`` turns anything into a ``ClassifiedError`` and
``error_response`` renders it as ``{"success": false, "error": ...}``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

DIAGNOSTIC_LIMIT = 500


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    UPSTREAM = "upstream"
    INTERNAL = "internal"


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.UPSTREAM: 500,
    ErrorKind.INTERNAL: 500,
}


class ServiceError(Exception):
    kind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        upstream_status: Optional[int] = None,
        receipt_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.upstream_status = upstream_status
        self.receipt_id = receipt_id


class ValidationFailed(ServiceError):
    kind = ErrorKind.VALIDATION


class Unauthorized(ServiceError):
    kind = ErrorKind.UNAUTHORIZED


class UpstreamError(ServiceError):
    kind = ErrorKind.UPSTREAM


class StorageError(UpstreamError):
    pass


@dataclass(frozen=True)
class ClassifiedError:
    kind: ErrorKind
    message: str
    upstream_status: Optional[int] = None

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


def truncate(text: str, limit: int = DIAGNOSTIC_LIMIT) -> str:
    return text if len(text) <= limit else text[:limit]


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    msg = first.get("msg", "invalid value")
    return f"Invalid request body: {loc}: {msg}" if loc else f"Invalid request body: {msg}"


def classify_error(exc: BaseException) -> ClassifiedError:
    """Map any exception onto the error taxonomy."""
    if isinstance(exc, ServiceError):
        return ClassifiedError(exc.kind, exc.message, exc.upstream_status)
    if isinstance(exc, RequestValidationError):
        return ClassifiedError(ErrorKind.VALIDATION, _validation_message(exc))
    if isinstance(exc, httpx.HTTPStatusError):
        body = truncate(exc.response.text)
        return ClassifiedError(
            ErrorKind.UPSTREAM,
            f"Upstream HTTP {exc.response.status_code}: {body}",
            exc.response.status_code,
        )
    if isinstance(exc, httpx.HTTPError):
        return ClassifiedError(ErrorKind.UPSTREAM, f"Upstream request failed: {exc}")
    if isinstance(exc, SQLAlchemyError):
        return ClassifiedError(ErrorKind.UPSTREAM, f"Database error: {truncate(str(exc))}")
    return ClassifiedError(ErrorKind.INTERNAL, str(exc) or "An unexpected error occurred")


def error_response(exc: BaseException, *, receipt_id: Optional[str] = None) -> JSONResponse:
    classified = classify_error(exc)
    if classified.kind is ErrorKind.INTERNAL:
        logger.error("Unhandled error: %s", classified.message, exc_info=exc)
    else:
        logger.warning("%s error: %s", classified.kind.value, classified.message)

    content = {"success": False, "error": classified.message}
    receipt_id = receipt_id or getattr(exc, "receipt_id", None)
    if receipt_id:
        content["receipt_id"] = receipt_id
    return JSONResponse(status_code=classified.status_code, content=content)
