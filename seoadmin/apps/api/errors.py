from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from seoadmin.apps.api.response import error_response
from seoadmin.core.errors import (
    ChunkOutOfRangeError,
    LimitExceededError,
    NotFoundError,
    SeoAdminError,
    StoreError,
    ValidationError,
)


logger = logging.getLogger(__name__)

_DEFAULT_ERROR_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "AUTH_UNAUTHORIZED",
    403: "AUTH_FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    503: "SERVICE_UNAVAILABLE",
}

_DOMAIN_STATUS: tuple[tuple[type[SeoAdminError], int], ...] = (
    (ValidationError, 400),
    (LimitExceededError, 400),
    (NotFoundError, 404),
    (ChunkOutOfRangeError, 404),
    (StoreError, 500),
)


def _default_code(status_code: int) -> str:
    return _DEFAULT_ERROR_CODES.get(status_code, "UNKNOWN_ERROR")


def status_for_error(exc: SeoAdminError) -> int:
    for error_type, status_code in _DOMAIN_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


def _split_detail(detail: Any, status_code: int) -> tuple[str, str, dict[str, Any] | None]:
    # Extract code/message/details from FastAPI HTTPException detail payloads.
    if isinstance(detail, dict):
        code = str(detail.get("code") or _default_code(status_code))
        message = str(detail.get("message") or "Request failed")
        details = {k: v for k, v in detail.items() if k not in {"code", "message"}}
        return code, message, details or None
    if isinstance(detail, str):
        return _default_code(status_code), detail, None
    return _default_code(status_code), "Request failed", None


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    code, message, details = _split_detail(exc.detail, exc.status_code)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=exc.status_code, headers=exc.headers)


async def starlette_http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code, message, details = _split_detail(exc.detail, exc.status_code)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=exc.status_code, headers=exc.headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Request-shape failures share the 400 VALIDATION_ERROR contract with field errors.
    fields: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        fields.setdefault(".".join(loc) or "body", str(error.get("msg", "Invalid value")))
    payload = error_response(
        request=request,
        code=ValidationError.code,
        message="Validation error",
        details={"fields": fields},
    )
    return JSONResponse(content=payload, status_code=400)


async def seo_admin_exception_handler(request: Request, exc: SeoAdminError) -> JSONResponse:
    status_code = status_for_error(exc)
    if status_code >= 500:
        logger.error("seo_admin_error code=%s path=%s", exc.code, request.url.path, exc_info=exc)
    payload = error_response(request=request, code=exc.code, message=exc.message, details=exc.details())
    return JSONResponse(content=payload, status_code=status_code)


async def store_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # Persistence failures are retryable by the caller; never leak driver messages.
    logger.error("store_error path=%s", request.url.path, exc_info=exc)
    payload = error_response(
        request=request,
        code=StoreError.code,
        message="Database error while processing request",
    )
    return JSONResponse(content=payload, status_code=500)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Avoid leaking stack traces; return a stable internal error envelope.
    logger.error("unhandled_error path=%s", request.url.path, exc_info=exc)
    payload = error_response(
        request=request,
        code="INTERNAL_ERROR",
        message="Internal server error",
    )
    return JSONResponse(content=payload, status_code=500)
