from __future__ import annotations

from typing import Any

from seoadmin.apps.api.response import ErrorEnvelope


def _error_example(*, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    # Build a consistent error envelope example for OpenAPI docs.
    payload: dict[str, Any] = {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example", "api_version": "v1"},
    }
    if details:
        payload["error"]["details"] = details
    return payload


def _response(description: str, example: dict[str, Any]) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {"application/json": {"example": example}},
    }


DEFAULT_ERROR_RESPONSES: dict[int, dict[str, Any]] = {
    400: _response(
        "Validation failed or bulk limit exceeded",
        _error_example(
            code="VALIDATION_ERROR",
            message="Invalid SEO metadata: metaTitle",
            details={"fields": {"metaTitle": "String should have at most 60 characters"}},
        ),
    ),
    401: _response(
        "Unauthorized",
        _error_example(code="AUTH_UNAUTHORIZED", message="Missing actor identity headers"),
    ),
    403: _response(
        "Forbidden",
        _error_example(
            code="AUTH_FORBIDDEN",
            message="Actor lacks permission seo:bulk",
            details={"required_permission": "seo:bulk"},
        ),
    ),
    404: _response(
        "Not found",
        _error_example(code="NOT_FOUND", message="SEO metadata not found for path /about"),
    ),
    500: _response(
        "Internal error",
        _error_example(code="STORE_ERROR", message="Database error while processing request"),
    ),
}

BULK_LIMIT_EXAMPLE = _error_example(
    code="BULK_LIMIT_EXCEEDED",
    message="Bulk delete limited to 10 items for editor role",
    details={"operation": "delete", "limit": 10, "role": "editor", "requested": 12},
)
