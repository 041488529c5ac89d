from __future__ import annotations

from typing import Any


class SeoAdminError(Exception):
    """Base error for seoadmin."""

    code = "SEO_ADMIN_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def details(self) -> dict[str, Any] | None:
        return None


class ValidationError(SeoAdminError):
    """Malformed or out-of-range field values; never retried."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, fields: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.fields = dict(fields or {})

    def details(self) -> dict[str, Any] | None:
        if not self.fields:
            return None
        return {"fields": self.fields}


class NotFoundError(SeoAdminError):
    """Unknown path or record."""

    code = "NOT_FOUND"


class LimitExceededError(SeoAdminError):
    """Bulk request larger than the caller's role ceiling; nothing was executed."""

    code = "BULK_LIMIT_EXCEEDED"

    def __init__(self, *, operation: str, limit: int, role: str, requested: int) -> None:
        super().__init__(f"Bulk {operation} limited to {limit} items for {role} role")
        self.operation = operation
        self.limit = limit
        self.role = role
        self.requested = requested

    def details(self) -> dict[str, Any] | None:
        return {
            "operation": self.operation,
            "limit": self.limit,
            "role": self.role,
            "requested": self.requested,
        }


class ChunkOutOfRangeError(SeoAdminError):
    """Sitemap chunk index outside the generated chunk range."""

    code = "SITEMAP_CHUNK_OUT_OF_RANGE"

    def __init__(self, chunk: int, chunk_count: int) -> None:
        super().__init__(f"Sitemap chunk {chunk} out of range (1-{chunk_count})")
        self.chunk = chunk
        self.chunk_count = chunk_count


class StoreError(SeoAdminError):
    """Persistence or connectivity failure; safe for the caller to retry."""

    code = "STORE_ERROR"
