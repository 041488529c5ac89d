from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from seoadmin.core.errors import SeoAdminError, StoreError, ValidationError
from seoadmin.domain.catalog import PageCatalog
from seoadmin.persistence.repos import seo_pages as seo_pages_repo
from seoadmin.services.audit import RequestContext, record_seo_event
from seoadmin.services.cache import SeoCache
from seoadmin.services.seo_pages import ActorType, apply_upsert, decode_path
from seoadmin.services.validation import validate_bulk_limit


logger = logging.getLogger(__name__)

BULK_OPERATIONS: dict[str, str] = {
    "bulkUpdate": "update",
    "bulkDelete": "delete",
    "bulkReset": "reset",
}


@dataclass
class BulkResult:
    operation: str
    requested: int
    succeeded: list[str] = field(default_factory=list)
    failed: list[dict[str, str]] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    affected_paths: list[str] = field(default_factory=list)

    @property
    def affected_count(self) -> int:
        return len(self.affected_paths)


def _item_error(exc: Exception) -> str:
    if isinstance(exc, ValidationError) and exc.fields:
        detail = "; ".join(f"{name}: {message}" for name, message in exc.fields.items())
        return f"{exc.message} ({detail})"
    if isinstance(exc, SeoAdminError):
        return exc.message
    return "Database error while applying item"


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


def _require_items(data: dict[str, Any], key: str) -> list[Any]:
    items = data.get(key)
    if not isinstance(items, list) or not items:
        raise ValidationError(f"At least one item is required in {key}", fields={key: "required"})
    return items


async def _bulk_update(
    session: AsyncSession,
    *,
    site_id: str,
    pages: list[Any],
    actor: ActorType,
    catalog: PageCatalog | None,
    result: BulkResult,
) -> None:
    for raw in pages:
        raw_path = raw.get("path") if isinstance(raw, dict) else None
        if not isinstance(raw_path, str) or not raw_path:
            result.failed.append({"path": str(raw_path or ""), "error": "Each page requires a path"})
            continue
        try:
            path = decode_path(raw_path)
            async with session.begin_nested():
                outcome = await apply_upsert(
                    session,
                    site_id=site_id,
                    path=path,
                    fields=raw,
                    actor_id=actor.id,
                    catalog=catalog,
                    is_custom=True,
                )
        except (SeoAdminError, SQLAlchemyError) as exc:
            # Skip-and-report: one bad item never blocks its siblings.
            result.failed.append({"path": raw_path, "error": _item_error(exc)})
            continue
        result.succeeded.append(path)
        if outcome.changes:
            result.affected_paths.append(path)


async def _bulk_remove(
    session: AsyncSession,
    *,
    site_id: str,
    paths: list[Any],
    custom_only: bool,
    result: BulkResult,
) -> None:
    for raw_path in _dedupe([str(item) for item in paths]):
        try:
            path = decode_path(raw_path)
            async with session.begin_nested():
                page = await seo_pages_repo.get_page(session, site_id=site_id, path=path)
                if page is None or (custom_only and not page.is_custom):
                    result.skipped.append(path)
                    continue
                await seo_pages_repo.delete_page(session, page=page)
        except (SeoAdminError, SQLAlchemyError) as exc:
            result.failed.append({"path": raw_path, "error": _item_error(exc)})
            continue
        result.succeeded.append(path)
        result.affected_paths.append(path)


async def execute_bulk(
    session: AsyncSession,
    *,
    operation: str,
    data: dict[str, Any],
    actor: ActorType,
    site_id: str,
    request_ctx: RequestContext | None = None,
    catalog: PageCatalog | None = None,
    cache: SeoCache | None = None,
) -> BulkResult:
    """Apply one bulk operation and record it as a single audit entry.

    The role ceiling is checked before the store is touched, so an oversized
    request changes nothing. Items then run one at a time, each inside its own
    savepoint, because a single AsyncSession must not be used concurrently.
    """
    limit_key = BULK_OPERATIONS.get(operation)
    if limit_key is None:
        raise ValidationError("Invalid bulk operation", fields={"operation": operation})
    items = _require_items(data, "pages" if limit_key == "update" else "paths")
    validate_bulk_limit(limit_key, len(items), actor.role)

    result = BulkResult(operation=operation, requested=len(items))
    if limit_key == "update":
        await _bulk_update(session, site_id=site_id, pages=items, actor=actor, catalog=catalog, result=result)
    else:
        await _bulk_remove(
            session,
            site_id=site_id,
            paths=items,
            custom_only=limit_key == "reset",
            result=result,
        )

    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StoreError("Database error while committing bulk operation") from exc

    logger.info(
        "seo_bulk_completed operation=%s site_id=%s affected=%s failed=%s actor_id=%s",
        operation,
        site_id,
        result.affected_count,
        len(result.failed),
        actor.id,
    )
    # Every accepted batch is summarized by exactly one entry, even when nothing changed.
    await record_seo_event(
        site_id=site_id,
        action=f"bulk_{limit_key}",
        entity_type="seo_page",
        performed_by=actor.id,
        metadata={
            "bulk_operation": True,
            "affected_paths": list(result.affected_paths),
            "requested": result.requested,
            "failed_count": len(result.failed),
        },
        request_ctx=request_ctx,
    )
    if result.affected_paths and cache is not None:
        cache.invalidate_site(site_id)
    return result
