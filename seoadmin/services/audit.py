from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
import logging
import math
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from seoadmin.core.config import Settings, get_settings
from seoadmin.core.errors import ValidationError
from seoadmin.domain.models import SeoAuditLog, SeoPage
from seoadmin.persistence.db import SessionLocal
from seoadmin.persistence.repos import audit as audit_repo
from seoadmin.persistence.repos import users as users_repo


logger = logging.getLogger(__name__)

AUDIT_ACTIONS = (
    "create",
    "update",
    "delete",
    "reset",
    "bulk_update",
    "bulk_delete",
    "bulk_reset",
    "slug_change",
    "redirect_create",
)
ENTITY_TYPES = ("seo_page", "redirect")
TRACKED_FIELDS = (
    "metaTitle",
    "metaDescription",
    "slug",
    "robots",
    "pageCategory",
    "openGraph.title",
    "openGraph.description",
    "openGraph.image",
)


@dataclass(frozen=True)
class RequestContext:
    request_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None

    def as_metadata(self) -> dict[str, str]:
        values = {
            "request_id": self.request_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
        }
        return {key: value for key, value in values.items() if value}


@dataclass(frozen=True)
class AuditPage:
    logs: list[dict[str, Any]]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


@dataclass(frozen=True)
class AuditStats:
    total_changes: int
    unique_pages_modified: int
    action_breakdown: dict[str, int]
    top_users: list[dict[str, Any]]
    window_days: int


def get_request_context(request: Request | None) -> RequestContext:
    # Prefer proxy headers for the client address; never persist credentials.
    if request is None:
        return RequestContext()
    request_id = getattr(request.state, "request_id", None) or request.headers.get("X-Request-Id")
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.headers.get("x-real-ip") or (request.client.host if request.client else None)
    return RequestContext(
        request_id=request_id,
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent"),
    )


def page_snapshot(page: SeoPage | None) -> dict[str, Any] | None:
    # Wire-named view of the tracked fields, used for change detection.
    if page is None:
        return None
    return {
        "metaTitle": page.meta_title,
        "metaDescription": page.meta_description,
        "slug": page.slug,
        "robots": page.robots,
        "pageCategory": page.page_category,
        "openGraph": dict(page.open_graph or {}),
    }


def _nested_value(data: dict[str, Any] | None, dotted: str) -> Any:
    current: Any = data
    for key in dotted.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def detect_changes(
    old: dict[str, Any] | None,
    new: dict[str, Any] | None,
    fields: Iterable[str] = TRACKED_FIELDS,
) -> list[dict[str, Any]]:
    changes: list[dict[str, Any]] = []
    for field_name in fields:
        old_value = _nested_value(old, field_name)
        new_value = _nested_value(new, field_name)
        if old_value == new_value:
            continue
        changes.append({"field": field_name, "old_value": old_value, "new_value": new_value})
    return changes


async def record_seo_event(
    *,
    site_id: str,
    action: str,
    entity_type: str,
    performed_by: str,
    path: str | None = None,
    entity_id: str | None = None,
    old_slug: str | None = None,
    new_slug: str | None = None,
    changes: list[dict[str, Any]] | None = None,
    metadata: dict[str, Any] | None = None,
    request_ctx: RequestContext | None = None,
    performed_at: datetime | None = None,
) -> bool:
    # Runs after the mutation commits in its own session, so failures never undo the write.
    entry = SeoAuditLog(
        site_id=site_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        path=path,
        old_slug=old_slug,
        new_slug=new_slug,
        changes=list(changes or []),
        metadata_json={
            "bulk_operation": False,
            **(request_ctx.as_metadata() if request_ctx else {}),
            **(metadata or {}),
        },
        performed_by=performed_by,
        performed_at=performed_at or datetime.now(timezone.utc),
    )
    async with SessionLocal() as audit_session:
        try:
            audit_session.add(entry)
            await audit_session.commit()
        except SQLAlchemyError as exc:
            await audit_session.rollback()
            logger.warning(
                "seo_audit_write_failed action=%s site_id=%s path=%s",
                action,
                site_id,
                path,
                exc_info=exc,
            )
            return False
    return True


def parse_date_bound(raw: str | None, *, end_of_day: bool = False) -> datetime | None:
    # A bare YYYY-MM-DD upper bound covers the whole day.
    if not raw:
        return None
    try:
        if len(raw) == 10:
            day = date.fromisoformat(raw)
            return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError("Invalid date filter", fields={"date": raw}) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _performer(user_id: str, users: dict[str, Any]) -> dict[str, Any]:
    user = users.get(user_id)
    if user is None:
        return {"id": user_id, "email": "Unknown User", "role": "unknown"}
    return {"id": user.id, "email": user.email or "Unknown User", "role": user.role}


def _entry_to_dict(entry: SeoAuditLog, users: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": entry.id,
        "site_id": entry.site_id,
        "action": entry.action,
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "path": entry.path,
        "old_slug": entry.old_slug,
        "new_slug": entry.new_slug,
        "changes": list(entry.changes or []),
        "metadata": dict(entry.metadata_json or {}),
        "performed_by": _performer(entry.performed_by, users),
        "performed_at": _iso(entry.performed_at),
    }


async def query_audit_logs(
    session: AsyncSession,
    *,
    site_id: str,
    action: str | None = None,
    entity_type: str | None = None,
    path: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = 1,
    limit: int | None = None,
    settings: Settings | None = None,
) -> AuditPage:
    settings = settings or get_settings()
    if page < 1:
        raise ValidationError("Page must be at least 1", fields={"page": str(page)})
    resolved_limit = limit or settings.audit_default_page_size
    resolved_limit = max(1, min(resolved_limit, settings.audit_max_page_size))
    entries, total = await audit_repo.list_entries(
        session,
        site_id=site_id,
        action=action,
        entity_type=entity_type,
        path=path,
        performed_from=date_from,
        performed_to=date_to,
        offset=(page - 1) * resolved_limit,
        limit=resolved_limit,
    )
    users = await users_repo.get_users_by_ids(session, user_ids=[entry.performed_by for entry in entries])
    return AuditPage(
        logs=[_entry_to_dict(entry, users) for entry in entries],
        page=page,
        limit=resolved_limit,
        total=total,
    )


async def aggregate_stats(
    session: AsyncSession,
    *,
    site_id: str,
    window_days: int | None = None,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> AuditStats:
    settings = settings or get_settings()
    days = window_days if window_days is not None else settings.audit_stats_default_days
    if days < 1:
        raise ValidationError("Stats window must be at least one day", fields={"days": str(days)})
    since = (now or datetime.now(timezone.utc)) - timedelta(days=days)

    total = await audit_repo.count_since(session, site_id=site_id, since=since)
    unique_pages = await audit_repo.count_distinct_paths_since(session, site_id=site_id, since=since)
    breakdown = await audit_repo.action_counts_since(session, site_id=site_id, since=since)
    top = await audit_repo.top_performers_since(session, site_id=site_id, since=since, limit=5)
    users = await users_repo.get_users_by_ids(session, user_ids=[user_id for user_id, _ in top])

    return AuditStats(
        total_changes=total,
        unique_pages_modified=unique_pages,
        action_breakdown=breakdown,
        top_users=[
            {
                "user_id": user_id,
                "email": _performer(user_id, users)["email"],
                "change_count": count,
            }
            for user_id, count in top
        ],
        window_days=days,
    )
