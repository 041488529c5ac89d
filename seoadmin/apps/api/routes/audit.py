from __future__ import annotations

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from seoadmin.apps.api.deps import Actor, get_db, require_permission, resolve_site_id
from seoadmin.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from seoadmin.apps.api.response import CamelModel, SuccessEnvelope, success_response
from seoadmin.core.config import get_settings
from seoadmin.core.errors import ValidationError
from seoadmin.services.audit import (
    AUDIT_ACTIONS,
    ENTITY_TYPES,
    aggregate_stats,
    parse_date_bound,
    query_audit_logs,
)
from seoadmin.services.auth.actors import PERM_AUDIT
from seoadmin.services.maintenance import prune_audit_logs_best_effort


router = APIRouter(prefix="/audit", tags=["audit"], responses=DEFAULT_ERROR_RESPONSES)


class PerformerResponse(CamelModel):
    id: str
    email: str
    role: str


class ChangeResponse(CamelModel):
    field: str
    old_value: Any = None
    new_value: Any = None


class AuditLogResponse(CamelModel):
    id: int
    site_id: str
    action: str
    entity_type: str
    entity_id: str | None
    path: str | None
    old_slug: str | None
    new_slug: str | None
    changes: list[ChangeResponse]
    metadata: dict[str, Any]
    performed_by: PerformerResponse
    performed_at: str


class PaginationResponse(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class AuditLogsPage(CamelModel):
    logs: list[AuditLogResponse]
    pagination: PaginationResponse


class AuditStatsRequest(CamelModel):
    days: int | None = Field(default=None, ge=1, le=3650)
    site_id: str | None = None


class TopUserResponse(CamelModel):
    user_id: str
    email: str
    change_count: int


class AuditStatsResponse(CamelModel):
    total_changes: int
    unique_pages_modified: int
    action_breakdown: dict[str, int]
    top_users: list[TopUserResponse]
    window_days: int


def _check_choice(value: str | None, choices: tuple[str, ...], field_name: str) -> None:
    if value and value not in choices:
        raise ValidationError(f"Unknown {field_name}", fields={field_name: value})


@router.get("", response_model=SuccessEnvelope[AuditLogsPage])
async def list_audit_logs(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    site_id: str | None = Query(default=None, alias="siteId"),
    action: str | None = None,
    entity_type: str | None = Query(default=None, alias="entityType"),
    path: str | None = None,
    date_from: str | None = Query(default=None, alias="dateFrom"),
    date_to: str | None = Query(default=None, alias="dateTo"),
    actor: Actor = Depends(require_permission(PERM_AUDIT)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    # Limits above the maximum page size are capped rather than rejected.
    _check_choice(action, AUDIT_ACTIONS, "action")
    _check_choice(entity_type, ENTITY_TYPES, "entityType")
    result = await query_audit_logs(
        db,
        site_id=resolve_site_id(site_id),
        action=action,
        entity_type=entity_type,
        path=path,
        date_from=parse_date_bound(date_from),
        date_to=parse_date_bound(date_to, end_of_day=True),
        page=page,
        limit=limit,
    )
    data = AuditLogsPage(
        logs=[AuditLogResponse(**entry) for entry in result.logs],
        pagination=PaginationResponse(
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=result.total_pages,
            has_next=result.has_next,
            has_prev=result.has_prev,
        ),
    )
    return success_response(request=request, data=data)


@router.post("/stats", response_model=SuccessEnvelope[AuditStatsResponse])
async def audit_stats(
    request: Request,
    payload: AuditStatsRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(require_permission(PERM_AUDIT)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    stats = await aggregate_stats(db, site_id=resolve_site_id(payload.site_id), window_days=payload.days)
    if get_settings().audit_prune_on_stats:
        # Retention purge piggybacks on stats reads; failures are only logged.
        background_tasks.add_task(prune_audit_logs_best_effort)
    data = AuditStatsResponse(
        total_changes=stats.total_changes,
        unique_pages_modified=stats.unique_pages_modified,
        action_breakdown=stats.action_breakdown,
        top_users=[TopUserResponse(**user) for user in stats.top_users],
        window_days=stats.window_days,
    )
    return success_response(request=request, data=data)
