from __future__ import annotations

from datetime import datetime

from sqlalchemy import Select, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from seoadmin.domain.models import SeoAuditLog


def _filtered(
    stmt: Select,
    *,
    site_id: str,
    action: str | None,
    entity_type: str | None,
    path: str | None,
    performed_from: datetime | None,
    performed_to: datetime | None,
) -> Select:
    # Apply the shared filter set so list and count always agree.
    stmt = stmt.where(SeoAuditLog.site_id == site_id)
    if action:
        stmt = stmt.where(SeoAuditLog.action == action)
    if entity_type:
        stmt = stmt.where(SeoAuditLog.entity_type == entity_type)
    if path:
        stmt = stmt.where(func.lower(SeoAuditLog.path).contains(path.lower(), autoescape=True))
    if performed_from:
        stmt = stmt.where(SeoAuditLog.performed_at >= performed_from)
    if performed_to:
        stmt = stmt.where(SeoAuditLog.performed_at <= performed_to)
    return stmt


async def list_entries(
    session: AsyncSession,
    *,
    site_id: str,
    action: str | None = None,
    entity_type: str | None = None,
    path: str | None = None,
    performed_from: datetime | None = None,
    performed_to: datetime | None = None,
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[SeoAuditLog], int]:
    filters = dict(
        site_id=site_id,
        action=action,
        entity_type=entity_type,
        path=path,
        performed_from=performed_from,
        performed_to=performed_to,
    )
    count_stmt = _filtered(select(func.count()).select_from(SeoAuditLog), **filters)
    total = int((await session.execute(count_stmt)).scalar() or 0)

    stmt = _filtered(select(SeoAuditLog), **filters)
    stmt = stmt.order_by(SeoAuditLog.performed_at.desc(), SeoAuditLog.id.desc()).offset(offset).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all()), total


async def count_since(session: AsyncSession, *, site_id: str, since: datetime) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(SeoAuditLog)
        .where(SeoAuditLog.site_id == site_id, SeoAuditLog.performed_at >= since)
    )
    return int(result.scalar() or 0)


async def count_distinct_paths_since(session: AsyncSession, *, site_id: str, since: datetime) -> int:
    result = await session.execute(
        select(func.count(func.distinct(SeoAuditLog.path))).where(
            SeoAuditLog.site_id == site_id,
            SeoAuditLog.performed_at >= since,
            SeoAuditLog.path.is_not(None),
        )
    )
    return int(result.scalar() or 0)


async def action_counts_since(session: AsyncSession, *, site_id: str, since: datetime) -> dict[str, int]:
    result = await session.execute(
        select(SeoAuditLog.action, func.count())
        .where(SeoAuditLog.site_id == site_id, SeoAuditLog.performed_at >= since)
        .group_by(SeoAuditLog.action)
    )
    return {action: int(count) for action, count in result.all()}


async def top_performers_since(
    session: AsyncSession,
    *,
    site_id: str,
    since: datetime,
    limit: int = 5,
) -> list[tuple[str, int]]:
    change_count = func.count().label("change_count")
    result = await session.execute(
        select(SeoAuditLog.performed_by, change_count)
        .where(SeoAuditLog.site_id == site_id, SeoAuditLog.performed_at >= since)
        .group_by(SeoAuditLog.performed_by)
        .order_by(change_count.desc(), SeoAuditLog.performed_by.asc())
        .limit(limit)
    )
    return [(performed_by, int(count)) for performed_by, count in result.all()]


async def delete_before(session: AsyncSession, *, cutoff: datetime) -> int:
    result = await session.execute(delete(SeoAuditLog).where(SeoAuditLog.performed_at < cutoff))
    return int(result.rowcount or 0)


async def count_before(session: AsyncSession, *, cutoff: datetime) -> int:
    result = await session.execute(
        select(func.count()).select_from(SeoAuditLog).where(SeoAuditLog.performed_at < cutoff)
    )
    return int(result.scalar() or 0)
