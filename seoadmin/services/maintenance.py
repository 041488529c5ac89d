from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from seoadmin.core.config import get_settings
from seoadmin.persistence.db import SessionLocal
from seoadmin.persistence.repos import audit as audit_repo


logger = logging.getLogger(__name__)


def retention_cutoff(*, retention_days: int | None = None, now: datetime | None = None) -> datetime:
    days = retention_days if retention_days is not None else get_settings().audit_retention_days
    return (now or datetime.now(timezone.utc)) - timedelta(days=days)


async def prune_audit_logs(
    session: AsyncSession,
    *,
    retention_days: int | None = None,
    now: datetime | None = None,
) -> int:
    # Remove SEO audit entries beyond the retention window; the caller commits.
    return await audit_repo.delete_before(session, cutoff=retention_cutoff(retention_days=retention_days, now=now))


async def prune_audit_logs_best_effort() -> int:
    # Background housekeeping: failures are logged, never surfaced to callers.
    async with SessionLocal() as session:
        try:
            deleted = await prune_audit_logs(session)
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.warning("seo_audit_prune_failed", exc_info=exc)
            return 0
    if deleted:
        logger.info("seo_audit_pruned deleted=%s", deleted)
    return deleted
