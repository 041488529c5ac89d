from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from seoadmin.domain.models import Redirect


async def get_redirect(session: AsyncSession, *, site_id: str, from_path: str) -> Redirect | None:
    result = await session.execute(
        select(Redirect).where(Redirect.site_id == site_id, Redirect.from_path == from_path)
    )
    return result.scalar_one_or_none()


async def list_redirects(session: AsyncSession, *, site_id: str) -> list[Redirect]:
    result = await session.execute(
        select(Redirect).where(Redirect.site_id == site_id).order_by(Redirect.created_at.desc(), Redirect.id.desc())
    )
    return list(result.scalars().all())


async def redirect_targets(session: AsyncSession, *, site_id: str) -> dict[str, str]:
    # Load the whole hop graph once; per-site redirect tables stay small.
    result = await session.execute(
        select(Redirect.from_path, Redirect.to_path).where(Redirect.site_id == site_id)
    )
    return {from_path: to_path for from_path, to_path in result.all()}
