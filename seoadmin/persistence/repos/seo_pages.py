from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from seoadmin.domain.models import SeoPage


async def get_page(session: AsyncSession, *, site_id: str, path: str) -> SeoPage | None:
    # Site scoping is part of the natural key, never optional.
    result = await session.execute(select(SeoPage).where(SeoPage.site_id == site_id, SeoPage.path == path))
    return result.scalar_one_or_none()


async def get_page_by_slug(session: AsyncSession, *, site_id: str, slug: str) -> SeoPage | None:
    result = await session.execute(select(SeoPage).where(SeoPage.site_id == site_id, SeoPage.slug == slug))
    return result.scalar_one_or_none()


async def list_pages(
    session: AsyncSession,
    *,
    site_id: str,
    category: str | None = None,
    custom_only: bool = False,
) -> list[SeoPage]:
    # Newest edits first so the admin list surfaces recent work.
    stmt = select(SeoPage).where(SeoPage.site_id == site_id)
    if category:
        stmt = stmt.where(SeoPage.page_category == category)
    if custom_only:
        stmt = stmt.where(SeoPage.is_custom.is_(True))
    stmt = stmt.order_by(SeoPage.updated_at.desc(), SeoPage.id.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def delete_page(session: AsyncSession, *, page: SeoPage) -> None:
    await session.delete(page)
