from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from seoadmin.domain.models import AdminUser


async def get_users_by_ids(session: AsyncSession, *, user_ids: list[str]) -> dict[str, AdminUser]:
    # Resolve performer identities in one round trip for audit listings.
    ids = sorted({user_id for user_id in user_ids if user_id})
    if not ids:
        return {}
    result = await session.execute(select(AdminUser).where(AdminUser.id.in_(ids)))
    return {user.id: user for user in result.scalars().all()}
