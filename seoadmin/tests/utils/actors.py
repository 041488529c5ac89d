from __future__ import annotations

from uuid import uuid4

from seoadmin.domain.models import AdminUser
from seoadmin.persistence.db import SessionLocal


def actor_headers(
    role: str = "admin",
    *,
    actor_id: str | None = None,
    permissions: list[str] | None = None,
) -> dict[str, str]:
    # Build the trusted identity headers the upstream auth proxy would forward.
    headers = {"X-Actor-Id": actor_id or f"user-{uuid4().hex[:8]}", "X-Actor-Role": role}
    if permissions is not None:
        headers["X-Actor-Permissions"] = ",".join(permissions)
    return headers


async def create_admin_user(*, user_id: str, email: str, role: str = "admin") -> AdminUser:
    # Seed an identity row so audit views can resolve the performer.
    async with SessionLocal() as session:
        user = AdminUser(id=user_id, email=email, role=role, is_active=True)
        session.add(user)
        await session.commit()
    return user
