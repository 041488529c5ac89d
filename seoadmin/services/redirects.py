from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from seoadmin.core.errors import ValidationError
from seoadmin.domain.models import Redirect
from seoadmin.persistence.repos import redirects as redirects_repo


REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})
MAX_REDIRECT_DEPTH = 5
_MAX_PATH_LENGTH = 500


@dataclass(frozen=True)
class RedirectChain:
    has_chain: bool
    depth: int
    is_loop: bool = False


def check_redirect_chain(
    targets: dict[str, str],
    from_path: str,
    to_path: str,
    *,
    max_depth: int = MAX_REDIRECT_DEPTH,
) -> RedirectChain:
    """Follow existing hops from ``to_path`` as if ``from_path`` already pointed there.

    ``targets`` maps each redirect source to its destination for one site.
    """
    visited = {from_path}
    current = to_path
    depth = 0
    while depth < max_depth:
        next_path = targets.get(current)
        if next_path is None:
            return RedirectChain(has_chain=depth > 0, depth=depth)
        if next_path in visited:
            return RedirectChain(has_chain=True, depth=depth, is_loop=True)
        visited.add(next_path)
        current = next_path
        depth += 1
    return RedirectChain(has_chain=True, depth=depth)


def _validate_redirect_path(value: str, field_name: str) -> None:
    if not value.startswith("/"):
        raise ValidationError("Redirect paths must start with /", fields={field_name: value})
    if len(value) > _MAX_PATH_LENGTH:
        raise ValidationError("Redirect path too long", fields={field_name: "max 500 characters"})


async def create_redirect(
    session: AsyncSession,
    *,
    site_id: str,
    from_path: str,
    to_path: str,
    created_by: str,
    status_code: int = 301,
) -> Redirect:
    # Flushes only; the caller owns the transaction.
    _validate_redirect_path(from_path, "from")
    _validate_redirect_path(to_path, "to")
    if from_path == to_path:
        raise ValidationError("Redirect cannot point to itself", fields={"to": to_path})
    if status_code not in REDIRECT_STATUS_CODES:
        raise ValidationError(
            "Status code must be a valid redirect code (301, 302, 303, 307, 308)",
            fields={"status_code": str(status_code)},
        )

    targets = await redirects_repo.redirect_targets(session, site_id=site_id)
    targets.pop(from_path, None)
    chain = check_redirect_chain(targets, from_path, to_path)
    if chain.is_loop:
        raise ValidationError("Redirect would create an infinite loop", fields={"to": to_path})
    if chain.depth >= MAX_REDIRECT_DEPTH:
        raise ValidationError(
            f"Redirect chain too long (maximum {MAX_REDIRECT_DEPTH} redirects)",
            fields={"to": to_path},
        )

    redirect = await redirects_repo.get_redirect(session, site_id=site_id, from_path=from_path)
    if redirect is None:
        redirect = Redirect(
            site_id=site_id,
            from_path=from_path,
            to_path=to_path,
            status_code=status_code,
            created_by=created_by,
            created_at=datetime.now(timezone.utc),
        )
        session.add(redirect)
    else:
        redirect.to_path = to_path
        redirect.status_code = status_code
    await session.flush()
    return redirect


async def remove_redirect(session: AsyncSession, *, site_id: str, from_path: str) -> bool:
    # A path that is live again must not keep redirecting away.
    redirect = await redirects_repo.get_redirect(session, site_id=site_id, from_path=from_path)
    if redirect is None:
        return False
    await session.delete(redirect)
    await session.flush()
    return True


async def list_site_redirects(session: AsyncSession, *, site_id: str) -> list[Redirect]:
    return await redirects_repo.list_redirects(session, site_id=site_id)
