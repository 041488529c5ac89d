from __future__ import annotations

import re
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from seoadmin.core.config import get_settings
from seoadmin.core.errors import ValidationError
from seoadmin.domain.catalog import PageCatalog, load_catalog
from seoadmin.persistence.db import get_session
from seoadmin.services.audit import RequestContext, get_request_context
from seoadmin.services.auth.actors import (
    AdminActor,
    CustomActor,
    EditorActor,
    parse_actor,
    parse_permissions,
)
from seoadmin.services.cache import SeoCache
from seoadmin.services.sitemap import SitemapGenerator
from seoadmin.services.validation import SITE_ID_PATTERN


Actor = AdminActor | EditorActor | CustomActor


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with get_session() as session:
        yield session


def _auth_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "AUTH_UNAUTHORIZED", "message": message},
    )


def _forbidden_error(permission: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "code": "AUTH_FORBIDDEN",
            "message": f"Actor lacks permission {permission}",
            "required_permission": permission,
        },
    )


async def get_actor(request: Request) -> Actor:
    # Identity comes from the trusted upstream auth proxy; resolve it once per request.
    actor_id = request.headers.get("X-Actor-Id")
    role = request.headers.get("X-Actor-Role")
    if not actor_id or not role:
        raise _auth_error("Missing actor identity headers")
    try:
        actor = parse_actor(
            {
                "id": actor_id,
                "role": role,
                "permissions": parse_permissions(request.headers.get("X-Actor-Permissions")),
            }
        )
    except ValidationError as exc:
        raise _auth_error(exc.message) from exc
    request.state.actor = actor
    return actor


def require_permission(permission: str):
    # Dependency factory to gate routes on a single permission.
    async def _dependency(actor: Actor = Depends(get_actor)) -> Actor:
        if not actor.allows(permission):
            raise _forbidden_error(permission)
        return actor

    return _dependency


def get_cache(request: Request) -> SeoCache:
    return request.app.state.seo_cache


def get_catalog(request: Request) -> PageCatalog:
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        catalog = load_catalog(get_settings().catalog_path)
        request.app.state.catalog = catalog
    return catalog


def get_request_ctx(request: Request) -> RequestContext:
    return get_request_context(request)


def resolve_site_id(site_id: str | None) -> str:
    resolved = site_id or get_settings().default_site_id
    if not re.match(SITE_ID_PATTERN, resolved):
        raise ValidationError("Invalid site ID format", fields={"siteId": resolved})
    return resolved


def resolve_base_url(request: Request) -> str:
    # Prefer the configured public origin; otherwise trust the proxy's forwarded scheme and host.
    settings = get_settings()
    if settings.site_base_url:
        return settings.site_base_url.rstrip("/")
    host = request.headers.get("x-forwarded-host") or request.headers.get("host") or "localhost:8000"
    scheme = request.headers.get("x-forwarded-proto") or request.url.scheme
    return f"{scheme}://{host}"


def build_sitemap_generator(request: Request, *, site_id: str) -> SitemapGenerator:
    return SitemapGenerator(
        resolve_base_url(request),
        site_id=site_id,
        catalog=get_catalog(request),
        max_entries_per_file=get_settings().sitemap_max_entries_per_file,
    )
