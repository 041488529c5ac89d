from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from seoadmin.apps.api.deps import get_cache, get_db, resolve_site_id
from seoadmin.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from seoadmin.apps.api.response import CamelModel, SuccessEnvelope, success_response
from seoadmin.core.config import get_settings
from seoadmin.services import seo_pages
from seoadmin.services.cache import SeoCache


router = APIRouter(prefix="/public", tags=["public"], responses=DEFAULT_ERROR_RESPONSES)

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET",
    "Access-Control-Allow-Headers": "Content-Type",
}


class PublicSeoResponse(CamelModel):
    path: str
    slug: str
    meta_title: str
    meta_description: str
    robots: str
    open_graph: dict[str, Any] | None = None
    updated_at: str


@router.get("/seo/{path:path}", response_model=SuccessEnvelope[PublicSeoResponse])
async def public_seo(
    request: Request,
    path: str,
    site_id: str | None = Query(default=None, alias="siteId"),
    db: AsyncSession = Depends(get_db),
    cache: SeoCache = Depends(get_cache),
) -> JSONResponse:
    # Read-only mirror for the public site: no actor, permissive CORS, short edge cache.
    resolved_site = resolve_site_id(site_id)
    resolved_path = seo_pages.decode_path(path)

    async def _load() -> dict[str, Any]:
        page = await seo_pages.get_page_record(db, site_id=resolved_site, path=resolved_path)
        updated_at = page.updated_at
        return PublicSeoResponse(
            path=page.path,
            slug=page.slug,
            meta_title=page.meta_title,
            meta_description=page.meta_description,
            robots=page.robots,
            open_graph=page.open_graph or None,
            updated_at=updated_at.isoformat() + ("+00:00" if updated_at.tzinfo is None else ""),
        ).model_dump(by_alias=True)

    data = await cache.memoize(
        "public:seo",
        {"siteId": resolved_site, "path": resolved_path},
        _load,
        ttl_s=cache.page_ttl_s,
        site_id=resolved_site,
    )
    return JSONResponse(
        content=success_response(request=request, data=data),
        headers={**_CORS_HEADERS, "Cache-Control": get_settings().public_seo_cache_control},
    )


@router.options("/seo/{path:path}", include_in_schema=False)
async def public_seo_preflight(path: str) -> Response:
    return Response(status_code=200, headers=_CORS_HEADERS)
