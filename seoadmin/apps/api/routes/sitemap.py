from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from seoadmin.apps.api.deps import build_sitemap_generator, get_cache, get_db, resolve_base_url
from seoadmin.core.config import get_settings
from seoadmin.core.errors import ChunkOutOfRangeError
from seoadmin.services.cache import SeoCache


logger = logging.getLogger(__name__)

router = APIRouter(tags=["sitemap"])

_XML_MEDIA_TYPE = "application/xml"


def _xml_response(content: str) -> Response:
    return Response(
        content=content,
        media_type=_XML_MEDIA_TYPE,
        headers={"Cache-Control": get_settings().sitemap_cache_control},
    )


def _error_stub(message: str) -> Response:
    return Response(
        content=f'<?xml version="1.0" encoding="UTF-8"?>\n<error>{message}</error>',
        status_code=500,
        media_type=_XML_MEDIA_TYPE,
    )


def _chunk_not_found() -> PlainTextResponse:
    return PlainTextResponse("Sitemap chunk not found", status_code=404)


@router.get("/sitemap.xml", include_in_schema=False)
async def sitemap_xml(
    request: Request,
    db: AsyncSession = Depends(get_db),
    cache: SeoCache = Depends(get_cache),
) -> Response:
    # Single urlset up to the per-file cap, otherwise an index of numbered chunks.
    site_id = get_settings().default_site_id
    try:
        generator = build_sitemap_generator(request, site_id=site_id)

        async def _render() -> str:
            return await generator.render_sitemap(db)

        content = await cache.memoize(
            "sitemap:xml",
            {"siteId": site_id, "baseUrl": resolve_base_url(request)},
            _render,
            ttl_s=cache.sitemap_ttl_s,
            site_id=site_id,
        )
    except Exception as exc:  # noqa: BLE001 - crawlers get an XML stub, never a stack trace
        logger.error("sitemap_render_failed site_id=%s", site_id, exc_info=exc)
        return _error_stub("Failed to generate sitemap")
    return _xml_response(content)


async def _render_chunk(request: Request, raw_chunk: str, db: AsyncSession, cache: SeoCache) -> Response:
    try:
        number = int(raw_chunk)
    except ValueError:
        return _chunk_not_found()
    site_id = get_settings().default_site_id
    try:
        generator = build_sitemap_generator(request, site_id=site_id)

        async def _render() -> str:
            return await generator.render_chunk_for(db, number)

        content = await cache.memoize(
            "sitemap:chunk",
            {"siteId": site_id, "baseUrl": resolve_base_url(request), "chunk": number},
            _render,
            ttl_s=cache.sitemap_ttl_s,
            site_id=site_id,
        )
    except ChunkOutOfRangeError:
        return _chunk_not_found()
    except Exception as exc:  # noqa: BLE001 - crawlers get an XML stub, never a stack trace
        logger.error("sitemap_chunk_render_failed site_id=%s chunk=%s", site_id, number, exc_info=exc)
        return _error_stub("Failed to generate sitemap chunk")
    return _xml_response(content)


@router.get("/sitemap/{chunk}", include_in_schema=False)
async def sitemap_chunk(
    request: Request,
    chunk: str,
    db: AsyncSession = Depends(get_db),
    cache: SeoCache = Depends(get_cache),
) -> Response:
    return await _render_chunk(request, chunk, db, cache)


@router.get("/sitemap-{chunk}.xml", include_in_schema=False)
async def sitemap_chunk_file(
    request: Request,
    chunk: str,
    db: AsyncSession = Depends(get_db),
    cache: SeoCache = Depends(get_cache),
) -> Response:
    # Chunk URLs as referenced from the sitemap index.
    return await _render_chunk(request, chunk, db, cache)
