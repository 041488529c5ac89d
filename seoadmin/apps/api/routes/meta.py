from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, Request
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from seoadmin.apps.api.deps import (
    Actor,
    build_sitemap_generator,
    get_cache,
    get_catalog,
    get_db,
    get_request_ctx,
    require_permission,
    resolve_site_id,
)
from seoadmin.apps.api.openapi import BULK_LIMIT_EXAMPLE, DEFAULT_ERROR_RESPONSES
from seoadmin.apps.api.response import CamelModel, SuccessEnvelope, success_response
from seoadmin.domain.catalog import PageCatalog
from seoadmin.domain.models import SeoPage
from seoadmin.services import seo_pages
from seoadmin.services.audit import RequestContext
from seoadmin.services.auth.actors import PERM_ADMIN, PERM_BULK, PERM_READ, PERM_WRITE
from seoadmin.services.bulk import BulkResult, execute_bulk
from seoadmin.services.cache import SeoCache
from seoadmin.services.redirects import list_site_redirects
from seoadmin.services.validation import FieldValidation, PageDraft, analyze_page


router = APIRouter(prefix="/meta", tags=["meta"], responses=DEFAULT_ERROR_RESPONSES)


class OpenGraphResponse(CamelModel):
    title: str | None = None
    description: str | None = None
    image: str | None = None


class SeoPageResponse(CamelModel):
    id: int
    site_id: str
    path: str
    slug: str
    meta_title: str
    meta_description: str
    robots: str
    open_graph: OpenGraphResponse | None = None
    page_category: str
    is_custom: bool
    created_by: str
    updated_by: str
    created_at: str
    updated_at: str


class UpsertPageRequest(CamelModel):
    site_id: str | None = None
    path: str
    slug: str | None = None
    meta_title: str | None = None
    meta_description: str | None = None
    robots: str | None = None
    page_category: str | None = None
    open_graph: dict[str, Any] | None = None


class UpsertPageResponse(CamelModel):
    page: SeoPageResponse
    created: bool
    changes: list[dict[str, Any]]
    redirect_created: bool


class BulkData(CamelModel):
    pages: list[dict[str, Any]] | None = None
    paths: list[str] | None = None


class BulkRequest(CamelModel):
    operation: str
    data: BulkData = Field(default_factory=BulkData)
    site_id: str | None = None


class BulkFailure(CamelModel):
    path: str
    error: str


class BulkResponse(CamelModel):
    operation: str
    requested: int
    succeeded: list[str]
    failed: list[BulkFailure]
    skipped: list[str]
    affected_count: int


class AnalyzeRequest(CamelModel):
    meta_title: str = ""
    meta_description: str = ""
    slug: str = ""
    open_graph_image: str | None = None
    open_graph: dict[str, Any] | None = None


class FieldValidationResponse(CamelModel):
    is_valid: bool
    message: str
    severity: Literal["error", "warning", "success"]


class AnalyzeResponse(CamelModel):
    meta_title: FieldValidationResponse
    meta_description: FieldValidationResponse
    slug: FieldValidationResponse
    open_graph_image: FieldValidationResponse
    score: int
    suggestions: list[str]


class SitemapEntryResponse(CamelModel):
    url: str
    last_modified: str
    change_frequency: str
    priority: float


class SitemapInfoResponse(CamelModel):
    total_urls: int
    last_modified: str | None
    category_breakdown: dict[str, int]
    priority_breakdown: dict[str, int]
    average_priority: float
    needs_index: bool
    sitemap_count: int
    sitemap_urls: list[str]
    entries: list[SitemapEntryResponse]


class RedirectResponse(CamelModel):
    from_path: str
    to_path: str
    status_code: int
    created_by: str
    created_at: str


class CacheStatsResponse(CamelModel):
    total: int
    active: int
    expired: int
    max_size: int
    hits: int
    misses: int


class CacheClearResponse(CamelModel):
    cleared: int


def _iso(value) -> str:
    # SQLite drops tzinfo; all stored timestamps are UTC.
    if value.tzinfo is None:
        return value.isoformat() + "+00:00"
    return value.isoformat()


def _to_response(page: SeoPage) -> SeoPageResponse:
    return SeoPageResponse(
        id=page.id,
        site_id=page.site_id,
        path=page.path,
        slug=page.slug,
        meta_title=page.meta_title,
        meta_description=page.meta_description,
        robots=page.robots,
        open_graph=OpenGraphResponse(**page.open_graph) if page.open_graph else None,
        page_category=page.page_category,
        is_custom=page.is_custom,
        created_by=page.created_by,
        updated_by=page.updated_by,
        created_at=_iso(page.created_at),
        updated_at=_iso(page.updated_at),
    )


def _validation_response(result: FieldValidation) -> FieldValidationResponse:
    return FieldValidationResponse(is_valid=result.is_valid, message=result.message, severity=result.severity)


def _bulk_response(result: BulkResult) -> BulkResponse:
    return BulkResponse(
        operation=result.operation,
        requested=result.requested,
        succeeded=result.succeeded,
        failed=[BulkFailure(**item) for item in result.failed],
        skipped=result.skipped,
        affected_count=result.affected_count,
    )


@router.get("", response_model=SuccessEnvelope[list[SeoPageResponse]])
async def list_pages(
    request: Request,
    site_id: str | None = Query(default=None, alias="siteId"),
    category: str | None = None,
    custom_only: bool = Query(default=False, alias="customOnly"),
    actor: Actor = Depends(require_permission(PERM_READ)),
    db: AsyncSession = Depends(get_db),
    cache: SeoCache = Depends(get_cache),
) -> dict:
    # Serve the admin list from cache; writes invalidate the whole site.
    resolved_site = resolve_site_id(site_id)

    async def _load() -> list[dict[str, Any]]:
        pages = await seo_pages.list_page_records(
            db, site_id=resolved_site, category=category, custom_only=custom_only
        )
        return [_to_response(page).model_dump(by_alias=True) for page in pages]

    data = await cache.memoize(
        "meta:list",
        {"siteId": resolved_site, "category": category, "customOnly": custom_only or None},
        _load,
        ttl_s=cache.page_ttl_s,
        site_id=resolved_site,
    )
    return success_response(request=request, data=data)


@router.post("", response_model=SuccessEnvelope[UpsertPageResponse])
async def upsert_page(
    request: Request,
    payload: UpsertPageRequest,
    actor: Actor = Depends(require_permission(PERM_WRITE)),
    db: AsyncSession = Depends(get_db),
    cache: SeoCache = Depends(get_cache),
    catalog: PageCatalog = Depends(get_catalog),
    request_ctx: RequestContext = Depends(get_request_ctx),
) -> dict:
    site_id = resolve_site_id(payload.site_id)
    fields = payload.model_dump(by_alias=True, exclude_unset=True, exclude={"site_id", "path"})
    outcome = await seo_pages.upsert_page(
        db,
        site_id=site_id,
        path=payload.path,
        fields=fields,
        actor=actor,
        request_ctx=request_ctx,
        catalog=catalog,
        cache=cache,
    )
    data = UpsertPageResponse(
        page=_to_response(outcome.page),
        created=outcome.created,
        changes=outcome.changes,
        redirect_created=outcome.redirect_from is not None,
    )
    return success_response(request=request, data=data)


@router.post(
    "/bulk",
    response_model=SuccessEnvelope[BulkResponse],
    responses={400: {"content": {"application/json": {"example": BULK_LIMIT_EXAMPLE}}}},
)
async def bulk_operation(
    request: Request,
    payload: BulkRequest,
    actor: Actor = Depends(require_permission(PERM_BULK)),
    db: AsyncSession = Depends(get_db),
    cache: SeoCache = Depends(get_cache),
    catalog: PageCatalog = Depends(get_catalog),
    request_ctx: RequestContext = Depends(get_request_ctx),
) -> dict:
    # Oversized batches fail with BULK_LIMIT_EXCEEDED before any item is applied.
    result = await execute_bulk(
        db,
        operation=payload.operation,
        data=payload.data.model_dump(exclude_none=True),
        actor=actor,
        site_id=resolve_site_id(payload.site_id),
        request_ctx=request_ctx,
        catalog=catalog,
        cache=cache,
    )
    return success_response(request=request, data=_bulk_response(result))


@router.post("/analyze", response_model=SuccessEnvelope[AnalyzeResponse])
async def analyze(
    request: Request,
    payload: AnalyzeRequest,
    actor: Actor = Depends(require_permission(PERM_READ)),
) -> dict:
    image = payload.open_graph_image
    if image is None and payload.open_graph:
        image = payload.open_graph.get("image")
    analysis = analyze_page(
        PageDraft(
            meta_title=payload.meta_title,
            meta_description=payload.meta_description,
            slug=payload.slug,
            open_graph_image=image,
        )
    )
    data = AnalyzeResponse(
        meta_title=_validation_response(analysis.meta_title),
        meta_description=_validation_response(analysis.meta_description),
        slug=_validation_response(analysis.slug),
        open_graph_image=_validation_response(analysis.open_graph_image),
        score=analysis.score.score,
        suggestions=analysis.score.suggestions,
    )
    return success_response(request=request, data=data)


@router.get("/sitemap/info", response_model=SuccessEnvelope[SitemapInfoResponse])
async def sitemap_info(
    request: Request,
    site_id: str | None = Query(default=None, alias="siteId"),
    preview: int = Query(default=20, ge=0, le=500),
    actor: Actor = Depends(require_permission(PERM_READ)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    generator = build_sitemap_generator(request, site_id=resolve_site_id(site_id))
    entries = await generator.generate_entries(db)
    stats = generator.stats(entries)
    last_modified = stats["last_modified"]
    data = SitemapInfoResponse(
        **{**stats, "last_modified": last_modified.isoformat() if last_modified else None},
        entries=[
            SitemapEntryResponse(
                url=entry.url,
                last_modified=entry.last_modified.isoformat(),
                change_frequency=entry.change_frequency,
                priority=entry.priority,
            )
            for entry in entries[:preview]
        ],
    )
    return success_response(request=request, data=data)


@router.get("/cache/stats", response_model=SuccessEnvelope[CacheStatsResponse])
async def cache_stats(
    request: Request,
    actor: Actor = Depends(require_permission(PERM_ADMIN)),
    cache: SeoCache = Depends(get_cache),
) -> dict:
    stats = cache.stats()
    data = CacheStatsResponse(
        total=stats.total,
        active=stats.active,
        expired=stats.expired,
        max_size=stats.max_size,
        hits=stats.hits,
        misses=stats.misses,
    )
    return success_response(request=request, data=data)


@router.post("/cache/clear", response_model=SuccessEnvelope[CacheClearResponse])
async def cache_clear(
    request: Request,
    actor: Actor = Depends(require_permission(PERM_ADMIN)),
    cache: SeoCache = Depends(get_cache),
) -> dict:
    return success_response(request=request, data=CacheClearResponse(cleared=cache.clear()))


@router.get("/redirects", response_model=SuccessEnvelope[list[RedirectResponse]])
async def list_redirects(
    request: Request,
    site_id: str | None = Query(default=None, alias="siteId"),
    actor: Actor = Depends(require_permission(PERM_READ)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    # Slug changes leave redirects behind; the public site mirrors this list.
    redirects = await list_site_redirects(db, site_id=resolve_site_id(site_id))
    data = [
        RedirectResponse(
            from_path=item.from_path,
            to_path=item.to_path,
            status_code=item.status_code,
            created_by=item.created_by,
            created_at=_iso(item.created_at),
        )
        for item in redirects
    ]
    return success_response(request=request, data=[item.model_dump(by_alias=True) for item in data])


# Catch-all path routes stay last so the fixed sub-routes above win.
@router.get("/{path:path}", response_model=SuccessEnvelope[SeoPageResponse])
async def get_page(
    request: Request,
    path: str,
    site_id: str | None = Query(default=None, alias="siteId"),
    actor: Actor = Depends(require_permission(PERM_READ)),
    db: AsyncSession = Depends(get_db),
    cache: SeoCache = Depends(get_cache),
) -> dict:
    resolved_site = resolve_site_id(site_id)
    resolved_path = seo_pages.decode_path(path)

    async def _load() -> dict[str, Any]:
        page = await seo_pages.get_page_record(db, site_id=resolved_site, path=resolved_path)
        return _to_response(page).model_dump(by_alias=True)

    data = await cache.memoize(
        "meta:page",
        {"siteId": resolved_site, "path": resolved_path},
        _load,
        ttl_s=cache.page_ttl_s,
        site_id=resolved_site,
    )
    return success_response(request=request, data=data)


@router.delete("/{path:path}", response_model=SuccessEnvelope[SeoPageResponse])
async def delete_page(
    request: Request,
    path: str,
    site_id: str | None = Query(default=None, alias="siteId"),
    actor: Actor = Depends(require_permission(PERM_WRITE)),
    db: AsyncSession = Depends(get_db),
    cache: SeoCache = Depends(get_cache),
    request_ctx: RequestContext = Depends(get_request_ctx),
) -> dict:
    page = await seo_pages.delete_page(
        db,
        site_id=resolve_site_id(site_id),
        path=path,
        actor=actor,
        request_ctx=request_ctx,
        cache=cache,
    )
    return success_response(request=request, data=_to_response(page))
