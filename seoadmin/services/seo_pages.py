from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any
from urllib.parse import unquote

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from seoadmin.core.config import get_settings
from seoadmin.core.errors import NotFoundError, StoreError, ValidationError
from seoadmin.domain.catalog import PageCatalog, default_slug_for_path, is_home_path
from seoadmin.domain.models import SeoPage
from seoadmin.persistence.repos import seo_pages as seo_pages_repo
from seoadmin.services.audit import (
    RequestContext,
    detect_changes,
    page_snapshot,
    record_seo_event,
)
from seoadmin.services.auth.actors import AdminActor, CustomActor, EditorActor
from seoadmin.services.cache import SeoCache
from seoadmin.services.redirects import create_redirect, remove_redirect
from seoadmin.services.revalidation import trigger_revalidation
from seoadmin.services.sitemap import public_path
from seoadmin.services.validation import normalize_slug, validate_page_input


logger = logging.getLogger(__name__)

ActorType = AdminActor | EditorActor | CustomActor


@dataclass
class UpsertOutcome:
    page: SeoPage
    created: bool
    changes: list[dict[str, Any]] = field(default_factory=list)
    old_slug: str | None = None
    redirect_from: str | None = None
    redirect_to: str | None = None

    @property
    def slug_changed(self) -> bool:
        return self.old_slug is not None and self.old_slug != self.page.slug


def decode_path(raw: str, *, max_iterations: int | None = None) -> str:
    """Collapse multi-level percent-encoding into a canonical site path.

    Decoding repeats until the value stops changing. Input that is still
    changing after ``max_iterations`` rounds is rejected rather than used raw.
    """
    limit = max_iterations if max_iterations is not None else get_settings().path_decode_max_iterations
    current = raw
    for _ in range(max(1, limit)):
        decoded = unquote(current)
        if decoded == current:
            break
        current = decoded
    else:
        if unquote(current) != current:
            raise ValidationError(
                f"Path is encoded more than {limit} levels deep",
                fields={"path": raw},
            )
    current = current.strip()
    if not current:
        raise ValidationError("Path is required", fields={"path": "required"})
    if current != "home" and not current.startswith("/"):
        current = f"/{current}"
    return current


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def fallback_slug(path: str) -> str:
    # Mechanical slug for paths that have neither a stored nor a catalog slug.
    if is_home_path(path):
        return "home"
    return normalize_slug(default_slug_for_path(path)) or "page"


def _base_fields(path: str, existing: SeoPage | None, catalog: PageCatalog | None) -> dict[str, Any]:
    if existing is not None:
        base: dict[str, Any] = {
            "slug": existing.slug,
            "metaTitle": existing.meta_title,
            "metaDescription": existing.meta_description,
            "robots": existing.robots,
            "pageCategory": existing.page_category,
        }
        if existing.open_graph:
            base["openGraph"] = dict(existing.open_graph)
        return base
    catalog_page = catalog.get_page_by_path(path) if catalog is not None else None
    if catalog_page is None:
        return {"slug": fallback_slug(path), "pageCategory": "other"}
    base = {"slug": catalog_page.default_slug, "pageCategory": catalog_page.category}
    if catalog_page.default_title:
        base["metaTitle"] = catalog_page.default_title
    if catalog_page.default_description:
        base["metaDescription"] = catalog_page.default_description
    return base


async def get_page_record(session: AsyncSession, *, site_id: str, path: str) -> SeoPage:
    page = await seo_pages_repo.get_page(session, site_id=site_id, path=path)
    if page is None:
        raise NotFoundError(f"SEO metadata not found for path {path}")
    return page


async def list_page_records(
    session: AsyncSession,
    *,
    site_id: str,
    category: str | None = None,
    custom_only: bool = False,
) -> list[SeoPage]:
    return await seo_pages_repo.list_pages(session, site_id=site_id, category=category, custom_only=custom_only)


async def find_url_holder(
    session: AsyncSession,
    *,
    site_id: str,
    path: str,
    slug: str,
    catalog: PageCatalog | None = None,
) -> str | None:
    # Another page already published at the location this slug would render to.
    if is_home_path(path):
        return None
    target = public_path(path, slug)
    published = {page.path: page.slug for page in await seo_pages_repo.list_pages(session, site_id=site_id)}
    if catalog is not None:
        for catalog_page in catalog:
            published.setdefault(catalog_page.path, catalog_page.default_slug)
    for other_path, other_slug in published.items():
        if other_path != path and public_path(other_path, other_slug) == target:
            return other_path
    return None


async def apply_upsert(
    session: AsyncSession,
    *,
    site_id: str,
    path: str,
    fields: dict[str, Any],
    actor_id: str,
    catalog: PageCatalog | None = None,
    is_custom: bool = True,
) -> UpsertOutcome:
    # Validate, persist and flush one record; the caller owns commit and side effects.
    existing = await seo_pages_repo.get_page(session, site_id=site_id, path=path)
    updates = {key: value for key, value in fields.items() if key not in {"path", "siteId", "site_id"}}
    payload = {**_base_fields(path, existing, catalog), **updates, "path": path, "siteId": site_id}
    data = validate_page_input(payload)

    holder = await seo_pages_repo.get_page_by_slug(session, site_id=site_id, slug=data.slug)
    if holder is not None and holder.path != path:
        raise ValidationError(
            f"Slug {data.slug!r} is already used by {holder.path}",
            fields={"slug": "Slug already in use"},
        )
    url_holder = await find_url_holder(session, site_id=site_id, path=path, slug=data.slug, catalog=catalog)
    if url_holder is not None:
        raise ValidationError(
            f"Slug {data.slug!r} would publish {path} at the URL of {url_holder}",
            fields={"slug": "URL already used by another page"},
        )

    old_snapshot = page_snapshot(existing)
    now = _utc_now()
    if existing is None:
        page = SeoPage(
            site_id=site_id,
            path=path,
            slug=data.slug,
            meta_title=data.meta_title,
            meta_description=data.meta_description,
            robots=data.robots,
            open_graph=data.open_graph_values(),
            page_category=data.page_category,
            is_custom=is_custom,
            created_by=actor_id,
            updated_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        session.add(page)
    else:
        page = existing
        page.slug = data.slug
        page.meta_title = data.meta_title
        page.meta_description = data.meta_description
        page.robots = data.robots
        page.open_graph = data.open_graph_values()
        page.page_category = data.page_category
        page.is_custom = page.is_custom or is_custom
        page.updated_by = actor_id
        page.updated_at = now

    outcome = UpsertOutcome(
        page=page,
        created=existing is None,
        changes=detect_changes(old_snapshot, page_snapshot(page)),
        old_slug=old_snapshot["slug"] if old_snapshot else None,
    )
    await session.flush()

    if outcome.slug_changed:
        redirect_from = f"/{outcome.old_slug}"
        redirect_to = f"/{page.slug}"
        await remove_redirect(session, site_id=site_id, from_path=redirect_to)
        try:
            await create_redirect(
                session,
                site_id=site_id,
                from_path=redirect_from,
                to_path=redirect_to,
                created_by=actor_id,
            )
        except ValidationError as exc:
            logger.warning(
                "slug_redirect_skipped site_id=%s path=%s reason=%s",
                site_id,
                path,
                exc.message,
            )
        else:
            outcome.redirect_from = redirect_from
            outcome.redirect_to = redirect_to
    return outcome


async def _commit(session: AsyncSession) -> None:
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ValidationError("Path or slug conflicts with an existing record", fields={"slug": "conflict"}) from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StoreError("Database error while saving SEO metadata") from exc


async def _after_write(*, site_id: str, path: str, cache: SeoCache | None, revalidate: bool) -> None:
    # Invalidate before returning so the next read cannot see stale data.
    if cache is not None:
        cache.invalidate_site(site_id)
    if revalidate:
        await trigger_revalidation(path)


async def upsert_page(
    session: AsyncSession,
    *,
    site_id: str,
    path: str,
    fields: dict[str, Any],
    actor: ActorType,
    request_ctx: RequestContext | None = None,
    catalog: PageCatalog | None = None,
    cache: SeoCache | None = None,
    revalidate: bool = True,
) -> UpsertOutcome:
    path = decode_path(path)
    try:
        outcome = await apply_upsert(
            session,
            site_id=site_id,
            path=path,
            fields=fields,
            actor_id=actor.id,
            catalog=catalog,
        )
    except IntegrityError as exc:
        await session.rollback()
        raise ValidationError("Path or slug conflicts with an existing record", fields={"slug": "conflict"}) from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StoreError("Database error while saving SEO metadata") from exc
    await _commit(session)
    page = outcome.page
    logger.info("seo_page_saved site_id=%s path=%s created=%s", site_id, path, outcome.created)

    if outcome.changes:
        # One entry per save; a slug change carries its redirect in the metadata.
        action = "create" if outcome.created else "update"
        metadata: dict[str, Any] = {}
        if outcome.slug_changed:
            action = "slug_change"
            metadata = {
                "redirect_created": outcome.redirect_from is not None,
                "redirect_from": outcome.redirect_from,
                "redirect_to": outcome.redirect_to,
            }
        await record_seo_event(
            site_id=site_id,
            action=action,
            entity_type="seo_page",
            entity_id=str(page.id),
            path=path,
            old_slug=outcome.old_slug if outcome.slug_changed else None,
            new_slug=page.slug if outcome.slug_changed else None,
            changes=outcome.changes,
            metadata=metadata,
            performed_by=actor.id,
            request_ctx=request_ctx,
        )

    await _after_write(site_id=site_id, path=path, cache=cache, revalidate=revalidate)
    return outcome


async def delete_page(
    session: AsyncSession,
    *,
    site_id: str,
    path: str,
    actor: ActorType,
    request_ctx: RequestContext | None = None,
    cache: SeoCache | None = None,
    revalidate: bool = True,
) -> SeoPage:
    # Deleting a record resets the path to its catalog defaults.
    path = decode_path(path)
    page = await get_page_record(session, site_id=site_id, path=path)
    old_snapshot = page_snapshot(page)
    await seo_pages_repo.delete_page(session, page=page)
    await _commit(session)
    logger.info("seo_page_reset site_id=%s path=%s", site_id, path)

    changes = detect_changes(old_snapshot, None)
    if changes:
        await record_seo_event(
            site_id=site_id,
            action="reset",
            entity_type="seo_page",
            entity_id=str(page.id),
            path=path,
            old_slug=page.slug,
            changes=changes,
            performed_by=actor.id,
            request_ctx=request_ctx,
        )
    await _after_write(site_id=site_id, path=path, cache=cache, revalidate=revalidate)
    return page


async def seed_catalog_defaults(
    session: AsyncSession,
    *,
    site_id: str,
    catalog: PageCatalog,
    actor_id: str = "system",
) -> list[str]:
    """Store catalog defaults as non-custom records for paths that have none yet.

    Only catalog pages that carry both a default title and description can be
    stored. Seeded rows are left alone by bulk reset.
    """
    seeded: list[str] = []
    for catalog_page in catalog:
        if not (catalog_page.default_title and catalog_page.default_description):
            continue
        if await seo_pages_repo.get_page(session, site_id=site_id, path=catalog_page.path) is not None:
            continue
        try:
            async with session.begin_nested():
                await apply_upsert(
                    session,
                    site_id=site_id,
                    path=catalog_page.path,
                    fields={},
                    actor_id=actor_id,
                    catalog=catalog,
                    is_custom=False,
                )
        except ValidationError as exc:
            logger.warning("catalog_seed_skipped site_id=%s path=%s reason=%s", site_id, catalog_page.path, exc.message)
            continue
        seeded.append(catalog_page.path)
    await _commit(session)
    logger.info("catalog_seeded site_id=%s pages=%s", site_id, len(seeded))
    return seeded
