from __future__ import annotations

from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from seoadmin.apps.api.main import create_app
from seoadmin.core.config import get_settings
from seoadmin.domain.catalog import load_catalog
from seoadmin.domain.models import SeoAuditLog, SeoPage
from seoadmin.persistence.db import SessionLocal
from seoadmin.services.seo_pages import seed_catalog_defaults
from seoadmin.tests.utils.actors import actor_headers


def _client() -> AsyncClient:
    app = create_app()
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def _page(path: str, slug: str) -> dict[str, str]:
    return {
        "path": path,
        "slug": slug,
        "metaTitle": f"Altiora {slug} page with a descriptive title",
        "metaDescription": f"Details about the {slug} page for search engines and social sharing previews.",
    }


async def _audit_entries() -> list[SeoAuditLog]:
    async with SessionLocal() as session:
        result = await session.execute(select(SeoAuditLog).order_by(SeoAuditLog.id.asc()))
        return list(result.scalars().all())


async def _stored_paths() -> list[str]:
    async with SessionLocal() as session:
        result = await session.execute(select(SeoPage.path).order_by(SeoPage.path.asc()))
        return list(result.scalars().all())


async def _seed_default_page(path: str, slug: str) -> None:
    # Rows written outside the admin flow are defaults, not custom overrides.
    now = datetime.now(timezone.utc)
    async with SessionLocal() as session:
        session.add(
            SeoPage(
                site_id=get_settings().default_site_id,
                path=path,
                slug=slug,
                meta_title="Seeded default title for this page",
                meta_description="Seeded default description",
                robots="index,follow",
                page_category="other",
                is_custom=False,
                created_by="seed",
                updated_by="seed",
                created_at=now,
                updated_at=now,
            )
        )
        await session.commit()


@pytest.mark.asyncio
async def test_bulk_update_skips_bad_items_and_audits_once() -> None:
    payload = {
        "operation": "bulkUpdate",
        "data": {
            "pages": [
                _page("/landing-a", "landing-a"),
                {**_page("/landing-b", "landing-b"), "slug": "Bad Slug"},
                _page("/landing-c", "landing-c"),
            ]
        },
    }
    async with _client() as client:
        response = await client.post("/v1/meta/bulk", json=payload, headers=actor_headers("admin", actor_id="admin-7"))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["requested"] == 3
    assert data["succeeded"] == ["/landing-a", "/landing-c"]
    assert [failure["path"] for failure in data["failed"]] == ["/landing-b"]
    assert data["affectedCount"] == 2
    assert await _stored_paths() == ["/landing-a", "/landing-c"]

    entries = await _audit_entries()
    assert len(entries) == 1
    assert entries[0].action == "bulk_update"
    assert entries[0].performed_by == "admin-7"
    assert entries[0].metadata_json["bulk_operation"] is True
    assert entries[0].metadata_json["affected_paths"] == ["/landing-a", "/landing-c"]


@pytest.mark.asyncio
async def test_bulk_limit_rejects_whole_batch() -> None:
    pages = [_page(f"/bulk-{i}", f"bulk-{i}") for i in range(21)]
    async with _client() as client:
        response = await client.post(
            "/v1/meta/bulk",
            json={"operation": "bulkUpdate", "data": {"pages": pages}},
            headers=actor_headers("editor"),
        )
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "BULK_LIMIT_EXCEEDED"
    assert error["message"] == "Bulk update limited to 20 items for editor role"
    assert error["details"]["limit"] == 20
    assert await _stored_paths() == []
    assert await _audit_entries() == []


@pytest.mark.asyncio
async def test_bulk_reset_only_touches_custom_records() -> None:
    await _seed_default_page("/seeded", "seeded")
    async with _client() as client:
        await client.post("/v1/meta", json=_page("/custom", "custom"), headers=actor_headers("admin"))
        response = await client.post(
            "/v1/meta/bulk",
            json={"operation": "bulkReset", "data": {"paths": ["/custom", "/seeded", "/missing"]}},
            headers=actor_headers("admin"),
        )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["succeeded"] == ["/custom"]
    assert data["skipped"] == ["/seeded", "/missing"]
    assert await _stored_paths() == ["/seeded"]

    actions = [entry.action for entry in await _audit_entries()]
    assert actions == ["create", "bulk_reset"]


@pytest.mark.asyncio
async def test_bulk_delete_removes_any_record() -> None:
    await _seed_default_page("/seeded", "seeded")
    async with _client() as client:
        response = await client.post(
            "/v1/meta/bulk",
            json={"operation": "bulkDelete", "data": {"paths": ["seeded", "/seeded"]}},
            headers=actor_headers("admin"),
        )
    data = response.json()["data"]
    assert data["succeeded"] == ["/seeded"]
    assert data["affectedCount"] == 1
    assert await _stored_paths() == []
    assert [entry.action for entry in await _audit_entries()] == ["bulk_delete"]


@pytest.mark.asyncio
async def test_bulk_with_nothing_affected_still_writes_one_audit_entry() -> None:
    async with _client() as client:
        response = await client.post(
            "/v1/meta/bulk",
            json={"operation": "bulkReset", "data": {"paths": ["/never-stored"]}},
            headers=actor_headers("admin"),
        )
    assert response.json()["data"]["skipped"] == ["/never-stored"]
    entries = await _audit_entries()
    assert [entry.action for entry in entries] == ["bulk_reset"]
    assert entries[0].metadata_json["affected_paths"] == []
    assert entries[0].metadata_json["requested"] == 1


@pytest.mark.asyncio
async def test_bulk_rejects_unknown_operation_and_empty_batches() -> None:
    headers = actor_headers("admin")
    async with _client() as client:
        unknown = await client.post("/v1/meta/bulk", json={"operation": "bulkPurge", "data": {}}, headers=headers)
        empty = await client.post(
            "/v1/meta/bulk", json={"operation": "bulkDelete", "data": {"paths": []}}, headers=headers
        )
        forbidden = await client.post(
            "/v1/meta/bulk",
            json={"operation": "bulkDelete", "data": {"paths": ["/x"]}},
            headers=actor_headers("custom", permissions=["seo:read", "seo:write"]),
        )
    assert unknown.status_code == 400
    assert unknown.json()["error"]["details"]["fields"]["operation"] == "bulkPurge"
    assert empty.status_code == 400
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_seeded_catalog_defaults_survive_bulk_reset() -> None:
    site_id = get_settings().default_site_id
    async with SessionLocal() as session:
        seeded = await seed_catalog_defaults(session, site_id=site_id, catalog=load_catalog())
    assert seeded == ["/", "/about", "/services", "/projects", "/blog", "/contact"]

    async with SessionLocal() as session:
        again = await seed_catalog_defaults(session, site_id=site_id, catalog=load_catalog())
    assert again == []

    async with _client() as client:
        response = await client.post(
            "/v1/meta/bulk",
            json={"operation": "bulkReset", "data": {"paths": ["/about", "/blog"]}},
            headers=actor_headers("admin"),
        )
    assert response.json()["data"]["skipped"] == ["/about", "/blog"]
    assert len(await _stored_paths()) == 6
