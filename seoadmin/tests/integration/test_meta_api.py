from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from seoadmin.apps.api.main import create_app
from seoadmin.domain.models import Redirect, SeoAuditLog
from seoadmin.persistence.db import SessionLocal
from seoadmin.tests.utils.actors import actor_headers


ABOUT = {
    "path": "/about",
    "slug": "about",
    "metaTitle": "About Altiora Infotech - Innovation and Craft",
    "metaDescription": "Learn how Altiora Infotech ships AI and Web3 products for ambitious teams worldwide.",
}


def _client() -> AsyncClient:
    app = create_app()
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def _audit_actions() -> list[str]:
    async with SessionLocal() as session:
        result = await session.execute(select(SeoAuditLog.action).order_by(SeoAuditLog.id.asc()))
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_upsert_then_get_round_trip() -> None:
    headers = actor_headers("admin", actor_id="admin-1")
    async with _client() as client:
        created = await client.post("/v1/meta", json=ABOUT, headers=headers)
        assert created.status_code == 200
        body = created.json()
        assert body["meta"]["api_version"] == "v1"
        assert body["data"]["created"] is True
        assert body["data"]["redirectCreated"] is False
        assert {change["field"] for change in body["data"]["changes"]} >= {"metaTitle", "slug"}
        assert body["data"]["page"]["createdBy"] == "admin-1"
        assert body["data"]["page"]["isCustom"] is True

        fetched = await client.get("/v1/meta/about", headers=headers)
        assert fetched.status_code == 200
        page = fetched.json()["data"]
        assert page["path"] == "/about"
        assert page["slug"] == "about"
        assert page["metaTitle"] == ABOUT["metaTitle"]

    assert await _audit_actions() == ["create"]


@pytest.mark.asyncio
async def test_upsert_without_changes_writes_no_audit_entry() -> None:
    headers = actor_headers("admin")
    async with _client() as client:
        await client.post("/v1/meta", json=ABOUT, headers=headers)
        again = await client.post("/v1/meta", json=ABOUT, headers=headers)
        assert again.status_code == 200
        assert again.json()["data"]["created"] is False
        assert again.json()["data"]["changes"] == []

    assert await _audit_actions() == ["create"]


@pytest.mark.asyncio
async def test_partial_upsert_fills_catalog_defaults() -> None:
    async with _client() as client:
        response = await client.post(
            "/v1/meta",
            json={"path": "/contact", "metaTitle": "Contact the Altiora Infotech team today"},
            headers=actor_headers("editor"),
        )
    assert response.status_code == 200
    page = response.json()["data"]["page"]
    assert page["slug"] == "contact-us"
    assert page["pageCategory"] == "contact"
    assert page["metaDescription"].startswith("Contact Altiora Infotech")


@pytest.mark.asyncio
async def test_slug_change_records_redirect_and_audit_trail() -> None:
    headers = actor_headers("admin")
    async with _client() as client:
        await client.post("/v1/meta", json=ABOUT, headers=headers)
        changed = await client.post("/v1/meta", json={**ABOUT, "slug": "who-we-are"}, headers=headers)
        assert changed.status_code == 200
        assert changed.json()["data"]["redirectCreated"] is True

    async with SessionLocal() as session:
        redirect = (await session.execute(select(Redirect))).scalar_one()
    assert (redirect.from_path, redirect.to_path, redirect.status_code) == ("/about", "/who-we-are", 301)
    assert await _audit_actions() == ["create", "slug_change"]

    async with SessionLocal() as session:
        entry = (
            await session.execute(select(SeoAuditLog).where(SeoAuditLog.action == "slug_change"))
        ).scalar_one()
    assert (entry.old_slug, entry.new_slug) == ("about", "who-we-are")
    assert entry.changes == [{"field": "slug", "old_value": "about", "new_value": "who-we-are"}]
    assert entry.metadata_json["redirect_created"] is True
    assert entry.metadata_json["redirect_from"] == "/about"
    assert entry.metadata_json["redirect_to"] == "/who-we-are"


@pytest.mark.asyncio
async def test_validation_errors_name_fields() -> None:
    async with _client() as client:
        response = await client.post(
            "/v1/meta",
            json={**ABOUT, "slug": "Not A Slug", "metaTitle": "x" * 61},
            headers=actor_headers("admin"),
        )
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert "slug" in error["details"]["fields"]
    assert "metaTitle" in error["details"]["fields"]
    assert await _audit_actions() == []


@pytest.mark.asyncio
async def test_duplicate_slug_is_rejected() -> None:
    headers = actor_headers("admin")
    async with _client() as client:
        await client.post("/v1/meta", json=ABOUT, headers=headers)
        response = await client.post("/v1/meta", json={**ABOUT, "path": "/team"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["error"]["details"]["fields"]["slug"] == "Slug already in use"


@pytest.mark.asyncio
async def test_slug_cannot_take_a_catalog_page_url() -> None:
    async with _client() as client:
        response = await client.post(
            "/v1/meta",
            json={**ABOUT, "path": "/team", "slug": "staff"},
            headers=actor_headers("admin"),
        )
        sitemap = await client.get("/sitemap.xml")
    assert response.status_code == 400
    assert response.json()["error"]["details"]["fields"]["slug"] == "URL already used by another page"
    assert sitemap.text.count("<loc>http://test/staff</loc>") == 1
    assert await _audit_actions() == []


@pytest.mark.asyncio
async def test_new_path_cannot_shadow_a_catalog_url() -> None:
    async with _client() as client:
        response = await client.post(
            "/v1/meta",
            json={**ABOUT, "path": "/about-us", "slug": "about-us"},
            headers=actor_headers("admin"),
        )
    assert response.status_code == 400
    assert response.json()["error"]["details"]["fields"]["slug"] == "URL already used by another page"


@pytest.mark.asyncio
async def test_renamed_catalog_page_frees_its_default_url() -> None:
    headers = actor_headers("admin")
    async with _client() as client:
        await client.post("/v1/meta", json={**ABOUT, "slug": "who-we-are"}, headers=headers)
        landing = await client.post("/v1/meta", json={**ABOUT, "path": "/landing", "slug": "about-us"}, headers=headers)
        taken = await client.post("/v1/meta", json={**ABOUT, "path": "/careers", "slug": "contact-us"}, headers=headers)
    assert landing.status_code == 200
    assert taken.status_code == 400
    assert taken.json()["error"]["details"]["fields"]["slug"] == "URL already used by another page"


@pytest.mark.asyncio
async def test_delete_resets_record_and_audits() -> None:
    headers = actor_headers("admin")
    async with _client() as client:
        await client.post("/v1/meta", json=ABOUT, headers=headers)
        deleted = await client.delete("/v1/meta/about", headers=headers)
        assert deleted.status_code == 200
        assert deleted.json()["data"]["path"] == "/about"

        missing = await client.get("/v1/meta/about", headers=headers)
        assert missing.status_code == 404
        assert missing.json()["error"]["code"] == "NOT_FOUND"

        again = await client.delete("/v1/meta/about", headers=headers)
        assert again.status_code == 404

    assert await _audit_actions() == ["create", "reset"]


@pytest.mark.asyncio
async def test_list_reflects_writes_despite_cache() -> None:
    headers = actor_headers("admin")
    async with _client() as client:
        empty = await client.get("/v1/meta", headers=headers)
        assert empty.json()["data"] == []
        await client.post("/v1/meta", json=ABOUT, headers=headers)
        listed = await client.get("/v1/meta", headers=headers)
        assert [page["path"] for page in listed.json()["data"]] == ["/about"]

        filtered = await client.get("/v1/meta", params={"category": "blog"}, headers=headers)
        assert filtered.json()["data"] == []


@pytest.mark.asyncio
async def test_actor_headers_and_permissions_are_enforced() -> None:
    async with _client() as client:
        anonymous = await client.get("/v1/meta")
        assert anonymous.status_code == 401
        assert anonymous.json()["error"]["code"] == "AUTH_UNAUTHORIZED"

        bad_role = await client.get("/v1/meta", headers=actor_headers("owner"))
        assert bad_role.status_code == 401

        reader = actor_headers("custom", permissions=["seo:read"])
        assert (await client.get("/v1/meta", headers=reader)).status_code == 200
        forbidden = await client.post("/v1/meta", json=ABOUT, headers=reader)
        assert forbidden.status_code == 403
        assert forbidden.json()["error"]["code"] == "AUTH_FORBIDDEN"

        editor_cache = await client.get("/v1/meta/cache/stats", headers=actor_headers("editor"))
        assert editor_cache.status_code == 403


@pytest.mark.asyncio
async def test_analyze_scores_draft_without_persisting() -> None:
    async with _client() as client:
        response = await client.post(
            "/v1/meta/analyze",
            json={"metaTitle": "Good SEO Title Example Here", "metaDescription": "Short", "slug": "good-seo"},
            headers=actor_headers("editor"),
        )
        listed = await client.get("/v1/meta", headers=actor_headers("editor"))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["metaTitle"]["severity"] == "warning"
    assert data["slug"]["isValid"] is True
    assert 0 <= data["score"] < 100
    assert data["suggestions"]
    assert listed.json()["data"] == []


@pytest.mark.asyncio
async def test_cache_admin_routes() -> None:
    headers = actor_headers("admin")
    async with _client() as client:
        await client.get("/v1/meta", headers=headers)
        await client.get("/v1/meta", headers=headers)
        stats = await client.get("/v1/meta/cache/stats", headers=headers)
        assert stats.status_code == 200
        assert stats.json()["data"]["hits"] == 1
        assert stats.json()["data"]["total"] == 1

        cleared = await client.post("/v1/meta/cache/clear", headers=headers)
        assert cleared.json()["data"] == {"cleared": 1}


@pytest.mark.asyncio
async def test_sitemap_info_summarizes_catalog() -> None:
    async with _client() as client:
        response = await client.get("/v1/meta/sitemap/info", params={"preview": 3}, headers=actor_headers("editor"))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["needsIndex"] is False
    assert data["sitemapUrls"] == ["http://test/sitemap.xml"]
    assert data["entries"][0]["url"] == "http://test"
    assert len(data["entries"]) == 3


@pytest.mark.asyncio
async def test_reverting_a_slug_replaces_the_redirect() -> None:
    headers = actor_headers("admin")
    async with _client() as client:
        await client.post("/v1/meta", json=ABOUT, headers=headers)
        await client.post("/v1/meta", json={**ABOUT, "slug": "who-we-are"}, headers=headers)
        reverted = await client.post("/v1/meta", json=ABOUT, headers=headers)
        assert reverted.status_code == 200
        assert reverted.json()["data"]["redirectCreated"] is True

    async with SessionLocal() as session:
        redirects = (await session.execute(select(Redirect))).scalars().all()
    assert [(item.from_path, item.to_path) for item in redirects] == [("/who-we-are", "/about")]


@pytest.mark.asyncio
async def test_redirects_are_listed_for_the_site() -> None:
    headers = actor_headers("admin", actor_id="admin-2")
    async with _client() as client:
        await client.post("/v1/meta", json=ABOUT, headers=headers)
        await client.post("/v1/meta", json={**ABOUT, "slug": "who-we-are"}, headers=headers)
        response = await client.get("/v1/meta/redirects", headers=actor_headers("editor"))
        other_site = await client.get("/v1/meta/redirects", params={"siteId": "other"}, headers=headers)
    assert response.status_code == 200
    [redirect] = response.json()["data"]
    assert redirect["fromPath"] == "/about"
    assert redirect["toPath"] == "/who-we-are"
    assert redirect["statusCode"] == 301
    assert redirect["createdBy"] == "admin-2"
    assert other_site.json()["data"] == []
