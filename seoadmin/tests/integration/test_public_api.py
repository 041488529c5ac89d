from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from seoadmin.apps.api.main import create_app
from seoadmin.tests.utils.actors import actor_headers


def _client() -> AsyncClient:
    app = create_app()
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_health_needs_no_actor() -> None:
    async with _client() as client:
        response = await client.get("/v1/health", headers={"X-Request-Id": "req-health"})
    assert response.status_code == 200
    assert response.json()["data"] == {"status": "ok"}
    assert response.json()["meta"]["request_id"] == "req-health"
    assert response.headers["X-Request-Id"] == "req-health"


@pytest.mark.asyncio
async def test_public_seo_serves_stored_metadata_with_cors() -> None:
    async with _client() as client:
        missing = await client.get("/v1/public/seo/services")
        assert missing.status_code == 404
        assert missing.json()["error"]["code"] == "NOT_FOUND"

        await client.post(
            "/v1/meta",
            json={
                "path": "/services",
                "slug": "services",
                "metaTitle": "Services - AI, Web3 and Development Solutions",
                "metaDescription": "AI, Web3 and development services for growing businesses.",
                "robots": "index, nofollow",
                "openGraph": {"image": "https://cdn.example.com/services.png"},
            },
            headers=actor_headers("admin"),
        )
        response = await client.get("/v1/public/seo/services")
        preflight = await client.options("/v1/public/seo/services")

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert "s-maxage" in response.headers["cache-control"]
    data = response.json()["data"]
    assert data["metaTitle"] == "Services - AI, Web3 and Development Solutions"
    assert data["robots"] == "index,nofollow"
    assert data["openGraph"] == {"image": "https://cdn.example.com/services.png"}
    assert preflight.status_code == 200
    assert preflight.headers["access-control-allow-methods"] == "GET"


@pytest.mark.asyncio
async def test_public_seo_rejects_bad_site_id() -> None:
    async with _client() as client:
        response = await client.get("/v1/public/seo/services", params={"siteId": "bad site!"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
