from __future__ import annotations

import logging
import time
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from seoadmin.apps.api.errors import (
    http_exception_handler,
    seo_admin_exception_handler,
    starlette_http_exception_handler,
    store_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from seoadmin.apps.api.response import API_VERSION
from seoadmin.apps.api.routes.audit import router as audit_router
from seoadmin.apps.api.routes.health import router as health_router
from seoadmin.apps.api.routes.meta import router as meta_router
from seoadmin.apps.api.routes.public import router as public_router
from seoadmin.apps.api.routes.sitemap import router as sitemap_router
from seoadmin.core.config import get_settings
from seoadmin.core.errors import SeoAdminError
from seoadmin.core.logging import configure_logging
from seoadmin.domain.catalog import load_catalog
from seoadmin.services.cache import SeoCache


logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    app = FastAPI(title="SEO Admin API")
    # Process-wide collaborators live on app.state so each app (and test) gets fresh ones.
    app.state.seo_cache = SeoCache.from_settings(settings)
    app.state.catalog = load_catalog(settings.catalog_path)

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        start = time.monotonic()
        response = await call_next(request)
        latency_ms = (time.monotonic() - start) * 1000.0
        logger.debug(
            "request_completed method=%s path=%s status=%s latency_ms=%.1f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
            request_id,
        )
        response.headers.setdefault("X-Request-Id", request_id)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        return await starlette_http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        return await unhandled_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        return await validation_exception_handler(request, exc)

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException):
        return await http_exception_handler(request, exc)

    @app.exception_handler(SeoAdminError)
    async def _seo_admin_exception_handler(request: Request, exc: SeoAdminError):
        return await seo_admin_exception_handler(request, exc)

    @app.exception_handler(SQLAlchemyError)
    async def _store_exception_handler(request: Request, exc: SQLAlchemyError):
        return await store_exception_handler(request, exc)

    # Crawler-facing XML lives at the site root, outside the versioned JSON API.
    app.include_router(sitemap_router)
    app.include_router(health_router, prefix=f"/{API_VERSION}")
    app.include_router(meta_router, prefix=f"/{API_VERSION}")
    app.include_router(audit_router, prefix=f"/{API_VERSION}")
    app.include_router(public_router, prefix=f"/{API_VERSION}")

    def custom_openapi() -> dict:
        # Document the trusted actor headers every admin route expects.
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(title="SEO Admin API", version=API_VERSION, routes=app.routes)
        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes["ActorId"] = {"type": "apiKey", "in": "header", "name": "X-Actor-Id"}
        security_schemes["ActorRole"] = {"type": "apiKey", "in": "header", "name": "X-Actor-Role"}
        public_prefixes = ("/v1/health", "/v1/public/")
        for path, operations in schema.get("paths", {}).items():
            if path.startswith(public_prefixes):
                continue
            for operation in operations.values():
                operation.setdefault("security", [{"ActorId": [], "ActorRole": []}])
        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app


app = create_app()
