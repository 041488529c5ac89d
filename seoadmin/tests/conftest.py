from __future__ import annotations

import os
import tempfile

# Point the engine at a throwaway SQLite file before any seoadmin module builds it.
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{tempfile.gettempdir()}/seoadmin-test-{os.getpid()}.db",
)
os.environ.pop("REVALIDATION_URL", None)
os.environ.pop("SITE_BASE_URL", None)

import pytest

from seoadmin.core.config import get_settings
from seoadmin.domain.models import Base
from seoadmin.persistence.db import engine


@pytest.fixture(autouse=True)
async def reset_schema_between_tests() -> None:
    # Rebuild tables per test so audit rows and pages never leak across cases.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    # Dispose the async engine to prevent cross-loop connection reuse between tests.
    await engine.dispose()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> None:
    # Clear settings caches between tests to avoid env leakage.
    yield
    get_settings.cache_clear()
