from __future__ import annotations

import argparse
import asyncio

from seoadmin.core.config import get_settings
from seoadmin.domain.catalog import load_catalog
from seoadmin.persistence.db import SessionLocal
from seoadmin.services.seo_pages import seed_catalog_defaults


async def _run_seed(site_id: str, catalog_path: str | None) -> None:
    # Store catalog defaults so public lookups resolve before anyone edits a page.
    catalog = load_catalog(catalog_path)
    async with SessionLocal() as session:
        seeded = await seed_catalog_defaults(session, site_id=site_id, catalog=catalog)
    print(f"seeded_pages={len(seeded)} site_id={site_id}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed default SEO metadata from the page catalog")
    parser.add_argument("--site-id", default=None)
    parser.add_argument("--catalog", default=None)
    args = parser.parse_args()

    settings = get_settings()
    asyncio.run(_run_seed(args.site_id or settings.default_site_id, args.catalog or settings.catalog_path))


if __name__ == "__main__":
    main()
