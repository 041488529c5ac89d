from __future__ import annotations

import json

import pytest

from seoadmin.core.errors import ValidationError
from seoadmin.domain.catalog import (
    DEFAULT_CATALOG,
    PageCatalog,
    default_slug_for_path,
    is_home_path,
    load_catalog,
)


def test_bundled_catalog_lookups() -> None:
    catalog = load_catalog()
    assert len(catalog) == len(DEFAULT_CATALOG)
    assert "/about" in catalog
    about = catalog.get_page_by_path("/about")
    assert about is not None
    assert about.default_slug == "about-us"
    assert catalog.get_page_by_slug("contact-us").path == "/contact"
    assert catalog.get_page_by_path("/missing") is None
    assert all(page.category == "services" for page in catalog.get_pages_by_category("services"))
    assert catalog.all_paths()[0] == "/"


def test_bundled_catalog_has_unique_paths_and_slugs() -> None:
    catalog = load_catalog()
    assert len(set(catalog.all_paths())) == len(catalog)
    assert len(set(catalog.all_slugs())) == len(catalog)


def test_default_slug_for_path() -> None:
    assert default_slug_for_path("/about") == "about"
    assert default_slug_for_path("/services/web2") == "services-web2"
    assert is_home_path("/")
    assert is_home_path("home")
    assert not is_home_path("/homepage")


def test_load_catalog_from_json(tmp_path) -> None:
    catalog_file = tmp_path / "catalog.json"
    catalog_file.write_text(
        json.dumps(
            [
                {"path": "/", "defaultSlug": "home", "category": "main"},
                {"path": "/team", "default_slug": "team", "category": "about", "defaultTitle": "Team"},
            ]
        ),
        encoding="utf-8",
    )
    catalog = load_catalog(str(catalog_file))
    assert isinstance(catalog, PageCatalog)
    assert catalog.all_paths() == ["/", "/team"]
    assert catalog.get_page_by_path("/team").default_title == "Team"


def test_load_catalog_rejects_unknown_category(tmp_path) -> None:
    catalog_file = tmp_path / "catalog.json"
    catalog_file.write_text(json.dumps([{"path": "/x", "defaultSlug": "x", "category": "misc"}]), encoding="utf-8")
    with pytest.raises(ValidationError):
        load_catalog(str(catalog_file))
