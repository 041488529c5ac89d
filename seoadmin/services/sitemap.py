from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import math
from typing import Any, Iterable
from xml.sax.saxutils import escape

from sqlalchemy.ext.asyncio import AsyncSession

from seoadmin.core.config import SITEMAP_URL_LIMIT
from seoadmin.core.errors import ChunkOutOfRangeError
from seoadmin.domain.catalog import PageCatalog, default_slug_for_path, is_home_path
from seoadmin.domain.models import SeoPage
from seoadmin.persistence.repos import seo_pages as seo_pages_repo


SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
_XML_ENTITIES = {"'": "&apos;", '"': "&quot;"}

_CHANGE_FREQUENCY = {
    "main": "weekly",
    "blog": "weekly",
    "services": "monthly",
    "about": "monthly",
    "contact": "yearly",
}
_CATEGORY_PRIORITY = {
    "main": 0.9,
    "services": 0.8,
    "blog": 0.7,
    "about": 0.6,
    "contact": 0.6,
}


@dataclass(frozen=True)
class SitemapEntry:
    url: str
    last_modified: datetime
    change_frequency: str
    priority: float
    category: str = "other"


def escape_xml(value: str) -> str:
    return escape(value, _XML_ENTITIES)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; every stored timestamp is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_lastmod(value: datetime) -> str:
    return _as_utc(value).strftime("%Y-%m-%d")


def change_frequency_for(category: str) -> str:
    return _CHANGE_FREQUENCY.get(category, "monthly")


def priority_for(path: str, category: str) -> float:
    if is_home_path(path):
        return 1.0
    return _CATEGORY_PRIORITY.get(category, 0.5)


def public_path(path: str, slug: str | None) -> str:
    # Site-relative location a page is published under.
    if is_home_path(path):
        return "/"
    if slug and slug != default_slug_for_path(path):
        return f"/{slug}"
    return path


class SitemapGenerator:
    """Derive sitemap entries from the page catalog merged with stored overrides.

    Output is ordered by priority (highest first) then URL, and contains each
    URL once. Sets larger than ``max_entries_per_file`` are rendered as a
    sitemap index whose chunks are served separately by 1-based number.
    """

    def __init__(
        self,
        base_url: str,
        *,
        site_id: str,
        catalog: PageCatalog,
        max_entries_per_file: int = SITEMAP_URL_LIMIT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.site_id = site_id
        self.catalog = catalog
        self.max_entries_per_file = max(1, min(int(max_entries_per_file), SITEMAP_URL_LIMIT))

    def build_url(self, path: str, slug: str | None) -> str:
        if is_home_path(path):
            return self.base_url
        return f"{self.base_url}{public_path(path, slug)}"

    def build_entries(self, stored_pages: Iterable[SeoPage], *, now: datetime | None = None) -> list[SitemapEntry]:
        now = now or datetime.now(timezone.utc)
        stored = {page.path: page for page in stored_pages}
        entries: list[SitemapEntry] = []

        for catalog_page in self.catalog:
            override = stored.pop(catalog_page.path, None)
            slug = override.slug if override is not None else catalog_page.default_slug
            last_modified = _as_utc(override.updated_at) if override is not None else now
            entries.append(
                SitemapEntry(
                    url=self.build_url(catalog_page.path, slug),
                    last_modified=last_modified,
                    change_frequency=change_frequency_for(catalog_page.category),
                    priority=priority_for(catalog_page.path, catalog_page.category),
                    category=catalog_page.category,
                )
            )

        # Custom pages the catalog does not know about are still public pages.
        for page in stored.values():
            if not page.is_custom:
                continue
            entries.append(
                SitemapEntry(
                    url=self.build_url(page.path, page.slug),
                    last_modified=_as_utc(page.updated_at),
                    change_frequency=change_frequency_for(page.page_category),
                    priority=priority_for(page.path, page.page_category),
                    category=page.page_category,
                )
            )

        entries.sort(key=lambda entry: (-entry.priority, entry.url))
        seen: set[str] = set()
        unique: list[SitemapEntry] = []
        for entry in entries:
            if entry.url in seen:
                continue
            seen.add(entry.url)
            unique.append(entry)
        return unique

    async def generate_entries(self, session: AsyncSession, *, now: datetime | None = None) -> list[SitemapEntry]:
        stored_pages = await seo_pages_repo.list_pages(session, site_id=self.site_id)
        return self.build_entries(stored_pages, now=now)

    def chunk_count(self, entries: list[SitemapEntry]) -> int:
        return math.ceil(len(entries) / self.max_entries_per_file)

    def needs_index(self, entries: list[SitemapEntry]) -> bool:
        return len(entries) > self.max_entries_per_file

    def chunk_url(self, number: int) -> str:
        return f"{self.base_url}/sitemap-{number}.xml"

    def render_urlset(self, entries: Iterable[SitemapEntry]) -> str:
        body = "".join(
            "\n  <url>"
            f"\n    <loc>{escape_xml(entry.url)}</loc>"
            f"\n    <lastmod>{format_lastmod(entry.last_modified)}</lastmod>"
            f"\n    <changefreq>{entry.change_frequency}</changefreq>"
            f"\n    <priority>{entry.priority:.1f}</priority>"
            "\n  </url>"
            for entry in entries
        )
        return f'{XML_DECLARATION}\n<urlset xmlns="{SITEMAP_NAMESPACE}">{body}\n</urlset>'

    def render_index(self, entries: list[SitemapEntry]) -> str:
        parts: list[str] = []
        for number in range(1, self.chunk_count(entries) + 1):
            chunk = self._slice(entries, number)
            lastmod = max(entry.last_modified for entry in chunk)
            parts.append(
                "\n  <sitemap>"
                f"\n    <loc>{escape_xml(self.chunk_url(number))}</loc>"
                f"\n    <lastmod>{format_lastmod(lastmod)}</lastmod>"
                "\n  </sitemap>"
            )
        return f'{XML_DECLARATION}\n<sitemapindex xmlns="{SITEMAP_NAMESPACE}">{"".join(parts)}\n</sitemapindex>'

    def render(self, entries: list[SitemapEntry]) -> str:
        if self.needs_index(entries):
            return self.render_index(entries)
        return self.render_urlset(entries)

    def _slice(self, entries: list[SitemapEntry], number: int) -> list[SitemapEntry]:
        start = (number - 1) * self.max_entries_per_file
        return entries[start : start + self.max_entries_per_file]

    def chunk_entries(self, entries: list[SitemapEntry], number: int) -> list[SitemapEntry]:
        total = self.chunk_count(entries)
        if number < 1 or number > total:
            raise ChunkOutOfRangeError(number, total)
        return self._slice(entries, number)

    def render_chunk(self, entries: list[SitemapEntry], number: int) -> str:
        return self.render_urlset(self.chunk_entries(entries, number))

    async def render_sitemap(self, session: AsyncSession) -> str:
        return self.render(await self.generate_entries(session))

    async def render_chunk_for(self, session: AsyncSession, number: int) -> str:
        return self.render_chunk(await self.generate_entries(session), number)

    def stats(self, entries: list[SitemapEntry]) -> dict[str, Any]:
        category_breakdown: dict[str, int] = {}
        priority_breakdown: dict[str, int] = {}
        for entry in entries:
            category_breakdown[entry.category] = category_breakdown.get(entry.category, 0) + 1
            bucket = f"{math.floor(entry.priority * 10) / 10:.1f}"
            priority_breakdown[bucket] = priority_breakdown.get(bucket, 0) + 1
        count = self.chunk_count(entries)
        needs_index = self.needs_index(entries)
        return {
            "total_urls": len(entries),
            "last_modified": max((entry.last_modified for entry in entries), default=None),
            "category_breakdown": category_breakdown,
            "priority_breakdown": priority_breakdown,
            "average_priority": (
                round(sum(entry.priority for entry in entries) / len(entries), 3) if entries else 0.0
            ),
            "needs_index": needs_index,
            "sitemap_count": count,
            "sitemap_urls": (
                [self.chunk_url(number) for number in range(1, count + 1)]
                if needs_index
                else [f"{self.base_url}/sitemap.xml"]
            ),
        }
