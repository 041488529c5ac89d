from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Iterable

from seoadmin.core.errors import ValidationError


PAGE_CATEGORIES = ("main", "services", "blog", "about", "contact", "other")
HOME_PATHS = frozenset({"/", "/home", "home"})


@dataclass(frozen=True)
class PredefinedPage:
    path: str
    default_slug: str
    category: str
    default_title: str = ""
    default_description: str = ""


def _page(path: str, slug: str, category: str, title: str = "", description: str = "") -> PredefinedPage:
    return PredefinedPage(
        path=path,
        default_slug=slug,
        category=category,
        default_title=title,
        default_description=description,
    )


DEFAULT_CATALOG: tuple[PredefinedPage, ...] = (
    _page(
        "/",
        "home",
        "main",
        "Altiora Infotech - AI, Web3 & Growth Engineering",
        "Leading AI, Web3, and growth engineering solutions for modern businesses. "
        "Transform your digital presence with cutting-edge technology.",
    ),
    _page(
        "/about",
        "about-us",
        "about",
        "About Altiora Infotech - Innovation & Excellence",
        "Learn about Altiora Infotech's mission to deliver innovative AI, Web3, and growth "
        "engineering solutions for businesses worldwide.",
    ),
    _page(
        "/services",
        "services",
        "main",
        "Services - AI, Web3 & Development Solutions",
        "Comprehensive AI, Web3, and development services to transform your business with "
        "cutting-edge technology solutions.",
    ),
    _page(
        "/projects",
        "projects",
        "main",
        "Projects - Portfolio & Case Studies | Altiora Infotech",
        "Explore our portfolio of successful AI, Web3, and development projects with detailed "
        "case studies and results.",
    ),
    _page(
        "/blog",
        "blog",
        "blog",
        "Blog - Insights on AI, Web3 & Technology",
        "Stay updated with the latest insights, trends, and tutorials on AI, Web3, blockchain, "
        "and modern technology from our experts.",
    ),
    _page(
        "/contact",
        "contact-us",
        "contact",
        "Contact Altiora Infotech - Get In Touch",
        "Contact Altiora Infotech for AI, Web3, and growth engineering solutions. "
        "Let's discuss your project requirements.",
    ),
    _page("/staff", "staff", "about", "Our Team - Expert Staff at Altiora Infotech"),
    _page("/testimonials", "testimonials", "about", "Client Testimonials - Success Stories"),
    _page("/faq", "faq", "other", "FAQ - Frequently Asked Questions | Altiora Infotech"),
    _page("/gamify", "gamify", "other"),
    _page("/services/ai-ml", "ai-ml-services", "services", "AI & ML Services - Machine Learning Solutions"),
    _page("/services/ai-ml/agentic-ai", "agentic-ai", "services"),
    _page("/services/ai-ml/computer-vision", "computer-vision-services", "services"),
    _page("/services/ai-ml/generative-ai", "generative-ai", "services"),
    _page("/services/ai-ml/machine-learning", "machine-learning", "services"),
    _page("/services/ai-ml/natural-language-processing-ai", "natural-language-processing-ai", "services"),
    _page("/services/ai-ml/predictive-analytics-and-automation", "predictive-analytics-and-automation", "services"),
    _page("/services/web2", "web2-services", "services", "Web2 Development Services | Altiora Infotech"),
    _page("/services/web2/api-development-integration", "api-development-integration", "services"),
    _page("/services/web2/custom-web-application-development", "custom-web-application-development", "services"),
    _page("/services/web2/devops-consulting", "devops-consulting", "services"),
    _page("/services/web2/e-commerce-development", "e-commerce-development", "services"),
    _page("/services/web2/mobile-application-development", "mobile-application-development", "services"),
    _page("/services/web2/ui-ux-design", "ui-ux-design", "services"),
    _page("/services/web3", "web3-services", "services", "Web3 Development Services | Altiora Infotech"),
    _page("/services/web3/blockchain", "blockchain", "services"),
    _page("/services/web3/security-audit", "security-audit", "services"),
    _page("/services/web3/tokenization", "tokenization", "services"),
    _page("/services/web3/smart-contract", "smart-contract", "services"),
    _page("/services/web3/defi", "defi", "services"),
    _page("/depin", "depin", "other"),
    _page("/rwa", "rwa", "other"),
    _page("/privacy-policy", "privacy-policy", "other"),
    _page("/terms-conditions", "terms-conditions", "other"),
    _page("/blog/mobile-app-trends-2025", "mobile-app-trends-2025", "blog"),
    _page("/blog/hyperautomation-ai-ml", "hyperautomation-ai-ml", "blog"),
    _page("/blog/ux-ui-for-ai-apps", "ux-ui-for-ai-apps", "blog"),
)


class PageCatalog:
    """Read-only list of the pages that exist on the site absent a custom override."""

    def __init__(self, pages: Iterable[PredefinedPage]) -> None:
        self._pages = tuple(pages)
        self._by_path = {page.path: page for page in self._pages}

    def __iter__(self):
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __contains__(self, path: object) -> bool:
        return path in self._by_path

    def get_page_by_path(self, path: str) -> PredefinedPage | None:
        return self._by_path.get(path)

    def get_page_by_slug(self, slug: str) -> PredefinedPage | None:
        return next((page for page in self._pages if page.default_slug == slug), None)

    def get_pages_by_category(self, category: str) -> list[PredefinedPage]:
        return [page for page in self._pages if page.category == category]

    def all_paths(self) -> list[str]:
        return [page.path for page in self._pages]

    def all_slugs(self) -> list[str]:
        return [page.default_slug for page in self._pages]


def default_slug_for_path(path: str) -> str:
    # Mechanical slug used to decide whether a page's public URL is its raw path.
    return path.removeprefix("/").replace("/", "-")


def is_home_path(path: str) -> bool:
    return path in HOME_PATHS


def _page_from_json(raw: dict) -> PredefinedPage:
    try:
        page = PredefinedPage(
            path=str(raw["path"]),
            default_slug=str(raw.get("defaultSlug") or raw.get("default_slug")),
            category=str(raw.get("category") or "other"),
            default_title=str(raw.get("defaultTitle") or raw.get("default_title") or ""),
            default_description=str(raw.get("defaultDescription") or raw.get("default_description") or ""),
        )
    except KeyError as exc:
        raise ValidationError("Catalog entry is missing a path", fields={"path": "required"}) from exc
    if page.category not in PAGE_CATEGORIES:
        raise ValidationError(
            f"Unknown catalog category {page.category!r}",
            fields={"category": page.category},
        )
    return page


def load_catalog(path: str | None = None) -> PageCatalog:
    # Use the bundled catalog unless a deployment ships its own JSON page list.
    if not path:
        return PageCatalog(DEFAULT_CATALOG)
    raw_pages = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw_pages, list):
        raise ValidationError("Catalog file must contain a JSON list", fields={"catalog_path": path})
    return PageCatalog(_page_from_json(item) for item in raw_pages)
