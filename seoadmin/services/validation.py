from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from seoadmin.core.config import Settings, get_settings
from seoadmin.core.errors import LimitExceededError, ValidationError


Severity = Literal["error", "warning", "success"]
PageCategory = Literal["main", "services", "blog", "about", "contact", "other"]

SLUG_RE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
SITE_ID_PATTERN = r"^[a-zA-Z0-9_-]{1,50}$"
ROBOTS_DIRECTIVES = frozenset(
    {"index", "noindex", "follow", "nofollow", "archive", "noarchive", "snippet", "nosnippet"}
)
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")

TITLE_MAX = 60
TITLE_WARN_ABOVE = 50
TITLE_MIN_RECOMMENDED = 30
DESCRIPTION_MAX = 160
DESCRIPTION_WARN_ABOVE = 140
DESCRIPTION_MIN_RECOMMENDED = 120
SLUG_WARN_ABOVE = 50

_SCRIPT_TAG_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_JS_PROTOCOL_RE = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"\bon\w+\s*=", re.IGNORECASE)
_DATA_SCRIPT_RE = re.compile(r"data:.*script", re.IGNORECASE)


@dataclass(frozen=True)
class FieldValidation:
    is_valid: bool
    message: str
    severity: Severity


@dataclass(frozen=True)
class ContentSecurityResult:
    is_secure: bool
    threats: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PageDraft:
    # Minimal view of a page used for scoring; fields may still be invalid.
    meta_title: str
    meta_description: str
    slug: str
    open_graph_image: str | None = None

    @classmethod
    def from_record(cls, record: Any) -> "PageDraft":
        open_graph = getattr(record, "open_graph", None)
        if isinstance(open_graph, BaseModel):
            image = getattr(open_graph, "image", None)
        elif isinstance(open_graph, dict):
            image = open_graph.get("image")
        else:
            image = None
        return cls(
            meta_title=record.meta_title or "",
            meta_description=record.meta_description or "",
            slug=record.slug or "",
            open_graph_image=image,
        )


@dataclass(frozen=True)
class SeoScore:
    score: int
    suggestions: list[str]


@dataclass(frozen=True)
class PageAnalysis:
    meta_title: FieldValidation
    meta_description: FieldValidation
    slug: FieldValidation
    open_graph_image: FieldValidation
    score: SeoScore


def validate_meta_title(title: str) -> FieldValidation:
    if not title.strip():
        return FieldValidation(False, "Meta title is required", "error")
    if len(title) > TITLE_MAX:
        return FieldValidation(False, f"Meta title is too long (max {TITLE_MAX} characters)", "error")
    if len(title) > TITLE_WARN_ABOVE:
        return FieldValidation(True, "Meta title is approaching the recommended limit", "warning")
    if len(title) < TITLE_MIN_RECOMMENDED:
        return FieldValidation(True, "Consider making the meta title longer for better SEO", "warning")
    return FieldValidation(True, "Meta title length is optimal", "success")


def validate_meta_description(description: str) -> FieldValidation:
    if not description.strip():
        return FieldValidation(False, "Meta description is required", "error")
    if len(description) > DESCRIPTION_MAX:
        return FieldValidation(
            False, f"Meta description is too long (max {DESCRIPTION_MAX} characters)", "error"
        )
    if len(description) > DESCRIPTION_WARN_ABOVE:
        return FieldValidation(True, "Meta description is approaching the recommended limit", "warning")
    if len(description) < DESCRIPTION_MIN_RECOMMENDED:
        return FieldValidation(True, "Consider making the meta description longer for better SEO", "warning")
    return FieldValidation(True, "Meta description length is optimal", "success")


def validate_slug(slug: str) -> FieldValidation:
    if not slug.strip():
        return FieldValidation(False, "Slug is required", "error")
    if not SLUG_RE.match(slug):
        return FieldValidation(
            False, "Slug must contain only lowercase letters, numbers, and hyphens", "error"
        )
    if len(slug) > SLUG_WARN_ABOVE:
        return FieldValidation(True, "Consider shortening the slug for better URLs", "warning")
    return FieldValidation(True, "Slug format is valid", "success")


def is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme) and bool(parsed.netloc)


def validate_open_graph_image(url: str | None) -> FieldValidation:
    if not url:
        return FieldValidation(True, "OpenGraph image is optional", "success")
    if not is_absolute_url(url):
        return FieldValidation(False, "OpenGraph image must be a valid URL", "error")
    lowered = url.lower()
    if not any(ext in lowered for ext in IMAGE_EXTENSIONS):
        return FieldValidation(True, "Make sure the URL points to an image file", "warning")
    return FieldValidation(True, "OpenGraph image URL is valid", "success")


def _shares_keyword(title: str, description: str) -> bool:
    description_words = set(description.lower().split(" "))
    return any(len(word) > 3 and word in description_words for word in title.lower().split(" "))


def check_seo_best_practices(draft: PageDraft) -> SeoScore:
    """Score a page from 0 to 100 with one suggestion per deduction.

    Every rule only ever subtracts, so adding a deficiency can never raise the
    score. The result is clamped at zero.
    """
    suggestions: list[str] = []
    score = 100

    if len(draft.meta_title) < TITLE_MIN_RECOMMENDED:
        suggestions.append("Consider making your meta title longer (30-60 characters is optimal)")
        score -= 10
    if len(draft.meta_title) > TITLE_WARN_ABOVE:
        suggestions.append("Your meta title might be truncated in search results")
        score -= 5
    if len(draft.meta_description) < DESCRIPTION_MIN_RECOMMENDED:
        suggestions.append("Consider making your meta description longer (120-160 characters is optimal)")
        score -= 10
    if len(draft.meta_description) > DESCRIPTION_WARN_ABOVE:
        suggestions.append("Your meta description might be truncated in search results")
        score -= 5
    if len(draft.slug) > SLUG_WARN_ABOVE:
        suggestions.append("Consider shortening your URL slug for better readability")
        score -= 5
    if not _shares_keyword(draft.meta_title, draft.meta_description):
        suggestions.append("Consider including some keywords from your title in your description")
        score -= 10
    if not draft.open_graph_image:
        suggestions.append("Adding an OpenGraph image will improve social media sharing")
        score -= 5

    return SeoScore(score=max(0, score), suggestions=suggestions)


def analyze_page(draft: PageDraft) -> PageAnalysis:
    return PageAnalysis(
        meta_title=validate_meta_title(draft.meta_title),
        meta_description=validate_meta_description(draft.meta_description),
        slug=validate_slug(draft.slug),
        open_graph_image=validate_open_graph_image(draft.open_graph_image),
        score=check_seo_best_practices(draft),
    )


def check_content_security(content: str) -> ContentSecurityResult:
    # Flag markup that would execute if a template rendered the text unescaped.
    threats: list[str] = []
    if _SCRIPT_TAG_RE.search(content):
        threats.append("Script tags detected")
    if _JS_PROTOCOL_RE.search(content):
        threats.append("JavaScript protocol detected")
    if _EVENT_HANDLER_RE.search(content):
        threats.append("Event handlers detected")
    if _DATA_SCRIPT_RE.search(content):
        threats.append("Data URL with script detected")
    return ContentSecurityResult(is_secure=not threats, threats=threats)


def _reject_threats(value: str | None, label: str) -> None:
    if not value:
        return
    result = check_content_security(value)
    if not result.is_secure:
        raise ValueError(f"{label} contains unsafe content: {', '.join(result.threats)}")


def normalize_slug(raw: str) -> str:
    # Turn free text into a URL-safe slug; the result may still be empty.
    slug = re.sub(r"[^a-z0-9-]", "-", raw.strip().lower())
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


def normalize_robots(raw: str) -> str:
    directives = [part.strip().lower() for part in raw.split(",")]
    invalid = [directive for directive in directives if directive not in ROBOTS_DIRECTIVES]
    if invalid:
        raise ValueError(f"Invalid robots directive: {', '.join(invalid) or 'empty'}")
    return ",".join(directives)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OpenGraphInput(_CamelModel):
    title: str | None = Field(default=None, max_length=TITLE_MAX)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX)
    image: str | None = None

    @field_validator("title", "description")
    @classmethod
    def _safe_text(cls, value: str | None) -> str | None:
        _reject_threats(value, "OpenGraph text")
        return value

    @field_validator("image")
    @classmethod
    def _absolute_image_url(cls, value: str | None) -> str | None:
        if value and not is_absolute_url(value):
            raise ValueError("Invalid OpenGraph image URL")
        return value

    def compact(self) -> dict[str, str] | None:
        # Drop empty fields; an OpenGraph object with nothing left is omitted.
        values = {key: value for key, value in self.model_dump().items() if value}
        return values or None


class SeoPageInput(_CamelModel):
    site_id: str = Field(default_factory=lambda: get_settings().default_site_id, pattern=SITE_ID_PATTERN)
    path: str = Field(min_length=1, max_length=500)
    slug: str = Field(min_length=1, max_length=100)
    meta_title: str = Field(min_length=1, max_length=TITLE_MAX)
    meta_description: str = Field(min_length=1, max_length=DESCRIPTION_MAX)
    robots: str = "index,follow"
    page_category: PageCategory = "other"
    open_graph: OpenGraphInput | None = None

    @field_validator("path")
    @classmethod
    def _path_shape(cls, value: str) -> str:
        if not (value.startswith("/") or value == "home"):
            raise ValueError('Path must start with / or be "home"')
        return value

    @field_validator("slug")
    @classmethod
    def _slug_shape(cls, value: str) -> str:
        if not SLUG_RE.match(value):
            raise ValueError("Slug must be URL-friendly (lowercase letters, numbers, and hyphens only)")
        return value

    @field_validator("meta_title", "meta_description")
    @classmethod
    def _trimmed_text(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Value cannot be empty")
        _reject_threats(trimmed, "Text")
        return trimmed

    @field_validator("robots")
    @classmethod
    def _robots_vocabulary(cls, value: str) -> str:
        return normalize_robots(value)

    def open_graph_values(self) -> dict[str, str] | None:
        return self.open_graph.compact() if self.open_graph else None

    def to_draft(self) -> PageDraft:
        return PageDraft(
            meta_title=self.meta_title,
            meta_description=self.meta_description,
            slug=self.slug,
            open_graph_image=(self.open_graph_values() or {}).get("image"),
        )


def _error_fields(exc: PydanticValidationError) -> dict[str, str]:
    fields: dict[str, str] = {}
    for error in exc.errors():
        name = ".".join(str(part) for part in error.get("loc", ())) or "body"
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        fields.setdefault(name, message)
    return fields


def validate_page_input(payload: dict[str, Any]) -> SeoPageInput:
    # Convert schema failures into a single ValidationError keyed by field name.
    try:
        return SeoPageInput.model_validate(payload)
    except PydanticValidationError as exc:
        fields = _error_fields(exc)
        raise ValidationError(f"Invalid SEO metadata: {', '.join(sorted(fields))}", fields=fields) from exc


def validate_bulk_limit(
    operation: str,
    count: int,
    role: str,
    *,
    settings: Settings | None = None,
) -> int:
    # Refuse oversized batches before any item is touched.
    settings = settings or get_settings()
    limit = settings.bulk_limits_for_role(role).get(operation, 0)
    if count > limit:
        raise LimitExceededError(operation=operation, limit=limit, role=role, requested=count)
    return limit
