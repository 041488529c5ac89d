from __future__ import annotations

import pytest

from seoadmin.core.errors import LimitExceededError, ValidationError
from seoadmin.services.validation import (
    PageDraft,
    analyze_page,
    check_content_security,
    check_seo_best_practices,
    normalize_robots,
    normalize_slug,
    validate_bulk_limit,
    validate_meta_description,
    validate_meta_title,
    validate_open_graph_image,
    validate_page_input,
    validate_slug,
)


GOOD_TITLE = "AI and Web3 Engineering Services for Growth"
GOOD_DESCRIPTION = (
    "Altiora builds engineering services for AI and Web3 products, from discovery workshops "
    "to production launches and growth."
)


def _draft(**overrides: str | None) -> PageDraft:
    values = {
        "meta_title": GOOD_TITLE,
        "meta_description": GOOD_DESCRIPTION,
        "slug": "engineering-services",
        "open_graph_image": "https://cdn.example.com/og.png",
    }
    values.update(overrides)
    return PageDraft(**values)


@pytest.mark.parametrize(
    ("length", "is_valid", "severity"),
    [
        (0, False, "error"),
        (29, True, "warning"),
        (30, True, "success"),
        (50, True, "success"),
        (51, True, "warning"),
        (60, True, "warning"),
        (61, False, "error"),
    ],
)
def test_meta_title_length_boundaries(length: int, is_valid: bool, severity: str) -> None:
    result = validate_meta_title("a" * length)
    assert result.is_valid is is_valid
    assert result.severity == severity


def test_meta_title_examples() -> None:
    too_long = validate_meta_title("a" * 65)
    assert too_long.is_valid is False
    assert too_long.severity == "error"

    short = validate_meta_title("Good SEO Title Example Here")
    assert short.is_valid is True
    assert short.severity == "warning"
    assert "longer" in short.message


def test_whitespace_title_is_required() -> None:
    result = validate_meta_title("   ")
    assert result.is_valid is False
    assert result.message == "Meta title is required"


@pytest.mark.parametrize(
    ("length", "is_valid", "severity"),
    [
        (0, False, "error"),
        (119, True, "warning"),
        (120, True, "success"),
        (140, True, "success"),
        (141, True, "warning"),
        (161, False, "error"),
    ],
)
def test_meta_description_length_boundaries(length: int, is_valid: bool, severity: str) -> None:
    result = validate_meta_description("d" * length)
    assert result.is_valid is is_valid
    assert result.severity == severity


def test_slug_validation() -> None:
    assert validate_slug("").severity == "error"
    assert validate_slug("Bad_Slug").severity == "error"
    assert validate_slug("double--dash").severity == "error"
    assert validate_slug("-leading").severity == "error"
    assert validate_slug("a" * 51).severity == "warning"
    assert validate_slug("web3-services").severity == "success"


def test_open_graph_image_validation() -> None:
    assert validate_open_graph_image(None).is_valid is True
    assert validate_open_graph_image("").severity == "success"
    assert validate_open_graph_image("/relative/image.png").severity == "error"
    assert validate_open_graph_image("https://cdn.example.com/asset").severity == "warning"
    assert validate_open_graph_image("https://cdn.example.com/og.JPG").severity == "success"


def test_well_formed_page_scores_full_marks() -> None:
    score = check_seo_best_practices(_draft())
    assert score.score == 100
    assert score.suggestions == []


def test_score_never_increases_when_a_deficiency_is_added() -> None:
    baseline = check_seo_best_practices(_draft()).score
    degraded = [
        _draft(open_graph_image=None),
        _draft(meta_title="Short title"),
        _draft(meta_description="Too short to rank well."),
        _draft(slug="a" * 60),
        _draft(meta_title="Completely unrelated heading words"),
    ]
    for draft in degraded:
        assert check_seo_best_practices(draft).score < baseline

    worse = _draft(open_graph_image=None, meta_title="Short title")
    assert check_seo_best_practices(worse).score <= check_seo_best_practices(_draft(open_graph_image=None)).score


def test_score_is_clamped_and_suggestions_match_deductions() -> None:
    score = check_seo_best_practices(PageDraft(meta_title="", meta_description="", slug="", open_graph_image=None))
    assert 0 <= score.score <= 100
    # Short title, short description, no shared keyword, no image.
    assert score.score == 100 - 10 - 10 - 10 - 5
    assert len(score.suggestions) == 4


def test_analyze_page_combines_field_checks_and_score() -> None:
    analysis = analyze_page(_draft(slug="Not Valid"))
    assert analysis.slug.is_valid is False
    assert analysis.meta_title.severity == "success"
    assert analysis.score.score == 100


def test_content_security_flags_known_patterns() -> None:
    assert check_content_security("Plain marketing copy").is_secure is True
    result = check_content_security('<script>alert(1)</script><a href="javascript:x" onclick="y">')
    assert result.is_secure is False
    assert "Script tags detected" in result.threats
    assert "JavaScript protocol detected" in result.threats
    assert "Event handlers detected" in result.threats
    assert "Data URL with script detected" in check_content_security("data:text/javascript,1").threats


def test_normalize_slug_and_robots() -> None:
    assert normalize_slug("  Hello World!! 2025 ") == "hello-world-2025"
    assert normalize_slug("---") == ""
    assert normalize_robots("NoIndex, follow") == "noindex,follow"
    with pytest.raises(ValueError):
        normalize_robots("index,sometimes")


def test_validate_page_input_reports_fields() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_page_input(
            {
                "path": "about",
                "slug": "Bad Slug",
                "metaTitle": "   ",
                "metaDescription": "Fine description",
            }
        )
    fields = exc_info.value.fields
    assert "path" in fields
    assert "slug" in fields
    assert "metaTitle" in fields
    assert not fields["path"].startswith("Value error")


def test_validate_page_input_trims_and_rejects_markup() -> None:
    data = validate_page_input(
        {
            "path": "/about",
            "slug": "about",
            "metaTitle": "  About us  ",
            "metaDescription": "Who we are",
            "openGraph": {"title": "", "image": "https://cdn.example.com/og.png"},
        }
    )
    assert data.meta_title == "About us"
    assert data.open_graph_values() == {"image": "https://cdn.example.com/og.png"}
    assert data.to_draft().open_graph_image == "https://cdn.example.com/og.png"

    with pytest.raises(ValidationError) as exc_info:
        validate_page_input(
            {
                "path": "/about",
                "slug": "about",
                "metaTitle": "<script>alert(1)</script>",
                "metaDescription": "Who we are",
            }
        )
    assert "metaTitle" in exc_info.value.fields


def test_bulk_limit_by_role() -> None:
    assert validate_bulk_limit("update", 100, "admin") == 100
    assert validate_bulk_limit("delete", 10, "editor") == 10
    with pytest.raises(LimitExceededError) as exc_info:
        validate_bulk_limit("update", 21, "editor")
    assert exc_info.value.message == "Bulk update limited to 20 items for editor role"
    with pytest.raises(LimitExceededError):
        validate_bulk_limit("delete", 6, "custom")
