"""
QC Rule Engine
==============

Runs every enabled quality-control rule against an article before it is
published. Rules are grouped in five categories and carry a severity:
``error`` results block publishing, ``warning`` results are advisory and
``info`` marks a clean pass or a rule that does not apply.

Categories:
    duplicate      -- title/slug collisions, word-set similarity
    accessibility  -- alt text, heading order, ARIA labels, colour contrast
    seo            -- meta lengths, H1, internal links, canonical URL, perf
    schema         -- required fields, field formats, modules, taxonomy, JSON-LD
    content        -- readability, length, completeness, plausibility,
                      originality, LSI coverage, video assets

A rule that raises is reported as a failed ``error`` result rather than
aborting the run.

Usage:
    from torquepress.qc import get_engine

    engine = get_engine()
    report = engine.run(article, existing_articles, taxonomy)
    passed, reasons = engine.check_gate(report)

CLI:
    python -m torquepress.qc check --article content/articles/rav4-vs-cr-v.json
    python -m torquepress.qc rules
    python -m torquepress.qc disable --rule perf-preflight
    python -m torquepress.qc history --slug rav4-vs-cr-v --limit 20
    python -m torquepress.qc failing --days 7
    python -m torquepress.qc stats
"""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from torquepress.article_schema import (
    Article,
    ArticleValidationError,
    ComparisonTableBlock,
    CTABannerBlock,
    FAQBlock,
    GalleryBlock,
    IntroBlock,
    KeyTakeawaysModule,
    LSILongformBlock,
    MarkdownBlock,
    MpgCalculatorModule,
    ProsConsBlock,
    QuizModule,
    ReviewsModule,
    SpecGridBlock,
    TLDRModule,
    DropdownModule,
    article_text,
    block_text,
    html_fragments,
    parse_article,
)
from torquepress.contrast import assert_contrast_for_html
from torquepress.persistence import DATA_DIR, load_json, now_iso, parse_iso, save_json
from torquepress.seo_validators import (
    validate_article_schema,
    validate_faq_page_schema,
    validate_jsonld,
)
from torquepress.taxonomy import Taxonomy, strip_prefix
from torquepress.textstats import (
    cosine_similarity,
    flesch_reading_ease,
    jaccard_similarity,
    markdown_headings,
    markdown_links,
    scan_html,
    term_vector,
    word_count,
    word_set,
)

logger = logging.getLogger("torquepress.qc")

if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(_handler)
    logger.setLevel(logging.INFO)

# ---------------------------------------------------------------------------
# Paths & Constants
# ---------------------------------------------------------------------------

QC_DATA_DIR = DATA_DIR / "qc"
MAX_HISTORY = 2000

META_TITLE_RANGE = (50, 60)
META_DESCRIPTION_RANGE = (150, 160)
INTERNAL_LINK_RANGE = (2, 5)
WORD_COUNT_RANGE = (800, 2000)
MIN_READING_EASE = 60.0
SIMILARITY_THRESHOLD = 0.8
ORIGINALITY_THRESHOLD = 0.92
LSI_TARGET_TERMS = 10
LSI_MIN_COVERAGE = 0.8

CANONICAL_URL_RE = re.compile(r"^/topics/[a-z0-9-]+/[a-z0-9-]+/[a-z0-9-]+/[a-z0-9-]+$")
SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_NUMBER_RE = re.compile(r"-?\d[\d,]*(?:\.\d+)?")

# Modules that make sense at most once per article.
SINGLETON_MODULES = ("tldr", "key_takeaways", "quiz", "mpg_calculator", "reviews")

# (name, context pattern, min, max). First matching pattern wins.
PLAUSIBLE_RANGES: List[Tuple[str, "re.Pattern[str]", float, float]] = [
    ("acceleration", re.compile(r"0\s*-\s*60|0\s*to\s*60", re.I), 1.5, 25.0),
    ("fuel economy", re.compile(r"\bmpge?\b", re.I), 5.0, 150.0),
    ("horsepower", re.compile(r"\bhp\b|horsepower", re.I), 40.0, 2000.0),
    ("torque", re.compile(r"lb[- ]?ft", re.I), 40.0, 2000.0),
    ("top speed", re.compile(r"\bmph\b", re.I), 20.0, 320.0),
    ("electric range", re.compile(r"\brange\b", re.I), 10.0, 800.0),
    ("towing capacity", re.compile(r"\btow", re.I), 0.0, 40000.0),
    ("seating", re.compile(r"\bseat", re.I), 1.0, 15.0),
    ("model year", re.compile(r"\byear\b", re.I), 1950.0, float(datetime.now().year + 2)),
]


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class RuleCategory(str, Enum):
    DUPLICATE = "duplicate"
    ACCESSIBILITY = "accessibility"
    SEO = "seo"
    SCHEMA = "schema"
    CONTENT = "content"


# ---------------------------------------------------------------------------
# Data Classes
# ---------------------------------------------------------------------------


@dataclass
class QCRule:
    id: str
    name: str
    category: RuleCategory
    severity: Severity
    enabled: bool
    description: str

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["category"] = self.category.value
        data["severity"] = self.severity.value
        return data


@dataclass
class QCResult:
    """Outcome of one rule against one article."""

    rule_id: str
    passed: bool
    severity: Severity
    message: str
    details: Optional[Dict[str, Any]] = None
    location: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "rule_id": self.rule_id,
            "passed": self.passed,
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.details is not None:
            data["details"] = self.details
        if self.location is not None:
            data["location"] = self.location
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QCResult":
        return cls(
            rule_id=data["rule_id"],
            passed=bool(data["passed"]),
            severity=Severity(data.get("severity", "info")),
            message=data.get("message", ""),
            details=data.get("details"),
            location=data.get("location"),
        )


@dataclass
class QCReport:
    """All rule results for one article run."""

    report_id: str
    slug: str
    title: str
    results: List[QCResult] = field(default_factory=list)
    summary: Dict[str, int] = field(default_factory=dict)
    passed: bool = True
    ran_at: str = ""

    @property
    def failures(self) -> List[QCResult]:
        return [r for r in self.results if not r.passed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "report_id": self.report_id,
            "slug": self.slug,
            "title": self.title,
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary,
            "passed": self.passed,
            "ran_at": self.ran_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QCReport":
        return cls(
            report_id=data.get("report_id", ""),
            slug=data.get("slug", ""),
            title=data.get("title", ""),
            results=[QCResult.from_dict(r) for r in data.get("results", [])],
            summary=data.get("summary", {}),
            passed=data.get("passed", False),
            ran_at=data.get("ran_at", ""),
        )

    def summary_text(self) -> str:
        """Human-readable report."""
        lines = [
            f"{'=' * 70}",
            f"  QC REPORT",
            f"{'=' * 70}",
            f"",
            f"  Title:    {self.title[:55]}",
            f"  Slug:     {self.slug}",
            f"  Ran At:   {self.ran_at}",
            f"  Gate:     {'PASSED' if self.passed else 'FAILED'}",
            f"  Summary:  {self.summary.get('pass', 0)} pass, "
            f"{self.summary.get('warn', 0)} warn, {self.summary.get('fail', 0)} fail",
            f"",
        ]
        for result in self.results:
            if result.passed:
                mark = "PASS"
            elif result.severity == Severity.ERROR:
                mark = "FAIL"
            else:
                mark = "WARN"
            lines.append(f"    [{mark}] {result.rule_id:<22} {result.message[:60]}")
        lines.append(f"")
        lines.append(f"{'=' * 70}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Rule Registry
# ---------------------------------------------------------------------------

_E, _W = Severity.ERROR, Severity.WARNING
_DUP, _A11Y, _SEO, _SCHEMA, _CONTENT = (
    RuleCategory.DUPLICATE, RuleCategory.ACCESSIBILITY, RuleCategory.SEO,
    RuleCategory.SCHEMA, RuleCategory.CONTENT,
)

QC_RULES: List[QCRule] = [
    QCRule("duplicate-title", "Duplicate Title Check", _DUP, _E, True,
           "Checks if article title already exists in published articles"),
    QCRule("duplicate-slug", "Duplicate Slug Check", _DUP, _E, True,
           "Checks if article slug already exists"),
    QCRule("content-similarity", "Content Similarity Check", _DUP, _W, True,
           "Checks for high similarity with existing articles (>80%)"),
    QCRule("alt-text", "Image Alt Text", _A11Y, _E, True,
           "All images must have descriptive alt text"),
    QCRule("heading-hierarchy", "Heading Hierarchy", _A11Y, _W, True,
           "Headings must follow proper hierarchy (h1 -> h2 -> h3)"),
    QCRule("aria-labels", "ARIA Labels", _A11Y, _W, True,
           "Interactive elements must have an accessible name"),
    QCRule("color-contrast", "Color Contrast", _A11Y, _E, True,
           "Text must meet WCAG AA contrast ratio (4.5:1)"),
    QCRule("meta-title", "Meta Title", _SEO, _E, True,
           "Meta title must be 50-60 characters"),
    QCRule("meta-description", "Meta Description", _SEO, _E, True,
           "Meta description must be 150-160 characters"),
    QCRule("h1-tag", "H1 Tag", _SEO, _E, True,
           "Article must have exactly one H1 tag"),
    QCRule("internal-links", "Internal Links", _SEO, _W, True,
           "Article should have 2-5 internal links"),
    QCRule("url-canonical", "URL Canonical Pattern", _SEO, _E, True,
           "Article URL must match canonical taxonomy pattern"),
    QCRule("perf-preflight", "Performance Preflight", _SEO, _W, True,
           "Images optimized and lazy-loaded"),
    QCRule("required-fields", "Required Fields", _SCHEMA, _E, True,
           "All required schema fields must be present"),
    QCRule("field-types", "Field Types", _SCHEMA, _E, True,
           "All fields must match expected formats"),
    QCRule("module-structure", "Module Structure", _SCHEMA, _E, True,
           "AI modules must match expected structure"),
    QCRule("taxonomy-integrity", "Taxonomy Integrity", _SCHEMA, _E, True,
           "Article must have valid pillar, section, and cluster references"),
    QCRule("structured-data-valid", "Structured Data Valid", _SCHEMA, _E, True,
           "JSON-LD schemas must have all required properties"),
    QCRule("readability", "Readability Score", _CONTENT, _W, True,
           "Content should have Flesch reading ease score > 60"),
    QCRule("word-count", "Word Count", _CONTENT, _W, True,
           "Article should be 800-2000 words"),
    QCRule("completeness", "Content Completeness", _CONTENT, _E, True,
           "All sections must have content (no empty blocks)"),
    QCRule("accuracy", "Data Accuracy", _CONTENT, _E, True,
           "Numerical data must be realistic"),
    QCRule("originality-check", "Originality Check", _CONTENT, _E, True,
           "Content must be sufficiently original (cosine similarity < 0.92)"),
    QCRule("lsi-coverage", "LSI Coverage Score", _CONTENT, _W, True,
           "LSI content must cover >= 80% of target cluster terms"),
    QCRule("video-assets", "Video Assets Present", _CONTENT, _W, True,
           "If video enabled, poster and content must be present"),
]

RULES_BY_ID: Dict[str, QCRule] = {rule.id: rule for rule in QC_RULES}


@dataclass
class QCContext:
    """Inputs shared by every rule in a run."""

    article: Article
    existing: List[Article]
    taxonomy: Optional[Taxonomy] = None
    _text: Optional[str] = None

    @property
    def text(self) -> str:
        if self._text is None:
            self._text = article_text(self.article)
        return self._text

    @property
    def others(self) -> List[Article]:
        return [a for a in self.existing if a.slug != self.article.slug]


def _result(
    rule_id: str,
    passed: bool,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    location: Optional[str] = None,
) -> QCResult:
    severity = Severity.INFO if passed else RULES_BY_ID[rule_id].severity
    return QCResult(rule_id, passed, severity, message, details, location)


def _not_applicable(rule_id: str, message: str) -> QCResult:
    return QCResult(rule_id, True, Severity.INFO, message)


def _issues_result(
    rule_id: str, issues: List[str], ok_message: str, label: str,
) -> QCResult:
    if issues:
        return _result(rule_id, False, f"{label}: {', '.join(issues)}", {"issues": issues})
    return _result(rule_id, True, ok_message)


# ---------------------------------------------------------------------------
# Duplicate Rules
# ---------------------------------------------------------------------------


def check_duplicate_title(ctx: QCContext) -> QCResult:
    title = ctx.article.title.lower()
    duplicate = next((a for a in ctx.others if a.title.lower() == title), None)
    if duplicate:
        return _result(
            "duplicate-title", False,
            f'Duplicate title found: "{duplicate.title}" ({duplicate.slug})',
            {"duplicate_slug": duplicate.slug},
        )
    return _result("duplicate-title", True, "Title is unique")


def check_duplicate_slug(ctx: QCContext) -> QCResult:
    duplicate = next((a for a in ctx.existing if a.slug == ctx.article.slug), None)
    if duplicate:
        return _result("duplicate-slug", False, f"Duplicate slug found: {duplicate.slug}")
    return _result("duplicate-slug", True, "Slug is unique")


def check_content_similarity(ctx: QCContext) -> QCResult:
    words = word_set(ctx.text)
    for other in ctx.others:
        similarity = jaccard_similarity(words, word_set(article_text(other)))
        if similarity > SIMILARITY_THRESHOLD:
            return _result(
                "content-similarity", False,
                f'High similarity ({round(similarity * 100)}%) with "{other.title}"',
                {"similar_article": other.slug, "similarity": round(similarity, 4)},
            )
    return _not_applicable("content-similarity", "Content is unique")


# ---------------------------------------------------------------------------
# Accessibility Rules
# ---------------------------------------------------------------------------


def check_alt_text(ctx: QCContext) -> QCResult:
    issues: List[str] = []
    hero_image = ctx.article.hero.image
    if hero_image and not hero_image.alt.strip():
        issues.append("Hero image missing alt text")

    for index, block in enumerate(ctx.article.blocks, 1):
        if isinstance(block, GalleryBlock):
            for image_index, image in enumerate(block.images, 1):
                if not image.alt.strip():
                    issues.append(f"Block {index}, image {image_index}: Missing alt text")
    for fragment in html_fragments(ctx.article):
        for image in scan_html(fragment).images:
            if not image.attrs.get("alt", "").strip():
                issues.append(f"Inline image {image.attrs.get('src', '?')}: Missing alt text")

    if issues:
        return _result(
            "alt-text", False, f"{len(issues)} image(s) missing alt text", {"issues": issues},
        )
    return _result("alt-text", True, "All images have alt text")


def _body_headings(article: Article) -> List[Tuple[int, str]]:
    headings: List[Tuple[int, str]] = []
    for block in article.blocks:
        if isinstance(block, IntroBlock):
            headings.extend(scan_html(block.html).headings)
        elif isinstance(block, MarkdownBlock):
            headings.extend(markdown_headings(block.md))
            headings.extend(scan_html(block.md).headings)
        elif isinstance(block, LSILongformBlock):
            headings.append((2, block.heading))
            headings.extend(markdown_headings(block.content_markdown))
    return headings


def check_heading_hierarchy(ctx: QCContext) -> QCResult:
    issues: List[str] = []
    previous = 1  # the article title renders as the page h1
    for level, text in _body_headings(ctx.article):
        if level == 1:
            issues.append(f'Extra h1 in body: "{text[:40]}"')
        elif level > previous + 1:
            issues.append(f'h{previous} -> h{level} skips a level at "{text[:40]}"')
        previous = max(level, 1)
    return _issues_result(
        "heading-hierarchy", issues, "Heading hierarchy is valid", "Heading issues",
    )


def check_aria_labels(ctx: QCContext) -> QCResult:
    issues: List[str] = []
    for fragment in html_fragments(ctx.article):
        scanned = scan_html(fragment)
        for element in scanned.buttons + scanned.links:
            labelled = any(
                element.attrs.get(attr, "").strip()
                for attr in ("aria-label", "aria-labelledby", "title")
            )
            if not element.text.strip() and not labelled:
                target = element.attrs.get("href") or element.attrs.get("id") or "?"
                issues.append(f"<{element.tag}> without accessible name ({target})")
    return _issues_result(
        "aria-labels", issues, "Interactive elements have accessible names", "ARIA issues",
    )


def check_color_contrast(ctx: QCContext) -> QCResult:
    errors = []
    for fragment in html_fragments(ctx.article):
        errors.extend(assert_contrast_for_html(fragment))
    if errors:
        return _result(
            "color-contrast", False,
            f"{len(errors)} element(s) below WCAG AA contrast",
            {"errors": [e.to_dict() for e in errors]},
        )
    return _result("color-contrast", True, "All text meets WCAG AA contrast")


# ---------------------------------------------------------------------------
# SEO Rules
# ---------------------------------------------------------------------------


def meta_title(article: Article) -> str:
    return (article.seo.title if article.seo and article.seo.title else article.title) or ""


def meta_description(article: Article) -> str:
    if article.seo and article.seo.description:
        return article.seo.description
    return article.hero.subheadline or article.description or ""


def check_meta_title(ctx: QCContext) -> QCResult:
    length = len(meta_title(ctx.article))
    low, high = META_TITLE_RANGE
    if low <= length <= high:
        return _result("meta-title", True, f"Meta title length is optimal ({length} chars)")
    return _result("meta-title", False, f"Meta title should be {low}-{high} chars (currently {length})")


def check_meta_description(ctx: QCContext) -> QCResult:
    length = len(meta_description(ctx.article))
    low, high = META_DESCRIPTION_RANGE
    if low <= length <= high:
        return _result("meta-description", True, f"Meta description length is optimal ({length} chars)")
    return _result(
        "meta-description", False,
        f"Meta description should be {low}-{high} chars (currently {length})",
    )


def check_h1_tag(ctx: QCContext) -> QCResult:
    if ctx.article.title.strip():
        return _result("h1-tag", True, "H1 tag present")
    return _result("h1-tag", False, "Missing H1 tag")


def collect_links(article: Article) -> List[str]:
    """Every href the article body links to."""
    hrefs: List[str] = []
    if article.hero.cta:
        hrefs.append(article.hero.cta.href)
    for block in article.blocks:
        if isinstance(block, CTABannerBlock):
            hrefs.append(block.href)
    for fragment in html_fragments(article):
        hrefs.extend(link.attrs.get("href", "") for link in scan_html(fragment).links)
        hrefs.extend(href for _, href in markdown_links(fragment))
    return [h for h in hrefs if h]


def is_internal_link(href: str) -> bool:
    return href.startswith("/") and not href.startswith("//")


def check_internal_links(ctx: QCContext) -> QCResult:
    internal = [h for h in collect_links(ctx.article) if is_internal_link(h)]
    low, high = INTERNAL_LINK_RANGE
    count = len(internal)
    details = {"count": count, "links": internal}
    if low <= count <= high:
        return _result("internal-links", True, f"Internal link count is good ({count})", details)
    return _result(
        "internal-links", False,
        f"Article should have {low}-{high} internal links (currently {count})", details,
    )


def canonical_path(article: Article) -> str:
    return "/topics/{}/{}/{}/{}".format(
        strip_prefix(article.pillarId, "pillar-"),
        strip_prefix(article.sectionId, "section-"),
        strip_prefix(article.clusterId, "cluster-"),
        article.slug,
    )


def check_url_canonical(ctx: QCContext) -> QCResult:
    url = canonical_path(ctx.article)
    if CANONICAL_URL_RE.match(url):
        return _result("url-canonical", True, "URL follows canonical pattern", location=url)
    return _result("url-canonical", False, f"URL doesn't match pattern: {url}", location=url)


def check_perf_preflight(ctx: QCContext) -> QCResult:
    issues: List[str] = []
    hero_image = ctx.article.hero.image
    if hero_image and hero_image.url and "?" not in hero_image.url:
        issues.append("Hero image may not be optimized (no query params)")
    for fragment in html_fragments(ctx.article):
        for image in scan_html(fragment).images:
            if image.attrs.get("loading", "").lower() != "lazy":
                issues.append(f"Inline image not lazy-loaded: {image.attrs.get('src', '?')}")
    return _issues_result(
        "perf-preflight", issues, "Performance checks passed", "Performance issues",
    )


# ---------------------------------------------------------------------------
# Schema Rules
# ---------------------------------------------------------------------------


def check_required_fields(ctx: QCContext) -> QCResult:
    article = ctx.article
    missing: List[str] = []
    if not article.title.strip():
        missing.append("title")
    if not article.slug.strip():
        missing.append("slug")
    if not article.hero.headline.strip():
        missing.append("hero")
    if not article.blocks:
        missing.append("blocks")
    if missing:
        return _result(
            "required-fields", False, f"Missing required fields: {', '.join(missing)}",
            {"missing": missing},
        )
    return _result("required-fields", True, "All required fields present")


def check_field_types(ctx: QCContext) -> QCResult:
    article = ctx.article
    issues: List[str] = []

    if not SLUG_RE.match(article.slug):
        issues.append(f"slug '{article.slug}' is not kebab-case")

    toc_ids = [entry.id for entry in article.toc]
    if any(not i.strip() for i in toc_ids):
        issues.append("toc contains an empty id")
    duplicates = sorted({i for i in toc_ids if toc_ids.count(i) > 1})
    if duplicates:
        issues.append(f"toc ids repeated: {', '.join(duplicates)}")

    published = parse_iso(article.publishedAt) if article.publishedAt else None
    updated = parse_iso(article.updatedAt) if article.updatedAt else None
    if article.publishedAt and published is None:
        issues.append(f"publishedAt '{article.publishedAt}' is not ISO 8601")
    if article.updatedAt and updated is None:
        issues.append(f"updatedAt '{article.updatedAt}' is not ISO 8601")
    if published and updated and updated < published:
        issues.append("updatedAt is earlier than publishedAt")

    for index, block in enumerate(article.blocks, 1):
        if isinstance(block, ComparisonTableBlock):
            unknown = sorted({k for row in block.rows for k in row} - set(block.columns))
            if unknown:
                issues.append(f"Block {index}: row keys not in columns ({', '.join(unknown)})")

    return _issues_result("field-types", issues, "All fields have valid formats", "Field issues")


def check_module_structure(ctx: QCContext) -> QCResult:
    modules = ctx.article.modules or []
    issues: List[str] = []

    seen: Dict[str, int] = {}
    for module in modules:
        seen[module.type] = seen.get(module.type, 0) + 1
    for kind in SINGLETON_MODULES:
        if seen.get(kind, 0) > 1:
            issues.append(f"{seen[kind]} {kind} modules (max 1)")

    for module in modules:
        if isinstance(module, TLDRModule) and not module.content.strip():
            issues.append("tldr is empty")
        elif isinstance(module, KeyTakeawaysModule) and not module.items:
            issues.append("key_takeaways has no items")
        elif isinstance(module, QuizModule):
            if not module.questions:
                issues.append(f"quiz '{module.title}' has no questions")
            for q_index, question in enumerate(module.questions, 1):
                if len(question.choices) < 2:
                    issues.append(f"quiz question {q_index} needs at least 2 choices")
                if not 0 <= question.correctIndex < len(question.choices):
                    issues.append(f"quiz question {q_index} correctIndex out of range")
        elif isinstance(module, ReviewsModule) and not module.entries:
            issues.append("reviews has no entries")
        elif isinstance(module, DropdownModule) and not module.body.strip():
            issues.append(f"dropdown '{module.title}' is empty")

    return _issues_result("module-structure", issues, "All modules are well-formed", "Module issues")


def check_taxonomy_integrity(ctx: QCContext) -> QCResult:
    article = ctx.article
    issues: List[str] = []
    if not article.pillarId:
        issues.append("Missing pillar reference")
    if not article.sectionId:
        issues.append("Missing section reference")
    if not article.clusterId:
        issues.append("Missing cluster reference")

    if ctx.taxonomy is not None and not ctx.taxonomy.is_empty and not issues:
        _, errors = ctx.taxonomy.validate_article_taxonomy(
            article.pillarId, article.sectionId, article.clusterId,
        )
        issues.extend(errors)
        if ctx.taxonomy.get_cluster(strip_prefix(article.clusterId, "cluster-")) is None:
            issues.append(f"Cluster '{article.clusterId}' does not exist")

    if issues:
        return _result(
            "taxonomy-integrity", False, f"Taxonomy issues: {', '.join(issues)}", {"issues": issues},
        )
    return _result("taxonomy-integrity", True, "Taxonomy references valid")


def check_structured_data_valid(ctx: QCContext) -> QCResult:
    article = ctx.article
    issues = [f"Article schema: {e}" for e in validate_article_schema(article).errors]

    for block in article.blocks:
        if isinstance(block, FAQBlock):
            if not block.items:
                issues.append("FAQ block present but empty")
            else:
                issues.extend(validate_faq_page_schema(block.items).errors)
            break

    if article.seo and article.seo.schema_ is not None:
        issues.extend(f"JSON-LD: {e}" for e in validate_jsonld(article.seo.schema_).errors)

    if issues:
        return _result(
            "structured-data-valid", False, f"Schema issues: {', '.join(issues)}", {"issues": issues},
        )
    return _result("structured-data-valid", True, "All structured data valid")


# ---------------------------------------------------------------------------
# Content Rules
# ---------------------------------------------------------------------------


def check_readability(ctx: QCContext) -> QCResult:
    ease = round(flesch_reading_ease(ctx.text), 1)
    details = {"flesch_reading_ease": ease}
    if ease > MIN_READING_EASE:
        return _result("readability", True, f"Readability is good (Flesch {ease})", details)
    return _result(
        "readability", False, f"Flesch reading ease {ease} should be above {MIN_READING_EASE:.0f}",
        details,
    )


def check_word_count(ctx: QCContext) -> QCResult:
    count = word_count(ctx.text)
    low, high = WORD_COUNT_RANGE
    if low <= count <= high:
        return _result("word-count", True, f"Word count is optimal ({count} words)")
    return _result("word-count", False, f"Word count should be {low}-{high} (currently {count})")


def _is_empty_block(block: Any) -> bool:
    if isinstance(block, ComparisonTableBlock):
        return not block.rows or not block.columns
    if isinstance(block, SpecGridBlock):
        return not block.groups or any(not g.items for g in block.groups)
    if isinstance(block, ProsConsBlock):
        return not block.pros and not block.cons
    if isinstance(block, FAQBlock):
        return not block.items
    if isinstance(block, GalleryBlock):
        return not block.images
    if isinstance(block, CTABannerBlock):
        return not block.heading.strip() or not block.href.strip()
    return not block_text(block).strip()


def check_completeness(ctx: QCContext) -> QCResult:
    empty = [index for index, block in enumerate(ctx.article.blocks, 1) if _is_empty_block(block)]
    if empty:
        return _result(
            "completeness", False, f"Empty blocks found: {', '.join(str(i) for i in empty)}",
            {"empty_blocks": empty},
        )
    return _result("completeness", True, "All blocks have content")


def _first_number(text: str) -> Optional[float]:
    match = _NUMBER_RE.search(text)
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


def _check_value(context: str, value: str, location: str) -> Optional[str]:
    number = _first_number(value)
    if number is None:
        return None
    for name, pattern, low, high in PLAUSIBLE_RANGES:
        if pattern.search(context):
            if not low <= number <= high:
                return f"{location}: {name} value {value!r} outside {low:g}-{high:g}"
            return None
    return None


def check_accuracy(ctx: QCContext) -> QCResult:
    issues: List[str] = []
    for index, block in enumerate(ctx.article.blocks, 1):
        if isinstance(block, SpecGridBlock):
            for group in block.groups:
                for item in group.items:
                    issue = _check_value(
                        f"{item.label} {item.value}", item.value, f"Block {index} '{item.label}'",
                    )
                    if issue:
                        issues.append(issue)
        elif isinstance(block, ComparisonTableBlock):
            for row in block.rows:
                label = next(iter(row.values()), "")
                for column, cell in list(row.items())[1:]:
                    issue = _check_value(
                        f"{label} {column} {cell}", cell, f"Block {index} '{label}/{column}'",
                    )
                    if issue:
                        issues.append(issue)

    for module in ctx.article.modules or []:
        if isinstance(module, MpgCalculatorModule) and module.defaults:
            d = module.defaults
            for name, value, low, high in (
                ("cityMpg", d.cityMpg, 5, 150),
                ("hwyMpg", d.hwyMpg, 5, 150),
                ("fuelPrice", d.fuelPrice, 0.5, 15),
                ("miles", d.miles, 1, 200000),
            ):
                if value is not None and not low <= value <= high:
                    issues.append(f"mpg_calculator {name}={value:g} outside {low:g}-{high:g}")

    return _issues_result("accuracy", issues, "Numerical data is plausible", "Implausible data")


def check_originality(ctx: QCContext) -> QCResult:
    vector = term_vector(ctx.text)
    for other in ctx.others:
        similarity = cosine_similarity(vector, term_vector(article_text(other)))
        if similarity >= ORIGINALITY_THRESHOLD:
            return _result(
                "originality-check", False,
                f'Content too similar ({round(similarity * 100)}%) to "{other.title}"',
                {"similar_article": other.slug, "similarity": round(similarity, 4)},
            )
    return _not_applicable("originality-check", "Content is sufficiently original")


def check_lsi_coverage(ctx: QCContext) -> QCResult:
    blocks = [b for b in ctx.article.blocks if isinstance(b, LSILongformBlock)]
    if not blocks:
        return _not_applicable("lsi-coverage", "No LSI content to check")

    terms = set()
    for block in blocks:
        for cluster in block.semantic_clusters:
            terms.update(t.lower() for t in cluster.related_terms)
        terms.update(k.lower() for k in block.keywords_used)

    coverage = min(1.0, len(terms) / LSI_TARGET_TERMS)
    details = {"coverage": coverage, "term_count": len(terms)}
    if coverage >= LSI_MIN_COVERAGE:
        return _result("lsi-coverage", True, f"LSI coverage is good ({round(coverage * 100)}%)", details)
    return _result(
        "lsi-coverage", False,
        f"LSI coverage is low ({round(coverage * 100)}%), need >= {round(LSI_MIN_COVERAGE * 100)}%",
        details,
    )


def check_video_assets(ctx: QCContext) -> QCResult:
    article = ctx.article
    if article.video is not None and not article.video.enabled:
        return _not_applicable("video-assets", "Video not enabled for this article")

    issues: List[str] = []
    poster = (article.video.posterUrl if article.video else None) or (
        article.hero.image.url if article.hero.image else None
    )
    if not poster:
        issues.append("Missing poster image")
    if not article.blocks:
        issues.append("Insufficient content for video generation")
    return _issues_result("video-assets", issues, "Video assets present", "Video asset issues")


RULE_CHECKS: Dict[str, Callable[[QCContext], QCResult]] = {
    "duplicate-title": check_duplicate_title,
    "duplicate-slug": check_duplicate_slug,
    "content-similarity": check_content_similarity,
    "alt-text": check_alt_text,
    "heading-hierarchy": check_heading_hierarchy,
    "aria-labels": check_aria_labels,
    "color-contrast": check_color_contrast,
    "meta-title": check_meta_title,
    "meta-description": check_meta_description,
    "h1-tag": check_h1_tag,
    "internal-links": check_internal_links,
    "url-canonical": check_url_canonical,
    "perf-preflight": check_perf_preflight,
    "required-fields": check_required_fields,
    "field-types": check_field_types,
    "module-structure": check_module_structure,
    "taxonomy-integrity": check_taxonomy_integrity,
    "structured-data-valid": check_structured_data_valid,
    "readability": check_readability,
    "word-count": check_word_count,
    "completeness": check_completeness,
    "accuracy": check_accuracy,
    "originality-check": check_originality,
    "lsi-coverage": check_lsi_coverage,
    "video-assets": check_video_assets,
}


# ---------------------------------------------------------------------------
# Running Rules
# ---------------------------------------------------------------------------


def run_qc_checks(
    article: Article,
    existing: Sequence[Article],
    taxonomy: Optional[Taxonomy] = None,
    rules: Optional[Sequence[QCRule]] = None,
    update: bool = False,
) -> List[QCResult]:
    """Run every enabled rule in registry order.

    When ``update`` is true the stored article with the same slug is treated
    as the previous revision of ``article`` and excluded from comparisons.
    """
    existing = list(existing)
    if update:
        existing = [a for a in existing if a.slug != article.slug]
    ctx = QCContext(article=article, existing=existing, taxonomy=taxonomy)

    results: List[QCResult] = []
    for rule in rules if rules is not None else QC_RULES:
        if not rule.enabled:
            continue
        check = RULE_CHECKS.get(rule.id)
        if check is None:
            results.append(QCResult(rule.id, True, Severity.INFO, "Rule not implemented"))
            continue
        try:
            results.append(check(ctx))
        except Exception as exc:
            logger.error("QC rule %s raised on %s: %s", rule.id, article.slug, exc)
            results.append(QCResult(rule.id, False, Severity.ERROR, f"Rule execution failed: {exc}"))
    return results


def summarize(results: Sequence[QCResult]) -> Dict[str, int]:
    """Count results as ``{"pass", "warn", "fail"}``."""
    summary = {"pass": 0, "warn": 0, "fail": 0}
    for result in results:
        if result.passed:
            summary["pass"] += 1
        elif result.severity == Severity.ERROR:
            summary["fail"] += 1
        else:
            summary["warn"] += 1
    return summary


def check_gate(results: Sequence[QCResult]) -> Tuple[bool, List[str]]:
    """An article passes the gate iff no ``error`` rule failed."""
    reasons = [
        f"{r.rule_id}: {r.message}"
        for r in results
        if not r.passed and r.severity == Severity.ERROR
    ]
    return len(reasons) == 0, reasons


# ---------------------------------------------------------------------------
# QC Engine
# ---------------------------------------------------------------------------


class QCEngine:
    """Runs QC, remembers per-rule enable flags and keeps a bounded report history."""

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        self._data_dir = Path(data_dir) if data_dir else QC_DATA_DIR
        self._history_file = self._data_dir / "history.json"
        self._config_file = self._data_dir / "config.json"
        self._history: List[Dict[str, Any]] = load_json(self._history_file, [])
        config = load_json(self._config_file, {})
        overrides: Dict[str, bool] = config.get("enabled", {})
        self._rules: List[QCRule] = [
            replace(rule, enabled=bool(overrides.get(rule.id, rule.enabled))) for rule in QC_RULES
        ]

    # -- Rules --------------------------------------------------------------

    @property
    def rules(self) -> List[QCRule]:
        return list(self._rules)

    def set_rule_enabled(self, rule_id: str, enabled: bool) -> QCRule:
        if rule_id not in RULES_BY_ID:
            raise KeyError(f"Unknown QC rule: {rule_id}")
        for index, rule in enumerate(self._rules):
            if rule.id == rule_id:
                self._rules[index] = replace(rule, enabled=enabled)
        self._save_config()
        logger.info("QC rule %s %s", rule_id, "enabled" if enabled else "disabled")
        return next(r for r in self._rules if r.id == rule_id)

    def _save_config(self) -> None:
        save_json(self._config_file, {
            "enabled": {rule.id: rule.enabled for rule in self._rules},
            "updated_at": now_iso(),
        })

    # -- Running ------------------------------------------------------------

    def run(
        self,
        article: Article,
        existing: Sequence[Article] = (),
        taxonomy: Optional[Taxonomy] = None,
        update: bool = False,
        record: bool = True,
    ) -> QCReport:
        results = run_qc_checks(article, existing, taxonomy, self._rules, update=update)
        passed, _ = check_gate(results)
        report = QCReport(
            report_id=str(uuid.uuid4()),
            slug=article.slug,
            title=article.title,
            results=results,
            summary=summarize(results),
            passed=passed,
            ran_at=now_iso(),
        )
        logger.info(
            "QC %s: %s (%d pass, %d warn, %d fail)",
            article.slug, "PASSED" if passed else "FAILED",
            report.summary["pass"], report.summary["warn"], report.summary["fail"],
        )
        if record:
            self._record_history(report)
        return report

    def check_gate(self, report: QCReport) -> Tuple[bool, List[str]]:
        return check_gate(report.results)

    # -- History ------------------------------------------------------------

    def _record_history(self, report: QCReport) -> None:
        self._history.append(report.to_dict())
        if len(self._history) > MAX_HISTORY:
            self._history = self._history[-MAX_HISTORY:]
        save_json(self._history_file, self._history)

    def get_history(self, slug: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        """Reports newest first, optionally for one slug."""
        history = list(reversed(self._history))
        if slug:
            history = [h for h in history if h.get("slug") == slug]
        return history[:limit]

    def get_failing(self, days: int = 7) -> List[Dict[str, Any]]:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        failing = []
        for entry in reversed(self._history):
            ran_at = parse_iso(entry.get("ran_at", ""))
            if ran_at is None or ran_at < cutoff or entry.get("passed", True):
                continue
            failing.append({
                "report_id": entry.get("report_id", ""),
                "slug": entry.get("slug", ""),
                "title": entry.get("title", "")[:60],
                "summary": entry.get("summary", {}),
                "ran_at": entry.get("ran_at", ""),
                "failed_rules": [
                    r["rule_id"] for r in entry.get("results", [])
                    if not r.get("passed") and r.get("severity") == Severity.ERROR.value
                ],
            })
        return failing

    def get_stats(self) -> Dict[str, Any]:
        total = len(self._history)
        passed = sum(1 for h in self._history if h.get("passed"))
        rule_failures: Dict[str, int] = {}
        for entry in self._history:
            for r in entry.get("results", []):
                if not r.get("passed"):
                    rule_failures[r["rule_id"]] = rule_failures.get(r["rule_id"], 0) + 1
        return {
            "total_runs": total,
            "passed": passed,
            "pass_rate": round(passed / total, 3) if total else 0.0,
            "rule_failures": dict(sorted(rule_failures.items(), key=lambda x: -x[1])),
            "enabled_rules": sum(1 for r in self._rules if r.enabled),
            "total_rules": len(self._rules),
        }


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_engine: Optional[QCEngine] = None


def get_engine() -> QCEngine:
    """Get or create the singleton QCEngine instance."""
    global _engine
    if _engine is None:
        _engine = QCEngine()
    return _engine


# ---------------------------------------------------------------------------
# CLI Handlers
# ---------------------------------------------------------------------------


def _cli_check(args: argparse.Namespace) -> None:
    from torquepress.storage import ArticleStore
    from torquepress.taxonomy import get_taxonomy

    path = Path(args.article)
    if not path.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        article = parse_article(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, UnicodeDecodeError, ArticleValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    existing = ArticleStore().list_articles()
    report = get_engine().run(article, existing, get_taxonomy(), update=args.update)
    print(report.summary_text())
    if args.json:
        print("\n--- JSON Report ---")
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    if not report.passed:
        sys.exit(2)


def _cli_rules(args: argparse.Namespace) -> None:
    print(f"\n  {'Rule':<22} {'Category':<14} {'Severity':<9} {'On':<4} Description")
    print(f"  {'-' * 22} {'-' * 14} {'-' * 9} {'-' * 4} {'-' * 30}")
    for rule in get_engine().rules:
        print(
            f"  {rule.id:<22} {rule.category.value:<14} {rule.severity.value:<9} "
            f"{'yes' if rule.enabled else 'no':<4} {rule.description}"
        )
    print()


def _cli_toggle(args: argparse.Namespace) -> None:
    try:
        rule = get_engine().set_rule_enabled(args.rule, args.command == "enable")
    except KeyError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    print(f"\nRule '{rule.id}' is now {'enabled' if rule.enabled else 'disabled'}.\n")


def _cli_history(args: argparse.Namespace) -> None:
    entries = get_engine().get_history(slug=args.slug, limit=args.limit)
    if not entries:
        print("\nNo QC history found.\n")
        return
    print(f"\n  {'Ran At':<22} {'Slug':<40} {'Gate':<6} P/W/F")
    for e in entries:
        s = e.get("summary", {})
        print(
            f"  {e.get('ran_at', ''):<22} {e.get('slug', '')[:40]:<40} "
            f"{'PASS' if e.get('passed') else 'FAIL':<6} "
            f"{s.get('pass', 0)}/{s.get('warn', 0)}/{s.get('fail', 0)}"
        )
    print(f"\n  Total: {len(entries)} report(s)\n")


def _cli_failing(args: argparse.Namespace) -> None:
    failing = get_engine().get_failing(days=args.days)
    if not failing:
        print(f"\nNo failing articles in the last {args.days} day(s).\n")
        return
    for f in failing:
        print(f"  {f['ran_at'][:10]}  {f['slug']}: {', '.join(f['failed_rules'])}")
    print(f"\n  Total failing: {len(failing)}\n")


def _cli_stats(args: argparse.Namespace) -> None:
    stats = get_engine().get_stats()
    print(f"\n  Total Runs:    {stats['total_runs']:,}")
    print(f"  Pass Rate:     {stats['pass_rate']:.1%}")
    print(f"  Rules Enabled: {stats['enabled_rules']}/{stats['total_rules']}")
    if stats["rule_failures"]:
        print("\n  Most Failed Rules:")
        for rule_id, count in list(stats["rule_failures"].items())[:10]:
            print(f"    {rule_id:<22} {count:>5}")
    print()


def build_parser(parser: Optional[argparse.ArgumentParser] = None) -> argparse.ArgumentParser:
    parser = parser or argparse.ArgumentParser(
        prog="qc",
        description="Run QC rules against articles and inspect QC history.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    sub_check = subparsers.add_parser("check", help="Run QC on an article JSON file")
    sub_check.add_argument("--article", required=True, help="Path to article JSON")
    sub_check.add_argument("--update", action="store_true", help="Treat as an update of the stored article")
    sub_check.add_argument("--json", action="store_true", help="Also output the JSON report")
    sub_check.set_defaults(func=_cli_check)

    sub_rules = subparsers.add_parser("rules", help="List QC rules")
    sub_rules.set_defaults(func=_cli_rules)

    for name in ("enable", "disable"):
        sub_toggle = subparsers.add_parser(name, help=f"{name.title()} a QC rule")
        sub_toggle.add_argument("--rule", required=True, help="Rule id")
        sub_toggle.set_defaults(func=_cli_toggle)

    sub_history = subparsers.add_parser("history", help="Show recent QC reports")
    sub_history.add_argument("--slug", default=None, help="Filter by article slug")
    sub_history.add_argument("--limit", type=int, default=20, help="Max entries (default 20)")
    sub_history.set_defaults(func=_cli_history)

    sub_failing = subparsers.add_parser("failing", help="Show articles that failed the gate")
    sub_failing.add_argument("--days", type=int, default=7, help="Look-back window (default 7)")
    sub_failing.set_defaults(func=_cli_failing)

    sub_stats = subparsers.add_parser("stats", help="Show QC statistics")
    sub_stats.set_defaults(func=_cli_stats)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
