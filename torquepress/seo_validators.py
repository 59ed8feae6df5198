"""
Structured-data validators.

Checks that an article carries what its Article / VideoObject / FAQPage /
BreadcrumbList / CollectionPage structured data will need, and validates
arbitrary JSON-LD objects. These validators never build markup; they only
report errors (blocking) and warnings (advisory).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from torquepress.article_schema import Article, FAQBlock, FAQItem, TLDRModule

FAQ_MIN_QUESTION_CHARS = 10
FAQ_MIN_ANSWER_CHARS = 20


class ValidationStatus(str, Enum):
    GREEN = "GREEN"
    AMBER = "AMBER"
    RED = "RED"


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _result(errors: List[str], warnings: List[str]) -> ValidationResult:
    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def _blank(value: Optional[str]) -> bool:
    return not value or not value.strip()


def validate_article_schema(article: Article) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    if not article.title:
        errors.append("Missing required field: title")
    if not article.description:
        errors.append("Missing required field: description")
    if not article.publishedAt:
        errors.append("Missing required field: publishedAt")

    if not (article.hero.image and article.hero.image.url):
        warnings.append("Missing hero image (recommended for Article schema)")
    if not article.updatedAt:
        warnings.append("Missing updatedAt (recommended for freshness signals)")
    if not (article.author and article.author.name):
        warnings.append("Missing author name")

    return _result(errors, warnings)


def validate_video_object_schema(article: Article, duration_sec: float) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    tldr = next((m for m in article.modules or [] if isinstance(m, TLDRModule)), None)
    if not article.title:
        errors.append("Missing required field: name (title)")
    if not article.description and not (tldr and tldr.content):
        errors.append("Missing description for VideoObject")
    if not (article.hero.image and article.hero.image.url):
        errors.append("Missing thumbnailUrl (poster image)")
    if not duration_sec or duration_sec <= 0:
        errors.append("Invalid duration")

    if not article.publishedAt:
        warnings.append("Missing uploadDate")

    return _result(errors, warnings)


def validate_faq_page_schema(items: Sequence[FAQItem]) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    if not items:
        return _result(["FAQ block is empty"], warnings)

    for index, item in enumerate(items, 1):
        if _blank(item.q):
            errors.append(f"FAQ item {index}: Missing question")
        if _blank(item.a):
            errors.append(f"FAQ item {index}: Missing answer")
        if item.q and len(item.q) < FAQ_MIN_QUESTION_CHARS:
            warnings.append(f"FAQ item {index}: Question is very short")
        if item.a and len(item.a) < FAQ_MIN_ANSWER_CHARS:
            warnings.append(f"FAQ item {index}: Answer is very short")

    return _result(errors, warnings)


def validate_breadcrumb_schema(items: Sequence[Dict[str, str]]) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    if not items:
        return _result(["Breadcrumb list is empty"], warnings)

    for index, item in enumerate(items, 1):
        name = item.get("name", "")
        url = item.get("url", "")
        if _blank(name):
            errors.append(f"Breadcrumb item {index}: Missing name")
        if _blank(url):
            errors.append(f"Breadcrumb item {index}: Missing URL")
        if url and not url.startswith("/"):
            warnings.append(f"Breadcrumb item {index}: URL should be absolute path")

    return _result(errors, warnings)


def validate_collection_page_schema(
    title: str, description: str, items: Sequence[Dict[str, str]],
) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    if _blank(title):
        errors.append("Missing collection title")
    if _blank(description):
        errors.append("Missing collection description")
    if not items:
        warnings.append("Collection has no items")

    for index, item in enumerate(items or [], 1):
        if not item.get("name"):
            errors.append(f"Collection item {index}: Missing name")
        if not item.get("url"):
            errors.append(f"Collection item {index}: Missing URL")

    return _result(errors, warnings)


def validate_jsonld(schema: Any) -> ValidationResult:
    """Validate a JSON-LD object (or list/@graph of objects)."""
    if isinstance(schema, list):
        nodes = schema
    elif isinstance(schema, dict) and isinstance(schema.get("@graph"), list):
        nodes = [{"@context": schema.get("@context"), **node} for node in schema["@graph"]]
    else:
        nodes = [schema]

    errors: List[str] = []
    for node in nodes:
        if not isinstance(node, dict):
            errors.append("JSON-LD node is not an object")
            continue
        errors.extend(_validate_jsonld_node(node))
    return _result(errors, [])


def _validate_jsonld_node(schema: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    kind = schema.get("@type")

    if not schema.get("@context"):
        errors.append("Missing @context")
    if not kind:
        errors.append("Missing @type")

    if kind in ("Article", "TechArticle"):
        for key in ("headline", "datePublished", "author", "publisher"):
            if not schema.get(key):
                errors.append(f"Missing {key}")
    elif kind == "FAQPage":
        if not isinstance(schema.get("mainEntity"), list):
            errors.append("FAQPage missing mainEntity array")
    elif kind == "VideoObject":
        for key in ("name", "thumbnailUrl", "uploadDate"):
            if not schema.get(key):
                errors.append(f"VideoObject missing {key}")

    return errors


def validate_faq_blocks(article: Article) -> Tuple[ValidationStatus, List[str]]:
    """GREEN unless the article has several FAQ blocks, empty answers or repeated questions."""
    faq_blocks = [b for b in article.blocks if isinstance(b, FAQBlock)]
    messages: List[str] = []
    status = ValidationStatus.GREEN

    if len(faq_blocks) > 1:
        status = ValidationStatus.AMBER
        messages.append(f"Found {len(faq_blocks)} FAQ blocks, only one is allowed per article")

    if faq_blocks:
        items = faq_blocks[0].items
        empty = [item for item in items if _blank(item.a)]
        if empty:
            status = ValidationStatus.AMBER
            messages.append(f"Found {len(empty)} FAQ items with empty answers")

        questions = [item.q.lower().strip() for item in items]
        duplicates = [q for i, q in enumerate(questions) if questions.index(q) != i]
        if duplicates:
            status = ValidationStatus.AMBER
            messages.append(f"Found {len(duplicates)} duplicate FAQ questions")

    return status, messages
