"""
Article document schema.

An article is a JSON document made of a hero, a table of contents, an
ordered list of content blocks and optional enhancement modules. Blocks and
modules are discriminated on their ``type`` field.

Usage:
    from torquepress.article_schema import parse_article

    article = parse_article(json.loads(path.read_text()))
"""

from __future__ import annotations

import re
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from torquepress.errors import TorquepressError
from torquepress.textstats import strip_markup


class ArticleValidationError(TorquepressError, ValueError):
    """Raised when an article document does not match the schema."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__(f"Article validation failed: {', '.join(errors)}")


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


class ImageRef(BaseModel):
    url: str
    alt: str


class IntroBlock(BaseModel):
    type: Literal["intro"]
    html: str


class ComparisonTableBlock(BaseModel):
    type: Literal["comparisonTable"]
    caption: Optional[str] = None
    columns: List[str]
    rows: List[Dict[str, str]]
    highlightRule: Optional[Literal["max", "min"]] = None


class SpecItem(BaseModel):
    label: str
    value: str


class SpecGroup(BaseModel):
    title: str
    items: List[SpecItem]


class SpecGridBlock(BaseModel):
    type: Literal["specGrid"]
    groups: List[SpecGroup]


class ProsConsBlock(BaseModel):
    type: Literal["prosCons"]
    pros: List[str]
    cons: List[str]


class GalleryBlock(BaseModel):
    type: Literal["gallery"]
    images: List[ImageRef]


class FAQItem(BaseModel):
    q: str
    a: str


class FAQBlock(BaseModel):
    type: Literal["faq"]
    items: List[FAQItem]


class CTABannerBlock(BaseModel):
    type: Literal["ctaBanner"]
    heading: str
    sub: Optional[str] = None
    href: str
    label: str


class MarkdownBlock(BaseModel):
    type: Literal["markdown"]
    md: str


class SemanticCluster(BaseModel):
    topic: str
    related_terms: List[str] = Field(default_factory=list)


class LongformStyle(BaseModel):
    tone: str = ""
    readability: str = ""
    visual_style: str = ""


class LSILongformBlock(BaseModel):
    type: Literal["lsi_longform"]
    heading: str
    content_markdown: str
    word_count: int = 0
    keywords_used: List[str] = Field(default_factory=list)
    semantic_clusters: List[SemanticCluster] = Field(default_factory=list)
    style: LongformStyle = Field(default_factory=LongformStyle)


ArticleBlock = Annotated[
    Union[
        IntroBlock,
        ComparisonTableBlock,
        SpecGridBlock,
        ProsConsBlock,
        GalleryBlock,
        FAQBlock,
        CTABannerBlock,
        MarkdownBlock,
        LSILongformBlock,
    ],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Modules
# ---------------------------------------------------------------------------


class TLDRModule(BaseModel):
    type: Literal["tldr"]
    content: str


class KeyTakeawaysModule(BaseModel):
    type: Literal["key_takeaways"]
    items: List[str]


class QuizQuestion(BaseModel):
    prompt: str
    choices: List[str]
    correctIndex: int
    explanation: Optional[str] = None


class QuizModule(BaseModel):
    type: Literal["quiz"]
    title: str
    questions: List[QuizQuestion]


class MpgDefaults(BaseModel):
    cityMpg: Optional[float] = None
    hwyMpg: Optional[float] = None
    fuelPrice: Optional[float] = None
    miles: Optional[float] = None


class MpgCalculatorModule(BaseModel):
    type: Literal["mpg_calculator"]
    label: Optional[str] = None
    defaults: Optional[MpgDefaults] = None


class PullQuoteModule(BaseModel):
    type: Literal["pull_quote"]
    quote: str
    attribution: Optional[str] = None


class DropdownModule(BaseModel):
    type: Literal["dropdown"]
    title: str
    body: str


class ReviewEntry(BaseModel):
    author: Optional[str] = None
    rating: Optional[float] = Field(None, ge=1, le=5)
    summary: str
    pros: Optional[List[str]] = None
    cons: Optional[List[str]] = None


class ReviewsModule(BaseModel):
    type: Literal["reviews"]
    sources: Optional[List[str]] = None
    entries: List[ReviewEntry]


ArticleModule = Annotated[
    Union[
        TLDRModule,
        KeyTakeawaysModule,
        QuizModule,
        MpgCalculatorModule,
        PullQuoteModule,
        DropdownModule,
        ReviewsModule,
    ],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Article
# ---------------------------------------------------------------------------


class Badge(BaseModel):
    label: str


class CTA(BaseModel):
    label: str
    href: str


class Hero(BaseModel):
    eyebrow: Optional[str] = None
    headline: str
    subheadline: Optional[str] = None
    image: Optional[ImageRef] = None
    badges: Optional[List[Badge]] = None
    cta: Optional[CTA] = None


class TocEntry(BaseModel):
    id: str
    label: str


class SEOFields(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    canonical: Optional[str] = None
    ogImage: Optional[str] = None
    schema_: Optional[Any] = Field(None, alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class Author(BaseModel):
    name: str
    url: Optional[str] = None


class VideoSettings(BaseModel):
    enabled: bool = True
    posterUrl: Optional[str] = None


class Article(BaseModel):
    title: str
    slug: str
    description: str
    hero: Hero
    toc: List[TocEntry]
    blocks: List[ArticleBlock]
    modules: Optional[List[ArticleModule]] = None
    seo: Optional[SEOFields] = None
    publishedAt: Optional[str] = None
    updatedAt: Optional[str] = None
    author: Optional[Author] = None
    pillarId: Optional[str] = None
    sectionId: Optional[str] = None
    clusterId: Optional[str] = None
    keywords: Optional[List[str]] = None
    video: Optional[VideoSettings] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def _format_error(err: Dict[str, Any]) -> str:
    path = ".".join(str(part) for part in err.get("loc", ()))
    return f"{path}: {err.get('msg', 'invalid value')}"


def parse_article(data: Any) -> Article:
    """Validate ``data`` into an Article.

    Raises:
        ArticleValidationError: with one ``"path: message"`` entry per problem.
    """
    try:
        return Article.model_validate(data)
    except ValidationError as exc:
        raise ArticleValidationError([_format_error(e) for e in exc.errors()]) from exc


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def generate_id(text: str) -> str:
    """Turn a heading into an anchor id: ``"Hello World!"`` -> ``"hello-world"``."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def block_text(block: BaseModel) -> str:
    """Plain-ish text carried by a single block (HTML/markdown left intact)."""
    if isinstance(block, IntroBlock):
        return block.html
    if isinstance(block, MarkdownBlock):
        return block.md
    if isinstance(block, LSILongformBlock):
        return f"{block.heading}\n{block.content_markdown}"
    if isinstance(block, ComparisonTableBlock):
        parts = [block.caption or "", " ".join(block.columns)]
        parts.extend(" ".join(row.values()) for row in block.rows)
        return "\n".join(p for p in parts if p)
    if isinstance(block, SpecGridBlock):
        return "\n".join(
            f"{g.title} " + " ".join(f"{i.label} {i.value}" for i in g.items)
            for g in block.groups
        )
    if isinstance(block, ProsConsBlock):
        return "\n".join(block.pros + block.cons)
    if isinstance(block, FAQBlock):
        return "\n".join(f"{item.q} {item.a}" for item in block.items)
    if isinstance(block, CTABannerBlock):
        return f"{block.heading} {block.sub or ''}".strip()
    if isinstance(block, GalleryBlock):
        return " ".join(img.alt for img in block.images)
    return ""


def article_text(article: Article) -> str:
    """Concatenated body text of all blocks, HTML/markdown markup removed."""
    return strip_markup("\n".join(block_text(b) for b in article.blocks))


def html_fragments(article: Article) -> List[str]:
    """HTML-bearing bodies: intro html and markdown (which may embed HTML)."""
    fragments: List[str] = []
    for block in article.blocks:
        if isinstance(block, IntroBlock):
            fragments.append(block.html)
        elif isinstance(block, MarkdownBlock):
            fragments.append(block.md)
        elif isinstance(block, LSILongformBlock):
            fragments.append(block.content_markdown)
    return fragments
