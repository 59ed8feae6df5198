"""
Site Search
===========

An in-memory keyword index over articles and taxonomy pages. The index is
rebuilt from the article store and taxonomy whenever it is older than
``INDEX_TTL`` seconds.

Scoring per query token: title hit 10, summary hit 5, content hit 1,
keyword hit 3. Whole-query bonuses: exact title 50, pillar/section/cluster
title contains the query 8 each. Updated within 30 days +2, within 90 days
+1. Popularity adds half its value.

Usage:
    from torquepress.search import get_search_index

    response = get_search_index().search("hybrid suv", kinds=["article"], limit=10)
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from torquepress.article_schema import (
    Article,
    FAQBlock,
    GalleryBlock,
    IntroBlock,
    LSILongformBlock,
    MarkdownBlock,
    SpecGridBlock,
    TLDRModule,
)
from torquepress.persistence import parse_iso
from torquepress.taxonomy import Taxonomy, strip_prefix
from torquepress.textstats import strip_markup

logger = logging.getLogger("torquepress.search")

INDEX_TTL = 60.0  # seconds
DEFAULT_PAGE_SIZE = 20
DEFAULT_SUGGEST_LIMIT = 8
VALID_SORTS = ("relevance", "newest", "popular")

TITLE_TOKEN_SCORE = 10
EXACT_TITLE_SCORE = 50
SUMMARY_TOKEN_SCORE = 5
CONTENT_TOKEN_SCORE = 1
KEYWORD_TOKEN_SCORE = 3
ENTITY_SCORE = 8
POPULARITY_WEIGHT = 0.5


def normalize_text(text: str) -> str:
    text = re.sub(r"[^\w\s]", " ", (text or "").lower())
    return " ".join(text.split())


@dataclass
class EntityRef:
    slug: str
    title: str


@dataclass
class SearchDoc:
    id: str
    kind: str
    url: str
    title: str
    summary: str = ""
    content_plain: str = ""
    subtitle: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    pillar: Optional[EntityRef] = None
    section: Optional[EntityRef] = None
    cluster: Optional[EntityRef] = None
    stats: List[Dict[str, str]] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    published_at: Optional[str] = None
    updated_at: Optional[str] = None
    popularity_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SearchResult:
    doc: SearchDoc
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {"doc": self.doc.to_dict(), "score": self.score}


# ---------------------------------------------------------------------------
# Indexing
# ---------------------------------------------------------------------------


def _entity(taxonomy: Optional[Taxonomy], kind: str, article: Article) -> Optional[EntityRef]:
    if taxonomy is None:
        return None
    if kind == "pillar":
        entity = taxonomy.get_pillar(strip_prefix(article.pillarId, "pillar-"))
    elif kind == "section":
        entity = taxonomy.get_section(article.pillarId or "", strip_prefix(article.sectionId, "section-"))
    else:
        entity = taxonomy.get_cluster(strip_prefix(article.clusterId, "cluster-"))
    return EntityRef(entity.slug, entity.title) if entity else None


def index_article(article: Article, taxonomy: Optional[Taxonomy] = None) -> SearchDoc:
    """Build the search document for one article."""
    content: List[str] = []
    stats: List[Dict[str, str]] = []
    images: List[str] = [article.hero.image.url] if article.hero.image else []
    keywords: List[str] = list(article.keywords or [])

    for block in article.blocks:
        if isinstance(block, IntroBlock):
            content.append(strip_markup(block.html))
        elif isinstance(block, MarkdownBlock):
            content.append(strip_markup(block.md))
        elif isinstance(block, LSILongformBlock):
            content.append(strip_markup(block.content_markdown))
            keywords.extend(block.keywords_used)
        elif isinstance(block, FAQBlock):
            content.extend(f"{item.q} {item.a}" for item in block.items)
        elif isinstance(block, SpecGridBlock):
            stats.extend(
                {"label": item.label, "value": item.value}
                for group in block.groups for item in group.items
            )
        elif isinstance(block, GalleryBlock):
            images.extend(image.url for image in block.images)

    tldr = next((m for m in article.modules or [] if isinstance(m, TLDRModule)), None)
    return SearchDoc(
        id=f"article:{article.slug}",
        kind="article",
        url=f"/articles/{article.slug}",
        title=article.title,
        subtitle=article.hero.subheadline,
        summary=tldr.content if tldr else article.description,
        content_plain=" ".join(content),
        keywords=keywords,
        pillar=_entity(taxonomy, "pillar", article),
        section=_entity(taxonomy, "section", article),
        cluster=_entity(taxonomy, "cluster", article),
        stats=stats,
        images=images,
        published_at=article.publishedAt,
        updated_at=article.updatedAt,
    )


def build_search_index(taxonomy: Taxonomy, articles: Sequence[Article]) -> List[SearchDoc]:
    """Documents for every article, pillar, section and cluster."""
    docs = [index_article(article, taxonomy) for article in articles]

    for pillar in taxonomy.list_pillars():
        docs.append(SearchDoc(
            id=f"pillar:{pillar.slug}",
            kind="pillar",
            url=f"/topics/{pillar.slug}",
            title=pillar.title,
            summary=pillar.description,
            content_plain=pillar.description,
            pillar=EntityRef(pillar.slug, pillar.title),
        ))

    for section in taxonomy.list_sections():
        pillar = taxonomy.get_pillar(strip_prefix(section.pillarId, "pillar-"))
        if pillar is None:
            continue
        docs.append(SearchDoc(
            id=f"section:{section.id}",
            kind="section",
            url=f"/topics/{pillar.slug}/{section.slug}",
            title=section.title,
            summary=section.description or "",
            content_plain=section.description or "",
            pillar=EntityRef(pillar.slug, pillar.title),
            section=EntityRef(section.slug, section.title),
        ))

    for cluster in taxonomy.list_clusters():
        pillar = taxonomy.get_pillar(strip_prefix(cluster.pillarId, "pillar-"))
        section = taxonomy.get_section(cluster.pillarId, strip_prefix(cluster.sectionId, "section-"))
        if pillar is None or section is None:
            continue
        docs.append(SearchDoc(
            id=f"cluster:{cluster.id}",
            kind="cluster",
            url=f"/topics/{pillar.slug}/{section.slug}/{cluster.slug}",
            title=cluster.title,
            summary=cluster.description,
            content_plain=cluster.description,
            pillar=EntityRef(pillar.slug, pillar.title),
            section=EntityRef(section.slug, section.title),
            cluster=EntityRef(cluster.slug, cluster.title),
        ))

    return docs


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def score_document(doc: SearchDoc, query: str, now: Optional[datetime] = None) -> float:
    query_norm = normalize_text(query)
    tokens = [t for t in query_norm.split(" ") if t]
    if not tokens:
        return 0.0

    title = normalize_text(doc.title)
    summary = normalize_text(doc.summary)
    content = normalize_text(doc.content_plain)
    keywords = [normalize_text(k) for k in doc.keywords]

    score = 0.0
    for token in tokens:
        if token in title:
            score += TITLE_TOKEN_SCORE
        if token in summary:
            score += SUMMARY_TOKEN_SCORE
        if token in content:
            score += CONTENT_TOKEN_SCORE
        score += KEYWORD_TOKEN_SCORE * sum(1 for k in keywords if token in k)

    if title == query_norm:
        score += EXACT_TITLE_SCORE
    for entity in (doc.pillar, doc.section, doc.cluster):
        if entity and query_norm in normalize_text(entity.title):
            score += ENTITY_SCORE

    updated = parse_iso(doc.updated_at or "")
    if updated:
        age_days = ((now or datetime.now(timezone.utc)) - updated).total_seconds() / 86400
        if age_days < 30:
            score += 2
        elif age_days < 90:
            score += 1

    if doc.popularity_score:
        score += doc.popularity_score * POPULARITY_WEIGHT
    return score


def _recency(doc: SearchDoc) -> float:
    stamp = parse_iso(doc.updated_at or doc.published_at or "")
    return stamp.timestamp() if stamp else 0.0


# ---------------------------------------------------------------------------
# Search index
# ---------------------------------------------------------------------------


def _default_loader() -> List[SearchDoc]:
    from torquepress.storage import ArticleStore
    from torquepress.taxonomy import get_taxonomy

    return build_search_index(get_taxonomy(), ArticleStore().list_articles())


class SearchIndex:
    """Cached document list with search and typeahead suggestions."""

    def __init__(
        self,
        loader: Optional[Callable[[], List[SearchDoc]]] = None,
        ttl: float = INDEX_TTL,
    ) -> None:
        self._loader = loader or _default_loader
        self.ttl = ttl
        self._docs: List[SearchDoc] = []
        self._built_at = 0.0

    @property
    def docs(self) -> List[SearchDoc]:
        self._ensure_index()
        return self._docs

    def _ensure_index(self) -> None:
        if not self._docs or time.monotonic() - self._built_at > self.ttl:
            self.reindex()

    def reindex(self) -> int:
        self._docs = self._loader()
        self._built_at = time.monotonic()
        logger.info("Search index built with %d documents", len(self._docs))
        return len(self._docs)

    def search(
        self,
        q: str,
        kinds: Optional[Sequence[str]] = None,
        pillar: Optional[str] = None,
        section: Optional[str] = None,
        cluster: Optional[str] = None,
        sort: str = "relevance",
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        """Scored, filtered, sorted and paginated results."""
        started = time.perf_counter()
        if sort not in VALID_SORTS:
            raise ValueError(f"Invalid sort '{sort}'. Valid: {', '.join(VALID_SORTS)}")
        page = max(1, page)
        limit = max(1, limit)

        results: List[SearchResult] = []
        if q and q.strip():
            results = [SearchResult(doc, score_document(doc, q)) for doc in self.docs]
            results = [r for r in results if r.score > 0]
            if kinds:
                results = [r for r in results if r.doc.kind in kinds]
            if pillar:
                results = [r for r in results if r.doc.pillar and r.doc.pillar.slug == pillar]
            if section:
                results = [r for r in results if r.doc.section and r.doc.section.slug == section]
            if cluster:
                results = [r for r in results if r.doc.cluster and r.doc.cluster.slug == cluster]

            if sort == "newest":
                results.sort(key=lambda r: _recency(r.doc), reverse=True)
            elif sort == "popular":
                results.sort(key=lambda r: r.doc.popularity_score, reverse=True)
            else:
                results.sort(key=lambda r: r.score, reverse=True)

        start = (page - 1) * limit
        return {
            "results": [r.to_dict() for r in results[start:start + limit]],
            "total": len(results),
            "page": page,
            "limit": limit,
            "query": q,
            "took_ms": round((time.perf_counter() - started) * 1000, 2),
        }

    def suggest(self, q: str, limit: int = DEFAULT_SUGGEST_LIMIT) -> Dict[str, Any]:
        started = time.perf_counter()
        suggestions: List[SearchResult] = []
        if q and q.strip():
            suggestions = [SearchResult(doc, score_document(doc, q)) for doc in self.docs]
            suggestions = sorted((s for s in suggestions if s.score > 0), key=lambda s: s.score, reverse=True)
        return {
            "suggestions": [s.to_dict() for s in suggestions[:max(1, limit)]],
            "took_ms": round((time.perf_counter() - started) * 1000, 2),
        }


_index: Optional[SearchIndex] = None


def get_search_index() -> SearchIndex:
    global _index
    if _index is None:
        _index = SearchIndex()
    return _index
