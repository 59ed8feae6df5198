"""
Taxonomy Loader
===============

Loads ``content/taxonomy.json`` (pillars -> sections -> clusters -> articles),
validates it and indexes every entity for lookup. A taxonomy that fails
validation is logged and replaced by an empty one so that callers never have
to handle a load error.

Lookup keys:
    pillars   -- pillar slug
    sections  -- "{pillarId}:{section slug}"
    clusters  -- cluster slug
    articles  -- article slug

Usage:
    from torquepress.taxonomy import get_taxonomy

    taxonomy = get_taxonomy()
    pillar = taxonomy.get_pillar("suvs")
    url = taxonomy.article_url(taxonomy.get_article_meta("rav4-vs-cr-v"))
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from torquepress.contracts import ArticleMeta, Cluster, Pillar, Section, TaxonomyDocument
from torquepress.persistence import CONTENT_DIR

logger = logging.getLogger("torquepress.taxonomy")

TAXONOMY_PATH = Path(os.getenv("TORQUEPRESS_TAXONOMY_PATH", str(CONTENT_DIR / "taxonomy.json")))


def strip_prefix(value: Optional[str], prefix: str) -> str:
    """Drop the ``pillar-`` / ``section-`` / ``cluster-`` id prefix."""
    if not value:
        return ""
    return value.replace(prefix, "", 1) if value.startswith(prefix) else value


class Taxonomy:
    """In-memory, indexed taxonomy."""

    def __init__(
        self,
        pillars: Iterable[Pillar] = (),
        sections: Iterable[Section] = (),
        clusters: Iterable[Cluster] = (),
        articles: Iterable[ArticleMeta] = (),
    ) -> None:
        self.pillars: Dict[str, Pillar] = {p.slug: p for p in pillars}
        self.sections: Dict[str, Section] = {f"{s.pillarId}:{s.slug}": s for s in sections}
        self.clusters: Dict[str, Cluster] = {c.slug: c for c in clusters}
        self.articles: Dict[str, ArticleMeta] = {a.slug: a for a in articles}

    # -- Construction -------------------------------------------------------

    @classmethod
    def from_document(cls, data: Any) -> "Taxonomy":
        """Validate raw taxonomy data; on failure log and return an empty taxonomy."""
        try:
            doc = TaxonomyDocument.model_validate(data)
        except ValidationError as exc:
            logger.error("Taxonomy validation failed: %s", exc)
            return cls()
        return cls(doc.pillars, doc.sections, doc.clusters, doc.articles)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Taxonomy":
        path = path or TAXONOMY_PATH
        if not path.exists():
            logger.warning("Taxonomy file not found: %s", path)
            return cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
            logger.error("Failed to read taxonomy %s: %s", path, exc)
            return cls()
        return cls.from_document(data)

    @property
    def is_empty(self) -> bool:
        return not (self.pillars or self.sections or self.clusters or self.articles)

    # -- Lookup -------------------------------------------------------------

    def get_pillar(self, slug: str) -> Optional[Pillar]:
        return self.pillars.get(slug)

    def get_section(self, pillar_id: str, section_slug: str) -> Optional[Section]:
        return self.sections.get(f"{pillar_id}:{section_slug}")

    def get_cluster(self, slug: str) -> Optional[Cluster]:
        return self.clusters.get(slug)

    def get_article_meta(self, slug: str) -> Optional[ArticleMeta]:
        return self.articles.get(slug)

    def list_pillars(self) -> List[Pillar]:
        return sorted(self.pillars.values(), key=lambda p: p.navWeight)

    def list_sections(self, pillar_id: Optional[str] = None) -> List[Section]:
        sections = list(self.sections.values())
        if pillar_id:
            sections = [s for s in sections if s.pillarId == pillar_id]
        return sorted(sections, key=lambda s: s.navWeight)

    def list_clusters(
        self, pillar_id: Optional[str] = None, section_id: Optional[str] = None,
    ) -> List[Cluster]:
        clusters = list(self.clusters.values())
        if pillar_id:
            clusters = [c for c in clusters if c.pillarId == pillar_id]
        if section_id:
            clusters = [c for c in clusters if c.sectionId == section_id]
        return sorted(clusters, key=lambda c: c.navWeight)

    def list_articles(
        self,
        pillar_id: Optional[str] = None,
        section_id: Optional[str] = None,
        cluster_id: Optional[str] = None,
    ) -> List[ArticleMeta]:
        articles = list(self.articles.values())
        if pillar_id:
            articles = [a for a in articles if a.pillarId == pillar_id]
        if section_id:
            articles = [a for a in articles if a.sectionId == section_id]
        if cluster_id:
            articles = [a for a in articles if a.clusterId == cluster_id]
        return articles

    # -- Validation & URLs --------------------------------------------------

    def validate_article_taxonomy(
        self,
        pillar_id: Optional[str] = None,
        section_id: Optional[str] = None,
        cluster_id: Optional[str] = None,
    ) -> Tuple[bool, List[str]]:
        """Check an article's taxonomy references. Returns ``(valid, errors)``."""
        errors: List[str] = []
        if not pillar_id:
            errors.append("Article must have a pillarId")
        elif not self.get_pillar(strip_prefix(pillar_id, "pillar-")):
            errors.append(f"Pillar '{pillar_id}' does not exist")

        if not section_id:
            errors.append("Article must have a sectionId")

        return len(errors) == 0, errors

    def article_url(self, meta: ArticleMeta) -> str:
        """Canonical path for an article, falling back to ``/articles/{slug}``."""
        pillar = self.get_pillar(strip_prefix(meta.pillarId, "pillar-"))
        section = self.get_section(meta.pillarId, strip_prefix(meta.sectionId, "section-"))
        if not pillar or not section:
            return f"/articles/{meta.slug}"

        if meta.clusterId:
            cluster = self.get_cluster(strip_prefix(meta.clusterId, "cluster-"))
            if cluster:
                return f"/topics/{pillar.slug}/{section.slug}/{cluster.slug}/{meta.slug}"

        return f"/topics/{pillar.slug}/{section.slug}/{meta.slug}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pillars": [p.model_dump(exclude_none=True) for p in self.list_pillars()],
            "sections": [s.model_dump(exclude_none=True) for s in self.list_sections()],
            "clusters": [c.model_dump(exclude_none=True) for c in self.list_clusters()],
            "articles": [a.model_dump(exclude_none=True) for a in self.list_articles()],
        }


# ---------------------------------------------------------------------------
# Cached default
# ---------------------------------------------------------------------------

_taxonomy: Optional[Taxonomy] = None


def get_taxonomy() -> Taxonomy:
    """Get or load the cached taxonomy from TAXONOMY_PATH."""
    global _taxonomy
    if _taxonomy is None:
        _taxonomy = Taxonomy.load(TAXONOMY_PATH)
        logger.info(
            "Taxonomy loaded: %d pillars, %d sections, %d clusters, %d articles",
            len(_taxonomy.pillars), len(_taxonomy.sections),
            len(_taxonomy.clusters), len(_taxonomy.articles),
        )
    return _taxonomy


def reload_taxonomy() -> Taxonomy:
    """Drop the cache and load the taxonomy again."""
    global _taxonomy
    _taxonomy = None
    return get_taxonomy()
