"""
Internal linking rules and related-article lookup.

Link density rules keep auto-inserted internal links sparse (at most six per
article, one per 150 words, 100 words apart, never inside headings, links,
buttons or page chrome). Related articles are ranked from the content tree,
a flat list of article nodes derived from the taxonomy and persisted to
``content/tree.json``.

Usage:
    from torquepress.links import related_from_tree, RelatedQuery

    links = related_from_tree(RelatedQuery(pillar="suvs", keywords=["hybrid"]))
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from torquepress.article_schema import Article
from torquepress.persistence import CONTENT_DIR, load_json, save_json
from torquepress.taxonomy import Taxonomy, strip_prefix

logger = logging.getLogger("torquepress.links")

TREE_PATH = CONTENT_DIR / "tree.json"

PILLAR_MATCH_SCORE = 10
CLUSTER_MATCH_SCORE = 8
KEYWORD_MATCH_SCORE = 2
TAG_MATCH_SCORE = 1


# ---------------------------------------------------------------------------
# Link density rules
# ---------------------------------------------------------------------------


@dataclass
class LinkingRules:
    max_links_per_article: int = 6
    words_per_link: int = 150
    min_words_between_links: int = 100
    forbidden_contexts: List[str] = field(default_factory=lambda: [
        "h1", "h2", "h3", "a", "button", "nav", "header", "footer",
    ])


DEFAULT_LINKING_RULES = LinkingRules()


def calculate_max_links(word_count: int, rules: LinkingRules = DEFAULT_LINKING_RULES) -> int:
    """One link per ``words_per_link`` words, capped at ``max_links_per_article``."""
    return min(word_count // rules.words_per_link, rules.max_links_per_article)


def can_insert_link(
    current_link_count: int,
    words_since_last_link: int,
    total_words: int,
    rules: LinkingRules = DEFAULT_LINKING_RULES,
) -> bool:
    if current_link_count >= rules.max_links_per_article:
        return False
    if current_link_count >= calculate_max_links(total_words, rules):
        return False
    return words_since_last_link >= rules.min_words_between_links


def is_safe_context(context: str, rules: LinkingRules = DEFAULT_LINKING_RULES) -> bool:
    """False if ``context`` (e.g. an element path like ``"article > h2"``) names a forbidden tag."""
    tags = set(re.findall(r"[a-z][a-z0-9]*", context.lower()))
    return not tags & set(rules.forbidden_contexts)


# ---------------------------------------------------------------------------
# Content tree
# ---------------------------------------------------------------------------


@dataclass
class ContentTreeNode:
    slug: str
    title: str
    pillar: Optional[str] = None
    cluster: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentTreeNode":
        known = {f.name for f in cls.__dataclass_fields__.values()}
        node = cls(**{k: v for k, v in data.items() if k in known})
        node.keywords = list(node.keywords or [])
        node.tags = list(node.tags or [])
        return node


@dataclass
class RelatedQuery:
    pillar: Optional[str] = None
    cluster: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    exclude_slug: Optional[str] = None


@dataclass
class RelatedLink:
    title: str
    href: str
    reason: Optional[str] = None
    score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_content_tree(
    taxonomy: Taxonomy, articles: Sequence[Article] = (),
) -> List[ContentTreeNode]:
    """One node per taxonomy article, plus stored articles the taxonomy lacks.

    Node tags come from the article's cluster.
    """
    nodes: Dict[str, ContentTreeNode] = {}
    for meta in taxonomy.list_articles():
        cluster_slug = strip_prefix(meta.clusterId, "cluster-") or None
        cluster = taxonomy.get_cluster(cluster_slug) if cluster_slug else None
        nodes[meta.slug] = ContentTreeNode(
            slug=meta.slug,
            title=meta.title,
            pillar=strip_prefix(meta.pillarId, "pillar-") or None,
            cluster=cluster_slug,
            keywords=list(meta.keywords or []),
            tags=list(cluster.tags or []) if cluster else [],
        )
    for article in articles:
        if article.slug in nodes:
            continue
        cluster_slug = strip_prefix(article.clusterId, "cluster-") or None
        cluster = taxonomy.get_cluster(cluster_slug) if cluster_slug else None
        nodes[article.slug] = ContentTreeNode(
            slug=article.slug,
            title=article.title,
            pillar=strip_prefix(article.pillarId, "pillar-") or None,
            cluster=cluster_slug,
            keywords=list(article.keywords or []),
            tags=list(cluster.tags or []) if cluster else [],
        )
    return list(nodes.values())


def save_content_tree(nodes: Sequence[ContentTreeNode], path: Optional[Path] = None) -> Path:
    path = path or TREE_PATH
    save_json(path, {"nodes": [n.to_dict() for n in nodes]})
    logger.info("Content tree written: %d nodes -> %s", len(nodes), path)
    return path


def load_content_tree(path: Optional[Path] = None) -> List[ContentTreeNode]:
    """Nodes from ``tree.json``; empty when the file is missing or unreadable."""
    data = load_json(path or TREE_PATH, {"nodes": []})
    if not isinstance(data, dict):
        return []
    return [ContentTreeNode.from_dict(n) for n in data.get("nodes", []) if isinstance(n, dict)]


# ---------------------------------------------------------------------------
# Related links
# ---------------------------------------------------------------------------


def calculate_relevance(query: RelatedQuery, node: ContentTreeNode) -> int:
    score = 0
    if query.pillar and node.pillar == query.pillar:
        score += PILLAR_MATCH_SCORE
    if query.cluster and node.cluster == query.cluster:
        score += CLUSTER_MATCH_SCORE
    score += KEYWORD_MATCH_SCORE * sum(1 for k in query.keywords if k in node.keywords)
    score += TAG_MATCH_SCORE * sum(1 for k in query.keywords if k in node.tags)
    return score


def _reason(query: RelatedQuery, node: ContentTreeNode) -> Optional[str]:
    if query.pillar and node.pillar == query.pillar:
        return f"Part of {query.pillar} series"
    if query.cluster and node.cluster == query.cluster:
        return f"Related to {query.cluster}"
    matches = [k for k in query.keywords if k in node.keywords]
    if matches:
        return f"Related topics: {', '.join(matches[:2])}"
    return None


def related_from_tree(
    query: RelatedQuery,
    tree: Optional[Sequence[ContentTreeNode]] = None,
    max_links: int = 3,
) -> List[RelatedLink]:
    """Top ``max_links`` nodes with a positive relevance score, best first."""
    nodes = list(tree) if tree is not None else load_content_tree()
    scored = [
        (calculate_relevance(query, node), node)
        for node in nodes
        if node.slug != query.exclude_slug
    ]
    scored = [item for item in scored if item[0] > 0]
    scored.sort(key=lambda item: item[0], reverse=True)

    return [
        RelatedLink(
            title=node.title,
            href=f"/articles/{node.slug}",
            reason=_reason(query, node),
            score=score,
        )
        for score, node in scored[:max_links]
    ]
