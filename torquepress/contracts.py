"""
Document contracts for the planning layer.

Pydantic models for the taxonomy, direction, graph and planner documents.
Field names keep the spelling used in the JSON files on disk (camelCase for
taxonomy entries, snake_case for direction and planner output).
"""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SectionSlug = Literal["comparisons", "deep-dives", "guides", "glossary", "news", "database"]
ContentType = Literal["comparison", "deep_dive", "how_to", "glossary", "news", "database_entry"]
NodeType = Literal["pillar", "section", "cluster", "article"]
EdgeRel = Literal["up", "down", "sibling", "cross"]


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------


class Pillar(BaseModel):
    id: str
    slug: str
    title: str
    description: str
    icon: Optional[str] = None
    coverImage: Optional[str] = None
    navWeight: int
    relatedPillars: Optional[List[str]] = None


class Section(BaseModel):
    id: str
    pillarId: str
    slug: SectionSlug
    title: str
    description: Optional[str] = None
    navWeight: int
    featuredClusterIds: Optional[List[str]] = None


class Cluster(BaseModel):
    id: str
    pillarId: str
    sectionId: str
    slug: str
    title: str
    description: str
    coverImage: Optional[str] = None
    navWeight: int
    tags: Optional[List[str]] = None
    relatedClusters: Optional[List[str]] = None


class ArticleMeta(BaseModel):
    id: str
    slug: str
    title: str
    description: str
    pillarId: str
    sectionId: str
    clusterId: Optional[str] = None
    content_type: ContentType
    keywords: Optional[List[str]] = None


class TaxonomyDocument(BaseModel):
    pillars: List[Pillar] = Field(default_factory=list)
    sections: List[Section] = Field(default_factory=list)
    clusters: List[Cluster] = Field(default_factory=list)
    articles: List[ArticleMeta] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Direction
# ---------------------------------------------------------------------------


class InterlinkPolicy(BaseModel):
    min_internal: int = Field(3, ge=1)
    max_internal: int = Field(7, ge=3, le=12)
    prefer_siblings: bool = True
    include_parent: bool = True


class DirectionPillar(BaseModel):
    id: str
    priority: float = Field(1.0, ge=0)
    target_quota: int = Field(20, ge=0)
    freeze: bool = False


class DirectionCluster(BaseModel):
    id: str
    priority: float = Field(1.0, ge=0)
    target_quota: int = Field(10, ge=0)


class Direction(BaseModel):
    focus_window_days: int = Field(30, ge=7, le=120)
    publish_per_day: int = Field(3, ge=1, le=20)
    pillars: List[DirectionPillar]
    clusters: List[DirectionCluster] = Field(default_factory=list)
    boost_entities: List[str] = Field(default_factory=list)
    deprioritize_patterns: List[str] = Field(default_factory=list)
    interlink_policy: InterlinkPolicy = Field(default_factory=InterlinkPolicy)


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


class GraphNode(BaseModel):
    slug: str
    type: NodeType
    parent: Optional[str] = None
    title: Optional[str] = None
    # Owning pillar slug; section slugs repeat across pillars.
    pillar: Optional[str] = None


class GraphEdge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(alias="from")
    to: str
    rel: EdgeRel


class GraphCounts(BaseModel):
    total: int = 0
    pillars: int = 0
    sections: int = 0
    clusters: int = 0
    articles: int = 0
    byPillar: Dict[str, int] = Field(default_factory=dict)
    byCluster: Dict[str, int] = Field(default_factory=dict)


class Graph(BaseModel):
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)
    counts: GraphCounts = Field(default_factory=GraphCounts)

    def find_node(
        self, slug: str, node_type: str, pillar: Optional[str] = None,
    ) -> Optional[GraphNode]:
        """First node of ``node_type`` with ``slug``, optionally within ``pillar``."""
        for node in self.nodes:
            if node.slug != slug or node.type != node_type:
                continue
            if pillar is not None and node.pillar != pillar:
                continue
            return node
        return None

    def children(self, parent: str, node_type: str) -> List[GraphNode]:
        return [n for n in self.nodes if n.type == node_type and n.parent == parent]


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------


class LinkTargets(BaseModel):
    parent: Optional[str] = None
    siblings: List[str] = Field(default_factory=list)
    crosslinks: List[str] = Field(default_factory=list)


class PlannerPick(BaseModel):
    slug: str
    pillar: str
    section: str
    cluster: str
    reason: str
    link_targets: LinkTargets = Field(default_factory=LinkTargets)


class PlannerResponse(BaseModel):
    publish_count: int = Field(ge=0)
    picks: List[PlannerPick] = Field(default_factory=list)
