"""
Content graph builder.

Flattens the taxonomy into nodes (pillar, section, cluster, article) and
edges (``up`` toward the parent, ``sibling`` between articles of the same
cluster) and counts articles per pillar and per cluster. The planner reads
these counts to find quota gaps.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from torquepress.contracts import Graph, GraphCounts, GraphEdge, GraphNode
from torquepress.taxonomy import Taxonomy, strip_prefix

logger = logging.getLogger("torquepress.graph")

MAX_SIBLING_EDGES = 3


def build_graph(taxonomy: Taxonomy) -> Graph:
    """Build the content graph for ``taxonomy``."""
    nodes: List[GraphNode] = []
    edges: List[GraphEdge] = []
    by_pillar: Dict[str, int] = {}
    by_cluster: Dict[str, int] = {}

    for pillar in taxonomy.pillars.values():
        nodes.append(GraphNode(slug=pillar.slug, type="pillar", title=pillar.title, pillar=pillar.slug))
        by_pillar[pillar.slug] = 0

    for section in taxonomy.sections.values():
        parent = strip_prefix(section.pillarId, "pillar-")
        nodes.append(GraphNode(
            slug=section.slug, type="section", parent=parent, title=section.title, pillar=parent,
        ))
        edges.append(GraphEdge(from_=section.slug, to=parent, rel="up"))

    for cluster in taxonomy.clusters.values():
        parent = strip_prefix(cluster.sectionId, "section-")
        nodes.append(GraphNode(
            slug=cluster.slug, type="cluster", parent=parent, title=cluster.title,
            pillar=strip_prefix(cluster.pillarId, "pillar-"),
        ))
        edges.append(GraphEdge(from_=cluster.slug, to=parent, rel="up"))
        by_cluster[cluster.slug] = 0

    articles = taxonomy.list_articles()
    by_cluster_members: Dict[str, List[str]] = {}
    for article in articles:
        if article.clusterId:
            by_cluster_members.setdefault(article.clusterId, []).append(article.slug)

    for article in articles:
        pillar_slug = strip_prefix(article.pillarId, "pillar-")
        cluster_slug = strip_prefix(article.clusterId, "cluster-")

        nodes.append(GraphNode(
            slug=article.slug, type="article", parent=cluster_slug, title=article.title,
            pillar=pillar_slug or None,
        ))

        if pillar_slug in by_pillar:
            by_pillar[pillar_slug] += 1
        if cluster_slug in by_cluster:
            by_cluster[cluster_slug] += 1

        if not cluster_slug:
            continue

        edges.append(GraphEdge(from_=article.slug, to=cluster_slug, rel="up"))
        siblings = [s for s in by_cluster_members[article.clusterId] if s != article.slug]
        for sibling in siblings[:MAX_SIBLING_EDGES]:
            edges.append(GraphEdge(from_=article.slug, to=sibling, rel="sibling"))

    counts = GraphCounts(
        total=len(nodes),
        pillars=len(taxonomy.pillars),
        sections=len(taxonomy.sections),
        clusters=len(taxonomy.clusters),
        articles=len(articles),
        byPillar=by_pillar,
        byCluster=by_cluster,
    )
    logger.debug("Graph built: %d nodes, %d edges", len(nodes), len(edges))
    return Graph(nodes=nodes, edges=edges, counts=counts)


def graph_to_dict(graph: Graph) -> Dict:
    """JSON-ready graph with ``from`` spelled as in the document."""
    return graph.model_dump(by_alias=True, exclude_none=True)
