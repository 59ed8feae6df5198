"""
Next-Article Planner
====================

Chooses which articles to generate next. Every cluster listed in the
direction document is scored by ``priority * gap`` where ``gap`` is the
number of articles still missing from its target quota. The highest scoring
clusters each yield one pick: a suggested slug, its place in the taxonomy,
a human-readable reason and the internal link targets the new article should
carry.

Adjustments on top of the raw score:
    - clusters under a frozen pillar are never picked
    - clusters matching a ``boost_entities`` term are multiplied by 1.25
    - clusters matching a ``deprioritize_patterns`` entry are multiplied by 0.5

Usage:
    from torquepress.planner import plan_next

    plan = plan_next(graph, direction, n=3)
    for pick in plan.picks:
        print(pick.slug, pick.reason)

CLI:
    python -m torquepress.planner next --n 3
    python -m torquepress.planner peek --n 10 --json
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from torquepress.contracts import (
    Direction,
    DirectionCluster,
    Graph,
    GraphNode,
    LinkTargets,
    PlannerPick,
    PlannerResponse,
)

logger = logging.getLogger("torquepress.planner")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BOOST_FACTOR = 1.25
DEPRIORITIZE_FACTOR = 0.5
CROSSLINK_CLUSTERS = 2
CROSSLINK_MIN_PRIORITY = 0.5

DEFAULT_NEXT_COUNT = 3
DEFAULT_PEEK_COUNT = 10
MAX_PEEK_COUNT = 20


@dataclass
class ClusterScore:
    """A direction cluster with an open quota gap."""

    cluster_id: str
    score: float
    current: int
    target: int


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def _placement(
    graph: Graph, cluster_node: GraphNode,
) -> Tuple[Optional[GraphNode], Optional[GraphNode]]:
    """Section and pillar nodes owning ``cluster_node``, scoped to its pillar."""
    section_node = graph.find_node(cluster_node.parent or "", "section", pillar=cluster_node.pillar)
    if section_node is None:
        return None, None
    pillar_slug = cluster_node.pillar or section_node.parent or ""
    return section_node, graph.find_node(pillar_slug, "pillar")


def _pillar_of(graph: Graph, cluster_id: str) -> Optional[GraphNode]:
    cluster_node = graph.find_node(cluster_id, "cluster")
    if cluster_node is None:
        return None
    return _placement(graph, cluster_node)[1]


def _entity_multiplier(cluster: DirectionCluster, title: str, direction: Direction) -> float:
    haystack = f"{cluster.id} {title}".lower()
    multiplier = 1.0
    if any(term.lower() in haystack for term in direction.boost_entities if term):
        multiplier *= BOOST_FACTOR
    if any(pattern.lower() in haystack for pattern in direction.deprioritize_patterns if pattern):
        multiplier *= DEPRIORITIZE_FACTOR
    return multiplier


def score_clusters(graph: Graph, direction: Direction) -> List[ClusterScore]:
    """Score every direction cluster with an open gap, highest first."""
    frozen = {p.id for p in direction.pillars if p.freeze}
    scores: List[ClusterScore] = []

    for cluster in direction.clusters:
        if frozen:
            pillar = _pillar_of(graph, cluster.id)
            if pillar is not None and pillar.slug in frozen:
                logger.debug("Skipping cluster %s: pillar %s is frozen", cluster.id, pillar.slug)
                continue

        current = graph.counts.byCluster.get(cluster.id, 0)
        gap = max(0, cluster.target_quota - current)
        node = graph.find_node(cluster.id, "cluster")
        score = cluster.priority * gap * _entity_multiplier(cluster, (node.title or "") if node else "", direction)

        if gap > 0 and score > 0:
            scores.append(ClusterScore(cluster.id, score, current, cluster.target_quota))

    scores.sort(key=lambda s: s.score, reverse=True)
    return scores


def _articles_in(graph: Graph, cluster_id: str) -> List[str]:
    return [n.slug for n in graph.children(cluster_id, "article")]


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def plan_next(graph: Graph, direction: Direction, n: int) -> PlannerResponse:
    """Pick up to ``n`` articles to generate next.

    Candidates whose cluster, section or pillar node is missing from the
    graph are skipped, so fewer than ``n`` picks may be returned.
    """
    policy = direction.interlink_policy
    scored = score_clusters(graph, direction)
    picks: List[PlannerPick] = []

    for entry in scored[:max(0, min(n, len(scored)))]:
        cluster_node = graph.find_node(entry.cluster_id, "cluster")
        if cluster_node is None:
            logger.warning("Cluster %s not present in graph, skipping", entry.cluster_id)
            continue
        section_node, pillar_node = _placement(graph, cluster_node)
        if section_node is None or pillar_node is None:
            logger.warning("Cluster %s has no section/pillar in graph, skipping", entry.cluster_id)
            continue

        siblings = _articles_in(graph, entry.cluster_id)[: policy.max_internal - 1]

        crosslinks: List[str] = []
        if policy.prefer_siblings:
            related = [
                c for c in direction.clusters
                if c.id != entry.cluster_id and c.priority > CROSSLINK_MIN_PRIORITY
            ][:CROSSLINK_CLUSTERS]
            for related_cluster in related:
                related_articles = _articles_in(graph, related_cluster.id)
                if related_articles:
                    crosslinks.append(related_articles[0])

        picks.append(PlannerPick(
            slug=f"{entry.cluster_id}-comparison-{entry.current + 1}",
            pillar=pillar_node.slug,
            section=section_node.slug,
            cluster=entry.cluster_id,
            reason=(
                f"High-priority cluster (score: {entry.score:.1f}) with "
                f"{entry.current}/{entry.target} articles. Gap of "
                f"{entry.target - entry.current} articles remaining."
            ),
            link_targets=LinkTargets(
                parent=cluster_node.slug if policy.include_parent else None,
                siblings=siblings,
                crosslinks=crosslinks,
            ),
        ))

    logger.info("Planned %d pick(s) from %d scored cluster(s)", len(picks), len(scored))
    return PlannerResponse(publish_count=n, picks=picks)


def next_batch_size(n: Optional[int], direction: Direction) -> int:
    """Clamp a requested batch to ``[1, publish_per_day]`` (default 3)."""
    requested = DEFAULT_NEXT_COUNT if n is None else n
    return max(1, min(requested, direction.publish_per_day))


def peek_batch_size(n: Optional[int]) -> int:
    """Clamp a preview request to ``[1, 20]`` (default 10)."""
    requested = DEFAULT_PEEK_COUNT if n is None else n
    return max(1, min(requested, MAX_PEEK_COUNT))


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _print_plan(plan: PlannerResponse, as_json: bool) -> None:
    if as_json:
        print(json.dumps(plan.model_dump(), indent=2))
        return

    print(f"\n{'=' * 70}")
    print(f"  PLANNER PICKS ({len(plan.picks)} of {plan.publish_count} requested)")
    print(f"{'=' * 70}\n")
    if not plan.picks:
        print("  No clusters with open quota.\n")
        return
    for i, pick in enumerate(plan.picks, 1):
        print(f"  {i}. {pick.slug}")
        print(f"     {pick.pillar} / {pick.section} / {pick.cluster}")
        print(f"     {pick.reason}")
        links = pick.link_targets
        if links.parent:
            print(f"     parent:     {links.parent}")
        if links.siblings:
            print(f"     siblings:   {', '.join(links.siblings)}")
        if links.crosslinks:
            print(f"     crosslinks: {', '.join(links.crosslinks)}")
        print()


def _load_inputs():
    from torquepress.direction import read_direction
    from torquepress.graph import build_graph
    from torquepress.taxonomy import get_taxonomy

    return build_graph(get_taxonomy()), read_direction()


def _cli_next(args: argparse.Namespace) -> None:
    graph, direction = _load_inputs()
    plan = plan_next(graph, direction, next_batch_size(args.n, direction))
    _print_plan(plan, args.json)


def _cli_peek(args: argparse.Namespace) -> None:
    graph, direction = _load_inputs()
    plan = plan_next(graph, direction, peek_batch_size(args.n))
    _print_plan(plan, args.json)


def _cli_scores(args: argparse.Namespace) -> None:
    graph, direction = _load_inputs()
    scores = score_clusters(graph, direction)
    if not scores:
        print("\nNo clusters with open quota.\n")
        return
    print(f"\n  {'Cluster':<30} {'Score':>8} {'Current':>8} {'Target':>8}")
    print(f"  {'-' * 30} {'-' * 8} {'-' * 8} {'-' * 8}")
    for s in scores:
        print(f"  {s.cluster_id:<30} {s.score:>8.1f} {s.current:>8} {s.target:>8}")
    print()


def build_parser(parser: Optional[argparse.ArgumentParser] = None) -> argparse.ArgumentParser:
    parser = parser or argparse.ArgumentParser(
        prog="planner",
        description="Pick the next articles to generate from quota gaps.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    sub_next = subparsers.add_parser("next", help="Picks for today's batch (capped by publish_per_day)")
    sub_next.add_argument("--n", type=int, default=None, help="Number of picks (default 3)")
    sub_next.add_argument("--json", action="store_true", help="Output JSON")
    sub_next.set_defaults(func=_cli_next)

    sub_peek = subparsers.add_parser("peek", help="Preview up to 20 upcoming picks")
    sub_peek.add_argument("--n", type=int, default=None, help="Number of picks (default 10)")
    sub_peek.add_argument("--json", action="store_true", help="Output JSON")
    sub_peek.set_defaults(func=_cli_peek)

    sub_scores = subparsers.add_parser("scores", help="Show cluster gap scores")
    sub_scores.set_defaults(func=_cli_scores)

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
