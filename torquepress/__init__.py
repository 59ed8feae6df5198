"""
Torquepress Content Engine

Planning, quality control and publishing for automotive comparison articles.
Taxonomy graph + direction-driven planner + QC rule engine + publish pipeline.

Usage:
    from torquepress.taxonomy import get_taxonomy
    from torquepress.graph import build_graph
    from torquepress.direction import read_direction
    from torquepress.planner import plan_next

    graph = build_graph(get_taxonomy())
    plan = plan_next(graph, read_direction(), n=3)
"""

__version__ = "1.0.0"
