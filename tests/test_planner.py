"""Test cluster scoring and next-article planning."""
from __future__ import annotations

import json

import pytest

from torquepress.contracts import Direction
from torquepress.graph import build_graph
from torquepress.planner import (
    BOOST_FACTOR,
    DEPRIORITIZE_FACTOR,
    main,
    next_batch_size,
    peek_batch_size,
    plan_next,
    score_clusters,
)
from torquepress.taxonomy import Taxonomy


@pytest.fixture
def graph(taxonomy):
    return build_graph(taxonomy)


@pytest.fixture
def direction(direction_data):
    return Direction.model_validate(direction_data)


# ===========================================================================
# SCORING
# ===========================================================================


class TestScoreClusters:

    @pytest.mark.unit
    def test_priority_times_gap_sorted(self, graph, direction):
        scores = score_clusters(graph, direction)
        assert [s.cluster_id for s in scores] == ["compact-suvs", "midsize-suvs", "family-sedans"]
        by_id = {s.cluster_id: s for s in scores}
        assert by_id["compact-suvs"].score == pytest.approx(4.0)
        assert by_id["midsize-suvs"].score == pytest.approx(3.6)
        assert by_id["midsize-suvs"].current == 2
        assert by_id["family-sedans"].score == pytest.approx(1.0)

    @pytest.mark.unit
    def test_full_cluster_skipped(self, graph, direction_data):
        direction_data["clusters"][0]["target_quota"] = 2
        scores = score_clusters(graph, Direction.model_validate(direction_data))
        assert "midsize-suvs" not in [s.cluster_id for s in scores]

    @pytest.mark.unit
    def test_zero_priority_skipped(self, graph, direction_data):
        direction_data["clusters"][1]["priority"] = 0
        scores = score_clusters(graph, Direction.model_validate(direction_data))
        assert "compact-suvs" not in [s.cluster_id for s in scores]

    @pytest.mark.unit
    def test_frozen_pillar_skipped(self, graph, direction_data):
        direction_data["pillars"][0]["freeze"] = True
        scores = score_clusters(graph, Direction.model_validate(direction_data))
        assert [s.cluster_id for s in scores] == ["family-sedans"]

    @pytest.mark.unit
    def test_boost_entity_multiplies(self, graph, direction_data):
        direction_data["boost_entities"] = ["midsize"]
        scores = {s.cluster_id: s.score for s in score_clusters(graph, Direction.model_validate(direction_data))}
        assert scores["midsize-suvs"] == pytest.approx(3.6 * BOOST_FACTOR)

    @pytest.mark.unit
    def test_deprioritize_pattern_multiplies(self, graph, direction_data):
        direction_data["deprioritize_patterns"] = ["compact"]
        scores = {s.cluster_id: s.score for s in score_clusters(graph, Direction.model_validate(direction_data))}
        assert scores["compact-suvs"] == pytest.approx(4.0 * DEPRIORITIZE_FACTOR)


# ===========================================================================
# PLANNING
# ===========================================================================


class TestPlanNext:

    @pytest.mark.unit
    def test_top_picks(self, graph, direction):
        plan = plan_next(graph, direction, 2)
        assert plan.publish_count == 2
        assert [p.cluster for p in plan.picks] == ["compact-suvs", "midsize-suvs"]

    @pytest.mark.unit
    def test_pick_fields(self, graph, direction):
        pick = plan_next(graph, direction, 2).picks[1]
        assert pick.slug == "midsize-suvs-comparison-3"
        assert pick.pillar == "suvs"
        assert pick.section == "comparisons"
        assert "2/5 articles" in pick.reason
        assert "Gap of 3" in pick.reason

    @pytest.mark.unit
    def test_link_targets(self, graph, direction):
        first, second = plan_next(graph, direction, 2).picks
        assert first.link_targets.parent == "compact-suvs"
        assert first.link_targets.siblings == []
        assert first.link_targets.crosslinks == ["rav4-vs-crv"]
        assert second.link_targets.siblings == ["rav4-vs-crv", "highlander-vs-pilot"]
        assert second.link_targets.crosslinks == []

    @pytest.mark.unit
    def test_parent_omitted_when_policy_says_so(self, graph, direction_data):
        direction_data["interlink_policy"]["include_parent"] = False
        plan = plan_next(graph, Direction.model_validate(direction_data), 1)
        assert plan.picks[0].link_targets.parent is None

    @pytest.mark.unit
    def test_siblings_capped_by_max_internal(self, graph, direction_data):
        direction_data["interlink_policy"]["max_internal"] = 3
        for cluster in direction_data["clusters"]:
            cluster["priority"] = 0 if cluster["id"] != "midsize-suvs" else 1
        plan = plan_next(graph, Direction.model_validate(direction_data), 1)
        assert len(plan.picks[0].link_targets.siblings) <= 2

    @pytest.mark.unit
    def test_n_larger_than_candidates(self, graph, direction):
        plan = plan_next(graph, direction, 10)
        assert len(plan.picks) == 3
        assert plan.publish_count == 10

    @pytest.mark.unit
    def test_cluster_missing_from_graph_skipped(self, graph, direction_data):
        direction_data["clusters"].append({"id": "ghost", "priority": 5, "target_quota": 10})
        plan = plan_next(graph, Direction.model_validate(direction_data), 4)
        assert "ghost" not in [p.cluster for p in plan.picks]
        assert len(plan.picks) == 3


class TestSharedSectionSlugs:

    @pytest.fixture
    def shared_graph(self, shared_section_taxonomy_data):
        return build_graph(Taxonomy.from_document(shared_section_taxonomy_data))

    @pytest.mark.unit
    def test_pick_reports_owning_pillar(self, shared_graph, direction_data):
        for cluster in direction_data["clusters"]:
            cluster["priority"] = 1 if cluster["id"] == "family-sedans" else 0
        pick = plan_next(shared_graph, Direction.model_validate(direction_data), 1).picks[0]
        assert pick.cluster == "family-sedans"
        assert pick.pillar == "sedans"
        assert pick.section == "comparisons"

    @pytest.mark.unit
    def test_freeze_applies_to_owning_pillar(self, shared_graph, direction_data):
        direction_data["pillars"][1]["freeze"] = True
        scores = score_clusters(shared_graph, Direction.model_validate(direction_data))
        assert [s.cluster_id for s in scores] == ["compact-suvs", "midsize-suvs"]

    @pytest.mark.unit
    def test_other_pillar_freeze_leaves_cluster(self, shared_graph, direction_data):
        direction_data["pillars"][0]["freeze"] = True
        scores = score_clusters(shared_graph, Direction.model_validate(direction_data))
        assert [s.cluster_id for s in scores] == ["family-sedans"]


class TestBatchSizes:

    @pytest.mark.unit
    def test_next_defaults_to_three(self, direction):
        assert next_batch_size(None, direction) == 3

    @pytest.mark.unit
    def test_next_clamped_to_publish_per_day(self, direction):
        assert next_batch_size(50, direction) == direction.publish_per_day
        assert next_batch_size(0, direction) == 1

    @pytest.mark.unit
    def test_peek_clamped(self):
        assert peek_batch_size(None) == 10
        assert peek_batch_size(100) == 20
        assert peek_batch_size(-3) == 1


class TestPlannerCLI:

    @pytest.mark.unit
    def test_next_json(self, taxonomy_file, direction_file, capsys):
        main(["next", "--n", "2", "--json"])
        data = json.loads(capsys.readouterr().out)
        assert [p["cluster"] for p in data["picks"]] == ["compact-suvs", "midsize-suvs"]

    @pytest.mark.unit
    def test_no_command_prints_help(self, capsys):
        main([])
        assert "usage" in capsys.readouterr().out.lower()
