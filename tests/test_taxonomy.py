"""Test taxonomy loading, lookup and validation."""
from __future__ import annotations

import json

import pytest

from torquepress import taxonomy as taxonomy_mod
from torquepress.taxonomy import Taxonomy, get_taxonomy, reload_taxonomy, strip_prefix


# ===========================================================================
# HELPERS
# ===========================================================================


class TestStripPrefix:

    @pytest.mark.unit
    def test_strips_leading_prefix(self):
        assert strip_prefix("pillar-suvs", "pillar-") == "suvs"

    @pytest.mark.unit
    def test_leaves_unprefixed_value(self):
        assert strip_prefix("suvs", "pillar-") == "suvs"

    @pytest.mark.unit
    def test_none_becomes_empty(self):
        assert strip_prefix(None, "pillar-") == ""

    @pytest.mark.unit
    def test_only_first_occurrence(self):
        assert strip_prefix("cluster-cluster-x", "cluster-") == "cluster-x"


# ===========================================================================
# LOADING
# ===========================================================================


class TestLoading:
    """Taxonomy.load / from_document never raise on bad input."""

    @pytest.mark.unit
    def test_from_document_indexes_entities(self, taxonomy):
        assert set(taxonomy.pillars) == {"suvs", "sedans"}
        assert set(taxonomy.sections) == {"suvs:comparisons", "sedans:guides"}
        assert set(taxonomy.clusters) == {"midsize-suvs", "compact-suvs", "family-sedans"}
        assert len(taxonomy.articles) == 3
        assert not taxonomy.is_empty

    @pytest.mark.unit
    def test_invalid_document_gives_empty_taxonomy(self):
        bad = {"pillars": [{"id": "x"}]}
        assert Taxonomy.from_document(bad).is_empty

    @pytest.mark.unit
    @pytest.mark.parametrize("kind, index, field", [
        ("pillars", 0, "navWeight"),
        ("sections", 0, "navWeight"),
        ("clusters", 0, "navWeight"),
        ("clusters", 1, "description"),
        ("articles", 0, "description"),
        ("articles", 2, "content_type"),
    ])
    def test_missing_required_field_rejected(self, taxonomy_data, kind, index, field):
        del taxonomy_data[kind][index][field]
        assert Taxonomy.from_document(taxonomy_data).is_empty

    @pytest.mark.unit
    def test_optional_section_description(self, taxonomy_data):
        del taxonomy_data["sections"][1]["description"]
        assert Taxonomy.from_document(taxonomy_data).get_section("sedans", "guides").description is None

    @pytest.mark.unit
    def test_invalid_section_slug_rejected(self, taxonomy_data):
        taxonomy_data["sections"][0]["slug"] = "reviews"
        assert Taxonomy.from_document(taxonomy_data).is_empty

    @pytest.mark.unit
    def test_missing_file_gives_empty(self, tmp_path):
        assert Taxonomy.load(tmp_path / "nope.json").is_empty

    @pytest.mark.unit
    def test_corrupt_file_gives_empty(self, tmp_path):
        path = tmp_path / "taxonomy.json"
        path.write_text("{not json", encoding="utf-8")
        assert Taxonomy.load(path).is_empty

    @pytest.mark.unit
    def test_undecodable_file_gives_empty(self, tmp_path):
        path = tmp_path / "taxonomy.json"
        path.write_bytes(b"\xff\xfe{}")
        assert Taxonomy.load(path).is_empty

    @pytest.mark.unit
    def test_get_taxonomy_caches(self, taxonomy_file):
        first = get_taxonomy()
        assert get_taxonomy() is first
        assert len(first.pillars) == 2

    @pytest.mark.unit
    def test_reload_picks_up_changes(self, taxonomy_file, taxonomy_data):
        get_taxonomy()
        taxonomy_data["pillars"].append({
            "id": "trucks", "slug": "trucks", "title": "Trucks", "description": "Pickups", "navWeight": 3,
        })
        taxonomy_file.write_text(json.dumps(taxonomy_data), encoding="utf-8")
        assert "trucks" in reload_taxonomy().pillars

    @pytest.mark.unit
    def test_get_taxonomy_reads_patched_path(self, taxonomy_file):
        assert taxonomy_mod.TAXONOMY_PATH == taxonomy_file
        assert not get_taxonomy().is_empty


# ===========================================================================
# LOOKUP
# ===========================================================================


class TestLookup:

    @pytest.mark.unit
    def test_get_pillar(self, taxonomy):
        assert taxonomy.get_pillar("suvs").title == "SUVs"
        assert taxonomy.get_pillar("trucks") is None

    @pytest.mark.unit
    def test_get_section_is_scoped_to_pillar(self, taxonomy):
        assert taxonomy.get_section("suvs", "comparisons").title == "SUV Comparisons"
        assert taxonomy.get_section("sedans", "comparisons") is None

    @pytest.mark.unit
    def test_get_cluster(self, taxonomy):
        assert taxonomy.get_cluster("midsize-suvs").title == "Midsize SUVs"

    @pytest.mark.unit
    def test_list_pillars_sorted_by_nav_weight(self, taxonomy):
        assert [p.slug for p in taxonomy.list_pillars()] == ["suvs", "sedans"]

    @pytest.mark.unit
    def test_list_sections_filtered(self, taxonomy):
        assert [s.id for s in taxonomy.list_sections("sedans")] == ["sedans-guides"]

    @pytest.mark.unit
    def test_list_clusters_filtered(self, taxonomy):
        slugs = {c.slug for c in taxonomy.list_clusters("suvs", "comparisons")}
        assert slugs == {"midsize-suvs", "compact-suvs"}

    @pytest.mark.unit
    def test_list_articles_by_cluster(self, taxonomy):
        slugs = [a.slug for a in taxonomy.list_articles(cluster_id="midsize-suvs")]
        assert slugs == ["rav4-vs-crv", "highlander-vs-pilot"]

    @pytest.mark.unit
    def test_article_url_canonical(self, taxonomy):
        meta = taxonomy.get_article_meta("rav4-vs-crv")
        assert taxonomy.article_url(meta) == "/topics/suvs/comparisons/midsize-suvs/rav4-vs-crv"

    @pytest.mark.unit
    def test_article_url_falls_back(self, taxonomy):
        meta = taxonomy.get_article_meta("rav4-vs-crv").model_copy(update={"pillarId": "trucks"})
        assert taxonomy.article_url(meta) == "/articles/rav4-vs-crv"

    @pytest.mark.unit
    def test_to_dict_round_trips(self, taxonomy):
        rebuilt = Taxonomy.from_document(taxonomy.to_dict())
        assert set(rebuilt.clusters) == set(taxonomy.clusters)


# ===========================================================================
# VALIDATION
# ===========================================================================


class TestValidateArticleTaxonomy:

    @pytest.mark.unit
    def test_valid_refs(self, taxonomy):
        valid, errors = taxonomy.validate_article_taxonomy("suvs", "comparisons", "midsize-suvs")
        assert valid
        assert errors == []

    @pytest.mark.unit
    def test_prefixed_pillar_accepted(self, taxonomy):
        valid, _ = taxonomy.validate_article_taxonomy("pillar-suvs", "comparisons")
        assert valid

    @pytest.mark.unit
    def test_unknown_pillar(self, taxonomy):
        valid, errors = taxonomy.validate_article_taxonomy("trucks", "comparisons")
        assert not valid
        assert "Pillar 'trucks' does not exist" in errors

    @pytest.mark.unit
    def test_missing_pillar_and_section(self, taxonomy):
        valid, errors = taxonomy.validate_article_taxonomy(None, None)
        assert not valid
        assert errors == ["Article must have a pillarId", "Article must have a sectionId"]
