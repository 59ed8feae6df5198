"""Test search indexing, scoring and the cached index."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from torquepress.search import (
    EntityRef,
    SearchDoc,
    SearchIndex,
    build_search_index,
    get_search_index,
    index_article,
    normalize_text,
    score_document,
)

NOW = datetime(2025, 7, 1, tzinfo=timezone.utc)


def _docs():
    return [
        SearchDoc(
            id="article:rav4", kind="article", url="/articles/rav4", title="RAV4 Hybrid review",
            summary="Efficient hybrid SUV", pillar=EntityRef("suvs", "SUVs"),
            updated_at="2025-06-01T00:00:00Z",
        ),
        SearchDoc(
            id="article:camry", kind="article", url="/articles/camry", title="Camry Hybrid review",
            summary="Hybrid sedan", pillar=EntityRef("sedans", "Sedans"),
            updated_at="2025-03-01T00:00:00Z", popularity_score=50,
        ),
        SearchDoc(
            id="pillar:suvs", kind="pillar", url="/topics/suvs", title="SUVs",
            summary="Crossovers", pillar=EntityRef("suvs", "SUVs"),
        ),
    ]


@pytest.fixture
def index():
    return SearchIndex(loader=_docs)


# ===========================================================================
# INDEXING
# ===========================================================================


class TestIndexing:

    @pytest.mark.unit
    def test_index_article(self, article, taxonomy):
        doc = index_article(article, taxonomy)
        assert doc.id == f"article:{article.slug}"
        assert doc.url == f"/articles/{article.slug}"
        assert doc.summary == "The RAV4 wins on efficiency, the CR-V on space."
        assert doc.stats == [
            {"label": "Horsepower", "value": "219 hp"},
            {"label": "Fuel economy", "value": "40 mpg"},
        ]
        assert doc.images == ["https://img.torquepress.test/rav4-crv.jpg?w=1600"]
        assert doc.pillar == EntityRef("suvs", "SUVs")
        assert doc.section == EntityRef("comparisons", "SUV Comparisons")
        assert doc.cluster == EntityRef("midsize-suvs", "Midsize SUVs")
        assert "<p>" not in doc.content_plain
        assert "Which one to buy" in doc.content_plain

    @pytest.mark.unit
    def test_summary_falls_back_to_description(self, make_article):
        doc = index_article(make_article(modules=None))
        assert doc.summary.startswith("We compare")
        assert doc.pillar is None

    @pytest.mark.unit
    def test_build_index(self, taxonomy, article):
        docs = build_search_index(taxonomy, [article])
        kinds = [d.kind for d in docs]
        assert kinds.count("article") == 1
        assert kinds.count("pillar") == 2
        assert kinds.count("section") == 2
        assert kinds.count("cluster") == 3
        cluster = next(d for d in docs if d.id == "cluster:compact-suvs")
        assert cluster.url == "/topics/suvs/comparisons/compact-suvs"

    @pytest.mark.unit
    def test_normalize_text(self):
        assert normalize_text("  CR-V: Hybrid!  ") == "cr v hybrid"


# ===========================================================================
# SCORING
# ===========================================================================


class TestScoring:

    @pytest.mark.unit
    def test_exact_title(self):
        doc = SearchDoc(id="x", kind="article", url="/x", title="Hybrid SUV")
        assert score_document(doc, "hybrid suv", now=NOW) == 10 + 10 + 50

    @pytest.mark.unit
    def test_field_weights(self):
        doc = SearchDoc(
            id="x", kind="article", url="/x", title="Other", summary="hybrid",
            content_plain="hybrid", keywords=["hybrid", "plug-in hybrid"],
        )
        assert score_document(doc, "hybrid", now=NOW) == 5 + 1 + 3 * 2

    @pytest.mark.unit
    def test_entity_bonus(self):
        doc = SearchDoc(id="x", kind="pillar", url="/x", title="Crossovers",
                        pillar=EntityRef("suvs", "SUVs"))
        assert score_document(doc, "suv", now=NOW) == 8

    @pytest.mark.unit
    @pytest.mark.parametrize("age_days,bonus", [(5, 2), (45, 1), (200, 0)])
    def test_freshness(self, age_days, bonus):
        updated = (NOW - timedelta(days=age_days)).strftime("%Y-%m-%dT%H:%M:%SZ")
        doc = SearchDoc(id="x", kind="article", url="/x", title="Hybrid", updated_at=updated)
        assert score_document(doc, "hybrid", now=NOW) == 10 + 50 + bonus

    @pytest.mark.unit
    def test_popularity(self):
        doc = SearchDoc(id="x", kind="article", url="/x", title="Hybrid guide", popularity_score=10)
        assert score_document(doc, "hybrid", now=NOW) == 10 + 5

    @pytest.mark.unit
    def test_blank_query(self):
        doc = SearchDoc(id="x", kind="article", url="/x", title="Hybrid")
        assert score_document(doc, "  !! ") == 0.0


# ===========================================================================
# SEARCH INDEX
# ===========================================================================


class TestSearchIndex:

    @pytest.mark.unit
    def test_relevance_order(self, index):
        response = index.search("hybrid")
        assert response["total"] == 2
        assert [r["doc"]["id"] for r in response["results"]] == ["article:camry", "article:rav4"]
        assert response["query"] == "hybrid"

    @pytest.mark.unit
    def test_sort_newest(self, index):
        response = index.search("hybrid", sort="newest")
        assert [r["doc"]["id"] for r in response["results"]] == ["article:rav4", "article:camry"]

    @pytest.mark.unit
    def test_invalid_sort(self, index):
        with pytest.raises(ValueError):
            index.search("hybrid", sort="random")

    @pytest.mark.unit
    def test_filters(self, index):
        assert [r["doc"]["id"] for r in index.search("hybrid", pillar="suvs")["results"]] == ["article:rav4"]
        assert [r["doc"]["id"] for r in index.search("suv", kinds=["pillar"])["results"]] == ["pillar:suvs"]
        assert index.search("hybrid", cluster="midsize-suvs")["total"] == 0

    @pytest.mark.unit
    def test_pagination(self, index):
        response = index.search("hybrid", page=2, limit=1)
        assert response["total"] == 2
        assert response["page"] == 2
        assert [r["doc"]["id"] for r in response["results"]] == ["article:rav4"]

    @pytest.mark.unit
    def test_empty_query(self, index):
        response = index.search("")
        assert response["results"] == []
        assert response["total"] == 0

    @pytest.mark.unit
    def test_suggest(self, index):
        response = index.suggest("review", limit=1)
        assert len(response["suggestions"]) == 1
        assert index.suggest("")["suggestions"] == []

    @pytest.mark.unit
    def test_index_cached_within_ttl(self):
        loader = MagicMock(side_effect=lambda: _docs())
        index = SearchIndex(loader=loader, ttl=60)
        index.search("hybrid")
        index.suggest("hybrid")
        assert loader.call_count == 1
        assert index.reindex() == 3
        assert loader.call_count == 2

    @pytest.mark.unit
    def test_index_rebuilt_after_ttl(self, monkeypatch):
        loader = MagicMock(side_effect=lambda: _docs())
        index = SearchIndex(loader=loader, ttl=60)
        index.search("hybrid")
        monkeypatch.setattr(index, "_built_at", index._built_at - 61)
        index.search("hybrid")
        assert loader.call_count == 2

    @pytest.mark.unit
    def test_default_loader(self, taxonomy_file, article):
        from torquepress.storage import ArticleStore

        ArticleStore().save_article(article)
        response = get_search_index().search("midsize")
        ids = [r["doc"]["id"] for r in response["results"]]
        assert "cluster:midsize-suvs" in ids
        assert f"article:{article.slug}" in ids
