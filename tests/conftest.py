"""
Shared fixtures for the Torquepress test suite.

Provides a small two-pillar taxonomy, a direction document, a QC-clean
article, temp data/content directories, and reusable aiohttp mocks so that
all tests run WITHOUT network access or the real content tree.
"""

import copy
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from torquepress import direction as direction_mod
from torquepress import indexnow as indexnow_mod
from torquepress import jobs as jobs_mod
from torquepress import links as links_mod
from torquepress import publish as publish_mod
from torquepress import qc as qc_mod
from torquepress import roadmap as roadmap_mod
from torquepress import search as search_mod
from torquepress import storage as storage_mod
from torquepress import taxonomy as taxonomy_mod
from torquepress.article_schema import parse_article
from torquepress.taxonomy import Taxonomy

BASE_URL = "https://torquepress.test"


# ---------------------------------------------------------------------------
# Isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def isolated_paths(tmp_path, monkeypatch):
    """Point every module-level path at tmp_path and drop cached singletons."""
    content_dir = tmp_path / "content"
    data_dir = tmp_path / "data"
    content_dir.mkdir()
    data_dir.mkdir()

    monkeypatch.setattr(taxonomy_mod, "TAXONOMY_PATH", content_dir / "taxonomy.json")
    monkeypatch.setattr(direction_mod, "DIRECTION_PATH", content_dir / "direction.json")
    monkeypatch.setattr(storage_mod, "ARTICLES_DIR", content_dir / "articles")
    monkeypatch.setattr(links_mod, "TREE_PATH", content_dir / "tree.json")
    monkeypatch.setattr(jobs_mod, "JOBS_DATA_DIR", data_dir / "jobs")
    monkeypatch.setattr(qc_mod, "QC_DATA_DIR", data_dir / "qc")
    monkeypatch.setattr(roadmap_mod, "ROADMAP_DATA_DIR", data_dir / "roadmap")
    monkeypatch.setattr(publish_mod, "PUBLISH_DATA_DIR", data_dir / "publish")
    monkeypatch.setattr(indexnow_mod, "INDEXNOW_DATA_DIR", data_dir / "indexnow")

    monkeypatch.setattr(taxonomy_mod, "_taxonomy", None)
    monkeypatch.setattr(jobs_mod, "_queue", None)
    monkeypatch.setattr(qc_mod, "_engine", None)
    monkeypatch.setattr(roadmap_mod, "_roadmap", None)
    monkeypatch.setattr(search_mod, "_index", None)

    for var in ("GITHUB_TOKEN", "GITHUB_OWNER", "GITHUB_REPO", "GITHUB_BRANCH",
                "INDEXNOW_API_KEY", "VERCEL_URL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("BASE_URL", BASE_URL)
    return tmp_path


@pytest.fixture
def content_dir(isolated_paths):
    return isolated_paths / "content"


@pytest.fixture
def data_dir(isolated_paths):
    return isolated_paths / "data"


# ---------------------------------------------------------------------------
# Taxonomy & direction fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def taxonomy_data():
    """Two pillars, two sections, three clusters, three articles."""
    return {
        "pillars": [
            {"id": "suvs", "slug": "suvs", "title": "SUVs",
             "description": "Crossovers and SUVs of every size", "navWeight": 1},
            {"id": "sedans", "slug": "sedans", "title": "Sedans",
             "description": "Midsize and full-size sedans", "navWeight": 2},
        ],
        "sections": [
            {"id": "suvs-comparisons", "pillarId": "suvs", "slug": "comparisons",
             "title": "SUV Comparisons", "description": "Head-to-head SUV tests", "navWeight": 1},
            {"id": "sedans-guides", "pillarId": "sedans", "slug": "guides",
             "title": "Sedan Guides", "description": "Buying guides for sedans", "navWeight": 2},
        ],
        "clusters": [
            {"id": "midsize-suvs", "pillarId": "suvs", "sectionId": "comparisons",
             "slug": "midsize-suvs", "title": "Midsize SUVs",
             "description": "Two-row and three-row midsize SUVs", "navWeight": 1,
             "tags": ["family", "hybrid"]},
            {"id": "compact-suvs", "pillarId": "suvs", "sectionId": "comparisons",
             "slug": "compact-suvs", "title": "Compact SUVs",
             "description": "Small crossovers for city driving", "navWeight": 2},
            {"id": "family-sedans", "pillarId": "sedans", "sectionId": "guides",
             "slug": "family-sedans", "title": "Family Sedans",
             "description": "Roomy sedans for daily commuting", "navWeight": 3},
        ],
        "articles": [
            {"id": "a1", "slug": "rav4-vs-crv", "title": "RAV4 vs CR-V",
             "description": "Two hybrid compact crossovers compared", "content_type": "comparison",
             "pillarId": "suvs", "sectionId": "comparisons", "clusterId": "midsize-suvs",
             "keywords": ["hybrid", "awd"]},
            {"id": "a2", "slug": "highlander-vs-pilot", "title": "Highlander vs Pilot",
             "description": "Three-row family haulers compared", "content_type": "comparison",
             "pillarId": "suvs", "sectionId": "comparisons", "clusterId": "midsize-suvs",
             "keywords": ["third row"]},
            {"id": "a3", "slug": "camry-vs-accord", "title": "Camry vs Accord",
             "description": "The default family sedan choice", "content_type": "comparison",
             "pillarId": "sedans", "sectionId": "guides", "clusterId": "family-sedans",
             "keywords": ["hybrid"]},
        ],
    }


@pytest.fixture
def shared_section_taxonomy_data(taxonomy_data):
    """Both pillars own a ``comparisons`` section; family-sedans sits under the sedans one."""
    data = copy.deepcopy(taxonomy_data)
    data["sections"].append(
        {"id": "sedans-comparisons", "pillarId": "sedans", "slug": "comparisons",
         "title": "Sedan Comparisons", "description": "Head-to-head sedan tests", "navWeight": 3},
    )
    data["clusters"][2]["sectionId"] = "comparisons"
    data["articles"][2]["sectionId"] = "comparisons"
    return data


@pytest.fixture
def taxonomy(taxonomy_data):
    return Taxonomy.from_document(taxonomy_data)


@pytest.fixture
def taxonomy_file(content_dir, taxonomy_data):
    """Write the taxonomy where get_taxonomy() looks for it."""
    path = content_dir / "taxonomy.json"
    path.write_text(json.dumps(taxonomy_data), encoding="utf-8")
    return path


@pytest.fixture
def direction_data():
    return {
        "focus_window_days": 30,
        "publish_per_day": 3,
        "pillars": [
            {"id": "suvs", "priority": 1.0, "target_quota": 20, "freeze": False},
            {"id": "sedans", "priority": 0.6, "target_quota": 10, "freeze": False},
        ],
        "clusters": [
            {"id": "midsize-suvs", "priority": 1.2, "target_quota": 5},
            {"id": "compact-suvs", "priority": 1.0, "target_quota": 4},
            {"id": "family-sedans", "priority": 0.5, "target_quota": 3},
        ],
        "boost_entities": [],
        "deprioritize_patterns": [],
        "interlink_policy": {
            "min_internal": 3,
            "max_internal": 7,
            "prefer_siblings": True,
            "include_parent": True,
        },
    }


@pytest.fixture
def direction_file(content_dir, direction_data):
    path = content_dir / "direction.json"
    path.write_text(json.dumps(direction_data), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Article fixtures
# ---------------------------------------------------------------------------

_ARTICLE = {
    "title": "Toyota RAV4 Hybrid vs Honda CR-V Hybrid: 2025 Comparison",
    "slug": "rav4-hybrid-vs-crv-hybrid",
    "description": (
        "We compare the Toyota RAV4 Hybrid and Honda CR-V Hybrid on fuel economy, "
        "cargo space, towing, safety and price to help you pick the right midsize family SUV."
    ),
    "hero": {
        "eyebrow": "Comparison",
        "headline": "RAV4 Hybrid vs CR-V Hybrid",
        "image": {"url": "https://img.torquepress.test/rav4-crv.jpg?w=1600", "alt": "RAV4 and CR-V parked side by side"},
    },
    "toc": [
        {"id": "overview", "label": "Overview"},
        {"id": "specs", "label": "Specs"},
    ],
    "blocks": [
        {
            "type": "intro",
            "html": (
                "<p>The RAV4 Hybrid and the CR-V Hybrid are the two best sellers in their class. "
                "Both are easy to live with and cheap to run. Read our "
                '<a href="/topics/suvs/comparisons/midsize-suvs">midsize SUV guide</a> '
                'and the <a href="/articles/highlander-vs-pilot">Highlander vs Pilot test</a> too.</p>'
            ),
        },
        {
            "type": "specGrid",
            "groups": [
                {"title": "Powertrain", "items": [
                    {"label": "Horsepower", "value": "219 hp"},
                    {"label": "Fuel economy", "value": "40 mpg"},
                ]},
            ],
        },
        {
            "type": "markdown",
            "md": "## Which one to buy\n\nPick the RAV4 if you want AWD as standard. Pick the CR-V for more room.",
        },
    ],
    "modules": [
        {"type": "tldr", "content": "The RAV4 wins on efficiency, the CR-V on space."},
    ],
    "publishedAt": "2025-01-15T10:00:00Z",
    "updatedAt": "2025-02-01T08:30:00Z",
    "author": {"name": "Dana Reyes"},
    "pillarId": "suvs",
    "sectionId": "comparisons",
    "clusterId": "midsize-suvs",
    "keywords": ["hybrid", "awd", "family suv"],
}


@pytest.fixture
def article_data():
    """A valid article document that passes every error-severity QC rule."""
    return copy.deepcopy(_ARTICLE)


@pytest.fixture
def article(article_data):
    return parse_article(article_data)


@pytest.fixture
def make_article(article_data):
    """Factory for variants of the sample article."""

    def _make(**overrides):
        data = copy.deepcopy(article_data)
        data.update(overrides)
        return parse_article(data)

    return _make


# ---------------------------------------------------------------------------
# HTTP mock fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_aiohttp_response():
    """Create a mock aiohttp response factory."""

    def _make(status=200, json_data=None, text="", headers=None):
        resp = AsyncMock()
        resp.status = status
        resp.json = AsyncMock(return_value=json_data if json_data is not None else {})
        resp.text = AsyncMock(return_value=text)
        resp.headers = headers or {"Content-Type": "application/json"}
        resp.__aenter__ = AsyncMock(return_value=resp)
        resp.__aexit__ = AsyncMock(return_value=False)
        return resp

    return _make


@pytest.fixture
def mock_aiohttp_session(mock_aiohttp_response):
    """Create a mock aiohttp ClientSession whose ``request`` returns a 200."""
    session = AsyncMock()
    default_resp = mock_aiohttp_response(200, {"ok": True})
    session.request = MagicMock(return_value=default_resp)
    session.closed = False
    session.close = AsyncMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return session
