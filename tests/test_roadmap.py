"""Test the editorial roadmap board."""
from __future__ import annotations

import pytest

from torquepress.roadmap import (
    RoadmapBoard,
    RoadmapItemNotFoundError,
    VALID_STATUSES,
    can_transition,
    get_roadmap,
)


@pytest.fixture
def board():
    return RoadmapBoard()


class TestCanTransition:

    @pytest.mark.unit
    @pytest.mark.parametrize("current,new,expected", [
        ("idea", "drafting", True),
        ("drafting", "scheduled", True),
        ("in_review", "in_review", True),
        ("qc_passed", "drafting", True),
        ("scheduled", "idea", False),
        ("in_review", "idea", False),
        ("published", "drafting", False),
        ("idea", "archived", False),
    ])
    def test_rules(self, current, new, expected):
        assert can_transition(current, new) is expected


class TestRoadmapBoard:

    @pytest.mark.unit
    def test_add_item_defaults(self, board):
        item = board.add_item("  2026 RAV4 vs CR-V ", "comparison", make="Toyota", year=2026)
        assert item.title == "2026 RAV4 vs CR-V"
        assert item.status == "idea"
        assert item.priority == "medium"
        assert item.id.startswith("rm-")
        assert RoadmapBoard().get_item(item.id).make == "Toyota"

    @pytest.mark.unit
    def test_blank_title_rejected(self, board):
        with pytest.raises(ValueError):
            board.add_item("   ", "guide")

    @pytest.mark.unit
    def test_invalid_priority_rejected(self, board):
        with pytest.raises(ValueError):
            board.add_item("Title", "guide", priority="urgent")

    @pytest.mark.unit
    def test_client_id_ignored(self, board):
        item = board.add_item("Title", "guide", id="mine")
        assert item.id != "mine"

    @pytest.mark.unit
    def test_update_fields(self, board):
        item = board.add_item("Title", "guide")
        updated = board.update_item(item.id, assignee="dana", priority="high", status="drafting")
        assert (updated.assignee, updated.priority, updated.status) == ("dana", "high", "drafting")

    @pytest.mark.unit
    def test_update_cannot_touch_timestamps(self, board):
        item = board.add_item("Title", "guide")
        updated = board.update_item(item.id, created_at="1999-01-01T00:00:00Z")
        assert updated.created_at != "1999-01-01T00:00:00Z"

    @pytest.mark.unit
    def test_update_rejects_backwards_move(self, board):
        item = board.add_item("Title", "guide", status="scheduled")
        with pytest.raises(ValueError):
            board.update_item(item.id, status="in_review")
        assert board.get_item(item.id).status == "scheduled"

    @pytest.mark.unit
    def test_unknown_item(self, board):
        with pytest.raises(RoadmapItemNotFoundError):
            board.update_item("rm-missing", notes="x")

    @pytest.mark.unit
    def test_transition(self, board):
        item = board.add_item("Title", "guide")
        result = board.transition(item.id, "in_review")
        assert result == {"id": item.id, "old_status": "idea", "new_status": "in_review"}
        board.transition(item.id, "drafting")
        assert board.get_item(item.id).status == "drafting"

    @pytest.mark.unit
    def test_remove(self, board):
        item = board.add_item("Title", "guide")
        assert board.remove_item(item.id) is True
        assert board.remove_item(item.id) is False
        assert RoadmapBoard().items == []


class TestQueries:

    @pytest.fixture
    def populated(self, board):
        board.add_item("Camry long-term test", "review", make="Toyota", priority="low")
        board.add_item("RAV4 vs CR-V", "comparison", make="Toyota", priority="high")
        board.add_item("Best hybrid SUVs", "guide", make="Honda")
        return board

    @pytest.mark.unit
    def test_priority_order(self, populated):
        titles = [i.title for i in populated.list_items()]
        assert titles == ["RAV4 vs CR-V", "Best hybrid SUVs", "Camry long-term test"]

    @pytest.mark.unit
    def test_filters(self, populated):
        assert len(populated.list_items(make="toyota")) == 2
        assert [i.title for i in populated.list_items(intent="guide")] == ["Best hybrid SUVs"]
        assert [i.title for i in populated.list_items(search="crv")] == []
        assert [i.title for i in populated.list_items(search="cr-v")] == ["RAV4 vs CR-V"]

    @pytest.mark.unit
    def test_invalid_filter(self, populated):
        with pytest.raises(ValueError):
            populated.list_items(status="done")

    @pytest.mark.unit
    def test_board_columns(self, populated):
        item = populated.list_items(intent="guide")[0]
        populated.transition(item.id, "drafting")
        columns = populated.board()
        assert list(columns) == list(VALID_STATUSES)
        assert len(columns["idea"]) == 2
        assert [i.title for i in columns["drafting"]] == ["Best hybrid SUVs"]

    @pytest.mark.unit
    def test_singleton(self):
        assert get_roadmap() is get_roadmap()
