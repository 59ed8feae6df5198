"""Test reading, merging and patching the direction document."""
from __future__ import annotations

import json

import pytest

from torquepress.direction import (
    DEFAULT_DIRECTION,
    DirectionError,
    default_direction,
    merge_direction,
    patch_direction,
    read_direction,
    write_direction,
)


class TestReadDirection:

    @pytest.mark.unit
    def test_missing_file_uses_defaults(self):
        direction = read_direction()
        assert direction.publish_per_day == DEFAULT_DIRECTION["publish_per_day"]
        assert [p.id for p in direction.pillars] == ["suvs", "sedans", "trucks"]

    @pytest.mark.unit
    def test_reads_file(self, direction_file):
        direction = read_direction()
        assert [c.id for c in direction.clusters] == ["midsize-suvs", "compact-suvs", "family-sedans"]

    @pytest.mark.unit
    def test_invalid_file_falls_back(self, direction_file, direction_data):
        direction_data["publish_per_day"] = 99
        direction_file.write_text(json.dumps(direction_data), encoding="utf-8")
        assert read_direction() == default_direction()

    @pytest.mark.unit
    def test_undecodable_file_falls_back(self, direction_file):
        direction_file.write_bytes(b"\xff\xfe{}")
        assert read_direction() == default_direction()

    @pytest.mark.unit
    def test_explicit_path(self, tmp_path, direction_data):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps(direction_data), encoding="utf-8")
        assert read_direction(path).pillars[1].id == "sedans"


class TestMergeDirection:

    @pytest.mark.unit
    def test_scalar_update(self):
        merged = merge_direction(default_direction(), {"publish_per_day": 5})
        assert merged.publish_per_day == 5
        assert merged.focus_window_days == 30

    @pytest.mark.unit
    def test_lists_replaced_wholesale(self):
        merged = merge_direction(default_direction(), {"boost_entities": ["turbo"]})
        assert merged.boost_entities == ["turbo"]

    @pytest.mark.unit
    def test_empty_list_replaces(self):
        merged = merge_direction(default_direction(), {"deprioritize_patterns": []})
        assert merged.deprioritize_patterns == []

    @pytest.mark.unit
    def test_null_list_keeps_current(self):
        merged = merge_direction(default_direction(), {"clusters": None})
        assert len(merged.clusters) == len(DEFAULT_DIRECTION["clusters"])

    @pytest.mark.unit
    def test_interlink_policy_merged_by_key(self):
        merged = merge_direction(default_direction(), {"interlink_policy": {"max_internal": 10}})
        assert merged.interlink_policy.max_internal == 10
        assert merged.interlink_policy.min_internal == 3
        assert merged.interlink_policy.prefer_siblings is True

    @pytest.mark.unit
    @pytest.mark.parametrize("updates", [
        {"publish_per_day": 0},
        {"publish_per_day": 21},
        {"focus_window_days": 6},
        {"interlink_policy": {"max_internal": 13}},
        {"pillars": [{"id": "suvs", "priority": -1}]},
    ])
    def test_out_of_range_rejected(self, updates):
        with pytest.raises(DirectionError):
            merge_direction(default_direction(), updates)

    @pytest.mark.unit
    def test_non_object_rejected(self):
        with pytest.raises(DirectionError):
            merge_direction(default_direction(), ["publish_per_day"])

    @pytest.mark.unit
    @pytest.mark.parametrize("policy", [["max_internal", 5], "strict", 3])
    def test_non_object_policy_rejected(self, policy):
        with pytest.raises(DirectionError, match="interlink_policy"):
            merge_direction(default_direction(), {"interlink_policy": policy})

    @pytest.mark.unit
    def test_null_policy_keeps_current(self):
        merged = merge_direction(default_direction(), {"interlink_policy": None})
        assert merged.interlink_policy == default_direction().interlink_policy

    @pytest.mark.unit
    def test_direction_error_is_value_error(self):
        with pytest.raises(ValueError):
            merge_direction(default_direction(), {"publish_per_day": 0})


class TestPatchDirection:

    @pytest.mark.unit
    def test_patch_persists(self, direction_file):
        patch_direction({"publish_per_day": 7})
        stored = json.loads(direction_file.read_text(encoding="utf-8"))
        assert stored["publish_per_day"] == 7
        assert read_direction().publish_per_day == 7

    @pytest.mark.unit
    def test_failed_patch_leaves_file(self, direction_file):
        before = direction_file.read_text(encoding="utf-8")
        with pytest.raises(DirectionError):
            patch_direction({"publish_per_day": 50})
        assert direction_file.read_text(encoding="utf-8") == before

    @pytest.mark.unit
    def test_write_creates_file(self, content_dir):
        write_direction(default_direction())
        assert (content_dir / "direction.json").exists()
