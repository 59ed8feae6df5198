"""
Editorial direction document.

``content/direction.json`` tells the planner where to focus: per-pillar and
per-cluster priority and target quotas, entities to boost, patterns to
de-prioritise and the interlinking policy for new articles.

Usage:
    from torquepress.direction import read_direction, patch_direction

    direction = read_direction()
    direction = patch_direction({"publish_per_day": 5})
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from torquepress.contracts import Direction
from torquepress.errors import TorquepressError
from torquepress.persistence import CONTENT_DIR, load_json, save_json

logger = logging.getLogger("torquepress.direction")

DIRECTION_PATH = Path(os.getenv("TORQUEPRESS_DIRECTION_PATH", str(CONTENT_DIR / "direction.json")))

DEFAULT_DIRECTION: Dict[str, Any] = {
    "focus_window_days": 30,
    "publish_per_day": 3,
    "pillars": [
        {"id": "suvs", "priority": 1.0, "target_quota": 40, "freeze": False},
        {"id": "sedans", "priority": 0.6, "target_quota": 25, "freeze": False},
        {"id": "trucks", "priority": 0.8, "target_quota": 30, "freeze": False},
    ],
    "clusters": [
        {"id": "suvs.midsize", "priority": 1.2, "target_quota": 20},
        {"id": "suvs.electric", "priority": 1.0, "target_quota": 15},
    ],
    "boost_entities": ["hybrid", "awd", "towing capacity"],
    "deprioritize_patterns": ["2021 ", "old gen "],
    "interlink_policy": {
        "min_internal": 3,
        "max_internal": 7,
        "prefer_siblings": True,
        "include_parent": True,
    },
}

_REPLACEABLE_LISTS = ("pillars", "clusters", "boost_entities", "deprioritize_patterns")


class DirectionError(TorquepressError, ValueError):
    """Raised when a direction update does not validate."""


def default_direction() -> Direction:
    return Direction.model_validate(DEFAULT_DIRECTION)


def read_direction(path: Optional[Path] = None) -> Direction:
    """Read the direction document, falling back to DEFAULT_DIRECTION."""
    path = path or DIRECTION_PATH
    data = load_json(path, None)
    if data is None:
        return default_direction()
    try:
        return Direction.model_validate(data)
    except ValidationError as exc:
        logger.warning("Invalid direction document %s, using defaults: %s", path, exc)
        return default_direction()


def write_direction(direction: Direction, path: Optional[Path] = None) -> None:
    """Persist the direction document atomically."""
    path = path or DIRECTION_PATH
    save_json(path, direction.model_dump())
    logger.info("Direction written to %s", path)


def merge_direction(current: Direction, updates: Dict[str, Any]) -> Direction:
    """Shallow-merge ``updates`` over ``current`` and validate the result.

    List fields are replaced wholesale when present; ``interlink_policy`` is
    merged key by key.

    Raises:
        DirectionError: if the merged document is invalid.
    """
    if not isinstance(updates, dict):
        raise DirectionError("Direction update must be a JSON object")

    base = current.model_dump()
    merged: Dict[str, Any] = {**base, **updates}
    for key in _REPLACEABLE_LISTS:
        if updates.get(key) is None:
            merged[key] = base[key]
    policy = updates.get("interlink_policy")
    if policy is not None and not isinstance(policy, dict):
        raise DirectionError("interlink_policy must be a JSON object")
    merged["interlink_policy"] = {**base["interlink_policy"], **(policy or {})}

    try:
        return Direction.model_validate(merged)
    except ValidationError as exc:
        raise DirectionError(str(exc)) from exc


def patch_direction(updates: Dict[str, Any], path: Optional[Path] = None) -> Direction:
    """Apply a partial update to the stored direction and write it back."""
    updated = merge_direction(read_direction(path), updates)
    write_direction(updated, path)
    return updated
