"""
Editorial Roadmap
=================

Tracks article ideas from first note to publication. Items move forward
through a fixed pipeline; moving backwards is only allowed to ``drafting``
(for rework after a failed review or QC run).

    idea -> drafting -> in_review -> qc_passed -> scheduled -> published

Data is persisted to ``data/roadmap/items.json``.

Usage:
    from torquepress.roadmap import get_roadmap

    board = get_roadmap()
    item = board.add_item("2026 RAV4 vs CR-V", intent="comparison", make="Toyota")
    board.transition(item.id, "drafting")
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from torquepress.errors import NotFoundError
from torquepress.persistence import DATA_DIR, load_json, now_iso, save_json

logger = logging.getLogger("torquepress.roadmap")

ROADMAP_DATA_DIR = DATA_DIR / "roadmap"

VALID_STATUSES = ("idea", "drafting", "in_review", "qc_passed", "scheduled", "published")
VALID_PRIORITIES = ("low", "medium", "high")
REWORK_STATUS = "drafting"

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


class RoadmapItemNotFoundError(NotFoundError):
    """No roadmap item has the requested id."""


@dataclass
class RoadmapItem:
    """A planned article on the editorial roadmap."""
    title: str
    intent: str
    id: str = field(default_factory=lambda: f"rm-{uuid.uuid4().hex[:10]}")
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    locale: Optional[str] = None
    target_schema: Optional[str] = None
    priority: str = "medium"
    assignee: Optional[str] = None
    status: str = "idea"
    notes: Optional[str] = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "RoadmapItem":
        known = {f.name for f in cls.__dataclass_fields__.values()}
        return cls(**{k: v for k, v in data.items() if k in known})


def _validate_status(status: str) -> None:
    if status not in VALID_STATUSES:
        raise ValueError(f"Invalid status '{status}'. Valid: {', '.join(VALID_STATUSES)}")


def _validate_priority(priority: str) -> None:
    if priority not in VALID_PRIORITIES:
        raise ValueError(f"Invalid priority '{priority}'. Valid: {', '.join(VALID_PRIORITIES)}")


def can_transition(current: str, new: str) -> bool:
    """Forward moves, staying put, or sending an item back to drafting."""
    if current not in VALID_STATUSES or new not in VALID_STATUSES:
        return False
    if new == REWORK_STATUS and current != "published":
        return True
    return VALID_STATUSES.index(new) >= VALID_STATUSES.index(current)


class RoadmapBoard:
    """File-backed roadmap. Use ``get_roadmap()`` for the shared instance."""

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        self._data_dir = Path(data_dir) if data_dir else ROADMAP_DATA_DIR
        self._items_file = self._data_dir / "items.json"
        self._items: Optional[List[RoadmapItem]] = None

    @property
    def items(self) -> List[RoadmapItem]:
        if self._items is None:
            self._items = [RoadmapItem.from_dict(i) for i in load_json(self._items_file, [])]
        return self._items

    def _save(self) -> None:
        save_json(self._items_file, [i.to_dict() for i in self.items])

    # -- CRUD ---------------------------------------------------------------

    def add_item(self, title: str, intent: str, **kwargs: Any) -> RoadmapItem:
        """
        Add an item in ``idea`` status (unless ``status`` is given).

        Raises:
            ValueError: blank title or invalid status/priority.
        """
        if not title or not title.strip():
            raise ValueError("Roadmap item title is required")
        _validate_status(kwargs.get("status", "idea"))
        _validate_priority(kwargs.get("priority", "medium"))
        kwargs.pop("id", None)

        item = RoadmapItem(title=title.strip(), intent=intent, **kwargs)
        self.items.append(item)
        self._save()
        logger.info("Added roadmap item '%s' (%s)", item.title, item.id)
        return item

    def get_item(self, item_id: str) -> RoadmapItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise RoadmapItemNotFoundError(f"Roadmap item not found: {item_id}")

    def update_item(self, item_id: str, **kwargs: Any) -> RoadmapItem:
        """
        Update fields on an item. A ``status`` change must be a valid transition.

        Raises:
            RoadmapItemNotFoundError: unknown id.
            ValueError: invalid status, priority or transition.
        """
        item = self.get_item(item_id)
        if "priority" in kwargs:
            _validate_priority(kwargs["priority"])
        if "status" in kwargs:
            self._check_transition(item, kwargs["status"])

        for key, value in kwargs.items():
            if hasattr(item, key) and key not in ("id", "created_at", "updated_at"):
                setattr(item, key, value)
        item.updated_at = now_iso()
        self._save()
        logger.info("Updated roadmap item %s: %s", item_id, list(kwargs.keys()))
        return item

    def remove_item(self, item_id: str) -> bool:
        original_len = len(self.items)
        self._items = [i for i in self.items if i.id != item_id]
        removed = len(self._items) < original_len
        if removed:
            self._save()
            logger.info("Removed roadmap item %s", item_id)
        return removed

    # -- Status -------------------------------------------------------------

    def _check_transition(self, item: RoadmapItem, new_status: str) -> None:
        _validate_status(new_status)
        if not can_transition(item.status, new_status):
            raise ValueError(f"Cannot move '{item.title}' from {item.status} to {new_status}")

    def transition(self, item_id: str, new_status: str) -> Dict[str, Any]:
        item = self.get_item(item_id)
        old_status = item.status
        self._check_transition(item, new_status)
        item.status = new_status
        item.updated_at = now_iso()
        self._save()
        logger.info("Roadmap item %s transitioned: %s -> %s", item_id, old_status, new_status)
        return {"id": item_id, "old_status": old_status, "new_status": new_status}

    # -- Queries ------------------------------------------------------------

    def list_items(
        self,
        status: Optional[str] = None,
        intent: Optional[str] = None,
        make: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[RoadmapItem]:
        """Filtered items, high priority first, then oldest first."""
        if status:
            _validate_status(status)
        if priority:
            _validate_priority(priority)

        results = self.items
        if status:
            results = [i for i in results if i.status == status]
        if intent:
            results = [i for i in results if i.intent == intent]
        if make:
            results = [i for i in results if (i.make or "").lower() == make.lower()]
        if priority:
            results = [i for i in results if i.priority == priority]
        if search:
            term = search.lower()
            results = [i for i in results if term in i.title.lower()]
        return sorted(results, key=lambda i: (_PRIORITY_ORDER.get(i.priority, 1), i.created_at))

    def board(self) -> Dict[str, List[RoadmapItem]]:
        """Items grouped into one column per status."""
        columns: Dict[str, List[RoadmapItem]] = {s: [] for s in VALID_STATUSES}
        for item in self.list_items():
            columns[item.status].append(item)
        return columns


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_roadmap: Optional[RoadmapBoard] = None


def get_roadmap(data_dir: Optional[Path] = None) -> RoadmapBoard:
    global _roadmap
    if _roadmap is None or data_dir is not None:
        _roadmap = RoadmapBoard(data_dir=data_dir)
    return _roadmap
