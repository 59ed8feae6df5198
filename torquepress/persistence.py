"""
Shared JSON persistence helpers.

Every document Torquepress owns (direction, jobs, QC history, roadmap,
publish log, IndexNow log, articles) is a plain JSON file that is read whole,
mutated in memory and written back atomically via temp file + os.replace.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger("torquepress.persistence")

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.getenv("TORQUEPRESS_DATA_DIR", str(PROJECT_ROOT / "data")))
CONTENT_DIR = Path(os.getenv("TORQUEPRESS_CONTENT_DIR", str(PROJECT_ROOT / "content")))


def now_iso() -> str:
    """Return current UTC time in ISO 8601."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_iso(value: str) -> datetime | None:
    """Parse an ISO 8601 timestamp (``Z`` suffix allowed). None if invalid."""
    if not value or not isinstance(value, str):
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def save_json(path: Path, data: Any) -> None:
    """Write JSON atomically via temp file + os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)
            f.write("\n")
        os.replace(str(tmp), str(path))
    except Exception:
        if tmp.exists():
            tmp.unlink(missing_ok=True)
        raise


def load_json(path: Path, default: Any = None) -> Any:
    """Load JSON from path, returning default if missing or corrupt."""
    if not path.exists():
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
        logger.warning("Failed to load %s: %s", path, exc)
        return default
