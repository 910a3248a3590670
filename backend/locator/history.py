"""history.py
~~~~~~~~~~~~~
Rolling list of locations the overlay has shown.

* Newest first, capped at ``MAX_HISTORY`` entries.
* Adding a location drops any older entry at the same lat/lng.
* Stored as a small JSON file under ``PERSIST_DIR``; a missing or corrupt
  file reads as an empty history.

Storage:
    - Default: local_data/location_history.json
"""

from __future__ import annotations

import datetime as dt
import json
import logging
from pathlib import Path
from typing import Any

from .config import MAX_HISTORY, PERSIST_DIR
from .models import Coordinate, utcnow

LOG = logging.getLogger("history")


# ── Persistence Directory ─────────────────────────────────────────────────
def _determine_dir() -> Path:
    base = PERSIST_DIR
    try:
        base.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOG.warning("[history] cannot create %s: %s", base, exc)
    return base


DIR = _determine_dir()
FILE = DIR / "location_history.json"


# ── Storage ───────────────────────────────────────────────────────────────
def _load_entries() -> list[dict[str, Any]]:
    if not FILE.exists():
        return []

    try:
        data = json.loads(FILE.read_text())
        return list(data.get("entries", []))
    except Exception as exc:  # noqa: BLE001 – corrupted file?
        LOG.warning("[history] Failed to load history: %s", exc)
        return []


def _save_entries(entries: list[dict[str, Any]]) -> None:
    try:
        data = {"entries": entries, "updated_at": utcnow().isoformat()}
        FILE.write_text(json.dumps(data, indent=2))
    except Exception as exc:  # noqa: BLE001
        LOG.error("[history] Failed to save history: %s", exc)


def add_location(coord: Coordinate, ts: dt.datetime | None = None) -> list[dict[str, Any]]:
    """
    Record *coord* at the top of the history.

    Args:
        coord:  Location just shown.
        ts:     When it was shown (defaults to now, UTC).

    Returns:
        The updated history, newest first.
    """
    entry = {**coord.to_dict(), "added_at": (ts or utcnow()).isoformat()}

    entries = [
        e for e in _load_entries()
        if (e.get("lat"), e.get("lng")) != (coord.lat, coord.lng)
    ]
    entries.insert(0, entry)
    entries = entries[:MAX_HISTORY]
    _save_entries(entries)

    LOG.debug("[history] added %s,%s (total: %d)", coord.lat, coord.lng, len(entries))
    return entries


def get_history(limit: int | None = None) -> list[dict[str, Any]]:
    """Stored entries, newest first, optionally truncated to *limit*."""
    entries = _load_entries()
    if limit is not None:
        entries = entries[:limit]
    return entries


def clear_history() -> None:
    _save_entries([])
    LOG.info("[history] cleared")


__all__ = ["add_location", "clear_history", "get_history"]
