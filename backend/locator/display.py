"""display.py
~~~~~~~~~~~~~
Payloads handed to the overlay that renders a coordinate.

The overlay embeds a map centred on the location; lat/lng are plain
decimal degrees and go straight into the query string.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

from .config import DEFAULT_ZOOM, MAP_TYPE
from .matchers import format_coordinates
from .models import Coordinate

EMBED_BASE_URL = "https://maps.google.com/maps"

# Google's single-letter map type codes
MAP_TYPE_CODES: dict[str, str] = {
    "roadmap": "m",
    "satellite": "k",
    "hybrid": "h",
    "terrain": "p",
}


def embed_url(coord: Coordinate, zoom: int = DEFAULT_ZOOM, map_type: str = MAP_TYPE) -> str:
    """
    Build the embeddable map URL for *coord*.

    Raises:
        ValueError: unknown *map_type*.
    """
    try:
        code = MAP_TYPE_CODES[map_type]
    except KeyError:
        raise ValueError(f"unknown map type {map_type!r}") from None
    point = f"{coord.lat},{coord.lng}"
    query = urlencode(
        {"q": point, "ll": point, "z": int(zoom), "t": code, "output": "embed"},
        safe=",",
    )
    return f"{EMBED_BASE_URL}?{query}"


def location_payload(
    coord: Coordinate | None, zoom: int = DEFAULT_ZOOM, map_type: str = MAP_TYPE
) -> dict[str, Any]:
    """JSON-ready view of *coord*; every field is *None* when unknown.

    Raises:
        ValueError: unknown *map_type*, even when *coord* is *None*.
    """
    if map_type not in MAP_TYPE_CODES:
        raise ValueError(f"unknown map type {map_type!r}")
    if coord is None:
        return {"location": None, "formatted": None, "embed_url": None}
    return {
        "location": coord.to_dict(),
        "formatted": format_coordinates(coord.lat, coord.lng),
        "embed_url": embed_url(coord, zoom, map_type),
    }


__all__ = ["embed_url", "location_payload"]
