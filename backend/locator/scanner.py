"""scanner.py
~~~~~~~~~~~~~
Passive scan of the map frames currently attached to the page.

Frames are visited in document order. Within a frame the packed ``pb``
parameter (structured matcher) is preferred over ``location`` (named
matcher). The first frame that yields a pair wins; there is no scoring
across frames. The scan reads the live tree and never writes anywhere; the
caller decides whether to promote the result.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Callable
from urllib.parse import parse_qs, urlsplit

from bs4 import Tag

from .matchers import match_named_parameter, match_structured_parameter
from .models import Coordinate, LatLng, Source, utcnow
from .page import PageDocument

LOG = logging.getLogger("scanner")

MAP_HOST_MARKER = "google.com/maps"
MAP_FRAME_SELECTOR = f'iframe[src*="{MAP_HOST_MARKER}"]'

# (query parameter, matcher, source, provenance label) in priority order
FRAME_MATCHERS: tuple[tuple[str, Callable[[str], LatLng | None], Source, str], ...] = (
    ("pb", match_structured_parameter, Source.PASSIVE_PRIMARY, "iframe-pb"),
    ("location", match_named_parameter, Source.PASSIVE_SECONDARY, "iframe-location"),
)


def is_map_frame(node: Tag) -> bool:
    return node.name == "iframe" and MAP_HOST_MARKER in (node.get("src") or "")


def is_map_bearing(node: Tag) -> bool:
    """True when *node* is, or contains, an embedded map frame."""
    if not isinstance(node, Tag):
        return False
    return is_map_frame(node) or node.select_one(MAP_FRAME_SELECTOR) is not None


def _frame_params(src: str) -> dict[str, list[str]]:
    # "//host/path" sources count as https
    parts = urlsplit(src, scheme="https")
    if not parts.netloc:
        raise ValueError(f"not an absolute URL: {src!r}")
    return parse_qs(parts.query, keep_blank_values=True)


def extract_from_frame(
    frame: Tag, *, clock: Callable[[], dt.datetime] = utcnow
) -> Coordinate | None:
    """Apply the frame matchers to one iframe ``src``."""
    src = frame.get("src") or ""
    try:
        params = _frame_params(src)
    except ValueError as exc:
        LOG.debug("[scan] skipping frame: %s", exc)
        return None

    for name, matcher, source, label in FRAME_MATCHERS:
        values = params.get(name)
        if not values:
            continue
        pair = matcher(values[0])
        if pair is not None:
            return Coordinate.from_pair(pair, source, label=label, observed_at=clock())
    return None


def scan_embedded_sources(
    document: PageDocument, *, clock: Callable[[], dt.datetime] = utcnow
) -> Coordinate | None:
    """
    Return the first coordinate found in the page's map frames.

    Args:
        document:  Live page model.
        clock:     Timestamp source for the produced reading.

    Returns:
        A :class:`Coordinate` tagged ``PASSIVE_PRIMARY`` or
        ``PASSIVE_SECONDARY``, or *None* when no frame yields one.
    """
    for frame in document.select(MAP_FRAME_SELECTOR):
        coord = extract_from_frame(frame, clock=clock)
        if coord is not None:
            return coord
    return None


__all__ = [
    "MAP_FRAME_SELECTOR",
    "extract_from_frame",
    "is_map_bearing",
    "is_map_frame",
    "scan_embedded_sources",
]
