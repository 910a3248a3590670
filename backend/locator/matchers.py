"""matchers.py
~~~~~~~~~~~~~
Pure functions that pull one ``(lat, lng)`` pair out of a string.

Priority order when several could apply to the same input
---------------------------------------------------------
1. **Structured parameter** – ``!3d<lat>!4d<lng>`` inside the packed ``pb``
   query value of an embedded map widget. Highest confidence.
2. **Named parameter** – ``"lat,lng"`` under a named query parameter such
   as ``location``.
3. **Free text** – the first ``decimal, decimal`` substring of arbitrary
   text. Last resort; highest false-positive risk, so the leftmost match is
   the *only* candidate and it must pass range validation.

No matcher raises: every parse or range failure becomes ``None``.
"""

from __future__ import annotations

import logging
import re

from .models import ExtractionError, LatLng, ParseFailure, validate_pair

LOG = logging.getLogger("matchers")

STRUCTURED_RE = re.compile(r"!3d(-?[\d.]+)!4d(-?[\d.]+)")
FREE_TEXT_RE = re.compile(r"-?\d+\.\d+,\s*-?\d+\.\d+")


def parse_coordinates(value: str | None) -> LatLng:
    """
    Parse ``"lat,lng"`` into a validated pair.

    Raises:
        ParseFailure:   empty input, wrong arity or a non-numeric part.
        RangeViolation: pair outside valid bounds.
    """
    if not value:
        raise ParseFailure("empty coordinate string")
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 2:
        raise ParseFailure(f"expected 2 parts, got {len(parts)}: {value!r}")
    return validate_pair(parts[0], parts[1])


def match_structured_parameter(value: str | None) -> LatLng | None:
    """Matcher 1: ``!3d48.8566!4d2.3522`` → ``LatLng(48.8566, 2.3522)``."""
    if not isinstance(value, str):
        return None
    match = STRUCTURED_RE.search(value)
    if not match:
        return None
    try:
        return validate_pair(match.group(1), match.group(2))
    except ExtractionError as exc:
        LOG.debug("[structured] rejected %s: %s", match.group(0), exc)
        return None


def match_named_parameter(value: str | None) -> LatLng | None:
    """Matcher 2: ``"40.7,-74.0"`` → ``LatLng(40.7, -74.0)``."""
    if not isinstance(value, str):
        return None
    try:
        return parse_coordinates(value)
    except ExtractionError as exc:
        LOG.debug("[named] rejected %r: %s", value, exc)
        return None


def match_free_text(text: str | None) -> LatLng | None:
    """
    Matcher 3: leftmost ``decimal, decimal`` substring of *text*.

    Only the first match is considered. When it is out of range the whole
    input is rejected; later matches are never tried.
    """
    if not isinstance(text, str):
        return None
    match = FREE_TEXT_RE.search(text)
    if not match:
        return None
    try:
        return parse_coordinates(match.group(0))
    except ExtractionError as exc:
        LOG.debug("[free-text] rejected %s: %s", match.group(0), exc)
        return None


def format_coordinates(lat: float, lng: float, precision: int = 6) -> str:
    return f"{lat:.{precision}f}, {lng:.{precision}f}"


__all__ = [
    "format_coordinates",
    "match_free_text",
    "match_named_parameter",
    "match_structured_parameter",
    "parse_coordinates",
]
