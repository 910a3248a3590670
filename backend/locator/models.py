"""models.py
~~~~~~~~~~~
Value types shared by every extraction channel.

* :class:`Coordinate` is immutable and validated on construction; a new
  reading always produces a new record.
* :class:`LatLng` is the short-lived result of one matcher run.
* Validation failures are typed (:class:`ParseFailure`,
  :class:`RangeViolation`) but never escape the public matchers.
"""

from __future__ import annotations

import datetime as dt
import enum
import math
from dataclasses import dataclass
from typing import Any, NamedTuple

from dateutil import tz

UTC = tz.UTC

LAT_RANGE = (-90.0, 90.0)
LNG_RANGE = (-180.0, 180.0)


def utcnow() -> dt.datetime:
    return dt.datetime.now(UTC)


# ── Errors ────────────────────────────────────────────────────────────────
class ExtractionError(ValueError):
    """Base class for coordinate text that cannot become a Coordinate."""


class ParseFailure(ExtractionError):
    """Malformed or missing coordinate text."""


class RangeViolation(ExtractionError):
    """Numeric pair outside the valid lat/lng bounds."""


# ── Types ─────────────────────────────────────────────────────────────────
class Source(str, enum.Enum):
    """Which kind of channel produced a reading."""

    PASSIVE_PRIMARY = "passive_primary"
    PASSIVE_SECONDARY = "passive_secondary"
    NETWORK = "network"


class LatLng(NamedTuple):
    lat: float
    lng: float


def validate_pair(lat: float, lng: float) -> LatLng:
    """
    Return ``(lat, lng)`` as floats or raise.

    Raises:
        ParseFailure:   a value is not a finite number.
        RangeViolation: lat outside [-90, 90] or lng outside [-180, 180].
    """
    try:
        lat_f, lng_f = float(lat), float(lng)
    except (TypeError, ValueError) as exc:
        raise ParseFailure(f"not numeric: {lat!r}, {lng!r}") from exc

    if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
        raise ParseFailure(f"not finite: {lat_f}, {lng_f}")
    if not LAT_RANGE[0] <= lat_f <= LAT_RANGE[1]:
        raise RangeViolation(f"latitude out of range: {lat_f}")
    if not LNG_RANGE[0] <= lng_f <= LNG_RANGE[1]:
        raise RangeViolation(f"longitude out of range: {lng_f}")
    return LatLng(lat_f, lng_f)


@dataclass(frozen=True)
class Coordinate:
    """
    One accepted location reading.

    Attributes:
        lat, lng:     Decimal degrees, suitable for direct interpolation
                      into a query string.
        source:       Channel class (passive primary/secondary, network).
        observed_at:  UTC timestamp of the reading.
        label:        Provenance of the producing channel, e.g.
                      ``"iframe-pb"`` or ``"fetch"``.
    """

    lat: float
    lng: float
    source: Source
    observed_at: dt.datetime
    label: str = ""

    def __post_init__(self) -> None:
        pair = validate_pair(self.lat, self.lng)
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "lat", pair.lat)
        object.__setattr__(self, "lng", pair.lng)
        object.__setattr__(self, "source", Source(self.source))

    @classmethod
    def from_pair(
        cls,
        pair: LatLng,
        source: Source,
        *,
        label: str = "",
        observed_at: dt.datetime | None = None,
    ) -> "Coordinate":
        return cls(
            lat=pair.lat,
            lng=pair.lng,
            source=source,
            observed_at=observed_at or utcnow(),
            label=label,
        )

    def same_place(self, other: "Coordinate | None") -> bool:
        """True when *other* has identical lat/lng (source and time ignored)."""
        return other is not None and (self.lat, self.lng) == (other.lat, other.lng)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lat": self.lat,
            "lng": self.lng,
            "source": self.source.value,
            "label": self.label,
            "timestamp": self.observed_at.isoformat(),
        }


__all__ = [
    "Coordinate",
    "ExtractionError",
    "LatLng",
    "ParseFailure",
    "RangeViolation",
    "Source",
    "utcnow",
    "validate_pair",
]
