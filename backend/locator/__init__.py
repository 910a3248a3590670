"""Coordinate extraction engine for the OpenGuessr overlay."""

from .engine import LocationCache, LocationEngine
from .models import Coordinate, LatLng, Source

__all__ = ["Coordinate", "LatLng", "LocationCache", "LocationEngine", "Source"]
