"""Polygon ring extraction/validation and great-circle distance.

Every function here is total: malformed input yields an empty ring (or an
infinite distance) instead of raising, because upstream geometry quality is
not guaranteed.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Sequence

from .models import Ring

EARTH_RADIUS_M = 6_371_000.0

_POLYGON = "polygon"
_MULTI_POLYGON = "multipolygon"

_LOGGER = logging.getLogger("placelens.geometry")


def _decode(polygon: Any) -> Any:
    if isinstance(polygon, (bytes, bytearray)):
        polygon = polygon.decode("utf-8", errors="replace")
    if isinstance(polygon, str):
        try:
            return json.loads(polygon)
        except ValueError:
            _LOGGER.debug("Undecodable polygon text dropped")
            return None
    return polygon


def _is_point(value: Any) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) >= 2
        and not isinstance(value[0], (list, tuple))
        and not isinstance(value[1], (list, tuple))
    )


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _first(value: Any) -> Any:
    if _is_sequence(value) and value:
        return value[0]
    return None


def _ring_from_simple(coordinates: Any) -> Any:
    return _first(coordinates)


def _ring_from_multi(coordinates: Any) -> Any:
    return _first(_first(coordinates))


def _ring_from_raw(coordinates: Any) -> Any:
    if not _is_sequence(coordinates) or not coordinates:
        return None
    head = coordinates[0]
    if _is_point(head):
        return coordinates
    if _is_sequence(head) and head and _is_point(head[0]):
        return head
    return None


def extract_ring(polygon: Any) -> Ring:
    """Return the working ring of a polygon in any accepted encoding.

    MultiPolygon -> first ring of the first ring-set, Polygon -> exterior
    ring, untagged coordinate array -> first ring or the array itself.
    """
    decoded = _decode(polygon)
    if decoded is None:
        return []

    if isinstance(decoded, dict):
        kind = str(decoded.get("type") or "").casefold()
        coordinates = decoded.get("coordinates")
        if kind == _MULTI_POLYGON:
            ring = _ring_from_multi(coordinates)
        elif kind == _POLYGON:
            ring = _ring_from_simple(coordinates)
        else:
            ring = _ring_from_raw(coordinates)
    else:
        ring = _ring_from_raw(decoded)

    if not _is_sequence(ring):
        return []
    return [list(point) if _is_sequence(point) else point for point in ring]


def _valid_point(point: Any) -> bool:
    if not _is_point(point):
        return False
    if any(isinstance(value, bool) or not isinstance(value, (int, float)) for value in point[:2]):
        return False
    try:
        lon, lat = float(point[0]), float(point[1])
    except OverflowError:
        return False
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return False
    return -180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0


def validate_ring(ring: Any) -> Ring:
    """Keep in-bounds numeric points and close the ring; [] if < 3 remain."""
    if not _is_sequence(ring):
        return []
    cleaned = [[float(point[0]), float(point[1])] for point in ring if _valid_point(point)]
    if len(cleaned) < 3:
        return []
    first = cleaned[0]
    last = cleaned[-1]
    if first[0] != last[0] or first[1] != last[1]:
        cleaned.append([first[0], first[1]])
    return cleaned


def normalize_polygon(polygon: Any) -> Ring:
    return validate_ring(extract_ring(polygon))


def ring_as_tuple(ring: Sequence[Sequence[float]]) -> tuple[tuple[float, float], ...]:
    return tuple((float(point[0]), float(point[1])) for point in ring)


def haversine_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two WGS84 points."""
    try:
        values = [float(lat1), float(lon1), float(lat2), float(lon2)]
    except (TypeError, ValueError, OverflowError):
        return math.inf
    if not all(math.isfinite(value) for value in values):
        return math.inf
    lat1, lon1, lat2, lon2 = values

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) * math.sin(d_phi / 2)
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) * math.sin(d_lambda / 2)
    )
    a = min(max(a, 0.0), 1.0)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c
