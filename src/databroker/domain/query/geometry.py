"""GeoJSON helpers on a spherical earth model.

Distances are great-circle (haversine) metres; containment uses ray casting on
longitude/latitude, which is adequate for polygons that do not cross the
antimeridian.
"""

from __future__ import annotations

import json
import math
from typing import Any, Final

EARTH_RADIUS_METRES: Final[float] = 6_371_008.8

# nesting depth of the "coordinates" member per geometry type
_DEPTH: Final[dict[str, int]] = {
    "Point": 0,
    "MultiPoint": 1,
    "LineString": 1,
    "MultiLineString": 2,
    "Polygon": 2,
    "MultiPolygon": 3,
}

GEOMETRY_TYPES: Final[frozenset[str]] = frozenset(_DEPTH)
AREA_TYPES: Final[frozenset[str]] = frozenset({"Polygon", "MultiPolygon"})

type Position = tuple[float, float]


class GeometryError(ValueError):
    """Raised for values that are not usable GeoJSON geometries."""


def load(value: object, *, types: frozenset[str] = GEOMETRY_TYPES) -> dict[str, Any]:
    """Return a validated GeoJSON geometry from a mapping or its JSON text."""

    if isinstance(value, (str, bytes)):
        try:
            value = json.loads(value)
        except ValueError as exc:
            raise GeometryError("geometry is not valid JSON") from exc
    if not isinstance(value, dict):
        raise GeometryError("geometry must be an object")
    geometry: dict[str, Any] = value
    kind = geometry.get("type")
    if kind not in types:
        allowed = ", ".join(sorted(types))
        raise GeometryError(f"geometry type must be one of {allowed}")
    positions(geometry)
    return geometry


def positions(geometry: dict[str, Any]) -> list[Position]:
    """Flatten every position of a geometry."""

    depth = _DEPTH.get(str(geometry.get("type")))
    if depth is None:
        raise GeometryError(f"unsupported geometry type {geometry.get('type')!r}")
    return _flatten(geometry.get("coordinates"), depth)


def _flatten(coordinates: object, depth: int) -> list[Position]:
    if depth == 0:
        return [_position(coordinates)]
    if not isinstance(coordinates, list) or not coordinates:
        raise GeometryError("coordinates must be a non-empty array")
    flattened: list[Position] = []
    for item in coordinates:
        flattened.extend(_flatten(item, depth - 1))
    return flattened


def _position(value: object) -> Position:
    if not isinstance(value, list) or len(value) < 2:
        raise GeometryError("a position needs a longitude and a latitude")
    lon, lat = value[0], value[1]
    for number in (lon, lat):
        if isinstance(number, bool) or not isinstance(number, (int, float)):
            raise GeometryError("positions must be numeric")
        if not math.isfinite(number):
            raise GeometryError("positions must be finite")
    if not -180.0 <= lon <= 180.0 or not -90.0 <= lat <= 90.0:
        raise GeometryError("position is outside longitude/latitude bounds")
    return float(lon), float(lat)


def haversine(a: Position, b: Position) -> float:
    lon1, lat1 = map(math.radians, a)
    lon2, lat2 = map(math.radians, b)
    h = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
    )
    return 2 * EARTH_RADIUS_METRES * math.asin(min(1.0, math.sqrt(h)))


def distance(a: dict[str, Any], b: dict[str, Any]) -> float:
    """Shortest great-circle distance between any two positions of ``a`` and ``b``."""

    return min(haversine(p, q) for p in positions(a) for q in positions(b))


def _polygons(area: dict[str, Any]) -> list[list[list[Position]]]:
    coordinates = area["coordinates"]
    polygons = coordinates if area["type"] == "MultiPolygon" else [coordinates]
    return [[[_position(point) for point in ring] for ring in polygon] for polygon in polygons]


def _in_ring(point: Position, ring: list[Position]) -> bool:
    x, y = point
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def within(geometry: dict[str, Any], area: dict[str, Any]) -> bool:
    """Whether every position of ``geometry`` lies inside ``area`` (outside its holes)."""

    polygons = _polygons(area)

    def contained(point: Position) -> bool:
        for outer, *holes in polygons:
            if _in_ring(point, outer) and not any(_in_ring(point, hole) for hole in holes):
                return True
        return False

    return all(contained(point) for point in positions(geometry))
