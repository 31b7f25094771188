"""
Zone geometry handling.

Zones arrive as GeoJSON text (what the map editor sends) or WKT. Both are
normalized to a compact GeoJSON geometry string for storage, and polygon
areas are estimated in acres from lon/lat coordinates.

Area uses a local equirectangular projection around the ring's mean
latitude followed by the shoelace formula. For pasture-sized polygons
(well under 100 km across) the error is a fraction of a percent.
"""

import json
import re
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

EARTH_RADIUS_M = 6_371_008.8
SQ_METERS_PER_ACRE = 4046.8564224

SUPPORTED_TYPES = ("Point", "MultiPoint", "LineString", "MultiLineString", "Polygon", "MultiPolygon")

_WKT_TYPES = {
    "POINT": "Point",
    "MULTIPOINT": "MultiPoint",
    "LINESTRING": "LineString",
    "MULTILINESTRING": "MultiLineString",
    "POLYGON": "Polygon",
    "MULTIPOLYGON": "MultiPolygon",
}
_WKT_HEADER = re.compile(
    r"^\s*(?:SRID=\d+\s*;)?\s*([A-Za-z]+)\s*(?:ZM|Z|M)?\s*(\(.*\))\s*$",
    re.DOTALL,
)
_WKT_TOKEN = re.compile(r"\(|\)|,|[^\s(),]+")


class GeometryError(ValueError):
    """Raised for geometry text that cannot be parsed or is malformed."""


# --- Parsing ---

def parse_geometry(text: str) -> Dict[str, Any]:
    """Parse GeoJSON (geometry or Feature) or WKT text into a GeoJSON geometry dict."""
    if text is None or not str(text).strip():
        raise GeometryError("Geometry is empty")
    trimmed = str(text).strip()
    if trimmed.startswith("{") or trimmed.startswith("["):
        geom = _parse_geojson(trimmed)
    else:
        geom = _parse_wkt(trimmed)
    validate_geometry(geom)
    return geom


def normalize_geometry(text: str) -> str:
    """Return compact GeoJSON text for the given GeoJSON/WKT input."""
    return dump_geometry(parse_geometry(text))


def dump_geometry(geom: Dict[str, Any]) -> str:
    return json.dumps({"type": geom["type"], "coordinates": geom["coordinates"]}, separators=(",", ":"))


def _parse_geojson(text: str) -> Dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GeometryError(f"Invalid GeoJSON: {e.msg}")
    if not isinstance(data, dict):
        raise GeometryError("GeoJSON must be an object")
    if data.get("type") == "Feature":
        data = data.get("geometry")
        if not isinstance(data, dict):
            raise GeometryError("GeoJSON Feature has no geometry")
    return {"type": data.get("type"), "coordinates": data.get("coordinates")}


def _parse_wkt(text: str) -> Dict[str, Any]:
    match = _WKT_HEADER.match(text)
    if not match:
        raise GeometryError("Unrecognized geometry text (expected GeoJSON or WKT)")
    wkt_type = match.group(1).upper()
    if wkt_type not in _WKT_TYPES:
        raise GeometryError(f"Unsupported WKT geometry type: {wkt_type}")

    tokens = _WKT_TOKEN.findall(match.group(2))
    items, pos = _parse_wkt_group(tokens, 0)
    if pos != len(tokens):
        raise GeometryError("Unexpected trailing WKT content")

    geo_type = _WKT_TYPES[wkt_type]
    if geo_type == "Point":
        if len(items) != 1:
            raise GeometryError("POINT must contain exactly one coordinate")
        coordinates = items[0]
    elif geo_type == "MultiPoint":
        # Both MULTIPOINT (1 2, 3 4) and MULTIPOINT ((1 2), (3 4)) are valid WKT
        coordinates = [p[0] if p and isinstance(p[0], list) else p for p in items]
    else:
        coordinates = items
    return {"type": geo_type, "coordinates": coordinates}


def _parse_wkt_group(tokens: List[str], pos: int) -> Tuple[list, int]:
    if pos >= len(tokens) or tokens[pos] != "(":
        raise GeometryError("Expected '(' in WKT")
    pos += 1
    items: list = []
    current: List[float] = []
    while pos < len(tokens):
        tok = tokens[pos]
        if tok == "(":
            child, pos = _parse_wkt_group(tokens, pos)
            items.append(child)
            continue
        if tok == ",":
            if current:
                items.append(current)
                current = []
            pos += 1
            continue
        if tok == ")":
            if current:
                items.append(current)
            return items, pos + 1
        try:
            current.append(float(tok))
        except ValueError:
            raise GeometryError(f"Invalid WKT number: {tok!r}")
        pos += 1
    raise GeometryError("Unbalanced parentheses in WKT")


# --- Validation ---

def validate_geometry(geom: Dict[str, Any]) -> None:
    geo_type = geom.get("type")
    coords = geom.get("coordinates")
    if geo_type not in SUPPORTED_TYPES:
        raise GeometryError(f"Unsupported geometry type: {geo_type}")
    if not isinstance(coords, list):
        raise GeometryError("Geometry coordinates must be an array")

    if geo_type == "Point":
        _check_position(coords)
    elif geo_type in ("MultiPoint", "LineString"):
        for position in coords:
            _check_position(position)
        if geo_type == "LineString" and len(coords) < 2:
            raise GeometryError("LineString needs at least 2 positions")
    elif geo_type == "MultiLineString":
        for line in coords:
            validate_geometry({"type": "LineString", "coordinates": line})
    elif geo_type == "Polygon":
        _check_polygon(coords)
    else:
        if not coords:
            raise GeometryError("MultiPolygon has no polygons")
        for polygon in coords:
            _check_polygon(polygon)


def _check_position(position: Any) -> None:
    if (
        not isinstance(position, list)
        or len(position) not in (2, 3)
        or not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in position)
    ):
        raise GeometryError(f"Invalid position: {position!r}")
    lon, lat = position[0], position[1]
    if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
        raise GeometryError(f"Position out of lon/lat range: {position!r}")


def _check_polygon(rings: Any) -> None:
    if not isinstance(rings, list) or not rings:
        raise GeometryError("Polygon has no rings")
    for ring in rings:
        if not isinstance(ring, list) or len(ring) < 4:
            raise GeometryError("Polygon rings need at least 4 positions")
        for position in ring:
            _check_position(position)
        if ring[0][:2] != ring[-1][:2]:
            raise GeometryError("Polygon rings must be closed")


# --- Area ---

def ring_area_sq_meters(ring: List[List[float]]) -> float:
    """Unsigned area of a lon/lat ring in square meters."""
    pts = np.asarray([p[:2] for p in ring], dtype=float)
    lat0 = np.radians(pts[:, 1].mean())
    x = EARTH_RADIUS_M * np.radians(pts[:, 0]) * np.cos(lat0)
    y = EARTH_RADIUS_M * np.radians(pts[:, 1])
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) / 2.0)


def polygon_area_sq_meters(rings: List[List[List[float]]]) -> float:
    outer = ring_area_sq_meters(rings[0])
    holes = sum(ring_area_sq_meters(r) for r in rings[1:])
    return max(outer - holes, 0.0)


def area_acres(geom: Dict[str, Any]) -> Optional[float]:
    """Area in acres for (multi)polygons; None for other geometry types."""
    if geom["type"] == "Polygon":
        sq_m = polygon_area_sq_meters(geom["coordinates"])
    elif geom["type"] == "MultiPolygon":
        sq_m = sum(polygon_area_sq_meters(p) for p in geom["coordinates"])
    else:
        return None
    return round(sq_m / SQ_METERS_PER_ACRE, 3)
