"""Geodesic measurements and display formatting for AOI features.

Everything here is a pure function over (lat, lng) degrees. Areas use a
spherical Earth, which is fine for display-grade reporting but not for
cadastral work.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from aoi_engine.feature import (
    AOIFeature,
    CircleGeometry,
    FeatureKind,
    LatLng,
    PointGeometry,
    PolygonGeometry,
)

EARTH_RADIUS_M = 6_378_137.0
METERS_PER_DEG_LAT = 111_320.0
DEFAULT_CIRCLE_SEGMENTS = 32

# Web Mercator metres per pixel at zoom 0 on the equator.
_METERS_PER_PIXEL_Z0 = 156_543.03392
_SCALE_BAR_PX = 80


class GeometryError(ValueError):
    """Raised for input the geometry functions cannot measure."""


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned lat/lng box."""

    south: float
    west: float
    north: float
    east: float

    @property
    def center(self) -> LatLng:
        return ((self.south + self.north) / 2, (self.west + self.east) / 2)

    def to_list(self) -> list[list[float]]:
        """Leaflet-style [[south, west], [north, east]]."""
        return [[self.south, self.west], [self.north, self.east]]


def _check_finite(*values: float) -> None:
    for v in values:
        if not math.isfinite(v):
            raise GeometryError(f"Non-finite coordinate value: {v}")


def _meters_per_deg_lng(lat: float) -> float:
    return METERS_PER_DEG_LAT * math.cos(math.radians(lat))


def polygon_area(vertices: Sequence[LatLng]) -> float:
    """Geodesic area of a polygon in square metres.

    Line-integral approximation of the spherical excess: for each edge
    (wrapping last to first) accumulate
    ``Δlng * (2 + sin(lat1) + sin(lat2))`` in radians, then scale by R²/2.

    Args:
        vertices: Open ring of (lat, lng) pairs.

    Returns:
        Area in m². 0.0 for fewer than three vertices.

    Raises:
        GeometryError: If any coordinate is not finite.
    """
    pts = [(float(lat), float(lng)) for lat, lng in vertices]
    for lat, lng in pts:
        _check_finite(lat, lng)
    if len(pts) < 3:
        return 0.0

    total = 0.0
    n = len(pts)
    for i in range(n):
        lat1, lng1 = pts[i]
        lat2, lng2 = pts[(i + 1) % n]
        total += math.radians(lng2 - lng1) * (
            2 + math.sin(math.radians(lat1)) + math.sin(math.radians(lat2))
        )
    return abs(total * EARTH_RADIUS_M * EARTH_RADIUS_M / 2)


def circle_area(radius_m: float) -> float:
    """Planar circle area, π·r²."""
    radius_m = float(radius_m)
    _check_finite(radius_m)
    if radius_m < 0:
        raise GeometryError(f"Negative radius: {radius_m}")
    return math.pi * radius_m * radius_m


def circle_to_polygon(
    center: LatLng,
    radius_m: float,
    segments: int = DEFAULT_CIRCLE_SEGMENTS,
) -> list[list[float]]:
    """Approximate a circle by a closed GeoJSON ring.

    Args:
        center: Circle centre as (lat, lng).
        radius_m: Radius in metres.
        segments: Number of distinct vertices around the circle.

    Returns:
        ``segments + 1`` points in [lng, lat] order; the last repeats the first.
    """
    lat_c, lng_c = float(center[0]), float(center[1])
    radius_m = float(radius_m)
    _check_finite(lat_c, lng_c, radius_m)
    if segments < 3:
        raise GeometryError(f"Need at least 3 segments, got {segments}")

    lat_step = radius_m / METERS_PER_DEG_LAT
    lng_step = radius_m / _meters_per_deg_lng(lat_c)
    ring = []
    for i in range(segments):
        theta = 2 * math.pi * i / segments
        ring.append([lng_c + lng_step * math.sin(theta), lat_c + lat_step * math.cos(theta)])
    ring.append(list(ring[0]))
    return ring


def format_area(sq_meters: float) -> str:
    """Human-readable area: m² below 1 ha, hectares below 1 km², else km²."""
    if sq_meters < 10_000:
        return f"{sq_meters:.0f} m²"
    if sq_meters < 1_000_000:
        return f"{sq_meters / 10_000:.2f} ha"
    return f"{sq_meters / 1_000_000:.2f} km²"


def format_coordinate(lat: float, lng: float) -> str:
    """Format as ``12.9000°N, 77.6000°E``."""
    lat_dir = "N" if lat >= 0 else "S"
    lng_dir = "E" if lng >= 0 else "W"
    return f"{abs(lat):.4f}°{lat_dir}, {abs(lng):.4f}°{lng_dir}"


def is_valid_coordinate(lat: float, lng: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lng <= 180


def scale_text(zoom: int, lat: float) -> str:
    """Label for the 80 px scale bar at ``zoom`` and latitude ``lat``."""
    meters_per_pixel = _METERS_PER_PIXEL_Z0 * math.cos(math.radians(lat)) / (2 ** zoom)
    meters = meters_per_pixel * _SCALE_BAR_PX
    if meters < 1000:
        return f"{round(meters)} m"
    return f"{meters / 1000:.1f} km"


def bounds_of(feature: AOIFeature) -> BoundingBox:
    """Bounding box of a feature's geometry.

    Circles use the same degree offsets as circle_to_polygon, taken at the
    four cardinal angles.
    """
    geom = feature.geometry
    if feature.kind is FeatureKind.MARKER:
        assert isinstance(geom, PointGeometry)
        lat, lng = geom.position
        return BoundingBox(south=lat, west=lng, north=lat, east=lng)
    if feature.kind is FeatureKind.CIRCLE:
        assert isinstance(geom, CircleGeometry)
        lat, lng = geom.center
        lat_off = geom.radius_m / METERS_PER_DEG_LAT
        lng_off = geom.radius_m / _meters_per_deg_lng(lat)
        return BoundingBox(
            south=lat - lat_off, west=lng - lng_off,
            north=lat + lat_off, east=lng + lng_off,
        )
    if feature.kind.is_polygonal:
        assert isinstance(geom, PolygonGeometry)
        lats = [lat for lat, _ in geom.vertices]
        lngs = [lng for _, lng in geom.vertices]
        return BoundingBox(south=min(lats), west=min(lngs), north=max(lats), east=max(lngs))
    raise GeometryError(f"Unknown feature kind: {feature.kind!r}")


def feature_area(kind: FeatureKind, geometry) -> float | None:
    """Area to record on a new feature, or None where it is undefined.

    Degenerate shapes (area 0) get None, matching markers.
    """
    if kind is FeatureKind.MARKER:
        return None
    if kind is FeatureKind.CIRCLE:
        area = circle_area(geometry.radius_m)
    elif kind.is_polygonal:
        area = polygon_area(geometry.vertices)
    else:
        raise GeometryError(f"Unknown feature kind: {kind!r}")
    return area if area > 0 else None
