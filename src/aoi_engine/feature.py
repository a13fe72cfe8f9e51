"""AOIFeature and its geometry variants.

Internal coordinates are (lat, lng) tuples. GeoJSON export transposes them
to [lng, lat]; nothing else in the engine does.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Union

LatLng = tuple[float, float]


class FeatureKind(str, Enum):
    """Shapes the drawing tools can produce."""
    POLYGON = "polygon"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    MARKER = "marker"

    @property
    def is_polygonal(self) -> bool:
        return self in (FeatureKind.POLYGON, FeatureKind.RECTANGLE)


# Display colour per kind, fixed at creation.
FEATURE_COLORS: dict[FeatureKind, str] = {
    FeatureKind.POLYGON: "#3b82f6",
    FeatureKind.RECTANGLE: "#10b981",
    FeatureKind.CIRCLE: "#8b5cf6",
    FeatureKind.MARKER: "#ef4444",
}


def _latlng(value) -> LatLng:
    """Coerce a 2-sequence into a finite (lat, lng) tuple."""
    try:
        lat, lng = value
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        raise ValueError(f"Expected a (lat, lng) pair, got {value!r}")
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise ValueError(f"Non-finite coordinate: ({lat}, {lng})")
    return (lat, lng)


@dataclass(frozen=True)
class PolygonGeometry:
    """Open ring of (lat, lng) vertices (first vertex not repeated)."""

    vertices: tuple[LatLng, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "vertices", tuple(_latlng(v) for v in self.vertices))
        if not self.vertices:
            raise ValueError("Polygon geometry needs at least one vertex")

    def to_json(self) -> list:
        return [[lat, lng] for lat, lng in self.vertices]


@dataclass(frozen=True)
class CircleGeometry:
    """A true circle: centre plus radius in metres."""

    center: LatLng
    radius_m: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "center", _latlng(self.center))
        radius = float(self.radius_m)
        if not math.isfinite(radius) or radius <= 0:
            raise ValueError(f"Circle radius must be > 0, got {self.radius_m!r}")
        object.__setattr__(self, "radius_m", radius)

    def to_json(self) -> dict:
        return {"center": list(self.center), "radius_m": self.radius_m}


@dataclass(frozen=True)
class PointGeometry:
    """A single marker position."""

    position: LatLng

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", _latlng(self.position))

    def to_json(self) -> list:
        return list(self.position)


Geometry = Union[PolygonGeometry, CircleGeometry, PointGeometry]

_GEOMETRY_FOR_KIND: dict[FeatureKind, type] = {
    FeatureKind.POLYGON: PolygonGeometry,
    FeatureKind.RECTANGLE: PolygonGeometry,
    FeatureKind.CIRCLE: CircleGeometry,
    FeatureKind.MARKER: PointGeometry,
}


def geometry_from_json(kind: FeatureKind, data) -> Geometry:
    """Build the geometry variant for ``kind`` from its persisted JSON form.

    Raises:
        ValueError: If ``data`` does not describe a valid geometry of ``kind``.
    """
    if kind.is_polygonal:
        if not isinstance(data, list):
            raise ValueError(f"{kind.value} geometry must be a list of [lat, lng]")
        return PolygonGeometry(tuple(data))
    if kind is FeatureKind.CIRCLE:
        if not isinstance(data, dict) or "center" not in data:
            raise ValueError("circle geometry must be {center, radius_m}")
        radius = data.get("radius_m", data.get("radius"))
        return CircleGeometry(center=data["center"], radius_m=radius)
    if kind is FeatureKind.MARKER:
        return PointGeometry(data)
    raise ValueError(f"Unknown feature kind: {kind!r}")


def new_feature_id() -> str:
    return uuid.uuid4().hex


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class AOIFeature:
    """A user-drawn Area of Interest.

    Attributes:
        id: Opaque unique identifier, assigned once.
        name: Display label. The only field that changes after creation.
        kind: Which drawing tool produced the feature.
        geometry: The variant matching ``kind``.
        color: Display colour taken from FEATURE_COLORS at creation.
        created_at: ISO8601 creation timestamp.
        area_sq_m: Area computed at creation; None for markers and for
            degenerate shapes.
    """

    id: str
    name: str
    kind: FeatureKind
    geometry: Geometry
    color: str
    created_at: str = field(default_factory=utc_now_iso)
    area_sq_m: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", FeatureKind(self.kind))
        expected = _GEOMETRY_FOR_KIND[self.kind]
        if not isinstance(self.geometry, expected):
            raise ValueError(
                f"{self.kind.value} feature needs {expected.__name__}, "
                f"got {type(self.geometry).__name__}"
            )
        if self.area_sq_m is not None and not (self.area_sq_m >= 0):
            raise ValueError(f"Area must be >= 0, got {self.area_sq_m!r}")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "geometry": self.geometry.to_json(),
            "area_sq_m": self.area_sq_m,
            "color": self.color,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AOIFeature":
        if not isinstance(data, dict):
            raise ValueError(f"Feature must be an object, got {type(data).__name__}")
        try:
            kind = FeatureKind(data["kind"])
            feature_id = data["id"]
            name = data["name"]
        except KeyError as e:
            raise ValueError(f"Feature is missing field {e}")
        if not isinstance(feature_id, str) or not feature_id:
            raise ValueError("Feature id must be a non-empty string")
        area = data.get("area_sq_m")
        return cls(
            id=feature_id,
            name=str(name),
            kind=kind,
            geometry=geometry_from_json(kind, data.get("geometry")),
            color=data.get("color") or FEATURE_COLORS[kind],
            created_at=data.get("created_at") or utc_now_iso(),
            area_sq_m=float(area) if area is not None else None,
        )


@dataclass
class ViewState:
    """Layer toggles shown in the layer panel.

    Attributes:
        base_layer_visible: Whether the base tile layer is on the map.
        aoi_layer_visible: Whether the AOI feature group is on the map.
        base_layer_opacity: Base tile layer opacity, 0 to 100.
    """

    base_layer_visible: bool = True
    aoi_layer_visible: bool = True
    base_layer_opacity: int = 100

    def __post_init__(self) -> None:
        for name in ("base_layer_visible", "aoi_layer_visible"):
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise ValueError(f"{name} must be a boolean, got {value!r}")
        opacity = self.base_layer_opacity
        if isinstance(opacity, bool) or not isinstance(opacity, int):
            raise ValueError(f"Opacity must be an integer, got {opacity!r}")
        if not 0 <= opacity <= 100:
            raise ValueError(f"Opacity must be within 0..100, got {opacity}")

    def to_dict(self) -> dict:
        return {
            "base_layer_visible": self.base_layer_visible,
            "aoi_layer_visible": self.aoi_layer_visible,
            "base_layer_opacity": self.base_layer_opacity,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ViewState":
        if not isinstance(data, dict):
            raise ValueError(f"View state must be an object, got {type(data).__name__}")
        return cls(
            base_layer_visible=data.get("base_layer_visible", True),
            aoi_layer_visible=data.get("aoi_layer_visible", True),
            base_layer_opacity=data.get("base_layer_opacity", 100),
        )
