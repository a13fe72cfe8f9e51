"""Export AOI features to a GeoJSON FeatureCollection (RFC 7946).

Internal storage is (lat, lng); GeoJSON is [lng, lat], so every coordinate
is transposed here. Circles have no GeoJSON type and are exported as
polygons approximated by circle_to_polygon.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterable

from aoi_engine.feature import AOIFeature, FeatureKind
from aoi_engine.geometry import DEFAULT_CIRCLE_SEGMENTS, circle_to_polygon

EXPORT_FILENAME = "aoi-features.geojson"
NOTHING_TO_EXPORT = "No features to export"


@dataclass(frozen=True)
class ExportResult:
    """Outcome of an export. ``document`` is None when nothing was exported."""

    document: dict | None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.document is not None

    @property
    def feature_count(self) -> int:
        return len(self.document["features"]) if self.document else 0


def export_feature_collection(
    features: Iterable[AOIFeature],
    segments: int = DEFAULT_CIRCLE_SEGMENTS,
) -> ExportResult:
    """Snapshot features into a GeoJSON FeatureCollection dict.

    Args:
        features: Features to export, in order.
        segments: Vertices used to approximate each circle.

    Returns:
        ExportResult; not ok (with NOTHING_TO_EXPORT) for an empty list.
    """
    features = list(features)
    if not features:
        return ExportResult(document=None, message=NOTHING_TO_EXPORT)

    document = {
        "type": "FeatureCollection",
        "features": [_feature_to_geojson(f, segments) for f in features],
    }
    return ExportResult(document=document, message=f"Exported {len(features)} features")


def dumps(document: dict) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)


def _feature_to_geojson(feature: AOIFeature, segments: int) -> dict:
    """Convert one AOIFeature to a GeoJSON Feature dict."""
    return {
        "type": "Feature",
        "properties": {
            "id": feature.id,
            "name": feature.name,
            "kind": feature.kind.value,
            "areaSqMeters": feature.area_sq_m,
            "createdAt": feature.created_at,
        },
        "geometry": _geometry_to_geojson(feature, segments),
    }


def _geometry_to_geojson(feature: AOIFeature, segments: int) -> dict:
    geom = feature.geometry
    if feature.kind is FeatureKind.MARKER:
        lat, lng = geom.position
        return {"type": "Point", "coordinates": [lng, lat]}
    if feature.kind is FeatureKind.CIRCLE:
        ring = circle_to_polygon(geom.center, geom.radius_m, segments)
        return {"type": "Polygon", "coordinates": [ring]}
    if feature.kind.is_polygonal:
        ring = [[lng, lat] for lat, lng in geom.vertices]
        ring.append(list(ring[0]))
        return {"type": "Polygon", "coordinates": [ring]}
    raise ValueError(f"Unknown feature kind: {feature.kind!r}")
