"""Parse a GeoJSON FeatureCollection back into AOI features.

Inverse of exporters.geojson: [lng, lat] is transposed back to (lat, lng)
and the closing vertex of each ring is dropped. Exported circles arrive as
polygons and stay polygons. Areas are recomputed from the geometry.
"""

from __future__ import annotations

import json

from loguru import logger

from aoi_engine.feature import (
    FEATURE_COLORS,
    AOIFeature,
    FeatureKind,
    PointGeometry,
    PolygonGeometry,
    new_feature_id,
    utc_now_iso,
)
from aoi_engine.geometry import feature_area


def parse_feature_collection(
    source: str | bytes | dict,
    first_sequence: int = 1,
) -> list[AOIFeature]:
    """Parse GeoJSON text (or an already decoded dict) into features.

    Args:
        source: FeatureCollection or single Feature.
        first_sequence: Number used in the default name (``AOI <n>``) of the
            first unnamed feature; pass the store's next sequence number.

    Returns:
        Parsed features. Empty on parse errors; invalid features are skipped.
    """
    if isinstance(source, dict):
        data = source
    else:
        try:
            data = json.loads(source)
        except (json.JSONDecodeError, TypeError, UnicodeDecodeError) as e:
            logger.warning(f"GeoJSON import failed to parse: {e}")
            return []
    if not isinstance(data, dict):
        return []

    if data.get("type") == "FeatureCollection":
        raw_features = data.get("features") or []
    elif data.get("type") == "Feature":
        raw_features = [data]
    else:
        return []

    features: list[AOIFeature] = []
    for idx, raw in enumerate(raw_features):
        try:
            feature = _parse_feature(raw, first_sequence + len(features))
        except (ValueError, TypeError, KeyError, IndexError) as e:
            logger.warning(f"Skipping GeoJSON feature #{idx}: {e}")
            continue
        if feature is not None:
            features.append(feature)
    return features


def _parse_feature(raw: dict, sequence: int) -> AOIFeature | None:
    """Parse a single GeoJSON Feature dict into an AOIFeature."""
    if not isinstance(raw, dict):
        return None
    geometry = raw.get("geometry")
    if not isinstance(geometry, dict):
        return None

    properties = raw.get("properties") or {}
    if not isinstance(properties, dict):
        properties = {}

    geom_type = geometry.get("type")
    coordinates = geometry.get("coordinates")
    if geom_type == "Point":
        lng, lat = coordinates[:2]
        kind = FeatureKind.MARKER
        geom = PointGeometry((lat, lng))
    elif geom_type == "Polygon":
        ring = [(pt[1], pt[0]) for pt in coordinates[0]]
        if len(ring) > 1 and ring[0] == ring[-1]:
            ring = ring[:-1]
        kind = FeatureKind.RECTANGLE if properties.get("kind") == "rectangle" else FeatureKind.POLYGON
        geom = PolygonGeometry(tuple(ring))
    else:
        return None

    feature_id = properties.get("id") or raw.get("id") or new_feature_id()
    return AOIFeature(
        id=str(feature_id),
        name=str(properties.get("name") or f"AOI {sequence}"),
        kind=kind,
        geometry=geom,
        color=FEATURE_COLORS[kind],
        created_at=properties.get("createdAt") or utc_now_iso(),
        area_sq_m=feature_area(kind, geom),
    )
