"""MapSyncController — keeps a MapSurface in step with the FeatureStore.

Two directions of synchronization:

  draw-to-model:    surface reports a finished shape -> normalize -> measure
                    -> FeatureStore.add_feature -> drawing mode exits
  model-to-surface: FeatureStore change -> full rebuild of the live layers

The controller is the only owner of layer handles. The id -> handle table
is thrown away and rebuilt on every reconciliation, so a handle can never
outlive its feature and no feature ever gets two live layers.

Drawing tool state machine:
  IDLE -> ACTIVATING(kind) -> ACTIVE(kind) -> IDLE (completed or cancelled)
A new activation always disables the current handler first; requests are
never queued.
"""

from __future__ import annotations

import html
from enum import Enum
from typing import Any

from loguru import logger

from aoi_engine.feature import (
    FEATURE_COLORS,
    AOIFeature,
    CircleGeometry,
    FeatureKind,
    Geometry,
    PointGeometry,
    PolygonGeometry,
    new_feature_id,
    utc_now_iso,
)
from aoi_engine.geometry import bounds_of, feature_area, format_area
from aoi_engine.store import FeatureStore, StoreChange
from aoi_engine.surface import MapSurface

# Style of the shape being drawn, identical for every tool.
DRAW_STYLE = {"color": "#3b82f6", "fillOpacity": 0.3}
FEATURE_FILL_OPACITY = 0.3
MARKER_ZOOM = 15
CIRCLE_ZOOM = 14


class DrawingState(str, Enum):
    IDLE = "idle"
    ACTIVATING = "activating"
    ACTIVE = "active"


# ---------------------------------------------------------------------------
# Raw geometry normalization
# ---------------------------------------------------------------------------

def _point(value) -> tuple:
    """Accept [lat, lng], (lat, lng) or {"lat": .., "lng": ..}."""
    if isinstance(value, dict):
        return (value["lat"], value.get("lng", value.get("lon")))
    return tuple(value)


def _ring(raw) -> list:
    # Leaflet's getLatLngs() nests the outer ring one level deeper
    if raw and isinstance(raw[0], (list, tuple)) and raw[0] and isinstance(raw[0][0], (list, tuple, dict)):
        raw = raw[0]
    return [_point(p) for p in raw]


def normalize_geometry(kind: FeatureKind, raw: Any) -> Geometry:
    """Turn a surface's raw shape into the canonical geometry variant.

    Raises:
        ValueError: If the raw shape cannot describe a valid ``kind`` geometry.
    """
    try:
        if kind.is_polygonal:
            return PolygonGeometry(tuple(_ring(raw)))
        if kind is FeatureKind.CIRCLE:
            radius = raw.get("radius", raw.get("radius_m"))
            return CircleGeometry(center=_point(raw["center"]), radius_m=radius)
        if kind is FeatureKind.MARKER:
            return PointGeometry(_point(raw))
    except (TypeError, KeyError, IndexError, AttributeError) as e:
        raise ValueError(f"Malformed {kind.value} geometry: {e!r}")
    raise ValueError(f"Unknown feature kind: {kind!r}")


def build_feature(kind: FeatureKind, raw: Any, name: str) -> AOIFeature:
    """Create a canonical feature from a freshly drawn shape."""
    geometry = normalize_geometry(kind, raw)
    return AOIFeature(
        id=new_feature_id(),
        name=name,
        kind=kind,
        geometry=geometry,
        color=FEATURE_COLORS[kind],
        created_at=utc_now_iso(),
        area_sq_m=feature_area(kind, geometry),
    )


def layer_style(feature: AOIFeature) -> dict:
    if feature.kind is FeatureKind.MARKER:
        return {}
    return {"color": feature.color, "fillOpacity": FEATURE_FILL_OPACITY}


def popup_html(feature: AOIFeature) -> str:
    """Popup body shown when a feature layer is clicked."""
    parts = [
        f"<h4>{html.escape(feature.name)}</h4>",
        f"<p>{feature.kind.value}</p>",
    ]
    if feature.area_sq_m:
        parts.append(f"<p>Area: {format_area(feature.area_sq_m)}</p>")
    return "<div>" + "".join(parts) + "</div>"


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class MapSyncController:
    """Sole owner of a surface's live AOI layers and drawing tool."""

    def __init__(self, store: FeatureStore, surface: MapSurface) -> None:
        self._store = store
        self._surface = surface
        self._layers: dict[str, Any] = {}
        self._active_tool: FeatureKind | None = None
        self._state = DrawingState.IDLE
        self._closed = False

        surface.on_shape_completed(self.handle_shape_completed)
        surface.on_draw_stopped(self.cancel_drawing)
        self._unsubscribe = store.subscribe(self._on_store_change)

        self.apply_view_state()
        self.rebuild()

    # --- Introspection ---

    @property
    def state(self) -> DrawingState:
        return self._state

    @property
    def active_tool(self) -> FeatureKind | None:
        return self._active_tool

    @property
    def live_layer_count(self) -> int:
        return len(self._layers)

    @property
    def bindings(self) -> dict[str, Any]:
        """Snapshot of the id -> layer handle table."""
        return dict(self._layers)

    def layer_for(self, feature_id: str) -> Any | None:
        return self._layers.get(feature_id)

    def feature_id_for(self, handle: Any) -> str | None:
        """Reverse lookup used for hit-testing a clicked layer."""
        for feature_id, h in self._layers.items():
            if h is handle:
                return feature_id
        return None

    # --- Store notifications ---

    def _on_store_change(self, change: StoreChange) -> None:
        if change is StoreChange.FEATURES:
            self.rebuild()
        elif change is StoreChange.VIEW:
            self.apply_view_state()

    # --- Model -> surface ---

    def rebuild(self) -> None:
        """Make the live layer set mirror the store exactly (full rebuild)."""
        self._surface.remove_all_layers_from_group()
        layers: dict[str, Any] = {}
        for feature in self._store.features:
            handle = self._surface.create_layer(feature.kind, feature.geometry, layer_style(feature))
            self._surface.bind_popup(handle, popup_html(feature))
            self._surface.add_layer_to_group(handle)
            layers[feature.id] = handle
        self._layers = layers
        logger.debug(f"Rebuilt {len(layers)} AOI layers")

    def apply_view_state(self) -> None:
        """Push visibility and opacity to the surface. Never rebuilds layers."""
        view = self._store.view_state
        self._surface.set_base_layer_visible(view.base_layer_visible)
        self._surface.set_feature_group_visible(view.aoi_layer_visible)
        self._surface.set_base_layer_opacity(view.base_layer_opacity)

    # --- Drawing tool ---

    def activate_tool(self, kind: FeatureKind | str) -> None:
        """Start single-shot drawing with ``kind``, preempting any active tool."""
        kind = FeatureKind(kind)
        self._disable_handler()
        self._state = DrawingState.ACTIVATING
        try:
            self._surface.enable_draw_handler(kind, dict(DRAW_STYLE))
        except Exception:
            self._state = DrawingState.IDLE
            raise
        self._active_tool = kind
        self._state = DrawingState.ACTIVE
        logger.info(f"Drawing tool active: {kind.value}")

    def deactivate_tool(self) -> None:
        if self._active_tool is not None:
            logger.info(f"Drawing tool deactivated: {self._active_tool.value}")
        self._disable_handler()

    def cancel_drawing(self) -> None:
        """Surface reported that drawing stopped without a shape."""
        self.deactivate_tool()

    def toggle_tool(self, kind: FeatureKind | str) -> FeatureKind | None:
        """Tool palette click: the active tool turns off, any other turns on."""
        kind = FeatureKind(kind)
        if self._active_tool is kind:
            self.deactivate_tool()
        else:
            self.activate_tool(kind)
        return self._active_tool

    def _disable_handler(self) -> None:
        # Always disable on the surface, even if we believe nothing is active
        self._surface.disable_active_draw_handler()
        self._active_tool = None
        self._state = DrawingState.IDLE

    # --- Surface -> model ---

    def handle_shape_completed(self, kind: FeatureKind | str, raw: Any) -> AOIFeature | None:
        """Lift a finished shape into a stored feature and leave drawing mode.

        Returns:
            The new feature, or None when the shape was rejected.
        """
        kind = FeatureKind(kind)
        active = self._active_tool
        try:
            if active is None:
                logger.warning(f"Ignoring {kind.value} shape: no drawing tool active")
                return None
            if kind is not active:
                logger.warning(f"Ignoring {kind.value} shape: active tool is {active.value}")
                return None
            try:
                feature = build_feature(kind, raw, self._store.next_default_name())
            except ValueError as e:
                logger.warning(f"Rejected drawn {kind.value}: {e}")
                return None
            return self._store.add_feature(feature)
        finally:
            self._disable_handler()

    # --- Viewport ---

    def zoom_to_feature(self, feature_id: str) -> bool:
        """Move the viewport to a feature. Returns False for unknown ids."""
        feature = self._store.get(feature_id)
        if feature is None:
            return False
        geom = feature.geometry
        if feature.kind is FeatureKind.MARKER:
            self._surface.set_view(geom.position[0], geom.position[1], MARKER_ZOOM)
        elif feature.kind is FeatureKind.CIRCLE:
            self._surface.set_view(geom.center[0], geom.center[1], CIRCLE_ZOOM)
        elif feature.kind.is_polygonal:
            self._surface.fit_bounds(bounds_of(feature))
        else:
            raise ValueError(f"Unknown feature kind: {feature.kind!r}")
        return True

    # --- Lifecycle ---

    def close(self) -> None:
        """Tear down: drop layers, disable drawing, stop listening."""
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        self._disable_handler()
        self._surface.remove_all_layers_from_group()
        self._layers = {}
        self._surface.clear_callbacks()
