"""Abstract MapSurface — the interface the sync controller drives.

A surface wraps a stateful map library: a base tile layer, one feature
group holding the AOI layers, and a drawing tool. Layer handles are
whatever objects the library uses; only MapSyncController holds them.

Concrete surfaces report user drawing through emit_shape_completed() and
emit_draw_stopped(); the controller registers for those events.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable

from aoi_engine.feature import FeatureKind, Geometry
from aoi_engine.geometry import BoundingBox

ShapeCompletedCallback = Callable[[FeatureKind, Any], Any]
DrawStoppedCallback = Callable[[], Any]


class MapSurface(ABC):
    """A drawable map the controller can render features onto."""

    def __init__(self) -> None:
        self._shape_completed: list[ShapeCompletedCallback] = []
        self._draw_stopped: list[DrawStoppedCallback] = []

    # --- Events ---

    def on_shape_completed(self, callback: ShapeCompletedCallback) -> None:
        self._shape_completed.append(callback)

    def on_draw_stopped(self, callback: DrawStoppedCallback) -> None:
        self._draw_stopped.append(callback)

    def clear_callbacks(self) -> None:
        self._shape_completed.clear()
        self._draw_stopped.clear()

    def emit_shape_completed(self, kind: FeatureKind | str, raw_geometry: Any) -> list:
        """Report a finished shape. Returns each callback's result."""
        kind = FeatureKind(kind)
        return [cb(kind, raw_geometry) for cb in list(self._shape_completed)]

    def emit_draw_stopped(self) -> None:
        for cb in list(self._draw_stopped):
            cb()

    # --- Layers ---

    @abstractmethod
    def create_layer(self, kind: FeatureKind, geometry: Geometry, style: dict) -> Any:
        """Create a library-native layer for a feature. Not yet on the map."""

    @abstractmethod
    def bind_popup(self, handle: Any, html: str) -> None:
        ...

    @abstractmethod
    def add_layer_to_group(self, handle: Any) -> None:
        ...

    @abstractmethod
    def remove_all_layers_from_group(self) -> None:
        ...

    # --- Base layer and group visibility ---

    @abstractmethod
    def set_base_layer_visible(self, visible: bool) -> None:
        ...

    @abstractmethod
    def set_feature_group_visible(self, visible: bool) -> None:
        ...

    @abstractmethod
    def set_base_layer_opacity(self, opacity: int) -> None:
        """Set base layer opacity on a 0..100 scale."""

    # --- Drawing ---

    @abstractmethod
    def enable_draw_handler(self, kind: FeatureKind, style: dict) -> None:
        ...

    @abstractmethod
    def disable_active_draw_handler(self) -> None:
        """Disable the active draw handler. No-op when none is active."""

    # --- Viewport ---

    def fit_bounds(self, bounds: BoundingBox) -> None:
        """Move the viewport to show ``bounds``. Optional for surfaces."""

    def set_view(self, lat: float, lng: float, zoom: int) -> None:
        """Centre the viewport. Optional for surfaces."""
