"""MapSurface backed by folium (Leaflet rendered to HTML).

The surface keeps the live folium layers in memory and renders a fresh
folium.Map on demand. When a draw handler is enabled the page gets a
Leaflet.draw handler for that one tool; the browser posts the finished
shape (or a cancel) back to the HTTP service, which feeds it to the
controller through emit_shape_completed().
"""

from __future__ import annotations

from typing import Any

import folium
from branca.element import MacroElement
from folium.elements import JSCSSMixin
from jinja2 import Template

from aoi_engine.feature import FeatureKind, Geometry
from aoi_engine.geometry import BoundingBox
from aoi_engine.surface import MapSurface

_LEAFLET_DRAW = "https://cdnjs.cloudflare.com/ajax/libs/leaflet.draw/1.0.4"

_HANDLER_CLASSES = {
    FeatureKind.POLYGON: "Polygon",
    FeatureKind.RECTANGLE: "Rectangle",
    FeatureKind.CIRCLE: "Circle",
    FeatureKind.MARKER: "Marker",
}


class DrawHandler(JSCSSMixin, MacroElement):
    """Single-shot Leaflet.draw handler that reports back over HTTP."""

    _template = Template("""
        {% macro script(this, kwargs) %}
        (function () {
            var map = {{ this._parent.get_name() }};
            var created = false;
            var handler = new L.Draw[{{ this.handler_class|tojson }}](map, {{ this.options|tojson }});
            function post(url, body) {
                return fetch(url, {
                    method: "POST",
                    headers: {"Content-Type": "application/json"},
                    body: JSON.stringify(body)
                }).then(function () { window.location.reload(); });
            }
            map.on(L.Draw.Event.CREATED, function (e) {
                created = true;
                var layer = e.layer;
                var geometry;
                if (e.layerType === "circle") {
                    var c = layer.getLatLng();
                    geometry = {center: [c.lat, c.lng], radius: layer.getRadius()};
                } else if (e.layerType === "marker") {
                    var p = layer.getLatLng();
                    geometry = [p.lat, p.lng];
                } else {
                    geometry = layer.getLatLngs()[0].map(function (ll) { return [ll.lat, ll.lng]; });
                }
                post({{ this.draw_url|tojson }}, {kind: e.layerType, geometry: geometry});
            });
            map.on(L.Draw.Event.DRAWSTOP, function () {
                if (!created) { post({{ this.cancel_url|tojson }}, {kind: null}); }
            });
            handler.enable();
        })();
        {% endmacro %}
    """)

    default_js = [("leaflet_draw_js", f"{_LEAFLET_DRAW}/leaflet.draw.js")]
    default_css = [("leaflet_draw_css", f"{_LEAFLET_DRAW}/leaflet.draw.css")]

    def __init__(self, kind: FeatureKind, style: dict, draw_url: str, cancel_url: str):
        super().__init__()
        self._name = "DrawHandler"
        self.kind = kind
        self.handler_class = _HANDLER_CLASSES[kind]
        self.options = {} if kind is FeatureKind.MARKER else {"shapeOptions": dict(style)}
        self.draw_url = draw_url
        self.cancel_url = cancel_url


class FoliumMapSurface(MapSurface):
    """Folium-rendered map with one base layer and one AOI feature group."""

    def __init__(
        self,
        center: tuple[float, float],
        zoom: int,
        *,
        tile_url: str = "OpenStreetMap",
        attribution: str | None = None,
        min_zoom: int = 0,
        max_zoom: int = 19,
        draw_url: str = "/api/aoi/draw",
        cancel_url: str = "/api/aoi/tool",
    ) -> None:
        super().__init__()
        self.center = center
        self.zoom = zoom
        self.tile_url = tile_url
        self.attribution = attribution
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.draw_url = draw_url
        self.cancel_url = cancel_url

        self.base_layer_visible = True
        self.feature_group_visible = True
        self.base_layer_opacity = 100
        self._group_layers: list[Any] = []
        self._handler: DrawHandler | None = None
        self._bounds: BoundingBox | None = None

    # --- Layers ---

    def create_layer(self, kind: FeatureKind, geometry: Geometry, style: dict) -> Any:
        path_options = {
            "color": style.get("color"),
            "fill": True,
            "fill_opacity": style.get("fillOpacity", 0.3),
        }
        if kind is FeatureKind.POLYGON:
            return folium.Polygon(locations=[list(v) for v in geometry.vertices], **path_options)
        if kind is FeatureKind.RECTANGLE:
            lats = [lat for lat, _ in geometry.vertices]
            lngs = [lng for _, lng in geometry.vertices]
            bounds = [[min(lats), min(lngs)], [max(lats), max(lngs)]]
            return folium.Rectangle(bounds=bounds, **path_options)
        if kind is FeatureKind.CIRCLE:
            return folium.Circle(location=list(geometry.center), radius=geometry.radius_m, **path_options)
        if kind is FeatureKind.MARKER:
            return folium.Marker(location=list(geometry.position))
        raise ValueError(f"Unknown feature kind: {kind!r}")

    def bind_popup(self, handle: Any, html: str) -> None:
        folium.Popup(html).add_to(handle)

    def add_layer_to_group(self, handle: Any) -> None:
        self._group_layers.append(handle)

    def remove_all_layers_from_group(self) -> None:
        self._group_layers = []

    @property
    def group_layers(self) -> list[Any]:
        return list(self._group_layers)

    # --- Visibility ---

    def set_base_layer_visible(self, visible: bool) -> None:
        self.base_layer_visible = visible

    def set_feature_group_visible(self, visible: bool) -> None:
        self.feature_group_visible = visible

    def set_base_layer_opacity(self, opacity: int) -> None:
        self.base_layer_opacity = max(0, min(100, int(opacity)))

    # --- Drawing ---

    def enable_draw_handler(self, kind: FeatureKind, style: dict) -> None:
        self._handler = DrawHandler(kind, style, self.draw_url, self.cancel_url)

    def disable_active_draw_handler(self) -> None:
        self._handler = None

    @property
    def draw_handler(self) -> DrawHandler | None:
        return self._handler

    # --- Viewport ---

    def fit_bounds(self, bounds: BoundingBox) -> None:
        self._bounds = bounds

    def set_view(self, lat: float, lng: float, zoom: int) -> None:
        self.center = (lat, lng)
        self.zoom = zoom
        self._bounds = None

    # --- Rendering ---

    def build_map(self) -> folium.Map:
        """Assemble a folium.Map from the current surface state."""
        m = folium.Map(
            location=list(self.center),
            zoom_start=self.zoom,
            min_zoom=self.min_zoom,
            max_zoom=self.max_zoom,
            tiles=None,
            control_scale=True,
        )
        if self.base_layer_visible:
            folium.TileLayer(
                tiles=self.tile_url,
                attr=self.attribution,
                name="Base Map",
                max_zoom=self.max_zoom,
                opacity=self.base_layer_opacity / 100,
            ).add_to(m)
        if self.feature_group_visible:
            group = folium.FeatureGroup(name="Areas of Interest")
            for layer in self._group_layers:
                group.add_child(layer)
            group.add_to(m)
        if self._handler is not None:
            m.add_child(self._handler)
        if self._bounds is not None:
            m.fit_bounds(self._bounds.to_list(), padding=(50, 50))
        return m

    def render(self) -> str:
        return self.build_map().get_root().render()
