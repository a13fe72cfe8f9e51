"""Shared fixtures for AOI engine tests."""

from __future__ import annotations

import itertools

import pytest

from aoi_engine.feature import FeatureKind
from aoi_engine.storage import MemoryStorage
from aoi_engine.store import FeatureStore
from aoi_engine.surface import MapSurface
from aoi_engine.sync import MapSyncController


class FakeLayer:
    """Stand-in for a map library layer object."""

    _ids = itertools.count(1)

    def __init__(self, kind, geometry, style):
        self.layer_id = next(self._ids)
        self.kind = kind
        self.geometry = geometry
        self.style = style
        self.popup: str | None = None

    def __repr__(self) -> str:
        return f"FakeLayer({self.layer_id}, {self.kind.value})"


class RecordingMapSurface(MapSurface):
    """In-memory map surface for unit testing.

    Records every call the controller makes so tests can assert on the
    layer group, visibility, opacity and draw handler without a real map.
    """

    def __init__(self) -> None:
        super().__init__()
        self.created: list[FakeLayer] = []
        self.group: list[FakeLayer] = []
        self.base_layer_visible = True
        self.feature_group_visible = True
        self.base_layer_opacity = 100
        self.active_handler: tuple[FeatureKind, dict] | None = None
        self.enable_calls: list[FeatureKind] = []
        self.disable_calls = 0
        self.clear_calls = 0
        self.view: tuple[float, float, int] | None = None
        self.bounds = None

    def create_layer(self, kind, geometry, style):
        layer = FakeLayer(kind, geometry, style)
        self.created.append(layer)
        return layer

    def bind_popup(self, handle, html):
        handle.popup = html

    def add_layer_to_group(self, handle):
        self.group.append(handle)

    def remove_all_layers_from_group(self):
        self.clear_calls += 1
        self.group = []

    def set_base_layer_visible(self, visible):
        self.base_layer_visible = visible

    def set_feature_group_visible(self, visible):
        self.feature_group_visible = visible

    def set_base_layer_opacity(self, opacity):
        self.base_layer_opacity = opacity

    def enable_draw_handler(self, kind, style):
        assert self.active_handler is None, "previous draw handler still enabled"
        self.active_handler = (kind, style)
        self.enable_calls.append(kind)

    def disable_active_draw_handler(self):
        self.disable_calls += 1
        self.active_handler = None

    def fit_bounds(self, bounds):
        self.bounds = bounds

    def set_view(self, lat, lng, zoom):
        self.view = (lat, lng, zoom)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    s = FeatureStore(storage)
    s.load()
    return s


@pytest.fixture
def surface():
    return RecordingMapSurface()


@pytest.fixture
def controller(store, surface):
    ctrl = MapSyncController(store, surface)
    yield ctrl
    ctrl.close()


@pytest.fixture
def square_km():
    """0.009° square just north of the equator, about 1002 m a side, as (lat, lng)."""
    return [(0.0, 0.0), (0.0, 0.009), (0.009, 0.009), (0.009, 0.0)]


@pytest.fixture
def anyio_backend():
    return "asyncio"
