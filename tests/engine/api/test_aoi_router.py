"""Unit tests for the AOI router — drawing, CRUD, view state, export/import.

Each test boots the full app (lifespan included) against a temporary data
directory, so requests go through the real store, controller and folium
surface.
"""
from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from aoi_app.config import Settings
from aoi_app.main import create_app

SQUARE_KM = [[0.0, 0.0], [0.0, 0.009], [0.009, 0.009], [0.009, 0.0]]


def _settings(data_dir):
    return Settings(data_dir=data_dir, search_debounce_seconds=0)


@pytest.fixture
def client(tmp_path):
    with TestClient(create_app(_settings(tmp_path))) as c:
        yield c


def _draw(client, kind, geometry):
    client.post("/api/aoi/tool", json={"kind": kind})
    return client.post("/api/aoi/draw", json={"kind": kind, "geometry": geometry})


# ---------------------------------------------------------------------------
# Drawing
# ---------------------------------------------------------------------------

@pytest.mark.unit
class TestDrawing:
    """Tool activation and one-shot drawing."""

    def test_draw_rectangle(self, client):
        resp = _draw(client, "rectangle", SQUARE_KM)
        assert resp.status_code == 200
        data = resp.json()
        assert data["kind"] == "rectangle"
        assert data["name"] == "AOI 1"
        assert data["color"] == "#10b981"
        assert data["area_sq_m"] == pytest.approx(1_000_000, rel=0.01)
        assert data["area_text"] == "1.00 km²"

    def test_draw_marker_has_no_area(self, client):
        data = _draw(client, "marker", [12.9, 77.6]).json()
        assert data["area_sq_m"] is None
        assert data["area_text"] is None

    def test_draw_without_active_tool(self, client):
        resp = client.post("/api/aoi/draw", json={"kind": "marker", "geometry": [1, 2]})
        assert resp.status_code == 409

    def test_tool_is_single_shot(self, client):
        """A finished shape returns the tool to idle."""
        _draw(client, "marker", [12.9, 77.6])
        resp = client.post("/api/aoi/draw", json={"kind": "marker", "geometry": [1, 2]})
        assert resp.status_code == 409
        assert len(client.get("/api/aoi/features").json()) == 1

    def test_invalid_geometry(self, client):
        """Bad geometry is rejected and the tool is cancelled."""
        resp = _draw(client, "circle", {"center": [0, 0], "radius": -3})
        assert resp.status_code == 400
        tool = client.post("/api/aoi/tool", json={"kind": None}).json()
        assert tool["active_tool"] is None

    def test_invalid_kind(self, client):
        resp = client.post("/api/aoi/tool", json={"kind": "hexagon"})
        assert resp.status_code == 400

    def test_tool_activation_and_cancel(self, client):
        resp = client.post("/api/aoi/tool", json={"kind": "polygon"})
        assert resp.json() == {"active_tool": "polygon", "state": "active"}
        resp = client.post("/api/aoi/tool", json={"kind": "circle"})
        assert resp.json()["active_tool"] == "circle"
        resp = client.post("/api/aoi/tool", json={"kind": None})
        assert resp.json() == {"active_tool": None, "state": "idle"}

    def test_map_page_includes_draw_handler(self, client):
        client.post("/api/aoi/tool", json={"kind": "polygon"})
        resp = client.get("/")
        assert resp.status_code == 200
        assert "L.Draw[\"Polygon\"]" in resp.text


# ---------------------------------------------------------------------------
# Feature CRUD
# ---------------------------------------------------------------------------

@pytest.mark.unit
class TestFeatures:
    """Listing, renaming and deleting stored features."""

    def test_list_empty(self, client):
        assert client.get("/api/aoi/features").json() == []

    def test_get_and_not_found(self, client):
        feature_id = _draw(client, "marker", [1, 2]).json()["id"]
        assert client.get(f"/api/aoi/features/{feature_id}").json()["id"] == feature_id
        assert client.get("/api/aoi/features/ghost").status_code == 404

    def test_rename(self, client):
        feature_id = _draw(client, "marker", [1, 2]).json()["id"]
        resp = client.patch(f"/api/aoi/features/{feature_id}", json={"name": "Main gate"})
        assert resp.status_code == 200
        assert resp.json()["name"] == "Main gate"

    def test_rename_blank(self, client):
        feature_id = _draw(client, "marker", [1, 2]).json()["id"]
        resp = client.patch(f"/api/aoi/features/{feature_id}", json={"name": "   "})
        assert resp.status_code == 400

    def test_rename_unknown(self, client):
        resp = client.patch("/api/aoi/features/ghost", json={"name": "x"})
        assert resp.status_code == 404

    def test_delete(self, client):
        feature_id = _draw(client, "marker", [1, 2]).json()["id"]
        resp = client.delete(f"/api/aoi/features/{feature_id}")
        assert resp.json() == {"status": "deleted", "removed": True}
        assert client.get("/api/aoi/features").json() == []

    def test_delete_unknown_is_noop(self, client):
        resp = client.delete("/api/aoi/features/ghost")
        assert resp.status_code == 200
        assert resp.json()["removed"] is False

    def test_clear_all(self, client):
        _draw(client, "marker", [1, 2])
        _draw(client, "marker", [3, 4])
        assert client.delete("/api/aoi/features").json() == {"status": "cleared", "count": 2}
        assert client.app.state.controller.live_layer_count == 0

    def test_bounds_and_zoom(self, client):
        feature_id = _draw(client, "rectangle", SQUARE_KM).json()["id"]
        bounds = client.get(f"/api/aoi/features/{feature_id}/bounds").json()
        assert bounds == {"south": 0.0, "west": 0.0, "north": 0.009, "east": 0.009}
        assert client.post(f"/api/aoi/features/{feature_id}/zoom").status_code == 200
        assert client.post("/api/aoi/features/ghost/zoom").status_code == 404

    def test_persisted_across_restarts(self, tmp_path):
        """Features drawn in one app instance load in the next."""
        with TestClient(create_app(_settings(tmp_path))) as first:
            _draw(first, "marker", [12.9, 77.6])
        with TestClient(create_app(_settings(tmp_path))) as second:
            (feature,) = second.get("/api/aoi/features").json()
        assert feature["geometry"] == [12.9, 77.6]
        assert json.loads((tmp_path / "aoi-features.json").read_text())[0]["kind"] == "marker"


# ---------------------------------------------------------------------------
# View state / summary
# ---------------------------------------------------------------------------

@pytest.mark.unit
class TestViewState:
    """Layer panel state and the summary readout."""

    def test_defaults(self, client):
        assert client.get("/api/aoi/view").json() == {
            "base_layer_visible": True,
            "aoi_layer_visible": True,
            "base_layer_opacity": 100,
        }

    def test_patch(self, client):
        resp = client.patch("/api/aoi/view", json={"base_layer_opacity": 45})
        assert resp.json()["base_layer_opacity"] == 45
        assert client.app.state.surface.base_layer_opacity == 45

    def test_out_of_range_rejected(self, client):
        resp = client.patch("/api/aoi/view", json={"base_layer_opacity": 150})
        assert resp.status_code == 422

    def test_summary(self, client):
        _draw(client, "rectangle", SQUARE_KM)
        _draw(client, "marker", [1, 2])
        data = client.get("/api/aoi/summary").json()
        assert data["total"] == 2
        assert data["counts"]["rectangle"] == 1
        assert data["total_area_text"] == "1.00 km²"


# ---------------------------------------------------------------------------
# Export / Import
# ---------------------------------------------------------------------------

@pytest.mark.unit
class TestExportImport:
    """GeoJSON download and upload."""

    def test_export_empty(self, client):
        resp = client.get("/api/aoi/export")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "No features to export"

    def test_export(self, client):
        _draw(client, "marker", [12.9, 77.6])
        resp = client.get("/api/aoi/export")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/geo+json")
        assert "aoi-features.geojson" in resp.headers["content-disposition"]
        doc = resp.json()
        assert doc["type"] == "FeatureCollection"
        assert doc["features"][0]["geometry"]["coordinates"] == [77.6, 12.9]

    def test_import_round_trip(self, client):
        """An exported rectangle imports with its kind and area intact."""
        _draw(client, "rectangle", SQUARE_KM)
        doc = client.get("/api/aoi/export").json()
        client.delete("/api/aoi/features")

        resp = client.post("/api/aoi/import", json=doc)
        assert resp.status_code == 200
        (feature,) = resp.json()
        assert feature["kind"] == "rectangle"
        assert feature["area_text"] == "1.00 km²"

    def test_import_duplicate_ids(self, client):
        """Importing ids already stored is a conflict."""
        _draw(client, "marker", [1, 2])
        doc = client.get("/api/aoi/export").json()
        assert client.post("/api/aoi/import", json=doc).status_code == 409

    def test_import_nothing(self, client):
        resp = client.post("/api/aoi/import", json={"type": "FeatureCollection", "features": []})
        assert resp.status_code == 400

    def test_import_names_continue_after_existing(self, client):
        """Unnamed imports take the next free default name."""
        _draw(client, "marker", [1, 2])
        doc = {"type": "FeatureCollection", "features": [
            {"type": "Feature", "geometry": {"type": "Point", "coordinates": [4, 3]}},
        ]}
        (feature,) = client.post("/api/aoi/import", json=doc).json()
        assert feature["name"] == "AOI 2"
        names = [f["name"] for f in client.get("/api/aoi/features").json()]
        assert names == ["AOI 1", "AOI 2"]
