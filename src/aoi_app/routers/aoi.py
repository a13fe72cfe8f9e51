"""AOI management API endpoints.

All handlers are ``async def`` so they run on the event loop thread: the
store and the sync controller are only ever touched from that one thread.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, HTTPException, Request
from fastapi.responses import Response
from loguru import logger
from pydantic import BaseModel, Field

from aoi_engine.analytics import summarize
from aoi_engine.exporters.geojson import EXPORT_FILENAME, dumps, export_feature_collection
from aoi_engine.feature import AOIFeature, FeatureKind
from aoi_engine.geometry import bounds_of, format_area
from aoi_engine.parsers.geojson import parse_feature_collection
from aoi_engine.store import DuplicateFeatureError, FeatureNotFoundError, FeatureStore
from aoi_engine.sync import MapSyncController

router = APIRouter(prefix="/api/aoi", tags=["aoi"])


def get_store(request: Request) -> FeatureStore:
    return request.app.state.store


def get_controller(request: Request) -> MapSyncController:
    return request.app.state.controller


# ==================
# Request/Response Models
# ==================

class DrawCompleteRequest(BaseModel):
    """A shape finished on the drawing surface."""
    kind: str
    geometry: Any


class RenameRequest(BaseModel):
    name: str = Field(min_length=1)


class ToolRequest(BaseModel):
    """Activate a drawing tool, or deactivate with kind=None."""
    kind: Optional[str] = None


class ViewStatePatch(BaseModel):
    base_layer_visible: Optional[bool] = None
    aoi_layer_visible: Optional[bool] = None
    base_layer_opacity: Optional[int] = Field(default=None, ge=0, le=100)


class FeatureResponse(BaseModel):
    """Feature response model."""
    id: str
    name: str
    kind: str
    geometry: Any
    area_sq_m: Optional[float]
    area_text: Optional[str]
    color: str
    created_at: str


def _feature_to_response(feature: AOIFeature) -> FeatureResponse:
    data = feature.to_dict()
    data["area_text"] = format_area(feature.area_sq_m) if feature.area_sq_m else None
    return FeatureResponse(**data)


def _parse_kind(kind: str) -> FeatureKind:
    try:
        return FeatureKind(kind)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid kind. Must be one of: {[k.value for k in FeatureKind]}",
        )


# ==================
# Feature Endpoints
# ==================

@router.get("/features", response_model=list[FeatureResponse])
async def list_features(request: Request):
    """List all AOI features in creation order."""
    return [_feature_to_response(f) for f in get_store(request).features]


@router.get("/features/{feature_id}", response_model=FeatureResponse)
async def get_feature(feature_id: str, request: Request):
    feature = get_store(request).get(feature_id)
    if feature is None:
        raise HTTPException(status_code=404, detail="Feature not found")
    return _feature_to_response(feature)


@router.post("/draw", response_model=FeatureResponse)
async def draw_complete(body: DrawCompleteRequest, request: Request):
    """Report a finished shape from the drawing surface."""
    kind = _parse_kind(body.kind)
    controller = get_controller(request)
    if controller.active_tool is not kind:
        active = controller.active_tool.value if controller.active_tool else None
        raise HTTPException(status_code=409, detail=f"Drawing tool '{kind.value}' is not active (active: {active})")

    results = request.app.state.surface.emit_shape_completed(kind, body.geometry)
    feature = next((r for r in results if r is not None), None)
    if feature is None:
        raise HTTPException(status_code=400, detail=f"Invalid {kind.value} geometry")
    return _feature_to_response(feature)


@router.patch("/features/{feature_id}", response_model=FeatureResponse)
async def rename_feature(feature_id: str, body: RenameRequest, request: Request):
    """Rename a feature. Only the name is editable."""
    try:
        feature = get_store(request).rename_feature(feature_id, body.name)
    except FeatureNotFoundError:
        raise HTTPException(status_code=404, detail="Feature not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _feature_to_response(feature)


@router.delete("/features/{feature_id}")
async def delete_feature(feature_id: str, request: Request):
    """Delete a feature. Deleting an unknown id succeeds as a no-op."""
    removed = get_store(request).remove_feature(feature_id)
    return {"status": "deleted", "removed": removed}


@router.delete("/features")
async def clear_features(request: Request):
    store = get_store(request)
    count = len(store)
    store.clear_all()
    return {"status": "cleared", "count": count}


@router.get("/features/{feature_id}/bounds")
async def feature_bounds(feature_id: str, request: Request):
    feature = get_store(request).get(feature_id)
    if feature is None:
        raise HTTPException(status_code=404, detail="Feature not found")
    box = bounds_of(feature)
    return {"south": box.south, "west": box.west, "north": box.north, "east": box.east}


@router.post("/features/{feature_id}/zoom")
async def zoom_to_feature(feature_id: str, request: Request):
    """Point the map viewport at a feature."""
    if not get_controller(request).zoom_to_feature(feature_id):
        raise HTTPException(status_code=404, detail="Feature not found")
    return {"status": "ok"}


# ==================
# Drawing Tool / View State
# ==================

@router.post("/tool")
async def set_tool(body: ToolRequest, request: Request):
    """Activate a single-shot drawing tool, or deactivate with kind=null."""
    controller = get_controller(request)
    if body.kind is None:
        controller.deactivate_tool()
    else:
        controller.activate_tool(_parse_kind(body.kind))
    return {
        "active_tool": controller.active_tool.value if controller.active_tool else None,
        "state": controller.state.value,
    }


@router.get("/view")
async def get_view_state(request: Request):
    return get_store(request).view_state.to_dict()


@router.patch("/view")
async def update_view_state(body: ViewStatePatch, request: Request):
    patch = body.model_dump(exclude_none=True)
    try:
        view = get_store(request).set_view_state(**patch)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return view.to_dict()


# ==================
# Summary / Export / Import
# ==================

@router.get("/summary")
async def feature_summary(request: Request):
    return summarize(get_store(request).features).to_dict()


@router.get("/export")
async def export_geojson(request: Request):
    """Download all features as a GeoJSON FeatureCollection."""
    segments = request.app.state.settings.export_circle_segments
    result = export_feature_collection(get_store(request).features, segments=segments)
    if not result.ok:
        raise HTTPException(status_code=404, detail=result.message)

    logger.info(f"Exported {result.feature_count} features to GeoJSON")
    return Response(
        content=dumps(result.document),
        media_type="application/geo+json",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.post("/import", response_model=list[FeatureResponse])
async def import_geojson(request: Request, document: dict = Body(...)):
    """Add the features of a GeoJSON FeatureCollection."""
    store = get_store(request)
    features = parse_feature_collection(document, first_sequence=len(store) + 1)
    if not features:
        raise HTTPException(status_code=400, detail="No importable features in document")
    try:
        added = store.add_features(features)
    except DuplicateFeatureError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return [_feature_to_response(f) for f in added]
