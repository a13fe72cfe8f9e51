"""Geo helpers — location search and coordinate formatting."""

from fastapi import APIRouter, HTTPException, Query, Request

from aoi_engine.geometry import format_coordinate, is_valid_coordinate, scale_text

from aoi_app.search import SearchResult

router = APIRouter(prefix="/api/geo", tags=["geo"])


@router.get("/search", response_model=list[SearchResult])
async def search_locations(request: Request, q: str = Query("")):
    """Search places by name as the user types.

    Debounced: a newer query supersedes a pending one, which then returns [].
    Best-effort: failures also return an empty list.
    """
    return await request.app.state.search.search(q)


@router.get("/coordinates")
async def describe_coordinates(lat: float, lng: float, zoom: int = Query(5, ge=0, le=22)):
    """Coordinate readout and scale bar label for the map status panel."""
    if not is_valid_coordinate(lat, lng):
        raise HTTPException(status_code=400, detail="Coordinates out of range")
    return {
        "coordinates": format_coordinate(lat, lng),
        "scale": scale_text(zoom, lat),
    }
