"""AOI Mapper — draw, persist and export Areas of Interest.

Main FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from loguru import logger

from aoi_engine.folium_surface import FoliumMapSurface
from aoi_engine.storage import JsonFileStorage
from aoi_engine.store import FeatureStore
from aoi_engine.sync import MapSyncController

from aoi_app.config import Settings, settings
from aoi_app.routers.aoi import router as aoi_router
from aoi_app.routers.geo import router as geo_router
from aoi_app.search import DebouncedSearch, GeocodingClient


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the application. One store, surface and controller per app."""
    cfg = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"{cfg.app_name} starting (data dir: {cfg.data_dir})")

        store = FeatureStore(JsonFileStorage(cfg.data_dir))
        store.load()

        surface = FoliumMapSurface(
            (cfg.map_center_lat, cfg.map_center_lng),
            cfg.map_zoom,
            tile_url=cfg.tile_url,
            attribution=cfg.tile_attribution,
            min_zoom=cfg.map_min_zoom,
            max_zoom=cfg.map_max_zoom,
        )
        controller = MapSyncController(store, surface)

        app.state.settings = cfg
        app.state.store = store
        app.state.surface = surface
        app.state.controller = controller
        app.state.search = DebouncedSearch(
            GeocodingClient(
                cfg.nominatim_url,
                cfg.geocode_user_agent,
                timeout=cfg.geocode_timeout,
                min_chars=cfg.search_min_chars,
            ),
            delay=cfg.search_debounce_seconds,
            limit=cfg.search_limit,
        )
        logger.info(f"{cfg.app_name} online with {len(store)} features")

        yield

        app.state.search.cancel()
        controller.close()
        logger.info(f"{cfg.app_name} shutting down...")

    app = FastAPI(
        title=cfg.app_name,
        description="Draw, persist and export Areas of Interest",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(aoi_router)
    app.include_router(geo_router)

    @app.get("/", response_class=HTMLResponse)
    async def map_page(request: Request):
        """The map, rendered from the current surface state."""
        return HTMLResponse(request.app.state.surface.render())

    @app.get("/health")
    async def health(request: Request):
        return {"status": "ok", "features": len(request.app.state.store)}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("aoi_app.main:app", host=settings.host, port=settings.port, reload=settings.debug)
