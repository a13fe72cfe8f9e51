"""AOI engine — canonical features, geodesic geometry, persistence and map sync.

FeatureStore persists through a KeyValueStorage and MapSyncController
drives any MapSurface implementation. folium_surface is the one concrete
map binding; nothing else in the engine imports a web library.
"""

from aoi_engine.feature import AOIFeature, FeatureKind, ViewState
from aoi_engine.store import FeatureStore, StoreChange
from aoi_engine.sync import MapSyncController

__all__ = [
    "AOIFeature",
    "FeatureKind",
    "FeatureStore",
    "MapSyncController",
    "StoreChange",
    "ViewState",
]
