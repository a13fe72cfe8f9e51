"""Configuration management using Pydantic settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "AOI Mapper"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Where aoi-features.json and view-state.json live
    data_dir: Path = Path("./data/aoi")

    # Map, centred on India by default
    map_center_lat: float = 20.5937
    map_center_lng: float = 78.9629
    map_zoom: int = 5
    map_min_zoom: int = 3
    map_max_zoom: int = 19
    tile_url: str = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
    tile_attribution: str = "© OpenStreetMap contributors"

    # Location search (Nominatim)
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    geocode_user_agent: str = "AOI-Mapper/0.1.0"
    geocode_timeout: float = 10.0
    search_limit: int = 5
    search_min_chars: int = 3
    search_debounce_seconds: float = 0.3

    # Export
    export_circle_segments: int = 32


settings = Settings()
