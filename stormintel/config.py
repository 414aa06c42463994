from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Interactive Hail Maps (commercial hail catalog)
    ihm_api_key: str = ""
    ihm_api_secret: str = ""
    ihm_base_url: str = "https://maps.interactivehailmaps.com"

    # NOAA Storm Events bulk CSV archive
    noaa_csv_base_url: str = "https://www.ncei.noaa.gov/pub/data/swdi/stormevents/csvfiles"

    # NWS alerts
    nws_base_url: str = "https://api.weather.gov"
    nws_user_agent: str = "StormIntel/1.0 (ops@stormintel.dev)"

    # Geocoders
    census_geocoder_url: str = "https://geocoding.geo.census.gov/geocoder/locations/address"
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    nominatim_user_agent: str = "StormIntel/1.0"

    http_timeout: float = 15.0
    noaa_download_timeout: float = 120.0

    # Cache
    cache_backend: str = "memory"  # memory | redis
    redis_url: str = "redis://localhost:6379/0"
    cache_max_entries: int = 500

    # TTLs in seconds
    noaa_cache_ttl: int = 24 * 60 * 60
    nws_cache_ttl: int = 60 * 60
    ihm_cache_ttl: int = 60 * 60
    marker_cache_ttl: int = 30 * 24 * 60 * 60

    # Search defaults
    default_months: int = 24
    default_radius_miles: float = 10.0
    hot_zone_radius_miles: float = 50.0

    # App
    debug: bool = False
    log_level: str = "INFO"


settings = Settings()
