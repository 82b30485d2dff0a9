"""Configuration settings for the LoRa link planner API."""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    PROJECT_NAME: str = "LoRa Link Planner API"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
    LOG_FILE: Optional[str] = None

    # Elevation providers, tried in order
    ELEVATION_PROVIDERS: List[str] = ["open-meteo", "opentopodata"]
    OPEN_METEO_URL: str = "https://api.open-meteo.com/v1/elevation"
    OPENTOPODATA_URL: str = "https://api.opentopodata.org/v1/aster30m"
    ELEVATION_TIMEOUT_S: float = 3.0
    ELEVATION_POINTS_PER_REQUEST: int = 100
    ELEVATION_CONCURRENCY: int = 4
    ELEVATION_DAILY_REQUEST_LIMIT: Dict[str, int] = {
        "open-meteo": 10000,
        "opentopodata": 100,
    }
    ELEVATION_CACHE_TTL_S: float = 1800.0  # 30 minutes
    ELEVATION_CACHE_SIZE: int = 1000
    DEFAULT_ELEVATION_M: float = 100.0

    # Point-to-point link analysis
    LINK_PROFILE_SAMPLES: int = 50
    FADE_MARGIN_DB: float = 15.0
    DEFAULT_ENVIRONMENT: str = "suburban"

    # Coverage ray-marching
    COVERAGE_STEP_KM: float = 0.5
    COVERAGE_MIN_LINK_MARGIN_DB: float = 10.0
    COVERAGE_PROFILE_SAMPLES: int = 15
    COVERAGE_BATCH_SIZE: int = 6
    COVERAGE_TIME_BUDGET_S: float = 8.0
    COVERAGE_BATCH_PAUSE_S: float = 0.025
    COVERAGE_DEFAULT_RESOLUTION_DEG: float = 15.0
    COVERAGE_DEFAULT_MAX_RANGE_KM: float = 25.0

    class Config:
        case_sensitive = True
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()


def get_settings() -> Settings:
    """Get application settings with dependency injection support."""
    return settings
