"""Runtime settings for the DWG/DXF preview service.

Read by the API layer and the preview service accessor; core components
receive explicit dataclass configs built from them.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: list[str] = ["*"]

    # Document sources are resolved relative to this directory
    DWG_UPLOAD_DIR: str = "uploads"
    # Rendered SVG artifacts (one per document id)
    DWG_CACHE_DIR: str = "uploads/cache/dwg"
    # Per-job staging for external converters, kept apart from the cache
    DWG_STAGING_DIR: str = "uploads/temp"

    ODA_FILE_CONVERTER: Optional[str] = None
    DWG2DXF_PATH: Optional[str] = None
    DWG_CONVERTER_TIMEOUT_S: int = 60
    DWG_OUTPUT_VERSION: str = "ACAD2010"
    DWG_CACHE_MAX_AGE_DAYS: int = 7

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
    }


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings()
    return _settings_cache


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings_cache
    _settings_cache = None
