import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Look for .env in project root (parent of server/)
_env_file = Path(__file__).resolve().parent.parent.parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=_env_file, env_prefix="SONGHUB_", extra="ignore")

    # Environment
    env: Literal["development", "production"] = "development"

    # Database - supports postgres://, postgresql://, or postgresql+psycopg://
    database_url: str = "sqlite:///./songhub.db"

    @property
    def database_url_sync(self) -> str:
        """Return database URL with psycopg driver for SQLAlchemy."""
        url = self.database_url
        # Convert postgres:// or postgresql:// to postgresql+psycopg://
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql+psycopg://", 1)
        elif url.startswith("postgresql://") and "+psycopg" not in url:
            url = url.replace("postgresql://", "postgresql+psycopg://", 1)
        return url

    # Base URL for universal song links (e.g., https://songhub.example/s/<isrc>)
    public_base_url: str = "http://localhost:8080"

    # Cache tiers
    memory_cache_capacity: int = 1000
    memory_ttl_seconds: int = 5 * 60  # hot data in process
    item_ttl_seconds: int = 60 * 60  # per-item platform results
    persistent_ttl_seconds: int = 24 * 60 * 60  # per-query search results
    negative_ttl_seconds: int = 10 * 60  # empty result sets

    # Source fan-out
    fanout_workers: int = 8
    source_timeout_seconds: float = 10.0
    platform_health_timeout_seconds: float = 2.0

    # Background enhancement/indexing
    background_workers: int = 4
    background_max_pending: int = 200
    enhancement_timeout_seconds: float = 12.0
    index_max_per_query: int = 5

    # Optional TOML file with ranking overrides (see core/ranking.py)
    ranking_config_path: str = ""

    @property
    def is_production(self) -> bool:
        return self.env == "production"


def validate_settings(settings: Settings) -> None:
    """Warn about settings that degrade search behavior."""
    if settings.negative_ttl_seconds >= settings.persistent_ttl_seconds:
        logging.warning(
            "SONGHUB_NEGATIVE_TTL_SECONDS should be shorter than "
            "SONGHUB_PERSISTENT_TTL_SECONDS - empty results will outlive real ones"
        )

    if settings.memory_cache_capacity <= 0:
        logging.warning("SONGHUB_MEMORY_CACHE_CAPACITY must be positive - using 1")
        settings.memory_cache_capacity = 1

    if settings.is_production and settings.database_url.startswith("sqlite"):
        logging.warning("Using SQLite in production - search cache writes will serialize")

    if settings.ranking_config_path and not Path(settings.ranking_config_path).is_file():
        logging.warning(
            "SONGHUB_RANKING_CONFIG_PATH=%s not found - using default ranking weights",
            settings.ranking_config_path,
        )


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    validate_settings(settings)
    return settings
