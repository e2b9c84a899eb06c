import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

NFLVERSE_GAMES_CSV_URL = (
    "https://raw.githubusercontent.com/nflverse/nfldata/master/data/games.csv"
)
ESPN_SCOREBOARD_URL = (
    "https://site.api.espn.com/apis/site/v2/sports/football/nfl/scoreboard"
)

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ConfigurationError(Exception):
    """Raised when a required setting is missing for the requested operation."""

    pass


def default_season() -> int:
    """The season ingestion targets when none is configured: the current UTC year."""
    return datetime.now(timezone.utc).year


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # Supabase Configuration
    supabase_url: Optional[HttpUrl] = Field(
        None, description="URL for the Supabase project."
    )
    supabase_service_role_key: Optional[str] = Field(
        None, description="Service role key for Supabase (bypasses RLS)."
    )

    # Control surface secrets
    cron_secret: Optional[str] = Field(
        None, description="Shared secret expected in the x-cron-secret header."
    )
    webhook_secret: Optional[str] = Field(
        None, description="Shared secret expected in the x-webhook-secret header."
    )

    # Feeds
    schedule_feed_url: str = Field(
        NFLVERSE_GAMES_CSV_URL,
        description="Schedule CSV location (http(s) URL, file:// URL or local path).",
    )
    score_feed_url: str = Field(
        NFLVERSE_GAMES_CSV_URL, description="Results CSV location."
    )
    espn_scoreboard_url: str = Field(
        ESPN_SCOREBOARD_URL, description="ESPN scoreboard JSON endpoint."
    )
    schedule_season: Optional[int] = Field(
        None, ge=1920, le=2100, description="Season to ingest (defaults to current UTC year)."
    )

    # HTTP behaviour
    http_timeout_seconds: float = Field(
        30.0, gt=0, description="Timeout for feed requests, in seconds."
    )
    feed_fetch_attempts: int = Field(
        1,
        ge=1,
        le=10,
        description="Total attempts per feed fetch (1 = fail on the first error).",
    )

    # Local API server
    api_host: str = Field("127.0.0.1", description="Bind address for `main.py serve`.")
    api_port: int = Field(8000, ge=1, le=65535, description="Port for `main.py serve`.")

    # Logging Configuration
    log_level: str = Field(
        "INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def season(self) -> int:
        """Configured season, or the current UTC year."""
        return self.schedule_season or default_season()

    def require_supabase(self) -> tuple:
        """Returns (url, key) or raises ConfigurationError if either is unset."""
        if not self.supabase_url or not self.supabase_service_role_key:
            raise ConfigurationError(
                "SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY not set"
            )
        return str(self.supabase_url), self.supabase_service_role_key


def load_settings(**overrides) -> AppSettings:
    """Loads and validates application settings."""
    try:
        settings = AppSettings(**overrides)
    except Exception as e:
        logging.exception(f"Error loading application settings: {e}")
        raise SystemExit("Failed to load application settings. Exiting.")

    log_level_upper = settings.log_level.upper()
    # Validate log_level even if loaded from .env
    if log_level_upper not in VALID_LOG_LEVELS:
        logging.warning(
            f"Invalid LOG_LEVEL '{settings.log_level}' found in .env or default. Using INFO."
        )
        settings.log_level = "INFO"
    else:
        settings.log_level = log_level_upper
    return settings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Process-wide settings, loaded on first use."""
    return load_settings()
