"""
backend/marketsync/config.py

Purpose:
    Central settings loading for the projection and reconciliation services.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "marketsync"

    LOG_LEVEL: str = "INFO"
    # Admin endpoints require X-Admin-Key when set
    ADMIN_API_KEY: str = ""

    # Authoritative odds feed (JSONOdds)
    JSONODDS_BASE_URL: str = "https://jsonodds.com/api"
    JSONODDS_API_KEY: str = ""

    # Secondary schedule feeds (RapidAPI-hosted)
    RAPIDAPI_API_KEY: str = ""
    RUNDOWN_BASE_URL: str = "https://therundown-therundown-v1.p.rapidapi.com"
    RUNDOWN_HOST: str = "therundown-therundown-v1.p.rapidapi.com"
    SPORTSPAGE_BASE_URL: str = "https://sportspage-feeds.p.rapidapi.com"
    SPORTSPAGE_HOST: str = "sportspage-feeds.p.rapidapi.com"
    SPORTSPAGE_PAGE_SIZE: int = 100

    # Outbound HTTP (every feed call carries an explicit timeout)
    FEED_TIMEOUT_SECONDS: float = 15.0
    FEED_MAX_RETRIES: int = 2
    FEED_RETRY_BASE_DELAY_SECONDS: float = 2.0

    # Chain / block explorer (manual backfill)
    CORE_CONTRACT_ADDRESS: str = ""
    BLOCK_EXPLORER_BASE_URL: str = "https://api.polygonscan.com/api"
    BLOCK_EXPLORER_API_KEY: str = ""
    BACKFILL_BLOCK_RANGE: int = 5000

    # Contest sync cycle
    CONTEST_SYNC_ENABLED: bool = True
    CONTEST_SYNC_INTERVAL_MINUTES: int = 30
    CONTEST_SYNC_LOOKBACK_DAYS: int = 1
    CONTEST_SYNC_LOCK_TTL_SECONDS: int = 900
    SCHEDULE_TIMEZONE: str = "America/New_York"

    # Finality + archival
    ARCHIVE_AFTER_HOURS: int = 72
    ARCHIVE_BATCH_SIZE: int = 200
    ARCHIVE_INTERVAL_HOURS: int = 24

    # Projection engine
    PROJECTION_CAS_RETRIES: int = 5

    # Team alias overrides (JSON file, merged into the built-in table)
    TEAM_ALIASES_FILE: str = ""

    # Evaluation slate
    SLATE_DEACTIVATE_AFTER_HOURS: int = 2

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
