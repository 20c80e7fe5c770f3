"""
backend/oddsfeed/config.py

Purpose:
    Central settings loading for the feed worker, pipeline and status API.

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
    # OddsMarket feed
    FEED_API_KEY: str = ""  # Required at startup; never logged
    FEED_WS_URL: str = "wss://api-pr.oddsmarket.org/v4/odds_ws"
    FEED_BOOKMAKER_IDS: list[int] = [21, 103]  # 1xbet, Sisal
    FEED_SPORT_IDS: list[int] = [7]  # Soccer
    FEED_PING_INTERVAL_SECONDS: float = 30.0
    FEED_RECONNECT_DELAY_SECONDS: float = 5.0
    FEED_MAX_RECONNECT_ATTEMPTS: int = 10

    # MongoDB
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "oddsfeed"
    ODDS_COLLECTION: str = "live_odds"

    # Event definitions are only cached for these leagues (empty = all leagues)
    LEAGUE_FILTER: list[str] = [
        "italy. serie a",
        "italy serie a",
        "serie a",
        "италия. серия а",
        "italy. serie a. round",
        "italian serie a",
    ]

    # Pipeline caches
    EVENT_CACHE_MAX_SIZE: int = 2000
    EVENT_CACHE_EVICT_COUNT: int = 500
    PENDING_OUTCOMES_MAX: int = 500
    CHANGE_TTL_SECONDS: float = 60.0
    MATCH_TIME_BUCKET_MINUTES: int = 30

    # Write queue
    WRITE_BATCH_SIZE: int = 50
    WRITE_DELAY_MS: int = 200
    WRITE_RETRY_DELAYS_SECONDS: list[float] = [0.5, 1.0, 2.0]

    # Diagnostics
    UNMAPPED_REPORT_INTERVAL_SECONDS: int = 120
    UNMAPPED_REPORT_LIMIT: int = 20
    DIAGNOSTICS_MAX_ENTRIES: int = 1000

    LOG_LEVEL: str = "INFO"

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
