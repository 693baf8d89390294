"""
Configuration and application state management.
"""

import os
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from fastapi import HTTPException

if TYPE_CHECKING:
    from .database import Database
    from .google import GoogleOAuthManager

# Load environment variables
load_dotenv()


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


class Config:
    """Application configuration from environment."""
    # "development" or "production"; production requires an explicit redirect URI
    APP_ENV: str = os.getenv("APP_ENV", "development")
    # Where the dashboard lives; OAuth callbacks redirect back here
    APP_URL: str = os.getenv("APP_URL", "http://localhost:3000")

    DB_PATH: Path = Path(os.getenv("DB_PATH", "./data/mailboard.db"))
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "5005"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Google OAuth (Sheets import)
    GOOGLE_CLIENT_ID: str = os.getenv("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET: str = os.getenv("GOOGLE_CLIENT_SECRET", "")
    GOOGLE_REDIRECT_URI: str = os.getenv("GOOGLE_REDIRECT_URI", "")
    OAUTH_STATE_TTL_SECONDS: int = int(os.getenv("OAUTH_STATE_TTL_SECONDS", "600"))

    # Signs the state cookie that binds a browser to its authorization request.
    # Cookie binding is skipped when unset.
    SESSION_SECRET: str = os.getenv("SESSION_SECRET", "")

    # Internal endpoints (worker hook, campaign management)
    AUTH_API_KEY: str = os.getenv("AUTH_API_KEY", "")

    # Per-IP HTTP throttling
    RATE_LIMIT_PER_MINUTE: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))

    # Per-user credential lookups for the Sheets import
    SHEETS_RATE_LIMIT: int = int(os.getenv("SHEETS_RATE_LIMIT", "100"))
    SHEETS_RATE_WINDOW_MS: int = int(os.getenv("SHEETS_RATE_WINDOW_MS", "60000"))

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() == "production"

    @property
    def SESSION_SECURE(self) -> bool:
        """Only mark cookies Secure when served over HTTPS."""
        return _parse_bool(os.getenv("SESSION_SECURE"), default=self.is_production)


config = Config()


class AppState:
    """Shared application state."""
    db: "Database | None" = None
    oauth_manager: "GoogleOAuthManager | None" = None


state = AppState()


def get_db() -> "Database":
    """Dependency to get database instance."""
    if not state.db:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return state.db


def get_oauth_manager() -> "GoogleOAuthManager":
    """Dependency to get the Google OAuth manager."""
    if not state.oauth_manager:
        raise HTTPException(
            status_code=503,
            detail="Google OAuth not configured. Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET."
        )
    return state.oauth_manager
