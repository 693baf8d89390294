"""
Mailboard API Server

FastAPI application providing endpoints for:
- Campaign management and sending
- The mailer worker's queue status hook
- Google OAuth for the Sheets contact import
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import config, state
from .database import Database
from .exceptions import ConfigurationError
from .google import GoogleOAuthManager, OAuthSettings
from .rate_limit import setup_rate_limiting
from .routes import (
    campaigns_router,
    queue_router,
    google_router,
    google_auth_router,
    misc_router,
)

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_oauth_manager(db: Database) -> GoogleOAuthManager | None:
    """Build the OAuth manager, or None when credentials are missing."""
    try:
        settings = OAuthSettings.from_config(config)
    except ConfigurationError as e:
        logger.warning(f"{e}. Google Sheets integration disabled.")
        return None

    manager = GoogleOAuthManager(settings, db.oauth_states)
    manager.cleanup_expired_states()
    logger.info(f"Google OAuth configured (redirect: {settings.redirect_uri})")
    return manager


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize application resources."""
    # Startup - skip if already initialized (e.g., by tests)
    if state.db is None:
        state.db = Database(config.DB_PATH)
        state.oauth_manager = create_oauth_manager(state.db)

    yield


app = FastAPI(
    title="Mailboard API",
    version="1.0.0",
    lifespan=lifespan
)

setup_rate_limiting(app)

# Include routers
app.include_router(misc_router)
app.include_router(campaigns_router)
app.include_router(queue_router)
app.include_router(google_auth_router)
app.include_router(google_router)


def main():
    """Run the API with uvicorn (the "server" extra)."""
    import uvicorn

    uvicorn.run(
        "mailboard.server:app",
        host=config.HOST,
        port=config.PORT,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
