"""
Miscellaneous routes: health check.
"""

from fastapi import APIRouter

from .. import __version__
from ..config import config, state

router = APIRouter(tags=["misc"])


@router.get("/status")
async def health_check() -> dict:
    """API health check."""
    return {
        "status": "ok",
        "version": __version__,
        "auth_enabled": bool(config.AUTH_API_KEY),
        "google_oauth_enabled": state.oauth_manager is not None,
    }
