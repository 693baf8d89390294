"""
API route modules.
"""

from .campaigns import router as campaigns_router
from .queue import router as queue_router
from .google import router as google_router, auth_router as google_auth_router
from .misc import router as misc_router

__all__ = [
    "campaigns_router",
    "queue_router",
    "google_router",
    "google_auth_router",
    "misc_router",
]
