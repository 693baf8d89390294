"""
Signed cookie binding a browser to the OAuth state it was issued.

Only active when SESSION_SECRET is configured. The cookie carries the
state signed with itsdangerous and expires with the state itself.
"""

import logging
import secrets

from fastapi import Request, Response
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

from ..config import config

logger = logging.getLogger(__name__)

OAUTH_COOKIE_NAME = "google_oauth_state"


def get_serializer() -> URLSafeTimedSerializer | None:
    """Build the state serializer, or None when cookie binding is disabled."""
    if not config.SESSION_SECRET:
        return None
    return URLSafeTimedSerializer(config.SESSION_SECRET, salt="google-oauth-state")


def set_state_cookie(response: Response, state: str) -> None:
    """Pin the issued state to this browser."""
    serializer = get_serializer()
    if serializer is None:
        return

    response.set_cookie(
        key=OAUTH_COOKIE_NAME,
        value=serializer.dumps(state),
        max_age=config.OAUTH_STATE_TTL_SECONDS,
        httponly=True,
        secure=config.SESSION_SECURE,
        samesite="lax",
        path="/",
    )


def clear_state_cookie(response: Response) -> None:
    response.delete_cookie(
        key=OAUTH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=config.SESSION_SECURE,
        samesite="lax",
    )


def verify_state_cookie(request: Request, state: str | None) -> bool:
    """
    Check that the callback state matches the one pinned to this browser.

    Always True when cookie binding is disabled.
    """
    serializer = get_serializer()
    if serializer is None:
        return True

    cookie = request.cookies.get(OAUTH_COOKIE_NAME)
    if not cookie or not state:
        logger.warning("OAuth callback without state cookie")
        return False

    try:
        pinned = serializer.loads(cookie, max_age=config.OAUTH_STATE_TTL_SECONDS)
    except SignatureExpired:
        logger.warning("OAuth state cookie expired")
        return False
    except BadSignature:
        logger.warning("Invalid OAuth state cookie signature")
        return False

    return secrets.compare_digest(str(pinned).encode(), state.encode())
