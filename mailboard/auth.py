"""
API key guard for the internal endpoints.

Campaign management and the mailer worker's queue hook sit behind a
shared key, sent either as an X-API-Key header or as an
Authorization: Bearer token. When AUTH_API_KEY is unset the guard is
open (local development).

The /google token routes hand out users' access tokens and are guarded
like the rest. The /auth/google flow is reached from the browser and
carries its own state checks; only starting a flow on behalf of a
named user needs the key, since that user receives the resulting token.
"""

import logging
import secrets

from fastapi import HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from .config import config

logger = logging.getLogger(__name__)

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)
BEARER = HTTPBearer(auto_error=False)

_CHALLENGE = {"WWW-Authenticate": "ApiKey"}


def presented_key(
    header_key: str | None,
    bearer: HTTPAuthorizationCredentials | None,
) -> str | None:
    """The key a client sent. X-API-Key wins over a bearer token."""
    if header_key:
        return header_key
    if bearer and bearer.credentials:
        return bearer.credentials
    return None


def verify_api_key(
    request: Request,
    header_key: str | None = Security(API_KEY_HEADER),
    bearer: HTTPAuthorizationCredentials | None = Security(BEARER),
) -> str:
    """
    FastAPI dependency checking the caller's API key.

    Returns:
        The accepted key, or "" when auth is disabled

    Raises:
        HTTPException: 401 if auth is enabled and the key is missing or wrong
    """
    configured_key = config.AUTH_API_KEY
    if not configured_key:
        return ""

    api_key = presented_key(header_key, bearer)
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide it via X-API-Key header or Authorization Bearer token.",
            headers=_CHALLENGE,
        )

    if not _matches(api_key, configured_key):
        logger.warning(f"Rejected API key on {request.method} {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers=_CHALLENGE,
        )

    return api_key


def caller_is_trusted(
    header_key: str | None = Security(API_KEY_HEADER),
    bearer: HTTPAuthorizationCredentials | None = Security(BEARER),
) -> bool:
    """
    FastAPI dependency for routes open to anonymous callers that do
    more for key holders. Never raises; True when auth is disabled.
    """
    configured_key = config.AUTH_API_KEY
    if not configured_key:
        return True
    api_key = presented_key(header_key, bearer)
    return bool(api_key) and _matches(api_key, configured_key)


def _matches(api_key: str, configured_key: str) -> bool:
    return secrets.compare_digest(api_key.encode(), configured_key.encode())


def generate_api_key() -> str:
    """Generate a key suitable for AUTH_API_KEY."""
    return secrets.token_urlsafe(32)
