"""
Google OAuth routes for the Sheets integration.

Failures never reach the browser in detail: the callback redirects
with a generic ?integration=error marker and the JSON endpoints return
a short {"error": ...} body. The cause is logged server-side.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from ..auth import caller_is_trusted, verify_api_key
from ..config import config, get_oauth_manager
from ..exceptions import TokenExchangeError, TokenRefreshError, Unauthorized
from ..google import (
    GoogleOAuthManager,
    PROVIDER,
    clear_state_cookie,
    set_state_cookie,
    verify_state_cookie,
)
from ..schemas import (
    GoogleAuthURLResponse,
    TokenExchangeRequest,
    TokenExchangeResponse,
    TokenRefreshRequest,
    TokenRefreshResponse,
    TokenStatusRequest,
    TokenStatusResponse,
    AccessTokenRequest,
    AccessTokenResponse,
)

logger = logging.getLogger(__name__)

OAuthManagerDep = Annotated[GoogleOAuthManager, Depends(get_oauth_manager)]

auth_router = APIRouter(prefix="/auth/google", tags=["google-auth"])
router = APIRouter(
    prefix="/google",
    tags=["google"],
    dependencies=[Depends(verify_api_key)]
)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _integration_redirect(outcome: str) -> RedirectResponse:
    return RedirectResponse(
        url=f"{config.APP_URL.rstrip('/')}/contacts?integration={outcome}",
        status_code=302,
    )


# ─────────────────────────────────────────────────────────────
# Authorization flow
# ─────────────────────────────────────────────────────────────

@auth_router.get("", response_model=GoogleAuthURLResponse)
async def get_google_auth_url(
    manager: OAuthManagerDep,
    trusted: Annotated[bool, Depends(caller_is_trusted)],
    user_id: str | None = None
):
    """
    Get the Google consent URL.

    The client should redirect the user to this URL. Google sends the
    user back to /auth/google/callback with the state issued here.

    Binding the flow to a user_id makes the callback cache the token
    for that user, so it takes the API key. Anonymous flows get tokens
    back only through /auth/google/token.
    """
    if user_id and not trusted:
        logger.warning(f"Refused anonymous Google auth flow for user {user_id}")
        return _error("API key required to start a flow for a user", 401)

    auth_request = manager.issue_authorization_url(user_id=user_id)

    response = JSONResponse(
        GoogleAuthURLResponse(url=auth_request.url, state=auth_request.state)
        .model_dump(by_alias=True)
    )
    set_state_cookie(response, auth_request.state)
    return response


@auth_router.get("/callback")
async def google_auth_callback(
    request: Request,
    manager: OAuthManagerDep,
    state: str | None = None,
    code: str | None = None,
    error: str | None = None
) -> RedirectResponse:
    """
    OAuth redirect endpoint.

    Redeems the state, exchanges the code and caches the access token
    for the user who started the flow. The state is burned whatever
    the outcome.
    """
    try:
        if not verify_state_cookie(request, state):
            raise Unauthorized("State does not match browser cookie")

        if error:
            raise Unauthorized(f"Provider returned error: {error}")

        record = manager.consume_state(state, PROVIDER)

        if not code:
            raise Unauthorized("No authorization code received")

        tokens = await manager.exchange_code_for_tokens(code)
        if record.user_id:
            manager.cache_token(record.user_id, tokens.access_token, tokens.expires_in)

        logger.info(f"Google Sheets connected for user {record.user_id or '<anonymous>'}")
        response = _integration_redirect("success")

    except (Unauthorized, TokenExchangeError) as e:
        logger.warning(f"Google OAuth callback rejected: {e}")
        response = _integration_redirect("error")
    except Exception:
        logger.exception("Google OAuth callback error")
        response = _integration_redirect("error")
    finally:
        manager.invalidate_state(state, PROVIDER)

    clear_state_cookie(response)
    return response


@auth_router.post(
    "/token",
    response_model=TokenExchangeResponse,
    response_model_exclude_none=True,
)
async def exchange_token(
    request: TokenExchangeRequest,
    manager: OAuthManagerDep
):
    """Exchange an authorization code for tokens (programmatic callback)."""
    if not request.code:
        return _error("No code provided", 400)

    try:
        manager.consume_state(request.state, PROVIDER)
    except Unauthorized as e:
        logger.warning(f"Token exchange rejected: {e}")
        manager.invalidate_state(request.state, PROVIDER)
        return _error("Invalid OAuth state", 400)

    try:
        tokens = await manager.exchange_code_for_tokens(request.code)
    except TokenExchangeError as e:
        logger.error(f"Token exchange error: {e}")
        return _error("Failed to exchange code for tokens", 400)
    except Exception:
        logger.exception("OAuth token exchange error")
        return _error("Failed to process OAuth callback", 500)

    return TokenExchangeResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
        token_type=tokens.token_type,
    )


@auth_router.post("/refresh", response_model=TokenRefreshResponse)
async def refresh_token(
    request: TokenRefreshRequest,
    manager: OAuthManagerDep
):
    """Trade a refresh token for a new access token."""
    if not request.refresh_token:
        return _error("Refresh token is required", 400)

    try:
        tokens = await manager.refresh_access_token(request.refresh_token)
    except TokenRefreshError as e:
        logger.error(f"Token refresh failed: {e}")
        return _error("Failed to refresh access token", 401)
    except Exception:
        logger.exception("Token refresh error")
        return _error("Internal server error", 500)

    return TokenRefreshResponse(
        access_token=tokens.access_token,
        expires_in=tokens.expires_in,
        scope=tokens.scope,
        token_type=tokens.token_type,
    )


# ─────────────────────────────────────────────────────────────
# Token use
# ─────────────────────────────────────────────────────────────

@router.post("/token-status", response_model=TokenStatusResponse)
async def token_status(
    request: TokenStatusRequest,
    manager: OAuthManagerDep
):
    """Report whether an access token is still accepted by Google."""
    if not request.access_token:
        return _error("Access token is required", 400)

    status = await manager.check_token_status(request.access_token, request.refresh_token)
    return TokenStatusResponse(**status)


@router.post("/access-token", response_model=AccessTokenResponse)
async def get_access_token(
    request: AccessTokenRequest,
    manager: OAuthManagerDep
):
    """
    Hand out an access token for a Sheets import.

    Throttled per user. Serves the cached token when there is one,
    otherwise refreshes with the supplied refresh token and caches the
    result.
    """
    if not request.user_id:
        return _error("Missing required parameters", 400)

    if not manager.check_rate_limit(
        request.user_id,
        limit=config.SHEETS_RATE_LIMIT,
        window_ms=config.SHEETS_RATE_WINDOW_MS,
    ):
        return _error("Rate limit exceeded. Please try again later.", 429)

    cached = manager.get_cached_token(request.user_id)
    if cached:
        return AccessTokenResponse(access_token=cached, from_cache=True)

    if not request.refresh_token:
        return _error("Authentication required", 401)

    try:
        tokens = await manager.refresh_access_token(request.refresh_token)
    except TokenRefreshError as e:
        logger.error(f"Token refresh for user {request.user_id} failed: {e}")
        return _error("Authentication required", 401)

    manager.cache_token(request.user_id, tokens.access_token, tokens.expires_in)
    return AccessTokenResponse(access_token=tokens.access_token, from_cache=False)
