"""
Google Integration Module.

Provides the OAuth 2.0 flow behind the Google Sheets contact import:
- State nonce issuance and one-time redemption
- Code and refresh-token exchange
- Per-user access token cache and rate limiting
"""

from .oauth import (
    PROVIDER,
    SHEETS_SCOPES,
    GOOGLE_AUTH_URL,
    GOOGLE_TOKEN_URL,
    GOOGLE_TOKENINFO_URL,
    LOCAL_REDIRECT_URI,
    OAuthSettings,
    AuthorizationRequest,
    TokenSet,
    GoogleOAuthManager,
    generate_state,
)
from .rate_limiter import FixedWindowRateLimiter, RateWindow
from .state_cookie import (
    OAUTH_COOKIE_NAME,
    set_state_cookie,
    clear_state_cookie,
    verify_state_cookie,
)

__all__ = [
    # OAuth
    "PROVIDER",
    "SHEETS_SCOPES",
    "GOOGLE_AUTH_URL",
    "GOOGLE_TOKEN_URL",
    "GOOGLE_TOKENINFO_URL",
    "LOCAL_REDIRECT_URI",
    "OAuthSettings",
    "AuthorizationRequest",
    "TokenSet",
    "GoogleOAuthManager",
    "generate_state",
    # Rate limiting
    "FixedWindowRateLimiter",
    "RateWindow",
    # State cookie
    "OAUTH_COOKIE_NAME",
    "set_state_cookie",
    "clear_state_cookie",
    "verify_state_cookie",
]
