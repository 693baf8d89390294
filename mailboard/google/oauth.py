"""
Google OAuth 2.0 for Sheets and Drive access.

Issues one-time state nonces, exchanges authorization codes and refresh
tokens at Google's token endpoint, and keeps short-lived access tokens
and per-user rate-limit counters in memory.

Token requests are made exactly once. Failures surface as
TokenExchangeError / TokenRefreshError so callers can choose their own
retry policy.
"""

import logging
import secrets
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, AsyncIterator, Callable
from urllib.parse import urlencode

import httpx

from ..cache import MemoryCache
from ..database.models import DBOAuthState
from ..exceptions import (
    ConfigurationError,
    TokenExchangeError,
    TokenRefreshError,
    Unauthorized,
)
from .rate_limiter import FixedWindowRateLimiter

if TYPE_CHECKING:
    from ..config import Config
    from ..database import OAuthStateRepository


logger = logging.getLogger(__name__)


PROVIDER = "google"

SHEETS_SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "https://www.googleapis.com/auth/drive.readonly",
    "https://www.googleapis.com/auth/drive.file",
]

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_TOKENINFO_URL = "https://www.googleapis.com/oauth2/v1/tokeninfo"

# Callback used outside production
LOCAL_REDIRECT_URI = "http://localhost:3000/auth/google/callback"

DEFAULT_STATE_TTL_SECONDS = 600
DEFAULT_RATE_LIMIT = 100
DEFAULT_RATE_WINDOW_MS = 60_000
DEFAULT_SWEEP_EVERY = 1000  # rate-limit checks between sweeps


@dataclass
class OAuthSettings:
    """Credentials and endpoints for one OAuth client."""
    client_id: str
    client_secret: str = field(repr=False)
    redirect_uri: str
    scopes: list[str] = field(default_factory=lambda: list(SHEETS_SCOPES))
    state_ttl_seconds: int = DEFAULT_STATE_TTL_SECONDS

    @classmethod
    def from_config(cls, config: "Config") -> "OAuthSettings":
        """
        Build settings from the environment.

        Raises:
            ConfigurationError: if a required credential is missing
        """
        missing = [
            name for name, value in (
                ("GOOGLE_CLIENT_ID", config.GOOGLE_CLIENT_ID),
                ("GOOGLE_CLIENT_SECRET", config.GOOGLE_CLIENT_SECRET),
            ) if not value
        ]

        redirect_uri = config.GOOGLE_REDIRECT_URI
        if config.is_production:
            if not redirect_uri:
                missing.append("GOOGLE_REDIRECT_URI")
        else:
            redirect_uri = redirect_uri or LOCAL_REDIRECT_URI

        if missing:
            raise ConfigurationError(
                f"Missing required Google OAuth settings: {', '.join(missing)}"
            )

        return cls(
            client_id=config.GOOGLE_CLIENT_ID,
            client_secret=config.GOOGLE_CLIENT_SECRET,
            redirect_uri=redirect_uri,
            state_ttl_seconds=config.OAUTH_STATE_TTL_SECONDS,
        )


@dataclass
class AuthorizationRequest:
    url: str
    state: str


@dataclass
class TokenSet:
    """Tokens returned by Google's token endpoint."""
    access_token: str
    expires_in: int
    token_type: str = "Bearer"
    scope: str = ""
    refresh_token: str | None = None

    @classmethod
    def from_response(cls, data: dict) -> "TokenSet":
        return cls(
            access_token=data["access_token"],
            expires_in=int(data.get("expires_in", 3600)),
            token_type=data.get("token_type", "Bearer"),
            scope=data.get("scope", ""),
            refresh_token=data.get("refresh_token"),
        )


def generate_state() -> str:
    """Generate a secure random state parameter for CSRF protection."""
    return secrets.token_urlsafe(32)


class GoogleOAuthManager:
    """
    OAuth exchange manager for the Google Sheets integration.

    Construct one per process and share it. State records live in the
    database; the token cache and rate-limit counters live in this
    object's memory, so instances behind a load balancer do not see
    each other's cached tokens or counters.
    """

    def __init__(
        self,
        settings: OAuthSettings,
        states: "OAuthStateRepository",
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self._states = states
        self._http_client = http_client
        self._clock = clock
        self._tokens = MemoryCache(clock=clock)
        self.rate_limiter = FixedWindowRateLimiter(clock=clock)
        self.sweep_every = DEFAULT_SWEEP_EVERY
        self._hits_since_sweep = 0

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient() as client:
                yield client

    # ─────────────────────────────────────────────────────────────
    # Authorization requests and state nonces
    # ─────────────────────────────────────────────────────────────

    def issue_authorization_url(self, user_id: str | None = None) -> AuthorizationRequest:
        """
        Create a state nonce and the consent URL that carries it.

        Requests offline access with a forced consent prompt so Google
        hands out a refresh token even when the user consented before.
        """
        state = generate_state()
        params = {
            "client_id": self.settings.client_id,
            "redirect_uri": self.settings.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.settings.scopes),
            "access_type": "offline",
            "state": state,
            "prompt": "consent",
            "include_granted_scopes": "true",
        }

        now = self._now_ms()
        self._states.add(
            provider=PROVIDER,
            state=state,
            redirect_uri=self.settings.redirect_uri,
            expires_at=now + self.settings.state_ttl_seconds * 1000,
            user_id=user_id,
            created_at=now,
        )

        return AuthorizationRequest(url=f"{GOOGLE_AUTH_URL}?{urlencode(params)}", state=state)

    def consume_state(self, state: str | None, provider: str = PROVIDER) -> DBOAuthState:
        """
        Redeem a state nonce from a callback.

        Succeeds once per issued state. The reasons in the raised
        errors are for logs; clients only ever see a generic failure.

        Raises:
            Unauthorized: state missing, unknown, mismatched, used or expired
        """
        if not state:
            raise Unauthorized("Missing OAuth state")

        record = self._states.get(state, provider)
        if record is None:
            raise Unauthorized("Unknown OAuth state")

        if record.provider != provider or not secrets.compare_digest(
            record.state.encode(), state.encode()
        ):
            raise Unauthorized("OAuth state mismatch")

        if record.used:
            raise Unauthorized("OAuth state already used")

        now = self._now_ms()
        if record.is_expired(now):
            raise Unauthorized("OAuth state expired")

        if not self._states.mark_used(record.id, now):
            raise Unauthorized("OAuth state already used")

        record.used = True
        record.used_at = now
        return record

    def invalidate_state(self, state: str | None, provider: str = PROVIDER) -> bool:
        """Burn a state without redeeming it. Returns True if it was still live."""
        if not state:
            return False
        record = self._states.get(state, provider)
        if record is None or record.used:
            return False
        return self._states.mark_used(record.id, self._now_ms())

    def cleanup_expired_states(self) -> int:
        """Delete state records past their expiry. Returns count deleted."""
        deleted = self._states.delete_expired(self._now_ms())
        if deleted:
            logger.info(f"Removed {deleted} expired OAuth states")
        return deleted

    # ─────────────────────────────────────────────────────────────
    # Token endpoint
    # ─────────────────────────────────────────────────────────────

    async def exchange_code_for_tokens(self, code: str) -> TokenSet:
        """
        Exchange authorization code for access and refresh tokens.

        Raises:
            TokenExchangeError: if Google rejects the code or is unreachable
        """
        data = {
            "client_id": self.settings.client_id,
            "client_secret": self.settings.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.settings.redirect_uri,
        }

        async with self._client() as client:
            try:
                response = await client.post(GOOGLE_TOKEN_URL, data=data)
            except httpx.HTTPError as e:
                raise TokenExchangeError(f"Token endpoint unreachable: {type(e).__name__}") from e

        if not response.is_success:
            logger.error(f"Token exchange failed with {response.status_code}: {response.text}")
            raise TokenExchangeError(
                "Failed to exchange code for tokens",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            return TokenSet.from_response(response.json())
        except (ValueError, KeyError) as e:
            raise TokenExchangeError("Malformed token response", body=response.text) from e

    async def refresh_access_token(self, refresh_token: str) -> TokenSet:
        """
        Get a fresh access token from a refresh token.

        Google may omit the refresh token in the reply; the one passed
        in is carried over in that case.

        Raises:
            TokenRefreshError: if Google rejects the refresh token or is unreachable
        """
        data = {
            "client_id": self.settings.client_id,
            "client_secret": self.settings.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        async with self._client() as client:
            try:
                response = await client.post(GOOGLE_TOKEN_URL, data=data)
            except httpx.HTTPError as e:
                raise TokenRefreshError(f"Token endpoint unreachable: {type(e).__name__}") from e

        if not response.is_success:
            logger.error(f"Token refresh failed with {response.status_code}: {response.text}")
            raise TokenRefreshError(
                "Failed to refresh access token",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            tokens = TokenSet.from_response(response.json())
        except (ValueError, KeyError) as e:
            raise TokenRefreshError("Malformed token response", body=response.text) from e

        if tokens.refresh_token is None:
            tokens.refresh_token = refresh_token
        return tokens

    async def check_token_status(self, access_token: str, refresh_token: str | None = None) -> dict:
        """Ask Google whether an access token is still accepted."""
        async with self._client() as client:
            try:
                response = await client.get(
                    GOOGLE_TOKENINFO_URL, params={"access_token": access_token}
                )
                is_valid = response.is_success
            except httpx.HTTPError as e:
                logger.warning(f"Token info lookup failed: {e}")
                is_valid = False

        return {
            "is_valid": is_valid,
            "has_refresh_token": bool(refresh_token),
            "can_refresh": bool(refresh_token) and not is_valid,
        }

    # ─────────────────────────────────────────────────────────────
    # Access token cache
    # ─────────────────────────────────────────────────────────────

    def cache_token(self, user_id: str, token: str, expires_in: int) -> None:
        self._tokens.set(user_id, token, ttl=expires_in)

    def get_cached_token(self, user_id: str) -> str | None:
        """Cached access token for user, or None. Expired tokens are evicted."""
        return self._tokens.get(user_id)

    # ─────────────────────────────────────────────────────────────
    # Rate limiting
    # ─────────────────────────────────────────────────────────────

    def check_rate_limit(
        self,
        user_id: str,
        limit: int = DEFAULT_RATE_LIMIT,
        window_ms: int = DEFAULT_RATE_WINDOW_MS,
    ) -> bool:
        """
        Count one call for user. False means the user should try again later.

        Every sweep_every calls, run sweep_expired() so counters and
        tokens of users who went quiet do not pile up.
        """
        self._hits_since_sweep += 1
        if self._hits_since_sweep >= self.sweep_every:
            self._hits_since_sweep = 0
            self.sweep_expired()
        return self.rate_limiter.hit(user_id, limit, window_ms)

    def clear_expired_rate_limits(self) -> int:
        return self.rate_limiter.clear_expired()

    def sweep_expired(self) -> tuple[int, int]:
        """Drop lapsed rate-limit windows and cached tokens. Returns (windows, tokens)."""
        windows = self.clear_expired_rate_limits()
        tokens = self._tokens.cleanup_expired()
        if windows or tokens:
            logger.debug(f"Swept {windows} rate-limit windows and {tokens} cached tokens")
        return windows, tokens
