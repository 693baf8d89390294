"""
Per-client HTTP throttling with slowapi.

Requests carrying an API key are counted against that key, so the
mailer worker is not throttled together with whatever else shares its
address. Anonymous requests (the browser side of the OAuth flow) are
counted per IP address.

The per-user Sheets limit lives in google/rate_limiter.py; this one
guards the HTTP surface as a whole.
"""

import hashlib

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .config import config

RETRY_AFTER_SECONDS = 60


def get_rate_limit() -> str:
    """Default limit string. A non-positive RATE_LIMIT_PER_MINUTE turns throttling off."""
    limit = config.RATE_LIMIT_PER_MINUTE
    if limit <= 0:
        return "1000000/minute"
    return f"{limit}/minute"


def rate_limit_key(request: Request) -> str:
    """Bucket key: a digest of the presented API key, else the client address."""
    api_key = request.headers.get("x-api-key")
    if not api_key:
        scheme, _, token = request.headers.get("authorization", "").partition(" ")
        if scheme.lower() == "bearer":
            api_key = token.strip()

    if api_key:
        return "key:" + hashlib.sha256(api_key.encode()).hexdigest()[:16]
    return "ip:" + get_remote_address(request)


limiter = Limiter(
    key_func=rate_limit_key,
    default_limits=[get_rate_limit()],
    storage_uri="memory://",
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded. Please try again later.",
            "retry_after": RETRY_AFTER_SECONDS,
        },
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


def setup_rate_limiting(app: FastAPI) -> None:
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
