"""
Domain errors.

Services raise the domain errors below; routes translate them into
HTTP responses (or redirects, for the OAuth callback).
"""


class MailboardError(Exception):
    """Base class for domain errors."""


class NotFound(MailboardError):
    """A referenced campaign, queue entry or record does not exist."""


class InvalidTransition(MailboardError):
    """A queue entry or campaign cannot move to the requested status."""


class Unauthorized(MailboardError):
    """OAuth state missing, mismatched, expired or already used.

    The message is for server logs only; clients get a generic failure.
    """


class ConfigurationError(MailboardError):
    """Required credentials are missing."""


class TokenError(MailboardError):
    """Google rejected a token request."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is not None:
            message = f"{message} (HTTP {self.status_code})"
        if self.body:
            message = f"{message}: {self.body}"
        return message


class TokenExchangeError(TokenError):
    """Authorization code exchange failed."""


class TokenRefreshError(TokenError):
    """Refresh token grant failed."""

