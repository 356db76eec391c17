"""Exception hierarchy for the Digiventures client.

Every failure the client surfaces derives from DigiventuresError so callers
can catch the whole family, or pick the specific failure mode they recover
from.
"""

from __future__ import annotations


class DigiventuresError(Exception):
    """Base exception for all Digiventures client errors."""

    pass


class ConfigurationError(DigiventuresError):
    """Raised when client configuration is invalid (e.g. unknown environment)."""

    pass


class AuthenticationError(DigiventuresError):
    """Raised when a token cannot be obtained from the authorization endpoint.

    Covers network failures, timeouts, error statuses and responses that do
    not carry a usable token.
    """

    pass


class ApiError(DigiventuresError):
    """Raised when an API request ends with a non-success response.

    Attributes:
        status_code: HTTP status of the final response, if one was received
        body: Response body text, if any
        method: HTTP method of the failed request
        path: Request path of the failed request
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
        method: str | None = None,
        path: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.method = method
        self.path = path


class TransientTransportError(ApiError):
    """Raised for network failures and 5xx responses once retries are exhausted.

    status_code is None when no response was received at all.
    """

    pass


class AuthFailureError(ApiError):
    """Raised when a 401/500 persists after the one re-authentication attempt."""

    pass
