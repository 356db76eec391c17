"""Authorization response and session state models.

The authorization endpoint returns the token under the ``token`` field; that
name is the single canonical contract this client accepts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import BaseModel, field_validator


class ApiInfo(BaseModel):
    """API metadata returned alongside the token."""

    version: str | None = None


class AuthResponse(BaseModel):
    """Authorization endpoint response.

    ``GET {base}/authorization/{applicationId}/{secret}`` returns
    ``{"token": ..., "expiration": "<ISO-8601>", "api": {"version": ...}}``.
    """

    token: str
    expiration: datetime
    api: ApiInfo | None = None

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Reject empty tokens; a 200 with no usable token is a failure."""
        if not v.strip():
            raise ValueError("token must not be empty")
        return v

    @field_validator("expiration")
    @classmethod
    def validate_expiration(cls, v: datetime) -> datetime:
        """Normalize naive timestamps to UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def api_version(self) -> str | None:
        return self.api.version if self.api else None


@dataclass
class Session:
    """Mutable token state owned by a single AuthManager.

    token and expires_at are always written together by a successful fetch.
    """

    token: str | None = None
    expires_at: datetime | None = None
    api_version: str | None = None
    reauth_attempted: bool = False

    def is_valid(self, now: datetime | None = None) -> bool:
        """Check whether the cached token can still be used."""
        if not self.token or self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now < self.expires_at

    def update_from_response(self, auth_response: AuthResponse) -> None:
        """Store a freshly fetched token and clear the retry flag."""
        self.token = auth_response.token
        self.expires_at = auth_response.expiration
        self.api_version = auth_response.api_version
        self.reauth_attempted = False
