"""Token lifecycle management for the Digiventures API.

Fetches tokens from the authorization endpoint, caches them until their
expiration instant and shares a single in-flight fetch between concurrent
callers.
"""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from digiventures.config import Credentials
from digiventures.models.errors import AuthenticationError
from digiventures.models.tokens import AuthResponse, Session

logger = logging.getLogger(__name__)

AUTHORIZATION_PREFIX = "/authorization/"


class AuthManager:
    """Owns the session token and knows how to refresh it.

    A token is fetched lazily on first use and reused until it expires.
    While a fetch is running, every caller that needs a token awaits that
    same fetch instead of issuing another network call.
    """

    def __init__(
        self,
        credentials: Credentials,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the auth manager.

        Args:
            credentials: Application credentials and timeout settings
            http_client: Optional client for the authorization endpoint.
                A private client is created when omitted; an injected client
                stays owned by the caller and is not closed by close().
        """
        self.credentials = credentials
        self.base_url = credentials.base_url
        self.session = Session()
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=credentials.timeout
        )
        self._inflight: asyncio.Task[str] | None = None

    @property
    def authorization_path(self) -> str:
        """Path of the authorization endpoint for these credentials."""
        application_id = quote(self.credentials.application_id, safe="")
        secret = quote(self.credentials.secret, safe="")
        return f"{AUTHORIZATION_PREFIX}{application_id}/{secret}"

    @staticmethod
    def is_authorization_path(path: str) -> bool:
        """Check whether a request path or URL targets the authorization endpoint."""
        return AUTHORIZATION_PREFIX in httpx.URL(path).path

    async def get_token(self) -> str:
        """Return a valid token, fetching a new one only when needed."""
        if self.session.is_valid():
            return self.session.token

        return await self.fetch_new_token()

    async def fetch_new_token(self) -> str:
        """Fetch a fresh token, bypassing the cache.

        Joins the fetch already in flight, if any.

        Raises:
            AuthenticationError: If the token cannot be obtained
        """
        if self._inflight is None:
            self._inflight = asyncio.create_task(self._fetch())

        # Shielded so one caller's cancellation does not abort the shared fetch
        return await asyncio.shield(self._inflight)

    async def _fetch(self) -> str:
        try:
            return await self._request_token()
        finally:
            self._inflight = None

    async def _request_token(self) -> str:
        url = f"{self.base_url}{self.authorization_path}"
        logger.debug(f"Fetching new token from {self._masked_url()}")

        try:
            response = await self._http_client.get(
                url, timeout=self.credentials.timeout
            )
        except httpx.HTTPError as e:
            logger.error(f"Authentication request failed: {e}")
            raise AuthenticationError(f"Authentication failed: {e}") from e

        # httpx status errors embed the URL, which carries the secret
        if response.is_error:
            logger.error(f"Authorization endpoint returned {response.status_code}")
            raise AuthenticationError(
                "Authentication failed: authorization endpoint returned "
                f"status {response.status_code}"
            )

        try:
            auth_response = AuthResponse.model_validate(response.json())
        except ValidationError as e:
            # Field-level summary only; the raw input would echo the token
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            )
            logger.error("Authentication response missing a usable token")
            raise AuthenticationError(
                f"Authentication failed: invalid authorization response: {problems}"
            ) from e
        except ValueError as e:
            logger.error("Authentication response is not valid JSON")
            raise AuthenticationError(
                f"Authentication failed: invalid authorization response: {e}"
            ) from e

        self.session.update_from_response(auth_response)
        logger.info(
            f"Obtained token expiring at {auth_response.expiration.isoformat()} "
            f"(api version {auth_response.api_version or 'unknown'})"
        )
        return auth_response.token

    def _masked_url(self) -> str:
        application_id = quote(self.credentials.application_id, safe="")
        return f"{self.base_url}{AUTHORIZATION_PREFIX}{application_id}/***"

    def get_api_version(self) -> str | None:
        """API version learned from the most recent successful fetch."""
        return self.session.api_version

    def has_retried(self) -> bool:
        """Check whether a re-authentication happened since the last success."""
        return self.session.reauth_attempted

    def mark_retry(self) -> None:
        self.session.reauth_attempted = True

    def reset_auth_retry(self) -> None:
        self.session.reauth_attempted = False

    async def close(self) -> None:
        """Close the HTTP client if this manager created it."""
        if self._owns_http_client:
            await self._http_client.aclose()
