"""Digiventures SDK entry point.

Wires credentials, token management, the authenticated HTTP client and the
resource services together.
"""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

import httpx

from digiventures.auth.manager import AuthManager
from digiventures.config import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT_MS,
    Credentials,
    Environment,
)
from digiventures.models.legajo import FileResponse
from digiventures.services.legajo import LegajoService
from digiventures.transport.client import HttpClient

logger = logging.getLogger(__name__)


class DigiventuresSDK:
    """Client for the Digiventures API.

    Example:
        async with DigiventuresSDK("app-id", "secret", "qa") as sdk:
            legajo = await sdk.legajo.get("legajo-id")
    """

    def __init__(
        self,
        application_id: str,
        secret: str,
        environment: Environment | str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the SDK.

        Args:
            application_id: Application identifier issued by Digiventures
            secret: Application secret
            environment: qa, staging or production
            timeout_ms: Per-attempt HTTP timeout in milliseconds
            max_retries: Transient-failure retries per request
            transport: Optional httpx transport shared by all HTTP clients

        Raises:
            ConfigurationError: If the environment or limits are invalid
        """
        self.credentials = Credentials(
            application_id=application_id,
            secret=secret,
            environment=environment,
            timeout_ms=timeout_ms,
            max_retries=max_retries,
        )
        self._auth_http_client = httpx.AsyncClient(
            timeout=self.credentials.timeout, transport=transport
        )
        self.auth = AuthManager(self.credentials, http_client=self._auth_http_client)
        self.client = HttpClient(self.credentials, self.auth, transport=transport)
        self.legajo = LegajoService(self.client, self.auth)

    async def get_file(self, file_url: str) -> FileResponse:
        """Download a file by URL or path.

        Absolute URLs are reduced to their path and query, which are then
        requested against the configured base URL.
        """
        response = await self.client.get(_path_of(file_url))
        return FileResponse.model_validate(response.json())

    async def close(self) -> None:
        """Close all HTTP clients."""
        await self.client.close()
        await self.auth.close()
        await self._auth_http_client.aclose()

    async def __aenter__(self) -> DigiventuresSDK:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def _path_of(file_url: str) -> str:
    if not file_url.startswith(("http://", "https://")):
        return file_url

    parts = urlsplit(file_url)
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    return path
