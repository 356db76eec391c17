"""Authenticated HTTP client for the Digiventures API."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from digiventures.auth.manager import AuthManager
from digiventures.config import Credentials
from digiventures.models.errors import (
    ApiError,
    AuthFailureError,
    TransientTransportError,
)
from digiventures.transport.pipeline import (
    Dispatcher,
    Middleware,
    Outcome,
    Pipeline,
    RequestContext,
    classify,
    default_middlewares,
)

logger = logging.getLogger(__name__)


class HttpClient:
    """HTTP client with token injection, transient retries and re-authentication.

    Requests are relative to the environment's base URL. Any response that
    is still unsuccessful once the pipeline is done is raised as an ApiError
    subclass carrying the status code.
    """

    def __init__(
        self,
        credentials: Credentials,
        auth: AuthManager,
        middlewares: Sequence[Middleware] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            credentials: Base URL, timeout and retry settings
            auth: Token source shared by all requests
            middlewares: Stage list overriding the default order
            transport: Optional httpx transport, mainly for tests
        """
        self.credentials = credentials
        self.auth = auth
        self._http_client = httpx.AsyncClient(
            base_url=credentials.base_url,
            timeout=credentials.timeout,
            transport=transport,
        )
        if middlewares is None:
            middlewares = default_middlewares(auth, credentials.max_retries)
        self.pipeline = Pipeline(
            middlewares, Dispatcher(self._http_client, credentials.timeout)
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request through the pipeline.

        Raises:
            AuthenticationError: If a token cannot be obtained
            AuthFailureError: If a 401/500 survives re-authentication
            TransientTransportError: If a network failure or 5xx survives retries
            ApiError: For any other unsuccessful status
        """
        context = RequestContext(
            method=method,
            path=path,
            params=dict(params or {}),
            json=json,
            headers=dict(headers or {}),
        )

        try:
            response = await self.pipeline(context)
        except TransientTransportError as e:
            logger.error(f"Request failed: {e}")
            raise

        self._raise_for_outcome(context, response)
        return response

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, json=json, **kwargs)

    async def put(self, path: str, json: Any = None, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", path, json=json, **kwargs)

    def _raise_for_outcome(
        self, context: RequestContext, response: httpx.Response
    ) -> None:
        outcome = classify(response)
        if outcome is Outcome.SUCCESS:
            return

        status = response.status_code
        logger.error(f"Request failed: {status} {context.method} {context.path}")

        error_class = {
            Outcome.AUTH_FAILURE: AuthFailureError,
            Outcome.TRANSIENT: TransientTransportError,
        }.get(outcome, ApiError)
        raise error_class(
            f"{context.method} {context.path} failed with status {status}",
            status_code=status,
            body=response.text,
            method=context.method,
            path=context.path,
        )

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        if not self._http_client.is_closed:
            await self._http_client.aclose()
            logger.debug("HTTP client closed")

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
