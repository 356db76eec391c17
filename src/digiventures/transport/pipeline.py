"""Request pipeline for authenticated API calls.

A request flows through an ordered list of middlewares before reaching the
dispatcher. Each middleware receives the request context and the next
handler, and returns the final httpx.Response:

    ReauthMiddleware -> RetryMiddleware -> AuthInjectionMiddleware -> Dispatcher

The outer re-authentication stage only sees a response once the inner retry
stage has used up its budget. Its single replay bypasses that budget, and
every attempt passes through token injection so a refreshed token is picked
up automatically.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from digiventures.auth.manager import AuthManager
from digiventures.models.errors import TransientTransportError

logger = logging.getLogger(__name__)

TOKEN_PARAM = "authorization"
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})
AUTH_FAILURE_STATUSES = frozenset({401, 500})


@dataclass
class RequestContext:
    """Outbound request descriptor shared by all pipeline stages.

    reauth_attempted is scoped to this request, so concurrent requests never
    see each other's recovery state. replay marks the single dispatch that
    follows re-authentication. A query string in path is moved into params,
    ahead of any explicit params.
    """

    method: str
    path: str
    params: dict[str, Any] = field(default_factory=dict)
    json: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    reauth_attempted: bool = False
    replay: bool = False
    attempts: int = 0

    def __post_init__(self) -> None:
        self.method = self.method.upper()

        # httpx replaces, rather than merges, a URL query when params are given
        path, _, query = self.path.partition("?")
        if query:
            self.path = path
            self.params = {**dict(httpx.QueryParams(query)), **self.params}

    @property
    def is_idempotent(self) -> bool:
        return self.method in IDEMPOTENT_METHODS


class Outcome(Enum):
    SUCCESS = "success"
    AUTH_FAILURE = "auth_failure"
    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"


def classify(response: httpx.Response) -> Outcome:
    """Classify a response for the retry and re-authentication stages.

    500 is reported as an auth failure; is_transient() still treats it as
    retryable for the generic retry stage.
    """
    status = response.status_code
    if status < 400:
        return Outcome.SUCCESS
    if status in AUTH_FAILURE_STATUSES:
        return Outcome.AUTH_FAILURE
    if status >= 500:
        return Outcome.TRANSIENT
    return Outcome.CLIENT_ERROR


def is_transient(response: httpx.Response) -> bool:
    return response.status_code >= 500


CallNext = Callable[[RequestContext], Awaitable[httpx.Response]]


class Middleware(Protocol):
    """A single pipeline stage."""

    async def __call__(
        self, context: RequestContext, call_next: CallNext
    ) -> httpx.Response:
        """Handle the request, delegating to call_next as needed.

        Args:
            context: Request being processed
            call_next: Remaining pipeline

        Returns:
            Final response for this stage
        """
        ...


class Pipeline:
    """Ordered middleware chain ending in a terminal handler."""

    def __init__(self, middlewares: Sequence[Middleware], handler: CallNext):
        self.middlewares = list(middlewares)
        self._handler = handler
        self._entry = self._build()

    def _build(self) -> CallNext:
        call_next = self._handler
        for middleware in reversed(self.middlewares):
            call_next = _bind(middleware, call_next)
        return call_next

    async def __call__(self, context: RequestContext) -> httpx.Response:
        return await self._entry(context)


def _bind(middleware: Middleware, call_next: CallNext) -> CallNext:
    async def handler(context: RequestContext) -> httpx.Response:
        return await middleware(context, call_next)

    return handler


class Dispatcher:
    """Terminal stage: sends the request over httpx."""

    def __init__(self, http_client: httpx.AsyncClient, timeout: float):
        self._http_client = http_client
        self.timeout = timeout

    async def __call__(self, context: RequestContext) -> httpx.Response:
        context.attempts += 1
        logger.debug(f"{context.method} {context.path} (attempt {context.attempts})")

        try:
            return await self._http_client.request(
                context.method,
                context.path,
                params=context.params,
                json=context.json,
                headers=context.headers,
                timeout=self.timeout,
            )
        except httpx.TransportError as e:
            raise TransientTransportError(
                f"{context.method} {context.path} failed: {e}",
                method=context.method,
                path=context.path,
            ) from e


class AuthInjectionMiddleware:
    """Attaches the current token as the authorization query parameter."""

    def __init__(self, auth: AuthManager):
        self.auth = auth

    async def __call__(
        self, context: RequestContext, call_next: CallNext
    ) -> httpx.Response:
        # The authorization endpoint must never recurse into the auth manager
        if not self.auth.is_authorization_path(context.path):
            context.params[TOKEN_PARAM] = await self.auth.get_token()
        return await call_next(context)


class RetryMiddleware:
    """Retries transient failures with exponential backoff.

    Network failures are retried for idempotent methods only; 5xx responses
    are retried for every method. 4xx responses are returned untouched, and
    so is the replay that follows re-authentication.
    After the budget is spent the last response is returned, or the last
    error re-raised.
    """

    def __init__(
        self,
        max_retries: int,
        wait: wait_base | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the retry stage.

        Args:
            max_retries: Retries allowed after the first attempt
            wait: tenacity wait strategy, exponential from 100ms by default
            sleep: Coroutine used to wait between attempts
        """
        self.max_retries = max_retries
        self.wait = wait or wait_exponential(multiplier=0.1, max=10)
        self.sleep = sleep

    async def __call__(
        self, context: RequestContext, call_next: CallNext
    ) -> httpx.Response:
        if context.replay:
            return await call_next(context)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self.wait,
            retry=(
                retry_if_result(is_transient)
                | retry_if_exception(
                    lambda e: isinstance(e, TransientTransportError)
                    and context.is_idempotent
                )
            ),
            before_sleep=lambda state: self._log_retry(context, state),
            retry_error_callback=lambda state: state.outcome.result(),
            sleep=self.sleep,
        )
        return await retrying(call_next, context)

    def _log_retry(self, context: RequestContext, state: RetryCallState) -> None:
        if state.outcome.failed:
            reason = str(state.outcome.exception())
        else:
            reason = f"status {state.outcome.result().status_code}"
        logger.warning(
            f"Retrying {context.method} {context.path} "
            f"({state.attempt_number}/{self.max_retries}) in "
            f"{state.next_action.sleep:.2f}s after {reason}"
        )


class ReauthMiddleware:
    """Bounded re-authentication on 401/500.

    The first auth failure of a request forces a token fetch and replays the
    request exactly once, without another round of transient retries. A
    second auth failure for the same request is returned to the caller.
    """

    def __init__(self, auth: AuthManager):
        self.auth = auth

    async def __call__(
        self, context: RequestContext, call_next: CallNext
    ) -> httpx.Response:
        response = await call_next(context)
        outcome = classify(response)

        if outcome is Outcome.AUTH_FAILURE and not context.reauth_attempted:
            logger.warning(
                f"{context.method} {context.path} returned {response.status_code}, "
                "retrying with a new token"
            )
            context.reauth_attempted = True
            await self.auth.fetch_new_token()
            # After the fetch, which clears the session flag
            self.auth.mark_retry()

            context.replay = True
            response = await call_next(context)
            outcome = classify(response)

        if outcome is Outcome.SUCCESS:
            self.auth.reset_auth_retry()
        return response


def default_middlewares(
    auth: AuthManager, max_retries: int, retry: RetryMiddleware | None = None
) -> list[Middleware]:
    """Standard stage order for authenticated requests."""
    return [
        ReauthMiddleware(auth),
        retry or RetryMiddleware(max_retries),
        AuthInjectionMiddleware(auth),
    ]
