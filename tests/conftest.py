from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest

from digiventures.auth.manager import AuthManager
from digiventures.config import Credentials
from digiventures.transport.client import HttpClient
from digiventures.transport.pipeline import RetryMiddleware, default_middlewares


def build_auth_payload(
    token: str = "T1", expires_in: float = 3600, version: str | None = "2.0"
) -> dict[str, Any]:
    """Authorization endpoint body expiring expires_in seconds from now."""
    expiration = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    payload: dict[str, Any] = {"token": token, "expiration": expiration.isoformat()}
    if version is not None:
        payload["api"] = {"version": version}
    return payload


class FakeApi:
    """Scripted Digiventures API served through httpx.MockTransport.

    Each path gets a queue of replies (httpx.Response or an exception to
    raise). Replies are consumed in order and the last one repeats.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._auth_replies: list[httpx.Response | Exception] = []
        self._replies: dict[str, list[httpx.Response | Exception]] = {}
        self.transport = httpx.MockTransport(self.handle)

    def script_auth(self, *replies: httpx.Response | Exception) -> None:
        self._auth_replies = list(replies)

    def script(self, path: str, *replies: httpx.Response | Exception) -> None:
        self._replies[path] = list(replies)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.startswith("/authorization/"):
            queue = self._auth_replies
        else:
            queue = self._replies.get(request.url.path, [])

        if not queue:
            return httpx.Response(404, json={"error": "not scripted"})
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def auth_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith("/authorization/")]

    @property
    def api_requests(self) -> list[httpx.Request]:
        return [
            r for r in self.requests if not r.url.path.startswith("/authorization/")
        ]


class SleepRecorder:
    """Stands in for asyncio.sleep between retries."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def auth_payload():
    """Factory for authorization endpoint bodies."""
    return build_auth_payload


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(application_id="app1", secret="s1", environment="qa")


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
async def auth(credentials: Credentials, fake_api: FakeApi):
    http_client = httpx.AsyncClient(transport=fake_api.transport)
    manager = AuthManager(credentials, http_client=http_client)
    yield manager
    await manager.close()
    await http_client.aclose()


@pytest.fixture
async def http_client(
    credentials: Credentials,
    auth: AuthManager,
    fake_api: FakeApi,
    sleeps: SleepRecorder,
):
    retry = RetryMiddleware(credentials.max_retries, sleep=sleeps)
    client = HttpClient(
        credentials,
        auth,
        middlewares=default_middlewares(auth, credentials.max_retries, retry=retry),
        transport=fake_api.transport,
    )
    yield client
    await client.close()
