"""Shared test fixtures."""

from typing import Any

import httpx
import pytest

from sakurafm.client import SakuraClient

CLERK_COOKIES = [
    ("set-cookie", "__cf_bm=cfvalue; Path=/; HttpOnly"),
    ("set-cookie", "__client=clientjwt; Path=/; Secure"),
    ("set-cookie", "__client_uat=0; Path=/"),
]


class FakeSakura:
    """Serves canned responses by method and path, and records every request.

    Responses queued for a route are served in order; the last one repeats.
    """

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], list[dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, status_code: int = 200, **kwargs: Any) -> None:
        """Queue a response; *kwargs* go to ``httpx.Response``."""
        self._routes.setdefault((method, path), []).append({"status_code": status_code, **kwargs})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, text=f"no route for {request.method} {request.url.path}")
        canned = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(**canned)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def add_clerk_client(self) -> None:
        """Route the cookie bootstrap endpoint."""
        self.add("GET", "/v1/client", headers=CLERK_COOKIES, json={"response": {}})


@pytest.fixture
def sakura() -> FakeSakura:
    fake = FakeSakura()
    fake.add_clerk_client()
    return fake


@pytest.fixture
async def http(sakura):
    """An AsyncClient wired to the fake service."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(sakura.handler)) as client:
        yield client


@pytest.fixture
def client(http) -> SakuraClient:
    return SakuraClient(http=http, user_agent="pytest-agent")
