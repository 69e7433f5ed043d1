"""Shared test fixtures for pkceflow.

Provides a valid raw configuration, the validated configuration built from
it, an in-memory session, and a recording mock provider that plugs an
:class:`httpx.MockTransport` into :class:`~pkceflow.client.HttpTransport`
so no test ever touches the network.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Callable, Optional

import httpx
import pytest

from pkceflow.client import HttpTransport
from pkceflow.config import load_config
from pkceflow.models import Configuration
from pkceflow.output import reset_output
from pkceflow.session import InMemorySession


TOKEN_URL = "https://idp.example/oauth/token"
USERINFO_URL = "https://idp.example/oauth/userinfo"
AUTHORIZE_URL = "https://idp.example/oauth/authorize"
REDIRECT_URI = "https://app.example/callback"


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> Iterator[None]:
    """Reset the global OutputManager after every test."""
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Configuration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def raw_config() -> dict[str, Any]:
    """A valid raw configuration mapping with https endpoints."""
    return {
        "clientId": "client-123",
        "authorizeUrl": AUTHORIZE_URL + "/",
        "tokenUrl": TOKEN_URL,
        "userInfoUrl": USERINFO_URL,
        "redirectUri": REDIRECT_URI,
    }


@pytest.fixture
def config(raw_config: dict[str, Any]) -> Configuration:
    return load_config(raw_config)


@pytest.fixture
def session() -> InMemorySession:
    return InMemorySession()


# ---------------------------------------------------------------------------
# Mock provider
# ---------------------------------------------------------------------------


class MockProvider:
    """Records requests and answers them from per-URL handlers.

    Unrouted URLs answer 404 so a test notices unexpected calls.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def route(
        self,
        method: str,
        url: str,
        status: int = 200,
        json_body: Optional[Any] = None,
        text: Optional[str] = None,
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    ) -> None:
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                if text is not None:
                    return httpx.Response(status, text=text)
                return httpx.Response(status, json=json_body)
        self._routes[(method.upper(), url)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url).split("?", 1)[0]
        handler = self._routes.get((request.method, url))
        if handler is None:
            return httpx.Response(404, json={"error": "not_found"})
        return handler(request)

    def transport(self) -> HttpTransport:
        return HttpTransport(transport=httpx.MockTransport(self))

    @staticmethod
    def form(request: httpx.Request) -> dict[str, str]:
        """Decode a recorded form-encoded request body."""
        from urllib.parse import parse_qsl

        return dict(parse_qsl(request.content.decode("utf-8"), keep_blank_values=True))


@pytest.fixture
def provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def transport(provider: MockProvider) -> Iterator[HttpTransport]:
    http = provider.transport()
    yield http
    http.close()


