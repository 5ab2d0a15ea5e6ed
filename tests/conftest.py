"""Shared fixtures: settings, a stub identity provider, and a test client."""
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient

from mauthn_client.config import Settings
from mauthn_client.main import create_app
from mauthn_client.session_data import Session, SessionCodec

PROVIDER_BASE_URL = "https://idp.example.test"
REDIRECT_URI = "http://testserver/callback"


class ProviderStub:
    """Records every request sent to the provider and answers from canned responses."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self._routes: Dict[Tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def on(self, method: str, path: str, status_code: int = 200,
           json: Optional[Any] = None, text: Optional[str] = None):
        def respond(request: httpx.Request) -> httpx.Response:
            if json is not None:
                return httpx.Response(status_code, json=json)
            return httpx.Response(status_code, text=text or "")
        self._routes[(method, path)] = respond

    def raise_on(self, method: str, path: str, exc_type=httpx.ReadTimeout):
        def respond(request: httpx.Request) -> httpx.Response:
            raise exc_type("stubbed failure", request=request)
        self._routes[(method, path)] = respond

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        respond = self._routes.get((request.method, request.url.path))
        if respond is None:
            return httpx.Response(404, text=f"no stub for {request.method} {request.url.path}")
        return respond(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def requests_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


def form_of(request: httpx.Request) -> Dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def make_settings(**overrides) -> Settings:
    values = dict(
        CLIENT_ID="test-client",
        CLIENT_SECRET="test-secret",
        REDIRECT_URI=REDIRECT_URI,
        PROVIDER_BASE_URL=PROVIDER_BASE_URL,
        SCOPE="email",
        LOG_LEVEL="DEBUG",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def provider_stub() -> ProviderStub:
    return ProviderStub()


@pytest.fixture
def app(settings, provider_stub):
    return create_app(settings, transport=provider_stub.transport)


@pytest.fixture
def client(app) -> TestClient:
    with TestClient(app) as c:
        yield c


@pytest.fixture
def codec(app) -> SessionCodec:
    return app.state.session_codec


@pytest.fixture
def session_cookie(codec) -> Callable[[Session], Dict[str, str]]:
    """Builds a Cookie header carrying the given session."""
    def build(session: Session) -> Dict[str, str]:
        return {"Cookie": f"{codec.cookie_name}={codec.encode(session)}"}
    return build
