# Shared fixtures: throwaway SQLite database, stubbed identity providers,
# and a TestClient wired to both through dependency overrides.

import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import unquote

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import qots.models  # noqa: F401
from qots.core.config import settings
from qots.core.database import Base, get_db
from qots.core.dependencies import get_http_client
from qots.main import app

SITE_URL = "https://site"

Reply = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class ProviderStub:
    """Routes outbound provider calls to canned responses and records them."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Reply] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, url: str, reply: Reply) -> None:
        self.routes[(method.upper(), url)] = reply

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        reply = self.routes.get((request.method, url))
        if reply is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if callable(reply):
            return reply(request)
        return reply

    def calls_to(self, url: str) -> List[httpx.Request]:
        return [r for r in self.requests if str(r.url).split("?")[0] == url]


@pytest.fixture(autouse=True)
def oauth_settings(monkeypatch):
    monkeypatch.setattr(settings, "SITE_URL", SITE_URL)
    monkeypatch.setattr(settings, "GITHUB_CLIENT_ID", "gh-client")
    monkeypatch.setattr(settings, "GITHUB_CLIENT_SECRET", "gh-secret")
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "google-client")
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_SECRET", "google-secret")
    monkeypatch.setattr(settings, "OAUTH_SEPARATE_CALLBACK", False)
    monkeypatch.setattr(settings, "OAUTH_DIAGNOSTICS_ENABLED", False)
    monkeypatch.setattr(settings, "DEBUG", False)
    monkeypatch.setattr(settings, "COOKIE_SECURE", True)
    monkeypatch.setattr(settings, "COOKIE_SAMESITE", "lax")


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "qots-test.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return path


@pytest.fixture
def sync_engine(db_path):
    engine = create_engine(f"sqlite:///{db_path}")
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_path):
    # NullPool: every session opens its own connection on the running loop
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def provider_stub():
    return ProviderStub()


@pytest.fixture
def client(session_factory, provider_stub):
    async def override_get_db():
        async with session_factory() as session:
            yield session
            await session.commit()

    async def override_get_http_client():
        transport = httpx.MockTransport(provider_stub.handler)
        async with httpx.AsyncClient(transport=transport) as http_client:
            yield http_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_http_client] = override_get_http_client
    yield TestClient(app, base_url="https://testserver", follow_redirects=False)
    app.dependency_overrides.clear()


def set_cookie_headers(response) -> Dict[str, str]:
    """Map cookie name -> full Set-Cookie header value."""
    headers = {}
    for header in response.headers.get_list("set-cookie"):
        name = header.split("=", 1)[0]
        headers[name] = header
    return headers


def decode_user_data(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Read back a user_data cookie value the way page scripts do."""
    if not raw:
        return None
    try:
        data = json.loads(unquote(raw))
    except ValueError:
        return None
    return data if isinstance(data, dict) else None
