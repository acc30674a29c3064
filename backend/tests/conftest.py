"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend, make `backend/` and
`backend/web` importable (flat layout, as in the container), and wire the app
against an in-memory fake of the REST backend.
"""
import sys
from pathlib import Path

import httpx
import pytest

# Ensure modules in backend/ and backend/web are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
WEB_DIR = BACKEND_DIR / "web"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(REPO_ROOT), str(BACKEND_DIR), str(WEB_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

from utils.fake_backend import FakeBackend  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_env_toggles(monkeypatch: pytest.MonkeyPatch):
    """Keep env-driven settings deterministic (dev defaults) per test."""
    for var in (
        "PROCURE_ENV",
        "PROCURE_API_BASE_URL",
        "PROCURE_API_TIMEOUT",
        "PROCURE_STORAGE_BACKEND",
        "PROCURE_DATABASE_URL",
        "DATABASE_URL",
        "PROCURE_STORAGE_TABLE",
        "PROCURE_QUERY_STALE_SECONDS",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def registry(monkeypatch: pytest.MonkeyPatch, fake_backend: FakeBackend):
    """Fresh browser context registry talking to the fake backend.

    Replaces `main.REGISTRY` so no state leaks between tests.
    """
    import main  # type: ignore
    from context import BrowserContextRegistry  # type: ignore

    reg = BrowserContextRegistry(main.SETTINGS, transport=httpx.MockTransport(fake_backend.handler))
    monkeypatch.setattr(main, "REGISTRY", reg)
    return reg


@pytest.fixture
async def client(registry):
    """ASGI client over https so the Secure browser cookie round-trips."""
    import main  # type: ignore

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=main.app), base_url="https://test") as c:
        yield c
    await registry.aclose()


async def login(client: httpx.AsyncClient, username: str, password: str) -> httpx.Response:
    """Load the login page (to obtain cookie + CSRF token) and submit credentials."""
    import re

    page = await client.get("/login")
    match = re.search(r'name="csrf_token" value="([^"]+)"', page.text)
    assert match, "login form must carry a CSRF token"
    return await client.post(
        "/login",
        data={"username": username, "password": password, "csrf_token": match.group(1)},
        follow_redirects=False,
    )


@pytest.fixture
def login_as(client):
    async def _login(username: str, password: str | None = None) -> httpx.Response:
        return await login(client, username, password or f"{username}-pass")

    return _login
