"""
HTTP client: bearer attachment and the single-retry refresh interceptor.

Scenarios follow the 401 decision table: retried request, missing refresh
token, successful refresh, failed refresh, and transport errors.
"""
from __future__ import annotations

import httpx
import pytest

from identity_access.domain import Identity, Role
from identity_access.errors import ApiError
from identity_access.http_client import ApiClient, unwrap_list
from identity_access.stores import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, MemoryStorage, write_session
from utils.fake_backend import FakeBackend


pytestmark = pytest.mark.anyio("asyncio")

ALICE = Identity(id=1, username="alice", role=Role.STAFF)


class _Expiry:
    def __init__(self):
        self.count = 0

    def __call__(self):
        self.count += 1


def _client(backend: FakeBackend, storage: MemoryStorage, expiry: _Expiry) -> ApiClient:
    return ApiClient(
        storage,
        base_url="http://backend.test",
        on_session_expired=expiry,
        transport=httpx.MockTransport(backend.handler),
    )


def _logged_in_storage(backend: FakeBackend) -> MemoryStorage:
    tokens = backend._issue("alice")
    storage = MemoryStorage()
    write_session(storage, access=tokens["access"], refresh=tokens["refresh"], identity=ALICE)
    return storage


@pytest.mark.anyio
async def test_attaches_bearer_token():
    backend = FakeBackend()
    storage = _logged_in_storage(backend)
    client = _client(backend, storage, _Expiry())
    body = await client.get("/api/auth/me/")
    await client.aclose()
    assert body["username"] == "alice"
    assert backend.calls[-1].authorization == f"Bearer {storage.get(ACCESS_TOKEN_KEY)}"


@pytest.mark.anyio
async def test_unauthenticated_call_sends_no_header():
    backend = FakeBackend()
    client = _client(backend, MemoryStorage(), _Expiry())
    with pytest.raises(ApiError):
        await client.get("/api/request-types/")
    await client.aclose()
    assert backend.calls[0].authorization is None


@pytest.mark.anyio
async def test_refresh_succeeds_and_request_is_retried_once():
    backend = FakeBackend()
    storage = _logged_in_storage(backend)
    old_access = storage.get(ACCESS_TOKEN_KEY)
    backend.expire_access_tokens()
    expiry = _Expiry()
    client = _client(backend, storage, expiry)

    body = await client.get("/api/requests/")
    await client.aclose()

    assert len(unwrap_list(body)) == 3
    assert backend.paths() == ["/api/requests/", "/api/token/refresh/", "/api/requests/"]
    new_access = storage.get(ACCESS_TOKEN_KEY)
    assert new_access and new_access != old_access
    assert backend.calls[-1].authorization == f"Bearer {new_access}"
    # Refresh call goes out without a bearer header.
    assert backend.calls[1].authorization is None
    assert expiry.count == 0


@pytest.mark.anyio
async def test_refresh_failure_tears_down_and_propagates_refresh_error():
    backend = FakeBackend()
    storage = _logged_in_storage(backend)
    backend.expire_access_tokens()
    backend.revoke_refresh_tokens()
    expiry = _Expiry()
    client = _client(backend, storage, expiry)

    with pytest.raises(ApiError) as info:
        await client.get("/api/requests/")
    await client.aclose()

    assert info.value.status_code == 401
    assert info.value.payload.get("code") == "token_not_valid"
    assert expiry.count == 1
    assert backend.paths() == ["/api/requests/", "/api/token/refresh/"]


@pytest.mark.anyio
async def test_401_without_refresh_token_expires_without_refresh_call():
    backend = FakeBackend()
    storage = MemoryStorage()
    storage.set_many({ACCESS_TOKEN_KEY: "stale"})
    expiry = _Expiry()
    client = _client(backend, storage, expiry)

    with pytest.raises(ApiError) as info:
        await client.get("/api/requests/")
    await client.aclose()

    assert info.value.is_unauthorized
    assert expiry.count == 1
    assert "/api/token/refresh/" not in backend.paths()


@pytest.mark.anyio
async def test_second_401_after_refresh_propagates_without_another_refresh():
    backend = FakeBackend()
    storage = _logged_in_storage(backend)
    backend.fail("GET", "/api/requests/", 401, {"detail": "still no"})
    expiry = _Expiry()
    client = _client(backend, storage, expiry)

    with pytest.raises(ApiError) as info:
        await client.get("/api/requests/")
    await client.aclose()

    assert info.value.detail == "still no"
    assert backend.paths().count("/api/token/refresh/") == 1
    assert backend.paths().count("/api/requests/") == 2
    assert expiry.count == 0


@pytest.mark.anyio
async def test_other_errors_propagate_untouched():
    backend = FakeBackend()
    storage = _logged_in_storage(backend)
    backend.fail("GET", "/api/requests/9/", 403, {"detail": "You do not have permission"})
    client = _client(backend, storage, _Expiry())
    with pytest.raises(ApiError) as info:
        await client.get("/api/requests/9/")
    await client.aclose()
    assert info.value.status_code == 403
    assert "/api/token/refresh/" not in backend.paths()
    assert storage.get(REFRESH_TOKEN_KEY) is not None


@pytest.mark.anyio
async def test_transport_error_propagates_without_refresh():
    backend = FakeBackend()
    storage = _logged_in_storage(backend)
    backend.unreachable = True
    expiry = _Expiry()
    client = _client(backend, storage, expiry)
    with pytest.raises(httpx.TransportError):
        await client.get("/api/requests/")
    await client.aclose()
    assert backend.paths() == ["/api/requests/"]
    assert expiry.count == 0


@pytest.mark.anyio
async def test_public_call_skips_interceptor():
    backend = FakeBackend()
    storage = _logged_in_storage(backend)
    expiry = _Expiry()
    client = _client(backend, storage, expiry)
    with pytest.raises(ApiError) as info:
        await client.post("/api/token/", json={"username": "alice", "password": "wrong"}, public=True)
    await client.aclose()
    assert info.value.status_code == 401
    assert backend.calls[0].authorization is None
    assert expiry.count == 0


def test_unwrap_list_accepts_both_shapes():
    assert unwrap_list([{"id": 1}]) == [{"id": 1}]
    assert unwrap_list({"count": 1, "results": [{"id": 1}]}) == [{"id": 1}]
    assert unwrap_list(None) == []
