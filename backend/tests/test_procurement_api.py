"""
Purchase request and admin endpoint wrappers: paths and payload shapes.
"""
from __future__ import annotations

import httpx
import pytest

from identity_access.http_client import ApiClient
from identity_access.stores import MemoryStorage
from procurement import admin_api, requests_api
from utils.fake_backend import FakeBackend


pytestmark = pytest.mark.anyio("asyncio")


def _client(backend: FakeBackend, username: str = "bob") -> ApiClient:
    storage = MemoryStorage()
    storage.set_many({"access_token": backend._issue(username)["access"]})
    return ApiClient(storage, base_url="http://backend.test", transport=httpx.MockTransport(backend.handler))


@pytest.mark.anyio
async def test_list_passes_status_filter_and_unwraps_pages():
    backend = FakeBackend()
    client = _client(backend)
    rows = await requests_api.list_purchase_requests(client, {"status": "pending"})
    await client.aclose()
    assert [r["id"] for r in rows] == [1]
    assert backend.calls[-1].params == {"status": "pending"}


@pytest.mark.anyio
async def test_approve_sends_comments_and_blank_becomes_null():
    backend = FakeBackend()
    client = _client(backend)
    await requests_api.approve_purchase_request(client, "1", "  Looks fine ")
    await requests_api.reject_purchase_request(client, "3", "   ")
    await client.aclose()
    approve, reject = backend.calls[-2], backend.calls[-1]
    assert (approve.method, approve.path) == ("PATCH", "/api/requests/1/approve/")
    assert approve.json() == {"comments": "Looks fine"}
    assert reject.path == "/api/requests/3/reject/"
    assert reject.json() == {"comments": None}


@pytest.mark.anyio
async def test_create_request_is_multipart_with_optional_file():
    backend = FakeBackend()
    client = _client(backend, "alice")
    created = await requests_api.create_purchase_request(
        client,
        {"title": "Desks", "description": "Two desks for reception", "amount": "100", "request_type_id": "1"},
        {"proforma": ("quote.pdf", b"%PDF-1.4", "application/pdf")},
    )
    await client.aclose()
    call = backend.calls[-1]
    assert created["id"] == 4
    assert call.method == "POST" and call.path == "/api/requests/"
    assert b'name="title"' in call.body and b"quote.pdf" in call.body


@pytest.mark.anyio
async def test_submit_receipt_posts_file_field():
    backend = FakeBackend()
    client = _client(backend, "alice")
    await requests_api.submit_receipt(client, "2", ("receipt.pdf", b"data", "application/pdf"))
    await client.aclose()
    assert backend.calls[-1].path == "/api/requests/2/submit-receipt/"
    assert b'name="receipt"' in backend.calls[-1].body
    assert backend.requests[2]["receipt"]


@pytest.mark.anyio
async def test_create_user_drops_empty_password_pair():
    backend = FakeBackend()
    client = _client(backend, "root")
    await admin_api.create_user(
        client, {"username": "newbie", "email": "n@example.org", "password": "  ", "password_confirm": "", "role": "staff"}
    )
    await client.aclose()
    body = backend.calls[-1].json()
    assert "password" not in body and "password_confirm" not in body
    assert body["username"] == "newbie"


@pytest.mark.anyio
async def test_create_user_keeps_given_password():
    backend = FakeBackend()
    client = _client(backend, "root")
    await admin_api.create_user(
        client, {"username": "newbie", "email": "n@example.org", "password": "secret123", "password_confirm": "secret123"}
    )
    await client.aclose()
    assert backend.calls[-1].json()["password"] == "secret123"


@pytest.mark.anyio
async def test_users_list_unwraps_paginated_body():
    backend = FakeBackend()
    client = _client(backend, "root")
    users = await admin_api.list_users(client)
    await client.aclose()
    assert {u["username"] for u in users} == {"alice", "bob", "fiona", "root"}
