"""
Purchase request, profile and admin pages against the fake backend.
"""
from __future__ import annotations

import re
from urllib.parse import parse_qs

import pytest


pytestmark = pytest.mark.anyio("asyncio")

HX = {"HX-Request": "true"}


def csrf_of(html: str) -> str:
    match = re.search(r'name="csrf_token" value="([^"]+)"', html)
    assert match, "page must carry a CSRF token"
    return match.group(1)


@pytest.mark.anyio
async def test_approver_approves_pending_request_and_lists_refresh(client, login_as, fake_backend):
    await login_as("bob")
    pending = await client.get("/approvals/pending", headers=HX)
    assert "Laptops" in pending.text

    detail = await client.get("/requests/1", headers=HX)
    assert "Approve" in detail.text and "Reject" in detail.text
    assert "1,250,000 RWF" in detail.text

    r = await client.post(
        "/requests/1/approve",
        data={"csrf_token": csrf_of(detail.text), "comments": "Within budget"},
        headers=HX,
    )
    assert r.status_code == 200
    assert '"/requests/1"' in r.headers["HX-Location"]
    call = next(c for c in fake_backend.calls if c.method == "PATCH")
    assert call.path == "/api/requests/1/approve/"
    assert call.json() == {"comments": "Within budget"}

    # The cached pending list was invalidated by the mutation.
    pending_again = await client.get("/approvals/pending", headers=HX)
    assert "Laptops" not in pending_again.text
    detail_again = await client.get("/requests/1", headers=HX)
    assert "You already approved this request." in detail_again.text


@pytest.mark.anyio
async def test_decision_without_csrf_is_rejected(client, login_as, fake_backend):
    await login_as("bob")
    r = await client.post("/requests/1/reject", data={"comments": "no"}, headers=HX)
    assert r.status_code == 403
    assert "PATCH" not in {c.method for c in fake_backend.calls}


@pytest.mark.anyio
async def test_failed_decision_shows_backend_message(client, login_as, fake_backend):
    await login_as("bob")
    detail = await client.get("/requests/1", headers=HX)
    fake_backend.fail("PATCH", "/api/requests/1/reject/", 400, {"detail": "Request already processed"})
    r = await client.post("/requests/1/reject", data={"csrf_token": csrf_of(detail.text)}, headers=HX)
    assert r.status_code == 200
    assert "Request already processed" in r.text


@pytest.mark.anyio
async def test_staff_creates_request(client, login_as, fake_backend):
    await login_as("alice")
    form = await client.get("/requests/create", headers=HX)
    assert 'name="title"' in form.text and "Equipment" in form.text

    r = await client.post(
        "/requests/create",
        data={
            "csrf_token": csrf_of(form.text),
            "title": "Office chairs",
            "description": "Ten ergonomic chairs for the new office",
            "amount": "450000",
            "request_type_id": "1",
            "items": "Chair | 10 | 45000",
        },
        headers=HX,
    )
    assert r.status_code == 200
    assert '"/requests/4"' in r.headers["HX-Location"]
    created = [c for c in fake_backend.calls if c.method == "POST" and c.path == "/api/requests/"]
    assert created
    assert parse_qs(created[0].body.decode())["title"] == ["Office chairs"]


@pytest.mark.anyio
async def test_create_request_validation_errors_stay_on_form(client, login_as, fake_backend):
    await login_as("alice")
    form = await client.get("/requests/create", headers=HX)
    r = await client.post(
        "/requests/create",
        data={"csrf_token": csrf_of(form.text), "title": "ab", "description": "too short", "amount": "-5",
              "request_type_id": "1"},
        headers=HX,
    )
    assert r.status_code == 200
    assert "HX-Location" not in r.headers
    assert "at least 3 characters" in r.text
    assert not [c for c in fake_backend.calls if c.method == "POST" and c.path == "/api/requests/"]


@pytest.mark.anyio
async def test_owner_sees_receipt_form_on_approved_request(client, login_as):
    await login_as("alice")
    r = await client.get("/requests/2", headers=HX)
    assert "Submit Receipt" in r.text
    assert "/requests/2/approve" not in r.text


@pytest.mark.anyio
async def test_receipt_upload(client, login_as, fake_backend):
    await login_as("alice")
    detail = await client.get("/requests/2", headers=HX)
    r = await client.post(
        "/requests/2/receipt",
        data={"csrf_token": csrf_of(detail.text)},
        files={"receipt": ("receipt.pdf", b"%PDF-1.4", "application/pdf")},
        headers=HX,
    )
    assert r.status_code == 200
    assert "/api/requests/2/submit-receipt/" in fake_backend.paths("POST")
    after = await client.get("/requests/2", headers=HX)
    assert "View receipt" in after.text


@pytest.mark.anyio
async def test_missing_request_shows_not_found(client, login_as):
    await login_as("alice")
    r = await client.get("/requests/999", headers=HX)
    assert r.status_code == 200
    assert "Purchase request not found." in r.text


@pytest.mark.anyio
async def test_status_filter_is_sent_to_backend(client, login_as, fake_backend):
    await login_as("alice")
    r = await client.get("/requests/my-requests?status=rejected", headers=HX)
    assert "Conference chairs" in r.text and "Laptops" not in r.text
    assert fake_backend.calls[-1].params == {"status": "rejected"}


@pytest.mark.anyio
async def test_backend_unreachable_renders_inline_message(client, login_as, fake_backend):
    await login_as("bob")
    fake_backend.unreachable = True
    r = await client.get("/requests/all", headers=HX)
    assert r.status_code == 200
    assert "The server could not be reached" in r.text


@pytest.mark.anyio
async def test_profile_account_update_refreshes_identity(client, login_as, fake_backend):
    await login_as("alice")
    page = await client.get("/profile", headers=HX)
    assert "Operations" in page.text
    r = await client.post(
        "/profile",
        data={"csrf_token": csrf_of(page.text), "section": "account", "username": "alice_m",
              "first_name": "Alice", "last_name": "M", "email": "alice@example.org"},
        headers=HX,
    )
    assert r.status_code == 200
    assert "Account updated." in r.text
    # Header and sidebar are swapped out-of-band with the new name.
    assert "alice_m" in r.text
    assert any(c.method == "PATCH" and c.path == "/api/auth/user/" for c in fake_backend.calls)


@pytest.mark.anyio
async def test_profile_invalid_email_is_reported(client, login_as, fake_backend):
    await login_as("alice")
    page = await client.get("/profile", headers=HX)
    r = await client.post(
        "/profile",
        data={"csrf_token": csrf_of(page.text), "section": "account", "username": "alice", "email": "nope"},
        headers=HX,
    )
    assert "email" in r.text.lower()
    assert not any(c.method == "PATCH" for c in fake_backend.calls)


@pytest.mark.anyio
async def test_admin_creates_user_and_rejects_mismatched_passwords(client, login_as, fake_backend):
    await login_as("root")
    page = await client.get("/admin/users", headers=HX)
    token = csrf_of(page.text)

    bad = await client.post(
        "/admin/users",
        data={"csrf_token": token, "username": "newbie", "email": "n@example.org", "role": "staff",
              "password": "longenough", "password_confirm": "different"},
        headers=HX,
    )
    assert "Passwords must match" in bad.text

    ok = await client.post(
        "/admin/users",
        data={"csrf_token": token, "username": "newbie", "email": "n@example.org", "role": "approver-level-1"},
        headers=HX,
    )
    assert ok.headers["HX-Location"]
    body = [c for c in fake_backend.calls if c.method == "POST" and c.path == "/api/users/"][-1].json()
    assert body["role"] == "approver_level_1"
    assert "password" not in body

    listing = await client.get("/admin/users", headers=HX)
    assert "newbie" in listing.text
