"""
Profile page: contact details and account information of the current user.

Both forms post to /profile; the hidden `section` field selects which
backend call runs. After an account change the current user is fetched
again and the stored identity replaced, so header and sidebar show the new
name right away.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import Response
from pydantic import ValidationError

from identity_access.domain import normalize_identity
from identity_access.errors import ApiError
from procurement.forms import AccountInput, ProfileInput, field_errors

try:
    from components import AccountForm, Alert, ProfileDetailsForm
    from components.base import Component
    from responses import browser_context, csrf_error, failure_message, render_page
    from auth_utils import csrf_matches
except ImportError:  # package layout
    from ..components import AccountForm, Alert, ProfileDetailsForm
    from ..components.base import Component
    from ..responses import browser_context, csrf_error, failure_message, render_page
    from ..auth_utils import csrf_matches

profile_router = APIRouter(tags=["Profile"])

PROFILE = ("profile",)
CURRENT_USER = ("current_user",)
DETAIL_FIELDS = ("department", "phone_number", "address")
ACCOUNT_FIELDS = ("username", "first_name", "last_name", "email")


def _profile_content(
    request: Request,
    details: Mapping[str, Any],
    account: Mapping[str, Any],
    *,
    errors: Optional[Dict[str, Dict[str, str]]] = None,
    notice: Optional[str] = None,
    error: Optional[str] = None,
) -> str:
    ctx = browser_context(request)
    identity = request.state.identity
    errors = errors or {}
    role = (identity.role_display or (identity.role.label if identity.role else "")) if identity else ""
    return f"""
    <section class="page profile">
        <h1>My Profile</h1>
        <p class="text-muted">{Component.escape(role)}</p>
        {Alert(notice, "success").render() if notice else ""}
        {Alert(error).render() if error else ""}
        {ProfileDetailsForm(ctx.csrf_token, details, errors.get("details")).render()}
        {AccountForm(ctx.csrf_token, account, errors.get("account")).render()}
    </section>
    """


async def _load(request: Request) -> tuple[Dict[str, Any], Dict[str, Any]]:
    ctx = browser_context(request)
    details = await ctx.cache.fetch(PROFILE, ctx.auth.get_profile)
    account = await ctx.cache.fetch(CURRENT_USER, ctx.auth.who_am_i)
    return details, account


@profile_router.get("/profile")
async def profile_page(request: Request) -> Response:
    try:
        details, account = await _load(request)
    except (ApiError, httpx.TransportError) as exc:
        return render_page(request, "My Profile", Alert(failure_message(request, exc)).render())
    return render_page(request, "My Profile", _profile_content(request, details, account))


@profile_router.post("/profile")
async def profile_submit(request: Request) -> Response:
    ctx = browser_context(request)
    form = await request.form()
    if not csrf_matches(ctx.csrf_token, form.get("csrf_token")):
        return csrf_error()

    section = form.get("section")
    if section not in ("details", "account"):
        return render_page(request, "My Profile", Alert("Unknown form section.").render(), status_code=400)

    fields = DETAIL_FIELDS if section == "details" else ACCOUNT_FIELDS
    submitted = {k: str(form.get(k) or "") for k in fields}
    try:
        details, account = await _load(request)
    except (ApiError, httpx.TransportError) as exc:
        return render_page(request, "My Profile", Alert(failure_message(request, exc)).render())

    def _again(*, field_errs: Optional[Dict[str, str]] = None, error: Optional[str] = None) -> Response:
        shown_details = submitted if section == "details" else details
        shown_account = submitted if section == "account" else account
        content = _profile_content(
            request, shown_details, shown_account, errors={section: field_errs or {}}, error=error
        )
        return render_page(request, "My Profile", content)

    try:
        data = (ProfileInput if section == "details" else AccountInput).model_validate(submitted)
    except ValidationError as exc:
        return _again(field_errs=field_errors(exc))

    try:
        if section == "details":
            await ctx.auth.update_profile(data.model_dump())
        else:
            await ctx.auth.update_account(data.model_dump())
            refreshed = await ctx.auth.who_am_i()
            ctx.session.update_identity(normalize_identity(refreshed))
            request.state.identity = ctx.session.identity
    except (ApiError, httpx.TransportError) as exc:
        return _again(error=failure_message(request, exc))

    ctx.cache.invalidate(PROFILE, CURRENT_USER)
    try:
        details, account = await _load(request)
    except (ApiError, httpx.TransportError) as exc:
        return render_page(request, "My Profile", Alert(failure_message(request, exc)).render())
    notice = "Profile updated." if section == "details" else "Account updated."
    return render_page(request, "My Profile", _profile_content(request, details, account, notice=notice))
