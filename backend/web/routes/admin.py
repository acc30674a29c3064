"""
Administration pages: user accounts, request types and approval levels.

Every page lists the entities, offers a create form and per-row actions
(delete plus an on/off toggle). Row actions are POST routes of the form
`/admin/<entity>/{id}/{action}`; the route guard restricts all of them to
administrators.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional
import logging

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import Response
from pydantic import ValidationError

from identity_access.domain import Role
from identity_access.errors import ApiError
from procurement import admin_api
from procurement.forms import ApprovalLevelInput, RequestTypeInput, UserCreateInput, field_errors

try:
    from components import ActionButton, Alert, ApprovalLevelForm, Column, DataTable, RequestTypeForm, UserForm
    from components.base import Component
    from responses import browser_context, csrf_error, failure_message, navigate, render_page
    from auth_utils import csrf_matches
except ImportError:  # package layout
    from ..components import ActionButton, Alert, ApprovalLevelForm, Column, DataTable, RequestTypeForm, UserForm
    from ..components.base import Component
    from ..responses import browser_context, csrf_error, failure_message, navigate, render_page
    from ..auth_utils import csrf_matches

admin_router = APIRouter(prefix="/admin", tags=["Admin"])
logger = logging.getLogger("procure.web")

USERS = ("users",)
REQUEST_TYPES = ("request_types",)
APPROVAL_LEVELS = ("approval_levels",)


def _yes_no(value: Any) -> str:
    return "Yes" if value else "No"


def _row_actions(csrf_token: str, base: str, toggle: tuple[str, str], *, delete_confirm: str) -> str:
    action, label = toggle
    return (
        ActionButton(csrf_token, f"{base}/{action}", label).render()
        + ActionButton(csrf_token, f"{base}/delete", "Delete", variant="danger", confirm=delete_confirm).render()
    )


async def _submit_form(request: Request) -> Optional[Mapping[str, Any]]:
    """Parsed form data, or None when the CSRF token does not match."""
    form = await request.form()
    if not csrf_matches(browser_context(request).csrf_token, form.get("csrf_token")):
        return None
    return form


async def _run_action(
    request: Request,
    call: Callable[[], Awaitable[Any]],
    *,
    invalidate: tuple,
    location: str,
    render_error: Callable[[str], Awaitable[Response]],
) -> Response:
    try:
        await call()
    except (ApiError, httpx.TransportError) as exc:
        return await render_error(failure_message(request, exc))
    browser_context(request).cache.invalidate(invalidate)
    return navigate(request, location)


# --- Users -------------------------------------------------------------------------


def _user_role(row: Mapping[str, Any]) -> str:
    profile = row.get("profile") or {}
    raw = profile.get("role") or row.get("role")
    display = profile.get("role_display") or row.get("role_display")
    if display:
        return str(display)
    role = Role.parse(raw)
    return role.label if role else "N/A"


async def _users_page(
    request: Request,
    *,
    values: Optional[Mapping[str, Any]] = None,
    errors: Optional[Dict[str, str]] = None,
    error: Optional[str] = None,
) -> Response:
    ctx = browser_context(request)
    users: List[dict] = []
    try:
        users = await ctx.cache.fetch(USERS, lambda: admin_api.list_users(ctx.client))
    except (ApiError, httpx.TransportError) as exc:
        error = error or failure_message(request, exc)

    def actions(row: Mapping[str, Any]) -> str:
        toggle = ("deactivate", "Deactivate") if row.get("is_active", True) else ("activate", "Activate")
        return _row_actions(
            ctx.csrf_token, f"/admin/users/{row.get('id')}", toggle,
            delete_confirm=f"Delete user {row.get('username')}?",
        )

    columns = [
        Column("username", "Username"),
        Column("email", "Email"),
        Column("name", "Name", render=lambda r: Component.escape(
            " ".join(p for p in (r.get("first_name"), r.get("last_name")) if p) or "N/A"
        )),
        Column("role", "Role", render=lambda r: Component.escape(_user_role(r))),
        Column("is_active", "Active", render=lambda r: _yes_no(r.get("is_active", True))),
        Column("actions", "Actions", render=actions),
    ]
    content = f"""
    <section class="page admin">
        <h1>User Management</h1>
        {Alert(error).render() if error else ""}
        {DataTable(columns, users, table_id="users-table", empty_text="No users found.").render()}
        {UserForm(ctx.csrf_token, values, errors).render()}
    </section>
    """
    return render_page(request, "User Management", content)


@admin_router.get("/users")
async def users_page(request: Request) -> Response:
    return await _users_page(request)


@admin_router.post("/users")
async def create_user(request: Request) -> Response:
    form = await _submit_form(request)
    if form is None:
        return csrf_error()
    values = {k: str(v) for k, v in form.items() if k != "csrf_token"}
    try:
        data = UserCreateInput.model_validate(values)
    except ValidationError as exc:
        return await _users_page(request, values=values, errors=field_errors(exc))

    async def _error(message: str) -> Response:
        return await _users_page(request, values=values, errors={"__all__": message})

    ctx = browser_context(request)
    return await _run_action(
        request, lambda: admin_api.create_user(ctx.client, data.to_payload()),
        invalidate=USERS, location="/admin/users", render_error=_error,
    )


@admin_router.post("/users/{user_id}/{action}")
async def user_action(request: Request, user_id: str, action: str) -> Response:
    if await _submit_form(request) is None:
        return csrf_error()
    ctx = browser_context(request)
    calls = {
        "delete": lambda: admin_api.delete_user(ctx.client, user_id),
        "activate": lambda: admin_api.update_user(ctx.client, user_id, {"is_active": True}),
        "deactivate": lambda: admin_api.update_user(ctx.client, user_id, {"is_active": False}),
    }
    if action not in calls:
        return await _users_page(request, error=f"Unknown action: {action}")

    async def _error(message: str) -> Response:
        return await _users_page(request, error=message)

    return await _run_action(request, calls[action], invalidate=USERS, location="/admin/users", render_error=_error)


# --- Request types -----------------------------------------------------------------


async def _request_types_page(
    request: Request,
    *,
    values: Optional[Mapping[str, Any]] = None,
    errors: Optional[Dict[str, str]] = None,
    error: Optional[str] = None,
) -> Response:
    ctx = browser_context(request)
    types: List[dict] = []
    try:
        types = await ctx.cache.fetch(REQUEST_TYPES, lambda: admin_api.list_request_types(ctx.client))
    except (ApiError, httpx.TransportError) as exc:
        error = error or failure_message(request, exc)

    def actions(row: Mapping[str, Any]) -> str:
        toggle = ("deactivate", "Deactivate") if row.get("is_active", True) else ("activate", "Activate")
        return _row_actions(
            ctx.csrf_token, f"/admin/request-types/{row.get('id')}", toggle,
            delete_confirm=f"Delete request type {row.get('name')}?",
        )

    columns = [
        Column("name", "Name"),
        Column("description", "Description"),
        Column("is_active", "Active", render=lambda r: _yes_no(r.get("is_active", True))),
        Column("actions", "Actions", render=actions),
    ]
    content = f"""
    <section class="page admin">
        <h1>Request Types</h1>
        {Alert(error).render() if error else ""}
        {DataTable(columns, types, table_id="request-types-table", empty_text="No request types yet.").render()}
        {RequestTypeForm(ctx.csrf_token, values, errors).render()}
    </section>
    """
    return render_page(request, "Request Types", content)


@admin_router.get("/request-types")
async def request_types_page(request: Request) -> Response:
    return await _request_types_page(request)


@admin_router.post("/request-types")
async def create_request_type(request: Request) -> Response:
    form = await _submit_form(request)
    if form is None:
        return csrf_error()
    values: Dict[str, Any] = {
        "name": str(form.get("name") or ""),
        "description": str(form.get("description") or ""),
        # Unchecked checkboxes are absent from the post.
        "is_active": "is_active" in form,
    }
    try:
        data = RequestTypeInput.model_validate(values)
    except ValidationError as exc:
        return await _request_types_page(request, values=values, errors=field_errors(exc))

    async def _error(message: str) -> Response:
        return await _request_types_page(request, values=values, errors={"__all__": message})

    ctx = browser_context(request)
    return await _run_action(
        request, lambda: admin_api.create_request_type(ctx.client, data.model_dump()),
        invalidate=REQUEST_TYPES, location="/admin/request-types", render_error=_error,
    )


@admin_router.post("/request-types/{type_id}/{action}")
async def request_type_action(request: Request, type_id: str, action: str) -> Response:
    if await _submit_form(request) is None:
        return csrf_error()
    ctx = browser_context(request)
    calls = {
        "delete": lambda: admin_api.delete_request_type(ctx.client, type_id),
        "activate": lambda: admin_api.update_request_type(ctx.client, type_id, {"is_active": True}),
        "deactivate": lambda: admin_api.update_request_type(ctx.client, type_id, {"is_active": False}),
    }
    if action not in calls:
        return await _request_types_page(request, error=f"Unknown action: {action}")

    async def _error(message: str) -> Response:
        return await _request_types_page(request, error=message)

    return await _run_action(
        request, calls[action], invalidate=REQUEST_TYPES, location="/admin/request-types", render_error=_error
    )


# --- Approval levels ---------------------------------------------------------------


async def _approval_levels_page(
    request: Request,
    *,
    values: Optional[Mapping[str, Any]] = None,
    errors: Optional[Dict[str, str]] = None,
    error: Optional[str] = None,
) -> Response:
    ctx = browser_context(request)
    levels: List[dict] = []
    types: List[dict] = []
    try:
        levels = await ctx.cache.fetch(APPROVAL_LEVELS, lambda: admin_api.list_approval_levels(ctx.client))
        types = await ctx.cache.fetch(REQUEST_TYPES, lambda: admin_api.list_request_types(ctx.client))
    except (ApiError, httpx.TransportError) as exc:
        error = error or failure_message(request, exc)

    type_names = {str(t.get("id")): t.get("name") for t in types}

    def actions(row: Mapping[str, Any]) -> str:
        toggle = ("optional", "Make optional") if row.get("is_required", True) else ("require", "Make required")
        return _row_actions(
            ctx.csrf_token, f"/admin/approval-levels/{row.get('id')}", toggle,
            delete_confirm="Delete this approval level?",
        )

    def role_label(row: Mapping[str, Any]) -> str:
        role = Role.parse(row.get("approver_role"))
        return Component.escape(row.get("approver_role_display") or (role.label if role else "N/A"))

    columns = [
        Column("request_type", "Request Type", render=lambda r: Component.escape(
            r.get("request_type_name") or type_names.get(str(r.get("request_type"))) or "N/A"
        )),
        Column("level_number", "Level", numeric=True),
        Column("approver_role", "Approver Role", render=role_label),
        Column("is_required", "Required", render=lambda r: _yes_no(r.get("is_required", True))),
        Column("actions", "Actions", render=actions),
    ]
    content = f"""
    <section class="page admin">
        <h1>Approval Levels</h1>
        {Alert(error).render() if error else ""}
        {DataTable(columns, levels, table_id="approval-levels-table", empty_text="No approval levels yet.").render()}
        {ApprovalLevelForm(ctx.csrf_token, types, values, errors).render()}
    </section>
    """
    return render_page(request, "Approval Levels", content)


@admin_router.get("/approval-levels")
async def approval_levels_page(request: Request) -> Response:
    return await _approval_levels_page(request)


@admin_router.post("/approval-levels")
async def create_approval_level(request: Request) -> Response:
    form = await _submit_form(request)
    if form is None:
        return csrf_error()
    values: Dict[str, Any] = {
        "request_type": str(form.get("request_type") or ""),
        "level_number": str(form.get("level_number") or ""),
        "approver_role": str(form.get("approver_role") or ""),
        "is_required": "is_required" in form,
    }
    try:
        data = ApprovalLevelInput.model_validate(values)
    except ValidationError as exc:
        return await _approval_levels_page(request, values=values, errors=field_errors(exc))

    async def _error(message: str) -> Response:
        return await _approval_levels_page(request, values=values, errors={"__all__": message})

    ctx = browser_context(request)
    return await _run_action(
        request, lambda: admin_api.create_approval_level(ctx.client, data.to_payload()),
        invalidate=APPROVAL_LEVELS, location="/admin/approval-levels", render_error=_error,
    )


@admin_router.post("/approval-levels/{level_id}/{action}")
async def approval_level_action(request: Request, level_id: str, action: str) -> Response:
    if await _submit_form(request) is None:
        return csrf_error()
    ctx = browser_context(request)
    calls = {
        "delete": lambda: admin_api.delete_approval_level(ctx.client, level_id),
        "require": lambda: admin_api.update_approval_level(ctx.client, level_id, {"is_required": True}),
        "optional": lambda: admin_api.update_approval_level(ctx.client, level_id, {"is_required": False}),
    }
    if action not in calls:
        return await _approval_levels_page(request, error=f"Unknown action: {action}")

    async def _error(message: str) -> Response:
        return await _approval_levels_page(request, error=message)

    return await _run_action(
        request, calls[action], invalidate=APPROVAL_LEVELS, location="/admin/approval-levels", render_error=_error
    )
