"""
Purchase request pages: dashboard, lists, create/edit, detail and decisions.

Why:
    These pages are the day-to-day workflow of the portal. Each list reads
    through the per-browser query cache; every successful mutation
    invalidates the cached lists and the affected detail entry.

Security:
    The auth middleware already ran the route guard. Visibility of actions
    (approve, edit, receipt) mirrors the backend rules, which remain the
    authority; a forbidden call surfaces as an inline error.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional
import logging

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import Response
from pydantic import ValidationError

from identity_access.domain import Identity, Role
from identity_access.errors import ApiError
from procurement import requests_api
from procurement.forms import PurchaseRequestInput, field_errors, items_to_text
from procurement.summary import format_currency, format_date, summarize

try:
    from components import Alert, Column, DataTable, DecisionForm, PurchaseRequestForm, ReceiptForm
    from components.base import Component
    from responses import browser_context, csrf_error, failure_message, navigate, render_page
    from auth_utils import csrf_matches
except ImportError:  # package layout
    from ..components import Alert, Column, DataTable, DecisionForm, PurchaseRequestForm, ReceiptForm
    from ..components.base import Component
    from ..responses import browser_context, csrf_error, failure_message, navigate, render_page
    from ..auth_utils import csrf_matches

requests_router = APIRouter(tags=["Requests"])
logger = logging.getLogger("procure.web")

STATUS_FILTERS = ("all", "pending", "approved", "rejected")

# Cache key prefixes
PURCHASE_REQUESTS = ("purchase_requests",)
MY_PURCHASE_REQUESTS = ("my_purchase_requests",)
PENDING_APPROVALS = ("pending_approvals",)
APPROVED_REQUESTS = ("approved_requests",)
REQUEST_TYPES = ("request_types",)


def purchase_request_key(request_id: str) -> tuple:
    return ("purchase_request", str(request_id))


def invalidate_request_queries(request: Request, request_id: Optional[str] = None) -> None:
    prefixes = [PURCHASE_REQUESTS, MY_PURCHASE_REQUESTS, PENDING_APPROVALS, APPROVED_REQUESTS]
    if request_id is not None:
        prefixes.append(purchase_request_key(request_id))
    browser_context(request).cache.invalidate(*prefixes)


def _status_filter(value: Optional[str]) -> str:
    value = (value or "all").strip().lower()
    return value if value in STATUS_FILTERS else "all"


def _identity(request: Request) -> Identity:
    return request.state.identity


# --- Rendering helpers ------------------------------------------------------------


def _link(href: str, text: str) -> str:
    attrs = Component.attributes(href=href, hx_get=href, hx_target="#main-content", hx_push_url="true")
    return f"<a {attrs}>{Component.escape(text)}</a>"


def status_badge(row: Mapping[str, Any]) -> str:
    status = str(row.get("status") or "")
    text = row.get("status_display") or status.capitalize()
    return f'<span class="badge badge-{Component.escape(status)}">{Component.escape(text)}</span>'


REQUEST_COLUMNS = [
    Column("title", "Title", render=lambda r: _link(f"/requests/{r.get('id')}", str(r.get("title") or ""))),
    Column("request_type_name", "Request Type"),
    Column("amount", "Amount", render=lambda r: Component.escape(format_currency(r.get("amount"))), numeric=True),
    Column("status", "Status", render=status_badge),
    Column("created_by_username", "Created By"),
    Column("created_at", "Date", render=lambda r: Component.escape(format_date(r.get("created_at")))),
]


def _status_filter_form(path: str, selected: str) -> str:
    options = "".join(
        f'<option value="{s}"{" selected" if s == selected else ""}>{s.capitalize()}</option>' for s in STATUS_FILTERS
    )
    attrs = Component.attributes(
        method="get",
        action=path,
        class_="filter-form",
        hx_get=path,
        hx_target="#main-content",
        hx_push_url="true",
        hx_trigger="change",
    )
    return f'<form {attrs}><label for="status">Status</label> <select id="status" name="status">{options}</select></form>'


def _list_page(
    title: str, path: str, rows: List[dict], *, status: Optional[str], error: Optional[str], intro: str = ""
) -> str:
    filter_html = _status_filter_form(path, status) if status is not None else ""
    error_html = Alert(error).render() if error else ""
    table = DataTable(REQUEST_COLUMNS, rows, table_id="requests-table", empty_text="No purchase requests found.")
    intro_html = f'<p class="text-muted">{Component.escape(intro)}</p>' if intro else ""
    return f"""
    <section class="page">
        <h1>{Component.escape(title)}</h1>
        {intro_html}
        {filter_html}
        {error_html}
        {table.render()}
    </section>
    """


async def _load_list(request: Request, key: tuple, params: Dict[str, Any]) -> tuple[List[dict], Optional[str]]:
    ctx = browser_context(request)
    try:
        rows = await ctx.cache.fetch(key, lambda: requests_api.list_purchase_requests(ctx.client, params))
        return rows, None
    except (ApiError, httpx.TransportError) as exc:
        return [], failure_message(request, exc)


async def _load_request_types(request: Request) -> List[dict]:
    ctx = browser_context(request)
    return await ctx.cache.fetch(REQUEST_TYPES, lambda: requests_api.list_request_types(ctx.client))


def _status_params(status: str) -> Dict[str, Any]:
    return {} if status == "all" else {"status": status}


# --- Dashboard --------------------------------------------------------------------


def dashboard_heading(identity: Identity) -> tuple[str, str]:
    if identity.role is Role.ADMIN or identity.is_superuser:
        return "Admin Dashboard", "System overview and all purchase requests"
    if identity.role is not None and identity.role.is_approver:
        return "Approver Dashboard", "Pending approvals and request overview"
    if identity.role is Role.FINANCE:
        return "Finance Dashboard", "Approved requests and financial overview"
    return "My Dashboard", "Manage your purchase requests and approvals"


@requests_router.get("/dashboard")
async def dashboard(request: Request, status: Optional[str] = None) -> Response:
    identity = _identity(request)
    selected = _status_filter(status)
    rows, error = await _load_list(request, PURCHASE_REQUESTS + ("list", selected), _status_params(selected))
    summary = summarize(rows)
    title, intro = dashboard_heading(identity)

    cards = [
        ("Total Requests", str(summary.total_requests)),
        ("Pending", str(summary.pending_requests)),
        ("Approved", str(summary.approved_requests)),
        ("Approved This Month", format_currency(summary.approved_amount_this_month)),
    ]
    cards_html = "".join(
        f'<div class="stat-card"><span class="stat-label">{Component.escape(label)}</span>'
        f'<span class="stat-value">{Component.escape(value)}</span></div>'
        for label, value in cards
    )
    activity_items = "".join(
        f"<li><strong>{Component.escape(a.approver_username)}</strong> {Component.escape(a.action)} "
        f"{_link(f'/requests/{a.request_id}', a.request_title)} "
        f'<span class="text-muted">({Component.escape(a.approval_level)}, '
        f"{Component.escape(a.created_at.strftime('%d %b %Y') if a.created_at else 'N/A')})</span></li>"
        for a in summary.recent_activity
    )
    activity_html = (
        f'<section class="activity"><h2>Latest approvals</h2><ul>{activity_items}</ul></section>' if activity_items else ""
    )
    content = f"""
    <section class="page dashboard">
        <h1>{Component.escape(title)}</h1>
        <p class="text-muted">{Component.escape(intro)}</p>
        {Alert(error).render() if error else ""}
        <div class="stat-grid">{cards_html}</div>
        {_status_filter_form("/dashboard", selected)}
        {DataTable(REQUEST_COLUMNS, rows, table_id="requests-table", empty_text="No purchase requests found.").render()}
        {activity_html}
    </section>
    """
    return render_page(request, title, content)


# --- Lists ------------------------------------------------------------------------


@requests_router.get("/requests/my-requests")
async def my_requests(request: Request, status: Optional[str] = None) -> Response:
    selected = _status_filter(status)
    rows, error = await _load_list(request, MY_PURCHASE_REQUESTS + (selected,), _status_params(selected))
    content = _list_page(
        "My Requests", "/requests/my-requests", rows, status=selected, error=error,
        intro="Purchase requests you have submitted",
    )
    return render_page(request, "My Requests", content)


@requests_router.get("/requests/all")
async def all_requests(request: Request, status: Optional[str] = None) -> Response:
    selected = _status_filter(status)
    rows, error = await _load_list(request, PURCHASE_REQUESTS + ("all", selected), _status_params(selected))
    content = _list_page("All Requests", "/requests/all", rows, status=selected, error=error)
    return render_page(request, "All Requests", content)


@requests_router.get("/approvals/pending")
async def pending_approvals(request: Request) -> Response:
    rows, error = await _load_list(request, PENDING_APPROVALS, {"status": "pending"})
    content = _list_page(
        "Pending Approvals", "/approvals/pending", rows, status=None, error=error,
        intro="Requests waiting for your decision",
    )
    return render_page(request, "Pending Approvals", content)


@requests_router.get("/requests/approved")
async def approved_requests(request: Request, request_type: Optional[str] = None) -> Response:
    params: Dict[str, Any] = {"status": "approved"}
    if request_type:
        params["request_type"] = request_type
    rows, error = await _load_list(request, APPROVED_REQUESTS + (request_type or "",), params)
    try:
        types = await _load_request_types(request)
    except (ApiError, httpx.TransportError) as exc:
        types = []
        error = error or failure_message(request, exc)

    with_po = sum(1 for r in rows if r.get("purchase_order"))
    with_receipt = sum(1 for r in rows if r.get("receipt"))
    options = '<option value="">All types</option>' + "".join(
        f'<option value="{Component.escape(t.get("id"))}"'
        f'{" selected" if str(t.get("id")) == (request_type or "") else ""}>{Component.escape(t.get("name"))}</option>'
        for t in types
    )
    filter_attrs = Component.attributes(
        method="get", action="/requests/approved", class_="filter-form",
        hx_get="/requests/approved", hx_target="#main-content", hx_push_url="true", hx_trigger="change",
    )
    content = f"""
    <section class="page">
        <h1>Approved Requests</h1>
        <p class="text-muted">{len(rows)} approved, {with_po} with purchase order, {with_receipt} with receipt</p>
        <form {filter_attrs}><label for="request_type">Request type</label>
            <select id="request_type" name="request_type">{options}</select></form>
        {Alert(error).render() if error else ""}
        {DataTable(REQUEST_COLUMNS, rows, table_id="requests-table", empty_text="No approved requests.").render()}
    </section>
    """
    return render_page(request, "Approved Requests", content)


# --- Create / edit ------------------------------------------------------------------


async def _proforma_file(form) -> Optional[Dict[str, Any]]:
    upload = form.get("proforma")
    if upload is None or not getattr(upload, "filename", ""):
        return None
    data = await upload.read()
    return {"proforma": (upload.filename, data, upload.content_type or "application/octet-stream")}


def _form_page(request: Request, title: str, form: PurchaseRequestForm) -> Response:
    content = f'<section class="page"><h1>{Component.escape(title)}</h1>{form.render()}</section>'
    return render_page(request, title, content)


@requests_router.get("/requests/create")
async def create_request_form(request: Request) -> Response:
    ctx = browser_context(request)
    errors: Dict[str, str] = {}
    try:
        types = await _load_request_types(request)
    except (ApiError, httpx.TransportError) as exc:
        types = []
        errors["__all__"] = failure_message(request, exc)
    form = PurchaseRequestForm(ctx.csrf_token, action="/requests/create", request_types=types, errors=errors)
    return _form_page(request, "Create Purchase Request", form)


@requests_router.post("/requests/create")
async def create_request_submit(request: Request) -> Response:
    ctx = browser_context(request)
    form = await request.form()
    if not csrf_matches(ctx.csrf_token, form.get("csrf_token")):
        return csrf_error()
    values = {k: form.get(k) for k in ("title", "description", "amount", "request_type_id", "items")}

    async def _again(errors: Dict[str, str]) -> Response:
        try:
            types = await _load_request_types(request)
        except (ApiError, httpx.TransportError):
            types = []
        page_form = PurchaseRequestForm(
            ctx.csrf_token, action="/requests/create", request_types=types, values=values, errors=errors
        )
        return _form_page(request, "Create Purchase Request", page_form)

    try:
        data = PurchaseRequestInput.model_validate({k: v or "" for k, v in values.items()})
    except ValidationError as exc:
        return await _again(field_errors(exc))

    try:
        created = await requests_api.create_purchase_request(ctx.client, data.to_form_data(), await _proforma_file(form))
    except (ApiError, httpx.TransportError) as exc:
        return await _again({"__all__": failure_message(request, exc)})

    invalidate_request_queries(request)
    created_id = (created or {}).get("id")
    return navigate(request, f"/requests/{created_id}" if created_id else "/requests/my-requests")


def can_edit(identity: Identity, pr: Mapping[str, Any]) -> bool:
    return bool(pr.get("can_be_edited")) and (identity.id == pr.get("created_by") or identity.is_superuser)


@requests_router.get("/requests/{request_id}/edit")
async def edit_request_form(request: Request, request_id: str) -> Response:
    ctx = browser_context(request)
    try:
        pr = await ctx.cache.fetch(
            purchase_request_key(request_id), lambda: requests_api.get_purchase_request(ctx.client, request_id)
        )
        types = await _load_request_types(request)
    except (ApiError, httpx.TransportError) as exc:
        return render_page(request, "Edit Purchase Request", Alert(failure_message(request, exc)).render())

    if not can_edit(_identity(request), pr):
        message = "This request cannot be edited. It may have been approved or rejected."
        return render_page(request, "Edit Purchase Request", Alert(message).render())

    values = {
        "title": pr.get("title"),
        "description": pr.get("description"),
        "amount": pr.get("amount"),
        "request_type_id": (pr.get("request_type") or {}).get("id") if isinstance(pr.get("request_type"), dict)
        else pr.get("request_type_id"),
        "items": items_to_text(pr.get("items")),
    }
    form = PurchaseRequestForm(
        ctx.csrf_token, action=f"/requests/{request_id}/edit", request_types=types, values=values,
        submit_label="Save Changes",
    )
    return _form_page(request, "Edit Purchase Request", form)


@requests_router.post("/requests/{request_id}/edit")
async def edit_request_submit(request: Request, request_id: str) -> Response:
    ctx = browser_context(request)
    form = await request.form()
    if not csrf_matches(ctx.csrf_token, form.get("csrf_token")):
        return csrf_error()
    values = {k: form.get(k) for k in ("title", "description", "amount", "request_type_id", "items")}

    async def _again(errors: Dict[str, str]) -> Response:
        try:
            types = await _load_request_types(request)
        except (ApiError, httpx.TransportError):
            types = []
        page_form = PurchaseRequestForm(
            ctx.csrf_token, action=f"/requests/{request_id}/edit", request_types=types, values=values,
            errors=errors, submit_label="Save Changes",
        )
        return _form_page(request, "Edit Purchase Request", page_form)

    try:
        data = PurchaseRequestInput.model_validate({k: v or "" for k, v in values.items()})
    except ValidationError as exc:
        return await _again(field_errors(exc))

    try:
        await requests_api.update_purchase_request(
            ctx.client, request_id, data.to_form_data(), await _proforma_file(form)
        )
    except (ApiError, httpx.TransportError) as exc:
        return await _again({"__all__": failure_message(request, exc)})

    invalidate_request_queries(request, request_id)
    return navigate(request, f"/requests/{request_id}")


# --- Detail and decisions -------------------------------------------------------------


def file_url(request: Request, path: Any) -> Optional[str]:
    """Absolute URL for an uploaded file served by the backend."""
    if not path:
        return None
    value = str(path)
    if value.startswith(("http://", "https://")):
        return value
    base = request.app.state.settings.api_base_url
    return f"{base}/{value.lstrip('/')}"


def can_approve(identity: Identity, pr: Mapping[str, Any]) -> bool:
    if pr.get("status") != "pending":
        return False
    return identity.is_superuser or (identity.role is not None and identity.role.is_approver)


def can_submit_receipt(identity: Identity, pr: Mapping[str, Any]) -> bool:
    if pr.get("status") != "approved":
        return False
    owner = identity.id == pr.get("created_by") or identity.is_superuser
    return owner and (identity.role is Role.STAFF or identity.is_superuser)


def own_decision(identity: Identity, pr: Mapping[str, Any]) -> Optional[str]:
    """The action the identity already took on this request, if any."""
    for approval in pr.get("approvals") or []:
        if approval.get("approver") == identity.id or approval.get("approver_username") == identity.username:
            return approval.get("action")
    return None


def back_path(identity: Identity) -> str:
    if identity.role is Role.FINANCE:
        return "/requests/approved"
    if identity.role is not None and identity.role.is_approver:
        return "/approvals/pending"
    if identity.role is Role.ADMIN or identity.is_superuser:
        return "/requests/all"
    return "/requests/my-requests"


def _render_detail(request: Request, pr: Mapping[str, Any], *, error: Optional[str] = None, notice: Optional[str] = None) -> str:
    identity = _identity(request)
    ctx = browser_context(request)
    request_id = str(pr.get("id"))
    esc = Component.escape

    facts = [
        ("Status", status_badge(pr)),
        ("Request Type", esc(pr.get("request_type_name"))),
        ("Amount", esc(format_currency(pr.get("amount")))),
        ("Created By", esc(pr.get("created_by_username"))),
        ("Created", esc(format_date(pr.get("created_at")))),
    ]
    proforma = file_url(request, pr.get("proforma"))
    if proforma:
        facts.append(("Proforma", f'<a href="{esc(proforma)}" target="_blank" rel="noopener">View proforma</a>'))
    purchase_order = file_url(request, pr.get("purchase_order"))
    if purchase_order:
        facts.append(("Purchase Order", f'<a href="{esc(purchase_order)}" target="_blank" rel="noopener">View purchase order</a>'))
    receipt = file_url(request, pr.get("receipt"))
    if receipt:
        facts.append(("Receipt", f'<a href="{esc(receipt)}" target="_blank" rel="noopener">View receipt</a>'))
        if pr.get("receipt_validated") is not None:
            state = "Receipt validated" if pr.get("receipt_validated") else "Receipt validation pending"
            facts.append(("Receipt Check", esc(state)))
    facts_html = "".join(f"<dt>{esc(k)}</dt><dd>{v}</dd>" for k, v in facts)

    items = pr.get("items") or []
    items_html = ""
    if items:
        item_columns = [
            Column("description", "Description"),
            Column("quantity", "Quantity", numeric=True),
            Column("unit_price", "Unit Price", render=lambda r: esc(format_currency(r.get("unit_price"))), numeric=True),
        ]
        items_html = f"<h2>Items</h2>{DataTable(item_columns, items, table_id='items-table').render()}"

    approvals = pr.get("approvals") or []
    approvals_html = ""
    if approvals:
        entries = "".join(
            f"<li><strong>{esc(a.get('approver_username') or 'N/A')}</strong> "
            f"{esc(a.get('action_display') or a.get('action'))} "
            f"<span class=\"text-muted\">({esc(a.get('approval_level_display') or 'N/A')})</span>"
            + (f"<p>{esc(a.get('comments'))}</p>" if a.get("comments") else "")
            + "</li>"
            for a in approvals
        )
        approvals_html = f'<h2>Approval History</h2><ul class="approvals">{entries}</ul>'

    actions = []
    if can_edit(identity, pr):
        actions.append(_link(f"/requests/{request_id}/edit", "Edit Request"))
    decision_html = ""
    taken = own_decision(identity, pr)
    if taken:
        decision_html = f'<p class="text-muted">You already {esc(taken)} this request.</p>'
    elif can_approve(identity, pr):
        decision_html = DecisionForm(ctx.csrf_token, request_id).render()
    receipt_html = ""
    if can_submit_receipt(identity, pr):
        receipt_html = ReceiptForm(ctx.csrf_token, request_id, has_receipt=bool(pr.get("receipt"))).render()

    return f"""
    <section class="page request-detail">
        <p>{_link(back_path(identity), "Back")}</p>
        <h1>{esc(pr.get("title"))}</h1>
        {Alert(notice, "success").render() if notice else ""}
        {Alert(error).render() if error else ""}
        <p>{esc(pr.get("description"))}</p>
        <dl class="facts">{facts_html}</dl>
        <div class="actions">{''.join(actions)}</div>
        {items_html}
        {decision_html}
        {receipt_html}
        {approvals_html}
    </section>
    """


async def _load_detail(request: Request, request_id: str) -> Dict[str, Any]:
    ctx = browser_context(request)
    return await ctx.cache.fetch(
        purchase_request_key(request_id), lambda: requests_api.get_purchase_request(ctx.client, request_id)
    )


@requests_router.get("/requests/{request_id}")
async def request_detail(request: Request, request_id: str) -> Response:
    try:
        pr = await _load_detail(request, request_id)
    except (ApiError, httpx.TransportError) as exc:
        message = failure_message(request, exc)
        if isinstance(exc, ApiError) and exc.status_code == 404:
            message = "Purchase request not found."
        return render_page(request, "Purchase Request", Alert(message).render(), status_code=200)
    return render_page(request, str(pr.get("title") or "Purchase Request"), _render_detail(request, pr))


async def _decide(request: Request, request_id: str, action: str) -> Response:
    ctx = browser_context(request)
    form = await request.form()
    if not csrf_matches(ctx.csrf_token, form.get("csrf_token")):
        return csrf_error()
    decide = requests_api.approve_purchase_request if action == "approve" else requests_api.reject_purchase_request
    try:
        await decide(ctx.client, request_id, str(form.get("comments") or ""))
    except (ApiError, httpx.TransportError) as exc:
        message = failure_message(request, exc)
        try:
            pr = await _load_detail(request, request_id)
        except (ApiError, httpx.TransportError):
            return render_page(request, "Purchase Request", Alert(message).render())
        return render_page(request, str(pr.get("title") or "Purchase Request"), _render_detail(request, pr, error=message))

    invalidate_request_queries(request, request_id)
    logger.info("Request %s %s by user id %s", request_id, "approved" if action == "approve" else "rejected", _identity(request).id)
    return navigate(request, f"/requests/{request_id}")


@requests_router.post("/requests/{request_id}/approve")
async def approve_request(request: Request, request_id: str) -> Response:
    return await _decide(request, request_id, "approve")


@requests_router.post("/requests/{request_id}/reject")
async def reject_request(request: Request, request_id: str) -> Response:
    return await _decide(request, request_id, "reject")


@requests_router.post("/requests/{request_id}/receipt")
async def upload_receipt(request: Request, request_id: str) -> Response:
    ctx = browser_context(request)
    form = await request.form()
    if not csrf_matches(ctx.csrf_token, form.get("csrf_token")):
        return csrf_error()
    upload = form.get("receipt")
    error: Optional[str] = None
    if upload is None or not getattr(upload, "filename", ""):
        error = "Please choose a receipt file."
    else:
        data = await upload.read()
        try:
            await requests_api.submit_receipt(
                ctx.client, request_id, (upload.filename, data, upload.content_type or "application/octet-stream")
            )
        except (ApiError, httpx.TransportError) as exc:
            error = failure_message(request, exc)
        else:
            invalidate_request_queries(request, request_id)
            return navigate(request, f"/requests/{request_id}")

    try:
        pr = await _load_detail(request, request_id)
    except (ApiError, httpx.TransportError) as exc:
        return render_page(request, "Purchase Request", Alert(failure_message(request, exc)).render())
    return render_page(request, str(pr.get("title") or "Purchase Request"), _render_detail(request, pr, error=error))
