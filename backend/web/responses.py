"""
HTMX-aware response helpers shared by the main app and the routers.

Rules:
- HTMX navigation receives the main fragment plus out-of-band chrome; full
  requests receive the whole document.
- Personalized pages are never cached by intermediaries.
- Redirects: HTMX requests get `HX-Redirect` (full page load) or
  `HX-Location` (in-app navigation); plain requests get a 3xx.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from identity_access.errors import ApiError

try:
    from components import Layout
    from context import BrowserContext
except ImportError:  # package layout
    from .components import Layout
    from .context import BrowserContext

NO_STORE = {"Cache-Control": "private, no-store", "Vary": "HX-Request"}
UNREACHABLE_MESSAGE = "The server could not be reached. Please try again."

logger = logging.getLogger("procure.web")


def is_htmx(request: Request) -> bool:
    return bool(request.headers.get("HX-Request"))


def browser_context(request: Request) -> BrowserContext:
    """The context resolved by the auth middleware for this request."""
    return request.state.browser


def layout_response(
    request: Request,
    layout: Layout,
    *,
    status_code: int = 200,
    headers: Optional[dict[str, str]] = None,
) -> HTMLResponse:
    """Render `layout` as fragment (HTMX) or full document."""
    body = layout.render_fragment() if is_htmx(request) else layout.render()
    response = HTMLResponse(content=body, status_code=status_code)
    if getattr(request.state, "identity", None) is not None:
        response.headers["Cache-Control"] = "private, no-store"
    response.headers["Vary"] = "HX-Request"
    for key, value in (headers or {}).items():
        response.headers[key] = value
    return response


def page_load_redirect(request: Request, location: str, *, status_code: int = 303) -> Response:
    """Redirect that must end in a fresh page load (login, logout)."""
    if is_htmx(request):
        return Response(status_code=204, headers={**NO_STORE, "HX-Redirect": location})
    return RedirectResponse(url=location, status_code=status_code, headers=NO_STORE)


def guard_redirect(request: Request, location: str) -> Response:
    """Route guard redirect: replaces the current history entry."""
    if is_htmx(request):
        return Response(
            status_code=401,
            headers={**NO_STORE, "HX-Redirect": location, "HX-Replace-Url": location},
        )
    return RedirectResponse(url=location, status_code=302, headers=NO_STORE)


def navigate(request: Request, location: str) -> Response:
    """Post/redirect/get inside the app without reloading the page."""
    if is_htmx(request):
        target = json.dumps({"path": location, "target": "#main-content"})
        return Response(status_code=200, headers={**NO_STORE, "HX-Location": target})
    return RedirectResponse(url=location, status_code=303, headers=NO_STORE)


def csrf_error() -> HTMLResponse:
    return HTMLResponse(content="CSRF Error", status_code=403, headers=NO_STORE)


def render_page(request: Request, title: str, content: str, *, status_code: int = 200) -> HTMLResponse:
    """Render a guarded page for the current identity."""
    layout = Layout(
        title=title,
        content=content,
        identity=getattr(request.state, "identity", None),
        current_path=request.url.path,
    )
    return layout_response(request, layout, status_code=status_code)


def failure_message(request: Request, exc: Exception) -> str:
    """Inline message for a failed backend call.

    Re-raises when the failure ended the session so the middleware can send
    the browser to the login page instead.
    """
    if browser_context(request).pending_redirect:
        raise exc
    if isinstance(exc, ApiError):
        return exc.detail
    logger.warning("Backend unreachable: %s", exc.__class__.__name__)
    return UNREACHABLE_MESSAGE
