"""
Login and logout routes (router-only module).

Why:
    Login exchanges credentials for tokens through the session store; logout
    is purely local. Both end in a full page load so the next page starts
    with a fresh session restore.

Notes:
    - The login form posts as a plain request (no HTMX). A failed login
      re-renders the form with the backend message and leaves any stored
      session untouched.
    - Passwords are never logged.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, Response
import logging

import httpx

from identity_access.errors import ApiError

try:
    from components import Layout, LoginForm
    from responses import UNREACHABLE_MESSAGE, browser_context, csrf_error, layout_response, page_load_redirect
    from auth_utils import csrf_matches
    from guard import HOME_PATH, LOGIN_PATH
except ImportError:  # package layout
    from ..components import Layout, LoginForm
    from ..responses import UNREACHABLE_MESSAGE, browser_context, csrf_error, layout_response, page_load_redirect
    from ..auth_utils import csrf_matches
    from ..guard import HOME_PATH, LOGIN_PATH


auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("procure.web.auth")


def _login_page(request: Request, *, username: str = "", error: str | None = None, status_code: int = 200) -> HTMLResponse:
    ctx = browser_context(request)
    content = f"""
    <section class="auth-page">
        <h1>Sign in</h1>
        <p class="text-muted">Procurement portal</p>
        {LoginForm(ctx.csrf_token, username=username, error=error).render()}
    </section>
    """
    layout = Layout("Sign in", content, identity=None, show_nav=False, current_path=LOGIN_PATH)
    response = layout_response(request, layout, status_code=status_code)
    response.headers["Cache-Control"] = "private, no-store"
    return response


@auth_router.get(LOGIN_PATH)
async def login_page(request: Request) -> Response:
    """Show the login form; already authenticated browsers go to the dashboard."""
    if browser_context(request).session.is_authenticated:
        return page_load_redirect(request, HOME_PATH)
    return _login_page(request)


@auth_router.post(LOGIN_PATH)
async def login_submit(request: Request) -> Response:
    ctx = browser_context(request)
    form = await request.form()
    if not csrf_matches(ctx.csrf_token, form.get("csrf_token")):
        return csrf_error()

    username = str(form.get("username") or "").strip()
    password = str(form.get("password") or "")
    if not username or not password:
        return _login_page(request, username=username, error="Please enter username and password.", status_code=400)

    try:
        await ctx.login(username, password)
    except ApiError as exc:
        logger.info("Login rejected (status=%s)", exc.status_code)
        error = "Invalid username or password." if exc.status_code == 401 else exc.detail
        return _login_page(request, username=username, error=error, status_code=400)
    except httpx.TransportError as exc:
        logger.warning("Login failed, backend unreachable: %s", exc.__class__.__name__)
        return _login_page(request, username=username, error=UNREACHABLE_MESSAGE, status_code=503)

    return page_load_redirect(request, HOME_PATH)


@auth_router.get("/logout")
async def logout(request: Request) -> Response:
    """Clear the local session and start over at the login page. Idempotent."""
    browser_context(request).logout()
    return page_load_redirect(request, LOGIN_PATH)
