"Procurement portal"
from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
import logging
import os
import sys as _sys

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from identity_access.errors import ApiError

from components import Alert, Layout, LoadingView

try:
    from .auth_utils import cookie_opts
except ImportError:
    from auth_utils import cookie_opts

# Ensure legacy imports consistently reference the same module instance.
if __name__ == "main":
    _sys.modules.setdefault("backend.web.main", _sys.modules[__name__])
elif __name__ == "backend.web.main":
    _sys.modules["main"] = _sys.modules[__name__]


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via PROCURE_ENABLE_DOTENV (default true outside
      pytest).
    """
    if "pytest" in _sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("PROCURE_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


from dotenv import load_dotenv

if _should_load_dotenv():
    load_dotenv()

import config as _cfg
from context import BROWSER_COOKIE_NAME, BrowserContextRegistry
from guard import LOGIN_PATH, HOME_PATH, GuardAction, RouteGuard, restriction_for
from responses import UNREACHABLE_MESSAGE, guard_redirect, is_htmx, layout_response, navigate, render_page

# Fail fast on insecure production configuration.
SETTINGS = _cfg.load_settings()
_cfg.ensure_secure_config_on_startup(SETTINGS)

logger = logging.getLogger("procure.web")
REGISTRY = BrowserContextRegistry(SETTINGS)
# Browser ids outlive a single browser session, like local storage does.
BROWSER_COOKIE_MAX_AGE = 60 * 60 * 24 * 30


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await REGISTRY.aclose()


app = FastAPI(
    title="Procurement portal",
    description="Purchase request workflow",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.settings = SETTINGS

# --- Static Files & Routers -----------------------------------------------------

static_dir = Path(__file__).parent / "static"
app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

from routes.auth import auth_router
from routes.requests import requests_router
from routes.profile import profile_router
from routes.admin import admin_router

# --- Auth Helpers & Middleware --------------------------------------------------


def _is_public_path(path: str) -> bool:
    """Paths rendered without the route guard (they still get a browser context)."""
    return path in (LOGIN_PATH, "/logout")


def _is_asset_path(path: str) -> bool:
    return path.startswith("/static/") or path in ("/health", "/favicon.ico")


def _set_browser_cookie(response: Response, value: str) -> None:
    opts = cookie_opts(SETTINGS.environment)
    response.set_cookie(
        key=BROWSER_COOKIE_NAME,
        value=value,
        httponly=opts["httponly"],
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        max_age=BROWSER_COOKIE_MAX_AGE,
    )


def _loading_response(request: Request) -> Response:
    path = request.url.path
    layout = Layout(title="Loading", content=LoadingView(path).render(), current_path=path, loading=True)
    return layout_response(request, layout, headers={"Cache-Control": "private, no-store"})


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    path = request.url.path
    if _is_asset_path(path):
        return await call_next(request)

    cookie_value = request.cookies.get(BROWSER_COOKIE_NAME)
    ctx = await REGISTRY.resolve(cookie_value)
    request.state.browser = ctx

    # A full GET is a page load; HTMX requests are navigation inside the app.
    page_load = request.method == "GET" and not is_htmx(request)
    # Logout never needs a verified session.
    if path != "/logout":
        await ctx.ensure_restored(page_load=page_load)
    # A failed restore already left the session anonymous; the guard decides.
    ctx.take_pending_redirect()

    if _is_public_path(path):
        request.state.identity = ctx.session.identity
        response = await call_next(request)
        ctx.take_pending_redirect()
    else:
        decision = RouteGuard.decide(ctx.session, restriction_for(path))
        if decision.action is GuardAction.WAIT:
            response = _loading_response(request)
        elif decision.action is GuardAction.REDIRECT:
            response = guard_redirect(request, decision.location)
        else:
            request.state.identity = ctx.session.identity
            response = await call_next(request)
            # The session ended while handling the request (refresh impossible).
            location = ctx.take_pending_redirect()
            if location:
                response = guard_redirect(request, location)

    if cookie_value != ctx.browser_id:
        _set_browser_cookie(response, ctx.browser_id)
    return response


# --- Security Headers Middleware ----------------------------------------------


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    if SETTINGS.is_prod_like:
        csp = (
            "default-src 'self'; script-src 'self'; style-src 'self'; "
            "img-src 'self' data:; font-src 'self' data:; connect-src 'self';"
        )
    else:
        # Inline styles/scripts allowed for local development.
        csp = (
            "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; font-src 'self' data:; connect-src 'self';"
        )
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    if SETTINGS.is_prod_like:
        response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
        response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- Error Handlers ---------------------------------------------------------------


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    logger.warning("Backend call failed: %s", exc)
    return render_page(request, "Error", Alert(exc.detail).render(), status_code=502)


@app.exception_handler(httpx.TransportError)
async def transport_error_handler(request: Request, exc: httpx.TransportError):
    logger.warning("Backend unreachable: %s", exc.__class__.__name__)
    return render_page(request, "Error", Alert(UNREACHABLE_MESSAGE).render(), status_code=503)


# --- Routes -----------------------------------------------------------------------

app.include_router(auth_router)
app.include_router(requests_router)
app.include_router(profile_router)
app.include_router(admin_router)


@app.get("/health")
async def health_check():
    # Security: include no-store to avoid caching any runtime status.
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "private, no-store"})


@app.get("/")
async def home(request: Request):
    return navigate(request, HOME_PATH)


@app.get("/{unknown_path:path}")
async def fallback(request: Request, unknown_path: str):
    """Unknown paths land on the dashboard."""
    return navigate(request, HOME_PATH)
