"""
Route guard and route registry.

The guard is a pure decision function over the session state; the web layer
translates its decision into an HTTP response (full-page redirect or HTMX
redirect). Keeping the decision free of FastAPI makes the table easy to test.

Decision table:

    loading / uninitialized            -> WAIT (neutral loading view)
    anonymous                          -> REDIRECT /login (replace history)
    authenticated, no restriction      -> RENDER
    authenticated, not in allowed set,
      not a superuser                  -> REDIRECT /dashboard (replace history)
    otherwise                          -> RENDER
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Tuple

from identity_access.domain import Role, parse_roles
from identity_access.session import SessionStore

LOGIN_PATH = "/login"
HOME_PATH = "/dashboard"


class GuardAction(str, Enum):
    WAIT = "wait"
    RENDER = "render"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class GuardDecision:
    action: GuardAction
    location: Optional[str] = None
    replace: bool = False

    @classmethod
    def redirect(cls, location: str) -> "GuardDecision":
        # Guard redirects never add a history entry.
        return cls(GuardAction.REDIRECT, location=location, replace=True)


WAIT = GuardDecision(GuardAction.WAIT)
RENDER = GuardDecision(GuardAction.RENDER)


class RouteGuard:
    """Gate a page on authentication and, optionally, on a role set."""

    @staticmethod
    def decide(session: SessionStore, allowed_roles: Optional[Iterable[Any]] = None) -> GuardDecision:
        if session.is_loading:
            return WAIT

        identity = session.identity
        if not session.is_authenticated or identity is None:
            return GuardDecision.redirect(LOGIN_PATH)

        if allowed_roles is None:
            return RENDER

        allowed = parse_roles(allowed_roles)
        if identity.is_superuser or identity.has_role(allowed):
            return RENDER
        return GuardDecision.redirect(HOME_PATH)


# --- Route registry -----------------------------------------------------------


@dataclass(frozen=True)
class RouteSpec:
    """A guarded page. `{name}` segments match any single path segment."""

    pattern: str
    allowed_roles: Optional[frozenset[Role]] = None

    def matches(self, path: str) -> bool:
        want = self.pattern.strip("/").split("/")
        have = path.rstrip("/").strip("/").split("/")
        if len(want) != len(have):
            return False
        return all(w.startswith("{") or w == h for w, h in zip(want, have))


_ADMIN = frozenset({Role.ADMIN})

ROUTES: Tuple[RouteSpec, ...] = (
    RouteSpec("/dashboard"),
    RouteSpec("/profile"),
    RouteSpec("/requests/my-requests"),
    RouteSpec("/requests/create"),
    RouteSpec("/requests/all"),
    RouteSpec("/requests/approved"),
    RouteSpec("/requests/{request_id}"),
    RouteSpec("/requests/{request_id}/{action}"),
    RouteSpec("/approvals/pending"),
    RouteSpec("/admin/users", _ADMIN),
    RouteSpec("/admin/users/{user_id}/{action}", _ADMIN),
    RouteSpec("/admin/request-types", _ADMIN),
    RouteSpec("/admin/request-types/{type_id}/{action}", _ADMIN),
    RouteSpec("/admin/approval-levels", _ADMIN),
    RouteSpec("/admin/approval-levels/{level_id}/{action}", _ADMIN),
)


def find_route(path: str) -> Optional[RouteSpec]:
    """Return the registered route for `path`; exact patterns win over templates."""
    for route in ROUTES:
        if "{" not in route.pattern and route.matches(path):
            return route
    for route in ROUTES:
        if route.matches(path):
            return route
    return None


def restriction_for(path: str) -> Optional[frozenset[Role]]:
    """Allowed roles for `path`; anything below /admin/ is admin-only."""
    route = find_route(path)
    if route is not None:
        return route.allowed_roles
    if path.startswith("/admin/") or path == "/admin":
        return _ADMIN
    return None
