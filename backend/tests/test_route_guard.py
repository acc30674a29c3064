"""
Route guard decisions and the route registry.
"""
from __future__ import annotations

import pytest

from identity_access.domain import Identity, Role
from identity_access.session import SessionStatus
from guard import (  # type: ignore
    HOME_PATH,
    LOGIN_PATH,
    GuardAction,
    RouteGuard,
    find_route,
    restriction_for,
)


class _Session:
    """Read-only stand-in exposing what the guard looks at."""

    def __init__(self, status: SessionStatus, identity: Identity | None = None):
        self.status = status
        self.identity = identity

    @property
    def is_loading(self) -> bool:
        return self.status in (SessionStatus.UNINITIALIZED, SessionStatus.LOADING)

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED and self.identity is not None


def _authed(role, superuser=False):
    return _Session(SessionStatus.AUTHENTICATED, Identity(id=1, username="u", role=role, is_superuser=superuser))


def test_loading_session_waits():
    decision = RouteGuard.decide(_Session(SessionStatus.LOADING))
    assert decision.action is GuardAction.WAIT


def test_anonymous_redirects_to_login_with_replace():
    decision = RouteGuard.decide(_Session(SessionStatus.ANONYMOUS), [Role.ADMIN])
    assert decision.action is GuardAction.REDIRECT
    assert decision.location == LOGIN_PATH
    assert decision.replace is True


def test_unrestricted_route_renders_for_any_identity():
    assert RouteGuard.decide(_authed(None)).action is GuardAction.RENDER


def test_role_mismatch_redirects_home():
    decision = RouteGuard.decide(_authed(Role.APPROVER_LEVEL_2), [Role.ADMIN])
    assert decision.action is GuardAction.REDIRECT
    assert decision.location == HOME_PATH


def test_allowed_roles_accept_raw_spellings():
    decision = RouteGuard.decide(_authed(Role.APPROVER_LEVEL_1), ["approver-level-1", "finance"])
    assert decision.action is GuardAction.RENDER


def test_superuser_passes_any_restriction():
    assert RouteGuard.decide(_authed(Role.STAFF, superuser=True), [Role.ADMIN]).action is GuardAction.RENDER


def test_unknown_role_is_denied_restricted_routes():
    assert RouteGuard.decide(_authed(None), [Role.STAFF]).action is GuardAction.REDIRECT


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/dashboard", None),
        ("/requests/my-requests", None),
        ("/requests/42", None),
        ("/requests/42/approve", None),
        ("/admin/users", frozenset({Role.ADMIN})),
        ("/admin/users/7/delete", frozenset({Role.ADMIN})),
        ("/admin/anything/else", frozenset({Role.ADMIN})),
        ("/nowhere", None),
    ],
)
def test_restriction_for(path, expected):
    assert restriction_for(path) == expected


def test_exact_routes_win_over_templates():
    assert find_route("/requests/create").pattern == "/requests/create"
    assert find_route("/requests/17").pattern == "/requests/{request_id}"
    assert find_route("/unknown") is None
