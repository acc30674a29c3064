"""
Role-to-navigation resolver.

Pure functions from the current identity to the ordered list of menu entries.
The sidebar, the header bar and the route registry all read the same role
sets defined here, so roles can be extended without touching rendering code.

Visibility alone never grants access: the route guard and the backend enforce
permissions independently.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from identity_access.domain import ALL_ROLES, Identity, Role


@dataclass(frozen=True)
class NavEntry:
    path: str
    label: str
    allowed_roles: frozenset[Role]


_APPROVERS = frozenset({Role.APPROVER_LEVEL_1, Role.APPROVER_LEVEL_2})

DASHBOARD = NavEntry("/dashboard", "Dashboard", ALL_ROLES)

STAFF_MENU: Tuple[NavEntry, ...] = (
    NavEntry("/requests/my-requests", "My Requests", frozenset({Role.STAFF})),
    NavEntry("/requests/create", "Create Request", frozenset({Role.STAFF})),
)

APPROVER_MENU: Tuple[NavEntry, ...] = (
    NavEntry("/approvals/pending", "Pending Approvals", _APPROVERS),
    NavEntry("/requests/all", "All Requests", _APPROVERS),
)

FINANCE_MENU: Tuple[NavEntry, ...] = (
    NavEntry("/requests/approved", "Approved Requests", frozenset({Role.FINANCE})),
    NavEntry("/requests/all", "All Requests", frozenset({Role.FINANCE})),
)

ADMIN_MENU: Tuple[NavEntry, ...] = (
    NavEntry("/requests/all", "All Requests", frozenset({Role.ADMIN})),
    NavEntry("/admin/users", "Users", frozenset({Role.ADMIN})),
    NavEntry("/admin/request-types", "Request Types", frozenset({Role.ADMIN})),
    NavEntry("/admin/approval-levels", "Approval Levels", frozenset({Role.ADMIN})),
)

COMMON_MENU: Tuple[NavEntry, ...] = (
    NavEntry("/profile", "Profile", ALL_ROLES),
)


def _role_menu(role: Optional[Role]) -> Tuple[NavEntry, ...]:
    if role is not None and role.is_approver:
        return APPROVER_MENU
    if role is Role.FINANCE:
        return FINANCE_MENU
    if role is Role.ADMIN:
        return ADMIN_MENU
    # Staff, and any identity without a recognizable role.
    return STAFF_MENU


def dedupe_by_path(entries: Iterable[NavEntry]) -> List[NavEntry]:
    """Keep the first entry per path, preserving first-seen order."""
    seen: set[str] = set()
    result: List[NavEntry] = []
    for entry in entries:
        if entry.path in seen:
            continue
        seen.add(entry.path)
        result.append(entry)
    return result


def resolve_navigation(
    identity: Optional[Identity],
    *,
    loading: bool = False,
    include_profile: bool = True,
) -> List[NavEntry]:
    """Return the visible menu entries for `identity`.

    - Nothing while the session is loading or when nobody is logged in.
    - Superusers whose role is not admin see every role menu; an admin
      superuser sees the admin menu once.
    - Everyone else sees exactly the menu of their role.
    """
    if loading or identity is None:
        return []

    entries: List[NavEntry] = [DASHBOARD]
    if identity.is_superuser and identity.role is not Role.ADMIN:
        entries.extend(STAFF_MENU)
        entries.extend(APPROVER_MENU)
        entries.extend(FINANCE_MENU)
        entries.extend(ADMIN_MENU)
    elif identity.is_superuser:
        entries.extend(ADMIN_MENU)
    else:
        entries.extend(_role_menu(identity.role))

    if include_profile:
        entries.extend(COMMON_MENU)
    return dedupe_by_path(entries)


def resolve_sidebar_menu(identity: Optional[Identity], *, loading: bool = False) -> List[NavEntry]:
    return resolve_navigation(identity, loading=loading, include_profile=True)


def resolve_header_menu(identity: Optional[Identity], *, loading: bool = False) -> List[NavEntry]:
    """Header variant: Profile lives in the user menu instead."""
    return resolve_navigation(identity, loading=loading, include_profile=False)
