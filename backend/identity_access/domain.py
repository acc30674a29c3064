"""
Identity domain: roles and the authenticated principal.

Why:
- Centralize the closed set of roles so the web layer never compares raw role
  strings. Upstream payloads use two spellings for approver roles
  (`approver_level_1` and `approver-level-1`); both are parsed here, once, at
  the boundary.
- Keep the normalization of the different user payload shapes (login response,
  who-am-I response) in one tested function.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    """User roles of the procurement workflow"""

    STAFF = "staff"
    APPROVER_LEVEL_1 = "approver_level_1"
    APPROVER_LEVEL_2 = "approver_level_2"
    FINANCE = "finance"
    ADMIN = "admin"

    @classmethod
    def parse(cls, raw: Any) -> Optional["Role"]:
        """Return the canonical role for `raw` or None when unknown.

        Accepts the hyphenated synonyms and ignores case and surrounding
        whitespace. Role members are returned unchanged.
        """
        if isinstance(raw, Role):
            return raw
        if not isinstance(raw, str):
            return None
        key = raw.strip().lower().replace("-", "_")
        if not key:
            return None
        try:
            return cls(key)
        except ValueError:
            return None

    @property
    def label(self) -> str:
        return _ROLE_LABELS[self]

    @property
    def is_approver(self) -> bool:
        return self in (Role.APPROVER_LEVEL_1, Role.APPROVER_LEVEL_2)


_ROLE_LABELS = {
    Role.STAFF: "Staff",
    Role.APPROVER_LEVEL_1: "Approver Level 1",
    Role.APPROVER_LEVEL_2: "Approver Level 2",
    Role.FINANCE: "Finance",
    Role.ADMIN: "Administrator",
}

# Immutable to prevent accidental mutation.
ALL_ROLES = frozenset(Role)


def parse_roles(values: Any) -> frozenset[Role]:
    """Parse an iterable of raw role strings, dropping unknown values."""
    if values is None:
        return frozenset()
    if isinstance(values, (str, Role)):
        values = [values]
    parsed = (Role.parse(v) for v in values)
    return frozenset(r for r in parsed if r is not None)


class Identity(BaseModel):
    """The authenticated principal.

    `role` is None only for a regular account whose payload carries no
    recognizable role. Superusers always end up with a role (see
    `normalize_identity`).
    """

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    id: Any = None
    username: str = ""
    email: str = ""
    role: Optional[Role] = None
    role_display: Optional[str] = None
    is_superuser: bool = False

    @classmethod
    def from_login(cls, payload: Mapping[str, Any]) -> "Identity":
        """Build an Identity from a login response `user` object.

        Login responses are already in canonical shape; only the role spelling
        is canonicalised.
        """
        data = dict(payload or {})
        return cls(
            id=data.get("id"),
            username=str(data.get("username") or ""),
            email=str(data.get("email") or ""),
            role=Role.parse(data.get("role")),
            role_display=data.get("role_display"),
            is_superuser=bool(data.get("is_superuser", False)),
        )

    def to_storage(self) -> dict:
        """Serialize with canonical role spelling (JSON-safe)."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role.value if self.role else None,
            "role_display": self.role_display,
            "is_superuser": self.is_superuser,
        }

    def has_role(self, allowed: frozenset[Role]) -> bool:
        return self.role is not None and self.role in allowed


def normalize_identity(payload: Mapping[str, Any]) -> Identity:
    """Normalize a raw user payload into an Identity.

    Shapes handled:
    - top-level `role` (login-style): keep it, derive `role_display` when
      missing, treat admins as superusers;
    - `is_superuser` without a usable role (missing, empty or unknown): admin
      with display "Administrator";
    - nested `profile` object carrying `role`/`role_display`;
    - anything else: no role.
    """
    data = dict(payload or {})
    base = {
        "id": data.get("id"),
        "username": str(data.get("username") or ""),
        "email": str(data.get("email") or ""),
    }

    role = Role.parse(data.get("role"))
    if data.get("role") is not None and (role is not None or not data.get("is_superuser")):
        display = data.get("role_display") or (role.label if role else None)
        return Identity(
            **base,
            role=role,
            role_display=display,
            is_superuser=role is Role.ADMIN or bool(data.get("is_superuser")),
        )

    if data.get("is_superuser"):
        return Identity(**base, role=Role.ADMIN, role_display=Role.ADMIN.label, is_superuser=True)

    profile = data.get("profile")
    if isinstance(profile, Mapping):
        role = Role.parse(profile.get("role"))
        display = profile.get("role_display") or (role.label if role else None)
        return Identity(**base, role=role, role_display=display, is_superuser=False)

    return Identity(**base, role=None, role_display=None, is_superuser=False)


__all__ = ["ALL_ROLES", "Identity", "Role", "normalize_identity", "parse_roles"]
