"""
Shared cookie and CSRF utilities.

Why:
    The browser cookie and the per-browser CSRF token are used by the main app
    and by every router that accepts form posts. Keeping the policy here
    avoids drift between modules.

Design:
    The helpers are framework-agnostic and pure; callers pass the values they
    already hold (environment string, expected token).
"""

from __future__ import annotations

import hmac
from typing import Optional


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags (dev = prod).

    Returns a mapping with keys:
      - secure: True
      - samesite: "lax"
      - httponly: True
    """
    # Lax keeps the cookie on top-level navigations (e.g. following a link
    # into the portal from a notification mail).
    return {"secure": True, "samesite": "lax", "httponly": True}


def csrf_matches(expected: Optional[str], submitted: Optional[str]) -> bool:
    """Constant-time comparison of the stored and submitted CSRF tokens."""
    if not expected or not submitted:
        return False
    return hmac.compare_digest(expected, str(submitted))
