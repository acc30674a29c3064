"""
Auth endpoints of the procurement backend.

A thin adapter over `ApiClient` used by the session store and the profile
page. It returns decoded JSON bodies and lets `ApiError` /
`httpx.TransportError` propagate; callers decide how to present them.

Security: Never log credentials or tokens.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from .http_client import ApiClient


class AuthClient:
    TOKEN_PATH = "/api/token/"
    ME_PATH = "/api/auth/me/"
    PROFILE_PATH = "/api/auth/profile/"
    ACCOUNT_PATH = "/api/auth/user/"

    def __init__(self, client: ApiClient) -> None:
        self.client = client

    async def issue_tokens(self, *, username: str, password: str) -> Dict[str, Any]:
        """Return `{access, refresh, user}` for valid credentials."""
        body = await self.client.post(self.TOKEN_PATH, json={"username": username, "password": password}, public=True)
        return body if isinstance(body, dict) else {}

    async def who_am_i(self) -> Dict[str, Any]:
        """Raw user payload; may lack `role` and needs normalization."""
        body = await self.client.get(self.ME_PATH)
        return body if isinstance(body, dict) else {}

    async def get_profile(self) -> Dict[str, Any]:
        body = await self.client.get(self.PROFILE_PATH)
        return body if isinstance(body, dict) else {}

    async def update_profile(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        body = await self.client.put(self.PROFILE_PATH, json=dict(fields))
        return body if isinstance(body, dict) else {}

    async def update_account(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Partial update of the account fields (username, names, email)."""
        body = await self.client.patch(self.ACCOUNT_PATH, json=dict(fields))
        return body if isinstance(body, dict) else {}

