"""
Admin endpoints: user accounts, request types and approval levels.

The backend enforces admin permissions; these wrappers only shape requests.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from identity_access.http_client import ApiClient, unwrap_list

USERS_PATH = "/api/users/"
REQUEST_TYPES_PATH = "/api/request-types/"
APPROVAL_LEVELS_PATH = "/api/approval-levels/"


# --- Users --------------------------------------------------------------------

async def list_users(client: ApiClient, params: Optional[Mapping[str, Any]] = None) -> List[dict]:
    return unwrap_list(await client.get(USERS_PATH, params=dict(params or {})))


async def create_user(client: ApiClient, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Create a user account.

    An empty password is not sent at all (together with its confirmation) so
    the backend generates one.
    """
    payload = dict(data)
    if not str(payload.get("password") or "").strip():
        payload.pop("password", None)
        payload.pop("password_confirm", None)
    return await client.post(USERS_PATH, json=payload)


async def update_user(client: ApiClient, user_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
    return await client.patch(f"{USERS_PATH}{user_id}/", json=dict(data))


async def delete_user(client: ApiClient, user_id: str) -> Any:
    return await client.delete(f"{USERS_PATH}{user_id}/")


# --- Request types -------------------------------------------------------------

async def list_request_types(client: ApiClient) -> List[dict]:
    return unwrap_list(await client.get(REQUEST_TYPES_PATH))


async def create_request_type(client: ApiClient, data: Mapping[str, Any]) -> Dict[str, Any]:
    return await client.post(REQUEST_TYPES_PATH, json=dict(data))


async def update_request_type(client: ApiClient, type_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
    return await client.patch(f"{REQUEST_TYPES_PATH}{type_id}/", json=dict(data))


async def delete_request_type(client: ApiClient, type_id: str) -> Any:
    return await client.delete(f"{REQUEST_TYPES_PATH}{type_id}/")


# --- Approval levels -------------------------------------------------------------

async def list_approval_levels(client: ApiClient, params: Optional[Mapping[str, Any]] = None) -> List[dict]:
    return unwrap_list(await client.get(APPROVAL_LEVELS_PATH, params=dict(params or {})))


async def create_approval_level(client: ApiClient, data: Mapping[str, Any]) -> Dict[str, Any]:
    return await client.post(APPROVAL_LEVELS_PATH, json=dict(data))


async def update_approval_level(client: ApiClient, level_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
    return await client.patch(f"{APPROVAL_LEVELS_PATH}{level_id}/", json=dict(data))


async def delete_approval_level(client: ApiClient, level_id: str) -> Any:
    return await client.delete(f"{APPROVAL_LEVELS_PATH}{level_id}/")
