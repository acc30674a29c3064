"""
Purchase request endpoints.

Opaque CRUD collaborators of the web pages: each function issues one call
through the session's `ApiClient` and returns the decoded body. List calls
accept paginated and plain list responses.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from identity_access.http_client import ApiClient, unwrap_list

REQUESTS_PATH = "/api/requests/"
REQUEST_TYPES_PATH = "/api/request-types/"


def _detail_path(request_id: str) -> str:
    return f"{REQUESTS_PATH}{request_id}/"


async def list_purchase_requests(client: ApiClient, params: Optional[Mapping[str, Any]] = None) -> List[dict]:
    body = await client.get(REQUESTS_PATH, params=dict(params or {}))
    return unwrap_list(body)


async def get_purchase_request(client: ApiClient, request_id: str) -> Dict[str, Any]:
    return await client.get(_detail_path(request_id))


async def create_purchase_request(
    client: ApiClient, fields: Mapping[str, Any], files: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    """Create a request as multipart form data (proforma upload optional)."""
    return await client.post(REQUESTS_PATH, data=dict(fields), files=dict(files) if files else None)


async def update_purchase_request(
    client: ApiClient, request_id: str, fields: Mapping[str, Any], files: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    return await client.put(_detail_path(request_id), data=dict(fields), files=dict(files) if files else None)


def _decision_body(comments: Optional[str]) -> Dict[str, Any]:
    text = (comments or "").strip()
    return {"comments": text or None}


async def approve_purchase_request(client: ApiClient, request_id: str, comments: Optional[str] = None) -> Dict[str, Any]:
    return await client.patch(f"{_detail_path(request_id)}approve/", json=_decision_body(comments))


async def reject_purchase_request(client: ApiClient, request_id: str, comments: Optional[str] = None) -> Dict[str, Any]:
    return await client.patch(f"{_detail_path(request_id)}reject/", json=_decision_body(comments))


async def submit_receipt(client: ApiClient, request_id: str, receipt: Any) -> Dict[str, Any]:
    """Upload a receipt; `receipt` is an httpx file tuple (name, bytes, type)."""
    return await client.post(f"{_detail_path(request_id)}submit-receipt/", files={"receipt": receipt})


async def list_request_types(client: ApiClient) -> List[dict]:
    return unwrap_list(await client.get(REQUEST_TYPES_PATH))
