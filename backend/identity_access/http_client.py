"""
HTTP client for the procurement REST backend.

Why: Every call to the backend needs the bearer token of the current browser
session, and an expired access token must be refreshed transparently. Keeping
both concerns here means page handlers simply await `client.get(...)`.

Behavior:
- Request phase: attaches `Authorization: Bearer <access>` when an access
  token is stored; unauthenticated calls pass through.
- Response phase, 401 only:
    * already retried -> the 401 propagates;
    * no refresh token -> session teardown + login redirect, original error
      propagates;
    * refresh succeeds -> new access token persisted, request re-issued once,
      the caller only sees the final response;
    * refresh fails -> session teardown + login redirect, refresh error
      propagates.
- Transport failures (`httpx.TransportError`) propagate unchanged and never
  trigger a refresh.

The retry path carries an explicit `RequestContext` with an attempt counter;
nothing is stored on the request object.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional
import logging

import httpx

from .errors import ApiError
from .stores import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, Storage, write_access_token

logger = logging.getLogger("procure.identity_access")

TOKEN_REFRESH_PATH = "/api/token/refresh/"
DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class RequestContext:
    method: str
    path: str
    params: Optional[Dict[str, Any]] = None
    json: Any = None
    data: Optional[Dict[str, Any]] = None
    files: Any = None
    public: bool = False
    attempt: int = 0

    def retried(self) -> "RequestContext":
        return replace(self, attempt=self.attempt + 1)


def _decode(response: httpx.Response) -> Any:
    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _api_error(response: httpx.Response) -> ApiError:
    request = response.request
    return ApiError(
        response.status_code,
        _decode(response),
        method=request.method if request else "",
        url=str(request.url) if request else "",
    )


def unwrap_list(body: Any) -> list:
    """Accept both paginated (`{"results": [...]}`) and plain list bodies."""
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        results = body.get("results")
        return results if isinstance(results, list) else []
    return []


class ApiClient:
    """Async REST client bound to one browser session storage.

    Parameters
    ----------
    storage:
        Storage holding `access_token` / `refresh_token`.
    base_url:
        Backend origin, e.g. `http://localhost:8000`.
    on_session_expired:
        Called when the session can no longer be refreshed. The owner tears
        the session down and schedules the login redirect.
    transport:
        Optional httpx transport (tests use `httpx.MockTransport`).
    """

    def __init__(
        self,
        storage: Storage,
        *,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        on_session_expired: Optional[Callable[[], None]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._storage = storage
        self.on_session_expired = on_session_expired
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    # --- Core request path -----------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        data: Optional[Dict[str, Any]] = None,
        files: Any = None,
        public: bool = False,
    ) -> httpx.Response:
        """Send a request through the interceptor.

        `public=True` sends no bearer header and skips the 401 handling (used
        for the credential exchange, where a 401 means bad credentials).
        """
        ctx = RequestContext(
            method=method.upper(), path=path, params=params, json=json, data=data, files=files, public=public
        )
        return await self._send(ctx)

    async def _send(self, ctx: RequestContext) -> httpx.Response:
        headers: Dict[str, str] = {}
        token = None if ctx.public else self._storage.get(ACCESS_TOKEN_KEY)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        response = await self._http.request(
            ctx.method,
            ctx.path,
            params=ctx.params,
            json=ctx.json,
            data=ctx.data,
            files=ctx.files,
            headers=headers,
        )
        if response.status_code == 401 and not ctx.public:
            return await self._handle_unauthorized(ctx, response)
        if response.is_error:
            raise _api_error(response)
        return response

    async def _handle_unauthorized(self, ctx: RequestContext, response: httpx.Response) -> httpx.Response:
        error = _api_error(response)
        if ctx.attempt > 0:
            raise error

        refresh = self._storage.get(REFRESH_TOKEN_KEY)
        if not refresh:
            logger.info("401 without refresh token; ending session")
            self._expire()
            raise error

        try:
            access = await self.refresh_access_token(refresh)
        except (ApiError, httpx.TransportError) as exc:
            logger.warning("Token refresh failed: %s", exc.__class__.__name__)
            self._expire()
            raise

        write_access_token(self._storage, access)
        return await self._send(ctx.retried())

    def _expire(self) -> None:
        if self.on_session_expired is not None:
            self.on_session_expired()

    async def refresh_access_token(self, refresh: str) -> str:
        """Exchange a refresh token for a new access token.

        Goes straight to the transport: no bearer header and no interceptor.
        Raises ApiError when the endpoint rejects the token or omits `access`.
        """
        response = await self._http.post(TOKEN_REFRESH_PATH, json={"refresh": refresh})
        if response.is_error:
            raise _api_error(response)
        body = _decode(response)
        access = body.get("access") if isinstance(body, dict) else None
        if not access or not isinstance(access, str):
            raise ApiError(response.status_code, body, method="POST", url=str(response.request.url))
        return access

    # --- JSON helpers ----------------------------------------------------

    async def get(self, path: str, *, params: Optional[Dict[str, Any]] = None) -> Any:
        return _decode(await self.request("GET", path, params=params))

    async def post(
        self,
        path: str,
        *,
        json: Any = None,
        data: Optional[Dict[str, Any]] = None,
        files: Any = None,
        public: bool = False,
    ) -> Any:
        return _decode(await self.request("POST", path, json=json, data=data, files=files, public=public))

    async def put(self, path: str, *, json: Any = None, data: Optional[Dict[str, Any]] = None, files: Any = None) -> Any:
        return _decode(await self.request("PUT", path, json=json, data=data, files=files))

    async def patch(self, path: str, *, json: Any = None) -> Any:
        return _decode(await self.request("PATCH", path, json=json))

    async def delete(self, path: str) -> Any:
        return _decode(await self.request("DELETE", path))
