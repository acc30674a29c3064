"""
Per-browser context: the server-side counterpart of one browser tab set.

Why: The session core (storage, HTTP client, session store, query cache) is
scoped to one browser. The browser only holds an opaque id in the
`procure_browser` cookie; everything else stays on the server.

Lifecycle:
- A context is created on the first request with an unknown or missing id.
- Contexts idle for longer than `idle_ttl_seconds` are closed. A storage
  namespace holding a session survives (memory dictionary or database table),
  so a returning browser restores its session on the next page load; empty
  memory namespaces are dropped with their context.
"""

from __future__ import annotations

from typing import Dict, Optional
import asyncio
import logging
import re
import secrets
import time

import httpx

from identity_access.auth_client import AuthClient
from identity_access.http_client import ApiClient
from identity_access.session import SessionStatus, SessionStore
from identity_access.stores import MemoryStorage, Storage
from identity_access.stores_db import DBStorage
from procurement.cache import QueryCache

try:
    from .config import Settings
    from .guard import LOGIN_PATH
except ImportError:  # flat layout (tests import `main` from backend/web)
    from config import Settings
    from guard import LOGIN_PATH

logger = logging.getLogger("procure.web")

BROWSER_COOKIE_NAME = "procure_browser"
DEFAULT_IDLE_TTL_SECONDS = 3600.0
_BROWSER_ID_RE = re.compile(r"^[A-Za-z0-9_\-]{16,128}$")


def new_browser_id() -> str:
    return secrets.token_urlsafe(32)


def is_valid_browser_id(value: Optional[str]) -> bool:
    return bool(value) and bool(_BROWSER_ID_RE.match(value or ""))


class BrowserContext:
    """Session core for one browser.

    `pending_redirect` is set when the HTTP client gave up on the session
    (refresh impossible); the web layer turns it into a redirect to /login on
    the response of the request that triggered it.
    """

    def __init__(
        self,
        browser_id: str,
        storage: Storage,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.browser_id = browser_id
        self.storage = storage
        self.client = ApiClient(
            storage,
            base_url=settings.api_base_url,
            timeout=settings.api_timeout,
            on_session_expired=self._on_session_expired,
            transport=transport,
        )
        self.auth = AuthClient(self.client)
        self.session = SessionStore(storage, self.auth)
        self.cache = QueryCache(stale_seconds=settings.query_stale_seconds)
        self.csrf_token = secrets.token_urlsafe(24)
        self.pending_redirect: Optional[str] = None
        self.last_seen = time.monotonic()

    def _on_session_expired(self) -> None:
        self.session.expire()
        self.cache.clear()
        self.pending_redirect = LOGIN_PATH

    def take_pending_redirect(self) -> Optional[str]:
        location, self.pending_redirect = self.pending_redirect, None
        return location

    async def ensure_restored(self, *, page_load: bool) -> None:
        """Run session restoration once per page load.

        A page load that arrives while another request is still restoring
        does not start a second restoration; it observes the loading state.
        """
        if page_load and self.session.status is not SessionStatus.LOADING:
            self.session.begin_page_load()
        if self.session.status is SessionStatus.UNINITIALIZED:
            await self.session.restore()

    async def login(self, username: str, password: str):
        identity = await self.session.login(username, password)
        self.cache.clear()
        self.pending_redirect = None
        return identity

    def logout(self) -> None:
        self.session.logout()
        self.cache.clear()

    async def aclose(self) -> None:
        await self.client.aclose()


class BrowserContextRegistry:
    """Creates, caches and evicts browser contexts."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        idle_ttl_seconds: float = DEFAULT_IDLE_TTL_SECONDS,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.idle_ttl_seconds = idle_ttl_seconds
        self._contexts: Dict[str, BrowserContext] = {}
        self._memory: Dict[str, MemoryStorage] = {}
        self._lock = asyncio.Lock()

    def _storage_for(self, browser_id: str) -> Storage:
        if self.settings.storage_backend == "db":
            return DBStorage(self.settings.database_url or "", browser_id, table=self.settings.storage_table)
        storage = self._memory.get(browser_id)
        if storage is None:
            storage = MemoryStorage(namespace=browser_id)
            self._memory[browser_id] = storage
        return storage

    async def resolve(self, browser_id: Optional[str]) -> BrowserContext:
        """Return the context for `browser_id`, creating one for unknown ids."""
        async with self._lock:
            await self._evict_idle()
            if not is_valid_browser_id(browser_id):
                browser_id = new_browser_id()
            ctx = self._contexts.get(browser_id)
            if ctx is None:
                ctx = BrowserContext(browser_id, self._storage_for(browser_id), self.settings, transport=self.transport)
                self._contexts[browser_id] = ctx
            ctx.last_seen = time.monotonic()
            return ctx

    async def _evict_idle(self) -> None:
        cutoff = time.monotonic() - self.idle_ttl_seconds
        stale = [bid for bid, ctx in self._contexts.items() if ctx.last_seen < cutoff]
        for bid in stale:
            ctx = self._contexts.pop(bid)
            await ctx.aclose()
            # Drop namespaces that never held a session.
            storage = self._memory.get(bid)
            if storage is not None and not storage.keys():
                del self._memory[bid]
        if stale:
            logger.debug("Evicted %d idle browser contexts", len(stale))

    def __len__(self) -> int:
        return len(self._contexts)

    @property
    def memory_namespaces(self) -> int:
        return len(self._memory)

    async def aclose(self) -> None:
        async with self._lock:
            for ctx in self._contexts.values():
                await ctx.aclose()
            self._contexts.clear()
