"""
Client session store: single source of truth for "who is logged in".

Lifecycle:

    UNINITIALIZED --restore()--> LOADING --ok--> AUTHENTICATED
                                         --fail--> ANONYMOUS
    AUTHENTICATED --logout()/expire()--> ANONYMOUS
    ANONYMOUS --login() ok--> AUTHENTICATED

UNINITIALIZED and LOADING occur at most once per page load
(`begin_page_load()` starts a new one).

Persistence is explicit: every state change that affects the persisted
session calls one of the write/clear helpers in `stores.py`; there is no
implicit write-on-change.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional
import logging

import httpx

from .auth_client import AuthClient
from .domain import Identity, normalize_identity
from .errors import ApiError
from .stores import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    Storage,
    clear_session,
    read_identity,
    write_identity,
    write_session,
)

logger = logging.getLogger("procure.identity_access")


class SessionStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class SessionStore:
    """Holds the current identity and its tokens for one browser.

    The store is the only writer of the persisted session keys, except for the
    access token refresh performed by the HTTP client.
    """

    def __init__(self, storage: Storage, auth: AuthClient) -> None:
        self._storage = storage
        self._auth = auth
        self._status = SessionStatus.UNINITIALIZED
        self._identity: Optional[Identity] = None

    # --- Read-only view --------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def is_loading(self) -> bool:
        return self._status in (SessionStatus.UNINITIALIZED, SessionStatus.LOADING)

    @property
    def is_authenticated(self) -> bool:
        return self._status is SessionStatus.AUTHENTICATED

    @property
    def access_token(self) -> Optional[str]:
        return self._storage.get(ACCESS_TOKEN_KEY)

    @property
    def refresh_token(self) -> Optional[str]:
        return self._storage.get(REFRESH_TOKEN_KEY)

    # --- Operations ------------------------------------------------------

    def begin_page_load(self) -> None:
        """Forget the in-memory state so the next `restore()` verifies again."""
        self._status = SessionStatus.UNINITIALIZED
        self._identity = None

    async def restore(self) -> Optional[Identity]:
        """Restore the persisted session and verify it against the backend.

        Does not retry by itself; a 401 still passes through the HTTP client,
        which may refresh once. Any failure tears the session down.
        """
        stored = read_identity(self._storage)
        if stored is None or not self.access_token:
            self._set_anonymous()
            return None

        self._status = SessionStatus.LOADING
        try:
            payload = await self._auth.who_am_i()
        except (ApiError, httpx.TransportError) as exc:
            logger.warning("Session restore failed: %s", exc.__class__.__name__)
            clear_session(self._storage)
            self._set_anonymous()
            return None

        identity = normalize_identity(payload)
        write_identity(self._storage, identity)
        self._identity = identity
        self._status = SessionStatus.AUTHENTICATED
        return identity

    async def login(self, username: str, password: str) -> Identity:
        """Exchange credentials for tokens and persist the session.

        Errors propagate unchanged; the session is not touched on failure.
        """
        body = await self._auth.issue_tokens(username=username, password=password)
        identity = Identity.from_login(body.get("user") or {})
        write_session(
            self._storage,
            access=str(body.get("access") or ""),
            refresh=str(body.get("refresh") or ""),
            identity=identity,
        )
        self._identity = identity
        self._status = SessionStatus.AUTHENTICATED
        logger.info("Login succeeded for user id %s", identity.id)
        return identity

    def logout(self) -> None:
        """Clear the persisted session. Never calls the network; idempotent."""
        clear_session(self._storage)
        self._set_anonymous()

    def expire(self) -> None:
        """Teardown after the access token could not be refreshed."""
        if self._status is SessionStatus.AUTHENTICATED:
            logger.info("Session expired for user id %s", self._identity.id if self._identity else None)
        clear_session(self._storage)
        self._set_anonymous()

    def update_identity(self, identity: Identity) -> None:
        """Overwrite the identity after a profile edit; tokens stay as they are."""
        write_identity(self._storage, identity)
        self._identity = identity

    def _set_anonymous(self) -> None:
        self._identity = None
        self._status = SessionStatus.ANONYMOUS
