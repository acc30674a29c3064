"""
Persistent key-value storage for the client session.

Why: The session (access token, refresh token, serialized identity) must
survive page reloads. Each browser gets its own storage namespace, the
server-side analogue of browser-local storage. This module holds the
in-memory backend and the helpers that read and write the session triple;
`stores_db.py` provides a durable backend.

Security: Tokens stay server-side. The browser cookie carries only the opaque
namespace id.
"""
from __future__ import annotations

import json
import logging
from typing import Dict, Iterable, Mapping, Optional, Protocol

from .domain import Identity

logger = logging.getLogger("procure.identity_access")

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_KEY = "user"
SESSION_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY)


class Storage(Protocol):
    """String key-value storage scoped to one browser."""

    def get(self, key: str) -> Optional[str]: ...

    def set_many(self, items: Mapping[str, str]) -> None: ...

    def remove_many(self, keys: Iterable[str]) -> None: ...


class MemoryStorage:
    """Process-local storage (development and tests)."""

    def __init__(self, namespace: str = "default"):
        self.namespace = namespace
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_many(self, items: Mapping[str, str]) -> None:
        self._data.update({k: str(v) for k, v in items.items()})

    def remove_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


# --- Session triple helpers ---------------------------------------------------

def write_session(storage: Storage, *, access: str, refresh: str, identity: Identity) -> None:
    """Persist all three session keys in one write."""
    storage.set_many(
        {
            ACCESS_TOKEN_KEY: access,
            REFRESH_TOKEN_KEY: refresh,
            USER_KEY: json.dumps(identity.to_storage()),
        }
    )


def clear_session(storage: Storage) -> None:
    """Remove all three session keys together."""
    storage.remove_many(SESSION_KEYS)


def write_identity(storage: Storage, identity: Identity) -> None:
    storage.set_many({USER_KEY: json.dumps(identity.to_storage())})


def write_access_token(storage: Storage, access: str) -> None:
    storage.set_many({ACCESS_TOKEN_KEY: access})


def read_identity(storage: Storage) -> Optional[Identity]:
    """Return the persisted identity or None when absent or unreadable."""
    raw = storage.get(USER_KEY)
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Persisted identity is not valid JSON; ignoring it")
        return None
    if not isinstance(data, dict):
        return None
    return Identity.from_login(data)
