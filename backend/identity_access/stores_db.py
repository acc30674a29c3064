"""
Database-backed session storage for production use (Postgres).

Why: In-memory storage is lost on restart and is not shared between workers.
This backend keeps every browser namespace in one Postgres table, so any
instance can serve any browser.

Atomicity: `set_many` and `remove_many` run in a single transaction, so the
session triple (access token, refresh token, identity) is never observed
half-written, and concurrent writers to the same namespace upsert per key
instead of overwriting each other's documents.

Schema (created by `create_table()` or a migration):

    create table if not exists public.procure_session_storage (
        namespace  text not null,
        key        text not null,
        value      text not null,
        updated_at timestamptz not null default now(),
        primary key (namespace, key)
    );

Note: This module uses psycopg3. It is only needed when enabled via
`PROCURE_STORAGE_BACKEND=db`; development and tests use `MemoryStorage`.
"""
from __future__ import annotations

from typing import Iterable, Mapping, Optional
import re

try:
    import psycopg
    HAVE_PSYCOPG = True
except ImportError:  # pragma: no cover - optional dependency in dev
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False

DEFAULT_TABLE = "public.procure_session_storage"
_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")
_NAMESPACE_RE = re.compile(r"^[A-Za-z0-9_\-]{1,128}$")


class DBStorage:
    """Postgres-backed storage scoped to one browser namespace.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string.
    namespace:
        Opaque browser id (from the cookie, validated here again).
    table:
        Fully qualified table name. Defaults to `public.procure_session_storage`.
    """

    def __init__(self, dsn: str, namespace: str, table: str = DEFAULT_TABLE) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBStorage")
        if not dsn:
            raise RuntimeError("No database DSN provided for DBStorage")
        if not _NAMESPACE_RE.match(namespace or ""):
            raise ValueError("Invalid storage namespace")
        # Identifiers cannot be bound as parameters; validate before formatting.
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        self._dsn = dsn
        self.namespace = namespace
        self._table = table

    def create_table(self) -> None:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"create table if not exists {self._table} ("
                    "namespace text not null, key text not null, value text not null, "
                    "updated_at timestamptz not null default now(), primary key (namespace, key))"
                )

    def get(self, key: str) -> Optional[str]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select value from {self._table} where namespace = %s and key = %s",
                    (self.namespace, key),
                )
                row = cur.fetchone()
        return str(row[0]) if row else None

    def set_many(self, items: Mapping[str, str]) -> None:
        if not items:
            return
        # The connection block commits on success and rolls back on error.
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.executemany(
                    f"insert into {self._table} (namespace, key, value, updated_at) "
                    "values (%s, %s, %s, now()) "
                    "on conflict (namespace, key) do update set value = excluded.value, updated_at = now()",
                    [(self.namespace, k, str(v)) for k, v in items.items()],
                )

    def remove_many(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        if not keys:
            return
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"delete from {self._table} where namespace = %s and key = any(%s)",
                    (self.namespace, keys),
                )

    def keys(self) -> list[str]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select key from {self._table} where namespace = %s order by key",
                    (self.namespace,),
                )
                rows = cur.fetchall()
        return [str(r[0]) for r in rows]
