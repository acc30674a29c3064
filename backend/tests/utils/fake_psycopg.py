"""
Lightweight psycopg stand-in for unit tests.

Provides ``install_fake_psycopg`` which monkeypatches a target module so that
``psycopg.connect`` returns a connection against an in-memory table. Supports
the subset of SQL used by DBStorage (create/insert/select/delete).

Writes are staged per connection and applied when the ``with`` block exits
without an exception, mirroring psycopg3's commit/rollback behavior.
"""
from __future__ import annotations

import types
from typing import Dict, Optional, Tuple


Table = Dict[Tuple[str, str], str]


class FakeDatabase:
    def __init__(self) -> None:
        self.rows: Table = {}
        self.connects = 0
        self.commits = 0
        self.rollbacks = 0
        # When set, the n-th statement inside executemany raises (1-based).
        self.fail_on_row: Optional[int] = None


class _FakeCursor:
    def __init__(self, conn: "_FakeConn") -> None:
        self._conn = conn
        self._row = None
        self._rows = None

    def execute(self, sql: str, params: tuple | list = ()) -> None:
        sql_low = " ".join((sql or "").lower().split())
        view = self._conn.view()
        self._row = None
        self._rows = None
        if sql_low.startswith("create table"):
            return
        if sql_low.startswith("insert into"):
            namespace, key, value = params
            self._conn.staged[(namespace, key)] = str(value)
        elif sql_low.startswith("select value"):
            namespace, key = params
            value = view.get((namespace, key))
            self._row = (value,) if value is not None else None
        elif sql_low.startswith("select key"):
            (namespace,) = params
            self._rows = [(k,) for (ns, k) in sorted(view) if ns == namespace]
        elif sql_low.startswith("delete"):
            namespace, keys = params
            for key in keys:
                self._conn.staged[(namespace, key)] = None
        else:
            raise AssertionError(f"Unexpected SQL in fake psycopg: {sql}")

    def executemany(self, sql: str, params_seq) -> None:
        for n, params in enumerate(params_seq, start=1):
            if self._conn.db.fail_on_row == n:
                raise RuntimeError("fake psycopg: statement failed")
            self.execute(sql, params)

    def fetchone(self):
        return self._row

    def fetchall(self):
        return self._rows or []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class _FakeConn:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db
        self.staged: Dict[Tuple[str, str], Optional[str]] = {}

    def view(self) -> Table:
        merged = dict(self.db.rows)
        for k, v in self.staged.items():
            if v is None:
                merged.pop(k, None)
            else:
                merged[k] = v
        return merged

    def cursor(self):
        return _FakeCursor(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.db.rows = self.view()
            self.db.commits += 1
        else:
            self.db.rollbacks += 1
        self.staged = {}
        return False


def install_fake_psycopg(monkeypatch, target_module) -> FakeDatabase:
    """
    Patch ``target_module`` so psycopg operations go against an in-memory table.

    Returns the ``FakeDatabase`` acting as the backing store.
    """
    db = FakeDatabase()

    def fake_connect(dsn: str, autocommit: bool | None = None):
        db.connects += 1
        return _FakeConn(db)

    fake_psycopg = types.SimpleNamespace(connect=fake_connect)

    monkeypatch.setattr(target_module, "HAVE_PSYCOPG", True, raising=False)
    monkeypatch.setattr(target_module, "psycopg", fake_psycopg, raising=False)
    return db


__all__ = ["install_fake_psycopg", "FakeDatabase"]
