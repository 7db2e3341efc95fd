"""SQLite access layer for stateful entities and their audit logs."""

from __future__ import annotations

import re
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Mapping, Sequence

from state_audit.config import Settings, load_settings

_SqlValue = str | bytes | int | float | None
_SqlParams = Sequence[_SqlValue] | Mapping[str, _SqlValue]

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def quote_ident(name: str) -> str:
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


class SqliteStore:
    """Record store with explicit transactions.

    The connection runs in autocommit mode; ``transaction()`` opens
    ``BEGIN IMMEDIATE``, which takes the database write lock up front.
    The in-process lock is held for the whole transaction, so concurrent
    callers in other threads wait until it commits or rolls back.
    """

    def __init__(self, path: str, wal: bool = True, timeout: float = 5.0) -> None:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            path,
            check_same_thread=False,
            timeout=timeout,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._local = threading.local()
        self._closed = False
        if wal and path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SqliteStore":
        settings = settings or load_settings()
        return cls(
            settings.storage.sqlite_path,
            wal=settings.storage.sqlite_wal,
            timeout=settings.storage.lock_timeout_seconds,
        )

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, "depth", 0) > 0

    @contextmanager
    def transaction(self) -> Iterator["SqliteStore"]:
        """Run the block in a transaction; nested calls join the open one."""
        with self._lock:
            if self.in_transaction:
                self._local.depth += 1
                try:
                    yield self
                finally:
                    self._local.depth -= 1
                return

            self._conn.execute("BEGIN IMMEDIATE")
            self._local.depth = 1
            try:
                yield self
            except BaseException:
                self._local.depth = 0
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
                raise
            self._local.depth = 0
            self._conn.execute("COMMIT")

    def execute(self, query: str, params: _SqlParams = ()) -> sqlite3.Cursor:
        with self._lock:
            return self._conn.execute(query, params)

    def executescript(self, script: str) -> None:
        with self._lock:
            if self.in_transaction:
                raise RuntimeError("executescript cannot run inside a transaction")
            self._conn.executescript(script)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True

    def fetch_one(self, query: str, params: _SqlParams = ()) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.execute(query, params)
            return cur.fetchone()

    def fetch_all(self, query: str, params: _SqlParams = ()) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.execute(query, params)
            return cur.fetchall()

    def insert(self, table: str, values: Mapping[str, Any]) -> int:
        columns = list(values)
        if columns:
            query = (
                f"INSERT INTO {quote_ident(table)} "
                f"({', '.join(quote_ident(col) for col in columns)}) "
                f"VALUES ({', '.join('?' for _ in columns)})"
            )
        else:
            query = f"INSERT INTO {quote_ident(table)} DEFAULT VALUES"
        with self._lock:
            cursor = self._conn.execute(query, [values[col] for col in columns])
            return int(cursor.lastrowid)

    def update(
        self,
        table: str,
        pk: Any,
        values: Mapping[str, Any],
        pk_column: str = "id",
    ) -> int:
        if not values:
            return 0
        assignments = ", ".join(f"{quote_ident(col)} = ?" for col in values)
        query = (
            f"UPDATE {quote_ident(table)} SET {assignments} "
            f"WHERE {quote_ident(pk_column)} = ?"
        )
        with self._lock:
            cursor = self._conn.execute(query, [*values.values(), pk])
            return cursor.rowcount

    def get_row(self, table: str, pk: Any, pk_column: str = "id") -> sqlite3.Row | None:
        return self.fetch_one(
            f"SELECT * FROM {quote_ident(table)} WHERE {quote_ident(pk_column)} = ?",
            (pk,),
        )

    def lock_row(self, table: str, pk: Any, pk_column: str = "id") -> sqlite3.Row:
        """Re-read a row under the transaction's write lock.

        SQLite has no row-level locks; ``BEGIN IMMEDIATE`` already holds the
        database write lock, so re-reading here observes the latest committed
        values and nobody can change them until this transaction ends.
        """
        if not self.in_transaction:
            raise RuntimeError("lock_row requires an open transaction")
        row = self.get_row(table, pk, pk_column)
        if row is None:
            raise LookupError(f"No row in {table} with {pk_column}={pk!r}")
        return row

    def table_columns(self, table: str) -> dict[str, str]:
        """Return declared column types keyed by column name."""
        rows = self.fetch_all(f"PRAGMA table_info({quote_ident(table)})")
        return {row["name"]: (row["type"] or "") for row in rows}
