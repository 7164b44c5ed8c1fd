from __future__ import annotations

import sqlite3
from contextlib import closing
from typing import Any, List, Sequence

from domain.errors import StoreConflictError, StoreError, StoreUnavailableError
from domain.repositories import Row, Store


class SqliteStore(Store):
    """
    SQLite-backed implementation of `Store`.

    A fresh connection is opened for every call and closed before the call
    returns, so instances are safe to share between threads.
    """

    def __init__(self, db_path: str, timeout: float = 30.0) -> None:
        self._db_path = db_path
        self._timeout = timeout

    def _get_connection(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self._db_path, timeout=self._timeout)
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Cannot open sqlite database {self._db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _translate(exc: sqlite3.Error) -> StoreError:
        if isinstance(exc, sqlite3.IntegrityError):
            return StoreConflictError(str(exc))
        if isinstance(exc, sqlite3.OperationalError):
            return StoreUnavailableError(str(exc))
        return StoreError(str(exc))

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Row]:
        with closing(self._get_connection()) as conn:
            try:
                cur = conn.execute(sql, tuple(params))
                return [dict(row) for row in cur.fetchall()]
            except sqlite3.Error as exc:
                raise self._translate(exc) from exc

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        with closing(self._get_connection()) as conn:
            try:
                cur = conn.execute(sql, tuple(params))
                conn.commit()
                return cur.rowcount
            except sqlite3.Error as exc:
                conn.rollback()
                raise self._translate(exc) from exc

    def execute_scalar(self, sql: str, params: Sequence[Any] = (), default: Any = None) -> Any:
        with closing(self._get_connection()) as conn:
            try:
                row = conn.execute(sql, tuple(params)).fetchone()
            except sqlite3.Error as exc:
                raise self._translate(exc) from exc
            if row is None or row[0] is None:
                return default
            return row[0]
