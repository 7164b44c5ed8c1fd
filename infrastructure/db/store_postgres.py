from __future__ import annotations

import logging
import threading
from contextlib import closing
from typing import Any, List, Optional, Sequence

import psycopg2
from psycopg2.extras import RealDictCursor

from domain.errors import StoreConflictError, StoreError, StoreUnavailableError
from domain.repositories import Row, Store

logger = logging.getLogger(__name__)


def _translate(exc: psycopg2.Error) -> StoreError:
    if isinstance(exc, psycopg2.IntegrityError):
        return StoreConflictError(str(exc).strip())
    if isinstance(exc, (psycopg2.OperationalError, psycopg2.InterfaceError)):
        return StoreUnavailableError(str(exc).strip())
    return StoreError(str(exc).strip())


def _connect(db_params: dict):
    try:
        return psycopg2.connect(**db_params)
    except psycopg2.Error as exc:
        raise _translate(exc) from exc


class PostgresStore(Store):
    """
    Postgres-backed implementation of `Store`.

    Statements are written with `?` placeholders and rewritten to the
    `%s` paramstyle psycopg2 expects. Rows come back as plain dicts.
    """

    def __init__(self, db_params: dict) -> None:
        self._db_params = db_params

    def _get_connection(self):
        return _connect(self._db_params)

    @staticmethod
    def _to_paramstyle(sql: str) -> str:
        # Literal percent signs must be doubled once %s is in play.
        return sql.replace("%", "%%").replace("?", "%s")

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Row]:
        with closing(self._get_connection()) as conn:
            try:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(self._to_paramstyle(sql), tuple(params))
                    rows = [dict(row) for row in cur.fetchall()]
                conn.rollback()
                return rows
            except psycopg2.Error as exc:
                raise _translate(exc) from exc

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        with closing(self._get_connection()) as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(self._to_paramstyle(sql), tuple(params))
                    count = cur.rowcount
                conn.commit()
                return count
            except psycopg2.Error as exc:
                conn.rollback()
                raise _translate(exc) from exc

    def execute_scalar(self, sql: str, params: Sequence[Any] = (), default: Any = None) -> Any:
        with closing(self._get_connection()) as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(self._to_paramstyle(sql), tuple(params))
                    row = cur.fetchone()
                conn.rollback()
            except psycopg2.Error as exc:
                raise _translate(exc) from exc
            if row is None or row[0] is None:
                return default
            return row[0]


class PostgresAdvisoryLock:
    """
    Cross-process mutex backed by a session-level `pg_advisory_lock`.

    Used as the account creation lock when several login servers share one
    account table. Threads of one process queue on a local mutex first, so a
    single instance can be shared. The advisory lock is held on a dedicated
    connection and released (together with the connection) when the `with`
    block exits.
    """

    def __init__(self, db_params: dict, key: int) -> None:
        self._db_params = db_params
        self._key = key
        self._local = threading.Lock()
        self._conn: Optional[Any] = None

    def __enter__(self) -> "PostgresAdvisoryLock":
        self._local.acquire()
        try:
            conn = _connect(self._db_params)
        except StoreError:
            self._local.release()
            raise
        try:
            conn.autocommit = True
            with conn.cursor() as cur:
                cur.execute("SELECT pg_advisory_lock(%s)", (self._key,))
        except psycopg2.Error as exc:
            conn.close()
            self._local.release()
            raise _translate(exc) from exc
        self._conn = conn
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            self._release(conn)
        finally:
            self._local.release()

    def _release(self, conn) -> None:
        with closing(conn):
            try:
                with conn.cursor() as cur:
                    cur.execute("SELECT pg_advisory_unlock(%s)", (self._key,))
            except psycopg2.Error:
                # Closing the session releases the lock anyway.
                logger.warning("Failed to release advisory lock %s cleanly", self._key, exc_info=True)
