"""
coreorm/db/connection.py
------------------------
The driver seam. `Database` checks a connection out per call, runs one
parameterized statement (or one transaction of them) and gives the
connection back. It holds no connection between calls.

Production code builds it from a psycopg2 ThreadedConnectionPool with
`Database.from_url()`; any DB-API 2.0 connection factory works too.
"""

import time
from contextlib import closing
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional, Sequence

import psycopg2
from psycopg2 import pool

from coreorm.config import DATABASE_URL, DB_POOL_MAX, DB_POOL_MIN, LOG_QUERIES
from coreorm.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ExecResult:
    """
    Outcome of a statement with no materialization.

    Attributes:
        rowcount: Rows affected, as reported by the driver (-1 if unknown).
        lastrowid: Driver's last row id, when it has one.
        rows: Rows produced by a RETURNING clause.
    """
    rowcount: int
    lastrowid: Optional[int] = None
    rows: list[dict] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.rowcount > 0


def _row(names: Sequence[str], values: Sequence[Any]) -> dict:
    """Name -> value; the first of several same-named columns wins."""
    row: dict = {}
    for name, value in zip(names, values):
        row.setdefault(name, value)
    return row


class Database:
    """
    Connection provider plus the three execution primitives the ORM needs.

    Args:
        connect: Returns a DB-API connection.
        release: Gives a connection back (pool put, close, or no-op).
        placeholder: Parameter marker of the driver's paramstyle.
        close: Closes the underlying pool, if any.
    """

    def __init__(
        self,
        connect: Callable[[], Any],
        release: Optional[Callable[[Any], None]] = None,
        placeholder: str = "%s",
        close: Optional[Callable[[], None]] = None,
    ) -> None:
        self._connect = connect
        self._release = release or (lambda conn: None)
        self._close = close
        self.placeholder = placeholder

    @classmethod
    def from_url(
        cls,
        url: str = DATABASE_URL,
        min_conn: int = DB_POOL_MIN,
        max_conn: int = DB_POOL_MAX,
    ) -> "Database":
        """
        Open a psycopg2 connection pool.

        Raises:
            psycopg2.OperationalError: If the database is unreachable.
        """
        try:
            _pool = pool.ThreadedConnectionPool(min_conn, max_conn, url)
            logger.info("Database connection pool initialized successfully.")
        except psycopg2.OperationalError as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise
        return cls(_pool.getconn, _pool.putconn, "%s", close=_pool.closeall)

    def close(self) -> None:
        """Close all pooled connections."""
        if self._close is not None:
            self._close()
            self._close = None
            logger.info("Database connection pool closed.")

    # ── EXECUTION ─────────────────────────────────────────

    def rows(self, sql: str, params: Sequence[Any] = ()) -> Iterator[dict]:
        """
        Run a query and stream its rows as dicts. Lazy: nothing runs until
        the first row is requested; the connection is released when the
        iterator is exhausted or closed.
        """
        conn = self._connect()
        try:
            with closing(conn.cursor()) as cur:
                self._execute(cur, sql, params)
                names = [d[0] for d in cur.description or ()]
                for values in cur:
                    yield _row(names, values)
        finally:
            self._release(conn)

    def write(self, sql: str, params: Sequence[Any] = (), returning: bool = False) -> ExecResult:
        """Run one statement in its own transaction."""
        return self.write_many([(sql, params)], returning=returning)[0]

    def write_many(
        self, statements: Sequence[tuple[str, Sequence[Any]]], returning: bool = False
    ) -> list[ExecResult]:
        """Run several statements in one transaction: all of them commit or none do."""
        conn = self._connect()
        try:
            results = []
            with closing(conn.cursor()) as cur:
                for sql, params in statements:
                    self._execute(cur, sql, params)
                    rows = []
                    if returning and cur.description is not None:
                        names = [d[0] for d in cur.description]
                        rows = [_row(names, values) for values in cur.fetchall()]
                    rowcount = len(rows) if rows else cur.rowcount
                    results.append(ExecResult(rowcount, getattr(cur, "lastrowid", None), rows))
            conn.commit()
            return results
        except Exception:
            conn.rollback()
            raise
        finally:
            self._release(conn)

    def _execute(self, cur, sql: str, params: Sequence[Any]) -> None:
        started = time.perf_counter()
        if params:
            cur.execute(sql, tuple(params))
        else:
            # No parameters: keep literal '%' in the text away from paramstyle formatting.
            cur.execute(sql)
        if LOG_QUERIES:
            elapsed = (time.perf_counter() - started) * 1000
            logger.debug(f"{sql} {list(params)} ({elapsed:.2f}ms)")
