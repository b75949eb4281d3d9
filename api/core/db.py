"""
Async database access (raw SQL) using asyncpg.

`Database` owns one connection pool. It is built explicitly and handed to every
repository function; `api/main.py` connects it on startup and closes it on
shutdown.

Every statement goes through `Database.query()` (or `Transaction.query()`),
which never raises for database errors. It returns either a `QueryResult` or a
falsy `QueryFailure`, so callers must check before using the rows.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

logger = logging.getLogger(__name__)

# Errors that are reported as a QueryFailure instead of propagating.
_QUERY_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


class PoolError(RuntimeError):
    pass


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def database_url() -> str:
    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set.")
    return _sanitize_database_url(url)


@dataclass(frozen=True)
class QueryResult:
    """
    Rows returned by a statement plus the number of rows it affected.

    An empty result is still truthy; only `QueryFailure` is falsy.
    """

    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0


@dataclass(frozen=True)
class QueryFailure:
    """
    A statement that did not run to completion.

    `cause` is the original exception, `statement`/`params` the SQL that was
    attempted (empty when no connection could be acquired).
    """

    cause: BaseException
    statement: str = ""
    params: tuple[Any, ...] = ()

    def __bool__(self) -> bool:
        return False


def _row_count(status: str | None, fallback: int) -> int:
    # Command tags look like "SELECT 3", "DELETE 1", "INSERT 0 1".
    if not status:
        return fallback
    last = status.rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else fallback


async def _run(
    conn: asyncpg.Connection,
    sql: str,
    args: tuple[Any, ...],
    timeout: float | None,
) -> QueryResult:
    stmt = await conn.prepare(sql, timeout=timeout)
    records = await stmt.fetch(*args, timeout=timeout)
    rows = [dict(r) for r in records]
    return QueryResult(rows=rows, row_count=_row_count(stmt.get_statusmsg(), len(rows)))


class Transaction:
    """
    Query gateway bound to a single connection inside BEGIN/COMMIT.

    The first failing statement poisons the transaction: later calls return
    the same failure without touching the database and the block rolls back.
    """

    def __init__(self, conn: asyncpg.Connection | None, *, timeout: float | None) -> None:
        self._conn = conn
        self._timeout = timeout
        self._rollback_only = False
        self.failure: QueryFailure | None = None
        self.committed = False

    async def query(self, sql: str, *args: Any) -> QueryResult | QueryFailure:
        # Set whenever there is no connection, so _conn is never None below.
        if self.failure is not None:
            return self.failure
        try:
            return await _run(self._conn, sql, args, self._timeout)
        except _QUERY_ERRORS as exc:
            logger.warning("tx_statement_failed error=%r sql=%s", exc, " ".join(sql.split()))
            self.failure = QueryFailure(cause=exc, statement=sql, params=args)
            return self.failure

    def rollback_only(self) -> None:
        self._rollback_only = True

    @property
    def should_commit(self) -> bool:
        return self.failure is None and not self._rollback_only


class Database:
    """
    Connection pool plus the query gateway built on it.
    """

    def __init__(
        self,
        dsn: str,
        *,
        min_size: int = 1,
        max_size: int = 5,
        statement_timeout: float | None = 30.0,
        acquire_timeout: float | None = 10.0,
    ) -> None:
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.statement_timeout = statement_timeout
        self.acquire_timeout = acquire_timeout
        self._pool: asyncpg.Pool | None = None

    @classmethod
    def from_env(cls) -> Database:
        return cls(
            database_url(),
            min_size=_env_int("DATABASE_POOL_MIN_SIZE", 1),
            max_size=_env_int("DATABASE_POOL_MAX_SIZE", 5),
            statement_timeout=_env_float("DATABASE_STATEMENT_TIMEOUT", 30.0),
            acquire_timeout=_env_float("DATABASE_ACQUIRE_TIMEOUT", 10.0),
        )

    @classmethod
    def from_pool(cls, pool: Any, **kwargs: Any) -> Database:
        """
        Wrap an already-created pool (tests, or an app that shares one).
        """
        database = cls("", **kwargs)
        database._pool = pool
        return database

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        if self._pool is not None:
            return None
        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.statement_timeout,
            )
        except _QUERY_ERRORS as exc:
            logger.critical("pool_create_failed error=%r", exc)
            raise PoolError(f"Unable to create database pool: {exc}") from exc

    async def close(self) -> None:
        if self._pool is None:
            return None
        pool, self._pool = self._pool, None
        await pool.close()

    def _checked_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise PoolError("DB pool is not initialized. Call connect() on startup.")
        return self._pool

    async def query(self, sql: str, *args: Any) -> QueryResult | QueryFailure:
        """
        Run one parameterized statement on a pooled connection.
        """
        try:
            # The acquire context releases into the pool it came from, even if
            # close() has already detached it from self.
            async with self._checked_pool().acquire(timeout=self.acquire_timeout) as conn:
                try:
                    return await _run(conn, sql, args, self.statement_timeout)
                except _QUERY_ERRORS as exc:
                    logger.warning("statement_failed error=%r sql=%s", exc, " ".join(sql.split()))
                    return QueryFailure(cause=exc, statement=sql, params=args)
        except (PoolError, *_QUERY_ERRORS) as exc:
            logger.error("pool_connection_failed error=%r", exc)
            return QueryFailure(cause=exc)

    async def run_script(self, sql: str) -> QueryResult | QueryFailure:
        """
        Run a multi-statement script (no parameters), e.g. a schema file.
        """
        try:
            async with self._checked_pool().acquire(timeout=self.acquire_timeout) as conn:
                try:
                    status = await conn.execute(sql, timeout=self.statement_timeout)
                    return QueryResult(rows=[], row_count=_row_count(status, 0))
                except _QUERY_ERRORS as exc:
                    logger.warning("script_failed error=%r", exc)
                    return QueryFailure(cause=exc, statement=sql)
        except (PoolError, *_QUERY_ERRORS) as exc:
            logger.error("pool_connection_failed error=%r", exc)
            return QueryFailure(cause=exc)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """
        Run several statements atomically on one connection.

        Commits on a clean exit unless a statement failed or `rollback_only()`
        was called; check `Transaction.committed` afterwards. Exceptions raised
        by the block roll back and propagate.
        """
        tx = Transaction(None, timeout=self.statement_timeout)
        phase = "acquire"
        try:
            async with self._checked_pool().acquire(timeout=self.acquire_timeout) as conn:
                tx = Transaction(conn, timeout=self.statement_timeout)
                phase = "begin"
                try:
                    async with conn.transaction():
                        phase = "body"
                        yield tx
                        phase = "commit"
                        if not tx.should_commit:
                            raise _Rollback()
                except _Rollback:
                    pass
                else:
                    tx.committed = True
        except (PoolError, *_QUERY_ERRORS) as exc:
            if phase == "body":
                raise
            logger.error("tx_failed phase=%s error=%r", phase, exc)
            if tx.failure is None:
                tx.failure = QueryFailure(cause=exc, statement=phase.upper())
            if phase in ("acquire", "begin"):
                yield tx


class _Rollback(Exception):
    """Raised inside `conn.transaction()` to roll back without an error."""
