# club_dispatch/db/helpers.py
"""
Database helper functions for common patterns.
Maps psycopg failures onto the store error taxonomy used by the services.
"""

import asyncio
import functools
from typing import Any

import psycopg
from psycopg import errors as pg_errors

from club_dispatch.db.pool import get_db_connection
from club_dispatch.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DatabaseError(Exception):
    """Custom exception for database operations."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class ConflictError(DatabaseError):
    """A uniqueness or exclusion constraint rejected the write."""

    def __init__(self, message: str, operation: str = "unknown", constraint: str | None = None):
        super().__init__(message, operation=operation, recoverable=False)
        self.constraint = constraint


class StoreUnavailable(DatabaseError):
    """The store could not be reached or the connection broke mid-query."""


def _translate(e: psycopg.Error, operation: str) -> DatabaseError:
    if isinstance(e, (pg_errors.UniqueViolation, pg_errors.ExclusionViolation)):
        constraint = e.diag.constraint_name if e.diag else None
        return ConflictError(
            f"Constraint violated: {e}", operation=operation, constraint=constraint
        )
    if isinstance(e, psycopg.OperationalError):
        return StoreUnavailable(f"Database unavailable: {e}", operation=operation)
    return DatabaseError(f"Query failed: {e}", operation=operation, recoverable=False)


async def _run(
    operation: str,
    query: str,
    params: tuple,
    connection: psycopg.AsyncConnection | None,
    consume,
):
    try:
        if connection:
            async with connection.cursor() as cur:
                await cur.execute(query, params)
                return await consume(cur)

        async with get_db_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return await consume(cur)

    except psycopg.Error as e:
        logger.error(f"Database {operation} error", query=query[:100], error=str(e))
        raise _translate(e, operation) from e


async def _first_row(cur) -> dict[str, Any] | None:
    row = await cur.fetchone()
    return row if row else None


async def _all_rows(cur) -> list[dict[str, Any]]:
    return await cur.fetchall()


async def _rowcount(cur) -> int:
    return cur.rowcount


async def fetch_one(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> dict[str, Any] | None:
    """
    Execute query and return single row as dict.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection (e.g. inside a transaction)

    Returns:
        Dict with row data or None if no results
    """
    return await _run("fetch_one", query, params, connection, _first_row)


async def fetch_all(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> list[dict[str, Any]]:
    """Execute query and return all rows as list of dicts."""
    return await _run("fetch_all", query, params, connection, _all_rows)


async def execute_query(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> int:
    """Execute query and return number of affected rows."""
    return await _run("execute", query, params, connection, _rowcount)


def with_db_retry(max_retries: int = 3, base_delay: float = 0.1):
    """
    Retry a coroutine on StoreUnavailable with exponential backoff.

    Conflicts and other permanent errors are raised immediately.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except StoreUnavailable as e:
                    if attempt >= max_retries:
                        logger.error(
                            "Database operation failed after all retries",
                            operation=func.__name__,
                            attempts=max_retries + 1,
                            error=str(e),
                        )
                        raise
                    delay = base_delay * (2**attempt)
                    logger.warning(
                        "Database operation failed, retrying",
                        operation=func.__name__,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        delay=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
