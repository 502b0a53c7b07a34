"""SQLite connection setup and the unit-of-work transaction scope.

Connections are opened in autocommit mode (``isolation_level=None``) so that
transaction boundaries are explicit: every multi-step financial mutation runs
inside :func:`unit_of_work`, which issues ``BEGIN IMMEDIATE``.  That takes the
database write lock *before* any precondition is re-read, so two settlement
attempts on the same campaign serialize and only one can observe the
required status.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import structlog

from settlement.domain.errors import StorageFailureError

logger = structlog.get_logger()


def connect_db(db_path: Path | str, busy_timeout: float = 30.0) -> sqlite3.Connection:
    """Open a settlement database connection with WAL mode and foreign keys.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.
        busy_timeout: Seconds to wait for the write lock before failing.

    Returns:
        An open connection in autocommit mode with ``sqlite3.Row`` rows.
    """
    conn = sqlite3.connect(
        str(db_path),
        timeout=busy_timeout,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


@contextmanager
def unit_of_work(conn: sqlite3.Connection, operation: str = "unit_of_work") -> Iterator[sqlite3.Connection]:
    """Run the enclosed block as one atomic, write-locked transaction.

    Commits when the block exits normally.  On any exception the whole unit
    is rolled back; ``sqlite3.Error`` is re-raised as
    :class:`StorageFailureError` (retryable, since nothing persisted) and
    every other exception propagates unchanged.

    Args:
        conn: A connection opened by :func:`connect_db`.
        operation: Name used in logs and in the raised error.

    Yields:
        The same connection, inside an open transaction.
    """
    try:
        conn.execute("BEGIN IMMEDIATE")
    except sqlite3.Error as exc:
        logger.error("unit_of_work_begin_failed", operation=operation, error=str(exc))
        raise StorageFailureError(operation, exc) from exc

    try:
        yield conn
    except sqlite3.Error as exc:
        _rollback(conn, operation)
        logger.error("unit_of_work_rolled_back", operation=operation, error=str(exc))
        raise StorageFailureError(operation, exc) from exc
    except BaseException:
        _rollback(conn, operation)
        raise

    try:
        conn.execute("COMMIT")
    except sqlite3.Error as exc:
        _rollback(conn, operation)
        logger.error("unit_of_work_commit_failed", operation=operation, error=str(exc))
        raise StorageFailureError(operation, exc) from exc


def _rollback(conn: sqlite3.Connection, operation: str) -> None:
    if not conn.in_transaction:
        return
    try:
        conn.execute("ROLLBACK")
    except sqlite3.Error:
        logger.exception("unit_of_work_rollback_failed", operation=operation)
