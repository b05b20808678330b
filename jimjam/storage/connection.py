"""Database connection management."""

from __future__ import annotations

import logging
import re
import sqlite3
from typing import Any, Iterable

from jimjam.config import DatabaseConfig

logger = logging.getLogger(__name__)


def _regexp(pattern: str, value: Any) -> bool:
    """Backs SQLite's `value REGEXP pattern` operator."""
    if value is None or pattern is None:
        return False
    try:
        return re.search(str(pattern), str(value)) is not None
    except re.error:
        return False


def open_connection(path: str, config: DatabaseConfig) -> sqlite3.Connection:
    """
    Open a jimjam database file.

    The connection runs in autocommit mode: BEGIN / COMMIT / ROLLBACK are
    issued explicitly by the transaction state machine.

    Args:
        path: Path to the SQLite file (or ":memory:")
        config: Pragmas and lock wait

    Returns:
        Configured sqlite3.Connection ready for use
    """
    conn = sqlite3.connect(path, timeout=config.busy_timeout, isolation_level=None)
    conn.row_factory = sqlite3.Row

    # Performance and safety settings
    if config.read_only:
        # SQLite refuses every write, journal mode switch included
        conn.execute("PRAGMA query_only=ON")
    else:
        conn.execute(f"PRAGMA journal_mode={config.journal_mode}")
    conn.execute(f"PRAGMA synchronous={config.synchronous}")

    conn.create_function("REGEXP", 2, _regexp, deterministic=True)

    return conn


class ConnectionHandle:
    """
    The single connection a Database shares with its collections.

    Wraps sqlite3.Connection so that a reconnect after a transient error is
    seen by every collection holding the handle.
    """

    def __init__(self, path: str, config: DatabaseConfig):
        self.path = path
        self.config = config
        self._conn: sqlite3.Connection | None = open_connection(path, config)
        self._transaction_open = False

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.ProgrammingError("Cannot operate on a closed database.")
        return self._conn

    @property
    def closed(self) -> bool:
        return self._conn is None

    @property
    def read_only(self) -> bool:
        return self.config.read_only

    @property
    def in_transaction(self) -> bool:
        """
        True between begin() and commit() / rollback().

        Tracked here rather than read from the driver: SQLite can roll a
        transaction back on its own (I/O error, disk full) while the caller
        still considers it open.
        """
        return self._transaction_open

    def execute(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        return self.connection.execute(sql, tuple(params))

    def execute_ddl(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        """
        Execute a schema statement, retrying transient failures.

        A transient error is retried after reconnecting, at most
        config.transient_retries times, and only when no transaction is
        open. Under an open transaction the reconnect would silently drop
        the caller's pending writes, so the error propagates instead.
        """
        attempt = 0
        while True:
            logger.debug("DDL: %s", " ".join(sql.split()))
            try:
                return self.execute(sql, params)
            except sqlite3.OperationalError as e:
                if (
                    attempt >= self.config.transient_retries
                    or self.in_transaction
                    or not self.is_transient(e)
                ):
                    raise
                attempt += 1
                logger.warning(
                    "Transient error on %s (%s), reconnecting (attempt %d)",
                    self.path,
                    e,
                    attempt,
                )
                self.reconnect()

    def begin(self, immediate: bool = False) -> None:
        if immediate:
            self.execute("BEGIN IMMEDIATE TRANSACTION")
        else:
            self.execute("BEGIN TRANSACTION")
        self._transaction_open = True

    def commit(self) -> None:
        self.execute("COMMIT")
        self._transaction_open = False

    def rollback(self) -> None:
        try:
            if self.connection.in_transaction:
                self.execute("ROLLBACK")
            else:
                logger.warning("Transaction on %s was already rolled back by SQLite", self.path)
        finally:
            self._transaction_open = False

    def is_transient(self, error: sqlite3.Error) -> bool:
        message = str(error).lower()
        return any(marker in message for marker in self.config.transient_markers)

    def reconnect(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            except sqlite3.Error as e:
                logger.debug("Ignoring error while closing stale connection: %s", e)
        self._conn = open_connection(self.path, self.config)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._transaction_open = False
