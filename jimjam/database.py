"""
Database: one connection, one transaction state, a cache of collections.

Usage:
    from jimjam import Database

    with Database("app.db") as db:
        users = db.collection("users")
        user_id = users.insert({"name": "Ada", "age": 36})

        def transfer(db):
            accounts = db.collection("accounts")
            accounts.update({"owner": "ada"}, {"balance": 90})
            accounts.update({"owner": "bob"}, {"balance": 110})

        db.transaction(transfer)

A Database is not thread-safe: callers sharing one instance across threads
must serialize access themselves.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Callable, TypeVar

from jimjam.collection import Collection
from jimjam.config import DatabaseConfig, get_global_config
from jimjam.storage import ConnectionHandle, TransactionStateError, list_collection_tables

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionState(str, Enum):
    """Transaction state of a Database."""

    IDLE = "idle"
    ACTIVE = "active"
    ACTIVE_IMMEDIATE = "active_immediate"


class Database:
    """An open jimjam database file."""

    def __init__(self, path: str | os.PathLike[str], config: DatabaseConfig | None = None):
        self.path = os.fspath(path)
        self.config = config or get_global_config()
        self.handle = ConnectionHandle(self.path, self.config)
        self._state = TransactionState.IDLE
        self._collections: dict[str, Collection] = {}
        logger.debug("Opened database %s", self.path)

    @classmethod
    def open(
        cls,
        path: str | os.PathLike[str],
        config: DatabaseConfig | None = None,
    ) -> Database:
        return cls(path, config)

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __getitem__(self, name: str) -> Collection:
        return self.collection(name)

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def in_transaction(self) -> bool:
        return self._state is not TransactionState.IDLE

    @property
    def closed(self) -> bool:
        return self.handle.closed

    # -------------------------------------------------------------------------
    # Collections
    # -------------------------------------------------------------------------

    def collection(self, name: str) -> Collection:
        """
        Get a collection, creating its tables on first use.

        Raises:
            ValueError: If the name is empty
        """
        if not isinstance(name, str) or not name:
            raise ValueError("Collection name must be a non-empty string")

        collection = self._collections.get(name)
        if collection is None:
            collection = Collection(self, name)
            self._collections[name] = collection
        return collection

    def list_collections(self) -> list[str]:
        """Names of every collection stored in the file."""
        return list_collection_tables(self.handle)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def begin_transaction(self) -> None:
        """Begin a deferred transaction; the write lock is taken on first write."""
        self._begin(immediate=False)

    def begin_immediate_transaction(self) -> None:
        """Begin a transaction holding the write lock from the start."""
        self._begin(immediate=True)

    def commit(self) -> None:
        """
        Commit the open transaction.

        Raises:
            TransactionStateError: If no transaction is open
        """
        if self._state is TransactionState.IDLE:
            raise TransactionStateError("Cannot commit: no transaction is open")
        self.handle.commit()
        self._state = TransactionState.IDLE

    def rollback(self) -> None:
        """
        Roll back the open transaction.

        Schema changes made inside the transaction are rolled back too, so
        every cached collection re-reads its metadata afterwards, even when
        the ROLLBACK itself fails. A transaction SQLite already rolled back
        on its own (after an I/O error, say) is closed without error.

        Raises:
            TransactionStateError: If no transaction is open
        """
        if self._state is TransactionState.IDLE:
            raise TransactionStateError("Cannot roll back: no transaction is open")
        try:
            self.handle.rollback()
        finally:
            self._state = TransactionState.IDLE
            for collection in self._collections.values():
                collection.reload_schema()

    def transaction(self, fn: Callable[[Database], T]) -> T:
        """
        Run `fn(db)` in a deferred transaction.

        Commits when `fn` returns; rolls back and re-raises when it raises.
        """
        return self._run(fn, immediate=False)

    def immediate_transaction(self, fn: Callable[[Database], T]) -> T:
        """Run `fn(db)` in an immediate transaction (see transaction())."""
        return self._run(fn, immediate=True)

    def atomic(self, fn: Callable[[Database], T], immediate: bool = False) -> T:
        """Run `fn(db)` in its own transaction, or inside the one already open."""
        if self.in_transaction:
            return fn(self)
        return self._run(fn, immediate=immediate)

    def _begin(self, immediate: bool) -> None:
        if self._state is not TransactionState.IDLE:
            raise TransactionStateError(
                f"Cannot begin a transaction: one is already {self._state.value}"
            )
        self.handle.begin(immediate=immediate)
        self._state = (
            TransactionState.ACTIVE_IMMEDIATE if immediate else TransactionState.ACTIVE
        )

    def _run(self, fn: Callable[[Database], T], immediate: bool) -> T:
        self._begin(immediate)
        try:
            result = fn(self)
            self.commit()
        except BaseException:
            if self._state is not TransactionState.IDLE:
                self._rollback_after_error()
            raise
        return result

    def _rollback_after_error(self) -> None:
        try:
            self.rollback()
        except Exception as e:
            # The callback's exception is the one the caller needs to see
            logger.warning("Rollback failed on %s: %s", self.path, e)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Roll back any open transaction and close the connection."""
        if self.handle.closed:
            return
        if self._state is not TransactionState.IDLE:
            logger.warning("Closing %s with an open transaction; rolling back", self.path)
            self._rollback_after_error()
        self._collections.clear()
        self.handle.close()
        logger.debug("Closed database %s", self.path)
