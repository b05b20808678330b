"""
Shared pytest fixtures for jimjam tests.
"""

import pytest

from jimjam import Database, DatabaseConfig
from jimjam.storage import (
    ColumnSynchronizer,
    ConnectionHandle,
    IndexRegistry,
    TypeRegistry,
    create_collection,
)


@pytest.fixture
def db_path(tmp_path):
    """Provide a path for a database file inside a temporary directory."""
    return tmp_path / "test.db"


@pytest.fixture
def db(db_path):
    """Provide an open Database, closed after the test."""
    database = Database(db_path, DatabaseConfig())
    yield database
    database.close()


@pytest.fixture
def products(db):
    """Provide a collection holding three products."""
    collection = db.collection("products")
    collection.insert({"name": "Laptop", "price": 999.99, "category": "electronics"})
    collection.insert({"name": "Mouse", "price": 29.99, "category": "electronics"})
    collection.insert({"name": "Novel", "price": 19.99, "category": "books"})
    return collection


@pytest.fixture
def handle(db_path):
    """Provide a bare connection handle."""
    connection_handle = ConnectionHandle(str(db_path), DatabaseConfig())
    yield connection_handle
    connection_handle.close()


@pytest.fixture
def schema(handle):
    """Provide the wired storage components of a fresh `users` collection."""
    create_collection(handle, "users")
    types = TypeRegistry(handle, "users")
    types.load()
    indexes = IndexRegistry(handle, "users")
    indexes.load()
    synchronizer = ColumnSynchronizer(handle, types, indexes)
    return types, indexes, synchronizer