"""
Jimjam: an embeddable document store on SQLite.

Documents are plain dicts. Each collection discovers its fields as they are
written, tracks one type per field (widening TEXT to the first concrete type
and INTEGER to FLOAT), and answers Mongo-style queries:

    from jimjam import Database

    db = Database("shop.db")
    products = db.collection("products")
    products.insert({"name": "Laptop", "price": 999.99, "category": "electronics"})
    products.find({"_or": [{"category": "books"}, {"price": {"_lt": 50}}]})
"""

from jimjam.collection import Collection, FindOptions
from jimjam.config import DatabaseConfig, get_database_config, get_global_config, set_global_config
from jimjam.database import Database, TransactionState
from jimjam.storage import (
    FieldType,
    IndexDefinition,
    IntegrityError,
    SchemaMutationError,
    StorageError,
    TransactionStateError,
)

__version__ = "0.1.0"

__all__ = [
    "Database",
    "TransactionState",
    "Collection",
    "FindOptions",
    "FieldType",
    "IndexDefinition",
    # Config
    "DatabaseConfig",
    "get_database_config",
    "get_global_config",
    "set_global_config",
    # Exceptions
    "StorageError",
    "IntegrityError",
    "SchemaMutationError",
    "TransactionStateError",
]
