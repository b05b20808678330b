"""
Jimjam storage layer.

All SQL operations are encapsulated here. No other module should
contain SQL strings or direct database operations.

The storage layer has two halves:
- SCHEMA: field types, columns and indexes that grow as documents arrive
- QUERIES: translation of query documents into parameterized predicates

Usage:
    from jimjam.storage import ConnectionHandle, TypeRegistry, QueryCompiler

    handle = ConnectionHandle("app.db", DatabaseConfig())
    types = TypeRegistry(handle, "users")
    types.load()
    predicate, args = QueryCompiler(types).compile({"age": {"_gte": 18}})
"""

from .codec import ValueCodec, decode_value, encode_value, format_timestamp, parse_timestamp
from .connection import ConnectionHandle, open_connection
from .documents import (
    count_documents,
    create_collection,
    delete_documents,
    document_exists,
    insert_document,
    list_collection_tables,
    select_documents,
    update_documents,
)
from .indexes import IndexDefinition, IndexRegistry
from .query import QueryCompiler
from .registry import ColumnSynchronizer, TypeRegistry
from .schema import (
    CREATED_AT_FIELD,
    ID_FIELD,
    SYSTEM_FIELDS,
    UPDATED_AT_FIELD,
    IntegrityError,
    SchemaMutationError,
    StorageError,
    TransactionStateError,
    collection_schema_statements,
    quote_identifier,
)
from .types import FieldType, can_promote, detect_type

__all__ = [
    # Connection
    "ConnectionHandle",
    "open_connection",
    # Documents
    "create_collection",
    "list_collection_tables",
    "insert_document",
    "select_documents",
    "count_documents",
    "update_documents",
    "delete_documents",
    "document_exists",
    # Layout
    "ID_FIELD",
    "CREATED_AT_FIELD",
    "UPDATED_AT_FIELD",
    "SYSTEM_FIELDS",
    "collection_schema_statements",
    "quote_identifier",
    # Field types
    "FieldType",
    "detect_type",
    "can_promote",
    "TypeRegistry",
    "ColumnSynchronizer",
    # Values
    "ValueCodec",
    "encode_value",
    "decode_value",
    "format_timestamp",
    "parse_timestamp",
    # Indexes
    "IndexDefinition",
    "IndexRegistry",
    # Queries
    "QueryCompiler",
    # Exceptions
    "StorageError",
    "IntegrityError",
    "SchemaMutationError",
    "TransactionStateError",
]
