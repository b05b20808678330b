"""Persisted layout and exceptions for jimjam storage."""

from __future__ import annotations


# -----------------------------------------------------------------------------
# Exceptions
# -----------------------------------------------------------------------------


class StorageError(Exception):
    """Base exception for storage operations."""

    pass


class IntegrityError(StorageError):
    """Raised when a database constraint is violated."""

    pass


class SchemaMutationError(StorageError):
    """Raised when a column or index cannot be created or rebuilt."""

    pass


class TransactionStateError(StorageError):
    """Raised on an illegal transaction state transition."""

    pass


# -----------------------------------------------------------------------------
# Schema
# -----------------------------------------------------------------------------

# Fields every collection table carries from creation.
ID_FIELD = "_id"
CREATED_AT_FIELD = "_createdAt"
UPDATED_AT_FIELD = "_updatedAt"

SYSTEM_FIELDS = (ID_FIELD, CREATED_AT_FIELD, UPDATED_AT_FIELD)


def quote_identifier(name: str) -> str:
    """Quote a table, column or index name for use in SQL."""
    return '"' + name.replace('"', '""') + '"'


def types_table(table: str) -> str:
    return f"{table}_types"


def indexes_table(table: str) -> str:
    return f"{table}_indexes"


def physical_index_name(table: str, name: str) -> str:
    """
    SQLite index name for a collection index.

    Index names are database-wide, so they are namespaced by table. The
    table length prefix keeps the mapping one-to-one: ("a", "b_c") and
    ("a_b", "c") give idx_1_a_b_c and idx_3_a_b_c.
    """
    return f"idx_{len(table)}_{table}_{name}"


# Index names owned by the automatic _createdAt / _updatedAt indexes.
RESERVED_INDEX_NAMES = (CREATED_AT_FIELD, UPDATED_AT_FIELD)


COLLECTION_SCHEMA_SQL = (
    """
    CREATE TABLE IF NOT EXISTS {table} (
        _id INTEGER PRIMARY KEY AUTOINCREMENT,
        _createdAt TEXT NOT NULL DEFAULT (datetime('now')),
        _updatedAt TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS {types_table} (
        field_name TEXT PRIMARY KEY,
        field_type TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS {indexes_table} (
        index_name TEXT PRIMARY KEY,
        field_names TEXT NOT NULL,
        is_unique INTEGER NOT NULL DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS {created_index} ON {table}(_createdAt)",
    "CREATE INDEX IF NOT EXISTS {updated_index} ON {table}(_updatedAt)",
    # Recursive triggers are off, so the inner UPDATE does not re-fire this.
    """
    CREATE TRIGGER IF NOT EXISTS {trigger}
    AFTER UPDATE ON {table}
    FOR EACH ROW
    BEGIN
        UPDATE {table} SET _updatedAt = datetime('now') WHERE _id = NEW._id;
    END
    """,
)


def collection_schema_statements(table: str) -> list[str]:
    """
    Render the DDL that bootstraps one collection.

    Statements are kept separate (no executescript) so bootstrapping never
    commits a transaction the caller has open.

    Args:
        table: Unquoted collection (table) name

    Returns:
        List of SQL statements, in execution order
    """
    names = {
        "table": quote_identifier(table),
        "types_table": quote_identifier(types_table(table)),
        "indexes_table": quote_identifier(indexes_table(table)),
        "created_index": quote_identifier(physical_index_name(table, CREATED_AT_FIELD)),
        "updated_index": quote_identifier(physical_index_name(table, UPDATED_AT_FIELD)),
        "trigger": quote_identifier(f"{table}__touch_updated_at"),
    }
    return [template.format(**names).strip() for template in COLLECTION_SCHEMA_SQL]
