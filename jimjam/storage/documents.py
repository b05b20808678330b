"""Document row operations."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any, Sequence

from .schema import (
    ID_FIELD,
    IntegrityError,
    SchemaMutationError,
    StorageError,
    collection_schema_statements,
    indexes_table,
    quote_identifier,
    types_table,
)

if TYPE_CHECKING:
    from .connection import ConnectionHandle


def insert_document(
    handle: ConnectionHandle,
    table: str,
    values: dict[str, Any],
) -> int:
    """
    Insert one document row.

    Args:
        handle: Database connection handle
        table: Collection table name
        values: Column name -> serialized value (may be empty)

    Returns:
        The _id of the inserted row

    Raises:
        IntegrityError: If a unique index or the primary key is violated
    """
    if values:
        columns = ", ".join(quote_identifier(column) for column in values)
        placeholders = ", ".join("?" for _ in values)
        sql = f"INSERT INTO {quote_identifier(table)} ({columns}) VALUES ({placeholders})"
    else:
        sql = f"INSERT INTO {quote_identifier(table)} DEFAULT VALUES"

    try:
        cursor = handle.execute(sql, values.values())
    except sqlite3.IntegrityError as e:
        raise IntegrityError(str(e)) from e

    if cursor.lastrowid is None:
        raise StorageError("Failed to insert document: lastrowid is None")
    return cursor.lastrowid


def select_documents(
    handle: ConnectionHandle,
    table: str,
    predicate: str,
    args: Sequence[Any],
    *,
    order_by: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> list[sqlite3.Row]:
    """
    Select whole rows matching a compiled predicate.

    `order_by` is spliced into the statement verbatim; it must never carry
    untrusted input.
    """
    sql = f"SELECT * FROM {quote_identifier(table)} WHERE {predicate}"
    params = list(args)

    if order_by:
        sql += f" ORDER BY {order_by}"

    if limit is not None or offset is not None:
        sql += " LIMIT ?"
        params.append(limit if limit is not None else -1)
        if offset is not None:
            sql += " OFFSET ?"
            params.append(offset)

    cursor = handle.execute(sql, params)
    return cursor.fetchall()


def count_documents(
    handle: ConnectionHandle,
    table: str,
    predicate: str,
    args: Sequence[Any],
) -> int:
    cursor = handle.execute(
        f"SELECT COUNT(*) AS count FROM {quote_identifier(table)} WHERE {predicate}",
        args,
    )
    return cursor.fetchone()["count"]


def update_documents(
    handle: ConnectionHandle,
    table: str,
    values: dict[str, Any],
    predicate: str,
    args: Sequence[Any],
) -> int:
    """
    Set columns on every row matching a compiled predicate.

    Returns:
        Number of rows updated (trigger side effects excluded)

    Raises:
        IntegrityError: If a unique index is violated
    """
    assignments = ", ".join(f"{quote_identifier(column)} = ?" for column in values)
    sql = f"UPDATE {quote_identifier(table)} SET {assignments} WHERE {predicate}"
    try:
        cursor = handle.execute(sql, [*values.values(), *args])
    except sqlite3.IntegrityError as e:
        raise IntegrityError(str(e)) from e
    return cursor.rowcount


def delete_documents(
    handle: ConnectionHandle,
    table: str,
    predicate: str,
    args: Sequence[Any],
) -> int:
    cursor = handle.execute(
        f"DELETE FROM {quote_identifier(table)} WHERE {predicate}",
        args,
    )
    return cursor.rowcount


def document_exists(handle: ConnectionHandle, table: str, doc_id: int) -> bool:
    cursor = handle.execute(
        f"SELECT 1 FROM {quote_identifier(table)} WHERE {ID_FIELD} = ?",
        (doc_id,),
    )
    return cursor.fetchone() is not None


def list_collection_tables(handle: ConnectionHandle) -> list[str]:
    """Names of every table that carries both jimjam metadata tables."""
    cursor = handle.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
    )
    tables = {row["name"] for row in cursor.fetchall()}
    return sorted(
        name
        for name in tables
        if types_table(name) in tables and indexes_table(name) in tables
    )


def create_collection(handle: ConnectionHandle, table: str) -> None:
    """
    Create a collection's table, metadata tables, automatic indexes and
    update trigger if they don't exist.

    Raises:
        SchemaMutationError: If any statement fails
    """
    for sql in collection_schema_statements(table):
        try:
            handle.execute_ddl(sql)
        except sqlite3.Error as e:
            raise SchemaMutationError(f"Failed to create collection '{table}': {e}") from e
