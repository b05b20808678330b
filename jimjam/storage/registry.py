"""
Per-collection field types and on-demand column creation.

The TypeRegistry is the authoritative field -> FieldType mapping of one
collection, persisted in `<table>_types` and mirrored in memory. The
ColumnSynchronizer makes sure every field of an incoming document has a
backing column of the right (possibly promoted) type.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING, Any, Iterator, Mapping

from .schema import (
    CREATED_AT_FIELD,
    ID_FIELD,
    UPDATED_AT_FIELD,
    SchemaMutationError,
    quote_identifier,
    types_table,
)
from .types import FieldType, can_promote, detect_type

if TYPE_CHECKING:
    from .connection import ConnectionHandle
    from .indexes import IndexRegistry

logger = logging.getLogger(__name__)


BUILTIN_TYPES = {
    ID_FIELD: FieldType.INTEGER,
    CREATED_AT_FIELD: FieldType.DATE,
    UPDATED_AT_FIELD: FieldType.DATE,
}


class TypeRegistry:
    """Field name -> FieldType for one collection."""

    def __init__(self, handle: ConnectionHandle, table: str):
        self._handle = handle
        self.table = table
        self._types: dict[str, FieldType] = {}

    def __contains__(self, field: object) -> bool:
        return field in self._types

    def __iter__(self) -> Iterator[str]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)

    def get(self, field: str) -> FieldType | None:
        return self._types.get(field)

    def fields(self) -> dict[str, FieldType]:
        """Snapshot of the current mapping."""
        return dict(self._types)

    def load(self) -> None:
        """Bootstrap from persisted metadata, built-in fields first."""
        sql = (
            f"INSERT OR IGNORE INTO {quote_identifier(types_table(self.table))} "
            "(field_name, field_type) VALUES (?, ?)"
        )
        if not self._handle.read_only:
            for field, field_type in BUILTIN_TYPES.items():
                self._handle.execute(sql, (field, field_type.value))

        cursor = self._handle.execute(
            f"SELECT field_name, field_type FROM {quote_identifier(types_table(self.table))}"
        )
        types = dict(BUILTIN_TYPES)
        for row in cursor.fetchall():
            types[row["field_name"]] = FieldType(row["field_type"])
        self._types = types

    def reload(self) -> None:
        """Discard the in-memory mapping and read it back from metadata."""
        logger.debug("Reloading field types for %s", self.table)
        self._types = {}
        self.load()

    def register(self, field: str, field_type: FieldType) -> None:
        """Record a newly created field."""
        try:
            self._handle.execute(
                f"INSERT OR IGNORE INTO {quote_identifier(types_table(self.table))} "
                "(field_name, field_type) VALUES (?, ?)",
                (field, field_type.value),
            )
        except sqlite3.Error as e:
            raise SchemaMutationError(
                f"Failed to register field '{field}' on '{self.table}': {e}"
            ) from e
        self._types[field] = field_type

    def set_type(self, field: str, field_type: FieldType) -> None:
        """Persist a promoted type, then mirror it in memory."""
        try:
            self._handle.execute(
                f"UPDATE {quote_identifier(types_table(self.table))} "
                "SET field_type = ? WHERE field_name = ?",
                (field_type.value, field),
            )
        except sqlite3.Error as e:
            raise SchemaMutationError(
                f"Failed to promote field '{field}' on '{self.table}': {e}"
            ) from e
        self._types[field] = field_type


class ColumnSynchronizer:
    """Creates and promotes columns so a document fits its collection."""

    def __init__(
        self,
        handle: ConnectionHandle,
        types: TypeRegistry,
        indexes: IndexRegistry,
    ):
        self._handle = handle
        self._types = types
        self._indexes = indexes

    @property
    def table(self) -> str:
        return self._types.table

    def ensure_schema(self, document: Mapping[str, Any]) -> None:
        """
        Make every field of `document` storable.

        Unregistered fields get a column of their detected type (TEXT when
        the value is None). Registered fields whose detected type dominates
        the registered one are promoted. Nothing is ever downgraded.

        Raises:
            SchemaMutationError: If a column cannot be added
            TypeError: If a value has no field type
        """
        for field, value in document.items():
            detected = detect_type(value)
            current = self._types.get(field)

            if current is None:
                created = self._add_column(field, detected or FieldType.TEXT)
                if created:
                    continue
                # Another writer added the column first; trust its metadata
                current = self._types.get(field)
                if current is None:
                    self._types.register(field, detected or FieldType.TEXT)
                    continue

            if detected is not None and can_promote(current, detected):
                self._promote(field, current, detected)

    def _add_column(self, field: str, field_type: FieldType) -> bool:
        """
        Add a column and register it.

        Returns:
            False if the column already existed, in which case the registry
            has been reloaded from metadata instead
        """
        declared = f" {field_type.column_type}" if field_type.column_type else ""
        sql = (
            f"ALTER TABLE {quote_identifier(self.table)} "
            f"ADD COLUMN {quote_identifier(field)}{declared}"
        )
        try:
            self._handle.execute_ddl(sql)
        except sqlite3.Error as e:
            if "duplicate column name" in str(e).lower():
                logger.debug("Column %s.%s already exists", self.table, field)
                self._types.reload()
                return False
            raise SchemaMutationError(
                f"Failed to add column '{field}' to '{self.table}': {e}"
            ) from e

        self._types.register(field, field_type)
        return True

    def _promote(self, field: str, current: FieldType, promoted: FieldType) -> None:
        logger.info(
            "Promoting %s.%s from %s to %s",
            self.table,
            field,
            current.value,
            promoted.value,
        )
        self._indexes.rebuild(field, lambda: self._types.set_type(field, promoted))
