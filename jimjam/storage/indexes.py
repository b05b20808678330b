"""Named index metadata and rebuilds across type promotion."""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import TYPE_CHECKING, Callable

from pydantic import BaseModel, Field

from .schema import (
    RESERVED_INDEX_NAMES,
    SchemaMutationError,
    indexes_table,
    physical_index_name,
    quote_identifier,
)

if TYPE_CHECKING:
    from .connection import ConnectionHandle
    from .registry import ColumnSynchronizer

logger = logging.getLogger(__name__)


class IndexDefinition(BaseModel):
    """A named index over one or more fields of a collection."""

    name: str = Field(min_length=1)
    fields: list[str] = Field(min_length=1)
    unique: bool = False


class IndexRegistry:
    """Index definitions of one collection, persisted in `<table>_indexes`."""

    def __init__(self, handle: ConnectionHandle, table: str):
        self._handle = handle
        self.table = table
        self._definitions: dict[str, IndexDefinition] = {}

    @property
    def _metadata_table(self) -> str:
        return quote_identifier(indexes_table(self.table))

    def load(self) -> None:
        cursor = self._handle.execute(
            f"SELECT index_name, field_names, is_unique FROM {self._metadata_table} "
            "ORDER BY index_name"
        )
        self._definitions = {
            row["index_name"]: _definition_from_row(row) for row in cursor.fetchall()
        }

    def get(self, name: str) -> IndexDefinition | None:
        return self._definitions.get(name)

    def definitions(self) -> list[IndexDefinition]:
        return list(self._definitions.values())

    def create(
        self,
        definition: IndexDefinition | dict,
        synchronizer: ColumnSynchronizer,
    ) -> IndexDefinition:
        """
        Create an index and persist its definition.

        Every referenced field is synchronized first (as provisional TEXT
        when unknown), so an index never names a missing column. Creating an
        index whose name is already taken is a no-op.

        Args:
            definition: Index name, fields and uniqueness
            synchronizer: Column synchronizer of the same collection

        Returns:
            The live definition for that name

        Raises:
            SchemaMutationError: If the name is reserved or the index cannot
                be built
        """
        if isinstance(definition, dict):
            definition = IndexDefinition(**definition)

        if definition.name in RESERVED_INDEX_NAMES:
            raise SchemaMutationError(
                f"Index name '{definition.name}' is reserved on '{self.table}'"
            )

        existing = self._definitions.get(definition.name)
        if existing is not None:
            return existing

        synchronizer.ensure_schema({field: "" for field in definition.fields})
        self._create_backing(definition)

        try:
            self._handle.execute(
                f"INSERT OR REPLACE INTO {self._metadata_table} "
                "(index_name, field_names, is_unique) VALUES (?, ?, ?)",
                (definition.name, json.dumps(definition.fields), int(definition.unique)),
            )
        except sqlite3.Error as e:
            raise SchemaMutationError(
                f"Failed to record index '{definition.name}' on '{self.table}': {e}"
            ) from e

        self._definitions[definition.name] = definition
        return definition

    def drop(self, name: str) -> bool:
        """
        Drop an index and its metadata.

        Returns:
            True if the index was known, False if there was nothing to drop
        """
        if name in RESERVED_INDEX_NAMES:
            # Automatic indexes are not named indexes and always stay
            return False

        self._drop_backing(name)
        try:
            cursor = self._handle.execute(
                f"DELETE FROM {self._metadata_table} WHERE index_name = ?",
                (name,),
            )
        except sqlite3.Error as e:
            raise SchemaMutationError(
                f"Failed to forget index '{name}' on '{self.table}': {e}"
            ) from e
        self._definitions.pop(name, None)
        return cursor.rowcount > 0

    def fields_affected_by(self, field: str) -> list[str]:
        """Names of the persisted indexes whose field list contains `field`."""
        cursor = self._handle.execute(
            f"SELECT index_name, field_names FROM {self._metadata_table} "
            "ORDER BY index_name"
        )
        return [
            row["index_name"]
            for row in cursor.fetchall()
            if field in json.loads(row["field_names"])
        ]

    def rebuild(self, field: str, apply: Callable[[], None]) -> None:
        """
        Rebuild every index over `field` around a type change.

        Affected indexes are dropped, `apply` persists the new type, then the
        indexes are recreated from their saved definitions. Recreating before
        the type change would bake in stale comparison semantics.
        """
        affected = [self._saved_definition(name) for name in self.fields_affected_by(field)]

        for definition in affected:
            self._drop_backing(definition.name)

        apply()

        for definition in affected:
            self._create_backing(definition)

        if affected:
            logger.info(
                "Rebuilt %d index(es) on %s.%s: %s",
                len(affected),
                self.table,
                field,
                ", ".join(d.name for d in affected),
            )

    def _saved_definition(self, name: str) -> IndexDefinition:
        cursor = self._handle.execute(
            f"SELECT index_name, field_names, is_unique FROM {self._metadata_table} "
            "WHERE index_name = ?",
            (name,),
        )
        return _definition_from_row(cursor.fetchone())

    def _create_backing(self, definition: IndexDefinition) -> None:
        physical = physical_index_name(self.table, definition.name)
        self._check_existing_backing(physical, definition)

        columns = ", ".join(quote_identifier(field) for field in definition.fields)
        unique = "UNIQUE " if definition.unique else ""
        sql = (
            f"CREATE {unique}INDEX IF NOT EXISTS "
            f"{quote_identifier(physical)} "
            f"ON {quote_identifier(self.table)} ({columns})"
        )
        try:
            self._handle.execute_ddl(sql)
        except sqlite3.Error as e:
            raise SchemaMutationError(
                f"Failed to create index '{definition.name}' on '{self.table}': {e}"
            ) from e

    def _check_existing_backing(self, physical: str, definition: IndexDefinition) -> None:
        """
        Refuse to adopt an index of the same name that indexes something else.

        CREATE INDEX IF NOT EXISTS would silently keep it, leaving the
        definition (and its uniqueness) unenforced.
        """
        row = self._handle.execute(
            "SELECT tbl_name FROM sqlite_master WHERE type = 'index' AND name = ?",
            (physical,),
        ).fetchone()
        if row is None:
            return

        columns = [
            info["name"]
            for info in self._handle.execute(f"PRAGMA index_info({quote_identifier(physical)})")
        ]
        unique = any(
            entry["name"] == physical and entry["unique"]
            for entry in self._handle.execute(
                f"PRAGMA index_list({quote_identifier(row['tbl_name'])})"
            )
        )
        if (
            row["tbl_name"] != self.table
            or columns != definition.fields
            or unique != definition.unique
        ):
            raise SchemaMutationError(
                f"Cannot create index '{definition.name}' on '{self.table}': "
                f"'{physical}' already exists on {row['tbl_name']}({', '.join(columns)})"
            )

    def _drop_backing(self, name: str) -> None:
        sql = (
            "DROP INDEX IF EXISTS "
            f"{quote_identifier(physical_index_name(self.table, name))}"
        )
        try:
            self._handle.execute_ddl(sql)
        except sqlite3.Error as e:
            raise SchemaMutationError(
                f"Failed to drop index '{name}' on '{self.table}': {e}"
            ) from e


def _definition_from_row(row: sqlite3.Row) -> IndexDefinition:
    return IndexDefinition(
        name=row["index_name"],
        fields=json.loads(row["field_names"]),
        unique=bool(row["is_unique"]),
    )
