"""
Collections: named sets of schema-less documents.

A Collection binds one table to its type registry, column synchronizer,
index registry, query compiler and value codec. Write paths synchronize the
schema first; read paths only consult the registry.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field

from jimjam.storage import (
    ID_FIELD,
    ColumnSynchronizer,
    FieldType,
    IndexDefinition,
    IndexRegistry,
    QueryCompiler,
    TypeRegistry,
    ValueCodec,
    count_documents,
    create_collection,
    delete_documents,
    document_exists,
    insert_document,
    select_documents,
    update_documents,
)

if TYPE_CHECKING:
    import sqlite3

    from jimjam.database import Database

logger = logging.getLogger(__name__)


class FindOptions(BaseModel):
    """Ordering and paging for find()."""

    model_config = ConfigDict(populate_by_name=True)

    limit: int | None = Field(default=None, ge=0)
    offset: int | None = Field(default=None, ge=0)
    # Raw SQL fragment, passed through unescaped
    order_by: str | None = Field(default=None, alias="orderBy")


class Collection:
    """A named collection of documents inside a Database."""

    def __init__(self, database: Database, name: str):
        self._database = database
        self._handle = database.handle
        self.name = name

        self._types = TypeRegistry(self._handle, name)
        self._indexes = IndexRegistry(self._handle, name)
        self._synchronizer = ColumnSynchronizer(self._handle, self._types, self._indexes)
        self._codec = ValueCodec(self._types)
        self._compiler = QueryCompiler(self._types, self._codec)

        self.reload_schema()
        logger.debug("Opened collection %s (%d fields)", name, len(self._types))

    def __repr__(self) -> str:
        return f"Collection({self.name!r})"

    def reload_schema(self) -> None:
        """
        Re-read field types and index definitions from metadata.

        The tables are (re)created first: a rollback can undo the DDL that
        created them. A read-only database only reads what is there.
        """
        if not self._handle.read_only:
            create_collection(self._handle, self.name)
        self._types.reload()
        self._indexes.load()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def insert(self, document: Mapping[str, Any]) -> int:
        """
        Insert a document.

        New fields get columns, wider values promote existing ones. System
        fields not supplied by the caller take their defaults.

        Args:
            document: Field name -> value

        Returns:
            The new document's _id

        Raises:
            IntegrityError: If a unique index is violated
            SchemaMutationError: If a column cannot be added
        """
        self._synchronizer.ensure_schema(document)
        values = {
            field: self._codec.serialize(field, value)
            for field, value in document.items()
            if value is not None
        }
        doc_id = insert_document(self._handle, self.name, values)
        logger.debug("Inserted %s/%d", self.name, doc_id)
        return doc_id

    def insert_many(self, documents: Iterable[Mapping[str, Any]]) -> list[int]:
        """Insert several documents atomically; returns their ids in order."""
        return self._database.atomic(
            lambda _db: [self.insert(document) for document in documents]
        )

    def update(self, query: Mapping[str, Any] | None, patch: Mapping[str, Any]) -> int:
        """
        Set the fields of `patch` on every document matching `query`.

        `_id` is never updated. A patch with nothing settable returns 0
        without touching the database.

        Returns:
            Number of documents updated
        """
        settable = {field: value for field, value in patch.items() if field != ID_FIELD}
        if not settable:
            return 0

        self._synchronizer.ensure_schema(settable)
        values = {field: self._codec.serialize(field, value) for field, value in settable.items()}
        predicate, args = self._compiler.compile(query)
        return update_documents(self._handle, self.name, values, predicate, args)

    def update_by_id(self, doc_id: int, patch: Mapping[str, Any]) -> bool:
        return self.update({ID_FIELD: doc_id}, patch) > 0

    def upsert(self, document: Mapping[str, Any]) -> int:
        """
        Update the document with the same _id, or insert it.

        Runs in one immediate transaction when none is open, so the
        existence check and the write see the same snapshot.

        Returns:
            The _id of the updated or inserted document
        """

        def apply(_db: Database) -> int:
            doc_id = document.get(ID_FIELD)
            if doc_id is not None and document_exists(self._handle, self.name, doc_id):
                self.update_by_id(doc_id, document)
                return doc_id
            return self.insert(document)

        return self._database.atomic(apply, immediate=True)

    def delete(self, query: Mapping[str, Any] | None) -> int:
        """Delete every document matching `query`; returns how many."""
        predicate, args = self._compiler.compile(query)
        return delete_documents(self._handle, self.name, predicate, args)

    def delete_by_id(self, doc_id: int) -> bool:
        return self.delete({ID_FIELD: doc_id}) > 0

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def find(
        self,
        query: Mapping[str, Any] | None = None,
        options: FindOptions | dict | None = None,
    ) -> list[dict[str, Any]]:
        """
        Find documents matching a query.

        Args:
            query: Query document (None matches everything)
            options: limit, offset and order_by (alias orderBy)

        Returns:
            Matching documents; fields stored as NULL are left out
        """
        if isinstance(options, dict):
            options = FindOptions(**options)

        if options is None:
            options = FindOptions()

        predicate, args = self._compiler.compile(query)
        rows = select_documents(
            self._handle,
            self.name,
            predicate,
            args,
            order_by=options.order_by,
            limit=options.limit,
            offset=options.offset,
        )
        return [self._decode_row(row) for row in rows]

    def find_one(
        self,
        query: Mapping[str, Any] | None = None,
        options: FindOptions | dict | None = None,
    ) -> dict[str, Any] | None:
        if isinstance(options, dict):
            options = FindOptions(**options)
        options = (options or FindOptions()).model_copy(update={"limit": 1})

        documents = self.find(query, options)
        return documents[0] if documents else None

    def find_by_id(self, doc_id: int) -> dict[str, Any] | None:
        return self.find_one({ID_FIELD: doc_id})

    def count(self, query: Mapping[str, Any] | None = None) -> int:
        predicate, args = self._compiler.compile(query)
        return count_documents(self._handle, self.name, predicate, args)

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    def create_index(self, definition: IndexDefinition | dict) -> IndexDefinition:
        """
        Create a named index; a no-op if the name already exists.

        Example:
            users.create_index({"name": "by_email", "fields": ["email"], "unique": True})
        """
        return self._indexes.create(definition, self._synchronizer)

    def drop_index(self, name: str) -> bool:
        return self._indexes.drop(name)

    def list_indexes(self) -> list[IndexDefinition]:
        return self._indexes.definitions()

    def field_types(self) -> dict[str, FieldType]:
        return self._types.fields()

    def _decode_row(self, row: sqlite3.Row) -> dict[str, Any]:
        return {
            field: self._codec.deserialize(field, row[field])
            for field in row.keys()
            if row[field] is not None
        }
