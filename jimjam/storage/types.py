"""Field types tracked per collection and the promotion lattice between them."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any


class FieldType(str, Enum):
    """Storage type of a field within a collection."""

    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    TEXT = "TEXT"
    BOOLEAN = "BOOLEAN"
    JSON = "JSON"
    DATE = "DATE"

    @property
    def column_type(self) -> str:
        """
        Declared SQLite type for a new column of this field type.

        TEXT columns are declared without a type (no affinity) because a
        provisional TEXT field may later be promoted to a numeric type, and
        SQLite cannot change a column's declared type afterwards.
        """
        return _COLUMN_TYPES[self]


_COLUMN_TYPES = {
    FieldType.INTEGER: "INTEGER",
    FieldType.FLOAT: "REAL",
    FieldType.TEXT: "",
    FieldType.BOOLEAN: "INTEGER",
    FieldType.JSON: "TEXT",
    FieldType.DATE: "TEXT",
}


def detect_type(value: Any) -> FieldType | None:
    """
    Detect the field type of a runtime value.

    Returns None for None (no type decision). bool is checked before int
    since bool is an int subclass.

    Raises:
        TypeError: If the value has no field type
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return FieldType.BOOLEAN
    if isinstance(value, int):
        return FieldType.INTEGER
    if isinstance(value, float):
        return FieldType.FLOAT
    if isinstance(value, str):
        return FieldType.TEXT
    if isinstance(value, (dict, list, tuple)):
        return FieldType.JSON
    if isinstance(value, date):
        return FieldType.DATE
    raise TypeError(f"Unsupported document value type: {type(value).__name__}")


def can_promote(current: FieldType, detected: FieldType) -> bool:
    """
    Whether `detected` strictly dominates `current`.

    TEXT gives way to the first concrete type, INTEGER widens to FLOAT.
    Every other registered type is fixed for the life of the collection.
    """
    if current == detected:
        return False
    if current == FieldType.TEXT:
        return True
    return current == FieldType.INTEGER and detected == FieldType.FLOAT
