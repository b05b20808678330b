"""
Value conversion between documents and SQLite storage.

Every conversion is keyed by the field's registered FieldType:

    BOOLEAN  <-> 0 / 1
    JSON     <-> canonical JSON text
    DATE     <-> "YYYY-MM-DD HH:MM:SS" in UTC
    INTEGER, FLOAT, TEXT pass through

None is never coerced.
"""

from __future__ import annotations

import json
from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING, Any

from .types import FieldType, detect_type

if TYPE_CHECKING:
    from .registry import TypeRegistry


TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(value: date | int | float) -> str:
    """
    Format a date, datetime or Unix epoch as a UTC timestamp string.

    Aware datetimes are converted to UTC; naive ones are taken to be UTC
    already. Years below 1000 are zero padded, which strftime does not
    guarantee on every platform.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        moment = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, datetime):
        moment = value
    else:
        moment = datetime.combine(value, time())

    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)

    return (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d} "
        f"{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )


def parse_timestamp(text: str) -> datetime:
    """Parse a stored UTC timestamp into a naive datetime."""
    return datetime.strptime(text, TIMESTAMP_FORMAT)


def dump_json(value: Any) -> str:
    """Canonical JSON text: sorted keys, compact separators."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def encode_value(field_type: FieldType | None, value: Any) -> Any:
    """Convert a document value to its storage representation."""
    if value is None:
        return None

    if field_type == FieldType.BOOLEAN:
        return 1 if value else 0

    if field_type == FieldType.JSON:
        return dump_json(value)

    if field_type == FieldType.DATE:
        if isinstance(value, str):
            return value
        if isinstance(value, (date, int, float)):
            return format_timestamp(value)
        return str(value)

    # The driver cannot bind containers or dates, whatever the field says
    if isinstance(value, (dict, list, tuple)):
        return dump_json(value)
    if isinstance(value, date):
        return format_timestamp(value)

    return value


def decode_value(field_type: FieldType | None, stored: Any) -> Any:
    """Convert a stored value back to its document representation."""
    if stored is None or field_type is None:
        return stored

    if field_type == FieldType.BOOLEAN:
        return bool(stored)

    if field_type == FieldType.JSON:
        if not isinstance(stored, str):
            return stored
        try:
            return json.loads(stored)
        except ValueError:
            return stored

    if field_type == FieldType.DATE:
        if not isinstance(stored, str):
            return stored
        try:
            return parse_timestamp(stored)
        except ValueError:
            return stored

    if field_type == FieldType.FLOAT and isinstance(stored, int):
        return float(stored)

    return stored


class ValueCodec:
    """Serializes field values using a collection's type registry."""

    def __init__(self, registry: TypeRegistry):
        self._registry = registry

    def serialize(self, field: str, value: Any) -> Any:
        field_type = self._registry.get(field)
        if field_type is None:
            field_type = detect_type(value)
        return encode_value(field_type, value)

    def deserialize(self, field: str, stored: Any) -> Any:
        return decode_value(self._registry.get(field), stored)
