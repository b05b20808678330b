"""
Document query compiler.

Translates a Mongo-style query document into a parameterized WHERE clause:

    {"category": "books", "price": {"_lt": 20}}
    -> ('("category" = ?) AND ("price" < ?)', ["books", 20])

Values never appear in the SQL text; every operand is bound through a `?`
placeholder, and one argument list is threaded through the recursion so
that placeholder order and argument order always line up.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .codec import ValueCodec
from .registry import TypeRegistry
from .schema import quote_identifier

logger = logging.getLogger(__name__)


ALWAYS_TRUE = "1 = 1"
ALWAYS_FALSE = "0 = 1"

COMPARISON_OPERATORS = {
    "_gt": ">",
    "_gte": ">=",
    "_lt": "<",
    "_lte": "<=",
    "_ne": "!=",
}

COMBINATORS = {"_or": "OR", "_and": "AND"}

FIELD_OPERATORS = frozenset(
    [*COMPARISON_OPERATORS, "_in", "_nin", "_exists", "_regex", "_not"]
)


def is_operator_object(value: Any) -> bool:
    """
    Whether a field condition is an operator object rather than a value.

    Every key must look like an operator (start with '_') and at least one
    must be a known operator. A dict of unknown `_` keys, such as {"_v": 1},
    is a JSON value compared for equality.
    """
    return (
        isinstance(value, dict)
        and bool(value)
        and all(isinstance(key, str) and key.startswith("_") for key in value)
        and any(key in FIELD_OPERATORS for key in value)
    )


class QueryCompiler:
    """Compiles query documents against one collection's field types."""

    def __init__(self, registry: TypeRegistry, codec: ValueCodec | None = None):
        self._registry = registry
        self._codec = codec or ValueCodec(registry)

    def compile(self, query: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
        """
        Compile a query document.

        Args:
            query: Query document; None or {} matches every row

        Returns:
            (predicate, args) where args are positional for `?` placeholders
        """
        args: list[Any] = []
        predicate = self._compile_query(query or {}, args)
        return predicate, args

    def _compile_query(self, query: Mapping[str, Any], args: list[Any]) -> str:
        conditions = []
        for key, value in query.items():
            if key in COMBINATORS:
                conditions.append(self._compile_combinator(key, value, args))
            elif key == "_not":
                conditions.append(self._compile_negated_query(value, args))
            else:
                conditions.append(self._compile_field(key, value, args))

        if not conditions:
            return ALWAYS_TRUE
        if len(conditions) == 1:
            return conditions[0]
        return " AND ".join(f"({condition})" for condition in conditions)

    def _compile_combinator(self, key: str, value: Any, args: list[Any]) -> str:
        # Malformed operands degrade to no condition rather than an error
        if not isinstance(value, list):
            return ALWAYS_TRUE
        subqueries = [item for item in value if isinstance(item, dict)]
        if not subqueries:
            return ALWAYS_TRUE

        parts = [self._compile_query(subquery, args) for subquery in subqueries]
        joiner = f" {COMBINATORS[key]} "
        return "(" + joiner.join(f"({part})" for part in parts) + ")"

    def _compile_negated_query(self, value: Any, args: list[Any]) -> str:
        if not isinstance(value, dict):
            return ALWAYS_TRUE
        return f"NOT COALESCE(({self._compile_query(value, args)}), 0)"

    def _compile_field(self, field: str, value: Any, args: list[Any]) -> str:
        # A field that was never written cannot match anything
        if field not in self._registry:
            return ALWAYS_FALSE
        return self._compile_condition(field, value, args)

    def _compile_condition(self, field: str, value: Any, args: list[Any]) -> str:
        column = quote_identifier(field)

        if not is_operator_object(value):
            if value is None:
                return f"{column} IS NULL"
            args.append(self._codec.serialize(field, value))
            return f"{column} = ?"

        conditions = []
        for operator, operand in value.items():
            condition = self._compile_operator(field, column, operator, operand, args)
            if condition is not None:
                conditions.append(condition)

        if not conditions:
            return ALWAYS_TRUE
        if len(conditions) == 1:
            return conditions[0]
        return " AND ".join(f"({condition})" for condition in conditions)

    def _compile_operator(
        self,
        field: str,
        column: str,
        operator: str,
        operand: Any,
        args: list[Any],
    ) -> str | None:
        if operator in COMPARISON_OPERATORS:
            if operand is None:
                return f"{column} IS NOT NULL" if operator == "_ne" else ALWAYS_FALSE
            args.append(self._codec.serialize(field, operand))
            return f"{column} {COMPARISON_OPERATORS[operator]} ?"

        if operator in ("_in", "_nin"):
            if not isinstance(operand, list):
                return None
            if not operand:
                return ALWAYS_FALSE if operator == "_in" else ALWAYS_TRUE
            placeholders = ", ".join("?" for _ in operand)
            args.extend(self._codec.serialize(field, item) for item in operand)
            negation = "NOT " if operator == "_nin" else ""
            return f"{column} {negation}IN ({placeholders})"

        if operator == "_exists":
            return f"{column} IS NOT NULL" if operand else f"{column} IS NULL"

        if operator == "_regex":
            args.append(operand)
            return f"{column} REGEXP ?"

        if operator == "_not":
            # Unknown (NULL) collapses to false before negation, so a negated
            # comparison also matches rows where the field is absent.
            inner = self._compile_condition(field, operand, args)
            return f"NOT COALESCE(({inner}), 0)"

        logger.warning("Ignoring unknown query operator %r on field %r", operator, field)
        return None
