"""Filter input types for list queries."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

from mssqlgen.naming import to_camel, type_name
from mssqlgen.table_filter import TablePattern, matches_any
from mssqlgen.type_conversion import map_type
from mssqlgen.types import FilterInput

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mssqlgen.types import TableDescriptor, TableName

COMPARISON_OPS = ("eq", "ne", "lt", "gt", "le", "ge")
TEXT_OPS = (*COMPARISON_OPS, "like", "ilike")

# Scalar -> operators it supports
SCALAR_OPERATORS: dict[str, tuple[str, ...]] = {
    "Int": COMPARISON_OPS,
    "Float": COMPARISON_OPS,
    "String": TEXT_OPS,
    "Boolean": ("eq", "ne"),
    "ID": TEXT_OPS,
}
SHORTHAND_SCALARS = frozenset({"String", "ID"})


class SharedFilter(NamedTuple):
    """Filter input for one scalar, e.g. ``IntFilter``."""

    name: str
    scalar: str
    operators: tuple[str, ...]


def filter_type_name(scalar: str) -> str:
    """Name of the shared filter input for a scalar."""
    return f"{scalar}Filter"


def shared_filters(operators: Iterable[str]) -> list[SharedFilter]:
    """Shared filter inputs limited to the configured operators."""
    configured = list(operators)
    return [
        SharedFilter(
            filter_type_name(scalar),
            scalar,
            tuple(op for op in configured if op in allowed),
        )
        for scalar, allowed in SCALAR_OPERATORS.items()
    ]


def table_filter_input(
    table: TableDescriptor,
    *,
    use_shorthands: bool = True,
    logical_operators: bool = True,
) -> FilterInput:
    """Filter input with one entry per column of the table.

    Columns whose scalar has no shared filter (e.g. ``JSON``) are left out.
    """
    fields: list[tuple[str, str]] = []
    for column in table.columns:
        scalar = map_type(column.data_type)
        if use_shorthands and scalar in SHORTHAND_SCALARS:
            fields.append((to_camel(column.name), scalar))
        elif scalar in SCALAR_OPERATORS:
            fields.append((to_camel(column.name), filter_type_name(scalar)))

    return FilterInput(
        name=filter_type_name(type_name(table.name.name)),
        fields=tuple(fields),
        logical_operators=logical_operators,
    )


def filtering_enabled_for(table: TableName, patterns: Iterable[str]) -> bool:
    """Filtering applies to every table when no patterns are configured."""
    compiled = [TablePattern.parse(pattern) for pattern in patterns]
    return not compiled or matches_any(table, compiled)
