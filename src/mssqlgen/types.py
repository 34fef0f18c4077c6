"""Data model for database metadata and generated schema documents."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Literal, NamedTuple

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass(frozen=True, eq=False)
class TableName:
    """Schema-qualified table name.

    Equality and hashing ignore case, the original spelling is kept for display.
    """

    schema: str
    name: str

    @property
    def key(self) -> tuple[str, str]:
        """Case-folded identity used for comparisons."""
        return (self.schema.casefold(), self.name.casefold())

    @property
    def file_name(self) -> str:
        """Base name of the generated document for this table."""
        return str(self).lower()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TableName):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return f"{self.schema}.{self.name}"


@dataclass(frozen=True)
class ColumnDescriptor:
    """Schema for a database column."""

    name: str
    data_type: str
    nullable: bool
    max_length: int | None = None
    precision: int | None = None
    scale: int | None = None
    default: str | None = None
    is_primary_key: bool = False
    is_foreign_key: bool = False
    is_identity: bool = False


class ForeignKeyEdge(NamedTuple):
    """Directed reference from one column to a column of another table."""

    constraint_name: str | None
    column_name: str
    referenced_schema: str
    referenced_table: str
    referenced_column: str

    @property
    def referenced(self) -> TableName:
        """Qualified name of the referenced table."""
        return TableName(self.referenced_schema, self.referenced_table)


@dataclass(frozen=True)
class TableDescriptor:
    """Schema for a database table."""

    name: TableName
    columns: tuple[ColumnDescriptor, ...]
    primary_keys: tuple[str, ...] = ()
    foreign_keys: tuple[ForeignKeyEdge, ...] = ()

    @classmethod
    def from_metadata(
        cls,
        name: TableName,
        columns: Iterable[ColumnDescriptor],
        primary_keys: Iterable[str],
        foreign_keys: Iterable[ForeignKeyEdge],
    ) -> TableDescriptor:
        """Build a descriptor with column key flags reconciled against the keys."""
        primary_keys = tuple(primary_keys)
        foreign_keys = tuple(foreign_keys)
        fk_columns = {fk.column_name for fk in foreign_keys}
        return cls(
            name=name,
            columns=tuple(
                replace(
                    column,
                    is_primary_key=column.name in primary_keys,
                    is_foreign_key=column.name in fk_columns,
                )
                for column in columns
            ),
            primary_keys=primary_keys,
            foreign_keys=foreign_keys,
        )

    def column(self, name: str) -> ColumnDescriptor | None:
        """Return the column with the given name, if present."""
        return next((col for col in self.columns if col.name == name), None)

    @property
    def primary_key(self) -> ColumnDescriptor | None:
        """First primary key column, which single-record lookups are keyed on."""
        return self.column(self.primary_keys[0]) if self.primary_keys else None


type GenerationSet = tuple[TableName, ...]


# Target schema representation


class ArgumentBinding(NamedTuple):
    """Feeds a query argument from a field of the owning type."""

    name: str
    field: str


class Materializer(NamedTuple):
    """Binding that resolves a field through another query."""

    query: str
    arguments: tuple[ArgumentBinding, ...]


class TargetField(NamedTuple):
    """Field of a generated GraphQL type."""

    name: str
    type_name: str
    nullable: bool = True
    is_list: bool = False
    binding: Materializer | None = None


class QueryArgument(NamedTuple):
    """Argument of a generated query."""

    name: str
    type_name: str
    required: bool = False


class TableFetch(NamedTuple):
    """Fetch every row of a table."""

    table: TableName
    kind: Literal["table"] = "table"


class ConditionFetch(NamedTuple):
    """Fetch rows of a table where one column equals the query argument."""

    table: TableName
    column: str
    kind: Literal["condition"] = "condition"


type Fetch = TableFetch | ConditionFetch


class TargetQuery(NamedTuple):
    """Query generated for a table."""

    name: str
    return_type: str
    fetch: Fetch
    arguments: tuple[QueryArgument, ...] = ()
    returns_list: bool = False


class FilterInput(NamedTuple):
    """Filter input type generated for a table."""

    name: str
    fields: tuple[tuple[str, str], ...]
    logical_operators: bool = True


@dataclass(frozen=True)
class TableDocument:
    """Everything generated for one table, before serialization."""

    source: TableName
    type_name: str
    fields: tuple[TargetField, ...]
    queries: tuple[TargetQuery, ...]
    filter_input: FilterInput | None = None
    notes: tuple[str, ...] = ()


class RenderedDocument(NamedTuple):
    """Serialized document ready to be written."""

    file_name: str
    content: str
