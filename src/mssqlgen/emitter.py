"""Assembly of per-table schema documents."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mssqlgen.naming import list_query_name, single_query_name, to_camel, type_name
from mssqlgen.relationships import Relationships
from mssqlgen.type_conversion import map_type
from mssqlgen.types import (
    ConditionFetch,
    QueryArgument,
    TableDocument,
    TableFetch,
    TargetField,
    TargetQuery,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mssqlgen.types import FilterInput, TableDescriptor


def check_identifiers(table: TableDescriptor) -> None:
    """Convert every name the table contributes to a document.

    Raises:
        InvalidIdentifierError: If the table, a column or a foreign key column
            has a name that cannot become a GraphQL identifier

    """
    type_name(table.name.name)
    for column in table.columns:
        to_camel(column.name)
    for fk in table.foreign_keys:
        to_camel(fk.column_name)
        to_camel(fk.referenced_column)
        type_name(fk.referenced_table)


def column_fields(table: TableDescriptor) -> list[TargetField]:
    """One field per column, in column order."""
    return [
        TargetField(
            name=to_camel(column.name),
            type_name=map_type(column.data_type),
            nullable=column.nullable,
        )
        for column in table.columns
    ]


def list_query(
    table: TableDescriptor,
    filter_input: FilterInput | None = None,
) -> TargetQuery:
    """Query returning every row, with an optional filter argument."""
    arguments = (QueryArgument("filter", filter_input.name),) if filter_input else ()
    return TargetQuery(
        name=list_query_name(table.name.name),
        return_type=type_name(table.name.name),
        fetch=TableFetch(table.name),
        arguments=arguments,
        returns_list=True,
    )


def single_query(table: TableDescriptor) -> TargetQuery | None:
    """Query returning one row by the first primary key column, if there is one."""
    key = table.primary_key
    if key is None:
        return None
    return TargetQuery(
        name=single_query_name(table.name.name),
        return_type=type_name(table.name.name),
        fetch=ConditionFetch(table.name, key.name),
        arguments=(
            QueryArgument(to_camel(key.name), map_type(key.data_type), required=True),
        ),
    )


def build_table_document(
    table: TableDescriptor,
    relationships: Relationships | None = None,
    filter_input: FilterInput | None = None,
    notes: Iterable[str] = (),
) -> TableDocument:
    """Assemble the document for one table.

    Field order: columns, then relationship fields in foreign key order.
    Query order: list query, single-record query, then relationship queries.
    """
    relationships = relationships or Relationships()
    single = single_query(table)
    return TableDocument(
        source=table.name,
        type_name=type_name(table.name.name),
        fields=(*column_fields(table), *relationships.fields),
        queries=(
            list_query(table, filter_input),
            *((single,) if single else ()),
            *relationships.queries,
        ),
        filter_input=filter_input,
        notes=tuple(notes),
    )
