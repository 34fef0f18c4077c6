"""Relationship fields and queries derived from foreign keys."""

from __future__ import annotations

from collections import defaultdict
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, NamedTuple

from mssqlgen.events import RelationshipSkipped, log_event
from mssqlgen.naming import (
    list_query_name,
    single_query_name,
    strip_id_suffix,
    to_camel,
    to_pascal,
    type_name,
)
from mssqlgen.type_conversion import UNMAPPED_TYPE_SCALAR, map_type
from mssqlgen.types import (
    ArgumentBinding,
    ConditionFetch,
    ForeignKeyEdge,
    Materializer,
    QueryArgument,
    TableDescriptor,
    TableName,
    TargetField,
    TargetQuery,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from mssqlgen.events import EventSink

logger = getLogger(__name__)


class CollisionPolicy(StrEnum):
    """How relationship fields with clashing names are handled."""

    # Rename the later field: column name for forward fields, query name for
    # reverse fields, then a numeric suffix.
    DISAMBIGUATE = "disambiguate"
    # The later field replaces the earlier one, keeping the earlier position.
    # Relationship fields never replace column fields.
    OVERWRITE = "overwrite"


POLICY_NOTES = {
    CollisionPolicy.DISAMBIGUATE: (
        "clashing relationship fields are renamed "
        "(forward: <column><Type>, reverse: <query name>, then a numeric suffix)"
    ),
    CollisionPolicy.OVERWRITE: (
        "a later relationship field replaces an earlier one with the same name"
    ),
}


class Relationship(NamedTuple):
    """A relationship field, with the query backing it for reverse relationships."""

    field: TargetField
    fallback: str
    column: str
    query: TargetQuery | None = None


class Relationships(NamedTuple):
    """Relationship fields and queries to add to one table's document."""

    fields: tuple[TargetField, ...] = ()
    queries: tuple[TargetQuery, ...] = ()


def forward_field_name(fk: ForeignKeyEdge) -> str:
    """Name of the field pointing from the referencing row to the referenced row.

    ``LastEditedBy -> People`` gives ``lastEditedByPeople``; when the column
    already names the target, ``CustomerId -> Customer`` gives ``customer``.
    """
    base = to_camel(strip_id_suffix(fk.column_name))
    target = type_name(fk.referenced_table)
    if base.lower().endswith(target.lower()):
        return base
    return f"{base}{target}"


def reverse_query_name(child: TableName, fk: ForeignKeyEdge) -> str:
    """Query listing the children of a parent, e.g. ``ordersByCustomerId``."""
    return f"{list_query_name(child.name)}By{to_pascal(fk.column_name)}"


def forward_relationship(fk: ForeignKeyEdge) -> Relationship:
    """Field on the referencing type resolved by the referenced single query."""
    target = type_name(fk.referenced_table)
    field = TargetField(
        name=forward_field_name(fk),
        type_name=target,
        nullable=True,
        binding=Materializer(
            query=single_query_name(fk.referenced_table),
            arguments=(
                ArgumentBinding(
                    name=to_camel(fk.referenced_column),
                    field=to_camel(fk.column_name),
                ),
            ),
        ),
    )
    return Relationship(field, f"{to_camel(fk.column_name)}{target}", fk.column_name)


def _argument_type(
    child: TableDescriptor,
    parent: TableDescriptor,
    fk: ForeignKeyEdge,
) -> str:
    column = parent.column(fk.referenced_column) or child.column(fk.column_name)
    return map_type(column.data_type) if column else UNMAPPED_TYPE_SCALAR


def reverse_relationship(
    child: TableDescriptor,
    parent: TableDescriptor,
    fk: ForeignKeyEdge,
) -> Relationship:
    """List field on the referenced type and the query that fills it."""
    query_name = reverse_query_name(child.name, fk)
    argument = to_camel(fk.column_name)
    child_type = type_name(child.name.name)
    query = TargetQuery(
        name=query_name,
        return_type=child_type,
        fetch=ConditionFetch(child.name, fk.column_name),
        arguments=(
            QueryArgument(argument, _argument_type(child, parent, fk), required=True),
        ),
        returns_list=True,
    )
    field = TargetField(
        name=list_query_name(child.name.name),
        type_name=child_type,
        nullable=True,
        is_list=True,
        binding=Materializer(
            query=query_name,
            arguments=(
                ArgumentBinding(name=argument, field=to_camel(fk.referenced_column)),
            ),
        ),
    )
    return Relationship(field, query_name, fk.column_name, query)


def _unique(name: str, fallback: str, taken: Iterable[str]) -> str:
    taken = set(taken)
    if name not in taken:
        return name
    if fallback not in taken:
        return fallback
    suffix = 2
    while f"{fallback}{suffix}" in taken:
        suffix += 1
    return f"{fallback}{suffix}"


def place_relationships(
    table: TableDescriptor,
    relationships: Iterable[Relationship],
    reserved_queries: Iterable[str] = (),
    *,
    policy: CollisionPolicy = CollisionPolicy.DISAMBIGUATE,
    sink: EventSink = log_event,
) -> Relationships:
    """Resolve name collisions and fix the order of relationship fields."""
    columns = {to_camel(column.name) for column in table.columns}
    fields: dict[str, TargetField] = {}
    queries: dict[str, TargetQuery] = {}
    reserved_queries = set(reserved_queries)

    for relationship in relationships:
        field, query = relationship.field, relationship.query

        if policy is CollisionPolicy.OVERWRITE:
            if field.name in columns:
                sink(
                    RelationshipSkipped(
                        table.name,
                        relationship.column,
                        f"field '{field.name}' clashes with a column",
                    ),
                )
                continue
            fields[field.name] = field
            if query is not None:
                queries[query.name] = query
            continue

        if query is not None:
            query_name = _unique(query.name, query.name, {*reserved_queries, *queries})
            if query_name != query.name:
                query = query._replace(name=query_name)
                binding = field.binding
                if binding is not None:
                    binding = binding._replace(query=query_name)
                field = field._replace(binding=binding)
            queries[query_name] = query

        name = _unique(field.name, relationship.fallback, {*columns, *fields})
        if name != field.name:
            logger.debug(
                "Renamed relationship field %s to %s on %s",
                field.name,
                name,
                table.name,
            )
        fields[name] = field._replace(name=name)

    return Relationships(tuple(fields.values()), tuple(queries.values()))


def resolve_relationships(
    descriptors: Mapping[TableName, TableDescriptor],
    generation_set: Iterable[TableName],
    *,
    policy: CollisionPolicy = CollisionPolicy.DISAMBIGUATE,
    sink: EventSink = log_event,
) -> dict[TableName, Relationships]:
    """Derive forward and reverse relationships for every described table.

    Only edges between tables that both have descriptors become fields. Edges to
    tables outside ``generation_set`` are dropped silently, they are reported as
    missing references by the caller.
    """
    members = set(generation_set)
    forward: dict[TableName, list[Relationship]] = defaultdict(list)
    reverse: dict[TableName, list[Relationship]] = defaultdict(list)

    for child in descriptors.values():
        for fk in child.foreign_keys:
            parent = descriptors.get(fk.referenced)
            if parent is None:
                if fk.referenced in members:
                    sink(
                        RelationshipSkipped(
                            child.name,
                            fk.column_name,
                            f"{fk.referenced} was not generated",
                        ),
                    )
                continue

            if parent.column(fk.referenced_column) is None:
                sink(
                    RelationshipSkipped(
                        child.name,
                        fk.column_name,
                        f"{fk.referenced} has no column {fk.referenced_column}",
                    ),
                )
                continue
            reverse[parent.name].append(reverse_relationship(child, parent, fk))

            key = parent.primary_key
            if key is None or key.name.casefold() != fk.referenced_column.casefold():
                sink(
                    RelationshipSkipped(
                        child.name,
                        fk.column_name,
                        f"{fk.referenced}.{fk.referenced_column} "
                        "is not its primary key",
                    ),
                )
                continue
            forward[child.name].append(forward_relationship(fk))

    return {
        table.name: place_relationships(
            table,
            [*forward[table.name], *reverse[table.name]],
            reserved_queries=(
                list_query_name(table.name.name),
                single_query_name(table.name.name),
            ),
            policy=policy,
            sink=sink,
        )
        for table in descriptors.values()
    }
