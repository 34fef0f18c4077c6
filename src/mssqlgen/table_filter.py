"""Table selection by wildcard patterns and foreign key closure."""

from __future__ import annotations

import re
from collections import deque
from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING, NamedTuple

from mssqlgen.errors import InvalidPatternError, MetadataError
from mssqlgen.events import MissingReference, TableAutoIncluded, log_event

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from mssqlgen.events import EventSink
    from mssqlgen.types import GenerationSet, TableDescriptor, TableName

logger = getLogger(__name__)

type Describe = Callable[[TableName], TableDescriptor]

WILDCARDS = {"*": ".*", "?": "."}


def _compile_segment(segment: str) -> re.Pattern[str]:
    """Translate a glob segment (``*`` and ``?``) into an anchored regex."""
    parts = (WILDCARDS.get(char) or re.escape(char) for char in segment)
    return re.compile(f"^{''.join(parts)}$", re.IGNORECASE)


class TablePattern(NamedTuple):
    """``schema.table`` pattern with wildcards applied per segment."""

    text: str
    schema: re.Pattern[str]
    table: re.Pattern[str]

    @classmethod
    def parse(cls, text: str) -> TablePattern:
        """Compile a pattern, bare table names are rejected."""
        schema, dot, table = text.strip().partition(".")
        if not dot or not schema or not table:
            msg = (
                f"Invalid table pattern '{text}': "
                "use a schema-qualified pattern such as 'dbo.*' or '*.Customer'"
            )
            raise InvalidPatternError(msg)
        return cls(text, _compile_segment(schema), _compile_segment(table))

    def matches(self, table: TableName) -> bool:
        """Check the table against both segments, ignoring case."""
        return bool(self.schema.match(table.schema) and self.table.match(table.name))


def matches_any(table: TableName, patterns: Iterable[TablePattern]) -> bool:
    """A table is selected when any pattern matches it."""
    return any(pattern.matches(table) for pattern in patterns)


def filter_tables(
    catalog: Iterable[TableName],
    patterns: Iterable[str],
) -> GenerationSet:
    """Select catalog tables matching any pattern, all tables if there are none."""
    compiled = [TablePattern.parse(pattern) for pattern in patterns]
    if not compiled:
        return tuple(catalog)
    return tuple(table for table in catalog if matches_any(table, compiled))


class Closure(NamedTuple):
    """Result of following foreign keys from an initial selection."""

    tables: GenerationSet
    added: tuple[TableName, ...]
    descriptors: Mapping[TableName, TableDescriptor]
    failures: Mapping[TableName, str]


def include_referenced_tables(
    selected: Iterable[TableName],
    catalog: Iterable[TableName],
    describe: Describe,
    sink: EventSink = log_event,
) -> Closure:
    """Add every table reachable through foreign keys, breadth first.

    Each table is described at most once, cycles terminate through the visited
    set and references to tables missing from the catalog are skipped.
    """
    known = {table: table for table in catalog}
    tables = list(dict.fromkeys(selected))
    members = set(tables)
    added: list[TableName] = []
    descriptors: dict[TableName, TableDescriptor] = {}
    failures: dict[TableName, str] = {}
    visited: set[TableName] = set()
    queue = deque(tables)

    while queue:
        table = queue.popleft()
        if table in visited:
            continue
        visited.add(table)

        try:
            descriptor = describe(table)
        except (MetadataError, KeyError, ValueError) as err:
            logger.warning("Could not read foreign keys of %s: %s", table, err)
            failures[table] = str(err)
            continue
        descriptors[table] = descriptor

        for fk in descriptor.foreign_keys:
            if fk.referenced in members:
                continue
            referenced = known.get(fk.referenced)
            if referenced is None:
                logger.debug("Skipping %s, it is not in the catalog", fk.referenced)
                continue
            members.add(referenced)
            tables.append(referenced)
            added.append(referenced)
            queue.append(referenced)
            sink(TableAutoIncluded(referenced, table))

    return Closure(tuple(tables), tuple(added), descriptors, failures)


def find_missing_references(
    descriptors: Iterable[TableDescriptor],
    generation_set: Iterable[TableName],
) -> list[MissingReference]:
    """Foreign keys whose target is outside the generation set."""
    members = set(generation_set)
    return [
        MissingReference(descriptor.name, fk.referenced, fk.column_name)
        for descriptor in descriptors
        for fk in descriptor.foreign_keys
        if fk.referenced not in members
    ]
