"""Structured progress events emitted while generating schemas."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import NamedTuple

from mssqlgen.types import TableName

logger = getLogger(__name__)


class TableStarted(NamedTuple):
    """Processing of a table began."""

    table: TableName


class TableSucceeded(NamedTuple):
    """A table document was generated."""

    table: TableName


class TableFailed(NamedTuple):
    """A table was skipped because its processing failed."""

    table: TableName
    reason: str


class TableAutoIncluded(NamedTuple):
    """A table was added to the generation set through a foreign key."""

    table: TableName
    referenced_by: TableName


class MissingReference(NamedTuple):
    """A foreign key points at a table outside the generation set."""

    table: TableName
    referenced: TableName
    column: str

    @property
    def message(self) -> str:
        """Human readable warning with a remediation hint."""
        return (
            f"{self.table} references {self.referenced} via {self.column}, "
            f"but {self.referenced} is not in the generation set. "
            f'Add "{self.referenced}" to the tables list '
            "or enable autoIncludeForeignKeyTables."
        )


class RelationshipSkipped(NamedTuple):
    """A foreign key could not be turned into a relationship field."""

    table: TableName
    column: str
    reason: str


type Event = (
    TableStarted
    | TableSucceeded
    | TableFailed
    | TableAutoIncluded
    | MissingReference
    | RelationshipSkipped
)

type EventSink = Callable[[Event], None]


def log_event(event: Event) -> None:
    """Default sink writing events to the module logger."""
    match event:
        case TableStarted(table):
            logger.debug("Processing table %s", table)
        case TableSucceeded(table):
            logger.info("Processed %s", table)
        case TableFailed(table, reason):
            logger.error("Failed to process %s: %s", table, reason)
        case TableAutoIncluded(table, referenced_by):
            logger.info("Auto-added %s (referenced by %s)", table, referenced_by)
        case MissingReference():
            logger.warning(event.message)
        case RelationshipSkipped(table, column, reason):
            logger.warning("Skipped relationship %s.%s: %s", table, column, reason)
