"""Schema generation run: table selection, per-table processing and rendering."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, NamedTuple

from mssqlgen.emitter import build_table_document, check_identifiers
from mssqlgen.errors import MetadataError
from mssqlgen.events import (
    TableFailed,
    TableStarted,
    TableSucceeded,
    log_event,
)
from mssqlgen.filters import filtering_enabled_for, shared_filters, table_filter_input
from mssqlgen.relationships import POLICY_NOTES, resolve_relationships
from mssqlgen.sdl_export import (
    FILTERS_FILE,
    filters_to_sdl,
    index_to_sdl,
    render_document,
)
from mssqlgen.table_filter import (
    filter_tables,
    find_missing_references,
    include_referenced_tables,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from mssqlgen.config import GenerationConfig
    from mssqlgen.events import EventSink, MissingReference
    from mssqlgen.metadata import MetadataProvider
    from mssqlgen.types import (
        GenerationSet,
        RenderedDocument,
        TableDescriptor,
        TableName,
    )

logger = getLogger(__name__)

# Malformed metadata surfaces as one of these while processing a single table
TABLE_ERRORS = (MetadataError, KeyError, ValueError)


class Selection(NamedTuple):
    """Tables chosen for generation plus metadata already fetched for them."""

    tables: GenerationSet
    descriptors: Mapping[TableName, TableDescriptor]
    failures: Mapping[TableName, str]


class GenerationResult(NamedTuple):
    """Everything produced by a generation run, ready to be written."""

    generation_set: GenerationSet
    documents: tuple[RenderedDocument, ...]
    failed: tuple[TableName, ...]
    warnings: tuple[MissingReference, ...]
    filters: str | None = None

    @property
    def file_names(self) -> tuple[str, ...]:
        """Base names of all generated type documents, in processing order."""
        names = tuple(document.file_name for document in self.documents)
        return (*names, FILTERS_FILE) if self.filters is not None else names

    @property
    def index(self) -> str:
        """Index document listing every generated file."""
        return index_to_sdl(self.file_names)


def select_tables(
    provider: MetadataProvider,
    generation: GenerationConfig,
    sink: EventSink = log_event,
) -> Selection:
    """Filter the catalog and, when enabled, follow foreign keys to a fixed point."""
    catalog = provider.get_tables()
    selected = filter_tables(catalog, generation.tables)
    logger.debug("Selected %d of %d tables", len(selected), len(catalog))

    features = generation.features
    if not (
        features.generate_relationships and features.auto_include_foreign_key_tables
    ):
        return Selection(selected, {}, {})

    closure = include_referenced_tables(
        selected,
        catalog,
        provider.describe_table,
        sink,
    )
    return Selection(closure.tables, closure.descriptors, closure.failures)


def describe_tables(
    provider: MetadataProvider,
    selection: Selection,
    sink: EventSink = log_event,
) -> tuple[dict[TableName, TableDescriptor], list[TableName]]:
    """Fetch metadata for every selected table, one table at a time.

    Tables already described during selection are not fetched again and tables
    that failed there are not retried. A table whose names cannot be converted
    fails here, so relationships are only derived between tables that will be
    written.
    """
    descriptors: dict[TableName, TableDescriptor] = {}
    failed: list[TableName] = []
    for table in selection.tables:
        sink(TableStarted(table))
        if table in selection.failures:
            failed.append(table)
            sink(TableFailed(table, selection.failures[table]))
            continue
        cached = selection.descriptors.get(table)
        try:
            descriptor = cached or provider.describe_table(table)
            check_identifiers(descriptor)
        except TABLE_ERRORS as err:
            failed.append(table)
            sink(TableFailed(table, str(err)))
        else:
            descriptors[table] = descriptor
    return descriptors, failed


def generate(
    provider: MetadataProvider,
    generation: GenerationConfig,
    sink: EventSink = log_event,
) -> GenerationResult:
    """Generate one SDL document per selected table.

    Connectivity errors propagate, a failure confined to one table is reported
    through ``sink`` and the table is left out of the result.
    """
    features = generation.features
    filtering = features.filtering

    selection = select_tables(provider, generation, sink)
    descriptors, failed = describe_tables(provider, selection, sink)

    warnings: list[MissingReference] = []
    if features.generate_relationships and not features.auto_include_foreign_key_tables:
        warnings = find_missing_references(descriptors.values(), selection.tables)
        for warning in warnings:
            sink(warning)

    relationships = (
        resolve_relationships(
            descriptors,
            selection.tables,
            policy=features.relationship_collisions,
            sink=sink,
        )
        if features.generate_relationships
        else {}
    )

    documents: list[RenderedDocument] = []
    for table, descriptor in descriptors.items():
        notes = [f"Generated by mssqlgen from {table}"]
        if features.generate_relationships:
            notes.append(
                "Relationship field collisions: "
                f"{POLICY_NOTES[features.relationship_collisions]}",
            )
        try:
            filter_input = (
                table_filter_input(
                    descriptor,
                    use_shorthands=filtering.use_shorthands,
                    logical_operators=filtering.enable_logical_ops,
                )
                if filtering.enabled and filtering_enabled_for(table, filtering.tables)
                else None
            )
            document = build_table_document(
                descriptor,
                relationships.get(table),
                filter_input,
                notes,
            )
            documents.append(render_document(document))
        except TABLE_ERRORS as err:
            failed.append(table)
            sink(TableFailed(table, str(err)))
            continue
        sink(TableSucceeded(table))

    return GenerationResult(
        generation_set=selection.tables,
        documents=tuple(documents),
        failed=tuple(failed),
        warnings=tuple(warnings),
        filters=(
            filters_to_sdl(shared_filters(filtering.operators))
            if filtering.enabled
            else None
        ),
    )
