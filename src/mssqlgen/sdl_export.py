"""Rendering of schema documents to StepZen SDL and configuration text."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import yaml
from jinja2 import Environment, FileSystemLoader, select_autoescape

from mssqlgen.type_conversion import format_type
from mssqlgen.types import RenderedDocument

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mssqlgen.filters import SharedFilter
    from mssqlgen.types import (
        ArgumentBinding,
        Fetch,
        TableDocument,
        TargetField,
        TargetQuery,
    )

TEMPLATE_DIR = Path(__file__).parent / "templates"
TYPES_DIR = "types"
FILTERS_FILE = "filters"
DBQUERY_TYPE = "mssql"
CONFIGURATION_NAME = "mssql_config"


def field_type(field: TargetField) -> str:
    """Type of a field including list and non-null markers."""
    return format_type(field.type_name, nullable=field.nullable, is_list=field.is_list)


def query_signature(query: TargetQuery) -> str:
    """Argument list of a query, empty when it takes no arguments."""
    if not query.arguments:
        return ""
    arguments = ", ".join(
        f"{arg.name}: {format_type(arg.type_name, nullable=not arg.required)}"
        for arg in query.arguments
    )
    return f"({arguments})"


def return_type(query: TargetQuery) -> str:
    """Return type of a query."""
    return format_type(query.return_type, is_list=query.returns_list)


def argument_bindings(arguments: Iterable[ArgumentBinding]) -> str:
    """Argument mapping of a ``@materializer`` directive."""
    return ", ".join(
        f'{{name: "{arg.name}", field: "{arg.field}"}}' for arg in arguments
    )


def quote_identifier(name: str) -> str:
    """Bracket-quote a T-SQL identifier, e.g. ``Order`` -> ``[Order]``."""
    return "[" + name.replace("]", "]]") + "]"


def select_statement(fetch: Fetch) -> str:
    """SQL for a fetch, parameters are bound positionally with ``?``.

    Identifiers are quoted so reserved words such as ``Order`` can be used as
    table and column names.
    """
    schema, name = fetch.table.schema, fetch.table.name
    table = f"{quote_identifier(schema)}.{quote_identifier(name)}"
    if fetch.kind == "table":
        return f"SELECT * FROM {table}"
    return f"SELECT * FROM {table} WHERE {quote_identifier(fetch.column)} = ?"


def uses_table_argument(query: TargetQuery) -> bool:
    """Whole-table list queries use ``table:`` instead of a SQL ``query:``."""
    return query.returns_list and query.fetch.kind == "table"


_JINJA_ENV = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)
_JINJA_ENV.filters.update(
    field_type=field_type,
    signature=query_signature,
    return_type=return_type,
    bindings=argument_bindings,
    sql=select_statement,
)
_JINJA_ENV.tests["table_argument"] = uses_table_argument


def document_to_sdl(document: TableDocument) -> str:
    """Render one table document: filter input, type and its queries."""
    template = _JINJA_ENV.get_template("table.graphql")
    return template.render(
        document=document,
        dbquery_type=DBQUERY_TYPE,
        configuration=CONFIGURATION_NAME,
    )


def render_document(document: TableDocument) -> RenderedDocument:
    """Render a table document together with its file name."""
    return RenderedDocument(document.source.file_name, document_to_sdl(document))


def filters_to_sdl(filters: Iterable[SharedFilter]) -> str:
    """Render the shared scalar filter inputs."""
    template = _JINJA_ENV.get_template("filters.graphql")
    return template.render(filters=list(filters))


def index_to_sdl(file_names: Iterable[str]) -> str:
    """Render the index listing every generated document in order."""
    template = _JINJA_ENV.get_template("index.graphql")
    return template.render(
        paths=[f"{TYPES_DIR}/{name}.graphql" for name in file_names],
    )


def config_to_yaml(dsn: str) -> str:
    """Render the StepZen configuration holding the connection string."""
    document = {
        "configurationset": [
            {"configuration": {"name": CONFIGURATION_NAME, "dsn": dsn}},
        ],
    }
    return yaml.safe_dump(document, sort_keys=False, default_flow_style=False)
