"""Database metadata access through SQLAlchemy reflection."""

from __future__ import annotations

from contextlib import contextmanager
from functools import cached_property
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import URL, Engine, Inspector, create_engine, event, inspect, text
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError

from mssqlgen.errors import ConnectivityError, MetadataError
from mssqlgen.type_conversion import sql_type_name
from mssqlgen.types import ColumnDescriptor, ForeignKeyEdge, TableDescriptor, TableName

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator
    from typing import Any

    from sqlalchemy.engine.interfaces import (
        ReflectedColumn,
        ReflectedForeignKeyConstraint,
    )

    from mssqlgen.config import DatabaseConfig

logger = getLogger(__name__)

SYSTEM_SCHEMAS = frozenset(
    {
        "sys",
        "information_schema",
        "guest",
        "db_owner",
        "db_accessadmin",
        "db_securityadmin",
        "db_ddladmin",
        "db_backupoperator",
        "db_datareader",
        "db_datawriter",
        "db_denydatareader",
        "db_denydatawriter",
        "pg_catalog",
        "pg_toast",
    },
)


class MetadataProvider(Protocol):
    """Source of table metadata used by the generator."""

    def get_schemas(self) -> list[str]:
        """Return all non-system schema names."""
        ...

    def get_tables(self, schemas: Iterable[str] | None = None) -> list[TableName]:
        """Return all base tables, optionally limited to the given schemas."""
        ...

    def describe_table(self, table: TableName) -> TableDescriptor:
        """Return columns, primary keys and foreign keys of a table."""
        ...


def database_url(config: DatabaseConfig) -> URL:
    """Build the SQLAlchemy URL for a SQL Server database."""
    options = config.options
    return URL.create(
        "mssql+pyodbc",
        username=config.user,
        password=config.password,
        host=config.server,
        port=config.port,
        database=config.database,
        query={
            "driver": options.driver,
            "Encrypt": "yes" if options.encrypt else "no",
            "TrustServerCertificate": (
                "yes" if options.trust_server_certificate else "no"
            ),
        },
    )


def query_timeout(milliseconds: int) -> Callable[[Any, Any], None]:
    """Connect listener applying a query timeout to every new DBAPI connection.

    pyodbc reads the ``timeout`` attribute of a connection as the number of
    seconds a statement may run, zero meaning no limit.
    """
    seconds = milliseconds // 1000

    def set_timeout(dbapi_connection: Any, _connection_record: Any) -> None:
        dbapi_connection.timeout = seconds

    return set_timeout


def create_engine_for_config(config: DatabaseConfig) -> Engine:
    """Create a SQLAlchemy engine for the configured SQL Server database.

    ``connectionTimeout`` limits login, ``requestTimeout`` limits each query.

    Raises:
        ImportError: If the pyodbc driver is not installed

    """
    options = config.options
    engine = create_engine(
        database_url(config),
        pool_pre_ping=True,
        connect_args={"timeout": options.connection_timeout // 1000},
    )
    event.listen(engine, "connect", query_timeout(options.request_timeout))
    return engine


def connection_string(config: DatabaseConfig) -> str:
    """DSN written to the StepZen configuration."""
    return (
        f"mssql://{config.user}:{config.password}"
        f"@{config.server}:{config.port}/{config.database}"
    )


@contextmanager
def translate_errors(context: str) -> Iterator[None]:
    """Map SQLAlchemy errors onto the generator error taxonomy."""
    try:
        yield
    except (OperationalError, InterfaceError) as err:
        msg = f"Database connection failed while {context}: {err}"
        raise ConnectivityError(msg) from err
    except SQLAlchemyError as err:
        msg = f"Failed while {context}: {err}"
        raise MetadataError(msg) from err


def _build_column(col_info: ReflectedColumn) -> ColumnDescriptor:
    """Build a column descriptor from SQLAlchemy column info."""
    sql_type = col_info["type"]
    default = col_info.get("default")
    return ColumnDescriptor(
        name=col_info["name"],
        data_type=sql_type_name(sql_type),
        nullable=bool(col_info["nullable"]),
        max_length=getattr(sql_type, "length", None),
        precision=getattr(sql_type, "precision", None),
        scale=getattr(sql_type, "scale", None),
        default=str(default) if default is not None else None,
        is_identity=bool(col_info.get("identity")),
    )


def _build_foreign_keys(
    fk: ReflectedForeignKeyConstraint,
    table: TableName,
) -> Iterator[ForeignKeyEdge]:
    """Split a (possibly composite) foreign key into one edge per column."""
    for source_col, target_col in zip(
        fk["constrained_columns"],
        fk["referred_columns"],
        strict=True,
    ):
        yield ForeignKeyEdge(
            constraint_name=fk.get("name"),
            column_name=source_col,
            referenced_schema=fk["referred_schema"] or table.schema,
            referenced_table=fk["referred_table"],
            referenced_column=target_col,
        )


class SqlAlchemyMetadataProvider:
    """Reads metadata from any database SQLAlchemy can inspect."""

    def __init__(self, engine: Engine) -> None:
        """Initialize provider with an engine, no connection is made yet."""
        self._engine = engine

    @cached_property
    def inspector(self) -> Inspector:
        """Inspector bound to the engine, connecting on first use."""
        with translate_errors("connecting"):
            return inspect(self._engine)

    def test_connection(self) -> bool:
        """Run a trivial query against the database."""
        with translate_errors("testing the connection"), self._engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def get_schemas(self) -> list[str]:
        """Return all non-system schema names, sorted."""
        with translate_errors("listing schemas"):
            names = self.inspector.get_schema_names()
        return sorted(name for name in names if name.lower() not in SYSTEM_SCHEMAS)

    def get_tables(self, schemas: Iterable[str] | None = None) -> list[TableName]:
        """Return base tables ordered by schema and name."""
        selected = list(schemas) if schemas else self.get_schemas()
        tables: list[TableName] = []
        for schema in sorted(selected):
            with translate_errors(f"listing tables of {schema}"):
                names = self.inspector.get_table_names(schema=schema)
            tables.extend(TableName(schema, name) for name in sorted(names))
        logger.debug("Found %d tables in %d schemas", len(tables), len(selected))
        return tables

    def describe_table(self, table: TableName) -> TableDescriptor:
        """Build a table descriptor from database introspection."""
        with translate_errors(f"reading metadata of {table}"):
            columns_info = self.inspector.get_columns(table.name, schema=table.schema)
            pk_constraint = self.inspector.get_pk_constraint(
                table.name,
                schema=table.schema,
            )
            foreign_keys = self.inspector.get_foreign_keys(
                table.name,
                schema=table.schema,
            )

        return TableDescriptor.from_metadata(
            table,
            columns=[_build_column(col_info) for col_info in columns_info],
            primary_keys=pk_constraint["constrained_columns"],
            foreign_keys=[
                edge for fk in foreign_keys for edge in _build_foreign_keys(fk, table)
            ],
        )
