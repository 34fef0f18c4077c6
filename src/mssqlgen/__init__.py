"""Generate StepZen GraphQL schemas from relational database metadata."""

from mssqlgen.config import Config, load_config, validate_config
from mssqlgen.errors import (
    ConfigurationError,
    ConnectivityError,
    InvalidIdentifierError,
    InvalidPatternError,
    MetadataError,
    MssqlgenError,
)
from mssqlgen.generator import GenerationResult, generate, select_tables
from mssqlgen.metadata import (
    MetadataProvider,
    SqlAlchemyMetadataProvider,
    connection_string,
    create_engine_for_config,
)
from mssqlgen.output import write_output
from mssqlgen.relationships import CollisionPolicy
from mssqlgen.types import ColumnDescriptor, ForeignKeyEdge, TableDescriptor, TableName

__all__ = [
    "CollisionPolicy",
    "ColumnDescriptor",
    "Config",
    "ConfigurationError",
    "ConnectivityError",
    "ForeignKeyEdge",
    "GenerationResult",
    "InvalidIdentifierError",
    "InvalidPatternError",
    "MetadataError",
    "MetadataProvider",
    "MssqlgenError",
    "SqlAlchemyMetadataProvider",
    "TableDescriptor",
    "TableName",
    "connection_string",
    "create_engine_for_config",
    "generate",
    "load_config",
    "select_tables",
    "validate_config",
    "write_output",
]
