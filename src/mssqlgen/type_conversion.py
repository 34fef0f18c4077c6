"""Module for mapping database column types onto GraphQL scalars."""

from typing import Any

from sqlalchemy.types import NullType, TypeEngine

# Exotic or vendor-specific types fall back to text instead of failing
UNMAPPED_TYPE_SCALAR = "String"

TYPE_MAP: dict[str, str] = {
    # Integer types
    "int": "Int",
    "integer": "Int",
    "bigint": "Int",  # Could be a BigInt custom scalar
    "smallint": "Int",
    "tinyint": "Int",
    # Decimal/Numeric types
    "decimal": "Float",
    "numeric": "Float",
    "money": "Float",
    "smallmoney": "Float",
    "float": "Float",
    "real": "Float",
    "double": "Float",
    "double precision": "Float",
    "double_precision": "Float",
    # String types
    "varchar": "String",
    "nvarchar": "String",
    "char": "String",
    "nchar": "String",
    "text": "String",
    "ntext": "String",
    "string": "String",
    "unicode": "String",
    "clob": "String",
    # Boolean
    "bit": "Boolean",
    "boolean": "Boolean",
    # Date/Time types
    "date": "String",
    "datetime": "String",
    "datetime2": "String",
    "smalldatetime": "String",
    "time": "String",
    "datetimeoffset": "String",
    # Binary types
    "binary": "String",
    "varbinary": "String",
    "image": "String",
    "blob": "String",
    # Unique identifier
    "uniqueidentifier": "ID",
    "uuid": "ID",
    # XML and JSON
    "xml": "String",
    "json": "JSON",  # Custom scalar
    "jsonb": "JSON",
    # Other types
    "sql_variant": "String",
    "timestamp": "String",
    "rowversion": "String",
}


def map_type(source_type: str) -> str:
    """Map a source column type name to a GraphQL scalar.

    Lookup is case-insensitive and never fails: unknown types such as
    ``geography`` map to :data:`UNMAPPED_TYPE_SCALAR`.
    """
    return TYPE_MAP.get(source_type.strip().lower(), UNMAPPED_TYPE_SCALAR)


def format_nullable(type_name: str, *, nullable: bool) -> str:
    """Append the non-null marker unless the type is nullable."""
    return type_name if nullable else f"{type_name}!"


def format_type(type_name: str, *, nullable: bool = True, is_list: bool = False) -> str:
    """Render a field or argument type, e.g. ``[Order]`` or ``Int!``."""
    rendered = f"[{type_name}]" if is_list else type_name
    return format_nullable(rendered, nullable=nullable)


def sql_type_name(sql_type: TypeEngine[Any]) -> str:
    """Return the source type name of a reflected SQLAlchemy type.

    Examples:
        NVARCHAR(length=50) -> nvarchar
        DATETIME2() -> datetime2
        INTEGER() -> integer

    """
    match sql_type:
        case NullType():
            return "unknown"
        case _:
            return sql_type.__visit_name__.lower()
