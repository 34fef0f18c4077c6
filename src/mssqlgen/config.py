"""Configuration loading and validation."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from logging import getLogger
from pathlib import Path
from typing import Any

import yaml

from mssqlgen.errors import ConfigurationError
from mssqlgen.relationships import CollisionPolicy
from mssqlgen.table_filter import TablePattern

logger = getLogger(__name__)

DEFAULT_CONFIG_FILES = (
    "mssqlgen.config.yaml",
    "mssqlgen.config.yml",
    ".mssqlgenrc.yaml",
    ".mssqlgenrc.yml",
)
DEFAULT_PORT = 1433
DEFAULT_OUTPUT_DIR = "./stepzen"
DEFAULT_FILTER_OPERATORS = ("eq", "ne", "lt", "gt", "le", "ge")

ENV_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


@dataclass
class ConnectionOptions:
    """Driver options for the database connection."""

    encrypt: bool = True
    trust_server_certificate: bool = False
    connection_timeout: int = 30000  # milliseconds
    request_timeout: int = 30000  # milliseconds
    driver: str = "ODBC Driver 18 for SQL Server"


@dataclass
class DatabaseConfig:
    """Connection settings for the source database."""

    server: str = "localhost"
    database: str = ""
    user: str = ""
    password: str = ""
    port: int = DEFAULT_PORT
    options: ConnectionOptions = field(default_factory=ConnectionOptions)


@dataclass
class FilteringConfig:
    """Generation of filter input types."""

    enabled: bool = False
    tables: list[str] = field(default_factory=list)
    operators: list[str] = field(default_factory=lambda: list(DEFAULT_FILTER_OPERATORS))
    enable_logical_ops: bool = True
    use_shorthands: bool = True


@dataclass
class FeaturesConfig:
    """Optional generation features."""

    generate_relationships: bool = False
    auto_include_foreign_key_tables: bool = False
    relationship_collisions: CollisionPolicy = CollisionPolicy.DISAMBIGUATE
    filtering: FilteringConfig = field(default_factory=FilteringConfig)


@dataclass
class GenerationConfig:
    """What to generate and where to write it."""

    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    tables: list[str] = field(default_factory=list)
    features: FeaturesConfig = field(default_factory=FeaturesConfig)


@dataclass
class Config:
    """Complete generator configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)


def substitute_env(
    value: Any,  # noqa: ANN401
    environ: dict[str, str] | None = None,
) -> Any:  # noqa: ANN401
    """Replace ``${VAR}`` placeholders in all strings of a parsed document.

    Unknown variables are left untouched.
    """
    env = os.environ if environ is None else environ
    if isinstance(value, str):
        return ENV_PLACEHOLDER.sub(lambda m: env.get(m[1], m[0]), value)
    if isinstance(value, dict):
        return {key: substitute_env(item, env) for key, item in value.items()}
    if isinstance(value, list):
        return [substitute_env(item, env) for item in value]
    return value


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        msg = f"Configuration section '{key}' must be a mapping"
        raise ConfigurationError(msg)
    return section


def _collision_policy(value: str) -> CollisionPolicy:
    try:
        return CollisionPolicy(value)
    except ValueError as err:
        choices = ", ".join(policy.value for policy in CollisionPolicy)
        msg = f"Unknown relationship collision policy '{value}' (expected {choices})"
        raise ConfigurationError(msg) from err


def config_from_dict(data: dict[str, Any]) -> Config:
    """Build a configuration from a parsed document using the file's key names."""
    database = _section(data, "database")
    options = _section(database, "options")
    generation = _section(data, "generation")
    features = _section(generation, "features")
    filtering = _section(features, "filtering")

    try:
        return Config(
            database=DatabaseConfig(
                server=str(database.get("server") or ""),
                database=str(database.get("database") or ""),
                user=str(database.get("user") or ""),
                password=str(database.get("password") or ""),
                port=int(database.get("port") or DEFAULT_PORT),
                options=ConnectionOptions(
                    encrypt=bool(options.get("encrypt", True)),
                    trust_server_certificate=bool(
                        options.get("trustServerCertificate", False),
                    ),
                    connection_timeout=int(options.get("connectionTimeout", 30000)),
                    request_timeout=int(options.get("requestTimeout", 30000)),
                    driver=str(options.get("driver", ConnectionOptions.driver)),
                ),
            ),
            generation=GenerationConfig(
                output_dir=Path(generation.get("outputDir") or DEFAULT_OUTPUT_DIR),
                tables=[str(t) for t in generation.get("tables") or []],
                features=FeaturesConfig(
                    generate_relationships=bool(
                        features.get("generateRelationships", False),
                    ),
                    auto_include_foreign_key_tables=bool(
                        features.get("autoIncludeForeignKeyTables", False),
                    ),
                    relationship_collisions=_collision_policy(
                        str(features.get("relationshipCollisions", "disambiguate")),
                    ),
                    filtering=FilteringConfig(
                        enabled=bool(filtering.get("enabled", False)),
                        tables=[str(t) for t in filtering.get("tables") or []],
                        operators=[
                            str(op)
                            for op in filtering.get("operators")
                            or DEFAULT_FILTER_OPERATORS
                        ],
                        enable_logical_ops=bool(
                            filtering.get("enableLogicalOps", True),
                        ),
                        use_shorthands=bool(filtering.get("useShorthands", True)),
                    ),
                ),
            ),
        )
    except (TypeError, ValueError) as err:
        msg = f"Invalid configuration value: {err}"
        raise ConfigurationError(msg) from err


def load_config_file(path: Path) -> Config:
    """Load configuration from a YAML file, substituting environment variables."""
    if not path.exists():
        msg = f"Configuration file not found: {path}"
        raise ConfigurationError(msg)
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as err:
        msg = f"Invalid YAML in {path}: {err}"
        raise ConfigurationError(msg) from err
    if not isinstance(data, dict):
        msg = f"Configuration file must contain a mapping: {path}"
        raise ConfigurationError(msg)
    return config_from_dict(substitute_env(data))


def _env_flag(environ: dict[str, str], name: str) -> bool:
    return environ.get(name, "").lower() == "true"


def load_config_from_env(environ: dict[str, str] | None = None) -> Config:
    """Load configuration from environment variables."""
    env = dict(os.environ) if environ is None else environ
    try:
        port = int(env.get("DB_PORT") or DEFAULT_PORT)
    except ValueError as err:
        msg = f"DB_PORT must be a number, got {env['DB_PORT']!r}"
        raise ConfigurationError(msg) from err
    return Config(
        database=DatabaseConfig(
            server=env.get("DB_SERVER", "localhost"),
            database=env.get("DB_DATABASE", ""),
            user=env.get("DB_USER", ""),
            password=env.get("DB_PASSWORD", ""),
            port=port,
            options=ConnectionOptions(
                encrypt=_env_flag(env, "DB_ENCRYPT"),
                trust_server_certificate=_env_flag(env, "DB_TRUST_SERVER_CERTIFICATE"),
            ),
        ),
        generation=GenerationConfig(
            output_dir=Path(env.get("OUTPUT_DIR", DEFAULT_OUTPUT_DIR)),
            features=FeaturesConfig(
                generate_relationships=_env_flag(env, "GENERATE_RELATIONSHIPS"),
                auto_include_foreign_key_tables=_env_flag(
                    env,
                    "AUTO_INCLUDE_FK_TABLES",
                ),
            ),
        ),
    )


def load_config(path: Path | None = None, cwd: Path | None = None) -> Config:
    """Load configuration from a file if one is given or found, else from the env."""
    if path is not None:
        return load_config_file(path)

    base = cwd or Path.cwd()
    for name in DEFAULT_CONFIG_FILES:
        candidate = base / name
        if candidate.exists():
            logger.info("Using configuration file: %s", candidate)
            return load_config_file(candidate)

    logger.info("Using configuration from environment variables")
    return load_config_from_env()


def validate_config(config: Config) -> None:
    """Check required connection settings and table patterns before connecting."""
    database = config.database
    for name, value in (
        ("server", database.server),
        ("name", database.database),
        ("user", database.user),
        ("password", database.password),
    ):
        if not value:
            msg = f"Database {name} is required"
            raise ConfigurationError(msg)

    # Raises InvalidPatternError for unqualified patterns
    generation = config.generation
    for pattern in (*generation.tables, *generation.features.filtering.tables):
        TablePattern.parse(pattern)


SAMPLE_CONFIG = """\
# MSSQL to StepZen Schema Generator Configuration

database:
  server: localhost
  database: mydb
  user: sa
  password: ${DB_PASSWORD}  # Use environment variable
  port: 1433
  options:
    encrypt: true
    trustServerCertificate: true

generation:
  outputDir: ./stepzen

  # Schema-qualified names (schema.table) with * and ? wildcards.
  # If empty or omitted, all tables from all non-system schemas are included.
  tables:
    # - "Sales.*"              # All tables from Sales schema
    # - "Sales.Customer"       # Specific table from specific schema
    # - "*.Orders"             # Orders table from any schema
    # - "Production.Product*"  # Product* tables from Production schema

  features:
    generateRelationships: true
    autoIncludeForeignKeyTables: false
    # disambiguate: rename clashing relationship fields
    # overwrite: a later relationship field replaces an earlier one
    relationshipCollisions: disambiguate

    filtering:
      enabled: false
      tables: []  # Empty means all tables (e.g., ["Sales.*", "Warehouse.*"])
      operators: ["eq", "ne", "lt", "gt", "le", "ge", "like", "ilike"]
      enableLogicalOps: true
      useShorthands: true
"""
