"""Exception hierarchy for schema generation."""


class MssqlgenError(Exception):
    """Base class for all generator errors."""


class ConfigurationError(MssqlgenError):
    """Configuration is missing required values or cannot be parsed."""


class InvalidPatternError(ConfigurationError):
    """A table pattern is not of the form ``schema.table``."""


class ConnectivityError(MssqlgenError):
    """The database is unreachable or rejected the credentials."""


class MetadataError(MssqlgenError):
    """Metadata for a single table could not be read."""


class InvalidIdentifierError(ValueError):
    """An identifier cannot be transformed (e.g. it is empty)."""
