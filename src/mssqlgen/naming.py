"""Identifier conversion from database names to GraphQL names."""

from mssqlgen.errors import InvalidIdentifierError

VOWELS = frozenset("aeiou")
# Checked in order, at most one is removed
ID_SUFFIXES = ("_id", "_ID", "Id", "ID")


def _segment(word: str) -> str:
    """Capitalize one underscore-delimited segment.

    Single-case segments are normalized, mixed-case segments keep their inner
    capitals so that names already written in camel or Pascal case survive.
    """
    if word.islower() or word.isupper():
        word = word.lower()
    return word[:1].upper() + word[1:]


def _segments(identifier: str) -> list[str]:
    if not identifier:
        msg = "Cannot convert an empty identifier"
        raise InvalidIdentifierError(msg)
    return [_segment(word) for word in identifier.split("_")]


def lower_first(name: str) -> str:
    """Lower-case the first character."""
    return name[:1].lower() + name[1:]


def to_pascal(identifier: str) -> str:
    """Convert name to PascalCase, e.g. ``order_line`` -> ``OrderLine``.

    Each underscore-delimited segment is capitalized. A segment written in a
    single case is lower-cased first (``ORDER_LINE`` -> ``OrderLine``), while a
    mixed-case segment keeps its inner capitals (``LastEditedBy`` stays
    ``LastEditedBy`` rather than becoming ``Lasteditedby``).
    """
    return "".join(_segments(identifier))


def to_camel(identifier: str) -> str:
    """Convert name to camelCase, e.g. ``Order_Line`` -> ``orderLine``."""
    return lower_first(to_pascal(identifier))


def pluralize(name: str) -> str:
    """Pluralize with suffix rules only, irregular nouns are not handled."""
    if name.endswith(("s", "x", "ch", "sh")):
        return f"{name}es"
    if name.endswith("y") and len(name) > 1 and name[-2].lower() not in VOWELS:
        return f"{name[:-1]}ies"
    return f"{name}s"


def singularize(name: str) -> str:
    """Undo :func:`pluralize` for regular nouns.

    Not a true inverse: ``status`` becomes ``statu`` and ``boxes`` becomes
    ``box`` while ``horses`` becomes ``hors``.
    """
    if name.endswith("ies"):
        return f"{name[:-3]}y"
    if name.endswith("es"):
        return name[:-2]
    if name.endswith("s") and not name.endswith("ss"):
        return name[:-1]
    return name


def strip_id_suffix(column_name: str) -> str:
    """Remove a trailing identifier suffix from a foreign key column name."""
    for suffix in ID_SUFFIXES:
        if column_name.endswith(suffix) and column_name != suffix:
            return column_name.removesuffix(suffix)
    return column_name


def type_name(table_name: str) -> str:
    """GraphQL type name for a table."""
    return to_pascal(table_name)


def single_query_name(table_name: str) -> str:
    """Query name for fetching one record, e.g. ``Order`` -> ``order``."""
    return lower_first(to_pascal(table_name))


def list_query_name(table_name: str) -> str:
    """Query name for fetching all records, e.g. ``Order`` -> ``orders``."""
    return pluralize(single_query_name(table_name))
