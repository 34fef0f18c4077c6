"""Tests for pattern based table selection and foreign key closure."""

import pytest
from fakes import FakeProvider, build_table

from mssqlgen.errors import InvalidPatternError
from mssqlgen.events import Event, MissingReference, TableAutoIncluded
from mssqlgen.table_filter import (
    TablePattern,
    filter_tables,
    find_missing_references,
    include_referenced_tables,
)
from mssqlgen.types import TableName

CATALOG = [
    TableName("dbo", "Customer"),
    TableName("dbo", "Order"),
    TableName("Sales", "Customer"),
    TableName("Sales", "CustomerAddress"),
]


@pytest.fixture(name="chain")
def chain_provider() -> FakeProvider:
    """A references B, B references C."""
    return FakeProvider(
        [
            build_table(
                "dbo.A",
                [("AId", "int", False), ("BId", "int", True)],
                primary_keys=["AId"],
                foreign_keys=[("BId", "dbo.B", "BId")],
            ),
            build_table(
                "dbo.B",
                [("BId", "int", False), ("CId", "int", True)],
                primary_keys=["BId"],
                foreign_keys=[("CId", "dbo.C", "CId")],
            ),
            build_table("dbo.C", [("CId", "int", False)], primary_keys=["CId"]),
        ],
    )


def test_schema_wildcard() -> None:
    """``dbo.*`` selects every table of one schema."""
    selected = filter_tables(CATALOG, ["dbo.*"])
    assert selected == (TableName("dbo", "Customer"), TableName("dbo", "Order"))


def test_table_wildcard() -> None:
    """``*.Customer`` selects a table name across schemas."""
    selected = filter_tables(CATALOG, ["*.Customer"])
    assert selected == (TableName("dbo", "Customer"), TableName("Sales", "Customer"))


def test_patterns_ignore_case_and_support_single_character_wildcard() -> None:
    """Segments match case-insensitively, ``?`` matches one character."""
    assert filter_tables(CATALOG, ["SALES.customer*"]) == (
        TableName("Sales", "Customer"),
        TableName("Sales", "CustomerAddress"),
    )
    assert filter_tables(CATALOG, ["db?.Orde?"]) == (TableName("dbo", "Order"),)


def test_no_patterns_selects_everything() -> None:
    """An empty pattern list keeps the whole catalog in order."""
    assert filter_tables(CATALOG, []) == tuple(CATALOG)


def test_overlapping_patterns_select_once() -> None:
    """A table matched by several patterns appears once, in catalog order."""
    selected = filter_tables(CATALOG, ["*.Customer", "dbo.*"])
    assert selected == (
        TableName("dbo", "Customer"),
        TableName("dbo", "Order"),
        TableName("Sales", "Customer"),
    )


@pytest.mark.parametrize("pattern", ["Customer", "dbo.", ".Customer", ""])
def test_unqualified_pattern_is_rejected(pattern: str) -> None:
    """Patterns must name both schema and table."""
    with pytest.raises(InvalidPatternError, match="schema-qualified"):
        TablePattern.parse(pattern)


def test_regex_characters_are_literal() -> None:
    """Only ``*`` and ``?`` are wildcards."""
    pattern = TablePattern.parse("dbo.Order+")
    assert not pattern.matches(TableName("dbo", "Orderr"))
    assert pattern.matches(TableName("dbo", "Order+"))


def test_closure_follows_foreign_keys(chain: FakeProvider, events: list[Event]) -> None:
    """Selecting A with auto-include yields A, B and C."""
    closure = include_referenced_tables(
        [TableName("dbo", "A")],
        chain.get_tables(),
        chain.describe_table,
        events.append,
    )

    assert closure.tables == (
        TableName("dbo", "A"),
        TableName("dbo", "B"),
        TableName("dbo", "C"),
    )
    assert closure.added == (TableName("dbo", "B"), TableName("dbo", "C"))
    assert events == [
        TableAutoIncluded(TableName("dbo", "B"), TableName("dbo", "A")),
        TableAutoIncluded(TableName("dbo", "C"), TableName("dbo", "B")),
    ]
    # Each table is described once and the descriptors are kept
    assert sorted(map(str, chain.described)) == ["dbo.A", "dbo.B", "dbo.C"]
    assert set(closure.descriptors) == set(closure.tables)


def test_closure_terminates_on_cycles() -> None:
    """Mutual references do not loop."""
    provider = FakeProvider(
        [
            build_table(
                "dbo.Employee",
                [("EmployeeId", "int", False), ("DepartmentId", "int", True)],
                primary_keys=["EmployeeId"],
                foreign_keys=[("DepartmentId", "dbo.Department", "DepartmentId")],
            ),
            build_table(
                "dbo.Department",
                [("DepartmentId", "int", False), ("ManagerId", "int", True)],
                primary_keys=["DepartmentId"],
                foreign_keys=[("ManagerId", "dbo.Employee", "EmployeeId")],
            ),
        ],
    )

    closure = include_referenced_tables(
        [TableName("dbo", "Employee")],
        provider.get_tables(),
        provider.describe_table,
        lambda _: None,
    )

    assert closure.tables == (
        TableName("dbo", "Employee"),
        TableName("dbo", "Department"),
    )
    assert len(provider.described) == 2


def test_closure_uses_catalog_spelling() -> None:
    """References written in another case resolve to the catalog entry."""
    provider = FakeProvider(
        [
            build_table(
                "Sales.Order",
                [("OrderId", "int", False), ("CustomerId", "int", False)],
                primary_keys=["OrderId"],
                foreign_keys=[("CustomerId", "SALES.CUSTOMER", "CustomerId")],
            ),
            build_table("Sales.Customer", [("CustomerId", "int", False)], ["CustomerId"]),
        ],
    )

    closure = include_referenced_tables(
        [TableName("Sales", "Order")],
        provider.get_tables(),
        provider.describe_table,
        lambda _: None,
    )

    assert [str(table) for table in closure.tables] == ["Sales.Order", "Sales.Customer"]


def test_closure_skips_tables_outside_the_catalog(chain: FakeProvider) -> None:
    """A reference to an unknown table is not added."""
    catalog = [TableName("dbo", "A"), TableName("dbo", "B")]
    closure = include_referenced_tables(
        [TableName("dbo", "A")],
        catalog,
        chain.describe_table,
        lambda _: None,
    )
    assert closure.tables == (TableName("dbo", "A"), TableName("dbo", "B"))


def test_closure_records_failures() -> None:
    """A table whose metadata cannot be read stays selected and is reported."""
    tables = [
        build_table(
            "dbo.A",
            [("AId", "int", False), ("BId", "int", True)],
            primary_keys=["AId"],
            foreign_keys=[("BId", "dbo.B", "BId")],
        ),
        build_table("dbo.B", [("BId", "int", False)], primary_keys=["BId"]),
    ]
    provider = FakeProvider(tables, failing=[TableName("dbo", "B")])

    closure = include_referenced_tables(
        [TableName("dbo", "A")],
        provider.get_tables(),
        provider.describe_table,
        lambda _: None,
    )

    assert closure.tables == (TableName("dbo", "A"), TableName("dbo", "B"))
    assert TableName("dbo", "B") in closure.failures
    assert TableName("dbo", "B") not in closure.descriptors


def test_missing_references_without_closure(chain: FakeProvider) -> None:
    """Without auto-include, selecting A warns about B only."""
    selected = filter_tables(chain.get_tables(), ["dbo.A"])
    descriptors = [chain.describe_table(table) for table in selected]

    warnings = find_missing_references(descriptors, selected)

    assert selected == (TableName("dbo", "A"),)
    assert warnings == [
        MissingReference(TableName("dbo", "A"), TableName("dbo", "B"), "BId"),
    ]
    assert '"dbo.B"' in warnings[0].message
    assert "autoIncludeForeignKeyTables" in warnings[0].message
