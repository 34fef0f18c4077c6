"""Tests for generation runs and output writing."""

from pathlib import Path

import pytest
from fakes import FakeProvider, build_table, customer_order_tables

from mssqlgen.config import GenerationConfig
from mssqlgen.errors import ConnectivityError
from mssqlgen.events import (
    Event,
    MissingReference,
    TableAutoIncluded,
    TableFailed,
    TableStarted,
    TableSucceeded,
)
from mssqlgen.generator import generate, select_tables
from mssqlgen.output import write_output
from mssqlgen.types import TableName

CUSTOMER = TableName("dbo", "Customer")
ORDER = TableName("dbo", "Order")


def relationship_config(tables: list[str], *, auto_include: bool) -> GenerationConfig:
    """Generation settings with relationships enabled."""
    generation = GenerationConfig(tables=tables)
    generation.features.generate_relationships = True
    generation.features.auto_include_foreign_key_tables = auto_include
    return generation


def test_order_pulls_in_customer(provider: FakeProvider, events: list[Event]) -> None:
    """Filtering for Order alone generates Order and Customer."""
    result = generate(
        provider,
        relationship_config(["dbo.Order"], auto_include=True),
        events.append,
    )

    assert result.generation_set == (ORDER, CUSTOMER)
    assert [document.file_name for document in result.documents] == [
        "dbo.order",
        "dbo.customer",
    ]
    assert '"types/dbo.order.graphql",\n  "types/dbo.customer.graphql"\n' in result.index

    order_sdl = result.documents[0].content
    assert "  customer: Customer\n" in order_sdl
    assert '      arguments: [{name: "customerId", field: "customerId"}]\n' in order_sdl
    assert "# Relationship field collisions: clashing relationship fields" in order_sdl
    customer_sdl = result.documents[1].content
    assert "  ordersByCustomerId(customerId: Int!): [Order]\n" in customer_sdl

    assert TableAutoIncluded(CUSTOMER, ORDER) in events
    assert events.count(TableSucceeded(ORDER)) == 1
    assert events.count(TableSucceeded(CUSTOMER)) == 1
    # Closure metadata is reused
    assert provider.described == [ORDER, CUSTOMER]


def test_missing_reference_warning(provider: FakeProvider, events: list[Event]) -> None:
    """Without auto-include the referenced table is only warned about."""
    result = generate(
        provider,
        relationship_config(["dbo.Order"], auto_include=False),
        events.append,
    )

    assert result.generation_set == (ORDER,)
    assert result.warnings == (MissingReference(ORDER, CUSTOMER, "CustomerId"),)
    assert MissingReference(ORDER, CUSTOMER, "CustomerId") in events
    assert "customer: Customer" not in result.documents[0].content
    assert result.index.count(".graphql") == 1


def test_relationships_disabled(provider: FakeProvider, events: list[Event]) -> None:
    """Plain documents, no warnings and no relationship note."""
    result = generate(provider, GenerationConfig(), events.append)

    assert result.generation_set == (CUSTOMER, ORDER)
    assert result.warnings == ()
    assert all("materializer" not in document.content for document in result.documents)
    assert all("collisions" not in document.content for document in result.documents)
    assert result.filters is None


def test_table_failure_does_not_stop_the_run(events: list[Event]) -> None:
    """A table whose metadata cannot be read is reported and skipped."""
    provider = FakeProvider(customer_order_tables(), failing=[CUSTOMER])

    result = generate(
        provider,
        relationship_config(["dbo.*"], auto_include=True),
        events.append,
    )

    assert result.failed == (CUSTOMER,)
    assert [document.file_name for document in result.documents] == ["dbo.order"]
    failures = [event for event in events if isinstance(event, TableFailed)]
    assert failures == [TableFailed(CUSTOMER, "Cannot read dbo.Customer")]
    assert events.count(TableStarted(CUSTOMER)) == 1
    # Not retried after failing during the closure
    assert provider.described.count(CUSTOMER) == 1


def test_connectivity_errors_propagate() -> None:
    """Losing the connection aborts the run."""

    class OfflineProvider(FakeProvider):
        def get_tables(self, schemas: object = None) -> list[TableName]:  # noqa: ARG002
            msg = "Login failed"
            raise ConnectivityError(msg)

    with pytest.raises(ConnectivityError):
        generate(OfflineProvider([]), GenerationConfig(), lambda _: None)


def test_select_tables_without_closure(provider: FakeProvider) -> None:
    """Selection without auto-include fetches no metadata."""
    selection = select_tables(provider, GenerationConfig(tables=["*.Customer"]))

    assert selection.tables == (CUSTOMER,)
    assert provider.described == []


def test_filtering(provider: FakeProvider) -> None:
    """Filter inputs for matching tables and a shared filters document."""
    generation = GenerationConfig()
    generation.features.filtering.enabled = True
    generation.features.filtering.tables = ["dbo.Customer"]

    result = generate(provider, generation, lambda _: None)

    customer, order = result.documents
    assert "input CustomerFilter {" in customer.content
    assert "customers(filter: CustomerFilter)" in customer.content
    assert "input OrderFilter" not in order.content
    assert result.filters is not None
    assert result.file_names == ("dbo.customer", "dbo.order", "filters")
    assert '"types/filters.graphql"' in result.index


def test_write_output(tmp_path: Path, provider: FakeProvider) -> None:
    """Documents, index and configuration are written, stale artifacts removed."""
    output_dir = tmp_path / "stepzen"
    stale = output_dir / "types" / "dbo.old.graphql"
    stale.parent.mkdir(parents=True)
    stale.write_text("type Old {}\n", encoding="utf-8")
    keep = output_dir / "README.md"
    keep.write_text("notes\n", encoding="utf-8")

    generation = relationship_config([], auto_include=False)
    result = generate(provider, generation, lambda _: None)
    written = write_output(output_dir, result, "mssql://u:p@localhost:1433/shop")

    assert sorted(path.relative_to(output_dir).as_posix() for path in written) == [
        "config.yaml",
        "index.graphql",
        "types/dbo.customer.graphql",
        "types/dbo.order.graphql",
    ]
    assert not stale.exists()
    assert keep.exists()
    assert (output_dir / "index.graphql").read_text(encoding="utf-8") == result.index
    config = (output_dir / "config.yaml").read_text(encoding="utf-8")
    assert "dsn: mssql://u:p@localhost:1433/shop" in config


@pytest.mark.parametrize(
    "generation",
    [GenerationConfig(), relationship_config([], auto_include=True)],
    ids=["columns-only", "relationships"],
)
def test_build_errors_are_reported_per_table(
    generation: GenerationConfig,
    events: list[Event],
) -> None:
    """An identifier that cannot be converted fails only its own table."""
    provider = FakeProvider(
        [
            build_table("dbo.Good", [("GoodId", "int", False)], ["GoodId"]),
            build_table("dbo.Bad", [("", "int", False)]),
        ],
    )

    result = generate(provider, generation, events.append)

    assert [document.file_name for document in result.documents] == ["dbo.good"]
    assert result.failed == (TableName("dbo", "Bad"),)
    assert TableSucceeded(TableName("dbo", "Good")) in events


def test_failed_child_is_not_referenced_by_parent(events: list[Event]) -> None:
    """A parent does not get fields or queries for a child that was not written."""
    customer, _ = customer_order_tables()
    order = build_table(
        "dbo.Order",
        [("OrderId", "int", False), ("CustomerId", "int", False), ("", "int", True)],
        primary_keys=["OrderId"],
        foreign_keys=[("CustomerId", "dbo.Customer", "CustomerId")],
    )
    provider = FakeProvider([customer, order])

    generation = relationship_config([], auto_include=True)
    result = generate(provider, generation, events.append)

    assert result.failed == (ORDER,)
    (document,) = result.documents
    assert document.file_name == "dbo.customer"
    assert "[Order]" not in document.content
    assert "ordersByCustomerId" not in document.content
    assert "types/dbo.order.graphql" not in result.index
    assert TableSucceeded(CUSTOMER) in events


def test_malformed_foreign_key_column_fails_its_table(events: list[Event]) -> None:
    """A foreign key whose column name cannot be converted fails the child."""
    customer, _ = customer_order_tables()
    order = build_table(
        "dbo.Order",
        [("OrderId", "int", False)],
        primary_keys=["OrderId"],
        foreign_keys=[("", "dbo.Customer", "CustomerId")],
    )
    provider = FakeProvider([customer, order])

    generation = relationship_config([], auto_include=True)
    result = generate(provider, generation, events.append)

    assert result.failed == (ORDER,)
    assert [document.file_name for document in result.documents] == ["dbo.customer"]
    assert [event for event in events if isinstance(event, TableFailed)] == [
        TableFailed(ORDER, "Cannot convert an empty identifier"),
    ]
