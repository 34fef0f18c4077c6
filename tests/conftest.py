"""Shared fixtures."""

import pytest
from fakes import FakeProvider, customer_order_tables

from mssqlgen.events import Event


@pytest.fixture(name="provider")
def customer_order_provider() -> FakeProvider:
    """Provider serving the Customer/Order pair."""
    return FakeProvider(customer_order_tables())


@pytest.fixture(name="events")
def recorded_events() -> list[Event]:
    """List to pass as an event sink via ``events.append``."""
    return []
