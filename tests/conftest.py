"""
Pytest configuration and fixtures for pay station tests.
"""

import pytest

from pay_station.config import Settings
from pay_station.domain.aggregates import PayStation
from pay_station.infrastructure.event_store import (
    EventStore,
    InMemoryEventStorage,
    InMemoryEventStream,
)


@pytest.fixture
def settings() -> Settings:
    """Default settings, ignoring any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def station() -> PayStation:
    """Fresh station with the default coins (5, 10, 25) and rate (5c -> 2 min)."""
    return PayStation()


@pytest.fixture
def event_stream() -> InMemoryEventStream:
    return InMemoryEventStream()


@pytest.fixture
def event_store(event_stream) -> EventStore:
    """Create event store for testing."""
    return EventStore(InMemoryEventStorage(), event_stream)
