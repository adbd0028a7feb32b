"""
Event Store - Audit Trail for Pay Stations

What it does:
1. Stores every event a station produced (append-only, in memory)
2. Rebuilds a station from its events (replay to any version or instant)
3. Publishes events to subscribers (receipt printers, till reports)
4. Enforces ordering (sequence numbers reject stale writers)

Everything here is synchronous and lives only as long as the process.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Protocol

import structlog

from pay_station.domain.aggregates import PayStation
from pay_station.domain.events import DomainEvent

logger = structlog.get_logger()

EventHandler = Callable[[DomainEvent], None]


class EventStream(Protocol):
    """Interface for event streaming to subscribers."""

    def publish(self, topic: str, event: DomainEvent) -> None:
        """Publish event to stream."""
        ...

    def subscribe(self, topic: str, handler: EventHandler) -> None:
        """Subscribe to events on topic."""
        ...


class EventStorageBackend(Protocol):
    """Interface for event storage."""

    def append_event(
        self, aggregate_id: str, event: DomainEvent, expected_version: int
    ) -> None:
        """
        Append event to a station's event stream.

        expected_version is the number of events the writer believes are
        already stored. A mismatch means someone else wrote first.
        """
        ...

    def get_events(
        self,
        aggregate_id: str,
        from_version: int = 0,
        to_version: int | None = None,
    ) -> list[DomainEvent]:
        """Get events for a station (for rebuilding state)."""
        ...

    def get_all_events(
        self, from_timestamp: datetime | None = None, limit: int | None = 1000
    ) -> list[DomainEvent]:
        """Get events across all stations (for reports). limit=None returns all."""
        ...


class EventStore:
    """
    Event store with replay capabilities.

    All station events flow through here once a caller saves a station.
    """

    def __init__(
        self,
        storage: EventStorageBackend,
        stream: EventStream | None = None,
    ):
        self.storage = storage
        self.stream = stream

    def append(
        self,
        aggregate_id: str,
        event: DomainEvent,
        expected_version: int,
    ) -> DomainEvent:
        """
        Append event to a station's stream.

        Flow:
        1. Write to storage (concurrency checked)
        2. Publish to stream
        """
        logger.info(
            "event_store.append",
            aggregate_id=aggregate_id,
            event_type=event.metadata.event_type,
            sequence=event.metadata.sequence_number,
        )

        try:
            self.storage.append_event(aggregate_id, event, expected_version)
        except ConcurrencyError as e:
            logger.warning(
                "event_store.concurrency_conflict",
                aggregate_id=aggregate_id,
                expected_version=expected_version,
                actual_version=e.current_version,
            )
            raise

        if self.stream:
            topic = f"events.{event.metadata.aggregate_type}"
            try:
                self.stream.publish(topic, event)
            except Exception as e:
                # Log but don't fail - storage is source of truth
                logger.error(
                    "event_store.stream_publish_failed",
                    error=str(e),
                    topic=topic,
                    event_type=event.metadata.event_type,
                )

        return event

    def save(self, station: PayStation) -> list[DomainEvent]:
        """
        Persist a station's uncommitted events and mark them committed.

        Each event's sequence number is its expected version, so saving a
        stale copy of a station raises ConcurrencyError.
        """
        events = station.get_uncommitted_events()
        for event in events:
            self.append(
                station.station_id,
                event,
                expected_version=event.metadata.sequence_number,
            )
        station.mark_events_committed()
        return events

    def load(self, station_id: str, **station_kwargs) -> PayStation:
        """
        Rebuild the current state of a station from its stored events.

        station_kwargs (accepted_coins, rate) are passed to PayStation.from_events.
        """
        events = self.get_aggregate_events(station_id)
        return PayStation.from_events(events, station_id=station_id, **station_kwargs)

    def get_aggregate_events(
        self,
        aggregate_id: str,
        from_version: int = 0,
        to_version: int | None = None,
    ) -> list[DomainEvent]:
        """Get all events for a station, oldest first."""
        return self.storage.get_events(aggregate_id, from_version, to_version)

    def rebuild_aggregate_state(
        self,
        aggregate_id: str,
        up_to_version: int | None = None,
        up_to_timestamp: datetime | None = None,
    ) -> list[DomainEvent]:
        """
        Events needed to rebuild a station as it was at some point.

        Use cases:
        1. "What did the display show before the last purchase?"
        2. "Which coins were refunded by the cancel at 3pm?"
        """
        all_events = self.get_aggregate_events(aggregate_id)

        if up_to_version is not None:
            all_events = [e for e in all_events if e.metadata.sequence_number <= up_to_version]

        if up_to_timestamp is not None:
            all_events = [e for e in all_events if e.metadata.occurred_at <= up_to_timestamp]

        logger.info(
            "event_store.time_travel",
            aggregate_id=aggregate_id,
            up_to_version=up_to_version,
            up_to_timestamp=up_to_timestamp,
            events_found=len(all_events),
        )

        return all_events

    def get_events_by_type(
        self,
        event_type: str,
        from_timestamp: datetime | None = None,
        limit: int = 1000,
    ) -> list[DomainEvent]:
        """
        Get all events of a specific type.

        Example: every TillEmptied event gives the operator's collection history.
        """
        all_events = self.storage.get_all_events(from_timestamp, limit=None)
        matching = [e for e in all_events if e.metadata.event_type == event_type]
        return matching[:limit]


class ConcurrencyError(Exception):
    """Raised when optimistic concurrency check fails."""

    def __init__(self, aggregate_id: str, expected: int, current: int):
        self.aggregate_id = aggregate_id
        self.expected_version = expected
        self.current_version = current
        super().__init__(
            f"Concurrency conflict for {aggregate_id}: "
            f"expected version {expected}, current version {current}"
        )


# ============================================================================
# IN-MEMORY IMPLEMENTATIONS
# ============================================================================


class InMemoryEventStorage:
    """In-memory event storage; nothing survives a restart."""

    def __init__(self):
        self._events: dict[str, list[tuple[int, DomainEvent]]] = {}
        self._global_events: list[DomainEvent] = []

    def append_event(
        self, aggregate_id: str, event: DomainEvent, expected_version: int
    ) -> None:
        stored = self._events.setdefault(aggregate_id, [])
        current_version = len(stored)

        if current_version != expected_version:
            raise ConcurrencyError(aggregate_id, expected_version, current_version)

        stored.append((current_version, event))
        self._global_events.append(event)

    def get_events(
        self,
        aggregate_id: str,
        from_version: int = 0,
        to_version: int | None = None,
    ) -> list[DomainEvent]:
        if aggregate_id not in self._events:
            return []

        return [
            e
            for v, e in self._events[aggregate_id]
            if v >= from_version and (to_version is None or v <= to_version)
        ]

    def get_all_events(
        self, from_timestamp: datetime | None = None, limit: int | None = 1000
    ) -> list[DomainEvent]:
        events = self._global_events

        if from_timestamp:
            events = [e for e in events if e.metadata.occurred_at >= from_timestamp]

        if limit is None:
            return list(events)
        return events[:limit]


class InMemoryEventStream:
    """In-memory event stream; handlers run synchronously on publish."""

    def __init__(self):
        self._subscribers: dict[str, list[EventHandler]] = {}
        self._published_events: list[tuple[str, DomainEvent]] = []

    def publish(self, topic: str, event: DomainEvent) -> None:
        self._published_events.append((topic, event))

        for handler in self._subscribers.get(topic, []):
            handler(event)

    def subscribe(self, topic: str, handler: EventHandler) -> None:
        self._subscribers.setdefault(topic, []).append(handler)

    def get_published_events(self, topic: str | None = None) -> list[DomainEvent]:
        """Helper for testing: Get all published events."""
        if topic is None:
            return [e for _, e in self._published_events]
        return [e for t, e in self._published_events if t == topic]
