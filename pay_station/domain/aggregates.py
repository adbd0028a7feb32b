"""
Aggregates - Consistency Boundaries

The PayStation is the aggregate root for a parking transaction.

Invariants that must ALWAYS hold:
1. time_bought == (inserted_so_far // 5) * 2 with the default rate
2. sum(denomination * count for coin_counts) == inserted_so_far
3. Only accepted denominations appear in coin_counts
4. After buy, cancel or empty the station is idle and holds nothing

How state changes:
- Operations validate first, then produce an event
- The event is applied through _mutate (the only place state is written)
- Replaying the same events always produces the same station

State machine:
IDLE --add_payment--> ACCUMULATING --add_payment--> ACCUMULATING
  ^                        |
  +---- buy / cancel / empty (from any state) ----+
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from pay_station.domain.events import (
    RESET_EVENTS,
    CoinInserted,
    DomainEvent,
    EventMetadata,
    ParkingTimePurchased,
    TillEmptied,
    TransactionCancelled,
    create_event_metadata,
)
from pay_station.domain.value_objects import ParkingRate, Receipt

if TYPE_CHECKING:
    from pay_station.config.settings import Settings

logger = structlog.get_logger()

DEFAULT_STATION_ID = "ps_default"
DEFAULT_ACCEPTED_COINS: frozenset[int] = frozenset({5, 10, 25})


class StationState(str, Enum):
    """
    Pay station lifecycle states.

    There is no terminal state; a station is reused indefinitely.
    """

    IDLE = "idle"
    ACCUMULATING = "accumulating"


@dataclass
class PayStation:
    """
    Pay Station Aggregate Root.

    Single owner, single transaction at a time. Callers read state through
    the properties below and change it only through the five operations.

    Example:
        station = PayStation()
        station.add_payment(10)
        station.add_payment(25)
        station.read_display()   # 14
        station.buy().value()    # 14, station is idle again
    """

    station_id: str = DEFAULT_STATION_ID
    accepted_coins: frozenset[int] = DEFAULT_ACCEPTED_COINS
    rate: ParkingRate = field(default_factory=ParkingRate)

    # For optimistic concurrency control in the event store
    _version: int = field(default=0, init=False, repr=False)

    # Transaction state (derived from events)
    _inserted_so_far: int = field(default=0, init=False, repr=False)
    _time_bought: int = field(default=0, init=False, repr=False)
    _coin_counts: dict[int, int] = field(default_factory=dict, init=False, repr=False)

    # Event sourcing
    _uncommitted_events: list[DomainEvent] = field(
        default_factory=list, init=False, repr=False
    )
    _event_history: list[DomainEvent] = field(
        default_factory=list, init=False, repr=False
    )

    def __post_init__(self) -> None:
        self.accepted_coins = frozenset(self.accepted_coins)
        if not self.accepted_coins:
            raise ValueError("A pay station must accept at least one coin")
        invalid = sorted(c for c in self.accepted_coins if c <= 0)
        if invalid:
            raise ValueError(f"Coin denominations must be positive, got {invalid}")

    @classmethod
    def from_settings(
        cls, settings: Settings, station_id: str = DEFAULT_STATION_ID
    ) -> PayStation:
        """Build a station using the configured coin set and rate."""
        return cls(
            station_id=station_id,
            accepted_coins=frozenset(settings.accepted_coins),
            rate=settings.parking_rate(),
        )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        """Number of events applied; the next event's sequence number."""
        return self._version

    @property
    def inserted_so_far(self) -> int:
        """Cents inserted since the last reset."""
        return self._inserted_so_far

    @property
    def time_bought(self) -> int:
        """Minutes purchasable with the cents inserted so far."""
        return self._time_bought

    @property
    def coin_counts(self) -> dict[int, int]:
        """Copy of denomination -> count for the current transaction."""
        return dict(self._coin_counts)

    @property
    def state(self) -> StationState:
        if self._inserted_so_far > 0:
            return StationState.ACCUMULATING
        return StationState.IDLE

    def read_display(self) -> int:
        """Minutes shown on the display."""
        return self._time_bought

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def add_payment(self, coin_value: int) -> None:
        """
        Insert a coin.

        Invariant: a rejected coin leaves the station untouched
        (no event, no partial update).
        """
        if coin_value not in self.accepted_coins:
            logger.warning(
                "pay_station.coin_rejected",
                station_id=self.station_id,
                coin_value=coin_value,
                accepted_coins=sorted(self.accepted_coins),
            )
            raise InvalidCoinError(coin_value, station_id=self.station_id)

        event = CoinInserted(
            metadata=self._next_metadata("CoinInserted"),
            coin_value=coin_value,
        )
        self._apply_event(event)

        logger.info(
            "pay_station.coin_accepted",
            station_id=self.station_id,
            coin_value=coin_value,
            inserted_so_far=self._inserted_so_far,
            time_bought=self._time_bought,
        )

    def buy(self) -> Receipt:
        """
        Complete the transaction and issue a receipt.

        Never fails: buying with nothing inserted yields a 0-minute receipt.
        """
        event = ParkingTimePurchased(
            metadata=self._next_metadata("ParkingTimePurchased"),
            minutes=self._time_bought,
            amount_cents=self._inserted_so_far,
        )
        receipt = Receipt(minutes=event.minutes, issued_at=event.metadata.occurred_at)
        self._apply_event(event)

        logger.info(
            "pay_station.purchase",
            station_id=self.station_id,
            minutes=event.minutes,
            amount_cents=event.amount_cents,
        )
        return receipt

    def cancel(self) -> dict[int, int]:
        """
        Abort the transaction and return the coins inserted since the last reset.

        The returned mapping is the caller's own copy.
        """
        refund = dict(self._coin_counts)
        event = TransactionCancelled(
            metadata=self._next_metadata("TransactionCancelled"),
            refund=refund,
            amount_cents=self._inserted_so_far,
        )
        self._apply_event(event)

        logger.info(
            "pay_station.cancelled",
            station_id=self.station_id,
            refund=refund,
            amount_cents=event.amount_cents,
        )
        return refund

    def empty(self) -> int:
        """
        Operator till collection: total cents accumulated since the last reset.

        A buy or cancel in between resets that total, so cancelled coins are
        never counted here.
        """
        event = TillEmptied(
            metadata=self._next_metadata("TillEmptied"),
            amount_cents=self._inserted_so_far,
        )
        self._apply_event(event)

        logger.info(
            "pay_station.emptied",
            station_id=self.station_id,
            amount_cents=event.amount_cents,
        )
        return event.amount_cents

    # ------------------------------------------------------------------
    # Event sourcing
    # ------------------------------------------------------------------

    def _next_metadata(self, event_type: str) -> EventMetadata:
        return create_event_metadata(
            event_type=event_type,
            aggregate_id=self.station_id,
            sequence_number=self._version,
        )

    def _apply_event(self, event: DomainEvent) -> None:
        """
        Record the event and update state from it.

        - Event is added to uncommitted events (for the event store)
        - State is updated through _mutate
        - Version incremented (for optimistic locking)
        """
        self._uncommitted_events.append(event)
        self._event_history.append(event)
        self._version += 1
        self._mutate(event)

    def _mutate(self, event: DomainEvent) -> None:
        """
        Update station state from an event.

        Must be DETERMINISTIC: same events, same state.
        """
        if isinstance(event, CoinInserted):
            self._inserted_so_far += event.coin_value
            self._time_bought = self.rate.minutes_for(self._inserted_so_far)
            self._coin_counts[event.coin_value] = (
                self._coin_counts.get(event.coin_value, 0) + 1
            )

        elif isinstance(event, RESET_EVENTS):
            self._reset()

    def _reset(self) -> None:
        self._inserted_so_far = 0
        self._time_bought = 0
        self._coin_counts.clear()

    @classmethod
    def from_events(
        cls,
        events: Iterable[DomainEvent],
        station_id: str | None = None,
        accepted_coins: frozenset[int] = DEFAULT_ACCEPTED_COINS,
        rate: ParkingRate | None = None,
    ) -> PayStation:
        """
        Rebuild a station by replaying its history.

        Replaying nothing gives an idle station. Replayed events are already
        committed, so the rebuilt station has no uncommitted events.
        """
        events = list(events)
        if station_id is None:
            station_id = (
                events[0].metadata.aggregate_id if events else DEFAULT_STATION_ID
            )

        station = cls(
            station_id=station_id,
            accepted_coins=accepted_coins,
            rate=rate if rate is not None else ParkingRate(),
        )

        for event in events:
            if event.metadata.aggregate_id != station_id:
                raise ValueError(
                    f"Event {event.metadata.event_id} belongs to "
                    f"{event.metadata.aggregate_id}, not {station_id}"
                )
            if event.metadata.sequence_number != station._version:
                raise ValueError(
                    f"Event {event.metadata.event_id} has sequence number "
                    f"{event.metadata.sequence_number}, expected {station._version}"
                )
            station._mutate(event)
            station._event_history.append(event)
            station._version += 1

        return station

    def get_event_history(self) -> list[DomainEvent]:
        """All events applied to this station, oldest first."""
        return self._event_history.copy()

    def get_uncommitted_events(self) -> list[DomainEvent]:
        """Get events that haven't been persisted yet."""
        return self._uncommitted_events.copy()

    def mark_events_committed(self) -> None:
        """Clear uncommitted events after persistence."""
        self._uncommitted_events.clear()


class PayStationError(Exception):
    """Domain error for pay station operations."""

    def __init__(self, message: str, station_id: str | None = None):
        self.station_id = station_id
        super().__init__(message)


class InvalidCoinError(PayStationError):
    """Raised when a coin outside the accepted denominations is inserted."""

    def __init__(self, coin_value: object, station_id: str | None = None):
        self.coin_value = coin_value
        super().__init__(f"Invalid coin: {coin_value}", station_id=station_id)
