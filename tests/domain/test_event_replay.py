"""
Test: Rebuilding Stations From Their Events

Scenario: A driver claims the station swallowed their coins.
Question: "What did the station hold right before the cancel?"

Every change is an event, so the station can be replayed to any point.
"""

import pytest

from pay_station.domain.aggregates import PayStation, StationState
from pay_station.domain.events import (
    CoinInserted,
    ParkingTimePurchased,
    TillEmptied,
    TransactionCancelled,
)
from pay_station.domain.value_objects import ParkingRate


class TestEventRecording:
    """Each operation produces exactly one event."""

    def test_operations_record_events_in_order(self, station):
        station.add_payment(10)
        station.add_payment(25)
        station.buy()
        station.add_payment(5)
        station.cancel()
        station.empty()

        events = station.get_uncommitted_events()

        assert [type(e) for e in events] == [
            CoinInserted,
            CoinInserted,
            ParkingTimePurchased,
            CoinInserted,
            TransactionCancelled,
            TillEmptied,
        ]
        assert [e.metadata.sequence_number for e in events] == list(range(6))
        assert all(e.metadata.aggregate_id == station.station_id for e in events)
        assert station.version == 6

    def test_purchase_event_carries_receipt_details(self, station):
        station.add_payment(5)
        station.add_payment(10)
        station.add_payment(25)

        receipt = station.buy()
        event = station.get_uncommitted_events()[-1]

        assert isinstance(event, ParkingTimePurchased)
        assert event.minutes == receipt.value() == 16
        assert event.amount_cents == 40
        assert receipt.issued_at == event.metadata.occurred_at

    def test_cancel_event_carries_refund(self, station):
        station.add_payment(10)
        station.add_payment(5)
        station.add_payment(5)

        station.cancel()
        event = station.get_uncommitted_events()[-1]

        assert isinstance(event, TransactionCancelled)
        assert event.refund == {10: 1, 5: 2}
        assert event.amount_cents == 20

    def test_mark_events_committed(self, station):
        station.add_payment(25)
        station.mark_events_committed()

        assert station.get_uncommitted_events() == []
        assert len(station.get_event_history()) == 1
        assert station.version == 1


class TestReplay:
    """PayStation.from_events rebuilds the same state."""

    def test_replay_mid_transaction(self, station):
        station.add_payment(10)
        station.add_payment(5)
        station.add_payment(5)
        station.add_payment(25)

        rebuilt = PayStation.from_events(station.get_uncommitted_events())

        assert rebuilt.read_display() == station.read_display() == 18
        assert rebuilt.inserted_so_far == 45
        assert rebuilt.coin_counts == {10: 1, 5: 2, 25: 1}
        assert rebuilt.state == StationState.ACCUMULATING
        assert rebuilt.version == 4
        assert rebuilt.get_uncommitted_events() == []

    def test_replay_up_to_cancel(self, station):
        """What did the station hold right before the cancel?"""
        station.add_payment(25)
        station.add_payment(25)
        station.cancel()

        history = station.get_event_history()
        before_cancel = PayStation.from_events(history[:-1])
        after_cancel = PayStation.from_events(history)

        assert before_cancel.coin_counts == {25: 2}
        assert before_cancel.read_display() == 20
        assert after_cancel.coin_counts == {}
        assert after_cancel.state == StationState.IDLE

    def test_replay_takes_station_id_from_events(self):
        station = PayStation(station_id="ps_lot_b")
        station.add_payment(5)

        rebuilt = PayStation.from_events(station.get_event_history())

        assert rebuilt.station_id == "ps_lot_b"

    def test_replay_nothing_gives_idle_station(self):
        rebuilt = PayStation.from_events([])
        assert rebuilt.state == StationState.IDLE
        assert rebuilt.version == 0

    def test_replay_continues_sequence(self, station):
        station.add_payment(10)
        rebuilt = PayStation.from_events(station.get_event_history())

        rebuilt.add_payment(25)

        event = rebuilt.get_uncommitted_events()[0]
        assert event.metadata.sequence_number == 1
        assert rebuilt.read_display() == 14

    def test_replay_uses_given_rate(self, station):
        station.add_payment(25)
        rebuilt = PayStation.from_events(
            station.get_event_history(),
            rate=ParkingRate(cents_per_unit=25, minutes_per_unit=15),
        )
        assert rebuilt.read_display() == 15

    def test_replay_rejects_foreign_events(self):
        first = PayStation(station_id="ps_one")
        second = PayStation(station_id="ps_two")
        first.add_payment(5)
        second.add_payment(10)

        events = first.get_event_history() + second.get_event_history()

        with pytest.raises(ValueError, match="belongs to ps_two"):
            PayStation.from_events(events)

    @pytest.mark.parametrize("order", [[1, 0, 2], [0, 2]])
    def test_replay_rejects_out_of_order_history(self, station, order):
        station.add_payment(5)
        station.add_payment(10)
        station.add_payment(25)
        history = station.get_event_history()

        with pytest.raises(ValueError, match="sequence number"):
            PayStation.from_events([history[i] for i in order])

    def test_version_is_read_only(self, station):
        station.add_payment(5)

        with pytest.raises(AttributeError):
            station.version = 10

        assert station.version == 1
