"""
Parking Pay Station

A coin-operated pay station modelled as an event-sourced aggregate:
1. Coins are accepted or rejected against a fixed set of denominations
2. Accumulated cents are converted to parking minutes (5 cents buys 2 minutes)
3. A transaction ends with a receipt (buy), a refund breakdown (cancel),
   or a till collection by the operator (empty)

Every state change is recorded as a domain event, so a station can be
rebuilt from its history.
"""

from pay_station.domain.aggregates import (
    InvalidCoinError,
    PayStation,
    PayStationError,
    StationState,
)
from pay_station.domain.value_objects import Receipt

__version__ = "1.0.0"

__all__ = [
    "InvalidCoinError",
    "PayStation",
    "PayStationError",
    "Receipt",
    "StationState",
]
