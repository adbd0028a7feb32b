"""
Value Objects - Immutable Pay Station Concepts

Value objects have no identity: two receipts for 14 minutes issued at the
same instant are the same receipt.

- ParkingRate: how many cents buy how many minutes
- Receipt: proof of purchased parking time, kept by the caller
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class ParkingRate(BaseModel):
    """
    Conversion from cents to parking minutes.

    CRITICAL: integer arithmetic only. Every full block of cents_per_unit
    buys minutes_per_unit minutes; a partial block buys nothing.

    Default: 5 cents -> 2 minutes, so 35 cents -> 14 minutes.
    """

    cents_per_unit: int = Field(default=5, gt=0)
    minutes_per_unit: int = Field(default=2, gt=0)

    class Config:
        frozen = True

    def minutes_for(self, cents: int) -> int:
        """Minutes of parking bought by the given amount."""
        if cents < 0:
            raise ValueError(f"Amount cannot be negative, got {cents}")
        return cents // self.cents_per_unit * self.minutes_per_unit


class Receipt(BaseModel):
    """
    Receipt handed out by a purchase.

    The caller keeps the receipt after the station resets, so it carries
    its own copy of the purchased minutes.
    """

    minutes: int = Field(ge=0)
    issued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        frozen = True

    def value(self) -> int:
        """Minutes of parking purchased."""
        return self.minutes

    def __repr__(self) -> str:
        return f"Receipt({self.minutes} min)"
