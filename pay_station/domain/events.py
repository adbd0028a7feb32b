"""
Domain Events - Immutable Facts About What Happened At The Station

Every change to a pay station is recorded as an event:
- A coin was inserted
- Parking time was purchased (receipt issued)
- The transaction was cancelled (coins refunded)
- The operator emptied the till

Station state is never written directly. It is derived by applying these
events in order, which is what makes replaying a station's history possible.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventMetadata(BaseModel):
    """
    Metadata attached to every event.

    sequence_number is the position of the event in the station's stream.
    The event store uses it for optimistic concurrency checks.
    """

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str
    aggregate_id: str  # Which station does this belong to?
    aggregate_type: Literal["pay_station"] = "pay_station"
    sequence_number: int = Field(ge=0)
    occurred_at: datetime = Field(default_factory=_utcnow)
    correlation_id: str | None = None

    @field_validator("occurred_at", mode="before")
    @classmethod
    def ensure_utc(cls, v: datetime | str) -> datetime:
        """Always store timezone-aware UTC timestamps."""
        if isinstance(v, str):
            v = datetime.fromisoformat(v)
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class DomainEvent(BaseModel):
    """
    Base class for all pay station events.

    Events are IMMUTABLE and named in the past tense.
    """

    metadata: EventMetadata

    class Config:
        frozen = True

    def with_metadata(self, **kwargs: Any) -> DomainEvent:
        """Copy the event with updated metadata (e.g. a correlation id)."""
        metadata_dict = self.metadata.model_dump()
        metadata_dict.update(kwargs)
        return self.model_copy(update={"metadata": EventMetadata(**metadata_dict)})


# ============================================================================
# TRANSACTION EVENTS
# ============================================================================


class CoinInserted(DomainEvent):
    """A coin of an accepted denomination was added to the transaction."""

    coin_value: int = Field(gt=0)  # cents


class ParkingTimePurchased(DomainEvent):
    """
    The caller bought parking time and received a receipt.

    Ends the transaction: the station returns to idle.
    """

    minutes: int = Field(ge=0)
    amount_cents: int = Field(ge=0)


class TransactionCancelled(DomainEvent):
    """
    The caller cancelled; the inserted coins are handed back.

    refund maps denomination -> number of coins returned.
    """

    refund: dict[int, int]
    amount_cents: int = Field(ge=0)

    @field_validator("refund")
    @classmethod
    def validate_refund(cls, v: dict[int, int]) -> dict[int, int]:
        for denomination, count in v.items():
            if denomination <= 0 or count <= 0:
                raise ValueError(
                    f"Refund entries must be positive, got {denomination}: {count}"
                )
        return v


class TillEmptied(DomainEvent):
    """The operator collected the amount accumulated since the last reset."""

    amount_cents: int = Field(ge=0)


# Events that close a transaction and reset the station to idle.
RESET_EVENTS: tuple[type[DomainEvent], ...] = (
    ParkingTimePurchased,
    TransactionCancelled,
    TillEmptied,
)


def create_event_metadata(
    event_type: str,
    aggregate_id: str,
    sequence_number: int,
    correlation_id: str | None = None,
) -> EventMetadata:
    """Build metadata for a new station event."""
    return EventMetadata(
        event_type=event_type,
        aggregate_id=aggregate_id,
        sequence_number=sequence_number,
        correlation_id=correlation_id,
    )
