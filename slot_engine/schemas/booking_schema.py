"""Booking and availability-check data models."""

from datetime import date as date_type
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from slot_engine.utils import at_time, normalize_hhmm


class BookingStatus(str, Enum):
    """Lifecycle status of a booking."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


# Statuses that hold provider time and constrain new bookings.
ACTIVE_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS}
)
TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED}
)


class Actor(str, Enum):
    """Who performed a status change."""

    CUSTOMER = "customer"
    PROVIDER = "provider"
    SYSTEM = "system"
    ADMIN = "admin"


class StatusEntry(BaseModel):
    """One immutable row of a booking's status history."""

    model_config = ConfigDict(frozen=True)

    status: BookingStatus
    timestamp: datetime
    actor: Actor
    reason: Optional[str] = None
    notes: Optional[str] = None


class ProviderResponse(BaseModel):
    """Provider-side timestamps and notes collected across the lifecycle."""

    accepted_at: Optional[datetime] = None
    estimated_arrival: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    arrival_time: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None


class CancellationDetails(BaseModel):
    cancelled_by: Actor
    cancelled_at: datetime
    reason: str


class BookingRequest(BaseModel):
    """Validated booking request handed over by the booking collaborator."""

    provider_id: str = Field(min_length=1)
    customer_id: str = Field(min_length=1)
    service_id: str = Field(min_length=1)
    scheduled_date: date_type
    scheduled_time: str
    duration: int = Field(gt=0)
    notes: Optional[str] = None

    @field_validator("scheduled_time")
    @classmethod
    def _normalize_time(cls, value: str) -> str:
        return normalize_hhmm(value)


class Booking(BaseModel):
    """A scheduled engagement between a customer and a provider.

    Never hard-deleted: cancellation and rejection are status changes so
    historical conflict queries stay correct.
    """

    id: str
    booking_number: str
    provider_id: str
    customer_id: str
    service_id: str
    scheduled_date: date_type
    scheduled_time: str
    duration: int = Field(gt=0)
    window_key: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING
    status_history: list[StatusEntry] = Field(default_factory=list)
    provider_response: ProviderResponse = Field(default_factory=ProviderResponse)
    cancellation: Optional[CancellationDetails] = None
    actual_duration: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    @property
    def scheduled_start(self) -> datetime:
        return at_time(self.scheduled_date, self.scheduled_time)

    @property
    def estimated_end_time(self) -> datetime:
        return self.scheduled_start + timedelta(minutes=self.duration)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class RangeCheck(BaseModel):
    """Result of checking an arbitrary interval against existing bookings."""

    model_config = ConfigDict(populate_by_name=True)

    is_available: bool = Field(alias="isAvailable")
    conflicting_bookings_count: int = Field(alias="conflictingBookings")
