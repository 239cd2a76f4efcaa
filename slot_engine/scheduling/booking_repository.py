"""
In-memory booking storage boundary.

Stands in for the booking collection. It enforces the uniqueness
guarantee the engine relies on: at most one active booking per
``(provider_id, scheduled_date, scheduled_time)`` for single-capacity
windows, so a lost creation race fails loudly instead of double-booking.
"""

import logging
import threading
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from slot_engine.errors import DuplicateBookingError, NotFoundError
from slot_engine.schemas.booking_schema import Booking, BookingStatus

logger = logging.getLogger(__name__)


class BookingRepository:
    """Bookings keyed by id. Records are copied in and out; never deleted."""

    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._lock = threading.Lock()

    def insert(self, booking: Booking, enforce_unique_start: bool = True) -> Booking:
        """
        Store a new booking.

        Raises:
            DuplicateBookingError: if the id exists, or ``enforce_unique_start``
                is set and another active booking starts at the same
                provider/date/time.
        """
        with self._lock:
            if booking.id in self._bookings:
                raise DuplicateBookingError(f"booking id {booking.id} already exists")
            if enforce_unique_start:
                for other in self._bookings.values():
                    if (
                        other.is_active
                        and other.provider_id == booking.provider_id
                        and other.scheduled_date == booking.scheduled_date
                        and other.scheduled_time == booking.scheduled_time
                    ):
                        raise DuplicateBookingError(
                            f"provider {booking.provider_id} already has an active booking "
                            f"at {booking.scheduled_date} {booking.scheduled_time}"
                        )
            self._bookings[booking.id] = booking.model_copy(deep=True)
        logger.debug("Stored booking %s for provider %s on %s", booking.id, booking.provider_id, booking.scheduled_date)
        return booking

    def save(self, booking: Booking) -> Booking:
        """Replace an existing booking record."""
        with self._lock:
            if booking.id not in self._bookings:
                raise NotFoundError("booking", booking.id)
            self._bookings[booking.id] = booking.model_copy(deep=True)
        return booking

    def get(self, booking_id: str) -> Booking:
        with self._lock:
            booking = self._bookings.get(booking_id)
        if booking is None:
            raise NotFoundError("booking", booking_id)
        return booking.model_copy(deep=True)

    def overlapping_days(self, provider_id: str, start: datetime, end: datetime) -> list[Booking]:
        """Bookings on every date an interval touches, plus the day before for overnight spill."""
        return self.find(
            provider_id=provider_id,
            start=start.date() - timedelta(days=1),
            end=end.date(),
        )

    def find(
        self,
        provider_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        statuses: Optional[Iterable[BookingStatus]] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[Booking]:
        """Filter bookings; results ordered by scheduled start."""
        wanted = {BookingStatus(s) for s in statuses} if statuses else None
        with self._lock:
            matches = [
                b.model_copy(deep=True)
                for b in self._bookings.values()
                if (provider_id is None or b.provider_id == provider_id)
                and (customer_id is None or b.customer_id == customer_id)
                and (wanted is None or b.status in wanted)
                and (start is None or b.scheduled_date >= start)
                and (end is None or b.scheduled_date <= end)
            ]
        return sorted(matches, key=lambda b: (b.scheduled_start, b.created_at))

    def clear(self) -> None:
        with self._lock:
            self._bookings.clear()
