"""
Availability engine: the facade that wires stores, slot generation,
conflict resolution and the booking lifecycle together.

Booking creation and every status change for a booking run under a lock
keyed by ``(provider_id, scheduled_date)``, covering the re-read of
existing bookings, the conflict check, the write and the capacity hold or
release. Slot lookups take no lock; they are a snapshot.

Usage:
    engine = AvailabilityEngine()
    engine.get_availability("prov-1")            # materializes the default schedule
    engine.get_available_slots("prov-1", date(2025, 3, 17), 60)
    booking = engine.create_booking("prov-1", "cust-1", "svc-1", date(2025, 3, 17), "10:00", 60)
    engine.accept_booking(booking.id)
"""

import threading
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Iterable, Optional, Union

from pydantic import ValidationError

from slot_engine.config import settings
from slot_engine.errors import (
    DuplicateBookingError,
    InvalidScheduleError,
    SlotUnavailableError,
)
from slot_engine.logging_context import get_request_logger
from slot_engine.schemas.booking_schema import (
    Actor,
    Booking,
    BookingRequest,
    BookingStatus,
    RangeCheck,
    StatusEntry,
)
from slot_engine.schemas.schedule_schema import (
    AvailabilityView,
    DayView,
    ExceptionEntry,
    ExceptionType,
    SpecialPricing,
    TimeWindow,
    Weekday,
    WeeklySchedule,
)
from slot_engine.scheduling.booking_lifecycle import BookingLifecycle, BookingTrigger
from slot_engine.scheduling.booking_repository import BookingRepository
from slot_engine.scheduling.conflict_resolver import check_range, filter_candidates
from slot_engine.scheduling.format_adapter import parse_schedule_payload, to_legacy_availability
from slot_engine.scheduling.occupancy import OccupancyLedger, window_key
from slot_engine.scheduling.schedule_store import ExceptionStore, ScheduleStore
from slot_engine.scheduling.slot_generator import find_window, generate, to_clock_strings
from slot_engine.utils import at_time, parse_hhmm, to_date

logger = get_request_logger(__name__)


class AvailabilityEngine:
    """
    Provider availability and booking operations over in-memory stores.

    Args:
        clock: Returns the current provider-local wall-clock time as a naive
            datetime. Used for min-notice, max-advance and past-slot checks,
            and as the time of every recorded change (stored in UTC).

    Creation and transitions are serialized per provider and date. The lock
    table and booking-number counters only grow until ``reset_bookings()``;
    the in-memory engine is meant for tests, demos and short-lived
    processes, not for running indefinitely.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        schedules: Optional[ScheduleStore] = None,
        exceptions: Optional[ExceptionStore] = None,
        bookings: Optional[BookingRepository] = None,
        ledger: Optional[OccupancyLedger] = None,
        enforce_buffer_time: Optional[bool] = None,
    ) -> None:
        self._clock = clock
        self._enforce_buffer = (
            settings.booking.enforce_buffer_time if enforce_buffer_time is None else enforce_buffer_time
        )
        self.schedules = schedules or ScheduleStore()
        self.exceptions = exceptions or ExceptionStore()
        self.bookings = bookings or BookingRepository()
        self.ledger = ledger or OccupancyLedger()
        self.lifecycle = BookingLifecycle()
        self._locks: dict[tuple[str, date], threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._sequences: dict[date, int] = {}
        self._sequence_lock = threading.Lock()

    # --- Schedule & exceptions ---

    def get_availability(self, provider_id: str, legacy: bool = False) -> Union[AvailabilityView, dict[str, Any]]:
        """Return the provider's schedule and exceptions, creating the default schedule on first call."""
        schedule = self.schedules.get_or_create_default(provider_id)
        exceptions = self.exceptions.list_all(provider_id)
        if legacy:
            return to_legacy_availability(provider_id, schedule, exceptions)
        return AvailabilityView(provider_id=provider_id, schedule=schedule, exceptions=exceptions)

    def update_weekly_schedule(self, provider_id: str, payload: Any) -> WeeklySchedule:
        """
        Replace the provider's weekly schedule.

        Accepts a canonical or legacy schedule (model or dict). Settings
        missing from the payload are kept from the current schedule.

        Raises:
            InvalidScheduleError: On malformed, inverted or overlapping windows.
        """
        base = self.schedules.find(provider_id)
        try:
            schedule = parse_schedule_payload(payload, base)
        except ValidationError as exc:
            raise InvalidScheduleError(f"schedule payload is invalid: {exc}", field="weeklySchedule") from exc
        return self.schedules.upsert(provider_id, schedule)

    def add_exception(
        self,
        provider_id: str,
        day,
        type: ExceptionType,
        reason: str = "",
        custom_hours: Optional[Iterable[Union[TimeWindow, dict]]] = None,
        special_pricing: Optional[Union[SpecialPricing, dict]] = None,
    ) -> ExceptionEntry:
        """Add or replace the exception for one date."""
        try:
            return self.exceptions.add(
                provider_id,
                day,
                type,
                reason,
                list(custom_hours) if custom_hours else None,
                special_pricing,
            )
        except ValidationError as exc:
            raise InvalidScheduleError(f"exception payload is invalid: {exc}", str(day)) from exc

    def remove_exception(self, provider_id: str, day) -> bool:
        return self.exceptions.remove(provider_id, day)

    def list_exceptions(self, provider_id: str, start=None, end=None) -> list[ExceptionEntry]:
        """Exceptions in the inclusive range, or all of them when no range is given."""
        if start is None and end is None:
            return self.exceptions.list_all(provider_id)
        return self.exceptions.list_for_range(
            provider_id, start if start is not None else date.min, end if end is not None else date.max
        )

    def block_period(self, provider_id: str, start, end, reason: str = "") -> list[ExceptionEntry]:
        """Mark every date from start to end (inclusive) unavailable."""
        entries = self.exceptions.block_period(provider_id, start, end, reason)
        logger.info("Blocked %d day(s) for provider %s", len(entries), provider_id)
        return entries

    # --- Day resolution & slots ---

    def resolve_day(self, provider_id: str, day) -> DayView:
        """
        Resolve which windows apply on a date: the exception if there is one,
        otherwise the weekly schedule.

        Raises:
            NotFoundError: If the provider has no schedule.
        """
        return self._resolve(self.schedules.get(provider_id), provider_id, to_date(day))

    def get_day_schedule(self, provider_id: str, day) -> DayView:
        """Resolved windows for a date with their date-scoped occupancy filled in."""
        day = to_date(day)
        view = self.resolve_day(provider_id, day)
        scope = self._scope(view)
        view.windows = [
            window.model_copy(
                update={
                    "current_bookings": min(
                        window.max_concurrent_bookings,
                        window.current_bookings
                        + self.ledger.current_bookings(provider_id, day, window_key(scope, window)),
                    )
                }
            )
            for window in view.windows
        ]
        return view

    def get_available_slots(self, provider_id: str, day, duration: int) -> list[str]:
        """
        Bookable ``HH:MM`` start times for ``duration`` minutes on ``day``.

        Empty, never an error, for unknown providers, unavailable weekdays
        and blocked dates.

        Raises:
            ValueError: If duration is not positive.
        """
        if duration <= 0:
            raise ValueError(f"duration must be positive, got {duration}")
        day = to_date(day)
        schedule = self.schedules.find(provider_id)
        if schedule is None:
            logger.info("No schedule for provider %s; no slots on %s", provider_id, day)
            return []
        view = self._resolve(schedule, provider_id, day)
        if not view.is_available:
            logger.debug("Provider %s unavailable on %s (%s)", provider_id, day, view.source)
            return []
        slots = to_clock_strings(self._open_slots(schedule, view, provider_id, day, duration))
        logger.debug("Provider %s has %d slot(s) on %s for %d min", provider_id, len(slots), day, duration)
        return slots

    def check_slot_availability(self, provider_id: str, start: datetime, end: datetime) -> RangeCheck:
        """
        Check an exact interval against the provider's active bookings.

        Providers without a schedule are reported unavailable with no conflicts.
        Timezone-aware bounds are converted to local wall-clock time, the
        frame bookings are scheduled in.

        Raises:
            ValueError: If end is not after start.
        """
        start, end = _local(start), _local(end)
        if end <= start:
            raise ValueError(f"requested end {end.isoformat()} must be after start {start.isoformat()}")
        schedule = self.schedules.find(provider_id)
        if schedule is None:
            return RangeCheck(is_available=False, conflicting_bookings_count=0)
        bookings = self.bookings.overlapping_days(provider_id, start, end)
        return check_range(start, end, bookings, self._buffer(schedule))

    # --- Booking lifecycle ---

    def create_booking(
        self,
        provider_id: str,
        customer_id: str,
        service_id: str,
        scheduled_date,
        scheduled_time: str,
        duration: int,
        notes: Optional[str] = None,
        actor: Actor = Actor.CUSTOMER,
    ) -> Booking:
        """
        Create a booking for a free slot.

        The booking starts ``confirmed`` when the provider auto-accepts,
        otherwise ``pending``, and holds one unit of its window's capacity
        for that date.

        Raises:
            SlotUnavailableError: With a code saying why the slot cannot be
                booked and, where it helps, the currently free slots.
            ValueError: On malformed request fields.
        """
        request = BookingRequest(
            provider_id=provider_id,
            customer_id=customer_id,
            service_id=service_id,
            scheduled_date=to_date(scheduled_date),
            scheduled_time=scheduled_time,
            duration=duration,
            notes=notes,
        )
        day = request.scheduled_date
        schedule = self.schedules.find(provider_id)
        if schedule is None:
            raise SlotUnavailableError(
                f"Provider {provider_id} has not set up availability", SlotUnavailableError.NO_SCHEDULE
            )

        with self._day_lock(provider_id, day):
            view = self._resolve(schedule, provider_id, day)
            if view.exception is not None and view.exception.type == ExceptionType.UNAVAILABLE:
                raise SlotUnavailableError(
                    f"Provider {provider_id} is unavailable on {day}: {view.exception.reason}",
                    SlotUnavailableError.DATE_EXCEPTION,
                )
            if not view.is_available:
                raise SlotUnavailableError(
                    f"Provider {provider_id} does not work on {view.weekday.value}",
                    SlotUnavailableError.NOT_AVAILABLE_DAY,
                )

            start = at_time(day, request.scheduled_time)
            now = self._clock()
            if start < now:
                raise SlotUnavailableError(
                    f"{day} {request.scheduled_time} is in the past", SlotUnavailableError.PAST_SLOT
                )
            if start < now + timedelta(hours=schedule.min_notice_time) or start > now + timedelta(
                days=schedule.max_advance_booking
            ):
                raise SlotUnavailableError(
                    f"{day} {request.scheduled_time} is outside the booking window "
                    f"({schedule.min_notice_time}h notice, {schedule.max_advance_booking} days ahead)",
                    SlotUnavailableError.BEYOND_HORIZON,
                    self._suggest(schedule, view, provider_id, day, request.duration),
                )

            window = find_window(view.windows, start, request.duration)
            if window is None or window.is_exhausted:
                raise SlotUnavailableError(
                    f"{request.scheduled_time} for {request.duration} min is not within an open time window",
                    SlotUnavailableError.NOT_IN_SLOT,
                    self._suggest(schedule, view, provider_id, day, request.duration),
                )

            existing = self.bookings.overlapping_days(
                provider_id, start, start + timedelta(minutes=request.duration)
            )
            if not filter_candidates(
                [start], request.duration, existing, window.max_concurrent_bookings, self._buffer(schedule)
            ):
                raise SlotUnavailableError(
                    f"{day} {request.scheduled_time} conflicts with an existing booking",
                    SlotUnavailableError.CONFLICT,
                    self._suggest(schedule, view, provider_id, day, request.duration),
                )

            booking = self._new_booking(request, schedule, window_key(self._scope(view), window), actor)
            try:
                self.bookings.insert(booking, enforce_unique_start=window.max_concurrent_bookings == 1)
            except DuplicateBookingError as exc:
                raise SlotUnavailableError(
                    f"{day} {request.scheduled_time} was just taken by another booking",
                    SlotUnavailableError.RACE_LOST,
                ) from exc
            self.ledger.hold(provider_id, day, booking.window_key, booking.id, _span(booking))

        logger.info(
            "Booking %s (%s) created for provider %s on %s at %s [%s]",
            booking.booking_number, booking.id, provider_id, day, booking.scheduled_time, booking.status.value,
        )
        return booking

    def accept_booking(
        self,
        booking_id: str,
        actor: Actor = Actor.PROVIDER,
        estimated_arrival: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        return self._transition(
            booking_id, BookingTrigger.ACCEPT, actor, notes=notes, estimated_arrival=estimated_arrival
        )

    def reject_booking(self, booking_id: str, reason: str, actor: Actor = Actor.PROVIDER) -> Booking:
        return self._transition(booking_id, BookingTrigger.REJECT, actor, reason=reason)

    def start_booking(self, booking_id: str, actor: Actor = Actor.PROVIDER, notes: Optional[str] = None) -> Booking:
        return self._transition(booking_id, BookingTrigger.START, actor, notes=notes)

    def complete_booking(
        self,
        booking_id: str,
        actor: Actor = Actor.PROVIDER,
        actual_duration: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        return self._transition(
            booking_id, BookingTrigger.COMPLETE, actor, notes=notes, actual_duration=actual_duration
        )

    def cancel_booking(self, booking_id: str, actor: Actor, reason: str) -> Booking:
        return self._transition(booking_id, BookingTrigger.CANCEL, actor, reason=reason)

    def get_booking(self, booking_id: str) -> Booking:
        return self.bookings.get(booking_id)

    def list_provider_bookings(
        self,
        provider_id: str,
        statuses: Optional[Iterable[BookingStatus]] = None,
        start=None,
        end=None,
    ) -> list[Booking]:
        return self.bookings.find(
            provider_id=provider_id,
            statuses=statuses,
            start=to_date(start) if start is not None else None,
            end=to_date(end) if end is not None else None,
        )

    def list_customer_bookings(
        self,
        customer_id: str,
        statuses: Optional[Iterable[BookingStatus]] = None,
        start=None,
        end=None,
    ) -> list[Booking]:
        return self.bookings.find(
            customer_id=customer_id,
            statuses=statuses,
            start=to_date(start) if start is not None else None,
            end=to_date(end) if end is not None else None,
        )

    def reset_bookings(self) -> None:
        """Drop all bookings, capacity holds, day locks and booking-number counters."""
        self.bookings.clear()
        self.ledger.clear()
        with self._locks_guard:
            self._locks.clear()
        with self._sequence_lock:
            self._sequences.clear()

    # --- Internals ---

    def _transition(self, booking_id: str, trigger: BookingTrigger, actor: Actor, **details: Any) -> Booking:
        current = self.bookings.get(booking_id)
        with self._day_lock(current.provider_id, current.scheduled_date):
            current = self.bookings.get(booking_id)
            updated = self.lifecycle.apply(current, trigger, actor, at=_utc(self._clock()), **details)
            self.bookings.save(updated)
            if current.is_active and not updated.is_active and updated.window_key:
                self.ledger.release(
                    updated.provider_id, updated.scheduled_date, updated.window_key, updated.id
                )
        logger.info(
            "Booking %s %s -> %s by %s",
            updated.booking_number, current.status.value, updated.status.value, Actor(actor).value,
        )
        return updated

    def _resolve(self, schedule: WeeklySchedule, provider_id: str, day: date) -> DayView:
        weekday = Weekday.from_date(day)
        exception = self.exceptions.get(provider_id, day)
        if exception is not None and exception.type == ExceptionType.UNAVAILABLE:
            return DayView(date=day, weekday=weekday, is_available=False, source="exception", exception=exception)
        if exception is not None and exception.type == ExceptionType.CUSTOM_HOURS:
            return DayView(
                date=day,
                weekday=weekday,
                is_available=True,
                source="exception",
                windows=exception.custom_hours or [],
                exception=exception,
            )
        weekly = schedule.day(weekday)
        return DayView(
            date=day,
            weekday=weekday,
            is_available=weekly.is_available and bool(weekly.time_slots),
            source="weekly",
            windows=weekly.time_slots if weekly.is_available else [],
            exception=exception,
        )

    def _open_slots(
        self, schedule: WeeklySchedule, view: DayView, provider_id: str, day: date, duration: int
    ) -> list[datetime]:
        now = self._clock()
        earliest = now + timedelta(hours=schedule.min_notice_time)
        latest = now + timedelta(days=schedule.max_advance_booking)
        candidates = [
            c for c in generate(view.windows, duration, schedule.buffer_time, day) if earliest <= c <= latest
        ]
        if not candidates:
            return []

        day_start = datetime.combine(day, time())
        existing = self.bookings.overlapping_days(provider_id, day_start, day_start + timedelta(days=1))
        buffer = self._buffer(schedule)
        available = []
        for candidate in candidates:
            window = find_window(view.windows, candidate, duration)
            capacity = window.max_concurrent_bookings if window else 1
            available.extend(filter_candidates([candidate], duration, existing, capacity, buffer))
        return available

    def _suggest(
        self, schedule: WeeklySchedule, view: DayView, provider_id: str, day: date, duration: int
    ) -> list[str]:
        return to_clock_strings(self._open_slots(schedule, view, provider_id, day, duration))

    def _new_booking(self, request: BookingRequest, schedule: WeeklySchedule, key: str, actor: Actor) -> Booking:
        now = self._clock()
        created_at = _utc(now)
        if schedule.auto_accept_bookings:
            status, entry_actor, reason = BookingStatus.CONFIRMED, Actor.SYSTEM, "Auto-accepted"
        else:
            status, entry_actor, reason = BookingStatus.PENDING, Actor(actor), "Booking created"
        return Booking(
            id=f"bk_{uuid.uuid4().hex[:12]}",
            booking_number=self._next_booking_number(now.date()),
            provider_id=request.provider_id,
            customer_id=request.customer_id,
            service_id=request.service_id,
            scheduled_date=request.scheduled_date,
            scheduled_time=request.scheduled_time,
            duration=request.duration,
            window_key=key,
            status=status,
            status_history=[
                StatusEntry(status=status, timestamp=created_at, actor=entry_actor, reason=reason, notes=request.notes)
            ],
            created_at=created_at,
            updated_at=created_at,
        )

    def _next_booking_number(self, day: date) -> str:
        with self._sequence_lock:
            seq = self._sequences.get(day, 0) + 1
            self._sequences[day] = seq
        return f"{settings.booking.booking_number_prefix}-{day:%Y%m%d}-{seq:03d}"

    def _day_lock(self, provider_id: str, day: date) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault((provider_id, day), threading.Lock())

    @staticmethod
    def _scope(view: DayView) -> str:
        if view.exception is not None and view.exception.type == ExceptionType.CUSTOM_HOURS:
            return view.date.isoformat()
        return view.weekday.value

    def _buffer(self, schedule: WeeklySchedule) -> int:
        return schedule.buffer_time if self._enforce_buffer else 0


def _local(value: datetime) -> datetime:
    """Naive local wall-clock time for ``value``."""
    if value.utcoffset() is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _utc(value: datetime) -> datetime:
    # Naive clock readings are local time.
    return value.astimezone(timezone.utc)


def _span(booking: Booking) -> tuple[int, int]:
    start = parse_hhmm(booking.scheduled_time)
    return start, start + booking.duration


_default_engine: Optional[AvailabilityEngine] = None
_default_lock = threading.Lock()


def get_default_engine() -> AvailabilityEngine:
    """Process-wide engine used by the ``tools`` operation modules."""
    global _default_engine
    with _default_lock:
        if _default_engine is None:
            _default_engine = AvailabilityEngine()
        return _default_engine


def set_default_engine(engine: Optional[AvailabilityEngine]) -> None:
    """Swap the process-wide engine (None recreates it lazily). Used by tests and the demo."""
    global _default_engine
    with _default_lock:
        _default_engine = engine
