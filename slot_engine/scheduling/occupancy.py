"""
Date-scoped occupancy of time windows.

Windows are addressed by a stable key rather than by position in a
mutable document, and capacity is taken and given back through explicit
``hold``/``release`` calls that are recorded in an append-only audit log.
Only the booking lifecycle calls these.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from slot_engine.schemas.schedule_schema import TimeWindow

logger = logging.getLogger(__name__)

WHOLE_DAY = (0, 24 * 60)


def window_key(scope: str, window: TimeWindow) -> str:
    """Stable id of a window: ``monday@09:00-17:00`` or ``2025-03-17@10:00-14:00``."""
    return f"{scope}@{window.start_time}-{window.end_time}"


@dataclass(frozen=True)
class LedgerEntry:
    """One recorded hold or release."""

    action: str  # "hold" | "release"
    provider_id: str
    day: date
    window_key: str
    booking_id: str
    at: datetime


class OccupancyLedger:
    """
    Per provider/date/window record of the bookings currently holding capacity.

    Each hold remembers the minutes it covers, so occupancy is the largest
    number of holds that are in progress at the same moment. Back-to-back
    bookings in one window therefore occupy a single unit, matching the
    per-window capacity the conflict checks enforce.
    """

    def __init__(self) -> None:
        self._holds: dict[tuple[str, date, str], dict[str, tuple[int, int]]] = {}
        self._log: list[LedgerEntry] = []
        self._lock = threading.Lock()

    def hold(
        self,
        provider_id: str,
        day: date,
        key: str,
        booking_id: str,
        span: Optional[tuple[int, int]] = None,
    ) -> int:
        """
        Take capacity for ``booking_id``. Idempotent per booking.

        Args:
            span: ``(start, end)`` in minutes from midnight; the whole day
                when omitted.

        Returns:
            The window's occupancy after the hold.
        """
        with self._lock:
            holders = self._holds.setdefault((provider_id, day, key), {})
            if booking_id not in holders:
                holders[booking_id] = span or WHOLE_DAY
                self._record("hold", provider_id, day, key, booking_id)
            count = _peak(holders.values())
        logger.debug("Hold %s on %s %s -> %d", booking_id, day, key, count)
        return count

    def release(self, provider_id: str, day: date, key: str, booking_id: str) -> int:
        """Give back the capacity held by ``booking_id``. Releasing twice is a no-op."""
        with self._lock:
            holders = self._holds.get((provider_id, day, key), {})
            if holders.pop(booking_id, None) is not None:
                self._record("release", provider_id, day, key, booking_id)
            count = _peak(holders.values())
        logger.debug("Release %s on %s %s -> %d", booking_id, day, key, count)
        return count

    def current_bookings(self, provider_id: str, day: date, key: str) -> int:
        with self._lock:
            return _peak(self._holds.get((provider_id, day, key), {}).values())

    def history(self, provider_id: Optional[str] = None) -> list[LedgerEntry]:
        """Audit log, optionally filtered to one provider."""
        with self._lock:
            return [e for e in self._log if provider_id is None or e.provider_id == provider_id]

    def clear(self) -> None:
        with self._lock:
            self._holds.clear()
            self._log.clear()

    def _record(self, action: str, provider_id: str, day: date, key: str, booking_id: str) -> None:
        self._log.append(
            LedgerEntry(action, provider_id, day, key, booking_id, datetime.now(timezone.utc))
        )


def _peak(spans: Iterable[tuple[int, int]]) -> int:
    spans = list(spans)
    # Half-open spans: an end and a start at the same minute do not overlap.
    events = sorted([(start, 1) for start, _ in spans] + [(end, -1) for _, end in spans])
    current = peak = 0
    for _, delta in events:
        current += delta
        peak = max(peak, current)
    return peak
