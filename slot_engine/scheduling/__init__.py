from slot_engine.scheduling.booking_lifecycle import BookingLifecycle, BookingTrigger
from slot_engine.scheduling.booking_repository import BookingRepository
from slot_engine.scheduling.occupancy import OccupancyLedger
from slot_engine.scheduling.schedule_store import ExceptionStore, ScheduleStore

__all__ = [
    "BookingLifecycle",
    "BookingTrigger",
    "BookingRepository",
    "OccupancyLedger",
    "ScheduleStore",
    "ExceptionStore",
]
