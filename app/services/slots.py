"""
Slot generator: hourly candidate slots for a studio day, each classified as
available / booked / closed / past.

Priority is fixed: past beats booked, booked beats closed. A booking made before
the studio edited its hours keeps showing as booked.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List

from sqlalchemy.orm import Session

from app.core.errors import StudioNotFound
from app.models.booking import Booking
from app.models.enums import SlotStatus
from app.models.studio import Studio
from app.services.availability import Window, is_covered, windows_for
from app.services.conflicts import blocking_bookings_for, conflicting_bookings

SLOT_MINUTES = 60
HOURS = range(0, 24)


@dataclass(frozen=True)
class SlotClassification:
    hour: int
    start: datetime
    end: datetime
    status: SlotStatus
    reason: str

    @property
    def label(self) -> str:
        return f"{self.hour:02d}:00"

    @property
    def is_available(self) -> bool:
        return self.status == SlotStatus.AVAILABLE


def slot_bounds(day: date, hour: int):
    if hour not in HOURS:
        raise ValueError(f"Hour must be within 0..23, got {hour}")
    start = datetime.combine(day, time.min) + timedelta(hours=hour)
    return start, start + timedelta(minutes=SLOT_MINUTES)


def classify(
    day: date,
    hour: int,
    now: datetime,
    windows: List[Window],
    blocking: List[Booking],
) -> SlotClassification:
    start, end = slot_bounds(day, hour)

    if start < now:
        return SlotClassification(hour, start, end, SlotStatus.PAST, "Slot start has passed")

    clashes = conflicting_bookings(blocking, start, end)
    if clashes:
        return SlotClassification(
            hour, start, end, SlotStatus.BOOKED, f"Booked ({clashes[0].status})"
        )

    start_minute = hour * 60
    if not is_covered(windows, start_minute, start_minute + SLOT_MINUTES):
        return SlotClassification(hour, start, end, SlotStatus.CLOSED, "Outside studio hours")

    return SlotClassification(hour, start, end, SlotStatus.AVAILABLE, "Open")


def _inactive_slot(day: date, hour: int, now: datetime) -> SlotClassification:
    start, end = slot_bounds(day, hour)
    if start < now:
        return SlotClassification(hour, start, end, SlotStatus.PAST, "Slot start has passed")
    return SlotClassification(hour, start, end, SlotStatus.CLOSED, "Studio is not accepting bookings")


def _require_studio(db: Session, studio_id: int) -> Studio:
    studio = db.query(Studio).filter(Studio.id == studio_id).first()
    if not studio:
        raise StudioNotFound(f"Studio {studio_id} not found")
    return studio


def classify_slot(db: Session, studio_id: int, day: date, hour: int, now: datetime) -> SlotClassification:
    slot_bounds(day, hour)
    return slots_for_day(db, studio_id, day, now)[hour]


def slots_for_day(db: Session, studio_id: int, day: date, now: datetime) -> List[SlotClassification]:
    studio = _require_studio(db, studio_id)

    if not studio.is_active:
        return [_inactive_slot(day, hour, now) for hour in HOURS]

    windows = windows_for(db, studio_id, day)
    blocking = blocking_bookings_for(db, studio_id, day, now)
    return [classify(day, hour, now, windows, blocking) for hour in HOURS]
