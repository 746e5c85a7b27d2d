"""
Booking conflict index: which existing bookings occupy a studio's day.
"""
from datetime import date, datetime, time, timedelta
from typing import List

from sqlalchemy.orm import Session

from app.models.booking import Booking
from app.services.holds import expire_stale_holds
from app.services.lifecycle import BLOCKING_STATUSES


def day_bounds(day: date):
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval intersection."""
    return start_a < end_b and end_a > start_b


def blocking_bookings_for(db: Session, studio_id: int, day: date, now: datetime) -> List[Booking]:
    # Lapsed holds are rewritten on every conflict read, never cached
    expire_stale_holds(db, now, studio_id=studio_id, day=day)

    day_start, day_end = day_bounds(day)

    return (
        db.query(Booking)
        .filter(
            Booking.studio_id == studio_id,
            Booking.status.in_([s.value for s in BLOCKING_STATUSES]),
            Booking.start_at < day_end,
            Booking.end_at > day_start,
        )
        .order_by(Booking.start_at)
        .all()
    )


def conflicting_bookings(bookings: List[Booking], start: datetime, end: datetime, exclude_id=None):
    return [
        b for b in bookings
        if b.id != exclude_id and overlaps(start, end, b.start_at, b.end_at)
    ]
