"""
Reservation holds: TTL expiry and slot claims.

A hold (reservation_pending / payment_pending) lapses RESERVATION_TTL_MINUTES
after its creation. Expiry is applied lazily before every conflict decision and
by the background sweep; both rewrite the booking as cancelled and release its
claims.
"""
from datetime import date, datetime, timedelta
from typing import Iterable, List

from sqlalchemy.orm import Session

from app.core.config import RESERVATION_TTL_MINUTES
from app.core.logging_config import get_logger
from app.models.booking import Booking
from app.models.booking_slot import BookingSlot
from app.models.enums import BookingStatus
from app.services.lifecycle import HOLD_STATUSES, transition

logger = get_logger()

HOLD_TTL = timedelta(minutes=RESERVATION_TTL_MINUTES)

EXPIRED_REASON = "reservation_expired"


def hold_expires_at(created_at: datetime) -> datetime:
    return created_at + HOLD_TTL


def is_hold_expired(booking: Booking, now: datetime) -> bool:
    if BookingStatus(booking.status) not in HOLD_STATUSES:
        return False
    return now >= hold_expires_at(booking.created_at)


# ---------------------------------------------------------------------
# CLAIMS
# ---------------------------------------------------------------------
def spanned_hours(booking: Booking) -> List[datetime]:
    starts = []
    current = booking.start_at
    while current < booking.end_at:
        starts.append(current)
        current += timedelta(hours=1)
    return starts


def claim_slots(db: Session, booking: Booking):
    """Insert one claim per spanned hour. Flushes; a taken hour raises IntegrityError."""
    db.add_all([
        BookingSlot(studio_id=booking.studio_id, booking_id=booking.id, slot_start=start)
        for start in spanned_hours(booking)
    ])
    db.flush()


def release_slots(db: Session, booking_ids: Iterable[int]):
    booking_ids = list(booking_ids)
    if not booking_ids:
        return
    db.query(BookingSlot).filter(
        BookingSlot.booking_id.in_(booking_ids)
    ).delete(synchronize_session=False)


# ---------------------------------------------------------------------
# EXPIRY
# ---------------------------------------------------------------------
def expire_stale_holds(
    db: Session,
    now: datetime,
    studio_id: int | None = None,
    day: date | None = None,
) -> List[Booking]:
    """Cancel lapsed holds (optionally scoped to one studio/day). Flushes, does not commit."""
    query = db.query(Booking).filter(
        Booking.status.in_([s.value for s in HOLD_STATUSES]),
        Booking.created_at <= now - HOLD_TTL,
    )
    if studio_id is not None:
        query = query.filter(Booking.studio_id == studio_id)
    if day is not None:
        query = query.filter(Booking.date == day)

    expired = query.all()
    for booking in expired:
        transition(booking, BookingStatus.CANCELLED, now, reason=EXPIRED_REASON)

    release_slots(db, [b.id for b in expired])
    db.flush()

    if expired:
        logger.bind(log_type="booking").info(
            f"Expired {len(expired)} reservation hold(s)"
            + (f" | studio={studio_id}" if studio_id is not None else "")
        )
    return expired


def expire_if_lapsed(db: Session, booking: Booking, now: datetime) -> bool:
    """Lazy expiry for a single booking being read. Returns True when it lapsed."""
    if not is_hold_expired(booking, now):
        return False
    transition(booking, BookingStatus.CANCELLED, now, reason=EXPIRED_REASON)
    release_slots(db, [booking.id])
    db.flush()
    return True
