"""
Booking status state machine.

    reservation_pending -> payment_pending -> confirmed -> (active ->) completed
    reservation_pending | payment_pending -> cancelled
    confirmed -> cancel_pending -> cancelled | confirmed

Every status write in the app goes through `transition`.
"""
from datetime import datetime

from app.core.errors import InvalidTransition
from app.core.logging_config import get_logger
from app.models.booking import Booking
from app.models.enums import BookingStatus as S

logger = get_logger()

TRANSITIONS = {
    S.RESERVATION_PENDING: {S.PAYMENT_PENDING, S.CANCELLED},
    S.PAYMENT_PENDING: {S.CONFIRMED, S.CANCELLED},
    S.CONFIRMED: {S.ACTIVE, S.COMPLETED, S.CANCEL_PENDING},
    S.ACTIVE: {S.COMPLETED},
    S.CANCEL_PENDING: {S.CANCELLED, S.CONFIRMED},
    S.COMPLETED: set(),
    S.CANCELLED: set(),
}

# Only the late payment handler may bring a lapsed hold back
REINSTATEMENTS = {
    S.CANCELLED: {S.CONFIRMED},
}

BLOCKING_STATUSES = frozenset({S.CONFIRMED, S.COMPLETED, S.ACTIVE, S.CANCEL_PENDING})
HOLD_STATUSES = frozenset({S.RESERVATION_PENDING, S.PAYMENT_PENDING})


def is_blocking(status) -> bool:
    """Whether a booking in this status occupies its slots for everyone else."""
    return S(status) in BLOCKING_STATUSES


def is_hold(status) -> bool:
    return S(status) in HOLD_STATUSES


def can_transition(current, target, reinstate: bool = False) -> bool:
    current, target = S(current), S(target)
    allowed = TRANSITIONS[current]
    if reinstate:
        allowed = allowed | REINSTATEMENTS.get(current, set())
    return target in allowed


def transition(booking: Booking, target, now: datetime, reason: str | None = None, reinstate: bool = False):
    current = S(booking.status)
    target = S(target)

    if not can_transition(current, target, reinstate=reinstate):
        raise InvalidTransition(
            f"Booking {booking.id} cannot move from {current.value} to {target.value}",
            booking_id=booking.id,
            status=current.value,
        )

    booking.status = target.value
    booking.updated_at = now

    if target == S.CANCELLED and reason:
        booking.cancellation_reason = reason
    if target == S.COMPLETED:
        booking.completed_at = now

    logger.bind(log_type="booking").info(
        f"Booking {booking.reference} | {current.value} -> {target.value}"
        + (f" | reason={reason}" if reason else "")
    )
    return booking
