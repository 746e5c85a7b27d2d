"""
Reservation countdown.

A read-only projection of a hold's expiry computed from created_at, the TTL and
the shared clock. It never writes booking state; the store-side expiry in
app.services.holds is the authority.
"""
from dataclasses import dataclass
from datetime import datetime

from app.models.booking import Booking
from app.models.enums import BookingStatus
from app.services.holds import EXPIRED_REASON, hold_expires_at
from app.services.lifecycle import is_hold

URGENT_SECONDS = 5 * 60
CRITICAL_SECONDS = 2 * 60


@dataclass(frozen=True)
class ReservationCountdown:
    booking_id: int
    status: str
    active: bool
    expires_at: datetime | None
    remaining_seconds: int
    expired: bool = False

    @property
    def minutes(self) -> int:
        return self.remaining_seconds // 60

    @property
    def seconds(self) -> int:
        return self.remaining_seconds % 60

    @property
    def urgency(self) -> str:
        if not self.active:
            return "normal"
        if self.remaining_seconds < CRITICAL_SECONDS:
            return "critical"
        if self.remaining_seconds < URGENT_SECONDS:
            return "urgent"
        return "normal"


def reservation_countdown(booking: Booking, now: datetime) -> ReservationCountdown:
    expires_at = hold_expires_at(booking.created_at)

    # Lazy expiry may already have rewritten the hold by the time it is read
    if booking.status == BookingStatus.CANCELLED.value and booking.cancellation_reason == EXPIRED_REASON:
        return ReservationCountdown(booking.id, booking.status, False, expires_at, 0, expired=True)

    if not is_hold(booking.status):
        return ReservationCountdown(booking.id, booking.status, False, None, 0)

    remaining = max(0, int((expires_at - now).total_seconds()))
    return ReservationCountdown(booking.id, booking.status, True, expires_at, remaining, expired=remaining == 0)


class ReservationTimer:
    """
    Polled countdown for one booking (about once a second on the client).

    `poll` returns the current countdown and whether the expired signal fires on
    this poll; the signal fires once.
    """

    def __init__(self, booking: Booking):
        self.booking = booking
        self._signalled = False

    def poll(self, now: datetime):
        countdown = reservation_countdown(self.booking, now)
        fire = countdown.expired and not self._signalled
        if fire:
            self._signalled = True
        return countdown, fire
