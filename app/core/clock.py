"""
Single source of "now" for slot classification, hold expiry and the
reservation countdown.

All instants are naive datetimes in studio-local time, the same way bookings
are stored.
"""
from datetime import datetime, timedelta


class Clock:
    def now(self) -> datetime:
        return datetime.now().replace(microsecond=0)


class FixedClock(Clock):
    """Clock pinned to an instant; moved explicitly. Used by jobs replays and tests."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, current: datetime):
        self.current = current


system_clock = Clock()


def get_clock() -> Clock:
    return system_clock
