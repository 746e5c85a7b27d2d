"""
Selection aggregator: the set of hours a customer picked for one studio day.

Hours need not be contiguous. The stored booking spans from the earliest
selected hour to one past the latest, while pricing counts selected hours only.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List

from sqlalchemy.orm import Session

from app.core.config import MAX_SLOTS_PER_BOOKING
from app.core.errors import SelectionInvalid
from app.services.slots import HOURS, slot_bounds, slots_for_day


class SlotSelection:
    def __init__(self, day: date, hours: Iterable[int] = (), max_slots: int = MAX_SLOTS_PER_BOOKING):
        self.day = day
        self.max_slots = max_slots
        self._hours = set()
        for hour in hours:
            self.add(hour)

    @property
    def hours(self) -> List[int]:
        return sorted(self._hours)

    @property
    def count(self) -> int:
        return len(self._hours)

    def __contains__(self, hour) -> bool:
        return hour in self._hours

    def add(self, hour: int):
        if hour not in HOURS:
            raise SelectionInvalid(f"Hour {hour} is not a bookable slot", code="invalid_hour")
        if hour in self._hours:
            return
        if self.count + 1 > self.max_slots:
            raise SelectionInvalid(
                f"Bookings are limited to {self.max_slots} hours",
                code="max_duration_exceeded",
                max_slots=self.max_slots,
            )
        self._hours.add(hour)

    def remove(self, hour: int):
        self._hours.discard(hour)

    def toggle(self, hour: int) -> bool:
        """Flip an hour in or out. Returns True when the hour ends up selected."""
        if hour in self._hours:
            self.remove(hour)
            return False
        self.add(hour)
        return True

    def span(self):
        if not self._hours:
            raise SelectionInvalid("Select at least one time slot", code="empty_selection")
        start, _ = slot_bounds(self.day, min(self._hours))
        _, end = slot_bounds(self.day, max(self._hours))
        return start, end

    def drop(self, hours: Iterable[int]) -> List[int]:
        dropped = sorted(h for h in set(hours) if h in self._hours)
        for hour in dropped:
            self._hours.discard(hour)
        return dropped

    def ensure_submittable(self, service_count: int):
        if not self._hours:
            raise SelectionInvalid("Select at least one time slot", code="empty_selection")
        if service_count < 1:
            raise SelectionInvalid("At least one service must be selected", code="no_service")
        if self.count > self.max_slots:
            raise SelectionInvalid(
                f"Bookings are limited to {self.max_slots} hours",
                code="max_duration_exceeded",
                max_slots=self.max_slots,
            )


@dataclass
class SelectionCheck:
    kept: List[int]
    dropped: Dict[int, str] = field(default_factory=dict)

    @property
    def notice(self) -> str | None:
        if not self.dropped:
            return None
        labels = ", ".join(f"{h:02d}:00" for h in sorted(self.dropped))
        return f"No longer available and removed from your selection: {labels}"


def revalidate_selection(db: Session, studio_id: int, selection: SlotSelection, now: datetime) -> SelectionCheck:
    """Drop any selected hour that is no longer available."""
    slots = slots_for_day(db, studio_id, selection.day, now)

    unavailable = {
        hour: slots[hour].reason
        for hour in selection.hours
        if not slots[hour].is_available
    }
    selection.drop(unavailable)

    return SelectionCheck(kept=selection.hours, dropped=unavailable)
