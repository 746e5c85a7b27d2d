from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Mapping, Sequence

HALF_DAY_MAX_HOURS = 4
FULL_DAY_MAX_HOURS = 8

HALF_DAY_FACTOR = Decimal("0.5")
EXTENDED_FACTOR = Decimal("1.5")


def _money(value) -> Decimal:
    return Decimal(str(value))


def round_half_up(value) -> int:
    """Whole-unit rounding with halves going up (2000.5 -> 2001)."""
    return int(_money(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------
# EQUIPMENT SESSION TIERS
# ---------------------------------------------------------------------
def equipment_session_price(day_rate, hours: int) -> int:
    """Step function of session length; 4 and 8 hours belong to the lower tier."""
    rate = _money(day_rate)

    if hours <= HALF_DAY_MAX_HOURS:
        return round_half_up(rate * HALF_DAY_FACTOR)
    if hours <= FULL_DAY_MAX_HOURS:
        return round_half_up(rate)
    return round_half_up(rate * EXTENDED_FACTOR)


def session_tier(hours: int) -> str:
    if hours <= HALF_DAY_MAX_HOURS:
        return "half_day"
    if hours <= FULL_DAY_MAX_HOURS:
        return "full_day"
    return "extended"


# ---------------------------------------------------------------------
# BOOKING PRICE
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PriceBreakdown:
    hours: int
    service_cost: float
    equipment_cost: float
    total: float
    equipment_lines: List[dict] = field(default_factory=list)


def service_cost(services: Sequence[Mapping], hours: int) -> Decimal:
    # Service prices are quoted per booked hour
    return sum((_money(s["price"]) for s in services), Decimal("0")) * hours


def calculate_booking_price(hours: int, services: Sequence[Mapping], equipment: Sequence[Mapping] = ()) -> PriceBreakdown:
    """
    Price a selection of `hours` hourly slots.

    services:  [{"name", "price", ...}]
    equipment: [{"equipment_id", "name", "day_rate"}]
    Gaps in a non-contiguous selection are not charged.
    """
    services_total = service_cost(services, hours)

    lines = []
    equipment_total = Decimal("0")
    for item in equipment:
        session_price = equipment_session_price(item["day_rate"], hours)
        equipment_total += session_price
        lines.append({
            "equipment_id": item.get("equipment_id"),
            "name": item.get("name"),
            "day_rate": float(item["day_rate"]),
            "tier": session_tier(hours),
            "session_price": float(session_price),
        })

    total = services_total + equipment_total

    return PriceBreakdown(
        hours=hours,
        service_cost=float(round(services_total, 2)),
        equipment_cost=float(equipment_total),
        total=float(round(total, 2)),
        equipment_lines=lines,
    )


# ---------------------------------------------------------------------
# REFUNDS (approved cancellations of paid bookings)
# ---------------------------------------------------------------------
FULL_REFUND_HOURS = 168
HALF_REFUND_HOURS = 24
HALF_REFUND_FACTOR = Decimal("0.5")


def refund_amount(price, session_start: datetime, now: datetime) -> float:
    hours_until_start = (session_start - now).total_seconds() / 3600

    if hours_until_start > FULL_REFUND_HOURS:
        return float(price)
    if hours_until_start > HALF_REFUND_HOURS:
        return float(round(_money(price) * HALF_REFUND_FACTOR, 2))
    return 0.0
