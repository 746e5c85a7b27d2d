"""
Reservation lifecycle: creating holds, checkout, payment outcomes,
cancellation and completion.

Each public function runs one unit of work and commits it. Booking creation is
a single check-and-insert: the studio row is locked, lapsed holds are expired,
the selection is re-classified and the booking is written together with one
claim row per spanned hour. The unique key on claims makes the first writer win
when two customers race for the same hour.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import (
    BookingNotFound,
    InvalidTransition,
    PaymentFailure,
    ReservationConflict,
    ReservationExpired,
    SelectionInvalid,
    SlotConflict,
    StudioNotFound,
)
from app.core.logging_config import get_logger
from app.models.booking import Booking
from app.models.booking_slot import BookingSlot
from app.models.enums import (
    BookingStatus,
    EquipmentStatus,
    PaymentOutcome,
    SlotStatus,
)
from app.models.equipment import Equipment
from app.models.payment_reconciliation import PaymentReconciliation
from app.models.studio import Studio
from app.models.studio_service import StudioService
from app.services.conflicts import blocking_bookings_for, conflicting_bookings
from app.services.holds import (
    EXPIRED_REASON,
    claim_slots,
    expire_if_lapsed,
    release_slots,
    spanned_hours,
)
from app.services.lifecycle import BLOCKING_STATUSES, is_hold, transition
from app.services.selection import SlotSelection
from app.services.slots import slots_for_day
from app.utils.pricing import calculate_booking_price, refund_amount

logger = get_logger()


# ---------------------------------------------------------------------
# LOOKUPS
# ---------------------------------------------------------------------
def get_booking(db: Session, booking_id: int, now: datetime, customer_id: str | None = None) -> Booking:
    """Load a booking, applying lazy hold expiry. Other customers' bookings read as missing."""
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking or (customer_id is not None and booking.customer_id != customer_id):
        raise BookingNotFound(f"Booking {booking_id} not found")

    if expire_if_lapsed(db, booking, now):
        db.commit()
    return booking


def list_customer_bookings(db: Session, customer_id: str, now: datetime, status: str | None = None) -> List[Booking]:
    bookings = (
        db.query(Booking)
        .filter(Booking.customer_id == customer_id)
        .order_by(Booking.start_at.desc())
        .all()
    )

    lapsed = [b for b in bookings if expire_if_lapsed(db, b, now)]
    if lapsed:
        db.commit()

    if status:
        bookings = [b for b in bookings if b.status == status]
    return bookings


def next_reference(db: Session, now: datetime) -> str:
    """Next BK-YYYYMMDD-NNNN for the day; the sequence is compared as a number, not text."""
    prefix = f"BK-{now:%Y%m%d}-"
    taken = (
        db.query(Booking.reference)
        .filter(Booking.reference.like(f"{prefix}%"))
        .all()
    )
    suffixes = [reference[len(prefix):] for (reference,) in taken]
    sequences = [int(s) for s in suffixes if s.isdigit()]
    return f"{prefix}{max(sequences, default=0) + 1:04d}"


# ---------------------------------------------------------------------
# CREATE (atomic check-and-insert)
# ---------------------------------------------------------------------
def _lock_studio(db: Session, studio_id: int) -> Studio:
    studio = db.query(Studio).filter(Studio.id == studio_id).with_for_update().first()
    if not studio:
        raise StudioNotFound(f"Studio {studio_id} not found")
    if not studio.is_active:
        raise SelectionInvalid("Studio is not currently accepting bookings", code="studio_inactive")
    return studio


def _service_snapshots(db: Session, studio_id: int, service_names: Iterable[str]) -> List[dict]:
    snapshots = []
    for name in dict.fromkeys(service_names):
        service = db.query(StudioService).filter(
            StudioService.studio_id == studio_id,
            StudioService.name == name,
        ).first()
        if not service:
            raise SelectionInvalid(f'Service "{name}" not available at this studio', code="unknown_service")
        snapshots.append(service.snapshot())
    return snapshots


def _equipment_snapshots(db: Session, studio_id: int, equipment_ids: Iterable[int]) -> List[dict]:
    snapshots = []
    for equipment_id in dict.fromkeys(equipment_ids):
        item = db.query(Equipment).filter(Equipment.id == equipment_id).first()
        if not item or item.studio_id != studio_id:
            raise SelectionInvalid(
                f"Equipment {equipment_id} does not belong to this studio", code="unknown_equipment"
            )
        if item.status != EquipmentStatus.AVAILABLE.value:
            raise SelectionInvalid(
                f'Equipment "{item.name}" is not available ({item.status})', code="equipment_unavailable"
            )
        snapshots.append({"equipment_id": item.id, "name": item.name, "day_rate": item.day_rate})
    return snapshots


def quote(db: Session, studio_id: int, day: date, hours: Iterable[int], service_names, equipment_ids):
    """Price a selection without writing anything."""
    if not db.query(Studio.id).filter(Studio.id == studio_id).first():
        raise StudioNotFound(f"Studio {studio_id} not found")
    selection = SlotSelection(day, hours)
    services = _service_snapshots(db, studio_id, service_names)
    selection.ensure_submittable(len(services))
    equipment = _equipment_snapshots(db, studio_id, equipment_ids)
    return selection, calculate_booking_price(selection.count, services, equipment)


REFERENCE_ATTEMPTS = 3


class _ReferenceTaken(Exception):
    """Another transaction stored the same daily reference first."""


def _insert_reservation(db: Session, studio_id, customer_id, day, hours, service_names, equipment_ids, now) -> Booking:
    studio = _lock_studio(db, studio_id)

    selection = SlotSelection(day, hours)
    services = _service_snapshots(db, studio_id, service_names)
    selection.ensure_submittable(len(services))
    equipment = _equipment_snapshots(db, studio_id, equipment_ids)

    start_at, end_at = selection.span()
    slots = slots_for_day(db, studio_id, day, now)

    spanned = range(min(selection.hours), max(selection.hours) + 1)
    if any(slots[h].status == SlotStatus.BOOKED for h in spanned):
        raise SlotConflict(
            "Selected time overlaps an existing booking",
            hours=[h for h in spanned if slots[h].status == SlotStatus.BOOKED],
        )

    unavailable = [h for h in selection.hours if not slots[h].is_available]
    if unavailable:
        raise SelectionInvalid(
            "Selected time slot is not available",
            code="slot_unavailable",
            hours=unavailable,
            reasons={h: slots[h].status.value for h in unavailable},
        )

    price = calculate_booking_price(selection.count, services, equipment)
    equipment_lines = [
        {**snap, "session_price": line["session_price"], "tier": line["tier"]}
        for snap, line in zip(equipment, price.equipment_lines)
    ]

    booking = Booking(
        reference=next_reference(db, now),
        studio_id=studio_id,
        customer_id=customer_id,
        date=day,
        start_at=start_at,
        end_at=end_at,
        selected_slots=selection.hours,
        services=services,
        equipment=equipment_lines,
        status=BookingStatus.RESERVATION_PENDING.value,
        created_at=now,
        updated_at=now,
        service_cost=price.service_cost,
        equipment_cost=price.equipment_cost,
        price=price.total,
        currency=studio.currency,
    )
    db.add(booking)
    reference = booking.reference

    # The reference is the only unique value set at insert
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise _ReferenceTaken(reference)

    try:
        claim_slots(db, booking)
    except IntegrityError:
        db.rollback()
        logger.bind(log_type="booking").info(
            f"Reservation lost race | Studio={studio_id} | Customer={customer_id} | {start_at}-{end_at}"
        )
        raise SlotConflict("Another customer is already reserving this time", hours=selection.hours)

    db.commit()
    return booking


def create_reservation(
    db: Session,
    *,
    studio_id: int,
    customer_id: str,
    day: date,
    hours: Iterable[int],
    service_names: Iterable[str],
    equipment_ids: Iterable[int] = (),
    now: datetime,
) -> Booking:
    hours, service_names, equipment_ids = list(hours), list(service_names), list(equipment_ids)

    for attempt in range(1, REFERENCE_ATTEMPTS + 1):
        try:
            booking = _insert_reservation(
                db, studio_id, customer_id, day, hours, service_names, equipment_ids, now
            )
            break
        except _ReferenceTaken as e:
            logger.bind(log_type="booking").warning(
                f"Booking reference {e} already taken | Studio={studio_id} | Attempt={attempt}"
            )
        except (SelectionInvalid, SlotConflict, StudioNotFound):
            if db.in_transaction():
                db.rollback()
            raise
    else:
        raise ReservationConflict("Could not store the reservation, please try again")

    db.refresh(booking)

    logger.bind(log_type="booking").info(
        f"Reservation Created | Booking={booking.reference} | Studio={studio_id} | "
        f"Customer={customer_id} | Hours={booking.selected_slots} | Price={booking.price}"
    )
    return booking


# ---------------------------------------------------------------------
# CHECKOUT
# ---------------------------------------------------------------------
def start_checkout(db: Session, booking_id: int, customer_id: str, gateway, now: datetime):
    booking = get_booking(db, booking_id, now, customer_id=customer_id)

    if booking.status == BookingStatus.CANCELLED.value and booking.cancellation_reason == EXPIRED_REASON:
        raise ReservationExpired(
            "Your reservation has expired. Please select the slot again.", booking_id=booking.id
        )
    if not is_hold(booking.status):
        raise InvalidTransition(
            "Booking is not available for payment", booking_id=booking.id, status=booking.status
        )

    # One gateway order per booking; asking again resumes it
    if booking.order_id:
        checkout = gateway.resume_checkout(booking)
        logger.bind(log_type="payment").info(
            f"Checkout resumed | Booking={booking.reference} | Order={booking.order_id}"
        )
        return booking, checkout

    checkout = gateway.create_checkout(booking)
    booking.order_id = checkout.order_id
    transition(booking, BookingStatus.PAYMENT_PENDING, now)
    db.commit()
    db.refresh(booking)
    return booking, checkout


# ---------------------------------------------------------------------
# PAYMENT OUTCOME
# ---------------------------------------------------------------------
@dataclass
class PaymentResult:
    booking: Booking
    applied: bool
    note: str


def apply_payment_outcome(
    db: Session,
    order_id: str,
    outcome: PaymentOutcome,
    external_payment_id: str | None,
    now: datetime,
    customer_id: str | None = None,
) -> PaymentResult:
    """customer_id, when given, restricts the report to that customer's own booking."""
    booking = (
        db.query(Booking)
        .filter(Booking.order_id == order_id)
        .with_for_update()
        .first()
    )
    if not booking or (customer_id is not None and booking.customer_id != customer_id):
        raise BookingNotFound(f"No booking for order {order_id}")

    outcome = PaymentOutcome(outcome)
    payments_log = logger.bind(log_type="payment")
    payments_log.info(
        f"Gateway report | Order={order_id} | Booking={booking.reference} | "
        f"Outcome={outcome.value} | Status={booking.status}"
    )

    if outcome == PaymentOutcome.SUCCESS:
        return _apply_success(db, booking, external_payment_id, now)

    # ---- FAILURE ----
    if is_hold(booking.status) and not expire_if_lapsed(db, booking, now):
        transition(booking, BookingStatus.CANCELLED, now, reason="payment_failed")
        release_slots(db, [booking.id])
        db.commit()
        raise PaymentFailure(
            "Payment failed and the reservation was released", booking_id=booking.id
        )

    db.commit()
    payments_log.warning(f"Failure report ignored | Booking={booking.reference} | Status={booking.status}")
    return PaymentResult(booking, applied=False, note="failure report ignored")


def _apply_success(db: Session, booking: Booking, external_payment_id: str | None, now: datetime) -> PaymentResult:
    status = BookingStatus(booking.status)

    if status in BLOCKING_STATUSES:
        if booking.payment_id and external_payment_id and booking.payment_id != external_payment_id:
            logger.bind(log_type="payment").warning(
                f"Second payment for confirmed booking | Booking={booking.reference} | "
                f"Known={booking.payment_id} | New={external_payment_id}"
            )
        return PaymentResult(booking, applied=False, note="payment already verified")

    if expire_if_lapsed(db, booking, now):
        db.commit()

    if booking.status == BookingStatus.CANCELLED.value:
        return _late_success(db, booking, external_payment_id, now)

    transition(booking, BookingStatus.CONFIRMED, now)
    booking.payment_id = external_payment_id
    db.commit()
    db.refresh(booking)

    logger.bind(log_type="payment").info(
        f"Payment verified | Booking={booking.reference} | Payment={external_payment_id}"
    )
    return PaymentResult(booking, applied=True, note="confirmed")


def _late_success(db: Session, booking: Booking, external_payment_id: str | None, now: datetime) -> PaymentResult:
    """
    Success for a booking that is already cancelled.

    Lapsed holds are reinstated when the session is still ahead and every hour is
    still free; anything else goes to the reconciliation queue for a refund.
    """
    payments_log = logger.bind(log_type="payment")

    if booking.cancellation_reason == EXPIRED_REASON and booking.start_at > now:
        blocking = blocking_bookings_for(db, booking.studio_id, booking.date, now)
        taken = db.query(BookingSlot.id).filter(
            BookingSlot.studio_id == booking.studio_id,
            BookingSlot.slot_start.in_(spanned_hours(booking)),
        ).first()

        if not conflicting_bookings(blocking, booking.start_at, booking.end_at, exclude_id=booking.id) and not taken:
            try:
                claim_slots(db, booking)
            except IntegrityError:
                db.rollback()
            else:
                transition(booking, BookingStatus.CONFIRMED, now, reinstate=True)
                booking.cancellation_reason = None
                booking.payment_id = external_payment_id
                db.commit()
                db.refresh(booking)
                payments_log.warning(
                    f"Late payment honored | Booking={booking.reference} | Payment={external_payment_id}"
                )
                return PaymentResult(booking, applied=True, note="reinstated after late payment")

    reconciliation = PaymentReconciliation(
        booking_id=booking.id,
        order_id=booking.order_id,
        external_payment_id=external_payment_id,
        amount=booking.price,
        reason=f"payment after cancellation ({booking.cancellation_reason})",
        created_at=now,
    )
    db.add(reconciliation)
    db.commit()

    payments_log.error(
        f"Late payment needs refund | Booking={booking.reference} | Payment={external_payment_id} | "
        f"Reconciliation={reconciliation.id}"
    )
    raise ReservationExpired(
        "Reservation expired before payment completed; the payment was queued for refund",
        booking_id=booking.id,
        reconciliation_id=reconciliation.id,
    )


# ---------------------------------------------------------------------
# CANCELLATION
# ---------------------------------------------------------------------
def request_cancellation(db: Session, booking_id: int, customer_id: str, now: datetime, reason: str | None = None) -> Booking:
    booking = get_booking(db, booking_id, now, customer_id=customer_id)

    if is_hold(booking.status):
        transition(booking, BookingStatus.CANCELLED, now, reason=reason or "cancelled_by_customer")
        release_slots(db, [booking.id])
    elif booking.status == BookingStatus.CONFIRMED.value:
        transition(booking, BookingStatus.CANCEL_PENDING, now)
        booking.cancellation_reason = reason
    else:
        raise InvalidTransition(
            "Booking cannot be cancelled at this time", booking_id=booking.id, status=booking.status
        )

    db.commit()
    db.refresh(booking)
    return booking


def resolve_cancellation(db: Session, booking: Booking, approve: bool, now: datetime) -> Booking:
    if booking.status != BookingStatus.CANCEL_PENDING.value:
        raise InvalidTransition(
            "Booking has no pending cancellation", booking_id=booking.id, status=booking.status
        )

    if approve:
        booking.refund_amount = refund_amount(booking.price, booking.start_at, now) if booking.payment_id else 0.0
        transition(booking, BookingStatus.CANCELLED, now, reason=booking.cancellation_reason or "cancelled")
        release_slots(db, [booking.id])
    else:
        transition(booking, BookingStatus.CONFIRMED, now)

    db.commit()
    db.refresh(booking)
    return booking


# ---------------------------------------------------------------------
# COMPLETION
# ---------------------------------------------------------------------
def complete_booking(db: Session, booking: Booking, now: datetime) -> Booking:
    if now < booking.end_at:
        raise InvalidTransition(
            "Session has not finished yet", booking_id=booking.id, status=booking.status
        )
    transition(booking, BookingStatus.COMPLETED, now)
    db.commit()
    db.refresh(booking)
    return booking


def advance_sessions(db: Session, now: datetime):
    """confirmed -> active once a session starts; confirmed/active -> completed once it ends."""
    started = db.query(Booking).filter(
        Booking.status == BookingStatus.CONFIRMED.value,
        Booking.start_at <= now,
        Booking.end_at > now,
    ).all()
    for booking in started:
        transition(booking, BookingStatus.ACTIVE, now)

    finished = db.query(Booking).filter(
        Booking.status.in_([BookingStatus.CONFIRMED.value, BookingStatus.ACTIVE.value]),
        Booking.end_at <= now,
    ).all()
    for booking in finished:
        transition(booking, BookingStatus.COMPLETED, now)

    db.commit()
    return len(started), len(finished)
