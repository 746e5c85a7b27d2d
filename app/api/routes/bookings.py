from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from app.core.clock import Clock, get_clock
from app.core.dependencies import (
    Principal,
    get_current_principal,
    get_db,
    require_customer,
    require_studio_owner,
)
from app.core.logging_config import get_logger
from app.models.studio import Studio
from app.schemas.booking import (
    BookingCreate,
    BookingOut,
    CancellationDecision,
    CancelRequest,
    CheckoutOut,
    PriceQuoteOut,
    SelectionCheckOut,
    SelectionIn,
    TimerOut,
)
from app.services import reservations
from app.services.payments import get_payment_gateway
from app.services.selection import SlotSelection, revalidate_selection
from app.services.timer import reservation_countdown

router = APIRouter(prefix="/bookings", tags=["Bookings"])
logger = get_logger()


def booking_for_studio_staff(booking_id: int, principal: Principal, db: Session, clock: Clock):
    booking = reservations.get_booking(db, booking_id, clock.now())
    studio = db.query(Studio).filter(Studio.id == booking.studio_id).first()
    require_studio_owner(principal, studio)
    return booking


# =====================================================================
# PRICE QUOTE
# =====================================================================
@router.post("/quote", response_model=PriceQuoteOut)
def quote_booking(data: BookingCreate, db: Session = Depends(get_db)):
    _, price = reservations.quote(
        db, data.studio_id, data.date, data.hours, data.services, data.equipment_ids
    )

    return PriceQuoteOut(
        hours=price.hours,
        service_cost=price.service_cost,
        equipment_cost=price.equipment_cost,
        total=price.total,
        equipment=price.equipment_lines,
    )


# =====================================================================
# RE-VALIDATE A SELECTION BEFORE SUBMITTING
# =====================================================================
@router.post("/selection/validate", response_model=SelectionCheckOut)
def validate_selection(
    data: SelectionIn,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    selection = SlotSelection(data.date, data.hours)
    check = revalidate_selection(db, data.studio_id, selection, clock.now())
    db.commit()

    return SelectionCheckOut(
        studio_id=data.studio_id,
        date=data.date,
        kept=check.kept,
        dropped=check.dropped,
        notice=check.notice,
        max_slots=selection.max_slots,
    )


# =====================================================================
# CREATE RESERVATION (held for payment)
# =====================================================================
@router.post("/", response_model=BookingOut, status_code=201)
def create_booking(
    data: BookingCreate,
    principal: Principal = Depends(require_customer),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return reservations.create_reservation(
        db,
        studio_id=data.studio_id,
        customer_id=principal.id,
        day=data.date,
        hours=data.hours,
        service_names=data.services,
        equipment_ids=data.equipment_ids,
        now=clock.now(),
    )


# =====================================================================
# CUSTOMER — MY BOOKINGS
# =====================================================================
@router.get("/my", response_model=list[BookingOut])
def my_bookings(
    status: Optional[str] = None,
    principal: Principal = Depends(require_customer),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return reservations.list_customer_bookings(db, principal.id, clock.now(), status=status)


# =====================================================================
# BOOKING DETAILS
# =====================================================================
@router.get("/{booking_id}", response_model=BookingOut)
def get_booking(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    if principal.role == "customer":
        return reservations.get_booking(db, booking_id, clock.now(), customer_id=principal.id)
    return booking_for_studio_staff(booking_id, principal, db, clock)


# =====================================================================
# RESERVATION COUNTDOWN
# =====================================================================
@router.get("/{booking_id}/timer", response_model=TimerOut)
def booking_timer(
    booking_id: int,
    principal: Principal = Depends(require_customer),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    now = clock.now()
    booking = reservations.get_booking(db, booking_id, now, customer_id=principal.id)
    countdown = reservation_countdown(booking, now)

    return TimerOut(
        booking_id=countdown.booking_id,
        status=countdown.status,
        active=countdown.active,
        expires_at=countdown.expires_at,
        remaining_seconds=countdown.remaining_seconds,
        minutes=countdown.minutes,
        seconds=countdown.seconds,
        urgency=countdown.urgency,
        expired=countdown.expired,
    )


# =====================================================================
# CHECKOUT
# =====================================================================
@router.post("/{booking_id}/checkout", response_model=CheckoutOut)
def checkout(
    booking_id: int,
    principal: Principal = Depends(require_customer),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gateway=Depends(get_payment_gateway),
):
    booking, request = reservations.start_checkout(db, booking_id, principal.id, gateway, clock.now())

    return CheckoutOut(
        booking=BookingOut.model_validate(booking),
        order_id=request.order_id,
        amount=request.amount,
        currency=request.currency,
        line_items=request.line_items,
        key_id=request.key_id,
    )


# =====================================================================
# CANCEL (customer)
# =====================================================================
@router.post("/{booking_id}/cancel", response_model=BookingOut)
def cancel_booking(
    booking_id: int,
    data: CancelRequest,
    principal: Principal = Depends(require_customer),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    booking = reservations.request_cancellation(db, booking_id, principal.id, clock.now(), reason=data.reason)

    logger.bind(log_type="booking").info(
        f"Cancellation requested | Booking={booking.reference} | Customer={principal.id} | Status={booking.status}"
    )
    return booking


# =====================================================================
# RESOLVE CANCELLATION (studio owner / admin)
# =====================================================================
@router.post("/{booking_id}/cancellation", response_model=BookingOut)
def resolve_cancellation(
    booking_id: int,
    data: CancellationDecision,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    booking = booking_for_studio_staff(booking_id, principal, db, clock)
    return reservations.resolve_cancellation(db, booking, data.approve, clock.now())


# =====================================================================
# COMPLETE (studio owner / admin)
# =====================================================================
@router.post("/{booking_id}/complete", response_model=BookingOut)
def complete_booking(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    booking = booking_for_studio_staff(booking_id, principal, db, clock)
    return reservations.complete_booking(db, booking, clock.now())
