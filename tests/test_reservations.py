from datetime import date, datetime

import pytest

from app.core.errors import (
    BookingNotFound,
    InvalidTransition,
    PaymentFailure,
    ReservationConflict,
    ReservationExpired,
    SelectionInvalid,
    SlotConflict,
)
from app.jobs.reservation_sweep import run_reservation_sweep_job
from app.models.booking import Booking
from app.models.booking_slot import BookingSlot
from app.models.enums import BookingStatus, PaymentOutcome, SlotStatus
from app.models.payment_reconciliation import PaymentReconciliation
from app.services import reservations
from app.services.lifecycle import can_transition, is_blocking, transition
from app.services.slots import classify_slot

MONDAY = date(2030, 1, 7)
NEXT_WEDNESDAY = date(2030, 1, 16)


@pytest.fixture()
def reserve(db, studio, clock):
    def _reserve(hours=(10,), customer_id="customer-1", day=MONDAY, services=("Recording",), equipment_ids=()):
        return reservations.create_reservation(
            db,
            studio_id=studio.id,
            customer_id=customer_id,
            day=day,
            hours=hours,
            service_names=services,
            equipment_ids=equipment_ids,
            now=clock.now(),
        )

    return _reserve


@pytest.fixture()
def confirm(db, gateway, clock):
    def _confirm(booking, payment_id="pay_1"):
        booking, checkout = reservations.start_checkout(db, booking.id, booking.customer_id, gateway, clock.now())
        result = reservations.apply_payment_outcome(
            db, checkout.order_id, PaymentOutcome.SUCCESS, payment_id, clock.now()
        )
        return result.booking

    return _confirm


# ---------------------------------------------------------------------
# CREATE
# ---------------------------------------------------------------------
def test_create_reservation_holds_and_prices_selection(db, studio, reserve):
    equipment_id = studio.equipment[0].id

    booking = reserve(hours=(10, 11, 13), equipment_ids=[equipment_id])

    assert booking.status == BookingStatus.RESERVATION_PENDING.value
    assert booking.reference == "BK-20300107-0001"
    assert booking.start_at == datetime(2030, 1, 7, 10)
    assert booking.end_at == datetime(2030, 1, 7, 14)
    assert booking.selected_slots == [10, 11, 13]
    assert booking.service_cost == 4500.0
    assert booking.equipment_cost == 1000.0
    assert booking.price == 5500.0
    assert booking.services == [{"name": "Recording", "price": 1500.0, "duration_mins": 60}]
    assert booking.equipment[0]["tier"] == "half_day"

    # Claims cover the whole span, gap hour included
    assert db.query(BookingSlot).filter(BookingSlot.booking_id == booking.id).count() == 4


def test_references_are_sequential_per_day(reserve):
    first = reserve(hours=(10,))
    second = reserve(hours=(12,), customer_id="customer-2")

    assert first.reference == "BK-20300107-0001"
    assert second.reference == "BK-20300107-0002"


def test_reference_sequence_passes_four_digits(db, studio, reserve):
    db.add(Booking(
        reference="BK-20300107-9999",
        studio_id=studio.id,
        customer_id="someone",
        date=MONDAY,
        start_at=datetime(2030, 1, 7, 15),
        end_at=datetime(2030, 1, 7, 16),
        selected_slots=[15],
        services=[{"name": "Recording", "price": 1500.0, "duration_mins": 60}],
        equipment=[],
        status="cancelled",
        created_at=datetime(2030, 1, 7, 7),
        price=1500.0,
    ))
    db.commit()

    first = reserve(hours=(10,))
    second = reserve(hours=(12,), customer_id="customer-2")

    assert first.reference == "BK-20300107-10000"
    assert second.reference == "BK-20300107-10001"


def test_reference_taken_by_concurrent_create_is_retried(db, reserve, monkeypatch):
    reserve(hours=(10,))
    real_next_reference = reservations.next_reference
    calls = []

    def stale_then_real(session, now):
        calls.append(now)
        if len(calls) == 1:
            return "BK-20300107-0001"
        return real_next_reference(session, now)

    monkeypatch.setattr(reservations, "next_reference", stale_then_real)

    booking = reserve(hours=(12,), customer_id="customer-2")

    assert booking.reference == "BK-20300107-0002"
    assert len(calls) == 2
    assert db.query(BookingSlot).filter(BookingSlot.booking_id == booking.id).count() == 1


def test_reference_never_free_gives_up_with_conflict(db, reserve, monkeypatch):
    reserve(hours=(10,))
    monkeypatch.setattr(reservations, "next_reference", lambda session, now: "BK-20300107-0001")

    with pytest.raises(ReservationConflict):
        reserve(hours=(12,), customer_id="customer-2")

    assert db.query(Booking).count() == 1


def test_pending_hold_stays_invisible_to_browsing(db, studio, reserve, clock):
    reserve(hours=(10,))

    assert classify_slot(db, studio.id, MONDAY, 10, clock.now()).status == SlotStatus.AVAILABLE


def test_lapsed_hold_frees_the_slot(db, studio, reserve, clock):
    booking = reserve(hours=(10,))

    clock.advance(minutes=15, seconds=1)

    assert classify_slot(db, studio.id, MONDAY, 10, clock.now()).status == SlotStatus.AVAILABLE
    db.refresh(booking)
    assert booking.status == BookingStatus.CANCELLED.value
    assert booking.cancellation_reason == "reservation_expired"

    # Another customer can take it now
    other = reserve(hours=(10,), customer_id="customer-2")
    assert other.status == BookingStatus.RESERVATION_PENDING.value


def test_hold_expires_exactly_at_ttl(db, reserve, clock):
    booking = reserve(hours=(10,))

    clock.advance(minutes=14, seconds=59)
    assert reservations.get_booking(db, booking.id, clock.now()).status == BookingStatus.RESERVATION_PENDING.value

    clock.advance(seconds=1)
    assert reservations.get_booking(db, booking.id, clock.now()).status == BookingStatus.CANCELLED.value


def test_second_customer_racing_for_held_hour_gets_conflict(db, reserve):
    reserve(hours=(10,))

    with pytest.raises(SlotConflict):
        reserve(hours=(10, 11), customer_id="customer-2")

    assert db.query(Booking).count() == 1


def test_create_rejects_overlap_with_confirmed_booking(reserve, confirm):
    confirm(reserve(hours=(10, 11)))

    with pytest.raises(SlotConflict):
        reserve(hours=(11,), customer_id="customer-2")


def test_gap_hour_booked_by_someone_else_is_a_conflict(reserve, confirm):
    confirm(reserve(hours=(11,), customer_id="customer-2"))

    with pytest.raises(SlotConflict):
        reserve(hours=(10, 12))


def test_create_rejects_closed_and_past_hours(reserve, clock):
    with pytest.raises(SelectionInvalid) as exc:
        reserve(hours=(19,))
    assert exc.value.code == "slot_unavailable"

    clock.set(datetime(2030, 1, 7, 12, 30))
    with pytest.raises(SelectionInvalid) as exc:
        reserve(hours=(12,))
    assert exc.value.code == "slot_unavailable"


def test_create_validates_services_and_duration(reserve):
    with pytest.raises(SelectionInvalid) as exc:
        reserve(services=())
    assert exc.value.code == "no_service"

    with pytest.raises(SelectionInvalid) as exc:
        reserve(services=("Mastering",))
    assert exc.value.code == "unknown_service"

    with pytest.raises(SelectionInvalid) as exc:
        reserve(hours=(9, 10, 11, 12, 13, 14))
    assert exc.value.code == "max_duration_exceeded"


def test_inactive_studio_refuses_bookings(db, make_studio, clock):
    closed = make_studio(name="Closed Room", is_active=False)

    with pytest.raises(SelectionInvalid) as exc:
        reservations.create_reservation(
            db, studio_id=closed.id, customer_id="customer-1", day=MONDAY,
            hours=[10], service_names=["Recording"], now=clock.now(),
        )
    assert exc.value.code == "studio_inactive"


def test_quote_does_not_write(db, studio):
    selection, price = reservations.quote(db, studio.id, MONDAY, [10, 11], ["Recording"], [studio.equipment[0].id])

    assert selection.hours == [10, 11]
    assert price.total == 4000.0
    assert db.query(Booking).count() == 0


# ---------------------------------------------------------------------
# CHECKOUT AND PAYMENT
# ---------------------------------------------------------------------
def test_checkout_moves_hold_to_payment_pending(db, reserve, gateway, clock):
    booking = reserve(hours=(10, 11))

    booking, checkout = reservations.start_checkout(db, booking.id, "customer-1", gateway, clock.now())

    assert booking.status == BookingStatus.PAYMENT_PENDING.value
    assert booking.order_id == checkout.order_id == "order_1"
    assert checkout.amount == 3000.0
    assert checkout.line_items[0]["name"] == "Recording"


def test_repeated_checkout_resumes_the_same_order(db, reserve, gateway, clock):
    booking = reserve(hours=(10,))

    booking, first = reservations.start_checkout(db, booking.id, "customer-1", gateway, clock.now())
    booking, again = reservations.start_checkout(db, booking.id, "customer-1", gateway, clock.now())

    assert again.order_id == first.order_id == booking.order_id == "order_1"
    assert again.amount == first.amount

    result = reservations.apply_payment_outcome(db, first.order_id, PaymentOutcome.SUCCESS, "pay_1", clock.now())
    assert result.booking.status == BookingStatus.CONFIRMED.value


def test_checkout_hides_other_customers_bookings(db, reserve, gateway, clock):
    booking = reserve()

    with pytest.raises(BookingNotFound):
        reservations.start_checkout(db, booking.id, "customer-2", gateway, clock.now())


def test_checkout_after_expiry_is_rejected(db, reserve, gateway, clock):
    booking = reserve()
    clock.advance(minutes=16)

    with pytest.raises(ReservationExpired):
        reservations.start_checkout(db, booking.id, "customer-1", gateway, clock.now())


def test_successful_payment_confirms_and_blocks(db, studio, reserve, confirm, clock):
    booking = confirm(reserve(hours=(10,)), payment_id="pay_ok")

    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.payment_id == "pay_ok"
    assert classify_slot(db, studio.id, MONDAY, 10, clock.now()).status == SlotStatus.BOOKED


def test_duplicate_success_report_is_idempotent(db, reserve, confirm, clock):
    booking = confirm(reserve())

    result = reservations.apply_payment_outcome(db, booking.order_id, PaymentOutcome.SUCCESS, "pay_1", clock.now())

    assert result.applied is False
    assert result.booking.status == BookingStatus.CONFIRMED.value


def test_failed_payment_releases_hold(db, studio, reserve, gateway, clock):
    booking = reserve(hours=(10,))
    booking, checkout = reservations.start_checkout(db, booking.id, "customer-1", gateway, clock.now())

    with pytest.raises(PaymentFailure):
        reservations.apply_payment_outcome(db, checkout.order_id, PaymentOutcome.FAILURE, None, clock.now())

    db.refresh(booking)
    assert booking.status == BookingStatus.CANCELLED.value
    assert booking.cancellation_reason == "payment_failed"
    assert db.query(BookingSlot).count() == 0

    # Failure after confirmation is ignored
    other = reserve(hours=(10,), customer_id="customer-2")
    other, other_checkout = reservations.start_checkout(db, other.id, "customer-2", gateway, clock.now())
    reservations.apply_payment_outcome(db, other_checkout.order_id, PaymentOutcome.SUCCESS, "pay_2", clock.now())
    result = reservations.apply_payment_outcome(db, other_checkout.order_id, PaymentOutcome.FAILURE, None, clock.now())
    assert result.applied is False
    assert result.booking.status == BookingStatus.CONFIRMED.value


def test_late_payment_reinstates_when_slot_is_still_free(db, reserve, gateway, clock):
    booking = reserve(hours=(10,))
    booking, checkout = reservations.start_checkout(db, booking.id, "customer-1", gateway, clock.now())

    clock.advance(minutes=20)
    result = reservations.apply_payment_outcome(db, checkout.order_id, PaymentOutcome.SUCCESS, "pay_late", clock.now())

    assert result.applied is True
    assert result.booking.status == BookingStatus.CONFIRMED.value
    assert result.booking.cancellation_reason is None
    assert db.query(BookingSlot).filter(BookingSlot.booking_id == booking.id).count() == 1


def test_late_payment_for_taken_slot_is_queued_for_refund(db, reserve, confirm, gateway, clock):
    first = reserve(hours=(10,))
    first, checkout = reservations.start_checkout(db, first.id, "customer-1", gateway, clock.now())

    clock.advance(minutes=20)
    confirm(reserve(hours=(10,), customer_id="customer-2"), payment_id="pay_2")

    with pytest.raises(ReservationExpired):
        reservations.apply_payment_outcome(db, checkout.order_id, PaymentOutcome.SUCCESS, "pay_1", clock.now())

    db.refresh(first)
    assert first.status == BookingStatus.CANCELLED.value

    reconciliation = db.query(PaymentReconciliation).one()
    assert reconciliation.booking_id == first.id
    assert reconciliation.external_payment_id == "pay_1"
    assert reconciliation.status == "open"


# ---------------------------------------------------------------------
# CANCELLATION AND COMPLETION
# ---------------------------------------------------------------------
def test_customer_cancels_hold_immediately(db, studio, reserve, clock):
    booking = reserve(hours=(10,))

    booking = reservations.request_cancellation(db, booking.id, "customer-1", clock.now())

    assert booking.status == BookingStatus.CANCELLED.value
    assert booking.cancellation_reason == "cancelled_by_customer"
    assert db.query(BookingSlot).count() == 0


def test_confirmed_cancellation_needs_approval_and_refunds_by_notice(db, reserve, confirm, clock):
    booking = confirm(reserve(hours=(10, 11), day=NEXT_WEDNESDAY))

    booking = reservations.request_cancellation(db, booking.id, "customer-1", clock.now(), reason="schedule change")
    assert booking.status == BookingStatus.CANCEL_PENDING.value
    assert is_blocking(booking.status)

    booking = reservations.resolve_cancellation(db, booking, approve=True, now=clock.now())

    assert booking.status == BookingStatus.CANCELLED.value
    assert booking.cancellation_reason == "schedule change"
    assert booking.refund_amount == 3000.0
    assert db.query(BookingSlot).count() == 0


def test_rejected_cancellation_restores_confirmation(db, reserve, confirm, clock):
    booking = confirm(reserve(hours=(10,)))
    booking = reservations.request_cancellation(db, booking.id, "customer-1", clock.now())

    booking = reservations.resolve_cancellation(db, booking, approve=False, now=clock.now())

    assert booking.status == BookingStatus.CONFIRMED.value


def test_completion_only_after_session_ends(db, reserve, confirm, clock):
    booking = confirm(reserve(hours=(10,)))

    with pytest.raises(InvalidTransition):
        reservations.complete_booking(db, booking, clock.now())

    clock.set(datetime(2030, 1, 7, 11, 0))
    booking = reservations.complete_booking(db, booking, clock.now())
    assert booking.status == BookingStatus.COMPLETED.value
    assert booking.completed_at == datetime(2030, 1, 7, 11, 0)


def test_advance_sessions_moves_through_active_to_completed(db, reserve, confirm, clock):
    booking = confirm(reserve(hours=(10,)))

    clock.set(datetime(2030, 1, 7, 10, 30))
    assert reservations.advance_sessions(db, clock.now()) == (1, 0)
    db.refresh(booking)
    assert booking.status == BookingStatus.ACTIVE.value

    clock.set(datetime(2030, 1, 7, 11, 0))
    assert reservations.advance_sessions(db, clock.now()) == (0, 1)
    db.refresh(booking)
    assert booking.status == BookingStatus.COMPLETED.value


def test_sweep_job_expires_holds(db, session_factory, reserve, clock):
    booking = reserve(hours=(10,))
    booking_id = booking.id
    db.close()

    clock.advance(minutes=15)
    run_reservation_sweep_job(session_factory=session_factory, clock=clock)

    check = session_factory()
    try:
        swept = check.get(Booking, booking_id)
        assert swept.status == BookingStatus.CANCELLED.value
        assert swept.cancellation_reason == "reservation_expired"
        assert check.query(BookingSlot).count() == 0
    finally:
        check.close()


def test_terminal_statuses_cannot_move(db, reserve, clock):
    booking = reservations.request_cancellation(db, reserve().id, "customer-1", clock.now())

    assert not can_transition(BookingStatus.CANCELLED, BookingStatus.CONFIRMED)
    assert can_transition(BookingStatus.CANCELLED, BookingStatus.CONFIRMED, reinstate=True)
    assert not can_transition(BookingStatus.COMPLETED, BookingStatus.CANCELLED)

    with pytest.raises(InvalidTransition):
        transition(booking, BookingStatus.PAYMENT_PENDING, clock.now())

    with pytest.raises(InvalidTransition):
        reservations.request_cancellation(db, booking.id, "customer-1", clock.now())
