"""
Booking domain errors and their HTTP mapping.

Services raise these; routes stay thin and `register_error_handlers` turns them
into JSON responses. All of them are recoverable, per-request outcomes.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.logging_config import get_logger

logger = get_logger()


class BookingError(Exception):
    status_code = 400
    code = "booking_error"

    def __init__(self, message: str, code: str | None = None, **context):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context


class SelectionInvalid(BookingError):
    code = "selection_invalid"


class SlotConflict(BookingError):
    status_code = 409
    code = "slot_conflict"


class ReservationConflict(BookingError):
    status_code = 409
    code = "reservation_conflict"


class ReservationExpired(BookingError):
    status_code = 410
    code = "reservation_expired"


class PaymentFailure(BookingError):
    status_code = 402
    code = "payment_failed"


class PaymentVerificationFailed(BookingError):
    code = "payment_signature_invalid"


class InvalidTransition(BookingError):
    status_code = 409
    code = "invalid_transition"


class AvailabilityRuleInvalid(BookingError):
    code = "availability_rule_invalid"


class BookingNotFound(BookingError):
    status_code = 404
    code = "booking_not_found"


class StudioNotFound(BookingError):
    status_code = 404
    code = "studio_not_found"


async def booking_error_handler(request: Request, exc: BookingError):
    logger.warning(f"{exc.__class__.__name__}: {request.url} -> {exc.message}")

    body = {"detail": exc.message, "code": exc.code}
    if exc.context:
        body["context"] = exc.context

    return JSONResponse(status_code=exc.status_code, content=body)


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(BookingError, booking_error_handler)
