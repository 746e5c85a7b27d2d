from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.clock import Clock, get_clock
from app.core.dependencies import Principal, get_db, get_optional_principal
from app.core.errors import PaymentVerificationFailed
from app.models.enums import PaymentOutcome
from app.schemas.booking import BookingOut, PaymentCallback, PaymentResultOut
from app.services import reservations
from app.services.payments import get_payment_gateway

router = APIRouter(prefix="/payments", tags=["Payments"])


# =====================================================================
# GATEWAY CALLBACK
# =====================================================================
@router.post("/callback", response_model=PaymentResultOut)
def payment_callback(
    data: PaymentCallback,
    principal: Principal | None = Depends(get_optional_principal),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gateway=Depends(get_payment_gateway),
):
    customer_id = None

    if data.outcome == PaymentOutcome.SUCCESS:
        # Success is proven by the gateway signature
        if not (data.external_payment_id and data.signature) or not gateway.verify_signature(
            data.order_id, data.external_payment_id, data.signature
        ):
            raise PaymentVerificationFailed("Invalid payment signature")
    else:
        # Failure carries no signature; only the paying customer may report it
        if principal is None:
            raise HTTPException(status_code=401, detail="Sign in to report a failed payment")
        if principal.role != "customer":
            raise HTTPException(status_code=403, detail="Only the paying customer can report a failed payment")
        customer_id = principal.id

    result = reservations.apply_payment_outcome(
        db, data.order_id, data.outcome, data.external_payment_id, clock.now(), customer_id=customer_id
    )

    return PaymentResultOut(
        booking=BookingOut.model_validate(result.booking),
        applied=result.applied,
        note=result.note,
    )
