"""
Payment gateway adapter (Razorpay).

The gateway only sees a checkout request and later reports an outcome for an
order id; the reservation lifecycle owns what that outcome means.
"""
from dataclasses import dataclass, field
from typing import List

import razorpay
from razorpay.errors import SignatureVerificationError

from app.core.config import RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET
from app.core.logging_config import get_logger
from app.models.booking import Booking

logger = get_logger()


@dataclass(frozen=True)
class CheckoutRequest:
    order_id: str
    amount: float
    currency: str
    line_items: List[dict] = field(default_factory=list)
    key_id: str | None = None


def build_line_items(booking: Booking) -> List[dict]:
    hours = booking.hours
    items = [
        {
            "name": service["name"],
            "quantity": hours,
            "unit_price": service["price"],
            "amount": round(service["price"] * hours, 2),
        }
        for service in booking.services
    ]
    items += [
        {
            "name": item["name"],
            "quantity": 1,
            "unit_price": item["session_price"],
            "amount": item["session_price"],
        }
        for item in booking.equipment
    ]
    return items


class RazorpayGateway:
    def __init__(self, key_id: str = RAZORPAY_KEY_ID, key_secret: str = RAZORPAY_KEY_SECRET):
        self.key_id = key_id
        self.client = razorpay.Client(auth=(key_id, key_secret))

    def _checkout_for(self, booking: Booking, order_id: str) -> CheckoutRequest:
        return CheckoutRequest(
            order_id=order_id,
            amount=booking.price,
            currency=booking.currency,
            line_items=build_line_items(booking),
            key_id=self.key_id,
        )

    def create_checkout(self, booking: Booking) -> CheckoutRequest:
        order = self.client.order.create({
            # Razorpay amounts are in the smallest currency unit
            "amount": int(round(booking.price * 100)),
            "currency": booking.currency,
            "receipt": booking.reference,
            "notes": {
                "booking_id": str(booking.id),
                "studio_id": str(booking.studio_id),
            },
        })

        logger.bind(log_type="payment").info(
            f"Checkout created | Booking={booking.reference} | Order={order['id']} | Amount={booking.price}"
        )
        return self._checkout_for(booking, order["id"])

    def resume_checkout(self, booking: Booking) -> CheckoutRequest:
        """Checkout request for the order already issued to this booking."""
        return self._checkout_for(booking, booking.order_id)

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        try:
            self.client.utility.verify_payment_signature({
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            })
            return True
        except SignatureVerificationError:
            logger.bind(log_type="payment").warning(f"Invalid payment signature | Order={order_id}")
            return False


_gateway = None


def get_payment_gateway():
    global _gateway
    if _gateway is None:
        _gateway = RazorpayGateway()
    return _gateway
