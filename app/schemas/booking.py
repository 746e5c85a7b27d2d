from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Dict, List, Optional

from app.core.config import MAX_SLOTS_PER_BOOKING
from app.models.enums import PaymentOutcome


class SelectionIn(BaseModel):
    studio_id: int
    date: date
    hours: List[int] = Field(min_length=1)


class BookingCreate(SelectionIn):
    services: List[str] = Field(min_length=1)
    equipment_ids: List[int] = []


class SelectionCheckOut(BaseModel):
    studio_id: int
    date: date
    kept: List[int]
    dropped: Dict[int, str]
    notice: Optional[str] = None
    max_slots: int = MAX_SLOTS_PER_BOOKING


class EquipmentLineOut(BaseModel):
    equipment_id: Optional[int] = None
    name: Optional[str] = None
    day_rate: float
    tier: str
    session_price: float


class PriceQuoteOut(BaseModel):
    hours: int
    service_cost: float
    equipment_cost: float
    total: float
    equipment: List[EquipmentLineOut] = []


class ServiceSnapshot(BaseModel):
    name: str
    price: float
    duration_mins: int


class BookingOut(BaseModel):
    id: int
    reference: str
    studio_id: int
    customer_id: str
    date: date
    start_at: datetime
    end_at: datetime
    selected_slots: List[int]
    services: List[ServiceSnapshot]
    equipment: List[EquipmentLineOut] = []
    status: str
    created_at: datetime
    service_cost: float
    equipment_cost: float
    price: float
    currency: str
    order_id: Optional[str] = None
    cancellation_reason: Optional[str] = None
    refund_amount: float = 0.0

    model_config = {"from_attributes": True}


class CheckoutOut(BaseModel):
    booking: BookingOut
    order_id: str
    amount: float
    currency: str
    line_items: List[dict]
    key_id: Optional[str] = None


class PaymentCallback(BaseModel):
    order_id: str
    outcome: PaymentOutcome
    external_payment_id: Optional[str] = None
    signature: Optional[str] = None


class PaymentResultOut(BaseModel):
    booking: BookingOut
    applied: bool
    note: str


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class CancellationDecision(BaseModel):
    approve: bool


class TimerOut(BaseModel):
    booking_id: int
    status: str
    active: bool
    expires_at: Optional[datetime] = None
    remaining_seconds: int
    minutes: int
    seconds: int
    urgency: str
    expired: bool
