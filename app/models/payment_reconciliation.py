from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey
from app.db.session import Base

from app.models.enums import ReconciliationStatus


class PaymentReconciliation(Base):
    __tablename__ = "payment_reconciliations"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)

    order_id = Column(String, nullable=True)
    external_payment_id = Column(String, nullable=True)
    amount = Column(Float, nullable=False)
    reason = Column(String, nullable=False)

    status = Column(String, default=ReconciliationStatus.OPEN.value, nullable=False)
    created_at = Column(DateTime, nullable=False)
