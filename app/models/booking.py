from sqlalchemy import Column, Integer, String, Date, DateTime, Float, ForeignKey, JSON, CheckConstraint, Index
from sqlalchemy.orm import relationship
from app.db.session import Base

from app.models.enums import BookingStatus


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    reference = Column(String, unique=True, nullable=False)  # BK-YYYYMMDD-NNNN
    order_id = Column(String, unique=True, nullable=True)    # gateway order

    studio_id = Column(Integer, ForeignKey("studios.id"), nullable=False, index=True)
    customer_id = Column(String, nullable=False, index=True)

    date = Column(Date, nullable=False)
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    selected_slots = Column(JSON, nullable=False)  # [10, 11, 14]

    # Value snapshots taken at creation
    services = Column(JSON, nullable=False)
    equipment = Column(JSON, nullable=False, default=list)

    status = Column(String, nullable=False, default=BookingStatus.RESERVATION_PENDING.value, index=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True)

    service_cost = Column(Float, nullable=False, default=0.0)
    equipment_cost = Column(Float, nullable=False, default=0.0)
    price = Column(Float, nullable=False)
    currency = Column(String, nullable=False, default="LKR")

    payment_id = Column(String, nullable=True)
    cancellation_reason = Column(String, nullable=True)
    refund_amount = Column(Float, nullable=False, default=0.0)
    completed_at = Column(DateTime, nullable=True)

    studio = relationship("Studio", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("end_at > start_at", name="ck_booking_end_after_start"),
        Index("ix_bookings_studio_window", "studio_id", "start_at", "end_at", "status"),
    )

    @property
    def hours(self) -> int:
        return len(self.selected_slots or [])
