from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from app.db.session import Base


class BookingSlot(Base):
    """One claimed hour of a live booking; the unique key rejects double booking."""

    __tablename__ = "booking_slots"

    id = Column(Integer, primary_key=True, index=True)
    studio_id = Column(Integer, ForeignKey("studios.id"), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    slot_start = Column(DateTime, nullable=False)

    __table_args__ = (UniqueConstraint("studio_id", "slot_start", name="uq_studio_slot_start"),)
