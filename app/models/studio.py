from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship
from app.core.config import BOOKING_CURRENCY
from app.db.session import Base


class Studio(Base):
    __tablename__ = "studios"

    id = Column(Integer, primary_key=True, index=True)

    # Owner account id from the auth service (token "sub")
    owner_id = Column(String, nullable=False, index=True)

    name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    currency = Column(String, default=BOOKING_CURRENCY, nullable=False)

    # RELATIONSHIPS -------------------------------------
    availability_rules = relationship(
        "AvailabilityRule",
        back_populates="studio",
        cascade="all, delete"
    )
    services = relationship("StudioService", back_populates="studio", cascade="all, delete")
    equipment = relationship("Equipment", back_populates="studio", cascade="all, delete")
    bookings = relationship("Booking", back_populates="studio")
