from sqlalchemy import Column, Integer, String, Float, ForeignKey
from sqlalchemy.orm import relationship
from app.db.session import Base

from app.models.enums import EquipmentStatus


class Equipment(Base):
    __tablename__ = "equipment"

    id = Column(Integer, primary_key=True, index=True)
    studio_id = Column(Integer, ForeignKey("studios.id", ondelete="CASCADE"), nullable=False)

    name = Column(String, nullable=False)
    day_rate = Column(Float, nullable=False)
    status = Column(String, default=EquipmentStatus.AVAILABLE.value, nullable=False)

    studio = relationship("Studio", back_populates="equipment")
