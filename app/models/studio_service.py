from sqlalchemy import Column, Integer, String, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.db.session import Base


class StudioService(Base):
    __tablename__ = "studio_services"

    id = Column(Integer, primary_key=True, index=True)
    studio_id = Column(Integer, ForeignKey("studios.id", ondelete="CASCADE"), nullable=False)

    name = Column(String, nullable=False)
    price = Column(Float, nullable=False)  # per booked hour
    duration_mins = Column(Integer, nullable=False, default=60)
    description = Column(String, nullable=True)

    studio = relationship("Studio", back_populates="services")

    __table_args__ = (UniqueConstraint("studio_id", "name", name="uq_studio_service_name"),)

    def snapshot(self):
        return {
            "name": self.name,
            "price": self.price,
            "duration_mins": self.duration_mins,
        }
