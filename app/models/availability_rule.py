from sqlalchemy import Column, Integer, String, Date, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from app.db.session import Base

from app.models.enums import RuleKind


class AvailabilityRule(Base):
    __tablename__ = "availability_rules"

    id = Column(Integer, primary_key=True, index=True)
    studio_id = Column(Integer, ForeignKey("studios.id", ondelete="CASCADE"), nullable=False, index=True)

    kind = Column(String, nullable=False)  # recurring | dated

    # Recurring: "0,1,2,3,4" (Python weekday, Monday = 0)
    weekdays = Column(String, nullable=True)
    # Dated: the one calendar day the rule applies to
    rule_date = Column(Date, nullable=True)

    # Minutes from midnight, end exclusive
    start_minute = Column(Integer, nullable=False)
    end_minute = Column(Integer, nullable=False)

    studio = relationship("Studio", back_populates="availability_rules")

    __table_args__ = (
        CheckConstraint("start_minute < end_minute", name="ck_rule_start_before_end"),
    )

    @property
    def weekday_list(self):
        if not self.weekdays:
            return []
        return [int(d) for d in self.weekdays.split(",") if d != ""]

    def applies_on(self, day) -> bool:
        if self.kind == RuleKind.RECURRING.value:
            return day.weekday() in self.weekday_list
        return self.rule_date == day
