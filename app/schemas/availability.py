from pydantic import BaseModel, Field, model_validator
from datetime import date, datetime
from typing import List, Optional

from app.models.enums import RuleKind, SlotStatus


class AvailabilityRuleBase(BaseModel):
    kind: RuleKind
    start_minute: int = Field(ge=0, le=1440)
    end_minute: int = Field(ge=0, le=1440)

    # Recurring rules: Python weekdays, Monday = 0
    weekdays: List[int] = []
    # Dated rules
    rule_date: Optional[date] = None


class AvailabilityRuleCreate(AvailabilityRuleBase):
    @model_validator(mode="after")
    def normalise_weekdays(self):
        self.weekdays = sorted(set(self.weekdays))
        return self


class AvailabilityRuleOut(AvailabilityRuleBase):
    id: int
    studio_id: int

    model_config = {"from_attributes": True}


class WindowOut(BaseModel):
    start_minute: int
    end_minute: int
    start: str
    end: str


class WindowsOut(BaseModel):
    studio_id: int
    date: date
    coverage: str  # default | rules
    windows: List[WindowOut]


class SlotOut(BaseModel):
    hour: int
    label: str
    start: datetime
    end: datetime
    status: SlotStatus
    reason: str


class DaySlotsOut(BaseModel):
    studio_id: int
    date: date
    slots: List[SlotOut]
