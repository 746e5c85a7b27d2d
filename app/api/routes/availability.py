from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from datetime import date

from app.core.clock import Clock, get_clock
from app.core.dependencies import Principal, get_current_principal, get_db, require_studio_owner
from app.core.logging_config import get_logger
from app.models.availability_rule import AvailabilityRule
from app.models.studio import Studio
from app.schemas.availability import (
    AvailabilityRuleCreate,
    AvailabilityRuleOut,
    DaySlotsOut,
    SlotOut,
    WindowOut,
    WindowsOut,
)
from app.services.availability import coverage_for, invalidate_rules_cache, validate_rule
from app.services.slots import classify_slot, slots_for_day

router = APIRouter(prefix="/studios", tags=["Availability"])
logger = get_logger()


# ---------------------------------------------------------------------
# HELPERS
# ---------------------------------------------------------------------
def parse_date(date_str: str) -> date:
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format (YYYY-MM-DD)")


def get_studio_or_404(studio_id: int, db: Session) -> Studio:
    studio = db.query(Studio).filter(Studio.id == studio_id).first()
    if not studio:
        raise HTTPException(status_code=404, detail="Studio not found")
    return studio


def minute_label(minute: int) -> str:
    return f"{minute // 60:02d}:{minute % 60:02d}"


def rule_out(rule: AvailabilityRule) -> AvailabilityRuleOut:
    return AvailabilityRuleOut(
        id=rule.id,
        studio_id=rule.studio_id,
        kind=rule.kind,
        start_minute=rule.start_minute,
        end_minute=rule.end_minute,
        weekdays=rule.weekday_list,
        rule_date=rule.rule_date,
    )


def slot_out(slot) -> SlotOut:
    return SlotOut(
        hour=slot.hour,
        label=slot.label,
        start=slot.start,
        end=slot.end,
        status=slot.status,
        reason=slot.reason,
    )


# =====================================================================
# CREATE RULE (Studio owner)
# =====================================================================
@router.post("/{studio_id}/availability-rules", response_model=AvailabilityRuleOut)
def create_rule(
    studio_id: int,
    data: AvailabilityRuleCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    studio = get_studio_or_404(studio_id, db)
    require_studio_owner(principal, studio)

    validate_rule(
        data.kind.value,
        data.start_minute,
        data.end_minute,
        weekdays=data.weekdays,
        rule_date=data.rule_date,
    )

    rule = AvailabilityRule(
        studio_id=studio.id,
        kind=data.kind.value,
        weekdays=",".join(str(d) for d in data.weekdays) if data.kind.value == "recurring" else None,
        rule_date=data.rule_date if data.kind.value == "dated" else None,
        start_minute=data.start_minute,
        end_minute=data.end_minute,
    )
    db.add(rule)
    db.commit()
    db.refresh(rule)

    invalidate_rules_cache(studio.id)

    logger.bind(log_type="availability").info(
        f"Rule Created | Studio={studio.id} | Rule={rule.id} | {rule.kind} "
        f"{minute_label(rule.start_minute)}-{minute_label(rule.end_minute)}"
    )
    return rule_out(rule)


# =====================================================================
# LIST RULES
# =====================================================================
@router.get("/{studio_id}/availability-rules", response_model=list[AvailabilityRuleOut])
def list_rules(studio_id: int, db: Session = Depends(get_db)):
    get_studio_or_404(studio_id, db)

    rules = (
        db.query(AvailabilityRule)
        .filter(AvailabilityRule.studio_id == studio_id)
        .order_by(AvailabilityRule.id)
        .all()
    )
    return [rule_out(r) for r in rules]


# =====================================================================
# DELETE RULE (Studio owner)
# =====================================================================
@router.delete("/{studio_id}/availability-rules/{rule_id}")
def delete_rule(
    studio_id: int,
    rule_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    studio = get_studio_or_404(studio_id, db)
    require_studio_owner(principal, studio)

    rule = db.query(AvailabilityRule).filter(
        AvailabilityRule.id == rule_id,
        AvailabilityRule.studio_id == studio_id,
    ).first()
    if not rule:
        raise HTTPException(status_code=404, detail="Availability rule not found")

    db.delete(rule)
    db.commit()

    invalidate_rules_cache(studio.id)

    logger.bind(log_type="availability").info(f"Rule Deleted | Studio={studio.id} | Rule={rule_id}")
    return {"message": "Availability rule deleted"}


# =====================================================================
# OPEN WINDOWS FOR A DATE
# =====================================================================
@router.get("/{studio_id}/windows", response_model=WindowsOut)
def studio_windows(studio_id: int, date_str: str, db: Session = Depends(get_db)):
    target_date = parse_date(date_str)
    get_studio_or_404(studio_id, db)

    coverage = coverage_for(db, studio_id)
    windows = coverage.windows_for(target_date)

    return WindowsOut(
        studio_id=studio_id,
        date=target_date,
        coverage=coverage.kind,
        windows=[
            WindowOut(start_minute=s, end_minute=e, start=minute_label(s), end=minute_label(e))
            for s, e in sorted(windows)
        ],
    )


# =====================================================================
# HOURLY SLOT GRID
# =====================================================================
@router.get("/{studio_id}/slots", response_model=DaySlotsOut)
def studio_slots(
    studio_id: int,
    date_str: str,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    target_date = parse_date(date_str)

    slots = slots_for_day(db, studio_id, target_date, clock.now())
    db.commit()  # persist any lazily expired holds

    return DaySlotsOut(
        studio_id=studio_id,
        date=target_date,
        slots=[slot_out(s) for s in slots],
    )


@router.get("/{studio_id}/slots/{hour}", response_model=SlotOut)
def studio_slot(
    studio_id: int,
    hour: int,
    date_str: str,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    target_date = parse_date(date_str)
    if not 0 <= hour <= 23:
        raise HTTPException(status_code=400, detail="Hour must be between 0 and 23")

    slot = classify_slot(db, studio_id, target_date, hour, clock.now())
    db.commit()

    return slot_out(slot)
