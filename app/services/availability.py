"""
Availability resolver.

A studio's coverage is chosen once: studios that never declared a rule get the
default opening window, studios with at least one rule are open only where a
rule says so. Windows are (start_minute, end_minute) pairs, end exclusive, and
may overlap.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import List, Tuple

from sqlalchemy.orm import Session

from app.core.config import (
    AVAILABILITY_CACHE_TTL,
    DEFAULT_CLOSE_MINUTE,
    DEFAULT_OPEN_MINUTE,
    DEFAULT_OPEN_WEEKDAYS,
)
from app.core.errors import AvailabilityRuleInvalid
from app.core.redis import cache_key, delete_cache, get_cache, set_cache
from app.models.availability_rule import AvailabilityRule
from app.models.enums import RuleKind

MINUTES_PER_DAY = 24 * 60

Window = Tuple[int, int]


# ---------------------------------------------------------------------
# RULE SNAPSHOTS
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RuleSpec:
    kind: str
    start_minute: int
    end_minute: int
    weekdays: Tuple[int, ...] = ()
    rule_date: date | None = None

    def applies_on(self, day: date) -> bool:
        if self.kind == RuleKind.RECURRING.value:
            return day.weekday() in self.weekdays
        return self.rule_date == day

    def to_cache(self) -> dict:
        return {
            "kind": self.kind,
            "start_minute": self.start_minute,
            "end_minute": self.end_minute,
            "weekdays": list(self.weekdays),
            "rule_date": self.rule_date.isoformat() if self.rule_date else None,
        }

    @classmethod
    def from_cache(cls, data: dict) -> "RuleSpec":
        return cls(
            kind=data["kind"],
            start_minute=data["start_minute"],
            end_minute=data["end_minute"],
            weekdays=tuple(data.get("weekdays") or ()),
            rule_date=date.fromisoformat(data["rule_date"]) if data.get("rule_date") else None,
        )

    @classmethod
    def from_model(cls, rule: AvailabilityRule) -> "RuleSpec":
        return cls(
            kind=rule.kind,
            start_minute=rule.start_minute,
            end_minute=rule.end_minute,
            weekdays=tuple(rule.weekday_list),
            rule_date=rule.rule_date,
        )


# ---------------------------------------------------------------------
# COVERAGE = Default | RuleBased(rules)
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class DefaultCoverage:
    open_minute: int = DEFAULT_OPEN_MINUTE
    close_minute: int = DEFAULT_CLOSE_MINUTE
    weekdays: Tuple[int, ...] = DEFAULT_OPEN_WEEKDAYS

    kind = "default"

    def windows_for(self, day: date) -> List[Window]:
        if day.weekday() not in self.weekdays:
            return []
        return [(self.open_minute, self.close_minute)]


@dataclass(frozen=True)
class RuleBasedCoverage:
    rules: Tuple[RuleSpec, ...] = field(default_factory=tuple)

    kind = "rules"

    def windows_for(self, day: date) -> List[Window]:
        return [
            (rule.start_minute, rule.end_minute)
            for rule in self.rules
            if rule.applies_on(day)
        ]


def resolve_coverage(rules) -> DefaultCoverage | RuleBasedCoverage:
    rules = tuple(rules)
    if not rules:
        return DefaultCoverage()
    return RuleBasedCoverage(rules=rules)


def is_covered(windows: List[Window], start_minute: int, end_minute: int) -> bool:
    """True when every minute of [start_minute, end_minute) lies in some window."""
    cursor = start_minute
    for w_start, w_end in sorted(windows):
        if w_start > cursor:
            break
        if w_end > cursor:
            cursor = w_end
        if cursor >= end_minute:
            return True
    return cursor >= end_minute


# ---------------------------------------------------------------------
# STORE ACCESS
# ---------------------------------------------------------------------
def _cache_key(studio_id: int) -> str:
    return cache_key("studio", studio_id, "availability_rules")


def get_availability_rules(db: Session, studio_id: int) -> List[RuleSpec]:
    cached = get_cache(_cache_key(studio_id))
    if cached is not None:
        return [RuleSpec.from_cache(item) for item in cached]

    rules = [
        RuleSpec.from_model(rule)
        for rule in db.query(AvailabilityRule)
        .filter(AvailabilityRule.studio_id == studio_id)
        .order_by(AvailabilityRule.id)
        .all()
    ]

    set_cache(_cache_key(studio_id), [r.to_cache() for r in rules], ttl=AVAILABILITY_CACHE_TTL)
    return rules


def invalidate_rules_cache(studio_id: int):
    delete_cache(_cache_key(studio_id))


def coverage_for(db: Session, studio_id: int):
    return resolve_coverage(get_availability_rules(db, studio_id))


def windows_for(db: Session, studio_id: int, day: date) -> List[Window]:
    return coverage_for(db, studio_id).windows_for(day)


# ---------------------------------------------------------------------
# RULE WRITE VALIDATION
# ---------------------------------------------------------------------
def validate_rule(kind: str, start_minute: int, end_minute: int, weekdays=None, rule_date=None):
    """Reject malformed rules before they reach the store."""
    if kind not in (RuleKind.RECURRING.value, RuleKind.DATED.value):
        raise AvailabilityRuleInvalid(f"Unknown rule kind '{kind}'")

    if not (0 <= start_minute <= MINUTES_PER_DAY and 0 <= end_minute <= MINUTES_PER_DAY):
        raise AvailabilityRuleInvalid("Rule minutes must be within 0..1440")

    if start_minute >= end_minute:
        raise AvailabilityRuleInvalid("Rule start must be before its end")

    if kind == RuleKind.RECURRING.value:
        if not weekdays:
            raise AvailabilityRuleInvalid("Recurring rules need at least one weekday")
        if any(d < 0 or d > 6 for d in weekdays):
            raise AvailabilityRuleInvalid("Weekdays must be between 0 (Monday) and 6 (Sunday)")
    elif rule_date is None:
        raise AvailabilityRuleInvalid("Dated rules need a date")
