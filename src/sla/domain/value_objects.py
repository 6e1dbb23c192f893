"""
SLA Value Objects
==================

Immutable value objects for SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from datetime import datetime, timedelta
from typing import Dict, List

from pydantic import BaseModel, Field, field_validator

from src.config import Priority


PRIORITY_SLA_HOURS: Dict[str, int] = {
    Priority.URGENT: 4,
    Priority.HIGH: 24,
    Priority.MEDIUM: 72,
    Priority.LOW: 168,
}


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class - all SLA time arithmetic in one place. Nothing
    here reads the clock; callers pass the instants they care about.
    """

    @staticmethod
    def hours_for(priority: str) -> int:
        """Hours allowed for a priority; unknown priorities get the medium allowance."""
        return PRIORITY_SLA_HOURS.get(priority, PRIORITY_SLA_HOURS[Priority.MEDIUM])

    @staticmethod
    def compute_due_date(priority: str, created_at: datetime) -> datetime:
        """
        Calculate the SLA due date of a case.

        Example:
            priority "urgent", created 10:00 -> due 14:00 the same day
        """
        return created_at + timedelta(hours=SLACalculator.hours_for(priority))

    @staticmethod
    def allowance(started_at: datetime, due_date: datetime) -> timedelta:
        """Total time granted between start and due date."""
        return due_date - started_at

    @staticmethod
    def elapsed_percent(started_at: datetime, due_date: datetime, now: datetime) -> float:
        """
        Percentage of the allowance already used.

        A zero or negative allowance counts as fully used.
        """
        total = SLACalculator.allowance(started_at, due_date).total_seconds()
        if total <= 0:
            return 100.0
        return (now - started_at).total_seconds() / total * 100

    @staticmethod
    def hours_overdue(due_date: datetime, now: datetime) -> float:
        """Hours past the due date; negative while still in time."""
        return (now - due_date).total_seconds() / 3600


class EscalationLevelConfig(BaseModel):
    """Configuration for a single escalation level."""
    level: int = Field(ge=1, description="Escalation level (1-based)")
    after_hours_overdue: float = Field(
        default=0, ge=0, description="Hours past due date before this level is reached"
    )
    notify: List[str] = Field(default_factory=list, description="Slack channels")


def _default_escalation_levels() -> List[EscalationLevelConfig]:
    return [
        EscalationLevelConfig(level=1, after_hours_overdue=0, notify=["#repair-sla-alerts"]),
        EscalationLevelConfig(level=2, after_hours_overdue=4, notify=["#repair-sla-alerts", "#service-managers"]),
        EscalationLevelConfig(level=3, after_hours_overdue=24, notify=["#service-managers", "#operations-leads"]),
    ]


class SLAPolicy(BaseModel):
    """
    SLA monitoring policy loaded from YAML.

    Deadlines themselves come from the fixed priority table; the policy only
    tunes when warnings fire and how breaches escalate.
    """
    warning_threshold_percent: float = Field(
        default=80,
        gt=0,
        le=100,
        description="Share of the allowance used before a warning is sent"
    )
    warning_notify: List[str] = Field(
        default_factory=list,
        description="Slack channels for warnings; empty means the default channel"
    )
    escalation_levels: List[EscalationLevelConfig] = Field(
        default_factory=_default_escalation_levels,
        description="Escalation ladder applied after a breach"
    )

    @field_validator("escalation_levels")
    @classmethod
    def validate_escalation_levels(cls, v: List[EscalationLevelConfig]) -> List[EscalationLevelConfig]:
        """
        Levels must be unique and numbered 1..n, and their thresholds must
        not drop as the level rises. They are kept sorted by level.
        """
        levels = [esc.level for esc in v]
        if len(levels) != len(set(levels)):
            raise ValueError("escalation levels must be unique")
        if sorted(levels) != list(range(1, len(levels) + 1)):
            raise ValueError("escalation levels must be numbered 1..n without gaps")
        ordered = sorted(v, key=lambda esc: esc.level)
        for lower, higher in zip(ordered, ordered[1:]):
            if higher.after_hours_overdue < lower.after_hours_overdue:
                raise ValueError(
                    f"escalation level {higher.level} is reached before level {lower.level}"
                )
        return ordered

    def crossed_levels(self, hours_overdue: float) -> List[EscalationLevelConfig]:
        """Escalation levels whose overdue threshold has been reached, lowest first."""
        if hours_overdue < 0:
            return []
        return [esc for esc in self.escalation_levels if hours_overdue >= esc.after_hours_overdue]

    def get_channels_for_level(self, level: int) -> List[str]:
        """Get Slack channels to notify for given escalation level."""
        for esc in self.escalation_levels:
            if esc.level == level:
                return esc.notify
        return []
