"""
SLA Domain Entities
====================

Pure Python domain entities for SLA monitoring.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional, Tuple

from src.config import SLAEventType
from src.sla.domain.value_objects import SLACalculator, SLAPolicy


@dataclass
class SLARecord:
    """
    Per-case deadline and breach tracking.

    ``is_breached`` only ever goes from False to True here, and
    ``escalation_level`` only ever grows.
    """

    id: str
    case_id: int
    priority: str
    started_at: datetime
    due_date: datetime
    is_breached: bool = False
    warning_sent: bool = False
    escalation_level: int = 0
    breached_at: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None

    def evaluate(self, now: datetime, policy: SLAPolicy) -> List["SLAEvent"]:
        """
        Apply breach, warning and escalation rules as of ``now``.

        Mutates the record and returns the events the changes produced.
        Evaluating twice with the same ``now`` yields no events the second time.
        """
        events: List[SLAEvent] = []
        self.last_checked_at = now

        if now > self.due_date and not self.is_breached:
            self.is_breached = True
            self.breached_at = now
            events.append(self._event(SLAEventType.BREACHED, now))
        elif (
            not self.is_breached
            and not self.warning_sent
            and now <= self.due_date
            and SLACalculator.elapsed_percent(self.started_at, self.due_date, now)
            >= policy.warning_threshold_percent
        ):
            self.warning_sent = True
            events.append(self._event(
                SLAEventType.WARNING, now, channels=tuple(policy.warning_notify)
            ))

        if self.is_breached:
            crossed = policy.crossed_levels(SLACalculator.hours_overdue(self.due_date, now))
            for level_config in crossed:
                if level_config.level <= self.escalation_level:
                    continue
                self.escalation_level = level_config.level
                events.append(self._event(
                    SLAEventType.ESCALATED, now, channels=tuple(level_config.notify)
                ))

        return events

    def copy(self) -> "SLARecord":
        return replace(self)

    def _event(
        self,
        event_type: str,
        now: datetime,
        channels: Tuple[str, ...] = ()
    ) -> "SLAEvent":
        return SLAEvent(
            event_type=event_type,
            sla_record_id=self.id,
            case_id=self.case_id,
            priority=self.priority,
            due_date=self.due_date,
            occurred_at=now,
            escalation_level=self.escalation_level,
            channels=channels
        )


@dataclass(frozen=True)
class SLAEvent:
    """
    Notification-worthy SLA change.

    Consumed by the notification sink; the monitor never sends anything itself.
    """
    event_type: str
    sla_record_id: str
    case_id: int
    priority: str
    due_date: datetime
    occurred_at: datetime
    escalation_level: int = 0
    channels: Tuple[str, ...] = ()

    @property
    def hours_overdue(self) -> float:
        return max(0.0, SLACalculator.hours_overdue(self.due_date, self.occurred_at))


@dataclass(frozen=True)
class SLAScanFailure:
    """A record the scan could not process."""
    record_id: str
    case_id: int
    error: str


@dataclass
class SLAScanResult:
    """Outcome of one monitor scan."""
    events: List[SLAEvent] = field(default_factory=list)
    failures: List[SLAScanFailure] = field(default_factory=list)
    records_scanned: int = 0

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)
