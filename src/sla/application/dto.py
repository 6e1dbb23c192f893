"""
SLA Application DTOs
=====================

Data Transfer Objects for SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses. Following YAGNI - only what's needed.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import AwareDatetime, BaseModel, Field

from src.sla.domain import SLARecord, SLAEvent, SLAScanFailure, SLAScanResult


# ========== Type Aliases for Literals ==========
SLAEventTypeStr = Literal["SLAWarning", "SLABreached", "SLAEscalated"]


# ========== Request DTOs ==========

class SLAScanRequest(BaseModel):
    """Manual scan trigger; ``now`` defaults to the current time."""
    now: Optional[AwareDatetime] = Field(None, description="Evaluation instant (timezone-aware)")


# ========== Response DTOs ==========

class SLARecordResponse(BaseModel):
    """SLA state of one case."""
    id: str
    case_id: int
    priority: str
    started_at: datetime
    due_date: datetime
    is_breached: bool
    warning_sent: bool
    escalation_level: int
    breached_at: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, record: SLARecord) -> "SLARecordResponse":
        return cls(
            id=record.id,
            case_id=record.case_id,
            priority=record.priority,
            started_at=record.started_at,
            due_date=record.due_date,
            is_breached=record.is_breached,
            warning_sent=record.warning_sent,
            escalation_level=record.escalation_level,
            breached_at=record.breached_at,
            last_checked_at=record.last_checked_at
        )


class SLAEventResponse(BaseModel):
    event_type: SLAEventTypeStr
    sla_record_id: str
    case_id: int
    priority: str
    due_date: datetime
    occurred_at: datetime
    escalation_level: int
    channels: List[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, event: SLAEvent) -> "SLAEventResponse":
        return cls(
            event_type=event.event_type,
            sla_record_id=event.sla_record_id,
            case_id=event.case_id,
            priority=event.priority,
            due_date=event.due_date,
            occurred_at=event.occurred_at,
            escalation_level=event.escalation_level,
            channels=list(event.channels)
        )


class SLAScanFailureResponse(BaseModel):
    record_id: str
    case_id: int
    error: str

    @classmethod
    def from_domain(cls, failure: SLAScanFailure) -> "SLAScanFailureResponse":
        return cls(record_id=failure.record_id, case_id=failure.case_id, error=failure.error)


class SLAScanResponse(BaseModel):
    """Result of a manual SLA scan."""
    records_scanned: int
    events: List[SLAEventResponse]
    failures: List[SLAScanFailureResponse]

    @classmethod
    def from_domain(cls, result: SLAScanResult) -> "SLAScanResponse":
        return cls(
            records_scanned=result.records_scanned,
            events=[SLAEventResponse.from_domain(event) for event in result.events],
            failures=[SLAScanFailureResponse.from_domain(f) for f in result.failures]
        )
