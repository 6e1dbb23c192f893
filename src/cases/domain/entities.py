"""
Case Domain Entities
=====================

Pure Python domain entities for repair cases.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from src.config import CLOSED_CASE_STATUSES, CaseStatus, Priority


@dataclass
class Case:
    """
    A customer's repair case.

    The workflow and SLA references are filled in by the orchestrator right
    after the case is inserted.
    """

    id: Optional[int]
    case_number: str
    customer_id: int
    device_id: int
    service_type: str
    created_at: datetime
    updated_at: datetime
    priority: str = Priority.MEDIUM
    status: str = CaseStatus.OPEN
    description: Optional[str] = None

    # Attachment
    workflow_instance_id: Optional[str] = None
    workflow_configuration_id: Optional[int] = None
    sla_id: Optional[str] = None
    sla_due_date: Optional[datetime] = None

    @property
    def has_workflow(self) -> bool:
        return self.workflow_instance_id is not None

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_CASE_STATUSES


@dataclass(frozen=True)
class Device:
    id: int
    device_type_id: Optional[int]
    serial_number: Optional[str] = None


@dataclass(frozen=True)
class Customer:
    id: int
    tier: Optional[str]
    name: Optional[str] = None


@dataclass(frozen=True)
class CaseContext:
    """Scalar inputs the workflow resolver needs for a case."""
    device_type_id: Optional[int]
    customer_tier: Optional[str]
    service_type: str
