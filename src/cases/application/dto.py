"""
Case Application DTOs
======================

Data Transfer Objects for the case intake API.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from src.cases.application.services import CaseCreationResult
from src.cases.domain import Case
from src.sla.application import SLARecordResponse
from src.workflow.application import WorkflowInstanceResponse


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["urgent", "high", "medium", "low"]
CaseStatusStr = Literal["open", "assigned", "in_progress", "on_hold", "completed", "cancelled"]


# ========== Request DTOs ==========

class CaseCreateRequest(BaseModel):
    """Request body for creating a repair case."""
    case_number: str = Field(..., min_length=1, max_length=50, description="Business case number")
    customer_id: int = Field(..., ge=1, description="Customer ID")
    device_id: int = Field(..., ge=1, description="Device ID")
    service_type: str = Field(..., min_length=1, max_length=50, description="Requested service type")
    priority: PriorityStr = Field(default="medium", description="Case priority")
    description: Optional[str] = Field(None, max_length=5000)


class CaseStatusUpdateRequest(BaseModel):
    """Request body for moving a case to another status."""
    status: CaseStatusStr = Field(..., description="New case status")
    reason: Optional[str] = Field(
        None, max_length=500, description="Recorded on the workflow when the case is cancelled"
    )


# ========== Response DTOs ==========

class CaseResponse(BaseModel):
    id: int
    case_number: str
    customer_id: int
    device_id: int
    service_type: str
    priority: str
    status: str
    description: Optional[str] = None
    workflow_instance_id: Optional[str] = None
    workflow_configuration_id: Optional[int] = None
    sla_id: Optional[str] = None
    sla_due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, case: Case) -> "CaseResponse":
        return cls(
            id=case.id,
            case_number=case.case_number,
            customer_id=case.customer_id,
            device_id=case.device_id,
            service_type=case.service_type,
            priority=case.priority,
            status=case.status,
            description=case.description,
            workflow_instance_id=case.workflow_instance_id,
            workflow_configuration_id=case.workflow_configuration_id,
            sla_id=case.sla_id,
            sla_due_date=case.sla_due_date,
            created_at=case.created_at,
            updated_at=case.updated_at
        )


class CaseCreatedResponse(BaseModel):
    """The created case with what was attached to it."""
    case: CaseResponse
    workflow_instance: Optional[WorkflowInstanceResponse] = None
    sla: SLARecordResponse
    warning: Optional[str] = None

    @classmethod
    def from_result(cls, result: CaseCreationResult) -> "CaseCreatedResponse":
        attachment = result.attachment
        return cls(
            case=CaseResponse.from_domain(result.case),
            workflow_instance=(
                WorkflowInstanceResponse.from_domain(attachment.instance)
                if attachment.instance else None
            ),
            sla=SLARecordResponse.from_domain(attachment.sla),
            warning=attachment.warning
        )
