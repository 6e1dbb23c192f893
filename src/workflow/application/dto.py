"""
Workflow Application DTOs
==========================

Data Transfer Objects for the workflow API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from src.workflow.domain import (
    WorkflowInstance, StateHistoryEntry, WorkflowConfiguration, StepResult
)


# ========== Type Aliases for Literals ==========
StepOutcomeStr = Literal["completed", "failed", "skipped"]
InstanceStatusStr = Literal["running", "completed", "failed", "cancelled"]


# ========== Request DTOs ==========

class StepCompletionRequest(BaseModel):
    """Request body for completing the current step."""
    outcome: StepOutcomeStr = Field(default="completed", description="Step outcome")
    output: Dict[str, Any] = Field(default_factory=dict, description="Values merged into instance variables")
    notes: Optional[str] = Field(None, max_length=2000)
    completed_by: Optional[str] = Field(None, max_length=255)

    def to_domain(self) -> StepResult:
        return StepResult(
            outcome=self.outcome,
            output=self.output,
            notes=self.notes,
            completed_by=self.completed_by
        )


class CancelRequest(BaseModel):
    """Request body for cancelling an instance."""
    reason: Optional[str] = Field(None, max_length=1000)


class ConfigurationResolveRequest(BaseModel):
    """Dry-run input for the configuration resolver."""
    device_type_id: Optional[int] = None
    customer_tier: Optional[str] = None
    service_type: str = Field(..., min_length=1)


# ========== Response DTOs ==========

class WorkflowInstanceResponse(BaseModel):
    """Response model for a workflow instance."""
    id: str
    definition_id: int
    case_id: int
    current_step_id: str
    status: InstanceStatusStr
    variables: Dict[str, Any]
    started_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, instance: WorkflowInstance) -> "WorkflowInstanceResponse":
        return cls(
            id=instance.id,
            definition_id=instance.definition_id,
            case_id=instance.case_id,
            current_step_id=instance.current_step_id,
            status=instance.status,
            variables=instance.variables.model_dump(),
            started_at=instance.started_at,
            completed_at=instance.completed_at
        )


class StateHistoryResponse(BaseModel):
    """Response model for one state history entry."""
    id: Optional[int]
    instance_id: str
    from_step_id: Optional[str]
    to_step_id: Optional[str]
    action: str
    metadata: Dict[str, Any]
    created_at: datetime

    @classmethod
    def from_domain(cls, entry: StateHistoryEntry) -> "StateHistoryResponse":
        return cls(
            id=entry.id,
            instance_id=entry.instance_id,
            from_step_id=entry.from_step_id,
            to_step_id=entry.to_step_id,
            action=entry.action,
            metadata=entry.metadata.model_dump(exclude_none=True),
            created_at=entry.created_at
        )


class ConfigurationResponse(BaseModel):
    """Response model for a workflow configuration."""
    id: int
    name: Optional[str]
    service_type: str
    device_type_id: Optional[int]
    customer_tier: Optional[str]
    workflow_definition_id: int

    @classmethod
    def from_domain(cls, configuration: WorkflowConfiguration) -> "ConfigurationResponse":
        return cls(
            id=configuration.id,
            name=configuration.name,
            service_type=configuration.service_type,
            device_type_id=configuration.device_type_id,
            customer_tier=configuration.customer_tier,
            workflow_definition_id=configuration.workflow_definition_id
        )


class ConfigurationResolveResponse(BaseModel):
    """Resolver dry-run result; configuration is None when nothing matched."""
    configuration: Optional[ConfigurationResponse] = None


class InstanceHistoryResponse(BaseModel):
    instance_id: str
    entries: List[StateHistoryResponse]
