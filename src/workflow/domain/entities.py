"""
Workflow Domain Entities
=========================

Pure Python domain entities for workflow orchestration.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.config import (
    InstanceStatus, StepType, StepOutcome,
    TERMINAL_INSTANCE_STATUSES, VALID_STEP_OUTCOMES
)
from src.core import InvalidWorkflowDefinitionException
from src.workflow.domain.value_objects import WorkflowVariables, HistoryMetadata


@dataclass(frozen=True)
class WorkflowStep:
    """A single step of a workflow definition."""

    id: str
    name: str
    code: Optional[str] = None
    type: str = StepType.MANUAL
    timeout_hours: Optional[float] = None
    is_end_step: bool = False

    @property
    def ends_workflow(self) -> bool:
        return self.is_end_step or self.type == StepType.END_EVENT


@dataclass(frozen=True)
class WorkflowTransition:
    """Directed edge between two steps, optionally guarded by a step outcome."""

    from_step: str
    to_step: str
    condition: Optional[str] = None

    def applies_to(self, outcome: str) -> bool:
        return not self.condition or self.condition == outcome


@dataclass
class WorkflowDefinition:
    """
    Named, versioned workflow template.

    Steps are kept in declared order. A definition referenced by a running
    instance is never edited in place; changes create a new version.
    """

    id: Optional[int]
    name: str
    version: str
    steps: List[WorkflowStep] = field(default_factory=list)
    transitions: List[WorkflowTransition] = field(default_factory=list)
    is_active: bool = True

    def __post_init__(self):
        """Validate step ids and transition endpoints."""
        seen = set()
        for step in self.steps:
            if step.id in seen:
                raise InvalidWorkflowDefinitionException(
                    f"Duplicate step id '{step.id}' in workflow '{self.name}'",
                    {"step_id": step.id}
                )
            seen.add(step.id)

        for transition in self.transitions:
            if transition.from_step not in seen or transition.to_step not in seen:
                raise InvalidWorkflowDefinitionException(
                    f"Transition {transition.from_step} -> {transition.to_step} "
                    f"references an unknown step",
                    {"from": transition.from_step, "to": transition.to_step}
                )

    @property
    def first_step(self) -> Optional[WorkflowStep]:
        """First step by declared order."""
        return self.steps[0] if self.steps else None

    def has_step(self, step_id: Optional[str]) -> bool:
        return any(step.id == step_id for step in self.steps)

    def get_step(self, step_id: str) -> Optional[WorkflowStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def next_step(self, step_id: str, outcome: str = StepOutcome.COMPLETED) -> Optional[WorkflowStep]:
        """
        Determine the step that follows ``step_id``.

        The first declared transition out of the step whose condition is empty
        or equals the outcome wins; otherwise the next step in declared order.
        Returns None when the step ends the workflow.
        """
        current = self.get_step(step_id)
        if current is None or current.ends_workflow:
            return None

        for transition in self.transitions:
            if transition.from_step == step_id and transition.applies_to(outcome):
                return self.get_step(transition.to_step)

        index = self.steps.index(current)
        if index + 1 < len(self.steps):
            return self.steps[index + 1]
        return None


@dataclass
class WorkflowConfiguration:
    """
    Rule binding (device type, customer tier, service type) to a definition.

    A None device type or customer tier is a wildcard for that dimension.
    """

    id: int
    service_type: str
    workflow_definition_id: int
    device_type_id: Optional[int] = None
    customer_tier: Optional[str] = None
    is_active: bool = True
    definition_is_active: bool = True
    name: Optional[str] = None


@dataclass
class StepResult:
    """Result reported by whoever completed a workflow step."""

    outcome: str = StepOutcome.COMPLETED
    output: Dict[str, Any] = field(default_factory=dict)
    notes: Optional[str] = None
    completed_by: Optional[str] = None

    def __post_init__(self):
        if self.outcome not in VALID_STEP_OUTCOMES:
            raise ValueError(f"Unknown step outcome: {self.outcome}")


@dataclass
class WorkflowInstance:
    """
    One run of a workflow definition for a case.

    Mutated only by step transitions; terminal once completed, failed or
    cancelled.
    """

    id: str
    definition_id: int
    case_id: int
    current_step_id: str
    status: str
    started_at: datetime
    variables: WorkflowVariables = field(default_factory=WorkflowVariables)
    completed_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self.status == InstanceStatus.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_INSTANCE_STATUSES


@dataclass(frozen=True)
class StateHistoryEntry:
    """Append-only audit record of one workflow transition."""

    instance_id: str
    from_step_id: Optional[str]
    to_step_id: Optional[str]
    action: str
    created_at: datetime
    metadata: HistoryMetadata = field(default_factory=HistoryMetadata)
    id: Optional[int] = None
