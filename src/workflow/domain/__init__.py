"""
Workflow Domain Layer
=====================

Domain layer for the workflow module.

Contains:
- Entities: WorkflowDefinition, WorkflowConfiguration, WorkflowInstance,
  StateHistoryEntry
- Value Objects: WorkflowVariables, HistoryMetadata
- Domain Services: ConfigurationResolver

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from src.workflow.domain.value_objects import (
    WorkflowVariables,
    HistoryMetadata,
    ConfigurationResolver,
)
from src.workflow.domain.entities import (
    WorkflowStep,
    WorkflowTransition,
    WorkflowDefinition,
    WorkflowConfiguration,
    WorkflowInstance,
    StateHistoryEntry,
    StepResult,
)

__all__ = [
    # Entities
    "WorkflowStep",
    "WorkflowTransition",
    "WorkflowDefinition",
    "WorkflowConfiguration",
    "WorkflowInstance",
    "StateHistoryEntry",
    "StepResult",
    # Value Objects & Services
    "WorkflowVariables",
    "HistoryMetadata",
    "ConfigurationResolver",
]
