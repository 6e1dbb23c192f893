"""
Workflow Application Layer
===========================

Application layer for the workflow module.

Contains:
- Services: configuration selection and instance lifecycle
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from src.workflow.application.dto import (
    StepCompletionRequest,
    CancelRequest,
    ConfigurationResolveRequest,
    WorkflowInstanceResponse,
    StateHistoryResponse,
    ConfigurationResponse,
    ConfigurationResolveResponse,
    InstanceHistoryResponse,
)
from src.workflow.application.services import (
    WorkflowConfigurationService,
    WorkflowInstanceManager,
    IWorkflowDefinitionRepository,
    IWorkflowConfigurationRepository,
    IWorkflowInstanceRepository,
    IStateHistoryRepository,
)

__all__ = [
    # DTOs
    "StepCompletionRequest",
    "CancelRequest",
    "ConfigurationResolveRequest",
    "WorkflowInstanceResponse",
    "StateHistoryResponse",
    "ConfigurationResponse",
    "ConfigurationResolveResponse",
    "InstanceHistoryResponse",
    # Services
    "WorkflowConfigurationService",
    "WorkflowInstanceManager",
    # Repository Interfaces
    "IWorkflowDefinitionRepository",
    "IWorkflowConfigurationRepository",
    "IWorkflowInstanceRepository",
    "IStateHistoryRepository",
]
