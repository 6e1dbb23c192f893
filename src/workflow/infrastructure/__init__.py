"""
Workflow Infrastructure Layer
==============================

Infrastructure implementations for workflow orchestration:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer
"""

from src.workflow.infrastructure.models import (
    WorkflowDefinitionModel,
    WorkflowConfigurationModel,
    WorkflowInstanceModel,
    StateHistoryModel,
)
from src.workflow.infrastructure.repositories import (
    SQLAlchemyWorkflowDefinitionRepository,
    SQLAlchemyWorkflowConfigurationRepository,
    SQLAlchemyWorkflowInstanceRepository,
    SQLAlchemyStateHistoryRepository,
)

__all__ = [
    "WorkflowDefinitionModel",
    "WorkflowConfigurationModel",
    "WorkflowInstanceModel",
    "StateHistoryModel",
    "SQLAlchemyWorkflowDefinitionRepository",
    "SQLAlchemyWorkflowConfigurationRepository",
    "SQLAlchemyWorkflowInstanceRepository",
    "SQLAlchemyStateHistoryRepository",
]
