"""
Workflow Infrastructure Repositories
=====================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database.
"""

from dataclasses import asdict
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import InstanceStatus
from src.infrastructure.database import ensure_utc
from src.workflow.application import (
    IWorkflowDefinitionRepository,
    IWorkflowConfigurationRepository,
    IWorkflowInstanceRepository,
    IStateHistoryRepository,
)
from src.workflow.domain import (
    WorkflowStep,
    WorkflowTransition,
    WorkflowDefinition,
    WorkflowConfiguration,
    WorkflowInstance,
    StateHistoryEntry,
    WorkflowVariables,
    HistoryMetadata,
)
from src.workflow.infrastructure.models import (
    WorkflowDefinitionModel,
    WorkflowConfigurationModel,
    WorkflowInstanceModel,
    StateHistoryModel,
)


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(value)
    except (ValueError, TypeError):
        return None


class SQLAlchemyWorkflowDefinitionRepository(IWorkflowDefinitionRepository):
    """SQLAlchemy implementation of workflow definition repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, definition_id: int) -> Optional[WorkflowDefinition]:
        """Get definition by ID."""
        model = await self._session.get(WorkflowDefinitionModel, definition_id)
        if model is None:
            return None
        return self._to_domain(model)

    async def create(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Create new definition version."""
        model = WorkflowDefinitionModel(
            name=definition.name,
            version=definition.version,
            is_active=definition.is_active,
            steps=[asdict(step) for step in definition.steps],
            transitions=[asdict(transition) for transition in definition.transitions]
        )

        self._session.add(model)
        await self._session.flush()

        definition.id = model.id
        return definition

    @staticmethod
    def _to_domain(model: WorkflowDefinitionModel) -> WorkflowDefinition:
        return WorkflowDefinition(
            id=model.id,
            name=model.name,
            version=model.version,
            is_active=model.is_active,
            steps=[WorkflowStep(**step) for step in model.steps or []],
            transitions=[WorkflowTransition(**t) for t in model.transitions or []]
        )


class SQLAlchemyWorkflowConfigurationRepository(IWorkflowConfigurationRepository):
    """SQLAlchemy implementation of workflow configuration repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def find_candidates(self, service_type: str) -> List[WorkflowConfiguration]:
        """Get configurations for a service type, with their definition's active flag."""
        stmt = (
            select(WorkflowConfigurationModel, WorkflowDefinitionModel.is_active)
            .join(
                WorkflowDefinitionModel,
                WorkflowConfigurationModel.workflow_definition_id == WorkflowDefinitionModel.id
            )
            .where(WorkflowConfigurationModel.service_type == service_type)
            .order_by(WorkflowConfigurationModel.id.asc())
        )
        result = await self._session.execute(stmt)

        return [
            WorkflowConfiguration(
                id=model.id,
                name=model.name,
                service_type=model.service_type,
                workflow_definition_id=model.workflow_definition_id,
                device_type_id=model.device_type_id,
                customer_tier=model.customer_tier,
                is_active=model.is_active,
                definition_is_active=definition_is_active
            )
            for model, definition_is_active in result.all()
        ]

    async def create(self, configuration: WorkflowConfiguration) -> WorkflowConfiguration:
        """Create new configuration."""
        model = WorkflowConfigurationModel(
            name=configuration.name,
            device_type_id=configuration.device_type_id,
            customer_tier=configuration.customer_tier,
            service_type=configuration.service_type,
            workflow_definition_id=configuration.workflow_definition_id,
            is_active=configuration.is_active
        )

        self._session.add(model)
        await self._session.flush()

        configuration.id = model.id
        return configuration


class SQLAlchemyWorkflowInstanceRepository(IWorkflowInstanceRepository):
    """
    SQLAlchemy implementation of workflow instance repository.

    Reads always go back to the database; nothing is cached between calls.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, instance_id: str) -> Optional[WorkflowInstance]:
        """Get instance by ID."""
        instance_uuid = _parse_uuid(instance_id)
        if instance_uuid is None:
            return None

        stmt = (
            select(WorkflowInstanceModel)
            .where(WorkflowInstanceModel.id == instance_uuid)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def get_running_for_case(self, case_id: int) -> Optional[WorkflowInstance]:
        """Get the running instance of a case, if any."""
        stmt = (
            select(WorkflowInstanceModel)
            .where(
                WorkflowInstanceModel.case_id == case_id,
                WorkflowInstanceModel.status == InstanceStatus.RUNNING
            )
            .order_by(WorkflowInstanceModel.started_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def create(self, instance: WorkflowInstance) -> WorkflowInstance:
        """Create new instance."""
        model = WorkflowInstanceModel(
            id=UUID(instance.id),
            definition_id=instance.definition_id,
            case_id=instance.case_id,
            current_step_id=instance.current_step_id,
            status=instance.status,
            variables=instance.variables.model_dump(mode="json"),
            started_at=instance.started_at,
            completed_at=instance.completed_at,
            updated_at=instance.started_at
        )

        self._session.add(model)
        await self._session.flush()

        return instance

    async def transition(
        self,
        instance_id: str,
        expected_step_id: Optional[str],
        current_step_id: str,
        status: str,
        variables: WorkflowVariables,
        completed_at: Optional[datetime]
    ) -> bool:
        """UPDATE ... WHERE status = 'running' [AND current_step_id = :expected]."""
        instance_uuid = _parse_uuid(instance_id)
        if instance_uuid is None:
            return False

        conditions = [
            WorkflowInstanceModel.id == instance_uuid,
            WorkflowInstanceModel.status == InstanceStatus.RUNNING,
        ]
        if expected_step_id is not None:
            conditions.append(WorkflowInstanceModel.current_step_id == expected_step_id)

        stmt = (
            update(WorkflowInstanceModel)
            .where(*conditions)
            .values(
                current_step_id=current_step_id,
                status=status,
                variables=variables.model_dump(mode="json"),
                completed_at=completed_at
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    def _to_domain(model: WorkflowInstanceModel) -> WorkflowInstance:
        return WorkflowInstance(
            id=str(model.id),
            definition_id=model.definition_id,
            case_id=model.case_id,
            current_step_id=model.current_step_id,
            status=model.status,
            started_at=ensure_utc(model.started_at),
            completed_at=ensure_utc(model.completed_at),
            variables=WorkflowVariables.model_validate(model.variables or {})
        )


class SQLAlchemyStateHistoryRepository(IStateHistoryRepository):
    """
    SQLAlchemy implementation of the state history.

    Exposes no update or delete.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(self, entry: StateHistoryEntry) -> StateHistoryEntry:
        """Append a history entry."""
        model = StateHistoryModel(
            instance_id=UUID(entry.instance_id),
            from_step_id=entry.from_step_id,
            to_step_id=entry.to_step_id,
            action=entry.action,
            metadata_=entry.metadata.model_dump(mode="json", exclude_none=True),
            created_at=entry.created_at
        )

        self._session.add(model)
        await self._session.flush()

        return StateHistoryEntry(
            id=model.id,
            instance_id=entry.instance_id,
            from_step_id=entry.from_step_id,
            to_step_id=entry.to_step_id,
            action=entry.action,
            created_at=entry.created_at,
            metadata=entry.metadata
        )

    async def list_for_instance(self, instance_id: str) -> List[StateHistoryEntry]:
        """List entries of an instance in append order."""
        instance_uuid = _parse_uuid(instance_id)
        if instance_uuid is None:
            return []

        stmt = (
            select(StateHistoryModel)
            .where(StateHistoryModel.instance_id == instance_uuid)
            .order_by(StateHistoryModel.id.asc())
        )
        result = await self._session.execute(stmt)

        return [
            StateHistoryEntry(
                id=model.id,
                instance_id=str(model.instance_id),
                from_step_id=model.from_step_id,
                to_step_id=model.to_step_id,
                action=model.action,
                created_at=ensure_utc(model.created_at),
                metadata=HistoryMetadata.model_validate(model.metadata_ or {})
            )
            for model in result.scalars().all()
        ]
