"""
Workflow Application Services
==============================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, List, Optional
from uuid import uuid4

from src.config import InstanceStatus, StepOutcome, HistoryAction
from src.core import (
    ResourceNotFoundException,
    DefinitionHasNoStepsException,
    WorkflowAlreadyRunningException,
    StepMismatchException,
)
from src.shared.infrastructure.logging import get_logger
from src.workflow.domain import (
    WorkflowDefinition,
    WorkflowConfiguration,
    WorkflowInstance,
    StateHistoryEntry,
    StepResult,
    WorkflowVariables,
    HistoryMetadata,
    ConfigurationResolver,
)

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IWorkflowDefinitionRepository(ABC):
    """Interface for workflow definition data access."""

    @abstractmethod
    async def get_by_id(self, definition_id: int) -> Optional[WorkflowDefinition]:
        """Get definition by ID."""

    @abstractmethod
    async def create(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Create new definition version."""


class IWorkflowConfigurationRepository(ABC):
    """Interface for workflow configuration data access."""

    @abstractmethod
    async def find_candidates(self, service_type: str) -> List[WorkflowConfiguration]:
        """Get configurations for a service type, with their definition's active flag."""

    @abstractmethod
    async def create(self, configuration: WorkflowConfiguration) -> WorkflowConfiguration:
        """Create new configuration."""


class IWorkflowInstanceRepository(ABC):
    """Interface for workflow instance data access."""

    @abstractmethod
    async def get_by_id(self, instance_id: str) -> Optional[WorkflowInstance]:
        """Get instance by ID."""

    @abstractmethod
    async def get_running_for_case(self, case_id: int) -> Optional[WorkflowInstance]:
        """Get the running instance of a case, if any."""

    @abstractmethod
    async def create(self, instance: WorkflowInstance) -> WorkflowInstance:
        """Create new instance."""

    @abstractmethod
    async def transition(
        self,
        instance_id: str,
        expected_step_id: Optional[str],
        current_step_id: str,
        status: str,
        variables: WorkflowVariables,
        completed_at: Optional[datetime]
    ) -> bool:
        """
        Conditionally update a running instance.

        Applies only while the instance is running and, when given, still on
        ``expected_step_id``. Returns False when no row was updated.
        """


class IStateHistoryRepository(ABC):
    """Interface for the append-only workflow state history."""

    @abstractmethod
    async def append(self, entry: StateHistoryEntry) -> StateHistoryEntry:
        """Append a history entry."""

    @abstractmethod
    async def list_for_instance(self, instance_id: str) -> List[StateHistoryEntry]:
        """List entries of an instance in append order."""


# ========== Application Services ==========

class WorkflowConfigurationService:
    """
    Selects the workflow configuration for a new case.

    Candidates are pre-filtered by service type in storage; the ranking is
    done by ``ConfigurationResolver``.
    """

    def __init__(self, configuration_repository: IWorkflowConfigurationRepository):
        self._configuration_repo = configuration_repository

    async def select_configuration(
        self,
        device_type_id: Optional[int],
        customer_tier: Optional[str],
        service_type: str
    ) -> Optional[WorkflowConfiguration]:
        """
        Select the most specific active configuration.

        Returns:
            The chosen configuration, or None when nothing matches
        """
        candidates = await self._configuration_repo.find_candidates(service_type)
        selected = ConfigurationResolver.select_best(
            candidates, device_type_id, customer_tier, service_type
        )

        logger.info(
            "Workflow configuration resolved" if selected else "No workflow configuration matched",
            extra={
                "device_type_id": device_type_id,
                "customer_tier": customer_tier,
                "service_type": service_type,
                "candidates": len(candidates),
                "configuration_id": selected.id if selected else None,
            }
        )
        return selected


class WorkflowInstanceManager:
    """
    Creates and advances workflow instances.

    Every applied transition is written together with its state history
    entry in the caller's transaction.
    """

    def __init__(
        self,
        definition_repository: IWorkflowDefinitionRepository,
        instance_repository: IWorkflowInstanceRepository,
        history_repository: IStateHistoryRepository,
        clock: Callable[[], datetime] = utc_now
    ):
        self._definition_repo = definition_repository
        self._instance_repo = instance_repository
        self._history_repo = history_repository
        self._clock = clock

    async def start(
        self,
        definition_id: int,
        case_id: int,
        variables: Optional[WorkflowVariables] = None
    ) -> WorkflowInstance:
        """
        Start a workflow for a case on the definition's first step.

        Raises:
            ResourceNotFoundException: definition does not exist
            DefinitionHasNoStepsException: definition has an empty step list
            WorkflowAlreadyRunningException: case already has a running instance
        """
        definition = await self._get_definition(definition_id)

        first_step = definition.first_step
        if first_step is None:
            raise DefinitionHasNoStepsException(definition_id)

        running = await self._instance_repo.get_running_for_case(case_id)
        if running is not None:
            raise WorkflowAlreadyRunningException(case_id, running.id)

        variables = variables or WorkflowVariables()
        now = self._clock()
        instance = await self._instance_repo.create(WorkflowInstance(
            id=str(uuid4()),
            definition_id=definition_id,
            case_id=case_id,
            current_step_id=first_step.id,
            status=InstanceStatus.RUNNING,
            started_at=now,
            variables=variables
        ))

        await self._history_repo.append(StateHistoryEntry(
            instance_id=instance.id,
            from_step_id=None,
            to_step_id=first_step.id,
            action=HistoryAction.START,
            created_at=now,
            metadata=HistoryMetadata(configuration_id=variables.configuration_id)
        ))

        logger.info(
            "Workflow instance started",
            extra={
                "instance_id": instance.id,
                "case_id": case_id,
                "definition_id": definition_id,
                "step_id": first_step.id,
            }
        )
        return instance

    async def complete_step(
        self,
        instance_id: str,
        step_id: str,
        result: StepResult
    ) -> WorkflowInstance:
        """
        Complete the instance's current step and move to what follows it.

        Raises:
            ResourceNotFoundException: instance does not exist
            StepMismatchException: step is not current, the instance is not
                running, or a concurrent completion won the race
        """
        instance = await self.get_instance(instance_id)
        if not instance.is_running or instance.current_step_id != step_id:
            raise StepMismatchException(
                instance_id, step_id, instance.current_step_id, instance.status
            )

        definition = await self._get_definition(instance.definition_id)
        now = self._clock()

        if result.outcome == StepOutcome.FAILED:
            next_step = None
            status, action = InstanceStatus.FAILED, HistoryAction.FAIL
        else:
            next_step = definition.next_step(step_id, result.outcome)
            if next_step is None:
                status, action = InstanceStatus.COMPLETED, HistoryAction.COMPLETE
            else:
                status, action = InstanceStatus.RUNNING, HistoryAction.ADVANCE

        new_step_id = next_step.id if next_step else step_id
        completed_at = None if status == InstanceStatus.RUNNING else now
        variables = instance.variables.merge_output(result.output)

        applied = await self._instance_repo.transition(
            instance_id,
            expected_step_id=step_id,
            current_step_id=new_step_id,
            status=status,
            variables=variables,
            completed_at=completed_at
        )
        if not applied:
            raise StepMismatchException(
                instance_id, step_id, instance.current_step_id, instance.status
            )

        await self._history_repo.append(StateHistoryEntry(
            instance_id=instance_id,
            from_step_id=step_id,
            to_step_id=next_step.id if next_step else None,
            action=action,
            created_at=now,
            metadata=HistoryMetadata(
                outcome=result.outcome,
                notes=result.notes,
                completed_by=result.completed_by
            )
        ))

        instance.current_step_id = new_step_id
        instance.status = status
        instance.completed_at = completed_at
        instance.variables = variables

        logger.info(
            "Workflow step completed",
            extra={
                "instance_id": instance_id,
                "step_id": step_id,
                "action": action,
                "next_step_id": instance.current_step_id,
                "status": status,
            }
        )
        return instance

    async def cancel(self, instance_id: str, reason: Optional[str] = None) -> WorkflowInstance:
        """
        Cancel an instance from any step.

        Cancelling a terminal instance is a no-op.
        """
        instance = await self.get_instance(instance_id)
        if instance.is_terminal:
            return instance

        now = self._clock()
        applied = await self._instance_repo.transition(
            instance_id,
            expected_step_id=None,
            current_step_id=instance.current_step_id,
            status=InstanceStatus.CANCELLED,
            variables=instance.variables,
            completed_at=now
        )
        if not applied:
            # Terminated concurrently; report what is stored now.
            return await self.get_instance(instance_id)

        await self._history_repo.append(StateHistoryEntry(
            instance_id=instance_id,
            from_step_id=instance.current_step_id,
            to_step_id=None,
            action=HistoryAction.CANCEL,
            created_at=now,
            metadata=HistoryMetadata(reason=reason)
        ))

        instance.status = InstanceStatus.CANCELLED
        instance.completed_at = now

        logger.info(
            "Workflow instance cancelled",
            extra={"instance_id": instance_id, "reason": reason}
        )
        return instance

    async def get_instance(self, instance_id: str) -> WorkflowInstance:
        instance = await self._instance_repo.get_by_id(instance_id)
        if instance is None:
            raise ResourceNotFoundException("WorkflowInstance", instance_id)
        return instance

    async def get_running_for_case(self, case_id: int) -> WorkflowInstance:
        """The running instance of a case; at most one exists."""
        instance = await self._instance_repo.get_running_for_case(case_id)
        if instance is None:
            raise ResourceNotFoundException("RunningWorkflowInstance", str(case_id))
        return instance

    async def get_history(self, instance_id: str) -> List[StateHistoryEntry]:
        await self.get_instance(instance_id)
        return await self._history_repo.list_for_instance(instance_id)

    async def _get_definition(self, definition_id: int) -> WorkflowDefinition:
        definition = await self._definition_repo.get_by_id(definition_id)
        if definition is None:
            raise ResourceNotFoundException("WorkflowDefinition", str(definition_id))
        return definition
