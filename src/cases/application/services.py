"""
Case Application Services
==========================

Case intake and the orchestration that attaches a workflow and an SLA
record to every new case.

Everything here runs inside the caller's transaction: the orchestrator
never commits, so an unexpected failure rolls back the case together with
whatever was already attached to it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from src.cases.domain import Case, CaseContext, Device, Customer
from src.config import CaseStatus
from src.core import ValidationException, DefinitionHasNoStepsException, ResourceNotFoundException
from src.shared.infrastructure.logging import get_logger
from src.sla.application import SLAService
from src.sla.domain import SLARecord
from src.workflow.application import WorkflowConfigurationService, WorkflowInstanceManager
from src.workflow.domain import WorkflowConfiguration, WorkflowInstance, WorkflowVariables

logger = get_logger(__name__)

NO_CONFIGURATION_WARNING = "Case created, no workflow attached: no matching workflow configuration"
NO_STEPS_WARNING = "Workflow attached but not started: workflow definition has no steps"
CASE_CANCELLED_REASON = "case cancelled"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ICaseRepository(ABC):
    """Interface for case data access."""

    @abstractmethod
    async def create(self, case: Case) -> Case:
        """Insert a case and assign its id."""

    @abstractmethod
    async def get_by_id(self, case_id: int) -> Optional[Case]:
        """Get case by ID."""

    @abstractmethod
    async def exists_by_case_number(self, case_number: str) -> bool:
        """Check if a case number is taken."""

    @abstractmethod
    async def attach(self, case: Case) -> None:
        """Write back the workflow and SLA references of a case."""

    @abstractmethod
    async def update_status(self, case_id: int, status: str, updated_at: datetime) -> None:
        """Set the lifecycle status of a case."""


class IDeviceRepository(ABC):
    """Point lookup of devices."""

    @abstractmethod
    async def get_by_id(self, device_id: int) -> Optional[Device]:
        """Get device by ID."""


class ICustomerRepository(ABC):
    """Point lookup of customers."""

    @abstractmethod
    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        """Get customer by ID."""


# ========== Results ==========

@dataclass
class CaseWorkflowAttachment:
    """What the orchestrator attached to a new case."""
    sla: SLARecord
    instance: Optional[WorkflowInstance] = None
    configuration: Optional[WorkflowConfiguration] = None
    warning: Optional[str] = None


@dataclass
class CaseCreationResult:
    case: Case
    attachment: CaseWorkflowAttachment


# ========== Application Services ==========

class CaseOrchestrator:
    """
    Attaches a workflow instance and an SLA record to a newly created case.

    Sequence: device type and customer tier lookup, configuration
    selection, instance start, SLA record. "No configuration" and "no
    steps" are soft outcomes reported as a warning; anything else
    propagates to the caller's transaction.
    """

    def __init__(
        self,
        configuration_service: WorkflowConfigurationService,
        instance_manager: WorkflowInstanceManager,
        sla_service: SLAService,
        case_repository: ICaseRepository,
        device_repository: IDeviceRepository,
        customer_repository: ICustomerRepository
    ):
        self._configuration_service = configuration_service
        self._instance_manager = instance_manager
        self._sla_service = sla_service
        self._case_repo = case_repository
        self._device_repo = device_repository
        self._customer_repo = customer_repository

    async def resolve_context(
        self,
        customer_id: int,
        device_id: int,
        service_type: str
    ) -> CaseContext:
        """
        Look up the device type and customer tier for a case.

        Raises:
            ValidationException: device or customer does not exist
        """
        device = await self._device_repo.get_by_id(device_id)
        if device is None:
            raise ValidationException(
                f"Device {device_id} does not exist",
                details={"field": "device_id", "value": device_id}
            )

        customer = await self._customer_repo.get_by_id(customer_id)
        if customer is None:
            raise ValidationException(
                f"Customer {customer_id} does not exist",
                details={"field": "customer_id", "value": customer_id}
            )

        return CaseContext(
            device_type_id=device.device_type_id,
            customer_tier=customer.tier,
            service_type=service_type
        )

    async def on_case_created(
        self,
        case: Case,
        context: Optional[CaseContext] = None
    ) -> CaseWorkflowAttachment:
        """
        Attach workflow and SLA to an inserted case.

        The case is updated in place with the attached references.
        """
        if context is None:
            context = await self.resolve_context(case.customer_id, case.device_id, case.service_type)

        configuration = await self._configuration_service.select_configuration(
            context.device_type_id, context.customer_tier, context.service_type
        )

        instance = None
        warning = None
        if configuration is None:
            warning = NO_CONFIGURATION_WARNING
        else:
            try:
                instance = await self._instance_manager.start(
                    configuration.workflow_definition_id,
                    case.id,
                    WorkflowVariables(
                        configuration_id=configuration.id,
                        service_type=context.service_type,
                        priority=case.priority,
                        device_type_id=context.device_type_id,
                        customer_tier=context.customer_tier
                    )
                )
            except DefinitionHasNoStepsException:
                warning = NO_STEPS_WARNING

        sla = await self._sla_service.create_for_case(case.id, case.priority, case.created_at)

        case.workflow_instance_id = instance.id if instance else None
        case.workflow_configuration_id = configuration.id if configuration else None
        case.sla_id = sla.id
        case.sla_due_date = sla.due_date
        await self._case_repo.attach(case)

        if warning:
            logger.warning(
                warning,
                extra={
                    "case_id": case.id,
                    "configuration_id": case.workflow_configuration_id,
                    "service_type": context.service_type,
                }
            )

        return CaseWorkflowAttachment(
            sla=sla,
            instance=instance,
            configuration=configuration,
            warning=warning
        )

    async def on_case_cancelled(
        self,
        case: Case,
        reason: Optional[str] = None
    ) -> Optional[WorkflowInstance]:
        """Cancel the running workflow of a cancelled case, if there is one."""
        if not case.has_workflow:
            return None
        try:
            running = await self._instance_manager.get_running_for_case(case.id)
        except ResourceNotFoundException:
            return None
        return await self._instance_manager.cancel(running.id, reason or CASE_CANCELLED_REASON)


class CaseService:
    """Creates repair cases, all-or-nothing with their workflow and SLA."""

    def __init__(
        self,
        case_repository: ICaseRepository,
        orchestrator: CaseOrchestrator,
        clock: Callable[[], datetime] = utc_now
    ):
        self._case_repo = case_repository
        self._orchestrator = orchestrator
        self._clock = clock

    async def create_case(
        self,
        case_number: str,
        customer_id: int,
        device_id: int,
        service_type: str,
        priority: str,
        description: Optional[str] = None
    ) -> CaseCreationResult:
        """
        Create a case and attach workflow and SLA to it.

        Raises:
            ValidationException: duplicate case number, unknown device or customer
        """
        if await self._case_repo.exists_by_case_number(case_number):
            raise ValidationException(
                f"Case number {case_number} already exists",
                details={"field": "case_number", "value": case_number}
            )

        context = await self._orchestrator.resolve_context(customer_id, device_id, service_type)

        now = self._clock()
        case = await self._case_repo.create(Case(
            id=None,
            case_number=case_number,
            customer_id=customer_id,
            device_id=device_id,
            service_type=service_type,
            priority=priority,
            status=CaseStatus.OPEN,
            description=description,
            created_at=now,
            updated_at=now
        ))

        attachment = await self._orchestrator.on_case_created(case, context)

        logger.info(
            "Case created",
            extra={
                "case_id": case.id,
                "case_number": case.case_number,
                "workflow_instance_id": case.workflow_instance_id,
                "sla_due_date": case.sla_due_date.isoformat() if case.sla_due_date else None,
            }
        )
        return CaseCreationResult(case=case, attachment=attachment)

    async def update_status(
        self,
        case_id: int,
        status: str,
        reason: Optional[str] = None
    ) -> Case:
        """
        Move a case to another lifecycle status.

        Completed and cancelled cases drop out of SLA monitoring. Cancelling
        a case also cancels its running workflow; completing it leaves the
        workflow where it is.

        Raises:
            ResourceNotFoundException: case does not exist
            ValidationException: case is already closed
        """
        case = await self._case_repo.get_by_id(case_id)
        if case is None:
            raise ResourceNotFoundException("Case", str(case_id))
        if case.status == status:
            return case
        if case.is_closed:
            raise ValidationException(
                f"Case {case_id} is {case.status} and cannot be reopened",
                details={"field": "status", "value": status, "current_status": case.status}
            )

        previous = case.status
        case.status = status
        case.updated_at = self._clock()
        await self._case_repo.update_status(case.id, case.status, case.updated_at)

        cancelled_instance = None
        if status == CaseStatus.CANCELLED:
            cancelled_instance = await self._orchestrator.on_case_cancelled(case, reason)

        logger.info(
            "Case status changed",
            extra={
                "case_id": case.id,
                "from_status": previous,
                "to_status": status,
                "cancelled_instance_id": cancelled_instance.id if cancelled_instance else None,
            }
        )
        return case
