"""
Case Controllers (API Routes)
==============================

FastAPI routes for repair case intake.

Controllers are thin - they delegate to application services.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.cases.application import (
    CaseService,
    CaseOrchestrator,
    CaseCreateRequest,
    CaseStatusUpdateRequest,
    CaseResponse,
    CaseCreatedResponse,
)
from src.cases.infrastructure import (
    SQLAlchemyCaseRepository,
    SQLAlchemyDeviceRepository,
    SQLAlchemyCustomerRepository,
)
from src.infrastructure.database import get_session
from src.sla.application import SLAService
from src.sla.infrastructure import SQLAlchemySLARecordRepository
from src.workflow.application import WorkflowConfigurationService, WorkflowInstanceManager
from src.workflow.infrastructure import (
    SQLAlchemyWorkflowDefinitionRepository,
    SQLAlchemyWorkflowConfigurationRepository,
    SQLAlchemyWorkflowInstanceRepository,
    SQLAlchemyStateHistoryRepository,
)

router = APIRouter(prefix="/cases", tags=["Repair Cases"])


# ========== Dependencies ==========

async def get_case_service(
    session: AsyncSession = Depends(get_session)
) -> CaseService:
    """Wire the case service; every repository shares the request transaction."""
    case_repo = SQLAlchemyCaseRepository(session)
    orchestrator = CaseOrchestrator(
        configuration_service=WorkflowConfigurationService(
            SQLAlchemyWorkflowConfigurationRepository(session)
        ),
        instance_manager=WorkflowInstanceManager(
            SQLAlchemyWorkflowDefinitionRepository(session),
            SQLAlchemyWorkflowInstanceRepository(session),
            SQLAlchemyStateHistoryRepository(session)
        ),
        sla_service=SLAService(SQLAlchemySLARecordRepository(session)),
        case_repository=case_repo,
        device_repository=SQLAlchemyDeviceRepository(session),
        customer_repository=SQLAlchemyCustomerRepository(session)
    )
    return CaseService(case_repo, orchestrator)


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=CaseCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create repair case",
    description="""
    Create a repair case, start its workflow and open its SLA record.

    **Workflow selection** (most specific wins): device type + customer tier,
    device type only, customer tier only, generic. Ties go to the lowest
    configuration id.

    **SLA due date**: urgent 4h, high 24h, medium 72h, low 168h.

    When no workflow can be started the case is still created and `warning`
    explains why. Unknown device or customer returns **422**.

    **Example Request**:
    ```json
    {
        "case_number": "RC2024000123",
        "customer_id": 12,
        "device_id": 34,
        "service_type": "repair",
        "priority": "urgent"
    }
    ```
    """,
    responses={
        201: {"description": "Case created"},
        422: {"description": "Invalid or unknown case fields"}
    }
)
async def create_case(
    request: CaseCreateRequest,
    service: CaseService = Depends(get_case_service)
):
    result = await service.create_case(
        case_number=request.case_number,
        customer_id=request.customer_id,
        device_id=request.device_id,
        service_type=request.service_type,
        priority=request.priority,
        description=request.description
    )
    return CaseCreatedResponse.from_result(result)


@router.patch(
    "/{case_id}/status",
    response_model=CaseResponse,
    summary="Change case status",
    description="""
    Move a case to another status.

    Completed and cancelled cases are no longer monitored for SLA breaches.
    Cancelling a case also cancels its running workflow instance. A closed
    case cannot be reopened (**422**).
    """,
    responses={
        404: {"description": "Case not found"},
        422: {"description": "Unknown status or case already closed"}
    }
)
async def update_case_status(
    case_id: int,
    request: CaseStatusUpdateRequest,
    service: CaseService = Depends(get_case_service)
):
    case = await service.update_status(case_id, request.status, request.reason)
    return CaseResponse.from_domain(case)


# Export router for inclusion in main app
case_router = router
