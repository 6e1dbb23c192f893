"""
Workflow Controllers (API Routes)
==================================

FastAPI routes for workflow instances and configuration resolution.

Controllers are thin - they delegate to application services. Domain
exceptions are translated to HTTP responses by the handlers registered in
``src.shared.api.middleware``.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import get_session
from src.workflow.application import (
    WorkflowConfigurationService,
    WorkflowInstanceManager,
    StepCompletionRequest,
    CancelRequest,
    ConfigurationResolveRequest,
    WorkflowInstanceResponse,
    StateHistoryResponse,
    ConfigurationResponse,
    ConfigurationResolveResponse,
    InstanceHistoryResponse,
)
from src.workflow.infrastructure import (
    SQLAlchemyWorkflowDefinitionRepository,
    SQLAlchemyWorkflowConfigurationRepository,
    SQLAlchemyWorkflowInstanceRepository,
    SQLAlchemyStateHistoryRepository,
)

router = APIRouter(prefix="/workflows", tags=["Workflow Orchestration"])


# ========== Example payloads for Swagger ==========

INSTANCE_RESPONSE_EXAMPLE = {
    "id": "5a3f9a8e-2c4b-4e8e-9a57-0c2f1d8b7e11",
    "definition_id": 1,
    "case_id": 42,
    "current_step_id": "diagnose",
    "status": "running",
    "variables": {
        "configuration_id": 3,
        "service_type": "repair",
        "priority": "high",
        "device_type_id": 7,
        "customer_tier": "gold",
        "extra": {}
    },
    "started_at": "2024-01-15T10:00:00Z",
    "completed_at": None
}


# ========== Dependencies ==========

async def get_instance_manager(
    session: AsyncSession = Depends(get_session)
) -> WorkflowInstanceManager:
    """Get workflow instance manager bound to the request transaction."""
    return WorkflowInstanceManager(
        SQLAlchemyWorkflowDefinitionRepository(session),
        SQLAlchemyWorkflowInstanceRepository(session),
        SQLAlchemyStateHistoryRepository(session)
    )


async def get_configuration_service(
    session: AsyncSession = Depends(get_session)
) -> WorkflowConfigurationService:
    """Get workflow configuration service instance."""
    return WorkflowConfigurationService(SQLAlchemyWorkflowConfigurationRepository(session))


# ========== Route Handlers ==========

@router.get(
    "/instances/{instance_id}",
    response_model=WorkflowInstanceResponse,
    summary="Get workflow instance",
    responses={
        200: {
            "description": "Workflow instance",
            "content": {"application/json": {"example": INSTANCE_RESPONSE_EXAMPLE}}
        },
        404: {"description": "Instance not found"}
    }
)
async def get_instance(
    instance_id: str,
    manager: WorkflowInstanceManager = Depends(get_instance_manager)
):
    instance = await manager.get_instance(instance_id)
    return WorkflowInstanceResponse.from_domain(instance)


@router.get(
    "/instances/{instance_id}/history",
    response_model=InstanceHistoryResponse,
    summary="Get workflow state history",
    description="Every transition of the instance, oldest first."
)
async def get_instance_history(
    instance_id: str,
    manager: WorkflowInstanceManager = Depends(get_instance_manager)
):
    entries = await manager.get_history(instance_id)
    return InstanceHistoryResponse(
        instance_id=instance_id,
        entries=[StateHistoryResponse.from_domain(entry) for entry in entries]
    )


@router.post(
    "/instances/{instance_id}/steps/{step_id}/complete",
    response_model=WorkflowInstanceResponse,
    summary="Complete the current step",
    description="""
    Complete the instance's current step.

    - `completed` / `skipped`: follow the first matching transition, or the next
      step in declared order; the workflow completes after an end step
    - `failed`: the instance moves to `failed`

    Returns **409** when `step_id` is not the current step or the instance is
    no longer running.
    """,
    responses={
        404: {"description": "Instance not found"},
        409: {"description": "Step is not current or instance not running"}
    }
)
async def complete_step(
    instance_id: str,
    step_id: str,
    request: StepCompletionRequest,
    manager: WorkflowInstanceManager = Depends(get_instance_manager)
):
    instance = await manager.complete_step(instance_id, step_id, request.to_domain())
    return WorkflowInstanceResponse.from_domain(instance)


@router.post(
    "/instances/{instance_id}/cancel",
    response_model=WorkflowInstanceResponse,
    summary="Cancel workflow instance",
    description="Cancel a running instance. Cancelling a finished instance changes nothing."
)
async def cancel_instance(
    instance_id: str,
    request: CancelRequest,
    manager: WorkflowInstanceManager = Depends(get_instance_manager)
):
    instance = await manager.cancel(instance_id, request.reason)
    return WorkflowInstanceResponse.from_domain(instance)


@router.get(
    "/cases/{case_id}",
    response_model=WorkflowInstanceResponse,
    summary="Get running workflow of a case",
    responses={
        200: {
            "description": "Running workflow instance",
            "content": {"application/json": {"example": INSTANCE_RESPONSE_EXAMPLE}}
        },
        404: {"description": "Case has no running workflow"}
    }
)
async def get_running_instance_for_case(
    case_id: int,
    manager: WorkflowInstanceManager = Depends(get_instance_manager)
):
    instance = await manager.get_running_for_case(case_id)
    return WorkflowInstanceResponse.from_domain(instance)


@router.post(
    "/configurations/resolve",
    response_model=ConfigurationResolveResponse,
    summary="Resolve workflow configuration",
    description="""
    Dry-run of the configuration selection used when a case is created.

    Most specific wins: device type + tier, then device type, then tier,
    then generic. Ties go to the lowest configuration id.
    """
)
async def resolve_configuration(
    request: ConfigurationResolveRequest,
    service: WorkflowConfigurationService = Depends(get_configuration_service)
):
    selected = await service.select_configuration(
        request.device_type_id, request.customer_tier, request.service_type
    )
    return ConfigurationResolveResponse(
        configuration=ConfigurationResponse.from_domain(selected) if selected else None
    )


# Export router for inclusion in main app
workflow_router = router
