"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA monitoring endpoints.

Controllers are thin - they delegate to application services.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import get_session
from src.sla.application import (
    SLAService,
    SLAMonitor,
    SLAScanJob,
    SLAScanRequest,
    SLARecordResponse,
    SLAScanResponse,
)
from src.sla.infrastructure import SQLAlchemySLARecordRepository, sla_repository_scope
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA Monitoring"])


# ========== Example payloads for Swagger ==========

SLA_RECORD_RESPONSE_EXAMPLE = {
    "id": "0f8c1c1e-7a0b-4d7e-9d1f-3c1b2a9e4f55",
    "case_id": 42,
    "priority": "urgent",
    "started_at": "2024-01-15T10:00:00Z",
    "due_date": "2024-01-15T14:00:00Z",
    "is_breached": False,
    "warning_sent": True,
    "escalation_level": 0,
    "breached_at": None,
    "last_checked_at": "2024-01-15T13:30:00Z"
}

SCAN_RESPONSE_EXAMPLE = {
    "records_scanned": 3,
    "events": [
        {
            "event_type": "SLABreached",
            "sla_record_id": "0f8c1c1e-7a0b-4d7e-9d1f-3c1b2a9e4f55",
            "case_id": 42,
            "priority": "urgent",
            "due_date": "2024-01-15T14:00:00Z",
            "occurred_at": "2024-01-15T14:15:00Z",
            "escalation_level": 0,
            "channels": []
        }
    ],
    "failures": []
}


# ========== Dependencies ==========

async def get_sla_service(
    session: AsyncSession = Depends(get_session)
) -> SLAService:
    """Get SLA service instance."""
    return SLAService(SQLAlchemySLARecordRepository(session))


async def get_scan_job(request: Request) -> SLAScanJob:
    """
    Get the scan job wired to the app's database, policy and notifier.

    The monitor opens its own per-record transactions, so no request
    session is involved.
    """
    state = request.app.state
    monitor = SLAMonitor(sla_repository_scope(state.database), state.sla_config)
    return SLAScanJob(monitor, getattr(state, "sla_notifier", None))


# ========== Route Handlers ==========

@router.get(
    "/cases/{case_id}",
    response_model=SLARecordResponse,
    summary="Get case SLA status",
    responses={
        200: {
            "description": "SLA record of the case",
            "content": {"application/json": {"example": SLA_RECORD_RESPONSE_EXAMPLE}}
        },
        404: {"description": "No SLA record for this case"}
    }
)
async def get_case_sla(
    case_id: int,
    sla_service: SLAService = Depends(get_sla_service)
):
    record = await sla_service.get_for_case(case_id)
    return SLARecordResponse.from_domain(record)


@router.post(
    "/scan",
    response_model=SLAScanResponse,
    summary="Run the SLA monitor now",
    description="""
    Run one SLA monitor scan outside the regular schedule.

    - `SLAWarning`: the configured share of the allowance is used up (default 80%)
    - `SLABreached`: the due date has passed; reported once per record
    - `SLAEscalated`: a breached record reached the next escalation level

    Records that fail are listed in `failures`; the rest of the scan still runs.
    Pass `now` to evaluate at a specific instant.
    """,
    responses={
        200: {
            "description": "Scan result",
            "content": {"application/json": {"example": SCAN_RESPONSE_EXAMPLE}}
        }
    }
)
async def run_scan(
    request: SLAScanRequest,
    job: SLAScanJob = Depends(get_scan_job)
):
    result = await job.run(request.now)
    return SLAScanResponse.from_domain(result)


# Export router for inclusion in main app
sla_router = router
