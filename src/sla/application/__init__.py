"""
SLA Application Layer
======================

Application layer for SLA monitoring module.

Contains:
- Services: SLA record creation and the SLA monitor scan
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from src.sla.application.dto import (
    SLAScanRequest,
    SLARecordResponse,
    SLAEventResponse,
    SLAScanFailureResponse,
    SLAScanResponse,
)
from src.sla.application.services import (
    SLAService,
    SLAMonitor,
    SLAScanJob,
    ISLARecordRepository,
    ISLAConfigProvider,
    ISLAEventSink,
    RepositoryScope,
)

__all__ = [
    # DTOs
    "SLAScanRequest",
    "SLARecordResponse",
    "SLAEventResponse",
    "SLAScanFailureResponse",
    "SLAScanResponse",
    # Services
    "SLAService",
    "SLAMonitor",
    "SLAScanJob",
    # Repository Interfaces
    "ISLARecordRepository",
    "ISLAConfigProvider",
    "ISLAEventSink",
    "RepositoryScope",
]
