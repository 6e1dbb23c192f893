"""
Case Application Layer
=======================

Contains:
- Services: CaseService (intake) and CaseOrchestrator (workflow + SLA attachment)
- DTOs: Data transfer objects for API serialization
"""

from src.cases.application.services import (
    CaseService,
    CaseOrchestrator,
    CaseWorkflowAttachment,
    CaseCreationResult,
    ICaseRepository,
    IDeviceRepository,
    ICustomerRepository,
    NO_CONFIGURATION_WARNING,
    NO_STEPS_WARNING,
    CASE_CANCELLED_REASON,
)
from src.cases.application.dto import (
    CaseCreateRequest,
    CaseStatusUpdateRequest,
    CaseResponse,
    CaseCreatedResponse,
)

__all__ = [
    # Services
    "CaseService",
    "CaseOrchestrator",
    "CaseWorkflowAttachment",
    "CaseCreationResult",
    "NO_CONFIGURATION_WARNING",
    "NO_STEPS_WARNING",
    "CASE_CANCELLED_REASON",
    # Repository Interfaces
    "ICaseRepository",
    "IDeviceRepository",
    "ICustomerRepository",
    # DTOs
    "CaseCreateRequest",
    "CaseStatusUpdateRequest",
    "CaseResponse",
    "CaseCreatedResponse",
]
