"""
SLA Domain Layer
================

Domain layer for SLA monitoring module.

Contains:
- Entities: SLARecord and the events/results a scan produces
- Value Objects: Immutable objects defined by attributes (SLAPolicy, EscalationLevelConfig)
- Domain Services: Stateless business logic (SLACalculator)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from src.sla.domain.entities import SLARecord, SLAEvent, SLAScanFailure, SLAScanResult
from src.sla.domain.value_objects import (
    SLACalculator,
    SLAPolicy,
    EscalationLevelConfig,
    PRIORITY_SLA_HOURS,
)

__all__ = [
    # Entities
    "SLARecord",
    "SLAEvent",
    "SLAScanFailure",
    "SLAScanResult",
    # Value Objects & Services
    "SLACalculator",
    "SLAPolicy",
    "EscalationLevelConfig",
    "PRIORITY_SLA_HOURS",
]
