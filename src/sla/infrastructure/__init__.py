"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA monitoring:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer
- External: External service integrations (Slack, policy watcher, scheduler)
"""

from src.sla.infrastructure.models import SLARecordModel
from src.sla.infrastructure.repositories import (
    SQLAlchemySLARecordRepository,
    sla_repository_scope,
)
from src.sla.infrastructure.external import (
    SLAConfigManager,
    CircuitBreaker,
    CircuitState,
    SlackNotifier,
    SLAScheduler,
)

__all__ = [
    "SLARecordModel",
    "SQLAlchemySLARecordRepository",
    "sla_repository_scope",
    "SLAConfigManager",
    "CircuitBreaker",
    "CircuitState",
    "SlackNotifier",
    "SLAScheduler",
]
