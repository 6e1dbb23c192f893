"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import AsyncContextManager, Callable, List, Optional
from uuid import uuid4

from src.core import ResourceNotFoundException
from src.shared.infrastructure.logging import get_logger, log_latency
from src.sla.domain import (
    SLARecord,
    SLAEvent,
    SLAScanFailure,
    SLAScanResult,
    SLACalculator,
    SLAPolicy,
)

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ISLARecordRepository(ABC):
    """Interface for SLA record data access."""

    @abstractmethod
    async def get_by_case(self, case_id: int) -> Optional[SLARecord]:
        """Get the SLA record of a case."""

    @abstractmethod
    async def create(self, record: SLARecord) -> SLARecord:
        """Create new SLA record."""

    @abstractmethod
    async def list_open(self) -> List[SLARecord]:
        """List records whose case is neither completed nor cancelled."""

    @abstractmethod
    async def save_evaluation(self, record: SLARecord, previous: SLARecord) -> bool:
        """
        Persist the monitor-owned fields of ``record``.

        Applies only while the stored breach, warning and escalation fields
        still equal ``previous``. Returns False when another writer got there
        first.
        """


class ISLAConfigProvider(ABC):
    """Interface for SLA policy access."""

    @abstractmethod
    def get_policy(self) -> SLAPolicy:
        """Get current SLA policy."""


RepositoryScope = Callable[[], AsyncContextManager[ISLARecordRepository]]


# ========== Application Services ==========

class SLAService:
    """Creates and reads per-case SLA records."""

    def __init__(self, record_repository: ISLARecordRepository):
        self._record_repo = record_repository

    async def create_for_case(
        self,
        case_id: int,
        priority: str,
        created_at: datetime
    ) -> SLARecord:
        """Compute the due date from the case priority and persist the record."""
        record = await self._record_repo.create(SLARecord(
            id=str(uuid4()),
            case_id=case_id,
            priority=priority,
            started_at=created_at,
            due_date=SLACalculator.compute_due_date(priority, created_at)
        ))

        logger.info(
            "SLA record created",
            extra={
                "sla_id": record.id,
                "case_id": case_id,
                "priority": priority,
                "due_date": record.due_date.isoformat(),
            }
        )
        return record

    async def get_for_case(self, case_id: int) -> SLARecord:
        record = await self._record_repo.get_by_case(case_id)
        if record is None:
            raise ResourceNotFoundException("SLARecord", str(case_id))
        return record


class SLAMonitor:
    """
    Scans open SLA records for warnings, breaches and escalations.

    Owns no timer and sends no notifications: the caller passes ``now`` and
    decides what to do with the returned events. Records are listed in one
    short transaction and each record is written in its own, so a failing
    record never stops the scan.
    """

    def __init__(
        self,
        repository_scope: RepositoryScope,
        config_provider: ISLAConfigProvider
    ):
        self._repository_scope = repository_scope
        self._config_provider = config_provider

    async def scan(self, now: datetime) -> SLAScanResult:
        """
        Evaluate every open SLA record as of ``now``.

        Returns:
            SLAScanResult with the events of committed updates and the
            records that failed
        """
        policy = self._config_provider.get_policy()
        result = SLAScanResult()

        with log_latency(logger, "sla_scan"):
            async with self._repository_scope() as repository:
                records = await repository.list_open()

            for stored in records:
                result.records_scanned += 1
                record = stored.copy()

                try:
                    events = record.evaluate(now, policy)
                    async with self._repository_scope() as repository:
                        applied = await repository.save_evaluation(record, stored)
                except Exception as e:
                    logger.exception(
                        "SLA record scan failed",
                        extra={"sla_id": stored.id, "case_id": stored.case_id}
                    )
                    result.failures.append(SLAScanFailure(
                        record_id=stored.id,
                        case_id=stored.case_id,
                        error=str(e)
                    ))
                    continue

                if not applied:
                    logger.info(
                        "SLA record changed concurrently, skipped",
                        extra={"sla_id": stored.id, "case_id": stored.case_id}
                    )
                    continue

                result.events.extend(events)

        logger.info(
            "SLA scan complete",
            extra={
                "records_scanned": result.records_scanned,
                "events": len(result.events),
                "failures": len(result.failures),
            }
        )
        return result


class ISLAEventSink(ABC):
    """Interface for whatever delivers SLA events (chat, e-mail, ...)."""

    @abstractmethod
    async def notify(self, events: List[SLAEvent]) -> int:
        """Deliver events; returns how many messages went out."""


class SLAScanJob:
    """
    One scheduled tick: scan, then hand the events to the sink.

    Used by the background scheduler and the manual scan endpoint alike.
    """

    def __init__(
        self,
        monitor: SLAMonitor,
        event_sink: Optional[ISLAEventSink] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self._monitor = monitor
        self._event_sink = event_sink
        self._clock = clock

    async def run(self, now: Optional[datetime] = None) -> SLAScanResult:
        result = await self._monitor.scan(now or self._clock())
        if self._event_sink is not None and result.events:
            await self._event_sink.notify(result.events)
        return result
