"""
SLA Infrastructure Repositories
=================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.cases.infrastructure.models import CaseModel
from src.config import CLOSED_CASE_STATUSES
from src.infrastructure.database import Database, ensure_utc
from src.sla.application import ISLARecordRepository, RepositoryScope
from src.sla.domain import SLARecord
from src.sla.infrastructure.models import SLARecordModel


class SQLAlchemySLARecordRepository(ISLARecordRepository):
    """
    SQLAlchemy implementation of SLA record repository.

    Handles persistence of SLARecord entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_case(self, case_id: int) -> Optional[SLARecord]:
        """Get the SLA record of a case."""
        stmt = select(SLARecordModel).where(SLARecordModel.case_id == case_id)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def create(self, record: SLARecord) -> SLARecord:
        """Create new SLA record."""
        model = SLARecordModel(
            id=UUID(record.id),
            case_id=record.case_id,
            priority=record.priority,
            started_at=record.started_at,
            due_date=record.due_date,
            is_breached=record.is_breached,
            warning_sent=record.warning_sent,
            escalation_level=record.escalation_level,
            breached_at=record.breached_at,
            last_checked_at=record.last_checked_at
        )

        self._session.add(model)
        await self._session.flush()

        return record

    async def list_open(self) -> List[SLARecord]:
        """List records whose case is neither completed nor cancelled."""
        stmt = (
            select(SLARecordModel)
            .join(CaseModel, SLARecordModel.case_id == CaseModel.id)
            .where(CaseModel.status.not_in(CLOSED_CASE_STATUSES))
            .order_by(SLARecordModel.due_date.asc())
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def save_evaluation(self, record: SLARecord, previous: SLARecord) -> bool:
        """UPDATE ... WHERE the monitor-owned fields still hold their previous values."""
        stmt = (
            update(SLARecordModel)
            .where(
                SLARecordModel.id == UUID(record.id),
                SLARecordModel.is_breached == previous.is_breached,
                SLARecordModel.warning_sent == previous.warning_sent,
                SLARecordModel.escalation_level == previous.escalation_level
            )
            .values(
                is_breached=record.is_breached,
                warning_sent=record.warning_sent,
                escalation_level=record.escalation_level,
                breached_at=record.breached_at,
                last_checked_at=record.last_checked_at
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    def _to_domain(model: SLARecordModel) -> SLARecord:
        return SLARecord(
            id=str(model.id),
            case_id=model.case_id,
            priority=model.priority,
            started_at=ensure_utc(model.started_at),
            due_date=ensure_utc(model.due_date),
            is_breached=model.is_breached,
            warning_sent=model.warning_sent,
            escalation_level=model.escalation_level,
            breached_at=ensure_utc(model.breached_at),
            last_checked_at=ensure_utc(model.last_checked_at)
        )


def sla_repository_scope(database: Database) -> RepositoryScope:
    """
    Build a factory of one-transaction SLA repositories.

    Each ``async with scope() as repository`` block commits on exit.
    """

    @asynccontextmanager
    async def scope() -> AsyncGenerator[ISLARecordRepository, None]:
        async with database.session_scope() as session:
            yield SQLAlchemySLARecordRepository(session)

    return scope
