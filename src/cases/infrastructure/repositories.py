"""
Case Infrastructure Repositories
=================================

SQLAlchemy implementations of the case, device and customer repositories.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.cases.application import ICaseRepository, IDeviceRepository, ICustomerRepository
from src.cases.domain import Case, Device, Customer
from src.cases.infrastructure.models import CaseModel, DeviceModel, CustomerModel
from src.core import RepositoryException
from src.infrastructure.database import ensure_utc


class SQLAlchemyCaseRepository(ICaseRepository):
    """
    SQLAlchemy implementation of case repository.

    Handles persistence of Case entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, case: Case) -> Case:
        """Insert a case and assign its id."""
        model = CaseModel(
            case_number=case.case_number,
            customer_id=case.customer_id,
            device_id=case.device_id,
            service_type=case.service_type,
            priority=case.priority,
            status=case.status,
            description=case.description,
            created_at=case.created_at,
            updated_at=case.updated_at
        )

        self._session.add(model)
        await self._session.flush()

        case.id = model.id
        return case

    async def get_by_id(self, case_id: int) -> Optional[Case]:
        """Get case by ID."""
        model = await self._session.get(CaseModel, case_id)
        return self._to_domain(model) if model else None

    async def exists_by_case_number(self, case_number: str) -> bool:
        """Check if a case number is taken."""
        stmt = select(CaseModel.id).where(CaseModel.case_number == case_number)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def attach(self, case: Case) -> None:
        """Write back the workflow and SLA references of a case."""
        model = await self._session.get(CaseModel, case.id)
        if model is None:
            raise RepositoryException(f"Case {case.id} not found")

        model.workflow_instance_id = UUID(case.workflow_instance_id) if case.workflow_instance_id else None
        model.workflow_configuration_id = case.workflow_configuration_id
        model.sla_id = UUID(case.sla_id) if case.sla_id else None
        model.sla_due_date = case.sla_due_date
        await self._session.flush()

    async def update_status(self, case_id: int, status: str, updated_at: datetime) -> None:
        """Set the lifecycle status of a case."""
        stmt = (
            update(CaseModel)
            .where(CaseModel.id == case_id)
            .values(status=status, updated_at=updated_at)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise RepositoryException(f"Case {case_id} not found")

    @staticmethod
    def _to_domain(model: CaseModel) -> Case:
        return Case(
            id=model.id,
            case_number=model.case_number,
            customer_id=model.customer_id,
            device_id=model.device_id,
            service_type=model.service_type,
            priority=model.priority,
            status=model.status,
            description=model.description,
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
            workflow_instance_id=str(model.workflow_instance_id) if model.workflow_instance_id else None,
            workflow_configuration_id=model.workflow_configuration_id,
            sla_id=str(model.sla_id) if model.sla_id else None,
            sla_due_date=ensure_utc(model.sla_due_date)
        )


class SQLAlchemyDeviceRepository(IDeviceRepository):
    """Device point lookups."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, device_id: int) -> Optional[Device]:
        model = await self._session.get(DeviceModel, device_id)
        if model is None:
            return None
        return Device(id=model.id, device_type_id=model.device_type_id, serial_number=model.serial_number)


class SQLAlchemyCustomerRepository(ICustomerRepository):
    """Customer point lookups."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        model = await self._session.get(CustomerModel, customer_id)
        if model is None:
            return None
        return Customer(id=model.id, tier=model.tier, name=model.name)
