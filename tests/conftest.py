import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SLA_SCAN_INTERVAL_MINUTES", "0")

from datetime import datetime, timezone
from typing import Optional, Sequence

import httpx
import pytest
from sqlalchemy.pool import StaticPool

from src.cases.infrastructure.models import CaseModel, CustomerModel, DeviceModel, DeviceTypeModel
from src.config import Settings
from src.infrastructure.database import Database
from src.main import create_app
from src.sla.application import SLAService
from src.sla.domain import SLARecord
from src.sla.infrastructure import SQLAlchemySLARecordRepository
from src.workflow.domain import WorkflowConfiguration, WorkflowDefinition, WorkflowStep, WorkflowTransition
from src.workflow.infrastructure import (
    SQLAlchemyWorkflowConfigurationRepository,
    SQLAlchemyWorkflowDefinitionRepository,
)

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

REPAIR_STEPS = [
    WorkflowStep(id="intake", name="Intake"),
    WorkflowStep(id="diagnose", name="Diagnose"),
    WorkflowStep(id="repair", name="Repair"),
    WorkflowStep(id="close", name="Close", is_end_step=True),
]


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class Seeder:
    """Inserts reference rows, each in its own committed transaction."""

    def __init__(self, database: Database):
        self.database = database

    async def device_type(self, name: str = "laptop") -> int:
        async with self.database.session_scope() as session:
            model = DeviceTypeModel(name=name)
            session.add(model)
            await session.flush()
            return model.id

    async def device(self, device_type_id: Optional[int] = None, serial_number: str = "SN-0001") -> int:
        async with self.database.session_scope() as session:
            model = DeviceModel(device_type_id=device_type_id, serial_number=serial_number)
            session.add(model)
            await session.flush()
            return model.id

    async def customer(self, tier: Optional[str] = "silver", name: str = "Acme Repairs") -> int:
        async with self.database.session_scope() as session:
            model = CustomerModel(name=name, tier=tier)
            session.add(model)
            await session.flush()
            return model.id

    async def definition(
        self,
        steps: Sequence[WorkflowStep] = REPAIR_STEPS,
        transitions: Sequence[WorkflowTransition] = (),
        name: str = "standard-repair",
        version: str = "1",
        is_active: bool = True
    ) -> int:
        async with self.database.session_scope() as session:
            definition = await SQLAlchemyWorkflowDefinitionRepository(session).create(WorkflowDefinition(
                id=None,
                name=name,
                version=version,
                steps=list(steps),
                transitions=list(transitions),
                is_active=is_active
            ))
            return definition.id

    async def configuration(
        self,
        definition_id: int,
        service_type: str = "repair",
        device_type_id: Optional[int] = None,
        customer_tier: Optional[str] = None,
        is_active: bool = True
    ) -> int:
        async with self.database.session_scope() as session:
            configuration = await SQLAlchemyWorkflowConfigurationRepository(session).create(
                WorkflowConfiguration(
                    id=None,
                    service_type=service_type,
                    workflow_definition_id=definition_id,
                    device_type_id=device_type_id,
                    customer_tier=customer_tier,
                    is_active=is_active
                )
            )
            return configuration.id

    async def case(
        self,
        customer_id: int,
        device_id: int,
        case_number: str = "RC-0001",
        priority: str = "medium",
        status: str = "open",
        created_at: Optional[datetime] = None
    ) -> int:
        created_at = created_at or utc(2024, 1, 15, 10, 0)
        async with self.database.session_scope() as session:
            model = CaseModel(
                case_number=case_number,
                customer_id=customer_id,
                device_id=device_id,
                service_type="repair",
                priority=priority,
                status=status,
                created_at=created_at,
                updated_at=created_at
            )
            session.add(model)
            await session.flush()
            return model.id

    async def sla_record(self, case_id: int, priority: str, created_at: datetime) -> SLARecord:
        async with self.database.session_scope() as session:
            service = SLAService(SQLAlchemySLARecordRepository(session))
            return await service.create_for_case(case_id, priority, created_at)

    async def case_with_sla(
        self,
        case_number: str,
        priority: str,
        created_at: datetime,
        status: str = "open"
    ) -> SLARecord:
        customer_id = await self.customer()
        device_id = await self.device(serial_number=f"SN-{case_number}")
        case_id = await self.case(
            customer_id, device_id,
            case_number=case_number, priority=priority, status=status, created_at=created_at
        )
        return await self.sla_record(case_id, priority, created_at)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def database():
    db = Database(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def seed(database: Database) -> Seeder:
    return Seeder(database)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        environment="test",
        database_url=TEST_DATABASE_URL,
        sla_scan_interval_minutes=0,
        sla_config_path=tmp_path / "sla_config.yaml",
        slack_webhook_url=None,
    )


@pytest.fixture
def app(settings: Settings, database: Database):
    return create_app(settings, database=database)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
