from datetime import timedelta

import pytest
from sqlalchemy import func, select

from src.cases.application import (
    CaseOrchestrator,
    CaseService,
    NO_CONFIGURATION_WARNING,
    NO_STEPS_WARNING,
)
from src.cases.infrastructure import (
    CaseModel,
    SQLAlchemyCaseRepository,
    SQLAlchemyCustomerRepository,
    SQLAlchemyDeviceRepository,
)
from src.core import RepositoryException, ResourceNotFoundException, ValidationException
from src.sla.application import SLAService
from src.sla.infrastructure import SLARecordModel, SQLAlchemySLARecordRepository
from src.workflow.application import WorkflowConfigurationService, WorkflowInstanceManager
from src.workflow.infrastructure import (
    SQLAlchemyStateHistoryRepository,
    SQLAlchemyWorkflowConfigurationRepository,
    SQLAlchemyWorkflowDefinitionRepository,
    SQLAlchemyWorkflowInstanceRepository,
    WorkflowInstanceModel,
)

from tests.conftest import utc

pytestmark = pytest.mark.anyio

NOW = utc(2024, 1, 15, 10, 0)


class BrokenSLARepository(SQLAlchemySLARecordRepository):

    async def create(self, record):
        raise RepositoryException("sla_records insert failed")


def _case_service(session, sla_repository_class=SQLAlchemySLARecordRepository) -> CaseService:
    case_repo = SQLAlchemyCaseRepository(session)
    orchestrator = CaseOrchestrator(
        configuration_service=WorkflowConfigurationService(
            SQLAlchemyWorkflowConfigurationRepository(session)
        ),
        instance_manager=WorkflowInstanceManager(
            SQLAlchemyWorkflowDefinitionRepository(session),
            SQLAlchemyWorkflowInstanceRepository(session),
            SQLAlchemyStateHistoryRepository(session),
            clock=lambda: NOW
        ),
        sla_service=SLAService(sla_repository_class(session)),
        case_repository=case_repo,
        device_repository=SQLAlchemyDeviceRepository(session),
        customer_repository=SQLAlchemyCustomerRepository(session)
    )
    return CaseService(case_repo, orchestrator, clock=lambda: NOW)


async def _create(database, sla_repository_class=SQLAlchemySLARecordRepository, **fields):
    fields.setdefault("case_number", "RC2024000001")
    fields.setdefault("service_type", "repair")
    fields.setdefault("priority", "medium")
    async with database.session_scope() as session:
        return await _case_service(session, sla_repository_class).create_case(**fields)


async def _count(database, model) -> int:
    async with database.session_scope() as session:
        return await session.scalar(select(func.count()).select_from(model))


@pytest.fixture
async def gold_laptop(seed):
    """A gold-tier customer with a laptop."""
    laptop = await seed.device_type("laptop")
    return {
        "device_type_id": laptop,
        "device_id": await seed.device(device_type_id=laptop),
        "customer_id": await seed.customer(tier="gold"),
    }


async def test_urgent_case_is_due_four_hours_later(database, seed, gold_laptop):
    definition_id = await seed.definition()
    await seed.configuration(definition_id)

    result = await _create(
        database,
        customer_id=gold_laptop["customer_id"],
        device_id=gold_laptop["device_id"],
        priority="urgent"
    )

    assert result.attachment.sla.due_date == NOW + timedelta(hours=4)
    assert result.case.sla_due_date == NOW + timedelta(hours=4)
    assert result.attachment.warning is None


async def test_device_type_configuration_beats_tier_configuration(database, seed, gold_laptop):
    device_definition = await seed.definition(name="laptop-repair")
    tier_definition = await seed.definition(name="gold-repair")
    device_config = await seed.configuration(device_definition, device_type_id=gold_laptop["device_type_id"])
    await seed.configuration(tier_definition, customer_tier="gold")

    result = await _create(
        database, customer_id=gold_laptop["customer_id"], device_id=gold_laptop["device_id"]
    )
    instance = result.attachment.instance

    assert result.attachment.configuration.id == device_config
    assert instance.definition_id == device_definition
    assert instance.current_step_id == "intake"
    assert instance.status == "running"
    assert instance.variables.configuration_id == device_config
    assert instance.variables.customer_tier == "gold"
    assert result.case.workflow_instance_id == instance.id

    async with database.session_scope() as session:
        stored = await SQLAlchemyCaseRepository(session).get_by_id(result.case.id)
    assert stored.workflow_instance_id == instance.id
    assert stored.workflow_configuration_id == device_config
    assert stored.sla_id == result.attachment.sla.id


async def test_unmatched_service_type_still_creates_case(database, seed, gold_laptop):
    definition_id = await seed.definition()
    await seed.configuration(definition_id)

    result = await _create(
        database,
        customer_id=gold_laptop["customer_id"],
        device_id=gold_laptop["device_id"],
        service_type="unknown_type"
    )

    assert result.case.id is not None
    assert result.attachment.instance is None
    assert result.attachment.warning == NO_CONFIGURATION_WARNING
    assert result.attachment.sla is not None
    assert await _count(database, CaseModel) == 1
    assert await _count(database, SLARecordModel) == 1


async def test_definition_without_steps_attaches_but_does_not_start(database, seed, gold_laptop):
    definition_id = await seed.definition(steps=[], name="draft")
    config_id = await seed.configuration(definition_id)

    result = await _create(
        database, customer_id=gold_laptop["customer_id"], device_id=gold_laptop["device_id"]
    )

    assert result.attachment.instance is None
    assert result.attachment.warning == NO_STEPS_WARNING
    assert result.case.workflow_configuration_id == config_id
    assert await _count(database, WorkflowInstanceModel) == 0


async def test_device_without_type_uses_wildcard_configurations(database, seed):
    untyped_device = await seed.device(device_type_id=None)
    customer_id = await seed.customer(tier=None)
    definition_id = await seed.definition()
    generic = await seed.configuration(definition_id)

    result = await _create(database, customer_id=customer_id, device_id=untyped_device)

    assert result.attachment.configuration.id == generic


async def test_unknown_device_is_rejected_before_insert(database, gold_laptop):
    with pytest.raises(ValidationException) as exc_info:
        await _create(database, customer_id=gold_laptop["customer_id"], device_id=999)

    assert exc_info.value.details["field"] == "device_id"
    assert await _count(database, CaseModel) == 0


async def test_unknown_customer_is_rejected(database, gold_laptop):
    with pytest.raises(ValidationException):
        await _create(database, customer_id=999, device_id=gold_laptop["device_id"])

    assert await _count(database, CaseModel) == 0


async def test_duplicate_case_number(database, gold_laptop):
    ids = {"customer_id": gold_laptop["customer_id"], "device_id": gold_laptop["device_id"]}
    await _create(database, **ids)

    with pytest.raises(ValidationException):
        await _create(database, **ids)

    assert await _count(database, CaseModel) == 1


async def test_failure_after_insert_rolls_back_everything(database, seed, gold_laptop):
    definition_id = await seed.definition()
    await seed.configuration(definition_id)

    with pytest.raises(RepositoryException):
        await _create(
            database,
            BrokenSLARepository,
            customer_id=gold_laptop["customer_id"],
            device_id=gold_laptop["device_id"]
        )

    assert await _count(database, CaseModel) == 0
    assert await _count(database, WorkflowInstanceModel) == 0
    assert await _count(database, SLARecordModel) == 0


async def _update_status(database, case_id, status, reason=None):
    async with database.session_scope() as session:
        return await _case_service(session).update_status(case_id, status, reason)


async def _running_instance(database, case_id):
    async with database.session_scope() as session:
        return await SQLAlchemyWorkflowInstanceRepository(session).get_running_for_case(case_id)


async def test_cancelling_case_cancels_running_workflow(database, seed, gold_laptop):
    definition_id = await seed.definition()
    await seed.configuration(definition_id)
    result = await _create(
        database, customer_id=gold_laptop["customer_id"], device_id=gold_laptop["device_id"]
    )

    case = await _update_status(database, result.case.id, "cancelled", reason="customer withdrew")

    assert case.status == "cancelled"
    assert case.updated_at == NOW
    assert await _running_instance(database, result.case.id) is None
    async with database.session_scope() as session:
        history = await SQLAlchemyStateHistoryRepository(session).list_for_instance(
            result.attachment.instance.id
        )
    assert history[-1].action == "cancel"
    assert history[-1].metadata.reason == "customer withdrew"


async def test_completing_case_leaves_workflow_running(database, seed, gold_laptop):
    definition_id = await seed.definition()
    await seed.configuration(definition_id)
    result = await _create(
        database, customer_id=gold_laptop["customer_id"], device_id=gold_laptop["device_id"]
    )

    await _update_status(database, result.case.id, "in_progress")
    case = await _update_status(database, result.case.id, "completed")

    assert case.status == "completed"
    running = await _running_instance(database, result.case.id)
    assert running.id == result.attachment.instance.id


async def test_cancelling_case_without_workflow(database, gold_laptop):
    result = await _create(
        database, customer_id=gold_laptop["customer_id"], device_id=gold_laptop["device_id"]
    )

    case = await _update_status(database, result.case.id, "cancelled")

    assert result.attachment.instance is None
    assert case.status == "cancelled"


async def test_closed_case_cannot_be_reopened(database, gold_laptop):
    result = await _create(
        database, customer_id=gold_laptop["customer_id"], device_id=gold_laptop["device_id"]
    )
    await _update_status(database, result.case.id, "completed")

    with pytest.raises(ValidationException):
        await _update_status(database, result.case.id, "open")

    unchanged = await _update_status(database, result.case.id, "completed")
    assert unchanged.status == "completed"


async def test_status_of_unknown_case(database):
    with pytest.raises(ResourceNotFoundException):
        await _update_status(database, 999, "cancelled")
