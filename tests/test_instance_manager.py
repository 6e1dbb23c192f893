from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from src.core import (
    DefinitionHasNoStepsException,
    ResourceNotFoundException,
    StepMismatchException,
    WorkflowAlreadyRunningException,
)
from src.workflow.application import WorkflowInstanceManager
from src.workflow.domain import StepResult, WorkflowInstance, WorkflowStep, WorkflowVariables
from src.workflow.infrastructure import (
    SQLAlchemyStateHistoryRepository,
    SQLAlchemyWorkflowDefinitionRepository,
    SQLAlchemyWorkflowInstanceRepository,
)

from tests.conftest import utc

pytestmark = pytest.mark.anyio

CASE_ID = 42


def _manager(session) -> WorkflowInstanceManager:
    return WorkflowInstanceManager(
        SQLAlchemyWorkflowDefinitionRepository(session),
        SQLAlchemyWorkflowInstanceRepository(session),
        SQLAlchemyStateHistoryRepository(session),
        clock=lambda: utc(2024, 1, 15, 10, 0)
    )


async def _start(database, definition_id, case_id=CASE_ID, variables=None):
    async with database.session_scope() as session:
        return await _manager(session).start(definition_id, case_id, variables)


async def _complete(database, instance_id, step_id, outcome="completed", output=None):
    async with database.session_scope() as session:
        return await _manager(session).complete_step(
            instance_id, step_id, StepResult(outcome=outcome, output=output or {})
        )


async def _load(database, instance_id):
    async with database.session_scope() as session:
        manager = _manager(session)
        return await manager.get_instance(instance_id), await manager.get_history(instance_id)


async def test_start_places_instance_on_first_step(database, seed):
    definition_id = await seed.definition()

    instance = await _start(database, definition_id, variables=WorkflowVariables(configuration_id=3))
    stored, history = await _load(database, instance.id)

    assert stored.status == "running"
    assert stored.current_step_id == "intake"
    assert stored.variables.configuration_id == 3
    assert stored.started_at == utc(2024, 1, 15, 10, 0)
    assert len(history) == 1
    assert history[0].action == "start"
    assert history[0].from_step_id is None
    assert history[0].to_step_id == "intake"
    assert history[0].metadata.configuration_id == 3


async def test_start_rejects_definition_without_steps(database, seed):
    definition_id = await seed.definition(steps=[], name="empty")

    with pytest.raises(DefinitionHasNoStepsException):
        await _start(database, definition_id)

    async with database.session_scope() as session:
        running = await SQLAlchemyWorkflowInstanceRepository(session).get_running_for_case(CASE_ID)
    assert running is None


async def test_start_unknown_definition(database):
    with pytest.raises(ResourceNotFoundException):
        await _start(database, 999)


async def test_second_running_instance_is_rejected(database, seed):
    definition_id = await seed.definition()
    first = await _start(database, definition_id)

    with pytest.raises(WorkflowAlreadyRunningException) as exc_info:
        await _start(database, definition_id)

    assert exc_info.value.instance_id == first.id


async def test_complete_step_advances_and_records_history(database, seed):
    definition_id = await seed.definition()
    instance = await _start(database, definition_id)

    advanced = await _complete(database, instance.id, "intake", output={"intake_notes": "screen cracked"})
    stored, history = await _load(database, instance.id)

    assert advanced.current_step_id == "diagnose"
    assert stored.current_step_id == "diagnose"
    assert stored.status == "running"
    assert stored.variables.extra == {"intake_notes": "screen cracked"}
    assert [entry.action for entry in history] == ["start", "advance"]
    assert (history[1].from_step_id, history[1].to_step_id) == ("intake", "diagnose")
    assert history[1].metadata.outcome == "completed"


async def test_wrong_step_is_rejected_without_changes(database, seed):
    definition_id = await seed.definition()
    instance = await _start(database, definition_id)

    with pytest.raises(StepMismatchException) as exc_info:
        await _complete(database, instance.id, "repair")
    stored, history = await _load(database, instance.id)

    assert exc_info.value.current_step_id == "intake"
    assert stored.current_step_id == "intake"
    assert stored.status == "running"
    assert len(history) == 1


async def test_end_step_completes_instance(database, seed):
    definition_id = await seed.definition()
    instance = await _start(database, definition_id)

    for step_id in ("intake", "diagnose", "repair", "close"):
        result = await _complete(database, instance.id, step_id)
    stored, history = await _load(database, instance.id)

    assert result.status == "completed"
    assert stored.status == "completed"
    assert stored.current_step_id == "close"
    assert stored.completed_at is not None
    assert history[-1].action == "complete"
    assert history[-1].to_step_id is None

    with pytest.raises(StepMismatchException):
        await _complete(database, instance.id, "close")


async def test_last_step_without_end_flag_completes_implicitly(database, seed):
    steps = [WorkflowStep(id="inspect", name="Inspect"), WorkflowStep(id="report", name="Report")]
    definition_id = await seed.definition(steps=steps, name="inspection")
    instance = await _start(database, definition_id)

    await _complete(database, instance.id, "inspect")
    finished = await _complete(database, instance.id, "report")

    assert finished.status == "completed"


async def test_failed_outcome_fails_instance(database, seed):
    definition_id = await seed.definition()
    instance = await _start(database, definition_id)

    await _complete(database, instance.id, "intake", outcome="failed")
    stored, history = await _load(database, instance.id)

    assert stored.status == "failed"
    assert stored.current_step_id == "intake"
    assert stored.completed_at is not None
    assert history[-1].action == "fail"


async def test_cancel_is_idempotent(database, seed):
    definition_id = await seed.definition()
    instance = await _start(database, definition_id)

    async with database.session_scope() as session:
        cancelled = await _manager(session).cancel(instance.id, reason="customer withdrew")
    async with database.session_scope() as session:
        again = await _manager(session).cancel(instance.id)
    stored, history = await _load(database, instance.id)

    assert cancelled.status == "cancelled"
    assert again.status == "cancelled"
    assert stored.status == "cancelled"
    assert [entry.action for entry in history] == ["start", "cancel"]
    assert history[-1].metadata.reason == "customer withdrew"

    with pytest.raises(StepMismatchException):
        await _complete(database, instance.id, "intake")


async def test_new_instance_allowed_after_previous_finished(database, seed):
    definition_id = await seed.definition()
    first = await _start(database, definition_id)
    async with database.session_scope() as session:
        await _manager(session).cancel(first.id)

    second = await _start(database, definition_id)

    assert second.id != first.id
    assert second.status == "running"


async def test_transition_only_applies_to_expected_step(database, seed):
    definition_id = await seed.definition()
    instance = await _start(database, definition_id)

    async with database.session_scope() as session:
        repo = SQLAlchemyWorkflowInstanceRepository(session)
        first = await repo.transition(
            instance.id, "intake", "diagnose", "running", instance.variables, None
        )
        stale = await repo.transition(
            instance.id, "intake", "diagnose", "running", instance.variables, None
        )

    assert first is True
    assert stale is False


async def test_unknown_instance(database):
    with pytest.raises(ResourceNotFoundException):
        await _load(database, "not-a-uuid")

    with pytest.raises(ResourceNotFoundException):
        await _load(database, "5a3f9a8e-2c4b-4e8e-9a57-0c2f1d8b7e11")


async def test_running_instance_of_case(database, seed):
    definition_id = await seed.definition()
    instance = await _start(database, definition_id)

    async with database.session_scope() as session:
        running = await _manager(session).get_running_for_case(CASE_ID)
        await _manager(session).cancel(instance.id)

    assert running.id == instance.id

    async with database.session_scope() as session:
        with pytest.raises(ResourceNotFoundException):
            await _manager(session).get_running_for_case(CASE_ID)


def _raw_instance(definition_id, status="running"):
    return WorkflowInstance(
        id=str(uuid4()),
        definition_id=definition_id,
        case_id=CASE_ID,
        current_step_id="intake",
        status=status,
        started_at=utc(2024, 1, 15, 10, 0)
    )


async def test_database_allows_one_running_instance_per_case(database, seed):
    definition_id = await seed.definition()

    async with database.session_scope() as session:
        repo = SQLAlchemyWorkflowInstanceRepository(session)
        await repo.create(_raw_instance(definition_id, status="cancelled"))
        await repo.create(_raw_instance(definition_id, status="completed"))
        await repo.create(_raw_instance(definition_id))

    with pytest.raises(IntegrityError):
        async with database.session_scope() as session:
            await SQLAlchemyWorkflowInstanceRepository(session).create(_raw_instance(definition_id))

    async with database.session_scope() as session:
        running = await SQLAlchemyWorkflowInstanceRepository(session).get_running_for_case(CASE_ID)
    assert running is not None
