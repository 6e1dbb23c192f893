import pytest

from src.core import InvalidWorkflowDefinitionException
from src.workflow.domain import (
    StepResult,
    WorkflowDefinition,
    WorkflowStep,
    WorkflowTransition,
    WorkflowVariables,
)

from tests.conftest import REPAIR_STEPS


def _definition(steps=REPAIR_STEPS, transitions=()):
    return WorkflowDefinition(
        id=1, name="standard-repair", version="1", steps=list(steps), transitions=list(transitions)
    )


def test_first_step_is_first_declared():
    assert _definition().first_step.id == "intake"
    assert _definition(steps=[]).first_step is None


def test_next_step_follows_declared_order_without_transitions():
    definition = _definition()

    assert definition.next_step("intake").id == "diagnose"
    assert definition.next_step("repair").id == "close"


def test_end_step_has_no_successor():
    assert _definition().next_step("close") is None


def test_last_step_without_end_flag_has_no_successor():
    definition = _definition(steps=REPAIR_STEPS[:3])

    assert definition.next_step("repair") is None


def test_conditional_transition_matches_outcome():
    definition = _definition(transitions=[
        WorkflowTransition(from_step="diagnose", to_step="close", condition="skipped"),
        WorkflowTransition(from_step="diagnose", to_step="repair"),
    ])

    assert definition.next_step("diagnose", "skipped").id == "close"
    assert definition.next_step("diagnose", "completed").id == "repair"


def test_first_matching_transition_wins():
    definition = _definition(transitions=[
        WorkflowTransition(from_step="intake", to_step="repair"),
        WorkflowTransition(from_step="intake", to_step="close"),
    ])

    assert definition.next_step("intake").id == "repair"


def test_end_event_step_type_ends_workflow():
    definition = _definition(steps=[
        WorkflowStep(id="start", name="Start"),
        WorkflowStep(id="done", name="Done", type="end_event"),
        WorkflowStep(id="never", name="Never"),
    ])

    assert definition.next_step("done") is None


def test_duplicate_step_ids_rejected():
    with pytest.raises(InvalidWorkflowDefinitionException):
        _definition(steps=[WorkflowStep(id="a", name="A"), WorkflowStep(id="a", name="Again")])


def test_transition_to_unknown_step_rejected():
    with pytest.raises(InvalidWorkflowDefinitionException):
        _definition(transitions=[WorkflowTransition(from_step="intake", to_step="nowhere")])


def test_step_result_rejects_unknown_outcome():
    with pytest.raises(ValueError):
        StepResult(outcome="maybe")


def test_merge_output_keeps_known_variables():
    variables = WorkflowVariables(configuration_id=3, priority="high", extra={"a": 1})

    merged = variables.merge_output({"b": 2, "a": 5})

    assert merged.configuration_id == 3
    assert merged.extra == {"a": 5, "b": 2}
    assert variables.extra == {"a": 1}
    assert variables.merge_output({}) is variables
