import pytest

from src.workflow.application import WorkflowConfigurationService
from src.workflow.domain import ConfigurationResolver, WorkflowConfiguration
from src.workflow.infrastructure import SQLAlchemyWorkflowConfigurationRepository


def _config(config_id, device_type_id=None, customer_tier=None, service_type="repair", **kwargs):
    return WorkflowConfiguration(
        id=config_id,
        service_type=service_type,
        workflow_definition_id=100 + config_id,
        device_type_id=device_type_id,
        customer_tier=customer_tier,
        **kwargs
    )


def test_exact_match_beats_partial_and_generic():
    candidates = [
        _config(1),
        _config(2, customer_tier="gold"),
        _config(3, device_type_id=7),
        _config(4, device_type_id=7, customer_tier="gold"),
    ]

    selected = ConfigurationResolver.select_best(candidates, 7, "gold", "repair")

    assert selected.id == 4


def test_device_type_ranks_above_customer_tier():
    candidates = [_config(1, customer_tier="gold"), _config(2, device_type_id=7)]

    assert ConfigurationResolver.select_best(candidates, 7, "gold", "repair").id == 2


def test_falls_back_to_tier_then_generic():
    candidates = [_config(1), _config(2, customer_tier="gold"), _config(3, device_type_id=99)]

    assert ConfigurationResolver.select_best(candidates, 7, "gold", "repair").id == 2
    assert ConfigurationResolver.select_best(candidates, 7, "silver", "repair").id == 1


def test_ties_go_to_lowest_id():
    candidates = [_config(9, device_type_id=7), _config(5, device_type_id=7), _config(6, device_type_id=7)]

    assert ConfigurationResolver.select_best(candidates, 7, None, "repair").id == 5


def test_inactive_configuration_or_definition_is_ignored():
    candidates = [
        _config(1, device_type_id=7, customer_tier="gold", is_active=False),
        _config(2, device_type_id=7, definition_is_active=False),
        _config(3),
    ]

    assert ConfigurationResolver.select_best(candidates, 7, "gold", "repair").id == 3


def test_service_type_must_match():
    candidates = [_config(1, service_type="maintenance")]

    assert ConfigurationResolver.select_best(candidates, None, None, "repair") is None


def test_missing_inputs_only_match_wildcards():
    candidates = [_config(1, device_type_id=7), _config(2, customer_tier="gold"), _config(3)]

    assert ConfigurationResolver.select_best(candidates, None, None, "repair").id == 3


def test_no_candidates_returns_none():
    assert ConfigurationResolver.select_best([], 7, "gold", "repair") is None


@pytest.mark.parametrize(
    "device_type_id, customer_tier, expected",
    [
        (7, "gold", ConfigurationResolver.DEVICE_AND_TIER),
        (7, None, ConfigurationResolver.DEVICE_ONLY),
        (None, "gold", ConfigurationResolver.TIER_ONLY),
        (None, None, ConfigurationResolver.GENERIC),
    ],
)
def test_specificity_rank(device_type_id, customer_tier, expected):
    configuration = _config(1, device_type_id=device_type_id, customer_tier=customer_tier)

    assert ConfigurationResolver.specificity_rank(configuration, 7, "gold", "repair") == expected


@pytest.mark.anyio
async def test_select_configuration_reads_candidates_from_storage(database, seed):
    laptop = await seed.device_type("laptop")
    active = await seed.definition(name="repair-v1")
    retired = await seed.definition(name="repair-old", is_active=False)

    await seed.configuration(retired, device_type_id=laptop, customer_tier="gold")
    generic_id = await seed.configuration(active)
    device_id = await seed.configuration(active, device_type_id=laptop)
    await seed.configuration(active, service_type="installation", device_type_id=laptop)

    async with database.session_scope() as session:
        service = WorkflowConfigurationService(SQLAlchemyWorkflowConfigurationRepository(session))
        best = await service.select_configuration(laptop, "gold", "repair")
        fallback = await service.select_configuration(None, "gold", "repair")
        nothing = await service.select_configuration(laptop, "gold", "inspection")

    assert best.id == device_id
    assert fallback.id == generic_id
    assert nothing is None
