"""
Workflow Value Objects
=======================

Immutable value objects and pure domain services for workflow orchestration.

Value objects are defined by their attributes rather than an identity.
"""

from typing import Any, Dict, Iterable, Optional, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from src.workflow.domain.entities import WorkflowConfiguration


class WorkflowVariables(BaseModel):
    """
    Variables carried by a workflow instance.

    Known keys are typed; anything else reported by steps lands in ``extra``.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    configuration_id: Optional[int] = None
    service_type: Optional[str] = None
    priority: Optional[str] = None
    device_type_id: Optional[int] = None
    customer_tier: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    def merge_output(self, output: Optional[Dict[str, Any]]) -> "WorkflowVariables":
        """Return a copy with a step's output merged into ``extra``."""
        if not output:
            return self
        return self.model_copy(update={"extra": {**self.extra, **output}})


class HistoryMetadata(BaseModel):
    """Metadata attached to a state history entry."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    reason: Optional[str] = None
    outcome: Optional[str] = None
    notes: Optional[str] = None
    completed_by: Optional[str] = None
    configuration_id: Optional[int] = None
    extra: Dict[str, Any] = Field(default_factory=dict)


class ConfigurationResolver:
    """
    Pure functions for choosing a workflow configuration.

    Ranks (lower is more specific):
        1. device type exact, customer tier exact
        2. device type exact, customer tier wildcard
        3. device type wildcard, customer tier exact
        4. both wildcard
    Ties within a rank go to the lowest configuration id.
    """

    DEVICE_AND_TIER = 1
    DEVICE_ONLY = 2
    TIER_ONLY = 3
    GENERIC = 4

    @staticmethod
    def specificity_rank(
        configuration: "WorkflowConfiguration",
        device_type_id: Optional[int],
        customer_tier: Optional[str],
        service_type: str
    ) -> Optional[int]:
        """
        Rank a configuration against a case, or None if it does not match.

        A configuration matches when its service type equals the input, each
        of its device type and customer tier is either a wildcard or equal to
        the input, and both it and its workflow definition are active.
        """
        if not (configuration.is_active and configuration.definition_is_active):
            return None
        if configuration.service_type != service_type:
            return None

        if configuration.device_type_id is None:
            device_exact = False
        elif device_type_id is not None and configuration.device_type_id == device_type_id:
            device_exact = True
        else:
            return None

        if configuration.customer_tier is None:
            tier_exact = False
        elif customer_tier is not None and configuration.customer_tier == customer_tier:
            tier_exact = True
        else:
            return None

        if device_exact and tier_exact:
            return ConfigurationResolver.DEVICE_AND_TIER
        if device_exact:
            return ConfigurationResolver.DEVICE_ONLY
        if tier_exact:
            return ConfigurationResolver.TIER_ONLY
        return ConfigurationResolver.GENERIC

    @staticmethod
    def select_best(
        candidates: Iterable["WorkflowConfiguration"],
        device_type_id: Optional[int],
        customer_tier: Optional[str],
        service_type: str
    ) -> Optional["WorkflowConfiguration"]:
        """Return the most specific matching configuration, or None."""
        best = None
        best_key = None

        for configuration in candidates:
            rank = ConfigurationResolver.specificity_rank(
                configuration, device_type_id, customer_tier, service_type
            )
            if rank is None:
                continue
            key = (rank, configuration.id)
            if best_key is None or key < best_key:
                best, best_key = configuration, key

        return best
