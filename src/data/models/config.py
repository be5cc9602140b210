"""
Weighting configuration data models.

Defines the versioned distribution and prioritization configurations and
the per-field change history kept for every update.
"""

from datetime import datetime
from typing import Any, ClassVar, Optional

from pydantic import Field

from src.utils.constants import ConfigKind

from .base import BaseDocument, utcnow


class WeightedConfig(BaseDocument):
    """
    Common shape of a versioned weighting configuration.

    Exactly one row per kind is active. Rows are never updated after being
    superseded; an update inserts a new version.
    """

    kind: ClassVar[ConfigKind]
    weight_fields: ClassVar[tuple[str, ...]] = ()

    name: str = "default"
    version: int = 1
    active: bool = False
    updated_by: Optional[int] = None

    @property
    def weight_sum(self) -> float:
        """Sum of the weight fields."""
        return sum(getattr(self, f) for f in self.weight_fields)

    @classmethod
    def editable_fields(cls) -> tuple[str, ...]:
        """Fields an operator may set through a proposal."""
        bookkeeping = {"id", "created_at", "updated_at", "version", "active", "updated_by"}
        return tuple(f for f in cls.model_fields if f not in bookkeeping)

    def editable_values(self) -> dict[str, Any]:
        """Current values of the editable fields."""
        return {f: getattr(self, f) for f in self.editable_fields()}


class DistributionConfig(WeightedConfig):
    """Weights and thresholds used to score analysts against a job."""

    kind: ClassVar[ConfigKind] = ConfigKind.DISTRIBUTION
    weight_fields: ClassVar[tuple[str, ...]] = (
        "weight_stack_fit",
        "weight_client_fit",
        "weight_availability",
        "weight_success_rate",
    )

    weight_stack_fit: float = 40
    weight_client_fit: float = 30
    weight_availability: float = 20
    weight_success_rate: float = 10

    default_capacity: int = 7

    band_excellent_min: float = 85
    band_good_min: float = 70
    band_regular_min: float = 50

    class Settings:
        """MongoDB collection settings."""

        name = "distribution_configs"


class PrioritizationConfig(WeightedConfig):
    """Weights, bonus and multipliers used to score job urgency."""

    kind: ClassVar[ConfigKind] = ConfigKind.PRIORITIZATION
    weight_fields: ClassVar[tuple[str, ...]] = (
        "weight_deadline_urgency",
        "weight_billing_value",
        "weight_time_open",
        "weight_stack_complexity",
    )

    weight_deadline_urgency: float = 25
    weight_billing_value: float = 25
    weight_time_open: float = 25
    weight_stack_complexity: float = 25

    vip_client_bonus: float = 20

    multiplier_low: float = 0.8
    multiplier_normal: float = 1.0
    multiplier_critical: float = 1.5

    level_high_min: float = 80
    level_medium_min: float = 50

    class Settings:
        """MongoDB collection settings."""

        name = "prioritization_configs"


CONFIG_MODELS: dict[ConfigKind, type[WeightedConfig]] = {
    ConfigKind.DISTRIBUTION: DistributionConfig,
    ConfigKind.PRIORITIZATION: PrioritizationConfig,
}


class ConfigChange(BaseDocument):
    """One changed field of a configuration update."""

    kind: ConfigKind
    config_version: int
    field_name: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    changed_by: Optional[int] = None
    changed_at: datetime = Field(default_factory=utcnow)

    class Settings:
        """MongoDB collection settings."""

        name = "config_history"
        indexes = ["kind", "changed_at"]
