"""
Configuration store for the allocation engine.

Holds the active distribution and prioritization configurations. Every
update is validated as a whole, creates a new version, swaps the active row
atomically and appends one history entry per changed field.
"""

import math
import threading
from typing import Any, Optional

from src.core.errors import ConfigNotFoundError, ConfigValidationError, Violation
from src.data.models import CONFIG_MODELS, ConfigChange, WeightedConfig
from src.data.store import AllocationStore
from src.utils.constants import (
    DEFAULT_DISTRIBUTION_CONFIG,
    DEFAULT_PRIORITIZATION_CONFIG,
    PRIORITY_SCORE_MAX,
    VIP_BONUS_MAX,
    AuditType,
    ConfigKind,
)
from src.utils.logger import LoggerMixin, audit_log

DEFAULTS: dict[ConfigKind, dict[str, Any]] = {
    ConfigKind.DISTRIBUTION: dict(DEFAULT_DISTRIBUTION_CONFIG),
    ConfigKind.PRIORITIZATION: dict(DEFAULT_PRIORITIZATION_CONFIG),
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class ConfigurationStore(LoggerMixin):
    """Versioned store of weighting configurations."""

    def __init__(self, store: AllocationStore):
        self._store = store
        self._locks = {kind: threading.Lock() for kind in ConfigKind}

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_active(self, kind: ConfigKind) -> WeightedConfig:
        """
        Get the active configuration of a kind.

        Raises:
            ConfigNotFoundError: No configuration of this kind is active
        """
        kind = ConfigKind(kind)
        config = self._store.get_active_config(kind)
        if config is None:
            raise ConfigNotFoundError(kind.value)
        return config

    def history(self, kind: ConfigKind, limit: int = 50) -> list[ConfigChange]:
        """Most recent field changes of a kind, newest first."""
        return self._store.list_config_changes(ConfigKind(kind), limit=limit)

    def versions(self, kind: ConfigKind) -> list[WeightedConfig]:
        """Every stored version of a kind, newest first."""
        return self._store.list_configs(ConfigKind(kind))

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self, kind: ConfigKind, fields: dict[str, Any]) -> list[Violation]:
        """
        Check a proposal without saving it.

        Omitted fields are taken from the active configuration, or from the
        defaults when none is active.

        Returns:
            Every violated rule; empty when the proposal is valid
        """
        kind = ConfigKind(kind)
        _, violations = self._merge_and_check(kind, fields)
        return violations

    def _baseline(self, kind: ConfigKind) -> dict[str, Any]:
        active = self._store.get_active_config(kind)
        if active is not None:
            return active.editable_values()
        return dict(DEFAULTS[kind])

    def _merge_and_check(
        self,
        kind: ConfigKind,
        fields: dict[str, Any],
    ) -> tuple[dict[str, Any], list[Violation]]:
        model = CONFIG_MODELS[kind]
        allowed = set(model.editable_fields())
        violations: list[Violation] = []

        for name in fields:
            if name not in allowed:
                violations.append(Violation(name, "Unknown configuration field"))

        merged = self._baseline(kind)
        merged.update({k: v for k, v in fields.items() if k in allowed})

        name = merged.get("name")
        if not isinstance(name, str) or not name.strip():
            violations.append(Violation("name", "Name must be a non-empty string"))

        numeric = [f for f in allowed if f != "name"]
        non_numeric = {f for f in numeric if not _is_number(merged.get(f))}
        for f in sorted(non_numeric):
            violations.append(Violation(f, "Must be a number"))

        for f in model.weight_fields:
            if f not in non_numeric and not 0 <= merged[f] <= 100:
                violations.append(Violation(f, "Weight must be between 0 and 100"))

        if not non_numeric.intersection(model.weight_fields):
            total = sum(merged[f] for f in model.weight_fields)
            if not math.isclose(total, 100.0, abs_tol=1e-9):
                violations.append(Violation("weights", f"Weights must sum to 100 (got {total:g})"))

        if kind == ConfigKind.DISTRIBUTION:
            violations.extend(self._check_distribution(merged, non_numeric))
        else:
            violations.extend(self._check_prioritization(merged, non_numeric))

        return merged, violations

    @staticmethod
    def _check_distribution(merged: dict[str, Any], non_numeric: set[str]) -> list[Violation]:
        violations = []
        capacity = merged["default_capacity"]
        if "default_capacity" not in non_numeric:
            if capacity < 1 or capacity != int(capacity):
                violations.append(Violation("default_capacity", "Capacity must be a whole number of at least 1"))

        bands = ["band_excellent_min", "band_good_min", "band_regular_min"]
        for f in bands:
            if f not in non_numeric and not 0 <= merged[f] <= 100:
                violations.append(Violation(f, "Threshold must be between 0 and 100"))
        for upper, lower in zip(bands, bands[1:]):
            if upper not in non_numeric and lower not in non_numeric and merged[upper] <= merged[lower]:
                violations.append(Violation(lower, f"Threshold must be below {upper}"))
        return violations

    @staticmethod
    def _check_prioritization(merged: dict[str, Any], non_numeric: set[str]) -> list[Violation]:
        violations = []
        if "vip_client_bonus" not in non_numeric and not 0 <= merged["vip_client_bonus"] <= VIP_BONUS_MAX:
            violations.append(Violation("vip_client_bonus", f"VIP bonus must be between 0 and {VIP_BONUS_MAX}"))

        for f in ("multiplier_low", "multiplier_normal", "multiplier_critical"):
            if f not in non_numeric and merged[f] <= 0:
                violations.append(Violation(f, "Multiplier must be greater than 0"))

        levels = ["level_high_min", "level_medium_min"]
        for f in levels:
            if f not in non_numeric and not 0 <= merged[f] <= PRIORITY_SCORE_MAX:
                violations.append(Violation(f, f"Threshold must be between 0 and {PRIORITY_SCORE_MAX:g}"))
        if not non_numeric.intersection(levels) and merged["level_high_min"] <= merged["level_medium_min"]:
            violations.append(Violation("level_medium_min", "Threshold must be below level_high_min"))
        return violations

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def propose(
        self,
        kind: ConfigKind,
        fields: dict[str, Any],
        actor_id: Optional[int] = None,
    ) -> WeightedConfig:
        """
        Validate and activate a new configuration version.

        Args:
            kind: Configuration kind
            fields: Fields to change; omitted ones are inherited
            actor_id: User making the change

        Returns:
            The new active configuration

        Raises:
            ConfigValidationError: With every violated rule; nothing is saved
        """
        kind = ConfigKind(kind)
        with self._locks[kind], self._store.transaction():
            previous = self._store.get_active_config(kind)
            merged, violations = self._merge_and_check(kind, fields)
            if violations:
                self.logger.info(f"Rejected {kind.value} config proposal: {len(violations)} violation(s)")
                raise ConfigValidationError(violations)

            existing = self._store.list_configs(kind)
            version = existing[0].version + 1 if existing else 1
            model = CONFIG_MODELS[kind]
            if "default_capacity" in merged:
                merged["default_capacity"] = int(merged["default_capacity"])
            config = model(**merged, version=version, updated_by=actor_id)

            old_values = previous.editable_values() if previous else {}
            changes = [
                ConfigChange(
                    kind=kind,
                    config_version=version,
                    field_name=f,
                    old_value=old_values.get(f),
                    new_value=value,
                    changed_by=actor_id,
                )
                for f, value in config.editable_values().items()
                if previous is None or old_values.get(f) != value
            ]
            activated = self._store.activate_config(config, changes)

        self.logger.info(f"Activated {kind.value} config version {version} ({len(changes)} change(s))")
        audit_log(
            "config_activated",
            {
                "kind": kind.value,
                "version": version,
                "actor_id": actor_id,
                "changes": {c.field_name: [c.old_value, c.new_value] for c in changes},
            },
            AuditType.CONFIG,
        )
        return activated

    def ensure_defaults(self) -> list[WeightedConfig]:
        """Seed the default configuration of each kind that has none active."""
        seeded = []
        for kind in ConfigKind:
            if self._store.get_active_config(kind) is None:
                seeded.append(self.propose(kind, {}))
        return seeded
