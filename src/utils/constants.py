"""
Application-wide constants for the analyst allocation engine.

This module contains all constant values used throughout the application.
Modify these values to customize behavior without changing code logic.
"""

from enum import Enum
from typing import Final


# =============================================================================
# Application Constants
# =============================================================================

APP_NAME: Final[str] = "Allocation Engine"
APP_DISPLAY_NAME: Final[str] = "Recruiting Analyst Allocation Engine"
VERSION: Final[str] = "0.1.0"


# =============================================================================
# Scoring Constants
# =============================================================================

# Maximum points per sub-score of an analyst compatibility score (sum = 100)
SUB_SCORE_CAPS: Final[dict[str, float]] = {
    "specialization": 30.0,
    "client_fit": 25.0,
    "load": 20.0,
    "approval_rate": 15.0,
    "speed": 10.0,
}

# Seed weights for the distribution config. Also the reference the scoring
# engine measures configured weights against: these weights yield the caps above.
DEFAULT_DISTRIBUTION_WEIGHTS: Final[dict[str, int]] = {
    "weight_stack_fit": 40,
    "weight_client_fit": 30,
    "weight_availability": 20,
    "weight_success_rate": 10,
}

DEFAULT_DISTRIBUTION_CONFIG: Final[dict[str, object]] = {
    "name": "default",
    **DEFAULT_DISTRIBUTION_WEIGHTS,
    "default_capacity": 7,
    "band_excellent_min": 85,
    "band_good_min": 70,
    "band_regular_min": 50,
}

DEFAULT_PRIORITIZATION_CONFIG: Final[dict[str, object]] = {
    "name": "default",
    "weight_deadline_urgency": 25,
    "weight_billing_value": 25,
    "weight_time_open": 25,
    "weight_stack_complexity": 25,
    "vip_client_bonus": 20,
    "multiplier_low": 0.8,
    "multiplier_normal": 1.0,
    "multiplier_critical": 1.5,
    "level_high_min": 80,
    "level_medium_min": 50,
}

# Related technology groups; a related match counts as half a match
RELATED_STACK_GROUPS: Final[list[frozenset[str]]] = [
    frozenset({"python", "django", "flask", "fastapi"}),
    frozenset({"javascript", "typescript", "node.js", "react", "angular", "vue"}),
    frozenset({"java", "spring", "hibernate", "kotlin"}),
    frozenset({"c#", ".net", "asp.net"}),
    frozenset({"sql", "mysql", "postgresql", "oracle", "sql server"}),
    frozenset({"aws", "gcp", "azure", "cloud"}),
    frozenset({"docker", "kubernetes", "openshift"}),
    frozenset({"sap", "sap abap", "sap fi", "sap mm", "sap sd"}),
    frozenset({"dynatrace", "datadog", "new relic", "grafana"}),
]

# Job prioritization limits
PRIORITY_SCORE_MAX: Final[float] = 120.0
VIP_BONUS_MAX: Final[int] = 50


# =============================================================================
# Enums
# =============================================================================


class ConfigKind(str, Enum):
    """Kinds of versioned weighting configuration."""

    DISTRIBUTION = "distribution"
    PRIORITIZATION = "prioritization"


class ScoreBand(str, Enum):
    """Qualitative band of an analyst compatibility score."""

    EXCELLENT = "excellent"
    GOOD = "good"
    REGULAR = "regular"
    CRITICAL = "critical"

    @classmethod
    def from_score(
        cls,
        score: float,
        excellent_min: float,
        good_min: float,
        regular_min: float,
    ) -> "ScoreBand":
        """Convert a numeric score to a band using config thresholds."""
        if score >= excellent_min:
            return cls.EXCELLENT
        elif score >= good_min:
            return cls.GOOD
        elif score >= regular_min:
            return cls.REGULAR
        return cls.CRITICAL


class PriorityLevel(str, Enum):
    """Priority level of a job requisition."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class UrgencyTier(str, Enum):
    """Operator-assigned urgency flag of a job."""

    LOW = "low"
    NORMAL = "normal"
    CRITICAL = "critical"


class DecisionType(str, Enum):
    """Outcome of an allocation decision."""

    AI_ACCEPTED = "ai_accepted"
    MANUAL_OVERRIDE = "manual_override"


class OverrideReason(str, Enum):
    """Categories an operator picks when overriding the ranked suggestion."""

    ANALYST_DEVELOPMENT = "desenvolvimento_analista"
    CLIENT_RELATIONSHIP = "relacionamento_cliente"
    LOAD_BALANCING = "balanceamento_carga"
    SPECIFIC_KNOWLEDGE = "conhecimento_especifico"
    UNAVAILABILITY = "indisponibilidade"
    OTHER = "other"


class AssignmentType(str, Enum):
    """How a candidate application reached an analyst."""

    AUTOMATIC = "automatic"
    MANUAL = "manual"
    REDISTRIBUTION = "redistribution"


class FlowState(str, Enum):
    """States of the operator allocation flow."""

    RANKING = "ranking"
    MANUAL_SELECTION = "manual_selection"
    CONFIRMATION = "confirmation"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class NotificationEvent(str, Enum):
    """Events pushed to the notification dispatcher."""

    DECISION_RECORDED = "decision_recorded"
    CANDIDATE_REDISTRIBUTED = "candidate_redistributed"
    CAPACITY_EXHAUSTED = "capacity_exhausted"


class AuditType(str, Enum):
    """Audit log categories."""

    DECISION = "DECISION"
    OVERRIDE = "OVERRIDE"
    CONFIG = "CONFIG"
    REDISTRIBUTION = "REDISTRIBUTION"
    ASSIGNMENT = "ASSIGNMENT"
