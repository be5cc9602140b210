"""
Analyst scoring engine.

Scores an analyst against a job across five dimensions:
- Specialization: overlap between the analyst's tags and the job's stack
- Client fit: prior successful placements with the job's client
- Load: room left under the analyst's capacity
- Approval rate: approved / total historical submissions
- Speed: inverse of the mean response time

Scoring is a pure function of its inputs.
"""

from dataclasses import asdict, dataclass
from typing import Any, Optional

from src.data.models import AnalystProfile, DistributionConfig, JobRequisition
from src.utils.config import AllocationSettings, get_settings
from src.utils.constants import (
    DEFAULT_DISTRIBUTION_WEIGHTS,
    RELATED_STACK_GROUPS,
    SUB_SCORE_CAPS,
    ScoreBand,
)
from src.utils.logger import get_logger

logger = get_logger(__name__)

# Config weight driving each weighted dimension; speed is unweighted
DIMENSION_WEIGHTS: dict[str, str] = {
    "specialization": "weight_stack_fit",
    "client_fit": "weight_client_fit",
    "load": "weight_availability",
    "approval_rate": "weight_success_rate",
}


@dataclass
class AnalystScore:
    """Compatibility of one analyst with one job. Never persisted."""

    analyst_id: int
    analyst_name: str = ""

    specialization: float = 0.0
    client_fit: float = 0.0
    load: float = 0.0
    approval_rate: float = 0.0
    speed: float = 0.0

    total: float = 0.0
    band: ScoreBand = ScoreBand.CRITICAL

    current_load: int = 0
    capacity: int = 0
    matched_stack: tuple[str, ...] = ()

    justification: str = ""
    ai_justification: Optional[str] = None

    @property
    def sub_scores(self) -> dict[str, float]:
        """Sub-scores keyed by dimension."""
        return {name: getattr(self, name) for name in SUB_SCORE_CAPS}

    @property
    def at_capacity(self) -> bool:
        return self.current_load >= self.capacity

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["band"] = ScoreBand(self.band).value
        data["matched_stack"] = list(self.matched_stack)
        return data


class ScoringEngine:
    """
    Computes AnalystScore values.

    Each dimension yields a fraction in [0, 1]. A weighted dimension scores
    min(cap, cap * fraction * weight / reference_weight), so the default
    weights reproduce the plain caps and a heavier weight reaches the cap
    with less evidence.
    """

    def __init__(self, settings: Optional[AllocationSettings] = None):
        """
        Initialize the scoring engine.

        Args:
            settings: Tuning knobs; defaults to the application settings
        """
        self.settings = settings or get_settings().allocation

    def score(
        self,
        job: JobRequisition,
        analyst: AnalystProfile,
        config: DistributionConfig,
    ) -> AnalystScore:
        """
        Score an analyst against a job.

        Args:
            job: The job requisition
            analyst: Profile and performance of the analyst
            config: Active distribution configuration

        Returns:
            AnalystScore with sub-scores, total, band and justification
        """
        capacity = analyst.capacity or config.default_capacity
        matched, specialization = self._specialization_fraction(job, analyst)

        fractions = {
            "specialization": specialization,
            "client_fit": self._client_fit_fraction(job, analyst),
            "load": self._load_fraction(analyst.active_candidates, capacity),
            "approval_rate": self._approval_fraction(analyst),
            "speed": self._speed_fraction(analyst),
        }

        result = AnalystScore(
            analyst_id=analyst.analyst_id,
            analyst_name=analyst.name,
            current_load=analyst.active_candidates,
            capacity=capacity,
            matched_stack=tuple(matched),
        )
        for name, fraction in fractions.items():
            setattr(result, name, self._scale(name, fraction, config))

        result.total = round(min(100.0, sum(result.sub_scores.values())), 2)
        result.band = ScoreBand.from_score(
            result.total,
            config.band_excellent_min,
            config.band_good_min,
            config.band_regular_min,
        )
        result.justification = self._generate_justification(result)
        return result

    def _scale(self, name: str, fraction: float, config: DistributionConfig) -> float:
        cap = SUB_SCORE_CAPS[name]
        fraction = max(0.0, min(1.0, fraction))
        weight_field = DIMENSION_WEIGHTS.get(name)
        if weight_field is None:
            return round(cap * fraction, 2)
        ratio = getattr(config, weight_field) / DEFAULT_DISTRIBUTION_WEIGHTS[weight_field]
        return round(min(cap, cap * fraction * ratio), 2)

    # -------------------------------------------------------------------------
    # Dimensions
    # -------------------------------------------------------------------------

    def _specialization_fraction(
        self,
        job: JobRequisition,
        analyst: AnalystProfile,
    ) -> tuple[list[str], float]:
        """Share of the job's stack the analyst covers."""
        required = job.required_stack
        if not required:
            return [], 0.5

        tags = set(analyst.specialization_tags)
        matched = []
        points = 0.0
        for tech in required:
            if tech in tags:
                matched.append(tech)
                points += 1
            elif self._find_related_tag(tech, tags):
                points += 0.5

        return matched, points / len(required)

    @staticmethod
    def _find_related_tag(target: str, tags: set[str]) -> Optional[str]:
        """Find a tag in the same technology family as the target."""
        for group in RELATED_STACK_GROUPS:
            if target in group:
                for tag in tags:
                    if tag in group and tag != target:
                        return tag
        return None

    def _client_fit_fraction(self, job: JobRequisition, analyst: AnalystProfile) -> float:
        saturation = max(1, self.settings.client_fit_saturation)
        successes = analyst.successes_with(job.client_id)
        return min(successes, saturation) / saturation

    @staticmethod
    def _load_fraction(load: int, capacity: int) -> float:
        # At or over capacity scores nothing
        if capacity <= 0 or load >= capacity:
            return 0.0
        return 1.0 - load / capacity

    def _approval_fraction(self, analyst: AnalystProfile) -> float:
        ratio = analyst.approval_ratio
        if ratio is None:
            return self.settings.neutral_approval_fraction
        return ratio

    def _speed_fraction(self, analyst: AnalystProfile) -> float:
        days = analyst.mean_response_days
        if days is None:
            return self.settings.neutral_speed_fraction
        reference = self.settings.speed_reference_days
        return reference / (reference + max(0.0, days))

    # -------------------------------------------------------------------------
    # Explanation
    # -------------------------------------------------------------------------

    @staticmethod
    def _generate_justification(score: AnalystScore) -> str:
        """Summarize the dominant factors. Advisory text only."""
        share = {
            name: value / SUB_SCORE_CAPS[name] for name, value in score.sub_scores.items()
        }
        parts = []

        if share["specialization"] >= 0.8:
            parts.append("specialist in the required stack")
        elif share["specialization"] >= 0.5:
            parts.append("experience with the required stack")

        if share["client_fit"] >= 0.8:
            parts.append("excellent relationship with the client")
        elif share["client_fit"] >= 0.4:
            parts.append("knows the client")

        if score.at_capacity:
            parts.append(f"at capacity ({score.current_load}/{score.capacity})")
        elif share["load"] >= 0.8:
            parts.append("good availability")
        elif share["load"] <= 0.4:
            parts.append(f"high current load ({score.current_load}/{score.capacity})")

        if share["approval_rate"] >= 0.8:
            parts.append("high approval rate")

        if share["speed"] >= 0.8:
            parts.append("fast response time")

        if not parts:
            return "no dominant factor"
        return ", ".join(parts)
