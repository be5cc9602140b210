"""
Job prioritizer.

Scores the urgency of open jobs from four factors (deadline, billing value,
time open, stack complexity), each 0-100, weighted by the active
prioritization config. The weighted base is scaled by the job's urgency-tier
multiplier and VIP clients earn a flat bonus.
"""

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Iterable, Optional

from src.core.allocation.config_store import ConfigurationStore
from src.data.models import JobRequisition, PrioritizationConfig
from src.utils.config import AllocationSettings, get_settings
from src.utils.constants import PRIORITY_SCORE_MAX, ConfigKind, PriorityLevel, UrgencyTier
from src.utils.logger import get_logger

logger = get_logger(__name__)

# Suggested days to close, per level
SLA_DAYS: dict[PriorityLevel, int] = {
    PriorityLevel.HIGH: 7,
    PriorityLevel.MEDIUM: 15,
    PriorityLevel.LOW: 30,
}

# (days remaining up to, factor score); overdue jobs score 100
DEADLINE_STEPS: list[tuple[int, float]] = [(0, 100.0), (7, 85.0), (14, 50.0), (30, 25.0)]
DEADLINE_FAR = 10.0
DEADLINE_UNKNOWN = 30.0


@dataclass
class JobPriority:
    """Urgency score of one job."""

    job_id: int
    title: str = ""

    deadline_urgency: float = 0.0
    billing_value: float = 0.0
    time_open: float = 0.0
    stack_complexity: float = 0.0

    base_score: float = 0.0
    multiplier: float = 1.0
    vip_bonus: float = 0.0
    score: float = 0.0

    level: PriorityLevel = PriorityLevel.LOW
    sla_days: int = 30
    days_remaining: Optional[int] = None
    days_open: Optional[int] = None
    justification: str = ""

    @property
    def overdue(self) -> bool:
        return self.days_remaining is not None and self.days_remaining < 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["level"] = PriorityLevel(self.level).value
        data["overdue"] = self.overdue
        return data


class JobPrioritizer:
    """Computes and ranks JobPriority values."""

    def __init__(
        self,
        config_store: Optional[ConfigurationStore] = None,
        settings: Optional[AllocationSettings] = None,
    ):
        self._config_store = config_store
        self.settings = settings or get_settings().allocation

    def _active_config(self) -> PrioritizationConfig:
        if self._config_store is None:
            return PrioritizationConfig()
        return self._config_store.get_active(ConfigKind.PRIORITIZATION)

    def score(
        self,
        job: JobRequisition,
        config: Optional[PrioritizationConfig] = None,
        today: Optional[date] = None,
    ) -> JobPriority:
        """
        Score the urgency of one job.

        Args:
            job: The job requisition
            config: Prioritization config; defaults to the active one
            today: Reference date; defaults to today

        Returns:
            JobPriority with factor scores, final score and level
        """
        config = config or self._active_config()
        today = today or date.today()

        days_remaining = (job.deadline - today).days if job.deadline else None
        days_open = max(0, (today - job.opened_on).days) if job.opened_on else None

        result = JobPriority(
            job_id=job.job_id,
            title=job.title,
            deadline_urgency=self._deadline_factor(days_remaining),
            billing_value=self._ratio_factor(job.billing_value, self.settings.billing_reference_value),
            time_open=self._ratio_factor(days_open or 0, self.settings.time_open_reference_days),
            stack_complexity=self._ratio_factor(
                len(job.required_stack), self.settings.stack_complexity_reference
            ),
            days_remaining=days_remaining,
            days_open=days_open,
        )

        result.base_score = round(
            (
                result.deadline_urgency * config.weight_deadline_urgency
                + result.billing_value * config.weight_billing_value
                + result.time_open * config.weight_time_open
                + result.stack_complexity * config.weight_stack_complexity
            )
            / 100,
            2,
        )
        result.multiplier = {
            UrgencyTier.LOW: config.multiplier_low,
            UrgencyTier.NORMAL: config.multiplier_normal,
            UrgencyTier.CRITICAL: config.multiplier_critical,
        }[UrgencyTier(job.urgency)]
        result.vip_bonus = config.vip_client_bonus if job.vip_client else 0.0

        raw = result.base_score * result.multiplier + result.vip_bonus
        result.score = round(max(0.0, min(PRIORITY_SCORE_MAX, raw)), 2)

        if result.score >= config.level_high_min:
            result.level = PriorityLevel.HIGH
        elif result.score >= config.level_medium_min:
            result.level = PriorityLevel.MEDIUM
        else:
            result.level = PriorityLevel.LOW

        result.sla_days = SLA_DAYS[result.level]
        if days_remaining is not None and 0 < days_remaining < result.sla_days:
            result.sla_days = days_remaining

        result.justification = self._generate_justification(job, result)
        return result

    def rank(
        self,
        jobs: Iterable[JobRequisition],
        today: Optional[date] = None,
    ) -> list[JobPriority]:
        """
        Rank jobs by urgency.

        Ties go to the earlier deadline, then the lower job ID.
        """
        config = self._active_config()
        jobs = list(jobs)
        deadlines = {j.job_id: j.deadline or date.max for j in jobs}
        priorities = [self.score(job, config, today) for job in jobs]
        priorities.sort(key=lambda p: (-p.score, deadlines[p.job_id], p.job_id))
        logger.debug(f"Prioritized {len(priorities)} job(s)")
        return priorities

    # -------------------------------------------------------------------------
    # Factors
    # -------------------------------------------------------------------------

    @staticmethod
    def _deadline_factor(days_remaining: Optional[int]) -> float:
        if days_remaining is None:
            return DEADLINE_UNKNOWN
        for limit, value in DEADLINE_STEPS:
            if days_remaining <= limit:
                return value
        return DEADLINE_FAR

    @staticmethod
    def _ratio_factor(value: float, reference: float) -> float:
        if reference <= 0:
            return 0.0
        return round(min(100.0, max(0.0, value) / reference * 100), 2)

    @staticmethod
    def _generate_justification(job: JobRequisition, priority: JobPriority) -> str:
        parts = []
        if priority.overdue:
            parts.append(f"overdue by {-priority.days_remaining} day(s)")
        elif priority.deadline_urgency >= 50:
            parts.append(f"deadline in {priority.days_remaining} day(s)")
        if priority.billing_value >= 70:
            parts.append("high billing value")
        if priority.time_open >= 70:
            parts.append(f"open for {priority.days_open} day(s)")
        if priority.stack_complexity >= 70:
            parts.append(f"complex stack ({len(job.required_stack)} technologies)")
        if priority.vip_bonus:
            parts.append("VIP client")
        if UrgencyTier(job.urgency) == UrgencyTier.CRITICAL:
            parts.append("flagged critical")
        if not parts:
            return "Priority calculated automatically"
        return "; ".join(parts)
