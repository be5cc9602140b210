"""
Operator allocation flow.

Explicit state machine for one operator allocating analysts to one job:

    ranking -> manual_selection -> confirmation -> completed
    ranking ---------------------> confirmation        (accept suggestion)
    any open state -> cancelled

Nothing is written before confirm(); cancelling earlier has no side effects.
"""

from dataclasses import dataclass, field
from typing import Optional

from src.core.allocation.distribution import DistributionService
from src.core.allocation.ranking import RankingService, is_override
from src.core.allocation.scoring import AnalystScore
from src.core.errors import (
    AlreadyAssignedError,
    DecisionValidationError,
    FlowStateError,
    ValidationError,
    Violation,
)
from src.data.models import AllocationDecision, JobAnalystAssignment, JobRequisition
from src.utils.config import AllocationSettings, get_settings
from src.utils.constants import FlowState, OverrideReason
from src.utils.logger import LoggerMixin

TERMINAL_STATES = {FlowState.COMPLETED, FlowState.CANCELLED}


@dataclass
class FlowOutcome:
    """What a confirmed flow wrote."""

    decision: AllocationDecision
    attached: list[JobAnalystAssignment] = field(default_factory=list)
    already_attached: list[int] = field(default_factory=list)


class AllocationFlow(LoggerMixin):
    """Drives ranking, selection and confirmation for one job."""

    def __init__(
        self,
        job: JobRequisition,
        ranking: RankingService,
        distribution: DistributionService,
        settings: Optional[AllocationSettings] = None,
    ):
        self.job = job
        self._ranking_service = ranking
        self._distribution = distribution
        self.settings = settings or get_settings().allocation

        self.state = FlowState.RANKING
        self.ranking: list[AnalystScore] = []
        self.selection: list[int] = []
        self.decision: Optional[AllocationDecision] = None
        self.outcome: Optional[FlowOutcome] = None

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require(self, action: str, *states: FlowState) -> None:
        if self.state not in states:
            raise FlowStateError(action, FlowState(self.state).value)

    @property
    def suggested(self) -> list[int]:
        """Analyst IDs in ranking order."""
        return [s.analyst_id for s in self.ranking]

    @property
    def is_override(self) -> bool:
        """Whether the current selection departs from the suggestion."""
        return bool(self.selection) and is_override(self.suggested, self.selection)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def load_ranking(self) -> list[AnalystScore]:
        """Compute (or refresh) the ranking. Read-only."""
        self._require("load ranking", FlowState.RANKING)
        self.ranking = self._ranking_service.rank(self.job)
        return self.ranking

    def accept_suggestion(self, top_n: Optional[int] = None) -> list[int]:
        """Take the top-N suggested analysts and move to confirmation."""
        self._require("accept suggestion", FlowState.RANKING)
        top_n = top_n or self.settings.default_accept_top_n
        if not self.ranking:
            raise DecisionValidationError([Violation("ranking", "No analysts to suggest")])
        self.selection = self.suggested[:top_n]
        self.state = FlowState.CONFIRMATION
        return self.selection

    def start_manual_selection(self) -> None:
        """Let the operator pick analysts by hand."""
        self._require("start manual selection", FlowState.RANKING)
        self.state = FlowState.MANUAL_SELECTION

    def select(self, analyst_ids: list[int]) -> list[int]:
        """Set the hand-picked analysts and move to confirmation."""
        self._require("select analysts", FlowState.MANUAL_SELECTION)
        violations = []
        if not analyst_ids:
            violations.append(Violation("selection", "Select at least one analyst"))
        if len(set(analyst_ids)) != len(analyst_ids):
            violations.append(Violation("selection", "Analysts must be distinct"))
        if len(analyst_ids) > self.settings.max_selected_analysts:
            violations.append(
                Violation("selection", f"Select at most {self.settings.max_selected_analysts} analysts")
            )
        unknown = [a for a in analyst_ids if a not in self.suggested]
        if unknown:
            violations.append(Violation("selection", f"Analysts not in the ranking: {unknown}"))
        if violations:
            raise DecisionValidationError(violations)

        self.selection = list(analyst_ids)
        self.state = FlowState.CONFIRMATION
        return self.selection

    def back(self) -> None:
        """Drop the selection and return to the ranking step."""
        self._require("go back", FlowState.CONFIRMATION, FlowState.MANUAL_SELECTION)
        if self.decision is not None:
            # the recorded decision names this selection
            raise FlowStateError("go back", "decision recorded")
        self.selection = []
        self.state = FlowState.RANKING

    def confirm(
        self,
        actor_id: Optional[int] = None,
        justification: Optional[str] = None,
        override_reason: Optional[OverrideReason | str] = None,
        capacity: Optional[int] = None,
    ) -> FlowOutcome:
        """
        Record the decision, then attach the selected analysts.

        If the decision is rejected the flow stays in confirmation. Once
        recorded, the decision is kept on the flow: a confirm retried after
        a failed attachment only attaches, it never records a second
        decision. Analysts already attached to the job are reported, not
        re-added.
        """
        self._require("confirm", FlowState.CONFIRMATION)
        if capacity is not None and capacity < 1:
            raise ValidationError([Violation("capacity", "Capacity must be at least 1")])

        if self.decision is None:
            self.decision = self._ranking_service.record_decision(
                self.job.job_id,
                self.suggested,
                self.selection,
                actor_id=actor_id,
                justification=justification,
                override_reason=override_reason,
            )

        outcome = FlowOutcome(decision=self.decision)
        for analyst_id in self.selection:
            try:
                outcome.attached.append(
                    self._distribution.add_analyst(
                        self.job.job_id, analyst_id, capacity=capacity, actor_id=actor_id
                    )
                )
            except AlreadyAssignedError:
                outcome.already_attached.append(analyst_id)

        if outcome.already_attached:
            self.logger.warning(
                f"Analysts already on job {self.job.job_id}: {outcome.already_attached}"
            )
        self.outcome = outcome
        self.state = FlowState.COMPLETED
        return outcome

    def cancel(self) -> None:
        """Abandon the flow. Before confirm() nothing has been written."""
        if self.state in TERMINAL_STATES:
            raise FlowStateError("cancel", FlowState(self.state).value)
        self.selection = []
        self.state = FlowState.CANCELLED
