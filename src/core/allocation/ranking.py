"""
Ranking and decision service.

Turns analyst scores into an ordered suggestion, classifies the operator's
final choice as accepted or overridden, and appends the decision to the
audit log.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Iterable, Optional, Sequence

from src.core.allocation.config_store import ConfigurationStore
from src.core.allocation.providers import (
    AnalystProfileProvider,
    JustificationProvider,
    NotificationDispatcher,
    dispatch_safely,
)
from src.core.allocation.scoring import AnalystScore, ScoringEngine
from src.core.errors import (
    DecisionValidationError,
    MissingJustificationError,
    ProviderUnavailable,
    Violation,
)
from src.data.models import AllocationDecision, JobRequisition
from src.data.store import AllocationStore
from src.utils.config import AllocationSettings, get_settings
from src.utils.constants import (
    AuditType,
    ConfigKind,
    DecisionType,
    NotificationEvent,
    OverrideReason,
)
from src.utils.logger import LoggerMixin, audit_log


def ranking_key(score: AnalystScore) -> tuple[float, int, int]:
    """Highest total first, then lowest current load, then lowest analyst ID."""
    return (-score.total, score.current_load, score.analyst_id)


def is_override(suggested: Sequence[int], chosen: Iterable[int]) -> bool:
    """
    Whether a choice departs from the suggestion.

    True iff the chosen set differs from the top-N suggested analysts, N
    being the number chosen. Order does not matter.
    """
    chosen_set = set(chosen)
    return chosen_set != set(list(suggested)[: len(chosen_set)])


class RankingService(LoggerMixin):
    """Ranks analysts for a job and records operator decisions."""

    def __init__(
        self,
        store: AllocationStore,
        config_store: ConfigurationStore,
        profiles: AnalystProfileProvider,
        scoring: Optional[ScoringEngine] = None,
        justifier: Optional[JustificationProvider] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings: Optional[AllocationSettings] = None,
    ):
        self._store = store
        self._config_store = config_store
        self._profiles = profiles
        self.settings = settings or get_settings().allocation
        self._scoring = scoring or ScoringEngine(self.settings)
        self._justifier = justifier
        self._dispatcher = dispatcher
        self._executor: Optional[ThreadPoolExecutor] = None

    # -------------------------------------------------------------------------
    # Ranking
    # -------------------------------------------------------------------------

    def rank(
        self,
        job: JobRequisition,
        include_assigned: bool = False,
        top_n: Optional[int] = None,
    ) -> list[AnalystScore]:
        """
        Rank analysts for a job. Read-only.

        Args:
            job: The job requisition
            include_assigned: Keep analysts already attached to the job
            top_n: Truncate the ranking

        Returns:
            Scores sorted by descending total, then load, then analyst ID
        """
        config = self._config_store.get_active(ConfigKind.DISTRIBUTION)

        excluded: set[int] = set()
        if not include_assigned:
            excluded = {a.analyst_id for a in self._store.list_assignments(job.job_id)}

        scores = [
            self._scoring.score(job, profile, config)
            for profile in self._profiles.list_analysts()
            if profile.available and profile.analyst_id not in excluded
        ]
        scores.sort(key=ranking_key)
        if top_n is not None:
            scores = scores[:top_n]

        if self._justifier is not None and scores:
            self._attach_ai_justifications(job, scores)

        self.logger.debug(f"Ranked {len(scores)} analyst(s) for job {job.job_id}")
        return scores

    def _attach_ai_justifications(self, job: JobRequisition, scores: list[AnalystScore]) -> None:
        """Ask the AI provider for text, giving up after the configured timeout."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.settings.provider_max_workers,
                thread_name_prefix="justification",
            )

        deadline = time.monotonic() + self.settings.provider_timeout_seconds
        futures = [(s, self._executor.submit(self._justifier.explain, job, s)) for s in scores]
        failures = 0
        for score, future in futures:
            remaining = max(0.0, deadline - time.monotonic())
            try:
                text = future.result(timeout=remaining)
                score.ai_justification = text or None
            except FutureTimeoutError:
                future.cancel()
                failures += 1
            except Exception as e:
                self.logger.debug(f"Justification for analyst {score.analyst_id} failed: {e}")
                failures += 1

        if failures:
            error = ProviderUnavailable(
                f"AI justification unavailable for {failures}/{len(scores)} analyst(s)"
            )
            self.logger.warning(f"{error}; using configuration-only justifications")

    def close(self) -> None:
        """Release the provider worker threads."""
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    # -------------------------------------------------------------------------
    # Decisions
    # -------------------------------------------------------------------------

    @staticmethod
    def is_override(suggested: Sequence[int], chosen: Iterable[int]) -> bool:
        return is_override(suggested, chosen)

    def record_decision(
        self,
        job_id: int,
        suggested: Sequence[int],
        chosen: Sequence[int],
        actor_id: Optional[int] = None,
        justification: Optional[str] = None,
        override_reason: Optional[OverrideReason | str] = None,
    ) -> AllocationDecision:
        """
        Append one allocation decision.

        Never changes job assignments; attaching the chosen analysts is a
        separate step. A reason code is mandatory for an override and
        optional otherwise: one given with an accepted suggestion is kept
        as an annotation and the decision stays ai_accepted.

        Raises:
            DecisionValidationError: Empty or duplicated choice, unknown reason
            MissingJustificationError: Override without reason, or reason
                'other' without a justification
        """
        violations = []
        if not chosen:
            violations.append(Violation("chosen", "At least one analyst must be chosen"))
        if len(set(chosen)) != len(chosen):
            violations.append(Violation("chosen", "Chosen analysts must be distinct"))
        if len(set(suggested)) != len(suggested):
            violations.append(Violation("suggested", "Suggested analysts must be distinct"))

        reason: Optional[OverrideReason] = None
        if override_reason is not None and override_reason != "":
            try:
                reason = OverrideReason(override_reason)
            except ValueError:
                violations.append(Violation("override_reason", f"Unknown reason code '{override_reason}'"))
        if violations:
            raise DecisionValidationError(violations)

        overridden = is_override(suggested, chosen)
        text = (justification or "").strip() or None
        if overridden and reason is None:
            raise MissingJustificationError("Override requires a reason code")
        if reason == OverrideReason.OTHER and text is None:
            raise MissingJustificationError("Reason 'other' requires a justification")

        decision = self._store.insert_decision(
            AllocationDecision(
                job_id=job_id,
                suggested_analyst_ids=list(suggested),
                chosen_analyst_ids=list(chosen),
                decision_type=DecisionType.MANUAL_OVERRIDE if overridden else DecisionType.AI_ACCEPTED,
                justification=text,
                override_reason=reason,
                decided_by=actor_id,
            )
        )

        details = {
            "job_id": job_id,
            "suggested": list(suggested),
            "chosen": list(chosen),
            "decision_type": decision.decision_type,
            "override_reason": decision.override_reason,
            "actor_id": actor_id,
        }
        audit_log(
            "decision_recorded",
            details,
            AuditType.OVERRIDE if overridden else AuditType.DECISION,
        )
        self.logger.info(f"Recorded {decision.decision_type} decision for job {job_id}")
        dispatch_safely(self._dispatcher, NotificationEvent.DECISION_RECORDED, details)
        return decision

    def decisions(self, job_id: Optional[int] = None, limit: int = 100) -> list[AllocationDecision]:
        """Decision feed, newest first."""
        return self._store.list_decisions(job_id=job_id, limit=limit)
