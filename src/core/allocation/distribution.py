"""
Distribution state store and capacity-aware round-robin distributor.

Keeps the analysts attached to each job and routes incoming candidate
applications to the least-loaded eligible analyst. Counter updates are
compare-and-swap guarded, and removal with redistribution is one atomic
unit. Each write runs as one store transaction, retried when it loses a
write conflict.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypeVar

from src.core.allocation.providers import NotificationDispatcher, dispatch_safely
from src.core.errors import (
    AlreadyAssignedError,
    AssignmentNotFoundError,
    CapacityExhaustedCondition,
    CapacityExhaustedError,
    ConcurrentUpdateError,
    ValidationError,
    Violation,
)
from src.data.models import (
    CandidateAssignmentEvent,
    JobAnalystAssignment,
    PendingCandidate,
    utcnow,
)
from src.data.store import AllocationStore
from src.utils.config import AllocationSettings, get_settings
from src.utils.constants import AssignmentType, AuditType, NotificationEvent
from src.utils.logger import LoggerMixin, audit_log

_UNSET: Any = object()

T = TypeVar("T")


@dataclass
class RoutingResult:
    """Outcome of routing one candidate application."""

    job_id: int
    candidate_id: int
    analyst_id: Optional[int] = None
    assignment: Optional[JobAnalystAssignment] = None
    event: Optional[CandidateAssignmentEvent] = None
    condition: Optional[CapacityExhaustedCondition] = None
    queued: Optional[PendingCandidate] = None
    already_routed: bool = False

    @property
    def routed(self) -> bool:
        return self.analyst_id is not None


@dataclass
class RemovalResult:
    """Outcome of removing an analyst from a job."""

    assignment: JobAnalystAssignment
    moved: list[CandidateAssignmentEvent] = field(default_factory=list)
    orphaned: list[PendingCandidate] = field(default_factory=list)


class DistributionService(LoggerMixin):
    """Attaches analysts to jobs and routes candidates among them."""

    def __init__(
        self,
        store: AllocationStore,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings: Optional[AllocationSettings] = None,
    ):
        self._store = store
        self._dispatcher = dispatcher
        self.settings = settings or get_settings().allocation

    # -------------------------------------------------------------------------
    # Distribution state
    # -------------------------------------------------------------------------

    def add_analyst(
        self,
        job_id: int,
        analyst_id: int,
        capacity: Optional[int] = None,
        actor_id: Optional[int] = None,
    ) -> JobAnalystAssignment:
        """
        Attach an analyst to a job.

        Args:
            job_id: The job
            analyst_id: The analyst
            capacity: Candidate ceiling; None leaves it unbounded
            actor_id: User making the change

        Raises:
            AlreadyAssignedError: The analyst is already attached
        """
        if capacity is not None and capacity < 1:
            raise ValidationError([Violation("capacity", "Capacity must be at least 1")])

        def attach() -> JobAnalystAssignment:
            if self._store.find_assignment(job_id, analyst_id) is not None:
                raise AlreadyAssignedError(job_id, analyst_id)

            rows = self._store.list_assignments(job_id, include_removed=True)
            order = max((a.alternation_order for a in rows), default=0) + 1
            inserted = self._store.insert_assignment(
                JobAnalystAssignment(
                    job_id=job_id,
                    analyst_id=analyst_id,
                    alternation_order=order,
                    max_candidates=capacity,
                    created_by=actor_id,
                )
            )
            self._rebalance_percentages(job_id)
            return inserted

        assignment = self._atomic(attach)

        self.logger.info(f"Analyst {analyst_id} added to job {job_id} (order {assignment.alternation_order})")
        audit_log(
            "analyst_added",
            {"job_id": job_id, "analyst_id": analyst_id, "capacity": capacity, "actor_id": actor_id},
            AuditType.ASSIGNMENT,
        )
        return self._store.get_assignment(assignment.id)

    def remove_analyst(
        self,
        job_id: int,
        analyst_id: int,
        redistribute: bool = True,
        actor_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> RemovalResult:
        """
        Detach an analyst from a job, moving or orphaning their backlog.

        With redistribute, every active candidate is rerouted to the
        remaining analysts; without it, the candidates go to the pending
        queue. Either way nothing keeps pointing at the removed analyst.

        Raises:
            AssignmentNotFoundError: The analyst is not attached
            CapacityExhaustedError: Redistribution found no eligible analyst;
                nothing was changed
        """
        reason = reason or f"Analyst {analyst_id} removed from job"

        def detach() -> RemovalResult:
            assignment = self._store.find_assignment(job_id, analyst_id)
            if assignment is None:
                raise AssignmentNotFoundError(f"Analyst {analyst_id} is not attached to job {job_id}")

            events = self._store.active_events(assignment_id=assignment.id)
            result = RemovalResult(assignment=assignment)

            for index, event in enumerate(events):
                self._store.release_event(event.id)
                self._store.decrement_assigned(assignment.id)

                if not redistribute:
                    result.orphaned.append(
                        self._store.enqueue_pending(
                            PendingCandidate(
                                job_id=job_id,
                                candidate_id=event.candidate_id,
                                reason="analyst_removed",
                            )
                        )
                    )
                    continue

                target = self._claim(job_id, exclude={assignment.id})
                if target is None:
                    unplaced = [e.candidate_id for e in events[index:]]
                    raise CapacityExhaustedError(job_id, unplaced)

                result.moved.append(
                    self._store.insert_event(
                        CandidateAssignmentEvent(
                            job_id=job_id,
                            candidate_id=event.candidate_id,
                            analyst_id=target.analyst_id,
                            assignment_id=target.id,
                            assignment_type=AssignmentType.REDISTRIBUTION,
                            previous_analyst_id=analyst_id,
                            reason=reason,
                            assigned_by=actor_id,
                        )
                    )
                )

            current = self._store.get_assignment(assignment.id)
            result.assignment = self._store.save_assignment(
                current.model_copy(
                    update={"active": False, "removed_at": utcnow(), "distribution_percentage": 0}
                )
            )
            self._rebalance_percentages(job_id)
            return result

        result = self._atomic(detach)

        details = {
            "job_id": job_id,
            "analyst_id": analyst_id,
            "redistribute": redistribute,
            "moved": {e.candidate_id: e.analyst_id for e in result.moved},
            "orphaned": [p.candidate_id for p in result.orphaned],
            "reason": reason,
            "actor_id": actor_id,
        }
        self.logger.info(
            f"Analyst {analyst_id} removed from job {job_id}: "
            f"{len(result.moved)} moved, {len(result.orphaned)} orphaned"
        )
        audit_log("analyst_removed", details, AuditType.REDISTRIBUTION)
        if result.moved:
            dispatch_safely(self._dispatcher, NotificationEvent.CANDIDATE_REDISTRIBUTED, details)
        return result

    def toggle_active(self, assignment_id, active: bool) -> JobAnalystAssignment:
        """
        Pause or resume an analyst on a job.

        A paused analyst keeps their backlog but receives no automatic routing.
        """
        def toggle() -> JobAnalystAssignment:
            toggled = self._update_with_retry(assignment_id, {"active": active})
            self._rebalance_percentages(toggled.job_id)
            return toggled

        updated = self._atomic(toggle)

        self.logger.info(
            f"Analyst {updated.analyst_id} {'resumed' if active else 'paused'} on job {updated.job_id}"
        )
        return self._store.get_assignment(updated.id)

    def update_assignment(
        self,
        assignment_id,
        max_candidates: Optional[int] = _UNSET,
        alternation_order: Optional[int] = None,
    ) -> JobAnalystAssignment:
        """
        Change the ceiling or alternation order of an assignment.

        Pass max_candidates=None to make the assignment unbounded. Lowering
        the ceiling below the current count keeps the backlog and only
        blocks new routing.
        """
        violations = []
        changes: dict[str, Any] = {}
        if max_candidates is not _UNSET:
            if max_candidates is not None and max_candidates < 1:
                violations.append(Violation("max_candidates", "Capacity must be at least 1"))
            changes["max_candidates"] = max_candidates
        if alternation_order is not None:
            if alternation_order < 1:
                violations.append(Violation("alternation_order", "Order must be at least 1"))
            changes["alternation_order"] = alternation_order
        if violations:
            raise ValidationError(violations)
        if not changes:
            return self._require(assignment_id)

        updated = self._atomic(lambda: self._update_with_retry(assignment_id, changes))

        audit_log(
            "assignment_updated",
            {"job_id": updated.job_id, "analyst_id": updated.analyst_id, **changes},
            AuditType.ASSIGNMENT,
        )
        return updated

    def list_assignments(self, job_id: int, include_removed: bool = False) -> list[JobAnalystAssignment]:
        """Assignments of a job in alternation order."""
        return self._store.list_assignments(job_id, include_removed=include_removed)

    def assignment_history(
        self,
        job_id: Optional[int] = None,
        analyst_id: Optional[int] = None,
        candidate_id: Optional[int] = None,
        limit: int = 100,
    ) -> list[CandidateAssignmentEvent]:
        """Routing events, newest first."""
        return self._store.list_events(
            job_id=job_id, analyst_id=analyst_id, candidate_id=candidate_id, limit=limit
        )

    def pending(self, job_id: Optional[int] = None) -> list[PendingCandidate]:
        """Candidates waiting for capacity, oldest first."""
        return self._store.list_pending(job_id=job_id)

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    def route_candidate(
        self,
        job_id: int,
        candidate_id: int,
        assigned_by: Optional[int] = None,
    ) -> RoutingResult:
        """
        Route a new candidate application to the least-loaded eligible analyst.

        A candidate already routed on the job keeps its analyst. When no
        analyst is eligible the candidate is queued and the result carries a
        CapacityExhaustedCondition.
        """
        result = self._atomic(
            lambda: self._route(job_id, candidate_id, assigned_by, queue_on_failure=True)
        )

        if result.condition is not None:
            self._report_exhaustion(result.condition)
        elif not result.already_routed:
            self.logger.debug(f"Candidate {candidate_id} on job {job_id} routed to analyst {result.analyst_id}")
        return result

    def assign_manually(
        self,
        job_id: int,
        candidate_id: int,
        analyst_id: int,
        actor_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> CandidateAssignmentEvent:
        """
        Route a candidate to a chosen analyst, bypassing selection and capacity.

        A previous routing of the candidate on this job is released.

        Raises:
            AssignmentNotFoundError: The analyst is not attached to the job
        """

        def reassign() -> CandidateAssignmentEvent:
            target = self._store.find_assignment(job_id, analyst_id)
            if target is None:
                raise AssignmentNotFoundError(f"Analyst {analyst_id} is not attached to job {job_id}")

            previous_analyst: Optional[int] = None
            for released in self._store.active_events(job_id=job_id, candidate_id=candidate_id):
                self._store.release_event(released.id)
                self._store.decrement_assigned(released.assignment_id)
                previous_analyst = released.analyst_id

            claimed = self._increment_with_retry(target.id, enforce_capacity=False)
            inserted = self._store.insert_event(
                CandidateAssignmentEvent(
                    job_id=job_id,
                    candidate_id=candidate_id,
                    analyst_id=analyst_id,
                    assignment_id=claimed.id,
                    assignment_type=AssignmentType.MANUAL,
                    previous_analyst_id=previous_analyst,
                    reason=reason,
                    assigned_by=actor_id,
                )
            )
            self._resolve_queued(job_id, candidate_id)
            return inserted

        event = self._atomic(reassign)

        audit_log(
            "candidate_assigned_manually",
            {
                "job_id": job_id,
                "candidate_id": candidate_id,
                "analyst_id": analyst_id,
                "previous_analyst_id": event.previous_analyst_id,
                "reason": reason,
                "actor_id": actor_id,
            },
            AuditType.ASSIGNMENT,
        )
        return event

    def drain_pending(self, job_id: int) -> list[RoutingResult]:
        """
        Retry queued candidates of a job, oldest first.

        Stops at the first candidate that still finds no capacity.

        Returns:
            Results of the candidates that were routed
        """
        routed = []
        for pending in self._store.list_pending(job_id=job_id):
            result = self._atomic(
                lambda: self._route(job_id, pending.candidate_id, None, queue_on_failure=False)
            )
            if not result.routed:
                break
            routed.append(result)

        if routed:
            self.logger.info(f"Drained {len(routed)} pending candidate(s) on job {job_id}")
        return routed

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _route(
        self,
        job_id: int,
        candidate_id: int,
        assigned_by: Optional[int],
        queue_on_failure: bool,
    ) -> RoutingResult:
        existing = self._store.active_events(job_id=job_id, candidate_id=candidate_id)
        if existing:
            event = existing[0]
            self._resolve_queued(job_id, candidate_id)
            return RoutingResult(
                job_id=job_id,
                candidate_id=candidate_id,
                analyst_id=event.analyst_id,
                assignment=self._store.get_assignment(event.assignment_id),
                event=event,
                already_routed=True,
            )

        target = self._claim(job_id)
        if target is None:
            result = RoutingResult(
                job_id=job_id,
                candidate_id=candidate_id,
                condition=self._exhaustion(job_id, candidate_id),
            )
            if queue_on_failure:
                queued = [p for p in self._store.list_pending(job_id=job_id) if p.candidate_id == candidate_id]
                result.queued = queued[0] if queued else self._store.enqueue_pending(
                    PendingCandidate(job_id=job_id, candidate_id=candidate_id)
                )
            return result

        event = self._store.insert_event(
            CandidateAssignmentEvent(
                job_id=job_id,
                candidate_id=candidate_id,
                analyst_id=target.analyst_id,
                assignment_id=target.id,
                assignment_type=AssignmentType.AUTOMATIC,
                assigned_by=assigned_by,
            )
        )
        self._resolve_queued(job_id, candidate_id)
        return RoutingResult(
            job_id=job_id,
            candidate_id=candidate_id,
            analyst_id=target.analyst_id,
            assignment=target,
            event=event,
        )

    def _atomic(self, work: Callable[[], T]) -> T:
        """Run work as one transaction, retried on write conflicts."""
        return self._store.run_in_transaction(work, attempts=self.settings.cas_max_retries)

    def _resolve_queued(self, job_id: int, candidate_id: int) -> None:
        """Close the queue entries of a candidate that now has an analyst."""
        for pending in self._store.list_pending(job_id=job_id):
            if pending.candidate_id == candidate_id:
                self._store.resolve_pending(pending.id)

    def _claim(self, job_id: int, exclude: frozenset | set = frozenset()) -> Optional[JobAnalystAssignment]:
        """
        Pick the least-loaded eligible analyst and increment their count.

        Returns:
            The updated assignment, or None if nobody is eligible

        Raises:
            ConcurrentUpdateError: Lost the race more times than allowed
        """
        for _ in range(self.settings.cas_max_retries):
            eligible = [
                a for a in self._store.list_assignments(job_id) if a.is_eligible and a.id not in exclude
            ]
            if not eligible:
                return None
            chosen = min(eligible, key=lambda a: (a.assigned_count, a.alternation_order, a.analyst_id))
            claimed = self._store.increment_assigned(chosen.id, chosen.version)
            if claimed is not None:
                return claimed
            self.logger.debug(f"Lost counter race on assignment {chosen.id}; retrying")
        raise ConcurrentUpdateError(f"Could not claim an analyst on job {job_id}")

    def _increment_with_retry(self, assignment_id, enforce_capacity: bool) -> JobAnalystAssignment:
        for _ in range(self.settings.cas_max_retries):
            current = self._require(assignment_id)
            claimed = self._store.increment_assigned(
                current.id, current.version, enforce_capacity=enforce_capacity
            )
            if claimed is not None:
                return claimed
        raise ConcurrentUpdateError(f"Could not update assignment {assignment_id}")

    def _update_with_retry(self, assignment_id, changes: dict[str, Any]) -> JobAnalystAssignment:
        for _ in range(self.settings.cas_max_retries):
            current = self._require(assignment_id)
            try:
                return self._store.save_assignment(current.model_copy(update=changes))
            except ConcurrentUpdateError:
                self.logger.debug(f"Assignment {assignment_id} changed during update; retrying")
        raise ConcurrentUpdateError(f"Could not update assignment {assignment_id}")

    def _require(self, assignment_id) -> JobAnalystAssignment:
        assignment = self._store.get_assignment(assignment_id)
        if assignment is None or not assignment.is_attached:
            raise AssignmentNotFoundError(f"Assignment {assignment_id} not found")
        return assignment

    def _rebalance_percentages(self, job_id: int) -> None:
        """Split the job evenly across active analysts; paused ones get 0."""
        rows = self._store.list_assignments(job_id)
        active = [a for a in rows if a.active]
        share = 100 // len(active) if active else 0
        for a in rows:
            target = share if a.active else 0
            if a.distribution_percentage != target:
                self._update_with_retry(a.id, {"distribution_percentage": target})

    def _exhaustion(self, job_id: int, candidate_id: int) -> CapacityExhaustedCondition:
        rows = self._store.list_assignments(job_id)
        return CapacityExhaustedCondition(
            job_id=job_id,
            candidate_id=candidate_id,
            attached_analysts=len(rows),
            paused_analysts=sum(1 for a in rows if not a.active),
            full_analysts=sum(1 for a in rows if a.active and not a.has_capacity),
        )

    def _report_exhaustion(self, condition: CapacityExhaustedCondition) -> None:
        self.logger.warning(f"Candidate {condition.candidate_id} queued: {condition.message}")
        dispatch_safely(
            self._dispatcher,
            NotificationEvent.CAPACITY_EXHAUSTED,
            {
                "job_id": condition.job_id,
                "candidate_id": condition.candidate_id,
                "message": condition.message,
            },
        )
