"""
Persistent store boundary of the allocation engine.

Services talk to an AllocationStore; MongoAllocationStore backs it with
MongoDB and InMemoryAllocationStore keeps everything in process memory.
Every implementation must provide:

- an atomic swap of the active configuration per kind
- guarded counter updates on assignment rows
- a transaction() context in which a failure undoes every write
- ConcurrentUpdateError when a transaction loses a write conflict, so
  run_in_transaction() can retry the whole unit
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Callable, Optional, TypeVar

from src.core.errors import ConcurrentUpdateError
from src.data.models import (
    AllocationDecision,
    CandidateAssignmentEvent,
    ConfigChange,
    JobAnalystAssignment,
    PendingCandidate,
    WeightedConfig,
)
from src.utils.constants import ConfigKind
from src.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class AllocationStore(ABC):
    """Abstract persistent store for configs, assignments and audit feeds."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """
        Run the enclosed writes as one unit.

        If the block raises, none of its writes remain visible. Nested use
        joins the outer transaction.
        """
        pass

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        """Whether the calling thread is inside transaction()."""
        pass

    def run_in_transaction(self, work: Callable[[], T], attempts: int = 1) -> T:
        """
        Run work() as one transaction, retrying it on write conflicts.

        Each retry starts from a rolled-back state. Inside an outer
        transaction the work joins it and is not retried; the outermost
        caller owns the retry.

        Args:
            work: The unit of writes; called once per attempt
            attempts: Total attempts before ConcurrentUpdateError propagates
        """
        if self.in_transaction:
            return work()
        for attempt in range(1, attempts):
            try:
                with self.transaction():
                    return work()
            except ConcurrentUpdateError as e:
                logger.debug(f"Transaction conflict ({e}); attempt {attempt + 1} of {attempts}")
        with self.transaction():
            return work()

    # -------------------------------------------------------------------------
    # Configurations
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_active_config(self, kind: ConfigKind) -> Optional[WeightedConfig]:
        """Get the active configuration of a kind."""
        pass

    @abstractmethod
    def activate_config(
        self,
        config: WeightedConfig,
        changes: list[ConfigChange],
    ) -> WeightedConfig:
        """
        Insert a new configuration version as the active one.

        Deactivates the previous active row of the same kind and appends the
        change entries in one atomic step.
        """
        pass

    @abstractmethod
    def list_configs(self, kind: ConfigKind) -> list[WeightedConfig]:
        """All versions of a kind, newest first."""
        pass

    @abstractmethod
    def list_config_changes(self, kind: ConfigKind, limit: int = 50) -> list[ConfigChange]:
        """Change history of a kind, newest first."""
        pass

    # -------------------------------------------------------------------------
    # Assignments
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_assignment(self, assignment_id) -> Optional[JobAnalystAssignment]:
        """Get an assignment by ID."""
        pass

    @abstractmethod
    def find_assignment(self, job_id: int, analyst_id: int) -> Optional[JobAnalystAssignment]:
        """Get the attached (not removed) assignment of an analyst on a job."""
        pass

    @abstractmethod
    def list_assignments(
        self,
        job_id: int,
        include_removed: bool = False,
    ) -> list[JobAnalystAssignment]:
        """Assignments of a job ordered by alternation order."""
        pass

    @abstractmethod
    def insert_assignment(self, assignment: JobAnalystAssignment) -> JobAnalystAssignment:
        """
        Insert a new assignment.

        Raises:
            AlreadyAssignedError: The analyst is already attached to the job
        """
        pass

    @abstractmethod
    def save_assignment(self, assignment: JobAnalystAssignment) -> JobAnalystAssignment:
        """
        Write back an assignment read earlier.

        The write succeeds only if the stored version still matches the one
        read; the returned copy carries the bumped version.

        Raises:
            ConcurrentUpdateError: The row changed since it was read
        """
        pass

    @abstractmethod
    def increment_assigned(
        self,
        assignment_id,
        expected_version: int,
        enforce_capacity: bool = True,
    ) -> Optional[JobAnalystAssignment]:
        """
        Compare-and-swap increment of assigned_count.

        Applies only when the row is attached, still at expected_version and,
        when enforce_capacity is set, below its ceiling.

        Returns:
            The updated assignment, or None if the guard failed
        """
        pass

    @abstractmethod
    def decrement_assigned(self, assignment_id) -> Optional[JobAnalystAssignment]:
        """Decrement assigned_count if it is positive."""
        pass

    # -------------------------------------------------------------------------
    # Candidate assignment events
    # -------------------------------------------------------------------------

    @abstractmethod
    def insert_event(self, event: CandidateAssignmentEvent) -> CandidateAssignmentEvent:
        """Append a routing event."""
        pass

    @abstractmethod
    def active_events(
        self,
        job_id: Optional[int] = None,
        assignment_id=None,
        candidate_id: Optional[int] = None,
    ) -> list[CandidateAssignmentEvent]:
        """Active events matching every given filter, oldest first."""
        pass

    @abstractmethod
    def release_event(self, event_id) -> bool:
        """Mark an active event released. Returns False if it was not active."""
        pass

    @abstractmethod
    def list_events(
        self,
        job_id: Optional[int] = None,
        analyst_id: Optional[int] = None,
        candidate_id: Optional[int] = None,
        limit: int = 100,
    ) -> list[CandidateAssignmentEvent]:
        """Routing history, newest first."""
        pass

    # -------------------------------------------------------------------------
    # Decisions
    # -------------------------------------------------------------------------

    @abstractmethod
    def insert_decision(self, decision: AllocationDecision) -> AllocationDecision:
        """Append an allocation decision."""
        pass

    @abstractmethod
    def list_decisions(
        self,
        job_id: Optional[int] = None,
        limit: int = 100,
    ) -> list[AllocationDecision]:
        """Decision feed, newest first."""
        pass

    # -------------------------------------------------------------------------
    # Pending candidates
    # -------------------------------------------------------------------------

    @abstractmethod
    def enqueue_pending(self, pending: PendingCandidate) -> PendingCandidate:
        """Queue a candidate that could not be routed."""
        pass

    @abstractmethod
    def list_pending(
        self,
        job_id: Optional[int] = None,
        include_resolved: bool = False,
    ) -> list[PendingCandidate]:
        """Queued candidates, oldest first."""
        pass

    @abstractmethod
    def resolve_pending(self, pending_id) -> bool:
        """Mark a queued candidate as routed."""
        pass
