"""
MongoDB implementation of the allocation store.

Composes the collection repositories. Multi-row operations run inside a
multi-document transaction; counter updates use guarded find_one_and_update
so concurrent writers never push a row past its ceiling. A transaction
aborted by a write conflict surfaces as ConcurrentUpdateError.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from pymongo.client_session import ClientSession
from pymongo.errors import DuplicateKeyError, PyMongoError

from src.core.errors import AlreadyAssignedError, ConcurrentUpdateError
from src.data.database import DatabaseManager, get_database_manager
from src.data.models import (
    AllocationDecision,
    CandidateAssignmentEvent,
    ConfigChange,
    JobAnalystAssignment,
    PendingCandidate,
    WeightedConfig,
)
from src.data.repositories import (
    AssignmentEventRepository,
    AssignmentRepository,
    ConfigChangeRepository,
    DecisionRepository,
    PendingCandidateRepository,
    get_config_repository,
)
from src.data.store import AllocationStore
from src.utils.constants import ConfigKind
from src.utils.logger import get_logger

logger = get_logger(__name__)


class MongoAllocationStore(AllocationStore):
    """Allocation store backed by MongoDB (replica set required)."""

    def __init__(self, db_manager: Optional[DatabaseManager] = None):
        self._db_manager = db_manager or get_database_manager()
        self._local = threading.local()
        self._configs = {kind: get_config_repository(kind) for kind in ConfigKind}
        self._changes = ConfigChangeRepository()
        self._assignments = AssignmentRepository()
        self._events = AssignmentEventRepository()
        self._decisions = DecisionRepository()
        self._pending = PendingCandidateRepository()

    @property
    def _session(self) -> Optional[ClientSession]:
        return getattr(self._local, "session", None)

    @property
    def in_transaction(self) -> bool:
        return self._session is not None

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._session is not None:
            yield
            return
        try:
            with self._db_manager.transaction() as session:
                self._local.session = session
                try:
                    yield
                finally:
                    self._local.session = None
        except PyMongoError as e:
            # write conflicts abort the transaction; the whole unit may be retried
            if e.has_error_label("TransientTransactionError"):
                logger.debug(f"Transaction aborted by a concurrent writer: {e}")
                raise ConcurrentUpdateError(f"Transaction conflict: {e}") from e
            raise

    # -------------------------------------------------------------------------
    # Configurations
    # -------------------------------------------------------------------------

    def get_active_config(self, kind: ConfigKind) -> Optional[WeightedConfig]:
        return self._configs[ConfigKind(kind)].get_active(session=self._session)

    def activate_config(
        self,
        config: WeightedConfig,
        changes: list[ConfigChange],
    ) -> WeightedConfig:
        repo = self._configs[ConfigKind(config.kind)]
        with self.transaction():
            repo.deactivate_active(session=self._session)
            created = repo.create(config.model_copy(update={"active": True}), session=self._session)
            for change in changes:
                self._changes.create(change, session=self._session)
        logger.debug(f"Activated {ConfigKind(config.kind).value} config version {created.version}")
        return created

    def list_configs(self, kind: ConfigKind) -> list[WeightedConfig]:
        return self._configs[ConfigKind(kind)].list_versions(session=self._session)

    def list_config_changes(self, kind: ConfigKind, limit: int = 50) -> list[ConfigChange]:
        return self._changes.get_by_kind(kind, limit=limit, session=self._session)

    # -------------------------------------------------------------------------
    # Assignments
    # -------------------------------------------------------------------------

    def get_assignment(self, assignment_id) -> Optional[JobAnalystAssignment]:
        return self._assignments.get_by_id(assignment_id, session=self._session)

    def find_assignment(self, job_id: int, analyst_id: int) -> Optional[JobAnalystAssignment]:
        return self._assignments.get_attached(job_id, analyst_id, session=self._session)

    def list_assignments(
        self,
        job_id: int,
        include_removed: bool = False,
    ) -> list[JobAnalystAssignment]:
        return self._assignments.get_by_job(
            job_id, include_removed=include_removed, session=self._session
        )

    def insert_assignment(self, assignment: JobAnalystAssignment) -> JobAnalystAssignment:
        try:
            return self._assignments.create(assignment, session=self._session)
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate attachment rejected: {e}")
            raise AlreadyAssignedError(assignment.job_id, assignment.analyst_id) from e

    def save_assignment(self, assignment: JobAnalystAssignment) -> JobAnalystAssignment:
        saved = self._assignments.replace_versioned(assignment, session=self._session)
        if saved is None:
            raise ConcurrentUpdateError(f"Assignment {assignment.id} changed concurrently")
        return saved

    def increment_assigned(
        self,
        assignment_id,
        expected_version: int,
        enforce_capacity: bool = True,
    ) -> Optional[JobAnalystAssignment]:
        return self._assignments.increment_count(
            assignment_id,
            expected_version,
            enforce_capacity=enforce_capacity,
            session=self._session,
        )

    def decrement_assigned(self, assignment_id) -> Optional[JobAnalystAssignment]:
        return self._assignments.decrement_count(assignment_id, session=self._session)

    # -------------------------------------------------------------------------
    # Candidate assignment events
    # -------------------------------------------------------------------------

    def insert_event(self, event: CandidateAssignmentEvent) -> CandidateAssignmentEvent:
        return self._events.create(event, session=self._session)

    def active_events(
        self,
        job_id: Optional[int] = None,
        assignment_id=None,
        candidate_id: Optional[int] = None,
    ) -> list[CandidateAssignmentEvent]:
        return self._events.get_active(
            job_id=job_id,
            assignment_id=assignment_id,
            candidate_id=candidate_id,
            session=self._session,
        )

    def release_event(self, event_id) -> bool:
        return self._events.release(event_id, session=self._session)

    def list_events(
        self,
        job_id: Optional[int] = None,
        analyst_id: Optional[int] = None,
        candidate_id: Optional[int] = None,
        limit: int = 100,
    ) -> list[CandidateAssignmentEvent]:
        return self._events.get_history(
            job_id=job_id,
            analyst_id=analyst_id,
            candidate_id=candidate_id,
            limit=limit,
            session=self._session,
        )

    # -------------------------------------------------------------------------
    # Decisions
    # -------------------------------------------------------------------------

    def insert_decision(self, decision: AllocationDecision) -> AllocationDecision:
        return self._decisions.create(decision, session=self._session)

    def list_decisions(
        self,
        job_id: Optional[int] = None,
        limit: int = 100,
    ) -> list[AllocationDecision]:
        return self._decisions.get_feed(job_id=job_id, limit=limit, session=self._session)

    # -------------------------------------------------------------------------
    # Pending candidates
    # -------------------------------------------------------------------------

    def enqueue_pending(self, pending: PendingCandidate) -> PendingCandidate:
        return self._pending.create(pending, session=self._session)

    def list_pending(
        self,
        job_id: Optional[int] = None,
        include_resolved: bool = False,
    ) -> list[PendingCandidate]:
        return self._pending.get_queue(
            job_id=job_id, include_resolved=include_resolved, session=self._session
        )

    def resolve_pending(self, pending_id) -> bool:
        return self._pending.resolve(pending_id, session=self._session)
