"""
In-process implementation of the allocation store.

Used for embedded deployments, the CLI without a database, and tests.
A re-entrant lock serializes every operation; transactions snapshot the
containers on entry and restore them if the block raises. Writes swap in
fresh document copies and never mutate stored ones.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional, TypeVar

from bson import ObjectId

from src.core.errors import AlreadyAssignedError, ConcurrentUpdateError
from src.data.models import (
    AllocationDecision,
    BaseDocument,
    CandidateAssignmentEvent,
    ConfigChange,
    JobAnalystAssignment,
    PendingCandidate,
    WeightedConfig,
    utcnow,
)
from src.data.store import AllocationStore
from src.utils.constants import ConfigKind
from src.utils.logger import get_logger

logger = get_logger(__name__)

D = TypeVar("D", bound=BaseDocument)


class InMemoryAllocationStore(AllocationStore):
    """Dictionary-backed store; documents are copied in and out."""

    def __init__(self):
        self._lock = threading.RLock()
        self._depth = 0
        self._owner: Optional[int] = None
        self._configs: dict[ConfigKind, dict[ObjectId, WeightedConfig]] = {
            kind: {} for kind in ConfigKind
        }
        self._changes: dict[ConfigKind, list[ConfigChange]] = {kind: [] for kind in ConfigKind}
        self._assignments: dict[ObjectId, JobAnalystAssignment] = {}
        self._events: dict[ObjectId, CandidateAssignmentEvent] = {}
        self._decisions: list[AllocationDecision] = []
        self._pending: dict[ObjectId, PendingCandidate] = {}

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _copy(doc: D) -> D:
        return doc.model_copy(deep=True)

    @staticmethod
    def _stamp(doc: D) -> D:
        """Copy a document, giving it an ID if it has none."""
        doc = doc.model_copy(deep=True)
        if doc.id is None:
            doc.id = ObjectId()
        return doc

    def _state(self) -> tuple:
        return (
            {kind: dict(rows) for kind, rows in self._configs.items()},
            {kind: list(rows) for kind, rows in self._changes.items()},
            dict(self._assignments),
            dict(self._events),
            list(self._decisions),
            dict(self._pending),
        )

    def _restore(self, state: tuple) -> None:
        (
            self._configs,
            self._changes,
            self._assignments,
            self._events,
            self._decisions,
            self._pending,
        ) = state

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            snapshot = self._state() if self._depth == 0 else None
            self._owner = threading.get_ident()
            self._depth += 1
            try:
                yield
            except BaseException:
                if snapshot is not None:
                    self._restore(snapshot)
                    logger.debug("In-memory transaction rolled back")
                raise
            finally:
                self._depth -= 1
                if self._depth == 0:
                    self._owner = None

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0 and self._owner == threading.get_ident()

    # -------------------------------------------------------------------------
    # Configurations
    # -------------------------------------------------------------------------

    def get_active_config(self, kind: ConfigKind) -> Optional[WeightedConfig]:
        with self._lock:
            for config in self._configs[ConfigKind(kind)].values():
                if config.active:
                    return self._copy(config)
            return None

    def activate_config(
        self,
        config: WeightedConfig,
        changes: list[ConfigChange],
    ) -> WeightedConfig:
        kind = ConfigKind(config.kind)
        with self.transaction():
            rows = self._configs[kind]
            for oid, existing in rows.items():
                if existing.active:
                    rows[oid] = existing.touched(active=False)
            stored = self._stamp(config)
            stored.active = True
            rows[stored.id] = stored
            self._changes[kind].extend(self._stamp(c) for c in changes)
            return self._copy(stored)

    def list_configs(self, kind: ConfigKind) -> list[WeightedConfig]:
        with self._lock:
            rows = self._configs[ConfigKind(kind)].values()
            return [self._copy(c) for c in sorted(rows, key=lambda c: c.version, reverse=True)]

    def list_config_changes(self, kind: ConfigKind, limit: int = 50) -> list[ConfigChange]:
        with self._lock:
            changes = list(reversed(self._changes[ConfigKind(kind)]))
            return [self._copy(c) for c in changes[:limit]]

    # -------------------------------------------------------------------------
    # Assignments
    # -------------------------------------------------------------------------

    def get_assignment(self, assignment_id) -> Optional[JobAnalystAssignment]:
        with self._lock:
            found = self._assignments.get(ObjectId(assignment_id))
            return self._copy(found) if found else None

    def find_assignment(self, job_id: int, analyst_id: int) -> Optional[JobAnalystAssignment]:
        with self._lock:
            for a in self._assignments.values():
                if a.job_id == job_id and a.analyst_id == analyst_id and a.is_attached:
                    return self._copy(a)
            return None

    def list_assignments(
        self,
        job_id: int,
        include_removed: bool = False,
    ) -> list[JobAnalystAssignment]:
        with self._lock:
            rows = [
                a
                for a in self._assignments.values()
                if a.job_id == job_id and (include_removed or a.is_attached)
            ]
            rows.sort(key=lambda a: (a.alternation_order, a.analyst_id))
            return [self._copy(a) for a in rows]

    def insert_assignment(self, assignment: JobAnalystAssignment) -> JobAnalystAssignment:
        with self._lock:
            if self.find_assignment(assignment.job_id, assignment.analyst_id):
                raise AlreadyAssignedError(assignment.job_id, assignment.analyst_id)
            stored = self._stamp(assignment)
            self._assignments[stored.id] = stored
            return self._copy(stored)

    def save_assignment(self, assignment: JobAnalystAssignment) -> JobAnalystAssignment:
        with self._lock:
            current = self._assignments.get(assignment.id)
            if current is None or current.version != assignment.version:
                raise ConcurrentUpdateError(f"Assignment {assignment.id} changed concurrently")
            stored = self._copy(assignment).touched(version=assignment.version + 1)
            self._assignments[stored.id] = stored
            return self._copy(stored)

    def increment_assigned(
        self,
        assignment_id,
        expected_version: int,
        enforce_capacity: bool = True,
    ) -> Optional[JobAnalystAssignment]:
        with self._lock:
            current = self._assignments.get(ObjectId(assignment_id))
            if current is None or not current.is_attached:
                return None
            if current.version != expected_version:
                return None
            if enforce_capacity and not current.has_capacity:
                return None
            stored = current.touched(
                assigned_count=current.assigned_count + 1,
                last_assigned_at=utcnow(),
                version=current.version + 1,
            )
            self._assignments[stored.id] = stored
            return self._copy(stored)

    def decrement_assigned(self, assignment_id) -> Optional[JobAnalystAssignment]:
        with self._lock:
            current = self._assignments.get(ObjectId(assignment_id))
            if current is None or current.assigned_count <= 0:
                return None
            stored = current.touched(
                assigned_count=current.assigned_count - 1,
                version=current.version + 1,
            )
            self._assignments[stored.id] = stored
            return self._copy(stored)

    # -------------------------------------------------------------------------
    # Candidate assignment events
    # -------------------------------------------------------------------------

    def insert_event(self, event: CandidateAssignmentEvent) -> CandidateAssignmentEvent:
        with self._lock:
            stored = self._stamp(event)
            self._events[stored.id] = stored
            return self._copy(stored)

    def active_events(
        self,
        job_id: Optional[int] = None,
        assignment_id=None,
        candidate_id: Optional[int] = None,
    ) -> list[CandidateAssignmentEvent]:
        with self._lock:
            return [
                self._copy(e)
                for e in self._events.values()
                if e.active
                and (job_id is None or e.job_id == job_id)
                and (assignment_id is None or e.assignment_id == ObjectId(assignment_id))
                and (candidate_id is None or e.candidate_id == candidate_id)
            ]

    def release_event(self, event_id) -> bool:
        with self._lock:
            current = self._events.get(ObjectId(event_id))
            if current is None or not current.active:
                return False
            self._events[current.id] = current.touched(active=False, released_at=utcnow())
            return True

    def list_events(
        self,
        job_id: Optional[int] = None,
        analyst_id: Optional[int] = None,
        candidate_id: Optional[int] = None,
        limit: int = 100,
    ) -> list[CandidateAssignmentEvent]:
        with self._lock:
            rows = [
                e
                for e in reversed(list(self._events.values()))
                if (job_id is None or e.job_id == job_id)
                and (analyst_id is None or e.analyst_id == analyst_id)
                and (candidate_id is None or e.candidate_id == candidate_id)
            ]
            return [self._copy(e) for e in rows[:limit]]

    # -------------------------------------------------------------------------
    # Decisions
    # -------------------------------------------------------------------------

    def insert_decision(self, decision: AllocationDecision) -> AllocationDecision:
        with self._lock:
            stored = self._stamp(decision)
            self._decisions.append(stored)
            return self._copy(stored)

    def list_decisions(
        self,
        job_id: Optional[int] = None,
        limit: int = 100,
    ) -> list[AllocationDecision]:
        with self._lock:
            rows = [
                d for d in reversed(self._decisions) if job_id is None or d.job_id == job_id
            ]
            return [self._copy(d) for d in rows[:limit]]

    # -------------------------------------------------------------------------
    # Pending candidates
    # -------------------------------------------------------------------------

    def enqueue_pending(self, pending: PendingCandidate) -> PendingCandidate:
        with self._lock:
            stored = self._stamp(pending)
            self._pending[stored.id] = stored
            return self._copy(stored)

    def list_pending(
        self,
        job_id: Optional[int] = None,
        include_resolved: bool = False,
    ) -> list[PendingCandidate]:
        with self._lock:
            return [
                self._copy(p)
                for p in self._pending.values()
                if (job_id is None or p.job_id == job_id)
                and (include_resolved or not p.is_resolved)
            ]

    def resolve_pending(self, pending_id) -> bool:
        with self._lock:
            current = self._pending.get(ObjectId(pending_id))
            if current is None or current.is_resolved:
                return False
            self._pending[current.id] = current.touched(resolved_at=utcnow())
            return True
