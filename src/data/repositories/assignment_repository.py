"""
Assignment repositories.

Covers the job/analyst assignment rows, the candidate routing events that
point at them, and the queue of candidates waiting for capacity.
"""

from typing import Any, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.client_session import ClientSession

from src.data.models.assignment import (
    CandidateAssignmentEvent,
    JobAnalystAssignment,
    PendingCandidate,
)
from src.data.models.base import utcnow
from src.utils.logger import get_logger

from .base import BaseRepository

logger = get_logger(__name__)


class AssignmentRepository(BaseRepository[JobAnalystAssignment]):
    """Repository for job/analyst assignment rows."""

    @property
    def collection_name(self) -> str:
        return JobAnalystAssignment.Settings.name

    @property
    def model_class(self) -> type[JobAnalystAssignment]:
        return JobAnalystAssignment

    def get_attached(
        self,
        job_id: int,
        analyst_id: int,
        session: Optional[ClientSession] = None,
    ) -> Optional[JobAnalystAssignment]:
        """Get the assignment of an analyst still on a job."""
        return self.find_one(
            {"job_id": job_id, "analyst_id": analyst_id, "removed_at": None},
            session=session,
        )

    def get_by_job(
        self,
        job_id: int,
        include_removed: bool = False,
        session: Optional[ClientSession] = None,
    ) -> list[JobAnalystAssignment]:
        """Assignments of a job in alternation order."""
        query: dict[str, Any] = {"job_id": job_id}
        if not include_removed:
            query["removed_at"] = None
        return self.find(
            query,
            sort=[("alternation_order", ASCENDING), ("analyst_id", ASCENDING)],
            session=session,
        )

    def replace_versioned(
        self,
        assignment: JobAnalystAssignment,
        session: Optional[ClientSession] = None,
    ) -> Optional[JobAnalystAssignment]:
        """Write every field back if the stored version still matches."""
        fields = assignment.model_dump_mongo()
        for key in ("_id", "created_at", "updated_at", "version"):
            fields.pop(key, None)
        return self.update_where(
            {"_id": assignment.id, "version": assignment.version},
            {"$set": fields, "$inc": {"version": 1}},
            session=session,
        )

    def increment_count(
        self,
        assignment_id: str | ObjectId,
        expected_version: int,
        enforce_capacity: bool = True,
        session: Optional[ClientSession] = None,
    ) -> Optional[JobAnalystAssignment]:
        """Compare-and-swap increment of assigned_count."""
        query: dict[str, Any] = {
            "_id": self._to_object_id(assignment_id),
            "removed_at": None,
            "version": expected_version,
        }
        if enforce_capacity:
            query["$or"] = [
                {"max_candidates": None},
                {"$expr": {"$lt": ["$assigned_count", "$max_candidates"]}},
            ]
        return self.update_where(
            query,
            {
                "$inc": {"assigned_count": 1, "version": 1},
                "$set": {"last_assigned_at": utcnow()},
            },
            session=session,
        )

    def decrement_count(
        self,
        assignment_id: str | ObjectId,
        session: Optional[ClientSession] = None,
    ) -> Optional[JobAnalystAssignment]:
        """Decrement assigned_count if positive."""
        return self.update_where(
            {"_id": self._to_object_id(assignment_id), "assigned_count": {"$gt": 0}},
            {"$inc": {"assigned_count": -1, "version": 1}},
            session=session,
        )


class AssignmentEventRepository(BaseRepository[CandidateAssignmentEvent]):
    """Repository for candidate routing events."""

    @property
    def collection_name(self) -> str:
        return CandidateAssignmentEvent.Settings.name

    @property
    def model_class(self) -> type[CandidateAssignmentEvent]:
        return CandidateAssignmentEvent

    def get_active(
        self,
        job_id: Optional[int] = None,
        assignment_id: Optional[str | ObjectId] = None,
        candidate_id: Optional[int] = None,
        session: Optional[ClientSession] = None,
    ) -> list[CandidateAssignmentEvent]:
        """Active events matching every given filter, oldest first."""
        query: dict[str, Any] = {"active": True}
        if job_id is not None:
            query["job_id"] = job_id
        if assignment_id is not None:
            query["assignment_id"] = self._to_object_id(assignment_id)
        if candidate_id is not None:
            query["candidate_id"] = candidate_id
        return self.find(query, sort=[("assigned_at", ASCENDING), ("_id", ASCENDING)], session=session)

    def release(
        self,
        event_id: str | ObjectId,
        session: Optional[ClientSession] = None,
    ) -> bool:
        """Release an active event."""
        released = self.update_where(
            {"_id": self._to_object_id(event_id), "active": True},
            {"$set": {"active": False, "released_at": utcnow()}},
            session=session,
        )
        return released is not None

    def get_history(
        self,
        job_id: Optional[int] = None,
        analyst_id: Optional[int] = None,
        candidate_id: Optional[int] = None,
        limit: int = 100,
        session: Optional[ClientSession] = None,
    ) -> list[CandidateAssignmentEvent]:
        """Routing history, newest first."""
        query: dict[str, Any] = {}
        if job_id is not None:
            query["job_id"] = job_id
        if analyst_id is not None:
            query["analyst_id"] = analyst_id
        if candidate_id is not None:
            query["candidate_id"] = candidate_id
        return self.find(
            query,
            limit=limit,
            sort=[("assigned_at", DESCENDING), ("_id", DESCENDING)],
            session=session,
        )


class PendingCandidateRepository(BaseRepository[PendingCandidate]):
    """Repository for candidates waiting for capacity."""

    @property
    def collection_name(self) -> str:
        return PendingCandidate.Settings.name

    @property
    def model_class(self) -> type[PendingCandidate]:
        return PendingCandidate

    def get_queue(
        self,
        job_id: Optional[int] = None,
        include_resolved: bool = False,
        session: Optional[ClientSession] = None,
    ) -> list[PendingCandidate]:
        """Queued candidates, oldest first."""
        query: dict[str, Any] = {}
        if job_id is not None:
            query["job_id"] = job_id
        if not include_resolved:
            query["resolved_at"] = None
        return self.find(query, sort=[("queued_at", ASCENDING), ("_id", ASCENDING)], session=session)

    def resolve(
        self,
        pending_id: str | ObjectId,
        session: Optional[ClientSession] = None,
    ) -> bool:
        """Mark a queued candidate as routed."""
        resolved = self.update_where(
            {"_id": self._to_object_id(pending_id), "resolved_at": None},
            {"$set": {"resolved_at": utcnow()}},
            session=session,
        )
        return resolved is not None
