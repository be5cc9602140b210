"""
Job/analyst attachment and candidate routing data models.

A JobAnalystAssignment is the durable record of one analyst working one job.
Every candidate application routed to an analyst leaves a
CandidateAssignmentEvent; applications that could not be routed wait as a
PendingCandidate until capacity frees up.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from src.utils.constants import AssignmentType

from .base import BaseDocument, PyObjectId, utcnow


class JobAnalystAssignment(BaseDocument):
    """
    One analyst attached to one job.

    `active` is the pause flag: a paused analyst keeps their backlog but gets
    no new automatic routing. Removal is soft and sets `removed_at`.
    `version` is bumped on every write and guards counter updates.
    """

    job_id: int
    analyst_id: int

    active: bool = True
    removed_at: Optional[datetime] = None

    alternation_order: int = 1
    max_candidates: Optional[int] = None  # None = unbounded
    assigned_count: int = 0
    distribution_percentage: int = 100

    last_assigned_at: Optional[datetime] = None
    created_by: Optional[int] = None
    version: int = 0

    @field_validator("max_candidates")
    @classmethod
    def validate_max_candidates(cls, v: Optional[int]) -> Optional[int]:
        """A ceiling, when set, admits at least one candidate."""
        if v is not None and v < 1:
            raise ValueError("max_candidates must be at least 1")
        return v

    @field_validator("assigned_count")
    @classmethod
    def validate_assigned_count(cls, v: int) -> int:
        """Counters never go negative."""
        if v < 0:
            raise ValueError("assigned_count must be non-negative")
        return v

    @property
    def is_attached(self) -> bool:
        """Whether the analyst is still on the job (paused or not)."""
        return self.removed_at is None

    @property
    def has_capacity(self) -> bool:
        """Whether another candidate fits under the ceiling."""
        return self.max_candidates is None or self.assigned_count < self.max_candidates

    @property
    def is_eligible(self) -> bool:
        """Whether automatic routing may pick this analyst."""
        return self.is_attached and self.active and self.has_capacity

    class Settings:
        """MongoDB collection settings."""

        name = "job_analyst_assignments"
        indexes = ["job_id", "analyst_id"]


class CandidateAssignmentEvent(BaseDocument):
    """
    One candidate application routed to one analyst.

    Events are append-only. The single permitted change is releasing an event
    (`active=False`) when the candidate moves to another analyst or is
    orphaned.
    """

    job_id: int
    candidate_id: int
    analyst_id: int
    assignment_id: PyObjectId

    assignment_type: AssignmentType = AssignmentType.AUTOMATIC
    previous_analyst_id: Optional[int] = None
    reason: Optional[str] = None

    assigned_at: datetime = Field(default_factory=utcnow)
    assigned_by: Optional[int] = None

    active: bool = True
    released_at: Optional[datetime] = None

    class Settings:
        """MongoDB collection settings."""

        name = "candidate_assignment_events"
        indexes = ["job_id", "candidate_id", "assignment_id", "assigned_at"]


class PendingCandidate(BaseDocument):
    """A candidate application waiting for routing capacity."""

    job_id: int
    candidate_id: int
    reason: str = "capacity_exhausted"
    queued_at: datetime = Field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None

    @property
    def is_resolved(self) -> bool:
        """Whether the candidate has since been routed."""
        return self.resolved_at is not None

    class Settings:
        """MongoDB collection settings."""

        name = "pending_candidates"
        indexes = ["job_id", "queued_at"]
