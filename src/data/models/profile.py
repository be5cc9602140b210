"""
Inputs read from external collaborators.

Job requisitions and analyst profiles live in the surrounding platform; the
engine only reads them. They are embedded models, never stored by the engine.
"""

from datetime import date
from typing import Optional

from pydantic import Field, field_validator

from src.utils.constants import UrgencyTier

from .base import EmbeddedModel


class JobRequisition(EmbeddedModel):
    """An open job, as far as allocation and prioritization care."""

    job_id: int
    title: str = ""
    client_id: Optional[int] = None
    client_name: Optional[str] = None
    vip_client: bool = False

    required_stack: list[str] = Field(default_factory=list)
    urgency: UrgencyTier = UrgencyTier.NORMAL

    opened_on: Optional[date] = None
    deadline: Optional[date] = None
    billing_value: float = 0.0

    @field_validator("required_stack")
    @classmethod
    def normalize_stack(cls, v: list[str]) -> list[str]:
        """Lowercase and de-duplicate stack tags, keeping order."""
        seen: list[str] = []
        for tag in v:
            tag = tag.strip().lower()
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    @field_validator("billing_value")
    @classmethod
    def validate_billing(cls, v: float) -> float:
        """Billing value is never negative."""
        if v < 0:
            raise ValueError("billing_value must be non-negative")
        return v


class ClientEngagement(EmbeddedModel):
    """An analyst's track record with one client."""

    client_id: int
    successful_placements: int = 0
    total_submissions: int = 0


class AnalystProfile(EmbeddedModel):
    """Specialization and performance metrics of one analyst."""

    analyst_id: int
    name: str = ""
    specialization_tags: list[str] = Field(default_factory=list)
    client_engagements: list[ClientEngagement] = Field(default_factory=list)

    active_candidates: int = 0
    capacity: Optional[int] = None  # falls back to the config default

    approved_submissions: int = 0
    total_submissions: int = 0
    mean_response_days: Optional[float] = None

    available: bool = True

    @field_validator("specialization_tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        """Lowercase tags for case-insensitive matching."""
        return [t.strip().lower() for t in v if t.strip()]

    @field_validator("active_candidates", "approved_submissions", "total_submissions")
    @classmethod
    def validate_counts(cls, v: int) -> int:
        """Counts are never negative."""
        if v < 0:
            raise ValueError("Counts must be non-negative")
        return v

    @property
    def approval_ratio(self) -> Optional[float]:
        """Approved / total submissions, or None without history."""
        if self.total_submissions == 0:
            return None
        return min(1.0, self.approved_submissions / self.total_submissions)

    def successes_with(self, client_id: Optional[int]) -> int:
        """Successful placements with a client."""
        if client_id is None:
            return 0
        return sum(
            e.successful_placements
            for e in self.client_engagements
            if e.client_id == client_id
        )
