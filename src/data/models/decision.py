"""
Allocation decision audit model.

One row per ranking decision taken by an operator. Rows are append-only
and feed both dashboards and the override learning loop.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from src.utils.constants import DecisionType, OverrideReason

from .base import BaseDocument, utcnow


class AllocationDecision(BaseDocument):
    """The suggested analysts, the chosen analysts and why they differ."""

    job_id: int
    suggested_analyst_ids: list[int] = Field(default_factory=list)
    chosen_analyst_ids: list[int] = Field(default_factory=list)

    decision_type: DecisionType
    justification: Optional[str] = None
    override_reason: Optional[OverrideReason] = None

    decided_at: datetime = Field(default_factory=utcnow)
    decided_by: Optional[int] = None

    @property
    def is_override(self) -> bool:
        """Whether the operator departed from the suggestion."""
        return self.decision_type == DecisionType.MANUAL_OVERRIDE

    class Settings:
        """MongoDB collection settings."""

        name = "allocation_decisions"
        indexes = ["job_id", "decided_at", "decision_type"]
