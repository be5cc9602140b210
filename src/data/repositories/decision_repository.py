"""
Allocation decision repository.

Decisions are append-only: this repository only inserts and reads.
"""

from typing import Any, Optional

from pymongo import DESCENDING
from pymongo.client_session import ClientSession

from src.data.models.decision import AllocationDecision

from .base import BaseRepository


class DecisionRepository(BaseRepository[AllocationDecision]):
    """Repository for the allocation decision audit log."""

    @property
    def collection_name(self) -> str:
        return AllocationDecision.Settings.name

    @property
    def model_class(self) -> type[AllocationDecision]:
        return AllocationDecision

    def get_feed(
        self,
        job_id: Optional[int] = None,
        limit: int = 100,
        session: Optional[ClientSession] = None,
    ) -> list[AllocationDecision]:
        """Decisions, newest first."""
        query: dict[str, Any] = {}
        if job_id is not None:
            query["job_id"] = job_id
        return self.find(
            query,
            limit=limit,
            sort=[("decided_at", DESCENDING), ("_id", DESCENDING)],
            session=session,
        )
