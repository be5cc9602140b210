"""
Shared test fixtures for the allocation engine test suite.

Sets environment variables before any src imports to prevent config failures,
then provides factory fixtures for jobs and analyst profiles and an engine
wired to the in-memory store.
"""

import os

# === Set environment BEFORE any src imports ===
os.environ.setdefault("APP_ENVIRONMENT", "testing")
os.environ.setdefault("DB_NAME", "allocation_test")
os.environ.setdefault("ALLOC_STORE_BACKEND", "memory")

from datetime import date
from typing import Any, Optional

import pytest

from src.core.allocation import AllocationEngine
from src.core.allocation.providers import (
    RecordingNotificationDispatcher,
    StaticProfileProvider,
)
from src.data.memory_store import InMemoryAllocationStore
from src.data.models import (
    AnalystProfile,
    ClientEngagement,
    DistributionConfig,
    JobRequisition,
)
from src.utils.config import AllocationSettings, get_settings
from src.utils.constants import UrgencyTier


# ---------------------------------------------------------------------------
# Factory fixtures for inputs
# ---------------------------------------------------------------------------


@pytest.fixture
def make_job():
    """Factory that returns a callable to build JobRequisition models."""

    def _factory(
        job_id: int = 100,
        title: str = "Backend Developer",
        client_id: Optional[int] = 10,
        required_stack: Optional[list[str]] = None,
        urgency: UrgencyTier = UrgencyTier.NORMAL,
        vip_client: bool = False,
        opened_on: Optional[date] = None,
        deadline: Optional[date] = None,
        billing_value: float = 0.0,
        **kwargs,
    ) -> JobRequisition:
        if required_stack is None:
            required_stack = ["python", "django", "postgresql"]
        return JobRequisition(
            job_id=job_id,
            title=title,
            client_id=client_id,
            required_stack=required_stack,
            urgency=urgency,
            vip_client=vip_client,
            opened_on=opened_on,
            deadline=deadline,
            billing_value=billing_value,
            **kwargs,
        )

    return _factory


@pytest.fixture
def make_profile():
    """Factory that returns a callable to build AnalystProfile models."""

    def _factory(
        analyst_id: int = 1,
        name: Optional[str] = None,
        specialization_tags: Optional[list[str]] = None,
        client_successes: Optional[dict[int, int]] = None,
        active_candidates: int = 0,
        capacity: Optional[int] = 5,
        approved_submissions: int = 8,
        total_submissions: int = 10,
        mean_response_days: Optional[float] = 2.0,
        **kwargs: Any,
    ) -> AnalystProfile:
        if specialization_tags is None:
            specialization_tags = ["python", "django", "postgresql"]
        engagements = [
            ClientEngagement(client_id=cid, successful_placements=n)
            for cid, n in (client_successes or {}).items()
        ]
        return AnalystProfile(
            analyst_id=analyst_id,
            name=name or f"Analyst {analyst_id}",
            specialization_tags=specialization_tags,
            client_engagements=engagements,
            active_candidates=active_candidates,
            capacity=capacity,
            approved_submissions=approved_submissions,
            total_submissions=total_submissions,
            mean_response_days=mean_response_days,
            **kwargs,
        )

    return _factory


@pytest.fixture
def default_config():
    return DistributionConfig(active=True)


@pytest.fixture
def allocation_settings():
    return AllocationSettings(provider_timeout_seconds=0.2)


# ---------------------------------------------------------------------------
# Engine fixtures (in-memory store, no external services)
# ---------------------------------------------------------------------------


@pytest.fixture
def store():
    return InMemoryAllocationStore()


@pytest.fixture
def profiles():
    return StaticProfileProvider()


@pytest.fixture
def dispatcher():
    return RecordingNotificationDispatcher()


@pytest.fixture
def engine(store, profiles, dispatcher, allocation_settings):
    """AllocationEngine on an in-memory store with default configs seeded."""
    settings = get_settings().model_copy(update={"allocation": allocation_settings})
    built = AllocationEngine(
        store=store,
        profiles=profiles,
        dispatcher=dispatcher,
        settings=settings,
    )
    built.bootstrap()
    yield built
    built.close()


@pytest.fixture
def distribution(engine):
    return engine.distribution


@pytest.fixture
def attach(distribution):
    """Attach analysts to a job: attach(job_id, [ids], capacity=None)."""

    def _attach(job_id: int, analyst_ids: list[int], capacity: Optional[int] = None):
        return [distribution.add_analyst(job_id, a, capacity=capacity) for a in analyst_ids]

    return _attach
