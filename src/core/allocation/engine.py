"""
Allocation engine wiring.

Builds the services around one store and the external collaborators.
"""

from typing import Optional

from src.core.allocation.config_store import ConfigurationStore
from src.core.allocation.distribution import DistributionService
from src.core.allocation.flow import AllocationFlow
from src.core.allocation.prioritization import JobPrioritizer
from src.core.allocation.providers import (
    AnalystProfileProvider,
    JustificationProvider,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    StaticProfileProvider,
)
from src.core.allocation.ranking import RankingService
from src.core.allocation.scoring import ScoringEngine
from src.data.memory_store import InMemoryAllocationStore
from src.data.store import AllocationStore
from src.data.models import JobRequisition
from src.utils.config import AppSettings, get_settings
from src.utils.logger import get_logger

logger = get_logger(__name__)


def create_store(backend: Optional[str] = None) -> AllocationStore:
    """Create the store selected by settings (or the given backend name)."""
    backend = backend or get_settings().allocation.store_backend
    if backend == "mongo":
        from src.data.mongo_store import MongoAllocationStore

        return MongoAllocationStore()
    if backend == "memory":
        return InMemoryAllocationStore()
    raise ValueError(f"Unknown store backend: {backend}")


class AllocationEngine:
    """Facade over configuration, ranking, distribution and prioritization."""

    def __init__(
        self,
        store: Optional[AllocationStore] = None,
        profiles: Optional[AnalystProfileProvider] = None,
        justifier: Optional[JustificationProvider] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings: Optional[AppSettings] = None,
    ):
        self.settings = settings or get_settings()
        allocation = self.settings.allocation

        self.store = store or create_store(allocation.store_backend)
        self.profiles = profiles or StaticProfileProvider()
        self.dispatcher = dispatcher or LoggingNotificationDispatcher()

        self.configs = ConfigurationStore(self.store)
        self.scoring = ScoringEngine(allocation)
        self.ranking = RankingService(
            self.store,
            self.configs,
            self.profiles,
            scoring=self.scoring,
            justifier=justifier,
            dispatcher=self.dispatcher,
            settings=allocation,
        )
        self.distribution = DistributionService(self.store, dispatcher=self.dispatcher, settings=allocation)
        self.prioritizer = JobPrioritizer(self.configs, settings=allocation)

    def bootstrap(self) -> None:
        """Seed default configurations where none is active."""
        seeded = self.configs.ensure_defaults()
        if seeded:
            logger.info(f"Seeded {len(seeded)} default configuration(s)")

    def start_flow(self, job: JobRequisition) -> AllocationFlow:
        """Open an operator allocation flow for a job."""
        return AllocationFlow(job, self.ranking, self.distribution, settings=self.settings.allocation)

    def close(self) -> None:
        self.ranking.close()


# Singleton instance
_allocation_engine: Optional[AllocationEngine] = None


def get_allocation_engine() -> AllocationEngine:
    """Get the allocation engine singleton instance."""
    global _allocation_engine
    if _allocation_engine is None:
        _allocation_engine = AllocationEngine()
        _allocation_engine.bootstrap()
    return _allocation_engine
