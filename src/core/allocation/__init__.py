"""Analyst allocation engine module."""

from .config_store import ConfigurationStore
from .distribution import DistributionService, RemovalResult, RoutingResult
from .engine import AllocationEngine, create_store, get_allocation_engine
from .flow import AllocationFlow, FlowOutcome
from .prioritization import JobPrioritizer, JobPriority
from .ranking import RankingService, is_override
from .scoring import AnalystScore, ScoringEngine

__all__ = [
    "AllocationEngine",
    "AllocationFlow",
    "AnalystScore",
    "ConfigurationStore",
    "DistributionService",
    "FlowOutcome",
    "JobPrioritizer",
    "JobPriority",
    "RankingService",
    "RemovalResult",
    "RoutingResult",
    "ScoringEngine",
    "create_store",
    "get_allocation_engine",
    "is_override",
]
