"""
Database repositories for the allocation engine.

This module provides repository classes for all database collections,
implementing the repository pattern for clean data access.
"""

# Base repository
from .base import BaseRepository

# Collection repositories
from .config_repository import (
    ConfigChangeRepository,
    DistributionConfigRepository,
    PrioritizationConfigRepository,
    WeightedConfigRepository,
    get_config_repository,
)
from .assignment_repository import (
    AssignmentEventRepository,
    AssignmentRepository,
    PendingCandidateRepository,
)
from .decision_repository import DecisionRepository

__all__ = [
    # Base
    "BaseRepository",
    # Config
    "ConfigChangeRepository",
    "DistributionConfigRepository",
    "PrioritizationConfigRepository",
    "WeightedConfigRepository",
    "get_config_repository",
    # Assignment
    "AssignmentEventRepository",
    "AssignmentRepository",
    "PendingCandidateRepository",
    # Decision
    "DecisionRepository",
]
