"""
Pydantic data models for the allocation engine.

This module provides all data models used throughout the application,
including database documents and the embedded inputs read from the platform.
"""

# Base models
from .base import BaseDocument, EmbeddedModel, PyObjectId, TimestampMixin, utcnow

# Configuration models
from .config import (
    CONFIG_MODELS,
    ConfigChange,
    DistributionConfig,
    PrioritizationConfig,
    WeightedConfig,
)

# Assignment models
from .assignment import (
    CandidateAssignmentEvent,
    JobAnalystAssignment,
    PendingCandidate,
)

# Decision models
from .decision import AllocationDecision

# Input models
from .profile import AnalystProfile, ClientEngagement, JobRequisition

__all__ = [
    # Base
    "BaseDocument",
    "EmbeddedModel",
    "PyObjectId",
    "TimestampMixin",
    "utcnow",
    # Config
    "CONFIG_MODELS",
    "ConfigChange",
    "DistributionConfig",
    "PrioritizationConfig",
    "WeightedConfig",
    # Assignment
    "CandidateAssignmentEvent",
    "JobAnalystAssignment",
    "PendingCandidate",
    # Decision
    "AllocationDecision",
    # Inputs
    "AnalystProfile",
    "ClientEngagement",
    "JobRequisition",
]
