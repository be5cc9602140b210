"""
Utility modules for the allocation engine.

This package contains shared utilities used across the application:
- config: Configuration management
- logger: Logging infrastructure
- constants: Application-wide constants
"""

from src.utils.config import (
    AppSettings,
    get_settings,
    reload_settings,
    settings,
    ROOT_DIR,
    SRC_DIR,
    DATA_DIR,
)
from src.utils.constants import (
    APP_NAME,
    APP_DISPLAY_NAME,
    VERSION,
    AssignmentType,
    AuditType,
    ConfigKind,
    DecisionType,
    FlowState,
    OverrideReason,
    PriorityLevel,
    ScoreBand,
    UrgencyTier,
)
from src.utils.logger import (
    setup_logging,
    get_logger,
    audit_log,
    LoggerMixin,
    log,
)

__all__ = [
    # Config
    "AppSettings",
    "get_settings",
    "reload_settings",
    "settings",
    "ROOT_DIR",
    "SRC_DIR",
    "DATA_DIR",
    # Constants
    "APP_NAME",
    "APP_DISPLAY_NAME",
    "VERSION",
    "AssignmentType",
    "AuditType",
    "ConfigKind",
    "DecisionType",
    "FlowState",
    "OverrideReason",
    "PriorityLevel",
    "ScoreBand",
    "UrgencyTier",
    # Logger
    "setup_logging",
    "get_logger",
    "audit_log",
    "LoggerMixin",
    "log",
]
