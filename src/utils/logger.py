"""
Logging for the allocation engine.

Loguru handles the console and rotating file sinks. Allocation decisions,
overrides, configuration changes and redistributions additionally go to an
audit sink written as JSON lines, one record per event, so the trail can be
loaded back for dashboards.
"""

import sys
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from bson import ObjectId
from loguru import logger

from src.utils.config import AppSettings, get_settings
from src.utils.constants import AuditType

# Keys never written to any sink
REDACTED_KEYS = ("password", "secret", "token", "api_key", "credential")


def setup_logging(settings: Optional[AppSettings] = None) -> None:
    """
    Configure the console, file and audit sinks.

    Args:
        settings: Application settings; defaults to the global ones
    """
    settings = settings or get_settings()
    log_settings = settings.logging

    logger.remove()
    logger.configure(extra={"name": "allocation"})

    # Variable values in tracebacks only while developing locally
    diagnose = settings.debug and settings.environment == "development"

    if log_settings.console_output:
        logger.add(
            sys.stderr,
            format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
            "<cyan>{extra[name]}</cyan> | <level>{message}</level>",
            level=log_settings.level,
            colorize=True,
            diagnose=diagnose,
        )

    log_file = log_settings.file_path
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_file,
        format=log_settings.format,
        level=log_settings.level,
        rotation=log_settings.rotation,
        retention=log_settings.retention,
        compression="zip",
        diagnose=diagnose,
        enqueue=True,
    )

    logger.add(
        log_settings.audit_file_path,
        level="INFO",
        filter=lambda record: "audit_type" in record["extra"],
        serialize=True,
        rotation="1 week",
        retention=log_settings.audit_retention,
        enqueue=True,
    )

    logger.debug(f"Logging initialized at level {log_settings.level}")


def get_logger(name: str) -> Any:
    """Logger bound to a component name."""
    return logger.bind(name=name)


def _plain(value: Any) -> Any:
    """Turn audit details into JSON-friendly values, redacting secrets."""
    if isinstance(value, dict):
        return {
            str(k): "***" if any(s in str(k).lower() for s in REDACTED_KEYS) else _plain(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def audit_log(
    action: str,
    details: dict[str, Any],
    audit_type: AuditType | str = AuditType.DECISION,
) -> None:
    """
    Append one entry to the allocation audit trail.

    Args:
        action: What happened (e.g. "decision_recorded", "analyst_removed")
        details: Job, analyst and actor IDs and whatever else describes the event
        audit_type: DECISION, OVERRIDE, CONFIG, REDISTRIBUTION or ASSIGNMENT
    """
    payload = _plain(details)
    logger.bind(
        name="audit",
        audit_type=AuditType(audit_type).value,
        action=action,
        details=payload,
    ).info(f"{action} | {payload}")


class LoggerMixin:
    """Gives a service a `logger` bound to its class name."""

    @property
    def logger(self) -> Any:
        if not hasattr(self, "_logger"):
            self._logger = get_logger(type(self).__name__)
        return self._logger


# Module-level logger for quick access
log = logger


try:
    setup_logging()
except OSError:
    # Unwritable log directory: keep loguru's stderr default
    pass
