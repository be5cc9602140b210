"""
External collaborators of the allocation engine.

The engine reads analyst profiles, may ask an AI service for advisory
justification text, and tells a dispatcher about decisions and
redistributions. Each collaborator is an abstract interface; profiles and
notifications ship a simple default implementation.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Optional

from src.data.models import AnalystProfile, JobRequisition
from src.utils.constants import NotificationEvent
from src.utils.logger import get_logger

if TYPE_CHECKING:
    from src.core.allocation.scoring import AnalystScore

logger = get_logger(__name__)


# =============================================================================
# Analyst profiles
# =============================================================================


class AnalystProfileProvider(ABC):
    """Read-only source of analyst specialization and performance data."""

    @abstractmethod
    def list_analysts(self) -> list[AnalystProfile]:
        """All analysts that may be ranked."""
        pass

    @abstractmethod
    def get_profile(self, analyst_id: int) -> Optional[AnalystProfile]:
        """Profile of one analyst, or None if unknown."""
        pass


class StaticProfileProvider(AnalystProfileProvider):
    """Serves a fixed set of profiles from memory."""

    def __init__(self, profiles: Iterable[AnalystProfile] = ()):
        self._profiles = {p.analyst_id: p for p in profiles}

    @classmethod
    def from_json(cls, path: Path | str) -> "StaticProfileProvider":
        """Load profiles from a JSON file holding a list of objects."""
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        return cls(AnalystProfile.model_validate(item) for item in raw)

    def upsert(self, profile: AnalystProfile) -> None:
        """Add or replace a profile."""
        self._profiles[profile.analyst_id] = profile

    def list_analysts(self) -> list[AnalystProfile]:
        return sorted(self._profiles.values(), key=lambda p: p.analyst_id)

    def get_profile(self, analyst_id: int) -> Optional[AnalystProfile]:
        return self._profiles.get(analyst_id)


def load_jobs(path: Path | str) -> list[JobRequisition]:
    """Load job requisitions from a JSON file holding a list of objects."""
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    return [JobRequisition.model_validate(item) for item in raw]


# =============================================================================
# AI justification
# =============================================================================


class JustificationProvider(ABC):
    """Optional AI service producing advisory text for a ranked analyst."""

    @abstractmethod
    def explain(self, job: JobRequisition, score: "AnalystScore") -> str:
        """
        Short explanation of why the analyst fits the job.

        May raise or block; callers bound the wait and degrade on failure.
        """
        pass


# =============================================================================
# Notifications
# =============================================================================


class NotificationDispatcher(ABC):
    """Fire-and-forget sink for allocation events."""

    @abstractmethod
    def notify(self, event: NotificationEvent, payload: dict[str, Any]) -> None:
        """Deliver one event."""
        pass


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Dispatcher that only logs the events."""

    def notify(self, event: NotificationEvent, payload: dict[str, Any]) -> None:
        logger.info(f"Notification {NotificationEvent(event).value}: {payload}")


class RecordingNotificationDispatcher(NotificationDispatcher):
    """Keeps every event in memory, for embedding callers and tests."""

    def __init__(self):
        self.events: list[tuple[NotificationEvent, dict[str, Any]]] = []

    def notify(self, event: NotificationEvent, payload: dict[str, Any]) -> None:
        self.events.append((NotificationEvent(event), dict(payload)))

    def of_type(self, event: NotificationEvent) -> list[dict[str, Any]]:
        """Payloads of one event type, in delivery order."""
        return [payload for e, payload in self.events if e == event]


def dispatch_safely(
    dispatcher: Optional[NotificationDispatcher],
    event: NotificationEvent,
    payload: dict[str, Any],
) -> bool:
    """
    Notify without letting a dispatcher failure reach the caller.

    Returns:
        True if the dispatcher accepted the event
    """
    if dispatcher is None:
        return False
    try:
        dispatcher.notify(event, payload)
        return True
    except Exception as e:
        logger.warning(f"Notification {NotificationEvent(event).value} failed: {e}")
        return False
