"""
Configuration repositories.

One collection per configuration kind holds every version; a partial unique
index keeps at most one active row. Field-level changes go to config_history.
"""

from typing import Optional

from pymongo import DESCENDING
from pymongo.client_session import ClientSession

from src.data.models.config import (
    ConfigChange,
    DistributionConfig,
    PrioritizationConfig,
    WeightedConfig,
)
from src.utils.constants import ConfigKind
from src.utils.logger import get_logger

from .base import BaseRepository

logger = get_logger(__name__)


class WeightedConfigRepository(BaseRepository[WeightedConfig]):
    """Shared queries of the versioned config collections."""

    def get_active(self, session: Optional[ClientSession] = None) -> Optional[WeightedConfig]:
        """Get the active configuration."""
        return self.find_one({"active": True}, session=session)

    def deactivate_active(self, session: Optional[ClientSession] = None) -> int:
        """Deactivate whichever row is active."""
        return self.update_many({"active": True}, {"active": False}, session=session)

    def list_versions(self, session: Optional[ClientSession] = None) -> list[WeightedConfig]:
        """All versions, newest first."""
        return self.find({}, sort=[("version", DESCENDING)], session=session)


class DistributionConfigRepository(WeightedConfigRepository):
    """Repository for distribution configurations."""

    @property
    def collection_name(self) -> str:
        return DistributionConfig.Settings.name

    @property
    def model_class(self) -> type[DistributionConfig]:
        return DistributionConfig


class PrioritizationConfigRepository(WeightedConfigRepository):
    """Repository for prioritization configurations."""

    @property
    def collection_name(self) -> str:
        return PrioritizationConfig.Settings.name

    @property
    def model_class(self) -> type[PrioritizationConfig]:
        return PrioritizationConfig


class ConfigChangeRepository(BaseRepository[ConfigChange]):
    """Repository for the configuration change history."""

    @property
    def collection_name(self) -> str:
        return ConfigChange.Settings.name

    @property
    def model_class(self) -> type[ConfigChange]:
        return ConfigChange

    def get_by_kind(
        self,
        kind: ConfigKind,
        limit: int = 50,
        session: Optional[ClientSession] = None,
    ) -> list[ConfigChange]:
        """Change history of a kind, newest first."""
        return self.find(
            {"kind": ConfigKind(kind).value},
            limit=limit,
            sort=[("changed_at", DESCENDING), ("_id", DESCENDING)],
            session=session,
        )


def get_config_repository(kind: ConfigKind) -> WeightedConfigRepository:
    """Get the repository of a configuration kind."""
    if ConfigKind(kind) == ConfigKind.DISTRIBUTION:
        return DistributionConfigRepository()
    return PrioritizationConfigRepository()
