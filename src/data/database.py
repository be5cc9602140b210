"""
Database connection manager for the allocation engine.

Provides MongoDB connection management through PyMongo, including the
multi-document transactions the distributor and configuration store rely on.
"""

from contextlib import contextmanager
from typing import Any, Iterator, Optional
from urllib.parse import quote_plus

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.client_session import ClientSession
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from src.utils.config import get_settings
from src.utils.logger import get_logger

logger = get_logger(__name__)


class DatabaseManager:
    """
    Manages the MongoDB client.

    Implements singleton pattern for connection reuse.
    """

    _instance: Optional["DatabaseManager"] = None
    _client: Optional[MongoClient] = None

    def __new__(cls) -> "DatabaseManager":
        """Ensure singleton instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Initialize database manager with settings."""
        if getattr(self, "_initialized", False):
            return

        self._settings = get_settings()
        self._db_name = self._settings.database.name
        self._uri = self._build_uri()
        self._initialized = True

    def _build_uri(self) -> str:
        """
        Build MongoDB connection URI from settings.

        Credentials are URL-encoded; hosts carrying shell metacharacters are
        rejected.
        """
        db_settings = self._settings.database

        host = db_settings.host.strip()
        if not host or any(c in host for c in [";", "&", "|", "$", "`"]):
            raise ValueError(f"Invalid database host: {host}")

        auth = ""
        if db_settings.username and db_settings.password:
            auth = f"{quote_plus(db_settings.username)}:{quote_plus(db_settings.password)}@"

        uri = f"mongodb://{auth}{host}:{db_settings.port}"
        if db_settings.replica_set:
            uri += f"/?replicaSet={quote_plus(db_settings.replica_set)}"
        return uri

    # -------------------------------------------------------------------------
    # Client
    # -------------------------------------------------------------------------

    def get_client(self) -> MongoClient:
        """Get or create the MongoDB client."""
        if self._client is None:
            logger.info("Creating MongoDB client")
            try:
                self._client = MongoClient(
                    self._uri,
                    serverSelectionTimeoutMS=5000,
                    connectTimeoutMS=5000,
                    maxPoolSize=50,
                    minPoolSize=5,
                    tz_aware=False,
                )
            except Exception as e:
                self._client = None
                logger.error(f"Failed to create MongoDB client: {e}")
                raise
        return self._client

    def get_database(self) -> Database:
        """Get the application database."""
        return self.get_client()[self._db_name]

    def get_collection(self, collection_name: str) -> Any:
        """Get a collection by name."""
        return self.get_database()[collection_name]

    @contextmanager
    def transaction(self) -> Iterator[ClientSession]:
        """
        Run the enclosed block inside a multi-document transaction.

        The transaction commits when the block exits normally and aborts if
        it raises. Requires a replica set deployment.
        """
        with self.get_client().start_session() as session:
            with session.start_transaction():
                yield session

    def check_connection(self) -> bool:
        """Check if the connection is healthy."""
        try:
            self.get_client().admin.command("ping")
            return True
        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(f"Connection check failed: {e}")
            self._client = None
            return False

    def close(self) -> None:
        """Close the client connection."""
        if self._client:
            logger.info("Closing MongoDB client")
            self._client.close()
            self._client = None

    # -------------------------------------------------------------------------
    # Index Management
    # -------------------------------------------------------------------------

    def ensure_indexes(self) -> None:
        """Create indexes for all collections."""
        logger.info("Ensuring database indexes")
        db = self.get_database()

        # One active row per config kind
        for name in ("distribution_configs", "prioritization_configs"):
            configs = db[name]
            configs.create_index(
                "active",
                unique=True,
                partialFilterExpression={"active": True},
                name="one_active_config",
            )
            configs.create_index([("version", DESCENDING)], unique=True)

        history = db["config_history"]
        history.create_index([("kind", ASCENDING), ("changed_at", DESCENDING)])

        # An analyst is attached to a job at most once
        assignments = db["job_analyst_assignments"]
        assignments.create_index(
            [("job_id", ASCENDING), ("analyst_id", ASCENDING)],
            unique=True,
            partialFilterExpression={"removed_at": {"$type": "null"}},
            name="one_attached_assignment",
        )
        assignments.create_index([("job_id", ASCENDING), ("alternation_order", ASCENDING)])

        events = db["candidate_assignment_events"]
        events.create_index([("assignment_id", ASCENDING), ("active", ASCENDING)])
        # A candidate has at most one live routing per job
        events.create_index(
            [("job_id", ASCENDING), ("candidate_id", ASCENDING)],
            unique=True,
            partialFilterExpression={"active": True},
            name="one_active_event",
        )
        events.create_index("analyst_id")
        events.create_index([("assigned_at", DESCENDING)])

        decisions = db["allocation_decisions"]
        decisions.create_index("job_id")
        decisions.create_index("decision_type")
        decisions.create_index([("decided_at", DESCENDING)])

        pending = db["pending_candidates"]
        pending.create_index([("job_id", ASCENDING), ("resolved_at", ASCENDING)])
        pending.create_index("queued_at")

        logger.info("Database indexes created successfully")


# Global database manager instance
_db_manager: Optional[DatabaseManager] = None


def get_database_manager() -> DatabaseManager:
    """Get the global database manager instance."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager
