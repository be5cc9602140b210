"""
Base repository class providing common CRUD operations.

All collection-specific repositories inherit from this base class. Every
operation accepts an optional client session so it can join a transaction.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, Optional, TypeVar

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.results import InsertOneResult, UpdateResult

from src.data.database import get_database_manager
from src.data.models.base import BaseDocument, utcnow
from src.utils.logger import get_logger

logger = get_logger(__name__)

# Type variable for document models
T = TypeVar("T", bound=BaseDocument)


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base repository providing common database operations.

    Subclasses must define the collection name and model class.
    """

    @property
    @abstractmethod
    def collection_name(self) -> str:
        """Name of the MongoDB collection."""
        pass

    @property
    @abstractmethod
    def model_class(self) -> type[T]:
        """Pydantic model class for this repository."""
        pass

    def __init__(self) -> None:
        """Initialize repository with database connection."""
        self._db_manager = get_database_manager()

    def _collection(self) -> Collection:
        return self._db_manager.get_collection(self.collection_name)

    # -------------------------------------------------------------------------
    # Document Conversion
    # -------------------------------------------------------------------------

    def _to_model(self, document: Optional[dict[str, Any]]) -> Optional[T]:
        """Convert MongoDB document to Pydantic model."""
        if document is None:
            return None
        return self.model_class.model_validate(document)

    def _to_models(self, documents: list[dict[str, Any]]) -> list[T]:
        """Convert list of MongoDB documents to Pydantic models."""
        return [self._to_model(doc) for doc in documents if doc is not None]

    def _to_document(self, model: T) -> dict[str, Any]:
        """Convert Pydantic model to MongoDB document."""
        return model.model_dump_mongo()

    @staticmethod
    def _to_object_id(id_value: str | ObjectId) -> ObjectId:
        """Convert string to ObjectId if needed."""
        if isinstance(id_value, ObjectId):
            return id_value
        return ObjectId(id_value)

    # -------------------------------------------------------------------------
    # CRUD Operations
    # -------------------------------------------------------------------------

    def create(self, model: T, session: Optional[ClientSession] = None) -> T:
        """Insert a new document and return it with its ID."""
        document = self._to_document(model)
        now = utcnow()
        document["created_at"] = now
        document["updated_at"] = now

        result: InsertOneResult = self._collection().insert_one(document, session=session)
        created = model.model_copy(update={"id": result.inserted_id, "created_at": now, "updated_at": now})
        logger.debug(f"Created {self.collection_name} document: {result.inserted_id}")
        return created

    def get_by_id(
        self,
        id_value: str | ObjectId,
        session: Optional[ClientSession] = None,
    ) -> Optional[T]:
        """Get a document by its ID."""
        document = self._collection().find_one(
            {"_id": self._to_object_id(id_value)}, session=session
        )
        return self._to_model(document)

    def find(
        self,
        query: dict[str, Any],
        limit: int = 0,
        sort: Optional[list[tuple[str, int]]] = None,
        session: Optional[ClientSession] = None,
    ) -> list[T]:
        """Find documents matching a query; limit 0 means no limit."""
        cursor = self._collection().find(query, session=session)
        cursor = cursor.sort(sort or [("created_at", -1), ("_id", -1)])
        if limit:
            cursor = cursor.limit(limit)
        return self._to_models(list(cursor))

    def find_one(
        self,
        query: dict[str, Any],
        session: Optional[ClientSession] = None,
    ) -> Optional[T]:
        """Find a single document matching a query."""
        return self._to_model(self._collection().find_one(query, session=session))

    def update_where(
        self,
        query: dict[str, Any],
        update: dict[str, Any],
        session: Optional[ClientSession] = None,
    ) -> Optional[T]:
        """
        Atomically apply an update to the first document matching a query.

        Returns:
            The document after the update, or None if nothing matched
        """
        update = dict(update)
        update.setdefault("$set", {})["updated_at"] = utcnow()
        document = self._collection().find_one_and_update(
            query,
            update,
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if document is not None:
            logger.debug(f"Updated {self.collection_name} document: {document['_id']}")
        return self._to_model(document)

    def update_many(
        self,
        query: dict[str, Any],
        update_data: dict[str, Any],
        session: Optional[ClientSession] = None,
    ) -> int:
        """Set fields on every document matching a query."""
        update_data = {**update_data, "updated_at": utcnow()}
        result: UpdateResult = self._collection().update_many(
            query, {"$set": update_data}, session=session
        )
        return result.modified_count

    def count(
        self,
        query: Optional[dict[str, Any]] = None,
        session: Optional[ClientSession] = None,
    ) -> int:
        """Count documents matching a query."""
        return self._collection().count_documents(query or {}, session=session)
