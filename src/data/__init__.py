"""
Data layer for the allocation engine.

Provides the store boundary, its in-memory and MongoDB implementations,
data models, and repository classes.

Submodules:
- database: MongoDB connection management
- models: Pydantic data models/schemas
- repositories: MongoDB collection access
- store: AllocationStore boundary
- memory_store / mongo_store: store implementations
"""

from .database import (
    DatabaseManager,
    get_database_manager,
)

__all__ = [
    "DatabaseManager",
    "get_database_manager",
]
