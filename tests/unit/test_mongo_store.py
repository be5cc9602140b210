"""
Tests for src.data.mongo_store and src.data.database — transaction handling
and index definitions, without a live server.
"""

from contextlib import contextmanager

import pytest
from pymongo import ASCENDING
from pymongo.errors import OperationFailure

from src.core.errors import ConcurrentUpdateError
from src.data.database import DatabaseManager
from src.data.mongo_store import MongoAllocationStore


class FakeDatabaseManager:
    """Hands out placeholder sessions and counts transactions."""

    def __init__(self):
        self.transactions = 0

    @contextmanager
    def transaction(self):
        self.transactions += 1
        yield object()


def _write_conflict() -> OperationFailure:
    return OperationFailure(
        "WriteConflict error: this operation conflicted with another operation",
        112,
        {"errorLabels": ["TransientTransactionError"], "code": 112},
    )


@pytest.fixture
def manager():
    return FakeDatabaseManager()


@pytest.fixture
def mongo_store(manager):
    return MongoAllocationStore(db_manager=manager)


# ── transactions ─────────────────────────────────────────────────────────────


class TestTransaction:
    def test_session_visible_inside_only(self, mongo_store):
        assert not mongo_store.in_transaction
        with mongo_store.transaction():
            assert mongo_store.in_transaction
        assert not mongo_store.in_transaction

    def test_nested_joins_outer(self, mongo_store, manager):
        with mongo_store.transaction():
            with mongo_store.transaction():
                pass
        assert manager.transactions == 1

    def test_write_conflict_becomes_concurrent_update(self, mongo_store):
        with pytest.raises(ConcurrentUpdateError) as exc:
            with mongo_store.transaction():
                raise _write_conflict()
        assert isinstance(exc.value.__cause__, OperationFailure)
        assert not mongo_store.in_transaction

    def test_conflict_in_nested_block_surfaces_at_outermost(self, mongo_store):
        with pytest.raises(ConcurrentUpdateError):
            with mongo_store.transaction():
                with mongo_store.transaction():
                    raise _write_conflict()

    def test_other_failures_propagate_unchanged(self, mongo_store):
        with pytest.raises(OperationFailure):
            with mongo_store.transaction():
                raise OperationFailure("not authorized", 13)


class TestRunInTransaction:
    def test_conflicting_unit_is_retried(self, mongo_store, manager):
        calls = []

        def work():
            calls.append(1)
            if len(calls) < 3:
                raise _write_conflict()
            return "routed"

        assert mongo_store.run_in_transaction(work, attempts=5) == "routed"
        assert manager.transactions == 3

    def test_persistent_conflict_raises(self, mongo_store, manager):
        def work():
            raise _write_conflict()

        with pytest.raises(ConcurrentUpdateError):
            mongo_store.run_in_transaction(work, attempts=2)
        assert manager.transactions == 2


# ── indexes ──────────────────────────────────────────────────────────────────


class RecordingDatabase(dict):
    """Collections that remember the indexes requested on them."""

    def __missing__(self, name):
        collection = self[name] = RecordingCollection()
        return collection


class RecordingCollection:
    def __init__(self):
        self.indexes = []

    def create_index(self, keys, **options):
        self.indexes.append((keys, options))


class TestEnsureIndexes:
    @pytest.fixture
    def database(self, monkeypatch):
        db = RecordingDatabase()
        monkeypatch.setattr(DatabaseManager(), "get_database", lambda: db)
        DatabaseManager().ensure_indexes()
        return db

    @staticmethod
    def _named(collection, name):
        return next(options for _, options in collection.indexes if options.get("name") == name)

    def test_one_active_event_per_candidate(self, database):
        events = database["candidate_assignment_events"]
        options = self._named(events, "one_active_event")
        assert options["unique"] is True
        assert options["partialFilterExpression"] == {"active": True}
        keys = next(k for k, o in events.indexes if o.get("name") == "one_active_event")
        assert keys == [("job_id", ASCENDING), ("candidate_id", ASCENDING)]

    def test_one_attached_assignment(self, database):
        options = self._named(database["job_analyst_assignments"], "one_attached_assignment")
        assert options["unique"] is True
        assert options["partialFilterExpression"] == {"removed_at": {"$type": "null"}}

    def test_one_active_config_per_kind(self, database):
        for name in ("distribution_configs", "prioritization_configs"):
            options = self._named(database[name], "one_active_config")
            assert options["partialFilterExpression"] == {"active": True}
