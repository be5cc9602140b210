"""
Tests for src.utils.logger — audit trail entries.
"""

from datetime import datetime

import pytest
from bson import ObjectId
from loguru import logger

from src.utils.constants import AuditType, ScoreBand
from src.utils.logger import _plain, audit_log


@pytest.fixture
def audit_records():
    records = []
    sink_id = logger.add(
        lambda message: records.append(message.record),
        filter=lambda record: "audit_type" in record["extra"],
        level="INFO",
    )
    yield records
    logger.remove(sink_id)


class TestPlain:
    def test_converts_domain_values(self):
        oid = ObjectId()
        data = _plain({"id": oid, "band": ScoreBand.GOOD, "at": datetime(2026, 1, 2), "ids": (1, 2)})
        assert data == {"id": str(oid), "band": "good", "at": "2026-01-02T00:00:00", "ids": [1, 2]}

    def test_redacts_secrets(self):
        assert _plain({"nested": {"api_key": "abc", "job_id": 3}}) == {"nested": {"api_key": "***", "job_id": 3}}


class TestAuditLog:
    def test_entry_carries_type_and_details(self, audit_records):
        audit_log("analyst_removed", {"job_id": 7, "moved": {1: 2}}, AuditType.REDISTRIBUTION)
        record = audit_records[-1]
        assert record["extra"]["audit_type"] == "REDISTRIBUTION"
        assert record["extra"]["action"] == "analyst_removed"
        assert record["extra"]["details"]["job_id"] == 7

    def test_accepts_string_type(self, audit_records):
        audit_log("config_activated", {}, "CONFIG")
        assert audit_records[-1]["extra"]["audit_type"] == "CONFIG"

    def test_services_write_audit_entries(self, engine, audit_records):
        engine.ranking.record_decision(100, [3, 7], [9], override_reason="indisponibilidade")
        assert any(
            r["extra"]["audit_type"] == "OVERRIDE" and r["extra"]["details"]["job_id"] == 100
            for r in audit_records
        )
