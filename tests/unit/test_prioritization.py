"""
Tests for src.core.allocation.prioritization — JobPrioritizer.
"""

from datetime import date, timedelta

import pytest

from src.core.allocation.prioritization import JobPrioritizer
from src.data.models import PrioritizationConfig
from src.utils.config import AllocationSettings
from src.utils.constants import PriorityLevel, UrgencyTier

TODAY = date(2026, 1, 10)


@pytest.fixture
def prioritizer():
    return JobPrioritizer(settings=AllocationSettings())


@pytest.fixture
def plain_job(make_job):
    """Job with no deadline, billing, age or stack: only the unknown-deadline factor counts."""

    def _factory(**kwargs):
        kwargs.setdefault("required_stack", [])
        return make_job(**kwargs)

    return _factory


def _in_days(n: int) -> date:
    return TODAY + timedelta(days=n)


# ── factors ──────────────────────────────────────────────────────────────────


class TestFactors:
    @pytest.mark.parametrize(
        "days,expected",
        [(-3, 100.0), (0, 100.0), (5, 85.0), (7, 85.0), (10, 50.0), (20, 25.0), (60, 10.0)],
    )
    def test_deadline_steps(self, prioritizer, plain_job, days, expected):
        result = prioritizer.score(plain_job(deadline=_in_days(days)), today=TODAY)
        assert result.deadline_urgency == expected

    def test_unknown_deadline(self, prioritizer, plain_job):
        result = prioritizer.score(plain_job(), today=TODAY)
        assert result.deadline_urgency == 30.0
        assert result.days_remaining is None

    def test_billing_saturates(self, prioritizer, plain_job):
        assert prioritizer.score(plain_job(billing_value=25000), today=TODAY).billing_value == 50.0
        assert prioritizer.score(plain_job(billing_value=200000), today=TODAY).billing_value == 100.0

    def test_time_open(self, prioritizer, plain_job):
        result = prioritizer.score(plain_job(opened_on=_in_days(-30)), today=TODAY)
        assert result.time_open == 50.0
        assert result.days_open == 30

    def test_stack_complexity(self, prioritizer, plain_job):
        result = prioritizer.score(plain_job(required_stack=["a", "b", "c", "d"]), today=TODAY)
        assert result.stack_complexity == 50.0


# ── final score ──────────────────────────────────────────────────────────────


class TestScore:
    def test_baseline(self, prioritizer, plain_job):
        result = prioritizer.score(plain_job(), today=TODAY)
        assert result.base_score == 7.5
        assert result.score == 7.5
        assert result.level == PriorityLevel.LOW
        assert result.sla_days == 30

    def test_vip_bonus(self, prioritizer, plain_job):
        result = prioritizer.score(plain_job(vip_client=True), today=TODAY)
        assert result.vip_bonus == 20
        assert result.score == 27.5
        assert "VIP client" in result.justification

    def test_urgency_multiplier(self, prioritizer, plain_job):
        low = prioritizer.score(plain_job(urgency=UrgencyTier.LOW), today=TODAY)
        assert low.multiplier == 0.8
        assert low.score == 6.0

    def test_score_is_clamped(self, prioritizer, make_job):
        job = make_job(
            deadline=_in_days(5),
            billing_value=50000,
            opened_on=_in_days(-60),
            required_stack=[f"tech{i}" for i in range(8)],
            urgency=UrgencyTier.CRITICAL,
            vip_client=True,
        )
        result = prioritizer.score(job, today=TODAY)
        assert result.base_score == 96.25
        assert result.score == 120.0
        assert result.level == PriorityLevel.HIGH
        assert result.sla_days == 5

    def test_medium_level_sla_capped_by_deadline(self, prioritizer, make_job):
        job = make_job(
            deadline=_in_days(10),
            billing_value=50000,
            opened_on=_in_days(-30),
            required_stack=["a", "b", "c", "d"],
        )
        result = prioritizer.score(job, today=TODAY)
        assert result.score == 62.5
        assert result.level == PriorityLevel.MEDIUM
        assert result.sla_days == 10

    def test_overdue(self, prioritizer, plain_job):
        result = prioritizer.score(plain_job(deadline=_in_days(-4)), today=TODAY)
        assert result.overdue
        assert "overdue by 4 day(s)" in result.justification
        assert result.to_dict()["overdue"] is True

    def test_explicit_config(self, prioritizer, plain_job):
        config = PrioritizationConfig(vip_client_bonus=40)
        assert prioritizer.score(plain_job(vip_client=True), config=config, today=TODAY).score == 47.5

    def test_uses_active_config(self, engine, plain_job):
        engine.configs.propose("prioritization", {"vip_client_bonus": 35})
        assert engine.prioritizer.score(plain_job(vip_client=True), today=TODAY).vip_bonus == 35


# ── ranking ──────────────────────────────────────────────────────────────────


class TestRank:
    def test_highest_score_first(self, prioritizer, plain_job):
        jobs = [
            plain_job(job_id=1),
            plain_job(job_id=2, vip_client=True),
            plain_job(job_id=3, deadline=_in_days(2)),
        ]
        ranked = prioritizer.rank(jobs, today=TODAY)
        # VIP 7.5 + 20 beats a close deadline at 85 * 0.25
        assert [p.job_id for p in ranked] == [2, 3, 1]

    def test_tie_goes_to_earlier_deadline(self, prioritizer, plain_job):
        jobs = [plain_job(job_id=1, deadline=_in_days(12)), plain_job(job_id=2, deadline=_in_days(10))]
        ranked = prioritizer.rank(jobs, today=TODAY)
        assert ranked[0].score == ranked[1].score
        assert [p.job_id for p in ranked] == [2, 1]

    def test_tie_goes_to_lower_id(self, prioritizer, plain_job):
        jobs = [plain_job(job_id=9), plain_job(job_id=4)]
        assert [p.job_id for p in prioritizer.rank(jobs, today=TODAY)] == [4, 9]
