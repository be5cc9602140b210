"""
Tests for src.core.allocation.ranking — RankingService ordering and decisions.
"""

import threading

import pytest

from src.core.allocation.providers import JustificationProvider, NotificationDispatcher
from src.core.allocation.ranking import RankingService, is_override, ranking_key
from src.core.allocation.scoring import AnalystScore
from src.core.errors import DecisionValidationError, MissingJustificationError
from src.utils.constants import DecisionType, NotificationEvent, OverrideReason


@pytest.fixture
def team(profiles, make_profile):
    """Three analysts whose scores for the default job descend 3 > 7 > 9."""
    profiles.upsert(make_profile(analyst_id=3, client_successes={10: 5}))
    profiles.upsert(make_profile(analyst_id=7, client_successes={10: 2}))
    profiles.upsert(make_profile(analyst_id=9, specialization_tags=["java"]))
    return profiles


def _ranking_with(engine, justifier=None, dispatcher=None) -> RankingService:
    return RankingService(
        engine.store,
        engine.configs,
        engine.profiles,
        scoring=engine.scoring,
        justifier=justifier,
        dispatcher=dispatcher,
        settings=engine.settings.allocation,
    )


class _FailingJustifier(JustificationProvider):
    def explain(self, job, score):
        raise RuntimeError("model offline")


class _BlockingJustifier(JustificationProvider):
    def __init__(self):
        self.release = threading.Event()

    def explain(self, job, score):
        self.release.wait(5)
        return "late"


class _EchoJustifier(JustificationProvider):
    def explain(self, job, score):
        return f"analyst {score.analyst_id} fits {job.title}"


class _BrokenDispatcher(NotificationDispatcher):
    def notify(self, event, payload):
        raise ConnectionError("broker down")


# ── ordering ─────────────────────────────────────────────────────────────────


class TestRankingKey:
    def test_higher_total_first(self):
        a = AnalystScore(analyst_id=1, total=60.0)
        b = AnalystScore(analyst_id=2, total=80.0)
        assert sorted([a, b], key=ranking_key) == [b, a]

    def test_tie_broken_by_load_then_id(self):
        busy = AnalystScore(analyst_id=1, total=70.0, current_load=3)
        idle_high_id = AnalystScore(analyst_id=5, total=70.0, current_load=0)
        idle_low_id = AnalystScore(analyst_id=4, total=70.0, current_load=0)
        ordered = sorted([busy, idle_high_id, idle_low_id], key=ranking_key)
        assert [s.analyst_id for s in ordered] == [4, 5, 1]


class TestRank:
    def test_sorted_by_score(self, engine, team, make_job):
        ranking = engine.ranking.rank(make_job())
        assert [s.analyst_id for s in ranking] == [3, 7, 9]
        totals = [s.total for s in ranking]
        assert totals == sorted(totals, reverse=True)

    def test_identical_analysts_ordered_by_id(self, engine, profiles, make_profile, make_job):
        for analyst_id in (12, 4, 8):
            profiles.upsert(make_profile(analyst_id=analyst_id))
        ranking = engine.ranking.rank(make_job())
        assert [s.analyst_id for s in ranking] == [4, 8, 12]

    def test_stable_across_calls(self, engine, team, make_job):
        first = [s.analyst_id for s in engine.ranking.rank(make_job())]
        second = [s.analyst_id for s in engine.ranking.rank(make_job())]
        assert first == second

    def test_top_n(self, engine, team, make_job):
        assert [s.analyst_id for s in engine.ranking.rank(make_job(), top_n=2)] == [3, 7]

    def test_excludes_attached_analysts(self, engine, team, make_job, attach):
        attach(100, [3])
        assert [s.analyst_id for s in engine.ranking.rank(make_job())] == [7, 9]
        included = engine.ranking.rank(make_job(), include_assigned=True)
        assert [s.analyst_id for s in included] == [3, 7, 9]

    def test_skips_unavailable(self, engine, team, make_profile, make_job):
        team.upsert(make_profile(analyst_id=3, client_successes={10: 5}, available=False))
        assert 3 not in [s.analyst_id for s in engine.ranking.rank(make_job())]

    def test_weight_change_reorders(self, engine, profiles, make_profile, make_job):
        profiles.upsert(make_profile(analyst_id=1, client_successes={10: 5}, specialization_tags=["java"]))
        profiles.upsert(make_profile(analyst_id=2))
        assert engine.ranking.rank(make_job())[0].analyst_id == 2

        engine.configs.propose(
            "distribution",
            {"weight_stack_fit": 10, "weight_client_fit": 60, "weight_availability": 20, "weight_success_rate": 10},
        )
        assert engine.ranking.rank(make_job())[0].analyst_id == 1

    def test_ranking_is_read_only(self, engine, team, make_job, attach):
        attach(100, [9])
        before = engine.distribution.list_assignments(100)
        engine.ranking.rank(make_job())
        assert engine.distribution.list_assignments(100) == before
        assert engine.ranking.decisions() == []


# ── AI justification ─────────────────────────────────────────────────────────


class TestAIJustification:
    def test_attached_when_provider_answers(self, engine, team, make_job):
        ranking = _ranking_with(engine, justifier=_EchoJustifier())
        try:
            scores = ranking.rank(make_job(title="Data Engineer"))
        finally:
            ranking.close()
        assert scores[0].ai_justification == "analyst 3 fits Data Engineer"

    def test_provider_failure_degrades(self, engine, team, make_job):
        ranking = _ranking_with(engine, justifier=_FailingJustifier())
        try:
            scores = ranking.rank(make_job())
        finally:
            ranking.close()
        assert [s.analyst_id for s in scores] == [3, 7, 9]
        assert all(s.ai_justification is None for s in scores)
        assert all(s.justification for s in scores)

    def test_provider_timeout_degrades(self, engine, team, make_job):
        justifier = _BlockingJustifier()
        ranking = _ranking_with(engine, justifier=justifier)
        try:
            scores = ranking.rank(make_job())
        finally:
            justifier.release.set()
            ranking.close()
        assert [s.analyst_id for s in scores] == [3, 7, 9]
        assert all(s.ai_justification is None for s in scores)


# ── override classification ──────────────────────────────────────────────────


class TestIsOverride:
    def test_same_set_in_any_order_is_not_override(self):
        assert not is_override([3, 7, 9], [7, 3])

    def test_top_one(self):
        assert not is_override([3, 7, 9], [3])
        assert is_override([3, 7, 9], [7])

    def test_outside_top_n(self):
        assert is_override([3, 7, 9], [3, 9])

    def test_not_in_suggestion(self):
        assert is_override([3, 7], [3, 42])


# ── record_decision ──────────────────────────────────────────────────────────


class TestRecordDecision:
    def test_accepted_suggestion(self, engine):
        decision = engine.ranking.record_decision(100, [3, 7, 9], [7, 3], actor_id=1)
        assert decision.decision_type == DecisionType.AI_ACCEPTED
        assert decision.override_reason is None
        assert decision.decided_by == 1

    def test_reason_on_accepted_suggestion_is_kept(self, engine):
        decision = engine.ranking.record_decision(
            100, [3, 7, 9], [3, 7], override_reason=OverrideReason.LOAD_BALANCING
        )
        assert decision.decision_type == DecisionType.AI_ACCEPTED
        assert decision.override_reason == OverrideReason.LOAD_BALANCING
        stored = engine.ranking.decisions(job_id=100)[0]
        assert stored.decision_type == DecisionType.AI_ACCEPTED
        assert stored.override_reason == OverrideReason.LOAD_BALANCING

    def test_override_without_reason_rejected(self, engine):
        with pytest.raises(MissingJustificationError):
            engine.ranking.record_decision(100, [3, 7, 9], [3, 9])
        assert engine.ranking.decisions() == []

    def test_override_with_reason(self, engine):
        decision = engine.ranking.record_decision(
            100, [3, 7, 9], [3, 9], override_reason="balanceamento_carga"
        )
        assert decision.decision_type == DecisionType.MANUAL_OVERRIDE
        assert decision.override_reason == OverrideReason.LOAD_BALANCING
        assert engine.ranking.decisions(job_id=100)[0].chosen_analyst_ids == [3, 9]

    def test_reason_other_needs_text(self, engine):
        with pytest.raises(MissingJustificationError):
            engine.ranking.record_decision(100, [3, 7], [7], override_reason=OverrideReason.OTHER)
        with pytest.raises(MissingJustificationError):
            engine.ranking.record_decision(
                100, [3, 7], [7], override_reason=OverrideReason.OTHER, justification="   "
            )
        decision = engine.ranking.record_decision(
            100, [3, 7], [7], override_reason=OverrideReason.OTHER, justification="client asked for Ana"
        )
        assert decision.justification == "client asked for Ana"

    def test_invalid_choice_reports_all_violations(self, engine):
        with pytest.raises(DecisionValidationError) as exc:
            engine.ranking.record_decision(100, [3, 3], [], override_reason="bogus")
        assert set(exc.value.fields) == {"chosen", "suggested", "override_reason"}

    def test_does_not_touch_assignments(self, engine, attach):
        attach(100, [5])
        before = engine.distribution.list_assignments(100)
        engine.ranking.record_decision(100, [3, 7], [3, 7])
        assert engine.distribution.list_assignments(100) == before

    def test_feed_is_newest_first(self, engine):
        engine.ranking.record_decision(100, [3], [3])
        engine.ranking.record_decision(200, [7], [7])
        assert [d.job_id for d in engine.ranking.decisions()] == [200, 100]
        assert [d.job_id for d in engine.ranking.decisions(job_id=100)] == [100]

    def test_dispatches_notification(self, engine, dispatcher):
        engine.ranking.record_decision(100, [3, 7], [3])
        payloads = dispatcher.of_type(NotificationEvent.DECISION_RECORDED)
        assert payloads[0]["job_id"] == 100
        assert payloads[0]["chosen"] == [3]

    def test_dispatcher_failure_is_not_fatal(self, engine):
        ranking = _ranking_with(engine, dispatcher=_BrokenDispatcher())
        decision = ranking.record_decision(100, [3, 7], [3])
        assert decision.id is not None
        assert len(engine.ranking.decisions()) == 1
