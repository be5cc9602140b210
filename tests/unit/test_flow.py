"""
Tests for src.core.allocation.flow — the operator allocation state machine,
plus an end-to-end run from ranking to routing.
"""

import pytest

from src.core.errors import (
    ConcurrentUpdateError,
    DecisionValidationError,
    FlowStateError,
    MissingJustificationError,
    ValidationError,
)
from src.utils.constants import DecisionType, FlowState, OverrideReason


@pytest.fixture
def team(profiles, make_profile):
    profiles.upsert(make_profile(analyst_id=3, client_successes={10: 5}))
    profiles.upsert(make_profile(analyst_id=7, client_successes={10: 2}))
    profiles.upsert(make_profile(analyst_id=9, specialization_tags=["java"]))
    profiles.upsert(make_profile(analyst_id=11, specialization_tags=[]))
    return profiles


@pytest.fixture
def flow(engine, team, make_job):
    started = engine.start_flow(make_job())
    started.load_ranking()
    return started


# ── accepting the suggestion ─────────────────────────────────────────────────


class TestAcceptSuggestion:
    def test_accept_top_two(self, flow, engine):
        assert flow.accept_suggestion() == [3, 7]
        assert flow.state == FlowState.CONFIRMATION
        assert not flow.is_override

        outcome = flow.confirm(actor_id=1)

        assert flow.state == FlowState.COMPLETED
        assert outcome.decision.decision_type == DecisionType.AI_ACCEPTED
        assert [a.analyst_id for a in outcome.attached] == [3, 7]
        assert [a.analyst_id for a in engine.distribution.list_assignments(100)] == [3, 7]

    def test_accept_custom_count(self, flow):
        assert flow.accept_suggestion(top_n=1) == [3]

    def test_capacity_applied_to_attached(self, flow):
        flow.accept_suggestion()
        outcome = flow.confirm(capacity=4)
        assert all(a.max_candidates == 4 for a in outcome.attached)

    def test_empty_ranking(self, engine, make_job):
        empty = engine.start_flow(make_job())
        empty.load_ranking()
        with pytest.raises(DecisionValidationError):
            empty.accept_suggestion()


# ── manual selection ─────────────────────────────────────────────────────────


class TestManualSelection:
    def test_override_requires_reason(self, flow, engine):
        flow.start_manual_selection()
        flow.select([3, 9])
        assert flow.is_override

        with pytest.raises(MissingJustificationError):
            flow.confirm()
        assert flow.state == FlowState.CONFIRMATION
        assert engine.distribution.list_assignments(100) == []

        outcome = flow.confirm(override_reason=OverrideReason.ANALYST_DEVELOPMENT)
        assert outcome.decision.decision_type == DecisionType.MANUAL_OVERRIDE
        assert [a.analyst_id for a in outcome.attached] == [3, 9]

    def test_reordered_top_choice_is_accepted(self, flow):
        flow.start_manual_selection()
        flow.select([7, 3])
        assert not flow.is_override
        assert flow.confirm().decision.decision_type == DecisionType.AI_ACCEPTED

    @pytest.mark.parametrize("selection", [[], [3, 3], [3, 7, 9, 11], [3, 42]])
    def test_invalid_selection(self, flow, selection):
        flow.start_manual_selection()
        with pytest.raises(DecisionValidationError):
            flow.select(selection)
        assert flow.state == FlowState.MANUAL_SELECTION

    def test_back_clears_selection(self, flow):
        flow.start_manual_selection()
        flow.select([9])
        flow.back()
        assert flow.state == FlowState.RANKING
        assert flow.selection == []
        assert flow.accept_suggestion() == [3, 7]


# ── state guards ─────────────────────────────────────────────────────────────


class TestStateGuards:
    def test_select_before_manual_mode(self, flow):
        with pytest.raises(FlowStateError):
            flow.select([3])

    def test_confirm_before_selection(self, flow):
        with pytest.raises(FlowStateError):
            flow.confirm()

    def test_cancel_writes_nothing(self, flow, engine):
        flow.accept_suggestion()
        flow.cancel()
        assert flow.state == FlowState.CANCELLED
        assert engine.ranking.decisions() == []
        assert engine.distribution.list_assignments(100) == []

    def test_no_transition_after_completion(self, flow):
        flow.accept_suggestion()
        flow.confirm()
        with pytest.raises(FlowStateError):
            flow.cancel()
        with pytest.raises(FlowStateError):
            flow.load_ranking()

    def test_attached_meanwhile_is_reported(self, flow, attach):
        flow.accept_suggestion()
        attach(100, [3])
        outcome = flow.confirm()
        assert outcome.already_attached == [3]
        assert [a.analyst_id for a in outcome.attached] == [7]


# ── retrying confirmation ────────────────────────────────────────────────────


class TestConfirmRetry:
    def test_bad_capacity_rejected_before_decision(self, flow, engine):
        flow.accept_suggestion()
        with pytest.raises(ValidationError) as exc:
            flow.confirm(capacity=0)
        assert exc.value.fields == ["capacity"]
        assert flow.state == FlowState.CONFIRMATION
        assert engine.ranking.decisions(job_id=100) == []

        flow.confirm(capacity=2)
        assert len(engine.ranking.decisions(job_id=100)) == 1

    def test_failed_attachment_retry_records_once(self, flow, engine, monkeypatch):
        flow.accept_suggestion()
        real_add = engine.distribution.add_analyst
        calls = []

        def flaky_add(job_id, analyst_id, **kwargs):
            calls.append(analyst_id)
            if len(calls) == 2:
                raise ConcurrentUpdateError("lost race")
            return real_add(job_id, analyst_id, **kwargs)

        monkeypatch.setattr(engine.distribution, "add_analyst", flaky_add)
        with pytest.raises(ConcurrentUpdateError):
            flow.confirm(actor_id=1)
        assert flow.state == FlowState.CONFIRMATION
        assert flow.decision is not None

        outcome = flow.confirm(actor_id=1)

        assert flow.state == FlowState.COMPLETED
        assert len(engine.ranking.decisions(job_id=100)) == 1
        assert outcome.decision.id == flow.decision.id
        assert outcome.already_attached == [3]
        assert [a.analyst_id for a in outcome.attached] == [7]

    def test_no_going_back_once_decided(self, flow, engine, monkeypatch):
        flow.accept_suggestion()

        def failing_add(*args, **kwargs):
            raise ConcurrentUpdateError("lost race")

        monkeypatch.setattr(engine.distribution, "add_analyst", failing_add)
        with pytest.raises(ConcurrentUpdateError):
            flow.confirm()
        with pytest.raises(FlowStateError):
            flow.back()
        assert flow.selection == [3, 7]


# ── end to end ───────────────────────────────────────────────────────────────


class TestEndToEnd:
    def test_idle_analyst_ranked_first_and_routed(self, engine, profiles, make_profile, make_job):
        profiles.upsert(make_profile(analyst_id=1, name="X", active_candidates=0, capacity=5))
        profiles.upsert(make_profile(analyst_id=2, name="Y", active_candidates=4, capacity=5))

        flow = engine.start_flow(make_job())
        ranking = flow.load_ranking()
        assert [s.analyst_id for s in ranking] == [1, 2]
        assert ranking[0].total > ranking[1].total

        flow.accept_suggestion()
        flow.confirm(actor_id=99, capacity=5)

        result = engine.distribution.route_candidate(100, 5001)
        assert result.analyst_id == 1
        assert result.assignment.assigned_count == 1
        assert result.assignment.max_candidates == 5

        decision = engine.ranking.decisions(job_id=100)[0]
        assert decision.chosen_analyst_ids == [1, 2]
        assert decision.decided_by == 99
