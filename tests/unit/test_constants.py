"""
Tests for src.utils.constants — enums, score caps and default configs.
"""

import pytest

from src.utils.constants import (
    DEFAULT_DISTRIBUTION_CONFIG,
    DEFAULT_DISTRIBUTION_WEIGHTS,
    DEFAULT_PRIORITIZATION_CONFIG,
    RELATED_STACK_GROUPS,
    SUB_SCORE_CAPS,
    DecisionType,
    FlowState,
    OverrideReason,
    PriorityLevel,
    ScoreBand,
)


# ── ScoreBand.from_score() ──────────────────────────────────────────────────


class TestScoreBandFromScore:
    @pytest.mark.parametrize(
        "score,expected",
        [
            (100.0, ScoreBand.EXCELLENT),
            (85.0, ScoreBand.EXCELLENT),
            (84.99, ScoreBand.GOOD),
            (70.0, ScoreBand.GOOD),
            (69.99, ScoreBand.REGULAR),
            (50.0, ScoreBand.REGULAR),
            (49.99, ScoreBand.CRITICAL),
            (0.0, ScoreBand.CRITICAL),
        ],
    )
    def test_default_thresholds(self, score, expected):
        assert ScoreBand.from_score(score, 85, 70, 50) == expected

    def test_custom_thresholds(self):
        assert ScoreBand.from_score(61, 60, 40, 20) == ScoreBand.EXCELLENT


# ── Score caps and defaults ─────────────────────────────────────────────────


class TestSubScoreCaps:
    def test_caps_sum_to_100(self):
        assert sum(SUB_SCORE_CAPS.values()) == 100

    def test_dimensions(self):
        assert list(SUB_SCORE_CAPS) == ["specialization", "client_fit", "load", "approval_rate", "speed"]


class TestDefaultConfigs:
    def test_distribution_weights_sum_to_100(self):
        assert sum(DEFAULT_DISTRIBUTION_WEIGHTS.values()) == 100

    def test_distribution_config_includes_weights(self):
        for key, value in DEFAULT_DISTRIBUTION_WEIGHTS.items():
            assert DEFAULT_DISTRIBUTION_CONFIG[key] == value

    def test_prioritization_weights_sum_to_100(self):
        weights = [v for k, v in DEFAULT_PRIORITIZATION_CONFIG.items() if k.startswith("weight_")]
        assert sum(weights) == 100

    def test_bands_descend(self):
        assert (
            DEFAULT_DISTRIBUTION_CONFIG["band_excellent_min"]
            > DEFAULT_DISTRIBUTION_CONFIG["band_good_min"]
            > DEFAULT_DISTRIBUTION_CONFIG["band_regular_min"]
        )


class TestRelatedStackGroups:
    def test_groups_are_lowercase(self):
        for group in RELATED_STACK_GROUPS:
            assert all(tag == tag.lower() for tag in group)

    def test_python_family(self):
        assert any({"python", "django"} <= group for group in RELATED_STACK_GROUPS)


# ── Enum value correctness ──────────────────────────────────────────────────


class TestOverrideReason:
    def test_all_values_present(self):
        expected = {
            "desenvolvimento_analista",
            "relacionamento_cliente",
            "balanceamento_carga",
            "conhecimento_especifico",
            "indisponibilidade",
            "other",
        }
        assert {r.value for r in OverrideReason} == expected

    def test_lookup_by_value(self):
        assert OverrideReason("balanceamento_carga") == OverrideReason.LOAD_BALANCING


class TestOtherEnums:
    def test_decision_type(self):
        assert {d.value for d in DecisionType} == {"ai_accepted", "manual_override"}

    def test_priority_level(self):
        assert {p.value for p in PriorityLevel} == {"high", "medium", "low"}

    def test_flow_states(self):
        assert FlowState.RANKING.value == "ranking"
        assert len(FlowState) == 5

    def test_str_enum(self):
        assert ScoreBand.GOOD == "good"
