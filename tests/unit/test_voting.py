"""Unit tests for the five-metric convergence vote."""

import pytest

from tfm_arbiter.config import TECH_PRESET, ConvergenceConfig
from tfm_arbiter.metrics.similarity import lexical_similarity
from tfm_arbiter.metrics.voting import compute_metrics, count_votes
from tfm_arbiter.models import IterationMetrics
from tests.mocks.scripted import FailingOracle, FixedOracle, make_snapshot

TEXT = "The quick brown fox jumps over the lazy dog near the quiet river bank at dawn."


def metrics(semantic=1.0, lexical=1.0, length=0.0, style=0.0, efmn=0.0):
    return IterationMetrics(
        semantic=semantic,
        lexical=lexical,
        length_delta=length,
        style_delta=style,
        score_delta=efmn,
    )


class TestCountVotes:
    """Test ballot casting against thresholds."""

    def test_all_pass(self):
        result = count_votes(metrics(), TECH_PRESET.thresholds, TECH_PRESET.convergence)
        assert result.votes == 5
        assert result.converged
        assert all(result.ballots.values())

    def test_bounds_are_inclusive(self):
        t = TECH_PRESET.thresholds
        m = metrics(semantic=t.semantic, lexical=t.lexical, length=t.length, style=t.style, efmn=t.efmn)
        assert count_votes(m, t, TECH_PRESET.convergence).votes == 5

    def test_exactly_required_votes_converge(self):
        m = metrics(semantic=0.5, lexical=0.5)
        result = count_votes(m, TECH_PRESET.thresholds, TECH_PRESET.convergence)
        assert result.votes == 3
        assert result.converged
        assert result.ballots == {
            "semantic": False,
            "lexical": False,
            "length": True,
            "style": True,
            "efmn": True,
        }

    def test_below_required_votes(self):
        m = metrics(semantic=0.5, lexical=0.5, length=0.5)
        result = count_votes(m, TECH_PRESET.thresholds, TECH_PRESET.convergence)
        assert result.votes == 2
        assert not result.converged

    def test_votes_required_is_configurable(self):
        m = metrics(semantic=0.5, lexical=0.5, length=0.5, style=0.5)
        result = count_votes(m, TECH_PRESET.thresholds, ConvergenceConfig(votes_required=1))
        assert result.votes == 1
        assert result.converged


class TestComputeMetrics:
    """Test the comparison of consecutive snapshots."""

    def test_uses_oracle_value(self):
        oracle = FixedOracle(0.99)
        m = compute_metrics(make_snapshot(1, TEXT), make_snapshot(2, TEXT + " "), oracle, timeout=3.0)
        assert m.semantic == 0.99
        assert not m.semantic_degraded
        assert m.lexical == 1.0
        assert m.length_delta == pytest.approx(1 / len(TEXT))
        assert m.score_delta == 0.0
        assert oracle.calls == [(TEXT, TEXT + " ", 3.0)]

    def test_oracle_failure_degrades_to_fallback(self):
        prev = make_snapshot(1, TEXT)
        curr = make_snapshot(2, "A short different sentence.")
        m = compute_metrics(prev, curr, FailingOracle())
        assert m.semantic_degraded
        assert m.semantic == pytest.approx(1.0 - lexical_similarity(prev.text, curr.text))
