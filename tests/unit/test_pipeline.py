"""Unit tests for the optimization run loop."""

import pytest

from tfm_arbiter.config import TECH_PRESET
from tfm_arbiter.engine import LLMIterationEngine
from tfm_arbiter.errors import ArbiterInputError
from tfm_arbiter.models import ArbiterAction, Operator
from tfm_arbiter.pipeline import mode_free_metrics, run_optimization
from tfm_arbiter.utils.text_processing import estimate_tokens
from tests.mocks.mock_llm_provider import MockLLMProvider
from tests.mocks.scripted import FAILING_SCORES, PASSING_SCORES, FixedOracle, ScriptedEngine

INPUT = "Write a short note about the river."
TEXT = "The quick brown fox jumps over the lazy dog near the quiet river bank at dawn."
OTHER = "Quarterly budget planning memo for the finance team."
SCORES_JSON = '{"E": 0.8, "F": 0.9, "M": 0.85, "N": 0.9, "B": 0.1}'


class TestRunOptimization:
    """Test the expand/compress loop end to end with scripted steps."""

    def test_runs_until_accepted(self):
        engine = ScriptedEngine([(TEXT, PASSING_SCORES), (TEXT + " ", PASSING_SCORES)])
        config = TECH_PRESET.with_overrides(convergence={"patience": 1})

        result = run_optimization(INPUT, engine, FixedOracle(0.99), config)

        assert result.action is ArbiterAction.STOP_ACCEPT
        assert result.converged
        assert result.final_text == TEXT + " "
        assert result.iterations == 2
        assert result.accepted_iteration == 2
        assert result.token_history == [
            estimate_tokens(INPUT),
            estimate_tokens(TEXT),
            estimate_tokens(TEXT + " "),
        ]
        assert not result.used_input_fallback
        assert len(result.decisions) == 2
        assert result.summary().startswith("Converged after 2 iterations")

    def test_operators_alternate_from_expand(self):
        engine = ScriptedEngine([(TEXT, PASSING_SCORES), (OTHER, PASSING_SCORES), (TEXT, PASSING_SCORES)])
        config = TECH_PRESET.with_overrides(budget={"max_iterations": 3})

        run_optimization(INPUT, engine, FixedOracle(0.5), config)

        assert [call[1] for call in engine.calls] == [Operator.EXPAND, Operator.COMPRESS, Operator.EXPAND]
        assert [call[0] for call in engine.calls] == [INPUT, TEXT, OTHER]

    def test_rollback_resumes_from_best(self):
        engine = ScriptedEngine([
            (TEXT, PASSING_SCORES),
            (OTHER, FAILING_SCORES),
            (OTHER + " again", PASSING_SCORES),
        ])
        config = TECH_PRESET.with_overrides(budget={"max_iterations": 3})

        result = run_optimization(INPUT, engine, FixedOracle(0.5), config)

        assert result.decisions[1].action is ArbiterAction.ROLLBACK
        assert engine.calls[2][0] == TEXT
        assert result.action is ArbiterAction.STOP_BEST
        assert result.final_text == TEXT
        assert not result.converged
        assert result.accepted_iteration is None

    def test_no_passing_version_keeps_input(self):
        engine = ScriptedEngine([(TEXT, FAILING_SCORES), (OTHER, FAILING_SCORES)])
        config = TECH_PRESET.with_overrides(budget={"max_iterations": 2})

        result = run_optimization(INPUT, engine, FixedOracle(0.5), config)

        assert result.final_text == INPUT
        assert result.used_input_fallback
        assert "original text kept" in result.summary()
        assert result.savings.percentage_saved == 0.0

    def test_loop_bounded_by_iteration_budget(self):
        engine = ScriptedEngine([(TEXT, PASSING_SCORES), (OTHER, PASSING_SCORES)])
        config = TECH_PRESET.with_overrides(budget={"max_iterations": 4})

        result = run_optimization(INPUT, engine, FixedOracle(0.5), config)

        assert len(engine.calls) == 4
        assert result.iterations == 4
        assert result.action is ArbiterAction.STOP_BEST

    def test_progress_callback(self):
        seen = []
        engine = ScriptedEngine([(TEXT, PASSING_SCORES), (TEXT + " ", PASSING_SCORES)])
        config = TECH_PRESET.with_overrides(convergence={"patience": 1})

        run_optimization(
            INPUT, engine, FixedOracle(0.99), config,
            progress_callback=lambda i, d: seen.append((i, d.action)),
        )

        assert seen == [(1, ArbiterAction.CONTINUE), (2, ArbiterAction.STOP_ACCEPT)]

    @pytest.mark.parametrize("text", ["", "   \n"])
    def test_blank_input_rejected(self, text):
        with pytest.raises(ArbiterInputError):
            run_optimization(text, ScriptedEngine([]), FixedOracle(0.5), TECH_PRESET)


class TestModeFreeMetrics:
    """Test quality-per-token reporting."""

    def test_compression_with_quality_gain(self):
        m = mode_free_metrics(100, 80, 0.5, judge_votes=[1.0, 0.0])
        assert m.delta_t == pytest.approx(-0.2)
        assert m.compactness_percent == pytest.approx(20.0)
        assert m.quality_gain_percent == pytest.approx(50.0)
        assert m.rgi == pytest.approx(2.5)
        assert m.efficiency == pytest.approx(0.54)
        assert m.judge_votes == [1.0, 0.0]

    def test_unchanged_size_does_not_divide_by_zero(self):
        m = mode_free_metrics(100, 100, 0.1)
        assert m.delta_t == 0.0
        assert m.rgi > 0

    def test_zero_initial_tokens(self):
        m = mode_free_metrics(0, 10, 0.0)
        assert m.delta_t == pytest.approx(10.0)


class TestPairwiseJudgement:
    """Test the final OLD-vs-NEW comparison attached to each run."""

    def test_votes_feed_mode_free_metrics(self):
        engine = ScriptedEngine([(TEXT, PASSING_SCORES), (TEXT + " ", PASSING_SCORES)], votes=[1.0, 1.0, 0.0, 0.0])
        config = TECH_PRESET.with_overrides(convergence={"patience": 1})

        result = run_optimization(INPUT, engine, FixedOracle(0.99), config)

        assert engine.comparisons == [(INPUT, TEXT + " ")]
        assert result.mode_free.delta_q == pytest.approx(0.5)
        assert result.mode_free.judge_votes == [1.0, 1.0, 0.0, 0.0]
        expected = mode_free_metrics(estimate_tokens(INPUT), estimate_tokens(TEXT + " "), 0.5)
        assert result.mode_free.delta_t == expected.delta_t
        assert result.mode_free.efficiency == expected.efficiency

    def test_engine_without_judge_reports_none(self):
        engine = ScriptedEngine([(TEXT, PASSING_SCORES), (TEXT + " ", PASSING_SCORES)])
        config = TECH_PRESET.with_overrides(convergence={"patience": 1})
        result = run_optimization(INPUT, engine, FixedOracle(0.99), config)
        assert result.mode_free is None

    def test_llm_engine_end_to_end(self):
        provider = MockLLMProvider(responses=[
            TEXT, SCORES_JSON,
            TEXT, SCORES_JSON,
            '{"votes": [1, 1, 0, 0]}',
        ])
        config = TECH_PRESET.with_overrides(convergence={"patience": 1})

        result = run_optimization(INPUT, LLMIterationEngine(provider), FixedOracle(0.99), config)

        assert result.action is ArbiterAction.STOP_ACCEPT
        assert result.mode_free.delta_q == pytest.approx(0.5)
        assert "OLD:\n" + INPUT in provider.call_history[-1]["user_prompt"]

    def test_failed_comparison_gives_neutral_votes(self):
        provider = MockLLMProvider(responses=[
            TEXT, SCORES_JSON,
            TEXT, SCORES_JSON,
            "I cannot compare these.",
        ])
        config = TECH_PRESET.with_overrides(convergence={"patience": 1})

        result = run_optimization(INPUT, LLMIterationEngine(provider), FixedOracle(0.99), config)

        assert result.final_text == TEXT
        assert result.mode_free.judge_votes == [0.0, 0.0, 0.0, 0.0]
        assert result.mode_free.delta_q == 0.0
