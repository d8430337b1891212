import pytest

from btc_signal_engine.category_analyzers import MA_CROSS, MACD, MVRV, RSI
from btc_signal_engine.metrics import MetricSignal
from btc_signal_engine.rules import score_category, score_signals


def test_missing_metrics_are_left_out_of_the_average() -> None:
    result = score_category("Technical", [(RSI, None), (MACD, "bullish")])
    assert result.score == 25
    assert [f.name for f in result.factors] == ["MACD Bullish"]


def test_present_metric_without_a_match_still_counts() -> None:
    result = score_category("Technical", [(MACD, "neutral"), (MA_CROSS, "bullish")])
    assert result.score == 10
    assert len(result.factors) == 1


def test_first_matching_rule_wins() -> None:
    delta, factor = MVRV.evaluate(4.0, "On-Chain")
    assert delta == -40
    assert factor is not None
    assert factor.name == "MVRV Extreme"
    assert factor.value == "4.00"
    assert factor.explanation == "MVRV at 4.00 signals extreme overvaluation"


def test_no_readings_scores_zero() -> None:
    result = score_category("Sentiment", [])
    assert result.score == 0
    assert result.factors == []


def test_score_signals_empty_is_neutral() -> None:
    result = score_signals([])
    assert (result.score, result.bias, result.confidence) == (0.0, "neutral", 0.0)


def test_score_signals_counts_neutral_weight_in_total() -> None:
    result = score_signals(
        [
            MetricSignal("bullish", 0.6, "a", "a"),
            MetricSignal("bearish", 0.2, "b", "b"),
            MetricSignal("neutral", 0.2, "c", "c"),
        ]
    )
    assert result.score == pytest.approx(0.4)
    assert result.bias == "bullish"
    assert result.confidence == pytest.approx(0.6)


def test_bias_uses_unrounded_score() -> None:
    result = score_signals([MetricSignal("bullish", 0.577, "a", "a"), MetricSignal("bearish", 0.423, "b", "b")])
    assert result.score == 0.15
    assert result.bias == "bullish"
