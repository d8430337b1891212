import pytest
from pydantic import ValidationError

from btc_signal_engine.codec import from_dict, to_dict
from btc_signal_engine.metrics import DerivativesData, FundingRate, SignalInput, SqueezeAlert
from btc_signal_engine.types import MacdValue, TechnicalIndicators


def test_nested_records_and_unknown_keys() -> None:
    indicators = from_dict(
        TechnicalIndicators,
        {"rsi": 41, "macd": {"macd": 1, "signal": 0.5, "histogram": 0.5}, "stochastic": 80},
    )
    assert indicators.rsi == 41.0
    assert isinstance(indicators.rsi, float)
    assert indicators.macd == MacdValue(1.0, 0.5, 0.5)
    assert indicators.bollinger_bands is None


def test_lists_of_records() -> None:
    data = DerivativesData(FundingRate(0.0001), None, SqueezeAlert("long_squeeze", "low", ["High funding"]))
    assert from_dict(DerivativesData, to_dict(data)) == data


def test_signal_input_defaults_missing_categories() -> None:
    data = SignalInput.from_dict({"technical": {"rsi": 25}})
    assert data.technical.rsi == 25
    assert data.onchain.mvrv is None


def test_rejects_non_object() -> None:
    with pytest.raises(ValueError):
        from_dict(TechnicalIndicators, [1, 2])


def test_missing_required_field_is_rejected() -> None:
    with pytest.raises(ValidationError):
        from_dict(MacdValue, {"macd": 1})


def test_unknown_literal_is_rejected() -> None:
    with pytest.raises(ValidationError):
        from_dict(SqueezeAlert, {"type": "sideways_squeeze"})


def test_dump_is_json_ready() -> None:
    alert = SqueezeAlert("long_squeeze", "low", ["High funding"])
    assert to_dict(alert) == {"type": "long_squeeze", "probability": "low", "reasoning": ["High funding"]}
