from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from btc_signal_engine.codec import to_dict
from btc_signal_engine.learner import (
    HistoricalLearner,
    LearningData,
    SignalOutcome,
    evaluate_outcome,
)
from btc_signal_engine.store import InMemoryStore, StoreError, VersionConflictError
from btc_signal_engine.types import PatternMatch


class Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, hours: float) -> None:
        self.now += timedelta(hours=hours)


class FailingPutStore(InMemoryStore):
    def put(self, key: str, payload: Any, version: str | None) -> str:
        raise StoreError("disk full")


class FailingGetStore(InMemoryStore):
    def get(self, key: str):
        raise StoreError("unreachable")


def _match(name: str = "V-Recovery After Flush", timeframe: str = "24h") -> PatternMatch:
    return PatternMatch(name, 0.7, "bullish", timeframe, "", "", 0.72)


def test_missing_document_initialises_empty() -> None:
    learner = HistoricalLearner(InMemoryStore())
    data = learner.load()
    assert data.signals == []
    assert learner.version is None
    assert learner.get_stats()["total_signals"] == 0


def test_failed_get_propagates() -> None:
    with pytest.raises(StoreError):
        HistoricalLearner(FailingGetStore()).load()


def test_logged_signal_reloads_ungraded() -> None:
    store = InMemoryStore()
    clock = Clock()
    signal_id = HistoricalLearner(store, clock=clock).log_signal(60000, "up", 0.7, [_match()], target24h=61000)

    reloaded = HistoricalLearner(store).load()
    (signal,) = reloaded.signals
    assert signal.id == signal_id
    assert signal.timestamp == int(clock.now.timestamp() * 1000)
    assert signal.patterns == ["V-Recovery After Flush"]
    assert signal.target24h == 61000
    assert (signal.outcome24h, signal.outcome48h, signal.outcome72h) == (None, None, None)
    assert signal.checked_at is None


def test_history_is_capped_oldest_first() -> None:
    store = InMemoryStore()
    seeded = LearningData(
        last_updated="2026-03-01T00:00:00+00:00",
        signals=[SignalOutcome(id=f"sig-{i}", timestamp=i, price_at_signal=100, direction="up", confidence=0.6) for i in range(500)],
    )
    store.put("signal-history", to_dict(seeded), None)

    learner = HistoricalLearner(store, clock=Clock())
    learner.log_signal(100, "down", 0.6)

    signals = HistoricalLearner(store).load().signals
    assert len(signals) == 500
    assert signals[0].id == "sig-1"
    assert signals[-1].direction == "down"


def test_outcomes_graded_per_horizon() -> None:
    clock = Clock()
    learner = HistoricalLearner(InMemoryStore(), clock=clock)
    learner.log_signal(100, "up", 0.7)

    assert learner.check_outcomes(101) == 0

    clock.advance(24)
    assert learner.check_outcomes(101) == 1
    signal = learner.data.signals[0]
    assert signal.outcome24h == "correct"
    assert signal.price24h == 101
    assert signal.outcome48h is None

    clock.advance(48)
    assert learner.check_outcomes(99) == 2
    signal = learner.data.signals[0]
    assert signal.outcome48h == "incorrect"
    assert signal.outcome72h == "incorrect"
    assert signal.checked_at == int(clock.now.timestamp() * 1000)
    assert learner.check_outcomes(99) == 0


def test_evaluate_outcome() -> None:
    assert evaluate_outcome("up", 100, 100.4) == "neutral"
    assert evaluate_outcome("up", 100, 99) == "incorrect"
    assert evaluate_outcome("down", 100, 99) == "correct"
    assert evaluate_outcome("sideways", 100, 101.5) == "correct"
    assert evaluate_outcome("mixed", 100, 103) == "incorrect"


def _graded_learner(count: int) -> HistoricalLearner:
    clock = Clock()
    learner = HistoricalLearner(InMemoryStore(), clock=clock)
    for _ in range(count):
        learner.log_signal(100, "up", 0.6, ["V-Recovery After Flush"])
    clock.advance(24)
    learner.check_outcomes(102)
    return learner


def test_multiplier_needs_minimum_samples() -> None:
    learner = _graded_learner(4)
    assert learner.get_pattern_accuracy_multiplier("V-Recovery After Flush", "24h") == 1.0


def test_multiplier_and_adjustment_from_stats() -> None:
    learner = _graded_learner(5)

    assert learner.get_pattern_accuracy_multiplier("V-Recovery After Flush", "24h") == 2.0
    assert learner.get_pattern_accuracy_multiplier("V-Recovery After Flush", "72h") == 1.0
    assert learner.get_pattern_accuracy_multiplier("Unknown", "24h") == 1.0

    adjusted = learner.adjust_pattern_confidence(_match())
    assert adjusted.confidence == 0.95
    assert adjusted.historical_accuracy == 0.5

    stats = learner.get_stats()
    assert stats["pattern_count"] == 1
    assert stats["accuracy24h"] == 1.0
    assert stats["current_streak"] == 5
    assert stats["best_streak"] == 5



def test_neutral_outcomes_do_not_dilute_pattern_accuracy() -> None:
    clock = Clock()
    learner = HistoricalLearner(InMemoryStore(), clock=clock)
    for _ in range(5):
        learner.log_signal(100, "up", 0.6, ["V-Recovery After Flush"])
    clock.advance(24)
    learner.check_outcomes(102)

    for _ in range(5):
        learner.log_signal(102, "up", 0.6, ["V-Recovery After Flush"])
    clock.advance(24)
    # +0.2% on the new signals is neutral
    learner.check_outcomes(102.2)

    (stats,) = learner.data.pattern_stats
    assert stats.total_signals == 10
    assert stats.graded24h == 5
    assert stats.accuracy24h == 1.0
    assert stats.graded48h == 5
    assert stats.graded72h == 0
    assert stats.accuracy72h == 0.5
    assert learner.get_pattern_accuracy_multiplier("V-Recovery After Flush", "24h") == 2.0
    assert learner.get_pattern_accuracy_multiplier("V-Recovery After Flush", "72h") == 1.0

def test_returns_are_directional() -> None:
    clock = Clock()
    learner = HistoricalLearner(InMemoryStore(), clock=clock)
    learner.log_signal(100, "down", 0.6, ["Dead Cat Bounce"])
    clock.advance(24)
    learner.check_outcomes(98)

    (stats,) = learner.data.pattern_stats
    assert stats.avg_return24h == pytest.approx(2.0)
    assert stats.accuracy24h == 1.0


def test_unloaded_learner_does_not_adjust() -> None:
    learner = HistoricalLearner(InMemoryStore())
    match = _match()
    assert learner.adjust_pattern_confidence(match) is match
    assert learner.get_pattern_accuracy_multiplier(match.name, "24h") == 1.0


def test_failed_save_keeps_memory_state() -> None:
    learner = HistoricalLearner(FailingPutStore())
    learner.load()

    with pytest.raises(StoreError):
        learner.log_signal(100, "up", 0.7)
    assert learner.data.signals == []
    assert learner.version is None


def test_concurrent_writers_conflict_until_reload() -> None:
    store = InMemoryStore()
    first = HistoricalLearner(store)
    second = HistoricalLearner(store)
    first.load()
    second.load()

    first.log_signal(100, "up", 0.7)
    with pytest.raises(VersionConflictError):
        second.log_signal(101, "down", 0.6)
    assert second.data.signals == []

    second.load(force=True)
    second.log_signal(101, "down", 0.6)
    assert len(HistoricalLearner(store).load().signals) == 2


def test_insights() -> None:
    assert HistoricalLearner(InMemoryStore()).get_insights().recent_performance == "No data yet"

    learner = _graded_learner(3)
    insights = learner.get_insights()
    assert [p.pattern for p in insights.best_patterns] == ["V-Recovery After Flush"]
    assert insights.streak == "3 correct in a row"
    assert insights.recent_performance == "Fair - around 50%"


def test_document_missing_required_fields_raises_store_error() -> None:
    store = InMemoryStore()
    store.put("signal-history", {"last_updated": "2026-03-01T00:00:00+00:00", "signals": [{"timestamp": 1}]}, None)

    learner = HistoricalLearner(store)
    with pytest.raises(StoreError):
        learner.load()
    assert not learner.loaded


def test_document_with_bad_values_raises_store_error() -> None:
    store = InMemoryStore()
    bad_signal = {
        "id": "a",
        "timestamp": "yesterday",
        "price_at_signal": "abc",
        "direction": "sideways-ish",
        "confidence": 0.6,
    }
    store.put("signal-history", {"last_updated": "2026-03-01T00:00:00+00:00", "signals": [bad_signal]}, None)

    with pytest.raises(StoreError):
        HistoricalLearner(store).load()
