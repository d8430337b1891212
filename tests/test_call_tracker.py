from datetime import datetime, timedelta, timezone

import pytest

from btc_signal_engine.call_tracker import HistoricalCall, HistoricalTracker
from btc_signal_engine.store import InMemoryStore, StoreError
from btc_signal_engine.types import Prediction


class Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


def _call(clock: Clock, direction: str, entry: float, target: float, hours_ago: float = 0) -> HistoricalCall:
    return HistoricalCall(
        date=(clock.now - timedelta(hours=hours_ago)).isoformat(),
        direction=direction,
        confidence=0.7,
        entry_price=entry,
        target_price=target,
    )


def test_create_call_from_prediction() -> None:
    clock = Clock()
    prediction = Prediction(
        direction="up",
        confidence=0.72,
        target_price=104.0,
        stop_loss=98.0,
        predicted_price_24h=101.0,
        reasoning=[],
    )
    call = HistoricalTracker(InMemoryStore(), clock=clock).create_call_from_prediction(prediction, 100.0)
    assert call.date == clock.now.isoformat()
    assert call.actual_result == "pending"
    assert call.pnl_percent is None
    assert call.target_price == 104.0


def test_add_call_drops_calls_past_retention() -> None:
    clock = Clock()
    store = InMemoryStore()
    tracker = HistoricalTracker(store, clock=clock)
    tracker.add_call(_call(clock, "up", 100, 104, hours_ago=31 * 24))
    calls = tracker.add_call(_call(clock, "down", 100, 96))

    assert [c.direction for c in calls] == ["down"]
    assert len(HistoricalTracker(store, clock=clock).load()) == 1


def test_up_call_wins_at_target_and_loses_at_stop() -> None:
    clock = Clock()
    tracker = HistoricalTracker(InMemoryStore(), clock=clock)
    tracker.add_call(_call(clock, "up", 100, 104))

    (call,) = tracker.update_pending_calls(105)
    assert call.actual_result == "win"
    assert call.pnl_percent == pytest.approx(4.0)

    tracker.add_call(_call(clock, "up", 100, 104))
    calls = tracker.update_pending_calls(97.9)
    assert calls[-1].actual_result == "loss"
    assert calls[-1].pnl_percent == -2


def test_down_call_mirrors() -> None:
    clock = Clock()
    tracker = HistoricalTracker(InMemoryStore(), clock=clock)
    tracker.add_call(_call(clock, "down", 100, 95))

    (call,) = tracker.update_pending_calls(94)
    assert call.actual_result == "win"
    assert call.pnl_percent == pytest.approx(5.0)


def test_stale_calls_resolve_by_sign() -> None:
    clock = Clock()
    tracker = HistoricalTracker(InMemoryStore(), clock=clock)
    tracker.add_call(_call(clock, "up", 100, 110, hours_ago=25))
    tracker.add_call(_call(clock, "sideways", 100, 100, hours_ago=25))

    up, sideways = tracker.update_pending_calls(101.234)
    assert up.actual_result == "win"
    assert up.pnl_percent == 1.23
    assert sideways.actual_result == "loss"
    assert sideways.pnl_percent == -1.23


def test_no_resolution_skips_the_write() -> None:
    clock = Clock()
    tracker = HistoricalTracker(InMemoryStore(), clock=clock)
    tracker.add_call(_call(clock, "up", 100, 104))
    version = tracker.version

    (call,) = tracker.update_pending_calls(101)
    assert call.actual_result == "pending"
    assert tracker.version == version


def test_recent_calls_window() -> None:
    clock = Clock()
    tracker = HistoricalTracker(InMemoryStore(), clock=clock)
    tracker.add_call(_call(clock, "up", 100, 104, hours_ago=10 * 24))
    tracker.add_call(_call(clock, "down", 100, 96, hours_ago=2 * 24))

    assert [c.direction for c in tracker.get_recent_calls(7)] == ["down"]
    assert len(tracker.get_recent_calls()) == 2


def test_sideways_prediction_targets_entry() -> None:
    prediction = Prediction(direction="sideways", confidence=0.8, target_price=None, stop_loss=None, predicted_price_24h=100.0)
    call = HistoricalTracker(InMemoryStore(), clock=Clock()).create_call_from_prediction(prediction, 100.0)
    assert call.target_price == 100.0


def test_ledger_that_is_not_a_list_raises_store_error() -> None:
    store = InMemoryStore()
    store.put("historical-calls", {"date": "2026-03-01T00:00:00+00:00"}, None)
    with pytest.raises(StoreError):
        HistoricalTracker(store).load()


def test_ledger_with_bad_values_raises_store_error() -> None:
    store = InMemoryStore()
    bad_call = {
        "date": "2026-03-01T00:00:00+00:00",
        "direction": "sideways-ish",
        "confidence": 0.7,
        "entry_price": "abc",
        "target_price": 104,
    }
    store.put("historical-calls", [bad_call], None)
    with pytest.raises(StoreError):
        HistoricalTracker(store).load()
