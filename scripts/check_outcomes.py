#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json

from btc_signal_engine.call_tracker import HistoricalTracker
from btc_signal_engine.codec import to_dict
from btc_signal_engine.learner import HistoricalLearner
from btc_signal_engine.logging_config import configure_logging
from btc_signal_engine.settings import settings
from btc_signal_engine.store import build_store


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Grade logged signals and pending calls at the current price")
    p.add_argument("--price", type=float, required=True)
    return p.parse_args()


def main() -> None:
    args = parse_args()
    configure_logging(settings.log_level)

    store = build_store(settings)
    learner = HistoricalLearner(
        store,
        key=settings.history_key,
        max_signals=settings.max_signal_history,
        min_samples=settings.min_pattern_samples,
    )
    tracker = HistoricalTracker(store, key=settings.calls_key, retention_days=settings.call_retention_days)

    learner.load()
    graded = learner.check_outcomes(args.price)
    calls = tracker.update_pending_calls(args.price)

    print(
        json.dumps(
            {
                "graded": graded,
                "stats": learner.get_stats(),
                "insights": to_dict(learner.get_insights()),
                "pending_calls": sum(1 for c in calls if c.actual_result == "pending"),
                "recent_calls": [to_dict(c) for c in tracker.get_recent_calls(7)],
            }
        )
    )


if __name__ == "__main__":
    main()
