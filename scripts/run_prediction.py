#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

from btc_signal_engine.call_tracker import HistoricalTracker
from btc_signal_engine.codec import from_dict, to_dict
from btc_signal_engine.learner import HistoricalLearner
from btc_signal_engine.logging_config import configure_logging
from btc_signal_engine.market_context import build_market_context
from btc_signal_engine.metrics import CohortMetrics, DerivativesData, ExchangeFlowData, OnChainMetrics, PriceModels
from btc_signal_engine.pattern_recognizer import PatternRecognizer
from btc_signal_engine.prediction_engine import PredictionEngine
from btc_signal_engine.price_data import OhlcvRepository, PricePointRepository
from btc_signal_engine.settings import settings
from btc_signal_engine.store import build_store
from btc_signal_engine.types import TechnicalIndicators


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the prediction engine over local market data")
    p.add_argument("--ohlcv-csv", default="data/btc_ohlcv.csv")
    p.add_argument("--indicators-json", default="data/indicators.json")
    p.add_argument("--context-csv", help="hourly timestamp,price,oi,funding,volume points for pattern matching")
    p.add_argument("--derivatives-json")
    p.add_argument("--onchain-json")
    p.add_argument("--exchange-flow-json")
    p.add_argument("--price-models-json")
    p.add_argument("--cohorts-json")
    p.add_argument("--no-learning", action="store_true", help="skip learner feedback and call logging")
    return p.parse_args()


def _read_json(path: str) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _optional(cls: type, path: str | None) -> Any:
    return from_dict(cls, _read_json(path)) if path else None


def main() -> None:
    args = parse_args()
    configure_logging(settings.log_level)

    ohlcv = OhlcvRepository(args.ohlcv_csv).load()
    indicators = from_dict(TechnicalIndicators, _read_json(args.indicators_json))

    learner = None
    tracker = None
    if not args.no_learning:
        store = build_store(settings)
        learner = HistoricalLearner(
            store,
            key=settings.history_key,
            max_signals=settings.max_signal_history,
            min_samples=settings.min_pattern_samples,
        )
        learner.load()
        tracker = HistoricalTracker(store, key=settings.calls_key, retention_days=settings.call_retention_days)

    patterns = []
    if args.context_csv:
        ctx = build_market_context(PricePointRepository(args.context_csv).load(), current_price=ohlcv[-1].close)
        patterns = PatternRecognizer(learner=learner).recognize_patterns(ctx)

    prediction = PredictionEngine().predict(
        ohlcv,
        indicators,
        patterns=patterns,
        derivatives=_optional(DerivativesData, args.derivatives_json),
        on_chain=_optional(OnChainMetrics, args.onchain_json),
        exchange_flow=_optional(ExchangeFlowData, args.exchange_flow_json),
        price_models=_optional(PriceModels, args.price_models_json),
        cohorts=_optional(CohortMetrics, args.cohorts_json),
    )

    signal_id = None
    if learner is not None and tracker is not None:
        price = ohlcv[-1].close
        signal_id = learner.log_signal(
            price,
            prediction.direction,
            prediction.confidence,
            patterns,
            target24h=prediction.predicted_price_24h,
            target72h=prediction.target_price,
        )
        tracker.add_call(tracker.create_call_from_prediction(prediction, price))

    print(json.dumps({"signal_id": signal_id, "patterns": [to_dict(p) for p in patterns], **to_dict(prediction)}))


if __name__ == "__main__":
    main()
