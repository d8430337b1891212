from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Literal

import structlog

from .category_analyzers import (
    analyze_derivatives,
    analyze_onchain,
    analyze_price_models,
    analyze_sentiment,
    analyze_technical,
)
from .metrics import SignalInput
from .types import Factor

log = structlog.get_logger(__name__)

Overall = Literal["BULLISH", "BEARISH", "NEUTRAL"]

CATEGORY_WEIGHTS: dict[str, int] = {
    "technical": 25,
    "onchain": 30,
    "derivatives": 20,
    "price_models": 15,
    "sentiment": 10,
}

CATEGORY_LABELS: dict[str, str] = {
    "technical": "Technical",
    "onchain": "On-Chain",
    "derivatives": "Derivatives",
    "price_models": "Price Models",
    "sentiment": "Sentiment",
}

TOP_FACTORS = 5


@dataclass(frozen=True)
class CategoryBreakdown:
    score: float
    weight: int
    signal: str


@dataclass(frozen=True)
class AggregatedSignal:
    overall: Overall
    confidence: float
    score: float
    breakdown: dict[str, CategoryBreakdown]
    bullish_factors: list[Factor] = field(default_factory=list)
    bearish_factors: list[Factor] = field(default_factory=list)
    neutral_factors: list[Factor] = field(default_factory=list)
    timestamp: int = 0


def signal_label(score: float) -> str:
    if score > 20:
        return "Bullish"
    if score < -20:
        return "Bearish"
    return "Neutral"


def _now_ms() -> int:
    return int(time.time() * 1000)


class SignalAggregator:
    """Combines the five category scores into one weighted market bias."""

    def __init__(self, clock: Callable[[], int] = _now_ms) -> None:
        if sum(CATEGORY_WEIGHTS.values()) != 100:
            raise ValueError("Category weights must sum to 100")
        self.clock = clock

    def aggregate(self, data: SignalInput) -> AggregatedSignal:
        results = {
            "technical": analyze_technical(data.technical),
            "onchain": analyze_onchain(data.onchain),
            "derivatives": analyze_derivatives(data.derivatives),
            "price_models": analyze_price_models(data.price_models),
            "sentiment": analyze_sentiment(data.sentiment),
        }

        factors: list[Factor] = []
        for result in results.values():
            factors.extend(result.factors)

        score = sum(results[name].score * weight for name, weight in CATEGORY_WEIGHTS.items()) / 100

        overall: Overall = "NEUTRAL"
        if score > 20:
            overall = "BULLISH"
        elif score < -20:
            overall = "BEARISH"

        # sorted() is stable, so equal weights keep insertion order
        bullish = sorted((f for f in factors if f.signal == "bullish"), key=lambda f: f.weight, reverse=True)
        bearish = sorted((f for f in factors if f.signal == "bearish"), key=lambda f: f.weight, reverse=True)

        breakdown = {
            name: CategoryBreakdown(score=results[name].score, weight=weight, signal=signal_label(results[name].score))
            for name, weight in CATEGORY_WEIGHTS.items()
        }

        log.debug("signal_aggregator.aggregated", overall=overall, score=round(score, 2), factor_count=len(factors))
        return AggregatedSignal(
            overall=overall,
            confidence=min(100.0, abs(score)),
            score=score,
            breakdown=breakdown,
            bullish_factors=bullish[:TOP_FACTORS],
            bearish_factors=bearish[:TOP_FACTORS],
            neutral_factors=[f for f in factors if f.signal == "neutral"],
            timestamp=self.clock(),
        )

    @staticmethod
    def format_signal(signal: AggregatedSignal) -> str:
        lines = [
            f"Overall Signal: {signal.overall} ({signal.confidence:.0f}% confidence)",
            f"Score: {signal.score:.1f}",
            "",
            "Breakdown:",
        ]
        for name, label in CATEGORY_LABELS.items():
            part = signal.breakdown[name]
            lines.append(f"  {label} ({part.weight}%): {part.signal}")
        return "\n".join(lines)
