from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from .metrics import BiasScore, MetricSignal
from .types import Bias, Factor


@dataclass(frozen=True)
class FactorTemplate:
    name: str
    signal: Bias
    weight: float
    explanation: str

    def render(self, category: str, value: str) -> Factor:
        return Factor(
            name=self.name,
            category=category,
            value=value,
            signal=self.signal,
            weight=self.weight,
            explanation=self.explanation.format(value=value),
        )


@dataclass(frozen=True)
class ScoreRule:
    """One threshold of a metric ladder.

    `fmt` renders the raw metric into the factor's display value; the template's
    explanation may reference it as `{value}`.
    """

    predicate: Callable[[Any], bool]
    score_delta: float
    factor: FactorTemplate
    fmt: Callable[[Any], str] = str


@dataclass(frozen=True)
class MetricRules:
    metric: str
    rules: tuple[ScoreRule, ...]

    def evaluate(self, value: Any, category: str) -> tuple[float, Factor | None]:
        # first matching rule wins
        for rule in self.rules:
            if rule.predicate(value):
                return rule.score_delta, rule.factor.render(category, rule.fmt(value))
        return 0.0, None


@dataclass(frozen=True)
class CategoryScore:
    score: float
    factors: list[Factor] = field(default_factory=list)


def score_category(category: str, readings: Sequence[tuple[MetricRules, Any]]) -> CategoryScore:
    """Average the score deltas of the metrics that are present.

    A metric whose value is None is skipped entirely; a present metric that
    matches no rule still counts towards the average with a delta of 0.
    """
    total = 0.0
    count = 0
    factors: list[Factor] = []
    for rules, value in readings:
        if value is None:
            continue
        count += 1
        delta, factor = rules.evaluate(value, category)
        total += delta
        if factor is not None:
            factors.append(factor)
    return CategoryScore(score=total / count if count else 0.0, factors=factors)


def score_signals(signals: Sequence[MetricSignal], bias_threshold: float = 0.15) -> BiasScore:
    """Net bullish-minus-bearish weight over the total weight of all signals."""
    if not signals:
        return BiasScore(score=0.0, bias="neutral", confidence=0.0)

    bullish = sum(s.weight for s in signals if s.signal == "bullish")
    bearish = sum(s.weight for s in signals if s.signal == "bearish")
    total = sum(s.weight for s in signals)
    if total <= 0:
        return BiasScore(score=0.0, bias="neutral", confidence=0.0)

    score = (bullish - bearish) / total
    bias: Bias = "neutral"
    if score > bias_threshold:
        bias = "bullish"
    elif score < -bias_threshold:
        bias = "bearish"
    return BiasScore(score=round(score, 2), bias=bias, confidence=max(bullish, bearish) / total)
