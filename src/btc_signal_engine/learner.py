from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Literal, Sequence

import structlog
from pydantic import ValidationError

from .codec import from_dict, to_dict
from .store import DocumentStore, StoreError
from .types import Direction, PatternMatch, Timeframe

log = structlog.get_logger(__name__)

Outcome = Literal["correct", "incorrect", "neutral"]

HOUR_MS = 60 * 60 * 1000
HORIZONS: tuple[tuple[Timeframe, int], ...] = (("24h", 24), ("48h", 48), ("72h", 72))
MOVE_THRESHOLD_PCT = 0.5
RANGE_THRESHOLD_PCT = 2.0
MAX_ADJUSTED_CONFIDENCE = 0.95
INSIGHT_MIN_SIGNALS = 3


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


@dataclass
class SignalOutcome:
    id: str
    timestamp: int
    price_at_signal: float
    direction: Direction
    confidence: float
    patterns: list[str] = field(default_factory=list)
    target24h: float | None = None
    target48h: float | None = None
    target72h: float | None = None
    price24h: float | None = None
    price48h: float | None = None
    price72h: float | None = None
    outcome24h: Outcome | None = None
    outcome48h: Outcome | None = None
    outcome72h: Outcome | None = None
    checked_at: int | None = None


@dataclass
class PatternStats:
    pattern: str
    total_signals: int
    correct24h: int = 0
    correct48h: int = 0
    correct72h: int = 0
    graded24h: int = 0
    graded48h: int = 0
    graded72h: int = 0
    accuracy24h: float = 0.5
    accuracy48h: float = 0.5
    accuracy72h: float = 0.5
    avg_return24h: float = 0.0
    avg_return48h: float = 0.0
    avg_return72h: float = 0.0
    last_updated: int = 0


@dataclass
class OverallStats:
    total_signals: int = 0
    accuracy24h: float = 0.5
    accuracy48h: float = 0.5
    accuracy72h: float = 0.5
    current_streak: int = 0
    best_streak: int = 0
    avg_confidence: float = 0.5


@dataclass
class LearningData:
    last_updated: str
    signals: list[SignalOutcome] = field(default_factory=list)
    pattern_stats: list[PatternStats] = field(default_factory=list)
    overall_stats: OverallStats = field(default_factory=OverallStats)


@dataclass(frozen=True)
class PatternPerformance:
    pattern: str
    accuracy: float
    avg_return: float


@dataclass(frozen=True)
class LearnerInsights:
    best_patterns: list[PatternPerformance]
    worst_patterns: list[PatternPerformance]
    recent_performance: str
    streak: str


def evaluate_outcome(direction: Direction, price_at_signal: float, current_price: float) -> Outcome:
    change = (current_price - price_at_signal) / price_at_signal * 100

    if direction == "up":
        if change > MOVE_THRESHOLD_PCT:
            return "correct"
        if change < -MOVE_THRESHOLD_PCT:
            return "incorrect"
        return "neutral"

    if direction == "down":
        if change < -MOVE_THRESHOLD_PCT:
            return "correct"
        if change > MOVE_THRESHOLD_PCT:
            return "incorrect"
        return "neutral"

    # sideways / mixed: right if price stayed in range
    return "correct" if abs(change) < RANGE_THRESHOLD_PCT else "incorrect"


def _directional_return(signal: SignalOutcome, price: float) -> float:
    ret = (price - signal.price_at_signal) / signal.price_at_signal * 100
    return -ret if signal.direction == "down" else ret


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def recalculate_stats(data: LearningData, now_ms: int) -> None:
    """Rebuild overall and per-pattern stats from every graded signal."""
    checked = [s for s in data.signals if s.outcome24h is not None]
    overall = data.overall_stats

    if checked:
        for label, _ in HORIZONS:
            outcomes = [getattr(s, f"outcome{label}") for s in checked]
            correct = sum(1 for o in outcomes if o == "correct")
            graded = sum(1 for o in outcomes if o is not None and o != "neutral")
            setattr(overall, f"accuracy{label}", correct / graded if graded else 0.5)

        overall.total_signals = len(data.signals)
        overall.avg_confidence = sum(s.confidence for s in checked) / len(checked)

        streak = 0
        for s in reversed(checked):
            if s.outcome24h == "correct":
                streak += 1
            elif s.outcome24h == "incorrect":
                break
        overall.current_streak = streak
        overall.best_streak = max(overall.best_streak, streak)

    grouped: dict[str, list[SignalOutcome]] = {}
    for s in checked:
        for name in s.patterns:
            grouped.setdefault(name, []).append(s)

    stats: list[PatternStats] = []
    for name, signals in grouped.items():
        entry = PatternStats(pattern=name, total_signals=len(signals), last_updated=now_ms)
        for label, _ in HORIZONS:
            outcomes = [getattr(s, f"outcome{label}") for s in signals]
            correct = sum(1 for o in outcomes if o == "correct")
            graded = sum(1 for o in outcomes if o is not None and o != "neutral")
            returns = [
                _directional_return(s, getattr(s, f"price{label}"))
                for s in signals
                if getattr(s, f"price{label}")
            ]
            setattr(entry, f"correct{label}", correct)
            setattr(entry, f"graded{label}", graded)
            setattr(entry, f"accuracy{label}", correct / graded if graded else 0.5)
            setattr(entry, f"avg_return{label}", _mean(returns))
        stats.append(entry)
    data.pattern_stats = stats


class HistoricalLearner:
    """Outcome ledger for logged calls and the pattern accuracy it implies.

    State is loaded explicitly, cached for the life of the instance, and written
    back with the store's version token. Every mutation is applied to a copy and
    only becomes the cached state once the store accepted it.
    """

    def __init__(
        self,
        store: DocumentStore,
        key: str = "signal-history",
        clock: Callable[[], datetime] = utc_now,
        max_signals: int = 500,
        min_samples: int = 5,
    ) -> None:
        self.store = store
        self.key = key
        self.clock = clock
        self.max_signals = max_signals
        self.min_samples = min_samples
        self._data: LearningData | None = None
        self._version: str | None = None

    @property
    def loaded(self) -> bool:
        return self._data is not None

    @property
    def data(self) -> LearningData:
        if self._data is None:
            raise RuntimeError("HistoricalLearner.load() must be called first")
        return self._data

    @property
    def version(self) -> str | None:
        return self._version

    def load(self, force: bool = False) -> LearningData:
        if self._data is not None and not force:
            return self._data

        doc = self.store.get(self.key)
        if doc is None:
            log.warning("historical_learner.initialised_empty", key=self.key)
            self._data = LearningData(last_updated=self.clock().isoformat())
            self._version = None
        else:
            try:
                self._data = from_dict(LearningData, doc.payload)
            except ValidationError as exc:
                raise StoreError(f"Invalid learning data under {self.key}: {exc}") from exc
            self._version = doc.version
            log.info("historical_learner.loaded", key=self.key, signals=len(self._data.signals))
        return self._data

    def _commit(self, working: LearningData) -> None:
        working.last_updated = self.clock().isoformat()
        new_version = self.store.put(self.key, to_dict(working), self._version)
        self._data = working
        self._version = new_version

    def save(self) -> None:
        self._commit(copy.deepcopy(self.load()))

    def log_signal(
        self,
        price: float,
        direction: Direction,
        confidence: float,
        patterns: Sequence[PatternMatch | str] = (),
        target24h: float | None = None,
        target48h: float | None = None,
        target72h: float | None = None,
    ) -> str:
        working = copy.deepcopy(self.load())
        now = _ms(self.clock())
        signal_id = f"{now}-{uuid.uuid4().hex[:6]}"

        working.signals.append(
            SignalOutcome(
                id=signal_id,
                timestamp=now,
                price_at_signal=price,
                direction=direction,
                confidence=confidence,
                patterns=[p if isinstance(p, str) else p.name for p in patterns],
                target24h=target24h,
                target48h=target48h,
                target72h=target72h,
            )
        )
        # oldest first out
        if len(working.signals) > self.max_signals:
            working.signals = working.signals[-self.max_signals :]

        self._commit(working)
        log.info("historical_learner.signal_logged", signal_id=signal_id, direction=direction, price=price)
        return signal_id

    def check_outcomes(self, current_price: float) -> int:
        working = copy.deepcopy(self.load())
        now = _ms(self.clock())
        updated = 0

        for signal in working.signals:
            for label, hours in HORIZONS:
                if getattr(signal, f"outcome{label}") is not None:
                    continue
                if now - signal.timestamp < hours * HOUR_MS:
                    continue
                setattr(signal, f"price{label}", current_price)
                setattr(
                    signal,
                    f"outcome{label}",
                    evaluate_outcome(signal.direction, signal.price_at_signal, current_price),
                )
                if label == "72h":
                    signal.checked_at = now
                updated += 1

        if updated:
            recalculate_stats(working, now)
            self._commit(working)
            log.info("historical_learner.outcomes_graded", updated=updated, price=current_price)
        return updated

    def _pattern_stats(self, pattern: str) -> PatternStats | None:
        if self._data is None:
            return None
        for stats in self._data.pattern_stats:
            if stats.pattern == pattern:
                return stats
        return None

    def get_pattern_accuracy_multiplier(self, pattern: str, timeframe: Timeframe) -> float:
        """0.5 accuracy maps to 1.0x; horizons with few graded outcomes are left unadjusted."""
        stats = self._pattern_stats(pattern)
        if stats is None or getattr(stats, f"graded{timeframe}") < self.min_samples:
            return 1.0
        return getattr(stats, f"accuracy{timeframe}") * 2

    def adjust_pattern_confidence(self, match: PatternMatch) -> PatternMatch:
        if self._data is None:
            return match
        multiplier = self.get_pattern_accuracy_multiplier(match.name, match.timeframe)
        stats = self._pattern_stats(match.name)
        return replace(
            match,
            confidence=min(MAX_ADJUSTED_CONFIDENCE, match.confidence * multiplier),
            historical_accuracy=stats.accuracy72h if stats is not None else match.historical_accuracy,
        )

    def get_insights(self) -> LearnerInsights:
        if self._data is None or not self._data.pattern_stats:
            return LearnerInsights([], [], "No data yet", "No streak")

        ranked = sorted(
            (s for s in self._data.pattern_stats if s.total_signals >= INSIGHT_MIN_SIGNALS),
            key=lambda s: s.accuracy72h,
            reverse=True,
        )
        perf = [PatternPerformance(s.pattern, s.accuracy72h, s.avg_return72h) for s in ranked]

        accuracy = self._data.overall_stats.accuracy72h
        if accuracy >= 0.7:
            recent = "Excellent - 70%+ accuracy"
        elif accuracy >= 0.6:
            recent = "Good - 60%+ accuracy"
        elif accuracy >= 0.5:
            recent = "Fair - around 50%"
        else:
            recent = "Below average - review signals"

        current = self._data.overall_stats.current_streak
        streak = f"{current} correct in a row" if current > 0 else "No active streak"
        return LearnerInsights(
            best_patterns=perf[:3],
            worst_patterns=list(reversed(perf[-3:])),
            recent_performance=recent,
            streak=streak,
        )

    def get_stats(self) -> dict[str, Any]:
        if self._data is None:
            return {**to_dict(OverallStats()), "pattern_count": 0}
        return {**to_dict(self._data.overall_stats), "pattern_count": len(self._data.pattern_stats)}
