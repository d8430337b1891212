from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

import numpy as np
import structlog

from .types import Bias, MarketContext, PatternMatch, Timeframe

if TYPE_CHECKING:
    from .learner import HistoricalLearner

log = structlog.get_logger(__name__)

MIN_POINTS = 12
SECTION_POINTS = 18
DEFAULT_CONFIDENCE = 0.7


@dataclass(frozen=True)
class PatternDefinition:
    name: str
    bias: Bias
    timeframe: Timeframe
    description: str
    reasoning: str
    historical_win_rate: float


@dataclass(frozen=True)
class PatternBias:
    bias: Bias
    confidence: float
    patterns: list[PatternMatch] = field(default_factory=list)
    reasoning: list[str] = field(default_factory=list)


V_RECOVERY = PatternDefinition(
    "V-Recovery After Flush",
    "bullish",
    "72h",
    "Violent flush followed by strong V-shaped recovery",
    "Weak hands liquidated, strong buyers stepped in. Historically bullish for 72h as selling pressure exhausted.",
    0.72,
)
CAPITULATION_BOTTOM = PatternDefinition(
    "Capitulation Bottom",
    "bullish",
    "72h",
    "High volume selloff with OI flush and funding going negative",
    "Mass liquidations clear overleveraged positions. Recovery typically follows as new buyers enter at discount.",
    0.68,
)
SHORT_SQUEEZE_SETUP = PatternDefinition(
    "Short Squeeze Setup",
    "bullish",
    "48h",
    "Negative funding + rising price + stable/rising OI",
    "Shorts are paying longs while price rises. Squeeze likely as shorts forced to cover.",
    0.65,
)
ACCUMULATION_RANGE = PatternDefinition(
    "Accumulation Range",
    "bullish",
    "72h",
    "Tight price range with decreasing volume, then volume spike up",
    "Smart money accumulating before breakout. Compressed spring about to release upward.",
    0.63,
)
FUNDING_RESET_BULLISH = PatternDefinition(
    "Funding Reset (Bullish)",
    "bullish",
    "48h",
    "Funding went from extreme positive to neutral/negative while price held",
    "Overleveraged longs cleared without price breakdown. Healthier market structure for continuation.",
    0.64,
)
HIGHER_LOW_FORMATION = PatternDefinition(
    "Higher Low Formation",
    "bullish",
    "72h",
    "Price dipped but held above previous low, now recovering",
    "Buyers defending higher levels. Uptrend structure intact, likely continuation.",
    0.67,
)
SHORT_COVERING_RALLY = PatternDefinition(
    "Short Covering Rally",
    "bullish",
    "24h",
    "Price rising while open interest falls and funding stays negative",
    "Shorts closing into strength. Momentum usually carries until covering runs out.",
    0.58,
)
VOLUME_BREAKOUT = PatternDefinition(
    "Volume Breakout",
    "bullish",
    "48h",
    "Price breaks above the recent range on at least double average volume",
    "Breakout backed by real participation. Range highs tend to flip into support.",
    0.60,
)
DISTRIBUTION_TOP = PatternDefinition(
    "Distribution Top",
    "bearish",
    "72h",
    "Price at highs with decreasing volume and rising OI",
    "Smart money distributing to retail. High OI at top = fuel for downside liquidations.",
    0.66,
)
LONG_SQUEEZE_SETUP = PatternDefinition(
    "Long Squeeze Setup",
    "bearish",
    "48h",
    "High positive funding + falling price + rising OI",
    "Longs paying premium while price falls. Cascade liquidations likely.",
    0.64,
)
EXHAUSTION_TOP = PatternDefinition(
    "Exhaustion Top",
    "bearish",
    "48h",
    "Parabolic rise with extreme funding, then stall",
    "Buying exhaustion after euphoric run. No more buyers at these levels.",
    0.70,
)
LOWER_HIGH_FORMATION = PatternDefinition(
    "Lower High Formation",
    "bearish",
    "72h",
    "Price bounced but failed to reach previous high",
    "Sellers defending lower levels. Downtrend structure forming.",
    0.65,
)
DEAD_CAT_BOUNCE = PatternDefinition(
    "Dead Cat Bounce",
    "bearish",
    "48h",
    "Sharp drop followed by weak recovery on low volume",
    "Relief rally without conviction. Likely to retest lows or make new lows.",
    0.62,
)
FUNDING_EXTREME_TOP = PatternDefinition(
    "Funding Extreme at Top",
    "bearish",
    "48h",
    "Funding rate >0.05% at local price high",
    "Extreme greed and leverage. Market usually punishes overleveraged longs.",
    0.71,
)
FUNDING_RESET_BEARISH = PatternDefinition(
    "Funding Reset (Bearish)",
    "bearish",
    "48h",
    "Funding went from extreme negative to neutral/positive while price failed to rally",
    "Shorts covered without a real bid stepping in. Path of least resistance stays down.",
    0.62,
)
RANGE_COMPRESSION = PatternDefinition(
    "Range Compression",
    "neutral",
    "24h",
    "Decreasing volatility, price in tight range",
    "Big move coming but direction unclear. Wait for breakout confirmation.",
    0.50,
)
MIXED_SIGNALS = PatternDefinition(
    "Mixed Signals",
    "neutral",
    "24h",
    "Conflicting indicators across timeframes",
    "Market indecision. No clear edge, reduce position size.",
    0.50,
)

PATTERN_DEFINITIONS: tuple[PatternDefinition, ...] = (
    V_RECOVERY,
    CAPITULATION_BOTTOM,
    SHORT_SQUEEZE_SETUP,
    ACCUMULATION_RANGE,
    FUNDING_RESET_BULLISH,
    HIGHER_LOW_FORMATION,
    SHORT_COVERING_RALLY,
    VOLUME_BREAKOUT,
    DISTRIBUTION_TOP,
    LONG_SQUEEZE_SETUP,
    EXHAUSTION_TOP,
    LOWER_HIGH_FORMATION,
    DEAD_CAT_BOUNCE,
    FUNDING_EXTREME_TOP,
    FUNDING_RESET_BEARISH,
    RANGE_COMPRESSION,
    MIXED_SIGNALS,
)


def _prices(ctx: MarketContext) -> np.ndarray:
    return np.array([p.price for p in ctx.price_history], dtype=float)


def _change_pct(ctx: MarketContext, prices: np.ndarray) -> float:
    return (ctx.current_price - prices[0]) / prices[0] * 100


def is_v_recovery(ctx: MarketContext) -> bool:
    prices = _prices(ctx)
    if len(prices) < MIN_POINTS:
        return False
    low_index = int(np.argmin(prices))
    low, start = prices[low_index], prices[0]
    if (start - low) / start * 100 < 5:
        return False
    if (ctx.current_price - low) / (start - low) * 100 < 80:
        return False
    return low_index <= len(prices) * 0.6


def is_capitulation_bottom(ctx: MarketContext) -> bool:
    if ctx.oi.change24h > -10:
        return False
    if ctx.funding.current > -0.01 and ctx.funding.avg24h > 0:
        return False
    low = float(np.min(_prices(ctx)))
    if low <= 0:
        return False
    return (ctx.current_price - low) / low * 100 >= 2


def is_short_squeeze_setup(ctx: MarketContext) -> bool:
    if ctx.funding.current > -0.005:
        return False
    if _change_pct(ctx, _prices(ctx)) < 1:
        return False
    return ctx.oi.change24h >= -5


def is_long_squeeze_setup(ctx: MarketContext) -> bool:
    if ctx.funding.current < 0.02:
        return False
    if _change_pct(ctx, _prices(ctx)) > 0:
        return False
    return ctx.oi.change24h >= 0


def is_funding_reset_bullish(ctx: MarketContext) -> bool:
    if abs(ctx.funding.current) > 0.02:
        return False
    if ctx.funding.velocity > -0.005:
        return False
    return _change_pct(ctx, _prices(ctx)) >= -3


def is_funding_reset_bearish(ctx: MarketContext) -> bool:
    if abs(ctx.funding.current) > 0.02:
        return False
    if ctx.funding.velocity < 0.005:
        return False
    return _change_pct(ctx, _prices(ctx)) <= 3


def is_exhaustion_top(ctx: MarketContext) -> bool:
    if ctx.funding.current < 0.03:
        return False
    prices = _prices(ctx)
    mid = len(prices) // 2
    first_half = (prices[mid] - prices[0]) / prices[0] * 100
    second_half = (ctx.current_price - prices[mid]) / prices[mid] * 100
    return first_half >= 3 and second_half <= 1


def is_funding_extreme_top(ctx: MarketContext) -> bool:
    if ctx.funding.current < 0.05:
        return False
    recent_high = float(np.max(_prices(ctx)[-12:]))
    return (recent_high - ctx.current_price) / recent_high * 100 <= 2


def _sections(prices: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    return prices[:6], prices[6:12], prices[12:]


def is_higher_low_formation(ctx: MarketContext) -> bool:
    prices = _prices(ctx)
    if len(prices) < SECTION_POINTS:
        return False
    low1, low2, low3 = (float(np.min(s)) for s in _sections(prices))
    if low2 <= low1 or low3 <= low2:
        return False
    return ctx.current_price >= low3 * 1.01


def is_lower_high_formation(ctx: MarketContext) -> bool:
    prices = _prices(ctx)
    if len(prices) < SECTION_POINTS:
        return False
    high1, high2, high3 = (float(np.max(s)) for s in _sections(prices))
    return high2 < high1 and high3 < high2


def is_dead_cat_bounce(ctx: MarketContext) -> bool:
    prices = _prices(ctx)
    if len(prices) < MIN_POINTS:
        return False
    low = float(np.min(prices))
    start = prices[0]
    if (start - low) / start * 100 < 5:
        return False
    recovery = (ctx.current_price - low) / (start - low) * 100
    if recovery > 50 or recovery < 10:
        return False
    return ctx.oi.change24h <= 5


def is_distribution_top(ctx: MarketContext) -> bool:
    high = float(np.max(_prices(ctx)))
    if (high - ctx.current_price) / high * 100 > 3:
        return False
    if ctx.oi.change24h < 5:
        return False
    return ctx.funding.current >= 0.01


def is_accumulation_range(ctx: MarketContext) -> bool:
    prices = _prices(ctx)
    high, low = float(np.max(prices)), float(np.min(prices))
    if (high - low) / low * 100 > 5:
        return False
    # a perfectly flat range has no position to reject on
    if high > low and (ctx.current_price - low) / (high - low) < 0.5:
        return False
    return ctx.oi.change24h >= 2


def is_short_covering_rally(ctx: MarketContext) -> bool:
    if ctx.funding.current > 0:
        return False
    if _change_pct(ctx, _prices(ctx)) < 2:
        return False
    return ctx.oi.change6h <= -3


def is_volume_breakout(ctx: MarketContext) -> bool:
    if ctx.volume is None or ctx.volume.ratio < 2.0:
        return False
    prior_high = float(np.max(_prices(ctx)[:-1]))
    return ctx.current_price > prior_high


def is_range_compression(ctx: MarketContext) -> bool:
    prices = _prices(ctx)
    if len(prices) < MIN_POINTS:
        return False
    mid = len(prices) // 2
    first, second = prices[:mid], prices[mid:]
    range1 = (np.max(first) - np.min(first)) / np.min(first)
    range2 = (np.max(second) - np.min(second)) / np.min(second)
    return range2 <= range1 * 0.7


DETECTORS: tuple[tuple[PatternDefinition, Callable[[MarketContext], bool]], ...] = (
    (V_RECOVERY, is_v_recovery),
    (CAPITULATION_BOTTOM, is_capitulation_bottom),
    (SHORT_SQUEEZE_SETUP, is_short_squeeze_setup),
    (LONG_SQUEEZE_SETUP, is_long_squeeze_setup),
    (FUNDING_RESET_BULLISH, is_funding_reset_bullish),
    (FUNDING_RESET_BEARISH, is_funding_reset_bearish),
    (EXHAUSTION_TOP, is_exhaustion_top),
    (FUNDING_EXTREME_TOP, is_funding_extreme_top),
    (HIGHER_LOW_FORMATION, is_higher_low_formation),
    (LOWER_HIGH_FORMATION, is_lower_high_formation),
    (DEAD_CAT_BOUNCE, is_dead_cat_bounce),
    (DISTRIBUTION_TOP, is_distribution_top),
    (ACCUMULATION_RANGE, is_accumulation_range),
    (SHORT_COVERING_RALLY, is_short_covering_rally),
    (VOLUME_BREAKOUT, is_volume_breakout),
)


def create_match(definition: PatternDefinition, confidence: float = DEFAULT_CONFIDENCE) -> PatternMatch:
    return PatternMatch(
        name=definition.name,
        confidence=confidence,
        bias=definition.bias,
        timeframe=definition.timeframe,
        description=definition.description,
        reasoning=definition.reasoning,
        historical_accuracy=definition.historical_win_rate,
    )


class PatternRecognizer:
    """Matches hourly market context against the pattern catalogue.

    With a learner attached, each match's confidence is scaled by the pattern's
    learned accuracy. The recognizer only reads the learner's loaded state.
    """

    def __init__(self, learner: HistoricalLearner | None = None) -> None:
        self.learner = learner

    def recognize_patterns(self, ctx: MarketContext) -> list[PatternMatch]:
        if len(ctx.price_history) < MIN_POINTS:
            return []

        matches = [create_match(definition) for definition, detect in DETECTORS if detect(ctx)]

        # fallback only when nothing directional fired
        if not matches:
            if is_range_compression(ctx):
                matches.append(create_match(RANGE_COMPRESSION))
            else:
                matches.append(create_match(MIXED_SIGNALS))

        if self.learner is not None:
            matches = [self.learner.adjust_pattern_confidence(m) for m in matches]

        matches.sort(key=lambda m: m.confidence, reverse=True)
        log.debug("pattern_recognizer.recognized", patterns=[m.name for m in matches])
        return matches

    def get_strongest_signal(self, ctx: MarketContext) -> PatternMatch | None:
        matches = self.recognize_patterns(ctx)
        if not matches:
            return None
        directional = [m for m in matches if m.bias != "neutral"]
        return directional[0] if directional else matches[0]

    def get_aggregate_bias(self, ctx: MarketContext) -> PatternBias:
        matches = self.recognize_patterns(ctx)

        bullish = 0.0
        bearish = 0.0
        reasoning: list[str] = []
        for m in matches:
            weight = m.confidence * (m.historical_accuracy or 0.5)
            if m.bias == "bullish":
                bullish += weight
                reasoning.append(f"+ {m.name}: {m.reasoning}")
            elif m.bias == "bearish":
                bearish += weight
                reasoning.append(f"- {m.name}: {m.reasoning}")

        total = bullish + bearish
        if total > 0 and bullish > bearish * 1.3:
            return PatternBias("bullish", bullish / total, matches, reasoning)
        if total > 0 and bearish > bullish * 1.3:
            return PatternBias("bearish", bearish / total, matches, reasoning)
        return PatternBias("neutral", 0.5, matches, reasoning)

