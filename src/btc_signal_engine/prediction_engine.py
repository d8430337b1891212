from __future__ import annotations

from typing import Protocol, Sequence

import structlog

from .cohorts import analyze_cohort_metrics, calculate_cohort_score
from .exchange_flows import generate_exchange_flow_signals
from .metrics import CohortMetrics, DerivativesData, ExchangeFlowData, MetricSignal, OnChainMetrics, PriceModels
from .onchain import analyze_onchain_metrics, calculate_onchain_score
from .price_models import generate_price_model_signals
from .rules import score_signals
from .types import (
    OHLCV,
    Bias,
    BiasFactors,
    DerivativesFactors,
    Direction,
    ExchangeFlowFactors,
    Prediction,
    PriceModelFactors,
    Signal,
    TechnicalIndicators,
)

log = structlog.get_logger(__name__)

MAX_CONFIDENCE = 0.85
INTRADAY_BARS = 24
RECENT_BARS = 6
LARGE_OPEN_INTEREST_USD = 25_000_000_000
AUX_MIN_WEIGHT = 0.4
AUX_DISCOUNT = 0.8
MACRO_MIN_SCORE = 0.3
MACRO_MAX_WEIGHT = 0.7

_PREFIX = {"bullish": "+ ", "bearish": "- ", "neutral": "= "}


class PatternLike(Protocol):
    name: str
    bias: Bias
    confidence: float


def _technical_signals(ohlcv: Sequence[OHLCV], ind: TechnicalIndicators, price: float) -> list[Signal]:
    signals: list[Signal] = []

    if ind.rsi is not None:
        if ind.rsi < 30:
            signals.append(Signal("bullish", 0.8, f"RSI oversold ({ind.rsi:.0f})"))
        elif ind.rsi > 70:
            signals.append(Signal("bearish", 0.8, f"RSI overbought ({ind.rsi:.0f})"))
        elif ind.rsi > 50:
            signals.append(Signal("bullish", 0.3, f"RSI bullish ({ind.rsi:.0f})"))
        else:
            signals.append(Signal("bearish", 0.3, f"RSI bearish ({ind.rsi:.0f})"))

    if ind.macd is not None:
        hist = ind.macd.histogram
        prev = ind.prev_macd_histogram
        if prev is not None and prev <= 0 < hist:
            signals.append(Signal("bullish", 0.8, "MACD bullish crossover (confirmed)"))
        elif prev is not None and prev >= 0 > hist:
            signals.append(Signal("bearish", 0.8, "MACD bearish crossover (confirmed)"))
        elif ind.macd.macd > ind.macd.signal:
            signals.append(Signal("bullish", 0.4, "MACD bullish (above signal)"))
        elif ind.macd.macd < ind.macd.signal:
            signals.append(Signal("bearish", 0.4, "MACD bearish (below signal)"))

    if ind.bollinger_bands is not None:
        if price < ind.bollinger_bands.lower:
            signals.append(Signal("bullish", 0.7, "Below lower BB"))
        elif price > ind.bollinger_bands.upper:
            signals.append(Signal("bearish", 0.7, "Above upper BB"))

    if ind.ema20 is not None and ind.sma50 is not None:
        if price > ind.ema20 > ind.sma50:
            signals.append(Signal("bullish", 0.9, "Strong uptrend"))
        elif price < ind.ema20 < ind.sma50:
            signals.append(Signal("bearish", 0.9, "Strong downtrend"))

    if ind.volume_ratio is not None:
        ratio = ind.volume_ratio
        last = ohlcv[-1]
        reference = ohlcv[-2].close if len(ohlcv) >= 2 else last.open
        rising = last.close >= reference
        if ratio > 2.0:
            if rising:
                signals.append(Signal("bullish", 0.6, f"High volume rally ({ratio:.1f}x avg)"))
            else:
                signals.append(Signal("bearish", 0.6, f"High volume selloff ({ratio:.1f}x avg)"))
        elif ratio > 1.5:
            if rising:
                signals.append(Signal("bullish", 0.3, f"Elevated volume on up move ({ratio:.1f}x avg)"))
            else:
                signals.append(Signal("bearish", 0.3, f"Elevated volume on down move ({ratio:.1f}x avg)"))
        elif ratio < 0.5:
            signals.append(Signal("neutral", 0.2, f"Low volume ({ratio:.1f}x avg) - weak conviction"))

    if ind.volume_trend == "increasing":
        signals.append(Signal("neutral", 0.2, "Volume trend increasing"))
    elif ind.volume_trend == "decreasing":
        signals.append(Signal("neutral", 0.2, "Volume trend decreasing"))

    if ind.rsi_divergence == "bullish":
        signals.append(Signal("bullish", 0.8, "Bullish RSI divergence"))
    elif ind.rsi_divergence == "bearish":
        signals.append(Signal("bearish", 0.8, "Bearish RSI divergence"))

    return signals


def _intraday_signals(ohlcv: Sequence[OHLCV], price: float) -> list[Signal]:
    if len(ohlcv) < INTRADAY_BARS:
        return []

    window = ohlcv[-INTRADAY_BARS:]
    high = max(b.high for b in window)
    low = min(b.low for b in window)
    span = high - low
    if span <= 0:
        return []

    position = (price - low) / span
    recent_high = max(b.high for b in ohlcv[-RECENT_BARS:])
    recent_low = min(b.low for b in ohlcv[-RECENT_BARS:])

    signals: list[Signal] = []
    if recent_high > low + span * 0.8 and position < 0.4:
        signals.append(Signal("bearish", 0.5, "Rejected at 24h highs"))
    if recent_low < low + span * 0.2 and position > 0.6:
        signals.append(Signal("bullish", 0.5, "Bounced from 24h lows"))

    if position < 0.25:
        signals.append(Signal("bullish", 0.3, "Near 24h lows (potential support)"))
    elif position > 0.75:
        signals.append(Signal("bearish", 0.3, "Near 24h highs (potential resistance)"))
    return signals


def _is_sideways(ind: TechnicalIndicators, price: float) -> bool:
    low_volatility = ind.atr is not None and ind.atr < price * 0.015
    bands = ind.bollinger_bands
    inside_bands = bands is not None and bands.lower * 1.02 < price < bands.upper * 0.98
    return low_volatility and inside_bands


def _derivatives_signals(data: DerivativesData) -> tuple[list[Signal], DerivativesFactors]:
    signals: list[Signal] = []
    funding_signal: Bias = "neutral"
    rate = data.funding_rate.funding_rate if data.funding_rate is not None else None

    if rate is not None:
        pct = rate * 100
        # contrarian: crowded longs are bearish
        if pct > 1:
            signals.append(Signal("bearish", 0.6, f"Extreme funding ({pct:.3f}%) - overleveraged longs"))
        elif pct > 0.5:
            signals.append(Signal("bearish", 0.3, f"Elevated funding ({pct:.3f}%) - longs paying premium"))
        elif pct < -1:
            signals.append(Signal("bullish", 0.6, f"Negative funding ({pct:.3f}%) - overleveraged shorts"))
        elif pct < -0.5:
            signals.append(Signal("bullish", 0.3, f"Negative funding ({pct:.3f}%) - shorts paying premium"))

        if pct > 0.5:
            funding_signal = "bearish"
        elif pct < -0.5:
            funding_signal = "bullish"

    oi_value = data.open_interest.open_interest_value if data.open_interest is not None else None
    if oi_value is not None and oi_value > LARGE_OPEN_INTEREST_USD:
        signals.append(Signal("neutral", 0.2, f"Large open interest (${oi_value / 1e9:.1f}B) - elevated volatility risk"))

    squeeze_risk = "none"
    probability = "low"
    alert = data.squeeze_alert
    if alert is not None:
        probability = alert.probability
        weight = 0.7 if alert.probability == "high" else 0.4
        if alert.type == "long_squeeze":
            squeeze_risk = "long"
            signals.append(Signal("bearish", weight, f"Long squeeze risk ({alert.probability})"))
        elif alert.type == "short_squeeze":
            squeeze_risk = "short"
            signals.append(Signal("bullish", weight, f"Short squeeze risk ({alert.probability})"))

    factors = DerivativesFactors(
        funding_rate=rate,
        funding_signal=funding_signal,
        open_interest_value=oi_value,
        squeeze_risk=squeeze_risk,
        squeeze_probability=probability,
    )
    return signals, factors


def _fold_family(family: Sequence[MetricSignal], score: float, label: str) -> list[Signal]:
    """Discount a macro signal family relative to technical evidence."""
    signals = [Signal(s.signal, s.weight * AUX_DISCOUNT, s.reason) for s in family if s.weight >= AUX_MIN_WEIGHT]
    if abs(score) > MACRO_MIN_SCORE:
        bias: Bias = "bullish" if score > 0 else "bearish"
        signals.append(Signal(bias, min(abs(score), MACRO_MAX_WEIGHT), f"{label} macro bias {bias} (score {score:.2f})"))
    return signals


def _exchange_flow_signals(flows: ExchangeFlowData) -> tuple[list[Signal], ExchangeFlowFactors]:
    result = generate_exchange_flow_signals(flows)
    signals: list[Signal] = []
    if result.signal != "neutral":
        signals.append(Signal(result.signal, result.weight, f"Exchange flows {result.signal} ({flows.netflow24h:+.0f} BTC)"))
    for factor in result.factors:
        signals.append(Signal(result.signal, result.weight / 2, factor))
    factors = ExchangeFlowFactors(
        signal=result.signal, weight=result.weight, netflow=flows.netflow24h, factors=list(result.factors)
    )
    return signals, factors


class PredictionEngine:
    def predict(
        self,
        ohlcv: Sequence[OHLCV],
        indicators: TechnicalIndicators,
        patterns: Sequence[PatternLike] = (),
        derivatives: DerivativesData | None = None,
        on_chain: OnChainMetrics | None = None,
        exchange_flow: ExchangeFlowData | None = None,
        price_models: PriceModels | None = None,
        cohorts: CohortMetrics | None = None,
    ) -> Prediction:
        if not ohlcv:
            raise ValueError("PredictionEngine.predict requires at least one OHLCV bar")

        price = ohlcv[-1].close
        signals = _technical_signals(ohlcv, indicators, price)

        for pattern in patterns:
            signals.append(Signal(pattern.bias, pattern.confidence, pattern.name))

        signals.extend(_intraday_signals(ohlcv, price))
        sideways = _is_sideways(indicators, price)

        derivatives_factors = None
        if derivatives is not None:
            extra, derivatives_factors = _derivatives_signals(derivatives)
            signals.extend(extra)

        on_chain_factors = None
        if on_chain is not None:
            family = analyze_onchain_metrics(on_chain)
            result = calculate_onchain_score(family)
            signals.extend(_fold_family(family, result.score, "On-chain"))
            on_chain_factors = BiasFactors(
                score=result.score, bias=result.bias, confidence=result.confidence, signals=[s.reason for s in family]
            )

        exchange_flow_factors = None
        if exchange_flow is not None:
            extra, exchange_flow_factors = _exchange_flow_signals(exchange_flow)
            signals.extend(extra)

        price_model_factors = None
        if price_models is not None:
            family = generate_price_model_signals(price_models)
            result = score_signals(family)
            signals.extend(_fold_family(family, result.score, "Price model"))
            valuation = price_models.overall_valuation
            price_model_factors = PriceModelFactors(
                overall_score=valuation.score if valuation is not None else None,
                rating=valuation.rating if valuation is not None else None,
                score=result.score,
                bias=result.bias,
                signals=[s.reason for s in family],
            )

        cohort_factors = None
        if cohorts is not None:
            family = analyze_cohort_metrics(cohorts)
            result = calculate_cohort_score(family)
            signals.extend(_fold_family(family, result.score, "Cohort"))
            cohort_factors = BiasFactors(
                score=result.score, bias=result.bias, confidence=result.confidence, signals=[s.reason for s in family]
            )

        bullish = sum(s.weight for s in signals if s.signal == "bullish")
        bearish = sum(s.weight for s in signals if s.signal == "bearish")
        reasoning = [_PREFIX[s.signal] + s.reason for s in signals]

        total = bullish + bearish
        bullish_pct = bullish / total if total > 0 else 0.5
        bearish_pct = bearish / total if total > 0 else 0.5
        diff = abs(bullish_pct - bearish_pct)

        direction: Direction
        if sideways and diff < 0.2:
            direction = "sideways"
            confidence = 0.7 + 0.3 * (1 - diff)
            reasoning.append("= Low volatility, price ranging")
        elif diff < 0.15:
            direction = "mixed"
            confidence = 0.5 + 2 * diff
        elif bullish_pct > bearish_pct:
            direction = "up"
            confidence = bullish_pct
        else:
            direction = "down"
            confidence = bearish_pct
        confidence = min(MAX_CONFIDENCE, round(confidence, 2))

        atr = indicators.atr or price * 0.02
        target = stop = None
        predicted = price
        if direction == "up":
            target = price + atr * 2
            stop = price - atr
            predicted = price * (1 + (confidence - 0.5) * 2 * (atr / price) * 1.5)
        elif direction == "down":
            target = price - atr * 2
            stop = price + atr
            predicted = price * (1 - (confidence - 0.5) * 2 * (atr / price) * 1.5)

        log.debug(
            "prediction_engine.predicted",
            direction=direction,
            confidence=confidence,
            signal_count=len(signals),
            bullish_score=round(bullish, 3),
            bearish_score=round(bearish, 3),
        )
        return Prediction(
            direction=direction,
            confidence=confidence,
            target_price=target,
            stop_loss=stop,
            predicted_price_24h=predicted,
            reasoning=reasoning,
            derivatives_factors=derivatives_factors,
            on_chain_factors=on_chain_factors,
            exchange_flow_factors=exchange_flow_factors,
            price_model_factors=price_model_factors,
            cohort_factors=cohort_factors,
        )
