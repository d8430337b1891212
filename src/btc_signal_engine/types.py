from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

Bias = Literal["bullish", "bearish", "neutral"]
Direction = Literal["up", "down", "sideways", "mixed"]
Timeframe = Literal["24h", "48h", "72h"]


@dataclass(frozen=True)
class OHLCV:
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class MacdValue:
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float


@dataclass(frozen=True)
class TechnicalIndicators:
    rsi: float | None = None
    macd: MacdValue | None = None
    prev_macd_histogram: float | None = None
    bollinger_bands: BollingerBands | None = None
    ema20: float | None = None
    sma50: float | None = None
    atr: float | None = None
    volume_ratio: float | None = None
    volume_trend: Literal["increasing", "decreasing", "stable"] | None = None
    rsi_divergence: Literal["bullish", "bearish"] | None = None


@dataclass(frozen=True)
class Signal:
    signal: Bias
    weight: float
    reason: str


@dataclass(frozen=True)
class Factor:
    name: str
    category: str
    value: str
    signal: Bias
    weight: float
    explanation: str


@dataclass(frozen=True)
class ChartPattern:
    """A classic chart pattern reported by the indicator collaborator."""

    name: str
    bias: Bias
    confidence: float
    description: str = ""


@dataclass(frozen=True)
class PatternMatch:
    name: str
    confidence: float
    bias: Bias
    timeframe: Timeframe
    description: str
    reasoning: str
    historical_accuracy: float | None = None


@dataclass(frozen=True)
class PricePoint:
    timestamp: int
    price: float
    oi: float | None = None
    funding: float | None = None
    volume: float | None = None


@dataclass(frozen=True)
class FundingContext:
    current: float
    avg24h: float
    velocity: float


@dataclass(frozen=True)
class OpenInterestContext:
    current: float
    change24h: float
    change6h: float


@dataclass(frozen=True)
class VolumeContext:
    current: float
    avg24h: float
    ratio: float


@dataclass(frozen=True)
class MarketContext:
    price_history: list[PricePoint]
    current_price: float
    funding: FundingContext
    oi: OpenInterestContext
    volume: VolumeContext | None = None


@dataclass(frozen=True)
class DerivativesFactors:
    funding_rate: float | None
    funding_signal: Bias
    open_interest_value: float | None
    squeeze_risk: Literal["long", "short", "none"]
    squeeze_probability: Literal["high", "medium", "low"]


@dataclass(frozen=True)
class BiasFactors:
    """Summary of an auxiliary signal family folded into a prediction."""

    score: float
    bias: Bias
    confidence: float
    signals: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ExchangeFlowFactors:
    signal: Bias
    weight: float
    netflow: float
    factors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PriceModelFactors:
    overall_score: float | None
    rating: str | None
    score: float
    bias: Bias
    signals: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Prediction:
    direction: Direction
    confidence: float
    target_price: float | None
    stop_loss: float | None
    predicted_price_24h: float
    reasoning: list[str] = field(default_factory=list)
    derivatives_factors: DerivativesFactors | None = None
    on_chain_factors: BiasFactors | None = None
    exchange_flow_factors: ExchangeFlowFactors | None = None
    price_model_factors: PriceModelFactors | None = None
    cohort_factors: BiasFactors | None = None
