from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from .codec import from_dict
from .types import Bias

Trend = Literal["accumulating", "distributing", "stable"]


# Aggregate-report inputs. Every metric is optional; None means "no opinion".


@dataclass(frozen=True)
class TechnicalInputs:
    rsi: float | None = None
    macd: Bias | None = None
    ma_cross: Bias | None = None


@dataclass(frozen=True)
class OnChainInputs:
    mvrv: float | None = None
    sopr: float | None = None
    nupl: float | None = None
    nvt: float | None = None
    exchange_netflow: float | None = None


@dataclass(frozen=True)
class Liquidations:
    longs: float
    shorts: float


@dataclass(frozen=True)
class DerivativesInputs:
    funding_rate: float | None = None
    long_short_ratio: float | None = None
    liquidations: Liquidations | None = None


@dataclass(frozen=True)
class PriceModelInputs:
    s2f_deflection: float | None = None
    realized_price_ratio: float | None = None
    puell_multiple: float | None = None


@dataclass(frozen=True)
class SentimentInputs:
    fear_greed: float | None = None
    whale_activity: Bias | None = None


@dataclass(frozen=True)
class SignalInput:
    technical: TechnicalInputs = field(default_factory=TechnicalInputs)
    onchain: OnChainInputs = field(default_factory=OnChainInputs)
    derivatives: DerivativesInputs = field(default_factory=DerivativesInputs)
    price_models: PriceModelInputs = field(default_factory=PriceModelInputs)
    sentiment: SentimentInputs = field(default_factory=SentimentInputs)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> SignalInput:
        return from_dict(cls, payload)


# Derivatives collaborator output.


@dataclass(frozen=True)
class FundingRate:
    funding_rate: float
    funding_time: int | None = None
    mark_price: float | None = None


@dataclass(frozen=True)
class OpenInterest:
    open_interest_value: float
    open_interest: float | None = None


@dataclass(frozen=True)
class SqueezeAlert:
    type: Literal["long_squeeze", "short_squeeze", "none"] = "none"
    probability: Literal["high", "medium", "low"] = "low"
    reasoning: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DerivativesData:
    funding_rate: FundingRate | None = None
    open_interest: OpenInterest | None = None
    squeeze_alert: SqueezeAlert | None = None


# On-chain collaborator output.


@dataclass(frozen=True)
class NvtMetric:
    ratio: float
    signal: Literal["undervalued", "fair", "overvalued"]


@dataclass(frozen=True)
class PuellMetric:
    value: float
    zone: Literal["buy", "neutral", "sell"]


@dataclass(frozen=True)
class StockToFlowMetric:
    ratio: float
    model_price: float
    deflection: float


@dataclass(frozen=True)
class SsrMetric:
    ratio: float
    trend: Bias


@dataclass(frozen=True)
class ReserveRiskMetric:
    value: float
    zone: Literal["opportunity", "neutral", "risk"]


@dataclass(frozen=True)
class NuplMetric:
    value: float
    zone: Literal["capitulation", "hope", "optimism", "belief", "euphoria"]


@dataclass(frozen=True)
class OnChainMetrics:
    nvt: NvtMetric | None = None
    puell_multiple: PuellMetric | None = None
    stock_to_flow: StockToFlowMetric | None = None
    ssr: SsrMetric | None = None
    reserve_risk: ReserveRiskMetric | None = None
    nupl: NuplMetric | None = None


@dataclass(frozen=True)
class MetricSignal:
    signal: Bias
    weight: float
    reason: str
    metric: str


@dataclass(frozen=True)
class BiasScore:
    score: float
    bias: Bias
    confidence: float


# Exchange flows.


@dataclass(frozen=True)
class WhaleTransfer:
    type: Literal["exchange_deposit", "exchange_withdrawal", "transfer"]
    amount_btc: float
    from_type: str = "unknown"
    to_type: str = "unknown"


@dataclass(frozen=True)
class ExchangeFlow:
    name: str
    inflow24h: float
    outflow24h: float
    netflow: float
    trend: Literal["accumulation", "distribution", "neutral"]


@dataclass(frozen=True)
class ExchangeFlowData:
    netflow24h: float
    inflow24h: float
    outflow24h: float
    exchanges: list[ExchangeFlow] = field(default_factory=list)
    whale_ratio: float = 0.0
    largest_inflow: float = 0.0
    largest_outflow: float = 0.0
    flow_signal: Bias = "neutral"
    flow_strength: float = 50.0
    analysis: str = ""


@dataclass(frozen=True)
class ExchangeFlowSignal:
    signal: Bias
    weight: float
    factors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ExchangeReserveEstimate:
    exchange: str
    estimated_btc: int
    change24h: float
    confidence: Literal["high", "medium", "low"]


# Holder cohorts.


@dataclass(frozen=True)
class SupplyCohort:
    btc: float
    percentage: float
    change30d: float
    trend: Trend


@dataclass(frozen=True)
class LthSthRatio:
    ratio: float
    signal: Bias
    description: str = ""


@dataclass(frozen=True)
class HolderCohorts:
    lth_supply: SupplyCohort
    sth_supply: SupplyCohort
    lth_sth_ratio: LthSthRatio


@dataclass(frozen=True)
class TierMetrics:
    name: str
    btc_held: float
    change30d: float
    trend: Trend
    addresses: int = 0
    percentage_of_supply: float = 0.0


@dataclass(frozen=True)
class WhaleCohorts:
    shrimp: TierMetrics
    crab: TierMetrics
    fish: TierMetrics
    shark: TierMetrics
    whale: TierMetrics
    humpback: TierMetrics


@dataclass(frozen=True)
class SupplyLiquidity:
    illiquid_percentage: float
    signal: Bias


@dataclass(frozen=True)
class CohortMetrics:
    holder_cohorts: HolderCohorts | None = None
    whale_cohorts: WhaleCohorts | None = None
    supply_liquidity: SupplyLiquidity | None = None


# Valuation models.


@dataclass(frozen=True)
class ModelRatings:
    """Per-model categorical ratings consumed by the overall valuation score."""

    s2f: Literal["undervalued", "fair", "overvalued", "extreme_overvalued"] | None = None
    thermocap: Literal["undervalued", "fair", "overheated", "extreme"] | None = None
    mvrv: Literal["undervalued", "fair", "overvalued", "extreme"] | None = None
    nupl: Literal["capitulation", "hope", "optimism", "belief", "euphoria"] | None = None
    puell: Literal["buy_zone", "neutral", "sell_zone", "extreme"] | None = None
    mvrv_z: Literal["bottom_zone", "accumulation", "fair", "distribution", "top_zone"] | None = None
    rhodl: Literal["accumulation", "neutral", "distribution", "speculative_top"] | None = None
    delta_cap: Literal["extreme_undervalued", "undervalued", "fair", "overvalued"] | None = None


@dataclass(frozen=True)
class ValuationScore:
    score: int
    rating: str
    confidence: int
    model_agreement: int
    bullish_models: list[str] = field(default_factory=list)
    bearish_models: list[str] = field(default_factory=list)
    summary: str = ""


@dataclass(frozen=True)
class PriceModels:
    s2f_deflection: float | None = None
    s2f_multiple: float | None = None
    thermocap_multiple: float | None = None
    nupl_zone: Literal["capitulation", "hope", "optimism", "belief", "euphoria"] | None = None
    puell_multiple: float | None = None
    mvrv_z_score: float | None = None
    overall_valuation: ValuationScore | None = None
