from __future__ import annotations

from .metrics import (
    DerivativesInputs,
    OnChainInputs,
    PriceModelInputs,
    SentimentInputs,
    TechnicalInputs,
)
from .rules import CategoryScore, FactorTemplate, MetricRules, ScoreRule, score_category


def _fixed(digits: int):
    return lambda v: f"{v:.{digits}f}"


def _pct(digits: int):
    return lambda v: f"{v * 100:.{digits}f}%"


def _always(_: object) -> bool:
    return True


RSI = MetricRules(
    metric="rsi",
    rules=(
        ScoreRule(
            lambda v: v > 70,
            -30,
            FactorTemplate("RSI Overbought", "bearish", 8, "RSI at {value} indicates overbought conditions"),
            _fixed(1),
        ),
        ScoreRule(
            lambda v: v < 30,
            30,
            FactorTemplate("RSI Oversold", "bullish", 8, "RSI at {value} indicates oversold conditions"),
            _fixed(1),
        ),
        ScoreRule(_always, 0, FactorTemplate("RSI Neutral", "neutral", 3, "RSI in neutral range"), _fixed(1)),
    ),
)

MACD = MetricRules(
    metric="macd",
    rules=(
        ScoreRule(
            lambda v: v == "bullish",
            25,
            FactorTemplate("MACD Bullish", "bullish", 7, "MACD line crossed above signal line"),
            lambda _: "Bullish Cross",
        ),
        ScoreRule(
            lambda v: v == "bearish",
            -25,
            FactorTemplate("MACD Bearish", "bearish", 7, "MACD line crossed below signal line"),
            lambda _: "Bearish Cross",
        ),
    ),
)

MA_CROSS = MetricRules(
    metric="ma_cross",
    rules=(
        ScoreRule(
            lambda v: v == "bullish",
            20,
            FactorTemplate("MA Golden Cross", "bullish", 6, "Short-term MA crossed above long-term MA"),
            lambda _: "Bullish",
        ),
        ScoreRule(
            lambda v: v == "bearish",
            -20,
            FactorTemplate("MA Death Cross", "bearish", 6, "Short-term MA crossed below long-term MA"),
            lambda _: "Bearish",
        ),
    ),
)

MVRV = MetricRules(
    metric="mvrv",
    rules=(
        ScoreRule(
            lambda v: v > 3.5,
            -40,
            FactorTemplate("MVRV Extreme", "bearish", 10, "MVRV at {value} signals extreme overvaluation"),
            _fixed(2),
        ),
        ScoreRule(
            lambda v: v < 1.0,
            40,
            FactorTemplate("MVRV Undervalued", "bullish", 10, "MVRV at {value} signals undervaluation"),
            _fixed(2),
        ),
        ScoreRule(
            lambda v: v > 2.4,
            -20,
            FactorTemplate("MVRV Elevated", "bearish", 6, "MVRV indicates overvaluation"),
            _fixed(2),
        ),
    ),
)

SOPR = MetricRules(
    metric="sopr",
    rules=(
        ScoreRule(
            lambda v: v < 0.95,
            35,
            FactorTemplate("SOPR Capitulation", "bullish", 9, "SOPR at {value} indicates capitulation"),
            _fixed(3),
        ),
        ScoreRule(
            lambda v: v > 1.05,
            -15,
            FactorTemplate("SOPR Profit Taking", "bearish", 5, "Heavy profit realization ongoing"),
            _fixed(3),
        ),
    ),
)

NUPL = MetricRules(
    metric="nupl",
    rules=(
        ScoreRule(lambda v: v > 0.75, -30, FactorTemplate("NUPL Euphoria", "bearish", 8, "Market in euphoria phase"), _pct(1)),
        ScoreRule(lambda v: v < 0, 30, FactorTemplate("NUPL Capitulation", "bullish", 8, "Market in capitulation"), _pct(1)),
    ),
)

EXCHANGE_NETFLOW = MetricRules(
    metric="exchange_netflow",
    rules=(
        ScoreRule(
            lambda v: v > 10000,
            -25,
            FactorTemplate("Exchange Inflow", "bearish", 7, "Large BTC moving to exchanges"),
            lambda v: f"{v / 1000:.1f}K BTC",
        ),
        ScoreRule(
            lambda v: v < -10000,
            25,
            FactorTemplate("Exchange Outflow", "bullish", 7, "Large BTC accumulation off exchanges"),
            lambda v: f"{abs(v) / 1000:.1f}K BTC",
        ),
    ),
)

NVT = MetricRules(
    metric="nvt",
    rules=(
        ScoreRule(
            lambda v: v > 100,
            -20,
            FactorTemplate("NVT Overvalued", "bearish", 5, "Network value exceeds transaction volume"),
            _fixed(1),
        ),
        ScoreRule(
            lambda v: v < 25,
            20,
            FactorTemplate("NVT Undervalued", "bullish", 5, "Strong network usage relative to price"),
            _fixed(1),
        ),
    ),
)

# funding thresholds are in percent; the raw rate is a fraction
FUNDING_RATE = MetricRules(
    metric="funding_rate",
    rules=(
        ScoreRule(
            lambda v: v * 100 > 0.1,
            -35,
            FactorTemplate("Funding Extreme Positive", "bearish", 9, "Overleveraged longs - squeeze risk"),
            _pct(3),
        ),
        ScoreRule(
            lambda v: v * 100 < -0.05,
            35,
            FactorTemplate("Funding Extreme Negative", "bullish", 9, "Overleveraged shorts - squeeze potential"),
            _pct(3),
        ),
        ScoreRule(
            lambda v: v * 100 > 0.05,
            -15,
            FactorTemplate("Funding Elevated", "bearish", 5, "Longs paying premium"),
            _pct(3),
        ),
    ),
)

LONG_SHORT_RATIO = MetricRules(
    metric="long_short_ratio",
    rules=(
        ScoreRule(
            lambda v: v > 2.0,
            -25,
            FactorTemplate("L/S Ratio High", "bearish", 7, "Too many longs - contrarian bearish"),
            _fixed(2),
        ),
        ScoreRule(
            lambda v: v < 0.5,
            25,
            FactorTemplate("L/S Ratio Low", "bullish", 7, "Too many shorts - contrarian bullish"),
            _fixed(2),
        ),
    ),
)

LIQUIDATIONS = MetricRules(
    metric="liquidations",
    rules=(
        ScoreRule(
            lambda v: v.longs > v.shorts * 2,
            20,
            FactorTemplate("Long Liquidations", "bullish", 6, "Long flush may signal bottom"),
            lambda v: f"${v.longs / 1e6:.0f}M",
        ),
        ScoreRule(
            lambda v: v.shorts > v.longs * 2,
            -20,
            FactorTemplate("Short Liquidations", "bearish", 6, "Short squeeze may be exhausting"),
            lambda v: f"${v.shorts / 1e6:.0f}M",
        ),
    ),
)

S2F_DEFLECTION = MetricRules(
    metric="s2f_deflection",
    rules=(
        ScoreRule(
            lambda v: v < -50,
            35,
            FactorTemplate("S2F Undervalued", "bullish", 8, "Price significantly below S2F model"),
            lambda v: f"{v:.0f}%",
        ),
        ScoreRule(
            lambda v: v > 50,
            -25,
            FactorTemplate("S2F Overvalued", "bearish", 6, "Price significantly above S2F model"),
            lambda v: f"+{v:.0f}%",
        ),
    ),
)

REALIZED_PRICE_RATIO = MetricRules(
    metric="realized_price_ratio",
    rules=(
        ScoreRule(
            lambda v: v < 0.8,
            30,
            FactorTemplate("Below Realized Price", "bullish", 7, "Market trading below on-chain cost basis"),
            _pct(0),
        ),
        ScoreRule(
            lambda v: v > 2.0,
            -20,
            FactorTemplate("Above Realized Price", "bearish", 5, "Market extended above cost basis"),
            _pct(0),
        ),
    ),
)

PUELL_MULTIPLE = MetricRules(
    metric="puell_multiple",
    rules=(
        ScoreRule(lambda v: v < 0.5, 30, FactorTemplate("Puell Buy Zone", "bullish", 7, "Miner stress indicates bottom"), _fixed(2)),
        ScoreRule(lambda v: v > 1.2, -20, FactorTemplate("Puell Sell Zone", "bearish", 5, "High miner distribution"), _fixed(2)),
    ),
)

FEAR_GREED = MetricRules(
    metric="fear_greed",
    rules=(
        ScoreRule(
            lambda v: v < 20,
            30,
            FactorTemplate("Extreme Fear", "bullish", 6, "Extreme fear indicates buying opportunity"),
            lambda v: f"{v:g}",
        ),
        ScoreRule(
            lambda v: v > 80,
            -30,
            FactorTemplate("Extreme Greed", "bearish", 6, "Extreme greed suggests overheated market"),
            lambda v: f"{v:g}",
        ),
    ),
)

WHALE_ACTIVITY = MetricRules(
    metric="whale_activity",
    rules=(
        ScoreRule(
            lambda v: v == "bullish",
            20,
            FactorTemplate("Whale Accumulation", "bullish", 5, "Smart money accumulating"),
            lambda _: "Accumulating",
        ),
        ScoreRule(
            lambda v: v == "bearish",
            -20,
            FactorTemplate("Whale Distribution", "bearish", 5, "Smart money distributing"),
            lambda _: "Distributing",
        ),
    ),
)


def analyze_technical(data: TechnicalInputs) -> CategoryScore:
    return score_category("Technical", [(RSI, data.rsi), (MACD, data.macd), (MA_CROSS, data.ma_cross)])


def analyze_onchain(data: OnChainInputs) -> CategoryScore:
    return score_category(
        "On-Chain",
        [
            (MVRV, data.mvrv),
            (SOPR, data.sopr),
            (NUPL, data.nupl),
            (EXCHANGE_NETFLOW, data.exchange_netflow),
            (NVT, data.nvt),
        ],
    )


def analyze_derivatives(data: DerivativesInputs) -> CategoryScore:
    return score_category(
        "Derivatives",
        [
            (FUNDING_RATE, data.funding_rate),
            (LONG_SHORT_RATIO, data.long_short_ratio),
            (LIQUIDATIONS, data.liquidations),
        ],
    )


def analyze_price_models(data: PriceModelInputs) -> CategoryScore:
    return score_category(
        "Price Models",
        [
            (S2F_DEFLECTION, data.s2f_deflection),
            (REALIZED_PRICE_RATIO, data.realized_price_ratio),
            (PUELL_MULTIPLE, data.puell_multiple),
        ],
    )


def analyze_sentiment(data: SentimentInputs) -> CategoryScore:
    return score_category("Sentiment", [(FEAR_GREED, data.fear_greed), (WHALE_ACTIVITY, data.whale_activity)])
