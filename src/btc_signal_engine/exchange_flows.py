from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .metrics import (
    ExchangeFlow,
    ExchangeFlowData,
    ExchangeFlowSignal,
    ExchangeReserveEstimate,
    WhaleTransfer,
)
from .types import Bias

TRACKED_EXCHANGES = ("Binance", "Coinbase", "Kraken", "Bitfinex", "OKX", "Bybit", "HTX", "Gemini")

# Baseline BTC reserves used when no previous estimate exists.
ESTIMATED_RESERVES: dict[str, float] = {
    "Binance": 580000,
    "Coinbase": 420000,
    "Bitfinex": 180000,
    "Kraken": 140000,
    "OKX": 130000,
    "HTX": 80000,
    "Bybit": 70000,
    "Gemini": 50000,
}

EXCHANGE_TREND_BTC = 100
WHALE_TOP_N = 10


@dataclass(frozen=True)
class FundFlowRatio:
    ratio: float
    interpretation: str


@dataclass(frozen=True)
class ExchangeFlowSummary:
    headline: str
    bias: Bias
    details: str


def _exchange_trend(inflow: float, outflow: float) -> str:
    if outflow - inflow > EXCHANGE_TREND_BTC:
        return "accumulation"
    if inflow - outflow > EXCHANGE_TREND_BTC:
        return "distribution"
    return "neutral"


def analyze_exchange_flows(transfers: Sequence[WhaleTransfer]) -> ExchangeFlowData:
    per_exchange = {name: [0.0, 0.0] for name in TRACKED_EXCHANGES}
    inflows: list[float] = []
    outflows: list[float] = []

    for t in transfers:
        if t.type == "exchange_deposit":
            inflows.append(t.amount_btc)
            if t.to_type in per_exchange:
                per_exchange[t.to_type][0] += t.amount_btc
        elif t.type == "exchange_withdrawal":
            outflows.append(t.amount_btc)
            if t.from_type in per_exchange:
                per_exchange[t.from_type][1] += t.amount_btc

    total_in = sum(inflows)
    total_out = sum(outflows)
    netflow = total_in - total_out

    inflows.sort(reverse=True)
    outflows.sort(reverse=True)
    top_total = sum(inflows[:WHALE_TOP_N]) + sum(outflows[:WHALE_TOP_N])
    volume = total_in + total_out
    whale_ratio = top_total / volume if volume > 0 else 0.0

    exchanges = [
        ExchangeFlow(
            name=name,
            inflow24h=inflow,
            outflow24h=outflow,
            netflow=inflow - outflow,
            trend=_exchange_trend(inflow, outflow),
        )
        for name, (inflow, outflow) in per_exchange.items()
        if inflow > 0 or outflow > 0
    ]
    exchanges.sort(key=lambda e: e.inflow24h + e.outflow24h, reverse=True)

    if netflow < -1000:
        signal: Bias = "bullish"
        strength = min(100.0, 50 + abs(netflow) / 100)
        analysis = (
            f"Strong net outflows (-{abs(netflow):.0f} BTC). "
            "Coins moving to cold storage signals accumulation."
        )
    elif netflow < -200:
        signal = "bullish"
        strength = 60.0
        analysis = f"Net outflows (-{abs(netflow):.0f} BTC). Mild accumulation signal."
    elif netflow > 1000:
        signal = "bearish"
        strength = min(100.0, 50 + netflow / 100)
        analysis = (
            f"Strong net inflows (+{netflow:.0f} BTC). "
            "Large deposits may indicate selling pressure ahead."
        )
    elif netflow > 200:
        signal = "bearish"
        strength = 40.0
        analysis = f"Net inflows (+{netflow:.0f} BTC). Mild distribution signal."
    else:
        signal = "neutral"
        strength = 50.0
        analysis = "Balanced exchange flows. No strong directional signal."

    if whale_ratio > 0.8:
        analysis += f" High whale dominance ({whale_ratio * 100:.0f}%) - large players driving flows."

    return ExchangeFlowData(
        netflow24h=netflow,
        inflow24h=total_in,
        outflow24h=total_out,
        exchanges=exchanges,
        whale_ratio=whale_ratio,
        largest_inflow=inflows[0] if inflows else 0.0,
        largest_outflow=outflows[0] if outflows else 0.0,
        flow_signal=signal,
        flow_strength=strength,
        analysis=analysis,
    )


def generate_exchange_flow_signals(flows: ExchangeFlowData) -> ExchangeFlowSignal:
    factors: list[str] = []
    score = 0.0

    if flows.netflow24h < -1000:
        score += 2
        factors.append("Strong exchange outflows")
    elif flows.netflow24h < -200:
        score += 1
        factors.append("Moderate exchange outflows")
    elif flows.netflow24h > 1000:
        score -= 2
        factors.append("Strong exchange inflows")
    elif flows.netflow24h > 200:
        score -= 1
        factors.append("Moderate exchange inflows")

    # whale dominance amplifies whichever side already leads
    if flows.whale_ratio > 0.8:
        if score > 0:
            score += 0.5
            factors.append("Whale-driven outflows")
        elif score < 0:
            score -= 0.5
            factors.append("Whale-driven inflows")

    accumulating = [e.name for e in flows.exchanges if e.trend == "accumulation"]
    distributing = [e.name for e in flows.exchanges if e.trend == "distribution"]
    if len(accumulating) >= 3:
        score += 1
        factors.append(f"Multiple exchanges seeing outflows ({', '.join(accumulating)})")
    elif len(distributing) >= 3:
        score -= 1
        factors.append(f"Multiple exchanges seeing inflows ({', '.join(distributing)})")

    signal: Bias = "neutral"
    if score >= 1:
        signal = "bullish"
    elif score <= -1:
        signal = "bearish"

    total = flows.inflow24h + flows.outflow24h
    weight = 0.5
    if total > 5000:
        weight = 0.8
    elif total > 2000:
        weight = 0.7
    elif total > 500:
        weight = 0.6

    return ExchangeFlowSignal(signal=signal, weight=weight, factors=factors)


def estimate_exchange_reserves(
    flows: ExchangeFlowData,
    previous: Sequence[ExchangeReserveEstimate] | None = None,
) -> list[ExchangeReserveEstimate]:
    by_name = {e.name: e for e in flows.exchanges}
    prev_by_name = {r.exchange: r for r in previous or ()}

    estimates: list[ExchangeReserveEstimate] = []
    for exchange, baseline in ESTIMATED_RESERVES.items():
        flow = by_name.get(exchange)
        net_change = flow.netflow if flow is not None else 0.0

        prev = prev_by_name.get(exchange)
        prev_btc = prev.estimated_btc if prev is not None and prev.estimated_btc else baseline

        estimated = prev_btc + net_change
        change = (estimated - prev_btc) / prev_btc * 100 if prev_btc > 0 else 0.0
        has_flow = flow is not None and (flow.inflow24h > 0 or flow.outflow24h > 0)
        estimates.append(
            ExchangeReserveEstimate(
                exchange=exchange,
                estimated_btc=round(estimated),
                change24h=round(change, 2),
                confidence="medium" if has_flow else "low",
            )
        )

    estimates.sort(key=lambda r: r.estimated_btc, reverse=True)
    return estimates


def calculate_fund_flow_ratio(exchange_volume: float, total_onchain_volume: float) -> FundFlowRatio:
    if total_onchain_volume <= 0:
        return FundFlowRatio(ratio=0.0, interpretation="Insufficient data")

    ratio = exchange_volume / total_onchain_volume
    if ratio > 0.3:
        interpretation = "High exchange activity relative to on-chain transfers. Speculative trading dominant."
    elif ratio > 0.15:
        interpretation = "Normal exchange activity. Balanced market conditions."
    else:
        interpretation = "Low exchange activity. HODLing behavior dominant."
    return FundFlowRatio(ratio=round(ratio, 3), interpretation=interpretation)


def summarize_exchange_flows(flows: ExchangeFlowData) -> ExchangeFlowSummary:
    if flows.flow_signal == "bullish":
        headline = f"Accumulation: {abs(flows.netflow24h):.0f} BTC net outflow"
    elif flows.flow_signal == "bearish":
        headline = f"Distribution: {flows.netflow24h:.0f} BTC net inflow"
    else:
        headline = "Exchange flows balanced"
    return ExchangeFlowSummary(headline=headline, bias=flows.flow_signal, details=flows.analysis)
