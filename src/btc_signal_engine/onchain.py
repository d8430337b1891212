from __future__ import annotations

from dataclasses import dataclass, field

from .metrics import BiasScore, MetricSignal, OnChainMetrics
from .rules import score_signals
from .types import Bias

NUPL_SIGNALS: dict[str, tuple[Bias, float, str]] = {
    "capitulation": ("bullish", 0.9, "NUPL capitulation ({pct}%) - historically strong buy"),
    "hope": ("bullish", 0.5, "NUPL hope phase ({pct}%) - early recovery"),
    "belief": ("bullish", 0.3, "NUPL belief phase ({pct}%) - bull market"),
    "euphoria": ("bearish", 0.8, "NUPL euphoria ({pct}%) - historically strong sell"),
}


@dataclass(frozen=True)
class OnChainSummary:
    headline: str
    bias: Bias
    top_signals: list[str] = field(default_factory=list)


def analyze_onchain_metrics(metrics: OnChainMetrics) -> list[MetricSignal]:
    signals: list[MetricSignal] = []

    nvt = metrics.nvt
    if nvt is not None and nvt.ratio > 0:
        if nvt.signal == "undervalued":
            signals.append(
                MetricSignal("bullish", 0.6, f"NVT undervalued ({nvt.ratio:.1f}) - network utility exceeds valuation", "nvt")
            )
        elif nvt.signal == "overvalued":
            signals.append(MetricSignal("bearish", 0.6, f"NVT overvalued ({nvt.ratio:.1f}) - speculative premium", "nvt"))
        else:
            signals.append(MetricSignal("neutral", 0.2, f"NVT fair ({nvt.ratio:.1f})", "nvt"))

    puell = metrics.puell_multiple
    if puell is not None and puell.value > 0:
        if puell.zone == "buy":
            signals.append(
                MetricSignal("bullish", 0.7, f"Puell Multiple buy zone ({puell.value:.2f}) - miner capitulation", "puell")
            )
        elif puell.zone == "sell":
            signals.append(
                MetricSignal("bearish", 0.7, f"Puell Multiple sell zone ({puell.value:.2f}) - miner distribution", "puell")
            )

    s2f = metrics.stock_to_flow
    if s2f is not None and s2f.ratio > 0:
        if s2f.deflection < -30:
            signals.append(
                MetricSignal("bullish", 0.4, f"S2F model undervalued ({s2f.deflection:.0f}% below model)", "s2f")
            )
        elif s2f.deflection > 30:
            signals.append(
                MetricSignal("bearish", 0.4, f"S2F model overvalued ({s2f.deflection:.0f}% above model)", "s2f")
            )

    ssr = metrics.ssr
    if ssr is not None and ssr.ratio > 0:
        if ssr.trend == "bullish":
            signals.append(
                MetricSignal("bullish", 0.6, f"SSR bullish ({ssr.ratio:.1f}) - high stablecoin buying power", "ssr")
            )
        elif ssr.trend == "bearish":
            signals.append(MetricSignal("bearish", 0.5, f"SSR bearish ({ssr.ratio:.1f}) - limited dry powder", "ssr"))

    reserve = metrics.reserve_risk
    if reserve is not None and reserve.value > 0:
        if reserve.zone == "opportunity":
            signals.append(
                MetricSignal(
                    "bullish", 0.7, f"Reserve Risk opportunity ({reserve.value:.4f}) - accumulation zone", "reserve_risk"
                )
            )
        elif reserve.zone == "risk":
            signals.append(
                MetricSignal(
                    "bearish", 0.6, f"Reserve Risk elevated ({reserve.value:.4f}) - consider profit-taking", "reserve_risk"
                )
            )

    # optimism carries no signal
    nupl = metrics.nupl
    if nupl is not None and nupl.zone in NUPL_SIGNALS:
        bias, weight, template = NUPL_SIGNALS[nupl.zone]
        signals.append(MetricSignal(bias, weight, template.format(pct=f"{nupl.value * 100:.0f}"), "nupl"))

    return signals


def calculate_onchain_score(signals: list[MetricSignal]) -> BiasScore:
    return score_signals(signals)


def summarize_onchain(metrics: OnChainMetrics) -> OnChainSummary:
    signals = analyze_onchain_metrics(metrics)
    result = calculate_onchain_score(signals)

    if result.score > 0.5:
        headline = "On-chain metrics strongly bullish"
    elif result.score > 0.2:
        headline = "On-chain metrics lean bullish"
    elif result.score < -0.5:
        headline = "On-chain metrics strongly bearish"
    elif result.score < -0.2:
        headline = "On-chain metrics lean bearish"
    else:
        headline = "On-chain metrics neutral"

    directional = sorted((s for s in signals if s.signal != "neutral"), key=lambda s: s.weight, reverse=True)
    return OnChainSummary(headline=headline, bias=result.bias, top_signals=[s.reason for s in directional[:3]])
