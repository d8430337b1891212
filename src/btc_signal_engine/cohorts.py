from __future__ import annotations

from .metrics import BiasScore, CohortMetrics, LthSthRatio, MetricSignal
from .onchain import OnChainSummary
from .rules import score_signals


def calculate_lth_sth_ratio(lth_btc: float, sth_btc: float) -> LthSthRatio:
    if sth_btc == 0:
        return LthSthRatio(ratio=0.0, signal="neutral", description="Insufficient data for LTH/STH ratio")

    ratio = lth_btc / sth_btc
    if ratio > 2.5:
        return LthSthRatio(
            round(ratio, 2), "bullish", "Very high LTH/STH ratio. Strong holder conviction, coins moving off market."
        )
    if ratio > 2.0:
        return LthSthRatio(round(ratio, 2), "bullish", "High LTH/STH ratio. Long-term holders dominating supply.")
    if ratio < 1.5:
        return LthSthRatio(round(ratio, 2), "bearish", "Low LTH/STH ratio. More short-term speculation, weaker hands.")
    return LthSthRatio(round(ratio, 2), "neutral", "Moderate LTH/STH ratio. Balanced holder base.")


def analyze_cohort_metrics(metrics: CohortMetrics) -> list[MetricSignal]:
    signals: list[MetricSignal] = []

    holders = metrics.holder_cohorts
    if holders is not None:
        lth = holders.lth_supply
        if lth.percentage > 75:
            signals.append(
                MetricSignal("bullish", 0.7, f"High LTH supply ({lth.percentage:.1f}%) - strong hands dominating", "lth")
            )
        elif lth.percentage < 65:
            signals.append(
                MetricSignal("bearish", 0.5, f"Low LTH supply ({lth.percentage:.1f}%) - weaker holder base", "lth")
            )

        if lth.trend == "accumulating" and lth.change30d > 1:
            signals.append(
                MetricSignal("bullish", 0.6, "LTH accumulation trend - coins moving to strong hands", "lth_trend")
            )
        elif lth.trend == "distributing" and lth.change30d < -1:
            signals.append(
                MetricSignal("bearish", 0.6, "LTH distribution trend - long-term holders taking profits", "lth_trend")
            )

        ratio = holders.lth_sth_ratio
        if ratio.signal == "bullish":
            signals.append(
                MetricSignal(
                    "bullish", 0.7, f"Strong LTH/STH ratio ({ratio.ratio:.2f}) - holder conviction high", "lth_sth_ratio"
                )
            )
        elif ratio.signal == "bearish":
            signals.append(
                MetricSignal(
                    "bearish", 0.5, f"Weak LTH/STH ratio ({ratio.ratio:.2f}) - speculative dominance", "lth_sth_ratio"
                )
            )

    liquidity = metrics.supply_liquidity
    if liquidity is not None:
        pct = liquidity.illiquid_percentage
        if liquidity.signal == "bullish":
            signals.append(
                MetricSignal("bullish", 0.6, f"High illiquid supply ({pct:.1f}%) - tight supply", "liquidity")
            )
        elif liquidity.signal == "bearish":
            signals.append(
                MetricSignal("bearish", 0.4, f"Lower illiquid supply ({pct:.1f}%) - more selling pressure", "liquidity")
            )

    tiers = metrics.whale_cohorts
    if tiers is not None:
        if tiers.whale.trend == "accumulating" and tiers.humpback.trend == "accumulating":
            signals.append(MetricSignal("bullish", 0.8, "Whale and institutional cohorts accumulating", "whales"))
        elif tiers.whale.trend == "distributing" or tiers.humpback.trend == "distributing":
            signals.append(MetricSignal("bearish", 0.7, "Whale cohorts distributing", "whales"))

        # retail is read contrarian
        if tiers.shrimp.trend == "distributing" and tiers.crab.trend == "distributing":
            signals.append(MetricSignal("bullish", 0.4, "Small holders distributing (contrarian bullish)", "retail"))
        elif tiers.shrimp.trend == "accumulating" and tiers.crab.trend == "accumulating":
            signals.append(MetricSignal("bearish", 0.3, "Small holders accumulating (potential top signal)", "retail"))

    return signals


def calculate_cohort_score(signals: list[MetricSignal]) -> BiasScore:
    return score_signals(signals)


def summarize_cohorts(metrics: CohortMetrics) -> OnChainSummary:
    signals = analyze_cohort_metrics(metrics)
    result = calculate_cohort_score(signals)

    if result.score > 0.5:
        headline = "Cohort analysis strongly bullish"
    elif result.score > 0.2:
        headline = "Cohort analysis lean bullish"
    elif result.score < -0.5:
        headline = "Cohort analysis strongly bearish"
    elif result.score < -0.2:
        headline = "Cohort analysis lean bearish"
    else:
        headline = "Cohort analysis neutral"

    directional = sorted((s for s in signals if s.signal != "neutral"), key=lambda s: s.weight, reverse=True)
    return OnChainSummary(headline=headline, bias=result.bias, top_signals=[s.reason for s in directional[:3]])
