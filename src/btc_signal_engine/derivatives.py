from __future__ import annotations

from .metrics import DerivativesData, FundingRate, OpenInterest, SqueezeAlert

HIGH_OPEN_INTEREST_USD = 20_000_000_000


def analyze_squeeze_risk(
    funding: FundingRate | None,
    open_interest: OpenInterest | None,
    price_change_24h: float,
) -> SqueezeAlert:
    reasoning: list[str] = []
    long_score = 0
    short_score = 0

    if funding is not None:
        rate = funding.funding_rate
        pct = rate * 100
        if rate > 0.001:
            long_score += 2
            reasoning.append(f"High funding rate ({pct:.3f}%) - longs overleveraged")
        elif rate > 0.0005:
            long_score += 1
            reasoning.append(f"Elevated funding rate ({pct:.3f}%)")
        elif rate < -0.001:
            short_score += 2
            reasoning.append(f"Negative funding rate ({pct:.3f}%) - shorts overleveraged")
        elif rate < -0.0005:
            short_score += 1
            reasoning.append(f"Below-average funding rate ({pct:.3f}%)")

    if price_change_24h > 5:
        short_score += 1
        reasoning.append(f"Strong rally (+{price_change_24h:.1f}%) may trigger short liquidations")
    elif price_change_24h < -5:
        long_score += 1
        reasoning.append(f"Sharp drop ({price_change_24h:.1f}%) may trigger long liquidations")

    if open_interest is not None and open_interest.open_interest_value > HIGH_OPEN_INTEREST_USD:
        reasoning.append(
            f"High open interest (${open_interest.open_interest_value / 1e9:.1f}B) increases squeeze potential"
        )
        # only amplifies a side that already leads
        if long_score > short_score:
            long_score += 1
        elif short_score > long_score:
            short_score += 1

    if long_score >= 3:
        return SqueezeAlert("long_squeeze", "high", reasoning)
    if long_score >= 2:
        return SqueezeAlert("long_squeeze", "medium", reasoning)
    if short_score >= 3:
        return SqueezeAlert("short_squeeze", "high", reasoning)
    if short_score >= 2:
        return SqueezeAlert("short_squeeze", "medium", reasoning)
    if long_score >= 1:
        return SqueezeAlert("long_squeeze", "low", reasoning)
    if short_score >= 1:
        return SqueezeAlert("short_squeeze", "low", reasoning)
    return SqueezeAlert("none", "low", reasoning)


def build_derivatives_data(
    funding: FundingRate | None,
    open_interest: OpenInterest | None,
    price_change_24h: float,
) -> DerivativesData:
    return DerivativesData(
        funding_rate=funding,
        open_interest=open_interest,
        squeeze_alert=analyze_squeeze_risk(funding, open_interest, price_change_24h),
    )
