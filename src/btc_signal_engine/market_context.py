from __future__ import annotations

from typing import Sequence

import numpy as np

from .types import FundingContext, MarketContext, OpenInterestContext, PricePoint, VolumeContext

HOURS_24 = 24
HOURS_6 = 6


def _pct_change(current: float | None, previous: float | None) -> float:
    if current is None or previous is None or previous == 0:
        return 0.0
    return (current - previous) / previous * 100


def _funding(points: Sequence[PricePoint]) -> FundingContext:
    # stored as a fraction per interval, patterns compare in percent
    rates = [p.funding * 100 if p.funding is not None else None for p in points]
    current = rates[-1] if rates[-1] is not None else 0.0

    window = [r for r in rates[-HOURS_24:] if r is not None]
    avg24h = float(np.mean(window)) if window else 0.0

    velocity = 0.0
    if len(rates) > HOURS_6 and rates[-1] is not None and rates[-1 - HOURS_6] is not None:
        velocity = current - rates[-1 - HOURS_6]
    return FundingContext(current=current, avg24h=avg24h, velocity=velocity)


def _open_interest(points: Sequence[PricePoint]) -> OpenInterestContext:
    current = points[-1].oi
    change24h = _pct_change(current, points[-1 - HOURS_24].oi) if len(points) > HOURS_24 else 0.0
    change6h = _pct_change(current, points[-1 - HOURS_6].oi) if len(points) > HOURS_6 else 0.0
    return OpenInterestContext(current=current or 0.0, change24h=change24h, change6h=change6h)


def _volume(points: Sequence[PricePoint]) -> VolumeContext | None:
    current = points[-1].volume
    if current is None:
        return None
    window = [p.volume for p in points[-HOURS_24:] if p.volume is not None]
    avg = float(np.mean(window))
    return VolumeContext(current=current, avg24h=avg, ratio=current / avg if avg > 0 else 0.0)


def build_market_context(points: Sequence[PricePoint], current_price: float | None = None) -> MarketContext:
    """Derive funding, open-interest and volume context from hourly points.

    Short histories yield zero changes rather than an error; only an empty
    series is rejected.
    """
    if not points:
        raise ValueError("build_market_context requires at least one price point")

    return MarketContext(
        price_history=list(points),
        current_price=current_price if current_price is not None else points[-1].price,
        funding=_funding(points),
        oi=_open_interest(points),
        volume=_volume(points),
    )
