import pytest

from btc_signal_engine.market_context import build_market_context
from btc_signal_engine.types import PricePoint


def _points(n: int, volume: bool = True) -> list[PricePoint]:
    return [
        PricePoint(
            timestamp=i * 3_600_000,
            price=60000 + i,
            oi=100.0 + i,
            funding=0.0001,
            volume=(20.0 if i == n - 1 else 10.0) if volume else None,
        )
        for i in range(n)
    ]


def test_empty_points_are_rejected() -> None:
    with pytest.raises(ValueError):
        build_market_context([])


def test_funding_oi_and_volume_context() -> None:
    ctx = build_market_context(_points(30))

    assert ctx.current_price == 60029
    assert ctx.funding.current == pytest.approx(0.01)
    assert ctx.funding.avg24h == pytest.approx(0.01)
    assert ctx.funding.velocity == pytest.approx(0.0)
    assert ctx.oi.current == 129
    assert ctx.oi.change24h == pytest.approx((129 - 105) / 105 * 100)
    assert ctx.oi.change6h == pytest.approx((129 - 123) / 123 * 100)
    assert ctx.volume is not None
    assert ctx.volume.avg24h == pytest.approx(250 / 24)
    assert ctx.volume.ratio == pytest.approx(20 / (250 / 24))


def test_funding_velocity_over_six_points() -> None:
    points = _points(10)
    points[-7] = PricePoint(timestamp=points[-7].timestamp, price=points[-7].price, funding=0.0003)
    ctx = build_market_context(points)
    assert ctx.funding.velocity == pytest.approx(0.01 - 0.03)


def test_short_history_falls_back_to_zero_changes() -> None:
    ctx = build_market_context(_points(5), current_price=61000)
    assert ctx.current_price == 61000
    assert ctx.oi.change24h == 0
    assert ctx.oi.change6h == 0
    assert ctx.funding.velocity == 0


def test_missing_volume_gives_no_volume_context() -> None:
    assert build_market_context(_points(5, volume=False)).volume is None


def test_missing_latest_funding_has_no_velocity() -> None:
    points = _points(10)
    points[-7] = PricePoint(timestamp=points[-7].timestamp, price=points[-7].price, funding=0.0003)
    last = points[-1]
    points[-1] = PricePoint(timestamp=last.timestamp, price=last.price, oi=last.oi, funding=None, volume=last.volume)

    ctx = build_market_context(points)
    assert ctx.funding.current == 0.0
    assert ctx.funding.velocity == 0.0
