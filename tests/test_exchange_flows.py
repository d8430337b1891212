import pytest

from btc_signal_engine.exchange_flows import (
    analyze_exchange_flows,
    calculate_fund_flow_ratio,
    estimate_exchange_reserves,
    generate_exchange_flow_signals,
    summarize_exchange_flows,
)
from btc_signal_engine.metrics import ExchangeFlowData, ExchangeReserveEstimate, WhaleTransfer


def _transfers() -> list[WhaleTransfer]:
    return [
        WhaleTransfer("exchange_deposit", 600, to_type="Binance"),
        WhaleTransfer("exchange_deposit", 500, to_type="Binance"),
        WhaleTransfer("exchange_withdrawal", 2000, from_type="Coinbase"),
        WhaleTransfer("exchange_withdrawal", 300, from_type="Kraken"),
        WhaleTransfer("exchange_withdrawal", 400, from_type="OKX"),
        WhaleTransfer("transfer", 5000),
    ]


def test_analyze_exchange_flows() -> None:
    flows = analyze_exchange_flows(_transfers())

    assert flows.inflow24h == 1100
    assert flows.outflow24h == 2700
    assert flows.netflow24h == -1600
    assert flows.whale_ratio == 1.0
    assert flows.largest_inflow == 600
    assert flows.largest_outflow == 2000
    assert flows.flow_signal == "bullish"
    assert flows.flow_strength == 66
    assert flows.analysis.startswith("Strong net outflows (-1600 BTC).")
    assert flows.analysis.endswith("High whale dominance (100%) - large players driving flows.")
    assert [(e.name, e.trend) for e in flows.exchanges] == [
        ("Coinbase", "accumulation"),
        ("Binance", "distribution"),
        ("OKX", "accumulation"),
        ("Kraken", "accumulation"),
    ]


def test_no_transfers_is_balanced() -> None:
    flows = analyze_exchange_flows([])
    assert flows.netflow24h == 0
    assert flows.whale_ratio == 0
    assert flows.flow_signal == "neutral"
    assert flows.exchanges == []


def test_flow_signals_stack_netflow_whales_and_breadth() -> None:
    result = generate_exchange_flow_signals(analyze_exchange_flows(_transfers()))
    assert result.signal == "bullish"
    assert result.weight == 0.7
    assert result.factors == [
        "Strong exchange outflows",
        "Whale-driven outflows",
        "Multiple exchanges seeing outflows (Coinbase, OKX, Kraken)",
    ]


def test_moderate_inflows_are_bearish_with_base_weight() -> None:
    result = generate_exchange_flow_signals(ExchangeFlowData(netflow24h=300, inflow24h=350, outflow24h=50))
    assert result.signal == "bearish"
    assert result.weight == 0.5
    assert result.factors == ["Moderate exchange inflows"]


def test_reserve_estimates_from_baseline_and_previous() -> None:
    flows = analyze_exchange_flows(_transfers())
    estimates = {e.exchange: e for e in estimate_exchange_reserves(flows)}

    assert estimates["Binance"].estimated_btc == 581100
    assert estimates["Binance"].change24h == pytest.approx(0.19)
    assert estimates["Binance"].confidence == "medium"
    assert estimates["Gemini"].estimated_btc == 50000
    assert estimates["Gemini"].confidence == "low"

    previous = [ExchangeReserveEstimate("Binance", 600000, 0.0, "medium")]
    updated = {e.exchange: e for e in estimate_exchange_reserves(flows, previous)}
    assert updated["Binance"].estimated_btc == 601100


def test_reserve_estimates_sorted_descending() -> None:
    estimates = estimate_exchange_reserves(analyze_exchange_flows([]))
    values = [e.estimated_btc for e in estimates]
    assert values == sorted(values, reverse=True)
    assert len(estimates) == 8


def test_fund_flow_ratio_bands() -> None:
    assert calculate_fund_flow_ratio(100, 0).interpretation == "Insufficient data"
    assert calculate_fund_flow_ratio(40, 100).interpretation.startswith("High exchange activity")
    assert calculate_fund_flow_ratio(20, 100).interpretation.startswith("Normal exchange activity")
    assert calculate_fund_flow_ratio(10, 100).ratio == 0.1


def test_summary_headline() -> None:
    summary = summarize_exchange_flows(analyze_exchange_flows(_transfers()))
    assert summary.headline == "Accumulation: 1600 BTC net outflow"
    assert summary.bias == "bullish"
