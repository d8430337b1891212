from __future__ import annotations

from .metrics import MetricSignal, ModelRatings, PriceModels, ValuationScore

# (display name, weight, rating -> score in [-100, 100]); negative means undervalued
MODEL_SCALES: dict[str, tuple[str, float, dict[str, int]]] = {
    "s2f": ("S2F", 0.15, {"undervalued": -60, "fair": 0, "overvalued": 60, "extreme_overvalued": 90}),
    "thermocap": ("Thermocap", 0.10, {"undervalued": -70, "fair": 0, "overheated": 60, "extreme": 95}),
    "mvrv": ("MVRV", 0.20, {"undervalued": -75, "fair": 0, "overvalued": 65, "extreme": 90}),
    "nupl": ("NUPL", 0.20, {"capitulation": -90, "hope": -40, "optimism": 0, "belief": 50, "euphoria": 90}),
    "puell": ("Puell", 0.10, {"buy_zone": -70, "neutral": 0, "sell_zone": 60, "extreme": 85}),
    "mvrv_z": (
        "MVRV Z-Score",
        0.15,
        {"bottom_zone": -85, "accumulation": -40, "fair": 0, "distribution": 60, "top_zone": 95},
    ),
    "rhodl": ("RHODL", 0.05, {"accumulation": -50, "neutral": 0, "distribution": 50, "speculative_top": 80}),
    "delta_cap": ("Delta Cap", 0.05, {"extreme_undervalued": -90, "undervalued": -60, "fair": 0, "overvalued": 60}),
}


def _rating(score: int) -> str:
    if score < -70:
        return "extreme_undervalued"
    if score < -40:
        return "undervalued"
    if score < -15:
        return "slightly_undervalued"
    if score <= 15:
        return "fair"
    if score <= 40:
        return "slightly_overvalued"
    if score <= 70:
        return "overvalued"
    return "extreme_overvalued"


def calculate_overall_valuation(ratings: ModelRatings) -> ValuationScore:
    """Weighted consensus of the valuation models that reported a rating.

    Models without a rating are left out of both the weighted average and the
    agreement count.
    """
    scored: list[tuple[str, int, float]] = []
    for attr, (name, weight, scale) in MODEL_SCALES.items():
        value = getattr(ratings, attr)
        if value is None:
            continue
        scored.append((name, scale.get(value, 0), weight))

    if not scored:
        return ValuationScore(
            score=0, rating="fair", confidence=0, model_agreement=0, summary="No valuation models available."
        )

    total_weight = sum(w for _, _, w in scored)
    score = round(sum(s * w for _, s, w in scored) / total_weight)
    rating = _rating(score)

    undervalued = [name for name, s, _ in scored if s < -20]
    overvalued = [name for name, s, _ in scored if s > 20]
    neutral = [name for name, s, _ in scored if -20 <= s <= 20]
    agreement = round(max(len(undervalued), len(overvalued), len(neutral)) / len(scored) * 100)

    summaries = {
        "extreme_undervalued": f"Extreme undervaluation across {len(undervalued)} models. Historical buying opportunity.",
        "undervalued": f"Undervalued per {len(undervalued)} models. Good accumulation zone.",
        "slightly_undervalued": "Slightly undervalued. Reasonable entry point for long-term holders.",
        "fair": "Fair valuation. Market near equilibrium across most models.",
        "slightly_overvalued": "Slightly overvalued. Consider taking partial profits.",
        "overvalued": f"Overvalued per {len(overvalued)} models. Distribution zone - reduce exposure.",
        "extreme_overvalued": f"Extreme overvaluation across {len(overvalued)} models. Historical cycle top levels.",
    }

    # undervalued models are bullish for a buyer, overvalued ones bearish
    return ValuationScore(
        score=score,
        rating=rating,
        confidence=min(100, agreement + 10),
        model_agreement=agreement,
        bullish_models=undervalued,
        bearish_models=overvalued,
        summary=summaries[rating],
    )


def generate_price_model_signals(models: PriceModels) -> list[MetricSignal]:
    signals: list[MetricSignal] = []

    if models.s2f_multiple is not None:
        deflection = models.s2f_deflection if models.s2f_deflection is not None else 0.0
        if models.s2f_multiple < 0.5:
            signals.append(
                MetricSignal("bullish", 0.6, f"S2F: {deflection:.0f}% below model - deep undervaluation", "s2f")
            )
        elif models.s2f_multiple > 2.0:
            signals.append(
                MetricSignal("bearish", 0.7, f"S2F: {deflection:.0f}% above model - extreme overvaluation", "s2f")
            )

    thermo = models.thermocap_multiple
    if thermo is not None:
        if thermo < 10:
            signals.append(
                MetricSignal("bullish", 0.7, f"Thermocap: {thermo:g}x - deep value vs miner revenue", "thermocap")
            )
        elif thermo > 50:
            signals.append(MetricSignal("bearish", 0.8, f"Thermocap: {thermo:g}x - extreme overheating", "thermocap"))

    if models.nupl_zone == "capitulation":
        signals.append(MetricSignal("bullish", 0.9, "NUPL: Capitulation zone - market in net loss", "nupl"))
    elif models.nupl_zone == "euphoria":
        signals.append(MetricSignal("bearish", 0.9, "NUPL: Euphoria zone - extreme greed", "nupl"))

    puell = models.puell_multiple
    if puell is not None:
        if puell < 0.5:
            signals.append(MetricSignal("bullish", 0.8, f"Puell: {puell:.2f} - miner capitulation", "puell"))
        elif puell > 4.0:
            signals.append(MetricSignal("bearish", 0.7, f"Puell: {puell:.2f} - extreme miner profit-taking", "puell"))

    z = models.mvrv_z_score
    if z is not None:
        if z < -0.5:
            signals.append(MetricSignal("bullish", 0.8, f"MVRV Z-Score: {z:.2f} - bottom zone", "mvrv_z"))
        elif z > 7.0:
            signals.append(MetricSignal("bearish", 0.9, f"MVRV Z-Score: {z:.2f} - top zone", "mvrv_z"))

    overall = models.overall_valuation
    if overall is not None:
        if overall.score < -50:
            signals.append(
                MetricSignal("bullish", 1.0, f"Overall valuation: {overall.rating} - strong buy", "overall")
            )
        elif overall.score > 50:
            signals.append(
                MetricSignal("bearish", 1.0, f"Overall valuation: {overall.rating} - strong sell", "overall")
            )

    return signals
