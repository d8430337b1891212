from __future__ import annotations

from pathlib import Path

import pandas as pd

from .types import OHLCV, PricePoint

OHLCV_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]
POINT_COLUMNS = ["timestamp", "price"]
POINT_OPTIONAL = ["oi", "funding", "volume"]


def _read(csv_path: Path, required: list[str]) -> pd.DataFrame:
    if not csv_path.exists():
        raise FileNotFoundError(
            f"Price file not found at {csv_path}. Expected CSV columns: {','.join(required)}"
        )
    df = pd.read_csv(csv_path)
    missing = set(required) - set(df.columns)
    if missing:
        raise ValueError(f"{csv_path} is missing columns {sorted(missing)}")
    if df.empty:
        raise ValueError(f"No rows found in {csv_path}")

    df["timestamp"] = df["timestamp"].astype("int64")
    if not df["timestamp"].diff().iloc[1:].gt(0).all():
        raise ValueError(f"Timestamps in {csv_path} must be strictly increasing")
    return df


def _optional(value: object) -> float | None:
    return None if pd.isna(value) else float(value)


class OhlcvRepository:
    def __init__(self, csv_path: str | Path) -> None:
        self.csv_path = Path(csv_path)

    def load(self) -> list[OHLCV]:
        df = _read(self.csv_path, OHLCV_COLUMNS)
        df[OHLCV_COLUMNS[1:]] = df[OHLCV_COLUMNS[1:]].astype(float)
        return [
            OHLCV(
                timestamp=int(row.timestamp),
                open=row.open,
                high=row.high,
                low=row.low,
                close=row.close,
                volume=row.volume,
            )
            for row in df[OHLCV_COLUMNS].itertuples(index=False)
        ]


class PricePointRepository:
    """Hourly price/OI/funding points; the last three columns may be absent or blank."""

    def __init__(self, csv_path: str | Path) -> None:
        self.csv_path = Path(csv_path)

    def load(self) -> list[PricePoint]:
        df = _read(self.csv_path, POINT_COLUMNS)
        for col in POINT_OPTIONAL:
            if col not in df.columns:
                df[col] = float("nan")
        df["price"] = df["price"].astype(float)
        return [
            PricePoint(
                timestamp=int(row.timestamp),
                price=row.price,
                oi=_optional(row.oi),
                funding=_optional(row.funding),
                volume=_optional(row.volume),
            )
            for row in df[POINT_COLUMNS + POINT_OPTIONAL].itertuples(index=False)
        ]
