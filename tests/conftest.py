"""Shared test fixtures and helpers for grid evaluator tests."""

import numpy as np
import pandas as pd
import pytest

from grid_evaluator.core.models import PriceCandle


def _daily_stamps(n: int, start: str) -> pd.DatetimeIndex:
    return pd.date_range(start=start, periods=n, freq="D", tz="UTC")


def make_candles(
    n: int = 400,
    start_price: float = 45000.0,
    volatility: float = 0.02,
    seed: int = 42,
    start: str = "2023-01-01",
    with_wicks: bool = True,
) -> list[PriceCandle]:
    """Generate synthetic daily candles with realistic price movement."""
    rng = np.random.RandomState(seed)
    prices = [start_price]
    for _ in range(n - 1):
        change = rng.normal(0, volatility)
        prices.append(prices[-1] * (1 + change))

    candles = []
    for stamp, close in zip(_daily_stamps(n, start), prices):
        high = close * (1 + abs(rng.normal(0, volatility / 2)))
        low = close * (1 - abs(rng.normal(0, volatility / 2)))
        candles.append(
            PriceCandle(
                time=int(stamp.value // 1_000_000),
                price=close,
                timestamp=stamp.isoformat(),
                high=high if with_wicks else None,
                low=low if with_wicks else None,
                volume=float(rng.uniform(100, 1000)),
            )
        )
    return candles


def make_ranging_candles(
    n: int = 400,
    center: float = 45000.0,
    spread: float = 800.0,
    seed: int = 42,
    start: str = "2023-01-01",
) -> list[PriceCandle]:
    """Generate candles oscillating within a tight range (ideal for grid)."""
    rng = np.random.RandomState(seed)
    candles = []
    prev_close = center

    for stamp in _daily_stamps(n, start):
        target = center + rng.uniform(-spread, spread)
        close = prev_close + (target - prev_close) * 0.3
        candles.append(
            PriceCandle(
                time=int(stamp.value // 1_000_000),
                price=close,
                timestamp=stamp.isoformat(),
                high=close + abs(rng.normal(0, spread * 0.1)),
                low=close - abs(rng.normal(0, spread * 0.1)),
            )
        )
        prev_close = close

    return candles


def make_series_candles(prices: list[float], start: str = "2023-01-01") -> list[PriceCandle]:
    """Close-only candles for an explicit price series."""
    return [
        PriceCandle(time=int(stamp.value // 1_000_000), price=float(p), timestamp=stamp.isoformat())
        for stamp, p in zip(_daily_stamps(len(prices), start), prices)
    ]


@pytest.fixture
def candles_400():
    return make_candles(n=400)


@pytest.fixture
def ranging_candles_400():
    return make_ranging_candles(n=400)


@pytest.fixture
def short_history():
    return make_candles(n=60)
