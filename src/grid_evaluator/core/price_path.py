"""
PricePathGenerator — Synthetic daily price trajectories.

Geometric Brownian motion on log-returns with:
- linear seasonality ramp over the projection
- a deliberate 2x volatility amplifier
- weak mean reversion toward the start price
- a hard floor on reported prices (70% of start by default)
"""

import math
from typing import Protocol

import numpy as np

from grid_evaluator.config import PathModelConfig
from grid_evaluator.core.models import PricePoint
from grid_evaluator.exceptions import InvalidInputError


class RandomSource(Protocol):
    """Anything that yields uniform floats in [0, 1): random.Random, numpy Generator."""

    def random(self) -> float: ...


def standard_normal(rng: RandomSource) -> float:
    """Box-Muller transform of two independent uniforms."""
    # u1 in (0, 1] keeps the logarithm finite
    u1 = 1.0 - float(rng.random())
    u2 = float(rng.random())
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


class PricePathGenerator:
    """
    Generates one synthetic price trajectory per call.

    Usage:
        generator = PricePathGenerator()
        path = generator.generate(45000.0, 90, 0.001, 0.02, rng=np.random.default_rng(7))
    """

    def __init__(self, config: PathModelConfig | None = None) -> None:
        self.config = config or PathModelConfig()

    def generate(
        self,
        start_price: float,
        days: int,
        daily_drift: float,
        daily_volatility: float,
        seasonality_factor: float = 1.0,
        rng: RandomSource | None = None,
    ) -> list[PricePoint]:
        """Return days + 1 points; point 0 is exactly start_price."""
        if not math.isfinite(start_price) or start_price <= 0:
            raise InvalidInputError("start_price must be positive")
        if days <= 0:
            raise InvalidInputError("days must be positive")
        if not math.isfinite(daily_volatility) or daily_volatility < 0:
            raise InvalidInputError("daily_volatility must be non-negative")
        if not math.isfinite(daily_drift):
            raise InvalidInputError("daily_drift must be finite")

        if rng is None:
            rng = np.random.default_rng()

        amplifier = self.config.volatility_amplifier
        reversion = self.config.mean_reversion_strength
        floor = start_price * self.config.price_floor_ratio

        path = [PricePoint(day=0, price=start_price)]
        price = start_price

        for day in range(1, days + 1):
            z = standard_normal(rng)
            seasonal_adj = 1 + (seasonality_factor - 1) * (day / days)
            log_return = daily_drift * seasonal_adj + daily_volatility * z * amplifier
            price = price * math.exp(log_return)

            deviation = (price - start_price) / start_price
            price = price * (1 - reversion * deviation)

            # Floor applies to the reported price; the walk itself continues
            path.append(PricePoint(day=day, price=max(price, floor)))

        return path


def generate_path(
    start_price: float,
    days: int,
    daily_drift: float,
    daily_volatility: float,
    seasonality_factor: float = 1.0,
    rng: RandomSource | None = None,
    config: PathModelConfig | None = None,
) -> list[PricePoint]:
    """Functional wrapper around PricePathGenerator.generate."""
    return PricePathGenerator(config).generate(
        start_price, days, daily_drift, daily_volatility, seasonality_factor, rng,
    )
