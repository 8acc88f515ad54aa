"""Core evaluation components — data models, numeric helpers, price-path generator."""

from grid_evaluator.core.models import (
    BalancePoint,
    GridLevel,
    GridParameters,
    LevelSide,
    OpenPosition,
    PriceCandle,
    PricePoint,
    SimulationResult,
    candles_from_dataframe,
    candles_to_dataframe,
    path_from_prices,
    validate_candle_prices,
)
from grid_evaluator.core.price_path import (
    PricePathGenerator,
    RandomSource,
    generate_path,
)

__all__ = [
    "BalancePoint",
    "GridLevel",
    "GridParameters",
    "LevelSide",
    "OpenPosition",
    "PriceCandle",
    "PricePoint",
    "SimulationResult",
    "candles_from_dataframe",
    "candles_to_dataframe",
    "path_from_prices",
    "validate_candle_prices",
    "PricePathGenerator",
    "RandomSource",
    "generate_path",
]
