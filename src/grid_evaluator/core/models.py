"""
Core data models — candles, path points, grid levels and simulation results.

Defines the records shared by every component:
- PriceCandle input series (with DataFrame conversion helpers)
- PricePoint / BalancePoint time series
- GridLevel with an explicit position state (free, LONG or SHORT)
- GridParameters with derived spacing and level prices
- SimulationResult of a single grid replay
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Sequence

import pandas as pd

from grid_evaluator.exceptions import InvalidInputError, LevelStateError


# =============================================================================
# Enums
# =============================================================================


class LevelSide(str, Enum):
    """Position held by a grid level."""

    NONE = "none"
    LONG = "long"
    SHORT = "short"


# =============================================================================
# Market Data
# =============================================================================


@dataclass(frozen=True)
class PriceCandle:
    """Daily candle supplied by the market-data collaborator. `price` is the close."""

    time: int
    price: float
    timestamp: str
    high: float | None = None
    low: float | None = None
    volume: float | None = None

    @property
    def effective_high(self) -> float:
        return self.high if self.high is not None else self.price

    @property
    def effective_low(self) -> float:
        return self.low if self.low is not None else self.price

    @property
    def effective_volume(self) -> float:
        return self.volume if self.volume is not None else self.price

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "price": self.price,
            "timestamp": self.timestamp,
            "high": self.high,
            "low": self.low,
            "volume": self.volume,
        }


def validate_candle_prices(candles: Sequence[PriceCandle]) -> None:
    """Raise InvalidInputError unless every close and explicit high/low is finite and positive."""
    for i, candle in enumerate(candles):
        for name, value in (("price", candle.price), ("high", candle.high), ("low", candle.low)):
            if value is None:
                continue
            if not math.isfinite(value) or value <= 0:
                raise InvalidInputError(f"Candle {i} ({candle.timestamp}) {name} must be positive, got {value}")


def candles_from_dataframe(df: pd.DataFrame) -> list[PriceCandle]:
    """
    Build candles from a DataFrame.

    Accepts either a `price` or a `close` column. `timestamp` may be a string
    or datetime column; `time` (epoch ms) is derived from it when missing.
    """
    if "price" in df.columns:
        price_col = "price"
    elif "close" in df.columns:
        price_col = "close"
    else:
        raise InvalidInputError("Missing columns: need 'price' or 'close'")
    if "timestamp" not in df.columns and "time" not in df.columns:
        raise InvalidInputError("Missing columns: need 'timestamp' or 'time'")

    if "timestamp" in df.columns:
        stamps = pd.to_datetime(df["timestamp"], utc=True)
    else:
        stamps = pd.to_datetime(df["time"], unit="ms", utc=True)

    if "time" in df.columns:
        times = df["time"].astype("int64").tolist()
    else:
        epoch = pd.Timestamp("1970-01-01", tz="UTC")
        times = ((stamps - epoch) // pd.Timedelta(milliseconds=1)).tolist()

    def _optional(col: str) -> list[float | None]:
        if col not in df.columns:
            return [None] * len(df)
        return [None if pd.isna(v) else float(v) for v in df[col]]

    highs = _optional("high")
    lows = _optional("low")
    volumes = _optional("volume")

    return [
        PriceCandle(
            time=int(times[i]),
            price=float(df[price_col].iloc[i]),
            timestamp=stamps.iloc[i].isoformat(),
            high=highs[i],
            low=lows[i],
            volume=volumes[i],
        )
        for i in range(len(df))
    ]


def candles_to_dataframe(candles: Sequence[PriceCandle]) -> pd.DataFrame:
    """Convert candles to a DataFrame with missing high/low/volume defaulted to close."""
    return pd.DataFrame(
        {
            "time": [c.time for c in candles],
            "timestamp": pd.to_datetime([c.timestamp for c in candles], utc=True),
            "price": [c.price for c in candles],
            "high": [c.effective_high for c in candles],
            "low": [c.effective_low for c in candles],
            "volume": [c.effective_volume for c in candles],
        }
    )


# =============================================================================
# Time Series Points
# =============================================================================


@dataclass(frozen=True)
class PricePoint:
    """Single step of a price trajectory."""

    day: int
    price: float


@dataclass(frozen=True)
class BalancePoint:
    """Account balance at the end of a simulated day."""

    day: int
    price: float
    balance: float

    def to_dict(self) -> dict[str, Any]:
        return {"day": self.day, "price": round(self.price, 4), "balance": round(self.balance, 4)}


def path_from_prices(prices: Iterable[float]) -> list[PricePoint]:
    """Number an iterable of prices as days 0..n-1."""
    return [PricePoint(day=i, price=float(p)) for i, p in enumerate(prices)]


# =============================================================================
# Grid Parameters & Levels
# =============================================================================


@dataclass(frozen=True)
class GridParameters:
    """Grid bounds and density. Spacing is always (upper - lower) / level_count."""

    lower_bound: float
    upper_bound: float
    level_count: int
    profit_per_grid_pct: float = 0.0

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lower_bound) and math.isfinite(self.upper_bound)):
            raise InvalidInputError("Grid bounds must be finite")
        if self.lower_bound <= 0:
            raise InvalidInputError("lower_bound must be positive")
        if self.upper_bound <= self.lower_bound:
            raise InvalidInputError("upper_bound must be greater than lower_bound")
        if self.level_count < 1:
            raise InvalidInputError("level_count must be at least 1")

    @property
    def spacing(self) -> float:
        return (self.upper_bound - self.lower_bound) / self.level_count

    def level_prices(self) -> list[float]:
        """level_count + 1 evenly spaced prices from lower_bound to upper_bound."""
        spacing = self.spacing
        return [self.lower_bound + i * spacing for i in range(self.level_count + 1)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "lower_bound": round(self.lower_bound, 4),
            "upper_bound": round(self.upper_bound, 4),
            "level_count": self.level_count,
            "spacing": round(self.spacing, 4),
            "profit_per_grid_pct": round(self.profit_per_grid_pct, 4),
        }


@dataclass(frozen=True)
class OpenPosition:
    """Position held on a grid level between open and close."""

    side: LevelSide
    entry_price: float
    size: float


@dataclass
class GridLevel:
    """
    A single grid level and its position state.

    State machine: NONE -> LONG -> NONE or NONE -> SHORT -> NONE. A level
    must be closed before it can be reopened in either direction.
    """

    index: int
    price: float
    position: OpenPosition | None = None
    transitions: list[tuple[LevelSide, LevelSide]] = field(default_factory=list)

    @property
    def side(self) -> LevelSide:
        return self.position.side if self.position is not None else LevelSide.NONE

    @property
    def is_free(self) -> bool:
        return self.position is None

    def open_position(self, side: LevelSide, entry_price: float, size: float) -> None:
        if side == LevelSide.NONE:
            raise LevelStateError("Cannot open a position with side NONE")
        if self.position is not None:
            raise LevelStateError(
                f"Level {self.index} already holds a {self.position.side.value} position"
            )
        self.position = OpenPosition(side=side, entry_price=entry_price, size=size)
        self.transitions.append((LevelSide.NONE, side))

    def close_position(self) -> OpenPosition:
        if self.position is None:
            raise LevelStateError(f"Level {self.index} has no open position")
        closed = self.position
        self.position = None
        self.transitions.append((closed.side, LevelSide.NONE))
        return closed


# =============================================================================
# Simulation Result
# =============================================================================


@dataclass(frozen=True)
class SimulationResult:
    """Outcome of replaying one price path against a grid."""

    final_balance: float
    total_trades: int
    profitable_trades: int
    max_drawdown_pct: float
    sharpe_ratio: float
    balance_path: tuple[BalancePoint, ...] = ()
    open_positions: int = 0
    total_fees: float = 0.0

    @property
    def win_rate(self) -> float:
        """Percent of closed trades with positive net P&L."""
        if self.total_trades == 0:
            return 0.0
        return self.profitable_trades / self.total_trades * 100

    def balance_on_day(self, day: int, default: float) -> float:
        if 0 <= day < len(self.balance_path) and self.balance_path[day].day == day:
            return self.balance_path[day].balance
        for point in self.balance_path:
            if point.day == day:
                return point.balance
        return default

    def to_dict(self, include_path: bool = False) -> dict[str, Any]:
        d: dict[str, Any] = {
            "final_balance": round(self.final_balance, 4),
            "total_trades": self.total_trades,
            "profitable_trades": self.profitable_trades,
            "win_rate": round(self.win_rate, 2),
            "max_drawdown_pct": round(self.max_drawdown_pct, 4),
            "sharpe_ratio": round(self.sharpe_ratio, 4),
            "open_positions": self.open_positions,
            "total_fees": round(self.total_fees, 4),
        }
        if include_path:
            d["balance_path"] = [p.to_dict() for p in self.balance_path]
        return d
