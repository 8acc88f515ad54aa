"""
GridStrategySimulator — Replays one daily price path against a grid.

Each level runs its own NONE -> LONG/SHORT -> NONE state machine:
- LONG opens when the day's low touches a level below the close and closes
  when the day's high reaches the next level up
- SHORT is the mirror image using the day's high and the next level down

No intraday data is available, so the day's high/low are approximated as
close * (1 +/- intraday_range_pct). Taker fees are charged on entry, maker
fees on exit, and slippage moves every fill against the trader.
"""

import math
from typing import Sequence

from grid_evaluator.config import FeeSchedule
from grid_evaluator.core.models import (
    BalancePoint,
    GridLevel,
    GridParameters,
    LevelSide,
    PricePoint,
    SimulationResult,
)
from grid_evaluator.core.stats import mean, pstdev
from grid_evaluator.exceptions import InvalidInputError
from grid_evaluator.logging import get_logger

logger = get_logger(__name__)


class GridStrategySimulator:
    """
    Runs a grid simulation on a single daily price path.

    Usage:
        simulator = GridStrategySimulator()
        result = simulator.simulate(path, GridParameters(40000, 50000, 20), 1000.0, 2.0)
    """

    def __init__(self, fees: FeeSchedule | None = None) -> None:
        self.fees = fees or FeeSchedule()

    def simulate(
        self,
        path: Sequence[PricePoint],
        grid: GridParameters,
        investment: float,
        leverage: float = 1.0,
    ) -> SimulationResult:
        """Simulate and return only the result."""
        result, _levels = self.replay(path, grid, investment, leverage)
        return result

    def replay(
        self,
        path: Sequence[PricePoint],
        grid: GridParameters,
        investment: float,
        leverage: float = 1.0,
    ) -> tuple[SimulationResult, list[GridLevel]]:
        """Simulate and also return the final grid levels for inspection."""
        self._validate(path, investment, leverage)

        levels = self.build_levels(grid)
        capital_per_level = investment * leverage / grid.level_count

        maker_fee = self.fees.maker_fee
        taker_fee = self.fees.taker_fee
        slippage = self.fees.slippage
        intraday = self.fees.intraday_range_pct

        balance = investment
        peak_balance = investment
        max_drawdown = 0.0
        total_trades = 0
        profitable_trades = 0
        total_fees = 0.0
        trade_returns: list[float] = []
        balance_path: list[BalancePoint] = []

        last = len(levels) - 1

        for point in path:
            close = point.price
            day_high = close * (1 + intraday)
            day_low = close * (1 - intraday)

            for i, level in enumerate(levels):
                level_price = level.price

                # Open LONG
                if day_low <= level_price and level.is_free and level_price < close:
                    entry = level_price * (1 + slippage)
                    fee = capital_per_level * taker_fee
                    level.open_position(LevelSide.LONG, entry, capital_per_level / entry)
                    balance -= fee
                    total_fees += fee

                # Close LONG at the next level up
                if i < last and level.side == LevelSide.LONG:
                    next_price = levels[i + 1].price
                    if day_high >= next_price:
                        position = level.close_position()
                        exit_price = next_price * (1 - slippage)
                        value = position.size * exit_price
                        fee = value * maker_fee
                        net = (value - capital_per_level) - fee
                        balance += net
                        total_fees += fee
                        total_trades += 1
                        if net > 0:
                            profitable_trades += 1
                        trade_returns.append(net / capital_per_level * 100)

                # Open SHORT
                if day_high >= level_price and level.is_free and level_price > close:
                    entry = level_price * (1 - slippage)
                    fee = capital_per_level * taker_fee
                    level.open_position(LevelSide.SHORT, entry, capital_per_level / entry)
                    balance -= fee
                    total_fees += fee

                # Close SHORT at the next level down
                if i > 0 and level.side == LevelSide.SHORT:
                    prev_price = levels[i - 1].price
                    if day_low <= prev_price:
                        position = level.close_position()
                        exit_price = prev_price * (1 + slippage)
                        value = position.size * exit_price
                        fee = value * maker_fee
                        net = (capital_per_level - value) - fee
                        balance += net
                        total_fees += fee
                        total_trades += 1
                        if net > 0:
                            profitable_trades += 1
                        trade_returns.append(net / capital_per_level * 100)

            if balance > peak_balance:
                peak_balance = balance
            drawdown = (peak_balance - balance) / peak_balance * 100 if peak_balance > 0 else 0.0
            if drawdown > max_drawdown:
                max_drawdown = drawdown

            balance_path.append(BalancePoint(day=point.day, price=close, balance=balance))

        sharpe = self._calculate_sharpe(trade_returns, self.fees.sharpe_annualization_days)
        open_positions = sum(1 for level in levels if not level.is_free)

        logger.debug(
            "Grid simulation completed",
            days=len(path),
            levels=len(levels),
            trades=total_trades,
            final_balance=round(balance, 2),
            max_drawdown_pct=round(max_drawdown, 2),
        )

        result = SimulationResult(
            final_balance=balance,
            total_trades=total_trades,
            profitable_trades=profitable_trades,
            max_drawdown_pct=max_drawdown,
            sharpe_ratio=sharpe,
            balance_path=tuple(balance_path),
            open_positions=open_positions,
            total_fees=total_fees,
        )
        return result, levels

    @staticmethod
    def build_levels(grid: GridParameters) -> list[GridLevel]:
        """level_count + 1 free levels, strictly increasing in price."""
        return [GridLevel(index=i, price=p) for i, p in enumerate(grid.level_prices())]

    # =========================================================================
    # Private Helpers
    # =========================================================================

    @staticmethod
    def _validate(path: Sequence[PricePoint], investment: float, leverage: float) -> None:
        if not path:
            raise InvalidInputError("Price path must not be empty")
        if not math.isfinite(investment) or investment <= 0:
            raise InvalidInputError("investment must be positive")
        if not math.isfinite(leverage) or leverage < 1:
            raise InvalidInputError("leverage must be at least 1")
        for point in path:
            if not math.isfinite(point.price) or point.price <= 0:
                raise InvalidInputError(f"Path price on day {point.day} must be positive")

    @staticmethod
    def _calculate_sharpe(returns: list[float], annualization_days: int) -> float:
        """Per-trade Sharpe ratio scaled by a fixed sqrt(annualization_days)."""
        if not returns:
            return 0.0
        std_ret = pstdev(returns)
        if std_ret == 0:
            return 0.0
        return (mean(returns) / std_ret) * math.sqrt(annualization_days)


def simulate_path(
    path: Sequence[PricePoint],
    grid: GridParameters,
    investment: float,
    leverage: float = 1.0,
    fees: FeeSchedule | None = None,
) -> SimulationResult:
    """Functional wrapper around GridStrategySimulator.simulate."""
    return GridStrategySimulator(fees).simulate(path, grid, investment, leverage)
