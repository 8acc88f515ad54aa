"""
GridEvaluationSystem — Facade over the evaluation pipeline.

Wires one EvaluatorConfig into:
1. GridStrategySimulator (single path replay)
2. MonteCarloOrchestrator (probability bands)
3. GridParameterOptimizer (grid proposal from history)
4. GridEvaluationReporter (narrative + presets)

The module-level functions are the public entry points; each builds a
system for the call, so nothing is shared between calls.
"""

from typing import Any, Sequence

from grid_evaluator.config import EvaluatorConfig
from grid_evaluator.core.models import (
    GridParameters,
    PriceCandle,
    PricePoint,
    SimulationResult,
    path_from_prices,
)
from grid_evaluator.engine.models import MonteCarloResult, OptimizedGridParameters
from grid_evaluator.engine.monte_carlo import MonteCarloOrchestrator
from grid_evaluator.engine.optimizer import GridParameterOptimizer
from grid_evaluator.engine.reporter import GridEvaluationReporter
from grid_evaluator.engine.simulator import GridStrategySimulator
from grid_evaluator.exceptions import InvalidInputError
from grid_evaluator.logging import get_logger

logger = get_logger(__name__)


class GridEvaluationSystem:
    """End-to-end grid evaluation: optimize, project, backtest, report."""

    def __init__(self, config: EvaluatorConfig | None = None) -> None:
        self.config = config or EvaluatorConfig()
        self.simulator = GridStrategySimulator(self.config.fees)
        self.monte_carlo = MonteCarloOrchestrator(self.config)
        self.optimizer = GridParameterOptimizer(self.config)
        self.reporter = GridEvaluationReporter()

    def simulate(
        self,
        path: Sequence[PricePoint],
        grid: GridParameters,
        investment: float,
        leverage: float = 1.0,
    ) -> SimulationResult:
        return self.simulator.simulate(path, grid, investment, leverage)

    def project(
        self,
        historical_candles: Sequence[PriceCandle],
        grid: GridParameters,
        investment: float,
        leverage: float,
        num_simulations: int,
        projection_days: int,
        **run_options: Any,
    ) -> MonteCarloResult:
        return self.monte_carlo.run(
            historical_candles, grid, investment, leverage,
            num_simulations, projection_days, **run_options,
        )

    def optimize(
        self,
        historical_candles: Sequence[PriceCandle],
        current_price: float,
        leverage: float = 1.0,
        investment: float = 1000.0,
        **options: Any,
    ) -> OptimizedGridParameters:
        return self.optimizer.optimize(historical_candles, current_price, leverage, investment, **options)

    def backtest(
        self,
        historical_candles: Sequence[PriceCandle],
        grid: GridParameters,
        investment: float,
        leverage: float = 1.0,
    ) -> SimulationResult:
        """Replay the real historical closes as a path."""
        if not historical_candles:
            raise InvalidInputError("Historical candles must not be empty")
        path = path_from_prices(c.price for c in historical_candles)
        logger.info("Running historical backtest", candles=len(path), levels=grid.level_count)
        return self.simulator.simulate(path, grid, investment, leverage)

    def run_full_pipeline(
        self,
        historical_candles: Sequence[PriceCandle],
        investment: float,
        leverage: float = 1.0,
        num_simulations: int = 1000,
        projection_days: int = 90,
        symbol: str = "UNKNOWN",
        **run_options: Any,
    ) -> dict[str, Any]:
        """Optimize on history, backtest and project the proposed grid, and report."""
        if not historical_candles:
            raise InvalidInputError("Historical candles must not be empty")
        current_price = historical_candles[-1].price

        logger.info(
            "Starting evaluation pipeline",
            symbol=symbol,
            candles=len(historical_candles),
            num_simulations=num_simulations,
        )

        params = self.optimize(historical_candles, current_price, leverage, investment)
        backtest = self.backtest(historical_candles, params.grid, investment, leverage)
        projection = self.project(
            historical_candles, params.grid, investment, leverage,
            num_simulations, projection_days, **run_options,
        )

        return {
            "symbol": symbol,
            "parameters": params.to_dict(),
            "analysis": self.reporter.generate_analysis(params),
            "backtest": self.reporter.summarize_simulation(backtest, investment),
            "projection": self.reporter.summarize_monte_carlo(projection),
            "preset_yaml": self.reporter.export_preset_yaml(params, symbol),
        }


# =============================================================================
# Public Entry Points
# =============================================================================


def simulate_grid_on_path(
    path: Sequence[PricePoint],
    grid: GridParameters,
    investment: float,
    leverage: float = 1.0,
    config: EvaluatorConfig | None = None,
) -> SimulationResult:
    """Replay one price path against a grid. Deterministic."""
    return GridEvaluationSystem(config).simulate(path, grid, investment, leverage)


def run_monte_carlo_simulation(
    historical_candles: Sequence[PriceCandle],
    grid: GridParameters,
    investment: float,
    leverage: float,
    num_simulations: int,
    projection_days: int,
    config: EvaluatorConfig | None = None,
    **run_options: Any,
) -> MonteCarloResult:
    """
    Project a grid over many synthetic futures.

    run_options: seed, max_workers, cancel_event, timeout. Trials run
    sequentially by default; pass max_workers > 1 (e.g. os.cpu_count()) to
    spread them over worker processes.
    """
    return GridEvaluationSystem(config).project(
        historical_candles, grid, investment, leverage,
        num_simulations, projection_days, **run_options,
    )


def optimize_grid_parameters(
    historical_candles: Sequence[PriceCandle],
    current_price: float,
    leverage: float = 1.0,
    investment: float = 1000.0,
    config: EvaluatorConfig | None = None,
    **options: Any,
) -> OptimizedGridParameters:
    """
    Propose grid parameters from a price history.

    options: risk_tolerance, as_of.
    """
    return GridEvaluationSystem(config).optimize(
        historical_candles, current_price, leverage, investment, **options,
    )


def backtest_on_history(
    historical_candles: Sequence[PriceCandle],
    grid: GridParameters,
    investment: float,
    leverage: float = 1.0,
    config: EvaluatorConfig | None = None,
) -> SimulationResult:
    """Replay the real historical closes against a grid."""
    return GridEvaluationSystem(config).backtest(historical_candles, grid, investment, leverage)
