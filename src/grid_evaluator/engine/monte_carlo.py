"""
MonteCarloOrchestrator — Probability bands for a grid over many synthetic futures.

Each trial perturbs the historical drift, volatility and seasonality, draws
one price path and replays the grid on it. Trials own independent random
generators spawned from one SeedSequence, so a seeded run gives the same
answer whether it runs sequentially or on a ProcessPoolExecutor.
"""

import os
import threading
import time
import uuid
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from dataclasses import replace
from typing import Sequence

import numpy as np

from grid_evaluator.config import EvaluatorConfig
from grid_evaluator.core.models import GridParameters, PriceCandle, SimulationResult, validate_candle_prices
from grid_evaluator.core.price_path import PricePathGenerator
from grid_evaluator.core.stats import mean, percentile, percentile_index, pstdev
from grid_evaluator.engine.analyzer import HistoricalAnalyzer
from grid_evaluator.engine.models import (
    BaselineStatistics,
    FanChartPoint,
    MonteCarloResult,
    MonteCarloStatistics,
)
from grid_evaluator.engine.simulator import GridStrategySimulator
from grid_evaluator.exceptions import InvalidInputError, SimulationCancelledError
from grid_evaluator.logging import get_logger, log_context

logger = get_logger(__name__)

FAN_PERCENTILES = (0.10, 0.25, 0.50, 0.75, 0.90)

# Interval between cancellation checks while waiting on worker processes
_POLL_SECONDS = 0.1


# =============================================================================
# Standalone trial runner (picklable for ProcessPoolExecutor)
# =============================================================================


def _run_single_trial(
    seed: np.random.SeedSequence,
    baseline: BaselineStatistics,
    grid: GridParameters,
    investment: float,
    leverage: float,
    projection_days: int,
    config: EvaluatorConfig,
) -> SimulationResult:
    """Perturb the baseline, generate one path and simulate the grid on it."""
    rng = np.random.default_rng(seed)
    mc = config.monte_carlo

    drift = baseline.trend_per_day + (rng.random() - 0.5) * baseline.volatility * mc.drift_jitter_scale
    volatility = baseline.volatility * rng.uniform(mc.volatility_jitter_min, mc.volatility_jitter_max)
    seasonality = rng.uniform(mc.seasonality_jitter_min, mc.seasonality_jitter_max)

    path = PricePathGenerator(config.path_model).generate(
        baseline.last_price, projection_days, drift, volatility, seasonality, rng,
    )
    return GridStrategySimulator(config.fees).simulate(path, grid, investment, leverage)


# =============================================================================
# Orchestrator
# =============================================================================


class MonteCarloOrchestrator:
    """
    Runs many independent grid simulations and aggregates them.

    Usage:
        orchestrator = MonteCarloOrchestrator()
        result = orchestrator.run(candles, grid, 1000.0, 2.0, 1000, 90, seed=42)
        result.statistics.profit_probability
    """

    def __init__(self, config: EvaluatorConfig | None = None) -> None:
        self.config = config or EvaluatorConfig()
        self.analyzer = HistoricalAnalyzer(
            self.config.analyzer,
            baseline_window=self.config.monte_carlo.baseline_window,
        )

    def run(
        self,
        historical_candles: Sequence[PriceCandle],
        grid: GridParameters,
        investment: float,
        leverage: float,
        num_simulations: int,
        projection_days: int,
        *,
        seed: int | None = None,
        max_workers: int | None = None,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> MonteCarloResult:
        """
        Run num_simulations trials of projection_days each.

        Trials run sequentially unless max_workers > 1, in which case they fan
        out to a process pool of min(max_workers, cpu_count, num_simulations)
        workers. A seeded run returns the same result either way.

        Raises:
            InvalidInputError: on bad arguments or too little history.
            SimulationCancelledError: when cancel_event is set or timeout
                elapses before every trial has finished.
        """
        self._validate(historical_candles, investment, leverage, num_simulations, projection_days)
        baseline = self.analyzer.baseline_statistics(historical_candles)

        children = np.random.SeedSequence(seed).spawn(num_simulations)
        workers = self._resolve_workers(max_workers, num_simulations)
        deadline = time.monotonic() + timeout if timeout is not None else None
        run_id = uuid.uuid4().hex[:12]

        with log_context(mc_run_id=run_id):
            start_time = time.perf_counter()
            logger.info(
                "Starting Monte Carlo run",
                num_simulations=num_simulations,
                projection_days=projection_days,
                investment=investment,
                leverage=leverage,
                max_workers=workers,
                baseline_volatility=round(baseline.volatility, 6),
                baseline_trend=round(baseline.trend_per_day, 6),
            )

            args = (baseline, grid, investment, leverage, projection_days, self.config)
            if workers > 1:
                results = self._run_parallel(children, args, workers, cancel_event, deadline)
            else:
                results = self._run_sequential(children, args, cancel_event, deadline)

            result = self._aggregate(results, investment, projection_days)
            duration = time.perf_counter() - start_time

            logger.info(
                "Monte Carlo run complete",
                expected_return=round(result.statistics.expected_return, 4),
                profit_probability=round(result.statistics.profit_probability, 2),
                duration_s=round(duration, 2),
            )

        return replace(result, duration_seconds=duration)

    # =========================================================================
    # Trial Execution
    # =========================================================================

    def _run_sequential(
        self,
        children: list[np.random.SeedSequence],
        args: tuple,
        cancel_event: threading.Event | None,
        deadline: float | None,
    ) -> list[SimulationResult]:
        results = []
        for i, child in enumerate(children):
            self._check_cancelled(cancel_event, deadline, completed=i)
            results.append(_run_single_trial(child, *args))
        return results

    def _run_parallel(
        self,
        children: list[np.random.SeedSequence],
        args: tuple,
        max_workers: int,
        cancel_event: threading.Event | None,
        deadline: float | None,
    ) -> list[SimulationResult]:
        """Fan trials out to worker processes; results come back in trial order."""
        results: list[SimulationResult | None] = [None] * len(children)

        executor = ProcessPoolExecutor(max_workers=max_workers)
        try:
            futures: dict[Future, int] = {
                executor.submit(_run_single_trial, child, *args): i
                for i, child in enumerate(children)
            }
            pending = set(futures)
            while pending:
                try:
                    self._check_cancelled(cancel_event, deadline, completed=len(children) - len(pending))
                except SimulationCancelledError:
                    for future in pending:
                        future.cancel()
                    raise
                done, pending = wait(pending, timeout=_POLL_SECONDS, return_when=FIRST_COMPLETED)
                for future in done:
                    results[futures[future]] = future.result()
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        return results

    @staticmethod
    def _check_cancelled(
        cancel_event: threading.Event | None,
        deadline: float | None,
        completed: int,
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning("Monte Carlo run cancelled", completed_trials=completed)
            raise SimulationCancelledError(f"Cancelled after {completed} trials")
        if deadline is not None and time.monotonic() >= deadline:
            logger.warning("Monte Carlo run timed out", completed_trials=completed)
            raise SimulationCancelledError(f"Timed out after {completed} trials")

    @staticmethod
    def _resolve_workers(max_workers: int | None, num_simulations: int) -> int:
        if not max_workers or max_workers <= 1:
            return 1
        return max(1, min(max_workers, os.cpu_count() or 1, num_simulations))

    # =========================================================================
    # Aggregation
    # =========================================================================

    def _aggregate(
        self,
        results: Sequence[SimulationResult],
        investment: float,
        projection_days: int,
    ) -> MonteCarloResult:
        """Reduce trial results in trial-index order."""
        n = len(results)
        sample_size = self.config.monte_carlo.sample_size

        balances = np.empty((n, projection_days + 1), dtype=float)
        returns = np.empty(n, dtype=float)
        drawdowns = np.empty(n, dtype=float)
        trades = np.empty(n, dtype=float)
        win_rates = np.empty(n, dtype=float)
        sample: list[SimulationResult] = []

        for i, result in enumerate(results):
            balances[i] = self._balance_row(result, projection_days, investment)
            returns[i] = (result.final_balance - investment) / investment * 100
            drawdowns[i] = result.max_drawdown_pct
            trades[i] = result.total_trades
            win_rates[i] = result.win_rate
            if i < sample_size:
                sample.append(result)

        sorted_returns = np.sort(returns)
        mean_return = mean(sorted_returns)
        var = percentile(sorted_returns, 0.10)
        tail = sorted_returns[sorted_returns <= var]

        statistics = MonteCarloStatistics(
            expected_return=mean_return,
            std_dev=pstdev(sorted_returns),
            worst_case=var,
            median=percentile(sorted_returns, 0.50),
            best_case=percentile(sorted_returns, 0.90),
            profit_probability=float(np.count_nonzero(returns > 0)) / n * 100,
            expected_profit=mean_return / 100 * investment,
            expected_drawdown=mean(drawdowns),
            expected_trades=mean(trades),
            expected_win_rate=mean(win_rates),
            value_at_risk=var,
            conditional_value_at_risk=mean(tail) if tail.size else var,
        )

        return MonteCarloResult(
            sample_scenarios=tuple(sample),
            statistics=statistics,
            fan_chart=self._fan_chart(balances),
            investment_amount=investment,
            projection_days=projection_days,
            num_simulations=n,
            simulated_returns=tuple(float(r) for r in sorted_returns),
        )

    @staticmethod
    def _balance_row(result: SimulationResult, projection_days: int, investment: float) -> np.ndarray:
        """Balances for days 0..projection_days; missing days read as the investment."""
        path = result.balance_path
        if len(path) == projection_days + 1:
            return np.fromiter((p.balance for p in path), dtype=float, count=projection_days + 1)
        return np.array(
            [result.balance_on_day(day, investment) for day in range(projection_days + 1)],
            dtype=float,
        )

    @staticmethod
    def _fan_chart(balances: np.ndarray) -> tuple[FanChartPoint, ...]:
        n = balances.shape[0]
        ordered = np.sort(balances, axis=0)
        rows = ordered[[percentile_index(n, p) for p in FAN_PERCENTILES]]
        return tuple(
            FanChartPoint(
                day=day,
                p10=float(rows[0, day]),
                p25=float(rows[1, day]),
                p50=float(rows[2, day]),
                p75=float(rows[3, day]),
                p90=float(rows[4, day]),
            )
            for day in range(balances.shape[1])
        )

    # =========================================================================
    # Validation
    # =========================================================================

    def _validate(
        self,
        candles: Sequence[PriceCandle],
        investment: float,
        leverage: float,
        num_simulations: int,
        projection_days: int,
    ) -> None:
        if num_simulations < 1:
            raise InvalidInputError("num_simulations must be at least 1")
        if projection_days < 1:
            raise InvalidInputError("projection_days must be at least 1")
        if not investment > 0:
            raise InvalidInputError("investment must be positive")
        if not leverage >= 1:
            raise InvalidInputError("leverage must be at least 1")
        window = self.config.monte_carlo.baseline_window
        if len(candles) < window:
            raise InvalidInputError(
                f"Monte Carlo needs at least {window} historical candles, got {len(candles)}"
            )
        validate_candle_prices(candles)
