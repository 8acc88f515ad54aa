"""
Grid Evaluator — Quantitative core of a grid-trading strategy evaluator.

Provides:
- Synthetic price-path generation (GBM with mean reversion and a hard floor)
- Grid order-matching simulation on a single price path
- Monte Carlo projection with percentile bands and fan chart
- Historical analysis (seasonality, regime, 3-month range, entry zones)
- Heuristic grid parameter optimization with multi-horizon forecasts
"""

__version__ = "1.0.0"

from grid_evaluator.engine.system import (  # noqa: E402
    GridEvaluationSystem,
    backtest_on_history,
    optimize_grid_parameters,
    run_monte_carlo_simulation,
    simulate_grid_on_path,
)

__all__ = [
    "GridEvaluationSystem",
    "backtest_on_history",
    "optimize_grid_parameters",
    "run_monte_carlo_simulation",
    "simulate_grid_on_path",
]
