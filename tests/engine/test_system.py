"""Tests for the GridEvaluationSystem facade and public entry points."""

import numpy as np
import pytest
import yaml

import grid_evaluator
from grid_evaluator import (
    GridEvaluationSystem,
    backtest_on_history,
    optimize_grid_parameters,
    run_monte_carlo_simulation,
    simulate_grid_on_path,
)
from grid_evaluator.config import EvaluatorConfig
from grid_evaluator.core.models import GridParameters, path_from_prices
from grid_evaluator.core.price_path import generate_path
from grid_evaluator.engine.models import RiskTolerance
from grid_evaluator.exceptions import InvalidInputError
from tests.conftest import make_series_candles


GRID = GridParameters(40000.0, 50000.0, 20)


class TestEntryPoints:

    def test_simulate_grid_on_path(self):
        path = generate_path(45000.0, 60, 0.0, 0.02, rng=np.random.default_rng(1))
        a = simulate_grid_on_path(path, GRID, 1000.0, 2.0)
        b = simulate_grid_on_path(path, GRID, 1000.0, 2.0)
        assert a == b
        assert len(a.balance_path) == 61

    def test_config_fees_are_applied(self):
        path = path_from_prices([100.5, 109.5, 105.0])
        grid = GridParameters(90.0, 110.0, 2)
        free = EvaluatorConfig().with_overrides(fees={"maker_fee": 0.0, "taker_fee": 0.0, "slippage": 0.0})
        assert simulate_grid_on_path(path, grid, 1000.0, config=free).final_balance == pytest.approx(1050.0)
        assert simulate_grid_on_path(path, grid, 1000.0).final_balance < 1050.0

    def test_run_monte_carlo_simulation(self, candles_400):
        a = run_monte_carlo_simulation(candles_400, GRID, 1000.0, 2.0, 10, 20, seed=11)
        b = run_monte_carlo_simulation(candles_400, GRID, 1000.0, 2.0, 10, 20, seed=11)
        assert a.num_simulations == 10
        assert a.simulated_returns == b.simulated_returns

    def test_optimize_grid_parameters(self, candles_400):
        params = optimize_grid_parameters(
            candles_400, candles_400[-1].price, 2.0, 1000.0,
            risk_tolerance=RiskTolerance.CONSERVATIVE,
        )
        assert params.recommended_leverage == 1.0
        assert params.leverage.leverage == 2.0

    def test_backtest_on_history(self):
        candles = make_series_candles([100.5, 109.5, 105.0])
        result = backtest_on_history(candles, GridParameters(90.0, 110.0, 2), 1000.0)
        assert result.total_trades == 1
        assert [p.day for p in result.balance_path] == [0, 1, 2]

    def test_backtest_empty_history_raises(self):
        with pytest.raises(InvalidInputError):
            backtest_on_history([], GRID, 1000.0)

    def test_package_exports(self):
        assert grid_evaluator.__version__
        assert set(grid_evaluator.__all__) >= {
            "GridEvaluationSystem",
            "simulate_grid_on_path",
            "run_monte_carlo_simulation",
            "optimize_grid_parameters",
            "backtest_on_history",
        }


class TestFullPipeline:

    def test_report_structure(self, candles_400):
        system = GridEvaluationSystem()
        report = system.run_full_pipeline(
            candles_400, 1000.0, leverage=2.0, num_simulations=8, projection_days=15,
            symbol="BTC/USDT", seed=5,
        )

        assert report["symbol"] == "BTC/USDT"
        assert report["parameters"]["is_fallback"] is False
        assert "Risk Assessment" in report["analysis"]
        assert report["projection"]["num_simulations"] == 8
        assert report["projection"]["projection_days"] == 15
        assert report["backtest"]["total_trades"] >= 0
        preset = yaml.safe_load(report["preset_yaml"])
        assert preset["num_levels"] == report["parameters"]["grid_levels"]

    def test_seeded_pipeline_is_reproducible(self, candles_400):
        system = GridEvaluationSystem()
        a = system.run_full_pipeline(candles_400, 1000.0, num_simulations=5, projection_days=10, seed=3)
        b = system.run_full_pipeline(candles_400, 1000.0, num_simulations=5, projection_days=10, seed=3)
        assert a == b

    def test_empty_history_raises(self):
        with pytest.raises(InvalidInputError):
            GridEvaluationSystem().run_full_pipeline([], 1000.0)
