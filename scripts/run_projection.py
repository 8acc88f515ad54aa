#!/usr/bin/env python3
"""
Grid Projection — optimize a grid on daily history and project it forward.

Reads a daily-candle CSV (columns: timestamp or time, price or close, and
optionally high, low, volume), proposes grid parameters, replays them on
the history, runs the Monte Carlo projection and prints the results.

Usage:
    python scripts/run_projection.py data/BTCUSDT_1d.csv --symbol BTCUSDT
    python scripts/run_projection.py data/BTCUSDT_1d.csv --simulations 5000 --workers 4 --seed 42
    python scripts/run_projection.py data/BTCUSDT_1d.csv --preset-out presets/btc.yaml --json-logs
"""

import argparse
import json
import sys
from pathlib import Path

import pandas as pd

from grid_evaluator import GridEvaluationSystem
from grid_evaluator.config import EvaluatorConfig
from grid_evaluator.core.models import candles_from_dataframe
from grid_evaluator.engine.models import RiskTolerance
from grid_evaluator.exceptions import GridEvaluatorError
from grid_evaluator.logging import get_logger, setup_logging

logger = get_logger("run_projection")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Grid evaluator — optimize and project")
    parser.add_argument("csv", type=str, help="Daily candle CSV file")
    parser.add_argument("--symbol", type=str, default="UNKNOWN")
    parser.add_argument("--investment", type=float, default=1000.0)
    parser.add_argument("--leverage", type=float, default=1.0)
    parser.add_argument("--simulations", type=int, default=1000)
    parser.add_argument("--days", type=int, default=90, help="Projection horizon in days")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--workers", type=int, default=None,
                        help="Worker processes for Monte Carlo (default: sequential)")
    parser.add_argument("--timeout", type=float, default=None, help="Projection deadline in seconds")
    parser.add_argument("--risk-tolerance", type=str, default="moderate",
                        choices=[t.value for t in RiskTolerance])
    parser.add_argument("--config", type=str, default="", help="EvaluatorConfig YAML file")
    parser.add_argument("--preset-out", type=str, default="", help="Write YAML preset here")
    parser.add_argument("--log-level", type=str, default="INFO")
    parser.add_argument("--json-logs", action="store_true")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(log_level=args.log_level, json_logs=args.json_logs)

    config = EvaluatorConfig.from_yaml_file(args.config) if args.config else EvaluatorConfig()
    system = GridEvaluationSystem(config)

    try:
        candles = candles_from_dataframe(pd.read_csv(args.csv))
        if not candles:
            logger.error("CSV contains no candles", path=args.csv)
            return 1

        current_price = candles[-1].price
        params = system.optimize(
            candles, current_price, args.leverage, args.investment,
            risk_tolerance=RiskTolerance(args.risk_tolerance),
        )
        backtest = system.backtest(candles, params.grid, args.investment, args.leverage)
        projection = system.project(
            candles, params.grid, args.investment, args.leverage,
            args.simulations, args.days,
            seed=args.seed, max_workers=args.workers, timeout=args.timeout,
        )
    except GridEvaluatorError as e:
        logger.error("Evaluation failed", error=str(e))
        return 1

    reporter = system.reporter
    print(reporter.generate_analysis(params))
    print("\nHistorical backtest:")
    print(json.dumps(reporter.summarize_simulation(backtest, args.investment), indent=2))
    print("\nMonte Carlo projection:")
    print(json.dumps(reporter.summarize_monte_carlo(projection), indent=2))

    if args.preset_out:
        out = Path(args.preset_out)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(reporter.export_preset_yaml(params, args.symbol), encoding="utf-8")
        logger.info("Preset written", path=str(out))

    return 0


if __name__ == "__main__":
    sys.exit(main())
