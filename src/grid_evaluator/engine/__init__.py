"""Grid evaluation engine — simulator, Monte Carlo, analyzer, optimizer, reporter, system."""

from grid_evaluator.engine.models import (
    BaselineStatistics,
    FanChartPoint,
    HorizonRange,
    LeverageProfile,
    MarketRegime,
    MonteCarloResult,
    MonteCarloStatistics,
    OptimizedGridParameters,
    PredictedRange,
    RiskTolerance,
    SeasonalPattern,
    TimeHorizonPrediction,
    TrendLabel,
)
from grid_evaluator.engine.simulator import GridStrategySimulator, simulate_path
from grid_evaluator.engine.analyzer import HistoricalAnalyzer
from grid_evaluator.engine.monte_carlo import MonteCarloOrchestrator
from grid_evaluator.engine.optimizer import GridParameterOptimizer
from grid_evaluator.engine.reporter import GridEvaluationReporter
from grid_evaluator.engine.system import GridEvaluationSystem

__all__ = [
    "BaselineStatistics",
    "FanChartPoint",
    "HorizonRange",
    "LeverageProfile",
    "MarketRegime",
    "MonteCarloResult",
    "MonteCarloStatistics",
    "OptimizedGridParameters",
    "PredictedRange",
    "RiskTolerance",
    "SeasonalPattern",
    "TimeHorizonPrediction",
    "TrendLabel",
    "GridStrategySimulator",
    "simulate_path",
    "HistoricalAnalyzer",
    "MonteCarloOrchestrator",
    "GridParameterOptimizer",
    "GridEvaluationReporter",
    "GridEvaluationSystem",
]
