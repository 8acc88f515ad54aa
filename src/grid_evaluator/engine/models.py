"""
Evaluation data models — enums, analysis records, Monte Carlo and optimizer results.

Defines all result structures above the single-path simulator:
- Regime, trend and risk-tolerance enums
- Historical analysis records (baseline, seasonality, predicted ranges)
- Monte Carlo statistics, fan chart and aggregate result
- Optimized grid parameters with leverage profile and horizon forecasts
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from grid_evaluator.core.models import GridParameters, SimulationResult
from grid_evaluator.core.stats import percentile


# =============================================================================
# Enums
# =============================================================================


class MarketRegime(str, Enum):
    """Coarse classification of expected price behaviour."""

    RANGING = "ranging"
    TRENDING = "trending"
    HIGHLY_VOLATILE = "highly_volatile"


class TrendLabel(str, Enum):
    """Direction label for seasonal months and predicted trend."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class RiskTolerance(str, Enum):
    """Caller risk appetite, used for the leverage recommendation."""

    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


# =============================================================================
# Historical Analysis
# =============================================================================


@dataclass(frozen=True)
class BaselineStatistics:
    """Daily return statistics over the trailing window of a price history."""

    mean_return: float
    volatility: float
    trend_per_day: float
    last_price: float
    window: int


@dataclass(frozen=True)
class SeasonalPattern:
    """Average 30-day behaviour of one calendar month (1 = January)."""

    month: int
    avg_return: float
    avg_volatility: float
    trend: TrendLabel

    def to_dict(self) -> dict[str, Any]:
        return {
            "month": self.month,
            "avg_return": round(self.avg_return, 6),
            "avg_volatility": round(self.avg_volatility, 6),
            "trend": self.trend.value,
        }


@dataclass(frozen=True)
class PredictedRange:
    """Predicted 3-month price range."""

    lower: float
    upper: float
    expected_mid: float
    confidence: float
    is_fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "lower": round(self.lower, 2),
            "upper": round(self.upper, 2),
            "expected_mid": round(self.expected_mid, 2),
            "confidence": round(self.confidence, 4),
        }


@dataclass(frozen=True)
class HorizonRange:
    """Price range for a single forecast horizon."""

    lower: float
    upper: float
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "lower": round(self.lower, 2),
            "upper": round(self.upper, 2),
            "confidence": round(self.confidence, 2),
        }


@dataclass(frozen=True)
class TimeHorizonPrediction:
    """Forecast for one holding horizon."""

    horizon_days: int
    expected_return_pct: float
    fills_estimate: int
    volatility_forecast: float
    price_range_prediction: HorizonRange
    success_probability: float
    estimated_apr: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "horizon_days": self.horizon_days,
            "expected_return_pct": round(self.expected_return_pct, 2),
            "fills_estimate": self.fills_estimate,
            "volatility_forecast": round(self.volatility_forecast, 4),
            "price_range_prediction": self.price_range_prediction.to_dict(),
            "success_probability": round(self.success_probability, 2),
            "estimated_apr": round(self.estimated_apr, 2),
        }


# =============================================================================
# Monte Carlo
# =============================================================================


@dataclass(frozen=True)
class MonteCarloStatistics:
    """Distribution of per-trial percent returns and trade averages."""

    expected_return: float
    std_dev: float
    worst_case: float
    median: float
    best_case: float
    profit_probability: float
    expected_profit: float
    expected_drawdown: float
    expected_trades: float
    expected_win_rate: float
    value_at_risk: float
    conditional_value_at_risk: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "expected_return": round(self.expected_return, 4),
            "std_dev": round(self.std_dev, 4),
            "worst_case": round(self.worst_case, 4),
            "median": round(self.median, 4),
            "best_case": round(self.best_case, 4),
            "profit_probability": round(self.profit_probability, 2),
            "expected_profit": round(self.expected_profit, 2),
            "expected_drawdown": round(self.expected_drawdown, 4),
            "expected_trades": round(self.expected_trades, 2),
            "expected_win_rate": round(self.expected_win_rate, 2),
            "value_at_risk": round(self.value_at_risk, 4),
            "conditional_value_at_risk": round(self.conditional_value_at_risk, 4),
        }


@dataclass(frozen=True)
class FanChartPoint:
    """Balance percentiles across all trials on one projection day."""

    day: int
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "day": self.day,
            "p10": round(self.p10, 2),
            "p25": round(self.p25, 2),
            "p50": round(self.p50, 2),
            "p75": round(self.p75, 2),
            "p90": round(self.p90, 2),
        }


@dataclass(frozen=True)
class MonteCarloResult:
    """Aggregate of all Monte Carlo trials. Statistics always cover every trial."""

    sample_scenarios: tuple[SimulationResult, ...]
    statistics: MonteCarloStatistics
    fan_chart: tuple[FanChartPoint, ...]
    investment_amount: float
    projection_days: int
    num_simulations: int
    simulated_returns: tuple[float, ...] = ()
    duration_seconds: float = 0.0

    def get_var(self, confidence: float = 0.10) -> float:
        """Value at Risk: return at the given lower percentile."""
        return percentile(self.simulated_returns, confidence)

    def get_cvar(self, confidence: float = 0.10) -> float:
        """Conditional VaR: average return at or below VaR."""
        var = self.get_var(confidence)
        below = [r for r in self.simulated_returns if r <= var]
        return sum(below) / len(below) if below else var

    def to_dict(self, include_scenarios: bool = False) -> dict[str, Any]:
        d: dict[str, Any] = {
            "statistics": self.statistics.to_dict(),
            "fan_chart": [p.to_dict() for p in self.fan_chart],
            "investment_amount": self.investment_amount,
            "projection_days": self.projection_days,
            "num_simulations": self.num_simulations,
            "sample_size": len(self.sample_scenarios),
            "duration_seconds": round(self.duration_seconds, 3),
        }
        if include_scenarios:
            d["sample_scenarios"] = [s.to_dict(include_path=True) for s in self.sample_scenarios]
        return d


# =============================================================================
# Optimizer
# =============================================================================


@dataclass(frozen=True)
class LeverageProfile:
    """Leverage-derived capital and margin figures."""

    leverage: float
    effective_capital: float
    liquidation_price: float
    margin_requirement: float
    funding_fee_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "leverage": self.leverage,
            "effective_capital": round(self.effective_capital),
            "liquidation_price": round(self.liquidation_price, 2),
            "margin_requirement": round(self.margin_requirement, 2),
            "funding_fee_rate": self.funding_fee_rate,
        }


@dataclass(frozen=True)
class OptimizedGridParameters:
    """Grid configuration proposed from historical analysis."""

    grid: GridParameters
    confidence: int
    volatility_score: float
    market_regime: MarketRegime

    predicted_range_3m: PredictedRange
    expected_volatility: float
    seasonality_factor: float
    trend_prediction: TrendLabel
    optimal_entry_zones: tuple[float, ...]
    risk_score: int

    estimated_profit_3m: float
    estimated_fills_3m: int
    avg_trade_time_hours: int
    recommended_investment: float

    leverage: LeverageProfile
    recommended_leverage: float
    time_horizon_predictions: dict[int, TimeHorizonPrediction] = field(default_factory=dict)
    risk_warnings: tuple[str, ...] = ()
    is_fallback: bool = False

    @property
    def price_range(self) -> tuple[float, float]:
        return self.grid.lower_bound, self.grid.upper_bound

    def to_dict(self) -> dict[str, Any]:
        return {
            "price_range": {
                "lower": round(self.grid.lower_bound, 2),
                "upper": round(self.grid.upper_bound, 2),
            },
            "grid_levels": self.grid.level_count,
            "grid_spacing": round(self.grid.spacing, 2),
            "profit_per_grid": round(self.grid.profit_per_grid_pct, 2),
            "confidence": self.confidence,
            "volatility_score": round(self.volatility_score, 6),
            "market_regime": self.market_regime.value,
            "predicted_range_3m": self.predicted_range_3m.to_dict(),
            "expected_volatility": round(self.expected_volatility, 6),
            "seasonality_factor": round(self.seasonality_factor, 6),
            "trend_prediction": self.trend_prediction.value,
            "optimal_entry_zones": list(self.optimal_entry_zones),
            "risk_score": self.risk_score,
            "estimated_profit_3m": self.estimated_profit_3m,
            "estimated_fills_3m": self.estimated_fills_3m,
            "avg_trade_time_hours": self.avg_trade_time_hours,
            "recommended_investment": self.recommended_investment,
            **self.leverage.to_dict(),
            "recommended_leverage": self.recommended_leverage,
            "risk_warnings": list(self.risk_warnings),
            "time_horizon_predictions": {
                str(days): p.to_dict() for days, p in sorted(self.time_horizon_predictions.items())
            },
            "is_fallback": self.is_fallback,
        }
