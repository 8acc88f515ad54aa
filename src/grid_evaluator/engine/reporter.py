"""
GridEvaluationReporter — Narrative, summaries and preset export.

Generates:
- Plain-text market analysis for optimized parameters
- Summary dicts for single simulations and Monte Carlo runs
- JSON/YAML grid presets from optimized parameters
"""

import json
from typing import Any

import yaml

from grid_evaluator.core.models import SimulationResult
from grid_evaluator.engine.models import MarketRegime, MonteCarloResult, OptimizedGridParameters
from grid_evaluator.logging import get_logger

logger = get_logger(__name__)

_REGIME_FOCUS = {
    MarketRegime.RANGING: "sideways accumulation",
    MarketRegime.TRENDING: "directional momentum",
    MarketRegime.HIGHLY_VOLATILE: "high volatility capture",
}


class GridEvaluationReporter:
    """Turns evaluation results into text, dicts and presets."""

    def generate_analysis(self, params: OptimizedGridParameters) -> str:
        """Human-readable outlook, conditions, grid, projection and risk."""
        predicted = params.predicted_range_3m
        grid = params.grid

        if predicted.confidence > 0.7:
            range_confidence = "High"
        elif predicted.confidence > 0.5:
            range_confidence = "Medium"
        else:
            range_confidence = "Low"

        seasonal_pct = (params.seasonality_factor - 1) * 100
        if params.seasonality_factor > 1:
            seasonal_label = "Positive"
        elif params.seasonality_factor < 1:
            seasonal_label = "Negative"
        else:
            seasonal_label = "Neutral"

        lines = [
            f"3-Month Market Outlook: {params.trend_prediction.value.upper()}",
            f"Expected price range: {predicted.lower:,.2f} - {predicted.upper:,.2f}",
            f"Target price: {predicted.expected_mid:,.2f} ({range_confidence} confidence)",
            "",
            f"Market Conditions: {params.market_regime.value.upper().replace('_', ' ')}",
            f"Expected volatility: {params.expected_volatility * 100:.1f}% daily",
            f"Seasonality factor: {seasonal_label} ({seasonal_pct:.1f}%)",
            "",
            "Grid Optimization:",
            f"- {grid.level_count} grid levels optimized for {_REGIME_FOCUS[params.market_regime]}",
            f"- Range {grid.lower_bound:,.2f} - {grid.upper_bound:,.2f}",
            f"- {grid.profit_per_grid_pct:.2f}% profit per grid ({grid.spacing:,.2f} spacing)",
        ]
        if params.optimal_entry_zones:
            zones = ", ".join(f"{z:,.0f}" for z in params.optimal_entry_zones)
            lines.append(f"- Entry zones at key support/resistance: {zones}")

        lines += [
            "",
            "3-Month Performance Projection:",
            f"- Estimated {params.estimated_fills_3m} trades",
            f"- Projected profit: {params.estimated_profit_3m:,.0f}",
            f"- Average trade duration: {params.avg_trade_time_hours}h",
            "",
            f"Risk Assessment: {params.risk_score}/10",
        ]
        if params.risk_score <= 3:
            lines.append("Low risk - ideal conditions for grid trading")
        elif params.risk_score <= 6:
            lines.append("Moderate risk - proceed with standard position sizing")
        else:
            lines.append("Elevated risk - consider reduced position size")
        for warning in params.risk_warnings:
            lines.append(f"- {warning}")

        lines += [
            "",
            f"Recommended leverage: {params.recommended_leverage:.1f}x",
            f"Confidence: {params.confidence}%",
        ]
        if params.is_fallback:
            lines.append("Insufficient history: static default grid")

        return "\n".join(lines)

    def summarize_simulation(self, result: SimulationResult, investment: float) -> dict[str, Any]:
        """Headline figures of one grid replay."""
        return {
            "total_return_pct": round((result.final_balance - investment) / investment * 100, 4),
            "profit": round(result.final_balance - investment, 2),
            **result.to_dict(),
        }

    def summarize_monte_carlo(self, result: MonteCarloResult) -> dict[str, Any]:
        """Percentile summary plus the final day of the fan chart."""
        stats = result.statistics
        summary: dict[str, Any] = {
            "num_simulations": result.num_simulations,
            "projection_days": result.projection_days,
            "investment_amount": result.investment_amount,
            "percentiles": {
                "p10": round(stats.worst_case, 4),
                "p50": round(stats.median, 4),
                "p90": round(stats.best_case, 4),
            },
            **stats.to_dict(),
        }
        if result.fan_chart:
            summary["final_day_balances"] = result.fan_chart[-1].to_dict()

        logger.info(
            "Monte Carlo summary generated",
            num_simulations=result.num_simulations,
            profit_probability=round(stats.profit_probability, 2),
        )
        return summary

    def export_preset_json(self, params: OptimizedGridParameters, symbol: str) -> str:
        """Export optimized parameters as a JSON grid preset."""
        preset = self._build_preset_dict(params, symbol)
        return json.dumps(preset, indent=2)

    def export_preset_yaml(self, params: OptimizedGridParameters, symbol: str) -> str:
        """Export optimized parameters as a YAML grid preset."""
        preset = self._build_preset_dict(params, symbol)
        return yaml.safe_dump(preset, default_flow_style=False, sort_keys=False)

    def _build_preset_dict(self, params: OptimizedGridParameters, symbol: str) -> dict[str, Any]:
        grid = params.grid
        preset: dict[str, Any] = {
            "symbol": symbol,
            "lower_price": str(round(grid.lower_bound, 8)),
            "upper_price": str(round(grid.upper_bound, 8)),
            "num_levels": grid.level_count,
            "grid_spacing": "arithmetic",
            "profit_per_grid": str(round(grid.profit_per_grid_pct, 4)),
            "leverage": params.leverage.leverage,
            "recommended_leverage": params.recommended_leverage,
        }

        preset["risk"] = {
            "risk_score": params.risk_score,
            "liquidation_price": round(params.leverage.liquidation_price, 8),
            "warnings": list(params.risk_warnings),
        }

        preset["_analysis"] = {
            "market_regime": params.market_regime.value,
            "trend_prediction": params.trend_prediction.value,
            "confidence": params.confidence,
            "expected_volatility": round(params.expected_volatility, 6),
            "estimated_fills_3m": params.estimated_fills_3m,
            "estimated_profit_3m": params.estimated_profit_3m,
            "is_fallback": params.is_fallback,
        }

        return preset
