"""
GridParameterOptimizer — Heuristic grid configuration from historical analysis.

Pipeline:
1. Seasonality, 3-month range prediction and expected volatility
2. Regime / trend classification and support-resistance entry zones
3. Grid bounds (at least +/-8% around the current price) and level count
4. 3-month fill and profit estimates, risk score, confidence
5. Leverage profile, recommended leverage, risk warnings
6. Forecasts for each holding horizon (7, 30, 90, 180 days)

With fewer than 90 candles a static +/-10% grid is returned instead.
"""

import math
from datetime import date, datetime
from typing import Sequence

from grid_evaluator.config import EvaluatorConfig
from grid_evaluator.core.models import GridParameters, PriceCandle, validate_candle_prices
from grid_evaluator.core.stats import clamp, finite_or, round_half_up
from grid_evaluator.engine.analyzer import HistoricalAnalyzer
from grid_evaluator.engine.models import (
    HorizonRange,
    LeverageProfile,
    MarketRegime,
    OptimizedGridParameters,
    RiskTolerance,
    TimeHorizonPrediction,
    TrendLabel,
)
from grid_evaluator.exceptions import InvalidInputError
from grid_evaluator.logging import get_logger

logger = get_logger(__name__)


class GridParameterOptimizer:
    """Derives grid parameters, risk and forecasts from a price history."""

    def __init__(self, config: EvaluatorConfig | None = None) -> None:
        self.config = config or EvaluatorConfig()
        self.settings = self.config.optimizer
        self.analyzer = HistoricalAnalyzer(
            self.config.analyzer,
            baseline_window=self.config.monte_carlo.baseline_window,
        )

    def optimize(
        self,
        historical_candles: Sequence[PriceCandle],
        current_price: float,
        leverage: float = 1.0,
        investment: float = 1000.0,
        *,
        risk_tolerance: RiskTolerance = RiskTolerance.MODERATE,
        as_of: date | datetime | None = None,
    ) -> OptimizedGridParameters:
        """Propose grid parameters for the next three months."""
        self._validate(current_price, leverage, investment)
        validate_candle_prices(historical_candles)
        s = self.settings

        if len(historical_candles) < s.min_history:
            logger.info(
                "Insufficient history, using static grid",
                candles=len(historical_candles),
                required=s.min_history,
            )
            return self._fallback(current_price, leverage, investment, risk_tolerance)

        analyzer = self.analyzer

        # 1. Seasonality, range and volatility
        patterns = analyzer.analyze_seasonality(historical_candles)
        month = analyzer.as_of_month(historical_candles, as_of)
        month_pattern = analyzer.month_pattern(patterns, month)
        predicted = analyzer.predict_range_3m(historical_candles, current_price, patterns, as_of)

        baseline = analyzer.baseline_statistics(historical_candles)
        expected_vol = finite_or(
            analyzer.expected_volatility(baseline.volatility, patterns, month),
            s.fallback_volatility,
            "expected_volatility",
        )
        seasonality_factor = finite_or(
            1 + (month_pattern.avg_return if month_pattern else 0.0),
            1.0,
            "seasonality_factor",
        )

        # 2. Regime, trend, entry zones
        trend_strength = analyzer.trend_strength(predicted, current_price)
        regime = analyzer.classify_regime(expected_vol, trend_strength)
        trend = analyzer.predict_trend(predicted, current_price)
        entry_zones = analyzer.find_entry_zones(historical_candles, predicted)

        # 3. Grid covering the predicted range and at least the minimum band
        lower = min(predicted.lower, current_price * (1 - s.min_lower_coverage))
        upper = max(predicted.upper, current_price * (1 + s.min_upper_coverage))
        level_count = self._level_count(regime)
        spacing = (upper - lower) / level_count
        profit_pct = spacing / current_price * 100
        grid = GridParameters(lower, upper, level_count, profit_pct)

        # 4. 3-month estimates
        daily_fills = expected_vol * math.sqrt(365) * current_price / spacing * s.fill_efficiency
        fills_3m = round_half_up(finite_or(daily_fills * s.projection_days_3m, 0.0, "estimated_fills_3m"))
        profit_3m = round_half_up(fills_3m * spacing * profit_pct / 100)

        risk = self._risk_score(expected_vol, regime, predicted.confidence, trend_strength)
        recommended_investment = self._recommended_investment(risk)
        confidence = self._confidence(predicted.confidence, risk, regime)

        result = OptimizedGridParameters(
            grid=grid,
            confidence=confidence,
            volatility_score=expected_vol,
            market_regime=regime,
            predicted_range_3m=predicted,
            expected_volatility=expected_vol,
            seasonality_factor=seasonality_factor,
            trend_prediction=trend,
            optimal_entry_zones=tuple(entry_zones),
            risk_score=risk,
            estimated_profit_3m=profit_3m,
            estimated_fills_3m=fills_3m,
            avg_trade_time_hours=self._trade_time_hours(regime),
            recommended_investment=recommended_investment,
            leverage=self.leverage_profile(current_price, investment, leverage),
            recommended_leverage=self.recommend_leverage(regime, expected_vol, risk_tolerance),
            time_horizon_predictions=self.predict_time_horizons(
                current_price, grid, expected_vol, regime, trend,
            ),
            risk_warnings=tuple(self._risk_warnings(expected_vol, regime, risk)),
        )

        logger.info(
            "Grid parameters optimized",
            candles=len(historical_candles),
            regime=regime.value,
            trend=trend.value,
            lower=round(lower, 4),
            upper=round(upper, 4),
            levels=level_count,
            risk_score=risk,
            confidence=confidence,
        )
        return result

    # =========================================================================
    # Fallback
    # =========================================================================

    def _fallback(
        self,
        current_price: float,
        leverage: float,
        investment: float,
        risk_tolerance: RiskTolerance,
    ) -> OptimizedGridParameters:
        s = self.settings
        band = s.fallback_range_pct
        lower = current_price * (1 - band)
        upper = current_price * (1 + band)
        spacing = (upper - lower) / s.fallback_levels
        grid = GridParameters(lower, upper, s.fallback_levels, spacing / current_price * 100)

        regime = MarketRegime.RANGING
        trend = TrendLabel.NEUTRAL
        vol = s.fallback_volatility

        return OptimizedGridParameters(
            grid=grid,
            confidence=0,
            volatility_score=0.0,
            market_regime=regime,
            predicted_range_3m=self.analyzer.fallback_range(current_price, confidence=0.0),
            expected_volatility=vol,
            seasonality_factor=1.0,
            trend_prediction=trend,
            optimal_entry_zones=(),
            risk_score=s.fallback_risk_score,
            estimated_profit_3m=0,
            estimated_fills_3m=0,
            avg_trade_time_hours=s.fallback_trade_time_hours,
            recommended_investment=s.base_investment,
            leverage=self.leverage_profile(current_price, investment, leverage),
            recommended_leverage=self.recommend_leverage(regime, vol, risk_tolerance),
            time_horizon_predictions=self.predict_time_horizons(current_price, grid, vol, regime, trend),
            risk_warnings=tuple(self._risk_warnings(vol, regime, s.fallback_risk_score)),
            is_fallback=True,
        )

    # =========================================================================
    # Leverage
    # =========================================================================

    def leverage_profile(self, current_price: float, investment: float, leverage: float) -> LeverageProfile:
        """
        Capital and margin figures for a leveraged long grid.

        Liquidation is where losses consume the margin net of the
        maintenance rate: price * (1 - (1 / leverage) * (1 - mmr)).
        """
        s = self.settings
        effective_capital = investment * leverage
        return LeverageProfile(
            leverage=leverage,
            effective_capital=effective_capital,
            liquidation_price=current_price * (1 - (1 / leverage) * (1 - s.maintenance_margin_rate)),
            margin_requirement=effective_capital * s.margin_requirement_ratio,
            funding_fee_rate=s.funding_fee_rate,
        )

    def recommend_leverage(
        self,
        regime: MarketRegime,
        expected_volatility: float,
        risk_tolerance: RiskTolerance,
    ) -> float:
        s = self.settings
        base = {
            RiskTolerance.CONSERVATIVE: s.leverage_conservative,
            RiskTolerance.MODERATE: s.leverage_moderate,
            RiskTolerance.AGGRESSIVE: s.leverage_aggressive,
        }[RiskTolerance(risk_tolerance)]

        if regime == MarketRegime.HIGHLY_VOLATILE:
            base = max(1.0, base - s.volatile_leverage_cut)
        elif regime == MarketRegime.TRENDING:
            base = max(1.0, base - s.trending_leverage_cut)

        if expected_volatility > s.high_volatility_threshold:
            base = max(1.0, base * s.high_volatility_leverage_scale)

        return round(base, 1)

    # =========================================================================
    # Time Horizons
    # =========================================================================

    def predict_time_horizons(
        self,
        current_price: float,
        grid: GridParameters,
        volatility: float,
        regime: MarketRegime,
        trend: TrendLabel,
    ) -> dict[int, TimeHorizonPrediction]:
        """Forecast return, fills, range and success odds for each horizon."""
        s = self.settings
        spacing = grid.spacing

        regime_mult = {
            MarketRegime.RANGING: s.return_mult_ranging,
            MarketRegime.TRENDING: s.return_mult_trending,
            MarketRegime.HIGHLY_VOLATILE: s.return_mult_highly_volatile,
        }[regime]
        if trend == TrendLabel.BULLISH and regime != MarketRegime.TRENDING:
            trend_mult = s.bullish_return_boost
        elif trend == TrendLabel.BEARISH and regime == MarketRegime.TRENDING:
            trend_mult = s.bearish_trending_return_cut
        else:
            trend_mult = 1.0
        base_daily_return = grid.profit_per_grid_pct * s.daily_return_factor * regime_mult * trend_mult

        range_mult = {
            MarketRegime.HIGHLY_VOLATILE: s.range_mult_highly_volatile,
            MarketRegime.TRENDING: s.range_mult_trending,
            MarketRegime.RANGING: s.range_mult_ranging,
        }[regime]
        base_confidence = {
            MarketRegime.RANGING: s.horizon_confidence_ranging,
            MarketRegime.TRENDING: s.horizon_confidence_trending,
            MarketRegime.HIGHLY_VOLATILE: s.horizon_confidence_highly_volatile,
        }[regime]

        predictions = {}
        for days in s.horizons:
            years = days / 365
            expected_return = base_daily_return * days * 100
            half_width = current_price * volatility * math.sqrt(days) * range_mult * 0.5

            success = s.base_success_probability
            if regime == MarketRegime.RANGING:
                success += s.ranging_success_bonus + years * s.ranging_success_bonus_per_year
            elif regime == MarketRegime.TRENDING:
                success -= s.trending_success_penalty + years * s.trending_success_penalty_per_year
            if volatility > s.warning_volatility_threshold:
                success -= s.high_volatility_success_penalty

            predictions[days] = TimeHorizonPrediction(
                horizon_days=days,
                expected_return_pct=expected_return,
                fills_estimate=round_half_up(current_price * volatility / spacing * s.fill_efficiency * days),
                volatility_forecast=volatility * (1 + years * s.volatility_drift_per_year),
                price_range_prediction=HorizonRange(
                    lower=max(0.0, current_price - half_width),
                    upper=current_price + half_width,
                    confidence=base_confidence * math.exp(-days / s.confidence_decay_days),
                ),
                success_probability=clamp(success, s.success_probability_min, s.success_probability_max),
                estimated_apr=expected_return / years,
            )
        return predictions

    # =========================================================================
    # Scoring
    # =========================================================================

    def _risk_score(
        self,
        expected_volatility: float,
        regime: MarketRegime,
        range_confidence: float,
        trend_strength: float,
    ) -> int:
        """Sum of volatility, regime, confidence and trend risk factors."""
        s = self.settings
        if expected_volatility > s.high_volatility_threshold:
            vol_factor = 3
        elif expected_volatility > s.medium_volatility_threshold:
            vol_factor = 2
        else:
            vol_factor = 1
        regime_factor = {
            MarketRegime.HIGHLY_VOLATILE: 3,
            MarketRegime.TRENDING: 2,
            MarketRegime.RANGING: 1,
        }[regime]
        confidence_factor = 2 if range_confidence < s.low_confidence_threshold else 0
        trend_factor = 2 if abs(trend_strength) > s.strong_trend_threshold else 0

        return int(clamp(vol_factor + regime_factor + confidence_factor + trend_factor, 0, s.max_risk_score))

    def _recommended_investment(self, risk_score: int) -> float:
        s = self.settings
        scaled = s.base_investment * (1 - risk_score / 20)
        return float(max(s.min_recommended_investment, round_half_up(scaled / 10) * 10))

    def _confidence(self, range_confidence: float, risk_score: int, regime: MarketRegime) -> int:
        s = self.settings
        regime_factor = {
            MarketRegime.RANGING: s.regime_confidence_ranging,
            MarketRegime.TRENDING: s.regime_confidence_trending,
            MarketRegime.HIGHLY_VOLATILE: s.regime_confidence_highly_volatile,
        }[regime]
        blended = (
            range_confidence * s.confidence_weight_range
            + (1 - risk_score / s.max_risk_score) * s.confidence_weight_risk
            + regime_factor * s.confidence_weight_regime
        )
        return round_half_up(blended * 100)

    def _level_count(self, regime: MarketRegime) -> int:
        s = self.settings
        return {
            MarketRegime.HIGHLY_VOLATILE: s.levels_highly_volatile,
            MarketRegime.TRENDING: s.levels_trending,
            MarketRegime.RANGING: s.levels_ranging,
        }[regime]

    def _trade_time_hours(self, regime: MarketRegime) -> int:
        s = self.settings
        return {
            MarketRegime.HIGHLY_VOLATILE: s.trade_hours_highly_volatile,
            MarketRegime.TRENDING: s.trade_hours_trending,
            MarketRegime.RANGING: s.trade_hours_ranging,
        }[regime]

    def _risk_warnings(self, expected_volatility: float, regime: MarketRegime, risk_score: int) -> list[str]:
        s = self.settings
        warnings = []
        if expected_volatility > s.warning_volatility_threshold:
            warnings.append(
                f"High expected volatility ({expected_volatility * 100:.1f}% daily): "
                "price may leave the grid range"
            )
        if regime == MarketRegime.TRENDING:
            warnings.append("Trending market: one side of the grid may stay unfilled")
        if risk_score > s.warning_risk_threshold:
            warnings.append(f"Risk score {risk_score}/{s.max_risk_score}: consider a smaller allocation")
        return warnings

    @staticmethod
    def _validate(current_price: float, leverage: float, investment: float) -> None:
        if not math.isfinite(current_price) or current_price <= 0:
            raise InvalidInputError("current_price must be positive")
        if not math.isfinite(investment) or investment <= 0:
            raise InvalidInputError("investment must be positive")
        if not math.isfinite(leverage) or leverage < 1:
            raise InvalidInputError("leverage must be at least 1")
