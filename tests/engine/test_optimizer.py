"""Tests for GridParameterOptimizer."""

import math
from dataclasses import replace

import pytest

from grid_evaluator.config import EvaluatorConfig
from grid_evaluator.core.models import GridParameters
from grid_evaluator.engine.models import MarketRegime, RiskTolerance, TrendLabel
from grid_evaluator.engine.optimizer import GridParameterOptimizer
from grid_evaluator.exceptions import InvalidInputError
from tests.conftest import make_candles, make_ranging_candles


LEVELS_BY_REGIME = {
    MarketRegime.HIGHLY_VOLATILE: 60,
    MarketRegime.TRENDING: 40,
    MarketRegime.RANGING: 50,
}


@pytest.fixture
def optimizer():
    return GridParameterOptimizer()


class TestFallback:

    def test_static_grid_below_90_candles(self, optimizer, short_history):
        params = optimizer.optimize(short_history, 50000.0)

        assert params.is_fallback
        assert params.grid.lower_bound == pytest.approx(45000.0)
        assert params.grid.upper_bound == pytest.approx(55000.0)
        assert params.grid.level_count == 40
        assert params.grid.profit_per_grid_pct == pytest.approx(0.5)
        assert params.grid.spacing == pytest.approx(250.0)
        assert params.confidence == 0
        assert params.volatility_score == 0.0
        assert params.market_regime == MarketRegime.RANGING
        assert params.trend_prediction == TrendLabel.NEUTRAL
        assert params.predicted_range_3m.confidence == 0.0
        assert params.predicted_range_3m.lower == pytest.approx(42500.0)
        assert params.expected_volatility == 0.02
        assert params.seasonality_factor == 1.0
        assert params.optimal_entry_zones == ()
        assert params.risk_score == 5
        assert params.estimated_fills_3m == 0
        assert params.estimated_profit_3m == 0
        assert params.avg_trade_time_hours == 24
        assert params.recommended_investment == 100

    def test_fallback_still_has_horizons(self, optimizer):
        params = optimizer.optimize([], 100.0)
        assert sorted(params.time_horizon_predictions) == [7, 30, 90, 180]

    def test_fallback_leverage_profile(self, optimizer):
        params = optimizer.optimize(make_candles(n=10), 100.0, leverage=2.0, investment=1000.0)
        assert params.leverage.effective_capital == 2000.0
        assert params.leverage.liquidation_price == pytest.approx(50.25)


class TestOptimize:

    @pytest.mark.parametrize("factory", [make_candles, make_ranging_candles])
    def test_grid_invariants(self, optimizer, factory):
        candles = factory(n=400)
        current = candles[-1].price
        params = optimizer.optimize(candles, current, leverage=2.0, investment=1000.0)
        grid = params.grid

        assert not params.is_fallback
        assert grid.lower_bound <= current * 0.92 + 1e-9
        assert grid.upper_bound >= current * 1.08 - 1e-9
        assert grid.level_count == LEVELS_BY_REGIME[params.market_regime]
        assert grid.spacing == pytest.approx((grid.upper_bound - grid.lower_bound) / grid.level_count)
        assert grid.profit_per_grid_pct == pytest.approx(grid.spacing / current * 100)

    def test_scores_in_range(self, optimizer, candles_400):
        params = optimizer.optimize(candles_400, candles_400[-1].price)

        assert 0 <= params.confidence <= 100
        assert 0 <= params.risk_score <= 10
        assert params.recommended_investment >= 50
        assert params.recommended_investment % 10 == 0
        assert params.estimated_fills_3m >= 0
        assert math.isfinite(params.expected_volatility)
        assert params.volatility_score == params.expected_volatility
        assert len(params.optimal_entry_zones) <= 5
        assert list(params.optimal_entry_zones) == sorted(params.optimal_entry_zones)

    def test_horizon_predictions(self, optimizer, candles_400):
        params = optimizer.optimize(candles_400, candles_400[-1].price)
        horizons = params.time_horizon_predictions

        assert sorted(horizons) == [7, 30, 90, 180]
        for prediction in horizons.values():
            assert 0.40 <= prediction.success_probability <= 0.95
            r = prediction.price_range_prediction
            assert r.lower <= candles_400[-1].price <= r.upper
        assert horizons[7].price_range_prediction.confidence > horizons[180].price_range_prediction.confidence

    def test_as_of_is_deterministic(self, optimizer, candles_400):
        current = candles_400[-1].price
        a = optimizer.optimize(candles_400, current)
        b = optimizer.optimize(candles_400, current)
        assert a == b

    def test_to_dict(self, optimizer, candles_400):
        d = optimizer.optimize(candles_400, candles_400[-1].price).to_dict()
        assert set(d["time_horizon_predictions"]) == {"7", "30", "90", "180"}
        assert d["market_regime"] in {"ranging", "trending", "highly_volatile"}
        assert "liquidation_price" in d

    @pytest.mark.parametrize(
        "price,leverage,investment",
        [(0.0, 1.0, 1000.0), (-5.0, 1.0, 1000.0), (100.0, 0.5, 1000.0), (100.0, 1.0, 0.0)],
    )
    def test_invalid_inputs_raise(self, optimizer, candles_400, price, leverage, investment):
        with pytest.raises(InvalidInputError):
            optimizer.optimize(candles_400, price, leverage, investment)

    @pytest.mark.parametrize(
        "field,value",
        [("price", 0.0), ("price", -10.0), ("price", float("nan")), ("low", 0.0), ("high", float("inf"))],
    )
    def test_bad_price_early_in_history_raises(self, optimizer, field, value):
        # Outside the trailing baseline window, so only a full-history check catches it
        candles = make_candles(n=300)
        candles[5] = replace(candles[5], **{field: value})
        with pytest.raises(InvalidInputError, match=field):
            optimizer.optimize(candles, candles[-1].price)

    def test_bad_price_in_short_history_raises(self, optimizer):
        candles = make_candles(n=30)
        candles[0] = replace(candles[0], price=0.0)
        with pytest.raises(InvalidInputError):
            optimizer.optimize(candles, 100.0)


class TestLeverage:

    def test_profile(self, optimizer):
        profile = optimizer.leverage_profile(100.0, 1000.0, 2.0)
        assert profile.effective_capital == 2000.0
        assert profile.liquidation_price == pytest.approx(100.0 * (1 - 0.5 * 0.995))
        assert profile.margin_requirement == pytest.approx(20.0)
        assert profile.funding_fee_rate == 0.0003

    def test_recommended_leverage(self, optimizer):
        assert optimizer.recommend_leverage(MarketRegime.RANGING, 0.02, RiskTolerance.MODERATE) == 2.0
        assert optimizer.recommend_leverage(MarketRegime.TRENDING, 0.02, RiskTolerance.MODERATE) == 1.5
        assert optimizer.recommend_leverage(MarketRegime.TRENDING, 0.02, RiskTolerance.CONSERVATIVE) == 1.0
        assert optimizer.recommend_leverage(MarketRegime.HIGHLY_VOLATILE, 0.06, RiskTolerance.AGGRESSIVE) == 1.4
        assert optimizer.recommend_leverage(MarketRegime.HIGHLY_VOLATILE, 0.06, RiskTolerance.CONSERVATIVE) == 1.0

    def test_tolerance_accepts_string(self, optimizer):
        assert optimizer.recommend_leverage(MarketRegime.RANGING, 0.01, "aggressive") == 3.0


class TestScoring:

    def test_recommended_investment_rounds_half_up(self, optimizer):
        # 100 * (1 - 3/20) = 85 -> 8.5 tens -> 90
        assert optimizer._recommended_investment(3) == 90
        assert optimizer._recommended_investment(0) == 100
        assert optimizer._recommended_investment(10) == 50

    def test_risk_score_factors(self, optimizer):
        assert optimizer._risk_score(0.01, MarketRegime.RANGING, 0.8, 0.0) == 2
        assert optimizer._risk_score(0.04, MarketRegime.TRENDING, 0.8, 0.06) == 4
        assert optimizer._risk_score(0.06, MarketRegime.HIGHLY_VOLATILE, 0.3, 0.2) == 10

    def test_confidence(self, optimizer):
        # 0.8 * 0.4 + (1 - 0.2) * 0.3 + 0.9 * 0.3 = 0.83
        assert optimizer._confidence(0.8, 2, MarketRegime.RANGING) == 83

    def test_risk_warnings(self, optimizer):
        assert optimizer._risk_warnings(0.02, MarketRegime.RANGING, 3) == []
        warnings = optimizer._risk_warnings(0.05, MarketRegime.TRENDING, 8)
        assert len(warnings) == 3


class TestTimeHorizons:

    GRID = GridParameters(90.0, 110.0, 40, 0.5)

    def test_ranging_forecast(self, optimizer):
        horizons = optimizer.predict_time_horizons(100.0, self.GRID, 0.02, MarketRegime.RANGING, TrendLabel.NEUTRAL)
        week = horizons[7]

        assert week.expected_return_pct == pytest.approx(0.5 * 0.01 * 1.2 * 7 * 100)
        assert week.estimated_apr == pytest.approx(week.expected_return_pct / (7 / 365))
        assert week.fills_estimate == 17  # 4 per day * 0.6 * 7 = 16.8
        assert week.volatility_forecast == pytest.approx(0.02 * (1 + 7 / 365 * 0.1))
        assert week.success_probability == pytest.approx(0.75 + 0.15 + 7 / 365 * 0.05)
        half = 100.0 * 0.02 * math.sqrt(7) * 1.0 * 0.5
        assert week.price_range_prediction.lower == pytest.approx(100.0 - half)
        assert week.price_range_prediction.upper == pytest.approx(100.0 + half)
        assert week.price_range_prediction.confidence == pytest.approx(0.85 * math.exp(-7 / 120))

    def test_trending_bearish_forecast(self, optimizer):
        horizons = optimizer.predict_time_horizons(100.0, self.GRID, 0.02, MarketRegime.TRENDING, TrendLabel.BEARISH)
        half_year = horizons[180]

        assert half_year.expected_return_pct == pytest.approx(0.5 * 0.01 * 0.7 * 0.6 * 180 * 100)
        assert half_year.success_probability == pytest.approx(0.75 - 0.20 - 180 / 365 * 0.10)

    def test_bullish_boost_only_outside_trend(self, optimizer):
        ranging = optimizer.predict_time_horizons(100.0, self.GRID, 0.02, MarketRegime.RANGING, TrendLabel.BULLISH)
        trending = optimizer.predict_time_horizons(100.0, self.GRID, 0.02, MarketRegime.TRENDING, TrendLabel.BULLISH)
        assert ranging[30].expected_return_pct == pytest.approx(0.5 * 0.01 * 1.2 * 1.1 * 30 * 100)
        assert trending[30].expected_return_pct == pytest.approx(0.5 * 0.01 * 0.7 * 30 * 100)

    def test_success_probability_clamped(self):
        config = EvaluatorConfig().with_overrides(optimizer={"base_success_probability": 0.5})
        horizons = GridParameterOptimizer(config).predict_time_horizons(
            100.0, self.GRID, 0.08, MarketRegime.TRENDING, TrendLabel.NEUTRAL,
        )
        assert horizons[180].success_probability == pytest.approx(0.40)
        assert horizons[7].success_probability == pytest.approx(0.40)
