"""Tests for HistoricalAnalyzer."""

from datetime import date

import pytest

from grid_evaluator.config import AnalyzerSettings
from grid_evaluator.core.models import PriceCandle
from grid_evaluator.engine.analyzer import HistoricalAnalyzer
from grid_evaluator.engine.models import MarketRegime, PredictedRange, SeasonalPattern, TrendLabel
from grid_evaluator.exceptions import InvalidInputError
from tests.conftest import make_candles, make_series_candles


@pytest.fixture
def analyzer():
    return HistoricalAnalyzer()


def _growth_candles(n: int = 400, rate: float = 0.001) -> list[PriceCandle]:
    return make_series_candles([100.0 * (1 + rate) ** i for i in range(n)])


class TestBaselineStatistics:

    def test_linear_series(self, analyzer):
        candles = make_series_candles([100.0 + i for i in range(120)])
        baseline = analyzer.baseline_statistics(candles)

        assert baseline.window == 90
        assert baseline.last_price == 219.0
        assert baseline.trend_per_day == pytest.approx((219.0 - 130.0) / 130.0 / 90)
        assert baseline.mean_return > 0
        assert baseline.volatility > 0

    def test_constant_growth_has_zero_volatility(self, analyzer):
        baseline = analyzer.baseline_statistics(_growth_candles(100))
        assert baseline.mean_return == pytest.approx(0.001)
        assert baseline.volatility == pytest.approx(0.0, abs=1e-12)

    def test_too_few_candles_raise(self, analyzer):
        with pytest.raises(InvalidInputError):
            analyzer.baseline_statistics(make_candles(n=50))

    def test_custom_window(self, analyzer):
        baseline = analyzer.baseline_statistics(make_candles(n=50), window=30)
        assert baseline.window == 30


class TestSeasonality:

    def test_all_months_present_for_a_year(self, analyzer):
        patterns = analyzer.analyze_seasonality(_growth_candles(400))
        assert [p.month for p in patterns] == list(range(1, 13))

    def test_constant_growth_values(self, analyzer):
        patterns = analyzer.analyze_seasonality(_growth_candles(400))
        expected_return = 1.001 ** 30 - 1
        for pattern in patterns:
            assert pattern.avg_return == pytest.approx(expected_return)
            assert pattern.avg_volatility == pytest.approx(0.001)
            assert pattern.trend == TrendLabel.BULLISH

    def test_declining_series_is_bearish(self, analyzer):
        patterns = analyzer.analyze_seasonality(_growth_candles(200, rate=-0.002))
        assert patterns
        assert all(p.trend == TrendLabel.BEARISH for p in patterns)

    def test_flat_series_is_neutral(self, analyzer):
        patterns = analyzer.analyze_seasonality(make_series_candles([50.0] * 100))
        assert all(p.trend == TrendLabel.NEUTRAL for p in patterns)
        assert all(p.avg_volatility == 0.0 for p in patterns)

    def test_short_history_returns_nothing(self, analyzer):
        assert analyzer.analyze_seasonality(make_candles(n=30)) == []

    def test_month_of_sample_is_month_of_later_candle(self, analyzer):
        # 31 candles from 2023-01-01: the only sample is candle 30 (Jan 31)
        patterns = analyzer.analyze_seasonality(_growth_candles(31))
        assert [p.month for p in patterns] == [1]
        # 32 candles: candle 31 falls on Feb 1
        patterns = analyzer.analyze_seasonality(_growth_candles(32))
        assert [p.month for p in patterns] == [1, 2]


class TestRangePrediction:

    def test_fallback_below_180_candles(self, analyzer):
        predicted = analyzer.predict_range_3m(make_candles(n=179), 100.0, [])
        assert predicted.is_fallback
        assert predicted.lower == pytest.approx(85.0)
        assert predicted.upper == pytest.approx(115.0)
        assert predicted.expected_mid == 100.0
        assert predicted.confidence == 0.5

    def test_fallback_when_no_valid_windows(self, analyzer):
        # Flat closes without wicks: every window has high == low
        predicted = analyzer.predict_range_3m(make_series_candles([100.0] * 200), 100.0, [])
        assert predicted.is_fallback
        assert predicted.confidence == 0.5

    def test_prediction_bounds(self, analyzer, candles_400):
        current = candles_400[-1].price
        patterns = analyzer.analyze_seasonality(candles_400)
        predicted = analyzer.predict_range_3m(candles_400, current, patterns)

        assert not predicted.is_fallback
        assert 0 < predicted.lower < predicted.expected_mid < predicted.upper
        assert 0.3 <= predicted.confidence <= 0.85

    def test_seasonal_adjustment_uses_as_of_months(self, analyzer, candles_400):
        current = candles_400[-1].price
        boost = [SeasonalPattern(m, 0.3, 0.01, TrendLabel.BULLISH) for m in (11, 12, 1)]

        base = analyzer.predict_range_3m(candles_400, current, [], as_of=date(2024, 11, 15))
        boosted = analyzer.predict_range_3m(candles_400, current, boost, as_of=date(2024, 11, 15))
        unrelated = analyzer.predict_range_3m(candles_400, current, boost, as_of=date(2024, 5, 15))

        assert boosted.expected_mid == pytest.approx(base.expected_mid + current * 0.3)
        assert unrelated.expected_mid == pytest.approx(base.expected_mid)

    def test_non_finite_prediction_falls_back(self, analyzer, candles_400):
        current = candles_400[-1].price
        nan_months = [SeasonalPattern(m, float("nan"), 0.01, TrendLabel.NEUTRAL) for m in range(1, 13)]
        predicted = analyzer.predict_range_3m(candles_400, current, nan_months, as_of=date(2024, 3, 1))

        assert predicted.is_fallback
        assert predicted.lower == pytest.approx(current * 0.85)
        assert predicted.upper == pytest.approx(current * 1.15)
        assert predicted.confidence == 0.5

    def test_non_positive_lower_bound_falls_back(self, analyzer, candles_400):
        # A seasonal crash of -150% drags the expected mid below zero
        current = candles_400[-1].price
        crash = [SeasonalPattern(m, -1.5, 0.05, TrendLabel.BEARISH) for m in range(1, 13)]
        predicted = analyzer.predict_range_3m(candles_400, current, crash, as_of=date(2024, 3, 1))

        assert predicted.is_fallback
        assert predicted.lower == pytest.approx(current * 0.85)
        assert predicted.upper == pytest.approx(current * 1.15)
        assert predicted.expected_mid == current

    def test_non_positive_current_price_raises(self, analyzer, candles_400):
        with pytest.raises(InvalidInputError):
            analyzer.predict_range_3m(candles_400, 0.0, [])

    def test_as_of_defaults_to_last_candle(self, analyzer):
        candles = make_candles(n=40)  # 2023-01-01 .. 2023-02-09
        assert analyzer.as_of_month(candles) == 2
        assert analyzer.as_of_month(candles, date(2024, 7, 1)) == 7

    def test_as_of_month_matches_seasonality_bucket_for_offset_timestamps(self, analyzer):
        # 23:00 at UTC-5 on Jan 31 is Feb 1 in UTC
        candles = make_series_candles([100.0 + i for i in range(31)], start="2023-01-01")
        last = candles[-1]
        candles[-1] = PriceCandle(time=last.time, price=last.price, timestamp="2023-01-31T23:00:00-05:00")

        assert analyzer.as_of_month(candles) == 2
        assert [p.month for p in analyzer.analyze_seasonality(candles)] == [2]


class TestClassification:

    def test_regime(self, analyzer):
        assert analyzer.classify_regime(0.05, 0.0) == MarketRegime.HIGHLY_VOLATILE
        assert analyzer.classify_regime(0.02, 0.06) == MarketRegime.TRENDING
        assert analyzer.classify_regime(0.02, 0.01) == MarketRegime.RANGING
        # Boundaries are exclusive
        assert analyzer.classify_regime(0.04, 0.05) == MarketRegime.RANGING

    def test_trend(self, analyzer):
        def predicted(mid: float) -> PredictedRange:
            return PredictedRange(lower=mid * 0.9, upper=mid * 1.1, expected_mid=mid, confidence=0.5)

        assert analyzer.predict_trend(predicted(104.0), 100.0) == TrendLabel.BULLISH
        assert analyzer.predict_trend(predicted(96.0), 100.0) == TrendLabel.BEARISH
        assert analyzer.predict_trend(predicted(102.0), 100.0) == TrendLabel.NEUTRAL

    def test_expected_volatility_defaults_missing_month(self, analyzer):
        patterns = [SeasonalPattern(3, 0.0, 0.04, TrendLabel.NEUTRAL)]
        assert analyzer.expected_volatility(0.02, patterns, 3) == pytest.approx(0.03)
        assert analyzer.expected_volatility(0.02, patterns, 4) == pytest.approx(0.02)


class TestEntryZones:

    RANGE = PredictedRange(lower=44000.0, upper=46000.0, expected_mid=45000.0, confidence=0.6)

    def test_buckets_by_touch_weight(self, analyzer):
        candles = make_series_candles([45100.0, 45200.0, 45600.0, 44900.0])
        assert analyzer.find_entry_zones(candles, self.RANGE) == [45000.0, 45500.0]

    def test_half_rounds_up(self, analyzer):
        # 45250 / 500 = 90.5 -> bucket 45500
        candles = make_series_candles([45250.0])
        assert analyzer.find_entry_zones(candles, self.RANGE) == [45500.0]

    def test_wicks_count_half(self, analyzer):
        candles = [
            PriceCandle(time=0, price=45000.0, timestamp="2024-01-01", high=45500.0, low=44500.0),
            PriceCandle(time=1, price=45000.0, timestamp="2024-01-02", high=45500.0, low=44500.0),
        ]
        zones = analyzer.find_entry_zones(candles, self.RANGE)
        assert zones == [44500.0, 45000.0, 45500.0]

    def test_outside_range_excluded(self, analyzer):
        candles = make_series_candles([30000.0, 45000.0, 60000.0])
        assert analyzer.find_entry_zones(candles, self.RANGE) == [45000.0]

    def test_top_five_with_first_seen_ties(self):
        analyzer = HistoricalAnalyzer(AnalyzerSettings(entry_zone_bucket_size=100.0))
        wide = PredictedRange(lower=0.0, upper=10000.0, expected_mid=5000.0, confidence=0.6)
        prices = [800.0, 700.0, 600.0, 500.0, 400.0, 300.0, 200.0, 800.0, 200.0]
        zones = analyzer.find_entry_zones(make_series_candles(prices), wide)
        # 800 and 200 have two touches; of the single-touch buckets 700, 600, 500 come first
        assert zones == [200.0, 500.0, 600.0, 700.0, 800.0]

    def test_empty_history(self, analyzer):
        assert analyzer.find_entry_zones([], self.RANGE) == []
