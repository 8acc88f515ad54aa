"""
HistoricalAnalyzer — Statistics derived from a daily price history.

Provides:
- Trailing-window baseline (mean daily return, volatility, daily trend)
- Monthly seasonality of 30-day returns and volatility
- 3-month range prediction from recency-weighted 90-day moves
- Regime and trend classification
- Support/resistance entry zones from price-bucket touch counts
"""

import math
from datetime import date, datetime
from typing import Sequence

import numpy as np
import pandas as pd

from grid_evaluator.config import AnalyzerSettings
from grid_evaluator.core.models import PriceCandle, candles_to_dataframe
from grid_evaluator.core.stats import clamp, mean, pstdev, round_half_up, simple_returns
from grid_evaluator.engine.models import (
    BaselineStatistics,
    MarketRegime,
    PredictedRange,
    SeasonalPattern,
    TrendLabel,
)
from grid_evaluator.exceptions import InvalidInputError
from grid_evaluator.logging import get_logger

logger = get_logger(__name__)


class HistoricalAnalyzer:
    """Analyzes historical candles for the optimizer and Monte Carlo engine."""

    def __init__(
        self,
        settings: AnalyzerSettings | None = None,
        baseline_window: int = 90,
    ) -> None:
        self.settings = settings or AnalyzerSettings()
        self.baseline_window = baseline_window

    # =========================================================================
    # Baseline
    # =========================================================================

    def baseline_statistics(
        self,
        candles: Sequence[PriceCandle],
        window: int | None = None,
    ) -> BaselineStatistics:
        """
        Daily return statistics over the last `window` candles.

        trend_per_day is the window's total return spread evenly over
        `window` days.
        """
        window = window or self.baseline_window
        if len(candles) < window:
            raise InvalidInputError(
                f"Need at least {window} candles, got {len(candles)}"
            )

        prices = [c.price for c in candles[-window:]]
        if any(not math.isfinite(p) or p <= 0 for p in prices):
            raise InvalidInputError("Historical prices must be positive")

        returns = simple_returns(prices)
        first, last = prices[0], prices[-1]

        return BaselineStatistics(
            mean_return=mean(returns),
            volatility=pstdev(returns),
            trend_per_day=(last - first) / first / window,
            last_price=last,
            window=window,
        )

    # =========================================================================
    # Seasonality
    # =========================================================================

    def analyze_seasonality(self, candles: Sequence[PriceCandle]) -> list[SeasonalPattern]:
        """
        Average 30-day return and volatility per calendar month.

        Each candle i >= window contributes the return from candle i - window
        and the RMS of the daily returns inside candles[i - window:i], filed
        under the month of candle i. Months with no samples are omitted.
        """
        w = self.settings.seasonal_window
        if len(candles) <= w:
            return []

        df = candles_to_dataframe(candles)
        prices = df["price"]

        period_return = prices / prices.shift(w) - 1
        daily = prices / prices.shift(1) - 1
        # RMS of the w - 1 daily returns strictly inside the lookback window
        rms = daily.pow(2).rolling(w - 1).mean().shift(1).pow(0.5)

        samples = pd.DataFrame(
            {
                "month": df["timestamp"].dt.month,
                "ret": period_return,
                "vol": rms,
            }
        ).iloc[w:]

        grouped = samples.groupby("month").agg(avg_return=("ret", "mean"), avg_volatility=("vol", "mean"))

        threshold = self.settings.seasonal_trend_threshold
        patterns = []
        for month, row in grouped.iterrows():
            avg_return = float(row["avg_return"])
            patterns.append(
                SeasonalPattern(
                    month=int(month),
                    avg_return=avg_return,
                    avg_volatility=float(row["avg_volatility"]),
                    trend=self._label(avg_return, threshold),
                )
            )

        logger.debug("Seasonality analyzed", candles=len(candles), months=len(patterns))
        return patterns

    @staticmethod
    def month_pattern(patterns: Sequence[SeasonalPattern], month: int) -> SeasonalPattern | None:
        for pattern in patterns:
            if pattern.month == month:
                return pattern
        return None

    @staticmethod
    def as_of_month(candles: Sequence[PriceCandle], as_of: date | datetime | None = None) -> int:
        """Calendar month (1-12) of `as_of`, else the UTC month of the last candle."""
        if as_of is not None:
            return as_of.month
        if not candles:
            raise InvalidInputError("Cannot infer as-of month from an empty history")
        return pd.to_datetime(candles[-1].timestamp, utc=True).month

    # =========================================================================
    # Range Prediction
    # =========================================================================

    def fallback_range(self, current_price: float, confidence: float | None = None) -> PredictedRange:
        band = self.settings.fallback_band_pct
        return PredictedRange(
            lower=current_price * (1 - band),
            upper=current_price * (1 + band),
            expected_mid=current_price,
            confidence=self.settings.fallback_confidence if confidence is None else confidence,
            is_fallback=True,
        )

    def predict_range_3m(
        self,
        candles: Sequence[PriceCandle],
        current_price: float,
        patterns: Sequence[SeasonalPattern],
        as_of: date | datetime | None = None,
    ) -> PredictedRange:
        """Predict the price range over the next three months."""
        if not math.isfinite(current_price) or current_price <= 0:
            raise InvalidInputError("current_price must be positive")

        s = self.settings
        n = len(candles)
        if n < s.min_history_for_range:
            logger.info(
                "Insufficient history for range prediction, using fallback band",
                candles=n,
                required=s.min_history_for_range,
            )
            return self.fallback_range(current_price)

        w = s.range_window
        prices = np.array([c.price for c in candles], dtype=float)
        highs = np.array([c.effective_high for c in candles], dtype=float)
        lows = np.array([c.effective_low for c in candles], dtype=float)

        # 1. Recency-weighted mean of historical 90-day moves
        moves = (prices[w:] - prices[:-w]) / prices[:-w]
        m = len(moves)
        weights = np.exp((np.arange(m) - m) / s.recency_decay)
        expected_move = float(np.sum(moves * weights) / np.sum(weights))

        # 2. Seasonal adjustment over the as-of month and the next two
        month = self.as_of_month(candles, as_of)
        upcoming = [(month - 1 + k) % 12 + 1 for k in range(3)]
        seasonal = []
        for mo in upcoming:
            pattern = self.month_pattern(patterns, mo)
            seasonal.append(pattern.avg_return if pattern else 0.0)
        adjusted_move = expected_move + sum(seasonal) / 3

        # 3. High-low span of every 90-candle window relative to its middle close
        window_highs = np.lib.stride_tricks.sliding_window_view(highs, w)[: n - w].max(axis=1)
        window_lows = np.lib.stride_tricks.sliding_window_view(lows, w)[: n - w].min(axis=1)
        mids = prices[np.arange(n - w) + w // 2]
        valid = (mids > 0) & (window_highs > window_lows)

        if not valid.any():
            logger.warning("No valid volatility windows, using fallback band", candles=n)
            return self.fallback_range(current_price)

        ratios = (window_highs[valid] - window_lows[valid]) / mids[valid]
        avg_ratio = mean(ratios)
        std_ratio = pstdev(ratios)

        expected_mid = current_price * (1 + adjusted_move)
        range_size = current_price * (avg_ratio + std_ratio * s.range_std_weight)
        lower = expected_mid - range_size / 2
        upper = expected_mid + range_size / 2

        # 4. Confidence from span consistency and history length
        consistency = 1 - std_ratio / avg_ratio if avg_ratio > 0 else 0.5
        quality = min(n / s.data_quality_days, 1.0)
        confidence = (
            consistency * s.consistency_weight + quality * (1 - s.consistency_weight)
        ) * s.confidence_scale

        if not all(math.isfinite(v) for v in (lower, upper, expected_mid, confidence)):
            logger.warning("Non-finite range prediction, using fallback band", candles=n)
            return self.fallback_range(current_price)
        if lower <= 0:
            logger.warning("Non-positive predicted lower bound, using fallback band", lower=lower)
            return self.fallback_range(current_price)

        return PredictedRange(
            lower=lower,
            upper=upper,
            expected_mid=expected_mid,
            confidence=clamp(confidence, s.confidence_min, s.confidence_max),
        )

    # =========================================================================
    # Classification
    # =========================================================================

    def expected_volatility(
        self,
        baseline_volatility: float,
        patterns: Sequence[SeasonalPattern],
        month: int,
    ) -> float:
        """Blend of recent volatility and the as-of month's seasonal volatility."""
        pattern = self.month_pattern(patterns, month)
        month_vol = pattern.avg_volatility if pattern else self.settings.default_month_volatility
        return (baseline_volatility + month_vol) / 2

    @staticmethod
    def trend_strength(predicted: PredictedRange, current_price: float) -> float:
        return abs(predicted.expected_mid - current_price) / current_price

    def classify_regime(self, expected_volatility: float, trend_strength: float) -> MarketRegime:
        if expected_volatility > self.settings.highly_volatile_threshold:
            return MarketRegime.HIGHLY_VOLATILE
        if trend_strength > self.settings.trending_threshold:
            return MarketRegime.TRENDING
        return MarketRegime.RANGING

    def predict_trend(self, predicted: PredictedRange, current_price: float) -> TrendLabel:
        band = self.settings.trend_prediction_band
        if predicted.expected_mid > current_price * (1 + band):
            return TrendLabel.BULLISH
        if predicted.expected_mid < current_price * (1 - band):
            return TrendLabel.BEARISH
        return TrendLabel.NEUTRAL

    # =========================================================================
    # Support / Resistance
    # =========================================================================

    def find_entry_zones(
        self,
        candles: Sequence[PriceCandle],
        predicted: PredictedRange,
    ) -> list[float]:
        """
        Most-touched price buckets inside the predicted range, ascending.

        Closes count with full weight, explicit highs and lows with half
        weight. Ties keep the order in which buckets were first seen.
        """
        s = self.settings
        bucket = s.entry_zone_bucket_size
        touches: dict[float, float] = {}

        def touch(price: float, weight: float) -> None:
            key = round_half_up(price / bucket) * bucket
            touches[key] = touches.get(key, 0.0) + weight

        for candle in candles:
            touch(candle.price, s.entry_zone_close_weight)
            if candle.high is not None:
                touch(candle.high, s.entry_zone_wick_weight)
            if candle.low is not None:
                touch(candle.low, s.entry_zone_wick_weight)

        in_range = [
            (price, weight)
            for price, weight in touches.items()
            if predicted.lower <= price <= predicted.upper
        ]
        ranked = sorted(in_range, key=lambda item: item[1], reverse=True)[: s.entry_zone_count]
        return sorted(float(price) for price, _ in ranked)

    @staticmethod
    def _label(avg_return: float, threshold: float) -> TrendLabel:
        if avg_return > threshold:
            return TrendLabel.BULLISH
        if avg_return < -threshold:
            return TrendLabel.BEARISH
        return TrendLabel.NEUTRAL
