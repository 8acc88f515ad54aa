"""
Evaluator Configuration — versioned constants for every component.

Collects fee rates, path-model constants, Monte Carlo jitter ranges,
analyzer thresholds and optimizer heuristics into one pydantic model that is
passed into every component. Defaults reproduce the reference behaviour; a
config can be loaded from or exported to YAML.
"""

from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator


CONFIG_VERSION = "1.0"


# =============================================================================
# Section Schemas
# =============================================================================


class FeeSchedule(BaseModel):
    """Trading costs and fill model used by the grid simulator."""

    model_config = ConfigDict(frozen=True)

    maker_fee: float = Field(default=0.0002, ge=0, lt=1)
    taker_fee: float = Field(default=0.0004, ge=0, lt=1)
    slippage: float = Field(default=0.0005, ge=0, lt=1)
    # No intraday data: high/low are approximated as close * (1 +/- this)
    intraday_range_pct: float = Field(default=0.01, ge=0, lt=1)
    # Fixed annualization, applied regardless of projection length
    sharpe_annualization_days: int = Field(default=90, ge=1)


class PathModelConfig(BaseModel):
    """Constants of the synthetic price-path model."""

    model_config = ConfigDict(frozen=True)

    volatility_amplifier: float = Field(default=2.0, ge=0)
    mean_reversion_strength: float = Field(default=0.005, ge=0, lt=1)
    price_floor_ratio: float = Field(default=0.7, ge=0, le=1)


class MonteCarloSettings(BaseModel):
    """Baseline window, per-trial jitter ranges and aggregation settings."""

    model_config = ConfigDict(frozen=True)

    baseline_window: int = Field(default=90, ge=2)
    drift_jitter_scale: float = Field(default=3.0, ge=0)
    volatility_jitter_min: float = Field(default=0.5, gt=0)
    volatility_jitter_max: float = Field(default=2.0, gt=0)
    seasonality_jitter_min: float = Field(default=0.8, gt=0)
    seasonality_jitter_max: float = Field(default=1.2, gt=0)
    sample_size: int = Field(default=100, ge=0)

    @model_validator(mode="after")
    def validate_ranges(self) -> "MonteCarloSettings":
        if self.volatility_jitter_max < self.volatility_jitter_min:
            raise ValueError("volatility_jitter_max must be >= volatility_jitter_min")
        if self.seasonality_jitter_max < self.seasonality_jitter_min:
            raise ValueError("seasonality_jitter_max must be >= seasonality_jitter_min")
        return self


class AnalyzerSettings(BaseModel):
    """Historical analysis windows, thresholds and fallbacks."""

    model_config = ConfigDict(frozen=True)

    seasonal_window: int = Field(default=30, ge=2)
    seasonal_trend_threshold: float = Field(default=0.02, ge=0)

    range_window: int = Field(default=90, ge=2)
    min_history_for_range: int = Field(default=180, ge=2)
    recency_decay: float = Field(default=50.0, gt=0)
    range_std_weight: float = Field(default=0.5, ge=0)
    fallback_band_pct: float = Field(default=0.15, gt=0, lt=1)
    fallback_confidence: float = Field(default=0.5, ge=0, le=1)
    consistency_weight: float = Field(default=0.7, ge=0, le=1)
    data_quality_days: int = Field(default=365, ge=1)
    confidence_scale: float = Field(default=0.85, gt=0, le=1)
    confidence_min: float = Field(default=0.3, ge=0, le=1)
    confidence_max: float = Field(default=0.85, ge=0, le=1)

    highly_volatile_threshold: float = Field(default=0.04, gt=0)
    trending_threshold: float = Field(default=0.05, gt=0)
    trend_prediction_band: float = Field(default=0.03, ge=0)
    default_month_volatility: float = Field(default=0.02, ge=0)

    entry_zone_bucket_size: float = Field(default=500.0, gt=0)
    entry_zone_close_weight: float = Field(default=1.0, ge=0)
    entry_zone_wick_weight: float = Field(default=0.5, ge=0)
    entry_zone_count: int = Field(default=5, ge=1)

    @model_validator(mode="after")
    def validate_confidence_bounds(self) -> "AnalyzerSettings":
        if self.confidence_max < self.confidence_min:
            raise ValueError("confidence_max must be >= confidence_min")
        return self


class OptimizerSettings(BaseModel):
    """Heuristics used to turn analysis into grid parameters and forecasts."""

    model_config = ConfigDict(frozen=True)

    min_history: int = Field(default=90, ge=1)
    min_lower_coverage: float = Field(default=0.08, ge=0, lt=1)
    min_upper_coverage: float = Field(default=0.08, ge=0)

    levels_highly_volatile: int = Field(default=60, ge=1)
    levels_trending: int = Field(default=40, ge=1)
    levels_ranging: int = Field(default=50, ge=1)

    fill_efficiency: float = Field(default=0.6, gt=0)
    projection_days_3m: int = Field(default=90, ge=1)

    trade_hours_highly_volatile: int = Field(default=12, ge=1)
    trade_hours_trending: int = Field(default=24, ge=1)
    trade_hours_ranging: int = Field(default=36, ge=1)

    # Risk score factors
    high_volatility_threshold: float = Field(default=0.05, gt=0)
    medium_volatility_threshold: float = Field(default=0.03, gt=0)
    low_confidence_threshold: float = Field(default=0.5, ge=0, le=1)
    strong_trend_threshold: float = Field(default=0.10, gt=0)
    max_risk_score: int = Field(default=10, ge=1)

    # Overall confidence blend
    confidence_weight_range: float = Field(default=0.4, ge=0)
    confidence_weight_risk: float = Field(default=0.3, ge=0)
    confidence_weight_regime: float = Field(default=0.3, ge=0)
    regime_confidence_ranging: float = Field(default=0.9, ge=0, le=1)
    regime_confidence_trending: float = Field(default=0.7, ge=0, le=1)
    regime_confidence_highly_volatile: float = Field(default=0.5, ge=0, le=1)

    # Leverage recommendation and warnings
    leverage_conservative: float = Field(default=1.0, ge=1)
    leverage_moderate: float = Field(default=2.0, ge=1)
    leverage_aggressive: float = Field(default=3.0, ge=1)
    volatile_leverage_cut: float = Field(default=1.0, ge=0)
    trending_leverage_cut: float = Field(default=0.5, ge=0)
    high_volatility_leverage_scale: float = Field(default=0.7, gt=0, le=1)
    warning_volatility_threshold: float = Field(default=0.04, gt=0)
    warning_risk_threshold: int = Field(default=7, ge=0)

    maintenance_margin_rate: float = Field(default=0.005, ge=0, lt=1)
    margin_requirement_ratio: float = Field(default=0.01, ge=0)
    funding_fee_rate: float = Field(default=0.0003, ge=0)

    base_investment: float = Field(default=100.0, gt=0)
    min_recommended_investment: float = Field(default=50.0, gt=0)

    horizons: tuple[int, ...] = Field(default=(7, 30, 90, 180))
    daily_return_factor: float = Field(default=0.01, gt=0)
    return_mult_ranging: float = Field(default=1.2, ge=0)
    return_mult_trending: float = Field(default=0.7, ge=0)
    return_mult_highly_volatile: float = Field(default=0.9, ge=0)
    bullish_return_boost: float = Field(default=1.1, ge=0)
    bearish_trending_return_cut: float = Field(default=0.6, ge=0)
    volatility_drift_per_year: float = Field(default=0.1, ge=0)
    range_mult_highly_volatile: float = Field(default=1.5, gt=0)
    range_mult_trending: float = Field(default=1.2, gt=0)
    range_mult_ranging: float = Field(default=1.0, gt=0)
    horizon_confidence_ranging: float = Field(default=0.85, ge=0, le=1)
    horizon_confidence_trending: float = Field(default=0.70, ge=0, le=1)
    horizon_confidence_highly_volatile: float = Field(default=0.60, ge=0, le=1)
    confidence_decay_days: float = Field(default=120.0, gt=0)
    base_success_probability: float = Field(default=0.75, ge=0, le=1)
    ranging_success_bonus: float = Field(default=0.15, ge=0)
    ranging_success_bonus_per_year: float = Field(default=0.05, ge=0)
    trending_success_penalty: float = Field(default=0.20, ge=0)
    trending_success_penalty_per_year: float = Field(default=0.10, ge=0)
    high_volatility_success_penalty: float = Field(default=0.10, ge=0)
    success_probability_min: float = Field(default=0.40, ge=0, le=1)
    success_probability_max: float = Field(default=0.95, ge=0, le=1)

    # Static fallback used below min_history
    fallback_range_pct: float = Field(default=0.10, gt=0, lt=1)
    fallback_levels: int = Field(default=40, ge=1)
    fallback_volatility: float = Field(default=0.02, ge=0)
    fallback_risk_score: int = Field(default=5, ge=0, le=10)
    fallback_trade_time_hours: int = Field(default=24, ge=1)

    @model_validator(mode="after")
    def validate_horizons(self) -> "OptimizerSettings":
        if not self.horizons or any(h <= 0 for h in self.horizons):
            raise ValueError("horizons must be a non-empty list of positive day counts")
        if self.success_probability_max < self.success_probability_min:
            raise ValueError("success_probability_max must be >= success_probability_min")
        return self


# =============================================================================
# Root Config
# =============================================================================


class EvaluatorConfig(BaseModel):
    """
    Complete evaluator configuration.

    The version string is part of the reproducibility contract: two runs are
    only comparable when they share the same version and constants.
    """

    model_config = ConfigDict(frozen=True)

    version: str = Field(default=CONFIG_VERSION)
    fees: FeeSchedule = Field(default_factory=FeeSchedule)
    path_model: PathModelConfig = Field(default_factory=PathModelConfig)
    monte_carlo: MonteCarloSettings = Field(default_factory=MonteCarloSettings)
    analyzer: AnalyzerSettings = Field(default_factory=AnalyzerSettings)
    optimizer: OptimizerSettings = Field(default_factory=OptimizerSettings)

    def with_overrides(self, **sections: dict[str, Any]) -> "EvaluatorConfig":
        """
        Return a copy with selected section values replaced.

        Example:
            config.with_overrides(fees={"maker_fee": 0.001})
        """
        data = self.model_dump()
        for section, values in sections.items():
            if section not in data or not isinstance(data[section], dict):
                raise ValueError(f"Unknown config section: {section}")
            data[section].update(values)
        return EvaluatorConfig(**data)

    def to_yaml(self) -> str:
        """Serialize to YAML string."""
        data = self.model_dump(mode="json")
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "EvaluatorConfig":
        """Load from YAML string."""
        data = yaml.safe_load(yaml_str) or {}
        return cls(**data)

    @classmethod
    def from_yaml_file(cls, path: str) -> "EvaluatorConfig":
        """Load from YAML file."""
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)


DEFAULT_CONFIG = EvaluatorConfig()
