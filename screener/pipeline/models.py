"""Pipeline data models — per-phase detail records and the terminal result.

Every detail record carries ``evaluated``: ``False`` means an earlier phase
failed so this phase's gate was not applied.  The measurements are still
filled in for explainability.
"""

from dataclasses import dataclass
from typing import Optional

from screener.analysis.models import (
    DivergenceResult,
    IndicatorSet,
    RsiTier,
    SectorContext,
    Signal,
    VolumeTrend,
    WeeklyTrendHealth,
)


@dataclass(frozen=True)
class LiquidityDetails:
    evaluated: bool
    avg_daily_turnover: float
    min_avg_daily_turnover: float
    conditions_pass: bool


@dataclass(frozen=True)
class TrendDetails:
    evaluated: bool
    ema_aligned: bool
    adx: float
    min_adx: float
    adx_strong_enough: bool
    relative_strength_positive: bool
    macd_bullish: bool
    supertrend_up: bool
    conditions_pass: bool


@dataclass(frozen=True)
class MomentumDetails:
    evaluated: bool
    pullback_to_ema: bool
    ema_proximity: float  # % distance to the nearer of EMA20/EMA50
    rsi_in_zone: bool
    rsi_value: float
    rsi_tier: RsiTier
    rsi_tier_score: int
    roc_positive: bool
    plus_di_above_minus_di: bool
    stochastic_bullish: bool
    macd_histogram_positive: bool
    volume_decline: bool
    candlestick_pattern: Optional[str]
    conditions_met: int
    conditions_pass: bool


@dataclass(frozen=True)
class VolumeDetails:
    evaluated: bool
    obv_trending_up: bool
    volume_above_avg: bool
    mfi_healthy: bool
    volume_trend: VolumeTrend
    volume_trend_score: int
    vroc20: float
    conditions_met: int
    conditions_pass: bool


@dataclass(frozen=True)
class VolatilityDetails:
    evaluated: bool
    atr_percent: float
    atr_reasonable: bool
    bollinger_expanding: bool
    price_in_upper_band: bool
    conditions_pass: bool


@dataclass(frozen=True)
class RiskParams:
    """Entry, stop and target for a long position."""

    entry_price: float
    stop_loss: float
    target: float
    risk_reward_ratio: float
    risk_per_share: float
    atr_multiple: float


@dataclass(frozen=True)
class ScreenerResult:
    """Terminal per-symbol output of the six-phase funnel."""

    symbol: str
    name: str
    sector: str
    indicators: IndicatorSet
    weekly_trend: WeeklyTrendHealth
    divergences: DivergenceResult
    sector_context: SectorContext

    phase1_pass: bool
    phase2_pass: bool
    phase3_pass: bool
    phase4_volume_pass: bool
    phase5_volatility_pass: bool

    phase1_details: LiquidityDetails
    phase2_details: TrendDetails
    phase3_details: MomentumDetails
    phase4_volume_details: VolumeDetails
    phase5_volatility_details: VolatilityDetails
    phase6_risk: RiskParams

    overall_score: int  # 0–100
    signal: Signal
    rationale: tuple[str, ...]

    @property
    def rationale_text(self) -> str:
        return ". ".join(self.rationale) + "." if self.rationale else ""
