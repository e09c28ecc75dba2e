"""Composite score, signal classification and rationale — pure functions."""

from screener.analysis.models import (
    CloudSignal,
    DivergenceResult,
    IndicatorSet,
    SectorContext,
    Signal,
    TrendDirection,
    WeeklyStatus,
    WeeklyTrendHealth,
)
from screener.config import EffectiveConfig
from screener.pipeline.models import (
    MomentumDetails,
    RiskParams,
    VolatilityDetails,
    VolumeDetails,
)

MIN_SCORE = 0
MAX_SCORE = 100

# Point values, grouped by phase.
LIQUIDITY_PASS_POINTS = 15
TREND_PASS_POINTS = 10
MACD_CONFIRM_POINTS = 3
SUPERTREND_CONFIRM_POINTS = 3
SAR_CONFIRM_POINTS = 2
CLOUD_CONFIRM_POINTS = 2

PULLBACK_POINTS = 5
ROC_POINTS = 4
DI_POINTS = 4
STOCHASTIC_POINTS = 3
MACD_HIST_POINTS = 2
PATTERN_POINTS = 2

OBV_POINTS = 5
MFI_POINTS = 5
ABOVE_AVG_VOLUME_POINTS = 3

ATR_POINTS = 4
EXPANSION_POINTS = 3
UPPER_BAND_POINTS = 3

STRONG_ADX_LEVEL = 35.0
STRONG_ADX_POINTS = 3
STRONG_RS_LEVEL = 5.0
STRONG_RS_POINTS = 2


def _macd_bullish(ind: IndicatorSet) -> bool:
    return ind.macd_line > ind.macd_signal and ind.macd_line > 0


def calculate_score(
    phase1_pass: bool,
    phase2_pass: bool,
    indicators: IndicatorSet,
    momentum: MomentumDetails,
    volume: VolumeDetails,
    volatility: VolatilityDetails,
    weekly: WeeklyTrendHealth,
    divergences: DivergenceResult,
    sector: SectorContext,
) -> int:
    """Sum the point contributions of every phase and clamp to [0, 100].

    Phase 3–5 detail points are counted whether or not the phase was
    reached, so the score still ranks symbols that fail early.
    """
    ind = indicators
    score = 0

    if phase1_pass:
        score += LIQUIDITY_PASS_POINTS

    if phase2_pass:
        score += TREND_PASS_POINTS
    if _macd_bullish(ind):
        score += MACD_CONFIRM_POINTS
    if ind.supertrend_direction is TrendDirection.UP:
        score += SUPERTREND_CONFIRM_POINTS
    if ind.sar_trend is TrendDirection.UP:
        score += SAR_CONFIRM_POINTS
    if ind.ichimoku_cloud_signal is CloudSignal.ABOVE:
        score += CLOUD_CONFIRM_POINTS
    score += weekly.score

    if momentum.pullback_to_ema:
        score += PULLBACK_POINTS
    score += momentum.rsi_tier_score
    if momentum.roc_positive:
        score += ROC_POINTS
    if momentum.plus_di_above_minus_di:
        score += DI_POINTS
    if momentum.stochastic_bullish:
        score += STOCHASTIC_POINTS
    if momentum.macd_histogram_positive:
        score += MACD_HIST_POINTS
    if momentum.candlestick_pattern:
        score += PATTERN_POINTS
    score += divergences.net_score

    if volume.obv_trending_up:
        score += OBV_POINTS
    if volume.mfi_healthy:
        score += MFI_POINTS
    score += volume.volume_trend_score
    if volume.volume_above_avg:
        score += ABOVE_AVG_VOLUME_POINTS

    if volatility.atr_reasonable:
        score += ATR_POINTS
    if volatility.bollinger_expanding:
        score += EXPANSION_POINTS
    if volatility.price_in_upper_band:
        score += UPPER_BAND_POINTS

    if ind.adx14 > STRONG_ADX_LEVEL:
        score += STRONG_ADX_POINTS
    if ind.relative_strength_3m > STRONG_RS_LEVEL:
        score += STRONG_RS_POINTS
    score += sector.score_impact

    return max(MIN_SCORE, min(MAX_SCORE, score))


def determine_signal(
    score: float,
    phase1_pass: bool,
    phase2_pass: bool,
    phase3_pass: bool,
    phase4_pass: bool,
    effective: EffectiveConfig,
) -> Signal:
    """Map gating outcome and score to a signal using regime-adjusted floors."""
    if phase1_pass and phase2_pass and phase3_pass and phase4_pass and score >= effective.strong_buy_threshold:
        return Signal.STRONG_BUY
    if phase1_pass and phase2_pass and phase3_pass and score >= effective.buy_threshold:
        return Signal.BUY
    if phase1_pass and phase2_pass and score >= effective.watch_threshold:
        return Signal.WATCH
    if phase1_pass:
        return Signal.NEUTRAL
    return Signal.AVOID


def generate_rationale(
    indicators: IndicatorSet,
    momentum: MomentumDetails,
    volume: VolumeDetails,
    volatility: VolatilityDetails,
    weekly: WeeklyTrendHealth,
    divergences: DivergenceResult,
    sector: SectorContext,
    risk: RiskParams,
) -> tuple[str, ...]:
    """Build the ordered rationale clauses for one result.

    Order: sector standing, trend confirmations, weekly verdict, momentum,
    volume, volatility, divergences, then the entry/stop/target line.
    """
    ind = indicators
    parts: list[str] = []

    if sector.is_top and sector.score_impact:
        parts.append(f"Top sector {sector.sector} (rank {sector.rank}/{sector.total_sectors})")
    elif sector.is_bottom and sector.score_impact:
        parts.append(f"Lagging sector {sector.sector} (rank {sector.rank}/{sector.total_sectors})")

    # Trend
    if _macd_bullish(ind):
        parts.append("MACD bullish above zero")
    if ind.supertrend_direction is TrendDirection.UP:
        parts.append("SuperTrend green")
    if ind.sar_trend is TrendDirection.UP:
        parts.append("Parabolic SAR below price")
    if ind.ichimoku_cloud_signal is CloudSignal.ABOVE:
        parts.append("price above Ichimoku cloud")

    if weekly.status is WeeklyStatus.ALIGNED:
        parts.append("weekly trend aligned")
    elif weekly.status is WeeklyStatus.COUNTER_TREND:
        parts.append("weekly trend against the daily setup")

    # Momentum
    if momentum.pullback_to_ema:
        parts.append(f"pulling back to EMA support ({momentum.ema_proximity:.1f}% away)")
    if momentum.rsi_in_zone:
        parts.append(f"RSI at {ind.rsi14:.1f} ({momentum.rsi_tier.value})")
    if momentum.roc_positive:
        parts.append(f"ROC positive ({ind.roc14:.1f}%)")
    if momentum.candlestick_pattern:
        parts.append(f"{momentum.candlestick_pattern} pattern detected")

    # Volume
    parts.append(f"volume {volume.volume_trend.value}")
    if volume.obv_trending_up:
        parts.append("OBV trending up")
    if volume.mfi_healthy:
        parts.append(f"MFI at {ind.mfi14:.0f}")

    # Volatility
    if volatility.price_in_upper_band:
        parts.append(f"Bollinger %B at {ind.bollinger_percent_b:.2f}")
    if volatility.bollinger_expanding:
        parts.append("Bollinger bands expanding")

    for div in divergences.divergences:
        parts.append(div.description)

    parts.append(
        f"Entry {risk.entry_price:.2f}, SL {risk.stop_loss:.2f}, "
        f"Target {risk.target:.2f} ({risk.risk_reward_ratio:g}:1 R:R)"
    )
    return tuple(parts)
