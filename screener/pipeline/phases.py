"""Screening phases 1 to 6, pure functions over an IndicatorSet.

Each phase returns a detail record.  Gating (a phase only counts when the
previous one passed) is applied by the caller through ``evaluated``.
"""

from screener.analysis.models import IndicatorSet, ObvTrend, RsiTier, TrendDirection, VolumeTrend
from screener.config import ScreenerConfig
from screener.pipeline.models import (
    LiquidityDetails,
    MomentumDetails,
    RiskParams,
    TrendDetails,
    VolatilityDetails,
    VolumeDetails,
)

# RSI tiers.  The boundaries are empirical and deliberately fixed.
RSI_OPTIMAL_LOW = 45.0
RSI_OPTIMAL_HIGH = 55.0
RSI_GOOD_HIGH = 65.0
RSI_CAUTION_LOW = 40.0
RSI_CAUTION_HIGH = 70.0
RSI_EXHAUSTION_HIGH = 75.0

RSI_TIER_SCORES: dict[RsiTier, int] = {
    RsiTier.OPTIMAL: 5,
    RsiTier.GOOD: 4,
    RsiTier.CAUTION: 2,
    RsiTier.EXHAUSTION: 0,
    RsiTier.PENALTY: -3,
}

VOLUME_TREND_SCORES: dict[VolumeTrend, int] = {
    VolumeTrend.ACCELERATING: 5,
    VolumeTrend.STEADY: 2,
    VolumeTrend.DECLINING: -3,
}

STOCHASTIC_BULLISH_LEVEL = 50.0
MOMENTUM_MIN_CONDITIONS = 3
VOLUME_MIN_CONDITIONS = 2


def _pct_distance(price: float, level: float) -> float:
    if level == 0:
        return float("inf")
    return abs(price - level) / level * 100.0


# ── Phase 1: liquidity ───────────────────────────────────────────────────


def phase1_liquidity(indicators: IndicatorSet, config: ScreenerConfig) -> LiquidityDetails:
    """Pass iff the 20-day average turnover meets the configured floor."""
    return LiquidityDetails(
        evaluated=True,
        avg_daily_turnover=indicators.avg_daily_turnover,
        min_avg_daily_turnover=config.min_avg_daily_turnover,
        conditions_pass=indicators.avg_daily_turnover >= config.min_avg_daily_turnover,
    )


# ── Phase 2: trend ───────────────────────────────────────────────────────


def phase2_trend(
    indicators: IndicatorSet,
    config: ScreenerConfig,
    evaluated: bool = True,
) -> TrendDetails:
    """Trend establishment.

    Requires, where enabled in *config*: price > EMA20 > EMA50 > EMA200,
    3-month relative strength > 0, MACD above its signal and above zero,
    SuperTrend up.  ADX must always reach ``config.min_adx``.
    """
    ind = indicators
    ema_aligned = ind.last_price > ind.ema20 > ind.ema50 > ind.ema200
    adx_ok = ind.adx14 >= config.min_adx
    rs_ok = ind.relative_strength_3m > 0
    macd_ok = ind.macd_line > ind.macd_signal and ind.macd_line > 0
    st_up = ind.supertrend_direction is TrendDirection.UP

    passes = (
        (ema_aligned or not config.require_ema_alignment)
        and adx_ok
        and (rs_ok or not config.require_relative_strength)
        and (macd_ok or not config.require_macd_bullish)
        and (st_up or not config.require_supertrend_up)
    )

    return TrendDetails(
        evaluated=evaluated,
        ema_aligned=ema_aligned,
        adx=ind.adx14,
        min_adx=config.min_adx,
        adx_strong_enough=adx_ok,
        relative_strength_positive=rs_ok,
        macd_bullish=macd_ok,
        supertrend_up=st_up,
        conditions_pass=passes,
    )


# ── Phase 3: momentum ────────────────────────────────────────────────────


def classify_rsi_tier(rsi: float) -> tuple[RsiTier, int]:
    """Bucket RSI into a tier and its score.

    optimal [45, 55] → +5, good (55, 65] → +4, caution [40, 45) ∪ (65, 70]
    → +2, exhaustion (70, 75] → 0, anything else → −3.
    """
    if RSI_OPTIMAL_LOW <= rsi <= RSI_OPTIMAL_HIGH:
        tier = RsiTier.OPTIMAL
    elif RSI_OPTIMAL_HIGH < rsi <= RSI_GOOD_HIGH:
        tier = RsiTier.GOOD
    elif RSI_CAUTION_LOW <= rsi < RSI_OPTIMAL_LOW or RSI_GOOD_HIGH < rsi <= RSI_CAUTION_HIGH:
        tier = RsiTier.CAUTION
    elif RSI_CAUTION_HIGH < rsi <= RSI_EXHAUSTION_HIGH:
        tier = RsiTier.EXHAUSTION
    else:
        tier = RsiTier.PENALTY
    return tier, RSI_TIER_SCORES[tier]


def phase3_momentum(
    indicators: IndicatorSet,
    config: ScreenerConfig,
    evaluated: bool = True,
) -> MomentumDetails:
    """Momentum signal detection.

    Five conditions, at least three must hold: price within
    ``max_ema_proximity`` % of EMA20 or EMA50, RSI inside the configured
    band, ROC > 0, +DI > −DI, Stochastic %K > 50.
    """
    ind = indicators
    proximity = min(_pct_distance(ind.last_price, ind.ema20), _pct_distance(ind.last_price, ind.ema50))
    pullback = proximity <= config.max_ema_proximity
    rsi_in_zone = config.rsi_low <= ind.rsi14 <= config.rsi_high
    tier, tier_score = classify_rsi_tier(ind.rsi14)
    roc_positive = ind.roc14 > 0
    di_bullish = ind.plus_di > ind.minus_di
    stoch_bullish = ind.stochastic_k > STOCHASTIC_BULLISH_LEVEL

    met = sum([pullback, rsi_in_zone, roc_positive, di_bullish, stoch_bullish])

    return MomentumDetails(
        evaluated=evaluated,
        pullback_to_ema=pullback,
        ema_proximity=round(proximity, 2) if proximity != float("inf") else proximity,
        rsi_in_zone=rsi_in_zone,
        rsi_value=ind.rsi14,
        rsi_tier=tier,
        rsi_tier_score=tier_score,
        roc_positive=roc_positive,
        plus_di_above_minus_di=di_bullish,
        stochastic_bullish=stoch_bullish,
        macd_histogram_positive=ind.macd_histogram > 0,
        volume_decline=ind.last_volume < ind.volume_sma20,
        candlestick_pattern=ind.candlestick_pattern,
        conditions_met=met,
        conditions_pass=met >= MOMENTUM_MIN_CONDITIONS,
    )


# ── Phase 4: volume ──────────────────────────────────────────────────────


def classify_volume_trend(recent: tuple[float, float, float]) -> tuple[VolumeTrend, int]:
    """Classify the last three volume bars.

    Strictly increasing → accelerating (+5); strictly decreasing →
    declining (−3); otherwise steady (+2) when the latest bar is at or
    above the average of the prior two, declining when it is below.
    """
    v2, v1, v0 = recent
    if v2 < v1 < v0:
        trend = VolumeTrend.ACCELERATING
    elif v2 > v1 > v0:
        trend = VolumeTrend.DECLINING
    elif v0 >= (v2 + v1) / 2.0:
        trend = VolumeTrend.STEADY
    else:
        trend = VolumeTrend.DECLINING
    return trend, VOLUME_TREND_SCORES[trend]


def phase4_volume(
    indicators: IndicatorSet,
    config: ScreenerConfig,
    evaluated: bool = True,
) -> VolumeDetails:
    """Volume confirmation.

    At least two of: volume above ``avg × volume_multiplier``, MFI inside
    the configured band, and (when ``require_obv_up``) OBV trending up.
    """
    ind = indicators
    obv_up = ind.obv_trend is ObvTrend.UP
    above_avg = ind.last_volume > ind.volume_sma20 * config.volume_multiplier
    mfi_ok = config.mfi_low <= ind.mfi14 <= config.mfi_high
    trend, trend_score = classify_volume_trend(ind.volume_recent3)

    conditions = [above_avg, mfi_ok]
    if config.require_obv_up:
        conditions.append(obv_up)
    met = sum(conditions)

    return VolumeDetails(
        evaluated=evaluated,
        obv_trending_up=obv_up,
        volume_above_avg=above_avg,
        mfi_healthy=mfi_ok,
        volume_trend=trend,
        volume_trend_score=trend_score,
        vroc20=round(ind.vroc20, 2),
        conditions_met=met,
        conditions_pass=met >= VOLUME_MIN_CONDITIONS,
    )


# ── Phase 5: volatility ──────────────────────────────────────────────────


def phase5_volatility(
    indicators: IndicatorSet,
    config: ScreenerConfig,
    evaluated: bool = True,
) -> VolatilityDetails:
    """Volatility check.

    ATR as % of price must be below ``max_atr_percent``.  Bandwidth above
    ``bollinger_expansion_floor`` is required only when
    ``require_bollinger_expanding`` is set; %B > 0.5 is informational.
    """
    ind = indicators
    atr_pct = ind.atr14 / ind.last_price * 100.0 if ind.last_price else float("inf")
    atr_ok = atr_pct < config.max_atr_percent
    expanding = ind.bollinger_bandwidth > config.bollinger_expansion_floor
    upper_band = ind.bollinger_percent_b > 0.5

    return VolatilityDetails(
        evaluated=evaluated,
        atr_percent=round(atr_pct, 2) if atr_pct != float("inf") else atr_pct,
        atr_reasonable=atr_ok,
        bollinger_expanding=expanding,
        price_in_upper_band=upper_band,
        conditions_pass=atr_ok and (expanding or not config.require_bollinger_expanding),
    )


# ── Phase 6: risk ────────────────────────────────────────────────────────


def phase6_risk(entry_price: float, atr: float, config: ScreenerConfig) -> RiskParams:
    """ATR-based stop and reward target for a long entry.

    Formula::

        stop_loss      = entry − atr_multiple × ATR
        risk_per_share = entry − stop_loss
        target         = entry + risk_per_share × min_risk_reward

    All prices are rounded to 2 decimal places.
    """
    stop_loss = entry_price - config.atr_multiple * atr
    risk_per_share = entry_price - stop_loss
    target = entry_price + risk_per_share * config.min_risk_reward
    return RiskParams(
        entry_price=round(entry_price, 2),
        stop_loss=round(stop_loss, 2),
        target=round(target, 2),
        risk_reward_ratio=config.min_risk_reward,
        risk_per_share=round(risk_per_share, 2),
        atr_multiple=config.atr_multiple,
    )
