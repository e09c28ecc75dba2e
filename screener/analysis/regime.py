"""Market regime — benchmark-based Bull/Bear/Sideways classification and
the regime-adaptive threshold table.

Rules, evaluated in order:
    - **Sideways**: benchmark ADX < 20 (no trend).
    - **Bull**: close > EMA50 and EMA20 > EMA50.
    - **Bear**: close < EMA50 and EMA20 < EMA50.
    - **Sideways**: everything else (EMAs disagree, transitional).
"""

from dataclasses import dataclass
from typing import Optional

from screener.analysis.indicators import calculate_adx, calculate_ema
from screener.analysis.models import AdaptiveThresholds, Candle, MarketRegime, MarketRegimeInfo
from screener.config import ScreenerConfig

MIN_TREND_ADX = 20.0
HIGH_VOLATILITY_INDEX = 25.0
MAX_ADX = 100.0
MAX_VOLUME_MULTIPLIER = 100.0


@dataclass(frozen=True)
class _RegimeProfile:
    adx_factor: float
    rsi_low: float
    rsi_high: float
    volume_factor: float
    min_risk_reward: float
    strong_buy_threshold: float
    buy_threshold: float
    watch_threshold: float


_REGIME_PROFILES: dict[MarketRegime, _RegimeProfile] = {
    MarketRegime.BULL: _RegimeProfile(1.0, 40.0, 75.0, 1.0, 2.0, 75.0, 55.0, 35.0),
    MarketRegime.SIDEWAYS: _RegimeProfile(1.2, 45.0, 65.0, 1.25, 2.5, 80.0, 60.0, 40.0),
    MarketRegime.BEAR: _RegimeProfile(1.4, 50.0, 60.0, 1.67, 3.0, 85.0, 65.0, 45.0),
}


def detect_market_regime(
    close: float,
    ema20: float,
    ema50: float,
    adx: float,
    volatility_index: Optional[float] = None,
) -> MarketRegimeInfo:
    """Classify the market from benchmark close, EMA20, EMA50 and ADX.

    The optional *volatility_index* is reported in the description only;
    it does not change the verdict.
    """
    if adx < MIN_TREND_ADX:
        regime = MarketRegime.SIDEWAYS
        description = f"No clear trend (ADX {adx:.1f} < {MIN_TREND_ADX:.0f})"
    elif close > ema50 and ema20 > ema50:
        regime = MarketRegime.BULL
        description = "Benchmark above rising EMA50 with EMA20 leading"
    elif close < ema50 and ema20 < ema50:
        regime = MarketRegime.BEAR
        description = "Benchmark below EMA50 with EMA20 lagging"
    else:
        regime = MarketRegime.SIDEWAYS
        description = "Mixed EMA signals, transitional market"

    if volatility_index is not None and volatility_index > HIGH_VOLATILITY_INDEX:
        description += f"; elevated volatility (VIX {volatility_index:.1f})"

    return MarketRegimeInfo(
        regime=regime,
        benchmark_close=close,
        benchmark_ema20=ema20,
        benchmark_ema50=ema50,
        benchmark_adx=adx,
        volatility_index=volatility_index,
        description=description,
    )


def classify_benchmark(
    candles: Optional[list[Candle]],
    volatility_index: Optional[float] = None,
) -> MarketRegimeInfo:
    """Compute the regime from a benchmark OHLCV history.

    A missing or empty history is not an error: the market is treated as
    SIDEWAYS so the tighter thresholds apply.
    """
    if not candles:
        return MarketRegimeInfo(
            regime=MarketRegime.SIDEWAYS,
            benchmark_close=0.0,
            benchmark_ema20=0.0,
            benchmark_ema50=0.0,
            benchmark_adx=0.0,
            volatility_index=volatility_index,
            description="Benchmark history unavailable, assuming sideways market",
        )

    closes = [c.close for c in candles]
    highs = [c.high for c in candles]
    lows = [c.low for c in candles]
    last = closes[-1]

    return detect_market_regime(
        close=last,
        ema20=calculate_ema(closes, 20).last(last),
        ema50=calculate_ema(closes, 50).last(last),
        adx=calculate_adx(highs, lows, closes, 14).adx.last(0.0),
        volatility_index=volatility_index,
    )


def get_adaptive_thresholds(
    regime: MarketRegime,
    config: Optional[ScreenerConfig] = None,
) -> AdaptiveThresholds:
    """Look up the thresholds for *regime*.

    The ADX floor and volume multiplier scale the base *config* values
    (×1.0 / ×1.2 / ×1.4 and ×1.0 / ×1.25 / ×1.67 for Bull / Sideways /
    Bear), both capped at 100; the RSI band, minimum risk:reward
    and signal floors are fixed per regime.
    """
    base = config or ScreenerConfig()
    profile = _REGIME_PROFILES[regime]
    return AdaptiveThresholds(
        min_adx=min(MAX_ADX, round(base.min_adx * profile.adx_factor, 2)),
        rsi_low=profile.rsi_low,
        rsi_high=profile.rsi_high,
        volume_multiplier=min(MAX_VOLUME_MULTIPLIER, round(base.volume_multiplier * profile.volume_factor, 2)),
        min_risk_reward=profile.min_risk_reward,
        strong_buy_threshold=profile.strong_buy_threshold,
        buy_threshold=profile.buy_threshold,
        watch_threshold=profile.watch_threshold,
    )
