"""Shared fixtures: deterministic candle and snapshot factories."""

from dataclasses import replace
from datetime import date, timedelta

import numpy as np
import pytest

from screener.analysis.models import (
    Candle,
    CloudSignal,
    DivergenceResult,
    IndicatorSet,
    ObvTrend,
    SymbolSnapshot,
    TrendDirection,
    WeeklyStatus,
    WeeklyTrendHealth,
)

# A healthy uptrend that passes every phase under default (BULL) thresholds.
_STRONG_INDICATORS = IndicatorSet(
    last_price=110.0,
    last_volume=1_500_000.0,
    avg_daily_turnover=50.0,
    ema20=108.0,
    ema50=105.0,
    ema200=100.0,
    rsi14=50.0,
    adx14=30.0,
    plus_di=30.0,
    minus_di=15.0,
    atr14=2.0,
    relative_strength_3m=6.0,
    volume_sma20=1_000_000.0,
    week_change=2.0,
    volume_recent3=(1_000_000.0, 1_200_000.0, 1_500_000.0),
    vroc20=150.0,
    macd_line=2.0,
    macd_signal=1.0,
    macd_histogram=1.0,
    stochastic_k=60.0,
    stochastic_d=55.0,
    williams_r=-30.0,
    roc14=5.0,
    cci20=50.0,
    bollinger_upper=112.0,
    bollinger_middle=105.0,
    bollinger_lower=98.0,
    bollinger_percent_b=0.8,
    bollinger_bandwidth=0.13,
    obv=10_000_000.0,
    obv_trend=ObvTrend.UP,
    mfi14=60.0,
    supertrend=104.0,
    supertrend_direction=TrendDirection.UP,
    parabolic_sar=103.0,
    sar_trend=TrendDirection.UP,
    ichimoku_tenkan=107.0,
    ichimoku_kijun=104.0,
    ichimoku_senkou_a=105.0,
    ichimoku_senkou_b=100.0,
    ichimoku_cloud_signal=CloudSignal.ABOVE,
    vwap=106.0,
    ad_line=1_000_000.0,
    candlestick_pattern=None,
)

_WEEKLY_SCORES = {WeeklyStatus.ALIGNED: 5, WeeklyStatus.COUNTER_TREND: -10, WeeklyStatus.MIXED: 0}


def _business_days(start: date, n: int) -> list[date]:
    days = []
    d = start
    while len(days) < n:
        if d.weekday() < 5:
            days.append(d)
        d += timedelta(days=1)
    return days


@pytest.fixture
def make_indicators():
    """Factory: strong-uptrend IndicatorSet with keyword overrides."""
    def _make(**overrides) -> IndicatorSet:
        return replace(_STRONG_INDICATORS, **overrides)
    return _make


@pytest.fixture
def make_weekly():
    def _make(status: WeeklyStatus = WeeklyStatus.ALIGNED) -> WeeklyTrendHealth:
        aligned = status is WeeklyStatus.ALIGNED
        return WeeklyTrendHealth(
            close_above_ema20=aligned,
            rsi_above_40=status is not WeeklyStatus.COUNTER_TREND,
            macd_hist_positive=aligned,
            weekly_ema20=100.0,
            weekly_rsi=55.0 if aligned else 35.0,
            weekly_macd_hist=1.0 if aligned else -1.0,
            weekly_close=105.0 if aligned else 95.0,
            status=status,
            score=_WEEKLY_SCORES[status],
        )
    return _make


@pytest.fixture
def make_snapshot(make_indicators, make_weekly):
    """Factory: SymbolSnapshot from indicator overrides."""
    def _make(
        symbol: str = "AAA",
        sector: str = "Banks",
        weekly: WeeklyStatus = WeeklyStatus.ALIGNED,
        divergences: DivergenceResult = DivergenceResult(),
        **overrides,
    ) -> SymbolSnapshot:
        return SymbolSnapshot(
            symbol=symbol,
            sector=sector,
            indicators=make_indicators(**overrides),
            weekly_trend=make_weekly(weekly),
            divergences=divergences,
        )
    return _make


@pytest.fixture
def make_candles():
    """Factory: geometric random-walk daily candles on business days."""
    def _make(
        n: int,
        seed: int = 0,
        drift: float = 0.0005,
        vol: float = 0.012,
        start_price: float = 100.0,
        base_volume: float = 2_000_000.0,
    ) -> list[Candle]:
        rng = np.random.default_rng(seed)
        returns = rng.normal(drift, vol, n)
        closes = start_price * np.exp(np.cumsum(returns))
        opens = np.concatenate([[start_price], closes[:-1]])
        wicks = rng.uniform(0.0, 0.008, (2, n))
        highs = np.maximum(opens, closes) * (1 + wicks[0])
        lows = np.minimum(opens, closes) * (1 - wicks[1])
        volumes = base_volume * rng.uniform(0.5, 1.5, n)
        return [
            Candle(
                date=d,
                open=float(opens[i]),
                high=float(highs[i]),
                low=float(lows[i]),
                close=float(closes[i]),
                volume=float(volumes[i]),
            )
            for i, d in enumerate(_business_days(date(2023, 1, 2), n))
        ]
    return _make


@pytest.fixture
def make_flat_candles():
    def _make(n: int = 300, price: float = 100.0, volume: float = 100_000.0) -> list[Candle]:
        return [
            Candle(date=d, open=price, high=price, low=price, close=price, volume=volume)
            for d in _business_days(date(2023, 1, 2), n)
        ]
    return _make
