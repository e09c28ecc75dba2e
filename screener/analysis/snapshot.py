"""Per-symbol analysis — candle validation and the IndicatorSet snapshot.

Everything here is pure and depends only on the symbol's own history and
the (shared, read-only) benchmark history, so symbols can be analysed in
parallel.
"""

import bisect
import math
from datetime import date
from typing import Optional

from screener.analysis.divergence import detect_divergences
from screener.analysis.indicators import (
    average_turnover,
    calculate_ad_line,
    calculate_adx,
    calculate_atr,
    calculate_bollinger,
    calculate_cci,
    calculate_ema,
    calculate_ichimoku,
    calculate_macd,
    calculate_mfi,
    calculate_obv,
    calculate_parabolic_sar,
    calculate_relative_strength,
    calculate_roc,
    calculate_rsi,
    calculate_stochastic,
    calculate_supertrend,
    calculate_vwap,
    calculate_williams_r,
    cloud_signal,
    detect_candlestick_pattern,
    obv_trend,
    volume_roc,
    volume_sma,
    week_change,
)
from screener.analysis.models import Candle, IndicatorSet, SymbolSnapshot, TrendDirection
from screener.analysis.weekly import weekly_trend_health

RELATIVE_STRENGTH_PERIOD = 63  # ~3 months of sessions


class MalformedCandleError(ValueError):
    """Raised when a candle history cannot be analysed."""


def validate_candles(candles: list[Candle]) -> None:
    """Check that *candles* form a usable ascending OHLCV history.

    Raises ``MalformedCandleError`` describing the first bad bar:
    non-finite prices/volume, negative volume, non-positive prices,
    open/close outside the high–low range, or dates not strictly ascending.
    """
    prev_date = None
    for i, c in enumerate(candles):
        values = (c.open, c.high, c.low, c.close, c.volume)
        if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in values):
            raise MalformedCandleError(f"bar {i} ({c.date}) has a non-finite value")
        if c.volume < 0:
            raise MalformedCandleError(f"bar {i} ({c.date}) has negative volume")
        if min(c.open, c.high, c.low, c.close) <= 0:
            raise MalformedCandleError(f"bar {i} ({c.date}) has a non-positive price")
        if c.high < c.low or not (c.low <= c.open <= c.high and c.low <= c.close <= c.high):
            raise MalformedCandleError(f"bar {i} ({c.date}) open/close outside high-low range")
        if prev_date is not None and c.date <= prev_date:
            raise MalformedCandleError(f"bar {i} ({c.date}) is not after {prev_date}")
        prev_date = c.date


def _value_or(value: Optional[float], default: float) -> float:
    return default if value is None else value


def benchmark_closes_through(benchmark: Optional[list[Candle]], last_date: date) -> list[float]:
    """Benchmark closes dated on or before *last_date*.

    Keeps relative strength on the same calendar window as a symbol whose
    history ends before the benchmark's.
    """
    if not benchmark:
        return []
    end = bisect.bisect_right(benchmark, last_date, key=lambda c: c.date)
    return [c.close for c in benchmark[:end]]


def compute_indicator_set(
    candles: list[Candle],
    benchmark: Optional[list[Candle]] = None,
) -> IndicatorSet:
    """Compute the latest value of every indicator for one symbol.

    Series too short to produce a value fall back to neutral defaults
    (RSI 50, Stochastic 50, Williams %R −50, MFI 50, %B 0.5, cloud
    "inside").  Relative strength is measured against *benchmark* closes up
    to the symbol's last date, and is 0 without a long enough benchmark.
    """
    opens = [c.open for c in candles]
    highs = [c.high for c in candles]
    lows = [c.low for c in candles]
    closes = [c.close for c in candles]
    volumes = [c.volume for c in candles]
    last_close = closes[-1]
    last_bar = len(closes) - 1

    adx = calculate_adx(highs, lows, closes, 14)
    macd = calculate_macd(closes, 12, 26, 9)
    stoch = calculate_stochastic(highs, lows, closes, 14, 3, 3)
    bb = calculate_bollinger(closes, 20, 2.0)
    obv = calculate_obv(closes, volumes)
    supertrend = calculate_supertrend(highs, lows, closes, 10, 3.0)
    sar = calculate_parabolic_sar(highs, lows, closes)
    ichimoku = calculate_ichimoku(highs, lows)

    senkou_a = ichimoku.senkou_a.at(last_bar)
    senkou_b = ichimoku.senkou_b.at(last_bar)

    recent = volumes[-3:]
    while len(recent) < 3:
        recent.insert(0, recent[0])

    return IndicatorSet(
        last_price=last_close,
        last_volume=volumes[-1],
        avg_daily_turnover=average_turnover(closes, volumes, 20),
        ema20=calculate_ema(closes, 20).last(last_close),
        ema50=calculate_ema(closes, 50).last(last_close),
        ema200=calculate_ema(closes, 200).last(last_close),
        rsi14=calculate_rsi(closes, 14).last(50.0),
        adx14=adx.adx.last(0.0),
        plus_di=adx.plus_di.last(0.0),
        minus_di=adx.minus_di.last(0.0),
        atr14=calculate_atr(highs, lows, closes, 14).last(0.0),
        relative_strength_3m=calculate_relative_strength(
            closes,
            benchmark_closes_through(benchmark, candles[-1].date),
            RELATIVE_STRENGTH_PERIOD,
        ),
        volume_sma20=volume_sma(volumes, 20),
        week_change=week_change(closes),
        volume_recent3=(recent[0], recent[1], recent[2]),
        vroc20=volume_roc(volumes, 20),
        macd_line=macd.macd_line.last(0.0),
        macd_signal=macd.signal_line.last(0.0),
        macd_histogram=macd.histogram.last(0.0),
        stochastic_k=stoch.k.last(50.0),
        stochastic_d=stoch.d.last(50.0),
        williams_r=calculate_williams_r(highs, lows, closes, 14).last(-50.0),
        roc14=calculate_roc(closes, 14).last(0.0),
        cci20=calculate_cci(highs, lows, closes, 20).last(0.0),
        bollinger_upper=bb.upper.last(last_close * 1.05),
        bollinger_middle=bb.middle.last(last_close),
        bollinger_lower=bb.lower.last(last_close * 0.95),
        bollinger_percent_b=bb.percent_b.last(0.5),
        bollinger_bandwidth=bb.bandwidth.last(0.0),
        obv=obv.last(0.0),
        obv_trend=obv_trend(obv),
        mfi14=calculate_mfi(highs, lows, closes, volumes, 14).last(50.0),
        supertrend=supertrend.line.last(last_close),
        supertrend_direction=supertrend.last_direction or TrendDirection.UP,
        parabolic_sar=sar.sar.last(last_close),
        sar_trend=sar.trend[-1] if sar.trend else TrendDirection.DOWN,
        ichimoku_tenkan=_value_or(ichimoku.tenkan.at(last_bar), 0.0),
        ichimoku_kijun=_value_or(ichimoku.kijun.at(last_bar), 0.0),
        ichimoku_senkou_a=_value_or(senkou_a, 0.0),
        ichimoku_senkou_b=_value_or(senkou_b, 0.0),
        ichimoku_cloud_signal=cloud_signal(last_close, senkou_a, senkou_b),
        vwap=calculate_vwap(highs, lows, closes, volumes).last(last_close),
        ad_line=calculate_ad_line(highs, lows, closes, volumes).last(0.0),
        candlestick_pattern=detect_candlestick_pattern(opens, highs, lows, closes),
    )


def analyze_symbol(
    symbol: str,
    sector: str,
    candles: list[Candle],
    benchmark: Optional[list[Candle]] = None,
    name: str = "",
) -> SymbolSnapshot:
    """Build the full per-symbol snapshot: indicators, weekly trend, divergences.

    *candles* must already be validated and non-empty.
    """
    highs = [c.high for c in candles]
    lows = [c.low for c in candles]
    closes = [c.close for c in candles]
    volumes = [c.volume for c in candles]

    divergences = detect_divergences(
        highs,
        lows,
        rsi=calculate_rsi(closes, 14),
        macd_histogram=calculate_macd(closes, 12, 26, 9).histogram,
        obv=calculate_obv(closes, volumes),
        mfi=calculate_mfi(highs, lows, closes, volumes, 14),
    )

    return SymbolSnapshot(
        symbol=symbol,
        sector=sector,
        indicators=compute_indicator_set(candles, benchmark),
        weekly_trend=weekly_trend_health(candles),
        divergences=divergences,
        name=name,
    )
