"""Deterministic tests for the indicator library.

Fixed series for exact values, seeded random walks for range properties.
"""

from datetime import timedelta

import numpy as np
import pytest

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
from screener.analysis.models import CloudSignal, IndicatorSeries, ObvTrend, TrendDirection
from screener.analysis.snapshot import benchmark_closes_through


def _ohlcv(candles):
    return (
        [c.high for c in candles],
        [c.low for c in candles],
        [c.close for c in candles],
        [c.volume for c in candles],
    )


# ── IndicatorSeries ──────────────────────────────────────────────────────


class TestIndicatorSeries:
    def test_at_maps_bars_through_offset(self):
        s = IndicatorSeries([10.0, 11.0, 12.0], first_index=5)
        assert s.at(5) == 10.0
        assert s.at(7) == 12.0
        assert s.at(4) is None
        assert s.at(8) is None
        assert s.end_index == 7

    def test_last_default_when_empty(self):
        assert IndicatorSeries().last(42.0) == 42.0
        assert len(IndicatorSeries()) == 0


# ── EMA ──────────────────────────────────────────────────────────────────


class TestEma:
    def test_constant_series_is_constant(self):
        ema = calculate_ema([7.5] * 60, 20)
        assert all(v == pytest.approx(7.5) for v in ema.values)
        assert ema.first_index == 19
        assert ema.end_index == 59

    def test_short_input_seeds_with_mean_of_all(self):
        ema = calculate_ema([1.0, 2.0, 3.0], 5)
        assert ema.values == [2.0]
        assert ema.first_index == 2

    def test_empty_input(self):
        assert calculate_ema([], 10).values == []

    def test_recurrence(self):
        ema = calculate_ema([1.0, 2.0, 3.0, 4.0], 3)
        # seed 2.0, k = 0.5 → (4 − 2) × 0.5 + 2 = 3
        assert ema.values == [pytest.approx(2.0), pytest.approx(3.0)]


# ── RSI ──────────────────────────────────────────────────────────────────


class TestRsi:
    def test_only_gains_is_100(self):
        rsi = calculate_rsi([float(i) for i in range(1, 31)], 14)
        assert rsi.last() == 100.0
        assert rsi.first_index == 14

    def test_flat_is_neutral(self):
        rsi = calculate_rsi([100.0] * 30, 14)
        assert all(v == 50.0 for v in rsi.values)

    def test_only_losses_is_0(self):
        rsi = calculate_rsi([float(i) for i in range(30, 0, -1)], 14)
        assert rsi.last() == pytest.approx(0.0)

    def test_short_input_is_empty(self):
        assert calculate_rsi([1.0] * 14, 14).values == []


# ── ADX / ATR ────────────────────────────────────────────────────────────


class TestAdxAtr:
    def test_flat_series_has_zero_adx(self, make_flat_candles):
        highs, lows, closes, _ = _ohlcv(make_flat_candles(100))
        result = calculate_adx(highs, lows, closes, 14)
        assert result.adx.first_index == 27
        assert result.plus_di.first_index == 14
        assert result.adx.last() == 0.0
        assert result.plus_di.last() == 0.0

    def test_constant_range_atr(self):
        highs = [102.0] * 30
        lows = [98.0] * 30
        closes = [100.0] * 30
        atr = calculate_atr(highs, lows, closes, 14)
        assert atr.first_index == 14
        assert atr.last() == pytest.approx(4.0)

    def test_steady_uptrend_has_positive_di_dominance(self):
        closes = [100.0 + i for i in range(60)]
        highs = [c + 0.5 for c in closes]
        lows = [c - 0.5 for c in closes]
        result = calculate_adx(highs, lows, closes, 14)
        assert result.plus_di.last() > result.minus_di.last()
        assert result.adx.last() > 50


# ── MACD ─────────────────────────────────────────────────────────────────


class TestMacd:
    def test_constant_series_is_zero(self):
        macd = calculate_macd([50.0] * 80)
        assert macd.macd_line.first_index == 25
        assert macd.histogram.first_index == 33
        assert macd.histogram.last() == pytest.approx(0.0)

    def test_histogram_aligns_with_lines(self):
        closes = [100.0 * 1.01 ** i for i in range(80)]
        macd = calculate_macd(closes)
        bar = macd.histogram.end_index
        assert macd.histogram.at(bar) == pytest.approx(
            macd.macd_line.at(bar) - macd.signal_line.at(bar)
        )

    def test_empty_input(self):
        assert calculate_macd([]).macd_line.values == []


# ── Oscillators ──────────────────────────────────────────────────────────


class TestOscillators:
    def test_flat_stochastic_is_50(self, make_flat_candles):
        highs, lows, closes, _ = _ohlcv(make_flat_candles(40))
        stoch = calculate_stochastic(highs, lows, closes)
        assert stoch.k.last() == 50.0
        assert stoch.d.last() == 50.0

    def test_flat_williams_is_minus_50(self, make_flat_candles):
        highs, lows, closes, _ = _ohlcv(make_flat_candles(40))
        assert calculate_williams_r(highs, lows, closes).last() == -50.0

    def test_flat_cci_is_0(self, make_flat_candles):
        highs, lows, closes, _ = _ohlcv(make_flat_candles(40))
        assert calculate_cci(highs, lows, closes).last() == 0.0

    def test_roc(self):
        closes = [100.0] * 14 + [110.0]
        roc = calculate_roc(closes, 14)
        assert roc.values == [pytest.approx(10.0)]
        assert roc.first_index == 14


# ── Bollinger ────────────────────────────────────────────────────────────


class TestBollinger:
    def test_flat_defaults(self):
        bb = calculate_bollinger([100.0] * 30)
        assert bb.percent_b.last() == 0.5
        assert bb.bandwidth.last() == 0.0
        assert bb.middle.last() == 100.0

    def test_percent_b_clamped_on_breakout(self):
        closes = [100.0] * 19 + [150.0]
        bb = calculate_bollinger(closes)
        assert 0.0 <= bb.percent_b.last() <= 1.0


# ── Volume ───────────────────────────────────────────────────────────────


class TestVolume:
    def test_obv(self):
        obv = calculate_obv([1.0, 2.0, 1.0, 1.0], [10.0, 20.0, 30.0, 40.0])
        assert obv.values == [0.0, 20.0, -10.0, -10.0]

    def test_obv_trend(self):
        rising = IndicatorSeries([float(i * 100) for i in range(20)])
        falling = IndicatorSeries([float(-i * 100) for i in range(20)])
        flat = IndicatorSeries([1000.0] * 20)
        assert obv_trend(rising) is ObvTrend.UP
        assert obv_trend(falling) is ObvTrend.DOWN
        assert obv_trend(flat) is ObvTrend.FLAT

    def test_mfi_only_inflow_is_100(self):
        closes = [100.0 + i for i in range(20)]
        mfi = calculate_mfi(closes, closes, closes, [1000.0] * 20, 14)
        assert mfi.first_index == 14
        assert mfi.last() == 100.0

    def test_mfi_no_flow_is_50(self):
        closes = [100.0] * 20
        assert calculate_mfi(closes, closes, closes, [1000.0] * 20).last() == 50.0

    def test_vwap_zero_volume_is_typical_price(self):
        vwap = calculate_vwap([12.0], [6.0], [9.0], [0.0])
        assert vwap.values == [9.0]

    def test_ad_line_close_at_high_accumulates(self):
        ad = calculate_ad_line([10.0, 10.0], [8.0, 8.0], [10.0, 10.0], [100.0, 50.0])
        assert ad.values == [100.0, 150.0]

    def test_volume_helpers(self):
        assert volume_sma([1.0, 2.0, 3.0], 2) == 2.5
        assert volume_sma([], 20) == 0.0
        assert volume_roc([100.0] * 5, 20) == 100.0
        assert volume_roc([100.0] * 20 + [150.0], 20) == pytest.approx(150.0)

    def test_turnover_in_crores(self):
        assert average_turnover([100.0] * 30, [1_000_000.0] * 30) == pytest.approx(10.0)

    def test_week_change(self):
        assert week_change([100.0, 1.0, 1.0, 1.0, 1.0, 110.0]) == pytest.approx(10.0)
        assert week_change([]) == 0.0


# ── Trend followers ──────────────────────────────────────────────────────


class TestTrendFollowers:
    def test_flat_supertrend_and_sar_are_stable(self, make_flat_candles):
        highs, lows, closes, _ = _ohlcv(make_flat_candles(60))
        st = calculate_supertrend(highs, lows, closes)
        assert set(st.direction) == {st.direction[0]}
        assert st.line.last() == pytest.approx(100.0)
        sar = calculate_parabolic_sar(highs, lows, closes)
        assert set(sar.trend) == {sar.trend[0]}
        assert sar.sar.last() == pytest.approx(100.0)

    def test_uptrend_turns_supertrend_up(self):
        closes = [100.0 * 1.01 ** i for i in range(80)]
        highs = [c * 1.002 for c in closes]
        lows = [c * 0.998 for c in closes]
        assert calculate_supertrend(highs, lows, closes).last_direction is TrendDirection.UP
        assert calculate_parabolic_sar(highs, lows, closes).trend[-1] is TrendDirection.UP

    def test_sar_acceleration_steps_to_cap(self):
        highs = [10.0 + i for i in range(30)]
        lows = [9.0 + i for i in range(30)]
        closes = [9.5 + i for i in range(30)]
        result = calculate_parabolic_sar(highs, lows, closes)
        sar = result.sar.values
        assert set(result.trend) == {TrendDirection.UP}
        # Each new high adds 0.02 to the factor until it reaches 0.20.
        for i in range(2, 29):
            factor = (sar[i + 1] - sar[i]) / (highs[i] - sar[i])
            assert factor == pytest.approx(min(0.02 * (i + 1), 0.20))

    def test_sar_held_below_prior_two_lows(self):
        highs = [10.0, 20.0, 21.0, 22.0]
        lows = [9.0, 19.5, 9.1, 21.0]
        closes = [9.5, 19.8, 20.0, 21.5]
        sar = calculate_parabolic_sar(highs, lows, closes).sar.values
        # Unclamped values would be 9.02, 9.44 and 9.72.
        assert sar[1] == pytest.approx(9.0)
        assert sar[2] == pytest.approx(9.0)
        assert sar[3] == pytest.approx(9.1)

    def test_sar_reversal_resets_extreme_and_factor(self):
        highs = [10.0 + i for i in range(10)] + [15.0, 7.0, 6.0]
        lows = [9.0 + i for i in range(10)] + [5.0, 4.0, 3.0]
        closes = [9.5 + i for i in range(10)] + [6.0, 5.0, 4.0]
        result = calculate_parabolic_sar(highs, lows, closes)
        sar = result.sar.values
        assert result.trend[9] is TrendDirection.UP
        assert result.trend[10] is TrendDirection.DOWN
        # Flips to the prior extreme high.
        assert sar[10] == pytest.approx(19.0)
        # 19 + 0.02 * (5 - 19) = 18.72 is held at the prior highs.
        assert sar[11] == pytest.approx(19.0)
        # One new low since the flip: 19 + 0.04 * (4 - 19).
        assert sar[12] == pytest.approx(18.4)
        assert result.trend[12] is TrendDirection.DOWN

    def test_supertrend_bands_carry_and_flip(self):
        highs = [11.0, 11.0, 14.0, 12.5, 10.0]
        lows = [9.0, 9.0, 12.0, 10.5, 8.0]
        closes = [10.0, 10.5, 13.5, 11.0, 8.5]
        st = calculate_supertrend(highs, lows, closes, period=1, multiplier=1.0)
        assert st.line.first_index == 1
        assert st.direction == [
            TrendDirection.DOWN,
            TrendDirection.UP,
            TrendDirection.UP,
            TrendDirection.DOWN,
        ]
        # Bar 2 breaks the carried upper band (12, not 16.5) and flips up.
        # Bar 3 keeps the lower band at 9.5 instead of dropping to 8.5.
        # Bar 4 closes under 9.5 and flips down onto the upper band.
        assert st.line.values == pytest.approx([12.0, 9.5, 9.5, 12.0])

    def test_ichimoku_alignment(self):
        highs = [float(i + 1) for i in range(60)]
        lows = [float(i) for i in range(60)]
        ichi = calculate_ichimoku(highs, lows)
        assert ichi.tenkan.first_index == 8
        assert ichi.kijun.first_index == 25
        assert ichi.senkou_a.first_index == 25
        assert ichi.senkou_b.first_index == 51
        bar = 59
        assert ichi.senkou_a.at(bar) == pytest.approx((ichi.tenkan.at(bar) + ichi.kijun.at(bar)) / 2)

    def test_cloud_signal(self):
        assert cloud_signal(110.0, 100.0, 105.0) is CloudSignal.ABOVE
        assert cloud_signal(90.0, 100.0, 105.0) is CloudSignal.BELOW
        assert cloud_signal(102.0, 100.0, 105.0) is CloudSignal.INSIDE
        assert cloud_signal(110.0, None, 105.0) is CloudSignal.INSIDE


# ── Relative strength / patterns ─────────────────────────────────────────


class TestRelativeStrength:
    def test_outperformance(self):
        closes = [100.0] + [100.0] * 61 + [110.0]
        bench = [100.0] + [100.0] * 61 + [105.0]
        assert calculate_relative_strength(closes, bench, 63) == pytest.approx(5.0)

    def test_short_benchmark_is_zero(self):
        assert calculate_relative_strength([100.0] * 100, [100.0] * 40, 63) == 0.0

    def test_benchmark_trimmed_to_symbol_date(self, make_candles):
        bench = make_candles(10, seed=3)
        assert benchmark_closes_through(bench, bench[6].date) == [c.close for c in bench[:7]]
        # Bar 4 is a Friday; the Saturday after it has no session.
        saturday = bench[4].date + timedelta(days=1)
        assert benchmark_closes_through(bench, saturday) == [c.close for c in bench[:5]]
        assert benchmark_closes_through(bench, bench[-1].date + timedelta(days=30)) == [c.close for c in bench]
        assert benchmark_closes_through(bench, bench[0].date - timedelta(days=1)) == []
        assert benchmark_closes_through(None, bench[0].date) == []


class TestCandlestickPatterns:
    def test_hammer(self):
        assert detect_candlestick_pattern(
            [100.0, 100.0], [101.0, 101.2], [99.0, 97.0], [100.0, 101.0]
        ) == "Hammer"

    def test_bullish_engulfing(self):
        assert detect_candlestick_pattern(
            [102.0, 99.5], [102.5, 103.2], [99.8, 99.4], [100.0, 103.0]
        ) == "Bullish Engulfing"

    def test_doji(self):
        assert detect_candlestick_pattern(
            [99.0, 100.0], [100.5, 101.0], [98.5, 99.0], [100.0, 100.05]
        ) == "Doji"

    def test_flat_bars_have_no_pattern(self):
        assert detect_candlestick_pattern([100.0] * 3, [100.0] * 3, [100.0] * 3, [100.0] * 3) is None


# ── Range properties ─────────────────────────────────────────────────────


class TestRanges:
    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    def test_oscillators_stay_in_bounds(self, make_candles, seed):
        highs, lows, closes, volumes = _ohlcv(make_candles(260, seed=seed, vol=0.03))

        bounded = [
            calculate_rsi(closes).values,
            calculate_mfi(highs, lows, closes, volumes).values,
            calculate_stochastic(highs, lows, closes).k.values,
            calculate_stochastic(highs, lows, closes).d.values,
            [b * 100 for b in calculate_bollinger(closes).percent_b.values],
        ]
        adx = calculate_adx(highs, lows, closes)
        bounded += [adx.adx.values, adx.plus_di.values, adx.minus_di.values]

        for values in bounded:
            arr = np.array(values)
            assert arr.size > 0
            assert np.all(arr >= 0.0) and np.all(arr <= 100.0)

    def test_williams_in_bounds(self, make_candles):
        highs, lows, closes, _ = _ohlcv(make_candles(200, seed=9))
        arr = np.array(calculate_williams_r(highs, lows, closes).values)
        assert np.all(arr >= -100.0) and np.all(arr <= 0.0)
