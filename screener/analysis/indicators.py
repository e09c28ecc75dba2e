"""Technical indicators — pure functions over price/volume lists, no I/O.

Every function returns an ``IndicatorSeries`` (or a small bundle of them)
whose ``first_index`` records which input bar the first value belongs to.
Input shorter than the required lookback yields an empty or partially
computed series instead of raising; callers apply neutral defaults.
"""

import math
from dataclasses import dataclass, field
from typing import Optional

from screener.analysis.models import CloudSignal, IndicatorSeries, ObvTrend, TrendDirection

# Turnover is reported in crores (1 crore = 10 million).
TURNOVER_UNIT = 10_000_000.0


def _true_ranges(highs: list[float], lows: list[float], closes: list[float]) -> list[float]:
    """True range for bars 1..n-1 (bar 0 has no previous close)."""
    return [
        max(
            highs[i] - lows[i],
            abs(highs[i] - closes[i - 1]),
            abs(lows[i] - closes[i - 1]),
        )
        for i in range(1, len(closes))
    ]


def _wilder_smooth(data: list[float], period: int) -> list[float]:
    """Wilder smoothing: seed with the mean of *period* values, then
    ``avg = (avg × (period − 1) + x) / period``.

    Returns an empty list when fewer than *period* values are given.
    """
    if period <= 0 or len(data) < period:
        return []
    smoothed = [sum(data[:period]) / period]
    for x in data[period:]:
        smoothed.append((smoothed[-1] * (period - 1) + x) / period)
    return smoothed


def _rolling_sma(series: IndicatorSeries, period: int) -> IndicatorSeries:
    values = series.values
    if period <= 0 or len(values) < period:
        return IndicatorSeries()
    out = [
        sum(values[i - period + 1 : i + 1]) / period
        for i in range(period - 1, len(values))
    ]
    return IndicatorSeries(out, series.first_index + period - 1)


# ── Moving averages ──────────────────────────────────────────────────────


def calculate_ema(values: list[float], period: int) -> IndicatorSeries:
    """Calculate an Exponential Moving Average series.

    The first value is the simple average of the first *period* inputs
    (or of all inputs when fewer are available), placed on the last bar it
    covers.  Subsequent values use ``k = 2 / (period + 1)``::

        EMA_today = (x − EMA_yesterday) × k + EMA_yesterday
    """
    if not values or period <= 0:
        return IndicatorSeries()

    seed_len = min(period, len(values))
    ema = [sum(values[:seed_len]) / seed_len]
    k = 2.0 / (period + 1)
    for x in values[period:]:
        ema.append((x - ema[-1]) * k + ema[-1])

    return IndicatorSeries(ema, seed_len - 1)


def volume_sma(volumes: list[float], period: int = 20) -> float:
    """Average of the last *period* volumes (all of them if fewer)."""
    recent = volumes[-period:]
    if not recent:
        return 0.0
    return sum(recent) / len(recent)


# ── RSI ──────────────────────────────────────────────────────────────────


def _rsi_from_avgs(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        # No movement at all is neutral; only gains is maximal strength.
        return 50.0 if avg_gain == 0 else 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def calculate_rsi(closes: list[float], period: int = 14) -> IndicatorSeries:
    """Calculate Wilder's Relative Strength Index.

    Algorithm:
        1. delta = close[i] − close[i−1]
        2. Seed average gain/loss = mean of the first *period* deltas.
        3. Subsequent: avg = (prev_avg × (period−1) + current) / period
        4. RSI = 100 − 100 / (1 + avg_gain / avg_loss)

    The first value belongs to bar *period*.  Needs ``period + 1`` closes.
    """
    deltas = [closes[i] - closes[i - 1] for i in range(1, len(closes))]
    if period <= 0 or len(deltas) < period:
        return IndicatorSeries()

    gains = [max(d, 0.0) for d in deltas]
    losses = [abs(min(d, 0.0)) for d in deltas]

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period
    rsi = [_rsi_from_avgs(avg_gain, avg_loss)]

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        rsi.append(_rsi_from_avgs(avg_gain, avg_loss))

    return IndicatorSeries(rsi, period)


# ── ADX / DMI ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AdxResult:
    adx: IndicatorSeries = field(default_factory=IndicatorSeries)
    plus_di: IndicatorSeries = field(default_factory=IndicatorSeries)
    minus_di: IndicatorSeries = field(default_factory=IndicatorSeries)


def calculate_adx(
    highs: list[float],
    lows: list[float],
    closes: list[float],
    period: int = 14,
) -> AdxResult:
    """Calculate the Average Directional Index with +DI / −DI.

    Algorithm:
        1. +DM / −DM directional movement and true range per bar.
        2. Wilder-smooth +DM, −DM and TR over *period*.
        3. ±DI = 100 × smoothed ±DM / smoothed TR (0 when TR is 0).
        4. DX = 100 × |+DI − −DI| / (+DI + −DI) (0 when the sum is 0).
        5. ADX = Wilder-smoothed DX over *period*.

    ±DI start at bar *period*; ADX starts at bar ``2 × period − 1``.
    """
    n = len(closes)
    if n < 2:
        return AdxResult()

    plus_dm: list[float] = []
    minus_dm: list[float] = []
    for i in range(1, n):
        up_move = highs[i] - highs[i - 1]
        down_move = lows[i - 1] - lows[i]
        plus_dm.append(up_move if (up_move > down_move and up_move > 0) else 0.0)
        minus_dm.append(down_move if (down_move > up_move and down_move > 0) else 0.0)

    smooth_tr = _wilder_smooth(_true_ranges(highs, lows, closes), period)
    smooth_pdm = _wilder_smooth(plus_dm, period)
    smooth_mdm = _wilder_smooth(minus_dm, period)

    plus_di: list[float] = []
    minus_di: list[float] = []
    dx: list[float] = []
    for s_tr, s_pdm, s_mdm in zip(smooth_tr, smooth_pdm, smooth_mdm):
        if s_tr == 0:
            pdi = mdi = 0.0
        else:
            pdi = 100.0 * s_pdm / s_tr
            mdi = 100.0 * s_mdm / s_tr
        di_sum = pdi + mdi
        plus_di.append(pdi)
        minus_di.append(mdi)
        dx.append(0.0 if di_sum == 0 else 100.0 * abs(pdi - mdi) / di_sum)

    adx = _wilder_smooth(dx, period)

    return AdxResult(
        adx=IndicatorSeries(adx, 2 * period - 1),
        plus_di=IndicatorSeries(plus_di, period),
        minus_di=IndicatorSeries(minus_di, period),
    )


# ── ATR ──────────────────────────────────────────────────────────────────


def calculate_atr(
    highs: list[float],
    lows: list[float],
    closes: list[float],
    period: int = 14,
) -> IndicatorSeries:
    """Wilder-smoothed Average True Range.

    TR = max(high − low, |high − prev_close|, |low − prev_close|).
    The first value belongs to bar *period*.
    """
    return IndicatorSeries(_wilder_smooth(_true_ranges(highs, lows, closes), period), period)


# ── MACD ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MacdResult:
    macd_line: IndicatorSeries = field(default_factory=IndicatorSeries)
    signal_line: IndicatorSeries = field(default_factory=IndicatorSeries)
    histogram: IndicatorSeries = field(default_factory=IndicatorSeries)


def calculate_macd(
    closes: list[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> MacdResult:
    """Moving Average Convergence Divergence.

    MACD line = EMA(fast) − EMA(slow), starting where the slow EMA starts.
    Signal = EMA(signal) of the MACD line.  Histogram = MACD − signal.
    """
    fast = calculate_ema(closes, fast_period)
    slow = calculate_ema(closes, slow_period)
    if not slow.values:
        return MacdResult()

    macd_values: list[float] = []
    for bar in range(slow.first_index, slow.end_index + 1):
        f = fast.at(bar)
        s = slow.at(bar)
        if f is None or s is None:
            break
        macd_values.append(f - s)
    macd_line = IndicatorSeries(macd_values, slow.first_index)

    sig = calculate_ema(macd_values, signal_period)
    signal_line = IndicatorSeries(sig.values, macd_line.first_index + sig.first_index)

    histogram = [
        macd_line.at(signal_line.first_index + k) - s
        for k, s in enumerate(signal_line.values)
    ]

    return MacdResult(
        macd_line=macd_line,
        signal_line=signal_line,
        histogram=IndicatorSeries(histogram, signal_line.first_index),
    )


# ── Oscillators ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StochasticResult:
    k: IndicatorSeries = field(default_factory=IndicatorSeries)
    d: IndicatorSeries = field(default_factory=IndicatorSeries)


def calculate_stochastic(
    highs: list[float],
    lows: list[float],
    closes: list[float],
    k_period: int = 14,
    d_period: int = 3,
    smooth: int = 3,
) -> StochasticResult:
    """Slow stochastic oscillator.

    raw %K = 100 × (close − lowest low) / (highest high − lowest low),
    50 when the window has no range.  Slow %K = SMA(*smooth*) of raw %K;
    %D = SMA(*d_period*) of slow %K.
    """
    n = len(closes)
    if k_period <= 0 or n < k_period:
        return StochasticResult()

    raw: list[float] = []
    for i in range(k_period - 1, n):
        highest = max(highs[i - k_period + 1 : i + 1])
        lowest = min(lows[i - k_period + 1 : i + 1])
        rng = highest - lowest
        raw.append(50.0 if rng == 0 else (closes[i] - lowest) / rng * 100.0)

    slow_k = _rolling_sma(IndicatorSeries(raw, k_period - 1), smooth)
    return StochasticResult(k=slow_k, d=_rolling_sma(slow_k, d_period))


def calculate_williams_r(
    highs: list[float],
    lows: list[float],
    closes: list[float],
    period: int = 14,
) -> IndicatorSeries:
    """Williams %R in [−100, 0]; −50 when the window has no range."""
    n = len(closes)
    if period <= 0 or n < period:
        return IndicatorSeries()

    out: list[float] = []
    for i in range(period - 1, n):
        highest = max(highs[i - period + 1 : i + 1])
        lowest = min(lows[i - period + 1 : i + 1])
        rng = highest - lowest
        out.append(-50.0 if rng == 0 else (highest - closes[i]) / rng * -100.0)
    return IndicatorSeries(out, period - 1)


def calculate_roc(closes: list[float], period: int = 14) -> IndicatorSeries:
    """Rate of change in percent over *period* bars (0 when the base is 0)."""
    if period <= 0 or len(closes) <= period:
        return IndicatorSeries()
    out = []
    for i in range(period, len(closes)):
        prev = closes[i - period]
        out.append(0.0 if prev == 0 else (closes[i] - prev) / prev * 100.0)
    return IndicatorSeries(out, period)


def calculate_cci(
    highs: list[float],
    lows: list[float],
    closes: list[float],
    period: int = 20,
) -> IndicatorSeries:
    """Commodity Channel Index with the 0.015 Lambert constant.

    CCI = (TP − SMA(TP)) / (0.015 × mean deviation); 0 when the mean
    deviation is 0.
    """
    n = len(closes)
    if period <= 0 or n < period:
        return IndicatorSeries()

    tp = [(highs[i] + lows[i] + closes[i]) / 3.0 for i in range(n)]
    out: list[float] = []
    for i in range(period - 1, n):
        window = tp[i - period + 1 : i + 1]
        sma = sum(window) / period
        mean_dev = sum(abs(x - sma) for x in window) / period
        out.append(0.0 if mean_dev == 0 else (tp[i] - sma) / (0.015 * mean_dev))
    return IndicatorSeries(out, period - 1)


# ── Bollinger Bands ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class BollingerResult:
    upper: IndicatorSeries = field(default_factory=IndicatorSeries)
    middle: IndicatorSeries = field(default_factory=IndicatorSeries)
    lower: IndicatorSeries = field(default_factory=IndicatorSeries)
    percent_b: IndicatorSeries = field(default_factory=IndicatorSeries)
    bandwidth: IndicatorSeries = field(default_factory=IndicatorSeries)


def calculate_bollinger(
    closes: list[float],
    period: int = 20,
    std_dev: float = 2.0,
) -> BollingerResult:
    """Calculate Bollinger Bands.

    Middle = SMA(close, *period*)
    Upper  = middle + *std_dev* × σ
    Lower  = middle − *std_dev* × σ
    %B     = (close − lower) / (upper − lower), 0.5 when the bands touch,
             clamped to [0, 1]
    Bandwidth = (upper − lower) / middle, 0 when middle is 0
    """
    n = len(closes)
    if period <= 0 or n < period:
        return BollingerResult()

    upper: list[float] = []
    middle: list[float] = []
    lower: list[float] = []
    percent_b: list[float] = []
    bandwidth: list[float] = []

    for i in range(period - 1, n):
        window = closes[i - period + 1 : i + 1]
        sma = sum(window) / period
        variance = sum((x - sma) ** 2 for x in window) / period
        sigma = math.sqrt(variance)

        ub = sma + std_dev * sigma
        lb = sma - std_dev * sigma
        width = ub - lb

        upper.append(ub)
        middle.append(sma)
        lower.append(lb)
        if width == 0:
            percent_b.append(0.5)
        else:
            percent_b.append(min(1.0, max(0.0, (closes[i] - lb) / width)))
        bandwidth.append(0.0 if sma == 0 else width / sma)

    first = period - 1
    return BollingerResult(
        upper=IndicatorSeries(upper, first),
        middle=IndicatorSeries(middle, first),
        lower=IndicatorSeries(lower, first),
        percent_b=IndicatorSeries(percent_b, first),
        bandwidth=IndicatorSeries(bandwidth, first),
    )


# ── Volume ───────────────────────────────────────────────────────────────


def calculate_obv(closes: list[float], volumes: list[float]) -> IndicatorSeries:
    """On-Balance Volume, starting at 0 on bar 0."""
    if not closes:
        return IndicatorSeries()
    obv = [0.0]
    for i in range(1, len(closes)):
        if closes[i] > closes[i - 1]:
            obv.append(obv[-1] + volumes[i])
        elif closes[i] < closes[i - 1]:
            obv.append(obv[-1] - volumes[i])
        else:
            obv.append(obv[-1])
    return IndicatorSeries(obv, 0)


def obv_trend(obv: IndicatorSeries, lookback: int = 10, tolerance: float = 0.01) -> ObvTrend:
    """Classify OBV direction over *lookback* bars with a ±*tolerance* band."""
    values = obv.values
    if not values:
        return ObvTrend.FLAT
    current = values[-1]
    previous = values[-lookback - 1] if len(values) > lookback else values[0]
    band = abs(previous) * tolerance
    if current - previous > band:
        return ObvTrend.UP
    if previous - current > band:
        return ObvTrend.DOWN
    return ObvTrend.FLAT


def calculate_mfi(
    highs: list[float],
    lows: list[float],
    closes: list[float],
    volumes: list[float],
    period: int = 14,
) -> IndicatorSeries:
    """Money Flow Index in [0, 100].

    Positive/negative raw money flow summed over *period* typical-price
    changes.  100 when there is no negative flow, 50 when there is no flow
    at all.  The first value belongs to bar *period*.
    """
    n = len(closes)
    if period <= 0 or n <= period:
        return IndicatorSeries()

    tp = [(highs[i] + lows[i] + closes[i]) / 3.0 for i in range(n)]
    raw_mf = [tp[i] * volumes[i] for i in range(n)]

    out: list[float] = []
    for i in range(period, n):
        pos_mf = 0.0
        neg_mf = 0.0
        for j in range(i - period + 1, i + 1):
            if tp[j] > tp[j - 1]:
                pos_mf += raw_mf[j]
            elif tp[j] < tp[j - 1]:
                neg_mf += raw_mf[j]
        if neg_mf == 0:
            out.append(50.0 if pos_mf == 0 else 100.0)
        else:
            out.append(100.0 - 100.0 / (1.0 + pos_mf / neg_mf))
    return IndicatorSeries(out, period)


def calculate_vwap(
    highs: list[float],
    lows: list[float],
    closes: list[float],
    volumes: list[float],
) -> IndicatorSeries:
    """Cumulative volume-weighted average of the typical price."""
    out: list[float] = []
    cum_tpv = 0.0
    cum_vol = 0.0
    for i in range(len(closes)):
        tp = (highs[i] + lows[i] + closes[i]) / 3.0
        cum_tpv += tp * volumes[i]
        cum_vol += volumes[i]
        out.append(tp if cum_vol == 0 else cum_tpv / cum_vol)
    return IndicatorSeries(out, 0)


def calculate_ad_line(
    highs: list[float],
    lows: list[float],
    closes: list[float],
    volumes: list[float],
) -> IndicatorSeries:
    """Accumulation/Distribution line (money-flow multiplier × volume)."""
    out: list[float] = []
    adl = 0.0
    for i in range(len(closes)):
        rng = highs[i] - lows[i]
        mfm = 0.0 if rng == 0 else ((closes[i] - lows[i]) - (highs[i] - closes[i])) / rng
        adl += mfm * volumes[i]
        out.append(adl)
    return IndicatorSeries(out, 0)


def volume_roc(volumes: list[float], period: int = 20) -> float:
    """Latest volume as a percentage of the volume *period* bars earlier.

    100 (unchanged) when the earlier bar is missing or zero.
    """
    if len(volumes) <= period or volumes[-period - 1] == 0:
        return 100.0
    return volumes[-1] / volumes[-period - 1] * 100.0


def average_turnover(closes: list[float], volumes: list[float], period: int = 20) -> float:
    """Average daily traded value over the last *period* bars, in crores."""
    pairs = list(zip(closes, volumes))[-period:]
    if not pairs:
        return 0.0
    return sum(c * v / TURNOVER_UNIT for c, v in pairs) / len(pairs)


def week_change(closes: list[float]) -> float:
    """Percent change versus the close five sessions earlier."""
    if not closes:
        return 0.0
    ref = closes[-6] if len(closes) > 5 else closes[0]
    if ref == 0:
        return 0.0
    return (closes[-1] - ref) / ref * 100.0


# ── SuperTrend ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SuperTrendResult:
    line: IndicatorSeries = field(default_factory=IndicatorSeries)
    direction: list[TrendDirection] = field(default_factory=list)

    @property
    def last_direction(self) -> Optional[TrendDirection]:
        return self.direction[-1] if self.direction else None


def calculate_supertrend(
    highs: list[float],
    lows: list[float],
    closes: list[float],
    period: int = 10,
    multiplier: float = 3.0,
) -> SuperTrendResult:
    """ATR-band trend follower.

    Basic bands are ``hl2 ± multiplier × ATR``.  The lower band only moves
    up (and the upper band only down) unless the previous close crossed
    it.  The trend flips when the close breaches the active band.
    """
    atr = calculate_atr(highs, lows, closes, period)
    if not atr.values:
        return SuperTrendResult()

    offset = atr.first_index
    size = len(atr.values)
    upper: list[float] = []
    lower: list[float] = []
    for k, a in enumerate(atr.values):
        hl2 = (highs[k + offset] + lows[k + offset]) / 2.0
        upper.append(hl2 + multiplier * a)
        lower.append(hl2 - multiplier * a)

    direction = [TrendDirection.UP if closes[offset] > upper[0] else TrendDirection.DOWN]
    line = [lower[0] if direction[0] is TrendDirection.UP else upper[0]]

    for k in range(1, size):
        ci = k + offset
        if not (lower[k] > lower[k - 1] or closes[ci - 1] < lower[k - 1]):
            lower[k] = lower[k - 1]
        if not (upper[k] < upper[k - 1] or closes[ci - 1] > upper[k - 1]):
            upper[k] = upper[k - 1]

        if direction[-1] is TrendDirection.UP:
            trend = TrendDirection.DOWN if closes[ci] < lower[k] else TrendDirection.UP
        else:
            trend = TrendDirection.UP if closes[ci] > upper[k] else TrendDirection.DOWN
        direction.append(trend)
        line.append(lower[k] if trend is TrendDirection.UP else upper[k])

    return SuperTrendResult(line=IndicatorSeries(line, offset), direction=direction)


# ── Parabolic SAR ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ParabolicSarResult:
    sar: IndicatorSeries = field(default_factory=IndicatorSeries)
    trend: list[TrendDirection] = field(default_factory=list)


def calculate_parabolic_sar(
    highs: list[float],
    lows: list[float],
    closes: list[float],
    af_start: float = 0.02,
    af_increment: float = 0.02,
    af_max: float = 0.20,
) -> ParabolicSarResult:
    """Wilder's Parabolic Stop-and-Reverse.

    The acceleration factor starts at *af_start*, grows by *af_increment*
    on every new extreme point and caps at *af_max*.  SAR never moves
    inside the prior two bars' range for the current trend; a breach flips
    the trend, puts SAR at the extreme point and resets AF.
    """
    n = len(closes)
    if n < 2:
        return ParabolicSarResult()

    up = closes[1] > closes[0]
    af = af_start
    ep = highs[0] if up else lows[0]
    sar = [lows[0] if up else highs[0]]
    trend = [TrendDirection.UP if up else TrendDirection.DOWN]

    for i in range(1, n):
        current = sar[-1] + af * (ep - sar[-1])

        if up:
            current = min(current, lows[i - 1], lows[i - 2]) if i >= 2 else min(current, lows[i - 1])
            if lows[i] < current:
                up = False
                current = ep
                ep = lows[i]
                af = af_start
            elif highs[i] > ep:
                ep = highs[i]
                af = min(af + af_increment, af_max)
        else:
            current = max(current, highs[i - 1], highs[i - 2]) if i >= 2 else max(current, highs[i - 1])
            if highs[i] > current:
                up = True
                current = ep
                ep = highs[i]
                af = af_start
            elif lows[i] < ep:
                ep = lows[i]
                af = min(af + af_increment, af_max)

        sar.append(current)
        trend.append(TrendDirection.UP if up else TrendDirection.DOWN)

    return ParabolicSarResult(sar=IndicatorSeries(sar, 0), trend=trend)


# ── Ichimoku ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class IchimokuResult:
    tenkan: IndicatorSeries = field(default_factory=IndicatorSeries)
    kijun: IndicatorSeries = field(default_factory=IndicatorSeries)
    senkou_a: IndicatorSeries = field(default_factory=IndicatorSeries)
    senkou_b: IndicatorSeries = field(default_factory=IndicatorSeries)


def _midpoint_series(highs: list[float], lows: list[float], period: int) -> IndicatorSeries:
    n = len(highs)
    if period <= 0 or n < period:
        return IndicatorSeries()
    out = [
        (max(highs[i - period + 1 : i + 1]) + min(lows[i - period + 1 : i + 1])) / 2.0
        for i in range(period - 1, n)
    ]
    return IndicatorSeries(out, period - 1)


def calculate_ichimoku(
    highs: list[float],
    lows: list[float],
    tenkan_period: int = 9,
    kijun_period: int = 26,
    senkou_b_period: int = 52,
) -> IchimokuResult:
    """Ichimoku Kinko Hyo lines, unshifted (evaluated on the current bar).

    Tenkan / Kijun / Senkou B are rolling high-low midpoints;
    Senkou A = (Tenkan + Kijun) / 2 wherever both exist.
    """
    tenkan = _midpoint_series(highs, lows, tenkan_period)
    kijun = _midpoint_series(highs, lows, kijun_period)
    senkou_b = _midpoint_series(highs, lows, senkou_b_period)

    senkou_a_values: list[float] = []
    start = max(tenkan.first_index, kijun.first_index)
    if tenkan.values and kijun.values:
        for bar in range(start, min(tenkan.end_index, kijun.end_index) + 1):
            senkou_a_values.append((tenkan.at(bar) + kijun.at(bar)) / 2.0)

    return IchimokuResult(
        tenkan=tenkan,
        kijun=kijun,
        senkou_a=IndicatorSeries(senkou_a_values, start),
        senkou_b=senkou_b,
    )


def cloud_signal(price: float, senkou_a: Optional[float], senkou_b: Optional[float]) -> CloudSignal:
    """Position of *price* relative to the cloud; ``INSIDE`` when undefined."""
    if senkou_a is None or senkou_b is None:
        return CloudSignal.INSIDE
    if price > max(senkou_a, senkou_b):
        return CloudSignal.ABOVE
    if price < min(senkou_a, senkou_b):
        return CloudSignal.BELOW
    return CloudSignal.INSIDE


# ── Relative strength ────────────────────────────────────────────────────


def calculate_relative_strength(
    closes: list[float],
    benchmark_closes: list[float],
    period: int = 63,
) -> float:
    """Symbol return minus benchmark return over the trailing *period* bars.

    Both returns are in percent.  0 if either series is shorter than
    *period* or a base price is 0.
    """
    if period <= 0 or len(closes) < period or len(benchmark_closes) < period:
        return 0.0
    base = closes[-period]
    bench_base = benchmark_closes[-period]
    if base == 0 or bench_base == 0:
        return 0.0
    symbol_return = (closes[-1] / base - 1.0) * 100.0
    bench_return = (benchmark_closes[-1] / bench_base - 1.0) * 100.0
    return symbol_return - bench_return


# ── Candlestick patterns ─────────────────────────────────────────────────


def detect_candlestick_pattern(
    opens: list[float],
    highs: list[float],
    lows: list[float],
    closes: list[float],
) -> Optional[str]:
    """Name the bullish pattern formed by the latest bars, if any.

    Checked in order: Hammer, Bullish Engulfing, Doji, Morning Star.
    """
    n = len(closes)
    if n < 2:
        return None

    o, h, l, c = opens[-1], highs[-1], lows[-1], closes[-1]
    body = abs(c - o)
    rng = h - l
    upper_shadow = h - max(o, c)
    lower_shadow = min(o, c) - l

    if lower_shadow >= body * 2 and upper_shadow < body * 0.5 and rng > 0:
        return "Hammer"

    prev_open, prev_close = opens[-2], closes[-2]
    if prev_close < prev_open and c > o and o < prev_close and c > prev_open:
        return "Bullish Engulfing"

    if body < rng * 0.1 and rng > 0:
        return "Doji"

    if n >= 3:
        first_open, first_close = opens[-3], closes[-3]
        mid_body = abs(closes[-2] - opens[-2])
        mid_range = highs[-2] - lows[-2]
        if (
            first_close < first_open
            and mid_body < mid_range * 0.3
            and c > o
            and c > (first_open + first_close) / 2
        ):
            return "Morning Star"

    return None
