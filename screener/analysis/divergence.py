"""Divergence detection — fractal swing points cross-checked against
momentum and volume indicators.  Pure functions.

A *regular* divergence compares the two most recent swings of one type:

- Bullish: price makes a lower low while the indicator makes a higher low.
- Bearish: price makes a higher high while the indicator makes a lower high.

OBV and MFI only produce bearish *warnings* (volume not confirming a new
price high).
"""

from typing import Optional

from screener.analysis.models import (
    Direction,
    Divergence,
    DivergenceResult,
    DivergenceType,
    IndicatorSeries,
    SwingPoint,
    SwingType,
)

SWING_ORDER = 5
SWING_LOOKBACK = 50
MIN_SWING_SEPARATION = 5

BULLISH_IMPACT = 8
BEARISH_IMPACT = -10
WARNING_IMPACT = -5

NET_SCORE_MIN = -15
NET_SCORE_MAX = 8

# A 10 % price move or a 20-point oscillator move counts as full strength.
PRICE_MOVE_SCALE = 0.10
OSCILLATOR_MOVE_SCALE = 20.0

_LABELS: dict[DivergenceType, str] = {
    DivergenceType.RSI: "RSI",
    DivergenceType.MACD_HISTOGRAM: "MACD",
    DivergenceType.OBV: "OBV",
    DivergenceType.MFI: "MFI",
}


def _is_extreme(values: list[float], i: int, order: int, kind: SwingType) -> bool:
    pivot = values[i]
    for j in range(1, order + 1):
        left, right = values[i - j], values[i + j]
        if kind is SwingType.HIGH:
            if left >= pivot or right >= pivot:
                return False
        elif left <= pivot or right <= pivot:
            return False
    return True


def find_swing_points(
    values: list[float],
    kind: SwingType,
    order: int = SWING_ORDER,
    lookback: int = SWING_LOOKBACK,
    min_separation: int = MIN_SWING_SEPARATION,
) -> list[SwingPoint]:
    """Identify fractal swing highs or lows over the trailing *lookback* bars.

    A bar is a swing if it is strictly more extreme than the *order* bars
    on each side.  Same-type swings closer than *min_separation* bars are
    merged, keeping the more extreme one.  Indices refer to *values*.
    """
    n = len(values)
    start = max(0, n - lookback)

    raw: list[SwingPoint] = []
    for i in range(start + order, n - order):
        if _is_extreme(values, i, order, kind):
            raw.append(SwingPoint(index=i, value=values[i], kind=kind))

    merged: list[SwingPoint] = []
    for point in raw:
        if merged and point.index - merged[-1].index < min_separation:
            prev = merged[-1]
            if kind is SwingType.HIGH:
                keep_new = point.value > prev.value
            else:
                keep_new = point.value < prev.value
            if keep_new:
                merged[-1] = point
            continue
        merged.append(point)
    return merged


def _strength(
    kind: DivergenceType,
    first: SwingPoint,
    second: SwingPoint,
    ind_first: float,
    ind_second: float,
) -> float:
    """Average of the normalised price move and indicator move, in [0, 1]."""
    price_move = abs(second.value - first.value) / abs(first.value) if first.value else 0.0
    price_norm = min(1.0, price_move / PRICE_MOVE_SCALE)

    delta = abs(ind_second - ind_first)
    if kind in (DivergenceType.RSI, DivergenceType.MFI):
        ind_norm = min(1.0, delta / OSCILLATOR_MOVE_SCALE)
    else:
        scale = max(abs(ind_first), abs(ind_second))
        ind_norm = min(1.0, delta / scale) if scale else 0.0

    return round(min(1.0, max(0.0, (price_norm + ind_norm) / 2.0)), 3)


def _readings(
    swings: list[SwingPoint], series: IndicatorSeries
) -> Optional[tuple[SwingPoint, SwingPoint, float, float]]:
    if len(swings) < 2:
        return None
    first, second = swings[-2], swings[-1]
    ind_first = series.at(first.index)
    ind_second = series.at(second.index)
    if ind_first is None or ind_second is None:
        return None
    return first, second, ind_first, ind_second


def _regular(
    kind: DivergenceType,
    direction: Direction,
    swings: list[SwingPoint],
    series: IndicatorSeries,
    last_bar: int,
) -> Optional[Divergence]:
    found = _readings(swings, series)
    if found is None:
        return None
    first, second, ind_first, ind_second = found
    label = _LABELS[kind]

    if direction is Direction.BULLISH:
        if not (second.value < first.value and ind_second > ind_first):
            return None
        impact = BULLISH_IMPACT
        text = (
            f"Bullish {label} divergence: price lower low "
            f"({first.value:.2f} → {second.value:.2f}), "
            f"{label} higher low ({ind_first:.2f} → {ind_second:.2f})"
        )
    else:
        if not (second.value > first.value and ind_second < ind_first):
            return None
        impact = BEARISH_IMPACT
        text = (
            f"Bearish {label} divergence: price higher high "
            f"({first.value:.2f} → {second.value:.2f}), "
            f"{label} lower high ({ind_first:.2f} → {ind_second:.2f})"
        )

    return Divergence(
        kind=kind,
        direction=direction,
        price_swings=(first, second),
        indicator_values=(ind_first, ind_second),
        strength=_strength(kind, first, second, ind_first, ind_second),
        bars_ago=last_bar - second.index,
        score_impact=impact,
        description=text,
    )


def _volume_warning(
    kind: DivergenceType,
    swing_highs: list[SwingPoint],
    series: IndicatorSeries,
    last_bar: int,
) -> Optional[Divergence]:
    found = _readings(swing_highs, series)
    if found is None:
        return None
    first, second, ind_first, ind_second = found
    if second.value <= first.value:
        return None

    label = _LABELS[kind]
    if kind is DivergenceType.OBV:
        # Flat or lower OBV fails to confirm the new high.
        if ind_second > ind_first:
            return None
        text = f"OBV not confirming price higher high ({first.value:.2f} → {second.value:.2f})"
    else:
        if ind_second >= ind_first:
            return None
        text = (
            f"MFI declining into price higher high "
            f"({ind_first:.1f} → {ind_second:.1f})"
        )

    return Divergence(
        kind=kind,
        direction=Direction.BEARISH,
        price_swings=(first, second),
        indicator_values=(ind_first, ind_second),
        strength=_strength(kind, first, second, ind_first, ind_second),
        bars_ago=last_bar - second.index,
        score_impact=WARNING_IMPACT,
        description=text,
    )


def _summary_label(d: Divergence) -> str:
    if d.kind in (DivergenceType.OBV, DivergenceType.MFI):
        return f"{_LABELS[d.kind]} warning"
    return f"{d.direction.value.capitalize()} {_LABELS[d.kind]} divergence"


def detect_divergences(
    highs: list[float],
    lows: list[float],
    rsi: IndicatorSeries,
    macd_histogram: IndicatorSeries,
    obv: IndicatorSeries,
    mfi: IndicatorSeries,
    order: int = SWING_ORDER,
    lookback: int = SWING_LOOKBACK,
    min_separation: int = MIN_SWING_SEPARATION,
) -> DivergenceResult:
    """Detect divergences between price swings and indicator readings.

    Indicator readings are taken at the swing bars themselves; a swing on
    a bar the indicator does not cover is ignored.  Rules and impacts:

    ==============================  ======
    Bullish RSI / MACD histogram      +8
    Bearish RSI / MACD histogram     −10
    OBV not confirming higher high    −5
    MFI declining into higher high    −5
    ==============================  ======

    The net score is clamped to [−15, +8].  Divergences are listed in the
    fixed order RSI, MACD, OBV, MFI (bullish before bearish).
    """
    if not lows or not highs:
        return DivergenceResult()

    last_bar = len(lows) - 1
    swing_lows = find_swing_points(lows, SwingType.LOW, order, lookback, min_separation)
    swing_highs = find_swing_points(highs, SwingType.HIGH, order, lookback, min_separation)

    candidates = [
        _regular(DivergenceType.RSI, Direction.BULLISH, swing_lows, rsi, last_bar),
        _regular(DivergenceType.RSI, Direction.BEARISH, swing_highs, rsi, last_bar),
        _regular(DivergenceType.MACD_HISTOGRAM, Direction.BULLISH, swing_lows, macd_histogram, last_bar),
        _regular(DivergenceType.MACD_HISTOGRAM, Direction.BEARISH, swing_highs, macd_histogram, last_bar),
        _volume_warning(DivergenceType.OBV, swing_highs, obv, last_bar),
        _volume_warning(DivergenceType.MFI, swing_highs, mfi, last_bar),
    ]
    found = tuple(d for d in candidates if d is not None)

    raw_score = sum(d.score_impact for d in found)
    net = max(NET_SCORE_MIN, min(NET_SCORE_MAX, raw_score))

    return DivergenceResult(
        divergences=found,
        net_score=net,
        has_bullish=any(d.direction is Direction.BULLISH for d in found),
        has_bearish=any(d.direction is Direction.BEARISH for d in found),
        summary=", ".join(_summary_label(d) for d in found),
    )
