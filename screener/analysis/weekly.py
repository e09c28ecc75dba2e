"""Weekly timeframe — daily→weekly aggregation and trend-health verdict."""

from datetime import timedelta

from screener.analysis.indicators import calculate_ema, calculate_macd, calculate_rsi
from screener.analysis.models import Candle, WeeklyCandle, WeeklyStatus, WeeklyTrendHealth

ALIGNED_SCORE = 5
COUNTER_TREND_SCORE = -10
MIXED_SCORE = 0

WEEKLY_RSI_FLOOR = 40.0


def aggregate_weekly(candles: list[Candle]) -> list[WeeklyCandle]:
    """Fold daily candles into weekly candles keyed by ISO-week Monday.

    open = first daily open of the week, high = max, low = min,
    close = last daily close seen for the week, volume = sum.
    *candles* must be in ascending date order.
    """
    weeks: list[WeeklyCandle] = []
    for c in candles:
        monday = c.date - timedelta(days=c.date.weekday())
        if weeks and weeks[-1].week_start == monday:
            cur = weeks[-1]
            weeks[-1] = WeeklyCandle(
                week_start=monday,
                open=cur.open,
                high=max(cur.high, c.high),
                low=min(cur.low, c.low),
                close=c.close,
                volume=cur.volume + c.volume,
            )
        else:
            weeks.append(
                WeeklyCandle(
                    week_start=monday,
                    open=c.open,
                    high=c.high,
                    low=c.low,
                    close=c.close,
                    volume=c.volume,
                )
            )
    return weeks


def weekly_trend_health(candles: list[Candle]) -> WeeklyTrendHealth:
    """Derive the weekly trend verdict from daily candles.

    Rules:
        - **aligned** (+5): weekly close > weekly EMA20, weekly RSI > 40 and
          the weekly MACD histogram is positive or rising.
        - **counter-trend** (−10): weekly close not above EMA20 *and* weekly
          RSI not above 40.
        - **mixed** (0): everything else.

    Missing weekly RSI reads as 50 and a missing histogram as 0.
    """
    weekly = aggregate_weekly(candles)
    closes = [w.close for w in weekly]
    if not closes:
        return WeeklyTrendHealth(
            close_above_ema20=False,
            rsi_above_40=False,
            macd_hist_positive=False,
            weekly_ema20=0.0,
            weekly_rsi=50.0,
            weekly_macd_hist=0.0,
            weekly_close=0.0,
            status=WeeklyStatus.MIXED,
            score=MIXED_SCORE,
        )

    weekly_close = closes[-1]
    ema20 = calculate_ema(closes, 20).last(weekly_close)
    rsi = calculate_rsi(closes, 14).last(50.0)
    hist = calculate_macd(closes, 12, 26, 9).histogram
    hist_last = hist.last(0.0)
    hist_rising = len(hist) >= 2 and hist.values[-1] > hist.values[-2]

    close_above = weekly_close > ema20
    rsi_above = rsi > WEEKLY_RSI_FLOOR
    hist_positive = hist_last > 0 or hist_rising

    if close_above and rsi_above and hist_positive:
        status, score = WeeklyStatus.ALIGNED, ALIGNED_SCORE
    elif not close_above and not rsi_above:
        status, score = WeeklyStatus.COUNTER_TREND, COUNTER_TREND_SCORE
    else:
        status, score = WeeklyStatus.MIXED, MIXED_SCORE

    return WeeklyTrendHealth(
        close_above_ema20=close_above,
        rsi_above_40=rsi_above,
        macd_hist_positive=hist_positive,
        weekly_ema20=ema20,
        weekly_rsi=rsi,
        weekly_macd_hist=hist_last,
        weekly_close=weekly_close,
        status=status,
        score=score,
    )
