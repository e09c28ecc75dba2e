"""Screener data models — typed representations for analysis outputs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Candle:
    """A single daily OHLCV bar."""

    date: date
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class IndicatorSeries:
    """Indicator values paired with the bar index of the first value.

    ``values[k]`` belongs to bar ``first_index + k`` of the input the
    series was computed from.
    """

    values: list[float] = field(default_factory=list)
    first_index: int = 0

    def __len__(self) -> int:
        return len(self.values)

    @property
    def end_index(self) -> int:
        """Bar index of the last value (``first_index - 1`` when empty)."""
        return self.first_index + len(self.values) - 1

    def at(self, bar: int) -> Optional[float]:
        """Return the value attributed to *bar*, or ``None`` if not computed."""
        k = bar - self.first_index
        if 0 <= k < len(self.values):
            return self.values[k]
        return None

    def last(self, default: float = 0.0) -> float:
        return self.values[-1] if self.values else default


# ── Enums ────────────────────────────────────────────────────────────────


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"


class ObvTrend(str, Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class CloudSignal(str, Enum):
    ABOVE = "above"
    BELOW = "below"
    INSIDE = "inside"


class SwingType(str, Enum):
    HIGH = "high"
    LOW = "low"


class DivergenceType(str, Enum):
    RSI = "rsi"
    MACD_HISTOGRAM = "macd_histogram"
    OBV = "obv"
    MFI = "mfi"


class Direction(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"


class WeeklyStatus(str, Enum):
    ALIGNED = "aligned"
    COUNTER_TREND = "counter-trend"
    MIXED = "mixed"


class MarketRegime(str, Enum):
    BULL = "BULL"
    BEAR = "BEAR"
    SIDEWAYS = "SIDEWAYS"


class RsiTier(str, Enum):
    OPTIMAL = "optimal"
    GOOD = "good"
    CAUTION = "caution"
    EXHAUSTION = "exhaustion"
    PENALTY = "penalty"


class VolumeTrend(str, Enum):
    ACCELERATING = "accelerating"
    STEADY = "steady"
    DECLINING = "declining"


class Signal(str, Enum):
    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    WATCH = "WATCH"
    NEUTRAL = "NEUTRAL"
    AVOID = "AVOID"

    @property
    def tier(self) -> int:
        """Ordinal strength: AVOID=0 … STRONG_BUY=4."""
        return _SIGNAL_TIERS[self]


_SIGNAL_TIERS: dict[Signal, int] = {
    Signal.AVOID: 0,
    Signal.NEUTRAL: 1,
    Signal.WATCH: 2,
    Signal.BUY: 3,
    Signal.STRONG_BUY: 4,
}


# ── Weekly timeframe ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class WeeklyCandle:
    """A weekly bar keyed by the Monday of its ISO week."""

    week_start: date
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class WeeklyTrendHealth:
    """Higher-timeframe confirmation derived from weekly candles."""

    close_above_ema20: bool
    rsi_above_40: bool
    macd_hist_positive: bool
    weekly_ema20: float
    weekly_rsi: float
    weekly_macd_hist: float
    weekly_close: float
    status: WeeklyStatus
    score: int  # +5 aligned, -10 counter-trend, 0 mixed

    @property
    def aligned(self) -> bool:
        return self.status is WeeklyStatus.ALIGNED


# ── Divergences ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SwingPoint:
    """A fractal swing high or low in price."""

    index: int
    value: float
    kind: SwingType


@dataclass(frozen=True)
class Divergence:
    """Disagreement between price and an indicator at two swing points."""

    kind: DivergenceType
    direction: Direction
    price_swings: tuple[SwingPoint, SwingPoint]
    indicator_values: tuple[float, float]
    strength: float  # [0, 1]
    bars_ago: int
    score_impact: int
    description: str


@dataclass(frozen=True)
class DivergenceResult:
    """All divergences found for a symbol plus the clamped net score."""

    divergences: tuple[Divergence, ...] = ()
    net_score: int = 0  # clamped to [-15, +8]
    has_bullish: bool = False
    has_bearish: bool = False
    summary: str = ""


# ── Market regime ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MarketRegimeInfo:
    """Benchmark-derived market regime verdict."""

    regime: MarketRegime
    benchmark_close: float
    benchmark_ema20: float
    benchmark_ema50: float
    benchmark_adx: float
    volatility_index: Optional[float]
    description: str


@dataclass(frozen=True)
class AdaptiveThresholds:
    """Regime-conditioned thresholds overriding the base config."""

    min_adx: float
    rsi_low: float
    rsi_high: float
    volume_multiplier: float
    min_risk_reward: float
    strong_buy_threshold: float
    buy_threshold: float
    watch_threshold: float


# ── Sector rotation ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class SectorMetrics:
    sector: str
    stock_count: int
    avg_relative_strength_3m: float
    avg_week_change: float
    breadth_pct: float
    composite_score: float
    rank: int


@dataclass(frozen=True)
class SectorRankings:
    rankings: tuple[SectorMetrics, ...] = ()
    total_sectors: int = 0
    top_sectors: frozenset[str] = frozenset()
    bottom_sectors: frozenset[str] = frozenset()


@dataclass(frozen=True)
class SectorContext:
    """How a symbol's sector stands in the current rotation."""

    sector: str
    rank: int  # 0 when the sector is not ranked
    is_top: bool
    is_bottom: bool
    score_impact: int  # +5, -5 or 0
    total_sectors: int = 0


# ── Per-symbol indicator snapshot ────────────────────────────────────────


@dataclass(frozen=True)
class IndicatorSet:
    """Latest-value snapshot of every indicator for one symbol."""

    last_price: float
    last_volume: float
    avg_daily_turnover: float  # crores, 20-day average

    ema20: float
    ema50: float
    ema200: float

    rsi14: float
    adx14: float
    plus_di: float
    minus_di: float
    atr14: float
    relative_strength_3m: float
    volume_sma20: float
    week_change: float
    volume_recent3: tuple[float, float, float]
    vroc20: float

    macd_line: float
    macd_signal: float
    macd_histogram: float

    stochastic_k: float
    stochastic_d: float
    williams_r: float
    roc14: float
    cci20: float

    bollinger_upper: float
    bollinger_middle: float
    bollinger_lower: float
    bollinger_percent_b: float
    bollinger_bandwidth: float

    obv: float
    obv_trend: ObvTrend
    mfi14: float

    supertrend: float
    supertrend_direction: TrendDirection
    parabolic_sar: float
    sar_trend: TrendDirection

    ichimoku_tenkan: float
    ichimoku_kijun: float
    ichimoku_senkou_a: float
    ichimoku_senkou_b: float
    ichimoku_cloud_signal: CloudSignal

    vwap: float
    ad_line: float
    candlestick_pattern: Optional[str] = None

    @property
    def above_ema50(self) -> bool:
        return self.last_price > self.ema50


@dataclass(frozen=True)
class SymbolSnapshot:
    """Stage-A output: everything computed from one symbol's history."""

    symbol: str
    sector: str
    indicators: IndicatorSet
    weekly_trend: WeeklyTrendHealth
    divergences: DivergenceResult
    name: str = ""
