"""Velocity screener — configuration.

``ScreenerConfig`` is the fully enumerated, immutable per-run screening
configuration.  ``Settings`` holds runtime settings loaded from ``.env``.
"""

import math
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Optional

from dotenv import load_dotenv

from screener.analysis.models import AdaptiveThresholds


class ConfigValidationError(ValueError):
    """Raised when a screener configuration is non-numeric or out of range."""


@dataclass(frozen=True)
class ScreenerConfig:
    """Screening parameters for one run.

    Defaults match the production screen for large-cap Indian equities.
    Turnover is expressed in crores.
    """

    # Phase 1: liquidity
    min_avg_daily_turnover: float = 20.0
    # Phase 2: trend
    require_ema_alignment: bool = True
    min_adx: float = 25.0
    require_relative_strength: bool = True
    require_macd_bullish: bool = True
    require_supertrend_up: bool = False
    # Phase 3: momentum
    rsi_low: float = 40.0
    rsi_high: float = 75.0
    max_ema_proximity: float = 3.0  # % distance to EMA20/EMA50
    # Phase 4: volume
    volume_multiplier: float = 1.2
    require_obv_up: bool = True
    mfi_low: float = 40.0
    mfi_high: float = 80.0
    # Phase 5: volatility
    max_atr_percent: float = 5.0
    require_bollinger_expanding: bool = False
    bollinger_expansion_floor: float = 0.02
    # Phase 6: risk
    atr_multiple: float = 1.5
    min_risk_reward: float = 2.0
    max_capital_risk: float = 8.0  # % of capital per position
    # Data sufficiency
    min_history_bars: int = 60

    def validate(self) -> "ScreenerConfig":
        """Check types and ranges; return ``self`` so calls can chain.

        Raises ``ConfigValidationError`` naming the first offending field.
        """
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _BOOL_FIELDS:
                if not isinstance(value, bool):
                    raise ConfigValidationError(f"{f.name} must be a boolean, got {value!r}")
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigValidationError(f"{f.name} must be numeric, got {value!r}")
            if not math.isfinite(value):
                raise ConfigValidationError(f"{f.name} must be finite, got {value!r}")
            low, high, low_inclusive = _RANGES[f.name]
            too_low = value < low if low_inclusive else value <= low
            if too_low or value > high:
                bracket = "[" if low_inclusive else "("
                raise ConfigValidationError(
                    f"{f.name} must be in {bracket}{low}, {high}], got {value}"
                )

        if self.rsi_low > self.rsi_high:
            raise ConfigValidationError(
                f"rsi_low ({self.rsi_low}) must not exceed rsi_high ({self.rsi_high})"
            )
        if self.mfi_low > self.mfi_high:
            raise ConfigValidationError(
                f"mfi_low ({self.mfi_low}) must not exceed mfi_high ({self.mfi_high})"
            )
        if int(self.min_history_bars) != self.min_history_bars:
            raise ConfigValidationError(
                f"min_history_bars must be a whole number, got {self.min_history_bars}"
            )
        return self


_BOOL_FIELDS = frozenset({
    "require_ema_alignment",
    "require_relative_strength",
    "require_macd_bullish",
    "require_supertrend_up",
    "require_obv_up",
    "require_bollinger_expanding",
})

# field → (low, high, low_inclusive)
_RANGES: dict[str, tuple[float, float, bool]] = {
    "min_avg_daily_turnover": (0.0, 10_000.0, False),
    "min_adx": (0.0, 100.0, True),
    "rsi_low": (0.0, 100.0, True),
    "rsi_high": (0.0, 100.0, True),
    "max_ema_proximity": (0.0, 100.0, True),
    "volume_multiplier": (0.0, 100.0, True),
    "mfi_low": (0.0, 100.0, True),
    "mfi_high": (0.0, 100.0, True),
    "max_atr_percent": (0.0, 100.0, True),
    "bollinger_expansion_floor": (0.0, 100.0, True),
    "atr_multiple": (0.0, 100.0, True),
    "min_risk_reward": (0.0, 100.0, True),
    "max_capital_risk": (0.0, 100.0, True),
    "min_history_bars": (2, 10_000, True),
}


def config_from_dict(overrides: Optional[dict[str, Any]] = None) -> ScreenerConfig:
    """Merge a partial override dict onto the defaults and validate.

    Unknown keys are rejected rather than ignored.
    """
    overrides = overrides or {}
    known = {f.name for f in fields(ScreenerConfig)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ConfigValidationError(f"Unknown config option(s): {', '.join(unknown)}")
    return ScreenerConfig(**overrides).validate()


@dataclass(frozen=True)
class EffectiveConfig:
    """Base config with regime thresholds applied, plus signal floors."""

    screener: ScreenerConfig
    strong_buy_threshold: float
    buy_threshold: float
    watch_threshold: float


_SIGNAL_FLOORS = ("strong_buy_threshold", "buy_threshold", "watch_threshold")


def validate_thresholds(thresholds: AdaptiveThresholds) -> AdaptiveThresholds:
    """Check the signal floors of *thresholds*; return it so calls can chain.

    Floors must be finite, within [0, 100] and ordered
    strong_buy >= buy >= watch.  The remaining fields are checked by
    ``resolve_config`` through the merged ``ScreenerConfig``.
    """
    for name in _SIGNAL_FLOORS:
        value = getattr(thresholds, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigValidationError(f"{name} must be numeric, got {value!r}")
        if not math.isfinite(value) or not 0.0 <= value <= 100.0:
            raise ConfigValidationError(f"{name} must be in [0, 100], got {value}")
    if not thresholds.strong_buy_threshold >= thresholds.buy_threshold >= thresholds.watch_threshold:
        raise ConfigValidationError(
            "signal floors must satisfy strong_buy_threshold >= buy_threshold >= watch_threshold, "
            f"got {thresholds.strong_buy_threshold}, {thresholds.buy_threshold}, "
            f"{thresholds.watch_threshold}"
        )
    return thresholds


def resolve_config(base: ScreenerConfig, thresholds: AdaptiveThresholds) -> EffectiveConfig:
    """Apply *thresholds* on top of *base* and return a complete config.

    Raises ``ConfigValidationError`` when the merged config or the signal
    floors are invalid.
    """
    validate_thresholds(thresholds)
    screener = replace(
        base,
        min_adx=thresholds.min_adx,
        rsi_low=thresholds.rsi_low,
        rsi_high=thresholds.rsi_high,
        volume_multiplier=thresholds.volume_multiplier,
        min_risk_reward=thresholds.min_risk_reward,
    ).validate()
    return EffectiveConfig(
        screener=screener,
        strong_buy_threshold=thresholds.strong_buy_threshold,
        buy_threshold=thresholds.buy_threshold,
        watch_threshold=thresholds.watch_threshold,
    )


# ── Runtime settings ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Settings:
    """Runtime settings loaded from environment variables."""

    log_level: str
    data_dir: str
    benchmark_symbol: str
    max_workers: int
    api_host: str
    api_port: int


def _int_env(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}") from None


def load_settings(env_path: str | None = None) -> Settings:
    """Load runtime settings from the environment (and *env_path* if given).

    Every variable is optional.  Raises ``ValueError`` naming the variable
    when an integer setting cannot be parsed.
    """
    load_dotenv(dotenv_path=env_path)

    max_workers = _int_env("SCREENER_MAX_WORKERS", "1")
    if max_workers < 1:
        raise ValueError(f"SCREENER_MAX_WORKERS must be at least 1, got {max_workers}")

    return Settings(
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        data_dir=os.environ.get("DATA_DIR", "data"),
        benchmark_symbol=os.environ.get("BENCHMARK_SYMBOL", "NIFTY50"),
        max_workers=max_workers,
        api_host=os.environ.get("API_HOST", "0.0.0.0"),
        api_port=_int_env("API_PORT", "8080"),
    )
