"""Velocity screener — batch engine.

Runs one screening batch in two stages:

    A. per-symbol validation and indicator analysis (parallel, pure)
    B. sector ranking over every analysed symbol, then per-symbol scoring
       (parallel, on the same pool)

The benchmark is classified once and shared read-only.  A caller can
abort a long scan through ``cancel_event``; symbols analysed before the
cancellation are still scored and returned.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from screener.analysis.models import (
    AdaptiveThresholds,
    Candle,
    MarketRegimeInfo,
    SectorRankings,
    Signal,
    SymbolSnapshot,
)
from screener.analysis.regime import classify_benchmark, get_adaptive_thresholds
from screener.analysis.sectors import compute_sector_rankings
from screener.analysis.snapshot import MalformedCandleError, analyze_symbol, validate_candles
from screener.config import EffectiveConfig, ScreenerConfig, resolve_config
from screener.pipeline.models import ScreenerResult
from screener.pipeline.screener import screen_symbol, sort_results

logger = logging.getLogger("screener.engine")


@dataclass(frozen=True)
class SymbolHistory:
    """One symbol's materialised daily history."""

    symbol: str
    sector: str
    candles: list[Candle]
    name: str = ""


@dataclass(frozen=True)
class ScreenBatch:
    """Everything a screening run needs, fetched up front."""

    symbols: list[SymbolHistory]
    benchmark: Optional[list[Candle]] = None
    volatility_index: Optional[float] = None


class SkipReason(str, Enum):
    INSUFFICIENT_HISTORY = "insufficient_history"
    MALFORMED_CANDLE = "malformed_candle"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class SkippedSymbol:
    symbol: str
    reason: SkipReason
    detail: str = ""


@dataclass(frozen=True)
class PipelineFunnel:
    """How many results passed each phase."""

    phase1: int = 0
    phase2: int = 0
    phase3: int = 0
    phase4_volume: int = 0
    phase5_volatility: int = 0

    @classmethod
    def from_results(cls, results: list[ScreenerResult]) -> "PipelineFunnel":
        return cls(
            phase1=sum(r.phase1_pass for r in results),
            phase2=sum(r.phase2_pass for r in results),
            phase3=sum(r.phase3_pass for r in results),
            phase4_volume=sum(r.phase4_volume_pass for r in results),
            phase5_volatility=sum(r.phase5_volatility_pass for r in results),
        )


@dataclass(frozen=True)
class ScreenReport:
    """Outcome of one batch: ranked results plus everything that explains them."""

    results: list[ScreenerResult]
    sector_rankings: SectorRankings
    market_regime: MarketRegimeInfo
    thresholds: AdaptiveThresholds
    effective: EffectiveConfig
    skipped: list[SkippedSymbol] = field(default_factory=list)
    funnel: PipelineFunnel = field(default_factory=PipelineFunnel)
    signal_counts: dict[Signal, int] = field(default_factory=dict)
    total_scanned: int = 0
    cancelled: bool = False


_Outcome = Union[SymbolSnapshot, SkippedSymbol]


class ScreenerEngine:
    """Screens a batch of symbols against one configuration.

    Args:
        config: Base screening configuration.  Validated at the start of
            every run, before any computation.
        max_workers: Worker threads for stage A.  ``1`` runs sequentially.
    """

    def __init__(self, config: Optional[ScreenerConfig] = None, max_workers: int = 1) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self._config = config or ScreenerConfig()
        self._max_workers = max_workers

    @property
    def config(self) -> ScreenerConfig:
        return self._config

    # ── Public API ───────────────────────────────────────────────────────

    def run(
        self,
        batch: ScreenBatch,
        thresholds: Optional[AdaptiveThresholds] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ScreenReport:
        """Screen *batch* and return a ranked report.

        Raises:
            ConfigValidationError: If the base config or the effective
                thresholds (including a *thresholds* override) are invalid.
        """
        config = self._config.validate()
        cancel_event = cancel_event or threading.Event()

        benchmark = self._usable_benchmark(batch.benchmark)
        regime = classify_benchmark(benchmark, batch.volatility_index)
        if thresholds is None:
            thresholds = get_adaptive_thresholds(regime.regime, config)
        effective = resolve_config(config, thresholds)

        logger.info(
            "Screening %d symbols (regime=%s, workers=%d)",
            len(batch.symbols), regime.regime.value, self._max_workers,
        )

        # One pool serves both stages; sector ranking is the barrier between them.
        executor = ThreadPoolExecutor(max_workers=self._max_workers) if self._max_workers > 1 else None
        try:
            # Stage A
            outcomes = self._analyse_all(executor, batch.symbols, benchmark, cancel_event)
            snapshots = [o for o in outcomes if isinstance(o, SymbolSnapshot)]

            # Stage B
            rankings = compute_sector_rankings(snapshots)
            results = sort_results(self._score_all(executor, snapshots, effective, rankings))
        finally:
            if executor is not None:
                executor.shutdown()

        skipped = [o for o in outcomes if isinstance(o, SkippedSymbol)]
        cancelled = any(s.reason is SkipReason.CANCELLED for s in skipped)
        if cancelled:
            logger.warning(
                "Scan cancelled: %d of %d symbols analysed",
                len(snapshots), len(batch.symbols),
            )

        counts = {sig: 0 for sig in Signal}
        for r in results:
            counts[r.signal] += 1

        logger.info(
            "Screen complete: %d scored, %d skipped, %d strong buy, %d buy",
            len(results), len(skipped), counts[Signal.STRONG_BUY], counts[Signal.BUY],
        )

        return ScreenReport(
            results=results,
            sector_rankings=rankings,
            market_regime=regime,
            thresholds=thresholds,
            effective=effective,
            skipped=skipped,
            funnel=PipelineFunnel.from_results(results),
            signal_counts=counts,
            total_scanned=len(batch.symbols),
            cancelled=cancelled,
        )

    # ── Internals ────────────────────────────────────────────────────────

    @staticmethod
    def _usable_benchmark(candles: Optional[list[Candle]]) -> Optional[list[Candle]]:
        if not candles:
            logger.warning("No benchmark history; relative strength will be 0")
            return None
        try:
            validate_candles(candles)
        except MalformedCandleError as exc:
            logger.warning("Ignoring malformed benchmark history: %s", exc)
            return None
        return candles

    def _analyse_all(
        self,
        executor: Optional[ThreadPoolExecutor],
        histories: list[SymbolHistory],
        benchmark: Optional[list[Candle]],
        cancel_event: threading.Event,
    ) -> list[_Outcome]:
        """Analyse every history, keeping the batch order in the output."""
        if executor is None:
            return [self._analyse_one(h, benchmark, cancel_event) for h in histories]

        outcomes: dict[int, _Outcome] = {}
        futures = {
            executor.submit(self._analyse_one, h, benchmark, cancel_event): i
            for i, h in enumerate(histories)
        }
        for future in as_completed(futures):
            outcomes[futures[future]] = future.result()
        return [outcomes[i] for i in range(len(histories))]

    @staticmethod
    def _score_all(
        executor: Optional[ThreadPoolExecutor],
        snapshots: list[SymbolSnapshot],
        effective: EffectiveConfig,
        rankings: SectorRankings,
    ) -> list[ScreenerResult]:
        """Stage B: score every snapshot against the shared sector rankings."""
        if executor is None:
            return [screen_symbol(s, effective, rankings) for s in snapshots]
        return list(executor.map(lambda s: screen_symbol(s, effective, rankings), snapshots))

    def _analyse_one(
        self,
        history: SymbolHistory,
        benchmark: Optional[list[Candle]],
        cancel_event: threading.Event,
    ) -> _Outcome:
        """Stage A for one symbol.  Expected problems become skip outcomes."""
        if cancel_event.is_set():
            return SkippedSymbol(history.symbol, SkipReason.CANCELLED, "scan cancelled")

        bars = len(history.candles)
        if bars < self._config.min_history_bars:
            detail = f"{bars} bars, need {self._config.min_history_bars}"
            logger.warning("Skipping %s: insufficient history (%s)", history.symbol, detail)
            return SkippedSymbol(history.symbol, SkipReason.INSUFFICIENT_HISTORY, detail)

        try:
            validate_candles(history.candles)
        except MalformedCandleError as exc:
            logger.warning("Skipping %s: malformed candles (%s)", history.symbol, exc)
            return SkippedSymbol(history.symbol, SkipReason.MALFORMED_CANDLE, str(exc))

        try:
            return analyze_symbol(
                history.symbol,
                history.sector,
                history.candles,
                benchmark,
                name=history.name,
            )
        except Exception as exc:
            logger.exception("Analysis failed for %s", history.symbol)
            return SkippedSymbol(history.symbol, SkipReason.FAILED, str(exc))
