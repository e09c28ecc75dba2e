"""CSV loading for screening batches.

Layout of a data directory::

    data/
        universe.csv        symbol,sector[,name]
        NIFTY50.csv         benchmark history
        RELIANCE.csv        one file per symbol
        ...

Each history file has ``date,open,high,low,close,volume`` columns
(header case is ignored).

Usage (CLI):
    python -m screener.main scan --data-dir data
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from screener.analysis.models import Candle
from screener.analysis.snapshot import MalformedCandleError
from screener.engine import ScreenBatch, SymbolHistory

logger = logging.getLogger("screener.data")

OHLCV_COLUMNS = ["date", "open", "high", "low", "close", "volume"]
UNIVERSE_FILE = "universe.csv"


# ── Frames ───────────────────────────────────────────────────────────────


def frame_to_candles(df: pd.DataFrame) -> list[Candle]:
    """Convert an OHLCV DataFrame into a list of ``Candle``.

    Raises ``MalformedCandleError`` when a column is missing, a value is
    not a finite number, or dates are not strictly ascending.
    """
    if df.empty:
        return []

    df = df.rename(columns=str.lower)
    missing = [c for c in OHLCV_COLUMNS if c not in df.columns]
    if missing:
        raise MalformedCandleError(f"missing column(s): {', '.join(missing)}")

    df = df[OHLCV_COLUMNS].copy()
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    for col in OHLCV_COLUMNS[1:]:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    bad = df.isna().any(axis=1)
    if bad.any():
        row = int(bad.to_numpy().nonzero()[0][0])
        raise MalformedCandleError(f"row {row} has a missing or non-numeric value")
    if not df["date"].is_monotonic_increasing or df["date"].duplicated().any():
        raise MalformedCandleError("dates are not strictly ascending")

    return [
        Candle(
            date=row.date.date(),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for row in df.itertuples(index=False)
    ]


def load_candles_csv(path: Path) -> list[Candle]:
    """Read one OHLCV CSV file."""
    return frame_to_candles(pd.read_csv(path))


# ── Universe ─────────────────────────────────────────────────────────────


def load_universe(data_dir: Path) -> list[SymbolHistory]:
    """Load every symbol listed in ``universe.csv`` with its history.

    A symbol whose history file is missing gets an empty history, which
    the engine reports as insufficient.  Malformed files are logged and
    left out.
    """
    data_dir = Path(data_dir)
    universe = pd.read_csv(data_dir / UNIVERSE_FILE, dtype=str).rename(columns=str.lower)
    for col in ("symbol", "sector"):
        if col not in universe.columns:
            raise ValueError(f"{UNIVERSE_FILE} is missing the '{col}' column")

    histories: list[SymbolHistory] = []
    for row in universe.fillna("").itertuples(index=False):
        symbol = row.symbol.strip()
        if not symbol:
            continue
        path = data_dir / f"{symbol}.csv"
        if not path.exists():
            logger.warning("No history file for %s (%s)", symbol, path)
            candles: list[Candle] = []
        else:
            try:
                candles = load_candles_csv(path)
            except MalformedCandleError as exc:
                logger.warning("Dropping %s: %s", symbol, exc)
                continue
        histories.append(
            SymbolHistory(
                symbol=symbol,
                sector=row.sector.strip() or "Unknown",
                candles=candles,
                name=getattr(row, "name", "").strip(),
            )
        )

    logger.info("Loaded %d symbols from %s", len(histories), data_dir)
    return histories


def load_batch(
    data_dir: Path,
    benchmark_symbol: str,
    volatility_index: Optional[float] = None,
) -> ScreenBatch:
    """Assemble a ``ScreenBatch`` from a data directory.

    A missing benchmark file leaves ``benchmark`` as ``None``.
    """
    data_dir = Path(data_dir)
    benchmark_path = data_dir / f"{benchmark_symbol}.csv"
    benchmark = load_candles_csv(benchmark_path) if benchmark_path.exists() else None
    if benchmark is None:
        logger.warning("Benchmark %s not found in %s", benchmark_symbol, data_dir)

    return ScreenBatch(
        symbols=load_universe(data_dir),
        benchmark=benchmark,
        volatility_index=volatility_index,
    )
