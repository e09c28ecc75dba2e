"""Screener API routers — /screener and /screener/position-size endpoints.

No screening logic here.  Requests are parsed into a ``ScreenBatch`` and
handed to ``ScreenerEngine``; reports are returned as JSON.
"""

import logging
import math
from dataclasses import asdict, fields
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from fastapi.encoders import jsonable_encoder

from screener.analysis.models import AdaptiveThresholds, Candle
from screener.config import ConfigValidationError, config_from_dict, resolve_config
from screener.engine import ScreenBatch, ScreenerEngine, ScreenReport, SymbolHistory
from screener.pipeline.risk import calculate_position_size

logger = logging.getLogger("screener.api")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_max_workers: int = 1  # Set via configure_routers()


def configure_routers(max_workers: int = 1) -> None:
    """Inject runtime settings after startup."""
    global _max_workers
    _max_workers = max_workers


# ── Request parsing ──────────────────────────────────────────────────────


def _parse_candles(raw: Any, label: str) -> list[Candle]:
    if not isinstance(raw, list):
        raise ValueError(f"{label}: candles must be a list")
    candles = []
    for i, bar in enumerate(raw):
        try:
            candles.append(
                Candle(
                    date=date.fromisoformat(str(bar["date"])[:10]),
                    open=float(bar["open"]),
                    high=float(bar["high"]),
                    low=float(bar["low"]),
                    close=float(bar["close"]),
                    volume=float(bar["volume"]),
                )
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"{label}: bad candle at index {i} ({exc})") from None
    return candles


def _parse_thresholds(raw: Any) -> Optional[AdaptiveThresholds]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError("thresholds must be an object")
    names = [f.name for f in fields(AdaptiveThresholds)]
    missing = [n for n in names if n not in raw]
    if missing:
        raise ValueError(f"thresholds missing: {', '.join(missing)}")
    try:
        return AdaptiveThresholds(**{n: float(raw[n]) for n in names})
    except (TypeError, ValueError):
        raise ValueError("thresholds must be numeric") from None


def parse_batch(body: dict) -> ScreenBatch:
    """Build a ``ScreenBatch`` from a request body.

    Raises ``ValueError`` describing the first structural problem.  Bad
    prices inside an otherwise well-formed candle are left for the engine,
    which skips that symbol.
    """
    symbols = body.get("symbols")
    if not isinstance(symbols, list):
        raise ValueError("symbols must be a list")

    histories = []
    for entry in symbols:
        if not isinstance(entry, dict) or not entry.get("symbol"):
            raise ValueError("each symbol needs a 'symbol' field")
        symbol = str(entry["symbol"])
        histories.append(
            SymbolHistory(
                symbol=symbol,
                sector=str(entry.get("sector") or "Unknown"),
                candles=_parse_candles(entry.get("candles", []), symbol),
                name=str(entry.get("name") or ""),
            )
        )

    benchmark = body.get("benchmark")
    vix = body.get("volatility_index")
    if vix is not None and (isinstance(vix, bool) or not isinstance(vix, (int, float))):
        raise ValueError("volatility_index must be a number")
    return ScreenBatch(
        symbols=histories,
        benchmark=_parse_candles(benchmark, "benchmark") if benchmark else None,
        volatility_index=float(vix) if vix is not None else None,
    )


# ── Response shaping ─────────────────────────────────────────────────────


def report_to_dict(report: ScreenReport) -> dict:
    """Plain-JSON form of a report, with rationale joined into text."""
    payload = asdict(report)
    for row, result in zip(payload["results"], report.results):
        row["rationale_text"] = result.rationale_text
    payload["signal_counts"] = {sig.value: n for sig, n in report.signal_counts.items()}
    payload["total_results"] = len(report.results)
    return jsonable_encoder(payload)


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/screener/config")
async def get_default_config():
    """Return the default screening configuration."""
    return asdict(config_from_dict())


@router.post("/screener")
def run_screen(body: dict):
    """Screen a fully materialised batch.

    Body keys: ``symbols`` (list of ``{symbol, sector, name?, candles}``),
    optional ``benchmark`` candles, ``volatility_index``, partial
    ``config`` overrides and a full ``thresholds`` override.
    """
    overrides = body.get("config") or {}
    if not isinstance(overrides, dict):
        raise HTTPException(status_code=400, detail="config must be an object")
    try:
        config = config_from_dict(overrides)
        batch = parse_batch(body)
        thresholds = _parse_thresholds(body.get("thresholds"))
        if thresholds is not None:
            resolve_config(config, thresholds)
    except ConfigValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid config: {exc}")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    report = ScreenerEngine(config, max_workers=_max_workers).run(batch, thresholds)
    logger.info(
        "Screen request: %d symbols, %d results, regime %s",
        report.total_scanned, len(report.results), report.market_regime.regime.value,
    )
    return report_to_dict(report)


_POSITION_FIELDS = ("capital", "risk_pct", "entry_price", "stop_loss")


@router.post("/screener/position-size")
async def position_size(body: dict):
    """Size a long position from capital, risk % and an entry/stop pair.

    Body keys: ``capital``, ``risk_pct``, ``entry_price``, ``stop_loss`` and
    optional partial ``config`` overrides.  The position cap comes from
    ``max_capital_risk`` and the target from ``min_risk_reward``.
    """
    overrides = body.get("config") or {}
    if not isinstance(overrides, dict):
        raise HTTPException(status_code=400, detail="config must be an object")
    try:
        config = config_from_dict(overrides)
    except ConfigValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid config: {exc}")

    values = {}
    for name in _POSITION_FIELDS:
        raw = body.get(name)
        if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not math.isfinite(raw):
            raise HTTPException(status_code=400, detail=f"{name} must be a finite number")
        values[name] = float(raw)

    try:
        sizing = calculate_position_size(
            **values,
            max_capital_risk=config.max_capital_risk,
            risk_reward=config.min_risk_reward,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return asdict(sizing)
