"""Velocity screener — application entry point.

Boots the FastAPI server and provides the CLI entry point::

    python -m screener.main scan --data-dir data [--json out.json]
    python -m screener.main serve [--port 8080]
"""

import logging

from fastapi import FastAPI

from screener.api.routers import router

app = FastAPI(title="Velocity Screener API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("screener")


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def format_report_table(report, limit: int = 25) -> str:
    """Render the top results as a fixed-width text table."""
    lines = [
        f"Regime: {report.market_regime.regime.value} ({report.market_regime.description})",
        f"Scanned {report.total_scanned}, scored {len(report.results)}, skipped {len(report.skipped)}",
        "",
        f"{'#':>3}  {'Symbol':<12} {'Sector':<16} {'Score':>5}  {'Signal':<11} {'Entry':>10} {'SL':>10} {'Target':>10}",
    ]
    for i, r in enumerate(report.results[:limit], start=1):
        risk = r.phase6_risk
        lines.append(
            f"{i:>3}  {r.symbol:<12} {r.sector[:16]:<16} {r.overall_score:>5}  {r.signal.value:<11} "
            f"{risk.entry_price:>10.2f} {risk.stop_loss:>10.2f} {risk.target:>10.2f}"
        )
    if report.skipped:
        lines.append("")
        for s in report.skipped:
            lines.append(f"skipped {s.symbol}: {s.reason.value} {s.detail}".rstrip())
    return "\n".join(lines)


def _run_cli(argv=None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command."""
    import argparse
    import json
    import pathlib

    from screener.config import load_settings

    parser = argparse.ArgumentParser(description="Velocity equity screener")
    parser.add_argument("--env-file", help="Path to a .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Screen a directory of CSV histories")
    scan.add_argument("--data-dir", help="Directory with universe.csv and <SYMBOL>.csv files")
    scan.add_argument("--benchmark", help="Benchmark symbol (default: BENCHMARK_SYMBOL)")
    scan.add_argument("--vix", type=float, help="Current volatility index reading")
    scan.add_argument("--config", help="JSON file with config overrides")
    scan.add_argument("--json", dest="json_out", help="Write the full report as JSON to this path")
    scan.add_argument("--top", type=int, default=25, help="Rows to print (default: 25)")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Bind address (default: API_HOST)")
    serve.add_argument("--port", type=int, help="Port (default: API_PORT)")

    args = parser.parse_args(argv)
    settings = load_settings(args.env_file)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "serve":
        import uvicorn

        from screener.api.routers import configure_routers

        configure_routers(max_workers=settings.max_workers)
        host = args.host or settings.api_host
        port = args.port or settings.api_port
        logger.info("Starting screener API on %s:%d", host, port)
        uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())
        return

    from screener.api.routers import report_to_dict
    from screener.config import config_from_dict
    from screener.data.loader import load_batch
    from screener.engine import ScreenerEngine

    overrides = {}
    if args.config:
        overrides = json.loads(pathlib.Path(args.config).read_text(encoding="utf-8"))
    config = config_from_dict(overrides)

    data_dir = pathlib.Path(args.data_dir or settings.data_dir)
    batch = load_batch(data_dir, args.benchmark or settings.benchmark_symbol, args.vix)
    report = ScreenerEngine(config, max_workers=settings.max_workers).run(batch)

    print(format_report_table(report, limit=args.top))
    if args.json_out:
        out = pathlib.Path(args.json_out)
        out.write_text(json.dumps(report_to_dict(report), indent=2), encoding="utf-8")
        logger.info("Report written to %s", out)


if __name__ == "__main__":
    _run_cli()
