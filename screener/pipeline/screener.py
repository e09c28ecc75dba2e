"""Six-phase screening funnel — turns analysed snapshots into ranked results."""

from typing import Optional

from screener.analysis.models import SectorRankings, SymbolSnapshot
from screener.analysis.sectors import compute_sector_rankings, sector_context
from screener.config import EffectiveConfig
from screener.pipeline.models import ScreenerResult
from screener.pipeline.phases import (
    phase1_liquidity,
    phase2_trend,
    phase3_momentum,
    phase4_volume,
    phase5_volatility,
    phase6_risk,
)
from screener.pipeline.scoring import calculate_score, determine_signal, generate_rationale


def screen_symbol(
    snapshot: SymbolSnapshot,
    effective: EffectiveConfig,
    rankings: SectorRankings,
) -> ScreenerResult:
    """Run one snapshot through phases 1–6 and score it.

    A phase only passes when every earlier phase passed.  Detail records
    are always filled in; ``evaluated`` is ``False`` for gated-out phases.
    """
    cfg = effective.screener
    ind = snapshot.indicators

    liquidity = phase1_liquidity(ind, cfg)
    p1 = liquidity.conditions_pass

    trend = phase2_trend(ind, cfg, evaluated=p1)
    p2 = p1 and trend.conditions_pass

    momentum = phase3_momentum(ind, cfg, evaluated=p2)
    p3 = p2 and momentum.conditions_pass

    volume = phase4_volume(ind, cfg, evaluated=p3)
    p4 = p3 and volume.conditions_pass

    volatility = phase5_volatility(ind, cfg, evaluated=p4)
    p5 = p4 and volatility.conditions_pass

    risk = phase6_risk(ind.last_price, ind.atr14, cfg)
    sector = sector_context(snapshot.sector, rankings)

    score = calculate_score(
        p1, p2, ind, momentum, volume, volatility,
        snapshot.weekly_trend, snapshot.divergences, sector,
    )
    signal = determine_signal(score, p1, p2, p3, p4, effective)
    rationale = generate_rationale(
        ind, momentum, volume, volatility,
        snapshot.weekly_trend, snapshot.divergences, sector, risk,
    )

    return ScreenerResult(
        symbol=snapshot.symbol,
        name=snapshot.name,
        sector=snapshot.sector,
        indicators=ind,
        weekly_trend=snapshot.weekly_trend,
        divergences=snapshot.divergences,
        sector_context=sector,
        phase1_pass=p1,
        phase2_pass=p2,
        phase3_pass=p3,
        phase4_volume_pass=p4,
        phase5_volatility_pass=p5,
        phase1_details=liquidity,
        phase2_details=trend,
        phase3_details=momentum,
        phase4_volume_details=volume,
        phase5_volatility_details=volatility,
        phase6_risk=risk,
        overall_score=score,
        signal=signal,
        rationale=rationale,
    )


def sort_results(results: list[ScreenerResult]) -> list[ScreenerResult]:
    """Score descending, symbol ascending on ties."""
    return sorted(results, key=lambda r: (-r.overall_score, r.symbol))


def run_screener(
    snapshots: list[SymbolSnapshot],
    effective: EffectiveConfig,
    rankings: Optional[SectorRankings] = None,
) -> list[ScreenerResult]:
    """Screen every snapshot and return results ranked by score.

    Sector rankings are computed from *snapshots* when not supplied.
    """
    if rankings is None:
        rankings = compute_sector_rankings(snapshots)
    return sort_results([screen_symbol(s, effective, rankings) for s in snapshots])
