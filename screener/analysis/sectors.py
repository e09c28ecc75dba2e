"""Sector rotation — rank sectors by composite momentum across the universe.

Runs after every symbol's indicators exist.  Composite score::

    0.50 × normalised avg RS(3M) + 0.30 × breadth% + 0.20 × normalised avg week change

where both averages are min-max normalised to 0–100 across the sector set
and breadth is the share of the sector's symbols trading above EMA50.
"""

import math
from dataclasses import dataclass

from screener.analysis.models import SectorContext, SectorMetrics, SectorRankings, SymbolSnapshot

RS_WEIGHT = 0.50
BREADTH_WEIGHT = 0.30
WEEK_CHANGE_WEIGHT = 0.20

TOP_SECTOR_IMPACT = 5
BOTTOM_SECTOR_IMPACT = -5


@dataclass
class _SectorAccumulator:
    count: int = 0
    rs_sum: float = 0.0
    week_change_sum: float = 0.0
    above_ema50: int = 0


def _normalise(value: float, low: float, high: float) -> float:
    span = high - low
    if span == 0:
        span = 1.0
    return (value - low) / span * 100.0


def _group_size(total: int) -> int:
    return 3 if total > 6 else math.ceil(total / 3)


def compute_sector_rankings(snapshots: list[SymbolSnapshot]) -> SectorRankings:
    """Rank sectors from per-symbol snapshots.

    Sectors are sorted by composite score (descending; sector name breaks
    ties) and ranked 1..N.  The top and bottom groups hold 3 sectors each
    when there are more than 6 sectors, otherwise ``ceil(N / 3)`` each.
    """
    acc: dict[str, _SectorAccumulator] = {}
    for snap in snapshots:
        bucket = acc.setdefault(snap.sector, _SectorAccumulator())
        bucket.count += 1
        bucket.rs_sum += snap.indicators.relative_strength_3m
        bucket.week_change_sum += snap.indicators.week_change
        if snap.indicators.above_ema50:
            bucket.above_ema50 += 1

    if not acc:
        return SectorRankings()

    averages = {
        sector: (b.rs_sum / b.count, b.week_change_sum / b.count, b.above_ema50 / b.count * 100.0)
        for sector, b in acc.items()
    }
    rs_values = [a[0] for a in averages.values()]
    wc_values = [a[1] for a in averages.values()]
    rs_min, rs_max = min(rs_values), max(rs_values)
    wc_min, wc_max = min(wc_values), max(wc_values)

    scored = []
    for sector, (avg_rs, avg_wc, breadth) in averages.items():
        composite = (
            RS_WEIGHT * _normalise(avg_rs, rs_min, rs_max)
            + BREADTH_WEIGHT * breadth
            + WEEK_CHANGE_WEIGHT * _normalise(avg_wc, wc_min, wc_max)
        )
        scored.append((sector, avg_rs, avg_wc, breadth, composite))

    scored.sort(key=lambda s: (-s[4], s[0]))

    rankings = tuple(
        SectorMetrics(
            sector=sector,
            stock_count=acc[sector].count,
            avg_relative_strength_3m=round(avg_rs, 2),
            avg_week_change=round(avg_wc, 2),
            breadth_pct=round(breadth, 1),
            composite_score=round(composite, 2),
            rank=rank,
        )
        for rank, (sector, avg_rs, avg_wc, breadth, composite) in enumerate(scored, start=1)
    )

    total = len(rankings)
    size = _group_size(total)
    return SectorRankings(
        rankings=rankings,
        total_sectors=total,
        top_sectors=frozenset(m.sector for m in rankings[:size]),
        bottom_sectors=frozenset(m.sector for m in rankings[-size:]),
    )


def sector_context(sector: str, rankings: SectorRankings) -> SectorContext:
    """Place *sector* in *rankings*; +5 if top group, −5 if bottom, else 0.

    When the groups overlap (very few sectors) the top group wins.
    """
    rank = next((m.rank for m in rankings.rankings if m.sector == sector), 0)
    is_top = sector in rankings.top_sectors
    is_bottom = sector in rankings.bottom_sectors
    if is_top:
        impact = TOP_SECTOR_IMPACT
    elif is_bottom:
        impact = BOTTOM_SECTOR_IMPACT
    else:
        impact = 0
    return SectorContext(
        sector=sector,
        rank=rank,
        is_top=is_top,
        is_bottom=is_bottom,
        score_impact=impact,
        total_sectors=rankings.total_sectors,
    )
