"""Tests for scoring, signal classification, rationale and the funnel."""

import itertools

import pytest

from screener.analysis.models import (
    CloudSignal,
    Divergence,
    DivergenceResult,
    DivergenceType,
    Direction,
    MarketRegime,
    ObvTrend,
    SectorContext,
    SectorRankings,
    Signal,
    SwingPoint,
    SwingType,
    TrendDirection,
    WeeklyStatus,
)
from screener.analysis.regime import get_adaptive_thresholds
from screener.config import ScreenerConfig, resolve_config
from screener.pipeline.phases import phase3_momentum, phase4_volume, phase5_volatility
from screener.pipeline.scoring import calculate_score, determine_signal, generate_rationale
from screener.pipeline.screener import run_screener, screen_symbol


def _effective(regime: MarketRegime):
    base = ScreenerConfig()
    return resolve_config(base, get_adaptive_thresholds(regime, base))


BULL = _effective(MarketRegime.BULL)
BEAR = _effective(MarketRegime.BEAR)
NO_SECTORS = SectorRankings()


def _bullish_rsi_divergence() -> Divergence:
    return Divergence(
        kind=DivergenceType.RSI,
        direction=Direction.BULLISH,
        price_swings=(SwingPoint(10, 100.0, SwingType.LOW), SwingPoint(25, 95.0, SwingType.LOW)),
        indicator_values=(30.0, 40.0),
        strength=0.5,
        bars_ago=5,
        score_impact=8,
        description="Bullish RSI divergence: price lower low, RSI higher low",
    )


class TestCalculateScore:
    def test_strong_setup(self, make_snapshot):
        result = screen_symbol(make_snapshot(), BULL, NO_SECTORS)
        assert result.overall_score == 93
        assert result.signal is Signal.STRONG_BUY

    def test_clamped_at_100(self, make_snapshot):
        snap = make_snapshot(candlestick_pattern="Hammer", adx14=40.0)
        cfg = BULL.screener
        score = calculate_score(
            True,
            True,
            snap.indicators,
            phase3_momentum(snap.indicators, cfg),
            phase4_volume(snap.indicators, cfg),
            phase5_volatility(snap.indicators, cfg),
            snap.weekly_trend,
            DivergenceResult(divergences=(_bullish_rsi_divergence(),), net_score=8, has_bullish=True),
            SectorContext(sector="Banks", rank=1, is_top=True, is_bottom=False, score_impact=5),
        )
        assert score == 100

    def test_clamped_at_0(self, make_snapshot):
        snap = make_snapshot(
            weekly=WeeklyStatus.COUNTER_TREND,
            divergences=DivergenceResult(net_score=-15, has_bearish=True),
            avg_daily_turnover=1.0,
            macd_line=-1.0,
            macd_signal=0.0,
            macd_histogram=-1.0,
            supertrend_direction=TrendDirection.DOWN,
            sar_trend=TrendDirection.DOWN,
            ichimoku_cloud_signal=CloudSignal.BELOW,
            ema20=130.0,
            ema50=140.0,
            rsi14=20.0,
            roc14=-4.0,
            plus_di=10.0,
            minus_di=30.0,
            stochastic_k=10.0,
            obv_trend=ObvTrend.DOWN,
            mfi14=10.0,
            volume_recent3=(3.0, 2.0, 1.0),
            last_volume=1.0,
            atr14=20.0,
            bollinger_bandwidth=0.01,
            bollinger_percent_b=0.1,
            adx14=10.0,
            relative_strength_3m=-5.0,
        )
        result = screen_symbol(snap, BULL, NO_SECTORS)
        assert result.overall_score == 0
        assert result.signal is Signal.AVOID

    def test_later_phase_points_count_when_gated(self, make_snapshot):
        result = screen_symbol(make_snapshot(avg_daily_turnover=5.0), BULL, NO_SECTORS)
        # strong setup minus the phase 1 and phase 2 pass bonuses
        assert result.overall_score == 93 - 15 - 10

    def test_sector_impact_added(self, make_snapshot):
        snap = make_snapshot()
        ranked = screen_symbol(snap, BULL, SectorRankings(
            rankings=(), total_sectors=1, top_sectors=frozenset({"Banks"}), bottom_sectors=frozenset(),
        ))
        assert ranked.overall_score == min(100, 93 + 5)
        assert ranked.sector_context.score_impact == 5


class TestDetermineSignal:
    def test_ladder(self):
        assert determine_signal(80, True, True, True, True, BULL) is Signal.STRONG_BUY
        assert determine_signal(80, True, True, True, False, BULL) is Signal.BUY
        assert determine_signal(50, True, True, True, True, BULL) is Signal.WATCH
        assert determine_signal(30, True, True, True, True, BULL) is Signal.NEUTRAL
        assert determine_signal(99, True, False, False, False, BULL) is Signal.NEUTRAL
        assert determine_signal(99, False, False, False, False, BULL) is Signal.AVOID

    def test_bear_floors_are_higher(self):
        assert determine_signal(62, True, True, True, False, BULL) is Signal.BUY
        assert determine_signal(62, True, True, True, False, BEAR) is Signal.WATCH

    @pytest.mark.parametrize("effective", [BULL, BEAR, _effective(MarketRegime.SIDEWAYS)])
    def test_monotonic_in_score(self, effective):
        for flags in itertools.product([True, False], repeat=4):
            tiers = [determine_signal(score, *flags, effective).tier for score in range(101)]
            assert tiers == sorted(tiers), flags


class TestRegimeDegrade:
    def test_bear_regime_degrades_buy_to_watch(self, make_snapshot):
        # RSI 68 sits inside the BULL band (40–75) but outside BEAR's (50–60).
        snap = make_snapshot(
            weekly=WeeklyStatus.MIXED,
            ema20=104.0,
            ema50=100.0,
            ema200=95.0,
            adx14=40.0,
            rsi14=68.0,
            stochastic_k=45.0,
            last_volume=1_000_000.0,
            volume_recent3=(1_000_000.0, 1_000_000.0, 1_000_000.0),
            relative_strength_3m=3.0,
            ichimoku_cloud_signal=CloudSignal.INSIDE,
        )

        bull = screen_symbol(snap, BULL, NO_SECTORS)
        bear = screen_symbol(snap, BEAR, NO_SECTORS)

        assert bull.overall_score == bear.overall_score == 70
        assert bull.signal is Signal.BUY
        assert bear.phase2_pass and not bear.phase3_pass
        assert bear.signal is Signal.WATCH


class TestGating:
    def test_failed_liquidity_gates_everything(self, make_snapshot):
        result = screen_symbol(make_snapshot(avg_daily_turnover=5.0), BULL, NO_SECTORS)
        assert not result.phase1_pass
        assert not result.phase2_pass
        assert result.phase2_details.conditions_pass
        assert result.phase2_details.evaluated is False
        assert result.phase5_volatility_details.evaluated is False
        assert result.signal is Signal.AVOID

    def test_all_phases_evaluated_for_strong_setup(self, make_snapshot):
        result = screen_symbol(make_snapshot(), BULL, NO_SECTORS)
        assert result.phase5_volatility_pass
        assert result.phase5_volatility_details.evaluated


class TestRationale:
    def test_order_and_risk_line(self, make_snapshot):
        snap = make_snapshot(divergences=DivergenceResult(
            divergences=(_bullish_rsi_divergence(),), net_score=8, has_bullish=True,
        ))
        rankings = SectorRankings(
            rankings=(), total_sectors=4, top_sectors=frozenset({"Banks"}), bottom_sectors=frozenset(),
        )
        result = screen_symbol(snap, BULL, rankings)
        clauses = list(result.rationale)

        assert clauses[0].startswith("Top sector Banks")
        assert clauses[-1] == "Entry 110.00, SL 107.00, Target 116.00 (2:1 R:R)"
        assert clauses[-2] == _bullish_rsi_divergence().description
        assert clauses.index("MACD bullish above zero") < clauses.index("weekly trend aligned")
        assert clauses.index("weekly trend aligned") < clauses.index("volume accelerating")
        assert result.rationale_text.endswith("(2:1 R:R).")

    def test_no_sector_clause_when_neutral(self, make_snapshot):
        result = screen_symbol(make_snapshot(), BULL, NO_SECTORS)
        assert not any("sector" in c.lower() for c in result.rationale)

    def test_deterministic(self, make_snapshot):
        snap = make_snapshot()
        assert screen_symbol(snap, BULL, NO_SECTORS) == screen_symbol(snap, BULL, NO_SECTORS)

    def test_direct_call(self, make_snapshot):
        snap = make_snapshot()
        cfg = BULL.screener
        momentum = phase3_momentum(snap.indicators, cfg)
        clauses = generate_rationale(
            snap.indicators,
            momentum,
            phase4_volume(snap.indicators, cfg),
            phase5_volatility(snap.indicators, cfg),
            snap.weekly_trend,
            snap.divergences,
            SectorContext(sector="Banks", rank=0, is_top=False, is_bottom=False, score_impact=0),
            screen_symbol(snap, BULL, NO_SECTORS).phase6_risk,
        )
        assert "RSI at 50.0 (optimal)" in clauses


class TestRunScreener:
    def test_sorted_by_score_then_symbol(self, make_snapshot):
        snaps = [
            make_snapshot(symbol="CCC"),
            make_snapshot(symbol="AAA", rsi14=80.0),
            make_snapshot(symbol="BBB"),
        ]
        results = run_screener(snaps, BULL)
        assert [r.symbol for r in results] == ["BBB", "CCC", "AAA"]
        assert results[0].overall_score == results[1].overall_score > results[2].overall_score
