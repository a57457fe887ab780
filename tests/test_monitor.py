import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from contracts.recommendation import decode_analysis
from contracts.signal import AggregatedSignal, Platform
from fakes import FakeAdapter, FakeClock, FakeNotifier, make_signal, make_token
from tokenmonitor.advisory.base import AdvisoryBackend
from tokenmonitor.advisory.router import AdvisoryRouter, RouterConfig
from tokenmonitor.advisory.rule_engine import RuleBasedAnalyzer
from tokenmonitor.monitor import MonitorConfig, MultiPlatformMonitor, should_notify
from tokenmonitor.notifier import build_embed
from tokenmonitor.signal_aggregator import SignalAggregator
from tokenmonitor.tracking import RecommendationTracker

# symbol -> (recommendation, confidence, overall risk)
SCRIPT = {
    "BUYLO": ("buy", 80, "low"),
    "WATCH": ("watch", 90, "low"),
    "SHY": ("buy", 60, "low"),
    "RISKY": ("buy", 85, "extreme"),
    "MOON": ("strong_buy", 85, "extreme"),
}


class ScriptedBackend(AdvisoryBackend):
    name = "deepseek"

    def __init__(self) -> None:
        self.seen: list[str] = []

    async def analyze(self, signal: AggregatedSignal):
        self.seen.append(signal.symbol)
        recommendation, confidence, risk = SCRIPT[signal.symbol]
        payload = {
            "recommendation": recommendation,
            "confidence": confidence,
            "riskAnalysis": {"overallRisk": risk},
        }
        return decode_analysis(payload, signal, "scripted")


def token_signal(symbol: str, score: int, chain: str = "solana") -> AggregatedSignal:
    token = make_token(address=f"{symbol}Addr", symbol=symbol)
    return make_signal(score=score, chain=chain, token=token, id=f"sig_{symbol}")


def all_signals() -> list[AggregatedSignal]:
    return [
        token_signal("BUYLO", 90),
        token_signal("WATCH", 85),
        token_signal("SHY", 80),
        token_signal("RISKY", 75),
        token_signal("MOON", 70),
    ]


def build_monitor(
    clock: FakeClock,
    signals: list[AggregatedSignal] | None = None,
    notifier: FakeNotifier | None = None,
    tracker: RecommendationTracker | None = None,
    **config,
) -> tuple[MultiPlatformMonitor, ScriptedBackend]:
    adapter = FakeAdapter(
        Platform.DEXSCREENER, new_listings=all_signals() if signals is None else signals
    )
    aggregator = SignalAggregator({Platform.DEXSCREENER: adapter}, clock=clock)
    backend = ScriptedBackend()
    router = AdvisoryRouter(
        backends={"deepseek": backend},
        config=RouterConfig(primary_provider="deepseek", batch_delay=0),
        rule_based=RuleBasedAnalyzer(batch_delay=0, clock=clock),
        clock=clock,
    )
    monitor = MultiPlatformMonitor(
        aggregator,
        router,
        notifier or FakeNotifier(),
        config=MonitorConfig(min_ai_confidence=70, send_delay=0, **config),
        tracker=tracker,
        clock=clock,
    )
    return monitor, backend


@pytest.mark.parametrize(
    "symbol,expected",
    [("BUYLO", True), ("WATCH", False), ("SHY", False), ("RISKY", False), ("MOON", True)],
)
def test_should_notify(symbol: str, expected: bool) -> None:
    recommendation, confidence, risk = SCRIPT[symbol]
    analysis = decode_analysis(
        {
            "recommendation": recommendation,
            "confidence": confidence,
            "riskAnalysis": {"overallRisk": risk},
        },
        make_signal(),
        "scripted",
    )
    assert should_notify(analysis, 70) is expected


class TestRunScan:
    @pytest.mark.asyncio
    async def test_only_qualifying_recommendations_are_sent(self, clock: FakeClock) -> None:
        notifier = FakeNotifier()
        monitor, _ = build_monitor(clock, notifier=notifier)

        result = await monitor.run_scan()

        assert result.status == "success"
        assert len(result.signals) == 5
        assert len(result.analyses) == 5
        assert result.sent == 2
        assert [signal.symbol for signal, _ in notifier.sent] == ["BUYLO", "MOON"]
        assert monitor.stats.total_sent == 2
        assert monitor.stats.cycles == 1
        assert monitor.stats.last_run == clock()

    @pytest.mark.asyncio
    async def test_batch_is_capped_to_highest_scores(self, clock: FakeClock) -> None:
        monitor, backend = build_monitor(clock, max_signals_per_batch=2)

        result = await monitor.run_scan()

        assert backend.seen == ["BUYLO", "WATCH"]
        assert len(result.signals) == 2

    @pytest.mark.asyncio
    async def test_failed_send_does_not_stop_the_cycle(self, clock: FakeClock) -> None:
        notifier = FakeNotifier(fail_symbols={"BUYLO"})
        monitor, _ = build_monitor(clock, notifier=notifier)

        result = await monitor.run_scan()

        assert result.sent == 1
        assert [signal.symbol for signal, _ in notifier.sent] == ["MOON"]
        assert monitor.stats.total_failed_sends == 1

    @pytest.mark.asyncio
    async def test_not_ready_notifier_skips_sends(self, clock: FakeClock) -> None:
        notifier = FakeNotifier(ready=False)
        monitor, _ = build_monitor(clock, notifier=notifier)

        result = await monitor.run_scan()

        assert result.sent == 0
        assert len(result.analyses) == 5
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_sent_recommendations_are_tracked(self, clock: FakeClock, tmp_path) -> None:
        tracker = RecommendationTracker(tmp_path / "recs.json", clock=clock)
        monitor, _ = build_monitor(clock, tracker=tracker)

        await monitor.run_scan()

        assert sorted(r.symbol for r in tracker.list()) == ["BUYLO", "MOON"]

    @pytest.mark.asyncio
    async def test_tracked_ids_match_the_notified_signals(
        self, clock: FakeClock, tmp_path
    ) -> None:
        tracker = RecommendationTracker(tmp_path / "recs.json", clock=clock)
        notifier = FakeNotifier()
        monitor, _ = build_monitor(clock, notifier=notifier, tracker=tracker)

        await monitor.run_scan()

        assert len(notifier.sent) == 2
        for signal, analysis in notifier.sent:
            footer_id = build_embed(signal, analysis)["footer"]["text"].rsplit("ID: ", 1)[1]
            assert tracker.track(footer_id).symbol == signal.symbol

    @pytest.mark.asyncio
    async def test_tracker_write_failure_does_not_stop_sends(self, clock: FakeClock) -> None:
        tracker = Mock(spec=RecommendationTracker)
        tracker.record.side_effect = OSError("disk full")
        notifier = FakeNotifier()
        monitor, _ = build_monitor(clock, notifier=notifier, tracker=tracker)

        result = await monitor.run_scan()

        assert result.sent == 2
        assert [signal.symbol for signal, _ in notifier.sent] == ["BUYLO", "MOON"]
        assert tracker.record.call_count == 2

    @pytest.mark.asyncio
    async def test_empty_scan(self, clock: FakeClock) -> None:
        monitor, backend = build_monitor(clock, signals=[])

        result = await monitor.run_scan()

        assert result.status == "success"
        assert result.signals == []
        assert backend.seen == []

    @pytest.mark.asyncio
    async def test_cycle_error_is_contained(self, clock: FakeClock) -> None:
        monitor, _ = build_monitor(clock)
        monitor.router.analyze_batch = AsyncMock(side_effect=RuntimeError("router down"))

        result = await monitor.run_scan()

        assert result.status == "error"
        assert monitor.stats.failed_cycles == 1

    @pytest.mark.asyncio
    async def test_overlapping_scan_is_skipped(self, clock: FakeClock) -> None:
        monitor, backend = build_monitor(clock)

        async with monitor._scan_lock:
            assert await monitor.run_scan() is None

        assert backend.seen == []

    @pytest.mark.asyncio
    async def test_scans_every_configured_chain(self, clock: FakeClock) -> None:
        signals = [token_signal("BUYLO", 90), token_signal("MOON", 70, chain="base")]
        notifier = FakeNotifier()
        monitor, _ = build_monitor(
            clock, signals=signals, notifier=notifier, chains=["solana", "base"]
        )

        result = await monitor.run_scan()

        assert {s.chain for s in result.signals} == {"solana", "base"}
        assert result.sent == 2


@pytest.mark.asyncio
async def test_manual_scan_neither_caps_nor_notifies(clock: FakeClock) -> None:
    notifier = FakeNotifier()
    monitor, _ = build_monitor(clock, notifier=notifier, max_signals_per_batch=1)

    result = await monitor.manual_scan()

    assert len(result.signals) == 5
    assert len(result.analyses) == 5
    assert notifier.sent == []



@pytest.mark.asyncio
async def test_manual_scan_leaves_duplicate_suppression_untouched(clock: FakeClock) -> None:
    notifier = FakeNotifier()
    monitor, _ = build_monitor(clock, notifier=notifier)

    preview = await monitor.manual_scan()
    assert len(preview.signals) == 5
    assert len(monitor.aggregator.suppression) == 0

    clock.advance(minutes=5)
    result = await monitor.run_scan()

    assert len(result.signals) == 5
    assert [signal.symbol for signal, _ in notifier.sent] == ["BUYLO", "MOON"]


@pytest.mark.asyncio
async def test_start_and_stop(clock: FakeClock) -> None:
    monitor, _ = build_monitor(clock, scan_interval_minutes=60)

    await monitor.start()
    task = monitor._task
    await monitor.start()
    assert monitor._task is task
    assert monitor.is_running

    for _ in range(100):
        if monitor.stats.cycles:
            break
        await asyncio.sleep(0.01)
    assert monitor.stats.cycles == 1

    await monitor.stop()
    assert not monitor.is_running
    await monitor.stop()


@pytest.mark.asyncio
async def test_get_stats(clock: FakeClock) -> None:
    monitor, _ = build_monitor(clock)
    await monitor.run_scan()

    stats = monitor.get_stats()

    assert stats["cycles"] == 1
    assert stats["total_analyzed"] == 5
    assert stats["last_run"] == clock().isoformat()
    assert stats["is_running"] is False
    assert stats["platforms"][0]["platform"] == "dexscreener"
