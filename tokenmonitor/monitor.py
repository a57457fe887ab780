"""
Multi-platform monitor - scheduled scan orchestration

Data flow per cycle:
provider adapters -> SignalAggregator -> AdvisoryRouter -> Notifier
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from contracts.recommendation import AIAnalysisResult, Recommendation
from contracts.signal import AggregatedSignal, RiskLevel
from shared.constants import (
    DEFAULT_CHAIN,
    DEFAULT_MAX_SIGNALS_PER_BATCH,
    DEFAULT_MIN_AI_CONFIDENCE,
    DEFAULT_SCAN_INTERVAL_MINUTES,
    NOTIFY_SEND_DELAY,
)
from shared.timeutils import Clock, utc_now
from tokenmonitor.advisory.router import AdvisoryRouter
from tokenmonitor.metrics import (
    monitor_running,
    notification_failures_total,
    notifications_sent_total,
    scan_cycle_duration_seconds,
    scan_cycles_total,
)
from tokenmonitor.notifier import Notifier
from tokenmonitor.signal_aggregator import SignalAggregator
from tokenmonitor.tracking import RecommendationTracker

logger = logging.getLogger(__name__)


class MonitorConfig(BaseModel):
    """Scan scheduling and notification thresholds"""

    scan_interval_minutes: float = Field(DEFAULT_SCAN_INTERVAL_MINUTES, gt=0)
    min_ai_confidence: float = Field(DEFAULT_MIN_AI_CONFIDENCE, ge=0, le=100)
    max_signals_per_batch: int = Field(DEFAULT_MAX_SIGNALS_PER_BATCH, ge=1)
    chains: list[str] = Field(default_factory=lambda: [DEFAULT_CHAIN])
    send_delay: float = Field(NOTIFY_SEND_DELAY, ge=0, description="Seconds between sends")


@dataclass
class MonitorStats:
    total_signals: int = 0
    total_analyzed: int = 0
    total_sent: int = 0
    total_failed_sends: int = 0
    cycles: int = 0
    failed_cycles: int = 0
    last_run: datetime | None = None
    last_duration_seconds: float | None = None


@dataclass
class ScanResult:
    signals: list[AggregatedSignal] = field(default_factory=list)
    analyses: list[AIAnalysisResult] = field(default_factory=list)
    sent: int = 0
    status: str = "success"


def should_notify(analysis: AIAnalysisResult, min_confidence: float) -> bool:
    """Only confident buy/strong_buy, and extreme risk only for strong_buy"""
    if analysis.recommendation not in (Recommendation.BUY, Recommendation.STRONG_BUY):
        return False
    if analysis.confidence < min_confidence:
        return False
    if (
        analysis.risk_analysis.overall_risk == RiskLevel.EXTREME
        and analysis.recommendation != Recommendation.STRONG_BUY
    ):
        return False
    return True


def dedupe_by_token(signals: list[AggregatedSignal]) -> list[AggregatedSignal]:
    seen: set[tuple[str, str]] = set()
    unique = []
    for signal in signals:
        if signal.token_key in seen:
            continue
        seen.add(signal.token_key)
        unique.append(signal)
    return unique


class MultiPlatformMonitor:
    """Runs aggregation, analysis and notification on a fixed interval"""

    def __init__(
        self,
        aggregator: SignalAggregator,
        router: AdvisoryRouter,
        notifier: Notifier,
        config: MonitorConfig | None = None,
        tracker: RecommendationTracker | None = None,
        clock: Clock = utc_now,
    ):
        self.aggregator = aggregator
        self.router = router
        self.notifier = notifier
        self.config = config or MonitorConfig()
        self.tracker = tracker
        self.clock = clock
        self.stats = MonitorStats()

        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._scan_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Scan immediately, then every ``scan_interval_minutes``"""
        if self.is_running:
            logger.warning("Monitor is already running")
            return
        logger.info(
            f"Starting monitor: scanning {self.config.chains} every "
            f"{self.config.scan_interval_minutes} minutes"
        )
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name="tokenmonitor-scan-loop")
        monitor_running.set(1)

    async def stop(self) -> None:
        """Prevent new cycles and wait for an in-flight cycle to finish"""
        if self._task is None:
            return
        self._stop_event.set()
        task, self._task = self._task, None
        await task
        monitor_running.set(0)
        logger.info("Monitor stopped")

    async def _loop(self) -> None:
        interval = self.config.scan_interval_minutes * 60
        while not self._stop_event.is_set():
            await self.run_scan()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

    async def _collect(self, record: bool = True) -> list[AggregatedSignal]:
        collected: list[AggregatedSignal] = []
        for chain in self.config.chains:
            new_listings = await self.aggregator.aggregate_new_listings(
                chain, record=record
            )
            trending = await self.aggregator.aggregate_trending_signals(
                chain, record=record
            )
            logger.info(
                f"{chain}: {len(new_listings)} new listing and {len(trending)} trending signals"
            )
            collected.extend(new_listings)
            collected.extend(trending)
        unique = dedupe_by_token(collected)
        unique.sort(key=lambda s: s.score, reverse=True)
        return unique

    async def _notify(self, signal: AggregatedSignal, analysis: AIAnalysisResult) -> bool:
        try:
            await self.notifier.send_recommendation(signal, analysis)
        except Exception as e:
            logger.error(f"Failed to send notification for {signal.symbol}: {e}", exc_info=True)
            notification_failures_total.inc()
            self.stats.total_failed_sends += 1
            return False
        notifications_sent_total.labels(recommendation=analysis.recommendation.value).inc()
        if self.tracker is not None:
            try:
                self.tracker.record(signal, analysis)
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Failed to track recommendation {signal.id}: {e}", exc_info=True)
        return True

    async def _cycle(self) -> ScanResult:
        batch = (await self._collect())[: self.config.max_signals_per_batch]
        self.stats.total_signals += len(batch)
        if not batch:
            logger.info("Scan produced no signals")
            return ScanResult()

        logger.info(f"Analyzing {len(batch)} signals")
        analyses = await self.router.analyze_batch(batch)
        self.stats.total_analyzed += len(analyses)

        qualifying = [
            (signal, analysis)
            for signal, analysis in zip(batch, analyses)
            if should_notify(analysis, self.config.min_ai_confidence)
        ]
        if qualifying and not self.notifier.is_ready:
            logger.warning(f"Notifier not ready, skipping {len(qualifying)} recommendations")
            qualifying = []

        sent = 0
        for index, (signal, analysis) in enumerate(qualifying):
            if await self._notify(signal, analysis):
                sent += 1
            if index < len(qualifying) - 1:
                await asyncio.sleep(self.config.send_delay)
        self.stats.total_sent += sent
        return ScanResult(signals=batch, analyses=analyses, sent=sent)

    async def run_scan(self) -> ScanResult | None:
        """One scan cycle; returns None when a cycle is already in flight"""
        if self._scan_lock.locked():
            logger.warning("Scan already in progress, skipping this tick")
            return None

        async with self._scan_lock:
            start = time.perf_counter()
            self.stats.last_run = self.clock()
            self.stats.cycles += 1
            logger.info("Scan cycle started")
            try:
                result = await self._cycle()
            except Exception as e:
                logger.error(f"Scan cycle failed: {e}", exc_info=True)
                self.stats.failed_cycles += 1
                result = ScanResult(status="error")

            duration = time.perf_counter() - start
            self.stats.last_duration_seconds = duration
            scan_cycles_total.labels(status=result.status).inc()
            scan_cycle_duration_seconds.observe(duration)
            logger.info(
                f"Scan cycle finished ({result.status}): {len(result.signals)} signals, "
                f"{len(result.analyses)} analyzed, {result.sent} sent in {duration:.2f}s"
            )
            return result

    async def manual_scan(self) -> ScanResult:
        """Aggregate and analyze without notifying or applying the batch cap"""
        async with self._scan_lock:
            logger.info("Manual scan requested")
            signals = await self._collect(record=False)
            analyses = await self.router.analyze_batch(signals)
            return ScanResult(signals=signals, analyses=analyses)

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_signals": self.stats.total_signals,
            "total_analyzed": self.stats.total_analyzed,
            "total_sent": self.stats.total_sent,
            "total_failed_sends": self.stats.total_failed_sends,
            "cycles": self.stats.cycles,
            "failed_cycles": self.stats.failed_cycles,
            "last_run": self.stats.last_run.isoformat() if self.stats.last_run else None,
            "last_duration_seconds": self.stats.last_duration_seconds,
            "is_running": self.is_running,
            "platforms": self.aggregator.get_platform_status(),
        }
