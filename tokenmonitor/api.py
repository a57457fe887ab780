import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest
from pydantic import BaseModel

from contracts.recommendation import AIAnalysisResult
from contracts.signal import AggregatedSignal, Platform
from contracts.tracking import TrackedRecommendation, TrackingStatus
from shared.config import Settings
from shared.constants import APP_DESCRIPTION, APP_NAME, APP_VERSION, get_config_summary
from shared.logger import setup_logging
from shared.timeutils import Clock, utc_now
from tokenmonitor.advisory.router import AdvisoryRouter, build_router
from tokenmonitor.monitor import MonitorConfig, MultiPlatformMonitor
from tokenmonitor.notifier import DiscordWebhookNotifier, LogNotifier, Notifier
from tokenmonitor.providers.base import ProviderAdapter
from tokenmonitor.providers.birdeye import BirdeyeAdapter
from tokenmonitor.providers.dexscreener import DexScreenerAdapter
from tokenmonitor.signal_aggregator import AggregationConfig, SignalAggregator
from tokenmonitor.tracking import RecommendationTracker

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Object graph owned by the process"""

    settings: Settings
    providers: dict[Platform, ProviderAdapter]
    aggregator: SignalAggregator
    router: AdvisoryRouter
    notifier: Notifier
    tracker: RecommendationTracker
    monitor: MultiPlatformMonitor


def build_components(settings: Settings, clock: Clock = utc_now) -> Components:
    providers: dict[Platform, ProviderAdapter] = {
        Platform.DEXSCREENER: DexScreenerAdapter(clock=clock),
        Platform.BIRDEYE: BirdeyeAdapter(settings.birdeye_api_key, clock=clock),
    }

    config = AggregationConfig(
        min_confidence_score=settings.min_confidence_score,
        duplicate_window_minutes=settings.duplicate_window_minutes,
    )
    config.platforms[Platform.DEXSCREENER].enabled = settings.dexscreener_enabled
    config.platforms[Platform.BIRDEYE].enabled = settings.birdeye_enabled
    aggregator = SignalAggregator(providers, config, clock=clock)

    router = build_router(settings, clock=clock)

    notifier: Notifier
    if settings.discord_webhook_url:
        notifier = DiscordWebhookNotifier(settings.discord_webhook_url)
    else:
        logger.warning("Discord webhook not configured, recommendations go to the log only")
        notifier = LogNotifier()

    tracker = RecommendationTracker(settings.tracking_file, clock=clock)
    monitor = MultiPlatformMonitor(
        aggregator,
        router,
        notifier,
        MonitorConfig(
            scan_interval_minutes=settings.scan_interval_minutes,
            min_ai_confidence=settings.min_ai_confidence,
            max_signals_per_batch=settings.max_signals_per_batch,
            chains=settings.chain_list,
        ),
        tracker=tracker,
        clock=clock,
    )
    return Components(settings, providers, aggregator, router, notifier, tracker, monitor)


async def close_components(components: Components) -> None:
    for adapter in components.providers.values():
        await adapter.close()
    await components.router.close()
    await components.notifier.close()


class HealthResponse(BaseModel):
    """Health check response model"""

    status: str
    version: str
    timestamp: str
    components: dict[str, Any]


class ScanResponse(BaseModel):
    """Manual scan result"""

    signals: list[AggregatedSignal]
    analyses: list[AIAnalysisResult]


def _components(request: Request) -> Components:
    components = getattr(request.app.state, "components", None)
    if components is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return components


def create_app(
    settings: Settings | None = None, components: Components | None = None
) -> FastAPI:
    """Build the FastAPI app; ``components`` overrides the default object graph"""
    settings = settings or (components.settings if components else Settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging(settings.log_level)
        logger.info(f"Starting {APP_NAME} {APP_VERSION} ({settings.environment})")
        settings.validate_required_settings()
        logger.debug(f"Static configuration: {get_config_summary()}")

        built = components or build_components(settings)
        app.state.components = built
        for status in built.aggregator.get_platform_status():
            logger.info(
                f"Platform {status['platform']}: enabled={status['enabled']} "
                f"remaining={status['remaining_requests']}"
            )

        if settings.autostart_monitor:
            await built.monitor.start()
        try:
            yield
        finally:
            logger.info(f"Shutting down {APP_NAME}...")
            await built.monitor.stop()
            await close_components(built)
            logger.info(f"{APP_NAME} shut down complete")

    app = FastAPI(
        title=f"{APP_NAME} API",
        description=APP_DESCRIPTION,
        version=APP_VERSION,
        lifespan=lifespan,
    )

    @app.get("/")
    async def root() -> dict[str, Any]:
        return {
            "service": APP_NAME,
            "version": APP_VERSION,
            "status": "running",
            "environment": settings.environment,
            "chains": settings.chain_list,
        }

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        """Component health for monitor, providers, advisory and notifier"""
        c = _components(request)
        providers = {
            platform.value: (
                await adapter.health_check()
                if c.aggregator.config.is_enabled(platform)
                else {"status": "disabled"}
            )
            for platform, adapter in c.providers.items()
        }
        monitor_ok = c.monitor.is_running or not settings.autostart_monitor
        components_status = {
            "monitor": {
                "status": "healthy" if monitor_ok else "unhealthy",
                "running": c.monitor.is_running,
            },
            "providers": providers,
            "advisory": {"status": "healthy", "selected": c.router.select_provider()},
            "notifier": {
                "status": "healthy" if c.notifier.is_ready else "degraded",
                "type": type(c.notifier).__name__,
            },
        }
        all_healthy = (
            monitor_ok
            and c.notifier.is_ready
            and all(p["status"] in ("healthy", "disabled") for p in providers.values())
        )
        return HealthResponse(
            status="healthy" if all_healthy else "degraded",
            version=APP_VERSION,
            timestamp=utc_now().isoformat(),
            components=components_status,
        )

    @app.get("/ready")
    async def readiness_check(request: Request) -> dict[str, Any]:
        c = _components(request)
        if not c.aggregator.enabled_providers():
            raise HTTPException(status_code=503, detail="No provider enabled")
        return {"status": "ready"}

    @app.get("/live")
    async def liveness_check() -> dict[str, Any]:
        return {"status": "alive", "timestamp": utc_now().isoformat()}

    @app.get("/stats")
    async def stats(request: Request) -> dict[str, Any]:
        return _components(request).monitor.get_stats()

    @app.get("/platforms")
    async def platforms(request: Request) -> list[dict[str, Any]]:
        return _components(request).aggregator.get_platform_status()

    @app.get("/advisory/status")
    async def advisory_status(request: Request) -> dict[str, Any]:
        return _components(request).router.get_status()

    @app.post("/scan", response_model=ScanResponse)
    async def manual_scan(request: Request) -> ScanResponse:
        """Aggregate and analyze now without sending notifications"""
        result = await _components(request).monitor.manual_scan()
        return ScanResponse(signals=result.signals, analyses=result.analyses)

    @app.get("/recommendations", response_model=list[TrackedRecommendation])
    async def list_recommendations(
        request: Request, status: TrackingStatus | None = None
    ) -> list[TrackedRecommendation]:
        return _components(request).tracker.list(status)

    @app.post("/recommendations/{record_id}/track", response_model=TrackedRecommendation)
    async def track_recommendation(request: Request, record_id: str) -> TrackedRecommendation:
        record = _components(request).tracker.track(record_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"Recommendation {record_id} not found")
        return record

    @app.post("/recommendations/{record_id}/dismiss", response_model=TrackedRecommendation)
    async def dismiss_recommendation(
        request: Request, record_id: str
    ) -> TrackedRecommendation:
        record = _components(request).tracker.dismiss(record_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"Recommendation {record_id} not found")
        return record

    @app.get("/metrics")
    async def metrics() -> PlainTextResponse:
        """Get Prometheus metrics"""
        if not settings.prometheus_enabled:
            raise HTTPException(status_code=404, detail="Metrics disabled")
        return PlainTextResponse(generate_latest())

    return app
