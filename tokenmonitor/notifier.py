"""
Notification channels for actionable recommendations.

``DiscordWebhookNotifier`` posts rich embeds to a Discord webhook. ``LogNotifier``
is used when no webhook is configured and writes the same summary to the log.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from contracts.recommendation import AIAnalysisResult, Recommendation, TimeHorizon
from contracts.signal import AggregatedSignal
from shared.constants import APP_NAME, DEXSCREENER_CHART_URL, NOTIFIER_TIMEOUT
from tokenmonitor.advisory.rule_engine import format_usd

logger = logging.getLogger(__name__)

RECOMMENDATION_STYLE: dict[Recommendation, tuple[str, int]] = {
    Recommendation.STRONG_BUY: ("🟢🔥", 0x00FF00),
    Recommendation.BUY: ("🟢", 0x90EE90),
    Recommendation.WATCH: ("👀", 0xFFA500),
    Recommendation.AVOID: ("🔴", 0xFF0000),
}

RECOMMENDATION_LABEL = {
    Recommendation.STRONG_BUY: "Strong buy 🔥",
    Recommendation.BUY: "Buy ✅",
    Recommendation.WATCH: "Watch 👀",
    Recommendation.AVOID: "Avoid ❌",
}

RISK_LABEL = {"low": "Low 🟢", "medium": "Medium 🟡", "high": "High 🔴", "extreme": "Extreme ⚫"}

HORIZON_LABEL = {
    TimeHorizon.SCALP: "Scalp",
    TimeHorizon.SHORT: "Short term",
    TimeHorizon.MEDIUM: "Medium term",
    TimeHorizon.LONG: "Long term",
}


class NotificationError(Exception):
    """A notification could not be delivered"""


class Notifier(ABC):
    """Delivery channel consumed by the monitor"""

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """Whether sends should be attempted"""

    @abstractmethod
    async def send_recommendation(
        self, signal: AggregatedSignal, analysis: AIAnalysisResult
    ) -> None:
        """Deliver one recommendation; raises ``NotificationError`` on failure"""

    @abstractmethod
    async def send_alert(self, message: str) -> None:
        """Deliver a plain operator alert"""

    async def close(self) -> None:
        return None


def chart_url(signal: AggregatedSignal) -> str:
    return DEXSCREENER_CHART_URL.format(chain=signal.chain, address=signal.token_address)


def _pct_from(entry: float, target: float) -> float:
    if entry <= 0:
        return 0.0
    return (target / entry - 1) * 100


def build_embed(signal: AggregatedSignal, analysis: AIAnalysisResult) -> dict[str, Any]:
    """Render a recommendation as a Discord embed payload"""
    token = signal.token
    entry = analysis.entry_strategy
    risk = analysis.risk_analysis
    emoji, color = RECOMMENDATION_STYLE.get(
        analysis.recommendation, RECOMMENDATION_STYLE[Recommendation.WATCH]
    )

    fields = [
        {
            "name": "📊 Token",
            "value": (
                f"Name: {token.name}\n"
                f"Price: ${token.price_usd:.6f}\n"
                f"Market cap: {format_usd(token.market_cap)}\n"
                f"Liquidity: {format_usd(token.liquidity_usd)}"
            ),
            "inline": True,
        },
        {
            "name": "📈 24h",
            "value": (
                f"Change: {token.price_change_24h:+.2f}%\n"
                f"Volume: {format_usd(token.volume_24h)}\n"
                f"Holders: {token.holder_count:,}"
            ),
            "inline": True,
        },
        {
            "name": "🤖 Analysis",
            "value": (
                f"Verdict: {RECOMMENDATION_LABEL[analysis.recommendation]}\n"
                f"Confidence: {analysis.confidence:.0f}%\n"
                f"Risk: {RISK_LABEL.get(risk.overall_risk.value, risk.overall_risk.value)}"
            ),
            "inline": True,
        },
    ]

    if analysis.is_actionable:
        stop_pct = -_pct_from(entry.suggested_entry_price, entry.suggested_stop_loss)
        take_pct = _pct_from(entry.suggested_entry_price, entry.suggested_take_profit)
        fields.append(
            {
                "name": "💡 Entry strategy",
                "value": (
                    f"Position: {entry.position_size.value} (${entry.max_position_usd:.0f})\n"
                    f"Horizon: {HORIZON_LABEL[entry.time_horizon]}\n"
                    f"Stop loss: ${entry.suggested_stop_loss:.6f} (-{stop_pct:.1f}%)\n"
                    f"Take profit: ${entry.suggested_take_profit:.6f} (+{take_pct:.1f}%)"
                ),
                "inline": False,
            }
        )

    if analysis.key_observations:
        fields.append(
            {
                "name": "👁️ Observations",
                "value": "\n".join(analysis.key_observations),
                "inline": False,
            }
        )

    if risk.warnings:
        fields.append(
            {"name": "⚠️ Warnings", "value": "\n".join(risk.warnings[:3]), "inline": False}
        )

    fields.append(
        {"name": "🔗 Links", "value": f"[📊 Chart]({chart_url(signal)})", "inline": False}
    )

    platforms = ", ".join(p.value for p in signal.metrics.confirming_platforms)
    return {
        "title": f"{emoji} {analysis.recommendation.value.replace('_', ' ').title()}: {token.symbol}",
        "url": chart_url(signal),
        "description": "\n".join(analysis.reasoning[:3]),
        "color": color,
        "timestamp": analysis.analyzed_at.isoformat(),
        "fields": fields,
        "footer": {"text": f"Sources: {platforms} | ID: {signal.id}"},
    }


class DiscordWebhookNotifier(Notifier):
    """Posts embeds to a Discord webhook URL"""

    def __init__(
        self,
        webhook_url: str | None,
        client: httpx.AsyncClient | None = None,
        timeout: float = NOTIFIER_TIMEOUT,
    ):
        self.webhook_url = webhook_url
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    @property
    def is_ready(self) -> bool:
        return bool(self.webhook_url)

    async def _post(self, payload: dict[str, Any]) -> None:
        if not self.webhook_url:
            raise NotificationError("Discord webhook URL not configured")
        try:
            response = await self.client.post(self.webhook_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotificationError(
                f"Discord webhook returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise NotificationError(f"Discord webhook request failed: {e}") from e

    async def send_recommendation(
        self, signal: AggregatedSignal, analysis: AIAnalysisResult
    ) -> None:
        await self._post({"username": APP_NAME, "embeds": [build_embed(signal, analysis)]})
        logger.info(
            f"Published {analysis.recommendation.value} for {signal.symbol} to Discord"
        )

    async def send_alert(self, message: str) -> None:
        await self._post({"username": APP_NAME, "content": f"⚠️ **System alert**\n{message}"})

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()


class LogNotifier(Notifier):
    """Writes recommendations to the log instead of an external channel"""

    @property
    def is_ready(self) -> bool:
        return True

    async def send_recommendation(
        self, signal: AggregatedSignal, analysis: AIAnalysisResult
    ) -> None:
        logger.info(
            f"Recommendation {analysis.recommendation.value} {signal.symbol} "
            f"({signal.chain}:{signal.token_address}) confidence={analysis.confidence:.0f} "
            f"risk={analysis.risk_analysis.overall_risk.value} chart={chart_url(signal)}"
        )

    async def send_alert(self, message: str) -> None:
        logger.warning(f"Alert: {message}")
