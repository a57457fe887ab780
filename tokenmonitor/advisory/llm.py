"""
Chat-completion advisory backends.

Both delegated backends speak an OpenAI-style ``/chat/completions`` dialect:
the signal is rendered into a prompt, the model answers with a JSON object and
``decode_analysis`` normalizes it into an ``AIAnalysisResult``.
"""

import json
import logging
import re
from typing import Any

import httpx

from contracts.recommendation import AIAnalysisResult, AnalysisDecodeError, decode_analysis
from contracts.signal import AggregatedSignal
from shared.constants import ADVISORY_MAX_TOKENS, ADVISORY_TEMPERATURE, ADVISORY_TIMEOUT
from tokenmonitor.advisory.base import (
    AdvisoryBackend,
    AdvisoryDecodeError,
    AdvisoryError,
    BackendNotConfiguredError,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a professional crypto analyst reviewing Solana meme tokens. Reply with JSON only:
{
  "recommendation": "strong_buy|buy|watch|avoid",
  "confidence": 0-100,
  "reasoning": ["reason 1", "reason 2"],
  "entryStrategy": {
    "suggestedEntryPrice": number,
    "suggestedStopLoss": number,
    "suggestedTakeProfit": number,
    "positionSize": "small|medium|large",
    "maxPositionUsd": number,
    "timeHorizon": "scalp|short|medium|long"
  },
  "riskAnalysis": {
    "rugRisk": 0-100,
    "volatilityRisk": 0-100,
    "liquidityRisk": 0-100,
    "overallRisk": "low|medium|high|extreme",
    "warnings": ["risk 1"]
  },
  "keyObservations": ["observation 1"]
}
Principles: tokens younger than 24h are extremely dangerous; liquidity under $10k is very high risk; confirmation on several platforms is a positive signal."""

_FENCED_JSON = re.compile(r"```(?:json)?\s*\n(.*?)\n\s*```", re.DOTALL)


def build_prompt(signal: AggregatedSignal) -> str:
    token = signal.token
    platforms = ",".join(p.value for p in signal.metrics.confirming_platforms)
    return (
        "Analyze the following token and reply with JSON:\n\n"
        f"Token: {token.symbol} ({token.name})\n"
        f"Chain: {signal.chain}\n"
        f"Price: ${token.price_usd:.10f}\n"
        f"24h change: {token.price_change_24h:.2f}%\n"
        f"Market cap: ${token.market_cap:,.0f}\n"
        f"Liquidity: ${token.liquidity_usd:,.0f}\n"
        f"24h volume: ${token.volume_24h:,.0f}\n"
        f"Holders: {token.holder_count:,}\n"
        f"New token: {signal.is_new_token}, listed {signal.age_hours:.1f} hours ago\n"
        f"Signal type: {signal.type.value}\n"
        f"Sources: {platforms}\n"
        f"Score: {signal.score}/100\n"
        f"Preliminary risk: {signal.risk_level.value}\n"
        f"Risk factors: {'; '.join(signal.risk_factors)}"
    )


def extract_json(content: str) -> Any:
    """Parse a JSON document that may be wrapped in a markdown code fence"""
    match = _FENCED_JSON.search(content)
    text = match.group(1) if match else content
    return json.loads(text.strip())


class ChatCompletionBackend(AdvisoryBackend):
    """Advisory backend backed by a hosted chat-completion model"""

    completion_path = "/chat/completions"
    json_mode = False

    def __init__(
        self,
        api_key: str | None,
        base_url: str,
        model: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = ADVISORY_TIMEOUT,
    ):
        self.api_key = api_key
        self.model = model
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            headers={
                "Authorization": f"Bearer {api_key or ''}",
                "Content-Type": "application/json",
            },
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def build_request(self, signal: AggregatedSignal) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(signal)},
            ],
            "temperature": ADVISORY_TEMPERATURE,
            "max_tokens": ADVISORY_MAX_TOKENS,
        }
        if self.json_mode:
            body["response_format"] = {"type": "json_object"}
        return body

    def check_response(self, data: dict[str, Any]) -> None:
        """Hook for provider-specific error envelopes"""

    def extract_content(self, data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AdvisoryDecodeError(self.name, "response has no message content") from e
        if not content:
            raise AdvisoryDecodeError(self.name, "empty message content")
        return content

    async def analyze(self, signal: AggregatedSignal) -> AIAnalysisResult:
        if not self.is_configured:
            raise BackendNotConfiguredError(self.name, "API key not configured")

        logger.info(f"Analyzing {signal.symbol} with {self.name}")
        try:
            response = await self.client.post(
                self.completion_path, json=self.build_request(signal)
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise AdvisoryError(self.name, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise AdvisoryError(self.name, f"request failed: {e}") from e
        except ValueError as e:
            raise AdvisoryDecodeError(self.name, "response is not JSON") from e

        self.check_response(data)
        content = self.extract_content(data)
        try:
            payload = extract_json(content)
            return decode_analysis(payload, signal, self.model)
        except (ValueError, AnalysisDecodeError) as e:
            raise AdvisoryDecodeError(self.name, f"undecodable analysis: {e}") from e

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
