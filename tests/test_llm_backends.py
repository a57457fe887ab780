import json

import httpx
import pytest

from contracts.recommendation import PositionSize, Recommendation, TimeHorizon
from contracts.signal import RiskLevel
from fakes import make_signal
from tokenmonitor.advisory.base import (
    AdvisoryDecodeError,
    AdvisoryError,
    BackendNotConfiguredError,
)
from tokenmonitor.advisory.deepseek import DeepSeekBackend
from tokenmonitor.advisory.llm import build_prompt, extract_json
from tokenmonitor.advisory.minimax import MiniMaxBackend

ANALYSIS = {
    "recommendation": "buy",
    "confidence": 78,
    "reasoning": ["Strong volume", "Confirmed on two platforms"],
    "entryStrategy": {
        "suggestedEntryPrice": 0.00102,
        "suggestedStopLoss": 0.0008,
        "suggestedTakeProfit": 0.0015,
        "positionSize": "medium",
        "maxPositionUsd": 400,
        "timeHorizon": "short",
    },
    "riskAnalysis": {
        "rugRisk": 20,
        "volatilityRisk": 60,
        "liquidityRisk": 30,
        "overallRisk": "medium",
        "warnings": ["Volatile"],
    },
    "keyObservations": ["Micro-cap"],
}


def completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://llm.test")


class TestExtractJson:
    def test_plain_object(self) -> None:
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_json_fence(self) -> None:
        assert extract_json('Here you go:\n```json\n{"a": 1}\n```\nDone') == {"a": 1}

    def test_bare_fence(self) -> None:
        assert extract_json('```\n{"a": 2}\n```') == {"a": 2}

    def test_garbage_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            extract_json("I think you should buy it")


def test_prompt_mentions_market_data() -> None:
    prompt = build_prompt(make_signal(score=77, risk_factors=["Thin pool"]))
    assert "Token: TEST (Test Token)" in prompt
    assert "Score: 77/100" in prompt
    assert "Risk factors: Thin pool" in prompt
    assert "Sources: dexscreener" in prompt


class TestDeepSeek:
    @pytest.mark.asyncio
    async def test_analyze_decodes_response(self) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=completion(json.dumps(ANALYSIS)))

        backend = DeepSeekBackend("sk-test", client=mock_client(handler))
        signal = make_signal(id="sig_ds")

        result = await backend.analyze(signal)

        assert result.signal_id == "sig_ds"
        assert result.recommendation == Recommendation.BUY
        assert result.confidence == 78
        assert result.entry_strategy.position_size == PositionSize.MEDIUM
        assert result.entry_strategy.time_horizon == TimeHorizon.SHORT
        assert result.risk_analysis.overall_risk == RiskLevel.MEDIUM
        assert result.ai_model == backend.model

        body = json.loads(requests[0].content)
        assert requests[0].url.path == "/chat/completions"
        assert body["response_format"] == {"type": "json_object"}
        assert body["messages"][0]["role"] == "system"

    @pytest.mark.asyncio
    async def test_unknown_values_are_coerced(self) -> None:
        payload = {"recommendation": "moon", "confidence": "140", "riskAnalysis": "n/a"}

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=completion(json.dumps(payload)))

        backend = DeepSeekBackend("sk-test", client=mock_client(handler))
        result = await backend.analyze(make_signal())

        assert result.recommendation == Recommendation.WATCH
        assert result.confidence == 100
        assert result.risk_analysis.rug_risk == 50
        assert result.entry_strategy.position_size == PositionSize.SMALL

    @pytest.mark.asyncio
    async def test_http_error_raises_advisory_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "overloaded"})

        backend = DeepSeekBackend("sk-test", client=mock_client(handler))
        with pytest.raises(AdvisoryError) as exc_info:
            await backend.analyze(make_signal())
        assert not isinstance(exc_info.value, AdvisoryDecodeError)
        assert "HTTP 500" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error_raises_advisory_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        backend = DeepSeekBackend("sk-test", client=mock_client(handler))
        with pytest.raises(AdvisoryError, match="request failed"):
            await backend.analyze(make_signal())

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data",
        [
            completion("not json at all"),
            completion("[1, 2, 3]"),
            completion(""),
            {"choices": []},
        ],
    )
    async def test_undecodable_responses_raise_decode_error(self, data: dict) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=data)

        backend = DeepSeekBackend("sk-test", client=mock_client(handler))
        with pytest.raises(AdvisoryDecodeError):
            await backend.analyze(make_signal())

    @pytest.mark.asyncio
    async def test_missing_key_is_not_configured(self) -> None:
        backend = DeepSeekBackend(None, client=mock_client(lambda r: httpx.Response(200)))
        assert not backend.is_configured
        with pytest.raises(BackendNotConfiguredError):
            await backend.analyze(make_signal())


class TestMiniMax:
    @pytest.mark.asyncio
    async def test_fenced_response_is_decoded(self) -> None:
        requests = []
        content = f"Analysis:\n```json\n{json.dumps(ANALYSIS)}\n```"

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={**completion(content), "base_resp": {"status_code": 0}},
            )

        backend = MiniMaxBackend("mm-test", client=mock_client(handler))
        result = await backend.analyze(make_signal())

        assert result.recommendation == Recommendation.BUY
        assert requests[0].url.path == "/text/chatcompletion_v2"
        assert "response_format" not in json.loads(requests[0].content)

    @pytest.mark.asyncio
    async def test_error_envelope_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"base_resp": {"status_code": 1004, "status_msg": "auth failed"}},
            )

        backend = MiniMaxBackend("mm-test", client=mock_client(handler))
        with pytest.raises(AdvisoryError, match="auth failed"):
            await backend.analyze(make_signal())


@pytest.mark.asyncio
async def test_close_leaves_injected_client_open() -> None:
    client = mock_client(lambda r: httpx.Response(200))
    backend = DeepSeekBackend("sk-test", client=client)

    await backend.close()

    assert not client.is_closed
    await client.aclose()
