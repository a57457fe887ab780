import pytest

from contracts.recommendation import Recommendation
from fakes import FakeBackend, FakeClock, make_signal
from shared.config import Settings
from shared.constants import FALLBACK_MODEL_ID, RULE_BASED_MODEL_ID
from tokenmonitor.advisory.base import AdvisoryError, BackendNotConfiguredError
from tokenmonitor.advisory.router import (
    RULE_BASED,
    AdvisoryRouter,
    RouterConfig,
    build_router,
    fallback_result,
)
from tokenmonitor.advisory.rule_engine import RuleBasedAnalyzer


@pytest.fixture
def canned(rule_engine: RuleBasedAnalyzer):
    async def _canned(model: str):
        result = await rule_engine.analyze(make_signal())
        return result.model_copy(update={"ai_model": model})

    return _canned


def make_router(clock: FakeClock, backends=None, **config) -> AdvisoryRouter:
    return AdvisoryRouter(
        backends=backends,
        config=RouterConfig(batch_delay=0, **config),
        rule_based=RuleBasedAnalyzer(batch_delay=0, clock=clock),
        clock=clock,
    )


class TestSelection:
    def test_auto_prefers_deepseek(self, clock: FakeClock) -> None:
        router = make_router(
            clock, {"deepseek": FakeBackend("deepseek"), "minimax": FakeBackend("minimax")}
        )
        assert router.select_provider() == "deepseek"

    def test_auto_uses_minimax_when_deepseek_unconfigured(self, clock: FakeClock) -> None:
        router = make_router(
            clock,
            {
                "deepseek": FakeBackend("deepseek", configured=False),
                "minimax": FakeBackend("minimax"),
            },
        )
        assert router.select_provider() == "minimax"
        assert "deepseek" not in router.backends

    def test_auto_without_backends_uses_rule_based(self, clock: FakeClock) -> None:
        assert make_router(clock).select_provider() == RULE_BASED

    def test_pinned_provider_is_returned_as_is(self, clock: FakeClock) -> None:
        router = make_router(clock, primary_provider="minimax")
        assert router.select_provider() == "minimax"

    def test_unknown_provider_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            RouterConfig(primary_provider="gpt-9")


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_primary_success(self, clock: FakeClock, canned) -> None:
        deepseek = FakeBackend("deepseek", result=await canned("deepseek-chat"))
        router = make_router(clock, {"deepseek": deepseek})
        signal = make_signal(id="sig_1")

        result = await router.analyze(signal)

        assert result.signal_id == "sig_1"
        assert result.ai_model == "deepseek-chat"
        assert router.get_stats()["deepseek"] == {"success": 1, "fail": 0}

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_rule_based(self, clock: FakeClock) -> None:
        router = make_router(clock, {"deepseek": FakeBackend("deepseek", fail=True)})

        result = await router.analyze(make_signal())

        assert result.ai_model == RULE_BASED_MODEL_ID
        stats = router.get_stats()
        assert stats["deepseek"] == {"success": 0, "fail": 1}
        assert stats[RULE_BASED] == {"success": 1, "fail": 0}

    @pytest.mark.asyncio
    async def test_pinned_unconfigured_provider_falls_back(self, clock: FakeClock) -> None:
        router = make_router(clock, primary_provider="minimax")

        result = await router.analyze(make_signal())

        assert result.ai_model == RULE_BASED_MODEL_ID
        assert router.get_stats()["minimax"]["fail"] == 1

    @pytest.mark.asyncio
    async def test_fallback_disabled_raises(self, clock: FakeClock) -> None:
        router = make_router(
            clock, {"deepseek": FakeBackend("deepseek", fail=True)}, enable_fallback=False
        )
        with pytest.raises(AdvisoryError):
            await router.analyze(make_signal())

    @pytest.mark.asyncio
    async def test_fallback_is_tried_only_once(self, clock: FakeClock) -> None:
        deepseek = FakeBackend("deepseek", fail=True)
        minimax = FakeBackend("minimax", fail=True)
        router = make_router(
            clock,
            {"deepseek": deepseek, "minimax": minimax},
            primary_provider="deepseek",
            fallback_provider="minimax",
        )

        with pytest.raises(AdvisoryError):
            await router.analyze(make_signal())

        assert len(deepseek.calls) == 1
        assert len(minimax.calls) == 1

    @pytest.mark.asyncio
    async def test_missing_fallback_backend_raises_not_configured(
        self, clock: FakeClock
    ) -> None:
        router = make_router(
            clock,
            {"deepseek": FakeBackend("deepseek", fail=True)},
            fallback_provider="minimax",
        )
        with pytest.raises(BackendNotConfiguredError):
            await router.analyze(make_signal())


class TestBatch:
    @pytest.mark.asyncio
    async def test_batch_returns_fallback_result_per_failed_signal(
        self, clock: FakeClock
    ) -> None:
        router = make_router(
            clock,
            {
                "deepseek": FakeBackend("deepseek", fail=True),
                "minimax": FakeBackend("minimax", fail=True),
            },
            primary_provider="deepseek",
            fallback_provider="minimax",
        )
        signals = [make_signal(id=f"sig_{i}") for i in range(3)]

        results = await router.analyze_batch(signals)

        assert [r.signal_id for r in results] == ["sig_0", "sig_1", "sig_2"]
        assert all(r.ai_model == FALLBACK_MODEL_ID for r in results)
        assert all(r.recommendation == Recommendation.WATCH for r in results)

    @pytest.mark.asyncio
    async def test_batch_preserves_order_with_mixed_outcomes(self, clock: FakeClock) -> None:
        router = make_router(clock)
        signals = [make_signal(id="first", score=90), make_signal(id="second", score=61)]

        results = await router.analyze_batch(signals)

        assert [r.signal_id for r in results] == ["first", "second"]
        assert all(r.ai_model == RULE_BASED_MODEL_ID for r in results)

    @pytest.mark.asyncio
    async def test_empty_batch(self, clock: FakeClock) -> None:
        assert await make_router(clock).analyze_batch([]) == []


def test_fallback_result_shape(clock: FakeClock) -> None:
    signal = make_signal(token=None)
    result = fallback_result(signal, clock)

    price = signal.token.price_usd
    assert result.confidence == 50
    assert result.entry_strategy.suggested_stop_loss == pytest.approx(price * 0.8)
    assert result.entry_strategy.suggested_take_profit == pytest.approx(price * 1.3)
    assert result.entry_strategy.max_position_usd == 100
    assert result.analyzed_at == clock()


def test_get_status_reports_configured_backends(clock: FakeClock) -> None:
    router = make_router(clock, {"minimax": FakeBackend("minimax")})
    status = router.get_status()

    assert status["providers"] == {"deepseek": False, "minimax": True, RULE_BASED: True}
    assert status["selected"] == "minimax"
    assert status["config"]["fallback_provider"] == RULE_BASED


def test_build_router_from_settings(clock: FakeClock) -> None:
    settings = Settings(deepseek_api_key="sk-test", minimax_api_key="")
    router = build_router(settings, clock)

    assert set(router.backends) == {"deepseek", RULE_BASED}
    assert router.select_provider() == "deepseek"


@pytest.mark.asyncio
async def test_close_skips_rule_based(clock: FakeClock) -> None:
    backend = FakeBackend("deepseek")
    closed = []

    async def close() -> None:
        closed.append(True)

    backend.close = close
    router = make_router(clock, {"deepseek": backend})

    await router.close()

    assert closed == [True]
