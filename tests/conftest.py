"""
Global test configuration and fixtures for the token monitor.
"""

import os
import sys
from pathlib import Path

import pytest

# Set up test environment BEFORE any imports that read settings
os.environ.update(
    {
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
        "AI_PROVIDER": "auto",
        "DEEPSEEK_API_KEY": "",
        "MINIMAX_API_KEY": "",
        "DISCORD_WEBHOOK_URL": "",
        "AUTOSTART_MONITOR": "false",
        "ANALYZER_BATCH_DELAY": "0",
        "ROUTER_BATCH_DELAY": "0",
        "NOTIFY_SEND_DELAY": "0",
    }
)

sys.path.insert(0, str(Path(__file__).parent))

from fakes import FakeClock, make_signal  # noqa: E402
from tokenmonitor.advisory.rule_engine import RuleBasedAnalyzer  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def signal_factory():
    """Factory for ``AggregatedSignal`` instances with sane defaults"""
    return make_signal


@pytest.fixture
def rule_engine(clock: FakeClock) -> RuleBasedAnalyzer:
    return RuleBasedAnalyzer(batch_delay=0, clock=clock)
