"""Advisory backends and routing."""

from tokenmonitor.advisory.base import (
    AdvisoryBackend,
    AdvisoryDecodeError,
    AdvisoryError,
    BackendNotConfiguredError,
)
from tokenmonitor.advisory.router import AdvisoryRouter, RouterConfig
from tokenmonitor.advisory.rule_engine import RuleBasedAnalyzer

__all__ = [
    "AdvisoryBackend",
    "AdvisoryDecodeError",
    "AdvisoryError",
    "AdvisoryRouter",
    "BackendNotConfiguredError",
    "RouterConfig",
    "RuleBasedAnalyzer",
]
