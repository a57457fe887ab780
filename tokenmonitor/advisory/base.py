"""
Advisory backend interface and error taxonomy.
"""

from abc import ABC, abstractmethod

from contracts.recommendation import AIAnalysisResult
from contracts.signal import AggregatedSignal


class AdvisoryError(Exception):
    """Base class for advisory backend failures"""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class AdvisoryDecodeError(AdvisoryError):
    """The backend answered but the response could not be decoded"""


class BackendNotConfiguredError(AdvisoryError):
    """The routed backend has no credentials configured"""


class AdvisoryBackend(ABC):
    """Turns one signal into one structured recommendation"""

    name: str

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def analyze(self, signal: AggregatedSignal) -> AIAnalysisResult:
        """Analyze ``signal``; raises ``AdvisoryError`` on failure"""

    async def close(self) -> None:
        return None
