from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from contracts.recommendation import AIAnalysisResult, Recommendation
from shared.timeutils import utc_now


class TrackingStatus(str, Enum):
    """Lifecycle of a published recommendation"""

    PENDING = "pending"
    SENT = "sent"
    TRACKED = "tracked"
    DISMISSED = "dismissed"


class TrackedRecommendation(BaseModel):
    """A published recommendation the operator can track or dismiss"""

    id: str = Field(..., description="Id of the notified signal")
    signal_id: str
    chain: str
    token_address: str
    symbol: str
    recommendation: Recommendation
    confidence: float = Field(..., ge=0, le=100)
    status: TrackingStatus = TrackingStatus.PENDING
    analysis: AIAnalysisResult
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = {"protected_namespaces": ()}
