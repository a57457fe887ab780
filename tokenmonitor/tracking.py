"""
Recommendation tracking store.

Keeps every recommendation the monitor published so an operator can mark it
as tracked or dismissed. Records are held in memory and, when a path is
configured, mirrored to a JSON file after every change.
"""

import json
import logging
from pathlib import Path

from contracts.recommendation import AIAnalysisResult
from contracts.signal import AggregatedSignal
from contracts.tracking import TrackedRecommendation, TrackingStatus
from shared.timeutils import Clock, utc_now

logger = logging.getLogger(__name__)


class RecommendationTracker:
    def __init__(self, path: str | Path | None = None, clock: Clock = utc_now):
        self.path = Path(path) if path else None
        self.clock = clock
        self._records: dict[str, TrackedRecommendation] = {}
        self._load()

    def __len__(self) -> int:
        return len(self._records)

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        for item in raw:
            record = TrackedRecommendation.model_validate(item)
            self._records[record.id] = record
        logger.info(f"Loaded {len(self._records)} tracked recommendations from {self.path}")

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [record.model_dump(mode="json") for record in self._records.values()]
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self.path)

    def record(
        self,
        signal: AggregatedSignal,
        analysis: AIAnalysisResult,
        status: TrackingStatus = TrackingStatus.SENT,
    ) -> TrackedRecommendation:
        """Store a published recommendation under its signal id.

        The signal id is the one printed in the notification footer, so an
        operator can pass it straight to track or dismiss.
        """
        now = self.clock()
        record = TrackedRecommendation(
            id=signal.id,
            signal_id=signal.id,
            chain=signal.chain,
            token_address=signal.token_address,
            symbol=signal.symbol,
            recommendation=analysis.recommendation,
            confidence=analysis.confidence,
            status=status,
            analysis=analysis,
            created_at=now,
            updated_at=now,
        )
        self._records[record.id] = record
        self._save()
        return record

    def get(self, record_id: str) -> TrackedRecommendation | None:
        return self._records.get(record_id)

    def list(self, status: TrackingStatus | None = None) -> list[TrackedRecommendation]:
        """Records newest first, optionally restricted to one status"""
        records = [r for r in self._records.values() if status is None or r.status == status]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def set_status(
        self, record_id: str, status: TrackingStatus
    ) -> TrackedRecommendation | None:
        record = self._records.get(record_id)
        if record is None:
            return None
        updated = record.model_copy(update={"status": status, "updated_at": self.clock()})
        self._records[record_id] = updated
        self._save()
        logger.info(f"Recommendation {record_id} ({record.symbol}) marked {status.value}")
        return updated

    def track(self, record_id: str) -> TrackedRecommendation | None:
        return self.set_status(record_id, TrackingStatus.TRACKED)

    def dismiss(self, record_id: str) -> TrackedRecommendation | None:
        return self.set_status(record_id, TrackingStatus.DISMISSED)
