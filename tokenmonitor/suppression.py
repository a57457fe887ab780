"""
Time-windowed duplicate suppression for emitted token signals.

Entries live in process memory only. Every operation takes ``now`` explicitly
so behaviour is a pure function of the supplied time.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from shared.constants import SUPPRESSION_RETENTION_HOURS

TokenKey = tuple[str, str]


@dataclass(frozen=True)
class SuppressionEntry:
    emitted_at: datetime
    expires_at: datetime


class SuppressionCache:
    """Maps ``(chain, token_address)`` to the last time it was emitted"""

    def __init__(self, retention: timedelta = timedelta(hours=SUPPRESSION_RETENTION_HOURS)):
        self.retention = retention
        self._entries: dict[TokenKey, SuppressionEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def last_emitted(self, key: TokenKey) -> datetime | None:
        entry = self._entries.get(key)
        return entry.emitted_at if entry else None

    def is_suppressed(self, key: TokenKey, now: datetime, window: timedelta) -> bool:
        """True when ``key`` was emitted less than ``window`` before ``now``"""
        entry = self._entries.get(key)
        if entry is None:
            return False
        return now - entry.emitted_at < window

    def record(self, key: TokenKey, now: datetime) -> None:
        self._entries[key] = SuppressionEntry(emitted_at=now, expires_at=now + self.retention)

    def prune(self, now: datetime) -> int:
        """Drop entries past their retention; returns how many were removed"""
        expired = [key for key, entry in self._entries.items() if entry.expires_at < now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
