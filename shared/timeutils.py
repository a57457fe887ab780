"""
Time helpers shared by the signal pipeline.

All timestamps handled by the service are timezone-aware UTC datetimes.
Components that depend on "now" accept a ``Clock`` so tests can pin time.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Unix timestamps outside this range are treated as garbage
_MIN_EPOCH = 946684800  # 2000-01-01
_MAX_EPOCH = 4102444800  # 2100-01-01


def utc_now() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(UTC)


def _from_epoch(value: float) -> datetime | None:
    # Providers report either seconds or milliseconds since the epoch
    if value > _MAX_EPOCH:
        value = value / 1000
    if _MIN_EPOCH <= value <= _MAX_EPOCH:
        return datetime.fromtimestamp(value, UTC)
    return None


def parse_timestamp(value: Any) -> datetime:
    """Normalize an ISO string, epoch number or datetime to aware UTC.

    Unparseable input is logged and replaced by the current time, matching
    how upstream APIs omit creation times for freshly indexed pairs.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    if isinstance(value, bool):
        logger.warning(f"Invalid timestamp type {type(value)} - using current time")
        return utc_now()

    if isinstance(value, int | float):
        parsed = _from_epoch(float(value))
        if parsed is None:
            logger.warning(f"Unix timestamp {value} out of valid range - using current time")
            return utc_now()
        return parsed

    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return parse_timestamp(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            try:
                return parse_timestamp(float(text))
            except ValueError:
                logger.warning(
                    f"Invalid timestamp format '{value}' - using current time. "
                    f"Timestamp should be ISO format string or Unix timestamp."
                )
                return utc_now()

    if value is not None:
        logger.warning(f"Invalid timestamp type {type(value)} - using current time")
    return utc_now()


def hours_between(start: datetime, end: datetime) -> float:
    """Non-negative number of hours from ``start`` to ``end``"""
    return max((end - start).total_seconds() / 3600, 0.0)
