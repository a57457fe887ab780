from datetime import UTC, datetime, timedelta, timezone

import pytest

from fakes import EPOCH
from shared.timeutils import hours_between, parse_timestamp, utc_now


@pytest.mark.parametrize(
    "value",
    [
        EPOCH,
        EPOCH.replace(tzinfo=None),
        EPOCH.astimezone(timezone(timedelta(hours=8))),
        "2025-01-15T12:00:00Z",
        "2025-01-15T12:00:00+00:00",
        int(EPOCH.timestamp()),
        int(EPOCH.timestamp() * 1000),
    ],
)
def test_parse_timestamp_normalizes_to_utc(value) -> None:
    assert parse_timestamp(value) == EPOCH
    assert parse_timestamp(value).tzinfo is not None


@pytest.mark.parametrize("value", [None, "", "yesterday", True, 12, {"t": 1}])
def test_unparseable_timestamps_become_now(value) -> None:
    before = utc_now()
    parsed = parse_timestamp(value)
    assert before <= parsed <= utc_now()


def test_hours_between_is_non_negative() -> None:
    assert hours_between(EPOCH, EPOCH + timedelta(minutes=90)) == pytest.approx(1.5)
    assert hours_between(EPOCH, EPOCH - timedelta(hours=3)) == 0.0


def test_utc_now_is_aware() -> None:
    assert utc_now().tzinfo == UTC
    assert isinstance(utc_now(), datetime)
