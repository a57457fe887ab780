from datetime import timedelta

from fakes import EPOCH
from tokenmonitor.suppression import SuppressionCache

KEY = ("solana", "Token111")
WINDOW = timedelta(minutes=60)


def test_unknown_key_is_not_suppressed() -> None:
    cache = SuppressionCache()
    assert not cache.is_suppressed(KEY, EPOCH, WINDOW)
    assert cache.last_emitted(KEY) is None


def test_recorded_key_is_suppressed_inside_window() -> None:
    cache = SuppressionCache()
    cache.record(KEY, EPOCH)

    assert KEY in cache
    assert cache.is_suppressed(KEY, EPOCH + timedelta(minutes=59), WINDOW)
    assert not cache.is_suppressed(KEY, EPOCH + timedelta(minutes=60), WINDOW)


def test_prune_removes_only_expired_entries() -> None:
    cache = SuppressionCache(retention=timedelta(hours=24))
    cache.record(KEY, EPOCH)
    cache.record(("solana", "Token222"), EPOCH + timedelta(hours=12))

    removed = cache.prune(EPOCH + timedelta(hours=25))

    assert removed == 1
    assert len(cache) == 1
    assert KEY not in cache


def test_clear() -> None:
    cache = SuppressionCache()
    cache.record(KEY, EPOCH)
    cache.clear()
    assert len(cache) == 0
