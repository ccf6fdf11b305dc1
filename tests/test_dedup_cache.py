"""Tests for the outbound message dedup cache."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest
from pydantic import ValidationError

from app.core.dedup_cache import DedupCache
from app.models import DispatchRecord


def _record(cache: DedupCache, chat: str, text: str, sent_at: int, dispatch_id: int = 1) -> None:
    cache.record(DispatchRecord(conversation_id=chat, text=text, sent_at=sent_at, dispatch_id=dispatch_id))


def test_duplicate_within_window_and_expired_after(clock):
    """Text sent at 1000 is a duplicate at 1025 for a 30s window, not at 1031."""
    cache = DedupCache()
    _record(cache, "c1", "hello", 1000)

    clock.now = 1025
    assert cache.is_duplicate("c1", "hello", 30) is True

    clock.now = 1031
    assert cache.is_duplicate("c1", "hello", 30) is False


def test_window_boundary_is_inclusive(clock):
    cache = DedupCache()
    _record(cache, "c1", "hello", 1000)

    clock.now = 1042
    assert cache.is_duplicate("c1", "hello", 42) is True
    assert cache.is_duplicate("c1", "hello", 41) is False


def test_other_conversation_never_matches(clock):
    cache = DedupCache()
    _record(cache, "c1", "hello", 1000)

    assert cache.is_duplicate("c2", "hello", 1000) is False


@pytest.mark.parametrize("text", ["Hello", "hello ", " hello", "hellо", "hello\n"])
def test_text_must_match_exactly(clock, text):
    """Case, whitespace and look-alike codepoints all break the match."""
    cache = DedupCache()
    _record(cache, "c1", "hello", 1000)

    assert cache.is_duplicate("c1", text, 60) is False


def test_record_keeps_identical_entries(clock):
    """Inserts never deduplicate; the newest copy satisfies a short window."""
    cache = DedupCache()
    _record(cache, "c1", "hi", 1000, dispatch_id=1)
    _record(cache, "c1", "hi", 1010, dispatch_id=2)

    assert cache.size() == 2
    clock.now = 1015
    assert cache.is_duplicate("c1", "hi", 10) is True


@pytest.mark.parametrize("window", [0, -5])
def test_non_positive_window_never_matches(clock, window):
    cache = DedupCache()
    _record(cache, "c1", "x", 1000)

    assert cache.is_duplicate("c1", "x", window) is False


def test_is_duplicate_has_no_side_effects(clock):
    cache = DedupCache()
    _record(cache, "c1", "x", 1000)

    clock.now = 5000
    assert cache.is_duplicate("c1", "x", 10) is False
    assert cache.size() == 1


def test_record_dispatch_builds_frozen_record(clock):
    cache = DedupCache()
    entry = cache.record_dispatch("c1", "hello", 1000, "msg-7")

    assert entry.dispatch_id == "msg-7"
    assert cache.size() == 1
    with pytest.raises(ValidationError):
        entry.text = "changed"  # type: ignore[misc]


def test_sweep_removes_records_past_retention(clock):
    cache = DedupCache(retention_seconds=300)
    _record(cache, "c1", "old", 0)

    clock.now = 301
    assert cache.sweep() == 1
    assert cache.size() == 0


def test_sweep_keeps_younger_records_and_order(clock):
    cache = DedupCache(retention_seconds=300)
    _record(cache, "c1", "a", 700, dispatch_id=1)
    _record(cache, "c1", "b", 900, dispatch_id=2)
    _record(cache, "c1", "c", 900, dispatch_id=3)
    _record(cache, "c2", "d", 650, dispatch_id=4)

    # Age exactly at the horizon is removed
    assert cache.sweep() == 2
    assert cache.size() == 2
    assert [e.dispatch_id for e in cache._records["c1"]] == [2, 3]
    assert "c2" not in cache._records


def test_sweep_on_empty_cache_is_noop(clock):
    cache = DedupCache()
    assert cache.sweep() == 0
    assert cache.size() == 0


def test_window_beyond_retention_depends_on_sweep(clock):
    """Long windows see unswept records only."""
    cache = DedupCache(retention_seconds=300)
    _record(cache, "c1", "late", 1000)

    clock.now = 1400
    assert cache.is_duplicate("c1", "late", 1000) is True

    cache.sweep()
    assert cache.is_duplicate("c1", "late", 1000) is False


def test_concurrent_records_from_threads(clock):
    cache = DedupCache()

    def worker(n: int) -> None:
        for i in range(200):
            _record(cache, f"c{n % 3}", f"t{i}", 1000, dispatch_id=i)
            cache.is_duplicate(f"c{n % 3}", f"t{i}", 10)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(worker, range(8)))

    assert cache.size() == 8 * 200


def test_start_requires_running_loop():
    cache = DedupCache()
    with pytest.raises(RuntimeError):
        cache.start()


@pytest.mark.asyncio
async def test_background_sweep_evicts_old_records(clock):
    cache = DedupCache(retention_seconds=300, sweep_interval_seconds=0.01)
    _record(cache, "c1", "hello", 0)
    clock.now = 301

    cache.start()
    assert cache.is_scheduled is True
    for _ in range(100):
        if cache.size() == 0:
            break
        await asyncio.sleep(0.01)

    assert cache.size() == 0
    await cache.stop()
    assert cache.is_scheduled is False


@pytest.mark.asyncio
async def test_no_sweep_runs_after_stop(clock):
    cache = DedupCache(retention_seconds=300, sweep_interval_seconds=0.01)
    cache.start()
    await cache.stop()

    _record(cache, "c1", "hello", 0)
    clock.now = 10_000
    await asyncio.sleep(0.05)

    assert cache.size() == 1


@pytest.mark.asyncio
async def test_stop_is_idempotent():
    cache = DedupCache()
    cache.start()
    await cache.stop()
    await cache.stop()

    assert cache.is_scheduled is False


@pytest.mark.asyncio
async def test_stop_before_start_is_safe():
    cache = DedupCache()
    await cache.stop()

    assert cache.is_scheduled is False
    with pytest.raises(RuntimeError):
        cache.start()


@pytest.mark.asyncio
async def test_start_twice_keeps_single_task():
    cache = DedupCache()
    cache.start()
    task = cache._sweep_task
    cache.start()

    assert cache._sweep_task is task
    await cache.stop()
