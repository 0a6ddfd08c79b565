"""
Tests for the cache store: replacement, invalidation and fetch suppression.
"""

import asyncio

import pytest

from optimistic_cache.entities import CollectionKey, QueryStatus


def test_absent_and_empty_are_distinct(cache, key):
    """Test: a never-set key is absent; setting [] makes it empty."""
    assert cache.get(key) is None

    cache.set(key, [])
    assert cache.get(key) == ()

    cache.set(key, None)
    assert cache.get(key) is None


def test_set_is_total_replacement(cache, key, record_factory):
    """Test: set replaces the collection instead of merging."""
    cache.set(key, [record_factory("a"), record_factory("b", minutes=1)])
    cache.set(key, [record_factory("c")])

    assert [r.id for r in cache.get(key)] == ["c"]


def test_invalidate_keeps_data_and_marks_stale(cache, key, record_factory):
    """Test: invalidation keeps records but forces a refetch."""
    records = (record_factory("a"),)
    cache.set(key, records)

    cache.invalidate(key)

    assert cache.get(key) == records
    assert cache.entry(key).is_invalidated
    assert cache.is_stale(key, stale_time=300)


def test_invalidate_unknown_key_is_noop(cache, key):
    """Test: invalidating an absent key does not create an entry."""
    cache.invalidate(key)
    assert key not in cache


@pytest.mark.asyncio
async def test_fetch_result_sorted_and_fresh(cache, key, record_factory):
    """Test: a fetch stores records ordered by created_at and marks them fresh."""
    late, early = record_factory("late", minutes=5), record_factory("early", minutes=1)

    async def fetcher():
        return [late, early]

    await cache.start_fetch(key, fetcher)

    assert [r.id for r in cache.get(key)] == ["early", "late"]
    assert cache.entry(key).status is QueryStatus.FRESH
    assert not cache.is_stale(key, stale_time=300)


@pytest.mark.asyncio
async def test_freshness_window_elapses(cache, clock, key):
    """Test: data goes stale once the window has passed."""

    async def fetcher():
        return []

    await cache.start_fetch(key, fetcher)
    clock.advance(299)
    assert not cache.is_stale(key, stale_time=300)

    clock.advance(1)
    assert cache.is_stale(key, stale_time=300)


@pytest.mark.asyncio
async def test_concurrent_fetches_are_joined(cache, key):
    """Test: starting a fetch while one is in flight returns the same task."""
    gate = asyncio.Event()
    calls = []

    async def fetcher():
        calls.append(1)
        await gate.wait()
        return []

    first = cache.start_fetch(key, fetcher)
    second = cache.start_fetch(key, fetcher)
    gate.set()
    await first

    assert first is second
    assert calls == [1]


@pytest.mark.asyncio
async def test_failed_fetch_keeps_previous_data(cache, key, record_factory):
    """Test: a failed fetch records the error and leaves data intact."""
    records = (record_factory("a"),)
    cache.set(key, records)

    async def fetcher():
        raise RuntimeError("network down")

    await cache.start_fetch(key, fetcher)

    entry = cache.entry(key)
    assert cache.get(key) == records
    assert entry.status is QueryStatus.ERROR
    assert str(entry.error) == "network down"


@pytest.mark.asyncio
async def test_cancel_in_flight_discards_result(cache, key, record_factory):
    """Test: a cancelled fetch never writes its result."""
    gate = asyncio.Event()

    async def fetcher():
        await gate.wait()
        return [record_factory("stale")]

    task = cache.start_fetch(key, fetcher)
    await cache.cancel_in_flight(key)
    gate.set()

    assert task.cancelled()
    assert cache.get(key) is None
    assert cache.entry(key).status is QueryStatus.IDLE
    assert cache.entry(key).fetch is None


@pytest.mark.asyncio
async def test_superseded_result_is_discarded(cache, key, record_factory):
    """Test: a fetch that completes despite cancellation is ignored."""
    gate = asyncio.Event()
    started = asyncio.Event()

    async def stubborn_fetcher():
        started.set()
        try:
            await gate.wait()
        except asyncio.CancelledError:
            return [record_factory("stale")]
        return []

    cache.set(key, [record_factory("current")])
    cache.start_fetch(key, stubborn_fetcher)
    await started.wait()

    await cache.cancel_in_flight(key)

    assert [r.id for r in cache.get(key)] == ["current"]


@pytest.mark.asyncio
async def test_cancel_in_flight_without_fetch(cache, key):
    """Test: cancelling with nothing in flight returns immediately."""
    await cache.cancel_in_flight(key)
    assert cache.get(key) is None


def test_subscribers_notified_on_set(cache, key, record_factory):
    """Test: observers see every replacement until they unsubscribe."""
    seen = []
    unsubscribe = cache.subscribe(key, seen.append)

    cache.set(key, [record_factory("a")])
    assert seen == [key]
    assert cache.has_observers(key)

    unsubscribe()
    cache.set(key, [])
    assert seen == [key]
    assert not cache.has_observers(key)


def test_invalidation_hooks(cache, key, record_factory):
    """Test: invalidation hooks receive the invalidated key."""
    seen = []
    cache.on_invalidate(seen.append)
    cache.set(key, [record_factory("a")])

    cache.invalidate(key)

    assert seen == [key]


def test_keys_are_independent(cache, record_factory):
    """Test: collections of different owners never share state."""
    key_a = CollectionKey("medications", "user-a")
    key_b = CollectionKey("medications", "user-b")
    cache.set(key_a, [record_factory("a")])
    cache.set(key_b, [record_factory("b", owner_id="user-b")])

    cache.invalidate(key_a)
    cache.remove(key_a)

    assert cache.get(key_a) is None
    assert [r.id for r in cache.get(key_b)] == ["b"]
    assert not cache.entry(key_b).is_invalidated


@pytest.mark.asyncio
async def test_close_cancels_fetches(cache, key):
    """Test: closing the cache cancels in-flight fetches and drops entries."""
    gate = asyncio.Event()

    async def fetcher():
        await gate.wait()
        return []

    task = cache.start_fetch(key, fetcher)
    await cache.close()

    assert task.cancelled()
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_invalidate_restarts_in_flight_fetch(cache, key, record_factory):
    """Test: an invalidation during a fetch discards it and fetches again."""
    gate = asyncio.Event()
    rows = []
    calls = []

    async def fetcher():
        snapshot = list(rows)
        calls.append(snapshot)
        await gate.wait()
        return snapshot

    first = cache.start_fetch(key, fetcher)
    await asyncio.sleep(0)
    rows.append(record_factory("added"))

    cache.invalidate(key)
    second = cache.entry(key).fetch
    gate.set()
    await asyncio.wait([first, second])

    assert first.cancelled()
    assert second is not first
    assert calls == [[], [rows[0]]]
    assert [r.id for r in cache.get(key)] == ["added"]
    assert cache.entry(key).status is QueryStatus.FRESH
    assert not cache.entry(key).is_invalidated


def test_pending_writes_are_counted(cache, key):
    """Test: writes are tracked per key until each one settles."""
    cache.begin_write(key)
    cache.begin_write(key)
    cache.end_write(key)
    assert cache.has_pending_writes(key)

    cache.end_write(key)
    cache.end_write(key)
    assert not cache.has_pending_writes(key)
    assert not cache.has_pending_writes(CollectionKey("medications", "user-b"))
