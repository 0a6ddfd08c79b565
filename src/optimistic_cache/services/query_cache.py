"""Process-wide cache store for record collections.

Holds one entry per collection key: the cached records, the fetch status,
and the in-flight fetch task (if any). Every fetch carries a generation
number; cancelling or removing an entry bumps the generation so a fetch
that completes afterwards is discarded instead of written.

There are no locks. All mutation happens on the event loop thread, and the
only suspension points are the awaits inside fetch tasks and
``cancel_in_flight``.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from optimistic_cache.entities import CollectionKey, QueryStatus, Record, sort_by_created_at

logger = logging.getLogger(__name__)

KeyListener = Callable[[CollectionKey], None]
Fetcher = Callable[[], Awaitable[list[Record]]]


@dataclass
class CacheEntry:
    """Mutable state of one cached collection.

    Attributes:
        data: Cached records, or None when the collection is absent
        status: Fetch lifecycle status
        error: Error of the last failed fetch
        fetched_at: Clock reading of the last successful fetch
        is_invalidated: Whether the next read must refetch
        generation: Incremented whenever a fetch is started or superseded
        fetch: The in-flight fetch task
        fetcher: Coroutine function of the latest fetch, reused when an
            invalidation supersedes it
        prior_status: Status to restore when the in-flight fetch is cancelled
        pending_writes: Number of optimistic writes not yet settled
    """

    data: tuple[Record, ...] | None = None
    status: QueryStatus = QueryStatus.IDLE
    error: Exception | None = None
    fetched_at: float | None = None
    is_invalidated: bool = False
    generation: int = 0
    fetch: asyncio.Task | None = None
    fetcher: Fetcher | None = None
    prior_status: QueryStatus = QueryStatus.IDLE
    pending_writes: int = 0


class QueryCache:
    """Keyed store of cached collections plus in-flight fetch bookkeeping.

    Created at application start and closed at shutdown; controllers receive
    it as a dependency.

    Example:
        ```python
        cache = QueryCache()
        cache.set(key, [record])
        cache.get(key)         # (record,)
        cache.invalidate(key)  # data kept, next read refetches
        await cache.close()
        ```
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize an empty cache.

        Args:
            clock: Monotonic clock used for freshness bookkeeping.
        """
        self._clock = clock
        self._entries: dict[CollectionKey, CacheEntry] = {}
        self._observers: dict[CollectionKey, list[KeyListener]] = {}
        self._invalidation_hooks: list[KeyListener] = []

    def get(self, key: CollectionKey) -> tuple[Record, ...] | None:
        """Return the cached collection, or None when it is absent."""
        entry = self._entries.get(key)
        return entry.data if entry else None

    def set(self, key: CollectionKey, records: Iterable[Record] | None) -> None:
        """Replace the cached collection.

        This is a total replacement, not a merge. Passing None makes the
        collection absent again while keeping its fetch bookkeeping.

        Args:
            key: Collection to replace
            records: New records, already in the desired order
        """
        entry = self._entry(key)
        entry.data = None if records is None else tuple(records)
        self._notify(key)

    def entry(self, key: CollectionKey) -> CacheEntry | None:
        """Return the entry for a key without creating it (read-only use)."""
        return self._entries.get(key)

    def is_stale(self, key: CollectionKey, stale_time: float) -> bool:
        """Check whether a read of ``key`` has to go to the remote store.

        Args:
            key: Collection to check
            stale_time: Freshness window in seconds

        Returns:
            True unless the last fetch succeeded less than ``stale_time``
            seconds ago and the entry has not been invalidated since
        """
        entry = self._entries.get(key)
        if entry is None or entry.status is not QueryStatus.FRESH or entry.is_invalidated:
            return True
        return self._clock() - entry.fetched_at >= stale_time

    def invalidate(self, key: CollectionKey) -> None:
        """Mark a collection for refetch without clearing its data.

        A fetch already in flight may have read rows from before the
        invalidation, so it is cancelled and started again. Callers waiting
        on the old task find the new one on the entry.
        """
        entry = self._entries.get(key)
        if entry is None:
            return

        entry.is_invalidated = True
        logger.debug("Invalidated %s", key)

        if entry.fetch is not None and not entry.fetch.done():
            superseded = entry.fetch
            prior_status = entry.prior_status
            entry.fetch = None
            superseded.cancel()
            self.start_fetch(key, entry.fetcher)
            entry.prior_status = prior_status
            logger.debug("Restarted in-flight fetch for %s", key)

        for hook in list(self._invalidation_hooks):
            hook(key)

    def start_fetch(self, key: CollectionKey, fetcher: Fetcher) -> asyncio.Task:
        """Start fetching a collection, or join the fetch already in flight.

        The result replaces the cached collection (sorted by creation time)
        unless the fetch was cancelled or superseded first. A failure keeps
        the previous data and records the error on the entry.

        Args:
            key: Collection to fetch
            fetcher: Coroutine function returning the collection's records

        Returns:
            The fetch task; it never raises except when cancelled
        """
        entry = self._entry(key)
        if entry.fetch is not None and not entry.fetch.done():
            return entry.fetch

        entry.generation += 1
        entry.fetcher = fetcher
        entry.prior_status = entry.status
        entry.status = QueryStatus.FETCHING
        entry.fetch = asyncio.create_task(
            self._run_fetch(key, entry.generation, fetcher),
            name=f"fetch:{key}",
        )
        logger.debug("Fetching %s (generation %d)", key, entry.generation)
        return entry.fetch

    async def cancel_in_flight(self, key: CollectionKey) -> None:
        """Cancel any in-flight fetch for a key and wait for it to unwind.

        Returns only when no fetch is in flight for the key, so the caller
        can snapshot and write the collection before anything else runs.
        """
        entry = self._entries.get(key)
        while entry is not None and entry.fetch is not None:
            task = entry.fetch
            entry.fetch = None
            entry.generation += 1
            entry.status = entry.prior_status
            task.cancel()
            logger.debug("Cancelled in-flight fetch for %s", key)

            await asyncio.wait([task])
            entry = self._entries.get(key)

    def begin_write(self, key: CollectionKey) -> None:
        """Record an optimistic write whose placeholder is now cached."""
        self._entry(key).pending_writes += 1

    def end_write(self, key: CollectionKey) -> None:
        """Record that an optimistic write has settled."""
        entry = self._entries.get(key)
        if entry is not None and entry.pending_writes:
            entry.pending_writes -= 1

    def has_pending_writes(self, key: CollectionKey) -> bool:
        """Whether unsettled writes have placeholders in the collection."""
        entry = self._entries.get(key)
        return entry is not None and entry.pending_writes > 0

    def subscribe(self, key: CollectionKey, listener: KeyListener) -> Callable[[], None]:
        """Observe changes to one collection.

        Args:
            key: Collection to observe
            listener: Called with the key after every data or status change

        Returns:
            A callable that removes the listener
        """
        self._observers.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._observers.get(key, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._observers.pop(key, None)

        return unsubscribe

    def has_observers(self, key: CollectionKey) -> bool:
        """Whether anything is currently observing the collection."""
        return bool(self._observers.get(key))

    def observed_keys(self) -> list[CollectionKey]:
        """Return every key with at least one observer."""
        return [key for key, listeners in self._observers.items() if listeners]

    def on_invalidate(self, hook: KeyListener) -> Callable[[], None]:
        """Register a hook called with each invalidated key.

        Returns:
            A callable that removes the hook
        """
        self._invalidation_hooks.append(hook)

        def remove() -> None:
            if hook in self._invalidation_hooks:
                self._invalidation_hooks.remove(hook)

        return remove

    def remove(self, key: CollectionKey) -> None:
        """Drop a collection and cancel its in-flight fetch."""
        entry = self._entries.pop(key, None)
        if entry is not None and entry.fetch is not None:
            entry.fetch.cancel()

    def clear(self) -> None:
        """Drop every collection and cancel every in-flight fetch."""
        for key in list(self._entries):
            self.remove(key)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    async def close(self) -> None:
        """Cancel all fetches, wait for them to unwind and drop all state.

        Should be called when shutting down the application.
        """
        tasks = [e.fetch for e in self._entries.values() if e.fetch is not None]
        self.clear()
        if tasks:
            await asyncio.wait(tasks)
        self._observers.clear()
        self._invalidation_hooks.clear()
        logger.info("Query cache closed")

    def _entry(self, key: CollectionKey) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry()
        return entry

    def _current(self, key: CollectionKey, generation: int) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None or entry.generation != generation:
            return None
        return entry

    async def _run_fetch(self, key: CollectionKey, generation: int, fetcher: Fetcher) -> None:
        try:
            records = await fetcher()
        except asyncio.CancelledError:
            logger.debug("Fetch for %s cancelled", key)
            raise
        except Exception as e:
            entry = self._current(key, generation)
            if entry is None:
                logger.debug("Discarding error of superseded fetch for %s", key)
                return
            entry.fetch = None
            entry.status = QueryStatus.ERROR
            entry.error = e
            logger.warning("Fetch for %s failed: %s", key, e)
            self._notify(key)
            return

        entry = self._current(key, generation)
        if entry is None:
            logger.debug("Discarding result of superseded fetch for %s", key)
            return

        entry.fetch = None
        entry.data = sort_by_created_at(records)
        entry.status = QueryStatus.FRESH
        entry.error = None
        entry.fetched_at = self._clock()
        entry.is_invalidated = False
        logger.debug("Fetched %d records for %s", len(entry.data), key)
        self._notify(key)

    def _notify(self, key: CollectionKey) -> None:
        for listener in list(self._observers.get(key, [])):
            try:
                listener(key)
            except Exception:
                logger.exception("Observer of %s raised", key)
