"""Read side: keeps cached collections fresh.

Per key, the fetch lifecycle is ``idle -> fetching -> {fresh, error}``. A
fresh collection goes back to fetching once the staleness window elapses or
the key is invalidated; an error is retryable by loading again.
"""

import asyncio
import logging
from functools import partial

from optimistic_cache.config import settings
from optimistic_cache.entities import CollectionKey, QueryResult, QueryStatus, Record
from optimistic_cache.errors import RemoteReadFailedError, RemoteStoreError
from optimistic_cache.protocols import IdentitySource, RecordStore

from .query_cache import QueryCache

logger = logging.getLogger(__name__)


class QueryController:
    """Orchestrates fetches of record collections against the cache store.

    A key is only loaded while the identity source reports a resolved user
    who owns it. Otherwise the controller reports ``NOT_READY`` and never
    touches the remote store.

    Invalidated keys that have observers are refetched in the background,
    and so are observed keys of a user who has just signed in.
    """

    def __init__(
        self,
        cache: QueryCache,
        record_store: RecordStore,
        identity: IdentitySource,
        stale_time: float | None = None,
        retry: int | None = None,
        retry_delay: float | None = None,
        retry_max_delay: float | None = None,
    ) -> None:
        """Initialize the query controller.

        Args:
            cache: Shared cache store (required).
            record_store: Remote store to fetch from (required).
            identity: Source of the current user (required).
            stale_time: Freshness window in seconds. Defaults to settings.
            retry: Extra attempts after a failed fetch. Defaults to settings.
            retry_delay: Base backoff in seconds. Defaults to settings.
            retry_max_delay: Backoff cap in seconds. Defaults to settings.
        """
        self._cache = cache
        self._records = record_store
        self._identity = identity
        self._stale_time = settings.cache_stale_time if stale_time is None else stale_time
        self._retry = settings.query_retry if retry is None else retry
        self._retry_delay = settings.query_retry_delay if retry_delay is None else retry_delay
        self._retry_max_delay = (
            settings.query_retry_max_delay if retry_max_delay is None else retry_max_delay
        )
        self._unsubscribers = [
            identity.subscribe(self._on_identity_change),
            cache.on_invalidate(self._on_invalidated),
        ]

    def is_enabled(self, key: CollectionKey) -> bool:
        """Whether the current identity is resolved and owns ``key``."""
        identity = self._identity.current()
        return identity.is_resolved and identity.user_id == key.owner_id

    def result(self, key: CollectionKey) -> QueryResult:
        """Describe the cached state of ``key`` without fetching."""
        if not self.is_enabled(key):
            return QueryResult(key=key, status=QueryStatus.NOT_READY)

        entry = self._cache.entry(key)
        if entry is None:
            return QueryResult(key=key, status=QueryStatus.IDLE)

        return QueryResult(
            key=key,
            status=entry.status,
            data=entry.data,
            error=entry.error if entry.status is QueryStatus.ERROR else None,
            is_stale=self._cache.is_stale(key, self._stale_time),
        )

    async def load(self, key: CollectionKey) -> QueryResult:
        """Return the collection, fetching it first if it is stale.

        Within the freshness window this never reaches the remote store, and
        concurrent loads of one key share a single fetch. A failed fetch
        leaves previously cached records in place; the error is reported in
        the returned result. While optimistic writes to the key are pending
        no fetch is started, so their placeholders stay visible until the
        settle invalidation refetches.

        Args:
            key: Collection to load

        Returns:
            QueryResult after any fetch has completed or been cancelled
        """
        self._check_kind(key)
        if not self.is_enabled(key):
            logger.debug("Query %s not ready: owner not resolved", key)
            return self.result(key)

        if self._should_fetch(key):
            task = self._cache.start_fetch(key, partial(self._fetch, key))
            await asyncio.wait([task])
            # An invalidation while fetching restarts the fetch.
            entry = self._cache.entry(key)
            while entry is not None and entry.fetch is not None and entry.fetch is not task:
                task = entry.fetch
                await asyncio.wait([task])
                entry = self._cache.entry(key)

        return self.result(key)

    async def refetch(self, key: CollectionKey) -> QueryResult:
        """Invalidate ``key`` and load it again."""
        self._cache.invalidate(key)
        return await self.load(key)

    def close(self) -> None:
        """Stop reacting to identity changes and invalidations."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    async def _fetch(self, key: CollectionKey) -> list[Record]:
        attempt = 0
        while True:
            try:
                records = await self._records.list_by_owner(key.owner_id)
                break
            except RemoteStoreError as e:
                if attempt >= self._retry:
                    logger.error("Error fetching %s: %s", key, e.message)
                    raise RemoteReadFailedError(f"Failed to fetch {key.kind}: {e.message}") from e

                delay = min(self._retry_delay * 2**attempt, self._retry_max_delay)
                attempt += 1
                logger.warning(
                    "Fetching %s failed (%s), retry %d/%d in %.1fs",
                    key, e.message, attempt, self._retry, delay,
                )
                await asyncio.sleep(delay)

        foreign = [r for r in records if r.owner_id != key.owner_id]
        if foreign:
            logger.warning("Dropping %d records not owned by %s", len(foreign), key.owner_id)
        return [r for r in records if r.owner_id == key.owner_id]

    def _check_kind(self, key: CollectionKey) -> None:
        if key.kind != self._records.kind:
            raise ValueError(f"Controller serves '{self._records.kind}', got key for '{key.kind}'")

    def _should_fetch(self, key: CollectionKey) -> bool:
        return self._cache.is_stale(key, self._stale_time) and not self._cache.has_pending_writes(key)

    def _on_invalidated(self, key: CollectionKey) -> None:
        if (
            key.kind == self._records.kind
            and self._cache.has_observers(key)
            and self.is_enabled(key)
            and not self._cache.has_pending_writes(key)
        ):
            self._cache.start_fetch(key, partial(self._fetch, key))

    def _on_identity_change(self, identity) -> None:
        if not identity.is_resolved:
            return

        for key in self._cache.observed_keys():
            if (
                key.kind == self._records.kind
                and key.owner_id == identity.user_id
                and self._should_fetch(key)
            ):
                self._cache.start_fetch(key, partial(self._fetch, key))
