"""Record cache service for caller-facing operations.

This service wires the cache store and both controllers together and
resolves collection keys from the current identity.
"""

import logging
from collections.abc import Callable
from typing import Any

from optimistic_cache.entities import CollectionKey, Identity, QueryResult, QueryStatus
from optimistic_cache.errors import NotAuthenticatedError
from optimistic_cache.protocols import IdentitySource, RecordStore

from .mutation_controller import Mutation, MutationController
from .query_cache import KeyListener, QueryCache
from .query_controller import QueryController

logger = logging.getLogger(__name__)


class RecordCacheService:
    """Optimistic record cache for the current user.

    This service depends on PROTOCOLS, not concrete implementations:
    - RecordStore: Supabase PostgREST or any other row store
    - IdentitySource: Supabase GoTrue or any other identity provider

    Example:
        ```python
        from optimistic_cache.services import RecordCacheService

        service = RecordCacheService.create(record_store=store, identity=auth)

        result = await service.read()              # fetches if stale
        mutation = await service.mutate({"name": "Aspirin"})
        service.peek().data                        # placeholder already visible
        record = await mutation.wait()             # server record or error
        await service.close()
        ```
    """

    def __init__(
        self,
        cache: QueryCache,
        queries: QueryController,
        mutations: MutationController,
        identity: IdentitySource,
        record_store: RecordStore,
    ) -> None:
        """Initialize the record cache service.

        Args:
            cache: Shared cache store (required).
            queries: Read-side controller (required).
            mutations: Write-side controller (required).
            identity: Source of the current user (required).
            record_store: Remote store the controllers talk to (required).
        """
        self._cache = cache
        self._queries = queries
        self._mutations = mutations
        self._identity = identity
        self._records = record_store

    @classmethod
    def create(
        cls,
        record_store: RecordStore,
        identity: IdentitySource,
        cache: QueryCache | None = None,
        stale_time: float | None = None,
        retry: int | None = None,
        retry_delay: float | None = None,
    ) -> "RecordCacheService":
        """Factory method to create RecordCacheService with sensible defaults.

        Args:
            record_store: Remote store (required).
            identity: Identity source (required).
            cache: Cache store to share. If None, creates a new one.
            stale_time: Freshness window in seconds. If None, uses settings.
            retry: Extra fetch attempts. If None, uses settings.
            retry_delay: Base retry backoff in seconds. If None, uses settings.

        Returns:
            Configured RecordCacheService
        """
        if cache is None:
            cache = QueryCache()
        return cls(
            cache=cache,
            queries=QueryController(
                cache,
                record_store,
                identity,
                stale_time=stale_time,
                retry=retry,
                retry_delay=retry_delay,
            ),
            mutations=MutationController(cache, record_store, identity),
            identity=identity,
            record_store=record_store,
        )

    def current_key(self) -> CollectionKey | None:
        """Key of the current user's collection, or None if not resolved."""
        identity = self._identity.current()
        if not identity.is_resolved:
            return None
        return CollectionKey(kind=self._records.kind, owner_id=identity.user_id)

    async def read(self, key: CollectionKey | None = None) -> QueryResult:
        """Read a collection, fetching it if it is stale.

        Args:
            key: Collection to read. Defaults to the current user's.

        Returns:
            QueryResult; status NOT_READY while no user is resolved
        """
        key = key or self.current_key()
        if key is None:
            return QueryResult(key=None, status=QueryStatus.NOT_READY)
        return await self._queries.load(key)

    def peek(self, key: CollectionKey | None = None) -> QueryResult:
        """Describe a collection's cached state without fetching."""
        key = key or self.current_key()
        if key is None:
            return QueryResult(key=None, status=QueryStatus.NOT_READY)
        return self._queries.result(key)

    async def mutate(self, fields: dict[str, Any], key: CollectionKey | None = None) -> Mutation:
        """Optimistically insert a record.

        Args:
            fields: Domain fields of the new record
            key: Collection to insert into. Defaults to the current user's.

        Returns:
            Handle of the pending mutation

        Raises:
            NotAuthenticatedError: If no user is resolved
        """
        key = key or self.current_key()
        if key is None:
            raise NotAuthenticatedError()
        return await self._mutations.mutate(key, fields)

    def invalidate(self, key: CollectionKey | None = None) -> None:
        """Mark a collection stale so the next read refetches it."""
        key = key or self.current_key()
        if key is not None:
            self._cache.invalidate(key)

    def subscribe(self, key: CollectionKey, listener: KeyListener) -> Callable[[], None]:
        """Observe a collection; observed collections refetch on invalidation."""
        return self._cache.subscribe(key, listener)

    def pending(self, key: CollectionKey | None = None) -> list[Mutation]:
        """Return unsettled mutations."""
        return self._mutations.pending(key)

    @property
    def identity(self) -> Identity:
        """Get the current identity."""
        return self._identity.current()

    async def is_healthy(self) -> bool:
        """Check if the remote store is reachable.

        Returns:
            True if healthy, False otherwise
        """
        return await self._records.is_available()

    async def close(self) -> None:
        """Roll back outstanding writes, stop fetching and drop cached state."""
        self._queries.close()
        await self._mutations.close()
        await self._cache.close()
        logger.info("Record cache service closed")

    @property
    def cache(self) -> QueryCache:
        """Get the underlying cache store (for testing)."""
        return self._cache
