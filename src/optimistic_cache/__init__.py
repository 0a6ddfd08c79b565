"""Optimistic Cache - instant local writes over a hosted record store.

This package provides a layered architecture for an optimistic record cache:

Layers:
    - protocols: Interface contracts (IdentitySource, RecordStore)
    - repositories: Supabase implementations of the protocols
    - services: Cache store, query/mutation controllers, RecordCacheService
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from optimistic_cache.repositories import SupabaseAuth, SupabaseRecordStore
    from optimistic_cache.services import RecordCacheService

    auth = SupabaseAuth.create()
    store = SupabaseRecordStore.create(token_provider=lambda: auth.access_token)
    cache = RecordCacheService.create(record_store=store, identity=auth)
    ```

For HTTP API:
    ```python
    from optimistic_cache.api.app import app
    ```
"""

from optimistic_cache.config import get_http_client, settings
from optimistic_cache.entities import (
    CollectionKey,
    Identity,
    MutationState,
    PendingMutation,
    QueryResult,
    QueryStatus,
    Record,
)
from optimistic_cache.errors import (
    AuthError,
    NotAuthenticatedError,
    OptimisticCacheError,
    RemoteReadFailedError,
    RemoteStoreError,
    RemoteWriteFailedError,
)
from optimistic_cache.protocols import IdentitySource, RecordStore
from optimistic_cache.repositories import SupabaseAuth, SupabaseRecordStore
from optimistic_cache.services import (
    Mutation,
    MutationController,
    QueryCache,
    QueryController,
    RecordCacheService,
)

__all__ = [
    # Configuration
    "settings",
    "get_http_client",
    # Protocols (interfaces)
    "IdentitySource",
    "RecordStore",
    # Services (business logic)
    "QueryCache",
    "QueryController",
    "MutationController",
    "Mutation",
    "RecordCacheService",
    # Repositories (data access)
    "SupabaseAuth",
    "SupabaseRecordStore",
    # Entities (domain models)
    "CollectionKey",
    "Identity",
    "MutationState",
    "PendingMutation",
    "QueryResult",
    "QueryStatus",
    "Record",
    # Errors
    "OptimisticCacheError",
    "NotAuthenticatedError",
    "RemoteWriteFailedError",
    "RemoteReadFailedError",
    "RemoteStoreError",
    "AuthError",
]
