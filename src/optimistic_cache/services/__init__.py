"""Service layer for business logic.

This layer contains the cache store and the controllers that keep it in
sync with the remote store. Services depend on protocols (interfaces), not
concrete implementations, making them testable and flexible.

Architecture:
    Handler -> RecordCacheService -> {QueryController, MutationController}
                                          -> QueryCache + RecordStore
"""

from .mutation_controller import Mutation, MutationController
from .query_cache import CacheEntry, QueryCache
from .query_controller import QueryController
from .record_cache_service import RecordCacheService

__all__ = [
    "CacheEntry",
    "Mutation",
    "MutationController",
    "QueryCache",
    "QueryController",
    "RecordCacheService",
]
