"""Domain entities for internal representation.

These are pure dataclasses used internally by services and repositories.
They are NOT used for API contracts - use DTOs from the dto package for that.
"""

from .identity import ANONYMOUS, RESOLVING, Identity
from .mutation import MutationState, PendingMutation
from .query import QueryResult, QueryStatus
from .record import PLACEHOLDER_ID_PREFIX, CollectionKey, Record, sort_by_created_at

__all__ = [
    "ANONYMOUS",
    "RESOLVING",
    "Identity",
    "CollectionKey",
    "Record",
    "PLACEHOLDER_ID_PREFIX",
    "sort_by_created_at",
    "MutationState",
    "PendingMutation",
    "QueryResult",
    "QueryStatus",
]
