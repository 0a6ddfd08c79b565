"""Query status and result entities."""

from dataclasses import dataclass
from enum import Enum

from .record import CollectionKey, Record


class QueryStatus(str, Enum):
    """Fetch lifecycle of one cached collection.

    ``NOT_READY`` is reported instead of failing while the owner of the
    collection cannot be resolved.
    """

    NOT_READY = "not_ready"
    IDLE = "idle"
    FETCHING = "fetching"
    FRESH = "fresh"
    ERROR = "error"


@dataclass(frozen=True)
class QueryResult:
    """Point-in-time view of one cached collection.

    Attributes:
        key: The collection key this result describes
        status: Fetch lifecycle status
        data: Cached records, or None when the collection is absent
        error: Last read error, set while status is ERROR
        is_stale: Whether the next load would go to the remote store
    """

    key: CollectionKey | None
    status: QueryStatus
    data: tuple[Record, ...] | None = None
    error: Exception | None = None
    is_stale: bool = True

    @property
    def has_pending_writes(self) -> bool:
        """Whether any record is still an unconfirmed placeholder."""
        return any(r.is_placeholder for r in self.data or ())

    def raise_for_error(self) -> None:
        """Raise the stored read error, if any."""
        if self.error is not None:
            raise self.error
