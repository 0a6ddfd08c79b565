"""Record and collection key domain entities."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

PLACEHOLDER_ID_PREFIX = "optimistic-"


@dataclass(frozen=True)
class CollectionKey:
    """Identifies one cached collection by entity kind and owner.

    Two keys with different owners address wholly independent cache entries.

    Attributes:
        kind: Entity kind (table name), e.g. "medications"
        owner_id: Identifier of the user owning every record in the collection
    """

    kind: str
    owner_id: str

    def __str__(self) -> str:
        return f"{self.kind}:{self.owner_id}"


@dataclass(frozen=True)
class Record:
    """Domain entity for a single row of a cached collection.

    Attributes:
        id: Server-assigned identifier, or a placeholder id for unconfirmed writes
        created_at: Timestamp assigned by the remote store at commit time
        owner_id: Identifier of the owning user
        fields: Domain fields (opaque to the cache)
    """

    id: str
    created_at: datetime
    owner_id: str
    fields: dict[str, Any] = field(default_factory=dict, hash=False)

    @property
    def is_placeholder(self) -> bool:
        """Whether this record stands in for an unconfirmed remote write."""
        return self.id.startswith(PLACEHOLDER_ID_PREFIX)


def sort_by_created_at(records: "list[Record] | tuple[Record, ...]") -> tuple[Record, ...]:
    """Return records ordered by creation time, oldest first.

    The sort is stable, so records sharing a timestamp keep their call order.
    """
    return tuple(sorted(records, key=lambda r: r.created_at))
