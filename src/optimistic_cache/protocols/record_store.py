"""Remote record store protocol.

Defines the interface for the authoritative backend that owns records,
assigns their identifiers and timestamps, and persists them.

Implementations can include:
- Supabase PostgREST (default)
- Any other row store with server-assigned ids
"""

from typing import Any, Protocol, runtime_checkable

from optimistic_cache.entities import Record


@runtime_checkable
class RecordStore(Protocol):
    """Protocol for remote record stores.

    Both operations raise ``RemoteStoreError`` carrying the server's message
    on transport or validation failure.
    """

    @property
    def kind(self) -> str:
        """Return the entity kind (table) this store reads and writes."""
        ...

    async def list_by_owner(self, owner_id: str) -> list[Record]:
        """List every record owned by a user.

        Args:
            owner_id: Identifier of the owning user

        Returns:
            Records ordered by creation time, oldest first
        """
        ...

    async def insert(self, owner_id: str, fields: dict[str, Any]) -> Record:
        """Insert one record.

        Args:
            owner_id: Identifier of the owning user
            fields: Domain fields of the new record

        Returns:
            The stored record with its server-assigned id and timestamp
        """
        ...

    async def is_available(self) -> bool:
        """Check if the remote store is reachable.

        Returns:
            True if healthy, False otherwise
        """
        ...
