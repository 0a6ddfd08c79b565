"""Write side: optimistic inserts with rollback.

Protocol for one insert, strictly ordered:

1. Fail fast with NotAuthenticatedError if no owner can be resolved.
2. Cancel in-flight fetches for the collection.
3. Snapshot the cached collection.
4. Append a placeholder record to the cached collection.
5. Send the insert to the remote store in the background.
6. On success, discard the pending mutation.
7. On failure, restore the snapshot and surface RemoteWriteFailedError.
8. Either way, invalidate the collection; the refetch replaces placeholders
   with server records.

Steps 3 and 4 run without an await in between, so no fetch completion can
write to the collection between snapshot and apply.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from optimistic_cache.entities import (
    PLACEHOLDER_ID_PREFIX,
    CollectionKey,
    MutationState,
    PendingMutation,
    Record,
)
from optimistic_cache.errors import NotAuthenticatedError, RemoteStoreError, RemoteWriteFailedError
from optimistic_cache.protocols import IdentitySource, RecordStore

from .query_cache import QueryCache

logger = logging.getLogger(__name__)


class Mutation:
    """Caller-facing handle of one optimistic insert.

    The handle is returned as soon as the placeholder is visible in the
    cache. Awaiting ``wait()`` yields the server record, or raises the
    write error after the cache has been rolled back.
    """

    def __init__(self, pending: PendingMutation, task: asyncio.Task) -> None:
        self._pending = pending
        self._task = task

    @property
    def pending(self) -> PendingMutation:
        return self._pending

    @property
    def key(self) -> CollectionKey:
        return self._pending.key

    @property
    def placeholder(self) -> Record:
        return self._pending.placeholder

    @property
    def state(self) -> MutationState:
        return self._pending.state

    @property
    def is_settled(self) -> bool:
        return self._pending.state.is_settled

    @property
    def record(self) -> Record | None:
        """Server-confirmed record, once committed."""
        return self._pending.record

    @property
    def error(self) -> Exception | None:
        """Write error, once rolled back."""
        return self._pending.error

    async def wait(self) -> Record:
        """Wait for the mutation to settle.

        Cancelling the caller does not cancel the write.

        Returns:
            The server-confirmed record

        Raises:
            RemoteWriteFailedError: If the write failed and was rolled back
        """
        await asyncio.wait([self._task])
        if self._pending.error is not None:
            raise self._pending.error
        return self._pending.record

    def __repr__(self) -> str:
        return f"Mutation(key={self.key}, placeholder={self.placeholder.id!r}, state={self.state.value})"


class MutationController:
    """Applies inserts to the cache before the remote store confirms them.

    Each call takes its own snapshot at the moment it starts, so a second
    insert issued while a first one is pending snapshots the first one's
    placeholder and cannot erase it on rollback.
    """

    def __init__(
        self,
        cache: QueryCache,
        record_store: RecordStore,
        identity: IdentitySource,
    ) -> None:
        """Initialize the mutation controller.

        Args:
            cache: Shared cache store (required).
            record_store: Remote store to write to (required).
            identity: Source of the current user (required).
        """
        self._cache = cache
        self._records = record_store
        self._identity = identity
        self._pending: dict[asyncio.Task, Mutation] = {}

    async def mutate(self, key: CollectionKey, fields: dict[str, Any]) -> Mutation:
        """Optimistically insert a record into a collection.

        Args:
            key: Collection to insert into
            fields: Domain fields of the new record

        Returns:
            Handle of the pending mutation; the placeholder is already cached

        Raises:
            NotAuthenticatedError: If the current user cannot be resolved or
                does not own ``key``; the cache is left untouched
        """
        if key.kind != self._records.kind:
            raise ValueError(f"Controller serves '{self._records.kind}', got key for '{key.kind}'")

        self._require_owner(key)
        await self._cache.cancel_in_flight(key)
        # The identity may have changed while the fetch unwound.
        self._require_owner(key)

        snapshot = self._cache.get(key)
        created_at = datetime.now(timezone.utc)
        if snapshot:
            # Placeholders go last even when the local clock lags the server.
            created_at = max(created_at, snapshot[-1].created_at)
        placeholder = Record(
            id=f"{PLACEHOLDER_ID_PREFIX}{uuid.uuid4()}",
            created_at=created_at,
            owner_id=key.owner_id,
            fields=dict(fields),
        )
        self._cache.set(key, [*(snapshot or ()), placeholder])
        self._cache.begin_write(key)
        pending = PendingMutation(key=key, placeholder=placeholder, snapshot=snapshot)
        logger.debug("Applied placeholder %s to %s", placeholder.id, key)

        task = asyncio.create_task(self._write(pending), name=f"insert:{placeholder.id}")
        mutation = self._pending[task] = Mutation(pending, task)
        task.add_done_callback(self._pending.pop)
        return mutation

    def pending(self, key: CollectionKey | None = None) -> list[Mutation]:
        """Return unsettled mutations, optionally for a single collection."""
        return [m for m in self._pending.values() if key is None or m.key == key]

    async def close(self) -> None:
        """Cancel outstanding writes and roll each of them back."""
        outstanding = list(self._pending.items())
        for task, _ in outstanding:
            task.cancel()
        if not outstanding:
            return

        await asyncio.wait([task for task, _ in outstanding])
        for _, mutation in outstanding:
            # Cancelled before the insert was sent.
            if not mutation.is_settled:
                key = mutation.key
                self._roll_back(mutation.pending, RemoteWriteFailedError(f"Insert into {key.kind} was cancelled"))
                self._settle(key)

    def _require_owner(self, key: CollectionKey) -> None:
        identity = self._identity.current()
        if not identity.is_resolved or identity.user_id != key.owner_id:
            raise NotAuthenticatedError()

    async def _write(self, pending: PendingMutation) -> None:
        key = pending.key
        try:
            record = await self._records.insert(key.owner_id, dict(pending.placeholder.fields))
        except asyncio.CancelledError:
            self._roll_back(pending, RemoteWriteFailedError(f"Insert into {key.kind} was cancelled"))
            self._settle(key)
            raise
        except Exception as e:
            message = e.message if isinstance(e, RemoteStoreError) else str(e)
            error = RemoteWriteFailedError(f"Failed to add {key.kind}: {message}")
            error.__cause__ = e
            self._roll_back(pending, error)
        else:
            pending.commit(record)
            logger.info("Committed %s as %s in %s", pending.placeholder.id, record.id, key)

        self._settle(key)

    def _roll_back(self, pending: PendingMutation, error: RemoteWriteFailedError) -> None:
        snapshot = pending.roll_back(error)
        self._cache.set(pending.key, snapshot)
        logger.error("Optimistic update failed, rolled back %s: %s", pending.key, error)

    def _settle(self, key: CollectionKey) -> None:
        self._cache.end_write(key)
        self._cache.invalidate(key)
