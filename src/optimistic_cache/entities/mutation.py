"""Pending mutation entity and its settle state machine."""

from dataclasses import dataclass, field
from enum import Enum

from optimistic_cache.errors import MutationStateError

from .record import CollectionKey, Record


class MutationState(str, Enum):
    """Lifecycle of one optimistic write: ``applying -> {committed, rolled_back}``."""

    APPLYING = "applying"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"

    @property
    def is_settled(self) -> bool:
        return self is not MutationState.APPLYING


@dataclass
class PendingMutation:
    """Bookkeeping for one optimistic write.

    Created at optimistic-apply time and consumed exactly once, either by
    ``commit`` or by ``roll_back``.

    Attributes:
        key: Collection affected by the write
        placeholder: Locally synthesized record shown until the refetch
        snapshot: Collection as it was immediately before the placeholder
            was inserted (None when the collection was absent)
        state: Current settle state
        record: Server-confirmed record, set on commit
        error: Write failure, set on rollback
    """

    key: CollectionKey
    placeholder: Record
    snapshot: tuple[Record, ...] | None
    state: MutationState = MutationState.APPLYING
    record: Record | None = None
    error: Exception | None = field(default=None, repr=False)

    def commit(self, record: Record) -> None:
        """Mark the write as confirmed by the remote store."""
        self._settle(MutationState.COMMITTED)
        self.record = record

    def roll_back(self, error: Exception) -> tuple[Record, ...] | None:
        """Mark the write as failed.

        Returns:
            The snapshot to restore, exactly as it was taken
        """
        self._settle(MutationState.ROLLED_BACK)
        self.error = error
        return self.snapshot

    def _settle(self, target: MutationState) -> None:
        if self.state.is_settled:
            raise MutationStateError(
                f"Mutation {self.placeholder.id} already settled as {self.state.value}"
            )
        self.state = target
