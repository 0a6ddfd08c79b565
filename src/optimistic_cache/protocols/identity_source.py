"""Identity source protocol.

Defines the interface for anything that can tell the cache who the current
user is. The cache partitions all of its state by this identifier.

Implementations can include:
- Supabase GoTrue sessions (default)
- A fixed identity for scripts and tests
"""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from optimistic_cache.entities import Identity

IdentityListener = Callable[[Identity], None]


@runtime_checkable
class IdentitySource(Protocol):
    """Protocol for identity providers.

    The source is reactive: every change to the current identity is pushed
    to subscribers so controllers can re-evaluate whether they are enabled.
    """

    def current(self) -> Identity:
        """Return the current identity.

        Returns:
            Identity with the user id (or None) and the resolving flag
        """
        ...

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """Register a listener called with each new identity.

        Args:
            listener: Callback receiving the new Identity

        Returns:
            A callable that removes the listener
        """
        ...
