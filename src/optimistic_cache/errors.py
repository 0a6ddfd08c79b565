"""Exception hierarchy.

Errors raised by the cache layer are scoped to a single collection key and
are never fatal to the process:

- NotAuthenticatedError: no resolvable owner; raised before any cache change
- RemoteWriteFailedError: insert rejected; the optimistic write was rolled back
- RemoteReadFailedError: fetch failed; the previous collection was kept

Adapters raise RemoteStoreError / AuthError, which services translate.
"""


class OptimisticCacheError(Exception):
    """Base class for all errors raised by this package."""


class NotAuthenticatedError(OptimisticCacheError):
    """No owner identifier can be resolved for the requested operation."""

    def __init__(self, message: str = "User not authenticated.") -> None:
        super().__init__(message)


class RemoteWriteFailedError(OptimisticCacheError):
    """The remote store rejected an insert, or the transport failed."""


class RemoteReadFailedError(OptimisticCacheError):
    """The remote store could not list a collection."""


class MutationStateError(OptimisticCacheError):
    """A pending mutation was settled more than once."""


class RemoteStoreError(OptimisticCacheError):
    """Transport or validation failure reported by a remote store client.

    Attributes:
        message: Human-readable message from the remote store
        status_code: HTTP status code, when the failure came from a response
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthError(OptimisticCacheError):
    """Sign-in, sign-up or sign-out was rejected by the identity provider."""
