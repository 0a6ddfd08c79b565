"""Identity snapshot entity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """Current user as reported by an identity source.

    Attributes:
        user_id: Identifier of the signed-in user, None when signed out
        resolving: True while the session is still being restored
        email: Email of the signed-in user, when known
    """

    user_id: str | None = None
    resolving: bool = False
    email: str | None = None

    @property
    def is_resolved(self) -> bool:
        """Whether a usable owner identifier is available."""
        return not self.resolving and self.user_id is not None


RESOLVING = Identity(resolving=True)
ANONYMOUS = Identity()
