"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (Supabase -> any other backend)
- Unit testing with fake implementations
- Clear separation of concerns
"""

from .identity_source import IdentityListener, IdentitySource
from .record_store import RecordStore

__all__ = [
    "IdentityListener",
    "IdentitySource",
    "RecordStore",
]
