"""Repository layer for data access.

This layer wraps the hosted backend (Supabase) behind protocol-based
interfaces:
- SupabaseRecordStore satisfies RecordStore (PostgREST rows)
- SupabaseAuth satisfies IdentitySource (GoTrue sessions)

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from optimistic_cache.protocols import IdentitySource, RecordStore

from .supabase_auth import SupabaseAuth
from .supabase_record_store import SupabaseRecordStore

__all__ = [
    "IdentitySource",
    "RecordStore",
    "SupabaseAuth",
    "SupabaseRecordStore",
]
