"""Handler layer for HTTP endpoints.

This layer contains the HTTP request/response handlers.
Handlers depend on services (business logic), not directly on repositories,
except for session handling which talks to the identity provider.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)
"""

from .auth_handler import AuthHandler
from .medication_handler import MedicationHandler

__all__ = [
    "AuthHandler",
    "MedicationHandler",
]
