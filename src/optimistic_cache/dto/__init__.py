"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import CredentialsRequest, NewMedicationRequest
from .responses import (
    HealthCheckResponse,
    MedicationItem,
    MedicationListResponse,
    MutationResponse,
    SessionResponse,
)

__all__ = [
    "CredentialsRequest",
    "NewMedicationRequest",
    "HealthCheckResponse",
    "MedicationItem",
    "MedicationListResponse",
    "MutationResponse",
    "SessionResponse",
]
