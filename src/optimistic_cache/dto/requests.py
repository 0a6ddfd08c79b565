"""Request DTOs for API endpoints."""

from pydantic import BaseModel, Field


class NewMedicationRequest(BaseModel):
    """Request DTO for adding a medication.

    The handler passes these fields to the service layer; id, timestamp and
    owner are assigned by the cache and the remote store.
    """

    name: str = Field(..., description="Medication name", min_length=1)
    dosage: str = Field(..., description="Dosage, e.g. '100mg'", min_length=1)
    frequency: str = Field(..., description="How often, e.g. 'Once daily'", min_length=1)


class CredentialsRequest(BaseModel):
    """Request DTO for signing in or signing up."""

    email: str = Field(..., description="Account email")
    password: str = Field(..., description="Account password")
