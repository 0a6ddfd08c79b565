"""Response DTOs for API endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class MedicationItem(BaseModel):
    """Single medication (in medications array)."""

    id: str = Field(..., description="Server id, or an 'optimistic-' id while unconfirmed")
    created_at: datetime = Field(..., description="Creation timestamp")
    user_id: str = Field(..., description="Owner of the medication")
    name: str = Field("", description="Medication name")
    dosage: str = Field("", description="Dosage")
    frequency: str = Field("", description="How often it is taken")
    pending: bool = Field(False, description="Whether the write is still unconfirmed")


class MedicationListResponse(BaseModel):
    """Response DTO for reading the current user's medications."""

    status: str = Field(..., description="not_ready, idle, fetching, fresh or error")
    medications: list[MedicationItem] | None = Field(
        None,
        description="Cached medications ordered by creation time (null if never fetched)",
    )
    is_stale: bool = Field(..., description="Whether the next read goes to the remote store")
    error: str | None = Field(None, description="Last read error, if the status is error")


class MutationResponse(BaseModel):
    """Response DTO for adding a medication."""

    state: str = Field(..., description="applying, committed or rolled_back")
    medication: MedicationItem = Field(
        ...,
        description="The server record once committed, otherwise the placeholder",
    )
    message: str = Field(..., description="Human-readable status message")


class SessionResponse(BaseModel):
    """Response DTO describing the current identity."""

    authenticated: bool = Field(..., description="Whether a user is signed in")
    resolving: bool = Field(..., description="Whether the session is still being restored")
    user_id: str | None = Field(None, description="Signed-in user id")
    email: str | None = Field(None, description="Signed-in user email")
    message: str | None = Field(None, description="Human-readable status message")


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    remote_healthy: bool = Field(..., description="Whether the remote store is reachable")
    authenticated: bool = Field(..., description="Whether a user is signed in")
