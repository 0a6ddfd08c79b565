"""HTTP handlers for medication operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

from fastapi import HTTPException, status

from optimistic_cache.dto import (
    HealthCheckResponse,
    MedicationItem,
    MedicationListResponse,
    MutationResponse,
    NewMedicationRequest,
)
from optimistic_cache.entities import QueryStatus, Record
from optimistic_cache.errors import NotAuthenticatedError, RemoteWriteFailedError
from optimistic_cache.services import RecordCacheService


def to_medication_item(record: Record) -> MedicationItem:
    """Convert a cached record to its API representation."""
    return MedicationItem(
        id=record.id,
        created_at=record.created_at,
        user_id=record.owner_id,
        name=record.fields.get("name", ""),
        dosage=record.fields.get("dosage", ""),
        frequency=record.fields.get("frequency", ""),
        pending=record.is_placeholder,
    )


class MedicationHandler:
    """HTTP handlers for the current user's medications.

    This handler delegates to RecordCacheService and handles HTTP-specific
    concerns like:
    - Converting records to DTOs
    - Mapping cache errors to status codes
    """

    def __init__(self, cache_service: RecordCacheService) -> None:
        """Initialize the medication handler.

        Args:
            cache_service: The record cache service (required).
        """
        self._cache = cache_service

    async def list_medications(self) -> MedicationListResponse:
        """Handle GET /medications requests.

        A failed refresh still answers with the previously cached records
        and the error message. Only a failure with nothing cached is an
        HTTP error.

        Raises:
            HTTPException: 502 if the fetch failed and nothing is cached
        """
        result = await self._cache.read()

        if result.status is QueryStatus.ERROR and result.data is None:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=str(result.error),
            )

        return MedicationListResponse(
            status=result.status.value,
            medications=None if result.data is None else [to_medication_item(r) for r in result.data],
            is_stale=result.is_stale,
            error=None if result.error is None else str(result.error),
        )

    async def add_medication(self, request: NewMedicationRequest, wait: bool = True) -> MutationResponse:
        """Handle POST /medications requests.

        Args:
            request: The new medication DTO
            wait: Wait for the remote store to confirm before answering

        Returns:
            MutationResponse with the server record, or the placeholder when
            not waiting

        Raises:
            HTTPException: 401 if nobody is signed in, 502 if the write failed
        """
        try:
            mutation = await self._cache.mutate(request.model_dump())
        except NotAuthenticatedError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=str(e),
            ) from e

        if not wait:
            return MutationResponse(
                state=mutation.state.value,
                medication=to_medication_item(mutation.placeholder),
                message="Medication added, awaiting confirmation",
            )

        try:
            record = await mutation.wait()
        except RemoteWriteFailedError as e:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=str(e),
            ) from e

        return MutationResponse(
            state=mutation.state.value,
            medication=to_medication_item(record),
            message="Medication added successfully",
        )

    async def invalidate(self) -> dict:
        """Handle POST /medications/invalidate requests."""
        key = self._cache.current_key()
        if key is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not authenticated.",
            )

        self._cache.invalidate(key)
        return {
            "success": True,
            "message": f"Invalidated {key.kind}",
        }

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        is_healthy = await self._cache.is_healthy()

        return HealthCheckResponse(
            status="healthy" if is_healthy else "unhealthy",
            remote_healthy=is_healthy,
            authenticated=self._cache.identity.is_resolved,
        )
