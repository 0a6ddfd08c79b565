from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from optimistic_cache.api.dependencies import AuthHandlerDep, MedicationHandlerDep, lifespan
from optimistic_cache.config import settings
from optimistic_cache.dto import (
    CredentialsRequest,
    HealthCheckResponse,
    MedicationListResponse,
    MutationResponse,
    NewMedicationRequest,
    SessionResponse,
)
from optimistic_cache.protocols import IdentitySource, RecordStore


def create_app(
    auth: IdentitySource | None = None,
    record_store: RecordStore | None = None,
) -> FastAPI:
    """Build the API application.

    Args:
        auth: Identity source to use instead of Supabase auth.
        record_store: Record store to use instead of Supabase PostgREST.

    Returns:
        The FastAPI application
    """
    app = FastAPI(
        title="Optimistic Cache API",
        description="Medication list with optimistic writes over Supabase",
        version="0.1.0",
        lifespan=lifespan,
    )
    if auth is not None:
        app.state.auth = auth
    if record_store is not None:
        app.state.record_store = record_store

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": "Optimistic Cache API",
            "version": "0.1.0",
            "description": "Medication list with optimistic writes over Supabase",
            "endpoints": {
                "auth": "/auth",
                "medications": "/medications",
                "health": "/health",
                "docs": "/docs",
            },
        }

    @app.get("/health", response_model=HealthCheckResponse)
    async def health(handler: MedicationHandlerDep) -> HealthCheckResponse:
        """Health check endpoint."""
        return await handler.health_check()

    @app.post("/auth/sign-in", response_model=SessionResponse)
    async def sign_in(request: CredentialsRequest, handler: AuthHandlerDep) -> SessionResponse:
        """Sign in with email and password."""
        return await handler.sign_in(request)

    @app.post("/auth/sign-up", response_model=SessionResponse)
    async def sign_up(request: CredentialsRequest, handler: AuthHandlerDep) -> SessionResponse:
        """Create an account."""
        return await handler.sign_up(request)

    @app.post("/auth/sign-out", response_model=SessionResponse)
    async def sign_out(handler: AuthHandlerDep) -> SessionResponse:
        """Sign out."""
        return await handler.sign_out()

    @app.get("/auth/session", response_model=SessionResponse)
    async def session(handler: AuthHandlerDep) -> SessionResponse:
        """Describe the current session."""
        return await handler.session()

    @app.get("/medications", response_model=MedicationListResponse)
    async def list_medications(handler: MedicationHandlerDep) -> MedicationListResponse:
        """List the current user's medications, fetching them if stale."""
        return await handler.list_medications()

    @app.post("/medications", response_model=MutationResponse)
    async def add_medication(
        request: NewMedicationRequest,
        handler: MedicationHandlerDep,
        wait: bool = True,
    ) -> MutationResponse:
        """
        Add a medication optimistically.

        Args:
            request: The new medication.
            wait: Wait for the remote store to confirm the write.

        Returns:
            The committed medication, or the pending placeholder.
        """
        return await handler.add_medication(request, wait=wait)

    @app.post("/medications/invalidate", response_model=dict[str, Any])
    async def invalidate_medications(handler: MedicationHandlerDep) -> dict[str, Any]:
        """Force the next read to refetch from the remote store."""
        return await handler.invalidate()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "optimistic_cache.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
