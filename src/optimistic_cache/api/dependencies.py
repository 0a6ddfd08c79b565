"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - The cache lives exactly as long as the app: created at startup,
      closed at shutdown
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request

from optimistic_cache.config import settings
from optimistic_cache.handlers import AuthHandler, MedicationHandler
from optimistic_cache.repositories import SupabaseAuth, SupabaseRecordStore
from optimistic_cache.services import RecordCacheService


def get_medication_handler(request: Request) -> MedicationHandler:
    """Dependency injection for MedicationHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "medication_handler", None)
    if handler is None:
        raise RuntimeError("MedicationHandler not initialized. Check lifespan setup.")
    return handler


def get_auth_handler(request: Request) -> AuthHandler:
    """Dependency injection for AuthHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "auth_handler", None)
    if handler is None:
        raise RuntimeError("AuthHandler not initialized. Check lifespan setup.")
    return handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Initializes all layers and stores in app.state:
    1. Identity source and record store - taken from app.state.auth and
       app.state.record_store when preset, otherwise Supabase from settings
    2. Service (cache + controllers) - stored in app.state.cache_service
    3. Handlers (HTTP endpoints) - stored in app.state.*_handler

    Cleanup:
        Rolls back pending writes, closes the cache and any clients the
        lifespan created, and removes all services from app.state
    """
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    auth = getattr(app.state, "auth", None)
    owns_auth = auth is None
    if owns_auth:
        auth = SupabaseAuth.create()
        await auth.restore_session()

    record_store = getattr(app.state, "record_store", None)
    owns_store = record_store is None
    if owns_store:
        record_store = SupabaseRecordStore.create(token_provider=lambda: auth.access_token)

    cache_service = RecordCacheService.create(record_store=record_store, identity=auth)

    app.state.auth = auth
    app.state.record_store = record_store
    app.state.cache_service = cache_service
    app.state.medication_handler = MedicationHandler(cache_service=cache_service)
    app.state.auth_handler = AuthHandler(auth=auth)

    print("✓ Record cache initialized")
    print(f"✓ Table: {record_store.kind}")
    print(f"✓ Stale time: {settings.cache_stale_time}s")

    yield

    await cache_service.close()
    if owns_store:
        await record_store.close()
    if owns_auth:
        await auth.close()

    del app.state.auth_handler
    del app.state.medication_handler
    del app.state.cache_service
    if owns_store:
        del app.state.record_store
    if owns_auth:
        del app.state.auth
    print("✓ Record cache shut down")


# Type aliases for cleaner dependency injection
MedicationHandlerDep = Annotated[MedicationHandler, Depends(get_medication_handler)]
AuthHandlerDep = Annotated[AuthHandler, Depends(get_auth_handler)]
