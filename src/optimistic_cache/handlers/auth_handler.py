"""HTTP handlers for session operations."""

from fastapi import HTTPException, status

from optimistic_cache.dto import CredentialsRequest, SessionResponse
from optimistic_cache.entities import Identity
from optimistic_cache.errors import AuthError
from optimistic_cache.repositories import SupabaseAuth


def to_session_response(identity: Identity, message: str | None = None) -> SessionResponse:
    return SessionResponse(
        authenticated=identity.is_resolved,
        resolving=identity.resolving,
        user_id=identity.user_id,
        email=identity.email,
        message=message,
    )


class AuthHandler:
    """HTTP handlers for signing in and out.

    Signing in or out changes the identity every cached collection is keyed
    by; the cache reacts through its identity subscription.
    """

    def __init__(self, auth: SupabaseAuth) -> None:
        self._auth = auth

    async def sign_in(self, request: CredentialsRequest) -> SessionResponse:
        """Handle POST /auth/sign-in requests."""
        try:
            identity = await self._auth.sign_in_with_password(request.email, request.password)
        except AuthError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e),
            ) from e
        return to_session_response(identity, "Signed in")

    async def sign_up(self, request: CredentialsRequest) -> SessionResponse:
        """Handle POST /auth/sign-up requests."""
        try:
            identity = await self._auth.sign_up(request.email, request.password)
        except AuthError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e),
            ) from e

        if not identity.is_resolved:
            return to_session_response(
                identity,
                "Please check your email to confirm your account before logging in.",
            )
        return to_session_response(identity, "Signed up")

    async def sign_out(self) -> SessionResponse:
        """Handle POST /auth/sign-out requests."""
        await self._auth.sign_out()
        return to_session_response(self._auth.current(), "Signed out")

    async def session(self) -> SessionResponse:
        """Handle GET /auth/session requests."""
        return to_session_response(self._auth.current())
