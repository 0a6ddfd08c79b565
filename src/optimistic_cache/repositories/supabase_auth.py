"""Supabase implementation of IdentitySource.

Uses the project's GoTrue endpoint (``/auth/v1``) for password sign-in,
sign-up, sign-out and session restore. The identity starts out resolving
and stays so until ``restore_session()`` has run, which keeps the cache
from fetching for a user whose session is still being checked.

Every change of identity is pushed to subscribers.
"""

import logging
from collections.abc import Callable
from typing import Any

import httpx

from optimistic_cache.config import get_http_client
from optimistic_cache.entities import ANONYMOUS, RESOLVING, Identity
from optimistic_cache.errors import AuthError
from optimistic_cache.protocols import IdentityListener

from .supabase_record_store import response_error_message

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class SupabaseAuth:
    """Supabase GoTrue implementation of the IdentitySource protocol.

    This class satisfies the IdentitySource protocol through structural
    typing - no explicit inheritance needed.

    Example:
        ```python
        auth = SupabaseAuth.create()
        await auth.restore_session()            # resolving -> signed out
        await auth.sign_in_with_password("you@example.com", "secret")
        auth.current().user_id                  # "3f0c..."
        ```
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        """Initialize the Supabase auth provider.

        Args:
            client: HTTP client with the project base URL and anon key.
                If None, one is created from settings on first use.
        """
        self._client = client
        self._identity = RESOLVING
        self._access_token: str | None = None
        self._refresh_token: str | None = None
        self._listeners: list[IdentityListener] = []

    @classmethod
    def create(cls) -> "SupabaseAuth":
        """Factory method to create SupabaseAuth from settings."""
        return cls()

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = get_http_client()
        return self._client

    @property
    def access_token(self) -> str | None:
        """Get the signed-in user's access token."""
        return self._access_token

    @property
    def refresh_token(self) -> str | None:
        """Get the signed-in user's refresh token."""
        return self._refresh_token

    def current(self) -> Identity:
        """Return the current identity."""
        return self._identity

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """Register a listener called with each new identity."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def restore_session(
        self,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ) -> Identity:
        """Resolve the identity from stored tokens.

        Tries the access token first, then the refresh token. Ends signed
        out when neither yields a user; never leaves the identity resolving.

        Args:
            access_token: Previously issued access token
            refresh_token: Previously issued refresh token

        Returns:
            The resolved identity
        """
        if access_token:
            try:
                user = await self._call("GET", "/auth/v1/user", token=access_token)
                self._access_token = access_token
                self._refresh_token = refresh_token
                self._set_identity(self._identity_from_user(user))
                return self._identity
            except AuthError as e:
                logger.info("Stored access token rejected: %s", e)

        if refresh_token:
            try:
                session = await self._call(
                    "POST",
                    "/auth/v1/token",
                    params={"grant_type": "refresh_token"},
                    json={"refresh_token": refresh_token},
                )
                self._start_session(session)
                return self._identity
            except AuthError as e:
                logger.info("Stored refresh token rejected: %s", e)

        self._clear_session()
        return self._identity

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        """Sign in with email and password.

        Returns:
            The signed-in identity

        Raises:
            AuthError: If the credentials are missing or rejected
        """
        self._validate_credentials(email, password)
        session = await self._call(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        self._start_session(session)
        logger.info("Signed in as %s", self._identity.user_id)
        return self._identity

    async def sign_up(self, email: str, password: str) -> Identity:
        """Create an account.

        When the project requires email confirmation, no session is started
        and the returned identity is still signed out.

        Returns:
            The identity after sign-up

        Raises:
            AuthError: If the credentials are invalid or rejected
        """
        self._validate_credentials(email, password)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")

        data = await self._call("POST", "/auth/v1/signup", json={"email": email, "password": password})
        if data.get("access_token"):
            self._start_session(data)
        else:
            logger.info("Sign-up for %s awaits email confirmation", email)
            self._clear_session()
        return self._identity

    async def sign_out(self) -> None:
        """End the session locally and, best effort, on the server."""
        token = self._access_token
        self._clear_session()
        if token:
            try:
                await self._call("POST", "/auth/v1/logout", token=token)
            except AuthError as e:
                logger.warning("Server-side sign-out failed: %s", e)

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _validate_credentials(email: str, password: str) -> None:
        if not email or not password:
            raise AuthError("Email and password are required.")

    @staticmethod
    def _identity_from_user(user: dict[str, Any]) -> Identity:
        try:
            return Identity(user_id=str(user["id"]), email=user.get("email"))
        except KeyError as e:
            raise AuthError("Malformed user from Supabase") from e

    def _start_session(self, session: dict[str, Any]) -> None:
        identity = self._identity_from_user(session.get("user") or {})
        self._access_token = session.get("access_token")
        self._refresh_token = session.get("refresh_token")
        self._set_identity(identity)

    def _clear_session(self) -> None:
        self._access_token = None
        self._refresh_token = None
        self._set_identity(ANONYMOUS)

    def _set_identity(self, identity: Identity) -> None:
        if identity == self._identity:
            return
        self._identity = identity
        for listener in list(self._listeners):
            listener(identity)

    async def _call(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        token: str | None = None,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        try:
            response = await self.client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            raise AuthError(f"Supabase auth request failed: {e}") from e

        if response.is_error:
            raise AuthError(response_error_message(response))

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise AuthError(f"Invalid JSON from Supabase auth: {e}") from e
