"""Supabase implementation of RecordStore.

Talks to the project's PostgREST endpoint (``/rest/v1``) with an async
httpx client. Row-level security on the table restricts every request to
the rows of the signed-in user, so requests carry the user's access token
when one is available and the anon key otherwise.

Rows are mapped to records as follows:
- ``id`` -> Record.id
- ``created_at`` -> Record.created_at (ISO-8601, UTC)
- ``user_id`` -> Record.owner_id
- every other column -> Record.fields
"""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import httpx

from optimistic_cache.config import get_http_client, settings
from optimistic_cache.entities import Record
from optimistic_cache.errors import RemoteStoreError

TokenProvider = Callable[[], str | None]


def response_error_message(response: httpx.Response) -> str:
    """Extract the error message from a Supabase error response.

    PostgREST reports ``message``; GoTrue reports ``msg``,
    ``error_description`` or ``error``.
    """
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(data, dict):
        for field in ("message", "msg", "error_description", "error"):
            if data.get(field):
                return str(data[field])
    return f"HTTP {response.status_code}"


def parse_timestamp(value: str) -> datetime:
    """Parse a Supabase timestamp, assuming UTC when no offset is given."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SupabaseRecordStore:
    """Supabase PostgREST implementation of the RecordStore protocol.

    This class satisfies the RecordStore protocol through structural
    typing - no explicit inheritance needed.

    Example:
        ```python
        auth = SupabaseAuth.create()
        store = SupabaseRecordStore.create(token_provider=lambda: auth.access_token)

        records = await store.list_by_owner(user_id)
        record = await store.insert(user_id, {"name": "Aspirin", "dosage": "100mg"})
        ```
    """

    def __init__(
        self,
        table: str | None = None,
        client: httpx.AsyncClient | None = None,
        token_provider: TokenProvider | None = None,
    ) -> None:
        """Initialize the Supabase record store.

        Args:
            table: Table (entity kind) to read and write. Defaults to settings.
            client: HTTP client with the project base URL and anon key.
                If None, one is created from settings on first use.
            token_provider: Returns the signed-in user's access token.
        """
        self._table = table or settings.records_table
        self._client = client
        self._token_provider = token_provider

    @classmethod
    def create(
        cls,
        table: str | None = None,
        token_provider: TokenProvider | None = None,
    ) -> "SupabaseRecordStore":
        """Factory method to create SupabaseRecordStore with defaults.

        Args:
            table: Table name. If None, uses settings.
            token_provider: Access token source, usually SupabaseAuth.

        Returns:
            Configured SupabaseRecordStore
        """
        return cls(table=table, token_provider=token_provider)

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client.

        Returns:
            The httpx.AsyncClient instance
        """
        if self._client is None:
            self._client = get_http_client()
        return self._client

    @property
    def kind(self) -> str:
        """Get the table this store reads and writes."""
        return self._table

    async def list_by_owner(self, owner_id: str) -> list[Record]:
        """List every record owned by a user, oldest first.

        Args:
            owner_id: Identifier of the owning user

        Returns:
            Records ordered by created_at ascending

        Raises:
            RemoteStoreError: If the request fails
        """
        rows = await self._request(
            "GET",
            params={
                "select": "*",
                "user_id": f"eq.{owner_id}",
                "order": "created_at.asc",
            },
        )
        return [self._to_record(row) for row in rows]

    async def insert(self, owner_id: str, fields: dict[str, Any]) -> Record:
        """Insert one record and return it as stored.

        Args:
            owner_id: Identifier of the owning user
            fields: Domain fields of the new record

        Returns:
            The stored record with its server-assigned id and timestamp

        Raises:
            RemoteStoreError: If the insert is rejected or the request fails
        """
        rows = await self._request(
            "POST",
            json={**fields, "user_id": owner_id},
            headers={"Prefer": "return=representation"},
        )
        if len(rows) != 1:
            raise RemoteStoreError(f"Expected one inserted row, got {len(rows)}")
        return self._to_record(rows[0])

    async def is_available(self) -> bool:
        """Check if the PostgREST endpoint answers.

        Returns:
            True if reachable, False otherwise
        """
        try:
            await self._request("GET", params={"select": "id", "limit": "0"})
            return True
        except (RemoteStoreError, ValueError):
            return False

    async def close(self) -> None:
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        request_headers = dict(headers or {})
        token = self._token_provider() if self._token_provider else None
        if token:
            request_headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self.client.request(
                method,
                f"/rest/v1/{self._table}",
                params=params,
                json=json,
                headers=request_headers,
            )
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"Supabase request failed: {e}") from e

        if response.is_error:
            raise RemoteStoreError(response_error_message(response), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise RemoteStoreError(f"Invalid JSON from Supabase: {e}") from e

    @staticmethod
    def _to_record(row: dict[str, Any]) -> Record:
        fields = dict(row)
        try:
            return Record(
                id=str(fields.pop("id")),
                created_at=parse_timestamp(fields.pop("created_at")),
                owner_id=str(fields.pop("user_id")),
                fields=fields,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteStoreError(f"Malformed row from Supabase: {e}") from e
