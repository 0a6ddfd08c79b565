"""Shared fixtures: in-memory identity source and record store fakes."""

import asyncio
import itertools
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio

from optimistic_cache.entities import ANONYMOUS, CollectionKey, Identity, Record
from optimistic_cache.errors import AuthError, RemoteStoreError
from optimistic_cache.services import QueryCache, RecordCacheService

BASE_TIME = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


class FakeAuth:
    """Identity source whose identity tests set directly."""

    def __init__(self, identity: Identity) -> None:
        self._identity = identity
        self._listeners = []

    def current(self) -> Identity:
        return self._identity

    def subscribe(self, listener):
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def set(self, identity: Identity) -> None:
        self._identity = identity
        for listener in list(self._listeners):
            listener(identity)

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        if password != "secret":
            raise AuthError("Invalid login credentials")
        self.set(Identity(user_id=f"user-{email.split('@')[0]}", email=email))
        return self._identity

    async def sign_up(self, email: str, password: str) -> Identity:
        return self._identity

    async def sign_out(self) -> None:
        self.set(ANONYMOUS)


class FakeRecordStore:
    """Record store keeping rows in memory.

    Attributes:
        rows: Stored records per owner
        list_calls: Owner ids of every list call, in order
        insert_calls: (owner_id, fields) of every insert call, in order
        list_gate: When set, list calls wait for this event
        list_errors: Errors raised by upcoming list calls, in order
        insert_gates: Per-call events inserts wait for
        insert_outcomes: Per-call error message, or None for success
    """

    def __init__(self, kind: str = "medications") -> None:
        self.kind = kind
        self.rows: dict[str, list[Record]] = defaultdict(list)
        self.list_calls: list[str] = []
        self.insert_calls: list[tuple[str, dict[str, Any]]] = []
        self.list_gate: asyncio.Event | None = None
        self.list_errors: list[Exception] = []
        self.insert_gates: list[asyncio.Event] = []
        self.insert_outcomes: list[str | None] = []
        self.available = True
        self._ids = itertools.count(1)
        self._clock = itertools.count(100)

    async def list_by_owner(self, owner_id: str) -> list[Record]:
        self.list_calls.append(owner_id)
        rows = list(self.rows[owner_id])
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.list_errors:
            raise self.list_errors.pop(0)
        return rows

    async def insert(self, owner_id: str, fields: dict[str, Any]) -> Record:
        index = len(self.insert_calls)
        self.insert_calls.append((owner_id, dict(fields)))
        if index < len(self.insert_gates):
            await self.insert_gates[index].wait()
        if index < len(self.insert_outcomes) and self.insert_outcomes[index] is not None:
            raise RemoteStoreError(self.insert_outcomes[index], status_code=400)

        record = Record(
            id=f"server-{next(self._ids)}",
            created_at=datetime.now(timezone.utc) + timedelta(seconds=next(self._clock)),
            owner_id=owner_id,
            fields=dict(fields),
        )
        self.rows[owner_id].append(record)
        return record

    async def is_available(self) -> bool:
        return self.available


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_record(record_id: str, owner_id: str = "user-a", minutes: int = 0, **fields) -> Record:
    return Record(
        id=record_id,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        owner_id=owner_id,
        fields=fields or {"name": record_id},
    )


async def until(predicate, attempts: int = 100) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def wait_until():
    return until


@pytest.fixture
def auth():
    return FakeAuth(Identity(user_id="user-a", email="a@example.com"))


@pytest.fixture
def record_store():
    return FakeRecordStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return QueryCache(clock=clock)


@pytest.fixture
def key():
    return CollectionKey(kind="medications", owner_id="user-a")


@pytest_asyncio.fixture
async def service(cache, record_store, auth):
    service = RecordCacheService.create(
        record_store=record_store,
        identity=auth,
        cache=cache,
        stale_time=300,
        retry=0,
        retry_delay=0,
    )
    yield service
    await service.close()
