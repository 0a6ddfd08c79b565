"""
Tests for domain entities.
"""

import pytest

from optimistic_cache.entities import (
    ANONYMOUS,
    RESOLVING,
    CollectionKey,
    Identity,
    QueryResult,
    QueryStatus,
    sort_by_created_at,
)
from optimistic_cache.errors import RemoteReadFailedError


def test_sort_is_stable(record_factory):
    """Test records sharing a timestamp keep their relative order."""
    late = record_factory("late", minutes=5)
    first = record_factory("first", minutes=1)
    second = record_factory("second", minutes=1)

    assert [r.id for r in sort_by_created_at([late, first, second])] == ["first", "second", "late"]


def test_placeholder_detection(record_factory):
    assert record_factory("optimistic-123").is_placeholder
    assert not record_factory("42").is_placeholder


@pytest.mark.parametrize(
    "identity, resolved",
    [
        (RESOLVING, False),
        (ANONYMOUS, False),
        (Identity(user_id="user-a", resolving=True), False),
        (Identity(user_id="user-a"), True),
    ],
)
def test_identity_resolution(identity, resolved):
    assert identity.is_resolved is resolved


def test_collection_keys_by_owner():
    """Test keys for different owners are distinct."""
    assert CollectionKey("medications", "user-a") != CollectionKey("medications", "user-b")
    assert str(CollectionKey("medications", "user-a")) == "medications:user-a"


def test_query_result(record_factory):
    error = RemoteReadFailedError("Failed to fetch medications: timeout")
    result = QueryResult(
        key=CollectionKey("medications", "user-a"),
        status=QueryStatus.ERROR,
        data=(record_factory("1"), record_factory("optimistic-2")),
        error=error,
    )

    assert result.has_pending_writes
    with pytest.raises(RemoteReadFailedError):
        result.raise_for_error()
    QueryResult(key=None, status=QueryStatus.NOT_READY).raise_for_error()
