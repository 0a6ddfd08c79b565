#!/usr/bin/env python3
"""
Demo script for the optimistic cache.

Signs in to a Supabase project, reads the user's medications, and adds one
optimistically so the placeholder is visible before the server confirms it.

Requires SUPABASE_URL and SUPABASE_ANON_KEY, plus DEMO_EMAIL and
DEMO_PASSWORD for an existing account.
"""

import asyncio
import os
import time

from optimistic_cache import RecordCacheService, SupabaseAuth, SupabaseRecordStore
from optimistic_cache.errors import AuthError, OptimisticCacheError


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def print_result(service: RecordCacheService) -> None:
    """Print the cached medications without fetching."""
    result = service.peek()
    print(f"  Status: {result.status.value} (stale: {result.is_stale})")
    for record in result.data or ():
        marker = "⏳" if record.is_placeholder else "✓"
        print(f"  {marker} {record.fields.get('name')} - {record.fields.get('dosage')} ({record.id})")


async def demo_read(service: RecordCacheService) -> None:
    """Demonstrate fetching and the freshness window."""
    print_section("Reading Medications")

    start = time.time()
    await service.read()
    print(f"\n📥 First read: {(time.time() - start) * 1000:.2f}ms")
    print_result(service)

    start = time.time()
    await service.read()
    print(f"\n⚡ Second read (within freshness window): {(time.time() - start) * 1000:.2f}ms")


async def demo_optimistic_add(service: RecordCacheService) -> None:
    """Demonstrate an optimistic insert."""
    print_section("Optimistic Insert")

    mutation = await service.mutate({"name": "Aspirin", "dosage": "100mg", "frequency": "Once daily"})
    print(f"\n📝 Applied placeholder {mutation.placeholder.id}")
    print_result(service)

    try:
        record = await mutation.wait()
        print(f"\n✓ Confirmed by server as {record.id}")
    except OptimisticCacheError as e:
        print(f"\n✗ Rolled back: {e}")

    await service.read()
    print("\n🔄 After refetch:")
    print_result(service)


async def main() -> None:
    """Run all demos."""
    print("\n🚀 Optimistic Cache Demo")
    print("=" * 70)

    auth = SupabaseAuth.create()
    store = SupabaseRecordStore.create(token_provider=lambda: auth.access_token)
    service = RecordCacheService.create(record_store=store, identity=auth)

    try:
        await auth.restore_session()
        await auth.sign_in_with_password(os.getenv("DEMO_EMAIL", ""), os.getenv("DEMO_PASSWORD", ""))
        print(f"👤 Signed in as {auth.current().email}")

        await demo_read(service)
        await demo_optimistic_add(service)

        print("\n" + "=" * 70)
        print("✅ Demo completed successfully!")
        print("=" * 70)

    except (AuthError, ValueError) as e:
        print(f"\n❌ Error: {e}")
        print("\nSet SUPABASE_URL, SUPABASE_ANON_KEY, DEMO_EMAIL and DEMO_PASSWORD.")

    finally:
        await service.close()
        await store.close()
        await auth.close()


if __name__ == "__main__":
    asyncio.run(main())
