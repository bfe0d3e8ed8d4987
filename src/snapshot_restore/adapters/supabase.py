"""Async Supabase database adapter.

Provides ``AsyncSupabaseAdapter``, an async implementation of the
``DatabaseClient`` protocol using the supabase-py async client.

The client is initialized lazily on first use with an ``asyncio.Lock``
to ensure thread-safe initialization.

Usage:
    from snapshot_restore.adapters.supabase import AsyncSupabaseAdapter

    adapter = AsyncSupabaseAdapter(
        url="https://xyzproject.supabase.co",
        key="eyJ...",
    )

    rows = await adapter.select("branches", "*")
    await adapter.close()
"""

import asyncio
from typing import Any

from supabase import AsyncClient, acreate_client

from snapshot_restore.adapters.base import Predicate


class AsyncSupabaseAdapter:
    """Async Supabase implementation of the ``DatabaseClient`` protocol.

    Wraps the Supabase Python async client to match the ``DatabaseClient``
    interface.  The client is initialized lazily on first call using
    ``acreate_client`` protected by an ``asyncio.Lock``.  The same client
    is shared with ``SupabaseSnapshotStore`` through ``get_client()``.

    Args:
        url: Supabase project URL.
        key: Supabase API key.  Restores need the service-role key since
            row-level security would otherwise hide rows.

    Example:
        adapter = AsyncSupabaseAdapter(
            url="https://xyzproject.supabase.co",
            key="eyJhbGciOiJIUzI1NiIs...",
        )
        total = await adapter.count("students")
        await adapter.close()
    """

    def __init__(self, url: str, key: str) -> None:
        self._url: str = url
        self._key: str = key
        self._client: AsyncClient | None = None
        self._lock: asyncio.Lock = asyncio.Lock()

    async def get_client(self) -> AsyncClient:
        """Get or create the async Supabase client.

        Uses an ``asyncio.Lock`` to ensure the client is created exactly
        once, even under concurrent access.
        """
        if self._client is None:
            async with self._lock:
                # Double-check after acquiring lock
                if self._client is None:
                    self._client = await acreate_client(self._url, self._key)
        return self._client

    # ------------------------------------------------------------------
    # CRUD Methods
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        """Select rows from table using Supabase query builder."""
        client = await self.get_client()
        query = client.table(table).select(columns)

        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)

        if order_by:
            query = query.order(order_by, desc=descending)

        if limit is not None:
            query = query.limit(limit)

        result = await query.execute()
        return result.data

    async def count(self, table: str) -> int:
        """Exact row count via a HEAD request (no rows transferred)."""
        client = await self.get_client()
        result = await (
            client.table(table).select("*", count="exact", head=True).execute()
        )
        return result.count or 0

    async def insert(self, table: str, data: dict) -> dict:
        """Insert row and return created row."""
        client = await self.get_client()
        result = await client.table(table).insert(data).execute()
        return result.data[0]

    async def upsert(
        self,
        table: str,
        rows: list[dict],
        on_conflict: str = "id",
    ) -> None:
        """Upsert a batch, updating rows whose ``on_conflict`` key exists."""
        if not rows:
            return
        client = await self.get_client()
        await (
            client.table(table)
            .upsert(rows, on_conflict=on_conflict, ignore_duplicates=False)
            .execute()
        )

    async def delete(self, table: str, predicate: Predicate) -> None:
        """Delete rows matching ``predicate``.

        PostgREST refuses a DELETE without a filter, so the predicate is
        mandatory; the builder method is named after the predicate op
        (``gte``, ``neq``, ...).
        """
        client = await self.get_client()
        query = client.table(table).delete()
        query = getattr(query, predicate.op)(predicate.column, predicate.value)
        await query.execute()

    async def close(self) -> None:
        """Close the Supabase async client.

        If the client was never initialized (no calls were made),
        this is a no-op.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
