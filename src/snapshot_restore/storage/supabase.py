"""Supabase Storage snapshot store.

Usage:
    from snapshot_restore.adapters.supabase import AsyncSupabaseAdapter
    from snapshot_restore.storage.supabase import SupabaseSnapshotStore

    adapter = AsyncSupabaseAdapter(url, key)
    store = SupabaseSnapshotStore(adapter, bucket="backups")
    raw = await store.get("backup_week_2.json")
"""

from snapshot_restore.adapters.supabase import AsyncSupabaseAdapter


class SupabaseSnapshotStore:
    """``SnapshotStore`` over a Supabase Storage bucket.

    Shares the lazily created client of an ``AsyncSupabaseAdapter`` so one
    restore holds a single Supabase connection.

    Args:
        adapter: Adapter whose client is reused.
        bucket: Storage bucket name.
    """

    def __init__(self, adapter: AsyncSupabaseAdapter, bucket: str = "backups") -> None:
        self._adapter = adapter
        self._bucket = bucket

    async def get(self, name: str) -> bytes:
        client = await self._adapter.get_client()
        return await client.storage.from_(self._bucket).download(name)

    async def put(
        self,
        name: str,
        data: bytes,
        content_type: str = "application/json",
    ) -> None:
        client = await self._adapter.get_client()
        await client.storage.from_(self._bucket).upload(
            path=name,
            file=data,
            file_options={"content-type": content_type, "upsert": "true"},
        )
