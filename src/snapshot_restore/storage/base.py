"""Snapshot store protocol definition.

A snapshot store is a flat namespace of named blobs.  The restore engine
downloads one snapshot, uploads the pre-restore safety backup, and keeps
its resume checkpoint there.

Usage:
    from snapshot_restore.storage.base import SnapshotStore

    async def copy(store: SnapshotStore, src: str, dst: str) -> None:
        await store.put(dst, await store.get(src))
"""

from typing import Protocol


class SnapshotStore(Protocol):
    """Blob storage interface consumed by the restore engine."""

    async def get(self, name: str) -> bytes:
        """Download the blob stored under ``name``.

        Raises:
            FileNotFoundError: If no blob exists under ``name``.
            Exception: On any transport error.
        """
        ...

    async def put(
        self,
        name: str,
        data: bytes,
        content_type: str = "application/json",
    ) -> None:
        """Upload ``data`` under ``name``, replacing any existing blob."""
        ...
