"""Directory-backed snapshot store.

Blobs are plain files in one directory, which matches how weekly snapshots
are kept when the database is a self-hosted PostgreSQL.

Usage:
    from snapshot_restore.storage.local import LocalSnapshotStore

    store = LocalSnapshotStore("./backups")
    raw = await store.get("backup_week_1.json")
"""

import asyncio
from pathlib import Path


class LocalSnapshotStore:
    """``SnapshotStore`` over a local directory.

    File I/O runs in a worker thread so large snapshots do not block the
    event loop.  Writes go to a temporary sibling first and are renamed
    into place, so a reader never sees a half-written blob.

    Args:
        root: Directory holding the blobs.  Created on first write.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, name: str) -> Path:
        # Blob names are flat; reject anything that would escape the root
        if Path(name).name != name or name in ("", ".", ".."):
            raise ValueError(f"Invalid blob name: {name!r}")
        return self._root / name

    async def get(self, name: str) -> bytes:
        path = self._path(name)
        if not path.exists():
            raise FileNotFoundError(f"Snapshot not found: {path}")
        return await asyncio.to_thread(path.read_bytes)

    async def put(
        self,
        name: str,
        data: bytes,
        content_type: str = "application/json",
    ) -> None:
        path = self._path(name)
        await asyncio.to_thread(self._write, path, data)

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
