"""Pre-restore safety backup.

Before any destructive step the current contents of every table are saved
as one blob under a fixed name.  Each restore overwrites the previous
safety backup; there is exactly one slot.

Usage:
    writer = SafetyBackupWriter(adapter, store, reporter)
    written = await writer.take(TABLES_TO_BACKUP)
"""

import json
import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from snapshot_restore.adapters.base import DatabaseClient
from snapshot_restore.restore.progress import ProgressReporter
from snapshot_restore.storage.base import SnapshotStore

logger = logging.getLogger(__name__)

SAFETY_BACKUP_NAME = "backup_pre_restore.json"
SAFETY_BACKUP_TYPE = "pre_restore_safety"


class SafetyBackupWriter:
    """Best-effort snapshot of live data taken right before a restore.

    Args:
        adapter: Source of the current rows.
        store: Destination blob store.
        reporter: Receives the ``safety_backup`` phase events.
        blob_name: Name of the safety slot.
    """

    def __init__(
        self,
        adapter: DatabaseClient,
        store: SnapshotStore,
        reporter: ProgressReporter,
        blob_name: str = SAFETY_BACKUP_NAME,
    ) -> None:
        self._adapter = adapter
        self._store = store
        self._reporter = reporter
        self._blob_name = blob_name

    async def take(self, tables: Iterable[str]) -> bool:
        """Read every table in ``tables`` and upload them as one blob.

        Any failure while reading or uploading is reported as a ``warning``
        and swallowed; the restore goes on without a safety net.

        Returns:
            ``True`` if the blob was written.
        """
        await self._reporter.send(
            "safety_backup", "in_progress", message="Creating safety backup..."
        )

        try:
            payload = await self._collect(tables)
            await self._store.put(
                self._blob_name,
                json.dumps(payload, default=str).encode("utf-8"),
                content_type="application/json",
            )
        except Exception as e:
            logger.warning("Safety backup failed, continuing restore: %s", e)
            await self._reporter.send(
                "safety_backup",
                "warning",
                error=str(e),
                message="Safety backup failed; continuing with restore",
            )
            return False

        metadata = payload["metadata"]
        logger.info(
            "Safety backup written to %s (%d tables, %d rows)",
            self._blob_name,
            metadata["tables_count"],
            metadata["total_rows"],
        )
        await self._reporter.send(
            "safety_backup",
            "complete",
            message=f"Safety backup saved as {self._blob_name}",
        )
        return True

    async def _collect(self, tables: Iterable[str]) -> dict[str, Any]:
        data: dict[str, dict[str, Any]] = {}
        total_rows = 0

        for table in tables:
            rows = await self._adapter.select(table, "*")
            data[table] = {"count": len(rows), "data": rows}
            total_rows += len(rows)

        return {
            "metadata": {
                "created_at": datetime.now(timezone.utc).isoformat(),
                # 0 marks a pre-restore capture rather than a weekly slot
                "week_number": 0,
                "tables_count": len(data),
                "total_rows": total_rows,
                "type": SAFETY_BACKUP_TYPE,
            },
            "tables": data,
        }
