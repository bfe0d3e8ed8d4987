"""Append-only audit log of restore runs."""

import logging

from snapshot_restore.adapters.base import DatabaseClient
from snapshot_restore.restore.models import RestoreSummary

logger = logging.getLogger(__name__)

AUDIT_TABLE = "backup_logs"


class RestoreAuditLogger:
    """Writes one ``RestoreSummary`` row per restore invocation.

    Records are only ever inserted, never updated.  The table is shared with
    the weekly backup job, which writes ``success``/``failed`` rows of its own.

    Args:
        adapter: Database holding the audit table.
        table: Audit table name.
    """

    def __init__(self, adapter: DatabaseClient, table: str = AUDIT_TABLE) -> None:
        self._adapter = adapter
        self._table = table

    async def record(self, summary: RestoreSummary) -> bool:
        """Insert ``summary``.  A logging failure never fails the restore.

        Returns:
            ``True`` if the row was written.
        """
        try:
            await self._adapter.insert(self._table, summary.to_log_record())
        except Exception as e:
            logger.warning(
                "Could not write audit record for %s (%s): %s",
                summary.file_name,
                summary.status,
                e,
            )
            return False
        return True

    async def recent(self, limit: int = 50) -> list[dict]:
        """Most recent audit rows, newest first."""
        return await self._adapter.select(
            self._table,
            "*",
            order_by="created_at",
            descending=True,
            limit=limit,
        )
