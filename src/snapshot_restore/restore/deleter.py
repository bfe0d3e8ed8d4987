"""Empty every table in dependency order (children before parents)."""

import logging
from collections.abc import Sequence

from snapshot_restore.adapters.base import DatabaseClient, Predicate
from snapshot_restore.restore.models import DeleteResult
from snapshot_restore.restore.progress import ProgressReporter

logger = logging.getLogger(__name__)

# Both predicates match every row.  PostgREST rejects an unfiltered DELETE,
# and a range on a UUID key fails on text keys, hence the fallback.
MATCH_ALL = Predicate("id", "gte", "00000000-0000-0000-0000-000000000000")
MATCH_ALL_FALLBACK = Predicate("id", "neq", "")


class DependencyOrderedDeleter:
    """Deletes all rows of each table, strictly one table at a time.

    A table that cannot be emptied is recorded and skipped; the pass
    continues with the next table.

    Args:
        adapter: Target database.
        reporter: Receives ``delete`` phase events.
    """

    def __init__(self, adapter: DatabaseClient, reporter: ProgressReporter) -> None:
        self._adapter = adapter
        self._reporter = reporter

    async def delete_all(self, order: Sequence[str]) -> list[DeleteResult]:
        """Empty every table in ``order``.

        Returns:
            One ``DeleteResult`` per table, in processing order.
        """
        total = len(order)
        results: list[DeleteResult] = []

        for done, table in enumerate(order):
            await self._reporter.send(
                "delete",
                "in_progress",
                table=table,
                progress=done,
                total=total,
                message=f"Deleting {table}...",
            )

            try:
                deleted = await self._delete_table(table)
            except Exception as e:
                logger.error("Delete failed on %s: %s", table, e)
                results.append(DeleteResult(table=table, error=str(e)))
                await self._reporter.send(
                    "delete",
                    "error",
                    table=table,
                    error=str(e),
                    progress=done + 1,
                    total=total,
                )
                continue

            results.append(DeleteResult(table=table, deleted=deleted))
            await self._reporter.send(
                "delete",
                "complete",
                table=table,
                counts={"deleted": deleted},
                progress=done + 1,
                total=total,
            )

        return results

    async def _delete_table(self, table: str) -> int:
        count = await self._adapter.count(table)
        if count == 0:
            return 0

        try:
            await self._adapter.delete(table, MATCH_ALL)
        except Exception as first_error:
            logger.debug("Range delete rejected on %s (%s), retrying", table, first_error)
            await self._adapter.delete(table, MATCH_ALL_FALLBACK)

        return count
