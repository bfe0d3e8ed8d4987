"""Replay snapshot rows in dependency order, in fixed-size upsert chunks."""

import logging
from collections.abc import Awaitable, Callable, Collection, Sequence
from typing import Any

from snapshot_restore.adapters.base import DatabaseClient
from snapshot_restore.restore.catalog import RestoreSchema
from snapshot_restore.restore.models import InsertResult, Snapshot
from snapshot_restore.restore.progress import ProgressReporter

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 500

TableDoneCallback = Callable[[InsertResult], Awaitable[None]]


class ChunkedUpserter:
    """Upserts each table's rows, parents before children.

    Chunks of one table are applied in order.  A failing chunk is recorded
    as ``"<table>[<start>-<end>]: <message>"`` and the next chunk still runs.
    Upserts are keyed on each table's primary key, so replaying a snapshot
    twice yields the same rows as replaying it once.

    Args:
        adapter: Target database.
        schema: Catalog supplying primary keys and nullified columns.
        reporter: Receives ``insert`` phase events.
        chunk_size: Rows per upsert call.
    """

    def __init__(
        self,
        adapter: DatabaseClient,
        schema: RestoreSchema,
        reporter: ProgressReporter,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._adapter = adapter
        self._schema = schema
        self._reporter = reporter
        self._chunk_size = chunk_size

    async def insert_all(
        self,
        order: Sequence[str],
        snapshot: Snapshot,
        already_restored: Collection[str] = (),
        on_table_done: TableDoneCallback | None = None,
    ) -> list[InsertResult]:
        """Replay ``snapshot`` into every table of ``order``.

        Args:
            order: Tables in insert order.
            snapshot: Parsed snapshot.  Its rows are not modified.
            already_restored: Tables finished by an earlier, interrupted run.
                They are reported as skipped and not written again.
            on_table_done: Awaited after each table that was actually written.

        Returns:
            One ``InsertResult`` per table, in processing order.
        """
        total = len(order)
        results: list[InsertResult] = []

        for done, table in enumerate(order):
            rows = snapshot.rows(table)

            await self._reporter.send(
                "insert",
                "in_progress",
                table=table,
                row_count=len(rows),
                progress=done,
                total=total,
                message=f"Restoring {table} ({len(rows)} rows)...",
            )

            if table in already_restored:
                result = InsertResult(table=table, skipped=True)
                results.append(result)
                await self._reporter.send(
                    "insert",
                    "complete",
                    table=table,
                    counts={"inserted": 0},
                    progress=done + 1,
                    total=total,
                    message=f"{table} already restored",
                )
                continue

            result = await self._insert_table(table, rows)
            results.append(result)

            if result.errors:
                await self._reporter.send(
                    "insert",
                    "warning",
                    table=table,
                    counts={"inserted": result.inserted},
                    errors=list(result.errors),
                    progress=done + 1,
                    total=total,
                )
            else:
                await self._reporter.send(
                    "insert",
                    "complete",
                    table=table,
                    counts={"inserted": result.inserted},
                    progress=done + 1,
                    total=total,
                )

            if on_table_done is not None:
                await on_table_done(result)

        return results

    async def _insert_table(self, table: str, rows: list[dict[str, Any]]) -> InsertResult:
        result = InsertResult(table=table)
        if not rows:
            return result

        table_def = self._schema.get(table)
        pk = table_def.pk if table_def else "id"
        nullify = table_def.nullify if table_def else []
        if nullify:
            rows = [{**row, **{col: None for col in nullify}} for row in rows]

        for start in range(0, len(rows), self._chunk_size):
            chunk = rows[start:start + self._chunk_size]
            try:
                await self._adapter.upsert(table, chunk, on_conflict=pk)
            except Exception as e:
                message = f"{table}[{start}-{start + len(chunk)}]: {e}"
                logger.error("Upsert chunk failed: %s", message)
                result.errors.append(message)
                continue
            result.inserted += len(chunk)

        logger.info("Restored %s: %d/%d rows", table, result.inserted, len(rows))
        return result
