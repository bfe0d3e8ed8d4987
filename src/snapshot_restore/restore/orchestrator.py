"""Restore orchestration: download, safety backup, delete, insert, log.

The pipeline is strictly sequential and never branches back::

    download -> safety_backup -> delete -> insert -> log_and_complete

Outcomes:

- ``restored``: every table deleted and every chunk upserted.
- ``partial``: the pipeline ran to the end but some tables or chunks
  failed; their messages are collected verbatim.
- ``failed``: the snapshot could not be downloaded/parsed, or a phase
  raised unexpectedly.  Nothing is deleted when the download fails.

Every invocation that passes name validation and acquires the lock leaves
exactly one audit record and ends its progress stream with exactly one
terminal event.

Usage:
    from snapshot_restore.restore.orchestrator import RestoreOrchestrator, stream_restore

    orchestrator = RestoreOrchestrator(adapter, store)
    summary = await orchestrator.run("backup_week_2.json")

    async for line in stream_restore(orchestrator, "backup_week_2.json"):
        ...
"""

import logging
import re
import time
from collections.abc import AsyncIterator

from snapshot_restore.adapters.base import DatabaseClient
from snapshot_restore.config.models import RestoreSettings
from snapshot_restore.restore.audit import RestoreAuditLogger
from snapshot_restore.restore.catalog import SCHOOL_SCHEMA, RestoreSchema, topological_order
from snapshot_restore.restore.checkpoint import CheckpointStore, RestoreCheckpoint
from snapshot_restore.restore.deleter import DependencyOrderedDeleter
from snapshot_restore.restore.errors import (
    InvalidSnapshotNameError,
    SnapshotDownloadError,
    SnapshotParseError,
)
from snapshot_restore.restore.lock import InProcessRestoreLock, RestoreLock
from snapshot_restore.restore.models import (
    InsertResult,
    RestoreSummary,
    Snapshot,
    SnapshotPreview,
    SummaryStatus,
)
from snapshot_restore.restore.progress import ProgressReporter, stream_events
from snapshot_restore.restore.safety import SafetyBackupWriter
from snapshot_restore.restore.upserter import ChunkedUpserter
from snapshot_restore.storage.base import SnapshotStore

logger = logging.getLogger(__name__)


class RestoreOrchestrator:
    """Runs one restore at a time against an injected database and store.

    Args:
        adapter: Target database (also holds the audit table).
        store: Blob store holding snapshots, the safety slot and the
            checkpoint.
        schema: Table catalog; both processing orders derive from it.
        settings: Restore settings (names, chunk size, pattern, lock id).
        lock: Single-flight guard.  Defaults to an in-process lock keyed
            by ``settings.lock_id``.

    Example:
        orchestrator = RestoreOrchestrator(adapter, LocalSnapshotStore("backups"))
        summary = await orchestrator.run("backup_week_1.json")
        print(summary.status, summary.total_rows)
    """

    def __init__(
        self,
        adapter: DatabaseClient,
        store: SnapshotStore,
        schema: RestoreSchema = SCHOOL_SCHEMA,
        settings: RestoreSettings | None = None,
        lock: RestoreLock | None = None,
    ) -> None:
        self._adapter = adapter
        self._store = store
        self._schema = schema
        self._settings = settings or RestoreSettings()
        self._lock = lock or InProcessRestoreLock(self._settings.lock_id)
        self._pattern = re.compile(self._settings.snapshot_pattern)
        self._audit = RestoreAuditLogger(adapter, self._settings.audit_table)
        self._checkpoints = CheckpointStore(store, self._settings.checkpoint_name)

        self.insert_order: tuple[str, ...] = tuple(topological_order(schema))
        self.delete_order: tuple[str, ...] = tuple(reversed(self.insert_order))

    @property
    def audit(self) -> RestoreAuditLogger:
        return self._audit

    def validate_name(self, file_name: str) -> None:
        """Reject names outside the snapshot slots before any I/O.

        Raises:
            InvalidSnapshotNameError: If ``file_name`` does not match
                ``settings.snapshot_pattern``.
        """
        if not file_name or not self._pattern.fullmatch(file_name):
            raise InvalidSnapshotNameError(f"Invalid file name: {file_name!r}")

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def preview(self, file_name: str) -> SnapshotPreview:
        """Download a snapshot and describe it without touching the database.

        Raises:
            InvalidSnapshotNameError: Bad name.
            SnapshotDownloadError: Blob missing or unreadable.
            SnapshotParseError: Blob is not a snapshot.
        """
        self.validate_name(file_name)
        raw = await self._download(file_name)
        snapshot = self._parse(raw)
        return SnapshotPreview(
            file_name=file_name,
            metadata=snapshot.metadata,
            tables={name: t.count for name, t in snapshot.tables.items()},
            file_size_bytes=len(raw),
        )

    async def run(
        self,
        file_name: str,
        reporter: ProgressReporter | None = None,
        resume: bool = False,
    ) -> RestoreSummary:
        """Replace all live data with the contents of ``file_name``.

        Args:
            file_name: Snapshot slot, e.g. ``"backup_week_3.json"``.
            reporter: Receives progress events.  A private one is used when
                omitted (its events are then only logged).
            resume: Continue an interrupted run of the same snapshot from
                its checkpoint instead of starting over.

        Returns:
            The ``RestoreSummary`` that was also written to the audit log.

        Raises:
            InvalidSnapshotNameError: Bad name; nothing else happens.
            RestoreInProgressError: Another restore holds the lock.
        """
        self.validate_name(file_name)
        reporter = reporter or ProgressReporter()

        async with self._lock.hold():
            logger.info("Restore of %s started (resume=%s)", file_name, resume)
            summary = await self._run(file_name, reporter, resume)
            logger.info(
                "Restore of %s finished: %s (%d tables, %d rows, %d ms)",
                file_name,
                summary.status,
                summary.tables_count,
                summary.total_rows,
                summary.duration_ms,
            )
            return summary

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run(
        self,
        file_name: str,
        reporter: ProgressReporter,
        resume: bool,
    ) -> RestoreSummary:
        started = time.monotonic()

        # === Phase 1: download ===
        await reporter.send("download", "in_progress", message="Downloading snapshot...")
        try:
            raw = await self._download(file_name)
            snapshot = self._parse(raw)
        except (SnapshotDownloadError, SnapshotParseError) as e:
            logger.error("Restore of %s aborted: %s", file_name, e)
            return await self._fail(file_name, reporter, started, e)

        await reporter.send("download", "complete", metadata=snapshot.metadata)

        errors: list[str] = []
        try:
            checkpoint = await self._resume_point(file_name) if resume else None

            # === Phase 2: safety backup ===
            if checkpoint is None:
                await SafetyBackupWriter(
                    self._adapter,
                    self._store,
                    reporter,
                    blob_name=self._settings.safety_backup_name,
                ).take(self._schema.table_names)
                checkpoint = RestoreCheckpoint(file_name=file_name)
                await self._checkpoints.save(checkpoint)
            else:
                await reporter.send(
                    "safety_backup",
                    "complete",
                    message="Resuming; keeping the safety backup of the interrupted run",
                )

            # === Phase 3: delete ===
            if not checkpoint.deleted:
                deleter = DependencyOrderedDeleter(self._adapter, reporter)
                delete_results = await deleter.delete_all(self.delete_order)
            elif checkpoint.failed_deletes:
                # Tables the interrupted run could not empty still hold old rows
                retry = [t for t in self.delete_order if t in checkpoint.failed_deletes]
                checkpoint.inserted_tables = [
                    t for t in checkpoint.inserted_tables if t not in retry
                ]
                deleter = DependencyOrderedDeleter(self._adapter, reporter)
                delete_results = await deleter.delete_all(retry)
            else:
                delete_results = []
                total = len(self.delete_order)
                await reporter.send(
                    "delete",
                    "complete",
                    progress=total,
                    total=total,
                    message="Delete phase already completed",
                )

            if delete_results:
                checkpoint.failed_deletes = [r.table for r in delete_results if r.error]
                for result in delete_results:
                    if result.error:
                        errors.append(f"{result.table}: {result.error}")
                checkpoint.deleted = True
                await self._checkpoints.save(checkpoint)

            # === Phase 4: insert ===
            async def _table_done(result: InsertResult) -> None:
                if not result.errors:
                    checkpoint.inserted_tables.append(result.table)
                    await self._checkpoints.save(checkpoint)

            upserter = ChunkedUpserter(
                self._adapter,
                self._schema,
                reporter,
                chunk_size=self._settings.chunk_size,
            )
            insert_results = await upserter.insert_all(
                self.insert_order,
                snapshot,
                already_restored=set(checkpoint.inserted_tables),
                on_table_done=_table_done,
            )
        except Exception as e:
            logger.exception("Restore of %s failed mid-pipeline", file_name)
            return await self._fail(file_name, reporter, started, e, file_size=len(raw))

        for result in insert_results:
            errors.extend(result.errors)
        tables_restored = len(insert_results)
        # Tables finished before an interruption still count toward the totals
        total_rows = sum(
            len(snapshot.rows(r.table)) if r.skipped else r.inserted
            for r in insert_results
        )

        checkpoint.completed = True
        await self._checkpoints.save(checkpoint)

        # === Phase 5: log and complete ===
        status: SummaryStatus = "partial" if errors else "restored"
        summary = RestoreSummary(
            file_name=file_name,
            status=status,
            tables_count=tables_restored,
            total_rows=total_rows,
            file_size_bytes=len(raw),
            duration_ms=_elapsed_ms(started),
            error_message="; ".join(errors) if errors else None,
            errors=tuple(errors),
        )
        await self._audit.record(summary)

        if errors:
            message = f"Restore finished with errors in {len(errors)} operation(s)"
        else:
            message = f"Restore complete: {tables_restored} tables, {total_rows:,} rows"

        await reporter.send(
            "complete",
            "partial" if errors else "success",
            tables_restored=tables_restored,
            total_rows_restored=total_rows,
            duration_ms=summary.duration_ms,
            errors=errors,
            message=message,
        )
        return summary

    async def _fail(
        self,
        file_name: str,
        reporter: ProgressReporter,
        started: float,
        error: Exception,
        file_size: int = 0,
    ) -> RestoreSummary:
        summary = RestoreSummary(
            file_name=file_name,
            status="failed",
            file_size_bytes=file_size,
            duration_ms=_elapsed_ms(started),
            error_message=f"Restore failed: {error}",
        )
        await self._audit.record(summary)
        await reporter.send(
            "error",
            "error",
            error=str(error),
            duration_ms=summary.duration_ms,
        )
        return summary

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _download(self, file_name: str) -> bytes:
        try:
            raw = await self._store.get(file_name)
        except Exception as e:
            raise SnapshotDownloadError(f"Could not download {file_name}: {e}") from e
        if not raw:
            raise SnapshotDownloadError(f"Snapshot {file_name} is empty")
        return raw

    @staticmethod
    def _parse(raw: bytes) -> Snapshot:
        try:
            return Snapshot.model_validate_json(raw)
        except ValueError as e:
            raise SnapshotParseError(f"Invalid snapshot: {e}") from e

    async def _resume_point(self, file_name: str) -> RestoreCheckpoint | None:
        checkpoint = await self._checkpoints.load()
        if checkpoint is None or not checkpoint.resumes(file_name):
            logger.info("No unfinished restore of %s to resume; starting fresh", file_name)
            return None
        logger.info(
            "Resuming restore of %s (deleted=%s, %d tables already inserted)",
            file_name,
            checkpoint.deleted,
            len(checkpoint.inserted_tables),
        )
        return checkpoint


def stream_restore(
    orchestrator: RestoreOrchestrator,
    file_name: str,
    resume: bool = False,
) -> AsyncIterator[bytes]:
    """Run a restore and yield its progress as NDJSON lines.

    Name validation happens eagerly so a bad name raises
    ``InvalidSnapshotNameError`` before a stream is opened.
    """
    orchestrator.validate_name(file_name)
    return stream_events(
        lambda reporter: orchestrator.run(file_name, reporter=reporter, resume=resume)
    )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
