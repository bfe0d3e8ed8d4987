"""Tests for the audit log, the restore locks and the resume checkpoint."""

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import pytest
from conftest import FakeDatabase, FakeSnapshotStore

from snapshot_restore.restore.audit import AUDIT_TABLE, RestoreAuditLogger
from snapshot_restore.restore.checkpoint import CHECKPOINT_NAME, CheckpointStore, RestoreCheckpoint
from snapshot_restore.restore.errors import RestoreInProgressError
from snapshot_restore.restore.lock import AdvisoryRestoreLock, InProcessRestoreLock
from snapshot_restore.restore.models import RestoreSummary


# ------------------------------------------------------------------
# RestoreAuditLogger
# ------------------------------------------------------------------


class TestRestoreAuditLogger:
    async def test_record_writes_summary_row(self):
        db = FakeDatabase()
        summary = RestoreSummary(
            file_name="backup_week_1.json",
            status="partial",
            tables_count=28,
            total_rows=120,
            file_size_bytes=2048,
            duration_ms=950,
            error_message="rooms: denied",
            errors=("rooms: denied",),
        )

        assert await RestoreAuditLogger(db).record(summary) is True

        (row,) = db.rows(AUDIT_TABLE)
        assert row["file_name"] == "backup_week_1.json"
        assert row["status"] == "partial"
        assert row["tables_count"] == 28
        assert row["total_rows"] == 120
        assert row["file_size_bytes"] == 2048
        assert row["duration_ms"] == 950
        assert row["error_message"] == "rooms: denied"
        assert "errors" not in row

    async def test_record_failure_swallowed(self):
        adapter = AsyncMock()
        adapter.insert.side_effect = RuntimeError("backup_logs missing")

        ok = await RestoreAuditLogger(adapter).record(
            RestoreSummary(file_name="backup_week_1.json", status="failed")
        )

        assert ok is False

    async def test_recent_newest_first(self):
        db = FakeDatabase(
            {
                AUDIT_TABLE: [
                    {"id": "1", "created_at": "2026-10-01T00:00:00Z", "status": "success"},
                    {"id": "2", "created_at": "2026-10-08T00:00:00Z", "status": "restored"},
                    {"id": "3", "created_at": "2026-10-05T00:00:00Z", "status": "failed"},
                ]
            }
        )

        rows = await RestoreAuditLogger(db).recent(limit=2)

        assert [r["id"] for r in rows] == ["2", "3"]

    async def test_recent_query_shape(self):
        adapter = AsyncMock()
        adapter.select.return_value = []

        await RestoreAuditLogger(adapter, table="restore_log").recent()

        adapter.select.assert_awaited_once_with(
            "restore_log", "*", order_by="created_at", descending=True, limit=50
        )


# ------------------------------------------------------------------
# Locks
# ------------------------------------------------------------------


class TestInProcessRestoreLock:
    async def test_second_holder_rejected(self):
        lock = InProcessRestoreLock("test-lock-a")
        async with lock.hold():
            assert lock.locked()
            with pytest.raises(RestoreInProgressError):
                async with InProcessRestoreLock("test-lock-a").hold():
                    pass
        assert not lock.locked()

    async def test_released_after_exception(self):
        lock = InProcessRestoreLock("test-lock-b")
        with pytest.raises(RuntimeError):
            async with lock.hold():
                raise RuntimeError("boom")
        async with lock.hold():
            pass

    async def test_different_keys_independent(self):
        async with InProcessRestoreLock("test-lock-c").hold():
            async with InProcessRestoreLock("test-lock-d").hold():
                pass

    async def test_concurrent_tasks(self):
        lock = InProcessRestoreLock("test-lock-e")
        started = asyncio.Event()
        release = asyncio.Event()

        async def _first():
            async with lock.hold():
                started.set()
                await release.wait()

        task = asyncio.create_task(_first())
        await started.wait()
        with pytest.raises(RestoreInProgressError):
            async with lock.hold():
                pass
        release.set()
        await task


class _FakeAdvisoryAdapter:
    def __init__(self, acquired: bool) -> None:
        self.acquired = acquired
        self.keys: list[int] = []

    @asynccontextmanager
    async def advisory_lock(self, key):
        self.keys.append(key)
        yield self.acquired


class TestAdvisoryRestoreLock:
    async def test_acquired(self):
        adapter = _FakeAdvisoryAdapter(acquired=True)
        async with AdvisoryRestoreLock(adapter, 7313).hold():
            pass
        assert adapter.keys == [7313]

    async def test_held_elsewhere(self):
        adapter = _FakeAdvisoryAdapter(acquired=False)
        with pytest.raises(RestoreInProgressError, match="advisory lock 7313"):
            async with AdvisoryRestoreLock(adapter, 7313).hold():
                pass


# ------------------------------------------------------------------
# Checkpoint
# ------------------------------------------------------------------


class TestCheckpointStore:
    async def test_missing_checkpoint(self):
        assert await CheckpointStore(FakeSnapshotStore()).load() is None

    async def test_save_and_load(self):
        store = FakeSnapshotStore()
        checkpoints = CheckpointStore(store)
        await checkpoints.save(
            RestoreCheckpoint(file_name="backup_week_3.json", deleted=True, inserted_tables=["branches"])
        )

        loaded = await checkpoints.load()

        assert CHECKPOINT_NAME in store.blobs
        assert loaded.file_name == "backup_week_3.json"
        assert loaded.deleted is True
        assert loaded.inserted_tables == ["branches"]
        assert loaded.resumes("backup_week_3.json")
        assert not loaded.resumes("backup_week_4.json")

    async def test_completed_checkpoint_does_not_resume(self):
        assert not RestoreCheckpoint(file_name="backup_week_1.json", completed=True).resumes(
            "backup_week_1.json"
        )

    async def test_malformed_checkpoint_ignored(self):
        store = FakeSnapshotStore({CHECKPOINT_NAME: b"{not json"})
        assert await CheckpointStore(store).load() is None

    async def test_unreadable_checkpoint_ignored(self):
        store = FakeSnapshotStore()
        store.get_failures[CHECKPOINT_NAME] = RuntimeError("503")
        assert await CheckpointStore(store).load() is None

    async def test_save_failure_reported(self):
        store = FakeSnapshotStore()
        store.put_failures[CHECKPOINT_NAME] = RuntimeError("read-only")
        assert await CheckpointStore(store).save(RestoreCheckpoint(file_name="x")) is False
