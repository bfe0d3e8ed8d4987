"""Tests for DependencyOrderedDeleter."""

from conftest import FakeDatabase, make_rows

from snapshot_restore.restore.deleter import MATCH_ALL, MATCH_ALL_FALLBACK, DependencyOrderedDeleter
from snapshot_restore.restore.progress import ProgressReporter


class TestDeleteAll:
    """delete_all() empties tables one at a time in the given order."""

    async def test_empties_every_table_in_order(self):
        db = FakeDatabase({"rooms": make_rows("rooms", 3), "branches": make_rows("branches", 2)})
        reporter = ProgressReporter()

        results = await DependencyOrderedDeleter(db, reporter).delete_all(["rooms", "branches"])

        assert [(r.table, r.deleted, r.error) for r in results] == [
            ("rooms", 3, None),
            ("branches", 2, None),
        ]
        assert db.row_count("rooms") == 0
        assert db.row_count("branches") == 0
        assert db.calls_for("delete") == ["rooms", "branches"]

    async def test_empty_table_not_deleted(self):
        """A table with zero rows is counted but no delete is issued."""
        db = FakeDatabase({"rooms": []})

        results = await DependencyOrderedDeleter(db, ProgressReporter()).delete_all(["rooms"])

        assert results[0].deleted == 0
        assert db.calls_for("delete") == []

    async def test_falls_back_when_range_delete_rejected(self):
        db = FakeDatabase({"settings": make_rows("settings", 2)})
        db.delete_failures[("settings", MATCH_ALL.op)] = RuntimeError("invalid input syntax for type uuid")

        results = await DependencyOrderedDeleter(db, ProgressReporter()).delete_all(["settings"])

        assert results[0].error is None
        assert results[0].deleted == 2
        assert db.row_count("settings") == 0
        assert db.calls_for("delete") == ["settings", "settings"]

    async def test_failure_recorded_and_next_table_processed(self):
        db = FakeDatabase({"rooms": make_rows("rooms", 1), "branches": make_rows("branches", 1)})
        db.delete_failures[("rooms", MATCH_ALL.op)] = RuntimeError("range rejected")
        db.delete_failures[("rooms", MATCH_ALL_FALLBACK.op)] = RuntimeError("permission denied")
        reporter = ProgressReporter()

        results = await DependencyOrderedDeleter(db, reporter).delete_all(["rooms", "branches"])

        assert results[0].error == "permission denied"
        assert results[1].error is None
        assert db.row_count("rooms") == 1
        assert db.row_count("branches") == 0

        error_events = [e for e in reporter.events if e.status == "error"]
        assert len(error_events) == 1
        assert error_events[0].table == "rooms"
        assert error_events[0].error == "permission denied"

    async def test_count_failure_is_table_failure(self):
        db = FakeDatabase({"rooms": make_rows("rooms", 1)})
        db.failures[("count", "rooms")] = RuntimeError("relation does not exist")

        results = await DependencyOrderedDeleter(db, ProgressReporter()).delete_all(["rooms"])

        assert results[0].error == "relation does not exist"


class TestDeleteEvents:
    async def test_events_per_table(self):
        db = FakeDatabase({"rooms": make_rows("rooms", 4), "branches": []})
        reporter = ProgressReporter()

        await DependencyOrderedDeleter(db, reporter).delete_all(["rooms", "branches"])

        assert [(e.table, e.status, e.progress, e.total) for e in reporter.events] == [
            ("rooms", "in_progress", 0, 2),
            ("rooms", "complete", 1, 2),
            ("branches", "in_progress", 1, 2),
            ("branches", "complete", 2, 2),
        ]
        assert reporter.events[1].counts == {"deleted": 4}
        assert all(e.phase == "delete" for e in reporter.events)
