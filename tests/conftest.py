"""Shared fixtures: in-memory database and snapshot store doubles.

``FakeDatabase`` implements the ``DatabaseClient`` protocol over plain
dicts and records every call, so tests can assert on ordering as well as
on the final contents.  Failures are injected per method and table.
"""

import json
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

from snapshot_restore.adapters.base import Predicate
from snapshot_restore.restore.catalog import INSERT_ORDER
from snapshot_restore.restore.lock import InProcessRestoreLock
from snapshot_restore.restore.orchestrator import RestoreOrchestrator

_OPS: dict[str, Callable[[Any, Any], bool]] = {
    "eq": lambda a, b: a == b,
    "neq": lambda a, b: a != b,
    "gte": lambda a, b: a >= b,
    "lte": lambda a, b: a <= b,
    "gt": lambda a, b: a > b,
    "lt": lambda a, b: a < b,
}


class FakeDatabase:
    """Dict-backed ``DatabaseClient``.

    Attributes:
        tables: ``{table: {pk: row}}``.
        calls: ``(method, table)`` for every call, in order.
        failures: ``{(method, table): exception}`` raised on every matching call.
        delete_failures: ``{(table, op): exception}`` for one predicate operator.
        upsert_failure: Optional ``(table, rows) -> exception | None`` hook
            checked before each upsert batch is applied.
    """

    def __init__(self, tables: dict[str, list[dict]] | None = None) -> None:
        self.tables: dict[str, dict[Any, dict]] = {}
        for name, rows in (tables or {}).items():
            self.tables[name] = {row["id"]: dict(row) for row in rows}
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self.delete_failures: dict[tuple[str, str], Exception] = {}
        self.upsert_failure: Callable[[str, list[dict]], Exception | None] | None = None
        self.closed = False

    def _check(self, method: str, table: str) -> None:
        self.calls.append((method, table))
        error = self.failures.get((method, table))
        if error is not None:
            raise error

    def rows(self, table: str) -> list[dict]:
        return list(self.tables.get(table, {}).values())

    def row_count(self, table: str) -> int:
        return len(self.tables.get(table, {}))

    def calls_for(self, method: str) -> list[str]:
        return [table for m, table in self.calls if m == method]

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        self._check("select", table)
        rows = [dict(r) for r in self.rows(table)]
        if filters:
            rows = [r for r in rows if all(r.get(k) == v for k, v in filters.items())]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by) or "", reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    async def count(self, table: str) -> int:
        self._check("count", table)
        return self.row_count(table)

    async def insert(self, table: str, data: dict) -> dict:
        self._check("insert", table)
        row = {
            "id": str(uuid.uuid4()),
            "created_at": datetime.now(timezone.utc).isoformat(),
            **data,
        }
        self.tables.setdefault(table, {})[row["id"]] = row
        return dict(row)

    async def upsert(self, table: str, rows: list[dict], on_conflict: str = "id") -> None:
        self._check("upsert", table)
        if self.upsert_failure is not None:
            error = self.upsert_failure(table, rows)
            if error is not None:
                raise error
        target = self.tables.setdefault(table, {})
        for row in rows:
            target[row[on_conflict]] = dict(row)

    async def delete(self, table: str, predicate: Predicate) -> None:
        self._check("delete", table)
        error = self.delete_failures.get((table, predicate.op))
        if error is not None:
            raise error
        match = _OPS[predicate.op]
        target = self.tables.get(table, {})
        for pk in [pk for pk, row in target.items() if match(row.get(predicate.column), predicate.value)]:
            del target[pk]

    async def close(self) -> None:
        self.closed = True


class FakeSnapshotStore:
    """Dict-backed ``SnapshotStore`` with per-name failure injection."""

    def __init__(self, blobs: dict[str, bytes] | None = None) -> None:
        self.blobs: dict[str, bytes] = dict(blobs or {})
        self.get_failures: dict[str, Exception] = {}
        self.put_failures: dict[str, Exception] = {}
        self.puts: list[str] = []

    async def get(self, name: str) -> bytes:
        error = self.get_failures.get(name)
        if error is not None:
            raise error
        if name not in self.blobs:
            raise FileNotFoundError(name)
        return self.blobs[name]

    async def put(self, name: str, data: bytes, content_type: str = "application/json") -> None:
        error = self.put_failures.get(name)
        if error is not None:
            raise error
        self.puts.append(name)
        self.blobs[name] = data

    def json(self, name: str) -> Any:
        return json.loads(self.blobs[name])


def make_rows(table: str, n: int, **extra: Any) -> list[dict]:
    """``n`` rows with ids ``<table>-00000`` .. so ids sort in insertion order."""
    return [{"id": f"{table}-{i:05d}", "name": f"{table} {i}", **extra} for i in range(n)]


def make_snapshot(counts: dict[str, int], **metadata: Any) -> bytes:
    """Serialized snapshot holding ``counts[table]`` generated rows per table."""
    tables = {}
    for table, n in counts.items():
        rows = make_rows(table, n)
        tables[table] = {"count": n, "data": rows}
    meta = {
        "created_at": "2026-10-12T02:00:00+00:00",
        "week_number": 2,
        "tables_count": len(tables),
        "total_rows": sum(counts.values()),
        **metadata,
    }
    return json.dumps({"metadata": meta, "tables": tables}).encode("utf-8")


def live_data(n_per_table: int = 1) -> dict[str, list[dict]]:
    """Pre-existing rows in every catalog table (``old-`` prefixed ids)."""
    return {
        table: [{"id": f"old-{table}-{i}", "name": "stale"} for i in range(n_per_table)]
        for table in INSERT_ORDER
    }


@pytest.fixture
def db() -> FakeDatabase:
    return FakeDatabase(live_data())


@pytest.fixture
def store() -> FakeSnapshotStore:
    return FakeSnapshotStore(
        {"backup_week_2.json": make_snapshot({"branches": 2, "rooms": 5})}
    )


@pytest.fixture
def orchestrator(db: FakeDatabase, store: FakeSnapshotStore) -> RestoreOrchestrator:
    # Fresh lock key per test so a leaked hold cannot bleed into another test
    return RestoreOrchestrator(db, store, lock=InProcessRestoreLock(object()))
