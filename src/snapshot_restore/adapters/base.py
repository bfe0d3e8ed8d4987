"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that the restore engine consumes.
All methods are ``async def`` -- the library is async-first.

Usage:
    from snapshot_restore.adapters.base import DatabaseClient, Predicate

    async def wipe(client: DatabaseClient, table: str) -> None:
        if await client.count(table):
            await client.delete(table, Predicate("id", "neq", ""))
        await client.upsert(table, [{"id": "b1", "name": "Main"}])
        await client.close()
"""

from dataclasses import dataclass
from typing import Any, Literal, Protocol

PredicateOp = Literal["eq", "neq", "gte", "lte", "gt", "lt"]

# SQL comparison operator for each predicate op
SQL_OPERATORS: dict[str, str] = {
    "eq": "=",
    "neq": "<>",
    "gte": ">=",
    "lte": "<=",
    "gt": ">",
    "lt": "<",
}


@dataclass(frozen=True)
class Predicate:
    """Single-column comparison used to scope a DELETE.

    Example:
        Predicate("id", "gte", "00000000-0000-0000-0000-000000000000")
        # id >= '00000000-0000-0000-0000-000000000000'
    """

    column: str
    op: PredicateOp
    value: Any

    def __post_init__(self) -> None:
        if self.op not in SQL_OPERATORS:
            raise ValueError(f"Unsupported predicate operator: {self.op}")

    @property
    def sql_operator(self) -> str:
        return SQL_OPERATORS[self.op]


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement.

    The restore engine only needs whole-table operations: read every row,
    count rows, delete rows matching one predicate, and upsert a batch keyed
    by primary id.  ``insert`` is used for append-only audit records.

    All methods are async -- callers must ``await`` every operation.
    """

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names, or ``"*"``.
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional column name to sort by.
            descending: Sort descending when ``order_by`` is given.
            limit: Optional maximum number of rows.

        Returns:
            List of dicts, one per row.  Empty list if no matches.
        """
        ...

    async def count(self, table: str) -> int:
        """Return the exact number of rows in ``table``."""
        ...

    async def insert(self, table: str, data: dict) -> dict:
        """Insert one row and return the created row.

        Raises:
            Exception: If duplicate key or constraint violation.
        """
        ...

    async def upsert(
        self,
        table: str,
        rows: list[dict],
        on_conflict: str = "id",
    ) -> None:
        """Insert rows, updating every column of rows whose key already exists.

        Applying the same batch twice leaves the table in the same state as
        applying it once.

        Args:
            table: Table name.
            rows: Row dicts.  Rows may have different key sets.
            on_conflict: Conflict target column (primary key).

        Raises:
            Exception: If any row violates a constraint.  The whole batch
                is rejected.
        """
        ...

    async def delete(self, table: str, predicate: Predicate) -> None:
        """Delete rows matching ``predicate``.

        Example:
            await client.delete("rooms", Predicate("id", "neq", ""))
        """
        ...

    async def close(self) -> None:
        """Close database connection and clean up resources."""
        ...
