"""Pydantic models for snapshots, progress events and restore results."""

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

Phase = Literal["download", "safety_backup", "delete", "insert", "complete", "error"]
EventStatus = Literal["in_progress", "complete", "warning", "error", "partial", "success"]
SummaryStatus = Literal["restored", "partial", "failed"]

TERMINAL_PHASES: frozenset[str] = frozenset({"complete", "error"})


# ============================================================================
# Snapshot Models
# ============================================================================


class SnapshotMetadata(BaseModel):
    """Snapshot header.  Unknown keys are kept as-is."""

    model_config = ConfigDict(extra="allow")

    created_at: str | None = None
    week_number: int | None = None
    tables_count: int | None = None
    total_rows: int | None = None
    type: str | None = None


class TableSnapshot(BaseModel):
    """Rows captured for one table.  ``rows`` is accepted for ``data``."""

    model_config = ConfigDict(populate_by_name=True)

    count: int = 0
    data: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("data", "rows"),
    )


class Snapshot(BaseModel):
    """A full-database snapshot as stored in the snapshot store."""

    metadata: SnapshotMetadata = Field(default_factory=SnapshotMetadata)
    tables: dict[str, TableSnapshot] = Field(default_factory=dict)

    def rows(self, table: str) -> list[dict[str, Any]]:
        """Rows for ``table``; a table missing from the snapshot has none."""
        table_snapshot = self.tables.get(table)
        return table_snapshot.data if table_snapshot is not None else []


class SnapshotPreview(BaseModel):
    """Snapshot metadata plus per-table counts, without row data."""

    file_name: str
    metadata: SnapshotMetadata
    tables: dict[str, int] = Field(default_factory=dict)
    file_size_bytes: int = 0


# ============================================================================
# Progress Events
# ============================================================================


class ProgressEvent(BaseModel):
    """One unit of the streamed restore protocol.

    Only fields that were set are written to the wire.
    """

    phase: Phase
    status: EventStatus
    table: str | None = None
    progress: int | None = None
    total: int | None = None
    row_count: int | None = None
    counts: dict[str, int] | None = None
    errors: list[str] | None = None
    error: str | None = None
    message: str | None = None
    metadata: SnapshotMetadata | None = None
    tables_restored: int | None = None
    total_rows_restored: int | None = None
    duration_ms: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


# ============================================================================
# Per-table Results
# ============================================================================


class DeleteResult(BaseModel):
    """Outcome of emptying one table."""

    table: str
    deleted: int = 0
    error: str | None = None


class InsertResult(BaseModel):
    """Outcome of replaying one table's snapshot rows."""

    table: str
    inserted: int = 0
    errors: list[str] = Field(default_factory=list)
    skipped: bool = False


# ============================================================================
# Restore Summary
# ============================================================================


class RestoreSummary(BaseModel):
    """Terminal record of one restore invocation; doubles as the audit row."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    status: SummaryStatus
    tables_count: int = 0
    total_rows: int = 0
    file_size_bytes: int = 0
    duration_ms: int = 0
    error_message: str | None = None
    errors: tuple[str, ...] = ()

    def to_log_record(self) -> dict[str, Any]:
        """Row written to the audit log table."""
        return {
            "file_name": self.file_name,
            "status": self.status,
            "tables_count": self.tables_count,
            "total_rows": self.total_rows,
            "file_size_bytes": self.file_size_bytes,
            "duration_ms": self.duration_ms,
            "error_message": self.error_message,
        }
