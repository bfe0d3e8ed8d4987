"""Dependency-ordered snapshot restore engine.

Usage:
    from snapshot_restore.restore import RestoreOrchestrator, stream_restore
    from snapshot_restore.restore import DELETE_ORDER, INSERT_ORDER, SCHOOL_SCHEMA
"""

from snapshot_restore.restore.audit import RestoreAuditLogger
from snapshot_restore.restore.catalog import (
    DELETE_ORDER,
    INSERT_ORDER,
    SCHOOL_SCHEMA,
    TABLES_TO_BACKUP,
    ForeignKey,
    RestoreSchema,
    TableDef,
    topological_order,
)
from snapshot_restore.restore.checkpoint import CheckpointStore, RestoreCheckpoint
from snapshot_restore.restore.deleter import DependencyOrderedDeleter
from snapshot_restore.restore.errors import (
    InvalidSnapshotNameError,
    RestoreError,
    RestoreInProgressError,
    SnapshotDownloadError,
    SnapshotParseError,
)
from snapshot_restore.restore.lock import (
    AdvisoryRestoreLock,
    InProcessRestoreLock,
    RestoreLock,
)
from snapshot_restore.restore.models import (
    DeleteResult,
    InsertResult,
    ProgressEvent,
    RestoreSummary,
    Snapshot,
    SnapshotMetadata,
    SnapshotPreview,
    TableSnapshot,
)
from snapshot_restore.restore.orchestrator import RestoreOrchestrator, stream_restore
from snapshot_restore.restore.progress import ProgressReporter, encode_event, stream_events
from snapshot_restore.restore.safety import SafetyBackupWriter
from snapshot_restore.restore.upserter import ChunkedUpserter

__all__ = [
    # Orchestration
    "RestoreOrchestrator",
    "stream_restore",
    # Components
    "SafetyBackupWriter",
    "DependencyOrderedDeleter",
    "ChunkedUpserter",
    "RestoreAuditLogger",
    "ProgressReporter",
    "encode_event",
    "stream_events",
    "CheckpointStore",
    "RestoreCheckpoint",
    "RestoreLock",
    "InProcessRestoreLock",
    "AdvisoryRestoreLock",
    # Catalog
    "RestoreSchema",
    "TableDef",
    "ForeignKey",
    "topological_order",
    "SCHOOL_SCHEMA",
    "INSERT_ORDER",
    "DELETE_ORDER",
    "TABLES_TO_BACKUP",
    # Models
    "Snapshot",
    "SnapshotMetadata",
    "SnapshotPreview",
    "TableSnapshot",
    "ProgressEvent",
    "RestoreSummary",
    "DeleteResult",
    "InsertResult",
    # Errors
    "RestoreError",
    "InvalidSnapshotNameError",
    "SnapshotDownloadError",
    "SnapshotParseError",
    "RestoreInProgressError",
]
