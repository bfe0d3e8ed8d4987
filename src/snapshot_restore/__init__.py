"""snapshot-restore: Dependency-ordered database restore from JSON snapshots.

Replaces the full contents of a relational database with a previously
captured snapshot: safety backup first, then a children-first delete, a
parents-first chunked upsert, one audit record and a streamed progress log.

Usage:
    from snapshot_restore import RestoreOrchestrator, AsyncPostgresAdapter
    from snapshot_restore import LocalSnapshotStore, build_orchestrator
    from snapshot_restore import INSERT_ORDER, DELETE_ORDER, SCHOOL_SCHEMA
"""

__version__ = "0.1.0"

# Adapters
from snapshot_restore.adapters.base import DatabaseClient, Predicate
from snapshot_restore.adapters.postgres import AsyncPostgresAdapter

# Config
from snapshot_restore.config.loader import load_restore_config
from snapshot_restore.config.models import DatabaseProfile, RestoreConfig, RestoreSettings

# Factory
from snapshot_restore.factory import (
    ProfileNotFoundError,
    build_orchestrator,
    get_adapter,
    resolve_url,
)

# Restore engine
from snapshot_restore.restore import (
    DELETE_ORDER,
    INSERT_ORDER,
    SCHOOL_SCHEMA,
    ForeignKey,
    InvalidSnapshotNameError,
    ProgressEvent,
    ProgressReporter,
    RestoreError,
    RestoreInProgressError,
    RestoreOrchestrator,
    RestoreSchema,
    RestoreSummary,
    Snapshot,
    TableDef,
    stream_restore,
)

# Storage
from snapshot_restore.storage.base import SnapshotStore
from snapshot_restore.storage.local import LocalSnapshotStore

__all__ = [
    # Adapters
    "DatabaseClient",
    "Predicate",
    "AsyncPostgresAdapter",
    # Config
    "load_restore_config",
    "DatabaseProfile",
    "RestoreConfig",
    "RestoreSettings",
    # Factory
    "build_orchestrator",
    "get_adapter",
    "ProfileNotFoundError",
    "resolve_url",
    # Restore
    "RestoreOrchestrator",
    "stream_restore",
    "ProgressReporter",
    "ProgressEvent",
    "RestoreSummary",
    "Snapshot",
    "RestoreSchema",
    "TableDef",
    "ForeignKey",
    "SCHOOL_SCHEMA",
    "INSERT_ORDER",
    "DELETE_ORDER",
    "RestoreError",
    "InvalidSnapshotNameError",
    "RestoreInProgressError",
    # Storage
    "SnapshotStore",
    "LocalSnapshotStore",
]

# Optional: Supabase adapter and storage (only available with supabase extra)
try:
    from snapshot_restore.adapters.supabase import AsyncSupabaseAdapter
    from snapshot_restore.storage.supabase import SupabaseSnapshotStore

    __all__.extend(["AsyncSupabaseAdapter", "SupabaseSnapshotStore"])
except ImportError:
    # supabase extra not installed -- Supabase adapter unavailable
    pass
