"""Snapshot stores: the ``SnapshotStore`` Protocol and its implementations.

``SupabaseSnapshotStore`` is only available when the ``supabase`` extra is
installed.

Usage:
    from snapshot_restore.storage import SnapshotStore, LocalSnapshotStore
"""

from snapshot_restore.storage.base import SnapshotStore
from snapshot_restore.storage.local import LocalSnapshotStore

__all__ = [
    "SnapshotStore",
    "LocalSnapshotStore",
]

try:
    from snapshot_restore.storage.supabase import SupabaseSnapshotStore

    __all__.append("SupabaseSnapshotStore")
except ImportError:
    # supabase extra not installed -- SupabaseSnapshotStore unavailable
    pass
