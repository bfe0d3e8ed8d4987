"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and concrete async adapter
implementations for PostgreSQL and (optionally) Supabase.

``AsyncSupabaseAdapter`` is only available when the ``supabase`` extra
is installed.  A missing ``supabase`` dependency does not prevent
importing the rest of the package.

Usage:
    from snapshot_restore.adapters import DatabaseClient, AsyncPostgresAdapter, Predicate

    # With supabase extra installed:
    from snapshot_restore.adapters import AsyncSupabaseAdapter
"""

from snapshot_restore.adapters.base import DatabaseClient, Predicate
from snapshot_restore.adapters.postgres import AsyncPostgresAdapter

__all__ = [
    "DatabaseClient",
    "Predicate",
    "AsyncPostgresAdapter",
]

try:
    from snapshot_restore.adapters.supabase import AsyncSupabaseAdapter

    __all__.append("AsyncSupabaseAdapter")
except ImportError:
    # supabase extra not installed -- AsyncSupabaseAdapter unavailable
    pass
