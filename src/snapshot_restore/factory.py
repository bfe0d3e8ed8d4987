"""Build adapters, snapshot stores and orchestrators from configuration.

Profile resolution:
1. ``{env_prefix}RESTORE_PROFILE`` environment variable
2. The only profile in restore.toml, when exactly one is defined
3. Raise ``ProfileNotFoundError``

Usage:
    from snapshot_restore.factory import build_orchestrator

    orchestrator, adapter = build_orchestrator(profile_name="local")
    try:
        summary = await orchestrator.run("backup_week_1.json")
    finally:
        await adapter.close()
"""

import logging
import os
from pathlib import Path
from urllib.parse import quote

from snapshot_restore.adapters.base import DatabaseClient
from snapshot_restore.adapters.postgres import AsyncPostgresAdapter
from snapshot_restore.config.loader import load_restore_config
from snapshot_restore.config.models import DatabaseProfile, RestoreConfig
from snapshot_restore.restore.lock import AdvisoryRestoreLock, InProcessRestoreLock, RestoreLock
from snapshot_restore.restore.orchestrator import RestoreOrchestrator
from snapshot_restore.storage.base import SnapshotStore
from snapshot_restore.storage.local import LocalSnapshotStore

logger = logging.getLogger(__name__)


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


def get_active_profile_name(
    config: RestoreConfig,
    env_prefix: str = "",
) -> str:
    """Resolve the profile to use.

    Raises:
        ProfileNotFoundError: If no profile is selected or the selected
            profile is not defined.
    """
    env_profile = os.environ.get(f"{env_prefix}RESTORE_PROFILE")
    if env_profile:
        if env_profile not in config.profiles:
            available = ", ".join(config.profiles) or "(none)"
            raise ProfileNotFoundError(
                f"Profile '{env_profile}' not found in restore.toml. "
                f"Available profiles: {available}"
            )
        return env_profile

    if len(config.profiles) == 1:
        return next(iter(config.profiles))

    raise ProfileNotFoundError(
        "No restore profile selected.\n"
        f"Set {env_prefix}RESTORE_PROFILE=<name> or pass --profile.\n"
        f"Available profiles: {', '.join(config.profiles) or '(none)'}"
    )


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution."""
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def get_adapter(profile: DatabaseProfile) -> DatabaseClient:
    """Create the database adapter for ``profile``.

    Raises:
        ValueError: If a Supabase profile has no key.
        ImportError: If a Supabase profile is used without the extra.
    """
    if profile.provider == "supabase":
        from snapshot_restore.adapters.supabase import AsyncSupabaseAdapter

        if not profile.key:
            raise ValueError("Supabase profiles require a 'key' (service-role key)")
        return AsyncSupabaseAdapter(url=profile.url, key=profile.key)

    return AsyncPostgresAdapter(resolve_url(profile))


def get_snapshot_store(
    profile: DatabaseProfile,
    adapter: DatabaseClient,
    bucket: str = "backups",
) -> SnapshotStore:
    """Create the snapshot store matching ``profile``.

    Supabase profiles use the Storage bucket through the adapter's client;
    PostgreSQL profiles use ``profile.storage_dir`` on local disk.
    """
    if profile.provider == "supabase":
        from snapshot_restore.storage.supabase import SupabaseSnapshotStore

        return SupabaseSnapshotStore(adapter, bucket=bucket)

    return LocalSnapshotStore(Path(profile.storage_dir))


def get_restore_lock(profile: DatabaseProfile, adapter: DatabaseClient, lock_id: int) -> RestoreLock:
    """Advisory lock for PostgreSQL, in-process lock otherwise.

    PostgREST exposes no session to hold an advisory lock on, so Supabase
    profiles are only guarded within one process.
    """
    if isinstance(adapter, AsyncPostgresAdapter):
        return AdvisoryRestoreLock(adapter, lock_id)
    logger.debug("Provider %s has no advisory locks; using in-process lock", profile.provider)
    return InProcessRestoreLock(lock_id)


def build_orchestrator(
    profile_name: str | None = None,
    env_prefix: str = "",
    config_path: Path | None = None,
) -> tuple[RestoreOrchestrator, DatabaseClient]:
    """Wire an orchestrator for a configured profile.

    The caller owns the returned adapter and must ``await adapter.close()``.

    Raises:
        FileNotFoundError: If restore.toml is missing.
        ProfileNotFoundError: If the profile cannot be resolved.
    """
    config = load_restore_config(config_path)

    if profile_name is None:
        profile_name = get_active_profile_name(config, env_prefix=env_prefix)
    elif profile_name not in config.profiles:
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found. "
            f"Available: {', '.join(config.profiles) or '(none)'}"
        )

    profile = config.profiles[profile_name]
    settings = config.restore
    adapter = get_adapter(profile)
    store = get_snapshot_store(profile, adapter, bucket=settings.bucket)
    lock = get_restore_lock(profile, adapter, settings.lock_id)

    logger.info("Using restore profile %s (%s)", profile_name, profile.provider)
    orchestrator = RestoreOrchestrator(adapter, store, settings=settings, lock=lock)
    return orchestrator, adapter
