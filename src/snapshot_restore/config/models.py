"""Pydantic models for restore configuration."""

from typing import Literal

from pydantic import BaseModel, Field


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from restore.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: Literal["postgres", "supabase"] = "postgres"
    key: str | None = None  # Supabase service-role key
    storage_dir: str = "backups"  # Snapshot directory for postgres profiles


class RestoreSettings(BaseModel):
    """Tunables of the restore engine (``[restore]`` table)."""

    bucket: str = "backups"
    chunk_size: int = Field(default=500, ge=1)
    safety_backup_name: str = "backup_pre_restore.json"
    checkpoint_name: str = "restore_checkpoint.json"
    snapshot_pattern: str = r"^backup_week_[1-4]\.json$"
    audit_table: str = "backup_logs"
    lock_id: int = 7313


class RestoreConfig(BaseModel):
    """Complete configuration from restore.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    restore: RestoreSettings = Field(default_factory=RestoreSettings)
