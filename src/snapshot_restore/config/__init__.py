"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from snapshot_restore.config import load_restore_config, DatabaseProfile, RestoreConfig
"""

from snapshot_restore.config.loader import load_restore_config
from snapshot_restore.config.models import DatabaseProfile, RestoreConfig, RestoreSettings

__all__ = ["load_restore_config", "DatabaseProfile", "RestoreConfig", "RestoreSettings"]
