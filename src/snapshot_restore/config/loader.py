"""Load restore configuration from a TOML file."""

import tomllib
from pathlib import Path

from pydantic import ValidationError

from snapshot_restore.config.models import DatabaseProfile, RestoreConfig, RestoreSettings


def load_restore_config(config_path: Path | None = None) -> RestoreConfig:
    """Load restore configuration from TOML file.

    Args:
        config_path: Path to restore.toml (default: ``restore.toml`` in the
            current working directory).

    Returns:
        RestoreConfig with all profiles and restore settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / "restore.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Restore config not found: {config_path}\n"
            f"Create restore.toml with at least one [profiles.<name>] table."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    try:
        profiles = {
            name: DatabaseProfile(**profile_data)
            for name, profile_data in data.get("profiles", {}).items()
        }
        settings = RestoreSettings(**data.get("restore", {}))
    except ValidationError as e:
        raise ValueError(f"Invalid restore config {config_path.name}: {e}") from e

    return RestoreConfig(profiles=profiles, restore=settings)
