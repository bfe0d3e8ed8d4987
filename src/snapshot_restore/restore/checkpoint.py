"""Resume cursor for interrupted restores.

A restore that dies half-way leaves tables emptied but not yet refilled.
The checkpoint records how far the last run got, so that
``RestoreOrchestrator.run(name, resume=True)`` can pick up after the last
fully restored table instead of starting over (and, above all, without
overwriting the safety backup with half-restored data).  Tables whose
delete failed are listed too; a resumed run deletes and refills them again.

The checkpoint lives in the snapshot store next to the snapshots.  Reading
or writing it is best-effort: a broken checkpoint only costs resumability.
"""

import logging
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from snapshot_restore.storage.base import SnapshotStore

logger = logging.getLogger(__name__)

CHECKPOINT_NAME = "restore_checkpoint.json"


class RestoreCheckpoint(BaseModel):
    """Progress of the most recent restore."""

    file_name: str
    deleted: bool = False
    failed_deletes: list[str] = Field(default_factory=list)
    inserted_tables: list[str] = Field(default_factory=list)
    completed: bool = False
    updated_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def resumes(self, file_name: str) -> bool:
        """True if this checkpoint describes an unfinished run of ``file_name``."""
        return self.file_name == file_name and not self.completed


class CheckpointStore:
    """Loads and saves the single ``RestoreCheckpoint`` slot.

    Args:
        store: Blob store holding the checkpoint.
        name: Blob name of the checkpoint.
    """

    def __init__(self, store: SnapshotStore, name: str = CHECKPOINT_NAME) -> None:
        self._store = store
        self._name = name

    async def load(self) -> RestoreCheckpoint | None:
        """Return the stored checkpoint, or ``None`` if absent or unreadable."""
        try:
            raw = await self._store.get(self._name)
        except FileNotFoundError:
            return None
        except Exception as e:
            logger.warning("Could not read restore checkpoint %s: %s", self._name, e)
            return None

        try:
            return RestoreCheckpoint.model_validate_json(raw)
        except ValueError as e:
            logger.warning("Ignoring malformed restore checkpoint %s: %s", self._name, e)
            return None

    async def save(self, checkpoint: RestoreCheckpoint) -> bool:
        """Persist ``checkpoint``, stamping ``updated_at``.

        Returns:
            ``True`` if the checkpoint was written.
        """
        checkpoint.updated_at = datetime.now(timezone.utc).isoformat()
        try:
            await self._store.put(
                self._name,
                checkpoint.model_dump_json().encode("utf-8"),
                content_type="application/json",
            )
        except Exception as e:
            logger.warning("Could not write restore checkpoint %s: %s", self._name, e)
            return False
        return True
