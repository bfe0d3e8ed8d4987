"""Single-flight guard so only one destructive restore runs at a time.

Two implementations:

- ``InProcessRestoreLock``: guards restores inside one Python process.
- ``AdvisoryRestoreLock``: PostgreSQL session advisory lock, which also
  guards against restores started from other processes or hosts.

Neither waits: a second restore fails fast with ``RestoreInProgressError``.

Usage:
    lock = InProcessRestoreLock("school-restore")
    async with lock.hold():
        ...
"""

from collections.abc import AsyncIterator, Hashable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from snapshot_restore.restore.errors import RestoreInProgressError

# Keys currently held in this process
_held: set[Hashable] = set()


class RestoreLock(Protocol):
    """Mutual exclusion for restore runs."""

    def hold(self) -> AbstractAsyncContextManager[None]:
        """Acquire for the duration of the ``async with`` block.

        Raises:
            RestoreInProgressError: If the lock is already held.
        """
        ...


class InProcessRestoreLock:
    """Process-wide lock keyed by ``key``."""

    def __init__(self, key: Hashable) -> None:
        self._key = key

    def locked(self) -> bool:
        return self._key in _held

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        if self._key in _held:
            raise RestoreInProgressError(
                f"Another restore is already running (lock {self._key!r})"
            )
        _held.add(self._key)
        try:
            yield
        finally:
            _held.discard(self._key)


class AdvisoryLockAdapter(Protocol):
    def advisory_lock(self, key: int) -> AbstractAsyncContextManager[bool]: ...


class AdvisoryRestoreLock:
    """PostgreSQL advisory lock held on a dedicated connection.

    Args:
        adapter: Adapter exposing ``advisory_lock(key)``, e.g.
            ``AsyncPostgresAdapter``.
        key: 64-bit advisory lock id shared by every restore process.
    """

    def __init__(self, adapter: AdvisoryLockAdapter, key: int) -> None:
        self._adapter = adapter
        self._key = key

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        async with self._adapter.advisory_lock(self._key) as acquired:
            if not acquired:
                raise RestoreInProgressError(
                    f"Another restore is already running (advisory lock {self._key})"
                )
            yield
