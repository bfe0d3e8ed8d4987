"""Exceptions raised by the restore engine."""


class RestoreError(Exception):
    """Base class for restore engine errors."""

    pass


class InvalidSnapshotNameError(RestoreError, ValueError):
    """Raised when a snapshot name does not match the allowed slot pattern.

    Raised before any I/O happens.
    """

    pass


class SnapshotDownloadError(RestoreError):
    """Raised when the snapshot blob cannot be fetched."""

    pass


class SnapshotParseError(RestoreError):
    """Raised when the snapshot blob is not a valid snapshot document."""

    pass


class RestoreInProgressError(RestoreError):
    """Raised when another restore already holds the restore lock."""

    pass
