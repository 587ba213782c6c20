"""Exceptions raised at the file boundaries of a sync, clear or restore."""

from __future__ import annotations


class SyncError(RuntimeError):
    """An operation against the OpenCode config directory failed."""


class ConfigDirError(SyncError):
    """The OpenCode config directory could not be resolved."""


class SyncIOError(SyncError):
    """A read, write, copy or rename failed; the message names the path."""

    def __init__(self, operation: str, path: str, cause: BaseException | None = None):
        self.operation = operation
        self.path = str(path)
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to {operation} {self.path}{detail}")


class NoBackupError(SyncError):
    """Restore found no backup for any managed file."""


class InvalidFileNameError(ValueError):
    """A raw read asked for a file outside the allowlist."""
