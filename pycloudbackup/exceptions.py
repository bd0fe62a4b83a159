"""Exceptions raised by pycloudbackup."""

from pathlib import Path
from typing import Optional


class BackupError(Exception):
    """Base exception for all backup errors."""

    kind = "error"

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.message = message
        self.path = path


class ConfigurationError(BackupError):
    """Source or destination root cannot be used. Fatal to the whole run."""

    kind = "configuration"


class ClassificationError(BackupError):
    """An entry could not be turned into a backup job (e.g. broken placeholder)."""

    kind = "classification"


class CopyError(BackupError):
    """A file could not be copied or a destination directory recreated."""

    kind = "copy"


class EnumerationError(BackupError):
    """A source directory could not be listed."""

    kind = "enumeration"


class DownloadRequestError(BackupError):
    """The cloud provider rejected a materialization request."""

    kind = "download_request"


class DownloadTimeoutError(BackupError):
    """A placeholder never materialized within the allowed number of requests."""

    kind = "download_timeout"


class BackupCancelledError(BackupError):
    """A job was dropped because the run was cancelled."""

    kind = "cancelled"
