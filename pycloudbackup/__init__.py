"""pycloudbackup - back up cloud drive folders, including undownloaded files."""

from .backup import BackupEngine, BackupReport
from .config import BackupSettings, Config
from .exceptions import (
    BackupCancelledError,
    BackupError,
    ClassificationError,
    ConfigurationError,
    CopyError,
    DownloadRequestError,
    DownloadTimeoutError,
    EnumerationError,
)
from .utils import format_size, is_placeholder_name

__all__ = [
    "BackupEngine",
    "BackupReport",
    "BackupSettings",
    "Config",
    "BackupError",
    "BackupCancelledError",
    "ClassificationError",
    "ConfigurationError",
    "CopyError",
    "DownloadRequestError",
    "DownloadTimeoutError",
    "EnumerationError",
    "format_size",
    "is_placeholder_name",
]
