"""Backup engine for pycloudbackup - copies trees containing cloud placeholders."""

from .cloud import (
    CLOUD_PROVIDERS,
    BrctlCloudProvider,
    CloudProvider,
    NoopCloudProvider,
    get_cloud_provider,
)
from .engine import BackupEngine, ProgressCallback
from .filesystem import LocalFileSystem
from .jobs import BackupJob, CloudTracker, classify_entry, should_request_download
from .placeholder import PlaceholderInfo, decode_placeholder, encode_placeholder
from .queue import WorkQueue
from .report import BackupFailure, BackupReport

__all__ = [
    "BackupEngine",
    "ProgressCallback",
    "BackupJob",
    "CloudTracker",
    "classify_entry",
    "should_request_download",
    "WorkQueue",
    "BackupReport",
    "BackupFailure",
    "LocalFileSystem",
    "PlaceholderInfo",
    "decode_placeholder",
    "encode_placeholder",
    "CloudProvider",
    "BrctlCloudProvider",
    "NoopCloudProvider",
    "CLOUD_PROVIDERS",
    "get_cloud_provider",
]
