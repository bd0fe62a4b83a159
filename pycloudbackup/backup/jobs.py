"""Backup jobs and their classification."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..exceptions import ClassificationError
from ..utils import (
    DEFAULT_DOWNLOAD_BACKOFF,
    DEFAULT_PLACEHOLDER_SUFFIX,
    is_placeholder_name,
)
from .filesystem import LocalFileSystem
from .placeholder import PlaceholderInfo, decode_placeholder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CloudTracker:
    """Download state of a placeholder job."""

    downloaded_path: Path
    """Where the real item appears once materialized"""

    size_bytes: int = 0
    """Size announced by the placeholder"""

    last_requested_at: Optional[float] = None
    """Clock value of the last materialization request"""

    request_count: int = 0
    """Number of materialization requests issued so far"""


@dataclass(frozen=True)
class BackupJob:
    """A single entry waiting to be backed up.

    ``source``, ``destination`` and ``is_directory`` never change. A cloud
    job is re-queued as a copy with an updated tracker.
    """

    source: Path
    """Entry in the source tree (the placeholder itself for cloud jobs)"""

    destination: Path
    """Target path, derived from the entry's real name"""

    is_directory: bool = False
    """Whether the entry is a directory to expand"""

    cloud: Optional[CloudTracker] = None
    """Download tracker, None for regular entries"""

    @property
    def is_cloud(self) -> bool:
        return self.cloud is not None

    @property
    def name(self) -> str:
        """Name of the entry as it appears in the source tree."""
        return self.source.name


def classify_entry(
    entry: Path,
    destination_folder: Path,
    fs: Optional[LocalFileSystem] = None,
    placeholder_suffix: str = DEFAULT_PLACEHOLDER_SUFFIX,
    decoder: Callable[[bytes], PlaceholderInfo] = decode_placeholder,
) -> BackupJob:
    """Turn a filesystem entry into a backup job.

    Placeholders take their destination from the decoded payload, never
    from their own on-disk name.

    Args:
        entry: Entry in the source tree
        destination_folder: Destination directory the entry belongs under
        fs: Filesystem provider
        placeholder_suffix: Suffix identifying placeholders
        decoder: Placeholder payload decoder

    Returns:
        BackupJob for the entry

    Raises:
        ClassificationError: If the entry cannot be inspected or the
            placeholder payload is invalid
    """
    fs = fs or LocalFileSystem()
    is_directory = fs.is_directory(entry)

    if not is_directory and is_placeholder_name(entry.name, placeholder_suffix):
        info = decoder(fs.read_bytes(entry))
        # The real item must be a sibling, never the placeholder itself
        if info.real_name == entry.name or is_placeholder_name(
            info.real_name, placeholder_suffix
        ):
            raise ClassificationError(
                f"Placeholder {entry.name} names another placeholder: "
                f"{info.real_name!r}",
                entry,
            )
        logger.debug(
            "Placeholder %s stands for %s (%d B)",
            entry.name,
            info.real_name,
            info.size_bytes,
        )
        return BackupJob(
            source=entry,
            destination=destination_folder / info.real_name,
            is_directory=False,
            cloud=CloudTracker(
                downloaded_path=entry.parent / info.real_name,
                size_bytes=info.size_bytes,
            ),
        )

    return BackupJob(
        source=entry,
        destination=destination_folder / entry.name,
        is_directory=is_directory,
    )


def should_request_download(
    tracker: CloudTracker,
    now: float,
    backoff: float = DEFAULT_DOWNLOAD_BACKOFF,
) -> bool:
    """Decide whether a new materialization request may be issued.

    Args:
        tracker: Download state of the job
        now: Current clock value, same clock as ``last_requested_at``
        backoff: Minimum seconds between two requests

    Returns:
        True if no request was made yet or at least ``backoff`` seconds
        have passed since the last one
    """
    if tracker.last_requested_at is None:
        return True
    return now - tracker.last_requested_at >= backoff
