"""Utility functions for pycloudbackup."""

from typing import Optional

# =============================================================================
# Constants for backup runs
# =============================================================================

# Suffix of iCloud Drive placeholder files (".photo.jpg.icloud")
DEFAULT_PLACEHOLDER_SUFFIX: str = ".icloud"

# Finder metadata files that are never backed up
DEFAULT_IGNORED_NAMES: tuple[str, ...] = (".DS_Store",)

# Minimum interval between two materialization requests for one item
DEFAULT_DOWNLOAD_BACKOFF: float = 300.0  # seconds

# Re-check delay after a materialization request was issued
DEFAULT_REQUEST_DELAY: tuple[float, float] = (8.0, 12.0)

# Re-check delay while a previous request is presumed in flight
DEFAULT_RECHECK_DELAY: tuple[float, float] = (1.0, 10.0)

# Upper bound for waiting on an empty queue while jobs are delayed
DEFAULT_POLL_INTERVAL: float = 0.5  # seconds


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def format_duration(seconds: float) -> str:
    """Format a duration as ``1h 02m 03s`` / ``2m 03s`` / ``3.4s``."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m {secs:02d}s"


# =============================================================================
# Placeholder name utilities
# =============================================================================


def is_placeholder_name(name: str, suffix: str = DEFAULT_PLACEHOLDER_SUFFIX) -> bool:
    """Check whether a file name looks like a cloud placeholder.

    Args:
        name: File name (no directory part)
        suffix: Placeholder suffix used by the sync client

    Returns:
        True for hidden names ending with the suffix

    Examples:
        >>> is_placeholder_name(".photo.jpg.icloud")
        True
        >>> is_placeholder_name("photo.jpg.icloud")
        False
        >>> is_placeholder_name(".bashrc")
        False
    """
    return name.startswith(".") and name.endswith(suffix)


def guess_real_name(
    name: str, suffix: str = DEFAULT_PLACEHOLDER_SUFFIX
) -> Optional[str]:
    """Guess the real file name from a placeholder's on-disk name.

    Only used for display; the backup itself always relies on the
    decoded payload.

    Examples:
        >>> guess_real_name(".photo.jpg.icloud")
        'photo.jpg'
        >>> guess_real_name("photo.jpg") is None
        True
    """
    if not is_placeholder_name(name, suffix):
        return None
    stripped = name[1 : len(name) - len(suffix)]
    return stripped or None
