"""Result bookkeeping for a backup run."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..exceptions import BackupError


@dataclass(frozen=True)
class BackupFailure:
    """An item that could not be backed up."""

    source: Path
    """Source entry that failed"""

    kind: str
    """Error category, see ``BackupError.kind``"""

    message: str
    """Human-readable reason"""

    @classmethod
    def from_error(cls, source: Path, error: BackupError) -> "BackupFailure":
        return cls(source=source, kind=error.kind, message=error.message)


@dataclass
class BackupReport:
    """Statistics and failures collected during a backup run."""

    source: Path
    destination: Path

    total_discovered: int = 0
    """Entries found while enumerating directories"""

    files_copied: int = 0
    """Regular files (and links) copied"""

    cloud_files_copied: int = 0
    """Materialized placeholders copied"""

    directories_created: int = 0
    """Directories recreated in the destination"""

    ignored: int = 0
    """Entries skipped as system metadata files"""

    download_requests: int = 0
    """Materialization requests issued"""

    failures: list[BackupFailure] = field(default_factory=list)
    """Items that were skipped because of an error"""

    cancelled: bool = False
    """Whether the run was stopped before draining the queue"""

    elapsed: Optional[float] = None
    """Wall-clock duration of the run in seconds"""

    def record_failure(self, source: Path, error: BackupError) -> BackupFailure:
        failure = BackupFailure.from_error(source, error)
        self.failures.append(failure)
        return failure

    @property
    def succeeded(self) -> bool:
        """True if the run finished without failures or cancellation."""
        return not self.failures and not self.cancelled

    def failures_by_kind(self) -> dict[str, list[BackupFailure]]:
        grouped: dict[str, list[BackupFailure]] = {}
        for failure in self.failures:
            grouped.setdefault(failure.kind, []).append(failure)
        return grouped

    def to_dict(self) -> dict[str, Any]:
        """Convert the report to a JSON-serializable dictionary."""
        return {
            "source": str(self.source),
            "destination": str(self.destination),
            "total_discovered": self.total_discovered,
            "files_copied": self.files_copied,
            "cloud_files_copied": self.cloud_files_copied,
            "directories_created": self.directories_created,
            "ignored": self.ignored,
            "download_requests": self.download_requests,
            "failures": [
                {
                    "source": str(failure.source),
                    "kind": failure.kind,
                    "message": failure.message,
                }
                for failure in self.failures
            ],
            "cancelled": self.cancelled,
            "elapsed": self.elapsed,
            "succeeded": self.succeeded,
        }
