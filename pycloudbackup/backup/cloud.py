"""Cloud-sync providers that can materialize placeholders.

Requests are fire-and-forget: the provider only asks the sync client to
start downloading. Completion is observed by the engine polling for the
materialized file.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Optional, Protocol

from ..exceptions import ConfigurationError, DownloadRequestError

logger = logging.getLogger(__name__)

CLOUD_PROVIDERS = ("auto", "brctl", "none")


class CloudProvider(Protocol):
    """Interface the engine needs from a cloud-sync client."""

    available: bool

    def request_materialization(self, path: Path) -> None:
        """Ask the client to download the item behind a placeholder."""
        ...


class BrctlCloudProvider:
    """Requests downloads through macOS' ``brctl download``."""

    available = True

    def __init__(self, executable: str = "brctl", timeout: float = 30.0):
        """Initialize the provider.

        Args:
            executable: Name or path of the brctl binary
            timeout: Seconds to wait for brctl to accept the request
        """
        self.executable = executable
        self.timeout = timeout

    def request_materialization(self, path: Path) -> None:
        """Request a download of ``path``.

        Raises:
            DownloadRequestError: If brctl is missing or rejects the request
        """
        command = [self.executable, "download", str(path)]
        logger.debug("Running %s", " ".join(command))
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise DownloadRequestError(
                f"Cannot request download of {path}: {e}", path
            ) from e

        if result.returncode != 0:
            detail = (result.stderr or result.stdout).strip()
            raise DownloadRequestError(
                f"brctl exited with {result.returncode} for {path}: {detail}", path
            )


class NoopCloudProvider:
    """Provider for hosts without a sync client. Every request fails."""

    available = False

    def request_materialization(self, path: Path) -> None:
        raise DownloadRequestError(
            f"No cloud sync client available to download {path}", path
        )


def get_cloud_provider(
    name: str = "auto", executable: Optional[str] = None
) -> CloudProvider:
    """Create a cloud provider by name.

    Args:
        name: "brctl", "none", or "auto" to use brctl when it is installed
        executable: Override for the brctl binary

    Returns:
        A CloudProvider instance

    Raises:
        ConfigurationError: If the name is unknown or brctl is requested
            but not installed
    """
    if name not in CLOUD_PROVIDERS:
        raise ConfigurationError(
            f"Unknown cloud provider {name!r}, expected one of "
            f"{', '.join(CLOUD_PROVIDERS)}"
        )

    executable = executable or "brctl"
    if name == "none":
        return NoopCloudProvider()

    found = shutil.which(executable)
    if found:
        return BrctlCloudProvider(executable=found)
    if name == "brctl":
        raise ConfigurationError(f"{executable} not found on PATH")

    logger.debug("brctl not found, placeholders cannot be materialized")
    return NoopCloudProvider()
