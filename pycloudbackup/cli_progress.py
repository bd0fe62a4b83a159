"""CLI progress display for backup runs.

This module provides a Rich-based progress display fed by the engine's
``on_progress(queued, delayed, total_discovered)`` callback.
"""

from typing import Optional

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .backup import BackupEngine, BackupReport, ProgressCallback


class BackupProgressDisplay:
    """Rich-based progress display for backup runs.

    The bar counts handled items against everything discovered so far, so
    its total grows while directories are expanded. Queued and delayed
    (waiting for a cloud download) counts are shown next to it.
    """

    def __init__(self) -> None:
        """Initialize the progress display."""
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def create_callback(self) -> ProgressCallback:
        """Create a progress callback that updates this display.

        Returns:
            Callback suitable for ``BackupEngine.run(on_progress=...)``
        """
        return self._handle_progress

    def _format_queue_info(self, queued: int, delayed: int) -> str:
        """Format queue information.

        Returns:
            Formatted string like "12 queued, 3 waiting for download"
        """
        info = f"{queued} queued"
        if delayed:
            info += f", {delayed} waiting for download"
        return info

    def _handle_progress(self, queued: int, delayed: int, total: int) -> None:
        if self._progress is None or self._task is None:
            return

        handled = max(total - queued - delayed, 0)
        if queued == 0 and delayed:
            description = "Waiting for downloads"
        else:
            description = "Backing up"
        self._progress.update(
            self._task,
            description=description,
            total=total,
            completed=handled,
            queue_info=self._format_queue_info(queued, delayed),
        )

    def __enter__(self) -> "BackupProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[cyan]{task.fields[queue_info]}"),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        self._progress.__enter__()

        self._task = self._progress.add_task(
            "Scanning...",
            total=None,
            queue_info="0 queued",
        )

        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            if self._task is not None:
                self._progress.update(self._task, description="Backup finished")
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None


def run_backup_with_progress(
    engine: BackupEngine,
    source,
    destination,
    show_progress: bool = True,
    cancel_event=None,
) -> BackupReport:
    """Run a backup, optionally with a Rich progress display.

    Args:
        engine: BackupEngine instance
        source: Source directory
        destination: Destination directory
        show_progress: If False, run without a live display
        cancel_event: Optional threading.Event to stop the run

    Returns:
        BackupReport of the run
    """
    if not show_progress:
        return engine.run(source, destination, cancel_event=cancel_event)

    with BackupProgressDisplay() as display:
        return engine.run(
            source,
            destination,
            on_progress=display.create_callback(),
            cancel_event=cancel_event,
        )
