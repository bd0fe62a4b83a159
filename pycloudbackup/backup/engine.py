"""Backup engine: copies a directory tree, waiting for cloud placeholders."""

import logging
import random
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, Optional, Union

from ..config import BackupSettings
from ..exceptions import (
    BackupCancelledError,
    BackupError,
    ClassificationError,
    ConfigurationError,
    CopyError,
    DownloadRequestError,
    DownloadTimeoutError,
    EnumerationError,
)
from ..output import OutputFormatter
from ..utils import format_duration
from .cloud import CloudProvider, NoopCloudProvider
from .filesystem import LocalFileSystem
from .jobs import BackupJob, CloudTracker, classify_entry, should_request_download
from .queue import TimerFactory, WorkQueue
from .report import BackupReport

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, int], None]
"""Called as ``on_progress(queued, delayed, total_discovered)``"""


class BackupEngine:
    """Copies a source tree into a destination, materializing placeholders.

    Jobs are processed breadth-first from a single work queue. Placeholders
    whose real file is not available yet are put back on the queue after a
    random delay, and a download is requested at most once per backoff
    interval. Per-item errors are recorded in the report and never stop
    the run.

    Examples:
        >>> engine = BackupEngine()
        >>> source = Path("~/Library/Mobile Documents/com~apple~CloudDocs")
        >>> report = engine.run(source, Path("/Volumes/Backup/iCloud"))
        >>> print(f"Copied {report.files_copied} file(s)")
    """

    def __init__(
        self,
        settings: Optional[BackupSettings] = None,
        fs: Optional[LocalFileSystem] = None,
        cloud: Optional[CloudProvider] = None,
        output: Optional[OutputFormatter] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        timer_factory: TimerFactory = threading.Timer,
    ):
        """Initialize backup engine.

        Args:
            settings: Backup tunables (defaults if omitted)
            fs: Filesystem provider
            cloud: Cloud provider used to request downloads
            output: Output formatter for status and summary
            clock: Monotonic clock used for the download backoff
            rng: Random source for re-queue delays
            timer_factory: Factory for delay timers
        """
        self.settings = settings or BackupSettings()
        self.fs = fs or LocalFileSystem()
        self.cloud = cloud or NoopCloudProvider()
        self.output = output or OutputFormatter()
        self._clock = clock
        self._rng = rng or random.Random()
        self._timer_factory = timer_factory

    def run(
        self,
        source_root: Union[str, Path],
        destination_root: Union[str, Path],
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BackupReport:
        """Back up ``source_root`` into ``destination_root``.

        The destination is wiped first. The call returns once every
        discovered item has been copied or recorded as a failure.

        Args:
            source_root: Directory to back up
            destination_root: Directory to create (replaced if it exists)
            on_progress: Called once per scheduling step with
                ``(queued, delayed, total_discovered)``
            cancel_event: Set to stop the run at the next scheduling step

        Returns:
            BackupReport with statistics and failures

        Raises:
            ConfigurationError: If the roots are unusable or the destination
                cannot be prepared
        """
        source_root = Path(source_root).expanduser()
        destination_root = Path(destination_root).expanduser()
        self._validate_roots(source_root, destination_root)

        start_time = time.time()
        report = BackupReport(source=source_root, destination=destination_root)

        if not self.output.quiet:
            self.output.info(f"Backing up: {source_root} -> {destination_root}")

        self._prepare_destination(destination_root, report)

        queue = WorkQueue(
            ignored_names=self.settings.ignored_names,
            timer_factory=self._timer_factory,
        )

        logger.debug("Starting backup of %s", source_root)
        try:
            self._expand_directory(source_root, destination_root, queue, report)
        except EnumerationError as e:
            self._record_failure(report, source_root, e)

        try:
            self._plan_loop(queue, report, on_progress, cancel_event)
        except KeyboardInterrupt:
            self._cancel(queue, report)
            if not self.output.quiet:
                self.output.warning("\nBackup cancelled by user")
            raise
        finally:
            report.elapsed = time.time() - start_time

        logger.debug(
            "Backup finished in %.2fs with %d failure(s)",
            report.elapsed,
            len(report.failures),
        )

        if not self.output.quiet:
            self._display_summary(report)
        elif report.failures:
            self._display_failures(report)

        return report

    def _validate_roots(self, source_root: Path, destination_root: Path) -> None:
        """Reject root pairs that cannot be backed up safely.

        Raises:
            ConfigurationError: If the source is not a directory or the two
                trees overlap
        """
        if not source_root.exists():
            raise ConfigurationError(
                f"Source directory does not exist: {source_root}", source_root
            )
        if not source_root.is_dir():
            raise ConfigurationError(
                f"Source path is not a directory: {source_root}", source_root
            )

        source_abs = source_root.resolve()
        destination_abs = destination_root.resolve()
        # Wiping the destination must never touch the source, and the
        # destination must not be copied into itself
        if (
            destination_abs == source_abs
            or source_abs in destination_abs.parents
            or destination_abs in source_abs.parents
        ):
            raise ConfigurationError(
                f"Source {source_root} and destination {destination_root} overlap",
                destination_root,
            )

    def _prepare_destination(
        self, destination_root: Path, report: BackupReport
    ) -> None:
        """Replace the destination root with an empty directory.

        Old copies left next to the root by an earlier interrupted run are
        removed first. Failing to remove an old copy is recorded but does
        not stop the run.

        Raises:
            ConfigurationError: If the destination cannot be written
        """
        try:
            stale_copies = self.fs.find_stale_copies(destination_root)
        except EnumerationError as e:
            self._record_failure(report, destination_root, e)
            stale_copies = []
        for stale in stale_copies:
            logger.debug(f"Removing old copy {stale}")
            try:
                self.fs.remove_tree(stale)
            except CopyError as e:
                self._record_failure(report, stale, e)

        try:
            stale = self.fs.replace_directory(destination_root)
        except CopyError as e:
            raise ConfigurationError(
                f"Cannot prepare destination {destination_root}: {e.message}",
                destination_root,
            ) from e
        if stale is not None:
            self._record_stale_copy(report, destination_root, stale)

    def _plan_loop(
        self,
        queue: WorkQueue,
        report: BackupReport,
        on_progress: Optional[ProgressCallback],
        cancel_event: Optional[threading.Event],
    ) -> None:
        """Process jobs until the queue is empty and no job is delayed."""
        while not queue.is_complete():
            if cancel_event is not None and cancel_event.is_set():
                self._cancel(queue, report)
                return

            queued, delayed = queue.snapshot()
            if on_progress is not None:
                on_progress(queued, delayed, report.total_discovered)

            job = queue.pop()
            if job is None:
                # Only delayed jobs left, sleep until a timer fires
                queue.wait_for_work(timeout=self.settings.poll_interval)
                continue

            self._dispatch(job, queue, report)

    def _dispatch(self, job: BackupJob, queue: WorkQueue, report: BackupReport) -> None:
        if job.cloud is not None:
            self._process_cloud_job(job, job.cloud, queue, report)
        elif job.is_directory:
            self._process_directory_job(job, queue, report)
        else:
            self._process_file_job(job, report)

    def _process_cloud_job(
        self,
        job: BackupJob,
        tracker: CloudTracker,
        queue: WorkQueue,
        report: BackupReport,
    ) -> None:
        """Copy a materialized placeholder or schedule another check.

        Args:
            job: Cloud job to process
            tracker: Download state of ``job``
            queue: Work queue to re-insert the job into
            report: Report to update
        """
        if self.fs.exists(tracker.downloaded_path):
            try:
                self.fs.copy(tracker.downloaded_path, job.destination)
            except CopyError as e:
                self._record_failure(report, job.source, e)
                return
            report.cloud_files_copied += 1
            logger.debug(f"Copied materialized {tracker.downloaded_path}")
            return

        now = self._clock()
        if not should_request_download(tracker, now, self.settings.download_backoff):
            queue.enqueue_delayed(job, self._random_delay(self.settings.recheck_delay))
            return

        max_requests = self.settings.max_download_requests
        if max_requests is not None and tracker.request_count >= max_requests:
            self._record_failure(
                report,
                job.source,
                DownloadTimeoutError(
                    f"{tracker.downloaded_path.name} did not download after "
                    f"{tracker.request_count} request(s)",
                    job.source,
                ),
            )
            return

        logger.info(f"Requesting download of {tracker.downloaded_path}")
        try:
            self.cloud.request_materialization(job.source)
        except DownloadRequestError as e:
            if not self.cloud.available:
                self._record_failure(report, job.source, e)
                return
            # Counts as an attempt, retried once the backoff expires
            logger.warning(f"Download request failed: {e.message}")
        else:
            report.download_requests += 1

        updated = replace(
            job,
            cloud=replace(
                tracker,
                last_requested_at=now,
                request_count=tracker.request_count + 1,
            ),
        )
        queue.enqueue_delayed(updated, self._random_delay(self.settings.request_delay))

    def _process_directory_job(
        self, job: BackupJob, queue: WorkQueue, report: BackupReport
    ) -> None:
        """Recreate a destination directory and queue its children."""
        try:
            stale = self.fs.replace_directory(job.destination)
        except CopyError as e:
            self._record_failure(report, job.source, e)
            return
        report.directories_created += 1
        if stale is not None:
            self._record_stale_copy(report, job.destination, stale)

        try:
            self._expand_directory(job.source, job.destination, queue, report)
        except EnumerationError as e:
            self._record_failure(report, job.source, e)

    def _process_file_job(self, job: BackupJob, report: BackupReport) -> None:
        try:
            self.fs.copy(job.source, job.destination)
        except CopyError as e:
            self._record_failure(report, job.source, e)
            return
        report.files_copied += 1

    def _expand_directory(
        self,
        source_dir: Path,
        destination_dir: Path,
        queue: WorkQueue,
        report: BackupReport,
    ) -> None:
        """Classify and queue every entry of ``source_dir``.

        Raises:
            EnumerationError: If the directory cannot be listed
        """
        children = self.fs.list_directory(source_dir)
        report.total_discovered += len(children)

        for child in children:
            if child.name in queue.ignored_names:
                report.ignored += 1
                continue
            try:
                job = classify_entry(
                    child,
                    destination_dir,
                    fs=self.fs,
                    placeholder_suffix=self.settings.placeholder_suffix,
                )
            except ClassificationError as e:
                self._record_failure(report, child, e)
                continue
            queue.enqueue(job)

    def _cancel(self, queue: WorkQueue, report: BackupReport) -> None:
        """Stop all timers and record every outstanding job as cancelled."""
        report.cancelled = True
        for job in queue.cancel_pending():
            report.record_failure(
                job.source,
                BackupCancelledError("Backup cancelled before processing", job.source),
            )

    def _random_delay(self, delay_range: tuple[float, float]) -> float:
        """Pick a delay uniformly from ``[low, high)``."""
        low, high = delay_range
        return low + self._rng.random() * (high - low)

    def _record_failure(
        self, report: BackupReport, source: Path, error: BackupError
    ) -> None:
        report.record_failure(source, error)
        logger.warning(f"Skipping {source}: {error.message}")

    def _record_stale_copy(
        self, report: BackupReport, path: Path, stale: Path
    ) -> None:
        """Record an old copy of ``path`` that could not be removed."""
        self._record_failure(
            report,
            stale,
            CopyError(f"Old copy of {path.name} could not be removed", stale),
        )

    def _display_summary(self, report: BackupReport) -> None:
        """Display backup summary.

        Args:
            report: Finished backup report
        """
        self.output.print("")
        if report.cancelled:
            self.output.warning("Backup stopped before completion")
        elif report.failures:
            self.output.warning("Backup complete with errors")
        else:
            self.output.success("Backup complete!")

        self.output.info(f"Discovered: {report.total_discovered} item(s)")
        self.output.info(f"  Files copied: {report.files_copied}")
        if report.cloud_files_copied > 0:
            self.output.info(f"  Cloud files copied: {report.cloud_files_copied}")
        self.output.info(f"  Directories created: {report.directories_created}")
        if report.ignored > 0:
            self.output.info(f"  Ignored: {report.ignored}")
        if report.download_requests > 0:
            self.output.info(f"  Download requests: {report.download_requests}")
        if report.elapsed is not None:
            self.output.info(f"  Elapsed: {format_duration(report.elapsed)}")

        if report.failures:
            self.output.print("")
            self._display_failures(report)

    def _display_failures(self, report: BackupReport) -> None:
        """List failed items grouped by kind. Shown even in quiet mode."""
        self.output.warning(f"Failed: {len(report.failures)} item(s)")
        for kind, failures in sorted(report.failures_by_kind().items()):
            self.output.warning(f"  {kind} ({len(failures)}):")
            for failure in failures:
                self.output.warning(f"    {failure.source}: {failure.message}")
