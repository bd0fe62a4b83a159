"""Work queue with delayed re-insertion.

All state lives behind one ``threading.Condition``. The planning loop and
the timer threads only touch the deque and the delayed counter while
holding it, and every change notifies waiters so an idle loop wakes up as
soon as there is something to do.
"""

import logging
import threading
from collections import deque
from typing import Callable, Iterable, Optional

from ..utils import DEFAULT_IGNORED_NAMES
from .jobs import BackupJob

logger = logging.getLogger(__name__)

TimerFactory = Callable[..., threading.Timer]


class WorkQueue:
    """FIFO of pending backup jobs plus a count of delayed jobs.

    Examples:
        >>> queue = WorkQueue()
        >>> queue.enqueue(job)
        True
        >>> queue.enqueue_delayed(other_job, 5.0)  # back on the queue in 5s
        True
        >>> queue.is_complete()
        False
    """

    def __init__(
        self,
        ignored_names: Iterable[str] = DEFAULT_IGNORED_NAMES,
        timer_factory: TimerFactory = threading.Timer,
    ):
        """Initialize the queue.

        Args:
            ignored_names: Source names that are silently dropped
            timer_factory: Callable with ``threading.Timer``'s signature
        """
        self.ignored_names = frozenset(ignored_names)
        self._timer_factory = timer_factory
        self._jobs: deque[BackupJob] = deque()
        self._delayed = 0
        self._timers: dict[object, tuple[threading.Timer, BackupJob]] = {}
        self._condition = threading.Condition()

    def __len__(self) -> int:
        with self._condition:
            return len(self._jobs)

    @property
    def delayed_count(self) -> int:
        """Number of jobs waiting on a timer."""
        with self._condition:
            return self._delayed

    def snapshot(self) -> tuple[int, int]:
        """Return ``(queued, delayed)`` read under one lock."""
        with self._condition:
            return len(self._jobs), self._delayed

    def is_ignored(self, job: BackupJob) -> bool:
        return job.name in self.ignored_names

    def is_complete(self) -> bool:
        """True when nothing is queued and no timer is pending."""
        with self._condition:
            return not self._jobs and self._delayed == 0

    def enqueue(self, job: BackupJob) -> bool:
        """Append a job to the tail.

        Returns:
            False if the job was dropped as an ignored name
        """
        if self.is_ignored(job):
            logger.debug(f"Ignoring {job.source}")
            return False
        with self._condition:
            self._jobs.append(job)
            self._condition.notify_all()
        return True

    def enqueue_delayed(self, job: BackupJob, delay: float) -> bool:
        """Append a job to the tail after ``delay`` seconds.

        The job counts as delayed from now until it is back on the queue.

        Returns:
            False if the job was dropped as an ignored name
        """
        if self.is_ignored(job):
            logger.debug(f"Ignoring {job.source}")
            return False

        token = object()
        timer = self._timer_factory(delay, self._release, args=(token, job))
        timer.daemon = True
        with self._condition:
            self._delayed += 1
            self._timers[token] = (timer, job)
            timer.start()
        logger.debug(f"Re-processing {job.source} in {delay:.1f}s")
        return True

    def _release(self, token: object, job: BackupJob) -> None:
        """Timer callback: move a delayed job onto the queue."""
        with self._condition:
            if self._timers.pop(token, None) is None:
                # Cancelled while the timer was firing
                return
            self._jobs.append(job)
            self._delayed -= 1
            self._condition.notify_all()
        logger.debug(f"Re-queued {job.source}")

    def pop(self) -> Optional[BackupJob]:
        """Remove and return the head job, or None when the queue is empty."""
        with self._condition:
            if not self._jobs:
                return None
            return self._jobs.popleft()

    def wait_for_work(self, timeout: Optional[float] = None) -> bool:
        """Block until a job is queued or the run is complete.

        Args:
            timeout: Longest time to wait in seconds

        Returns:
            True if woken by a state change, False on timeout
        """
        with self._condition:
            return self._condition.wait_for(
                lambda: bool(self._jobs) or self._delayed == 0, timeout
            )

    def cancel_pending(self) -> list[BackupJob]:
        """Cancel all timers and drain the queue.

        Returns:
            The jobs that were queued or delayed, queued jobs first
        """
        with self._condition:
            dropped = list(self._jobs)
            self._jobs.clear()
            for timer, job in self._timers.values():
                timer.cancel()
                dropped.append(job)
            self._timers.clear()
            self._delayed = 0
            self._condition.notify_all()
        return dropped
