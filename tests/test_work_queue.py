"""Tests for the work queue and its delay scheduler."""

import threading
import time
from pathlib import Path

import pytest

from pycloudbackup.backup.jobs import BackupJob
from pycloudbackup.backup.queue import WorkQueue


def _job(name: str) -> BackupJob:
    return BackupJob(source=Path("/src") / name, destination=Path("/dst") / name)


class TestEnqueue:
    """Tests for immediate enqueueing."""

    def test_fifo_order(self):
        """Jobs are popped in insertion order."""
        queue = WorkQueue()
        for name in ("a", "b", "c"):
            queue.enqueue(_job(name))

        assert [queue.pop().name for _ in range(3)] == ["a", "b", "c"]
        assert queue.pop() is None

    def test_ignored_name_is_dropped(self):
        """The system metadata file is never queued."""
        queue = WorkQueue()

        assert queue.enqueue(_job(".DS_Store")) is False
        assert len(queue) == 0
        assert queue.is_complete()

    def test_custom_ignored_names(self):
        """Ignored names are configurable."""
        queue = WorkQueue(ignored_names=["Thumbs.db"])

        assert queue.enqueue(_job("Thumbs.db")) is False
        assert queue.enqueue(_job(".DS_Store")) is True
        assert len(queue) == 1

    def test_is_complete(self):
        """The queue is complete only when empty."""
        queue = WorkQueue()
        assert queue.is_complete()

        queue.enqueue(_job("a"))
        assert not queue.is_complete()

        queue.pop()
        assert queue.is_complete()


class TestEnqueueDelayed:
    """Tests for delayed re-insertion."""

    def test_delayed_job_counts_until_fired(self, manual_timer):
        """A delayed job is tracked and blocks completion until its timer fires."""
        queue = WorkQueue(timer_factory=manual_timer)

        assert queue.enqueue_delayed(_job("a"), 9.5) is True

        assert queue.snapshot() == (0, 1)
        assert queue.delayed_count == 1
        assert not queue.is_complete()
        assert manual_timer.created[0].interval == 9.5
        assert manual_timer.created[0].started
        assert manual_timer.created[0].daemon is True

        manual_timer.created[0].fire()

        assert queue.snapshot() == (1, 0)
        assert queue.pop().name == "a"
        assert queue.is_complete()

    def test_timers_fire_independently(self, manual_timer):
        """Timers append in firing order, not scheduling order."""
        queue = WorkQueue(timer_factory=manual_timer)
        queue.enqueue_delayed(_job("slow"), 10)
        queue.enqueue_delayed(_job("fast"), 1)

        manual_timer.created[1].fire()
        assert queue.snapshot() == (1, 1)
        manual_timer.created[0].fire()

        assert [queue.pop().name, queue.pop().name] == ["fast", "slow"]

    def test_delayed_job_goes_to_tail(self, manual_timer):
        """A fired job lands behind already queued jobs."""
        queue = WorkQueue(timer_factory=manual_timer)
        queue.enqueue_delayed(_job("late"), 1)
        queue.enqueue(_job("first"))

        manual_timer.created[0].fire()

        assert queue.pop().name == "first"
        assert queue.pop().name == "late"

    def test_ignored_delayed_job_is_dropped(self, manual_timer):
        """Ignored names are dropped on the delayed path too."""
        queue = WorkQueue(timer_factory=manual_timer)

        assert queue.enqueue_delayed(_job(".DS_Store"), 1) is False
        assert manual_timer.created == []
        assert queue.delayed_count == 0

    def test_real_timer(self):
        """A real threading.Timer moves the job onto the queue."""
        queue = WorkQueue()
        queue.enqueue_delayed(_job("a"), 0.01)

        assert queue.wait_for_work(timeout=5.0) is True
        assert queue.pop().name == "a"
        assert queue.is_complete()


class TestWaitForWork:
    """Tests for the idle wait of the planning loop."""

    def test_returns_immediately_with_jobs(self):
        """No waiting when something is queued."""
        queue = WorkQueue()
        queue.enqueue(_job("a"))

        assert queue.wait_for_work(timeout=0) is True

    def test_returns_immediately_when_complete(self):
        """No waiting when nothing is queued or delayed."""
        assert WorkQueue().wait_for_work(timeout=0) is True

    def test_times_out_while_delayed(self, manual_timer):
        """Waiting on a pending timer times out."""
        queue = WorkQueue(timer_factory=manual_timer)
        queue.enqueue_delayed(_job("a"), 100)

        start = time.monotonic()
        assert queue.wait_for_work(timeout=0.05) is False
        assert time.monotonic() - start >= 0.04

    def test_woken_by_timer_from_other_thread(self, manual_timer):
        """A timer firing on another thread wakes the waiter."""
        queue = WorkQueue(timer_factory=manual_timer)
        queue.enqueue_delayed(_job("a"), 100)

        firing = threading.Thread(target=manual_timer.created[0].fire)
        threading.Timer(0.05, firing.start).start()

        assert queue.wait_for_work(timeout=5.0) is True
        assert len(queue) == 1


class TestCancelPending:
    """Tests for cancelling a run."""

    def test_cancel_returns_all_jobs(self, manual_timer):
        """Queued and delayed jobs are returned and the queue is complete."""
        queue = WorkQueue(timer_factory=manual_timer)
        queue.enqueue(_job("queued"))
        queue.enqueue_delayed(_job("delayed"), 10)

        dropped = queue.cancel_pending()

        assert [job.name for job in dropped] == ["queued", "delayed"]
        assert manual_timer.created[0].cancelled
        assert queue.is_complete()

    def test_cancelled_timer_firing_late_is_ignored(self, manual_timer):
        """A timer that fires after cancellation does not resurrect its job."""
        queue = WorkQueue(timer_factory=manual_timer)
        queue.enqueue_delayed(_job("a"), 10)
        queue.cancel_pending()

        manual_timer.created[0].fire()

        assert queue.snapshot() == (0, 0)

    @pytest.mark.parametrize("count", [1, 25])
    def test_delayed_count_never_negative(self, manual_timer, count):
        """Firing every timer brings the delayed count back to zero."""
        queue = WorkQueue(timer_factory=manual_timer)
        for i in range(count):
            queue.enqueue_delayed(_job(f"f{i}"), 1)

        threads = [threading.Thread(target=t.fire) for t in manual_timer.created]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert queue.snapshot() == (count, 0)
