"""Shared fixtures for pycloudbackup tests."""

import plistlib
from pathlib import Path

import pytest

from pycloudbackup.backup.placeholder import encode_placeholder


class ImmediateTimer:
    """Timer stand-in that fires synchronously on start() and records delays."""

    delays: list[float] = []

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.cancelled = False

    def start(self):
        ImmediateTimer.delays.append(self.interval)
        self.function(*self.args, **self.kwargs)

    def cancel(self):
        self.cancelled = True


class ManualTimer:
    """Timer stand-in that only fires when the test calls fire()."""

    created: list["ManualTimer"] = []

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False
        ManualTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function(*self.args, **self.kwargs)


@pytest.fixture
def immediate_timer():
    """Provide ImmediateTimer with a fresh delay log."""
    ImmediateTimer.delays = []
    yield ImmediateTimer
    ImmediateTimer.delays = []


@pytest.fixture
def manual_timer():
    """Provide ManualTimer with a fresh list of created timers."""
    ManualTimer.created = []
    yield ManualTimer
    ManualTimer.created = []


@pytest.fixture
def make_placeholder():
    """Write a placeholder file and return its path."""

    def _make(
        directory: Path,
        real_name: str,
        size_bytes: int = 1024,
        on_disk_name=None,
        fmt=plistlib.FMT_BINARY,
    ) -> Path:
        name = on_disk_name or f".{real_name}.icloud"
        path = directory / name
        path.write_bytes(encode_placeholder(real_name, size_bytes, fmt=fmt))
        return path

    return _make
