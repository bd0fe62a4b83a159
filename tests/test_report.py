"""Tests for the backup report."""

import json
from pathlib import Path

from pycloudbackup.backup.report import BackupFailure, BackupReport
from pycloudbackup.exceptions import CopyError, DownloadTimeoutError


def _report() -> BackupReport:
    return BackupReport(source=Path("/src"), destination=Path("/dst"))


class TestBackupReport:
    """Tests for BackupReport."""

    def test_new_report_succeeded(self):
        report = _report()

        assert report.succeeded is True
        assert report.failures == []

    def test_failure_marks_unsuccessful(self):
        report = _report()

        failure = report.record_failure(
            Path("/src/a.txt"), CopyError("Failed to copy a.txt")
        )

        assert failure == BackupFailure(
            source=Path("/src/a.txt"), kind="copy", message="Failed to copy a.txt"
        )
        assert report.succeeded is False

    def test_cancelled_is_unsuccessful(self):
        report = _report()
        report.cancelled = True

        assert report.succeeded is False

    def test_failures_by_kind(self):
        report = _report()
        report.record_failure(Path("/src/a"), CopyError("a"))
        report.record_failure(Path("/src/.b.icloud"), DownloadTimeoutError("b"))
        report.record_failure(Path("/src/c"), CopyError("c"))

        grouped = report.failures_by_kind()

        assert list(grouped) == ["copy", "download_timeout"]
        assert [f.source.name for f in grouped["copy"]] == ["a", "c"]

    def test_to_dict_is_json_serializable(self):
        report = _report()
        report.files_copied = 3
        report.elapsed = 1.5
        report.record_failure(Path("/src/a"), CopyError("boom"))

        data = json.loads(json.dumps(report.to_dict()))

        assert data["source"] == "/src"
        assert data["files_copied"] == 3
        assert data["elapsed"] == 1.5
        assert data["succeeded"] is False
        assert data["failures"] == [
            {"source": "/src/a", "kind": "copy", "message": "boom"}
        ]
