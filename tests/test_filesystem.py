"""Tests for the local filesystem provider."""

from pathlib import Path
from unittest.mock import patch

import pytest

from pycloudbackup.backup.filesystem import STALE_MARKER, LocalFileSystem
from pycloudbackup.exceptions import ClassificationError, CopyError, EnumerationError


@pytest.fixture
def fs():
    return LocalFileSystem()


class TestListDirectory:
    """Tests for LocalFileSystem.list_directory."""

    def test_sorted_by_name(self, fs, tmp_path):
        """Entries come back in name order."""
        for name in ("b.txt", "a.txt", "c"):
            (tmp_path / name).touch()

        assert [p.name for p in fs.list_directory(tmp_path)] == ["a.txt", "b.txt", "c"]

    def test_missing_directory(self, fs, tmp_path):
        """Listing a missing directory raises EnumerationError."""
        with pytest.raises(EnumerationError) as exc_info:
            fs.list_directory(tmp_path / "missing")

        assert exc_info.value.path == tmp_path / "missing"


class TestInspect:
    """Tests for is_directory, exists and read_bytes."""

    def test_is_directory(self, fs, tmp_path):
        (tmp_path / "d").mkdir()
        (tmp_path / "f").touch()

        assert fs.is_directory(tmp_path / "d") is True
        assert fs.is_directory(tmp_path / "f") is False

    def test_symlink_to_directory_is_not_a_directory(self, fs, tmp_path):
        """Links are copied as links, never followed."""
        (tmp_path / "d").mkdir()
        (tmp_path / "link").symlink_to(tmp_path / "d")

        assert fs.is_directory(tmp_path / "link") is False

    def test_exists_includes_broken_links(self, fs, tmp_path):
        (tmp_path / "dangling").symlink_to(tmp_path / "nowhere")

        assert fs.exists(tmp_path / "dangling") is True
        assert fs.exists(tmp_path / "nowhere") is False

    def test_read_bytes_missing(self, fs, tmp_path):
        """Unreadable files raise ClassificationError."""
        with pytest.raises(ClassificationError):
            fs.read_bytes(tmp_path / "missing")


class TestCopy:
    """Tests for LocalFileSystem.copy."""

    def test_copy_file(self, fs, tmp_path):
        (tmp_path / "a.txt").write_bytes(b"abc")

        fs.copy(tmp_path / "a.txt", tmp_path / "b.txt")

        assert (tmp_path / "b.txt").read_bytes() == b"abc"

    def test_copy_package_directory(self, fs, tmp_path):
        """Materialized packages (directories) are copied recursively."""
        package = tmp_path / "Doc.pages"
        (package / "Data").mkdir(parents=True)
        (package / "Data" / "blob").write_bytes(b"x")

        fs.copy(package, tmp_path / "out.pages")

        assert (tmp_path / "out.pages" / "Data" / "blob").read_bytes() == b"x"

    def test_copy_symlink(self, fs, tmp_path):
        """Symbolic links are recreated, not dereferenced."""
        (tmp_path / "target.txt").write_text("t")
        (tmp_path / "link").symlink_to("target.txt")

        fs.copy(tmp_path / "link", tmp_path / "copy")

        assert (tmp_path / "copy").is_symlink()

    def test_copy_missing_source(self, fs, tmp_path):
        """Copy failures raise CopyError."""
        with pytest.raises(CopyError, match="Failed to copy"):
            fs.copy(tmp_path / "missing", tmp_path / "dest")


class TestReplaceDirectory:
    """Tests for the two-phase directory replacement."""

    def test_creates_missing_directory(self, fs, tmp_path):
        fs.replace_directory(tmp_path / "a" / "b")

        assert (tmp_path / "a" / "b").is_dir()

    def test_replaces_existing_tree(self, fs, tmp_path):
        """Old content is gone and no stale sibling is left behind."""
        target = tmp_path / "notes"
        (target / "deep").mkdir(parents=True)
        (target / "old.txt").write_text("old")

        fs.replace_directory(target)

        assert target.is_dir()
        assert list(target.iterdir()) == []
        assert [p.name for p in tmp_path.iterdir()] == ["notes"]

    def test_returns_none_when_cleaned_up(self, fs, tmp_path):
        (tmp_path / "notes").mkdir()

        assert fs.replace_directory(tmp_path / "notes") is None

    def test_failed_removal_returns_stale_copy(self, fs, tmp_path):
        """If removing the stale copy fails the new directory is already in place."""
        target = tmp_path / "notes"
        target.mkdir()
        (target / "old.txt").write_text("old")

        with patch.object(
            LocalFileSystem, "remove_tree", side_effect=CopyError("interrupted")
        ):
            stale = fs.replace_directory(target)

        assert target.is_dir()
        assert list(target.iterdir()) == []
        assert stale is not None
        assert STALE_MARKER in stale.name
        assert (stale / "old.txt").read_text() == "old"
        assert fs.find_stale_copies(target) == [stale]

    def test_move_aside_failure(self, fs, tmp_path):
        """A failing rename leaves the original untouched."""
        target = tmp_path / "notes"
        target.mkdir()
        (target / "old.txt").write_text("old")

        with patch(
            "pycloudbackup.backup.filesystem.os.replace", side_effect=OSError("busy")
        ):
            with pytest.raises(CopyError, match="move aside"):
                fs.replace_directory(target)

        assert (target / "old.txt").read_text() == "old"


class TestFindStaleCopies:
    """Tests for LocalFileSystem.find_stale_copies."""

    def test_only_matching_siblings(self, fs, tmp_path):
        (tmp_path / "backup").mkdir()
        (tmp_path / f".backup{STALE_MARKER}aaaa1111").mkdir()
        (tmp_path / f".backup{STALE_MARKER}bbbb2222").touch()
        (tmp_path / f".other{STALE_MARKER}cccc3333").mkdir()
        (tmp_path / ".backup").mkdir()

        found = fs.find_stale_copies(tmp_path / "backup")

        assert [p.name for p in found] == [
            f".backup{STALE_MARKER}aaaa1111",
            f".backup{STALE_MARKER}bbbb2222",
        ]

    def test_missing_parent(self, fs, tmp_path):
        assert fs.find_stale_copies(tmp_path / "missing" / "backup") == []


class TestRemoveTree:
    """Tests for LocalFileSystem.remove_tree."""

    def test_remove_file(self, fs, tmp_path):
        (tmp_path / "f").touch()

        fs.remove_tree(tmp_path / "f")

        assert not (tmp_path / "f").exists()

    def test_remove_missing_is_noop(self, fs, tmp_path):
        fs.remove_tree(tmp_path / "missing")

    def test_remove_directory_link_keeps_target(self, fs, tmp_path):
        """Removing a link to a directory does not delete the target."""
        (tmp_path / "d").mkdir()
        (tmp_path / "d" / "keep").touch()
        (tmp_path / "link").symlink_to(tmp_path / "d")

        fs.remove_tree(tmp_path / "link")

        assert (tmp_path / "d" / "keep").exists()
        assert not Path(tmp_path / "link").is_symlink()
