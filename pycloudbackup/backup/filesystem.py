"""Filesystem operations used by the backup engine.

Every operation raises one of the typed errors from
:mod:`pycloudbackup.exceptions` instead of a bare ``OSError`` so that the
engine can decide per call site whether a failure is fatal.
"""

import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import Optional

from ..exceptions import ClassificationError, CopyError, EnumerationError

logger = logging.getLogger(__name__)

STALE_MARKER = ".pycloudbackup-stale-"


class LocalFileSystem:
    """Filesystem provider backed by the local disk."""

    def list_directory(self, path: Path) -> list[Path]:
        """List the entries of a directory, sorted by name.

        Raises:
            EnumerationError: If the directory cannot be read
        """
        try:
            return sorted(path.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise EnumerationError(f"Cannot list {path}: {e}", path) from e

    def is_directory(self, path: Path) -> bool:
        """Check whether ``path`` is a directory.

        Symbolic links are not followed, a link to a directory is copied
        as a link.

        Raises:
            ClassificationError: If the entry cannot be inspected
        """
        try:
            return path.is_dir() and not path.is_symlink()
        except OSError as e:
            raise ClassificationError(f"Cannot stat {path}: {e}", path) from e

    def exists(self, path: Path) -> bool:
        return os.path.lexists(path)

    def read_bytes(self, path: Path) -> bytes:
        """Read a whole file.

        Raises:
            ClassificationError: If the file cannot be read
        """
        try:
            return path.read_bytes()
        except OSError as e:
            raise ClassificationError(f"Cannot read {path}: {e}", path) from e

    def copy(self, source: Path, destination: Path) -> None:
        """Copy a file, link or materialized package to ``destination``.

        Raises:
            CopyError: If the copy fails
        """
        try:
            if source.is_dir() and not source.is_symlink():
                shutil.copytree(source, destination, symlinks=True)
            else:
                shutil.copy2(source, destination, follow_symlinks=False)
        except OSError as e:
            raise CopyError(
                f"Failed to copy {source} to {destination}: {e}", source
            ) from e

    def remove_tree(self, path: Path) -> None:
        """Remove a file, link or directory tree.

        Raises:
            CopyError: If removal fails
        """
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise CopyError(f"Failed to remove {path}: {e}", path) from e

    def create_directory(self, path: Path, parents: bool = True) -> None:
        """Create a directory.

        Raises:
            CopyError: If the directory cannot be created
        """
        try:
            path.mkdir(parents=parents, exist_ok=True)
        except OSError as e:
            raise CopyError(f"Failed to create {path}: {e}", path) from e

    def replace_directory(self, path: Path) -> Optional[Path]:
        """Replace whatever is at ``path`` with a fresh, empty directory.

        An existing entry is first renamed to a hidden stale sibling, the
        new directory is created, and only then is the stale copy removed.
        An interruption therefore leaves either the old tree or the new
        directory at ``path``, never a partially deleted one.

        Returns:
            Path of the stale copy if it could not be removed, else None

        Raises:
            CopyError: If the old entry cannot be moved aside or the new
                directory cannot be created
        """
        if not self.exists(path):
            self.create_directory(path, parents=True)
            return None

        stale = path.with_name(f".{path.name}{STALE_MARKER}{uuid.uuid4().hex[:8]}")
        try:
            os.replace(path, stale)
        except OSError as e:
            raise CopyError(f"Failed to move aside {path}: {e}", path) from e
        logger.debug(f"Moved {path} aside to {stale}")

        self.create_directory(path, parents=True)
        try:
            self.remove_tree(stale)
        except CopyError as e:
            logger.warning(f"Old copy left at {stale}: {e.message}")
            return stale
        return None

    def find_stale_copies(self, path: Path) -> list[Path]:
        """List stale siblings left behind by interrupted replacements of ``path``.

        Raises:
            EnumerationError: If the parent directory cannot be read
        """
        prefix = f".{path.name}{STALE_MARKER}"
        try:
            return sorted(
                (p for p in path.parent.iterdir() if p.name.startswith(prefix)),
                key=lambda p: p.name,
            )
        except FileNotFoundError:
            return []
        except OSError as e:
            raise EnumerationError(f"Cannot list {path.parent}: {e}", path) from e
