"""
Directory lifecycle under a scope root.

Directories are created lazily when a document is written and pruned
upward after a document is deleted, as long as they hold nothing but
dotfiles. The scope root itself is never removed.
"""

import logging
import os
import shutil
from pathlib import Path, PurePosixPath

from .errors import OutOfBoundaryError

logger = logging.getLogger(__name__)


class FolderService:
    """Create and prune directories inside a fixed root."""

    def __init__(self, root: Path):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _parent_of(self, relative_path: str) -> Path:
        """Absolute parent directory of a relative file path, boundary-checked."""
        posix = PurePosixPath(relative_path.replace("\\", "/"))
        if posix.is_absolute() or ".." in posix.parts:
            raise OutOfBoundaryError(
                f"Path escapes boundary: {relative_path!r}", {"path": relative_path},
            )
        root_abs = self._root.resolve()
        parent = (root_abs / posix).parent.resolve()
        if parent != root_abs and not parent.is_relative_to(root_abs):
            raise OutOfBoundaryError(
                f"Path escapes boundary: {relative_path!r} -> {parent}",
                {"path": relative_path, "resolved": str(parent), "boundary": str(root_abs)},
            )
        return parent

    def ensure_root(self) -> Path:
        self._root.mkdir(parents=True, exist_ok=True)
        return self._root

    def ensure_dir_for(self, relative_path: str) -> Path:
        """
        Create the directory chain that will hold relative_path.

        Idempotent: existing directories are left alone.

        Returns:
            Absolute path of the parent directory
        """
        self.ensure_root()
        parent = self._parent_of(relative_path)
        parent.mkdir(parents=True, exist_ok=True)
        return parent

    def prune_empty_ancestors(self, relative_path: str) -> list[str]:
        """
        Remove now-empty directories above a deleted file.

        Starting at the file's parent, each directory whose only entries are
        dotfiles is removed (dotfiles included) and the walk moves up one
        level. The walk stops at the first directory with a visible entry,
        and always at the root.

        Returns:
            Root-relative POSIX paths of the removed directories, deepest first
        """
        root_abs = self._root.resolve()
        current = self._parent_of(relative_path)
        removed: list[str] = []

        while current != root_abs and current.is_relative_to(root_abs):
            try:
                entries = os.listdir(current)
            except FileNotFoundError:
                current = current.parent
                continue
            if any(not name.startswith(".") for name in entries):
                break
            try:
                shutil.rmtree(current)
            except FileNotFoundError:
                pass
            removed.append(current.relative_to(root_abs).as_posix())
            current = current.parent

        if removed:
            logger.debug("Pruned empty directories under %s: %s", root_abs, removed)
        return removed
