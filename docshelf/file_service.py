"""
Boundary-checked file primitives for one scope root.

All paths are relative to the root. Anything that would resolve outside
it (``..`` segments, absolute paths, symlinks pointing elsewhere) is
rejected with OutOfBoundaryError before touching the disk.
"""

import logging
import os
import tempfile
from pathlib import Path, PurePosixPath
from typing import Optional

from .errors import NotFoundError, OutOfBoundaryError
from .folder_service import FolderService

logger = logging.getLogger(__name__)


def resolve_within(root: Path, relative_path: str) -> Path:
    """
    Resolve a relative path under root, refusing to leave it.

    Symlinks are followed, and the final target must still be inside root.
    The root itself is not a valid file target.

    Raises:
        OutOfBoundaryError: If the path is absolute, contains ``..`` or
            resolves outside root
    """
    if not relative_path:
        raise OutOfBoundaryError("Empty path", {"path": relative_path})
    posix = relative_path.replace("\\", "/")
    if PurePosixPath(posix).is_absolute() or os.path.isabs(relative_path):
        raise OutOfBoundaryError(
            f"Absolute path not allowed: {relative_path!r}", {"path": relative_path},
        )
    if any(seg == ".." for seg in posix.split("/")):
        raise OutOfBoundaryError(
            f"Path contains '..': {relative_path!r}", {"path": relative_path},
        )

    root_abs = root.resolve()
    target = (root_abs / posix).resolve()
    if target == root_abs or not target.is_relative_to(root_abs):
        raise OutOfBoundaryError(
            f"Path escapes boundary: {relative_path!r} -> {target}",
            {"path": relative_path, "resolved": str(target), "boundary": str(root_abs)},
        )
    return target


class FileService:
    """
    Read, write and remove single files under a fixed root directory.

    Writes go to a temporary dotfile in the target directory and are then
    renamed into place, so readers never observe a half-written file.
    """

    def __init__(self, root: Path, folder_service: Optional[FolderService] = None):
        """
        Args:
            root: Boundary directory; created lazily on first write
            folder_service: Directory helper for the same root
        """
        self._root = Path(root)
        self._folders = folder_service or FolderService(self._root)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def folders(self) -> FolderService:
        return self._folders

    def resolve(self, relative_path: str) -> Path:
        return resolve_within(self._root, relative_path)

    def exists(self, relative_path: str) -> bool:
        """Advisory existence check (subject to races; not a mutation guard)."""
        return self.resolve(relative_path).is_file()

    def mtime(self, relative_path: str) -> float:
        path = self.resolve(relative_path)
        try:
            return path.stat().st_mtime
        except FileNotFoundError:
            raise NotFoundError(
                f"File not found: {relative_path!r}", {"path": relative_path},
            ) from None

    def read(self, relative_path: str) -> str:
        """
        Read a text file.

        Raises:
            NotFoundError: If the file does not exist
            OutOfBoundaryError: If the path escapes the root
            OSError: For any other filesystem failure
        """
        path = self.resolve(relative_path)
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                return f.read()
        except FileNotFoundError:
            raise NotFoundError(
                f"File not found: {relative_path!r}", {"path": relative_path},
            ) from None

    def write(self, relative_path: str, content: str) -> None:
        """
        Write a text file atomically, creating missing parent directories.

        Raises:
            OutOfBoundaryError: If the path escapes the root
            OSError: For any filesystem failure
        """
        path = self.resolve(relative_path)
        self._folders.ensure_dir_for(relative_path)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as tmp:
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug("Wrote %s (%d chars)", path, len(content))

    def remove(self, relative_path: str) -> None:
        """
        Remove a file.

        Raises:
            NotFoundError: If the file does not exist
            OutOfBoundaryError: If the path escapes the root
            OSError: For any other filesystem failure
        """
        path = self.resolve(relative_path)
        try:
            path.unlink()
        except FileNotFoundError:
            raise NotFoundError(
                f"File not found: {relative_path!r}", {"path": relative_path},
            ) from None
        logger.debug("Removed %s", path)
