"""
Error taxonomy for docshelf, plus error logging for the CLI.

Every failure the store can report has its own exception class with a
stable ``code`` string, so callers (CLI, MCP tools) can tell them apart
without parsing messages. Filesystem failures other than a missing file
propagate as plain ``OSError``.

The CLI logs full stack traces for unexpected errors while showing clean
messages to users.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


class DocShelfError(Exception):
    """Base class for all store errors."""

    code = "ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


class NotFoundError(DocShelfError):
    """The address does not resolve to a document."""

    code = "NOT_FOUND"


class AlreadyExistsError(DocShelfError):
    """A create or move destination is already occupied."""

    code = "ALREADY_EXISTS"


class ConflictError(DocShelfError):
    """The caller's hash does not match the stored content (stale copy)."""

    code = "CONFLICT"

    def __init__(self, message: str, expected: str, actual: str):
        super().__init__(message, {"expected": expected, "actual": actual})
        self.expected = expected
        self.actual = actual


class InvalidAddressError(DocShelfError, ValueError):
    """Malformed identifier, empty string, bad path or unknown scope name."""

    code = "INVALID_ADDRESS"


class TextNotFoundError(DocShelfError):
    """A replaceOnce/replaceAll target is absent from the content."""

    code = "TEXT_NOT_FOUND"


class OutOfBoundaryError(DocShelfError):
    """A path resolves outside the scope root."""

    code = "OUT_OF_BOUNDARY"


class NoOpError(DocShelfError):
    """Move source and destination are the same (scope, path)."""

    code = "NO_OP"


class InvalidEditError(DocShelfError, ValueError):
    """An edit operation or edit call is malformed."""

    code = "INVALID_EDIT"


class IndexCorruptError(DocShelfError):
    """The persisted index cannot be parsed or is inconsistent."""

    code = "INDEX_CORRUPT"


# ---------------------------------------------------------------------------
# Error log
# ---------------------------------------------------------------------------


def _error_log_path() -> Path:
    """Resolve error log path, respecting DOCSHELF_PROJECT_ROOT."""
    root = os.environ.get("DOCSHELF_PROJECT_ROOT")
    if root:
        return Path(root) / "docshelf-errors.log"
    return Path.home() / ".docshelf" / "docshelf-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # never crash while logging a crash
    return log_path
