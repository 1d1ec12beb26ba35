"""
Data types for the document store.
"""

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from .errors import InvalidAddressError, InvalidEditError


def utc_now() -> str:
    """Current UTC timestamp in canonical format: YYYY-MM-DDTHH:MM:SS."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


def utc_from_mtime(mtime: float) -> str:
    """Convert a filesystem mtime to the canonical UTC timestamp format."""
    return datetime.fromtimestamp(mtime, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


# ---------------------------------------------------------------------------
# Scopes
# ---------------------------------------------------------------------------


class Scope(str, Enum):
    """The two independently rooted namespaces."""

    PROJECT = "project"
    SHARED = "shared"

    @classmethod
    def parse(cls, name: "str | Scope") -> "Scope":
        """Parse a scope name, raising InvalidAddressError for anything else."""
        if isinstance(name, Scope):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            raise InvalidAddressError(
                f"Scope must be 'project' or 'shared', got {name!r}",
                {"scope": name},
            ) from None

    def __str__(self) -> str:
        return self.value


# Fixed order used for lookup ("project overrides shared") and lock acquisition
SCOPE_ORDER = (Scope.PROJECT, Scope.SHARED)

# ID prefixes are plain letters; the counter is at least this many digits
MIN_ID_DIGITS = 3
_PREFIX_RE = re.compile(r'^[A-Za-z]+$')


@dataclass(frozen=True)
class ScopeLayout:
    """
    A scope bound to its root directory and ID prefix.

    Built once from configuration and threaded explicitly through the
    services, so nothing re-derives a scope from strings later.

    Attributes:
        scope: Which namespace this is
        root: Absolute directory holding documents and the index file
        id_prefix: Alphabetic ID prefix (e.g. "doc" or "sdoc")
        extension: File extension appended to document paths (e.g. ".md")
        index_filename: Name of the index file inside root
    """
    scope: Scope
    root: Path
    id_prefix: str
    extension: str = ".md"
    index_filename: str = ".index.json"

    def __post_init__(self):
        if not _PREFIX_RE.match(self.id_prefix):
            raise ValueError(f"ID prefix must be alphabetic: {self.id_prefix!r}")
        if self.extension and not self.extension.startswith("."):
            raise ValueError(f'extension must start with a dot, e.g. ".md": {self.extension!r}')
        if not self.index_filename.startswith("."):
            raise ValueError(f"index filename must be a dotfile: {self.index_filename!r}")

    @property
    def id_pattern(self) -> re.Pattern:
        return re.compile(rf'^{re.escape(self.id_prefix)}([0-9]{{{MIN_ID_DIGITS},}})$')

    @property
    def index_path(self) -> Path:
        return self.root / self.index_filename

    def format_id(self, number: int) -> str:
        """Format a counter value as an ID, zero-padded to the minimum width."""
        return f"{self.id_prefix}{number:0{MIN_ID_DIGITS}d}"

    def file_for(self, doc_path: str) -> str:
        """Relative file location (under root) for a document path."""
        return f"{doc_path}{self.extension}"


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

_INVALID_PATH_CHARS = re.compile(r'[<>:"|?*\x00]')


def normalize_doc_path(path: str) -> str:
    """
    Validate and normalize a document path.

    Converts backslashes to slashes, strips leading/trailing slashes and
    collapses repeated ones. Rejects empty and absolute paths, ``.`` and
    ``..`` segments, hidden (dot-prefixed) segments and characters that
    are not portable across filesystems.

    Returns:
        The normalized, slash-separated relative path

    Raises:
        InvalidAddressError: If the path cannot name a document
    """
    if path is None or not str(path).strip():
        raise InvalidAddressError("Path cannot be empty", {"path": path})
    raw = str(path).strip()
    if raw.startswith("/") or re.match(r'^[A-Za-z]:[\\/]', raw):
        raise InvalidAddressError(
            f"Path must be relative (no leading slash): {raw!r}", {"path": raw},
        )
    normalized = raw.replace("\\", "/")
    segments = [seg for seg in normalized.split("/") if seg]
    if not segments:
        raise InvalidAddressError("Path cannot be empty", {"path": raw})
    for seg in segments:
        if seg in (".", ".."):
            raise InvalidAddressError(
                f"Path cannot contain '{seg}' segments: {raw!r}", {"path": raw},
            )
        if seg.startswith("."):
            raise InvalidAddressError(
                f"Path segments cannot start with '.': {raw!r}", {"path": raw},
            )
    joined = "/".join(segments)
    if _INVALID_PATH_CHARS.search(joined):
        raise InvalidAddressError(
            f"Path contains invalid characters: {raw!r}", {"path": raw},
        )
    return joined


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Address:
    """
    A document address: by generated ID or by path, with optional scope.

    When scope is None, an ID's scope is inferred from its prefix and a
    path is looked up in the project scope first, then the shared scope.
    """
    kind: str                       # "id" or "path"
    value: str
    scope: Optional[Scope] = None

    def __post_init__(self):
        if self.kind not in ("id", "path"):
            raise InvalidAddressError(f"Unknown address kind: {self.kind!r}")
        if self.scope is not None and not isinstance(self.scope, Scope):
            object.__setattr__(self, "scope", Scope.parse(self.scope))

    @classmethod
    def by_id(cls, id: str, scope: "Optional[Scope | str]" = None) -> "Address":
        return cls("id", id, Scope.parse(scope) if scope is not None else None)

    @classmethod
    def by_path(cls, path: str, scope: "Optional[Scope | str]" = None) -> "Address":
        return cls("path", path, Scope.parse(scope) if scope is not None else None)

    def with_scope(self, scope: Scope) -> "Address":
        return Address(self.kind, self.value, scope)

    def __str__(self) -> str:
        prefix = f"{self.scope.value}:" if self.scope else ""
        return f"{prefix}{self.value}"


@dataclass(frozen=True)
class ResolvedAddress:
    """Result of classifying an identifier: scope is None if it must be searched."""
    mode: str                       # "id" or "path"
    value: str
    scope: Optional[Scope]


# ---------------------------------------------------------------------------
# Edit operations (closed set, interpreted by edits.apply_edit)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReplaceOnce:
    """Replace the first occurrence of old_text."""
    old_text: str
    new_text: str


@dataclass(frozen=True)
class ReplaceAll:
    """Replace every occurrence of old_text."""
    old_text: str
    new_text: str


@dataclass(frozen=True)
class ReplaceRegex:
    """Substitute matches of pattern; flag 'g' replaces all matches."""
    pattern: str
    replacement: str
    flags: str = ""


@dataclass(frozen=True)
class ReplaceAllContent:
    """Discard prior content entirely."""
    content: str


EditOp = Union[ReplaceOnce, ReplaceAll, ReplaceRegex, ReplaceAllContent]

_OP_NAMES = {
    "replaceOnce": ReplaceOnce,
    "replace_once": ReplaceOnce,
    "replaceAll": ReplaceAll,
    "replace_all": ReplaceAll,
    "replaceRegex": ReplaceRegex,
    "replace_regex": ReplaceRegex,
    "replaceAllContent": ReplaceAllContent,
    "replace_all_content": ReplaceAllContent,
}


def _pick(d: dict, *keys: str, default: Any = None, required: bool = True) -> Any:
    for key in keys:
        if key in d:
            value = d[key]
            if not isinstance(value, str):
                raise InvalidEditError(f"Edit field {key!r} must be a string")
            return value
    if required:
        raise InvalidEditError(f"Edit op is missing field {keys[0]!r}")
    return default


def edit_op_from_dict(d: "dict | EditOp") -> EditOp:
    """
    Build an edit op from its wire form.

    Accepts ``{"op": "replaceOnce", "oldText": ..., "newText": ...}`` and the
    snake_case equivalents. Typed ops are passed through unchanged.
    """
    if isinstance(d, (ReplaceOnce, ReplaceAll, ReplaceRegex, ReplaceAllContent)):
        return d
    if not isinstance(d, dict):
        raise InvalidEditError(f"Edit op must be a mapping, got {type(d).__name__}")
    op_cls = _OP_NAMES.get(d.get("op", ""))
    if op_cls is None:
        raise InvalidEditError(f"Unknown edit operation: {d.get('op')!r}")
    if op_cls in (ReplaceOnce, ReplaceAll):
        return op_cls(
            old_text=_pick(d, "oldText", "old_text"),
            new_text=_pick(d, "newText", "new_text"),
        )
    if op_cls is ReplaceRegex:
        return ReplaceRegex(
            pattern=_pick(d, "pattern"),
            replacement=_pick(d, "replacement"),
            flags=_pick(d, "flags", default="", required=False) or "",
        )
    return ReplaceAllContent(content=_pick(d, "content"))


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class _Serializable:
    def to_dict(self) -> dict:
        """Serialize to a JSON-ready dict (scopes as names, None fields dropped)."""
        out = {}
        for key, value in asdict(self).items():
            if value is None:
                continue
            if isinstance(value, Scope):
                value = value.value
            out[key] = value
        return out


@dataclass(frozen=True)
class CreateResult(_Serializable):
    id: str
    path: str
    scope: Scope
    hash: str


@dataclass(frozen=True)
class Document(_Serializable):
    """
    A document as read from the store.

    Attributes:
        id: Generated identifier, unique within its scope's prefix space
        path: Slash-separated location within the scope root (no extension)
        scope: Namespace the document lives in
        content: Full text
        hash: Digest of content, used for optimistic concurrency
        synopsis: Optional ``synopsis`` field from the front matter block
        front_matter: All front matter fields, when a header block is present
        body: Content without the front matter block
        modified_at: UTC timestamp of the last successful write
    """
    id: str
    path: str
    scope: Scope
    content: str
    hash: str
    synopsis: Optional[str] = None
    front_matter: Optional[dict[str, Any]] = None
    body: str = ""
    modified_at: Optional[str] = None


@dataclass(frozen=True)
class EditResult(_Serializable):
    new_hash: str
    applied: int


@dataclass(frozen=True)
class DeleteResult(_Serializable):
    deleted: bool


@dataclass(frozen=True)
class MoveResult(_Serializable):
    old_id: str
    new_id: str
    old_path: str
    new_path: str
    old_scope: Scope
    new_scope: Scope
    hash: str


@dataclass
class ListItem(_Serializable):
    """One entry of a listing; override is 'overrides', 'overridden' or None."""
    scope: Scope
    id: str
    path: str
    modified_at: Optional[str] = None
    synopsis: Optional[str] = None
    hash: Optional[str] = None
    override: Optional[str] = None


@dataclass
class MultiReadResult:
    """Partial-success result of reading several addresses."""
    results: list[Document] = field(default_factory=list)
    errors: list[tuple[Address, Exception]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "results": [doc.to_dict() for doc in self.results],
            "errors": [
                {
                    "address": str(addr),
                    "code": getattr(exc, "code", "ERROR"),
                    "message": str(exc),
                }
                for addr, exc in self.errors
            ],
        }
