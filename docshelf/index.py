"""
Persisted ID -> path index, one per scope.

The index is the authority for which IDs exist and where they point; the
filesystem is the authority for content. It is stored as a single JSON
object ``{id: path}`` in the scope root and rewritten in full (atomically)
on every structural change.

A ScopeIndex is a long-lived handle: it loads the file once, keeps the
mapping and its inverse in memory, and reloads only when the file on disk
changes underneath it. Callers serialize mutations per scope.
"""

import json
import logging
from typing import Iterator, Optional

from .errors import AlreadyExistsError, IndexCorruptError, NotFoundError
from .file_service import FileService
from .types import ScopeLayout

logger = logging.getLogger(__name__)

# Sidecar holding the highest counter ever issued, so IDs are never reused
COUNTER_SUFFIX = ".counter"


def _parse_index(text: str, source: str) -> dict[str, str]:
    """
    Parse index JSON into a flat ``{id: path}`` dict.

    Accepts the legacy nested layout ``{"id": {id: {"path": p}}, "pathToId": {...}}``
    and flattens it.

    Raises:
        IndexCorruptError: Malformed JSON, wrong shape, or duplicate paths
    """
    try:
        data = json.loads(text) if text.strip() else {}
    except json.JSONDecodeError as e:
        raise IndexCorruptError(f"Index is not valid JSON: {source}: {e}", {"index": source}) from e
    if not isinstance(data, dict):
        raise IndexCorruptError(f"Index root must be an object: {source}", {"index": source})

    if isinstance(data.get("id"), dict) and isinstance(data.get("pathToId"), dict):
        logger.info("Migrating nested index layout: %s", source)
        flat = {}
        for doc_id, meta in data["id"].items():
            if not isinstance(meta, dict) or not isinstance(meta.get("path"), str):
                raise IndexCorruptError(f"Bad entry {doc_id!r} in {source}", {"index": source})
            flat[doc_id] = meta["path"]
        data = flat

    seen: dict[str, str] = {}
    for doc_id, path in data.items():
        if not isinstance(path, str):
            raise IndexCorruptError(
                f"Index value for {doc_id!r} must be a path string: {source}",
                {"index": source, "id": doc_id},
            )
        if path in seen:
            raise IndexCorruptError(
                f"Path {path!r} is mapped by both {seen[path]!r} and {doc_id!r}: {source}",
                {"index": source, "path": path},
            )
        seen[path] = doc_id
    return dict(data)


class ScopeIndex:
    """
    In-memory view of one scope's index file with write-through persistence.

    Example:
        index = ScopeIndex(layout, files)
        new_id = index.allocate_id()
        index.put(new_id, "auth/jwt")
        index.find_by_path("auth/jwt")   # -> new_id
    """

    def __init__(self, layout: ScopeLayout, files: FileService):
        self._layout = layout
        self._files = files
        self._by_id: dict[str, str] = {}
        self._by_path: dict[str, str] = {}
        self._signature: Optional[tuple[int, int]] = None
        self._loaded = False

    @property
    def layout(self) -> ScopeLayout:
        return self._layout

    def _disk_signature(self) -> Optional[tuple[int, int]]:
        try:
            st = self._files.resolve(self._layout.index_filename).stat()
        except FileNotFoundError:
            return None
        return (st.st_mtime_ns, st.st_size)

    def _set(self, entries: dict[str, str]) -> None:
        self._by_id = dict(entries)
        self._by_path = {path: doc_id for doc_id, path in entries.items()}

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def load(self) -> dict[str, str]:
        """
        Return the current ``{id: path}`` mapping.

        Reads the file on first use and whenever its (mtime, size) changed.
        A missing file is an empty index.
        """
        signature = self._disk_signature()
        if self._loaded and signature == self._signature:
            return dict(self._by_id)

        if signature is None:
            entries: dict[str, str] = {}
        else:
            try:
                text = self._files.read(self._layout.index_filename)
            except NotFoundError:
                text, signature = "", None
            entries = _parse_index(text, str(self._layout.index_path))

        self._set(entries)
        self._signature = signature
        self._loaded = True
        logger.debug("Loaded %s index: %d entries", self._layout.scope.value, len(entries))
        return dict(self._by_id)

    def save(self, data: dict[str, str]) -> None:
        """Replace the whole index with data and persist it atomically."""
        entries = _parse_index(json.dumps(data), str(self._layout.index_path))
        text = json.dumps(entries, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
        self._files.write(self._layout.index_filename, text)
        self._set(entries)
        self._signature = self._disk_signature()
        self._loaded = True

    # -------------------------------------------------------------------------
    # ID allocation
    # -------------------------------------------------------------------------

    def _counter_file(self) -> str:
        return self._layout.index_filename + COUNTER_SUFFIX

    def _high_water(self) -> int:
        try:
            text = self._files.read(self._counter_file()).strip()
        except NotFoundError:
            return 0
        try:
            return int(text)
        except ValueError:
            logger.warning("Ignoring unreadable ID counter in %s", self._layout.root)
            return 0

    def allocate_id(self) -> str:
        """
        Mint the next ID for this scope.

        Takes the largest numeric suffix among existing IDs (and among IDs
        issued before, so deleted IDs are not handed out again), adds one,
        and zero-pads to at least three digits. Width grows past 999.
        Does not reserve the ID; put() does.
        """
        pattern = self._layout.id_pattern
        highest = self._high_water()
        for doc_id in self.load():
            match = pattern.match(doc_id)
            if match:
                highest = max(highest, int(match.group(1)))
        return self._layout.format_id(highest + 1)

    def _record_issued(self, doc_id: str) -> None:
        match = self._layout.id_pattern.match(doc_id)
        if match and int(match.group(1)) > self._high_water():
            self._files.write(self._counter_file(), f"{int(match.group(1))}\n")

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def put(self, doc_id: str, path: str) -> None:
        """
        Map doc_id to path and persist.

        Raises:
            AlreadyExistsError: If the ID or the path is already taken
        """
        entries = self.load()
        if doc_id in entries:
            raise AlreadyExistsError(
                f"ID {doc_id!r} already exists in scope '{self._layout.scope.value}'",
                {"id": doc_id, "scope": self._layout.scope.value},
            )
        owner = self._by_path.get(path)
        if owner is not None:
            raise AlreadyExistsError(
                f"Path {path!r} already indexed as {owner!r} in scope '{self._layout.scope.value}'",
                {"path": path, "id": owner, "scope": self._layout.scope.value},
            )
        # Counter first: a failure here must leave the index untouched
        self._record_issued(doc_id)
        entries[doc_id] = path
        self.save(entries)

    def remove(self, doc_id: str) -> Optional[str]:
        """Drop doc_id and persist. Returns its former path, or None if absent."""
        entries = self.load()
        path = entries.pop(doc_id, None)
        if path is not None:
            self.save(entries)
        return path

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_path(self, doc_id: str) -> Optional[str]:
        self.load()
        return self._by_id.get(doc_id)

    def find_by_path(self, path: str) -> Optional[str]:
        self.load()
        return self._by_path.get(path)

    def items(self) -> Iterator[tuple[str, str]]:
        return iter(self.load().items())

    def __len__(self) -> int:
        return len(self.load())
