"""
Document service: the public create/read/edit/delete/move/list operations.

Composes the address resolver, the per-scope indexes and the file/folder
services of one collection. Structural operations (create, edit, delete,
move) hold the asyncio lock of every scope they touch for their whole
check-then-write sequence, so within one process ID allocation, index
writes and hash-checked content writes never interleave. Reads take no
lock. Blocking filesystem work runs in worker threads.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Callable, Iterable, Optional

from .addressing import AddressResolver
from .edits import apply_edits
from .errors import (
    AlreadyExistsError,
    ConflictError,
    DocShelfError,
    InvalidAddressError,
    InvalidEditError,
    NoOpError,
    NotFoundError,
)
from .file_service import FileService
from .folder_service import FolderService
from .frontmatter import extract_synopsis, parse_front_matter
from .index import ScopeIndex
from .types import (
    SCOPE_ORDER,
    Address,
    CreateResult,
    DeleteResult,
    Document,
    EditResult,
    ListItem,
    MoveResult,
    MultiReadResult,
    Scope,
    ScopeLayout,
    normalize_doc_path,
    utc_from_mtime,
)

logger = logging.getLogger(__name__)


def content_hash(content: str) -> str:
    """SHA256 of content, used for optimistic concurrency."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class DocService:
    """
    One collection of documents across the project and shared scopes.

    Example:
        service = DocService(layouts)
        created = await service.create("auth/jwt", "# JWT")
        doc = await service.read(created.id)
        await service.edit_latest(doc.id, doc.hash, [ReplaceAll("JWT", "JSON Web Token")])
        await service.delete_latest(doc.id)
    """

    def __init__(
        self,
        layouts: dict[Scope, ScopeLayout],
        *,
        name: str = "docs",
        on_write: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            layouts: Root directory and ID prefix for each scope
            name: Collection name, used in log lines
            on_write: Called before the first lock of every structural
                operation (the store uses it to open the ops log lazily)
        """
        self._name = name
        self._on_write = on_write
        self._resolver = AddressResolver(layouts)
        self._files: dict[Scope, FileService] = {}
        self._indexes: dict[Scope, ScopeIndex] = {}
        for scope in SCOPE_ORDER:
            layout = layouts[scope]
            files = FileService(layout.root, FolderService(layout.root))
            self._files[scope] = files
            self._indexes[scope] = ScopeIndex(layout, files)
        self._locks = {scope: asyncio.Lock() for scope in SCOPE_ORDER}

    @property
    def name(self) -> str:
        return self._name

    @property
    def resolver(self) -> AddressResolver:
        return self._resolver

    def layout(self, scope: Scope) -> ScopeLayout:
        return self._resolver.layout(scope)

    def index(self, scope: Scope) -> ScopeIndex:
        return self._indexes[scope]

    @asynccontextmanager
    async def _locked(self, *scopes: Scope):
        """
        Hold the locks of the given scopes, acquired in the fixed scope order.

        Locks already taken are released if acquiring a later one is
        cancelled.
        """
        if self._on_write is not None:
            self._on_write()
        async with AsyncExitStack() as stack:
            for scope in SCOPE_ORDER:
                if scope in scopes:
                    await stack.enter_async_context(self._locks[scope])
            yield

    # -------------------------------------------------------------------------
    # Resolution (sync, runs in worker threads)
    # -------------------------------------------------------------------------

    def _locate(self, address: Address) -> Optional[tuple[Scope, str, str]]:
        """
        Map an address to (scope, id, path) through the index.

        Path addresses without scope are looked up in the project scope,
        then the shared scope. Returns None when nothing matches.
        """
        if address.kind == "id":
            scope = address.scope or self._resolver.scope_of_id(address.value)
            path = self._indexes[scope].get_path(address.value)
            return (scope, address.value, path) if path is not None else None

        scopes = (address.scope,) if address.scope else SCOPE_ORDER
        for scope in scopes:
            doc_id = self._indexes[scope].find_by_path(address.value)
            if doc_id is not None:
                return scope, doc_id, address.value
        return None

    def _not_found(self, address: Address) -> NotFoundError:
        where = f" in scope '{address.scope.value}'" if address.scope else ""
        label = "ID" if address.kind == "id" else "path"
        return NotFoundError(
            f"No {self._name} document with {label} {address.value!r}{where}",
            {"address": str(address), "kind": address.kind},
        )

    def _read_located(self, scope: Scope, doc_id: str, path: str) -> Document:
        files = self._files[scope]
        rel = self.layout(scope).file_for(path)
        try:
            content = files.read(rel)
            mtime = files.mtime(rel)
        except NotFoundError:
            raise NotFoundError(
                f"Index entry {doc_id!r} points to missing file {rel!r} in scope '{scope.value}'",
                {"id": doc_id, "path": path, "scope": scope.value},
            ) from None
        front_matter, body = parse_front_matter(content)
        return Document(
            id=doc_id,
            path=path,
            scope=scope,
            content=content,
            hash=content_hash(content),
            synopsis=extract_synopsis(content),
            front_matter=front_matter,
            body=body,
            modified_at=utc_from_mtime(mtime),
        )

    def _read_sync(self, address: Address) -> Document:
        located = self._locate(address)
        if located is None:
            raise self._not_found(address)
        return self._read_located(*located)

    # -------------------------------------------------------------------------
    # Mutations (sync, called with the scope lock held)
    # -------------------------------------------------------------------------

    def _create_sync(self, scope: Scope, path: str, content: str) -> CreateResult:
        if self._resolver.is_id(path):
            raise InvalidAddressError(
                f"Cannot create a document at {path!r}: it matches the ID pattern",
                {"path": path, "scope": scope.value},
            )
        index = self._indexes[scope]
        files = self._files[scope]
        rel = self.layout(scope).file_for(path)

        owner = index.find_by_path(path)
        if owner is not None:
            raise AlreadyExistsError(
                f"Document already exists at {path!r} in scope '{scope.value}' ({owner})",
                {"path": path, "scope": scope.value, "id": owner},
            )
        if files.exists(rel):
            raise AlreadyExistsError(
                f"Unindexed file already exists at {path!r} in scope '{scope.value}'",
                {"path": path, "scope": scope.value},
            )

        doc_id = index.allocate_id()
        files.write(rel, content)
        try:
            index.put(doc_id, path)
        except BaseException:
            # Keep index and filesystem in agreement
            files.remove(rel)
            files.folders.prune_empty_ancestors(rel)
            raise

        digest = content_hash(content)
        logger.info("create %s %s %s:%s %s", self._name, doc_id, scope.value, path, digest[:10])
        return CreateResult(id=doc_id, path=path, scope=scope, hash=digest)

    def _edit_sync(
        self,
        address: Address,
        base_hash: Optional[str],
        ops: list,
        force: bool,
    ) -> EditResult:
        located = self._locate(address)
        if located is None:
            raise self._not_found(address)
        scope, doc_id, path = located
        doc = self._read_located(scope, doc_id, path)

        if not force and base_hash != doc.hash:
            raise ConflictError(
                f"Hash mismatch for {doc_id}: expected {base_hash}, current {doc.hash}",
                expected=base_hash,
                actual=doc.hash,
            )

        new_content, applied = apply_edits(doc.content, ops)
        if applied == 0 or new_content == doc.content:
            return EditResult(new_hash=doc.hash, applied=applied)

        self._files[scope].write(self.layout(scope).file_for(path), new_content)
        new_hash = content_hash(new_content)
        logger.info(
            "edit %s %s %s:%s %s -> %s (%d ops%s)",
            self._name, doc_id, scope.value, path, doc.hash[:10], new_hash[:10],
            applied, ", forced" if force else "",
        )
        return EditResult(new_hash=new_hash, applied=applied)

    def _delete_sync(self, address: Address, expected_hash: Optional[str]) -> DeleteResult:
        located = self._locate(address)
        if located is None:
            return DeleteResult(deleted=False)
        scope, doc_id, path = located
        files = self._files[scope]
        rel = self.layout(scope).file_for(path)

        if expected_hash is not None:
            try:
                current = content_hash(files.read(rel))
            except NotFoundError:
                current = None
            if current is not None and current != expected_hash:
                raise ConflictError(
                    f"Hash mismatch for {doc_id}: expected {expected_hash}, current {current}",
                    expected=expected_hash,
                    actual=current,
                )

        deleted = True
        try:
            files.remove(rel)
        except NotFoundError:
            deleted = False
            logger.warning("Index entry %s had no file at %s; dropping entry", doc_id, rel)

        self._indexes[scope].remove(doc_id)
        files.folders.prune_empty_ancestors(rel)
        logger.info("delete %s %s %s:%s", self._name, doc_id, scope.value, path)
        return DeleteResult(deleted=deleted)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def create(
        self,
        address: "Address | str",
        content: str,
        *,
        scope: "Optional[Scope | str]" = None,
    ) -> CreateResult:
        """
        Create a document at a path.

        Scope defaults to project. A new ID is minted for the scope.

        Raises:
            AlreadyExistsError: The (scope, path) is taken
            InvalidAddressError: Address is an ID or an invalid path
        """
        if isinstance(address, Address):
            if address.kind != "path":
                raise InvalidAddressError("Create requires a path address", {"address": str(address)})
            target_scope = address.scope or (Scope.parse(scope) if scope else Scope.PROJECT)
            path = normalize_doc_path(address.value)
        else:
            target_scope = Scope.parse(scope) if scope else Scope.PROJECT
            path = normalize_doc_path(address)
        if not isinstance(content, str):
            raise TypeError("content must be str")

        async with self._locked(target_scope):
            return await asyncio.to_thread(self._create_sync, target_scope, path, content)

    async def read(
        self,
        address: "Address | str",
        *,
        scope: "Optional[Scope | str]" = None,
    ) -> Document:
        """
        Read a document by ID or path.

        A path without scope is tried in the project scope, then shared.

        Raises:
            NotFoundError: Neither scope has it (or its file is missing)
        """
        addr = self._resolver.to_address(address, scope)
        return await asyncio.to_thread(self._read_sync, addr)

    async def edit_latest(
        self,
        address: "Address | str",
        base_hash: Optional[str],
        ops: Iterable,
        *,
        scope: "Optional[Scope | str]" = None,
        force: bool = False,
    ) -> EditResult:
        """
        Apply edit ops to the current content, guarded by its hash.

        Args:
            address: Document ID or path
            base_hash: Hash the caller last read; must match the stored hash
            ops: Edit ops (typed or dict form), applied in order
            scope: Optional explicit scope
            force: Last-write-wins mode: skip the hash check. Required when
                base_hash is None.

        Returns:
            EditResult with the new hash and count of applied ops

        Raises:
            ConflictError: base_hash is stale
            TextNotFoundError: A replace target is absent (nothing written)
            InvalidEditError: Malformed op, or no base_hash without force
        """
        if base_hash is None and not force:
            raise InvalidEditError("base_hash is required unless force=True (last-write-wins)")
        ops = list(ops)
        addr = self._resolver.to_address(address, scope)
        target_scope = await asyncio.to_thread(self._scope_for, addr)
        if target_scope is None:
            raise self._not_found(addr)

        async with self._locked(target_scope):
            return await asyncio.to_thread(
                self._edit_sync, addr.with_scope(target_scope), base_hash, ops, force,
            )

    async def delete_latest(
        self,
        address: "Address | str",
        expected_hash: Optional[str] = None,
        *,
        scope: "Optional[Scope | str]" = None,
    ) -> DeleteResult:
        """
        Delete a document, pruning directories it leaves empty.

        Idempotent: an address that no longer resolves returns
        ``deleted=False`` instead of failing.

        Raises:
            ConflictError: expected_hash given and stale
        """
        addr = self._resolver.to_address(address, scope)
        target_scope = await asyncio.to_thread(self._scope_for, addr)
        if target_scope is None:
            return DeleteResult(deleted=False)

        async with self._locked(target_scope):
            return await asyncio.to_thread(
                self._delete_sync, addr.with_scope(target_scope), expected_hash,
            )

    async def move(
        self,
        source: "Address | str",
        destination: str,
        *,
        source_scope: "Optional[Scope | str]" = None,
        destination_scope: "Optional[Scope | str]" = None,
    ) -> MoveResult:
        """
        Move a document: create at destination, then delete the source.

        Always mints a new ID, even for a same-scope rename. Destination
        scope defaults to the source's resolved scope.

        Raises:
            NotFoundError: Source does not resolve
            AlreadyExistsError: Destination is occupied
            NoOpError: Source and destination are the same (scope, path)
        """
        src = self._resolver.to_address(source, source_scope)
        if isinstance(destination, Address):
            if destination.kind != "path":
                raise InvalidAddressError("Move destination must be a path", {"destination": str(destination)})
            destination_scope = destination.scope or destination_scope
            destination = destination.value
        dst_path = normalize_doc_path(destination)

        located = await asyncio.to_thread(self._locate, src)
        if located is None:
            raise self._not_found(src)
        src_scope, src_id, src_path = located
        dst_scope = Scope.parse(destination_scope) if destination_scope else src_scope

        if src_scope is dst_scope and src_path == dst_path:
            raise NoOpError(
                f"Source and destination are identical: {src_scope.value}:{src_path}",
                {"scope": src_scope.value, "path": src_path},
            )

        async with self._locked(src_scope, dst_scope):
            return await asyncio.to_thread(
                self._move_sync, src_scope, src_id, dst_scope, dst_path,
            )

    def _move_sync(self, src_scope: Scope, src_id: str, dst_scope: Scope, dst_path: str) -> MoveResult:
        src_addr = Address("id", src_id, src_scope)
        doc = self._read_sync(src_addr)
        created = self._create_sync(dst_scope, dst_path, doc.content)
        self._delete_sync(src_addr, doc.hash)
        logger.info(
            "move %s %s %s:%s -> %s %s:%s",
            self._name, doc.id, src_scope.value, doc.path, created.id, dst_scope.value, dst_path,
        )
        return MoveResult(
            old_id=doc.id,
            new_id=created.id,
            old_path=doc.path,
            new_path=created.path,
            old_scope=src_scope,
            new_scope=dst_scope,
            hash=created.hash,
        )

    def _scope_for(self, address: Address) -> Optional[Scope]:
        located = self._locate(address)
        return located[0] if located else None

    async def list(
        self,
        *,
        scope: "Optional[Scope | str]" = None,
        path_prefix: Optional[str] = None,
        include_content: bool = False,
    ) -> list[ListItem]:
        """
        List documents, sorted by path.

        Without scope both namespaces are listed and same-path pairs are
        annotated: the project item ``overrides``, the shared item is
        ``overridden``. include_content adds synopsis and hash.
        """
        scopes = (Scope.parse(scope),) if scope else SCOPE_ORDER
        return await asyncio.to_thread(self._list_sync, scopes, path_prefix, include_content)

    def _list_sync(
        self,
        scopes: tuple[Scope, ...],
        path_prefix: Optional[str],
        include_content: bool,
    ) -> list[ListItem]:
        per_scope: dict[Scope, list[ListItem]] = {}
        for scope in scopes:
            per_scope[scope] = self._list_scope(scope, path_prefix, include_content)

        if len(scopes) > 1:
            project_paths = {item.path for item in per_scope[Scope.PROJECT]}
            shared_paths = {item.path for item in per_scope[Scope.SHARED]}
            for item in per_scope[Scope.PROJECT]:
                if item.path in shared_paths:
                    item.override = "overrides"
            for item in per_scope[Scope.SHARED]:
                if item.path in project_paths:
                    item.override = "overridden"

        combined = [item for scope in scopes for item in per_scope[scope]]
        combined.sort(key=lambda item: (item.path, SCOPE_ORDER.index(item.scope)))
        return combined

    def _list_scope(self, scope: Scope, path_prefix: Optional[str], include_content: bool) -> list[ListItem]:
        files = self._files[scope]
        layout = self.layout(scope)
        items = []
        for doc_id, path in self._indexes[scope].items():
            if path_prefix and not path.startswith(path_prefix):
                continue
            rel = layout.file_for(path)
            try:
                if include_content:
                    doc = self._read_located(scope, doc_id, path)
                    items.append(ListItem(
                        scope=scope, id=doc_id, path=path,
                        modified_at=doc.modified_at, synopsis=doc.synopsis, hash=doc.hash,
                    ))
                else:
                    items.append(ListItem(
                        scope=scope, id=doc_id, path=path,
                        modified_at=utc_from_mtime(files.mtime(rel)),
                    ))
            except NotFoundError:
                logger.warning("Skipping %s %s: file %s is missing", scope.value, doc_id, rel)
        return items

    async def multiread(
        self,
        addresses: Iterable["Address | str"],
        *,
        scope: "Optional[Scope | str]" = None,
    ) -> MultiReadResult:
        """Read several documents; failures are collected, not raised."""
        result = MultiReadResult()
        for target in addresses:
            try:
                result.results.append(await self.read(target, scope=scope))
            except (DocShelfError, OSError) as e:
                if not isinstance(target, Address):
                    kind = "id" if self._resolver.is_id(str(target).strip()) else "path"
                    target = Address(kind, str(target))
                result.errors.append((target, e))
        return result
