"""
MCP stdio server for docshelf: document and cartridge tools for AI agents.

Exposes the store operations as MCP tools so local agents can create,
read and edit scoped documents without HTTP infrastructure.

Usage:
    docshelf mcp                                  # stdio server (via CLI)
    claude mcp add docshelf -- docshelf mcp       # agent integration

Each tool returns JSON text, or ``Error [CODE]: message`` on failure.
Store-level mutations are serialized per scope by the document service.
"""

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any, Optional

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from .api import DocShelf
from .errors import DocShelfError
from .service import DocService

# ---------------------------------------------------------------------------
# Server setup
# ---------------------------------------------------------------------------

mcp = FastMCP(
    "docshelf",
    instructions=(
        "Scoped document storage. Documents and cartridges live in a project "
        "scope and a shared scope; address them by generated ID (doc001, "
        "sdoc001, crt001, scrt001) or by path. Read first, then pass the "
        "returned hash to edit or delete so concurrent changes are detected."
    ),
)

_shelf: Optional[DocShelf] = None
_lock = asyncio.Lock()


def _get_shelf() -> DocShelf:
    """Lazy-init the store (respects DOCSHELF_PROJECT_ROOT / DOCSHELF_SHARED_ROOT).

    Must be called inside ``async with _lock`` so concurrent first calls
    do not race on the global.
    """
    global _shelf
    if _shelf is None:
        import os
        project_root = os.environ.get("DOCSHELF_PROJECT_ROOT")
        shared_root = os.environ.get("DOCSHELF_SHARED_ROOT")
        _shelf = DocShelf(
            Path(project_root) if project_root else None,
            Path(shared_root) if shared_root else None,
        )
    return _shelf


async def _service(collection: str) -> DocService:
    async with _lock:
        return _get_shelf().collection(collection)


def _ok(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _error(e: DocShelfError) -> str:
    return f"Error [{e.code}]: {e.message}"


# ---------------------------------------------------------------------------
# Tool annotations
# ---------------------------------------------------------------------------

_READ_ONLY = ToolAnnotations(readOnlyHint=True, destructiveHint=False)
_CREATE = ToolAnnotations(destructiveHint=False, idempotentHint=False)
_IDEMPOTENT_DESTRUCTIVE = ToolAnnotations(destructiveHint=True, idempotentHint=True)
_DESTRUCTIVE = ToolAnnotations(destructiveHint=True, idempotentHint=False)


# ---------------------------------------------------------------------------
# Shared parameter types
# ---------------------------------------------------------------------------

AddressParam = Annotated[str, Field(
    description="Generated ID (e.g. doc001) or path (e.g. auth/jwt-setup, no extension).",
)]
ScopeParam = Annotated[Optional[str], Field(
    description=(
        "'project' or 'shared'. Omit to infer: IDs by prefix, paths project-first then shared."
    ),
)]
HashParam = Annotated[Optional[str], Field(
    description="Hash from your last read. The write fails with CONFLICT if the content changed since.",
)]
OpsParam = Annotated[list[dict[str, str]], Field(
    description=(
        "Edit operations, applied in order. Each is one of: "
        '{"op": "replaceOnce", "oldText": ..., "newText": ...}, '
        '{"op": "replaceAll", "oldText": ..., "newText": ...}, '
        '{"op": "replaceRegex", "pattern": ..., "replacement": ..., "flags": "g"}, '
        '{"op": "replaceAllContent", "content": ...}. '
        "Regex replacements use \\1 for groups."
    ),
)]


# ---------------------------------------------------------------------------
# Implementations (shared by doc_* and cartridge_* tools)
# ---------------------------------------------------------------------------


async def _create(collection: str, path: str, content: str, scope: Optional[str]) -> str:
    service = await _service(collection)
    try:
        result = await service.create(path, content, scope=scope)
    except DocShelfError as e:
        return _error(e)
    return _ok(result.to_dict())


async def _read(collection: str, address: str, scope: Optional[str]) -> str:
    service = await _service(collection)
    try:
        doc = await service.read(address, scope=scope)
    except DocShelfError as e:
        return _error(e)
    data = doc.to_dict()
    # body duplicates content; front_matter is enough
    data.pop("body", None)
    return _ok(data)


async def _edit(
    collection: str,
    address: str,
    ops: list[dict[str, str]],
    base_hash: Optional[str],
    scope: Optional[str],
) -> str:
    service = await _service(collection)
    try:
        result = await service.edit_latest(
            address, base_hash, ops, scope=scope, force=base_hash is None,
        )
    except DocShelfError as e:
        return _error(e)
    return _ok(result.to_dict())


async def _delete(collection: str, address: str, base_hash: Optional[str], scope: Optional[str]) -> str:
    service = await _service(collection)
    try:
        result = await service.delete_latest(address, base_hash, scope=scope)
    except DocShelfError as e:
        return _error(e)
    return _ok(result.to_dict())


async def _move(
    collection: str,
    source: str,
    destination: str,
    from_scope: Optional[str],
    to_scope: Optional[str],
) -> str:
    service = await _service(collection)
    try:
        result = await service.move(
            source, destination, source_scope=from_scope, destination_scope=to_scope,
        )
    except DocShelfError as e:
        return _error(e)
    return _ok(result.to_dict())


async def _list(
    collection: str,
    scope: Optional[str],
    prefix: Optional[str],
    include_synopsis: bool,
) -> str:
    service = await _service(collection)
    try:
        items = await service.list(scope=scope, path_prefix=prefix, include_content=include_synopsis)
    except DocShelfError as e:
        return _error(e)
    return _ok([item.to_dict() for item in items])


# ---------------------------------------------------------------------------
# Document tools
# ---------------------------------------------------------------------------


@mcp.tool(
    description=(
        "Create a markdown document at a path. Returns its generated ID and hash. "
        "Fails with ALREADY_EXISTS if the path is taken in that scope."
    ),
    annotations=_CREATE,
)
async def doc_create(
    path: Annotated[str, Field(description="Slash-separated path without extension, e.g. auth/jwt-setup.")],
    content: Annotated[str, Field(description="Full document text (markdown, optional front matter).")],
    scope: Annotated[Optional[str], Field(description="'project' (default) or 'shared'.")] = None,
) -> str:
    """Create a document."""
    return await _create("docs", path, content, scope)


@mcp.tool(
    description="Read a document by ID or path. Returns content, hash, scope and synopsis.",
    annotations=_READ_ONLY,
)
async def doc_read(address: AddressParam, scope: ScopeParam = None) -> str:
    """Read a document."""
    return await _read("docs", address, scope)


@mcp.tool(
    description=(
        "Edit a document with text replacements. Pass the hash from doc_read; "
        "without it the edit is applied to whatever is current (last write wins)."
    ),
    annotations=_DESTRUCTIVE,
)
async def doc_edit(
    address: AddressParam,
    ops: OpsParam,
    hash: HashParam = None,
    scope: ScopeParam = None,
) -> str:
    """Edit a document."""
    return await _edit("docs", address, ops, hash, scope)


@mcp.tool(
    description="Delete a document. Deleting one that is already gone returns deleted=false.",
    annotations=_IDEMPOTENT_DESTRUCTIVE,
)
async def doc_delete(address: AddressParam, hash: HashParam = None, scope: ScopeParam = None) -> str:
    """Delete a document."""
    return await _delete("docs", address, hash, scope)


@mcp.tool(
    description=(
        "Move a document to a new path and/or scope. The moved document gets a new ID; "
        "the old ID stops resolving."
    ),
    annotations=_DESTRUCTIVE,
)
async def doc_move(
    source: AddressParam,
    destination: Annotated[str, Field(description="Destination path (not an ID).")],
    from_scope: ScopeParam = None,
    to_scope: Annotated[Optional[str], Field(
        description="Destination scope. Defaults to the source's scope.",
    )] = None,
) -> str:
    """Move a document."""
    return await _move("docs", source, destination, from_scope, to_scope)


@mcp.tool(
    description=(
        "List documents sorted by path. Without scope, both scopes are listed and "
        "same-path pairs are marked overrides/overridden."
    ),
    annotations=_READ_ONLY,
)
async def doc_list(
    scope: ScopeParam = None,
    prefix: Annotated[Optional[str], Field(description="Only paths starting with this prefix.")] = None,
    include_synopsis: Annotated[bool, Field(
        description="Include synopsis and hash for each item (reads every file).",
    )] = False,
) -> str:
    """List documents."""
    return await _list("docs", scope, prefix, include_synopsis)


# ---------------------------------------------------------------------------
# Cartridge tools
# ---------------------------------------------------------------------------


@mcp.tool(
    description=(
        "Create a cartridge (reusable knowledge unit) at a path. Returns its generated ID and hash."
    ),
    annotations=_CREATE,
)
async def cartridge_create(
    path: Annotated[str, Field(description="Slash-separated path without extension.")],
    content: Annotated[str, Field(description="Full cartridge text.")],
    scope: Annotated[Optional[str], Field(description="'project' (default) or 'shared'.")] = None,
) -> str:
    """Create a cartridge."""
    return await _create("cartridges", path, content, scope)


@mcp.tool(
    description="Read a cartridge by ID or path.",
    annotations=_READ_ONLY,
)
async def cartridge_read(address: AddressParam, scope: ScopeParam = None) -> str:
    """Read a cartridge."""
    return await _read("cartridges", address, scope)


@mcp.tool(
    description="Edit a cartridge with text replacements, guarded by the hash from cartridge_read.",
    annotations=_DESTRUCTIVE,
)
async def cartridge_edit(
    address: AddressParam,
    ops: OpsParam,
    hash: HashParam = None,
    scope: ScopeParam = None,
) -> str:
    """Edit a cartridge."""
    return await _edit("cartridges", address, ops, hash, scope)


@mcp.tool(
    description="Delete a cartridge. Deleting one that is already gone returns deleted=false.",
    annotations=_IDEMPOTENT_DESTRUCTIVE,
)
async def cartridge_delete(address: AddressParam, hash: HashParam = None, scope: ScopeParam = None) -> str:
    """Delete a cartridge."""
    return await _delete("cartridges", address, hash, scope)


@mcp.tool(
    description="Move a cartridge to a new path and/or scope. The moved cartridge gets a new ID.",
    annotations=_DESTRUCTIVE,
)
async def cartridge_move(
    source: AddressParam,
    destination: Annotated[str, Field(description="Destination path (not an ID).")],
    from_scope: ScopeParam = None,
    to_scope: Annotated[Optional[str], Field(
        description="Destination scope. Defaults to the source's scope.",
    )] = None,
) -> str:
    """Move a cartridge."""
    return await _move("cartridges", source, destination, from_scope, to_scope)


@mcp.tool(
    description="List cartridges sorted by path, marking project/shared overrides.",
    annotations=_READ_ONLY,
)
async def cartridge_list(
    scope: ScopeParam = None,
    prefix: Annotated[Optional[str], Field(description="Only paths starting with this prefix.")] = None,
    include_synopsis: Annotated[bool, Field(
        description="Include synopsis and hash for each item (reads every file).",
    )] = False,
) -> str:
    """List cartridges."""
    return await _list("cartridges", scope, prefix, include_synopsis)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    """Run the MCP stdio server."""
    import os
    import signal
    # anyio's stdin reader shields the blocking readline from cancellation,
    # so the first Ctrl+C would not stop the server; exit directly instead.
    signal.signal(signal.SIGINT, lambda *_: os._exit(130))

    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
