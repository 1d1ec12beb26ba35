"""
docshelf

Scoped document storage: markdown documents and cartridges addressed by
generated ID or by path, in a per-project namespace and a shared one.

Quick Start:
    from docshelf import DocShelf

    with DocShelf() as shelf:
        created = await shelf.docs.create("auth/jwt-setup", "# JWT")
        doc = await shelf.docs.read(created.id)
        await shelf.docs.edit_latest(doc.id, doc.hash, [ReplaceAll("JWT", "JSON Web Token")])

CLI Usage:
    docshelf init
    docshelf doc create auth/jwt-setup --content "# JWT"
    docshelf doc read doc001
    docshelf cartridge list --scope shared

Default Store:
    Project: nearest .docshelf/ walking up from the working directory.
    Shared: ~/.docshelf/

Environment Variables:
    DOCSHELF_PROJECT_ROOT   - Override the project boundary
    DOCSHELF_SHARED_ROOT    - Override the shared boundary
    DOCSHELF_VERBOSE        - Set to 1 for debug logging
"""

from .api import DocShelf
from .errors import (
    AlreadyExistsError,
    ConflictError,
    DocShelfError,
    IndexCorruptError,
    InvalidAddressError,
    InvalidEditError,
    NoOpError,
    NotFoundError,
    OutOfBoundaryError,
    TextNotFoundError,
)
from .service import DocService, content_hash
from .types import (
    Address,
    Document,
    ListItem,
    ReplaceAll,
    ReplaceAllContent,
    ReplaceOnce,
    ReplaceRegex,
    Scope,
    ScopeLayout,
)

__version__ = "0.1.0"
__all__ = [
    "DocShelf",
    "DocService",
    "content_hash",
    "Address",
    "Document",
    "ListItem",
    "Scope",
    "ScopeLayout",
    "ReplaceOnce",
    "ReplaceAll",
    "ReplaceRegex",
    "ReplaceAllContent",
    "DocShelfError",
    "NotFoundError",
    "AlreadyExistsError",
    "ConflictError",
    "InvalidAddressError",
    "TextNotFoundError",
    "OutOfBoundaryError",
    "NoOpError",
    "InvalidEditError",
    "IndexCorruptError",
]
