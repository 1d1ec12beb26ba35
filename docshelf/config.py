"""
Configuration management for docshelf stores.

A store has two boundary directories: the project boundary (``.docshelf``
inside a project) and the shared boundary (``~/.docshelf``). The optional
configuration file lives in the project boundary as TOML and describes the
collections (documents, cartridges) kept under each boundary.

Example docshelf.toml:

    [store]
    version = 1
    created = "2026-01-01T00:00:00"
    index_filename = ".index.json"

    [collections.docs]
    subdir = "docs"
    extension = ".md"
    project_prefix = "doc"
    shared_prefix = "sdoc"
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import tomli_w

from .types import Scope, ScopeLayout, utc_now

CONFIG_FILENAME = "docshelf.toml"
CONFIG_VERSION = 1
BOUNDARY_DIRNAME = ".docshelf"
INDEX_FILENAME = ".index.json"

PROJECT_ROOT_ENV = "DOCSHELF_PROJECT_ROOT"
SHARED_ROOT_ENV = "DOCSHELF_SHARED_ROOT"


@dataclass
class CollectionConfig:
    """One kind of stored entity, with its own subdirectory and ID prefixes."""
    name: str
    subdir: str
    project_prefix: str
    shared_prefix: str
    extension: str = ".md"


def default_collections() -> dict[str, CollectionConfig]:
    return {
        "docs": CollectionConfig("docs", "docs", "doc", "sdoc"),
        "cartridges": CollectionConfig("cartridges", "cartridges", "crt", "scrt"),
    }


@dataclass
class StoreConfig:
    """Complete store configuration."""
    project_root: Path
    shared_root: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=utc_now)
    index_filename: str = INDEX_FILENAME
    collections: dict[str, CollectionConfig] = field(default_factory=default_collections)

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.project_root / CONFIG_FILENAME

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()

    def collection(self, name: str) -> CollectionConfig:
        try:
            return self.collections[name]
        except KeyError:
            known = ", ".join(sorted(self.collections))
            raise ValueError(f"Unknown collection {name!r} (known: {known})") from None

    def layouts(self, name: str) -> dict[Scope, ScopeLayout]:
        """Scope layouts (root, prefix, extension) for one collection."""
        coll = self.collection(name)
        return {
            Scope.PROJECT: ScopeLayout(
                scope=Scope.PROJECT,
                root=self.project_root / coll.subdir,
                id_prefix=coll.project_prefix,
                extension=coll.extension,
                index_filename=self.index_filename,
            ),
            Scope.SHARED: ScopeLayout(
                scope=Scope.SHARED,
                root=self.shared_root / coll.subdir,
                id_prefix=coll.shared_prefix,
                extension=coll.extension,
                index_filename=self.index_filename,
            ),
        }


# ---------------------------------------------------------------------------
# Root discovery
# ---------------------------------------------------------------------------


def get_shared_root() -> Path:
    """Shared boundary: $DOCSHELF_SHARED_ROOT or ~/.docshelf."""
    env = os.environ.get(SHARED_ROOT_ENV)
    if env:
        return Path(env).expanduser().resolve()
    return (Path.home() / BOUNDARY_DIRNAME).resolve()


def find_project_root(start: Optional[Path] = None) -> Path:
    """
    Locate the project boundary.

    Priority:
    1. DOCSHELF_PROJECT_ROOT environment variable
    2. Nearest ``.docshelf`` directory walking up from start (default: cwd),
       skipping the one in the home directory (that is the shared boundary)
    3. ``<start>/.docshelf`` (created lazily on first write)
    """
    env = os.environ.get(PROJECT_ROOT_ENV)
    if env:
        return Path(env).expanduser().resolve()

    start = Path(start or Path.cwd()).resolve()
    home_boundary = (Path.home() / BOUNDARY_DIRNAME).resolve()
    current = start
    while True:
        candidate = current / BOUNDARY_DIRNAME
        if candidate.is_dir() and candidate.resolve() != home_boundary:
            return candidate.resolve()
        if current.parent == current:
            break
        current = current.parent
    return start / BOUNDARY_DIRNAME


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


def load_config(project_root: Path, shared_root: Path) -> StoreConfig:
    """
    Load configuration from a project boundary directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = project_root / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    store = data.get("store", {})
    version = store.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    collections = default_collections()
    for name, section in data.get("collections", {}).items():
        if not isinstance(section, dict):
            raise ValueError(f"[collections.{name}] must be a table")
        base = collections.get(name)
        try:
            collections[name] = CollectionConfig(
                name=name,
                subdir=section.get("subdir", base.subdir if base else name),
                project_prefix=section.get("project_prefix", base.project_prefix if base else ""),
                shared_prefix=section.get("shared_prefix", base.shared_prefix if base else ""),
                extension=section.get("extension", base.extension if base else ".md"),
            )
        except TypeError as e:
            raise ValueError(f"Invalid [collections.{name}]: {e}") from e
        coll = collections[name]
        if not coll.project_prefix or not coll.shared_prefix:
            raise ValueError(f"[collections.{name}] needs project_prefix and shared_prefix")
        if coll.project_prefix == coll.shared_prefix:
            raise ValueError(f"[collections.{name}] prefixes must differ")

    return StoreConfig(
        project_root=project_root,
        shared_root=shared_root,
        version=version,
        created=store.get("created", ""),
        index_filename=store.get("index_filename", INDEX_FILENAME),
        collections=collections,
    )


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the project boundary directory.

    Creates the directory if it doesn't exist.
    """
    config.project_root.mkdir(parents=True, exist_ok=True)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
            "index_filename": config.index_filename,
        },
        "collections": {
            name: {
                "subdir": c.subdir,
                "extension": c.extension,
                "project_prefix": c.project_prefix,
                "shared_prefix": c.shared_prefix,
            }
            for name, c in config.collections.items()
        },
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_default_config(
    project_root: Optional[Path] = None,
    shared_root: Optional[Path] = None,
) -> StoreConfig:
    """
    Load the config if present, otherwise return defaults (nothing written).

    This is the main entry point for config management.
    """
    project_root = Path(project_root).resolve() if project_root else find_project_root()
    shared_root = Path(shared_root).resolve() if shared_root else get_shared_root()

    if (project_root / CONFIG_FILENAME).exists():
        return load_config(project_root, shared_root)
    return StoreConfig(project_root=project_root, shared_root=shared_root)
