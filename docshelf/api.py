"""
Store facade: one object holding every collection of a project.

Resolves the project and shared boundaries, opens a DocService per
configured collection, and owns the persistent operations log.
"""

import logging
from pathlib import Path
from typing import Optional

from .config import StoreConfig, load_or_default_config, save_config
from .service import DocService
from .types import SCOPE_ORDER

logger = logging.getLogger(__name__)


class DocShelf:
    """
    Scoped document store for a project.

    Example:
        with DocShelf() as shelf:
            created = await shelf.docs.create("auth/jwt", "# JWT")
            cartridges = await shelf.cartridges.list()
    """

    def __init__(
        self,
        project_root: Optional[str | Path] = None,
        shared_root: Optional[str | Path] = None,
        *,
        config: Optional[StoreConfig] = None,
        ops_log: bool = True,
    ) -> None:
        """
        Open a store.

        Args:
            project_root: Project boundary directory. Discovered if not given.
            shared_root: Shared boundary directory. Defaults to ~/.docshelf.
            config: Pre-loaded StoreConfig (skips filesystem discovery)
            ops_log: Record structural changes in the project's ops log.
                The log file is opened on the first write, so read-only
                use never creates the project directory.
        """
        if config is not None:
            self._config = config
        else:
            self._config = load_or_default_config(project_root, shared_root)

        self._ops_log = ops_log
        self._ops_log_handler = None

        self._services: dict[str, DocService] = {}
        for name in self._config.collections:
            self._services[name] = DocService(
                self._config.layouts(name), name=name, on_write=self._attach_ops_log,
            )

        logger.debug(
            "Opened store: project=%s shared=%s collections=%s",
            self._config.project_root, self._config.shared_root, sorted(self._services),
        )

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def project_root(self) -> Path:
        return self._config.project_root

    @property
    def shared_root(self) -> Path:
        return self._config.shared_root

    def collection(self, name: str) -> DocService:
        """
        The service for one collection.

        Raises:
            ValueError: Unknown collection name
        """
        if name not in self._services:
            self._config.collection(name)  # raises with the known names
        return self._services[name]

    @property
    def docs(self) -> DocService:
        return self.collection("docs")

    @property
    def cartridges(self) -> DocService:
        return self.collection("cartridges")

    def _attach_ops_log(self) -> None:
        """Open the ops log on the first structural change."""
        if self._ops_log and self._ops_log_handler is None:
            from .logging_config import configure_ops_log
            self._ops_log_handler = configure_ops_log(self._config.project_root)

    def init(self) -> Path:
        """
        Write the config file and create the scope roots.

        Idempotent: an existing config file is left as is.

        Returns:
            Path to the config file
        """
        self._attach_ops_log()
        if not self._config.exists():
            save_config(self._config)
            logger.info("init %s", self._config.config_path)
        for service in self._services.values():
            for scope in SCOPE_ORDER:
                service.layout(scope).root.mkdir(parents=True, exist_ok=True)
        return self._config.config_path

    def close(self) -> None:
        """Detach the ops log handler. Later writes are not logged."""
        self._ops_log = False
        if self._ops_log_handler is not None:
            from .logging_config import remove_ops_log
            remove_ops_log(self._ops_log_handler)
            self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
