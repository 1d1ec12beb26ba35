"""
Shared pytest fixtures for docshelf tests.

Every test gets its own project and shared boundaries under tmp_path, and
the environment is pointed at them so nothing touches the real home
directory.
"""

import logging

import pytest

from docshelf.config import StoreConfig
from docshelf.service import DocService
from docshelf.types import Scope, ScopeLayout


@pytest.fixture
def project_root(tmp_path):
    return tmp_path / "work" / "proj" / ".docshelf"


@pytest.fixture
def shared_root(tmp_path):
    return tmp_path / "home" / ".docshelf"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path, project_root, shared_root):
    """Point every boundary lookup at tmp_path."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("DOCSHELF_PROJECT_ROOT", str(project_root))
    monkeypatch.setenv("DOCSHELF_SHARED_ROOT", str(shared_root))
    monkeypatch.delenv("DOCSHELF_VERBOSE", raising=False)
    yield
    # Drop ops log handlers left by a failing test
    ops_logger = logging.getLogger("docshelf")
    for handler in list(ops_logger.handlers):
        ops_logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def layouts(project_root, shared_root):
    """Document layouts with the default doc/sdoc prefixes."""
    return {
        Scope.PROJECT: ScopeLayout(Scope.PROJECT, project_root / "docs", "doc"),
        Scope.SHARED: ScopeLayout(Scope.SHARED, shared_root / "docs", "sdoc"),
    }


@pytest.fixture
def service(layouts):
    return DocService(layouts)


@pytest.fixture
def store_config(project_root, shared_root):
    return StoreConfig(project_root=project_root, shared_root=shared_root)
