"""
Tests for the typer CLI, invoked in-process with CliRunner.

Boundaries come from DOCSHELF_PROJECT_ROOT / DOCSHELF_SHARED_ROOT set by
the autouse fixture in conftest.
"""

import json

import click
import pytest
from typer.testing import CliRunner

from docshelf.cli import app
from docshelf.config import CONFIG_FILENAME
from docshelf.logging_config import OPS_LOG_FILENAME


@pytest.fixture
def runner():
    return CliRunner()


def _invoke(runner, *args):
    return runner.invoke(app, list(args))


def _json(runner, *args):
    result = _invoke(runner, "--json", *args)
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


class TestInit:

    def test_init(self, runner, project_root, shared_root):
        result = _invoke(runner, "init")
        assert result.exit_code == 0, result.output
        assert (project_root / CONFIG_FILENAME).exists()
        assert (shared_root / "cartridges").is_dir()
        assert "Config:" in result.output

    def test_init_json(self, runner, project_root):
        data = _json(runner, "init")
        assert data["project_root"] == str(project_root.resolve())


class TestDocCommands:

    def test_create_and_read(self, runner):
        result = _invoke(runner, "doc", "create", "auth/jwt", "--content", "# JWT")
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "doc001 project:auth/jwt"

        result = _invoke(runner, "doc", "read", "doc001")
        assert result.exit_code == 0
        assert result.output == "# JWT\n"

    def test_create_from_file(self, runner, tmp_path):
        source = tmp_path / "in.md"
        source.write_text("from file")
        result = _invoke(runner, "doc", "create", "f", "--file", str(source))
        assert result.exit_code == 0, result.output
        assert _json(runner, "doc", "read", "f")["content"] == "from file"

    def test_read_json(self, runner):
        _invoke(runner, "doc", "create", "a", "--content", "---\nsynopsis: Hi\n---\nbody")
        data = _json(runner, "doc", "read", "a")
        assert data["id"] == "doc001"
        assert data["scope"] == "project"
        assert data["synopsis"] == "Hi"
        assert len(data["hash"]) == 64

    def test_read_with_meta(self, runner):
        _invoke(runner, "doc", "create", "a", "--content", "body")
        result = _invoke(runner, "doc", "read", "a", "--meta")
        assert result.output.startswith("---\nid: doc001\nscope: project\npath: a\n")

    def test_read_missing(self, runner):
        result = _invoke(runner, "doc", "read", "nothing")
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_read_several(self, runner):
        _invoke(runner, "doc", "create", "a", "--content", "AAA")
        _invoke(runner, "doc", "create", "b", "--content", "BBB")
        result = _invoke(runner, "doc", "read", "a", "b", "missing")
        assert result.exit_code == 1
        assert "AAA" in result.output and "BBB" in result.output
        assert "missing" in result.output

    def test_create_duplicate(self, runner):
        _invoke(runner, "doc", "create", "a", "--content", "x")
        result = _invoke(runner, "doc", "create", "a", "--content", "y")
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_edit_with_hash(self, runner):
        _invoke(runner, "doc", "create", "a", "--content", "hello world")
        doc = _json(runner, "doc", "read", "a")
        result = _invoke(
            runner, "doc", "edit", "a", "--old", "world", "--new", "there", "--hash", doc["hash"],
        )
        assert result.exit_code == 0, result.output
        assert "(1 applied)" in result.output
        assert _json(runner, "doc", "read", "a")["content"] == "hello there"

    def test_edit_stale_hash(self, runner):
        _invoke(runner, "doc", "create", "a", "--content", "x")
        result = _invoke(runner, "doc", "edit", "a", "--content", "y", "--hash", "0" * 64)
        assert result.exit_code == 1
        assert "Hash mismatch" in result.output

    def test_edit_requires_hash_or_force(self, runner):
        _invoke(runner, "doc", "create", "a", "--content", "x")
        result = _invoke(runner, "doc", "edit", "a", "--content", "y")
        assert result.exit_code == 1
        assert "force" in result.output

    def test_edit_regex_force(self, runner):
        _invoke(runner, "doc", "create", "a", "--content", "v1 v2")
        result = _invoke(
            runner, "doc", "edit", "a", "--old", r"v(\d)", "--new", r"version \1",
            "--mode", "regex", "--flags", "g", "--force",
        )
        assert result.exit_code == 0, result.output
        assert _json(runner, "doc", "read", "a")["content"] == "version 1 version 2"

    def test_edit_unknown_mode(self, runner):
        _invoke(runner, "doc", "create", "a", "--content", "x")
        result = _invoke(runner, "doc", "edit", "a", "--old", "x", "--new", "y", "--mode", "fuzzy", "--force")
        assert result.exit_code == 1

    def test_edit_interactive(self, runner, monkeypatch):
        _invoke(runner, "doc", "create", "a", "--content", "draft")
        monkeypatch.setattr(click, "edit", lambda text, extension=None: text + " final")
        result = _invoke(runner, "doc", "edit", "a", "--interactive")
        assert result.exit_code == 0, result.output
        assert _json(runner, "doc", "read", "a")["content"] == "draft final"

    def test_edit_interactive_unchanged(self, runner, monkeypatch):
        _invoke(runner, "doc", "create", "a", "--content", "draft")
        monkeypatch.setattr(click, "edit", lambda text, extension=None: None)
        result = _invoke(runner, "doc", "edit", "a", "--interactive")
        assert result.exit_code == 0
        assert "No changes" in result.output

    def test_delete_twice(self, runner):
        _invoke(runner, "doc", "create", "a", "--content", "x")
        assert "Deleted a" in _invoke(runner, "doc", "delete", "a").output
        result = _invoke(runner, "doc", "delete", "a")
        assert result.exit_code == 0
        assert "Nothing to delete" in result.output

    def test_move(self, runner):
        _invoke(runner, "doc", "create", "old", "--content", "x")
        result = _invoke(runner, "doc", "move", "old", "new", "--to-scope", "shared")
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "doc001 project:old -> sdoc001 shared:new"

    def test_list_overrides(self, runner):
        _invoke(runner, "doc", "create", "a", "--content", "p")
        _invoke(runner, "doc", "create", "a", "--content", "s", "--scope", "shared")
        items = _json(runner, "doc", "list")
        assert [(i["id"], i["override"]) for i in items] == [
            ("doc001", "overrides"), ("sdoc001", "overridden"),
        ]
        text = _invoke(runner, "doc", "list").output
        assert "(overrides)" in text

    def test_list_empty(self, runner):
        assert "No documents." in _invoke(runner, "doc", "list").output

    def test_invalid_scope(self, runner):
        result = _invoke(runner, "doc", "list", "--scope", "global")
        assert result.exit_code == 1
        assert "Scope must be" in result.output

    def test_ops_log(self, runner, project_root):
        _invoke(runner, "doc", "create", "a", "--content", "x")
        assert "create docs doc001 project:a" in (project_root / OPS_LOG_FILENAME).read_text()


class TestCartridgeCommands:

    def test_cartridge_ids(self, runner):
        result = _invoke(runner, "cartridge", "create", "tools/grep", "--content", "x")
        assert result.output.strip() == "crt001 project:tools/grep"
        result = _invoke(runner, "cartridge", "create", "tools/sed", "--content", "y", "--scope", "shared")
        assert result.output.strip() == "scrt001 shared:tools/sed"

    def test_separate_from_docs(self, runner):
        _invoke(runner, "cartridge", "create", "x", "--content", "c")
        assert _json(runner, "doc", "list") == []
        assert [i["id"] for i in _json(runner, "cartridge", "list")] == ["crt001"]
