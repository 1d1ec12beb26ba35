"""
Tests for the MCP stdio server tool functions.

Tools are awaited directly against a real store under tmp_path; the module
global store handle is swapped in per test.
"""

import json

import pytest

from docshelf.api import DocShelf


@pytest.fixture(autouse=True)
def patch_shelf(project_root, shared_root):
    """Point the MCP module at a store under tmp_path for all tests."""
    import docshelf.mcp as mcp_mod
    mcp_mod._shelf = DocShelf(project_root, shared_root, ops_log=False)
    yield mcp_mod._shelf
    mcp_mod._shelf = None


# ---------------------------------------------------------------------------
# doc_* tools
# ---------------------------------------------------------------------------

class TestDocTools:

    @pytest.mark.asyncio
    async def test_create_and_read(self):
        from docshelf.mcp import doc_create, doc_read
        created = json.loads(await doc_create("auth/jwt", "# JWT"))
        assert created["id"] == "doc001"
        assert created["scope"] == "project"

        doc = json.loads(await doc_read("doc001"))
        assert doc["content"] == "# JWT"
        assert doc["hash"] == created["hash"]
        assert "body" not in doc

    @pytest.mark.asyncio
    async def test_create_shared(self):
        from docshelf.mcp import doc_create
        created = json.loads(await doc_create("style", "x", scope="shared"))
        assert created["id"] == "sdoc001"

    @pytest.mark.asyncio
    async def test_error_format(self):
        from docshelf.mcp import doc_create, doc_read
        assert (await doc_read("missing")).startswith("Error [NOT_FOUND]: ")
        await doc_create("a", "x")
        assert (await doc_create("a", "y")).startswith("Error [ALREADY_EXISTS]: ")
        assert (await doc_create("../a", "y")).startswith("Error [INVALID_ADDRESS]: ")

    @pytest.mark.asyncio
    async def test_edit_with_hash(self):
        from docshelf.mcp import doc_create, doc_edit, doc_read
        created = json.loads(await doc_create("a", "JWT and JWT"))
        result = json.loads(await doc_edit(
            "a", [{"op": "replaceAll", "oldText": "JWT", "newText": "token"}], hash=created["hash"],
        ))
        assert result["applied"] == 1
        assert json.loads(await doc_read("a"))["content"] == "token and token"

    @pytest.mark.asyncio
    async def test_edit_stale_hash(self):
        from docshelf.mcp import doc_create, doc_edit
        await doc_create("a", "x")
        result = await doc_edit("a", [{"op": "replaceAllContent", "content": "y"}], hash="0" * 64)
        assert result.startswith("Error [CONFLICT]: ")

    @pytest.mark.asyncio
    async def test_edit_without_hash_is_last_write_wins(self):
        from docshelf.mcp import doc_create, doc_edit, doc_read
        await doc_create("a", "x")
        result = json.loads(await doc_edit("a", [{"op": "replaceAllContent", "content": "y"}]))
        assert result["applied"] == 1
        assert json.loads(await doc_read("a"))["content"] == "y"

    @pytest.mark.asyncio
    async def test_edit_errors(self):
        from docshelf.mcp import doc_create, doc_edit
        await doc_create("a", "x")
        missing = await doc_edit("a", [{"op": "replaceOnce", "oldText": "zzz", "newText": "y"}])
        assert missing.startswith("Error [TEXT_NOT_FOUND]: ")
        bad = await doc_edit("a", [{"op": "explode"}])
        assert bad.startswith("Error [INVALID_EDIT]: ")

    @pytest.mark.asyncio
    async def test_delete(self):
        from docshelf.mcp import doc_create, doc_delete
        await doc_create("a", "x")
        assert json.loads(await doc_delete("a")) == {"deleted": True}
        assert json.loads(await doc_delete("a")) == {"deleted": False}

    @pytest.mark.asyncio
    async def test_move(self):
        from docshelf.mcp import doc_create, doc_move
        await doc_create("a", "x")
        result = json.loads(await doc_move("a", "b", to_scope="shared"))
        assert (result["old_id"], result["new_id"]) == ("doc001", "sdoc001")
        assert (await doc_move("b", "b", from_scope="shared")).startswith("Error [NO_OP]: ")

    @pytest.mark.asyncio
    async def test_list(self):
        from docshelf.mcp import doc_create, doc_list
        await doc_create("a", "---\nsynopsis: A doc\n---\n", scope="shared")
        await doc_create("a", "p")
        items = json.loads(await doc_list(include_synopsis=True))
        assert [(i["id"], i["override"]) for i in items] == [
            ("doc001", "overrides"), ("sdoc001", "overridden"),
        ]
        assert items[1]["synopsis"] == "A doc"

    @pytest.mark.asyncio
    async def test_list_prefix_and_scope(self):
        from docshelf.mcp import doc_create, doc_list
        await doc_create("auth/a", "x")
        await doc_create("misc/b", "x")
        await doc_create("auth/c", "x", scope="shared")
        items = json.loads(await doc_list(scope="project", prefix="auth/"))
        assert [i["path"] for i in items] == ["auth/a"]


# ---------------------------------------------------------------------------
# cartridge_* tools
# ---------------------------------------------------------------------------

class TestCartridgeTools:

    @pytest.mark.asyncio
    async def test_round_trip(self):
        from docshelf.mcp import (
            cartridge_create, cartridge_delete, cartridge_edit, cartridge_list,
            cartridge_move, cartridge_read,
        )
        created = json.loads(await cartridge_create("tools/grep", "grep -r"))
        assert created["id"] == "crt001"
        await cartridge_edit(
            "crt001", [{"op": "replaceOnce", "oldText": "-r", "newText": "-rn"}], hash=created["hash"],
        )
        assert json.loads(await cartridge_read("tools/grep"))["content"] == "grep -rn"

        moved = json.loads(await cartridge_move("crt001", "tools/grep", to_scope="shared"))
        assert moved["new_id"] == "scrt001"
        assert [i["id"] for i in json.loads(await cartridge_list())] == ["scrt001"]
        assert json.loads(await cartridge_delete("scrt001")) == {"deleted": True}

    @pytest.mark.asyncio
    async def test_cartridges_do_not_see_docs(self):
        from docshelf.mcp import cartridge_read, doc_create
        await doc_create("shared-name", "x")
        assert (await cartridge_read("shared-name")).startswith("Error [NOT_FOUND]: ")
