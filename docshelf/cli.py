"""
CLI interface for docshelf.

Usage:
    docshelf init
    docshelf doc create auth/jwt-setup --content "# JWT"
    docshelf doc read doc001
    docshelf doc edit doc001 --old JWT --new "JSON Web Token" --hash <hash>
    docshelf cartridge list --scope shared
"""

import asyncio
import atexit
import json
import os
import select
import sys
from pathlib import Path
from typing import Optional

import click
import typer
from typing_extensions import Annotated

from .api import DocShelf
from .config import PROJECT_ROOT_ENV, SHARED_ROOT_ENV
from .errors import DocShelfError
from .logging_config import configure_quiet_mode, enable_debug_mode
from .types import (
    Document,
    ListItem,
    ReplaceAll,
    ReplaceAllContent,
    ReplaceOnce,
    ReplaceRegex,
)

# Configure quiet mode by default (suppress verbose library output)
# Set DOCSHELF_VERBOSE=1 to enable debug mode via environment
if os.environ.get("DOCSHELF_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _has_stdin_data() -> bool:
    """Check if stdin is a pipe with data ready, without blocking."""
    if sys.stdin is None or sys.stdin.isatty():
        return False
    try:
        ready, _, _ = select.select([sys.stdin], [], [], 0)
        return bool(ready)
    except (ValueError, OSError):
        return False


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"docshelf {version('docshelf')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_project_root: Optional[Path] = None
_shared_root: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _project_root_callback(value: Optional[Path]):
    global _project_root
    _project_root = value


def _shared_root_callback(value: Optional[Path]):
    global _shared_root
    _shared_root = value


app = typer.Typer(
    name="docshelf",
    help="Scoped document and cartridge storage.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    project_root: Annotated[Optional[Path], typer.Option(
        "--project-root",
        envvar=PROJECT_ROOT_ENV,
        help="Project boundary directory (default: nearest .docshelf/)",
        callback=_project_root_callback,
        is_eager=True,
    )] = None,
    shared_root: Annotated[Optional[Path], typer.Option(
        "--shared-root",
        envvar=SHARED_ROOT_ENV,
        help="Shared boundary directory (default: ~/.docshelf/)",
        callback=_shared_root_callback,
        is_eager=True,
    )] = None,
):
    """Scoped document and cartridge storage."""


def _get_shelf(write: bool = False) -> DocShelf:
    """Open the store; only writing commands attach the ops log."""
    try:
        shelf = DocShelf(_project_root, _shared_root, ops_log=write)
    except (ValueError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    atexit.register(shelf.close)
    return shelf


def _run(coro):
    """Run one store coroutine, turning store errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except DocShelfError as e:
        if _get_json_output():
            typer.echo(json.dumps({"error": e.to_dict()}, indent=2))
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


# -----------------------------------------------------------------------------
# Output Formatting
# -----------------------------------------------------------------------------

def _echo_json(data) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _render_document(doc: Document, with_header: bool) -> str:
    if not with_header:
        return doc.content
    lines = [
        "---",
        f"id: {doc.id}",
        f"scope: {doc.scope.value}",
        f"path: {doc.path}",
        f"hash: {doc.hash}",
    ]
    if doc.modified_at:
        lines.append(f"modified: {doc.modified_at}")
    if doc.synopsis:
        lines.append(f"synopsis: {json.dumps(doc.synopsis, ensure_ascii=False)}")
    lines.append("---")
    return "\n".join(lines) + "\n" + doc.content


def _render_list_item(item: ListItem) -> str:
    line = f"{item.id:<10} {item.scope.value:<8} {item.path}"
    if item.override:
        line += f"  ({item.override})"
    if item.synopsis:
        line += f"  {item.synopsis}"
    return line


def _read_content(content: Optional[str], file: Optional[Path]) -> str:
    """Content from --content, --file or piped stdin, in that order."""
    if content is not None and file is not None:
        typer.echo("Error: use either --content or --file, not both", err=True)
        raise typer.Exit(1)
    if content is not None:
        return content
    if file is not None:
        try:
            return file.read_text(encoding="utf-8")
        except OSError as e:
            typer.echo(f"Error: cannot read {file}: {e}", err=True)
            raise typer.Exit(1)
    if _has_stdin_data():
        return sys.stdin.read()
    return ""


# -----------------------------------------------------------------------------
# Common Options
# -----------------------------------------------------------------------------

ScopeOption = Annotated[
    Optional[str],
    typer.Option(
        "--scope", "-S",
        help="Scope: project or shared (default: by ID prefix, or project-then-shared for paths)",
    )
]

HashOption = Annotated[
    Optional[str],
    typer.Option(
        "--hash", "-H",
        help="Hash from your last read; the write fails if the document changed since",
    )
]


# -----------------------------------------------------------------------------
# Collection commands (doc, cartridge)
# -----------------------------------------------------------------------------

def _make_collection_app(collection: str, command: str, noun: str) -> typer.Typer:
    """Build the create/read/edit/delete/move/list sub-app for one collection."""
    sub = typer.Typer(
        name=command,
        help=f"Manage {noun}s.",
        no_args_is_help=True,
        rich_markup_mode=None,
    )

    @sub.command("create")
    def create_cmd(
        path: Annotated[str, typer.Argument(help=f"Path of the new {noun} (no extension)")],
        content: Annotated[Optional[str], typer.Option(
            "--content", "-c", help="Content text",
        )] = None,
        file: Annotated[Optional[Path], typer.Option(
            "--file", "-f", help="Read content from a file",
        )] = None,
        scope: ScopeOption = None,
    ):
        """
        Create a new {noun} at PATH and print its ID.

        Content comes from --content, --file, or stdin.
        """
        text = _read_content(content, file)
        service = _get_shelf(write=True).collection(collection)
        result = _run(service.create(path, text, scope=scope))
        if _get_json_output():
            _echo_json(result.to_dict())
        else:
            typer.echo(f"{result.id} {result.scope.value}:{result.path}")

    @sub.command("read")
    def read_cmd(
        address: Annotated[list[str], typer.Argument(help="ID(s) or path(s)")],
        scope: ScopeOption = None,
        meta: Annotated[bool, typer.Option(
            "--meta", "-m", help="Show id, scope, path and hash above the content",
        )] = False,
    ):
        """
        Print {noun} content.

        A path is looked up in the project scope first, then shared.
        """
        service = _get_shelf().collection(collection)
        if len(address) == 1:
            doc = _run(service.read(address[0], scope=scope))
            if _get_json_output():
                _echo_json(doc.to_dict())
            else:
                typer.echo(_render_document(doc, with_header=meta))
            return

        result = _run(service.multiread(address, scope=scope))
        if _get_json_output():
            _echo_json(result.to_dict())
        else:
            for doc in result.results:
                typer.echo(_render_document(doc, with_header=True))
            for addr, exc in result.errors:
                typer.echo(f"Error: {addr}: {exc}", err=True)
        if result.errors:
            raise typer.Exit(1)

    @sub.command("edit")
    def edit_cmd(
        address: Annotated[str, typer.Argument(help="ID or path")],
        old: Annotated[Optional[str], typer.Option(
            "--old", help="Text (or pattern, with --mode regex) to replace",
        )] = None,
        new: Annotated[Optional[str], typer.Option(
            "--new", help="Replacement text",
        )] = None,
        mode: Annotated[str, typer.Option(
            "--mode", help="once, all or regex",
        )] = "once",
        flags: Annotated[str, typer.Option(
            "--flags", help="Regex flags (g, i, m, s, x)",
        )] = "",
        content: Annotated[Optional[str], typer.Option(
            "--content", "-c", help="Replace the whole content",
        )] = None,
        interactive: Annotated[bool, typer.Option(
            "--interactive", "-i", help="Edit in $EDITOR",
        )] = False,
        base_hash: HashOption = None,
        force: Annotated[bool, typer.Option(
            "--force", help="Skip the hash check (last write wins)",
        )] = False,
        scope: ScopeOption = None,
    ):
        """
        Edit a {noun}.

        \b
        Examples:
            docshelf doc edit doc001 --old foo --new bar --hash <hash>
            docshelf doc edit auth/jwt --old 'v(\\d+)' --new 'v\\1.0' --mode regex --flags g --force
            docshelf doc edit doc001 --content "# New text" --force
            docshelf doc edit doc001 --interactive
        """
        service = _get_shelf(write=True).collection(collection)

        if interactive:
            doc = _run(service.read(address, scope=scope))
            edited = click.edit(doc.content, extension=service.layout(doc.scope).extension or ".txt")
            if edited is None or edited == doc.content:
                typer.echo("No changes")
                return
            result = _run(service.edit_latest(
                doc.id, doc.hash, [ReplaceAllContent(edited)], scope=doc.scope,
            ))
        else:
            if content is not None:
                if old is not None:
                    typer.echo("Error: use either --content or --old/--new, not both", err=True)
                    raise typer.Exit(1)
                ops = [ReplaceAllContent(content)]
            elif old is not None and new is not None:
                if mode == "once":
                    ops = [ReplaceOnce(old, new)]
                elif mode == "all":
                    ops = [ReplaceAll(old, new)]
                elif mode == "regex":
                    ops = [ReplaceRegex(old, new, flags)]
                else:
                    typer.echo(f"Error: unknown --mode {mode!r} (use once, all or regex)", err=True)
                    raise typer.Exit(1)
            else:
                typer.echo("Error: give --old and --new, --content, or --interactive", err=True)
                raise typer.Exit(1)
            result = _run(service.edit_latest(address, base_hash, ops, scope=scope, force=force))

        if _get_json_output():
            _echo_json(result.to_dict())
        else:
            typer.echo(f"{result.new_hash} ({result.applied} applied)")

    @sub.command("delete")
    def delete_cmd(
        address: Annotated[str, typer.Argument(help="ID or path")],
        base_hash: HashOption = None,
        scope: ScopeOption = None,
    ):
        """Delete a {noun}. Deleting something already gone is not an error."""
        service = _get_shelf(write=True).collection(collection)
        result = _run(service.delete_latest(address, base_hash, scope=scope))
        if _get_json_output():
            _echo_json(result.to_dict())
        elif result.deleted:
            typer.echo(f"Deleted {address}")
        else:
            typer.echo(f"Nothing to delete: {address}")

    @sub.command("move")
    def move_cmd(
        source: Annotated[str, typer.Argument(help="Source ID or path")],
        destination: Annotated[str, typer.Argument(help="Destination path")],
        from_scope: Annotated[Optional[str], typer.Option(
            "--from-scope", help="Scope of the source",
        )] = None,
        to_scope: Annotated[Optional[str], typer.Option(
            "--to-scope", help="Scope of the destination (default: source scope)",
        )] = None,
    ):
        """Move a {noun} to a new path or scope. The moved {noun} gets a new ID."""
        service = _get_shelf(write=True).collection(collection)
        result = _run(service.move(
            source, destination, source_scope=from_scope, destination_scope=to_scope,
        ))
        if _get_json_output():
            _echo_json(result.to_dict())
        else:
            typer.echo(
                f"{result.old_id} {result.old_scope.value}:{result.old_path} -> "
                f"{result.new_id} {result.new_scope.value}:{result.new_path}"
            )

    @sub.command("list")
    def list_cmd(
        scope: ScopeOption = None,
        prefix: Annotated[Optional[str], typer.Option(
            "--prefix", "-p", help="Only paths starting with this prefix",
        )] = None,
        synopsis: Annotated[bool, typer.Option(
            "--synopsis", help="Include synopsis and hash (reads every file)",
        )] = False,
    ):
        """List {noun}s, sorted by path."""
        service = _get_shelf().collection(collection)
        items = _run(service.list(scope=scope, path_prefix=prefix, include_content=synopsis))
        if _get_json_output():
            _echo_json([item.to_dict() for item in items])
            return
        if not items:
            typer.echo(f"No {noun}s.")
            return
        for item in items:
            typer.echo(_render_list_item(item))

    for cmd in sub.registered_commands:
        if cmd.callback.__doc__:
            cmd.callback.__doc__ = cmd.callback.__doc__.replace("{noun}", noun)

    return sub


app.add_typer(_make_collection_app("docs", "doc", "document"))
app.add_typer(_make_collection_app("cartridges", "cartridge", "cartridge"))


@app.command()
def init():
    """Write docshelf.toml and create the scope directories."""
    shelf = _get_shelf(write=True)
    config_path = shelf.init()
    if _get_json_output():
        _echo_json({
            "config": str(config_path),
            "project_root": str(shelf.project_root),
            "shared_root": str(shelf.shared_root),
        })
    else:
        typer.echo(f"Project: {shelf.project_root}")
        typer.echo(f"Shared:  {shelf.shared_root}")
        typer.echo(f"Config:  {config_path}")


@app.command()
def mcp():
    """Start MCP stdio server for AI agent integration."""
    if _project_root is not None:
        os.environ[PROJECT_ROOT_ENV] = str(_project_root)
    if _shared_root is not None:
        os.environ[SHARED_ROOT_ENV] = str(_shared_root)
    from .mcp import main as mcp_main
    mcp_main()


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="docshelf CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
