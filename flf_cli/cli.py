"""Typer-based CLI for flf."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from .buffers import BufferExportError
from .config import DEFAULT_DB_PATH, DEFAULT_EDITOR, MAX_SEARCH_LIMIT, SEARCH_LIMIT, setup_logging
from .console import SearchConsole
from .core import BackendInitError, SearchCore
from .emitter import OutputEmitter
from .models import EditorTarget, IndexMode
from .terminal import TerminalSession

logger = logging.getLogger(__name__)

err_console = Console(stderr=True, soft_wrap=True)

app = typer.Typer(
    help="🔎 flf — incremental semantic code search, straight into your editor.",
    invoke_without_command=True,
    rich_markup_mode="rich",
)


def _default_editor() -> EditorTarget:
    try:
        return EditorTarget(DEFAULT_EDITOR)
    except ValueError:
        logger.warning("Ignoring unknown default editor %r in config", DEFAULT_EDITOR)
        return EditorTarget.CMD


def _editor_option() -> EditorTarget:
    return typer.Option(
        _default_editor(),
        "--editor",
        "-e",
        help="Editor the selection is formatted for.",
        case_sensitive=False,
    )


def _limit_option() -> int:
    return typer.Option(SEARCH_LIMIT, "--limit", "-k", min=1, max=MAX_SEARCH_LIMIT, help="Results per query.")


def _model_option() -> Optional[str]:
    return typer.Option(None, "--model", "-m", help="Embedding model key (default from config).")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"flf v{__version__}")
        raise typer.Exit()


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]✗[/red] {escape(message)}")
    raise typer.Exit(code=1)


def _open_core(model_key: Optional[str], db_path: Optional[Path] = None) -> SearchCore:
    try:
        return SearchCore.init(db_path=db_path, model_key=model_key)
    except BackendInitError as exc:
        logger.error("Backend initialisation failed: %s", exc)
        _fail(str(exc))


def run_interactive(
    source: Path,
    mode: IndexMode,
    editor: EditorTarget,
    limit: int,
    model_key: Optional[str] = None,
) -> None:
    """Index *source*, then hand the terminal to the search console."""
    setup_logging()
    with _open_core(model_key) as core:
        try:
            with err_console.status("Indexing..."):
                if mode is IndexMode.BUF:
                    count = core.index_buffers(source)
                else:
                    count = core.index_directory(source)
        except BufferExportError as exc:
            _fail(str(exc))
        logger.info("Indexed %d chunks from %s (%s mode)", count, source, mode.value)

        console = SearchConsole(
            backend=core,
            session=TerminalSession.acquire(),
            emitter=OutputEmitter(mode),
            editor=editor,
            limit=limit,
        )
        asyncio.run(console.run())


@app.callback()
def main(
    ctx: typer.Context,
    editor: EditorTarget = _editor_option(),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
):
    """Search the current directory interactively when no command is given."""
    if ctx.invoked_subcommand is None:
        run_interactive(Path("."), IndexMode.DIR, editor, SEARCH_LIMIT)


@app.command("dir")
def search_directory(
    path: Path = typer.Option(
        Path("."), "--path", "-p", exists=True, file_okay=False, help="Directory to index.",
    ),
    editor: EditorTarget = _editor_option(),
    limit: int = _limit_option(),
    model: Optional[str] = _model_option(),
):
    """Index a directory and search it interactively."""
    run_interactive(path, IndexMode.DIR, editor, limit, model)


@app.command("buf")
def search_buffers(
    file: Path = typer.Option(..., "--file", "-f", help="Buffer export JSON written by the editor."),
    editor: EditorTarget = _editor_option(),
    limit: int = _limit_option(),
    model: Optional[str] = _model_option(),
):
    """Index an editor buffer export and search it interactively."""
    run_interactive(file, IndexMode.BUF, editor, limit, model)


@app.command("index")
def index_project(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Directory to index."),
    db: Path = typer.Option(Path(DEFAULT_DB_PATH), "--db", help="LanceDB directory to write."),
    json_output: bool = typer.Option(False, "--json", help="Print a JSON envelope."),
    model: Optional[str] = _model_option(),
    verbose: bool = typer.Option(False, "--verbose", help="Log to stderr as well."),
):
    """Index a directory into a persistent store for [bold]flf query[/bold]."""
    setup_logging(verbose)
    directory = str(project_path.resolve())
    try:
        with SearchCore.init(db_path=db, model_key=model) as core:
            core.store.clear()
            count = core.index_directory(project_path)
    except Exception as exc:
        logger.error("Error during directory indexing: %s", exc)
        if json_output:
            typer.echo(json.dumps({
                "status": "error",
                "message": f"Error during directory indexing: {exc}",
                "directory": directory,
            }), err=True)
            raise typer.Exit(code=1)
        _fail(f"Error during directory indexing: {exc}")

    message = f"Indexed {count} code chunks." if count else "No code chunks found to index."
    if json_output:
        typer.echo(json.dumps({"status": "success", "message": message, "directory": directory}))
    else:
        typer.echo(message)


@app.command("query")
def query_index(
    query_text: str = typer.Argument(..., help="Semantic query for code discovery."),
    k: int = typer.Option(5, "-k", "--top-k", min=1, max=MAX_SEARCH_LIMIT, help="Maximum number of matches."),
    db: Path = typer.Option(Path(DEFAULT_DB_PATH), "--db", help="LanceDB directory to read."),
    json_output: bool = typer.Option(False, "--json", help="Print a JSON envelope."),
    model: Optional[str] = _model_option(),
    verbose: bool = typer.Option(False, "--verbose", help="Log to stderr as well."),
):
    """Run one search against a store written by [bold]flf index[/bold]."""
    setup_logging(verbose)
    try:
        if not db.is_dir():
            raise FileNotFoundError(f"No index at '{db}'. Run 'flf index <path>' first.")
        with SearchCore.init(db_path=db, model_key=model) as core:
            results = core.search_sync(query_text, k)
    except Exception as exc:
        logger.error("Query failed: %s", exc)
        if json_output:
            typer.echo(json.dumps({
                "status": "error",
                "message": f"Error during query: {exc}",
                "query": query_text,
            }), err=True)
            raise typer.Exit(code=1)
        _fail(f"Error during query: {exc}")

    if json_output:
        typer.echo(json.dumps({
            "status": "success",
            "query": query_text,
            "k": k,
            "results": [item.to_record() for item in results],
        }, ensure_ascii=False))
        return

    if not results:
        typer.echo(f'No results found for query "{query_text}".')
        return

    typer.echo(f'Top {k} results for query "{query_text}":')
    for item in results:
        typer.echo(f"- File: {item.file_path}")
        typer.echo(f"  Content Snippet: {item.content[:100]}...")
        typer.echo(f"  Score: {item.score}")
        typer.echo(f"  Entity: {item.entity}")
        typer.echo(f"  Parent: {item.parent_info}")


if __name__ == "__main__":
    app()
